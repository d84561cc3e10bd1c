"""Writable HTTP response handed to dispatch handlers."""

from __future__ import annotations

import threading
from collections.abc import Callable
from email.utils import formatdate

from config import SERVER_NAME

REASON_PHRASES: dict[int, str] = {
    200: "OK",
    201: "Created",
    204: "No Content",
    301: "Moved Permanently",
    302: "Found",
    304: "Not Modified",
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    408: "Request Timeout",
    413: "Payload Too Large",
    414: "URI Too Long",
    418: "I'm a teapot",
    431: "Request Header Fields Too Large",
    500: "Internal Server Error",
    501: "Not Implemented",
    503: "Service Unavailable",
    505: "HTTP Version Not Supported",
}

# Statuses that never carry a body on the wire.
BODILESS_STATUSES = {204, 304}

Sender = Callable[[bytes], None]


class ResponseError(RuntimeError):
    """Raised when a response is modified after its head or body was committed."""


class ServerResponse:
    """Response writer bound to one request.

    The head is committed by ``write_head`` (or implicitly by the first
    ``write``/``end``) and flushed together with the first body bytes, so
    ``end(body)`` on an unflushed response can still compute
    ``Content-Length``. Writes go through ``send``, which the transport binds
    to the client socket.
    """

    def __init__(
        self,
        send: Sender,
        *,
        method: str = "GET",
        http_version: str = "HTTP/1.1",
    ) -> None:
        self.status_code = 200
        self.reason_phrase: str | None = None
        self.bytes_sent = 0
        self._send = send
        self._method = method.upper()
        self._http_version = http_version
        self._headers: dict[str, tuple[str, str]] = {}
        self._headers_committed = False
        self._head_flushed = False
        self._chunked = False
        self._finished = threading.Event()

    @property
    def headers_sent(self) -> bool:
        return self._headers_committed

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    @property
    def headers(self) -> dict[str, str]:
        return {name: value for name, value in self._headers.values()}

    def set_header(self, name: str, value: str) -> None:
        if self._headers_committed:
            raise ResponseError(f"Cannot set header {name!r} after headers were sent")
        self._headers[name.lower()] = (name, str(value))

    def get_header(self, name: str) -> str | None:
        entry = self._headers.get(name.lower())
        return entry[1] if entry is not None else None

    def remove_header(self, name: str) -> None:
        if self._headers_committed:
            raise ResponseError(f"Cannot remove header {name!r} after headers were sent")
        self._headers.pop(name.lower(), None)

    def write_head(
        self,
        status_code: int,
        headers: dict[str, str] | None = None,
        reason_phrase: str | None = None,
    ) -> None:
        if self._headers_committed:
            raise ResponseError("Headers were already sent")
        self.status_code = status_code
        if reason_phrase is not None:
            self.reason_phrase = reason_phrase
        for name, value in (headers or {}).items():
            self.set_header(name, value)
        self._headers_committed = True

    def write(self, chunk: bytes | str) -> None:
        """Send a piece of the body, flushing the head first if needed."""
        if self.finished:
            raise ResponseError("Cannot write after end()")
        data = _as_bytes(chunk)
        if not self._head_flushed:
            if self.get_header("Content-Length") is None and self._allows_body():
                self._chunked = self._http_version == "HTTP/1.1"
                if self._chunked:
                    self._headers["transfer-encoding"] = ("Transfer-Encoding", "chunked")
                else:
                    self._headers["connection"] = ("Connection", "close")
            self._flush_head()
        if not data or not self._allows_body():
            return
        if self._chunked:
            self._emit(f"{len(data):X}\r\n".encode("ascii") + data + b"\r\n")
        else:
            self._emit(data)

    def end(self, chunk: bytes | str = b"") -> None:
        """Finish the response. Calling it again on a finished response does nothing."""
        if self.finished:
            return
        data = _as_bytes(chunk)
        if not self._head_flushed:
            if self.get_header("Content-Length") is None and self.status_code not in BODILESS_STATUSES:
                self._headers["content-length"] = ("Content-Length", str(len(data)))
            self._headers_committed = True
            self._head_flushed = True
            # Head and body leave in a single send.
            payload = self._serialize_head()
            if data and self._allows_body():
                payload += data
            self._emit(payload)
        else:
            if data and self._allows_body():
                if self._chunked:
                    self._emit(f"{len(data):X}\r\n".encode("ascii") + data + b"\r\n")
                else:
                    self._emit(data)
            if self._chunked:
                self._emit(b"0\r\n\r\n")
        self._finished.set()

    def wait_finished(self, timeout: float | None = None) -> bool:
        return self._finished.wait(timeout)

    def _allows_body(self) -> bool:
        return self._method != "HEAD" and self.status_code not in BODILESS_STATUSES

    def _flush_head(self) -> None:
        self._headers_committed = True
        self._head_flushed = True
        self._emit(self._serialize_head())

    def _serialize_head(self) -> bytes:
        reason = self.reason_phrase or REASON_PHRASES.get(self.status_code, "Unknown")
        headers = dict(self._headers)
        headers.setdefault("date", ("Date", formatdate(timeval=None, localtime=False, usegmt=True)))
        headers.setdefault("server", ("Server", SERVER_NAME))
        headers.setdefault("content-type", ("Content-Type", "text/plain; charset=utf-8"))

        lines = [f"{self._http_version} {self.status_code} {reason}"]
        lines.extend(f"{name}: {value}" for name, value in headers.values())
        return "\r\n".join(lines).encode("iso-8859-1") + b"\r\n\r\n"

    def _emit(self, payload: bytes) -> None:
        self._send(payload)
        self.bytes_sent += len(payload)


def _as_bytes(chunk: bytes | str) -> bytes:
    if isinstance(chunk, str):
        return chunk.encode("utf-8")
    return bytes(chunk)
