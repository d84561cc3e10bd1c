"""HTTP request model handed to dispatch handlers."""

from dataclasses import dataclass, field
from urllib.parse import parse_qs, urlsplit

from config import MAX_BODY_BYTES, MAX_TARGET_LENGTH

SUPPORTED_HTTP_VERSIONS = {"HTTP/1.1", "HTTP/1.0"}
KNOWN_METHODS = {
    "GET",
    "HEAD",
    "POST",
    "PUT",
    "DELETE",
    "OPTIONS",
    "PATCH",
    "TRACE",
    "CONNECT",
}


class HTTPRequestParseError(ValueError):
    """Request parse error carrying the HTTP status code to answer with."""

    def __init__(self, message: str, *, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(slots=True)
class HTTPRequest:
    method: str
    url: str
    path: str = "/"
    http_version: str = "HTTP/1.1"
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    query_params: dict[str, list[str]] = field(default_factory=dict)
    keep_alive: bool = False
    # Filled by route wrappers when a path pattern matches.
    params: dict[str, str] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        body: bytes = b"",
    ) -> "HTTPRequest":
        """Create a request from a method and a raw target, without wire parsing."""
        target = urlsplit(url)
        return cls(
            method=method.upper(),
            url=url,
            path=target.path or "/",
            headers={name.lower(): value for name, value in (headers or {}).items()},
            body=body,
            query_params=parse_qs(target.query, keep_blank_values=True),
        )

    def header(self, name: str, default: str | None = None) -> str | None:
        return self.headers.get(name.lower(), default)

    @classmethod
    def from_bytes(cls, raw: bytes) -> "HTTPRequest":
        """Parse one raw HTTP/1.x request message into a request object."""
        try:
            head_bytes, body = raw.split(b"\r\n\r\n", 1)
        except ValueError as exc:
            raise HTTPRequestParseError("Missing CRLF CRLF request separator") from exc

        lines = head_bytes.decode("iso-8859-1").split("\r\n")
        if not lines or not lines[0]:
            raise HTTPRequestParseError("Missing request line")

        request_line = lines[0].split(" ")
        if len(request_line) != 3:
            raise HTTPRequestParseError("Invalid request line")

        method, target, http_version = request_line
        if not method or not target or not http_version:
            raise HTTPRequestParseError("Request line contains empty tokens")

        method = method.upper()
        if method not in KNOWN_METHODS:
            raise HTTPRequestParseError("Method not implemented", status_code=501)
        if http_version not in SUPPORTED_HTTP_VERSIONS:
            raise HTTPRequestParseError("Unsupported HTTP version", status_code=505)
        if len(target) > MAX_TARGET_LENGTH:
            raise HTTPRequestParseError("Request target too long", status_code=414)

        headers: dict[str, str] = {}
        for line in lines[1:]:
            if not line:
                continue
            if ":" not in line:
                raise HTTPRequestParseError("Malformed header line")
            name, value = line.split(":", 1)
            name = name.strip().lower()
            if not name:
                raise HTTPRequestParseError("Header name cannot be empty")
            headers[name] = value.strip()

        if http_version == "HTTP/1.1" and "host" not in headers:
            raise HTTPRequestParseError("Host header required for HTTP/1.1")

        if "transfer-encoding" in headers:
            raise HTTPRequestParseError(
                "Transfer-Encoding request bodies are not supported",
                status_code=501,
            )

        if "content-length" in headers:
            try:
                expected_length = int(headers["content-length"])
            except ValueError as exc:
                raise HTTPRequestParseError("Invalid Content-Length") from exc
            if expected_length < 0:
                raise HTTPRequestParseError("Negative Content-Length is invalid")
            if len(body) != expected_length:
                raise HTTPRequestParseError("Body length does not match Content-Length")
        elif body:
            raise HTTPRequestParseError("Body sent without Content-Length")

        if len(body) > MAX_BODY_BYTES:
            raise HTTPRequestParseError("Body exceeded MAX_BODY_BYTES", status_code=413)

        request = cls.build(method, target, body=body)
        request.http_version = http_version
        request.headers = headers
        request.keep_alive = _is_keep_alive(http_version, headers.get("connection", ""))
        return request


def _is_keep_alive(http_version: str, connection_header: str) -> bool:
    token = connection_header.lower()
    if http_version == "HTTP/1.1":
        return "close" not in token
    return "keep-alive" in token
