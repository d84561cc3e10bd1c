"""Socket transport that feeds requests to a dispatcher-style listener."""

from __future__ import annotations

import argparse
import json
import logging
import socket
import threading
import time
from collections.abc import Callable

from config import (
    HOST,
    KEEPALIVE_TIMEOUT_SECS,
    LOG_FORMAT,
    MAX_KEEPALIVE_REQUESTS,
    PORT,
    REQUEST_QUEUE_SIZE,
    RESPONSE_TIMEOUT_SECS,
    SOCKET_TIMEOUT_SECS,
    WORKER_COUNT,
)
from request import HTTPRequest, HTTPRequestParseError
from response import REASON_PHRASES, ServerResponse
from socket_handler import HTTPReadError, read_http_request_message
from thread_pool import ThreadPool

logger = logging.getLogger(__name__)

Listener = Callable[[HTTPRequest, ServerResponse], None]


class HTTPServer:
    def __init__(
        self,
        listener: Listener,
        host: str = HOST,
        port: int = PORT,
        worker_count: int = WORKER_COUNT,
        request_queue_size: int = REQUEST_QUEUE_SIZE,
        *,
        keepalive_timeout_secs: float = KEEPALIVE_TIMEOUT_SECS,
        response_timeout_secs: float = RESPONSE_TIMEOUT_SECS,
        log_format: str = LOG_FORMAT,
        on_ready: Callable[[], None] | None = None,
    ) -> None:
        self.listener = listener
        self.host = host
        self.port = port
        self.worker_count = worker_count
        self.request_queue_size = request_queue_size
        self.keepalive_timeout_secs = keepalive_timeout_secs
        self.response_timeout_secs = response_timeout_secs
        self.log_format = log_format
        self.on_ready = on_ready

        self._server_socket: socket.socket | None = None
        self._pool: ThreadPool | None = None
        self._ready = threading.Event()
        self._running = False

    def bind(self) -> None:
        """Open the listening socket. ``OSError`` (e.g. port in use) reaches the caller."""
        server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            server_socket.bind((self.host, self.port))
            server_socket.listen(128)
            server_socket.settimeout(0.2)
        except OSError:
            server_socket.close()
            raise
        self.port = server_socket.getsockname()[1]
        self._server_socket = server_socket

    def start(self) -> None:
        """Bind if needed, then serve connections until ``stop()`` is called."""
        if self._server_socket is None:
            self.bind()
        server_socket = self._server_socket
        self._pool = ThreadPool(
            worker_count=self.worker_count,
            queue_size=self.request_queue_size,
            handler=self._handle_client,
        )
        self._pool.start()
        self._running = True
        self._ready.set()
        logger.info("Listening on http://%s:%s", self.host, self.port)
        if self.on_ready is not None:
            self.on_ready()

        try:
            while self._running:
                try:
                    client_socket, address = server_socket.accept()
                except socket.timeout:
                    continue
                except OSError:
                    break

                if self._pool is None or not self._pool.submit(client_socket, address):
                    self._send_status_and_close(client_socket, address, 503)
        finally:
            self._running = False
            server_socket.close()
            if self._pool is not None:
                self._pool.shutdown()
                self._pool = None

    def wait_ready(self, timeout: float | None = None) -> bool:
        return self._ready.wait(timeout)

    def stop(self, *, graceful: bool = False) -> None:
        self._running = False
        if self._server_socket is not None:
            self._server_socket.close()
            self._server_socket = None
        if self._pool is not None:
            self._pool.shutdown(graceful=graceful, timeout=self.response_timeout_secs if graceful else 1.0)
            self._pool = None

    def _handle_client(self, client_socket: socket.socket, address: tuple[str, int]) -> None:
        with client_socket:
            client_socket.settimeout(min(SOCKET_TIMEOUT_SECS, self.keepalive_timeout_secs))
            request_count = 0
            carry = b""
            while request_count < MAX_KEEPALIVE_REQUESTS:
                started_at = time.perf_counter()
                try:
                    raw_request, carry = read_http_request_message(client_socket, carry)
                except HTTPReadError as exc:
                    logger.debug("Read error from %s: %s", address[0], exc)
                    self._send_status(client_socket, address, exc.status_code, started_at)
                    return
                except OSError:
                    return

                if not raw_request:
                    return

                try:
                    request = HTTPRequest.from_bytes(raw_request)
                except HTTPRequestParseError as exc:
                    logger.debug("Rejected request from %s: %s", address[0], exc)
                    self._send_status(client_socket, address, exc.status_code, started_at, bytes_in=len(raw_request))
                    return

                request_count += 1
                should_close = (not request.keep_alive) or request_count >= MAX_KEEPALIVE_REQUESTS
                response = ServerResponse(
                    client_socket.sendall,
                    method=request.method,
                    http_version=request.http_version,
                )
                response.set_header("Connection", "close" if should_close else "keep-alive")

                if not self._run_listener(request, response, address):
                    return

                self._log_request(
                    address=address,
                    method=request.method,
                    path=request.url,
                    status_code=response.status_code,
                    bytes_in=len(raw_request),
                    bytes_out=response.bytes_sent,
                    started_at=started_at,
                    request_id=request_count,
                )
                connection_header = (response.get_header("Connection") or "").lower()
                if should_close or connection_header == "close":
                    return

    def _run_listener(
        self,
        request: HTTPRequest,
        response: ServerResponse,
        address: tuple[str, int],
    ) -> bool:
        """Run the listener and wait for the response; False means close the connection."""
        try:
            self.listener(request, response)
        except OSError as exc:
            logger.debug("Client %s went away during %s %s: %s", address[0], request.method, request.url, exc)
            return False
        except Exception:
            logger.exception("Unhandled error while dispatching %s %s", request.method, request.url)
            self._answer_if_pending(response, 500)
            return False

        # Handlers may finish the response later from another thread.
        if not response.wait_finished(self.response_timeout_secs):
            logger.warning(
                "Response for %s %s not finished after %ss; closing connection",
                request.method,
                request.url,
                self.response_timeout_secs,
            )
            self._answer_if_pending(response, 503)
            return False
        return True

    def _answer_if_pending(self, response: ServerResponse, status_code: int) -> None:
        if response.headers_sent:
            return
        try:
            response.write_head(status_code, {"Connection": "close"})
            response.end(REASON_PHRASES.get(status_code, ""))
        except OSError:
            pass

    def _send_status(
        self,
        client_socket: socket.socket,
        address: tuple[str, int],
        status_code: int,
        started_at: float,
        *,
        bytes_in: int = 0,
    ) -> None:
        response = ServerResponse(client_socket.sendall)
        try:
            response.write_head(status_code, {"Connection": "close"})
            response.end(REASON_PHRASES.get(status_code, "Bad Request"))
        except OSError:
            return
        self._log_request(
            address=address,
            method="-",
            path="-",
            status_code=status_code,
            bytes_in=bytes_in,
            bytes_out=response.bytes_sent,
            started_at=started_at,
            request_id=0,
        )

    def _send_status_and_close(
        self,
        client_socket: socket.socket,
        address: tuple[str, int],
        status_code: int,
    ) -> None:
        with client_socket:
            self._send_status(client_socket, address, status_code, time.perf_counter())

    def _log_request(
        self,
        *,
        address: tuple[str, int],
        method: str,
        path: str,
        status_code: int,
        bytes_in: int,
        bytes_out: int,
        started_at: float,
        request_id: int,
    ) -> None:
        duration_ms = (time.perf_counter() - started_at) * 1000
        if self.log_format == "json":
            event = {
                "client": address[0],
                "method": method,
                "path": path,
                "status": status_code,
                "request_id": request_id,
                "bytes_in": bytes_in,
                "bytes_out": bytes_out,
                "latency_ms": round(duration_ms, 3),
            }
            logger.info(json.dumps(event, sort_keys=True))
            return

        logger.info(
            "client=%s method=%s path=%s status=%s request_id=%s bytes_in=%s bytes_out=%s duration_ms=%.2f",
            address[0],
            method,
            path,
            status_code,
            request_id,
            bytes_in,
            bytes_out,
            duration_ms,
        )


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve the example dispatcher application")
    parser.add_argument("--host", default=HOST)
    parser.add_argument("--port", type=int, default=PORT)
    parser.add_argument("--workers", type=int, default=WORKER_COUNT)
    parser.add_argument("--log-format", choices=["plain", "json"], default=LOG_FORMAT)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    from handlers.example_handlers import build_example_app

    args = _parse_args(argv)
    logging.basicConfig(level=logging.INFO)
    server = HTTPServer(
        build_example_app(),
        host=args.host,
        port=args.port,
        worker_count=args.workers,
        log_format=args.log_format,
    )
    try:
        server.start()
    except KeyboardInterrupt:
        server.stop()


if __name__ == "__main__":
    main()
