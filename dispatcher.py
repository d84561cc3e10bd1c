"""Ordered handler stack with continuation-passing dispatch."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

from config import HOST, STRICT_CONTINUATIONS
from path_matcher import compile_pattern, match_path
from request import HTTPRequest
from response import REASON_PHRASES, ServerResponse
from server import HTTPServer

logger = logging.getLogger(__name__)

Continuation = Callable[..., None]
Handler = Callable[[HTTPRequest, ServerResponse, Continuation], None]
ErrorRoute = Callable[[Any, HTTPRequest, ServerResponse], None]


class HTTPError(Exception):
    """Error passed to a continuation to answer with a specific status code."""

    def __init__(self, status_code: int, message: str = "") -> None:
        super().__init__(message or REASON_PHRASES.get(status_code, "HTTP error"))
        self.status_code = status_code


class ContinuationError(RuntimeError):
    """Raised in strict mode when a continuation is misused."""


def error_status(error: Any) -> int:
    """Status code carried by an error object, or 500."""
    for attribute in ("status_code", "status"):
        value = getattr(error, attribute, None)
        if isinstance(value, int) and 100 <= value <= 599:
            return value
    return 500


def default_error_route(error: Any, request: HTTPRequest, response: ServerResponse) -> None:
    status_code = error_status(error)
    if status_code >= 500:
        logger.error("Error reached top of dispatch for %s %s: %r", request.method, request.url, error)
    else:
        logger.info("Dispatch error %s for %s %s: %s", status_code, request.method, request.url, error)

    if not response.headers_sent:
        response.status_code = status_code
        response.end()


def bind_route(pattern: str, verb: str | None, handler: Handler) -> Handler:
    """Wrap ``handler`` so it only runs when the method and path pattern match.

    ``verb=None`` accepts every method. The method is checked before the
    matcher is consulted; any mismatch falls through with ``next()``. On a
    match the bound parameters are stored on ``request.params``.
    """
    compile_pattern(pattern)

    def route(request: HTTPRequest, response: ServerResponse, next: Continuation) -> None:
        if verb is not None and request.method != verb:
            next()
            return

        matches = match_path(request.url)
        if not matches(pattern):
            next()
            return

        request.params = matches.params
        handler(request, response, next)

    route.__qualname__ = f"route[{verb or '*'} {pattern}]"
    return route


class _Step:
    """One handler invocation; counts ``next()`` calls made before it returned."""

    __slots__ = ("_lock", "_returned", "_advances")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._returned = False
        self._advances = 0

    def defer(self) -> bool:
        """Record an advance for the dispatch loop; False once the handler returned."""
        with self._lock:
            if self._returned:
                return False
            self._advances += 1
            return True

    def close(self) -> int:
        with self._lock:
            self._returned = True
            return self._advances


class Dispatcher:
    """Runs registered handlers in order until one responds or errors.

    Each handler receives ``(request, response, next)``. Calling ``next()``
    moves on to the following entry, ``next(error)`` short-circuits to the
    outer continuation (nested dispatch) or to ``error_route``. Exceptions
    raised by handlers are not caught here.
    """

    def __init__(self, *, strict: bool = STRICT_CONTINUATIONS) -> None:
        self.stack: list[Handler] = []
        self.error_route: ErrorRoute = default_error_route
        self.strict = strict

    def __call__(
        self,
        request: HTTPRequest,
        response: ServerResponse,
        next: Continuation | None = None,
    ) -> None:
        self.handle(request, response, next)

    def handle(
        self,
        request: HTTPRequest,
        response: ServerResponse,
        next: Continuation | None = None,
    ) -> None:
        cursor = 0
        # Resumptions owed by continuations that were called more than once.
        backlog = 0

        def exhaust() -> None:
            if next is not None:
                next()
                return

            if response.headers_sent:
                logger.debug("Stack exhausted after %s %s was answered", request.method, request.url)
                response.end()
                return
            response.write_head(404)
            response.end("" if request.method == "HEAD" else "Not Found")

        def run() -> None:
            nonlocal cursor, backlog
            while True:
                # The live stack is read on every step, so late registrations are seen.
                if cursor < len(self.stack):
                    handler = self.stack[cursor]
                    cursor += 1
                    step = _Step()
                    handler(request, response, self._continuation(request, response, next, run, step))
                    advances = step.close()
                    if advances:
                        backlog += advances - 1
                        continue
                else:
                    exhaust()

                if not backlog:
                    return
                backlog -= 1

        run()

    def _continuation(
        self,
        request: HTTPRequest,
        response: ServerResponse,
        outer: Continuation | None,
        run: Callable[[], None],
        step: _Step,
    ) -> Continuation:
        called = False

        def proceed(error: Any = None) -> None:
            nonlocal called
            if self.strict:
                if called:
                    raise ContinuationError(
                        f"Continuation for {request.method} {request.url} called more than once"
                    )
                if not error and response.finished:
                    raise ContinuationError(
                        f"Continuation for {request.method} {request.url} called after the response was sent"
                    )
            called = True

            if error and outer is not None:
                outer(error)
            elif error:
                self.error_route(error, request, response)
            elif not step.defer():
                # The handler already returned, so resume on this call stack.
                run()

        return proceed

    def use(self, fn: Handler) -> Handler:
        self.stack.append(fn)
        return fn

    def all(self, path: str, fn: Handler | None = None) -> Any:
        if fn is None:
            return lambda handler: self.all(path, handler)
        self.stack.append(bind_route(path, None, fn))
        return fn

    def verb(self, verb: str, path: str, fn: Handler | None = None) -> Any:
        method = verb.upper().strip()
        if not method:
            raise ValueError("verb cannot be empty")
        if fn is None:
            return lambda handler: self.verb(method, path, handler)
        self.stack.append(bind_route(path, method, fn))
        return fn

    def get(self, path: str, fn: Handler | None = None) -> Any:
        return self.verb("GET", path, fn)

    def put(self, path: str, fn: Handler | None = None) -> Any:
        return self.verb("PUT", path, fn)

    def post(self, path: str, fn: Handler | None = None) -> Any:
        return self.verb("POST", path, fn)

    def delete(self, path: str, fn: Handler | None = None) -> Any:
        return self.verb("DELETE", path, fn)

    def options(self, path: str, fn: Handler | None = None) -> Any:
        return self.verb("OPTIONS", path, fn)

    def head(self, path: str, fn: Handler | None = None) -> Any:
        return self.verb("HEAD", path, fn)

    def patch(self, path: str, fn: Handler | None = None) -> Any:
        return self.verb("PATCH", path, fn)

    def listen(
        self,
        port: int,
        callback: Callable[[], None] | None = None,
        *,
        host: str = HOST,
    ) -> HTTPServer:
        """Serve this dispatcher on ``port`` from a background thread.

        ``callback`` runs once the socket is listening. Binding happens before
        this returns, so a port already in use raises ``OSError`` here and the
        callback never runs. The returned server exposes the bound ``port``
        and ``stop()``.
        """
        server = HTTPServer(self, host=host, port=port, on_ready=callback)
        server.bind()
        thread = threading.Thread(target=server.start, name=f"http-listen-{port}", daemon=True)
        thread.start()
        return server


def create_server(*, strict: bool = STRICT_CONTINUATIONS) -> Dispatcher:
    return Dispatcher(strict=strict)
