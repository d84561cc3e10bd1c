"""Example application served by ``python server.py``."""

import itertools

from config import SERVER_NAME
from dispatcher import Continuation, Dispatcher, HTTPError
from request import HTTPRequest
from response import ServerResponse

_request_ids = itertools.count(1)


def stamp_headers(request: HTTPRequest, response: ServerResponse, next: Continuation) -> None:
    _ = request
    response.set_header("X-Request-Id", str(_next_request_id()))
    response.set_header("X-Powered-By", SERVER_NAME)
    next()


def home(request: HTTPRequest, response: ServerResponse, next: Continuation) -> None:
    _ = (request, next)
    response.end("Hello World")


def hello(request: HTTPRequest, response: ServerResponse, next: Continuation) -> None:
    _ = next
    response.end(f"Hello, {request.params['name']}!")


def echo(request: HTTPRequest, response: ServerResponse, next: Continuation) -> None:
    _ = next
    response.set_header("Content-Type", request.header("content-type", "application/octet-stream"))
    response.end(request.body)


def teapot(request: HTTPRequest, response: ServerResponse, next: Continuation) -> None:
    _ = (request, response)
    next(HTTPError(418))


def ping(request: HTTPRequest, response: ServerResponse, next: Continuation) -> None:
    _ = next
    response.end("" if request.method == "HEAD" else "pong")


def _next_request_id() -> int:
    return next(_request_ids)


def build_example_app() -> Dispatcher:
    app = Dispatcher()
    app.use(stamp_headers)
    app.get("/", home)
    app.get("/hello/:name", hello)
    app.post("/echo", echo)
    app.get("/teapot", teapot)
    app.all("/ping", ping)
    return app
