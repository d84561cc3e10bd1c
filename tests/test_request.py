"""Unit tests for HTTP request parsing."""

import pytest

from request import HTTPRequest, HTTPRequestParseError


def test_parse_get_with_query_params() -> None:
    raw = (
        b"GET /search?q=hello&q=world&lang=en HTTP/1.1\r\n"
        b"Host: localhost\r\n"
        b"User-Agent: pytest\r\n"
        b"\r\n"
    )

    request = HTTPRequest.from_bytes(raw)

    assert request.method == "GET"
    assert request.url == "/search?q=hello&q=world&lang=en"
    assert request.path == "/search"
    assert request.http_version == "HTTP/1.1"
    assert request.header("Host") == "localhost"
    assert request.query_params == {"q": ["hello", "world"], "lang": ["en"]}
    assert request.body == b""
    assert request.params == {}
    assert request.keep_alive is True


def test_parse_post_keeps_raw_body() -> None:
    raw = (
        b"POST /submit HTTP/1.1\r\n"
        b"Host: localhost\r\n"
        b"Content-Length: 9\r\n"
        b"Connection: close\r\n"
        b"\r\n"
        b"name=test"
    )

    request = HTTPRequest.from_bytes(raw)

    assert request.method == "POST"
    assert request.headers["content-length"] == "9"
    assert request.body == b"name=test"
    assert request.keep_alive is False


def test_method_is_upper_cased() -> None:
    request = HTTPRequest.from_bytes(b"get / HTTP/1.0\r\n\r\n")

    assert request.method == "GET"
    assert request.keep_alive is False


def test_build_creates_request_without_wire_format() -> None:
    request = HTTPRequest.build("delete", "/items/3?soft=1", headers={"X-Token": "t"})

    assert request.method == "DELETE"
    assert request.path == "/items/3"
    assert request.query_params == {"soft": ["1"]}
    assert request.header("x-token") == "t"


def test_parse_invalid_request_line_raises_value_error() -> None:
    raw = b"BROKEN-LINE\r\nHost: localhost\r\n\r\n"

    with pytest.raises(ValueError, match="Invalid request line"):
        HTTPRequest.from_bytes(raw)


def test_parse_invalid_content_length_raises_value_error() -> None:
    raw = (
        b"POST /submit HTTP/1.1\r\n"
        b"Host: localhost\r\n"
        b"Content-Length: abc\r\n"
        b"\r\n"
        b"name=test"
    )

    with pytest.raises(ValueError, match="Invalid Content-Length"):
        HTTPRequest.from_bytes(raw)


@pytest.mark.parametrize(
    ("raw", "status_code"),
    [
        (b"BREW /pot HTTP/1.1\r\nHost: localhost\r\n\r\n", 501),
        (b"GET / HTTP/2.0\r\nHost: localhost\r\n\r\n", 505),
        (b"GET / HTTP/1.1\r\n\r\n", 400),
        (
            b"POST / HTTP/1.1\r\nHost: localhost\r\nTransfer-Encoding: chunked\r\n\r\n0\r\n\r\n",
            501,
        ),
    ],
)
def test_parse_errors_carry_status_codes(raw: bytes, status_code: int) -> None:
    with pytest.raises(HTTPRequestParseError) as exc_info:
        HTTPRequest.from_bytes(raw)

    assert exc_info.value.status_code == status_code
