"""Unit tests for request framing on raw socket bytes."""

import socket

import pytest

from config import MAX_BODY_BYTES, MAX_HEADER_BYTES
from socket_handler import (
    HeaderTooLargeError,
    MalformedRequestError,
    PayloadTooLargeError,
    extract_http_request_message,
    read_http_request_message,
)


def test_extract_returns_none_until_head_complete() -> None:
    assert extract_http_request_message(b"GET / HTTP/1.1\r\nHost: x\r\n") is None


def test_extract_waits_for_declared_body() -> None:
    partial = b"POST / HTTP/1.1\r\nHost: x\r\nContent-Length: 5\r\n\r\nab"

    assert extract_http_request_message(partial) is None


def test_extract_splits_pipelined_requests() -> None:
    first = b"GET /a HTTP/1.1\r\nHost: x\r\n\r\n"
    second = b"GET /b HTTP/1.1\r\nHost: x\r\n\r\n"

    extracted = extract_http_request_message(first + second)

    assert extracted == (first, second)


def test_extract_rejects_oversized_messages() -> None:
    with pytest.raises(HeaderTooLargeError):
        extract_http_request_message(b"GET / HTTP/1.1\r\n" + b"a" * (MAX_HEADER_BYTES + 1))

    big_body_head = f"POST / HTTP/1.1\r\nContent-Length: {MAX_BODY_BYTES + 1}\r\n\r\n".encode("ascii")
    with pytest.raises(PayloadTooLargeError):
        extract_http_request_message(big_body_head)


def test_extract_rejects_bad_content_length() -> None:
    with pytest.raises(MalformedRequestError):
        extract_http_request_message(b"POST / HTTP/1.1\r\nContent-Length: -1\r\n\r\n")


def test_read_request_across_multiple_recv_calls() -> None:
    client, server = socket.socketpair()
    with client, server:
        client.sendall(b"POST /echo HTTP/1.1\r\nHost: x\r\nContent-Length: 4\r\n\r\nab")
        client.sendall(b"cdGET")

        raw_request, leftover = read_http_request_message(server)

    assert raw_request.endswith(b"\r\n\r\nabcd")
    assert leftover == b"GET"


def test_read_returns_empty_on_clean_close() -> None:
    client, server = socket.socketpair()
    with server:
        client.close()

        assert read_http_request_message(server) == (b"", b"")


def test_read_raises_on_truncated_request() -> None:
    client, server = socket.socketpair()
    with server:
        client.sendall(b"GET / HTTP/1.1\r\nHost")
        client.close()

        with pytest.raises(MalformedRequestError):
            read_http_request_message(server)
