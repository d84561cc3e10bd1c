"""Unit tests for named-parameter path matching."""

import pytest

from path_matcher import compile_pattern, match_path


def test_named_parameter_binds_segment() -> None:
    matches = match_path("/items/42")

    assert matches("/items/:id") is True
    assert matches.params == {"id": "42"}


def test_static_segments_must_match_literally() -> None:
    matches = match_path("/items/42")

    assert matches("/things/:id") is False
    assert matches("/items") is False
    assert matches("/items/:id/edit") is False
    assert matches.params == {}


def test_multiple_parameters_bind_in_order() -> None:
    matches = match_path("/users/ada/posts/7")

    assert matches("/users/:user/posts/:post")
    assert matches.params == {"user": "ada", "post": "7"}


def test_parameter_never_spans_slashes_or_matches_empty() -> None:
    assert not match_path("/files/a/b")("/files/:name")
    assert not match_path("/files/")("/files/:name")


def test_query_string_and_trailing_slash_are_ignored() -> None:
    matches = match_path("/items/42/?full=1")

    assert matches("/items/:id")
    assert matches.params == {"id": "42"}
    assert match_path("/about")("/about/")
    assert match_path("/?page=2")("/")


def test_bound_values_are_percent_decoded() -> None:
    matches = match_path("/tags/hello%20world")

    assert matches("/tags/:tag")
    assert matches.params == {"tag": "hello world"}


def test_literal_segments_escape_regex_characters() -> None:
    assert match_path("/a.b")("/a.b")
    assert not match_path("/axb")("/a.b")


def test_params_keep_last_successful_match() -> None:
    matches = match_path("/items/42")

    assert matches("/items/:id")
    assert not matches("/users/:user")
    assert matches.params == {"id": "42"}


def test_invalid_patterns_raise_value_error() -> None:
    with pytest.raises(ValueError, match="must start with '/'"):
        compile_pattern("items/:id")
    with pytest.raises(ValueError, match="used multiple times"):
        compile_pattern("/a/:id/b/:id")
    with pytest.raises(ValueError, match="Invalid parameter name"):
        compile_pattern("/a/:")


def test_compiled_patterns_are_cached() -> None:
    first = compile_pattern("/cache/:key")
    second = compile_pattern("/cache/:key")

    assert first is second
    assert first[1] == ("key",)
