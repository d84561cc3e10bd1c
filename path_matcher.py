"""Named-parameter path patterns such as ``/items/:id``.

A pattern is split on ``/``. A segment starting with ``:`` binds exactly one
non-empty segment of the concrete path under that name; every other segment
must match literally. Query strings are ignored, one trailing slash on the
concrete path is tolerated and bound values are percent-decoded.

Usage mirrors a predicate with a side-channel result::

    matches = match_path("/items/42?full=1")
    if matches("/items/:id"):
        matches.params  # {"id": "42"}
"""

import functools
import re
from urllib.parse import unquote, urlsplit

PARAM_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@functools.lru_cache(maxsize=512)
def compile_pattern(pattern: str) -> tuple[re.Pattern[str], tuple[str, ...]]:
    """Compile a path pattern into a regex and its ordered parameter names."""
    if not pattern.startswith("/"):
        raise ValueError(f"path pattern must start with '/': {pattern!r}")

    if len(pattern) > 1 and pattern.endswith("/"):
        pattern = pattern[:-1]
    segments = pattern.split("/")[1:] if pattern != "/" else []

    names: list[str] = []
    regex_parts: list[str] = []
    for segment in segments:
        if segment.startswith(":"):
            name = segment[1:]
            if PARAM_NAME_RE.match(name) is None:
                raise ValueError(f"Invalid parameter name {name!r} in {pattern!r}")
            if name in names:
                raise ValueError(f"Parameter {name!r} used multiple times in {pattern!r}")
            names.append(name)
            regex_parts.append(rf"(?P<{name}>[^/]+)")
        else:
            regex_parts.append(re.escape(segment))

    body = "".join(f"/{part}" for part in regex_parts)
    return re.compile(f"^{body}/?$"), tuple(names)


class PathMatch:
    """Match one concrete path against any number of patterns."""

    def __init__(self, concrete_path: str) -> None:
        self.path = urlsplit(concrete_path).path or "/"
        self.params: dict[str, str] = {}

    def __call__(self, pattern: str) -> bool:
        regex, _names = compile_pattern(pattern)
        match = regex.match(self.path)
        if match is None:
            return False
        self.params = {name: unquote(value) for name, value in match.groupdict().items()}
        return True

    def __repr__(self) -> str:
        return f"PathMatch({self.path!r}, params={self.params!r})"


def match_path(concrete_path: str) -> PathMatch:
    return PathMatch(concrete_path)
