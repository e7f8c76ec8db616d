import re
from typing import Tuple, Union

from simple_proxy.errors import InvalidInputError

# Origin-form request path: leading slash, no whitespace, controls or fragment
_PATH_PATTERN = re.compile(r"^/[^\x00-\x20\x7f#]*$")


def _as_text(value: Union[str, bytes], what: str) -> str:
    if isinstance(value, bytes):
        try:
            return value.decode("ascii")
        except UnicodeDecodeError as e:
            raise InvalidInputError(f"Inbound {what} is not ASCII: {value!r}") from e
    return value


def split_target(raw_path: Union[str, bytes]) -> Tuple[str, str]:
    """
    Split an inbound request target into path and query, exactly as received.

    ASGI servers normally hand over the path without its query string; a
    target that still carries one is split at the first ``?``.
    """
    target = _as_text(raw_path, "path")
    path, _, query = target.partition("?")
    if not _PATH_PATTERN.match(path):
        raise InvalidInputError(f"Cannot extract a path from inbound URI {target!r}")
    return path, query


def request_target(raw_path: Union[str, bytes], query_string: Union[str, bytes]) -> str:
    """The origin-form target (path plus optional query) sent on the upstream request line."""
    path, embedded_query = split_target(raw_path)
    query = _as_text(query_string or "", "query string") or embedded_query
    return f"{path}?{query}" if query else path


def build_upstream_uri(
    raw_path: Union[str, bytes],
    query_string: Union[str, bytes],
    host: str,
    port: int,
    scheme: str = "https",
) -> str:
    """
    Construct the upstream URI for an inbound request.

    Path and query are carried over byte-for-byte; nothing is decoded,
    re-encoded or normalized.
    """
    return f"{scheme}://{host}:{port}{request_target(raw_path, query_string)}"
