"""
Header and cookie propagation for outbound requests.

Headers are handled as ordered lists of ``(name, value)`` pairs so duplicate
names survive the trip to the upstream server as separate entries.
"""

from typing import Iterable, List, NamedTuple, Tuple

HeaderList = List[Tuple[str, str]]

HOST_HEADER = "host"
COOKIE_HEADER = "cookie"
OUTBOUND_COOKIE_HEADER = "Cookie"


class InboundCookie(NamedTuple):
    name: str
    value: str

    def serialize(self) -> str:
        if not self.name:
            return self.value
        return f"{self.name}={self.value}"


def parse_cookies(headers: Iterable[Tuple[str, str]]) -> List[InboundCookie]:
    """
    Collect the cookies carried by every ``Cookie`` header, in order.

    Parsing is lenient like browsers are: chunks are split on ``;`` and the
    first ``=`` separates name from value. Duplicate names are kept.
    """
    cookies = []
    for name, value in headers:
        if name.lower() != COOKIE_HEADER:
            continue
        for chunk in value.split(";"):
            if "=" in chunk:
                key, val = chunk.split("=", 1)
            else:
                key, val = "", chunk
            key, val = key.strip(), val.strip()
            if key or val:
                cookies.append(InboundCookie(key, val))
    return cookies


def propagate_headers(
    inbound_headers: Iterable[Tuple[str, str]], upstream_authority: str
) -> HeaderList:
    """
    Copy inbound headers verbatim, pointing Host at the upstream server.

    Cookie lines are left out here; ``propagate_cookies`` re-emits them one
    cookie per header entry.
    """
    headers = []
    for name, value in inbound_headers:
        name_lower = name.lower()
        if name_lower == COOKIE_HEADER:
            continue
        if name_lower == HOST_HEADER:
            value = upstream_authority
        headers.append((name, value))
    return headers


def propagate_cookies(cookies: Iterable[InboundCookie]) -> HeaderList:
    return [(OUTBOUND_COOKIE_HEADER, cookie.serialize()) for cookie in cookies or ()]


def build_outbound_headers(
    inbound_headers: Iterable[Tuple[str, str]], upstream_authority: str
) -> HeaderList:
    inbound_headers = list(inbound_headers)
    headers = propagate_headers(inbound_headers, upstream_authority)
    headers.extend(propagate_cookies(parse_cookies(inbound_headers)))
    return headers


def declares_body(headers: Iterable[Tuple[str, str]]) -> bool:
    """True when the request framing announces a body (RFC 9112 section 6.1)."""
    return any(
        name.lower() in ("content-length", "transfer-encoding") for name, _ in headers
    )
