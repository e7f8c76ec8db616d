from enum import Enum


class HttpMethod(str, Enum):
    """Request methods the proxy forwards. Forwarding is identical for all of them."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"
    TRACE = "TRACE"
