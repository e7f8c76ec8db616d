"""Errors raised while forwarding a request to the upstream server."""


class ProxyError(Exception):
    """Base class for forwarding failures."""

    status_code = 500


class InvalidInputError(ProxyError):
    """The inbound request target cannot be rewritten to an upstream URI."""

    status_code = 400


class UpstreamTransportError(ProxyError):
    """Connecting to, or talking to, the upstream server failed."""

    status_code = 502

    def __init__(self, message: str, target_url: str = "", timeout: bool = False):
        super().__init__(message)
        self.target_url = target_url
        self.timeout = timeout
        if timeout:
            self.status_code = 504


class UpstreamMetadataError(ProxyError):
    """The upstream response headers could not be read."""

    status_code = 502
