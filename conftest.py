import httpx
import pytest
from starlette.requests import Request

from simple_proxy.config import ProxyConfig


@pytest.fixture
def proxy_config():
    """Config pointing at the upstream used throughout the tests."""
    return ProxyConfig(
        local_port=8080, upstream_host="api.internal", upstream_port=9443
    )


@pytest.fixture
def verbose_config(proxy_config):
    return ProxyConfig(
        local_port=proxy_config.local_port,
        upstream_host=proxy_config.upstream_host,
        upstream_port=proxy_config.upstream_port,
        verbose=True,
    )


@pytest.fixture
def make_request():
    """Build a real Starlette Request from raw ASGI pieces."""

    def _make_request(
        method="GET", path="/", query=b"", headers=None, body=b"", raw_path=None
    ):
        if headers is None:
            headers = [("host", "localhost:8080")]
        scope = {
            "type": "http",
            "http_version": "1.1",
            "method": method,
            "scheme": "http",
            "path": path,
            "raw_path": raw_path if raw_path is not None else path.encode("ascii"),
            "root_path": "",
            "query_string": query,
            "headers": [
                (name.encode("latin-1"), value.encode("latin-1"))
                for name, value in headers
            ],
            "server": ("localhost", 8080),
            "client": ("127.0.0.1", 50000),
        }
        messages = [{"type": "http.request", "body": body, "more_body": False}]

        async def receive():
            if messages:
                return messages.pop(0)
            return {"type": "http.disconnect"}

        return Request(scope, receive)

    return _make_request


@pytest.fixture
def upstream_response():
    """
    Build an httpx Response the way a streamed upstream reply looks.

    Passing ``stream=`` keeps the body unread, so ``aiter_raw`` behaves as it
    does against a real server.
    """

    def _upstream_response(status_code=200, body=b"", headers=None, request=None):
        return httpx.Response(
            status_code,
            headers=headers or [],
            stream=httpx.ByteStream(body),
            request=request,
        )

    return _upstream_response
