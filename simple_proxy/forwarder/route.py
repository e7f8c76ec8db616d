from fastapi import APIRouter, Depends, Request

from simple_proxy.forwarder.methods import HttpMethod
from simple_proxy.forwarder.service import Forwarder

router = APIRouter()


def get_forwarder(request: Request) -> Forwarder:
    return request.app.state.forwarder


@router.api_route("/{path:path}", methods=[m.value for m in HttpMethod])
async def proxy_all(
    request: Request, path: str, forwarder: Forwarder = Depends(get_forwarder)
):
    """Catch-all route that forwards every request to the upstream server."""
    return await forwarder.forward(HttpMethod(request.method), request)
