import logging
from typing import AsyncIterator, Awaitable, Callable, Optional

import anyio
import httpx
from fastapi import Request
from fastapi.responses import StreamingResponse
from opentelemetry import trace
from starlette.background import BackgroundTask

from simple_proxy.config import ProxyConfig
from simple_proxy.errors import UpstreamMetadataError, UpstreamTransportError
from simple_proxy.forwarder.body import BodyTransfer, select_body_transfer
from simple_proxy.forwarder.headers import (
    HeaderList,
    build_outbound_headers,
    parse_cookies,
)
from simple_proxy.forwarder.methods import HttpMethod
from simple_proxy.forwarder.uri import build_upstream_uri, request_target
from simple_proxy.tls import build_ssl_context
from simple_proxy.utils import header_pairs_to_bytes, header_pairs_to_str
from simple_proxy.utils.exception_logging import (
    format_exception_message,
    log_exception_with_details,
)

tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")


def read_upstream_headers(upstream: httpx.Response) -> HeaderList:
    """Upstream header pairs as received, decoded latin-1 so the bytes survive."""
    try:
        return header_pairs_to_str(upstream.headers.raw)
    except (ValueError, LookupError) as e:
        raise UpstreamMetadataError(f"Unreadable upstream response headers: {e}") from e


async def release(
    upstream: Optional[httpx.Response], client: Optional[httpx.AsyncClient]
) -> None:
    # Shielded so a cancelled request still closes its connection
    with anyio.CancelScope(shield=True):
        if upstream is not None:
            await upstream.aclose()
        if client is not None:
            await client.aclose()


class Forwarder:
    """
    Forwards every inbound request to the single configured upstream server.

    The forwarder keeps no per-request state. Each call builds its own
    outbound request and HTTP client, and everything it opens is closed
    once the response body has been relayed or the call has failed.

    The ``proxy_request`` span covers the whole exchange: it ends when the
    body relay finishes, or when the call fails before a response exists.
    """

    def __init__(
        self,
        config: ProxyConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.transport = transport
        self.verify = build_ssl_context(config.keystore, config.passphrase)

    def _client(self) -> httpx.AsyncClient:
        kwargs = {}
        if self.config.timeout is not None:
            kwargs["timeout"] = httpx.Timeout(self.config.timeout)
        return httpx.AsyncClient(
            verify=self.verify,
            follow_redirects=False,
            transport=self.transport,
            **kwargs,
        )

    @staticmethod
    def _raw_target(request: Request):
        raw_path = request.scope.get("raw_path") or request.scope["path"].encode("utf-8")
        return raw_path, request.scope.get("query_string", b"")

    def upstream_uri(self, request: Request) -> str:
        return build_upstream_uri(
            *self._raw_target(request),
            self.config.upstream_host,
            self.config.upstream_port,
            scheme=self.config.scheme,
        )

    async def forward(self, method: HttpMethod, request: Request) -> StreamingResponse:
        # Started manually; the body relay outlives this call
        span = tracer.start_span("proxy_request")
        client = None
        upstream = None
        relayed = False
        try:
            target_url = self.upstream_uri(request)
            target = request_target(*self._raw_target(request))
            span.set_attribute("proxy.target_url", target_url)
            span.set_attribute("proxy.method", method.value)
            span.set_attribute("proxy.verbose", self.config.verbose)

            logger.info(f"Proxying from {request.url.path} to {target_url}")

            # str form for matching and logging only; bytes go on the wire
            inbound_headers = header_pairs_to_str(request.headers.raw)
            cookies = parse_cookies(inbound_headers)
            transfer = select_body_transfer(self.config.verbose)

            content = await transfer.request_content(request, inbound_headers, cookies)
            outbound = httpx.Request(
                method.value,
                target_url,
                headers=header_pairs_to_bytes(
                    build_outbound_headers(
                        inbound_headers, self.config.upstream_authority
                    )
                ),
                content=content,
                # Sent as-is on the request line; httpx would normalize dot segments
                extensions={"target": target.encode("ascii")},
            )
            transfer.outbound_built(outbound)

            client = self._client()
            try:
                upstream = await client.send(outbound, stream=True)
            except httpx.TransportError as e:
                span.set_attribute("proxy.error", type(e).__name__)
                log_exception_with_details(
                    logger, f"[Proxy] {method.value} {target_url} failed.", e
                )
                raise UpstreamTransportError(
                    format_exception_message(e) or type(e).__name__,
                    target_url=target_url,
                    timeout=isinstance(e, httpx.TimeoutException),
                ) from e

            span.set_attribute("proxy.status_code", upstream.status_code)
            response = self._relay(upstream, client, transfer, target_url, span)
            relayed = True
            return response
        finally:
            if not relayed:
                try:
                    await release(upstream, client)
                finally:
                    span.end()

    def _relay(
        self,
        upstream: httpx.Response,
        client: httpx.AsyncClient,
        transfer: BodyTransfer,
        target_url: str,
        span: trace.Span,
    ) -> StreamingResponse:
        try:
            headers = read_upstream_headers(upstream)
        except UpstreamMetadataError as e:
            # Degrade to no headers; status and body are still relayed
            logger.warning(f"[Proxy] {e}; relaying {target_url} without headers")
            headers = []

        closed = False

        async def close() -> None:
            # Reached from both the body generator and the background task
            nonlocal closed
            if closed:
                return
            closed = True
            try:
                await release(upstream, client)
            finally:
                span.end()

        response = StreamingResponse(
            self._body(upstream, transfer, headers, close, target_url, span),
            background=BackgroundTask(close),
        )
        for name, value in headers:
            response.headers.append(name, value)
        response.status_code = upstream.status_code
        return response

    async def _body(
        self,
        upstream: httpx.Response,
        transfer: BodyTransfer,
        headers: HeaderList,
        close: Callable[[], Awaitable[None]],
        target_url: str,
        span: trace.Span,
    ) -> AsyncIterator[bytes]:
        try:
            async for chunk in transfer.response_content(upstream, headers):
                yield chunk
        except httpx.TransportError as e:
            span.set_attribute("proxy.error", type(e).__name__)
            log_exception_with_details(
                logger, f"[Proxy] Relaying body from {target_url} failed.", e
            )
        finally:
            await close()
