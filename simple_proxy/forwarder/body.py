"""
Body transfer strategies.

A strategy is picked once per request from the verbose flag. ``StreamCopy``
moves bytes straight through in both directions. ``MaterializeAndLog`` reads
each body fully so it can be written to the log, then sends exactly the same
bytes on.
"""

import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, List, Optional

import httpx
from fastapi import Request

from simple_proxy.forwarder.headers import HeaderList, InboundCookie, declares_body
from simple_proxy.utils import decode_for_log

logger = logging.getLogger("uvicorn.error")

_BLOCK_OPEN = "\n\n\n\n" + "-" * 51 + "\n"
_BLOCK_CLOSE = "\n" + "-" * 57 + "\n\n\n\n"


def format_block(title: str, lines: List[str]) -> str:
    return _BLOCK_OPEN + title + "\n" + "\n".join(lines) + _BLOCK_CLOSE


class BodyTransfer(ABC):
    """Moves request and response bodies between the caller and the upstream."""

    @abstractmethod
    async def request_content(
        self,
        request: Request,
        inbound_headers: HeaderList,
        cookies: List[InboundCookie],
    ) -> Optional[AsyncIterator[bytes]]:
        """Return the outbound request body, or None when the request has none."""

    def outbound_built(self, outbound: httpx.Request) -> None:
        """Called once the outbound request is assembled, before it is sent."""

    @abstractmethod
    def response_content(
        self, upstream: httpx.Response, headers: HeaderList
    ) -> AsyncIterator[bytes]:
        """Yield the upstream body as it should be written to the caller."""


async def _replay(body: bytes) -> AsyncIterator[bytes]:
    yield body


class StreamCopy(BodyTransfer):
    async def request_content(self, request, inbound_headers, cookies):
        if not declares_body(inbound_headers):
            return None
        return request.stream()

    async def response_content(self, upstream, headers):
        # Raw bytes: a compressed upstream body stays compressed, matching its headers
        async for chunk in upstream.aiter_raw():
            yield chunk


class MaterializeAndLog(BodyTransfer):
    """Buffers bodies fully and logs each leg of the exchange."""

    def __init__(self):
        self._request_body = b""

    async def request_content(self, request, inbound_headers, cookies):
        has_body = declares_body(inbound_headers)
        self._request_body = await request.body() if has_body else b""

        lines = [f"Header: {name} ::: {value}" for name, value in inbound_headers]
        lines += [f"Cookie: {c.name} ::: {c.value}" for c in cookies]
        lines.append(f"body: {decode_for_log(self._request_body)}")
        lines.append(f"Method: {request.method}")
        logger.info(format_block("Incoming Request::::", lines))

        return _replay(self._request_body) if has_body else None

    def outbound_built(self, outbound):
        lines = [
            f"Header: {name} ::: {value}"
            for name, value in outbound.headers.multi_items()
        ]
        lines.append(f"body: {decode_for_log(self._request_body)}")
        lines.append(f"Method: {outbound.method}")
        logger.info(format_block("Outgoing Request::::", lines))

    async def response_content(self, upstream, headers):
        body = b"".join([chunk async for chunk in upstream.aiter_raw()])

        lines = [f"Header: {name} ::: {value}" for name, value in headers]
        lines.append(f"body: {decode_for_log(body)}")
        logger.info(
            format_block(
                f"Response:::: {upstream.status_code} {upstream.reason_phrase}", lines
            )
        )

        yield body


def select_body_transfer(verbose: bool) -> BodyTransfer:
    return MaterializeAndLog() if verbose else StreamCopy()
