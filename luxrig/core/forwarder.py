"""StreamForwarder — explicit request/response relay to a loopback provider.

Contract:
- the inbound body is passed through as an async byte iterator (never buffered)
- response headers must arrive within ``timeout`` seconds, else UpstreamTimeout
- setting the ``cancel`` event (caller disconnected) aborts the outbound call
- the upstream body is relayed verbatim via ForwardedResponse.aiter_raw();
  the upstream connection is released when the relay ends or is abandoned
- connect failures are retried up to ``retries`` times, only for bodiless requests
"""
import asyncio
from typing import AsyncIterator, Iterable, Optional

import httpx
import structlog

from luxrig.core.errors import RequestCancelled, UpstreamTimeout, UpstreamUnavailable
from luxrig.core.retry import with_retries

log = structlog.get_logger()

HOP_BY_HOP = frozenset({
    "connection",
    "keep-alive",
    "proxy-connection",
    "transfer-encoding",
    "te",
    "trailer",
    "upgrade",
})


def outbound_headers(inbound: Iterable[tuple[str, str]], host: str) -> list[tuple[str, str]]:
    """Inbound headers minus hop-by-hop ones, with ``host`` overridden."""
    headers = [
        (k, v) for k, v in inbound
        if k.lower() not in HOP_BY_HOP and k.lower() != "host"
    ]
    headers.append(("host", host))
    return headers


class ForwardedResponse:
    """Upstream status/headers plus a one-shot raw body relay."""

    def __init__(self, response: httpx.Response, client: httpx.AsyncClient):
        self._response = response
        self._client = client
        self._closed = False
        self.status_code = response.status_code
        self.headers: list[tuple[str, str]] = [
            (k, v) for k, v in response.headers.multi_items()
            if k.lower() not in HOP_BY_HOP
        ]

    async def aiter_raw(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._response.aiter_raw():
                yield chunk
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._response.aclose()
        await self._client.aclose()


class StreamForwarder:
    def __init__(
        self,
        timeout: float = 30.0,
        connect_timeout: float = 5.0,
        retries: int = 0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout
        self.connect_timeout = min(connect_timeout, timeout)
        self.retries = retries
        self._transport = transport

    async def forward(
        self,
        method: str,
        url: str,
        headers: list[tuple[str, str]],
        body: Optional[AsyncIterator[bytes]] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> ForwardedResponse:
        client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=self.connect_timeout),
            transport=self._transport,
        )

        async def _send() -> httpx.Response:
            request = client.build_request(method, url, headers=headers, content=body)
            return await client.send(request, stream=True)

        # A streamed body is consumed by the first attempt and cannot be replayed
        retries = self.retries if body is None else 0
        send_task = asyncio.ensure_future(with_retries(_send, retries, event="proxy.send"))
        waiters: set[asyncio.Future] = {send_task}
        cancel_task = None
        if cancel is not None:
            cancel_task = asyncio.ensure_future(cancel.wait())
            waiters.add(cancel_task)

        try:
            done, _ = await asyncio.wait(waiters, timeout=self.timeout, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            await self._abandon(send_task, client)
            raise
        finally:
            if cancel_task is not None:
                cancel_task.cancel()

        if cancel is not None and cancel.is_set():
            await self._abandon(send_task, client)
            log.info("proxy.cancelled", method=method, url=url)
            raise RequestCancelled(f"caller disconnected before {url} answered")

        if send_task not in done:
            await self._abandon(send_task, client)
            log.warning("proxy.timeout", method=method, url=url, timeout_sec=self.timeout)
            raise UpstreamTimeout(f"{url} did not respond within {self.timeout:g}s")

        try:
            response = send_task.result()
        except httpx.TimeoutException as exc:
            await client.aclose()
            raise UpstreamTimeout(str(exc) or f"{url} timed out") from exc
        except httpx.HTTPError as exc:
            await client.aclose()
            raise UpstreamUnavailable(str(exc) or type(exc).__name__) from exc
        except Exception:
            await client.aclose()
            raise

        return ForwardedResponse(response, client)

    @staticmethod
    async def _abandon(send_task: asyncio.Future, client: httpx.AsyncClient) -> None:
        send_task.cancel()
        await asyncio.gather(send_task, return_exceptions=True)
        # A response that raced the cancellation still holds a connection
        if not send_task.cancelled() and send_task.exception() is None:
            await send_task.result().aclose()
        await client.aclose()
