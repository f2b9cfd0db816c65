"""Generic port proxy routes — health, provider probes, /proxy/{port}/* and /lm-studio/*."""
import asyncio
from datetime import datetime, timezone
from typing import AsyncIterator
from urllib.parse import urlsplit

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.requests import ClientDisconnect
from starlette.responses import Response

from luxrig.api.disconnect import watch_disconnect
from luxrig.core.errors import RequestCancelled, UpstreamTimeout, UpstreamUnavailable
from luxrig.core.forwarder import StreamForwarder, outbound_headers
from luxrig.core.providers import detect_provider

log = structlog.get_logger()

router = APIRouter()

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD"]

# Non-standard "client closed request"; nobody reads it, it only shows in access logs
CLIENT_CLOSED_REQUEST = 499


def proxy_usage_response() -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={
            "error": "Not Found",
            "usage": "Use /proxy/{port}/path to proxy to local providers",
            "example": "/proxy/1234/v1/chat/completions",
        },
    )


def _has_body(request: Request) -> bool:
    length = request.headers.get("content-length")
    if length is not None:
        return length.strip() not in ("", "0")
    return "transfer-encoding" in request.headers


async def _stream_body(request: Request, cancel: asyncio.Event, done: asyncio.Event) -> AsyncIterator[bytes]:
    try:
        async for chunk in request.stream():
            if chunk:
                yield chunk
    except ClientDisconnect as exc:
        cancel.set()
        raise RequestCancelled("caller disconnected mid-upload") from exc
    done.set()


async def relay(request: Request, forwarder: StreamForwarder, target_url: str, host: str) -> Response:
    """Pipe ``request`` to ``target_url`` and stream the upstream reply back.

    A caller that disconnects before the upstream answers aborts the
    outbound call (RequestCancelled).
    """
    cancel = asyncio.Event()
    body_done = asyncio.Event()
    if _has_body(request):
        body = _stream_body(request, cancel, body_done)
    else:
        body = None
        body_done.set()

    # Stops before the response is sent; StreamingResponse watches for disconnects itself
    watcher = asyncio.ensure_future(watch_disconnect(request, cancel, body_done))
    try:
        upstream = await forwarder.forward(
            request.method,
            target_url,
            outbound_headers(request.headers.items(), host),
            body=body,
            cancel=cancel,
        )
    finally:
        watcher.cancel()
        await asyncio.gather(watcher, return_exceptions=True)

    response = StreamingResponse(upstream.aiter_raw(), status_code=upstream.status_code)
    response.raw_headers = [
        (k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in upstream.headers
    ]
    return response


def _target(base: str, rest: str, query: str) -> str:
    url = f"{base}{rest or '/'}"
    return f"{url}?{query}" if query else url


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@router.get("/")
@router.get("/health")
async def health(request: Request) -> dict:
    state = request.app.state
    settings = state.settings
    host = settings.proxy_target_host
    return {
        "status": "healthy",
        "server": settings.app_name,
        "version": settings.app_version,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(state.uptime(), 3),
        "environment": settings.node_env,
        "luxrig": "online",
        "providers": [
            {"name": p.name, "endpoint": p.endpoint(host)} for p in settings.local_providers
        ],
    }


@router.get("/providers")
async def providers(request: Request) -> dict:
    statuses = await request.app.state.health_checker.check_all()
    return {"providers": [s.as_dict() for s in statuses]}


# ---------------------------------------------------------------------------
# /proxy/{port}/{path}
# ---------------------------------------------------------------------------

@router.api_route("/proxy/{port:int}{rest:path}", methods=PROXY_METHODS)
async def proxy_port(request: Request, port: int, rest: str) -> Response:
    if rest and not rest.startswith("/"):
        return proxy_usage_response()

    settings = request.app.state.settings
    provider = detect_provider(port, settings.local_providers)
    host = f"{settings.proxy_target_host}:{port}"
    target_url = _target(f"http://{host}", rest, request.url.query)

    log.info("proxy.forward", method=request.method, target=target_url, provider=provider.name)

    try:
        return await relay(request, request.app.state.forwarder, target_url, host)
    except UpstreamTimeout as exc:
        return JSONResponse(
            status_code=504,
            content={"error": "Local provider timed out", "message": str(exc)},
        )
    except UpstreamUnavailable as exc:
        log.error("proxy.error", target=target_url, provider=provider.name, error=str(exc))
        return JSONResponse(
            status_code=502,
            content={"error": "Local provider not available", "message": str(exc)},
        )
    except RequestCancelled:
        return Response(status_code=CLIENT_CLOSED_REQUEST)


# ---------------------------------------------------------------------------
# /lm-studio/{path}: direct LM Studio passthrough
# ---------------------------------------------------------------------------

@router.api_route("/lm-studio{rest:path}", methods=PROXY_METHODS)
async def proxy_lm_studio(request: Request, rest: str) -> Response:
    if rest and not rest.startswith("/"):
        return proxy_usage_response()

    base = request.app.state.settings.lm_studio_url.rstrip("/")
    target_url = _target(base, rest, request.url.query)
    log.info("proxy.lm_studio", method=request.method, target=target_url)

    try:
        return await relay(request, request.app.state.forwarder, target_url, urlsplit(base).netloc)
    except (UpstreamUnavailable, UpstreamTimeout) as exc:
        log.error("proxy.lm_studio_error", target=target_url, error=str(exc))
        return JSONResponse(
            status_code=503,
            content={
                "error": "LM Studio unavailable",
                "message": "Local AI service is not responding",
                "endpoint": base,
            },
        )
    except RequestCancelled:
        return Response(status_code=CLIENT_CLOSED_REQUEST)
