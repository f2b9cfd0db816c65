"""Bridge API routes under /api — chat routing, LM Studio health, usage stats, data sync."""
import os
import platform
import sys
from typing import Any

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from luxrig.api.disconnect import unless_disconnected
from luxrig.api.proxy import CLIENT_CLOSED_REQUEST
from luxrig.core.errors import (
    ItemNotFound,
    LocalProviderError,
    ProviderUnavailable,
    UnknownCollection,
    UpstreamTimeout,
    UpstreamUnavailable,
)
from luxrig.core.health import probe_lm_studio
from luxrig.core.router import ChatRequest

log = structlog.get_logger()

router = APIRouter(prefix="/api")

AVAILABLE_ENDPOINTS = [
    "/health",
    "/api/status",
    "/api/lm-studio/health",
    "/api/ai/chat",
    "/api/stats/usage",
    "/api/data/:type",
]

CHAT_FALLBACK = "Try cloud provider"


def endpoint_not_found_response() -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={"error": "Endpoint not found", "available_endpoints": AVAILABLE_ENDPOINTS},
    )


# ---------------------------------------------------------------------------
# Status / health
# ---------------------------------------------------------------------------

@router.get("/status")
async def status(request: Request) -> dict:
    state = request.app.state
    settings = state.settings
    try:
        lm_studio = await probe_lm_studio(
            settings.lm_studio_url, timeout=settings.health_timeout, transport=state.transport
        )
        lm_studio.pop("modelList", None)
    except ProviderUnavailable as exc:
        log.warning("bridge.lm_studio_unavailable", error=str(exc))
        lm_studio = {"available": False}

    return {
        "server": {
            "uptime": round(state.uptime(), 3),
            "platform": sys.platform,
            "python": platform.python_version(),
            "pid": os.getpid(),
        },
        "lmStudio": lm_studio,
        "luxrig": {"bridge": True, "port": settings.luxrig_port},
    }


@router.get("/lm-studio/health")
async def lm_studio_health(request: Request):
    state = request.app.state
    settings = state.settings
    try:
        return await probe_lm_studio(
            settings.lm_studio_url,
            timeout=settings.lm_studio_health_timeout,
            transport=state.transport,
        )
    except ProviderUnavailable as exc:
        log.warning("bridge.lm_studio_health_failed", error=str(exc))
        return JSONResponse(
            status_code=503,
            content={
                "available": False,
                "error": str(exc),
                "suggestion": f"Ensure LM Studio is running on {settings.lm_studio_url}",
            },
        )


# ---------------------------------------------------------------------------
# Chat routing
# ---------------------------------------------------------------------------

@router.post("/ai/chat")
async def ai_chat(request: Request):
    state = request.app.state

    try:
        payload = await request.json()
    except ValueError:
        payload = None

    if not isinstance(payload, dict) or not isinstance(payload.get("messages"), list):
        state.stats.record_error()
        return JSONResponse(status_code=400, content={"error": "Invalid messages format"})

    try:
        chat = ChatRequest.model_validate(payload)
    except ValidationError as exc:
        state.stats.record_error()
        if any(err["loc"] and err["loc"][0] == "messages" for err in exc.errors()):
            return JSONResponse(status_code=400, content={"error": "Invalid messages format"})
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request", "details": exc.errors(include_url=False, include_context=False)},
        )

    try:
        result = await unless_disconnected(request, state.chat_router.route(chat))
    except UpstreamTimeout as exc:
        state.stats.record_error()
        return JSONResponse(
            status_code=504,
            content={"error": "Local provider timed out", "details": str(exc), "fallback": CHAT_FALLBACK},
        )
    except (LocalProviderError, UpstreamUnavailable) as exc:
        state.stats.record_error()
        log.error("bridge.chat_failed", error=str(exc))
        return JSONResponse(
            status_code=500,
            content={"error": "AI processing failed", "details": str(exc), "fallback": CHAT_FALLBACK},
        )

    if result is None:
        state.stats.record_error()
        log.info("bridge.chat_cancelled")
        return Response(status_code=CLIENT_CLOSED_REQUEST)

    state.stats.record(result["luxrig_metadata"]["routed_to"])
    return result


@router.get("/stats/usage")
async def usage_stats(request: Request) -> dict:
    return request.app.state.stats.snapshot()


# ---------------------------------------------------------------------------
# Data sync (in-memory)
# ---------------------------------------------------------------------------

def _data_error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"data": None, "error": message})


async def _json_object(request: Request) -> dict[str, Any] | None:
    try:
        body = await request.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


@router.get("/data/{kind}")
async def list_items(request: Request, kind: str):
    try:
        return {"data": request.app.state.datastore.list(kind), "error": None}
    except UnknownCollection:
        return _data_error(404, "Data type not found")


@router.post("/data/{kind}")
async def create_item(request: Request, kind: str):
    body = await _json_object(request)
    if body is None:
        return _data_error(400, "Request body must be a JSON object")
    try:
        return {"data": request.app.state.datastore.create(kind, body), "error": None}
    except UnknownCollection:
        return _data_error(404, "Data type not found")


@router.put("/data/{kind}/{item_id}")
async def update_item(request: Request, kind: str, item_id: str):
    body = await _json_object(request)
    if body is None:
        return _data_error(400, "Request body must be a JSON object")
    try:
        return {"data": request.app.state.datastore.update(kind, item_id, body), "error": None}
    except UnknownCollection:
        return _data_error(404, "Data type not found")
    except ItemNotFound:
        return _data_error(404, "Item not found")


@router.delete("/data/{kind}/{item_id}")
async def delete_item(request: Request, kind: str, item_id: str):
    try:
        request.app.state.datastore.delete(kind, item_id)
    except UnknownCollection:
        return _data_error(404, "Data type not found")
    except ItemNotFound:
        return _data_error(404, "Item not found")
    return {"data": None, "error": None}
