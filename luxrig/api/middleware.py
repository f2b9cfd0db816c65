"""ASGI middleware — CORS on every response, pre-flight short-circuit, /api rate limit.

Both are plain ASGI wrappers rather than BaseHTTPMiddleware so proxied
bodies keep streaming straight through.
"""
import math

import structlog
from starlette.datastructures import MutableHeaders
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from luxrig.core.ratelimit import FixedWindowRateLimiter

log = structlog.get_logger()

CORS_HEADERS: dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, X-Client-Info",
    "Access-Control-Max-Age": "86400",
}

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."
AI_RATE_LIMIT_MESSAGE = "AI rate limit exceeded, please slow down."


class CORSHeadersMiddleware:
    """Stamp CORS headers on every response and answer OPTIONS with an empty 200."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        if scope["method"] == "OPTIONS":
            await Response(status_code=200, headers=CORS_HEADERS)(scope, receive, send)
            return

        async def send_with_cors(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for key, value in CORS_HEADERS.items():
                    headers[key] = value
            await send(message)

        await self.app(scope, receive, send_with_cors)


class RateLimitMiddleware:
    """Fixed-window throttle per client IP for paths under ``prefix``."""

    def __init__(
        self,
        app: ASGIApp,
        limiter: FixedWindowRateLimiter,
        prefix: str = "/api/",
        message: str = RATE_LIMIT_MESSAGE,
    ):
        self.app = app
        self.limiter = limiter
        self.prefix = prefix
        self.message = message

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and scope["path"].startswith(self.prefix):
            client = scope.get("client")
            key = client[0] if client else "unknown"
            decision = self.limiter.hit(key)
            if not decision.allowed:
                log.warning(
                    "ratelimit.exceeded", client=key, path=scope["path"], prefix=self.prefix, limit=decision.limit
                )
                response = JSONResponse(
                    status_code=429,
                    content={"error": "Too many requests", "message": self.message},
                    headers={
                        "Retry-After": str(math.ceil(decision.reset_after)),
                        "RateLimit-Limit": str(decision.limit),
                        "RateLimit-Remaining": "0",
                    },
                )
                await response(scope, receive, send)
                return
        await self.app(scope, receive, send)
