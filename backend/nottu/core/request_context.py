# backend/nottu/core/request_context.py
"""
Request context middleware.

Attaches a request id and the client address to every request so ceremony
logs and security events can be correlated.
"""

import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response


@dataclass
class RequestContext:
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    ip_address: str = "unknown"
    user_agent: str | None = None
    request_method: str | None = None
    request_path: str | None = None


_request_context: ContextVar[RequestContext | None] = ContextVar("request_context", default=None)


def get_request_context() -> RequestContext | None:
    return _request_context.get()


def get_client_ip(request: Request) -> str:
    """
    Client address, preferring the first hop of X-Forwarded-For when the app
    runs behind a reverse proxy.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Middleware that creates and attaches request context.

    Must be added early in the middleware stack.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        user_agent = request.headers.get("User-Agent", "")
        if user_agent and len(user_agent) > 512:
            user_agent = user_agent[:509] + "..."

        incoming_id = request.headers.get("X-Request-ID")
        ctx = RequestContext(
            ip_address=get_client_ip(request),
            user_agent=user_agent or None,
            request_method=request.method,
            request_path=request.url.path[:255],
        )
        if incoming_id and len(incoming_id) <= 128 and incoming_id.isprintable():
            ctx.request_id = incoming_id

        token = _request_context.set(ctx)
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = ctx.request_id
            return response
        finally:
            _request_context.reset(token)
