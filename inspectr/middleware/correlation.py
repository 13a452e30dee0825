"""Correlation ID middleware for request tracing."""
import uuid
from contextvars import ContextVar

import structlog
from starlette.datastructures import Headers, MutableHeaders

# Context variable to store correlation ID across async context
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

HEADER = "x-correlation-id"


class CorrelationIdMiddleware:
    """
    Injects a correlation ID into the logging context and response headers.

    - Extracts correlation ID from X-Correlation-ID header if present
    - Generates new UUID if not present
    - Binds correlation ID to structlog context

    Implemented at the ASGI level so streaming responses (SSE) are not
    buffered or cut short.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        correlation_id = Headers(scope=scope).get(HEADER) or str(uuid.uuid4())
        correlation_id_var.set(correlation_id)
        scope.setdefault("state", {})["correlation_id"] = correlation_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id,
            http_method=scope.get("method"),
            http_path=scope.get("path"),
        )

        async def send_with_correlation_id(message):
            if message["type"] == "http.response.start":
                MutableHeaders(scope=message)[HEADER] = correlation_id
            await send(message)

        await self.app(scope, receive, send_with_correlation_id)


def get_correlation_id() -> str:
    """Get the current correlation ID from context."""
    return correlation_id_var.get()
