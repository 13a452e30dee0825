"""ASGI middleware that captures every HTTP exchange of the wrapped app."""
import structlog

from ..errors import DecodeError
from .recorder import TransactionRecorder

log = structlog.get_logger()


class InspectrMiddleware:
    """
    Instrument an ASGI application.

    Usage::

        app = FastAPI()
        app.add_middleware(InspectrMiddleware, broadcast=True, print_summary=True)

    Non-HTTP scopes (websocket, lifespan) pass straight through. Capture
    problems are logged and never reach the instrumented client.
    """

    def __init__(self, app, recorder: TransactionRecorder | None = None, **options):
        """
        Args:
            app: The ASGI application to instrument
            recorder: Preconfigured recorder; otherwise one is built from options
            **options: TransactionRecorder keyword arguments
                (broadcast, print_summary, broadcast_url, colors, ...)
        """
        self.app = app
        self.recorder = recorder or TransactionRecorder(**options)

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        try:
            await self.recorder.capture(scope, receive, send, self.app)
        except DecodeError as e:
            log.warning(
                "capture.decode_failed",
                error=e.message,
                error_type=type(e).__name__,
                content_type=e.content_type,
                path=scope.get("path"),
            )
