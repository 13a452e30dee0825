"""Fire-and-forget delivery of enveloped payloads to the broadcast sink."""
import asyncio
from typing import Any, Set

import httpx
import orjson
import structlog

from ..config import get_settings
from ..errors import TransportError
from ..metrics import metrics
from .envelope import dump_envelope, envelope_id, wrap

log = structlog.get_logger()
settings = get_settings()


class Broadcaster:
    """
    Posts envelopes to a sink URL (normally the hub's publish endpoint).

    ``broadcast`` never raises into the caller: the POST runs as a background
    task, bounded by a timeout, with no retry. Failures are logged and
    counted.
    """

    def __init__(
        self,
        url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Args:
            url: Sink URL (defaults to settings.BROADCAST_URL)
            timeout: Per-request timeout in seconds (defaults to settings.BROADCAST_TIMEOUT)
            transport: Optional httpx transport, e.g. ASGITransport in tests
        """
        self.url = url or settings.BROADCAST_URL
        self.timeout = timeout if timeout is not None else settings.BROADCAST_TIMEOUT
        self._transport = transport
        self._tasks: Set[asyncio.Task] = set()

    def set_broadcast_url(self, url: str):
        self.url = url
        log.info("broadcast.url_set", url=url)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def send(self, payload: Any, url: str | None = None) -> None:
        """
        POST one envelope and wait for the reply.

        Raises:
            TransportError: the request failed or the sink answered with an error status
        """
        target = url or self.url
        envelope = wrap(payload)
        event_id = envelope_id(envelope)
        body = dump_envelope(envelope)
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.post(
                    target,
                    content=body,
                    headers={"Content-Type": "application/json"},
                )
                response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportError(f"Broadcast to {target} failed: {e}", url=target, event_id=event_id) from e

        metrics.broadcasts_total.inc()
        log.debug("broadcast.sent", url=target, event_id=event_id, status=response.status_code)

    async def _send_logged(self, payload: Any, url: str | None):
        try:
            await self.send(payload, url)
        except TransportError as e:
            metrics.broadcast_failures_total.inc()
            log.error("broadcast.failed", error=e.message, **e.context)
        except orjson.JSONEncodeError as e:
            metrics.broadcast_failures_total.inc()
            log.error("broadcast.serialize_failed", error=str(e))

    def broadcast(self, payload: Any, url: str | None = None) -> Any:
        """
        Schedule delivery of ``payload`` and return it unchanged.

        Must be called from a running event loop; otherwise the payload is
        dropped with a warning.
        """
        try:
            task = asyncio.get_running_loop().create_task(self._send_logged(payload, url))
        except RuntimeError:
            log.warning("broadcast.no_event_loop", url=url or self.url)
            return payload

        # Keep a strong reference until the task finishes
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return payload

    async def drain(self):
        """Wait for in-flight broadcasts to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


# Global broadcaster instance
broadcaster = Broadcaster()


def set_broadcast_url(url: str):
    broadcaster.set_broadcast_url(url)
