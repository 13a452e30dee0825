"""Server-Sent Events fan-out to live subscribers."""
import asyncio
from typing import Any, AsyncIterator, Dict

import structlog
from starlette.responses import StreamingResponse

from ..config import get_settings
from ..errors import SubscriberWriteError
from ..metrics import metrics
from ..services.envelope import dump_envelope, generate_id

log = structlog.get_logger()
settings = get_settings()

CONNECTED_FRAME = ": connected\n\n"
KEEP_ALIVE_FRAME = ": keep-alive\n\n"


def serialize_message(message: Any) -> str:
    """Strings pass through; anything else is enveloped and JSON-encoded."""
    if isinstance(message, str):
        return message
    return dump_envelope(message).decode("utf-8")


def format_frame(data: str) -> str:
    """One SSE data frame; every line of ``data`` gets its own ``data:`` field."""
    lines = data.splitlines() or [""]
    return "".join(f"data: {line}\n" for line in lines) + "\n"


class Subscriber:
    """
    One push connection.

    Frames are queued on a bounded queue that the connection's response
    drains. A full queue means the observer stopped reading.
    """

    def __init__(self, queue_size: int):
        self.id = f"sse-{generate_id()}"
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.closed = False

    def deliver(self, frame: str):
        """
        Queue a frame for this subscriber.

        Raises:
            SubscriberWriteError: subscriber closed or not keeping up
        """
        if self.closed:
            raise SubscriberWriteError(self.id, "closed")
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull:
            raise SubscriberWriteError(self.id, "queue full")

    def close(self):
        if self.closed:
            return
        self.closed = True
        # Undelivered frames are dropped so the end marker always fits
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(None)

    async def frames(self, ping_interval: float | None = None) -> AsyncIterator[str]:
        """
        Yield queued frames in order until the subscriber is closed.

        Args:
            ping_interval: Seconds of silence before a keep-alive comment is sent
        """
        while True:
            try:
                frame = await asyncio.wait_for(self._queue.get(), timeout=ping_interval)
            except asyncio.TimeoutError:
                yield KEEP_ALIVE_FRAME
                continue
            if frame is None:
                return
            yield frame


class SubscriberHub:
    """
    Owns the subscriber registry and fans published events out to it.

    Every registry operation is synchronous and runs on the event loop
    without suspending, so connect, disconnect and publish never interleave:
    a subscriber is either fully registered before a publish starts
    enumerating or it is not seen at all, and nothing is delivered to it
    once it has been disconnected.
    """

    def __init__(self, queue_size: int | None = None, ping_interval: float | None = None):
        self.queue_size = queue_size or settings.SUBSCRIBER_QUEUE_SIZE
        self.ping_interval = ping_interval if ping_interval is not None else settings.SSE_PING_INTERVAL
        self._subscribers: Dict[str, Subscriber] = {}

    def connect(self) -> Subscriber:
        """Register a new subscriber; its first frame is the connected comment."""
        subscriber = Subscriber(self.queue_size)
        subscriber.deliver(CONNECTED_FRAME)
        self._subscribers[subscriber.id] = subscriber
        metrics.subscribers_active.set(len(self._subscribers))
        log.info("subscriber.connected", subscriber_id=subscriber.id, total_subscribers=len(self._subscribers))
        return subscriber

    def disconnect(self, subscriber: Subscriber) -> bool:
        """
        Deregister and close a subscriber.

        Returns:
            True if the subscriber was registered
        """
        removed = self._subscribers.pop(subscriber.id, None) is not None
        subscriber.close()
        if removed:
            metrics.subscribers_active.set(len(self._subscribers))
            log.info("subscriber.disconnected", subscriber_id=subscriber.id, total_subscribers=len(self._subscribers))
        return removed

    def publish(self, message: Any) -> int:
        """
        Send one data frame to every registered subscriber.

        Subscribers that cannot take the frame are disconnected; the others
        still receive it.

        Returns:
            Number of subscribers the frame was delivered to
        """
        frame = format_frame(serialize_message(message))
        delivered = 0
        failed = []
        for subscriber in self._subscribers.values():
            try:
                subscriber.deliver(frame)
                delivered += 1
            except SubscriberWriteError as e:
                log.warning("subscriber.write_failed", subscriber_id=e.subscriber_id, reason=e.reason)
                metrics.subscriber_write_failures_total.inc()
                failed.append(subscriber)

        for subscriber in failed:
            self.disconnect(subscriber)

        metrics.events_published_total.inc()
        log.debug("event.published", delivered=delivered, failed=len(failed))
        return delivered

    def close_all(self):
        """Disconnect every subscriber (process shutdown)."""
        for subscriber in list(self._subscribers.values()):
            self.disconnect(subscriber)

    def is_connected(self, subscriber: Subscriber) -> bool:
        return subscriber.id in self._subscribers

    @property
    def connection_count(self) -> int:
        """Get number of registered subscribers."""
        return len(self._subscribers)


# Global hub instance
hub = SubscriberHub()


def handle_sse_stream(subscriber_hub: SubscriberHub | None = None) -> StreamingResponse:
    """
    Build the streaming response for one push subscription.

    The subscriber is registered when streaming starts and deregistered when
    the stream ends for any reason (client close, write error, shutdown).
    """
    subscriber_hub = subscriber_hub or hub

    async def event_stream():
        subscriber = subscriber_hub.connect()
        try:
            async for frame in subscriber.frames(subscriber_hub.ping_interval):
                yield frame
        finally:
            subscriber_hub.disconnect(subscriber)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
