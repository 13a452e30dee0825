"""Per-exchange orchestration: decode, tap, finalize, then broadcast and print."""
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict

import orjson
import structlog

from ..config import get_settings
from ..errors import DecodeError
from ..metrics import metrics
from ..models import RequestRecord, ResponseRecord, Transaction, utc_timestamp
from ..services.broadcaster import Broadcaster, broadcaster as default_broadcaster
from . import summary
from .decoders import ContentDecoder
from .meta import parse_request_meta, parse_response_meta, parse_url
from .tap import ResponseTap

log = structlog.get_logger()
settings = get_settings()

Scope = Dict[str, Any]
ASGIApp = Callable[..., Awaitable[None]]


def serialize_payload(value: Any) -> str:
    """Decoded bodies are stored as text; structured values become JSON."""
    if isinstance(value, str):
        return value
    try:
        return orjson.dumps(value).decode("utf-8")
    except orjson.JSONEncodeError:
        return str(value)


class TransactionRecorder:
    """
    Records one Transaction per HTTP exchange.

    ``capture`` runs in two phases. Phase one decodes the request body and
    then invokes the downstream app exactly once, with the replayed request
    body and a ResponseTap in place of ``send``. Phase two starts when the
    app returns: the tap's completion yields the response body, response
    metadata is read and the Transaction is frozen. Broadcasting and the
    console summary follow as independent side effects.
    """

    def __init__(
        self,
        decoder: ContentDecoder | None = None,
        broadcaster: Broadcaster | None = None,
        broadcast: bool | None = None,
        print_summary: bool | None = None,
        broadcast_url: str | None = None,
        colors: bool | None = None,
    ):
        """
        Args:
            decoder: Request body decoder (defaults to ContentDecoder())
            broadcaster: Broadcast client (defaults to the shared instance)
            broadcast: Send finalized transactions to the sink (defaults to BROADCAST_ENABLED)
            print_summary: Log a one-line summary (defaults to PRINT_ENABLED)
            broadcast_url: Sink URL for this recorder only
            colors: ANSI colors in summaries (defaults to console logging)
        """
        self.decoder = decoder or ContentDecoder()
        self.broadcaster = broadcaster or default_broadcaster
        self.broadcast_enabled = settings.BROADCAST_ENABLED if broadcast is None else broadcast
        self.print_enabled = settings.PRINT_ENABLED if print_summary is None else print_summary
        self.broadcast_url = broadcast_url
        self.colors = (not settings.LOG_JSON) if colors is None else colors

    async def capture(self, scope: Scope, receive, send, app: ASGIApp) -> Transaction | None:
        """
        Run ``app`` for one HTTP exchange and record it.

        Returns:
            The finalized Transaction, or None when the app returned without
            completing a response

        Raises:
            DecodeError: the request body could not be decoded; raised after
                the exchange completed, with ``transaction`` set
            Exception: anything the app raised, unchanged; a response the app
                finished before raising is still recorded
        """
        arrived_at = datetime.now(timezone.utc)
        started = time.monotonic()
        request_meta = parse_request_meta(scope, arrived_at)
        url = parse_url(scope)

        reader = self.decoder.reader(receive)
        tap = ResponseTap(send)

        # Phase 1
        decode_error: DecodeError | None = None
        request_payload = ""
        try:
            request_payload = serialize_payload(await self.decoder.decode_request(scope, reader))
        except DecodeError as e:
            decode_error = e
            metrics.decode_failures_total.labels(reason=type(e).__name__).inc()

        try:
            await app(scope, reader.receive, tap)
        except Exception:
            # A response that was fully sent is recorded even if the app fails afterwards
            if tap.finished:
                await self._complete(tap, request_meta, url, request_payload, arrived_at, started)
            raise

        # Phase 2
        if not tap.finished:
            log.warning(
                "capture.incomplete",
                method=request_meta["method"],
                path=request_meta["path"],
                response_started=tap.started,
            )
            return None

        transaction = await self._complete(tap, request_meta, url, request_payload, arrived_at, started)

        if decode_error is not None:
            decode_error.transaction = transaction
            raise decode_error
        return transaction

    async def _complete(
        self,
        tap: ResponseTap,
        request_meta: Dict[str, Any],
        url: str,
        request_payload: str,
        arrived_at: datetime,
        started: float,
    ) -> Transaction:
        """Build the frozen Transaction from a finished tap and finalize it."""
        response_payload = await tap.completed
        elapsed = max(0.0, time.monotonic() - started)
        response_meta = parse_response_meta(tap)

        transaction = Transaction(
            method=request_meta["method"],
            url=url,
            server=request_meta["host"],
            path=request_meta["path"],
            client_ip=request_meta["client_ip"],
            timestamp=request_meta["timestamp"],
            latency=int(elapsed * 1000),
            request=RequestRecord(
                payload=request_payload,
                headers=request_meta["headers"],
                query_params=request_meta["query_params"],
                timestamp=request_meta["timestamp"],
            ),
            response=ResponseRecord(
                payload=response_payload,
                headers=response_meta["headers"],
                status_code=response_meta["status_code"],
                status_message=response_meta["status_message"],
                timestamp=utc_timestamp(arrived_at + timedelta(seconds=elapsed)),
            ),
        )
        self._finalize(transaction)
        return transaction

    def _finalize(self, transaction: Transaction):
        metrics.record_transaction(
            transaction.method, transaction.response.status_code, transaction.latency
        )
        if self.broadcast_enabled:
            self.broadcaster.broadcast(transaction, self.broadcast_url)
        if self.print_enabled:
            try:
                summary.print_summary(transaction, colors=self.colors)
            except Exception as e:
                log.warning("capture.print_failed", error=str(e))
