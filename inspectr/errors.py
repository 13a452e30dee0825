"""Exception hierarchy for capture, broadcast, fan-out and replay."""
from typing import Any


class InspectrError(Exception):
    """Base exception for inspectr errors"""

    status_code: int | None = None

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context


class DecodeError(InspectrError):
    """Raised when a request body cannot be decoded"""

    def __init__(self, message: str, content_type: str = "", **context: Any):
        super().__init__(message, content_type=content_type, **context)
        self.content_type = content_type
        # Set by the recorder once the exchange has been finalized anyway
        self.transaction = None


class BodyTooLarge(DecodeError):
    """Raised when a request body exceeds the configured limit"""

    def __init__(self, limit: int, received: int, content_type: str = ""):
        super().__init__(
            f"Request body exceeds maximum size of {limit} bytes",
            content_type=content_type,
            limit=limit,
            received=received,
        )
        self.limit = limit
        self.received = received


class MalformedBody(DecodeError):
    """Raised when a decoder rejects the body bytes"""
    pass


class TransportError(InspectrError):
    """Raised when an outbound broadcast request fails"""
    pass


class SubscriberWriteError(InspectrError):
    """Raised when a frame cannot be written to a subscriber"""

    def __init__(self, subscriber_id: str, reason: str):
        super().__init__(f"Cannot write to subscriber {subscriber_id}: {reason}", subscriber_id=subscriber_id)
        self.subscriber_id = subscriber_id
        self.reason = reason


class ReplayValidationError(InspectrError):
    """Raised when a replay event lacks its method or url"""

    status_code = 422

    def __init__(self, errors: list | None = None):
        super().__init__("Invalid Inspectr Request event", errors=errors or [])
        self.errors = errors or []


class ReplayError(InspectrError):
    """Raised when re-issuing a replayed request fails"""

    status_code = 500
