"""CloudEvents-style envelope for broadcast payloads."""
import uuid
from collections.abc import Mapping
from typing import Any

import orjson
from pydantic import BaseModel, ConfigDict, Field

from ..models import Transaction, utc_timestamp

SPEC_VERSION = "1.0"
EVENT_TYPE = "com.inspectr.http"
EVENT_SOURCE = "/inspectr"
DATA_CONTENT_TYPE = "application/json"


def generate_id() -> str:
    """Random (version 4) UUID string."""
    return str(uuid.uuid4())


class Envelope(BaseModel):
    # Envelopes built elsewhere may carry extension attributes
    model_config = ConfigDict(extra="allow")

    specversion: str = SPEC_VERSION
    type: str = EVENT_TYPE
    source: str = EVENT_SOURCE
    id: str = Field(default_factory=generate_id)
    time: str = Field(default_factory=utc_timestamp)
    datacontenttype: str = DATA_CONTENT_TYPE
    data: Any = None


def is_envelope(payload: Any) -> bool:
    return isinstance(payload, Envelope) or (
        isinstance(payload, Mapping) and "specversion" in payload
    )


def wrap(payload: Any) -> Envelope | Mapping:
    """
    Wrap a payload in an envelope.

    Already-enveloped payloads pass through unchanged: an Envelope is
    returned as is, and a mapping with a ``specversion`` key is returned
    untouched, whatever its attribute types.
    """
    if is_envelope(payload):
        return payload
    if isinstance(payload, Transaction):
        payload = payload.to_wire()
    return Envelope(data=payload)


def envelope_id(envelope: Envelope | Mapping) -> Any:
    if isinstance(envelope, Envelope):
        return envelope.id
    return envelope.get("id")


def dump_envelope(payload: Any) -> bytes:
    """Wrap ``payload`` and encode the envelope as JSON."""
    envelope = wrap(payload)
    if isinstance(envelope, Envelope):
        return orjson.dumps(envelope.model_dump())
    return orjson.dumps(dict(envelope))
