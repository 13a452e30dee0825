"""Tests for envelope wrapping."""
from datetime import datetime

import orjson

from inspectr.models import RequestRecord, ResponseRecord, Transaction
from inspectr.services.envelope import (
    DATA_CONTENT_TYPE,
    EVENT_SOURCE,
    EVENT_TYPE,
    SPEC_VERSION,
    Envelope,
    dump_envelope,
    envelope_id,
    is_envelope,
    wrap,
)


def sample_transaction() -> Transaction:
    return Transaction(
        method="GET",
        url="http://localhost/sample",
        server="localhost",
        path="/sample",
        client_ip="127.0.0.1",
        timestamp="2025-02-14T00:00:00.000Z",
        latency=12,
        request=RequestRecord(payload="{}", query_params={"a": "1"}, timestamp="2025-02-14T00:00:00.000Z"),
        response=ResponseRecord(payload="ok", status_code=200, status_message="OK", timestamp="2025-02-14T00:00:00.012Z"),
    )


def test_wrap_fields():
    """Test envelope attributes."""
    data = {"test": "broadcast"}
    envelope = wrap(data)

    assert envelope.specversion == SPEC_VERSION == "1.0"
    assert envelope.type == EVENT_TYPE
    assert envelope.source == EVENT_SOURCE == "/inspectr"
    assert envelope.datacontenttype == DATA_CONTENT_TYPE == "application/json"
    assert envelope.id
    datetime.fromisoformat(envelope.time.replace("Z", "+00:00"))
    assert envelope.data == data


def test_wrap_unique_ids():
    ids = {wrap({"n": i}).id for i in range(200)}
    assert len(ids) == 200


def test_wrap_envelope_is_noop():
    """Wrapping an envelope returns it unchanged."""
    envelope = wrap({"test": "broadcast"})
    assert wrap(envelope) is envelope


def test_wrap_enveloped_mapping_passes_through():
    """A dict that already has specversion is returned untouched."""
    raw = wrap([1, 2, 3]).model_dump()
    assert wrap(raw) is raw


def test_wrap_keeps_extension_attributes():
    raw = {"specversion": "1.0", "id": "abc", "type": "custom", "source": "/x", "time": "t", "data": 1, "traceparent": "00-1"}
    assert orjson.loads(dump_envelope(raw))["traceparent"] == "00-1"


def test_wrap_enveloped_mapping_with_loose_types():
    """Enveloped payloads are forwarded as they are, even with non-string attributes."""
    raw = {"specversion": 1, "id": 42, "time": None, "data": {"x": 1}}

    assert wrap(raw) is raw
    assert envelope_id(raw) == 42
    assert orjson.loads(dump_envelope(raw)) == raw


def test_wrap_transaction_uses_wire_names():
    envelope = wrap(sample_transaction())
    data = envelope.data

    assert data["clientIp"] == "127.0.0.1"
    assert data["request"]["queryParams"] == {"a": "1"}
    assert data["response"]["statusCode"] == 200
    assert data["response"]["statusMessage"] == "OK"
    assert data["latency"] == 12


def test_is_envelope():
    assert is_envelope(Envelope(data=None))
    assert is_envelope({"specversion": "1.0"})
    assert not is_envelope({"data": 1})
    assert not is_envelope("specversion")
