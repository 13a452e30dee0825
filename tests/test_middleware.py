"""Tests for middleware components."""
from unittest.mock import Mock

import orjson
import pytest
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from httpx import AsyncClient, ASGITransport

from inspectr.capture import InspectrMiddleware, TransactionRecorder
from inspectr.demo import app as demo_app
from inspectr.main import app as hub_app
from inspectr.services.broadcaster import Broadcaster
from inspectr.streaming.hub import CONNECTED_FRAME, hub


def recording_recorder(**options):
    """Recorder whose broadcaster collects transactions instead of posting them."""
    broadcaster = Mock()
    captured = []

    def broadcast(payload, url=None):
        captured.append(payload)
        return payload

    broadcaster.broadcast.side_effect = broadcast
    recorder = TransactionRecorder(broadcaster=broadcaster, broadcast=True, print_summary=False, **options)
    return recorder, captured


def instrumented_app():
    recorder, captured = recording_recorder()
    app = FastAPI()
    app.add_middleware(InspectrMiddleware, recorder=recorder)

    @app.post("/echo")
    async def echo(request: Request):
        return {"decoded": getattr(request.state, "body", None)}

    @app.put("/raw")
    async def raw(request: Request):
        return PlainTextResponse((await request.body()).decode())

    @app.get("/plain")
    async def plain():
        return PlainTextResponse("Pong")

    return app, captured


@pytest.mark.asyncio
async def test_response_reaches_client_unchanged():
    app, captured = instrumented_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/plain?debug=1", headers={"x-forwarded-for": "10.0.0.9"})

    assert response.status_code == 200
    assert response.text == "Pong"

    assert len(captured) == 1
    transaction = captured[0]
    assert transaction.path == "/plain"
    assert transaction.url == "http://test/plain?debug=1"
    assert transaction.client_ip == "10.0.0.9"
    assert transaction.request.query_params == {"debug": "1"}
    assert transaction.response.payload == "Pong"
    assert transaction.response.status_message == "OK"


@pytest.mark.asyncio
async def test_decoded_body_visible_to_handler():
    """The handler sees the body decoded by the middleware."""
    app, captured = instrumented_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post("/echo", json={"message": "hello"})

    assert response.json() == {"decoded": {"message": "hello"}}
    assert captured[0].request.payload == '{"message":"hello"}'
    assert orjson.loads(captured[0].response.payload) == {"decoded": {"message": "hello"}}


@pytest.mark.asyncio
async def test_malformed_body_does_not_change_response():
    app, captured = instrumented_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post(
            "/echo",
            content=b"{invalid json}",
            headers={"Content-Type": "application/json"},
        )

    assert response.status_code == 200
    assert response.json() == {"decoded": None}
    assert len(captured) == 1
    assert captured[0].request.payload == ""


@pytest.mark.asyncio
async def test_handler_can_still_read_body():
    """Bytes consumed for decoding are replayed to the handler."""
    app, captured = instrumented_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.put("/raw", content=b"name=inspectr", headers={"Content-Type": "text/plain"})

    assert response.text == "name=inspectr"
    assert captured[0].request.payload == "name=inspectr"


@pytest.mark.asyncio
async def test_non_http_scope_passes_through():
    calls = []

    async def app(scope, receive, send):
        calls.append(scope["type"])

    middleware = InspectrMiddleware(app, recorder=recording_recorder()[0])
    await middleware({"type": "lifespan"}, None, None)
    assert calls == ["lifespan"]


@pytest.mark.asyncio
async def test_demo_routes():
    recorder, captured = recording_recorder()
    app = FastAPI()
    app.add_middleware(InspectrMiddleware, recorder=recorder)
    app.include_router(demo_app.router)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        created = await client.post("/api/services/inspectr", json={"message": "hi", "user": "me"})
        rejected = await client.post("/api/services/inspectr", json={"message": "hi"})
        updated = await client.put("/api/services/inspectr", json={"name": "new"})
        deleted = await client.delete("/api/services/inspectr")
        redirected = await client.get("/changelog", follow_redirects=False)
        failed = await client.get("/error")

    assert created.status_code == 200
    assert rejected.status_code == 400
    assert updated.json() == {"message": "Service updated", "data": {"name": "new"}}
    assert deleted.status_code == 204
    assert redirected.status_code == 302
    assert failed.status_code == 500

    statuses = [t.response.status_code for t in captured]
    assert statuses == [200, 400, 200, 204, 302, 500]
    assert captured[2].request.payload == '{"name":"new"}'


@pytest.mark.asyncio
async def test_publish_reaches_connected_subscribers():
    subscriber = hub.connect()
    try:
        async with AsyncClient(transport=ASGITransport(app=hub_app), base_url="http://test") as client:
            response = await client.post("/api/sse", json={"hello": "world"})

        assert response.status_code == 200
        assert response.json()["status"] == "Broadcast sent"
        assert response.json()["delivered"] >= 1

        frames = subscriber.frames()
        assert await frames.__anext__() == CONNECTED_FRAME
        frame = await frames.__anext__()
        await frames.aclose()
    finally:
        hub.disconnect(subscriber)

    assert frame.startswith("data: ")
    event = orjson.loads(frame[len("data: "):])
    assert event["specversion"] == "1.0"
    assert event["data"] == {"hello": "world"}


@pytest.mark.asyncio
async def test_publish_enveloped_body_with_non_string_id():
    """Enveloped bodies are acknowledged and fanned out unchanged."""
    message = {"specversion": "1.0", "id": 7, "data": {"x": 1}}
    subscriber = hub.connect()
    try:
        async with AsyncClient(transport=ASGITransport(app=hub_app), base_url="http://test") as client:
            response = await client.post("/api/sse", json=message)

        assert response.status_code == 200
        assert response.json()["status"] == "Broadcast sent"

        frames = subscriber.frames()
        assert await frames.__anext__() == CONNECTED_FRAME
        frame = await frames.__anext__()
        await frames.aclose()
    finally:
        hub.disconnect(subscriber)

    assert orjson.loads(frame[len("data: "):]) == message


@pytest.mark.asyncio
async def test_capture_broadcast_to_hub_end_to_end():
    """A captured exchange travels through the broadcaster to a hub subscriber."""
    sink = Broadcaster(
        url="http://hub.test/api/sse",
        transport=ASGITransport(app=hub_app),
    )
    recorder = TransactionRecorder(broadcaster=sink, broadcast=True, print_summary=False)
    app = FastAPI()
    app.add_middleware(InspectrMiddleware, recorder=recorder)

    @app.get("/ping")
    async def ping():
        return PlainTextResponse("Pong")

    subscriber = hub.connect()
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            await client.get("/ping")
        await sink.drain()

        frames = subscriber.frames()
        assert await frames.__anext__() == CONNECTED_FRAME
        frame = await frames.__anext__()
        await frames.aclose()
    finally:
        hub.disconnect(subscriber)

    event = orjson.loads(frame[len("data: "):])
    assert event["type"] == "com.inspectr.http"
    assert event["data"]["path"] == "/ping"
    assert event["data"]["response"]["payload"] == "Pong"
    assert event["data"]["response"]["statusCode"] == 200
