"""Pytest configuration and fixtures."""
from typing import Any, Dict, List

import pytest


def build_scope(
    method: str = "GET",
    path: str = "/",
    query_string: bytes = b"",
    headers: Dict[str, str] | List[tuple] | None = None,
    client: tuple = ("127.0.0.1", 51000),
    scheme: str = "http",
) -> Dict[str, Any]:
    if isinstance(headers, dict):
        raw_headers = [(k.lower().encode(), v.encode()) for k, v in headers.items()]
    else:
        raw_headers = [(k.lower().encode(), v.encode()) for k, v in (headers or [])]
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "scheme": scheme,
        "path": path,
        "raw_path": path.encode(),
        "query_string": query_string,
        "headers": raw_headers,
        "client": client,
        "server": ("testserver", 80),
    }


class FakeReceive:
    """ASGI receive channel that hands out body chunks and counts calls."""

    def __init__(self, *chunks: bytes):
        self.messages = [
            {"type": "http.request", "body": chunk, "more_body": i < len(chunks) - 1}
            for i, chunk in enumerate(chunks)
        ] or [{"type": "http.request", "body": b"", "more_body": False}]
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.messages:
            return self.messages.pop(0)
        return {"type": "http.disconnect"}


class FakeSend:
    """ASGI send channel that records every message."""

    def __init__(self):
        self.messages: List[Dict[str, Any]] = []

    async def __call__(self, message):
        self.messages.append(message)

    @property
    def body(self) -> bytes:
        return b"".join(m.get("body", b"") for m in self.messages if m["type"] == "http.response.body")


def simple_app(status: int = 200, chunks=(b"ok",), headers=None, read_body: bool = True):
    """ASGI app that optionally drains the request body, then answers with ``chunks``."""
    calls = {"count": 0, "body": b""}

    async def app(scope, receive, send):
        calls["count"] += 1
        if read_body:
            while True:
                message = await receive()
                calls["body"] += message.get("body", b"")
                if not message.get("more_body", False):
                    break
        await send({
            "type": "http.response.start",
            "status": status,
            "headers": headers or [(b"content-type", b"text/plain; charset=utf-8")],
        })
        for i, chunk in enumerate(chunks):
            await send({"type": "http.response.body", "body": chunk, "more_body": i < len(chunks) - 1})

    app.calls = calls
    return app


@pytest.fixture
def make_scope():
    return build_scope


@pytest.fixture
def make_receive():
    return FakeReceive


@pytest.fixture
def make_send():
    return FakeSend


@pytest.fixture
def make_app():
    return simple_app
