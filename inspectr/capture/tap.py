"""Response tap: mirrors an ASGI response while passing it through untouched."""
import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Tuple

Message = Dict[str, Any]
Send = Callable[[Message], Awaitable[None]]


class ResponseTap:
    """
    Wraps an ASGI ``send`` callable.

    Every message goes to the real ``send`` first, unmodified. Afterwards the
    tap records the status line and headers from ``http.response.start`` and
    buffers the raw bytes of each ``http.response.body`` chunk. When the
    final body chunk (``more_body`` false) has been sent, ``completed``
    resolves with the whole body decoded as UTF-8 in one go, so multi-byte
    characters split across chunks decode correctly.
    """

    def __init__(self, send: Send):
        self._send = send
        self._chunks: List[bytes] = []
        self.status_code: int = 0
        self.raw_headers: List[Tuple[bytes, bytes]] = []
        self.started = False
        self.completed: asyncio.Future[str] = asyncio.get_running_loop().create_future()

    @property
    def finished(self) -> bool:
        return self.completed.done()

    async def send(self, message: Message) -> None:
        await self._send(message)

        if self.finished:
            return

        message_type = message["type"]
        if message_type == "http.response.start":
            self.started = True
            self.status_code = message["status"]
            self.raw_headers = list(message.get("headers", []))
        elif message_type == "http.response.body":
            body = message.get("body", b"")
            if body:
                self._chunks.append(bytes(body))
            if not message.get("more_body", False):
                self.completed.set_result(b"".join(self._chunks).decode("utf-8", errors="replace"))

    # ASGI callables are invoked directly
    __call__ = send
