"""
Request body decoding keyed by content type.

The body is read from the ASGI receive channel at most once. Whatever was
read is replayed to the downstream application through BodyReader.receive,
so the instrumented app sees the exact same messages it would have seen
without capture.
"""
import codecs
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Dict, List, Tuple
from urllib.parse import parse_qsl

import orjson
import structlog
from starlette.datastructures import Headers

from ..config import get_settings
from ..errors import BodyTooLarge, MalformedBody

log = structlog.get_logger()

Message = Dict[str, Any]
Receive = Callable[[], Awaitable[Message]]
Decoder = Callable[[bytes, str], Any]

BODYLESS_METHODS = ("GET", "HEAD")


class ContentTypes:
    TEXT_PLAIN = "text/plain"
    APPLICATION_FORM = "application/x-www-form-urlencoded"
    APPLICATION_JSON = "application/json"


def parse_content_type(content_type: str) -> Tuple[str, str]:
    """
    Split a content-type header into (media type, charset).

    >>> parse_content_type("Application/JSON; charset=UTF-8")
    ('application/json', 'utf-8')
    """
    media_type, _, params = content_type.partition(";")
    charset = "utf-8"
    for param in params.split(";"):
        key, _, value = param.strip().partition("=")
        if key.lower() == "charset" and value:
            charset = value.strip().strip('"').lower()
    try:
        codecs.lookup(charset)
    except LookupError:
        charset = "utf-8"
    return media_type.strip().lower(), charset


def decode_text(body: bytes, charset: str) -> str:
    return body.decode(charset)


def decode_json(body: bytes, charset: str) -> Any:
    if not body.strip():
        return {}
    if charset not in ("utf-8", "utf8"):
        body = body.decode(charset).encode("utf-8")
    return orjson.loads(body)


def decode_form(body: bytes, charset: str) -> Dict[str, str]:
    # Repeated keys: the last value wins
    return dict(parse_qsl(body.decode(charset), keep_blank_values=True))


def decode_any(body: bytes, charset: str, media_type: str = "") -> Any:
    """Best-effort decoding for content types without a dedicated decoder."""
    if media_type.endswith("+json"):
        return decode_json(body, charset)
    return body.decode(charset, errors="replace")


DEFAULT_DECODERS: Dict[str, Decoder] = {
    ContentTypes.TEXT_PLAIN: decode_text,
    ContentTypes.APPLICATION_FORM: decode_form,
    ContentTypes.APPLICATION_JSON: decode_json,
}


class BodyReader:
    """
    Reads an ASGI request body once, up to a byte limit.

    Messages pulled from the original receive channel are queued and handed
    back, in order, by ``receive()`` before it delegates to the original
    channel again. When the limit is exceeded reading stops early; the
    remaining messages are never touched here and flow straight through.
    """

    def __init__(self, receive: Receive, limit: int):
        self._receive = receive
        self._pending: Deque[Message] = deque()
        self._body: bytes | None = None
        self.limit = limit
        self.size = 0
        self.truncated = False

    @property
    def consumed(self) -> bool:
        """Whether anything was read from the original channel."""
        return self._body is not None

    async def read(self) -> bytes:
        if self._body is not None:
            return self._body

        chunks: List[bytes] = []
        while True:
            message = await self._receive()
            self._pending.append(message)
            if message["type"] != "http.request":
                break
            chunk = message.get("body", b"")
            self.size += len(chunk)
            if self.size > self.limit:
                self.truncated = True
                break
            chunks.append(chunk)
            if not message.get("more_body", False):
                break

        self._body = b"".join(chunks)
        return self._body

    async def receive(self) -> Message:
        if self._pending:
            return self._pending.popleft()
        return await self._receive()


class ContentDecoder:
    """
    Pluggable request body decoder.

    Dispatches on the media type of the content-type header (parameters
    stripped). Types without a registered decoder go to ``decode_any``.
    """

    def __init__(self, limit: int | None = None, decoders: Dict[str, Decoder] | None = None):
        """
        Args:
            limit: Maximum body size in bytes (defaults to BODY_LIMIT)
            decoders: Extra decoders by media type, merged over the defaults
        """
        self.limit = limit if limit is not None else get_settings().BODY_LIMIT
        self._decoders = dict(DEFAULT_DECODERS)
        if decoders:
            self._decoders.update(decoders)

    def register(self, media_type: str, decoder: Decoder):
        self._decoders[media_type.lower()] = decoder
        log.debug("decoder.registered", media_type=media_type)

    def reader(self, receive: Receive) -> BodyReader:
        return BodyReader(receive, self.limit)

    def decode(self, content_type: str, body: bytes) -> Any:
        """
        Decode raw body bytes for the given content-type header.

        Raises:
            BodyTooLarge: body exceeds the limit
            MalformedBody: the selected decoder rejected the bytes
        """
        if len(body) > self.limit:
            raise BodyTooLarge(self.limit, len(body), content_type)

        media_type, charset = parse_content_type(content_type)
        decoder = self._decoders.get(media_type)
        try:
            if decoder is None:
                return decode_any(body, charset, media_type=media_type)
            return decoder(body, charset)
        except ValueError as e:
            raise MalformedBody(
                f"Could not parse {media_type} body: {e}", content_type=content_type
            ) from e

    async def decode_request(self, scope: Dict[str, Any], reader: BodyReader) -> Any:
        """
        Decode the body of the exchange described by ``scope``.

        A body already decoded upstream (``scope["state"]["body"]``) is
        returned unchanged. GET/HEAD requests and requests without a
        content-type yield ``{}`` without reading anything.
        """
        state = scope.setdefault("state", {})
        if "body" in state:
            return state["body"]

        content_type = Headers(scope=scope).get("content-type", "")
        method = scope.get("method", "GET").upper()
        if not content_type or method in BODYLESS_METHODS:
            state["body"] = {}
            return state["body"]

        body = await reader.read()
        if reader.truncated:
            raise BodyTooLarge(self.limit, reader.size, content_type)

        # Later middleware and handlers can reuse the decoded value
        state["body"] = self.decode(content_type, body)
        return state["body"]
