"""Push subscription and publish routes."""
from fastapi import APIRouter, Body
from typing import Any

from .schemas import PublishResponse
from ..logging import get_logger
from ..streaming.hub import handle_sse_stream, hub

router = APIRouter(prefix="/api", tags=["sse"])
logger = get_logger()


@router.get("/sse")
async def subscribe():
    """
    Server-Sent Events stream of captured transactions.

    The stream opens with a ``: connected`` comment, then carries one
    ``data: <json>`` frame per published event. Idle streams get periodic
    ``: keep-alive`` comments.

    Example client (JavaScript):
    ```javascript
    const source = new EventSource('http://localhost:4004/api/sse');
    source.onmessage = (event) => {
        const envelope = JSON.parse(event.data);
        console.log(envelope.data.method, envelope.data.path);
    };
    ```
    """
    return handle_sse_stream(hub)


@router.post("/sse", response_model=PublishResponse)
async def publish(message: Any = Body(...)):
    """Fan one JSON body out to every connected subscriber."""
    delivered = hub.publish(message)
    logger.info("sse.broadcast", delivered=delivered)
    return PublishResponse(delivered=delivered)
