"""Re-issue a captured request."""
from typing import Any, Dict, List, Tuple

import httpx
import structlog
from pydantic import BaseModel, Field, ValidationError

from ..errors import ReplayError, ReplayValidationError
from ..models import HeaderValue

log = structlog.get_logger()

# Recomputed by the client for the new request
SKIPPED_HEADERS = {"host", "content-length", "transfer-encoding", "connection"}


class ReplayedRequest(BaseModel):
    payload: str | None = None
    headers: Dict[str, HeaderValue] = Field(default_factory=dict)


class ReplayRequest(BaseModel):
    method: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    request: ReplayedRequest | None = None

    def header_items(self) -> List[Tuple[str, str]]:
        items: List[Tuple[str, str]] = []
        if not self.request:
            return items
        for name, value in self.request.headers.items():
            if name.lower() in SKIPPED_HEADERS:
                continue
            values = value if isinstance(value, list) else [value]
            items.extend((name, v) for v in values)
        return items

    def body(self) -> str | None:
        if self.method.upper() in ("GET", "HEAD") or not self.request:
            return None
        return self.request.payload


def parse_replay_event(event: Any) -> ReplayRequest:
    """
    Validate a replay event (a captured transaction or a subset of one).

    Raises:
        ReplayValidationError: method or url missing or empty
    """
    if not isinstance(event, dict):
        raise ReplayValidationError([{"msg": "event must be a JSON object"}])
    try:
        return ReplayRequest.model_validate(event)
    except ValidationError as e:
        raise ReplayValidationError(e.errors(include_url=False, include_context=False)) from e


async def replay(event: ReplayRequest, client: httpx.AsyncClient | None = None) -> Tuple[int, str]:
    """
    Send the described request and return (status code, body text).

    Raises:
        ReplayError: the request could not be completed
    """
    method = event.method.upper()
    log.info("replay.started", method=method, url=event.url)
    try:
        if client is None:
            async with httpx.AsyncClient() as own_client:
                response = await own_client.request(
                    method, event.url, headers=event.header_items(), content=event.body()
                )
        else:
            response = await client.request(
                method, event.url, headers=event.header_items(), content=event.body()
            )
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        log.error("replay.failed", method=method, url=event.url, error=str(e))
        raise ReplayError(str(e), method=method, url=event.url) from e

    log.info("replay.completed", method=method, url=event.url, status=response.status_code)
    return response.status_code, response.text
