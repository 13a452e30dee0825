from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse, Response
from typing import Any, AsyncIterator
import httpx

from .schemas import HealthResponse, ReplayResponse
from ..health import HealthChecker
from ..logging import get_logger
from ..services.replay import parse_replay_event, replay
from ..streaming.hub import hub

router = APIRouter(prefix="/api")
health_checker = HealthChecker(hub=hub)
logger = get_logger()

# Statuses that must not carry a body
BODYLESS_STATUSES = {204, 304}


async def get_replay_client() -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient() as client:
        yield client


@router.get("/health", response_model=HealthResponse)
async def health():
    """Liveness probe: fixed "ok" status plus the current server time."""
    logger.debug("health_check_liveness")
    return health_checker.liveness()


@router.post("/replay", response_model=ReplayResponse)
async def replay_event(
    event: Any = Body(None),
    client: httpx.AsyncClient = Depends(get_replay_client),
):
    """
    Re-issue a captured request.

    The body is a captured transaction (or any object with ``method`` and
    ``url``, plus optional ``request.payload`` and ``request.headers``).
    The reply mirrors the upstream status code and carries its body text.
    """
    request = parse_replay_event(event)
    status, text = await replay(request, client=client)
    if status < 200 or status in BODYLESS_STATUSES:
        return Response(status_code=status)
    return JSONResponse(
        status_code=status,
        content=ReplayResponse(status=status, data=text).model_dump(),
    )
