"""Digest read endpoint."""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from firenews.schemas.digest import DigestResponse, PendingResponse
from firenews.services.orchestrator import (
    DigestOrchestrator,
    DigestState,
    get_orchestrator,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/digest", tags=["digest"])


@router.get(
    "",
    response_model=DigestResponse,
    response_model_exclude_none=True,
    responses={status.HTTP_202_ACCEPTED: {"model": PendingResponse}},
)
async def get_digest(
    background_tasks: BackgroundTasks,
    orchestrator: DigestOrchestrator = Depends(get_orchestrator),
) -> DigestResponse | JSONResponse:
    """Return the cached digest instantly.

    A stale digest is returned with ``stale: true``; when nothing has been
    generated yet the response is 202 ``{"pending": true}``. In both cases a
    regeneration runs after the response is sent.
    """
    try:
        outcome = orchestrator.read()
    except Exception as exc:
        logger.exception("Digest read failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load digest",
        ) from exc

    if outcome.deferred is not None:
        background_tasks.add_task(outcome.deferred.run)

    if outcome.digest is None:
        return JSONResponse(
            status_code=status.HTTP_202_ACCEPTED,
            content=PendingResponse().model_dump(),
        )

    stale = True if outcome.state == DigestState.STALE else None
    return DigestResponse(**outcome.digest.model_dump(), stale=stale)
