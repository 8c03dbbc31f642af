"""Refresh endpoint for the daily cron and manual seeding."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from firenews.auth import verify_refresh_secret
from firenews.schemas.digest import RefreshResponse
from firenews.services.orchestrator import DigestOrchestrator, get_orchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/refresh", tags=["refresh"])


@router.api_route(
    "",
    methods=["GET", "POST"],
    response_model=RefreshResponse,
    dependencies=[Depends(verify_refresh_secret)],
)
async def trigger_refresh(
    orchestrator: DigestOrchestrator = Depends(get_orchestrator),
) -> RefreshResponse:
    """Regenerate the digest now, regardless of freshness.

    Runs fetch, aggregate, synthesize and store synchronously and returns
    the record and section counts.
    """
    logger.info("Digest refresh requested")
    try:
        result = await orchestrator.refresh()
    except Exception as exc:
        logger.exception("Digest refresh failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Refresh failed: {type(exc).__name__}",
        ) from exc

    return RefreshResponse(
        ok=True,
        record_count=result["record_count"],
        section_count=result["section_count"],
        generated_at=result["generated_at"],
    )
