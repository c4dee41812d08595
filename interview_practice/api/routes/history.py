"""
Practice history and persona routes.
"""

from fastapi import APIRouter
import structlog

from interview_practice.api.dependencies import (
    AnalyticsServiceDep,
    CurrentUser,
    PersonaCatalogDep,
)
from interview_practice.api.schemas import (
    CompareRequest,
    CompareResponse,
    HistoryResponse,
    PersonaListResponse,
)

log = structlog.get_logger(__name__)

router = APIRouter(tags=["history"])


@router.get("/history", response_model=HistoryResponse)
async def get_practice_history(user_id: CurrentUser, analytics: AnalyticsServiceDep):
    """Totals, average score, category breakdown, score trend and recent sessions."""
    history = await analytics.practice_history(user_id)
    return HistoryResponse(stats=history)


@router.post("/history/compare", response_model=CompareResponse)
async def compare_sessions(
    request: CompareRequest,
    user_id: CurrentUser,
    analytics: AnalyticsServiceDep,
):
    """Compare dimension scores across two or more of the caller's sessions."""
    comparison = await analytics.compare_sessions(user_id, request.session_ids)
    log.info(
        "sessions_compared",
        requested=len(request.session_ids),
        returned=len(comparison),
    )
    return CompareResponse(comparison=comparison)


@router.get("/personas", response_model=PersonaListResponse)
async def list_personas(catalog: PersonaCatalogDep):
    """Available personas, id to display name."""
    return PersonaListResponse(personas=catalog.list_personas())
