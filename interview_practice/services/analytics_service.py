"""
Practice analytics.

Read-only folds over a user's sessions. Nothing here is stored: every figure
is recomputed from the turns on each request, so a turn recorded while a fold
is running is either fully counted or not counted at all.

Pure functions (overall_average, score_trend, category_breakdown, compare,
practice_history) take sessions directly; AnalyticsService fetches them from
the repository for a given user.
"""

from collections import Counter
from datetime import datetime
from statistics import fmean
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import structlog
from pydantic import BaseModel, Field

from interview_practice.core.config import settings
from interview_practice.core.exceptions import InvalidArgumentError
from interview_practice.domain.models.session import Session, SessionStatus, mean_overall
from interview_practice.domain.models.turn import SCORE_DIMENSIONS
from interview_practice.persistence.repositories.session_repo import SessionRepository

log = structlog.get_logger(__name__)


# =============================================================================
# Result models
# =============================================================================


class TrendPoint(BaseModel):
    """Average overall score of one session, dated by its creation day."""

    date: str
    session_id: str
    persona_name: str
    avg_score: float


class SessionComparison(BaseModel):
    session_id: str
    persona_name: str
    date: str
    questions_answered: int
    scores: Optional[Dict[str, float]] = None


class RecentSession(BaseModel):
    session_id: str
    persona_name: str
    status: SessionStatus
    questions_count: int
    recordings_count: int
    created_at: datetime


class PracticeHistory(BaseModel):
    """Aggregate statistics across all of a user's sessions."""

    total_sessions: int = 0
    completed_sessions: int = 0
    total_recordings: int = 0
    avg_overall_score: Optional[float] = None
    category_breakdown: Dict[str, int] = Field(default_factory=dict)
    score_trend: List[TrendPoint] = Field(default_factory=list)
    recent_sessions: List[RecentSession] = Field(default_factory=list)


# =============================================================================
# Folds
# =============================================================================


def _day(value: datetime) -> str:
    return value.date().isoformat()


def overall_average(sessions: Iterable[Session]) -> Optional[float]:
    """Mean overall score across every scored turn of every session."""
    turns = [turn for session in sessions for turn in session.turns]
    return mean_overall(turns)


def score_trend(sessions: Iterable[Session]) -> List[TrendPoint]:
    """Per-session average, oldest first, for sessions with at least one scored turn."""
    points = []
    for session in sorted(sessions, key=lambda s: s.created_at):
        avg = mean_overall(session.turns)
        if avg is None:
            continue
        points.append(
            TrendPoint(
                date=_day(session.created_at),
                session_id=session.session_id,
                persona_name=session.persona_name,
                avg_score=avg,
            )
        )
    return points


def category_breakdown(sessions: Iterable[Session]) -> Dict[str, int]:
    """Number of questions asked per category."""
    counts: Counter = Counter(
        turn.category
        for session in sessions
        for turn in session.turns
        if turn.category is not None
    )
    return dict(counts)


def dimension_means(session: Session) -> Optional[Dict[str, float]]:
    """Mean of each score dimension over the session's scored turns."""
    scored = session.scored_turns
    if not scored:
        return None
    return {
        dim: round(fmean(getattr(turn.analysis, dim) for turn in scored), 2)
        for dim in SCORE_DIMENSIONS
    }


def compare(
    sessions_by_id: Mapping[str, Session],
    session_ids: Sequence[str],
    user_id: str,
) -> List[SessionComparison]:
    """
    Side-by-side scores for the requested sessions.

    Ids that don't resolve, or resolve to another user's session, are
    skipped rather than failing the whole comparison.
    Repeated ids count once.

    Raises:
        InvalidArgumentError: Fewer than two ids requested
    """
    session_ids = list(dict.fromkeys(session_ids))
    if len(session_ids) < 2:
        raise InvalidArgumentError("Provide at least 2 session IDs to compare")

    results = []
    for session_id in session_ids:
        session = sessions_by_id.get(session_id)
        if session is None or session.user_id != user_id:
            log.debug("compare_session_skipped", session_id=session_id)
            continue
        results.append(
            SessionComparison(
                session_id=session.session_id,
                persona_name=session.persona_name,
                date=_day(session.created_at),
                questions_answered=len(session.scored_turns),
                scores=dimension_means(session),
            )
        )
    return results


def practice_history(
    sessions: Sequence[Session], recent_limit: int = 10
) -> PracticeHistory:
    """Full statistics payload. ``sessions`` is expected newest first."""
    recent = [
        RecentSession(
            session_id=s.session_id,
            persona_name=s.persona_name,
            status=s.status,
            questions_count=len(s.turns),
            recordings_count=len(s.scored_turns),
            created_at=s.created_at,
        )
        for s in sessions[:recent_limit]
    ]
    return PracticeHistory(
        total_sessions=len(sessions),
        completed_sessions=sum(1 for s in sessions if s.status == SessionStatus.COMPLETED),
        total_recordings=sum(len(s.scored_turns) for s in sessions),
        avg_overall_score=overall_average(sessions),
        category_breakdown=category_breakdown(sessions),
        score_trend=score_trend(sessions),
        recent_sessions=recent,
    )


# =============================================================================
# Service
# =============================================================================


class AnalyticsService:
    """Fetches a user's sessions and runs the folds over them."""

    def __init__(self, session_repo: SessionRepository, recent_limit: Optional[int] = None):
        self.session_repo = session_repo
        self.recent_limit = recent_limit or settings.recent_sessions_limit

    async def practice_history(self, user_id: str) -> PracticeHistory:
        sessions = await self.session_repo.list_for_user(user_id)
        history = practice_history(sessions, recent_limit=self.recent_limit)
        log.info(
            "practice_history_computed",
            user_id=user_id,
            total_sessions=history.total_sessions,
            total_recordings=history.total_recordings,
        )
        return history

    async def compare_sessions(
        self, user_id: str, session_ids: Sequence[str]
    ) -> List[SessionComparison]:
        session_ids = list(dict.fromkeys(session_ids))
        if len(session_ids) < 2:
            raise InvalidArgumentError("Provide at least 2 session IDs to compare")

        # Each id is looked up on its own; a missing one is simply absent
        sessions_by_id: Dict[str, Session] = {}
        for session_id in session_ids:
            session = await self.session_repo.get(session_id)
            if session is not None:
                sessions_by_id[session_id] = session

        return compare(sessions_by_id, session_ids, user_id)
