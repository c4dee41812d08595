"""Tests for practice analytics."""

from datetime import datetime, timezone

import pytest

from interview_practice.core.exceptions import InvalidArgumentError
from interview_practice.domain.models.session import Session, SessionMode, SessionStatus
from interview_practice.domain.models.turn import AnalysisScores
from interview_practice.services.analytics_service import (
    category_breakdown,
    compare,
    dimension_means,
    overall_average,
    practice_history,
    score_trend,
)


def _scores(overall, clarity=70.0):
    return AnalysisScores(
        clarity=clarity, confidence=60, relevance=80, accuracy=90, overall=overall
    )


def _scripted(persona, day, overalls, user_id="u1", categories=None):
    """Scripted session created on 2025-01-<day> with one scored question per overall."""
    session = Session.start(user_id=user_id, persona=persona, mode=SessionMode.SCRIPTED)
    session.created_at = datetime(2025, 1, day, 10, 0, tzinfo=timezone.utc)
    categories = categories or ["efficacy"] * len(overalls)
    for i, (overall, category) in enumerate(zip(overalls, categories)):
        session.append_question(f"Question {i}", category=category)
        if overall is not None:
            session.record_analysis(i, _scores(overall))
    return session


class TestFolds:
    def test_overall_average(self, dr_lee):
        sessions = [_scripted(dr_lee, 1, [80, 60]), _scripted(dr_lee, 2, [70])]
        assert overall_average(sessions) == 70.0

    def test_overall_average_without_scores(self, dr_lee):
        assert overall_average([_scripted(dr_lee, 1, [None])]) is None
        assert overall_average([]) is None

    def test_trend_is_chronological(self, dr_lee):
        """Trend is oldest first whatever order sessions arrive in."""
        newest = _scripted(dr_lee, 9, [90])
        oldest = _scripted(dr_lee, 1, [50])
        middle = _scripted(dr_lee, 5, [70, 80])

        trend = score_trend([newest, oldest, middle])

        assert [p.session_id for p in trend] == [
            oldest.session_id,
            middle.session_id,
            newest.session_id,
        ]
        assert [p.avg_score for p in trend] == [50.0, 75.0, 90.0]
        assert trend[0].date == "2025-01-01"
        assert trend[0].persona_name == "Dr. Lee"

    def test_trend_skips_unscored_sessions(self, dr_lee):
        unscored = _scripted(dr_lee, 2, [None])
        scored = _scripted(dr_lee, 3, [65])
        chat = Session.start(user_id="u1", persona=dr_lee)

        trend = score_trend([unscored, scored, chat])
        assert [p.session_id for p in trend] == [scored.session_id]

    def test_category_breakdown(self, dr_lee):
        sessions = [
            _scripted(dr_lee, 1, [None, None], categories=["efficacy", "safety"]),
            _scripted(dr_lee, 2, [None], categories=["safety"]),
            Session.start(user_id="u1", persona=dr_lee),
        ]
        assert category_breakdown(sessions) == {"efficacy": 1, "safety": 2}

    def test_dimension_means(self, dr_lee):
        session = _scripted(dr_lee, 1, [80, 60])
        session.record_analysis(1, _scores(60, clarity=50))

        means = dimension_means(session)

        assert means == {
            "clarity": 60.0,
            "confidence": 60.0,
            "relevance": 80.0,
            "accuracy": 90.0,
            "overall": 70.0,
        }

    def test_dimension_means_none(self, dr_lee):
        assert dimension_means(_scripted(dr_lee, 1, [None])) is None


class TestCompare:
    def test_requires_two_ids(self, dr_lee):
        session = _scripted(dr_lee, 1, [80])
        with pytest.raises(InvalidArgumentError):
            compare({session.session_id: session}, [session.session_id], "u1")

    def test_skips_unresolved_and_foreign(self, dr_lee):
        """Unknown ids and other users' sessions are left out, not errors."""
        mine = _scripted(dr_lee, 1, [80])
        also_mine = _scripted(dr_lee, 2, [None])
        theirs = _scripted(dr_lee, 3, [99], user_id="u2")
        by_id = {s.session_id: s for s in (mine, also_mine, theirs)}

        result = compare(
            by_id,
            [mine.session_id, "missing", theirs.session_id, also_mine.session_id],
            "u1",
        )

        assert [c.session_id for c in result] == [mine.session_id, also_mine.session_id]
        assert result[0].questions_answered == 1
        assert result[0].scores["overall"] == 80.0
        assert result[0].date == "2025-01-01"
        assert result[1].scores is None

    def test_repeated_ids_count_once(self, dr_lee):
        first = _scripted(dr_lee, 1, [80])
        second = _scripted(dr_lee, 2, [60])
        by_id = {s.session_id: s for s in (first, second)}

        result = compare(
            by_id,
            [first.session_id, second.session_id, first.session_id],
            "u1",
        )

        assert [c.session_id for c in result] == [first.session_id, second.session_id]

    def test_same_id_twice_is_not_a_comparison(self, dr_lee):
        session = _scripted(dr_lee, 1, [80])
        with pytest.raises(InvalidArgumentError):
            compare({session.session_id: session}, [session.session_id] * 2, "u1")


class TestPracticeHistory:
    def test_stats(self, dr_lee):
        completed = _scripted(dr_lee, 2, [80, 60], categories=["efficacy", "safety"])
        completed.complete()
        active = _scripted(dr_lee, 1, [None])
        # newest first, as the repository returns them
        history = practice_history([completed, active])

        assert history.total_sessions == 2
        assert history.completed_sessions == 1
        assert history.total_recordings == 2
        assert history.avg_overall_score == 70.0
        assert history.category_breakdown == {"efficacy": 2, "safety": 1}
        assert [p.session_id for p in history.score_trend] == [completed.session_id]
        assert history.recent_sessions[0].status == SessionStatus.COMPLETED
        assert history.recent_sessions[0].questions_count == 2
        assert history.recent_sessions[0].recordings_count == 2

    def test_recent_limit(self, dr_lee):
        sessions = [_scripted(dr_lee, day, [None]) for day in range(1, 13)]
        history = practice_history(sessions, recent_limit=10)
        assert len(history.recent_sessions) == 10
        assert history.total_sessions == 12

    def test_empty(self):
        history = practice_history([])
        assert history.total_sessions == 0
        assert history.avg_overall_score is None
        assert history.score_trend == []


class TestAnalyticsService:
    async def test_practice_history_from_repository(self, analytics_service, session_repo, dr_lee):
        await session_repo.create(_scripted(dr_lee, 1, [80]))
        await session_repo.create(_scripted(dr_lee, 2, [60]))
        await session_repo.create(_scripted(dr_lee, 3, [10], user_id="u2"))

        history = await analytics_service.practice_history("u1")

        assert history.total_sessions == 2
        assert history.avg_overall_score == 70.0
        assert [p.avg_score for p in history.score_trend] == [80.0, 60.0]

    async def test_compare_sessions(self, analytics_service, session_repo, dr_lee):
        a = _scripted(dr_lee, 1, [80])
        b = _scripted(dr_lee, 2, [60])
        await session_repo.create(a)
        await session_repo.create(b)

        result = await analytics_service.compare_sessions(
            "u1", [a.session_id, b.session_id, "missing"]
        )

        assert [c.session_id for c in result] == [a.session_id, b.session_id]

    async def test_compare_sessions_needs_two(self, analytics_service):
        with pytest.raises(InvalidArgumentError):
            await analytics_service.compare_sessions("u1", ["only-one"])

    async def test_compare_sessions_repeated_id(self, analytics_service, session_repo, dr_lee):
        session = _scripted(dr_lee, 1, [80])
        await session_repo.create(session)

        with pytest.raises(InvalidArgumentError):
            await analytics_service.compare_sessions(
                "u1", [session.session_id, session.session_id]
            )
