"""Tests for SessionService."""

import asyncio
from unittest.mock import patch

import pytest

from interview_practice.core.exceptions import (
    ConcurrentModificationError,
    ForbiddenError,
    GenerationTimeoutError,
    InvalidArgumentError,
    InvalidStateError,
    PersonaNotFoundError,
    SessionCompletedError,
    SessionNotFoundError,
    TurnNotFoundError,
)
from interview_practice.domain.models.session import SessionMode, SessionStatus
from interview_practice.domain.models.turn import AnalysisScores, TurnRole

DR_LEE_REPLY = "Weak. What trial supports that?"


def _scores(overall):
    return AnalysisScores(clarity=60, confidence=65, relevance=70, accuracy=75, overall=overall)


class TestChatFlow:
    async def test_dr_lee_scenario(self, session_service, session_repo, mock_gateway):
        """Opening turn, one exchange, conversation length 3."""
        session = await session_service.start_session("u1", "dr_lee")
        assert "Dr. Lee" in session.turns[0].text
        assert "Why this drug?" in session.turns[0].text

        result = await session_service.post_message(
            session.session_id, "u1", "Because it lowers LDL"
        )

        assert result.reply == DR_LEE_REPLY
        assert result.conversation_length == 3
        assert result.resumed is False

        stored = await session_repo.get(session.session_id)
        assert [t.role for t in stored.turns] == [
            TurnRole.ASSISTANT,
            TurnRole.USER,
            TurnRole.ASSISTANT,
        ]
        assert stored.turns[1].text == "Because it lowers LDL"
        assert stored.turns[2].text == DR_LEE_REPLY

    async def test_prompt_includes_transcript(self, session_service, mock_gateway):
        session = await session_service.start_session("u1", "dr_lee")
        await session_service.post_message(session.session_id, "u1", "Because it lowers LDL")

        system_prompt, user_prompt, sampling = mock_gateway.generate.call_args.args
        assert "Dr. Lee" in system_prompt
        assert "MSL: Because it lowers LDL" in user_prompt
        assert sampling.max_tokens == 200

    async def test_unknown_persona(self, session_service):
        with pytest.raises(PersonaNotFoundError):
            await session_service.start_session("u1", "dr_nobody")

    async def test_empty_message_rejected(self, session_service):
        session = await session_service.start_session("u1", "dr_lee")
        with pytest.raises(InvalidArgumentError):
            await session_service.post_message(session.session_id, "u1", "   ")

    async def test_message_on_scripted_session(self, session_service):
        session = await session_service.start_session("u1", "dr_lee", mode=SessionMode.SCRIPTED)
        with pytest.raises(InvalidStateError):
            await session_service.post_message(session.session_id, "u1", "hello")

    async def test_message_on_completed_session(self, session_service, session_repo):
        session = await session_service.start_session("u1", "dr_lee")
        await session_service.complete_session(session.session_id, "u1")

        with pytest.raises(SessionCompletedError):
            await session_service.post_message(session.session_id, "u1", "hello")

        stored = await session_repo.get(session.session_id)
        assert len(stored.turns) == 1

    async def test_concurrent_messages_serialise(self, session_service, session_repo, mock_gateway):
        """Parallel messages to one session produce gap-free, non-duplicated indices."""

        async def slow_reply(*args, **kwargs):
            await asyncio.sleep(0.01)
            return DR_LEE_REPLY

        mock_gateway.generate.side_effect = slow_reply
        session = await session_service.start_session("u1", "dr_lee")

        results = await asyncio.gather(
            *(
                session_service.post_message(session.session_id, "u1", f"message {i}")
                for i in range(5)
            )
        )

        stored = await session_repo.get(session.session_id)
        assert [t.index for t in stored.turns] == list(range(11))
        assert sorted(r.conversation_length for r in results) == [3, 5, 7, 9, 11]
        roles = [t.role for t in stored.turns]
        assert roles[1::2] == [TurnRole.USER] * 5
        assert roles[2::2] == [TurnRole.ASSISTANT] * 5


class TestDanglingTurns:
    async def test_generation_failure_keeps_user_turn(self, session_service, session_repo, mock_gateway):
        """The caller's turn is persisted, the reply is not."""
        session = await session_service.start_session("u1", "dr_lee")
        mock_gateway.generate.side_effect = GenerationTimeoutError("timed out")

        with pytest.raises(GenerationTimeoutError):
            await session_service.post_message(session.session_id, "u1", "Because it lowers LDL")

        stored = await session_repo.get(session.session_id)
        assert len(stored.turns) == 2
        assert stored.turns[-1].role == TurnRole.USER

    async def test_retry_same_text_resumes(self, session_service, session_repo, mock_gateway):
        """Resending the same text does not duplicate the user turn."""
        session = await session_service.start_session("u1", "dr_lee")
        mock_gateway.generate.side_effect = GenerationTimeoutError("timed out")
        with pytest.raises(GenerationTimeoutError):
            await session_service.post_message(session.session_id, "u1", "Because it lowers LDL")

        mock_gateway.generate.side_effect = None
        result = await session_service.post_message(
            session.session_id, "u1", "Because it lowers LDL"
        )

        assert result.resumed is True
        assert result.conversation_length == 3
        stored = await session_repo.get(session.session_id)
        assert [t.text for t in stored.turns[1:]] == ["Because it lowers LDL", DR_LEE_REPLY]

    async def test_different_text_appends(self, session_service, session_repo, mock_gateway):
        session = await session_service.start_session("u1", "dr_lee")
        mock_gateway.generate.side_effect = GenerationTimeoutError("timed out")
        with pytest.raises(GenerationTimeoutError):
            await session_service.post_message(session.session_id, "u1", "first try")

        mock_gateway.generate.side_effect = None
        result = await session_service.post_message(session.session_id, "u1", "second try")

        assert result.resumed is False
        assert result.conversation_length == 4
        stored = await session_repo.get(session.session_id)
        assert [t.role for t in stored.turns] == [
            TurnRole.ASSISTANT,
            TurnRole.USER,
            TurnRole.USER,
            TurnRole.ASSISTANT,
        ]

    async def test_resume_generates_reply(self, session_service, mock_gateway):
        session = await session_service.start_session("u1", "dr_lee")
        mock_gateway.generate.side_effect = GenerationTimeoutError("timed out")
        with pytest.raises(GenerationTimeoutError):
            await session_service.post_message(session.session_id, "u1", "Because it lowers LDL")

        mock_gateway.generate.side_effect = None
        result = await session_service.resume(session.session_id, "u1")

        assert result.reply == DR_LEE_REPLY
        assert result.conversation_length == 3
        assert result.resumed is True

    async def test_resume_without_pending_message(self, session_service):
        session = await session_service.start_session("u1", "dr_lee")
        with pytest.raises(InvalidStateError):
            await session_service.resume(session.session_id, "u1")


class TestScriptedFlow:
    async def test_questions_answers_recordings(self, session_service):
        session = await session_service.start_session("u1", "dr_lee", mode=SessionMode.SCRIPTED)
        sid = session.session_id

        q0 = await session_service.add_question(sid, "u1", "Why this drug?", category="efficacy")
        q1 = await session_service.add_question(sid, "u1", "Any safety signal?", category="safety")
        assert (q0.index, q1.index) == (0, 1)

        # Recording for question 1 arrives before its answer
        await session_service.record_analysis(sid, "u1", 1, _scores(60), transcription="No signal")
        await session_service.record_answer(sid, "u1", 0, "Outcome trials", time_taken=30)
        await session_service.record_analysis(sid, "u1", 0, _scores(80))
        await session_service.record_answer(sid, "u1", 1, "No signal", confidence=0.6)

        snapshot = await session_service.get_session(sid, "u1")
        assert snapshot.overall_score == 70.0
        assert snapshot.answered_questions == 2
        assert snapshot.recorded_answers == 2

    async def test_late_recording_out_of_range(self, session_service):
        session = await session_service.start_session("u1", "dr_lee", mode=SessionMode.SCRIPTED)
        await session_service.add_question(session.session_id, "u1", "Only question")

        with pytest.raises(TurnNotFoundError):
            await session_service.record_analysis(session.session_id, "u1", 3, _scores(50))

    async def test_add_question_to_chat_session(self, session_service):
        session = await session_service.start_session("u1", "dr_lee")
        with pytest.raises(InvalidStateError):
            await session_service.add_question(session.session_id, "u1", "Extra?")


class TestCompletion:
    async def test_complete_twice(self, session_service):
        """The second completion returns the same snapshot."""
        session = await session_service.start_session("u1", "dr_lee")

        first = await session_service.complete_session(session.session_id, "u1")
        second = await session_service.complete_session(session.session_id, "u1")

        assert first.status == SessionStatus.COMPLETED
        assert first == second


class TestOwnership:
    async def test_missing_session(self, session_service):
        with pytest.raises(SessionNotFoundError):
            await session_service.get_session("does-not-exist", "u1")

    async def test_foreign_session(self, session_service):
        """Another user's session is forbidden, for reads and writes."""
        session = await session_service.start_session("u1", "dr_lee")

        with pytest.raises(ForbiddenError):
            await session_service.get_session(session.session_id, "intruder")
        with pytest.raises(ForbiddenError):
            await session_service.post_message(session.session_id, "intruder", "hi")
        with pytest.raises(ForbiddenError):
            await session_service.complete_session(session.session_id, "intruder")

    async def test_list_sessions(self, session_service):
        await session_service.start_session("u1", "dr_lee")
        await session_service.start_session("u1", "dr_lee", mode=SessionMode.SCRIPTED)
        await session_service.start_session("u2", "dr_lee")

        sessions = await session_service.list_sessions("u1")
        assert len(sessions) == 2
        assert {s.user_id for s in sessions} == {"u1"}


class TestVersionConflicts:
    async def test_conflict_is_retried(self, session_service, session_repo):
        """A stale write is re-read and applied once."""
        session = await session_service.start_session("u1", "dr_lee", mode=SessionMode.SCRIPTED)
        real_append = session_repo.append_turn
        calls = 0

        async def flaky_append(*args, **kwargs):
            nonlocal calls
            calls += 1
            if calls == 1:
                raise ConcurrentModificationError("stale")
            return await real_append(*args, **kwargs)

        with patch.object(session_repo, "append_turn", side_effect=flaky_append):
            await session_service.add_question(session.session_id, "u1", "Why this drug?")

        stored = await session_repo.get(session.session_id)
        assert calls == 2
        assert len(stored.turns) == 1
        assert stored.version == 1

    async def test_conflict_retries_exhausted(self, session_service, session_repo):
        session = await session_service.start_session("u1", "dr_lee", mode=SessionMode.SCRIPTED)

        with patch.object(
            session_repo,
            "append_turn",
            side_effect=ConcurrentModificationError("stale"),
        ) as mock_append:
            with pytest.raises(ConcurrentModificationError):
                await session_service.add_question(session.session_id, "u1", "Why this drug?")

        assert mock_append.await_count == 3


class TestSessionLocks:
    async def test_locks_released_for_unknown_sessions(self, session_service):
        """Requests for ids that don't exist leave no lock entries behind."""
        for i in range(50):
            with pytest.raises(SessionNotFoundError):
                await session_service.post_message(f"nope-{i}", "u1", "hello")

        assert session_service._locks == {}
        assert session_service._lock_users == {}

    async def test_locks_released_after_lifecycle(self, session_service, mock_gateway):
        async def slow_reply(*args, **kwargs):
            await asyncio.sleep(0.01)
            return DR_LEE_REPLY

        mock_gateway.generate.side_effect = slow_reply
        session = await session_service.start_session("u1", "dr_lee")

        await asyncio.gather(
            *(
                session_service.post_message(session.session_id, "u1", f"message {i}")
                for i in range(3)
            )
        )
        await session_service.complete_session(session.session_id, "u1")

        assert session_service._locks == {}
        assert session_service._lock_users == {}

    async def test_lock_released_when_generation_fails(self, session_service, mock_gateway):
        session = await session_service.start_session("u1", "dr_lee")
        mock_gateway.generate.side_effect = GenerationTimeoutError("timed out")

        with pytest.raises(GenerationTimeoutError):
            await session_service.post_message(session.session_id, "u1", "hello")

        assert session_service._locks == {}
