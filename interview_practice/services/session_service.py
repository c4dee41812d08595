"""
Session orchestration service.

Main entry point for practice turns. Wraps the pure Session transitions with:
- ownership checks against the caller's user id
- a per-session asyncio.Lock so mutations of one session run one at a time
- optimistic version writes, retried from a fresh read on conflict
- reply generation through the GenerationGateway

The caller's turn is persisted before generation starts and the persona's
reply only after generation succeeds, so a failed or abandoned request
leaves a dangling user turn that post_message/resume pick up later.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar

import structlog

from interview_practice.core.config import settings
from interview_practice.core.exceptions import (
    ConcurrentModificationError,
    ForbiddenError,
    GenerationUnavailableError,
    InvalidArgumentError,
    InvalidStateError,
    SessionNotFoundError,
)
from interview_practice.core.persona_loader import PersonaCatalog
from interview_practice.domain.models.session import (
    Session,
    SessionMode,
    SessionSnapshot,
)
from interview_practice.domain.models.turn import AnalysisScores, Turn
from interview_practice.llm.gateway import GenerationGateway, SamplingConfig
from interview_practice.llm.prompts import (
    compose_conversation_prompt,
    compose_system_prompt,
)
from interview_practice.persistence.repositories.session_repo import SessionRepository

log = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass
class MessageResult:
    """Outcome of one chat exchange."""

    session_id: str
    reply: str
    conversation_length: int
    resumed: bool = False


class SessionService:
    """Orchestrates practice session mutations and reads."""

    def __init__(
        self,
        session_repo: SessionRepository,
        persona_catalog: PersonaCatalog,
        gateway: GenerationGateway,
        sampling: Optional[SamplingConfig] = None,
        word_limit: Optional[int] = None,
        caller_label: Optional[str] = None,
        retry_limit: Optional[int] = None,
    ):
        """
        Args:
            session_repo: Session storage
            persona_catalog: Persona lookup
            gateway: Text-generation gateway for chat replies
            sampling: Sampling parameters (defaults to settings)
            word_limit: Reply word ceiling requested in the prompt
            caller_label: Transcript label for the caller
            retry_limit: Attempts per mutation before a version conflict is surfaced
        """
        self.session_repo = session_repo
        self.personas = persona_catalog
        self.gateway = gateway
        self.sampling = sampling or SamplingConfig.from_settings()
        self.word_limit = word_limit or settings.response_word_limit
        self.caller_label = caller_label or settings.caller_label
        self.retry_limit = retry_limit or settings.mutation_retry_limit

        # Entries live only while some request holds or waits on the lock
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    # ==================== INTERNALS ====================

    @asynccontextmanager
    async def _session_lock(self, session_id: str) -> AsyncIterator[None]:
        """Serialise work on one session; the entry is dropped once unused."""
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        self._lock_users[session_id] = self._lock_users.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[session_id] -= 1
            if self._lock_users[session_id] == 0:
                del self._lock_users[session_id]
                del self._locks[session_id]

    async def _load(self, session_id: str, user_id: str) -> Session:
        session = await self.session_repo.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        if session.user_id != user_id:
            log.warning("session_access_denied", session_id=session_id, user_id=user_id)
            raise ForbiddenError(f"Session {session_id} belongs to another user")
        return session

    async def _mutate(
        self,
        session_id: str,
        user_id: str,
        operation: str,
        apply: Callable[[Session], Awaitable[T]],
    ) -> T:
        """Load, apply and persist, re-reading on a version conflict.

        ``apply`` mutates the freshly loaded session and persists the change
        through the repository, which rejects stale versions.
        """
        attempt = 0
        while True:
            attempt += 1
            session = await self._load(session_id, user_id)
            try:
                return await apply(session)
            except ConcurrentModificationError:
                if attempt >= self.retry_limit:
                    log.error(
                        "mutation_conflict_exhausted",
                        session_id=session_id,
                        operation=operation,
                        attempts=attempt,
                    )
                    raise
                log.warning(
                    "mutation_conflict_retry",
                    session_id=session_id,
                    operation=operation,
                    attempt=attempt,
                )

    async def _append(self, session: Session, turn: Turn) -> None:
        session.version = await self.session_repo.append_turn(
            session.session_id, turn, session.version
        )

    async def _update(self, session: Session, turn: Turn) -> None:
        session.version = await self.session_repo.update_turn(
            session.session_id, turn, session.version
        )

    async def _generate_reply(self, session: Session) -> str:
        persona = self.personas.get(session.persona_id)
        system_prompt = compose_system_prompt(persona)
        user_prompt = compose_conversation_prompt(
            persona,
            session.turns,
            word_limit=self.word_limit,
            caller_label=self.caller_label,
        )
        try:
            return await self.gateway.generate(system_prompt, user_prompt, self.sampling)
        except GenerationUnavailableError as e:
            log.error(
                "reply_generation_failed",
                session_id=session.session_id,
                turn_count=len(session.turns),
                error=e.message,
            )
            raise

    async def _append_reply(self, session_id: str, user_id: str, reply: str) -> int:
        async def apply(session: Session) -> int:
            turn = session.append_assistant_turn(reply)
            await self._append(session, turn)
            return len(session.turns)

        return await self._mutate(session_id, user_id, "append_reply", apply)

    # ==================== LIFECYCLE ====================

    async def start_session(
        self,
        user_id: str,
        persona_id: str,
        mode: SessionMode = SessionMode.CHAT,
    ) -> Session:
        """
        Create a new session against a catalog persona.

        Raises:
            PersonaNotFoundError: Unknown persona id
        """
        persona = self.personas.get(persona_id)
        session = Session.start(user_id=user_id, persona=persona, mode=mode)
        await self.session_repo.create(session)

        log.info(
            "session_started",
            session_id=session.session_id,
            user_id=user_id,
            persona_id=persona_id,
            mode=mode.value,
        )
        return session

    async def complete_session(self, session_id: str, user_id: str) -> SessionSnapshot:
        """Freeze the session. Completing twice returns the same snapshot."""
        async with self._session_lock(session_id):

            async def apply(session: Session) -> SessionSnapshot:
                if session.complete():
                    session.version = await self.session_repo.mark_completed(
                        session_id, session.completed_at, session.version
                    )
                    log.info(
                        "session_completed",
                        session_id=session_id,
                        turn_count=len(session.turns),
                        overall_score=session.overall_score,
                    )
                return session.snapshot()

            return await self._mutate(session_id, user_id, "complete", apply)

    # ==================== CHAT ====================

    async def post_message(self, session_id: str, user_id: str, text: str) -> MessageResult:
        """
        Append the caller's message and generate the persona's reply.

        If the session already ends with an unanswered caller turn carrying the
        same text (an earlier request failed or was abandoned), that turn is
        reused instead of appended again.

        Raises:
            InvalidArgumentError: Empty message
            InvalidStateError: Scripted or completed session
            GenerationUnavailableError: Backend failed; the caller's turn stays persisted
        """
        if not text or not text.strip():
            raise InvalidArgumentError("Message text must not be empty")

        async with self._session_lock(session_id):

            async def add_user_turn(session: Session) -> Tuple[Session, bool]:
                session.require_mode(SessionMode.CHAT, "post_message")
                session.require_active()
                if session.awaiting_reply and session.last_turn.text == text:
                    return session, True
                turn = session.append_user_turn(text)
                await self._append(session, turn)
                return session, False

            session, resumed = await self._mutate(
                session_id, user_id, "post_message", add_user_turn
            )
            if resumed:
                log.info(
                    "dangling_turn_resumed",
                    session_id=session_id,
                    turn_index=session.last_turn.index,
                )

            reply = await self._generate_reply(session)
            length = await self._append_reply(session_id, user_id, reply)

        log.info(
            "message_generated",
            session_id=session_id,
            conversation_length=length,
            reply_length=len(reply),
            resumed=resumed,
        )
        return MessageResult(
            session_id=session_id,
            reply=reply,
            conversation_length=length,
            resumed=resumed,
        )

    async def resume(self, session_id: str, user_id: str) -> MessageResult:
        """
        Generate the reply for a dangling caller turn without new input.

        Raises:
            InvalidStateError: The session is not waiting for a reply
        """
        async with self._session_lock(session_id):
            session = await self._load(session_id, user_id)
            session.require_mode(SessionMode.CHAT, "resume")
            session.require_active()
            if not session.awaiting_reply:
                raise InvalidStateError(
                    f"Session {session_id} has no message waiting for a reply"
                )

            reply = await self._generate_reply(session)
            length = await self._append_reply(session_id, user_id, reply)

        log.info("dangling_turn_resumed", session_id=session_id, conversation_length=length)
        return MessageResult(
            session_id=session_id,
            reply=reply,
            conversation_length=length,
            resumed=True,
        )

    # ==================== SCRIPTED ====================

    async def add_question(
        self,
        session_id: str,
        user_id: str,
        text: str,
        category: Optional[str] = None,
        difficulty: Optional[str] = None,
        time_limit: Optional[int] = None,
    ) -> Turn:
        """Append a question to a scripted session."""
        async with self._session_lock(session_id):

            async def apply(session: Session) -> Turn:
                turn = session.append_question(
                    text, category=category, difficulty=difficulty, time_limit=time_limit
                )
                await self._append(session, turn)
                return turn

            turn = await self._mutate(session_id, user_id, "add_question", apply)

        log.info("question_added", session_id=session_id, question_index=turn.index)
        return turn

    async def record_answer(
        self,
        session_id: str,
        user_id: str,
        question_index: int,
        answer_text: str,
        time_taken: Optional[float] = None,
        confidence: Optional[float] = None,
    ) -> Turn:
        """Merge an answer into the turn at ``question_index``."""
        async with self._session_lock(session_id):

            async def apply(session: Session) -> Turn:
                turn = session.record_answer(
                    question_index, answer_text, time_taken=time_taken, confidence=confidence
                )
                await self._update(session, turn)
                return turn

            turn = await self._mutate(session_id, user_id, "record_answer", apply)

        log.info("answer_recorded", session_id=session_id, question_index=question_index)
        return turn

    async def record_analysis(
        self,
        session_id: str,
        user_id: str,
        question_index: int,
        analysis: AnalysisScores,
        transcription: Optional[str] = None,
        duration: Optional[float] = None,
    ) -> Turn:
        """Merge an analysed recording into the turn at ``question_index``."""
        async with self._session_lock(session_id):

            async def apply(session: Session) -> Turn:
                turn = session.record_analysis(
                    question_index, analysis, transcription=transcription, duration=duration
                )
                await self._update(session, turn)
                return turn

            turn = await self._mutate(session_id, user_id, "record_analysis", apply)

        log.info(
            "analysis_recorded",
            session_id=session_id,
            question_index=question_index,
            overall=analysis.overall,
        )
        return turn

    # ==================== READS ====================

    async def get_session(self, session_id: str, user_id: str) -> SessionSnapshot:
        session = await self._load(session_id, user_id)
        return session.snapshot()

    async def get_conversation_history(self, session_id: str, user_id: str) -> Session:
        """The session with its ordered turns, for transcript views."""
        return await self._load(session_id, user_id)

    async def list_sessions(self, user_id: str) -> List[Session]:
        """The caller's sessions, newest first."""
        return await self.session_repo.list_for_user(user_id)
