"""Session domain models and state machine.

A Session owns an ordered sequence of turns for one user/persona pairing.

Session Lifecycle:
    1. Session.start() creates an active session. Chat sessions are seeded
       with one assistant turn built from the persona's first question;
       scripted sessions start empty and receive questions afterwards.
    2. Turns are appended (append_*) or enriched by question index
       (record_answer / record_analysis) while the session is active.
    3. complete() freezes the session. It is idempotent.

Status Transitions:
    - 'active' -> 'completed' (terminal)

The methods here are pure in-memory transitions. Serialising concurrent
callers and persisting the result is SessionService's job.
"""

from datetime import datetime
from enum import Enum
from statistics import fmean
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from interview_practice.core.exceptions import (
    InvalidStateError,
    SessionCompletedError,
    TurnNotFoundError,
)
from interview_practice.domain.models.persona import Persona
from interview_practice.domain.models.turn import AnalysisScores, Turn, TurnRole, utc_now


class SessionMode(str, Enum):
    """How turns are produced."""

    CHAT = "chat"
    """Free-form conversation; every user turn gets a generated reply."""

    SCRIPTED = "scripted"
    """Question list with answers and recordings keyed by question index."""


class SessionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


def mean_overall(turns: List[Turn]) -> Optional[float]:
    """Mean of analysis.overall over scored turns, rounded to 2 places.

    Returns None when no turn carries an analysis.
    """
    overalls = [t.analysis.overall for t in turns if t.analysis is not None]
    if not overalls:
        return None
    return round(fmean(overalls), 2)


class TurnView(Turn):
    """Turn projection with derived flags for read APIs."""

    is_answered: bool = False
    is_recorded: bool = False


class SessionSnapshot(BaseModel):
    """Read-only projection of a session."""

    session_id: str
    user_id: str
    persona_id: str
    persona_name: str
    mode: SessionMode
    status: SessionStatus
    created_at: datetime
    completed_at: Optional[datetime] = None
    turns: List[TurnView] = Field(default_factory=list)
    total_questions: int = 0
    answered_questions: int = 0
    recorded_answers: int = 0
    overall_score: Optional[float] = None


class Session(BaseModel):
    """Practice session entity.

    Attributes:
        - session_id / user_id: identity and owner
        - persona_id / persona_name: read-only reference to the catalog persona
        - mode: SessionMode discriminant (chat or scripted)
        - turns: ordered, append-only while active
        - version: optimistic concurrency counter, bumped by every persisted write
    """

    session_id: str
    user_id: str
    persona_id: str
    persona_name: str
    mode: SessionMode = SessionMode.CHAT
    status: SessionStatus = SessionStatus.ACTIVE
    turns: List[Turn] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    completed_at: Optional[datetime] = None
    version: int = 0

    @classmethod
    def start(
        cls,
        user_id: str,
        persona: Persona,
        mode: SessionMode = SessionMode.CHAT,
        session_id: Optional[str] = None,
    ) -> "Session":
        """Create a new active session for ``persona``."""
        session = cls(
            session_id=session_id or str(uuid4()),
            user_id=user_id,
            persona_id=persona.id,
            persona_name=persona.name,
            mode=mode,
        )
        if mode == SessionMode.CHAT:
            greeting = f"Hello, I'm {persona.name}"
            if persona.title:
                greeting += f", {persona.title}"
            session._append(TurnRole.ASSISTANT, f"{greeting}. {persona.opening_question}")
        return session

    # ==================== STATE ====================

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE

    @property
    def last_turn(self) -> Optional[Turn]:
        return self.turns[-1] if self.turns else None

    @property
    def awaiting_reply(self) -> bool:
        """True when a chat session ends with a user turn that has no reply."""
        last = self.last_turn
        return (
            self.mode == SessionMode.CHAT
            and last is not None
            and last.role == TurnRole.USER
        )

    def require_active(self) -> None:
        if not self.is_active:
            raise SessionCompletedError(f"Session {self.session_id} is completed")

    def require_mode(self, mode: SessionMode, operation: str) -> None:
        if self.mode != mode:
            raise InvalidStateError(
                f"{operation} is only valid for {mode.value} sessions "
                f"(session {self.session_id} is {self.mode.value})"
            )

    def turn_at(self, question_index: int) -> Turn:
        if question_index < 0 or question_index >= len(self.turns):
            raise TurnNotFoundError(
                f"Question index {question_index} not found in session {self.session_id}"
            )
        return self.turns[question_index]

    # ==================== TRANSITIONS ====================

    def _append(self, role: TurnRole, text: str, **fields) -> Turn:
        turn = Turn(index=len(self.turns), role=role, text=text, **fields)
        self.turns.append(turn)
        return turn

    def append_user_turn(self, text: str) -> Turn:
        self.require_active()
        return self._append(TurnRole.USER, text)

    def append_assistant_turn(self, text: str) -> Turn:
        self.require_active()
        return self._append(TurnRole.ASSISTANT, text)

    def append_question(
        self,
        text: str,
        category: Optional[str] = None,
        difficulty: Optional[str] = None,
        time_limit: Optional[int] = None,
    ) -> Turn:
        """Add a question to a scripted session."""
        self.require_active()
        self.require_mode(SessionMode.SCRIPTED, "append_question")
        return self._append(
            TurnRole.ASSISTANT,
            text,
            category=category,
            difficulty=difficulty,
            time_limit=time_limit,
        )

    def record_answer(
        self,
        question_index: int,
        answer_text: str,
        time_taken: Optional[float] = None,
        confidence: Optional[float] = None,
        answered_at: Optional[datetime] = None,
    ) -> Turn:
        """Upsert answer fields on the turn at ``question_index``."""
        self.require_active()
        turn = self.turn_at(question_index)
        updated = turn.model_copy(
            update={
                "answer": answer_text,
                "time_taken": time_taken,
                "confidence": confidence,
                "answered_at": answered_at or utc_now(),
            }
        )
        self.turns[question_index] = updated
        return updated

    def record_analysis(
        self,
        question_index: int,
        analysis: AnalysisScores,
        transcription: Optional[str] = None,
        duration: Optional[float] = None,
        recorded_at: Optional[datetime] = None,
    ) -> Turn:
        """Upsert the analysis (and recording metadata) on the turn at ``question_index``."""
        self.require_active()
        turn = self.turn_at(question_index)
        updated = turn.model_copy(
            update={
                "analysis": analysis,
                "transcription": transcription,
                "duration": duration,
                "recorded_at": recorded_at or utc_now(),
            }
        )
        self.turns[question_index] = updated
        return updated

    def complete(self) -> bool:
        """Move to completed. Returns False if the session was already completed."""
        if not self.is_active:
            return False
        self.status = SessionStatus.COMPLETED
        self.completed_at = utc_now()
        return True

    # ==================== READ ====================

    @property
    def overall_score(self) -> Optional[float]:
        return mean_overall(self.turns)

    @property
    def scored_turns(self) -> List[Turn]:
        return [t for t in self.turns if t.analysis is not None]

    def snapshot(self) -> SessionSnapshot:
        views = [
            TurnView(
                **turn.model_dump(),
                is_answered=turn.answered,
                is_recorded=turn.recorded,
            )
            for turn in self.turns
        ]
        return SessionSnapshot(
            session_id=self.session_id,
            user_id=self.user_id,
            persona_id=self.persona_id,
            persona_name=self.persona_name,
            mode=self.mode,
            status=self.status,
            created_at=self.created_at,
            completed_at=self.completed_at,
            turns=views,
            total_questions=len(self.turns),
            answered_questions=sum(1 for t in self.turns if t.answered),
            recorded_answers=len(self.scored_turns),
            overall_score=self.overall_score,
        )
