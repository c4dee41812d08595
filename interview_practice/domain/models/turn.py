"""Turn domain models.

A Turn is one unit of a practice session: a chat exchange line in chat mode,
or a question with its answer and recording in scripted mode.

Core Concepts:
    - index: strict sequence position, 0-based. In scripted mode it is also
      the question index that answers and recordings are keyed by.
    - role: who produced ``text`` (the caller or the persona)
    - analysis: optional per-turn score object set by a recording analysis

Turns are written once. Answer and recording fields are partial updates
that touch disjoint fields, so their arrival order does not matter.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TurnRole(str, Enum):
    """Speaker of a turn."""

    USER = "user"
    ASSISTANT = "assistant"


SCORE_DIMENSIONS = ("clarity", "confidence", "relevance", "accuracy", "overall")


class AnalysisScores(BaseModel):
    """Scores produced by analysing a recorded answer."""

    clarity: float
    confidence: float
    relevance: float
    accuracy: float
    overall: float

    model_config = {"frozen": True}


class Turn(BaseModel):
    """Single turn in a session."""

    index: int = Field(..., ge=0)
    role: TurnRole
    text: str
    timestamp: datetime = Field(default_factory=utc_now)

    # Answer metadata (scripted mode)
    answer: Optional[str] = None
    time_taken: Optional[float] = Field(default=None, ge=0)
    confidence: Optional[float] = None
    answered_at: Optional[datetime] = None

    # Recording metadata
    analysis: Optional[AnalysisScores] = None
    transcription: Optional[str] = None
    duration: Optional[float] = Field(default=None, ge=0)
    recorded_at: Optional[datetime] = None

    # Question metadata (scripted mode)
    category: Optional[str] = None
    difficulty: Optional[str] = None
    time_limit: Optional[int] = Field(default=None, ge=0)

    model_config = {"from_attributes": True}

    @property
    def question_index(self) -> int:
        return self.index

    @property
    def answered(self) -> bool:
        return self.answer is not None

    @property
    def recorded(self) -> bool:
        return self.analysis is not None
