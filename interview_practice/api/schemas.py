"""
API request/response schemas.

Pydantic models for API validation and serialization. Every response body
is an envelope: ``{"success": true, ...}`` on success (see ApiResponse) and
``{"success": false, "error": {...}}`` on failure (see ErrorResponse).
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from interview_practice.domain.models.session import SessionMode, SessionSnapshot, SessionStatus
from interview_practice.domain.models.turn import AnalysisScores, Turn
from interview_practice.services.analytics_service import (
    PracticeHistory,
    SessionComparison,
)


class ApiResponse(BaseModel):
    """Success envelope."""

    success: bool = True


# ============ ERROR SCHEMAS ============


class ErrorDetail(BaseModel):
    code: str
    type: str
    message: str


class ErrorResponse(BaseModel):
    success: bool = False
    error: ErrorDetail


# ============ SESSION SCHEMAS ============


class SessionCreate(BaseModel):
    """Request to start a new session."""

    persona_id: str = Field(..., min_length=1)
    mode: SessionMode = Field(default=SessionMode.CHAT, description="chat or scripted")


class StartSessionResponse(ApiResponse):
    """Start session response, including the opening line in chat mode."""

    session_id: str
    persona_name: str
    mode: SessionMode
    message: Optional[str] = None


class SessionResponse(ApiResponse):
    session: SessionSnapshot


class SessionSummary(BaseModel):
    session_id: str
    persona_id: str
    persona_name: str
    mode: SessionMode
    status: SessionStatus
    turn_count: int
    overall_score: Optional[float] = None
    created_at: datetime
    completed_at: Optional[datetime] = None


class SessionListResponse(ApiResponse):
    sessions: List[SessionSummary]
    total: int


# ============ CHAT SCHEMAS ============


class MessageRequest(BaseModel):
    """Caller message in a chat session."""

    message: str = Field(..., min_length=1, max_length=5000)


class MessageResponse(ApiResponse):
    """Persona reply."""

    message: str
    conversation_length: int
    resumed: bool = False


class ConversationResponse(ApiResponse):
    session_id: str
    persona_name: str
    status: SessionStatus
    conversation: List[Turn]


# ============ SCRIPTED SCHEMAS ============


class QuestionRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=2000)
    category: Optional[str] = None
    difficulty: Optional[str] = None
    time_limit: Optional[int] = Field(default=None, ge=0, description="Seconds")


class AnswerRequest(BaseModel):
    """Answer to a scripted question."""

    question_index: int = Field(..., ge=0)
    answer_text: str = Field(..., min_length=1, max_length=10000)
    time_taken: Optional[float] = Field(default=None, ge=0)
    confidence: Optional[float] = None


class RecordingRequest(BaseModel):
    """Analysed recording for a scripted question."""

    question_index: int = Field(..., ge=0)
    analysis: AnalysisScores
    transcription: Optional[str] = None
    duration: Optional[float] = Field(default=None, ge=0)


class TurnResponse(ApiResponse):
    turn: Turn


# ============ HISTORY SCHEMAS ============


class HistoryResponse(ApiResponse):
    stats: PracticeHistory


class CompareRequest(BaseModel):
    session_ids: List[str] = Field(..., description="At least two session ids")


class CompareResponse(ApiResponse):
    comparison: List[SessionComparison]


class PersonaListResponse(ApiResponse):
    personas: Dict[str, str]
