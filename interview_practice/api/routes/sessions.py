"""
Session API routes.

Endpoints for the session lifecycle, chat turns and scripted answers.
Application errors propagate to the handlers in api/exception_handlers.py.
"""

from fastapi import APIRouter, status
import structlog

from interview_practice.api.dependencies import CurrentUser, SessionServiceDep
from interview_practice.api.schemas import (
    AnswerRequest,
    ConversationResponse,
    MessageRequest,
    MessageResponse,
    QuestionRequest,
    RecordingRequest,
    SessionCreate,
    SessionListResponse,
    SessionResponse,
    SessionSummary,
    StartSessionResponse,
    TurnResponse,
)
from interview_practice.domain.models.session import SessionMode

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


# ============ SESSION LIFECYCLE ============


@router.post(
    "",
    response_model=StartSessionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_session(
    request: SessionCreate,
    user_id: CurrentUser,
    service: SessionServiceDep,
):
    """Start a session against a persona.

    Chat sessions come back with the persona's opening line; scripted
    sessions start without questions.
    """
    session = await service.start_session(
        user_id=user_id, persona_id=request.persona_id, mode=request.mode
    )
    opening = session.turns[0].text if session.mode == SessionMode.CHAT else None

    return StartSessionResponse(
        session_id=session.session_id,
        persona_name=session.persona_name,
        mode=session.mode,
        message=opening,
    )


@router.get("", response_model=SessionListResponse)
async def list_sessions(user_id: CurrentUser, service: SessionServiceDep):
    """List the caller's sessions, newest first."""
    sessions = await service.list_sessions(user_id)
    return SessionListResponse(
        sessions=[
            SessionSummary(
                session_id=s.session_id,
                persona_id=s.persona_id,
                persona_name=s.persona_name,
                mode=s.mode,
                status=s.status,
                turn_count=len(s.turns),
                overall_score=s.overall_score,
                created_at=s.created_at,
                completed_at=s.completed_at,
            )
            for s in sessions
        ],
        total=len(sessions),
    )


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str, user_id: CurrentUser, service: SessionServiceDep):
    """Session snapshot with per-turn answered/recorded flags and overall score."""
    snapshot = await service.get_session(session_id, user_id)
    return SessionResponse(session=snapshot)


@router.post("/{session_id}/complete", response_model=SessionResponse)
async def complete_session(session_id: str, user_id: CurrentUser, service: SessionServiceDep):
    """Complete the session. Repeating the call returns the same snapshot."""
    snapshot = await service.complete_session(session_id, user_id)
    return SessionResponse(session=snapshot)


# ============ CHAT ============


@router.post("/{session_id}/messages", response_model=MessageResponse)
async def post_message(
    session_id: str,
    request: MessageRequest,
    user_id: CurrentUser,
    service: SessionServiceDep,
):
    """
    Send a message and get the persona's reply.

    Resending the same text after a failed request resumes the pending turn
    instead of duplicating it.
    """
    log.info(
        "processing_message_request",
        session_id=session_id,
        text_length=len(request.message),
    )
    result = await service.post_message(session_id, user_id, request.message)
    return MessageResponse(
        message=result.reply,
        conversation_length=result.conversation_length,
        resumed=result.resumed,
    )


@router.post("/{session_id}/resume", response_model=MessageResponse)
async def resume_session(session_id: str, user_id: CurrentUser, service: SessionServiceDep):
    """Generate the reply for a message whose earlier request never got one."""
    result = await service.resume(session_id, user_id)
    return MessageResponse(
        message=result.reply,
        conversation_length=result.conversation_length,
        resumed=result.resumed,
    )


@router.get("/{session_id}/conversation", response_model=ConversationResponse)
async def get_conversation(session_id: str, user_id: CurrentUser, service: SessionServiceDep):
    """Ordered transcript of the session."""
    session = await service.get_conversation_history(session_id, user_id)
    return ConversationResponse(
        session_id=session.session_id,
        persona_name=session.persona_name,
        status=session.status,
        conversation=session.turns,
    )


# ============ SCRIPTED ============


@router.post(
    "/{session_id}/questions",
    response_model=TurnResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_question(
    session_id: str,
    request: QuestionRequest,
    user_id: CurrentUser,
    service: SessionServiceDep,
):
    """Append a question to a scripted session."""
    turn = await service.add_question(
        session_id,
        user_id,
        text=request.text,
        category=request.category,
        difficulty=request.difficulty,
        time_limit=request.time_limit,
    )
    return TurnResponse(turn=turn)


@router.post("/{session_id}/answers", response_model=TurnResponse)
async def record_answer(
    session_id: str,
    request: AnswerRequest,
    user_id: CurrentUser,
    service: SessionServiceDep,
):
    """Record the caller's answer to a question."""
    turn = await service.record_answer(
        session_id,
        user_id,
        question_index=request.question_index,
        answer_text=request.answer_text,
        time_taken=request.time_taken,
        confidence=request.confidence,
    )
    return TurnResponse(turn=turn)


@router.post("/{session_id}/recordings", response_model=TurnResponse)
async def record_analysis(
    session_id: str,
    request: RecordingRequest,
    user_id: CurrentUser,
    service: SessionServiceDep,
):
    """Attach an analysed recording to a question."""
    turn = await service.record_analysis(
        session_id,
        user_id,
        question_index=request.question_index,
        analysis=request.analysis,
        transcription=request.transcription,
        duration=request.duration,
    )
    return TurnResponse(turn=turn)
