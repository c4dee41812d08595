"""Domain models package."""

from .persona import CommunicationStyle, Persona
from .turn import SCORE_DIMENSIONS, AnalysisScores, Turn, TurnRole
from .session import Session, SessionMode, SessionSnapshot, SessionStatus, TurnView

__all__ = [
    "CommunicationStyle",
    "Persona",
    "SCORE_DIMENSIONS",
    "AnalysisScores",
    "Turn",
    "TurnRole",
    "Session",
    "SessionMode",
    "SessionSnapshot",
    "SessionStatus",
    "TurnView",
]
