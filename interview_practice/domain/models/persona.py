"""Persona reference data.

A persona is the simulated interviewer a caller practises against. Personas
are owned by the catalog (see core/persona_loader.py) and are read-only to
the session engine.
"""

from typing import List

from pydantic import BaseModel, Field


class CommunicationStyle(BaseModel):
    """How the persona speaks."""

    tone: str = Field(..., min_length=1, description="e.g. 'skeptical and data-driven'")


class Persona(BaseModel):
    """Validated persona record.

    Attributes:
        id: Unique persona identifier
        name: Display name used in greetings and transcripts
        title: Professional title ("Cardiologist at ...")
        specialty: Clinical or business specialty
        communication_style: Tone the persona keeps in replies
        typical_questions: Ordered seed questions, first one opens chat sessions
    """

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    title: str = ""
    specialty: str = ""
    communication_style: CommunicationStyle
    typical_questions: List[str] = Field(..., min_length=1)

    model_config = {"frozen": True}

    @property
    def tone(self) -> str:
        return self.communication_style.tone

    @property
    def opening_question(self) -> str:
        return self.typical_questions[0]
