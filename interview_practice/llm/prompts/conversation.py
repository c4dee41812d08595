"""
Prompts for persona conversation turns.

Builds the payload sent to the generation backend from:
- Persona identity, specialty and tone
- The conversation so far, labelled by speaker
- An instruction block: evaluate the last answer, ask one follow-up,
  stay in character, respect a word ceiling

Everything here is pure string construction so prompts can be tested
without a backend.
"""

from typing import Sequence

from interview_practice.domain.models.persona import Persona
from interview_practice.domain.models.turn import Turn, TurnRole


DEFAULT_CALLER_LABEL = "MSL"
DEFAULT_WORD_LIMIT = 100


def compose_system_prompt(persona: Persona) -> str:
    """
    Get system prompt for a persona reply.

    Args:
        persona: Persona the backend should play

    Returns:
        System prompt string
    """
    specialty = persona.specialty or "medical"
    return (
        f"You are {persona.name}, a {specialty} specialist. "
        f"Your tone is {persona.tone}. Never break character."
    )


def render_transcript(
    persona: Persona,
    turns: Sequence[Turn],
    caller_label: str = DEFAULT_CALLER_LABEL,
) -> str:
    """
    Render the conversation with role labels, one line per turn.

    Args:
        persona: Persona whose name labels assistant turns
        turns: Ordered turn history
        caller_label: Label for user turns

    Returns:
        Transcript string ("MSL: ..." / "Dr. Lee: ...")
    """
    lines = []
    for turn in turns:
        speaker = caller_label if turn.role == TurnRole.USER else persona.name
        lines.append(f"{speaker}: {turn.text}")
    return "\n".join(lines)


def compose_conversation_prompt(
    persona: Persona,
    turns: Sequence[Turn],
    word_limit: int = DEFAULT_WORD_LIMIT,
    caller_label: str = DEFAULT_CALLER_LABEL,
) -> str:
    """
    Get user prompt for the next persona reply.

    Args:
        persona: Persona being played
        turns: Ordered turn history, ending with the caller's latest message
        word_limit: Response length ceiling in words
        caller_label: Label for the caller in the transcript

    Returns:
        User prompt string
    """
    specialty = persona.specialty or "medical"
    transcript = render_transcript(persona, turns, caller_label=caller_label)

    return f"""You are {persona.name}, a {specialty} specialist. You are {persona.tone}.

Conversation so far:
{transcript}

The {caller_label} just answered. You should:
1. Briefly evaluate their answer (1 sentence - was it good or weak?)
2. Ask exactly ONE tough follow-up question or probe deeper into their answer
3. Stay in character as {persona.name} and keep a {persona.tone} tone

Keep response under {word_limit} words. Be direct and challenging."""
