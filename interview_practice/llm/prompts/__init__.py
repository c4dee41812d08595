# noqa
from interview_practice.llm.prompts.conversation import (
    compose_conversation_prompt,
    compose_system_prompt,
    render_transcript,
)

__all__ = [
    "compose_conversation_prompt",
    "compose_system_prompt",
    "render_transcript",
]
