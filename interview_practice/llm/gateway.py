"""
Generation gateway.

The single seam between the session engine and the text-generation backend:

    text = await gateway.generate(system_prompt, user_prompt, sampling)

The gateway shapes the request from SamplingConfig, delegates to an
LLMClient and returns the first completion's text. Every backend problem
surfaces as GenerationUnavailableError; the gateway never retries and never
returns partial text.
"""

from typing import Optional

import structlog
from pydantic import BaseModel, Field

from interview_practice.core.config import settings
from interview_practice.core.exceptions import (
    GenerationResponseError,
    GenerationUnavailableError,
)
from interview_practice.llm.client import LLMClient

log = structlog.get_logger(__name__)


class SamplingConfig(BaseModel):
    """Sampling parameters for one generation call.

    Attributes:
        max_tokens: Caps output length
        temperature: Sampling randomness (higher = more varied)
    """

    max_tokens: int = Field(default=200, ge=1, le=4096)
    temperature: float = Field(default=0.8, ge=0.0, le=2.0)

    @classmethod
    def from_settings(cls) -> "SamplingConfig":
        return cls(
            max_tokens=settings.generation_max_tokens,
            temperature=settings.generation_temperature,
        )


class GenerationGateway:
    """Contract wrapper around a provider LLMClient."""

    def __init__(self, llm_client: LLMClient, timeout: Optional[float] = None):
        self.llm = llm_client
        self.timeout = timeout

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        sampling: Optional[SamplingConfig] = None,
    ) -> str:
        """Generate one reply.

        Returns:
            The first completion's text, stripped of surrounding whitespace

        Raises:
            GenerationUnavailableError: Timeout, error status, malformed or empty response
        """
        sampling = sampling or SamplingConfig.from_settings()

        try:
            response = await self.llm.complete(
                prompt=user_prompt,
                system=system_prompt,
                temperature=sampling.temperature,
                max_tokens=sampling.max_tokens,
                timeout=self.timeout,
            )
        except GenerationUnavailableError as e:
            log.warning(
                "generation_failed",
                provider=self.llm.provider_name,
                error_type=type(e).__name__,
                error=e.message,
            )
            raise

        text = response.content.strip() if isinstance(response.content, str) else ""
        if not text:
            log.warning("generation_empty", provider=self.llm.provider_name)
            raise GenerationResponseError("Generation backend returned an empty reply")

        log.info(
            "generation_complete",
            provider=self.llm.provider_name,
            reply_length=len(text),
            latency_ms=round(response.latency_ms, 2),
        )
        return text
