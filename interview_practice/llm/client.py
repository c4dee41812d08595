"""
LLM client abstraction for text-generation providers.

Provides an async interface for LLM calls with:
- Structured logging of requests/responses
- Timeout handling
- Usage tracking (tokens)
- Strict response extraction (first completion only)

Clients make exactly one attempt per call. Retry policy belongs to the
caller (see SessionService.resume).

Supported providers:
- huggingface: Hugging Face inference router (OpenAI-compatible chat completions)
- anthropic: Claude models via the Messages API
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import time

import httpx
import structlog

from interview_practice.core.config import settings
from interview_practice.core.exceptions import (
    ConfigurationError,
    GenerationResponseError,
    GenerationTimeoutError,
)

log = structlog.get_logger(__name__)


# =============================================================================
# Default configurations for each provider
# =============================================================================

HUGGINGFACE_DEFAULTS = dict(
    model="meta-llama/Meta-Llama-3-8B-Instruct",
    base_url="https://router.huggingface.co/v1",
)

ANTHROPIC_DEFAULTS = dict(
    model="claude-sonnet-4-6",
    base_url="https://api.anthropic.com/v1",
)


# =============================================================================
# Response and Base Classes
# =============================================================================


@dataclass
class LLMResponse:
    """Standardized LLM response."""

    content: str
    model: str
    usage: Dict[str, int] = field(default_factory=dict)
    latency_ms: float = 0.0
    raw_response: Optional[Dict[str, Any]] = None


class LLMClient(ABC):
    """Abstract base for LLM providers."""

    provider_name: str = "unknown"

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> LLMResponse:
        """
        Generate a completion from the LLM.

        Args:
            prompt: User message/prompt
            system: Optional system prompt
            temperature: Sampling temperature (0.0-2.0)
            max_tokens: Maximum tokens in response
            timeout: Optional timeout override in seconds (uses default if None)

        Returns:
            LLMResponse with content and metadata

        Raises:
            GenerationTimeoutError: The request timed out
            GenerationResponseError: Error status or unusable response body
        """
        pass


def _require_text(value: Any, provider: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise GenerationResponseError(f"{provider} returned an empty completion")
    return value


class _HTTPClient(LLMClient):
    """Shared request/response handling for HTTP providers."""

    def __init__(
        self,
        model: str,
        temperature: float,
        max_tokens: int,
        timeout: float,
        base_url: str,
        api_key: str,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.base_url = base_url
        self.api_key = api_key

        log.info(
            "llm_client_initialized",
            provider=self.provider_name,
            model=self.model,
            timeout=self.timeout,
        )

    @abstractmethod
    def _headers(self) -> Dict[str, str]:
        """Request headers, including auth."""

    @abstractmethod
    def _endpoint(self) -> str:
        """Completion URL."""

    @abstractmethod
    def _payload(
        self, prompt: str, system: Optional[str], temperature: float, max_tokens: int
    ) -> Dict[str, Any]:
        """Provider request body."""

    @abstractmethod
    def _extract(self, data: Dict[str, Any]) -> tuple[str, Dict[str, int]]:
        """Pull (text, usage) out of a decoded response body."""

    async def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> LLMResponse:
        if max_tokens is None:
            max_tokens = self.max_tokens
        if temperature is None:
            temperature = self.temperature
        if timeout is None:
            timeout = self.timeout

        payload = self._payload(prompt, system, temperature, max_tokens)
        start = time.perf_counter()

        log.debug(
            "llm_call_start",
            provider=self.provider_name,
            model=self.model,
            prompt_length=len(prompt),
            system_length=len(system) if system else 0,
            temperature=temperature,
            max_tokens=max_tokens,
        )

        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.post(
                    self._endpoint(),
                    headers=self._headers(),
                    json=payload,
                )
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as e:
            log.warning(
                "llm_timeout",
                provider=self.provider_name,
                timeout_seconds=timeout,
            )
            raise GenerationTimeoutError(
                f"{self.provider_name} call timed out (timeout={timeout}s)"
            ) from e
        except httpx.HTTPStatusError as e:
            log.error(
                "llm_http_error",
                provider=self.provider_name,
                status_code=e.response.status_code,
            )
            raise GenerationResponseError(
                f"{self.provider_name} returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            log.error("llm_transport_error", provider=self.provider_name, error=str(e))
            raise GenerationResponseError(
                f"{self.provider_name} request failed: {e}"
            ) from e
        except ValueError as e:
            # response.json() on a non-JSON body
            raise GenerationResponseError(
                f"{self.provider_name} returned a non-JSON body"
            ) from e

        if not isinstance(data, dict):
            raise GenerationResponseError(f"{self.provider_name} returned a non-object body")

        content, usage = self._extract(data)
        latency_ms = (time.perf_counter() - start) * 1000

        log.info(
            "llm_call_complete",
            provider=self.provider_name,
            model=self.model,
            latency_ms=round(latency_ms, 2),
            input_tokens=usage.get("input_tokens", 0),
            output_tokens=usage.get("output_tokens", 0),
        )

        return LLMResponse(
            content=content,
            model=data.get("model", self.model),
            usage=usage,
            latency_ms=latency_ms,
            raw_response=data,
        )


# =============================================================================
# OpenAI-Compatible Client (Hugging Face router)
# =============================================================================


class OpenAICompatibleClient(_HTTPClient):
    """
    Client for OpenAI-compatible chat-completions APIs.

    Exactly the first choice's message content is returned; an empty or
    missing choice list is a failure, never an empty string.
    """

    provider_name = "openai_compatible"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _payload(
        self, prompt: str, system: Optional[str], temperature: float, max_tokens: int
    ) -> Dict[str, Any]:
        messages: List[Dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

    def _extract(self, data: Dict[str, Any]) -> tuple[str, Dict[str, int]]:
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            raise GenerationResponseError(f"{self.provider_name} returned no choices")
        first = choices[0]
        message = first.get("message") if isinstance(first, dict) else None
        if not isinstance(message, dict):
            raise GenerationResponseError(
                f"{self.provider_name} returned a choice without a message"
            )
        content = _require_text(message.get("content"), self.provider_name)

        raw_usage = data.get("usage") or {}
        usage = {
            "input_tokens": raw_usage.get("prompt_tokens", 0),
            "output_tokens": raw_usage.get("completion_tokens", 0),
        }
        return content, usage


class HuggingFaceClient(OpenAICompatibleClient):
    """
    Hugging Face inference router client.

    API Docs: https://huggingface.co/docs/inference-providers
    Base URL: https://router.huggingface.co/v1
    """

    provider_name = "huggingface"

    def __init__(
        self,
        temperature: float,
        max_tokens: int,
        timeout: float,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
    ):
        api_key = api_key or settings.huggingface_api_key
        if not api_key:
            raise ConfigurationError("HUGGINGFACE_API_KEY not configured. Set it in .env.")

        super().__init__(
            model=model or HUGGINGFACE_DEFAULTS["model"],
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
            base_url=HUGGINGFACE_DEFAULTS["base_url"],
            api_key=api_key,
        )


# =============================================================================
# Anthropic Client
# =============================================================================


class AnthropicClient(_HTTPClient):
    """Anthropic Claude API client.

    Uses httpx for async HTTP calls to the Messages API.
    """

    provider_name = "anthropic"

    def __init__(
        self,
        temperature: float,
        max_tokens: int,
        timeout: float,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
    ):
        api_key = api_key or settings.anthropic_api_key
        if not api_key:
            raise ConfigurationError("ANTHROPIC_API_KEY not configured. Set it in .env.")

        super().__init__(
            model=model or ANTHROPIC_DEFAULTS["model"],
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
            base_url=ANTHROPIC_DEFAULTS["base_url"],
            api_key=api_key,
        )

    def _headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.api_key,
            "content-type": "application/json",
            "anthropic-version": "2023-06-01",
        }

    def _endpoint(self) -> str:
        return f"{self.base_url}/messages"

    def _payload(
        self, prompt: str, system: Optional[str], temperature: float, max_tokens: int
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
        }
        if system:
            payload["system"] = system
        return payload

    def _extract(self, data: Dict[str, Any]) -> tuple[str, Dict[str, int]]:
        blocks = data.get("content")
        if not isinstance(blocks, list) or not blocks:
            raise GenerationResponseError("anthropic returned no content blocks")
        first = blocks[0]
        text = first.get("text") if isinstance(first, dict) else None
        content = _require_text(text, self.provider_name)

        raw_usage = data.get("usage") or {}
        usage = {
            "input_tokens": raw_usage.get("input_tokens", 0),
            "output_tokens": raw_usage.get("output_tokens", 0),
        }
        return content, usage


# =============================================================================
# Client Factory
# =============================================================================


def get_llm_client(provider: Optional[str] = None) -> LLMClient:
    """
    Factory for the configured generation client.

    Args:
        provider: "huggingface" or "anthropic" (defaults to settings.llm_provider)

    Returns:
        LLMClient configured from settings

    Raises:
        ConfigurationError: If the provider is unknown or its API key is missing
    """
    provider = provider or settings.llm_provider
    common = dict(
        temperature=settings.generation_temperature,
        max_tokens=settings.generation_max_tokens,
        timeout=settings.generation_timeout,
        model=settings.generation_model,
    )

    if provider == "huggingface":
        return HuggingFaceClient(**common)
    elif provider == "anthropic":
        return AnthropicClient(**common)
    else:
        raise ConfigurationError(
            f"Unknown LLM provider '{provider}'. "
            f"Supported providers: huggingface, anthropic"
        )
