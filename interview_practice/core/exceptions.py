"""
Custom exception hierarchy for the practice engine.

All application exceptions inherit from PracticeEngineError. Each family
carries a stable ``code`` that the API layer reports to callers.
"""


class PracticeEngineError(Exception):
    """Base exception for all application errors."""

    code = "internal_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(PracticeEngineError):
    """Invalid or missing configuration."""

    code = "configuration_error"


# =============================================================================
# Lookup and ownership
# =============================================================================


class NotFoundError(PracticeEngineError):
    """Requested entity does not exist."""

    code = "not_found"


class PersonaNotFoundError(NotFoundError):
    """Persona id is not in the catalog."""

    pass


class SessionNotFoundError(NotFoundError):
    """Session does not exist."""

    pass


class TurnNotFoundError(NotFoundError):
    """Question index is outside the session's turn list."""

    pass


class ForbiddenError(PracticeEngineError):
    """Session exists but belongs to another user."""

    code = "forbidden"


# =============================================================================
# Session state and request errors
# =============================================================================


class InvalidStateError(PracticeEngineError):
    """Operation is not allowed in the session's current state."""

    code = "invalid_state"


class SessionCompletedError(InvalidStateError):
    """Attempted mutation of a completed session."""

    pass


class InvalidArgumentError(PracticeEngineError):
    """Malformed request."""

    code = "invalid_argument"


# =============================================================================
# Infrastructure Errors
# =============================================================================


class GenerationUnavailableError(PracticeEngineError):
    """Text-generation backend failed or returned an unusable shape."""

    code = "generation_unavailable"


class GenerationTimeoutError(GenerationUnavailableError):
    """Generation call timed out."""

    pass


class GenerationResponseError(GenerationUnavailableError):
    """Backend answered with an error status or a malformed body."""

    pass


class StorageUnavailableError(PracticeEngineError):
    """Persistence layer failure."""

    code = "storage_unavailable"


class ConcurrentModificationError(StorageUnavailableError):
    """Optimistic version check failed; the session changed underneath us."""

    pass
