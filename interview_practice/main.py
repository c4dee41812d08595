"""
FastAPI application entry point.

Run with: uvicorn interview_practice.main:app --reload
"""

from contextlib import asynccontextmanager
import uuid

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from interview_practice.core.config import settings
from interview_practice.core.logging import configure_logging, get_logger, bind_context, clear_context
from interview_practice.persistence.database import init_database
from interview_practice.api.routes import health, history, sessions
from interview_practice.api.exception_handlers import setup_exception_handlers

# Configure logging before anything else
configure_logging()
log = get_logger(__name__)


# =============================================================================
# Correlation ID Middleware
# =============================================================================


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds a unique correlation ID to each request.

    - Reuses an incoming X-Request-ID or generates a UUID4
    - Binds it to structlog context for all logs in that request
    - Adds X-Request-ID header to responses
    """

    async def dispatch(self, request: Request, call_next):
        """Process request and add correlation ID."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        bind_context(request_id=request_id)

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_context()


# =============================================================================
# Startup validation
# =============================================================================

API_KEY_SETTINGS = {
    "huggingface": ("huggingface_api_key", "HUGGINGFACE_API_KEY"),
    "anthropic": ("anthropic_api_key", "ANTHROPIC_API_KEY"),
}


def validate_api_keys() -> None:
    """
    Validate that the generation provider's API key is configured.

    Raises:
        RuntimeError: If the key for settings.llm_provider is missing
    """
    attr_name, env_var = API_KEY_SETTINGS[settings.llm_provider]
    if not getattr(settings, attr_name, None):
        raise RuntimeError(
            f"LLM API key missing: {env_var} is required for {settings.llm_provider} "
            f"(used for persona replies). Set it in .env file."
        )

    log.info("api_keys_validated", generation=settings.llm_provider)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    log.info(
        "application_starting",
        debug=settings.debug,
        database_path=str(settings.database_path),
        personas_dir=str(settings.personas_dir),
    )

    # Fail fast if the generation provider is misconfigured
    validate_api_keys()

    await init_database()

    log.info("application_started")

    yield

    log.info("application_shutting_down")


# Create FastAPI application
app = FastAPI(
    title="Interview Practice Engine",
    description="Persona conversations and scored practice sessions",
    version="0.1.0",
    lifespan=lifespan,
    debug=settings.debug,
)

# CORS middleware for development
if settings.debug:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.add_middleware(CorrelationIDMiddleware)

setup_exception_handlers(app)

# Include routers
app.include_router(health.router, tags=["system"])
app.include_router(sessions.router)
app.include_router(history.router)


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with basic info."""
    return {
        "success": True,
        "name": "Interview Practice Engine",
        "version": "0.1.0",
        "status": "running",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "interview_practice.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
