"""Dependency injection for API routes."""

from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, Header

from interview_practice.core.config import settings
from interview_practice.core.exceptions import InvalidArgumentError
from interview_practice.core.persona_loader import PersonaCatalog
from interview_practice.llm.client import get_llm_client
from interview_practice.llm.gateway import GenerationGateway
from interview_practice.persistence.repositories.session_repo import SessionRepository
from interview_practice.services.analytics_service import AnalyticsService
from interview_practice.services.session_service import SessionService


def get_session_repository() -> SessionRepository:
    """FastAPI dependency injection for SessionRepository.

    Each request gets a new repository with the database path from settings.
    """
    return SessionRepository(str(settings.database_path))


@lru_cache(maxsize=1)
def get_persona_catalog() -> PersonaCatalog:
    """Persona catalog shared across requests (personas are cached once loaded)."""
    return PersonaCatalog(settings.personas_dir)


@lru_cache(maxsize=1)
def get_generation_gateway() -> GenerationGateway:
    """Cached generation gateway.

    The provider client is created once per process and reused.
    """
    return GenerationGateway(get_llm_client(), timeout=settings.generation_timeout)


@lru_cache(maxsize=1)
def get_session_service() -> SessionService:
    """Process-wide SessionService.

    Must be a single instance: it owns the per-session locks that serialise
    mutations of the same session.
    """
    return SessionService(
        session_repo=get_session_repository(),
        persona_catalog=get_persona_catalog(),
        gateway=get_generation_gateway(),
    )


def get_analytics_service(
    session_repo: SessionRepository = Depends(get_session_repository),
) -> AnalyticsService:
    return AnalyticsService(session_repo)


async def get_current_user(
    x_user_id: Annotated[Optional[str], Header()] = None,
) -> str:
    """Caller identity from the X-User-Id header.

    Authentication happens upstream; here the id is only compared against
    session owners.
    """
    if x_user_id is None or not x_user_id.strip():
        raise InvalidArgumentError("X-User-Id header is required")
    return x_user_id.strip()


# Type aliases for dependency injection
SessionRepoDep = Annotated[SessionRepository, Depends(get_session_repository)]
PersonaCatalogDep = Annotated[PersonaCatalog, Depends(get_persona_catalog)]
SessionServiceDep = Annotated[SessionService, Depends(get_session_service)]
AnalyticsServiceDep = Annotated[AnalyticsService, Depends(get_analytics_service)]
CurrentUser = Annotated[str, Depends(get_current_user)]
