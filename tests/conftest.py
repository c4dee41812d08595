"""
Shared test fixtures.

Temporary SQLite database, an in-memory persona catalog and a mocked
generation gateway, wired into a SessionService.
"""

import tempfile
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from interview_practice.core.persona_loader import PersonaCatalog
from interview_practice.domain.models.persona import CommunicationStyle, Persona
from interview_practice.llm.gateway import GenerationGateway, SamplingConfig
from interview_practice.persistence.database import init_database
from interview_practice.persistence.repositories.session_repo import SessionRepository
from interview_practice.services.analytics_service import AnalyticsService
from interview_practice.services.session_service import SessionService

DR_LEE_REPLY = "Weak. What trial supports that?"


@pytest.fixture
async def test_db():
    """Create and initialize test database."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        await init_database(db_path)

        from interview_practice.core import config

        original_path = config.settings.database_path
        config.settings.database_path = db_path

        yield db_path

        config.settings.database_path = original_path


@pytest.fixture
async def session_repo(test_db):
    """Create session repository with test database."""
    return SessionRepository(str(test_db))


@pytest.fixture
def dr_lee():
    """Persona used across the chat scenarios."""
    return Persona(
        id="dr_lee",
        name="Dr. Lee",
        title="Cardiologist",
        specialty="cardiology",
        communication_style=CommunicationStyle(tone="skeptical"),
        typical_questions=["Why this drug?"],
    )


@pytest.fixture
def persona_catalog(dr_lee):
    return PersonaCatalog.from_personas([dr_lee])


@pytest.fixture
def mock_gateway():
    """Gateway that always answers with DR_LEE_REPLY."""
    gateway = AsyncMock(spec=GenerationGateway)
    gateway.generate.return_value = DR_LEE_REPLY
    return gateway


@pytest.fixture
def session_service(session_repo, persona_catalog, mock_gateway):
    return SessionService(
        session_repo=session_repo,
        persona_catalog=persona_catalog,
        gateway=mock_gateway,
        sampling=SamplingConfig(max_tokens=200, temperature=0.8),
        retry_limit=3,
    )


@pytest.fixture
def analytics_service(session_repo):
    return AnalyticsService(session_repo, recent_limit=10)
