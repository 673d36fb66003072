"""
Pytest fixtures for CivicVoice backend tests.
"""

import os
from collections.abc import AsyncGenerator, Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

# Set test environment variables before importing app
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "false")

from models.cosmos_documents import UserDocument  # noqa: E402
from fakes import (  # noqa: E402
    FakeIssueRepository,
    FakeMediaService,
    FakeSurveyRepository,
    FakeUserRepository,
)


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio backend for async tests."""
    return "asyncio"


@pytest.fixture
async def app() -> AsyncGenerator[Any, None]:
    """FastAPI application; dependency overrides are cleared after each test."""
    from main import app as fastapi_app

    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
async def client(app: Any) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"Origin": "http://localhost:5173"},
    ) as ac:
        yield ac


# ============================================================================
# Identities
# ============================================================================


@pytest.fixture
def users() -> list[UserDocument]:
    return [
        UserDocument(id="citizen-1", name="Ada Citizen", email="ada@example.com", role="citizen"),
        UserDocument(id="citizen-2", name="Ben Citizen", email="ben@example.com", role="citizen"),
        UserDocument(id="official-1", name="Olga Official", email="olga@city.gov", role="official"),
        UserDocument(id="admin-1", name="Alan Admin", email="alan@city.gov", role="admin"),
    ]


@pytest.fixture
def make_token() -> Callable[[str, str], str]:
    """Sign a token the way the identity service does."""
    from core.security import create_access_token

    def _make(user_id: str, role: str, **claims: Any) -> str:
        return create_access_token({"id": user_id, "role": role, **claims})

    return _make


@pytest.fixture
def auth_headers(make_token: Callable[..., str]) -> Callable[[str, str], dict[str, str]]:
    """Build an Authorization header for a user id and role."""

    def _headers(user_id: str = "citizen-1", role: str = "citizen") -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(user_id, role)}"}

    return _headers


# ============================================================================
# Repositories & services
# ============================================================================


@pytest.fixture
def issue_repo() -> FakeIssueRepository:
    return FakeIssueRepository()


@pytest.fixture
def survey_repo() -> FakeSurveyRepository:
    return FakeSurveyRepository()


@pytest.fixture
def user_repo(users: list[UserDocument]) -> FakeUserRepository:
    return FakeUserRepository(users)


@pytest.fixture
def media_service() -> FakeMediaService:
    return FakeMediaService()


@pytest.fixture
def email_service() -> MagicMock:
    """Create mock email service."""
    service = MagicMock()
    service.is_available = True
    service.send_new_survey_notification = AsyncMock(return_value=True)
    return service


@pytest.fixture
def issue_service(issue_repo, user_repo, media_service):
    from services.issue_service import IssueService

    return IssueService(issue_repo, user_repo, media_service)


@pytest.fixture
def survey_service(survey_repo, email_service):
    from services.survey_service import SurveyService

    return SurveyService(survey_repo, email_service)


@pytest.fixture
def override_services(app, issue_service, survey_service, media_service):
    """Route API dependencies to the in-memory services."""
    from api.deps import get_issue_service, get_survey_service
    from services.media_service import get_media_service

    app.dependency_overrides[get_issue_service] = lambda: issue_service
    app.dependency_overrides[get_survey_service] = lambda: survey_service
    app.dependency_overrides[get_media_service] = lambda: media_service
    return app
