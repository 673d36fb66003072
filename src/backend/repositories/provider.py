"""
Repository provider for dependency injection.

This module provides a unified interface for accessing repositories
backed by Cosmos DB.

Usage:
    from repositories.provider import get_issue_repository

    # In FastAPI dependencies:
    async def some_endpoint(
        issue_repo: IssueRepositoryProtocol = Depends(get_issue_repository),
    ):
        issue = await issue_repo.get_by_id(issue_id)
"""

import logging
from typing import Protocol, runtime_checkable

from core.config import settings

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================


def is_cosmos_enabled() -> bool:
    """Check if Cosmos DB is configured and enabled."""
    # Cosmos DB can be configured via either:
    # 1. AZURE_COSMOS_ENDPOINT (for Azure deployment with RBAC)
    # 2. AZURE_COSMOS_CONNECTION_STRING (for local emulator)
    return bool(settings.AZURE_COSMOS_ENDPOINT or settings.AZURE_COSMOS_CONNECTION_STRING)


# =============================================================================
# Repository Protocols (Interfaces)
# =============================================================================


@runtime_checkable
class UserRepositoryProtocol(Protocol):
    """Protocol defining user identity lookups."""

    async def get_by_id(self, user_id: str): ...
    async def get_many(self, user_ids): ...


@runtime_checkable
class IssueRepositoryProtocol(Protocol):
    """Protocol defining issue repository operations."""

    async def get_by_id(self, issue_id: str): ...
    async def list_by_reporter(self, reporter_id: str, page: int = 1, per_page: int = 10, **filters): ...
    async def list_public(self, page: int = 1, per_page: int = 10, category=None, near=None): ...
    async def create(self, title: str, description: str, category: str, location, reporter_id: str, images=None): ...
    async def apply_status_transition(self, issue_id: str, expected_status: str, entry): ...
    async def append_comment(self, issue_id: str, comment): ...
    async def delete(self, issue_id: str) -> bool: ...


@runtime_checkable
class SurveyRepositoryProtocol(Protocol):
    """Protocol defining survey repository operations."""

    async def get_by_id(self, survey_id: str): ...
    async def list_active(self, audiences: list[str], now=None): ...
    async def get_response(self, survey_id: str, user_id: str): ...
    async def create(self, title: str, description: str, options: list[str], deadline, created_by: str, **kwargs): ...
    async def record_first_vote(self, survey_id: str, user_id: str, option_index: int, now=None): ...
    async def change_vote(self, survey_id: str, response, new_index: int, now=None): ...
    async def update(self, survey_id: str, fields: dict, option_texts=None, replacement_options=None): ...
    async def set_status(self, survey_id: str, new_status: str): ...
    async def mark_expired(self, survey_id: str) -> bool: ...
    async def expire_overdue(self, now=None) -> int: ...


# =============================================================================
# Repository Factory Functions
# =============================================================================


def _require_cosmos() -> None:
    if not is_cosmos_enabled():
        raise RuntimeError(
            "Cosmos DB is not configured. Set AZURE_COSMOS_ENDPOINT or AZURE_COSMOS_CONNECTION_STRING."
        )


async def get_user_repository():
    """Get the user identity repository."""
    _require_cosmos()
    from repositories.cosmos_user_repository import CosmosUserRepository

    return CosmosUserRepository()


async def get_issue_repository():
    """Get the issue repository."""
    _require_cosmos()
    from repositories.cosmos_issue_repository import CosmosIssueRepository

    return CosmosIssueRepository()


async def get_survey_repository():
    """Get the survey repository."""
    _require_cosmos()
    from repositories.cosmos_survey_repository import CosmosSurveyRepository

    return CosmosSurveyRepository()
