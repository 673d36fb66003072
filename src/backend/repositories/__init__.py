"""Repository modules for database access."""

from repositories.cosmos_issue_repository import CosmosIssueRepository
from repositories.cosmos_survey_repository import CosmosSurveyRepository
from repositories.cosmos_user_repository import CosmosUserRepository

__all__ = [
    "CosmosIssueRepository",
    "CosmosSurveyRepository",
    "CosmosUserRepository",
]
