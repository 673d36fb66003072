"""Schemas module initialization."""

from schemas.common import ErrorResponse, PaginationMeta, SuccessResponse
from schemas.issue import (
    Issue,
    IssueCommentCreate,
    IssueCreate,
    IssueDeletion,
    IssueDetail,
    IssueStatusUpdate,
    IssueSummary,
)
from schemas.survey import Survey, SurveyCreate, SurveyResults, SurveyUpdate, VoteRequest

__all__ = [
    "ErrorResponse",
    "PaginationMeta",
    "SuccessResponse",
    "Issue",
    "IssueCommentCreate",
    "IssueCreate",
    "IssueDeletion",
    "IssueDetail",
    "IssueStatusUpdate",
    "IssueSummary",
    "Survey",
    "SurveyCreate",
    "SurveyResults",
    "SurveyUpdate",
    "VoteRequest",
]
