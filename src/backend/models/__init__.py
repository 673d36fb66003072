"""Document models module."""

from models.cosmos_documents import (
    GeoLocation,
    ImageRef,
    IssueCategory,
    IssueComment,
    IssueDocument,
    IssueStatus,
    IssueSummaryDocument,
    StatusHistoryEntry,
    SurveyDocument,
    SurveyOptionDocument,
    SurveyResponseDocument,
    SurveyStatus,
    TargetAudience,
    UserDocument,
)

__all__ = [
    "GeoLocation",
    "ImageRef",
    "IssueCategory",
    "IssueComment",
    "IssueDocument",
    "IssueStatus",
    "IssueSummaryDocument",
    "StatusHistoryEntry",
    "SurveyDocument",
    "SurveyOptionDocument",
    "SurveyResponseDocument",
    "SurveyStatus",
    "TargetAudience",
    "UserDocument",
]
