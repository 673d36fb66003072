"""
Cosmos DB document models for CivicVoice.

These Pydantic models define the document structure stored in Cosmos DB.
Documents are flat with embedded relationships where the data is owned by
the parent (issue photos, status history, comments, survey options).

Container Strategy:
- users: Display identities mirrored from the identity service (partition: /id)
- issues: Issue reports with embedded history and comments (partition: /id)
- surveys: Surveys and their responses (partition: /survey_id)

Surveys and survey responses share a logical partition so that a vote and
the matching count update can be committed in one transactional batch.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Optional
from uuid import uuid4

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, PlainSerializer, model_validator

# ============================================================================
# Datetime handling
# ============================================================================


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_utc(value: datetime) -> str:
    """
    Serialize a datetime in the fixed-width form stored in Cosmos DB.

    Queries compare timestamps as strings, so every stored value and every
    query parameter must use the same format.
    """
    return _ensure_utc(value).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


UtcDateTime = Annotated[
    datetime,
    AfterValidator(_ensure_utc),
    PlainSerializer(format_utc, return_type=str, when_used="json"),
]


# ============================================================================
# Enums
# ============================================================================


class IssueStatus(str, Enum):
    """Issue lifecycle status."""

    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"
    WITHDRAWN = "Withdrawn"


class IssueCategory(str, Enum):
    """Kinds of municipal problems citizens can report."""

    POTHOLE = "Pothole"
    BROKEN_STREETLIGHT = "Broken Streetlight"
    ILLEGAL_DUMPING = "Illegal Dumping"
    WATER_LEAK = "Water Leak"
    DAMAGED_SIDEWALK = "Damaged Sidewalk"
    GRAFFITI = "Graffiti"
    TRAFFIC_SIGNAL = "Traffic Signal"
    OTHER = "Other"


class SurveyStatus(str, Enum):
    """Survey lifecycle status."""

    ACTIVE = "active"
    CLOSED = "closed"
    EXPIRED = "expired"


class TargetAudience(str, Enum):
    """Which callers a survey is listed for."""

    ALL = "all"
    CITIZEN = "citizen"
    OFFICIAL = "official"


# ============================================================================
# Base Document Model
# ============================================================================


class CosmosDocument(BaseModel):
    """
    Base class for Cosmos DB documents.

    All documents have:
    - id: Unique identifier
    - _ts: Timestamp (managed by Cosmos DB)
    - _etag: ETag for optimistic concurrency (managed by Cosmos DB)
    """

    # Extra fields keep the Cosmos DB system properties (_ts, _etag, ...)
    model_config = ConfigDict(extra="allow", use_enum_values=True)

    id: str = Field(default_factory=lambda: str(uuid4()))

    @property
    def etag(self) -> Optional[str]:
        return (self.model_extra or {}).get("_etag")


# ============================================================================
# User Documents
# ============================================================================


class UserDocument(CosmosDocument):
    """
    Display identity of a user, stored in the 'users' container.

    Partition key: /id
    Accounts are owned by the identity service; only what is needed to
    render reporters, actors and comment authors is kept here.
    """

    name: str
    email: Optional[str] = None
    role: str = "citizen"


# ============================================================================
# Issue Documents
# ============================================================================


class ImageRef(BaseModel):
    """Reference to an issue photo held in blob storage."""

    url: str
    storage_key: str


class GeoLocation(BaseModel):
    """GeoJSON point with an optional street address."""

    type: str = "Point"
    coordinates: list[float] = Field(..., min_length=2, max_length=2)  # [longitude, latitude]
    address: str = Field("", max_length=300)

    @property
    def longitude(self) -> float:
        return self.coordinates[0]

    @property
    def latitude(self) -> float:
        return self.coordinates[1]


class StatusHistoryEntry(BaseModel):
    """One audited status change."""

    model_config = ConfigDict(use_enum_values=True)

    status: IssueStatus
    changed_by: str
    comment: str = Field("", max_length=500)
    timestamp: UtcDateTime = Field(default_factory=utc_now)


class IssueComment(BaseModel):
    """Official comment on an issue."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    author_id: str
    text: str = Field(..., max_length=500)
    timestamp: UtcDateTime = Field(default_factory=utc_now)


class IssueSummaryDocument(CosmosDocument):
    """
    Public projection of an issue: every field except the status history.

    The history is an internal audit view and is not read for public feeds.
    """

    title: str = Field(..., max_length=100)
    description: str = Field(..., max_length=1000)
    category: IssueCategory
    status: IssueStatus = IssueStatus.PENDING
    location: GeoLocation
    images: list[ImageRef] = Field(default_factory=list, max_length=5)
    reporter_id: str
    comments: list[IssueComment] = Field(default_factory=list)

    created_at: UtcDateTime = Field(default_factory=utc_now)
    updated_at: UtcDateTime = Field(default_factory=utc_now)


class IssueDocument(IssueSummaryDocument):
    """
    Issue document stored in the 'issues' container.

    Partition key: /id
    The status history is the audit trail: its last entry always matches
    ``status`` and it is never empty.
    """

    status_history: list[StatusHistoryEntry] = Field(default_factory=list)

# ============================================================================
# Survey Documents
# ============================================================================


class SurveyOptionDocument(BaseModel):
    """Embedded survey option with its running vote count."""

    text: str
    vote_count: int = Field(0, ge=0)


class SurveyDocument(CosmosDocument):
    """
    Survey document stored in the 'surveys' container.

    Partition key: /survey_id (equal to id)
    ``total_votes`` always equals the sum of the option vote counts.
    """

    document_type: str = "survey"
    survey_id: str = ""

    title: str = Field(..., max_length=150)
    description: str
    options: list[SurveyOptionDocument] = Field(..., min_length=2)
    deadline: UtcDateTime
    target_audience: TargetAudience = TargetAudience.ALL
    status: SurveyStatus = SurveyStatus.ACTIVE
    is_important: bool = False
    created_by: str
    total_votes: int = Field(0, ge=0)

    created_at: UtcDateTime = Field(default_factory=utc_now)
    updated_at: UtcDateTime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def _default_partition_key(self) -> "SurveyDocument":
        if not self.survey_id:
            self.survey_id = self.id
        return self

    def is_past_deadline(self, now: Optional[datetime] = None) -> bool:
        return (now or utc_now()) > self.deadline

class SurveyResponseDocument(CosmosDocument):
    """
    A user's current choice on a survey, stored in the 'surveys' container.

    Partition key: /survey_id
    The id is derived from (survey_id, user_id); Cosmos DB enforces id
    uniqueness within a partition, which makes it one response per user.
    """

    document_type: str = "survey_response"
    survey_id: str
    user_id: str
    selected_option_index: int = Field(..., ge=0)

    created_at: UtcDateTime = Field(default_factory=utc_now)
    updated_at: UtcDateTime = Field(default_factory=utc_now)

    @staticmethod
    def response_id(survey_id: str, user_id: str) -> str:
        return f"{survey_id}:{user_id}"

    @classmethod
    def for_vote(cls, survey_id: str, user_id: str, selected_option_index: int) -> "SurveyResponseDocument":
        return cls(
            id=cls.response_id(survey_id, user_id),
            survey_id=survey_id,
            user_id=user_id,
            selected_option_index=selected_option_index,
        )


def to_document_body(document: BaseModel) -> dict[str, Any]:
    """Serialize a document for writing to Cosmos DB, without system properties."""
    body = document.model_dump(mode="json")
    return {key: value for key, value in body.items() if not key.startswith("_")}
