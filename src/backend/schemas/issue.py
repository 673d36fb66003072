"""
Issue-related Pydantic schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from models.cosmos_documents import GeoLocation, ImageRef, IssueCategory, IssueStatus
from schemas.common import PaginationMeta

# ============================================================================
# Requests
# ============================================================================


class IssueCreate(BaseModel):
    """Fields of a new issue report."""

    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=1000)
    category: IssueCategory
    longitude: float = Field(..., ge=-180, le=180)
    latitude: float = Field(..., ge=-90, le=90)
    address: str = Field("", max_length=300)

    def to_location(self) -> GeoLocation:
        return GeoLocation(coordinates=[self.longitude, self.latitude], address=self.address)


class IssueStatusUpdate(BaseModel):
    """Request to move an issue to another status."""

    status: IssueStatus
    comment: str = Field("", max_length=500)


class IssueCommentCreate(BaseModel):
    """Request to comment on an issue."""

    text: str = Field(..., min_length=1, max_length=500)


# ============================================================================
# Responses
# ============================================================================


class UserIdentity(BaseModel):
    """Display identity of a reporter, actor or comment author."""

    id: str
    name: Optional[str] = None
    email: Optional[str] = None


class StatusHistoryItem(BaseModel):
    status: IssueStatus
    changed_by: str
    comment: str = ""
    timestamp: datetime


class CommentItem(BaseModel):
    id: str
    author_id: str
    text: str
    timestamp: datetime


class IssueSummary(BaseModel):
    """Public view of an issue, without its status history."""

    id: str
    title: str
    description: str
    category: IssueCategory
    status: IssueStatus
    location: GeoLocation
    images: list[ImageRef] = Field(default_factory=list)
    reporter_id: str
    comments: list[CommentItem] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class Issue(IssueSummary):
    """Full issue as stored, with raw user references."""

    status_history: list[StatusHistoryItem] = Field(default_factory=list)


class StatusHistoryDetail(BaseModel):
    status: IssueStatus
    changed_by: UserIdentity
    comment: str = ""
    timestamp: datetime


class CommentDetail(BaseModel):
    id: str
    author: UserIdentity
    text: str
    timestamp: datetime


class IssueDetail(BaseModel):
    """Issue with reporter, history actors and comment authors resolved."""

    id: str
    title: str
    description: str
    category: IssueCategory
    status: IssueStatus
    location: GeoLocation
    images: list[ImageRef] = Field(default_factory=list)
    reporter: UserIdentity
    status_history: list[StatusHistoryDetail] = Field(default_factory=list)
    comments: list[CommentDetail] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class MediaDeletionResult(BaseModel):
    storage_key: str
    deleted: bool
    error: Optional[str] = None


class IssueDeletion(BaseModel):
    """Outcome of deleting an issue and its stored images."""

    issue_id: str
    media: list[MediaDeletionResult] = Field(default_factory=list)


class PublicIssuePage(BaseModel):
    issues: list[IssueSummary]
    pagination: PaginationMeta


class IssuePage(BaseModel):
    issues: list[Issue]
    pagination: PaginationMeta
