"""
Issue reporting endpoints.

Public:
- GET /issues            public feed (optionally near a point)
- GET /issues/{id}       issue with resolved identities

Authenticated:
- GET /issues/my-issues, POST /issues, PATCH /issues/{id}/withdraw,
  DELETE /issues/{id}

Staff (admin, official):
- PATCH /issues/{id}/status, POST /issues/{id}/comments
"""

from typing import Annotated, Optional

import structlog
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status

from api.deps import CurrentUser, get_current_user, get_issue_service, require_action
from core.config import settings
from core.permissions import Action
from models.cosmos_documents import IssueCategory, IssueStatus
from schemas.common import SuccessResponse
from schemas.converters import issue_to_schema, issue_to_summary
from schemas.issue import (
    Issue,
    IssueCommentCreate,
    IssueCreate,
    IssueDeletion,
    IssueDetail,
    IssuePage,
    IssueStatusUpdate,
    PublicIssuePage,
)
from services.issue_service import IssueService
from services.media_service import MediaService, get_media_service

logger = structlog.get_logger(__name__)

router = APIRouter()

IssueServiceDep = Annotated[IssueService, Depends(get_issue_service)]
PageQuery = Annotated[int, Query(ge=1)]
LimitQuery = Annotated[int, Query(ge=1, le=settings.MAX_PAGE_SIZE)]


@router.get("", response_model=SuccessResponse[PublicIssuePage])
async def get_public_issues(
    service: IssueServiceDep,
    page: PageQuery = 1,
    limit: LimitQuery = settings.DEFAULT_PAGE_SIZE,
    category: Optional[IssueCategory] = None,
    longitude: Annotated[Optional[float], Query(ge=-180, le=180)] = None,
    latitude: Annotated[Optional[float], Query(ge=-90, le=90)] = None,
    radius: Annotated[Optional[float], Query(ge=100, le=50_000, description="Meters")] = None,
):
    """Public issue feed. Withdrawn issues are never listed."""
    issues, pagination = await service.get_public_issues(
        page=page,
        per_page=limit,
        category=category.value if category else None,
        longitude=longitude,
        latitude=latitude,
        radius=radius,
    )
    return SuccessResponse(
        message="Public issues retrieved successfully",
        data=PublicIssuePage(issues=[issue_to_summary(i) for i in issues], pagination=pagination),
    )


@router.get("/my-issues", response_model=SuccessResponse[IssuePage])
async def get_my_issues(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: IssueServiceDep,
    page: PageQuery = 1,
    limit: LimitQuery = settings.DEFAULT_PAGE_SIZE,
    status_filter: Annotated[Optional[IssueStatus], Query(alias="status")] = None,
    category: Optional[IssueCategory] = None,
):
    """The caller's own reports, newest first."""
    issues, pagination = await service.get_user_issues(
        current_user.id,
        page=page,
        per_page=limit,
        status=status_filter.value if status_filter else None,
        category=category.value if category else None,
    )
    return SuccessResponse(
        message="User issues retrieved successfully",
        data=IssuePage(issues=[issue_to_schema(i) for i in issues], pagination=pagination),
    )


@router.get("/{issue_id}", response_model=SuccessResponse[IssueDetail])
async def get_issue(issue_id: str, service: IssueServiceDep):
    issue = await service.get_issue_by_id(issue_id)
    return SuccessResponse(message="Issue retrieved successfully", data=issue)


@router.post("", response_model=SuccessResponse[Issue], status_code=status.HTTP_201_CREATED)
async def create_issue(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: IssueServiceDep,
    media_service: Annotated[MediaService, Depends(get_media_service)],
    title: Annotated[str, Form(min_length=1, max_length=100)],
    description: Annotated[str, Form(min_length=1, max_length=1000)],
    category: Annotated[IssueCategory, Form()],
    longitude: Annotated[float, Form(ge=-180, le=180)],
    latitude: Annotated[float, Form(ge=-90, le=90)],
    address: Annotated[str, Form(max_length=300)] = "",
    images: Annotated[Optional[list[UploadFile]], File(description="Up to 5 photos")] = None,
):
    """
    Report an issue (multipart form).

    Photos are stored first; if the issue cannot be saved they are removed
    again.
    """
    fields = IssueCreate(
        title=title.strip(),
        description=description.strip(),
        category=category,
        longitude=longitude,
        latitude=latitude,
        address=address.strip(),
    )

    media_refs = await media_service.store_uploaded_images(images or [])
    try:
        issue = await service.create_issue(fields, current_user.id, media_refs)
    except Exception:
        if media_refs:
            logger.warning("issue_create_failed_removing_media", images=len(media_refs))
            await media_service.delete_images([ref.storage_key for ref in media_refs])
        raise

    return SuccessResponse(message="Issue reported successfully", data=issue_to_schema(issue))


@router.patch("/{issue_id}/withdraw", response_model=SuccessResponse[Issue])
async def withdraw_issue(
    issue_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: IssueServiceDep,
):
    """Withdraw one of the caller's own reports."""
    issue = await service.withdraw_issue(issue_id, current_user.id)
    return SuccessResponse(message="Issue withdrawn successfully", data=issue_to_schema(issue))


@router.delete("/{issue_id}", response_model=SuccessResponse[IssueDeletion])
async def delete_issue(
    issue_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: IssueServiceDep,
):
    """Delete an issue (its reporter or an admin)."""
    report = await service.delete_issue(issue_id, current_user.id, current_user.role.value)
    return SuccessResponse(message="Issue deleted successfully", data=report)


@router.patch("/{issue_id}/status", response_model=SuccessResponse[Issue])
async def update_issue_status(
    issue_id: str,
    body: IssueStatusUpdate,
    current_user: Annotated[CurrentUser, Depends(require_action(Action.MANAGE_ISSUE_STATUS))],
    service: IssueServiceDep,
):
    issue = await service.update_issue_status(
        issue_id,
        body.status,
        current_user.id,
        current_user.role.value,
        body.comment.strip(),
    )
    return SuccessResponse(message="Issue status updated successfully", data=issue_to_schema(issue))


@router.post("/{issue_id}/comments", response_model=SuccessResponse[Issue])
async def add_comment(
    issue_id: str,
    body: IssueCommentCreate,
    current_user: Annotated[CurrentUser, Depends(require_action(Action.COMMENT_ON_ISSUE))],
    service: IssueServiceDep,
):
    issue = await service.add_comment(issue_id, current_user.id, body.text.strip())
    return SuccessResponse(message="Comment added successfully", data=issue_to_schema(issue))
