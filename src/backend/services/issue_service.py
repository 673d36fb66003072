"""
Issue Service.

Owns the issue lifecycle: reporting, listing, the status workflow with its
audit trail, official comments, withdrawal and deletion with media cleanup.

Status changes are validated against the transition table and committed
with a conditional write on the status that was validated, so a stale
request can never append a second history entry from the same state.
"""

from typing import Optional, Sequence

import structlog

from core.config import settings
from core.exceptions import (
    ConflictError,
    InvalidArgumentError,
    InvalidTransitionError,
    NotFoundError,
)
from core.permissions import Action, authorize
from models.cosmos_documents import (
    ImageRef,
    IssueComment,
    IssueDocument,
    IssueStatus,
    IssueSummaryDocument,
    StatusHistoryEntry,
)
from models.issue_workflow import WITHDRAWAL_COMMENT, can_transition
from repositories.provider import IssueRepositoryProtocol, UserRepositoryProtocol
from schemas.common import PaginationMeta
from schemas.converters import issue_to_detail, referenced_user_ids
from schemas.issue import IssueCreate, IssueDeletion, IssueDetail, MediaDeletionResult
from services.media_service import MediaService

logger = structlog.get_logger(__name__)

MIN_RADIUS_METERS = 100
MAX_RADIUS_METERS = 50_000

ISSUE_NOT_FOUND = "Issue not found"


class IssueService:
    """Issue engine operating on injected repositories and media storage."""

    def __init__(
        self,
        issue_repo: IssueRepositoryProtocol,
        user_repo: UserRepositoryProtocol,
        media_service: MediaService,
    ):
        self.issue_repo = issue_repo
        self.user_repo = user_repo
        self.media_service = media_service

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _get_or_404(self, issue_id: str) -> IssueDocument:
        issue = await self.issue_repo.get_by_id(issue_id)
        if issue is None:
            raise NotFoundError(ISSUE_NOT_FOUND)
        return issue

    @staticmethod
    def _parse_status(value: "IssueStatus | str") -> IssueStatus:
        try:
            return IssueStatus(value)
        except ValueError:
            raise InvalidArgumentError(f'Unknown issue status "{value}"') from None

    @staticmethod
    def _check_page(page: int, per_page: int) -> None:
        if page < 1:
            raise InvalidArgumentError("Page must be a positive integer")
        if not 1 <= per_page <= settings.MAX_PAGE_SIZE:
            raise InvalidArgumentError(f"Limit must be between 1 and {settings.MAX_PAGE_SIZE}")

    async def _commit_transition(
        self,
        issue: IssueDocument,
        target: IssueStatus,
        actor_id: str,
        comment: str,
        rejection: str,
    ) -> IssueDocument:
        """
        Write a validated transition, guarded by the status it was validated against.

        If another request changed the issue first, the fresh status is
        checked again: a move that is no longer allowed fails with
        ``rejection``; otherwise the caller may retry.
        """
        entry = StatusHistoryEntry(status=target, changed_by=actor_id, comment=comment)
        updated = await self.issue_repo.apply_status_transition(issue.id, issue.status, entry)
        if updated is not None:
            logger.info(
                "issue_status_changed",
                issue_id=issue.id,
                from_status=issue.status,
                to_status=target.value,
                actor_id=actor_id,
            )
            return updated

        fresh = await self.issue_repo.get_by_id(issue.id)
        if fresh is None:
            raise NotFoundError(ISSUE_NOT_FOUND)

        logger.info(
            "issue_transition_lost_race",
            issue_id=issue.id,
            expected_status=issue.status,
            current_status=fresh.status,
            to_status=target.value,
        )
        if not can_transition(fresh.status, target):
            raise InvalidTransitionError(rejection.format(status=fresh.status))
        raise ConflictError("The issue was updated by another request; please retry")

    # =========================================================================
    # Creation & Retrieval
    # =========================================================================

    async def create_issue(
        self,
        fields: IssueCreate,
        reporter_id: str,
        media_refs: Sequence[ImageRef] = (),
    ) -> IssueDocument:
        """Report a new issue. It starts Pending with one history entry."""
        if len(media_refs) > settings.ISSUE_MAX_IMAGES:
            raise InvalidArgumentError(f"You can upload at most {settings.ISSUE_MAX_IMAGES} images")

        issue = await self.issue_repo.create(
            title=fields.title,
            description=fields.description,
            category=fields.category.value,
            location=fields.to_location(),
            reporter_id=reporter_id,
            images=list(media_refs),
        )
        logger.info(
            "issue_created",
            issue_id=issue.id,
            reporter_id=reporter_id,
            category=issue.category,
            images=len(issue.images),
        )
        return issue

    async def get_issue_by_id(self, issue_id: str) -> IssueDetail:
        """Get an issue with its reporter, history actors and comment authors resolved."""
        issue = await self._get_or_404(issue_id)
        users = await self.user_repo.get_many(referenced_user_ids(issue))
        return issue_to_detail(issue, users)

    async def get_user_issues(
        self,
        reporter_id: str,
        page: int = 1,
        per_page: Optional[int] = None,
        status: Optional[str] = None,
        category: Optional[str] = None,
    ) -> tuple[list[IssueDocument], PaginationMeta]:
        """List the caller's own reports, newest first."""
        per_page = per_page or settings.DEFAULT_PAGE_SIZE
        self._check_page(page, per_page)
        if status is not None:
            status = self._parse_status(status).value

        issues, total = await self.issue_repo.list_by_reporter(
            reporter_id,
            page=page,
            per_page=per_page,
            status=status,
            category=category,
        )
        return issues, PaginationMeta.build(page, per_page, total)

    async def get_public_issues(
        self,
        page: int = 1,
        per_page: Optional[int] = None,
        category: Optional[str] = None,
        longitude: Optional[float] = None,
        latitude: Optional[float] = None,
        radius: Optional[float] = None,
    ) -> tuple[list[IssueSummaryDocument], PaginationMeta]:
        """
        Public issue feed. Withdrawn issues are never listed.

        With a point (longitude and latitude) only issues within ``radius``
        meters (default from settings) are listed, nearest first; otherwise
        newest first.
        """
        per_page = per_page or settings.DEFAULT_PAGE_SIZE
        self._check_page(page, per_page)

        near = None
        if longitude is not None or latitude is not None:
            if longitude is None or latitude is None:
                raise InvalidArgumentError("Both longitude and latitude are required for a location search")
            if not -180 <= longitude <= 180:
                raise InvalidArgumentError("Longitude must be between -180 and 180")
            if not -90 <= latitude <= 90:
                raise InvalidArgumentError("Latitude must be between -90 and 90")
            radius = settings.GEO_DEFAULT_RADIUS_METERS if radius is None else radius
            if not MIN_RADIUS_METERS <= radius <= MAX_RADIUS_METERS:
                raise InvalidArgumentError(
                    f"Radius must be between {MIN_RADIUS_METERS} and {MAX_RADIUS_METERS} meters"
                )
            near = (longitude, latitude, float(radius))

        issues, total = await self.issue_repo.list_public(
            page=page,
            per_page=per_page,
            category=category,
            near=near,
        )
        return issues, PaginationMeta.build(page, per_page, total)

    # =========================================================================
    # Workflow
    # =========================================================================

    async def update_issue_status(
        self,
        issue_id: str,
        new_status: "IssueStatus | str",
        actor_id: str,
        actor_role: Optional[str],
        comment: str = "",
    ) -> IssueDocument:
        """
        Move an issue through the workflow.

        Raises:
            NotFoundError: The issue does not exist
            InvalidTransitionError: The move is not in the transition table
            ForbiddenError: A non-staff caller tried to resolve the issue
            ConflictError: Another request changed the issue first and the
                move is still allowed from its new status
        """
        issue = await self._get_or_404(issue_id)
        target = self._parse_status(new_status)

        rejection = f'Cannot transition from "{{status}}" to "{target.value}"'
        if not can_transition(issue.status, target):
            raise InvalidTransitionError(rejection.format(status=issue.status))

        if target == IssueStatus.RESOLVED:
            authorize(Action.RESOLVE_ISSUE, actor_role)

        return await self._commit_transition(issue, target, actor_id, comment, rejection)

    async def withdraw_issue(self, issue_id: str, actor_id: str) -> IssueDocument:
        """Withdraw an issue. Only its reporter may, and only before it is final."""
        issue = await self._get_or_404(issue_id)

        authorize(Action.WITHDRAW_ISSUE, None, is_owner=issue.reporter_id == actor_id)

        rejection = 'Cannot withdraw an issue with status "{status}"'
        if not can_transition(issue.status, IssueStatus.WITHDRAWN):
            raise InvalidTransitionError(rejection.format(status=issue.status))

        return await self._commit_transition(
            issue, IssueStatus.WITHDRAWN, actor_id, WITHDRAWAL_COMMENT, rejection
        )

    async def add_comment(self, issue_id: str, actor_id: str, text: str) -> IssueDocument:
        """Append an official comment. Comments do not affect the status."""
        comment = IssueComment(author_id=actor_id, text=text)
        updated = await self.issue_repo.append_comment(issue_id, comment)
        if updated is None:
            raise NotFoundError(ISSUE_NOT_FOUND)

        logger.info("issue_comment_added", issue_id=issue_id, author_id=actor_id, comment_id=comment.id)
        return updated

    # =========================================================================
    # Deletion
    # =========================================================================

    async def delete_issue(self, issue_id: str, actor_id: str, actor_role: Optional[str]) -> IssueDeletion:
        """
        Delete an issue and, best effort, its stored images.

        Image deletions run concurrently and fail independently; a failed
        image never prevents the issue itself from being deleted.
        """
        issue = await self._get_or_404(issue_id)

        authorize(Action.DELETE_ISSUE, actor_role, is_owner=issue.reporter_id == actor_id)

        outcomes = []
        if issue.images:
            outcomes = await self.media_service.delete_images([image.storage_key for image in issue.images])
            failed = [o.storage_key for o in outcomes if not o.deleted]
            if failed:
                logger.warning("issue_media_cleanup_incomplete", issue_id=issue_id, failed_keys=failed)

        if not await self.issue_repo.delete(issue_id):
            raise NotFoundError(ISSUE_NOT_FOUND)

        logger.info("issue_deleted", issue_id=issue_id, actor_id=actor_id, images=len(issue.images))
        return IssueDeletion(
            issue_id=issue_id,
            media=[
                MediaDeletionResult(storage_key=o.storage_key, deleted=o.deleted, error=o.error)
                for o in outcomes
            ],
        )
