"""
Cosmos DB Issue repository.

Issues live in the 'issues' container, partitioned by id. Status changes are
applied with a server-side patch guarded by a filter predicate on the current
status, so two writers can never both move an issue out of the same state.
"""

import logging
from typing import Optional

from azure.cosmos.exceptions import (
    CosmosAccessConditionFailedError,
    CosmosResourceNotFoundError,
)

from core.geo import haversine_distance, point
from db.cosmos_session import (
    ISSUES_CONTAINER,
    create_item,
    delete_item,
    patch_item,
    query_count,
    query_items,
    read_item,
)
from models.cosmos_documents import (
    GeoLocation,
    ImageRef,
    IssueComment,
    IssueDocument,
    IssueStatus,
    IssueSummaryDocument,
    StatusHistoryEntry,
    format_utc,
    to_document_body,
    utc_now,
)
from models.issue_workflow import INITIAL_COMMENT, INITIAL_STATUS

logger = logging.getLogger(__name__)

# Every issue field except status_history
SUMMARY_FIELDS = (
    "c.id, c.title, c.description, c.category, c.status, c.location, "
    "c.images, c.reporter_id, c.comments, c.created_at, c.updated_at"
)


class CosmosIssueRepository:
    """Repository for issue operations using Cosmos DB."""

    # ========================================================================
    # Read Operations
    # ========================================================================

    async def get_by_id(self, issue_id: str) -> Optional[IssueDocument]:
        """Get an issue by ID (point read)."""
        data = await read_item(ISSUES_CONTAINER, issue_id, partition_key=issue_id)
        if data is None:
            return None
        return IssueDocument(**data)

    async def list_by_reporter(
        self,
        reporter_id: str,
        page: int = 1,
        per_page: int = 10,
        status: Optional[str] = None,
        category: Optional[str] = None,
    ) -> tuple[list[IssueDocument], int]:
        """
        List a reporter's own issues, newest first, including withdrawn ones.

        Returns:
            Tuple of (issues for the page, total matching issues)
        """
        conditions = ["c.reporter_id = @reporter_id"]
        parameters: list[dict] = [{"name": "@reporter_id", "value": reporter_id}]

        if status:
            conditions.append("c.status = @status")
            parameters.append({"name": "@status", "value": status})
        if category:
            conditions.append("c.category = @category")
            parameters.append({"name": "@category", "value": category})

        where_clause = " AND ".join(conditions)

        total = await query_count(
            ISSUES_CONTAINER,
            f"SELECT VALUE COUNT(1) FROM c WHERE {where_clause}",
            parameters=parameters,
        )

        query = f"""
            SELECT * FROM c
            WHERE {where_clause}
            ORDER BY c.created_at DESC
            OFFSET @offset LIMIT @limit
        """
        results = await query_items(
            ISSUES_CONTAINER,
            query,
            parameters=parameters
            + [
                {"name": "@offset", "value": (page - 1) * per_page},
                {"name": "@limit", "value": per_page},
            ],
        )
        return [IssueDocument(**r) for r in results], total

    async def list_public(
        self,
        page: int = 1,
        per_page: int = 10,
        category: Optional[str] = None,
        near: Optional[tuple[float, float, float]] = None,
    ) -> tuple[list[IssueSummaryDocument], int]:
        """
        List issues for the public feed. Withdrawn issues are never included.

        Without ``near`` the feed is ordered newest first. With
        ``near=(longitude, latitude, radius_meters)`` only issues within the
        radius are returned, nearest first.

        Returns:
            Tuple of (issue summaries for the page, total matching issues)
        """
        conditions = ["c.status != @withdrawn"]
        parameters: list[dict] = [{"name": "@withdrawn", "value": IssueStatus.WITHDRAWN.value}]

        if category:
            conditions.append("c.category = @category")
            parameters.append({"name": "@category", "value": category})

        if near is None:
            where_clause = " AND ".join(conditions)
            total = await query_count(
                ISSUES_CONTAINER,
                f"SELECT VALUE COUNT(1) FROM c WHERE {where_clause}",
                parameters=parameters,
            )
            query = f"""
                SELECT {SUMMARY_FIELDS} FROM c
                WHERE {where_clause}
                ORDER BY c.created_at DESC
                OFFSET @offset LIMIT @limit
            """
            results = await query_items(
                ISSUES_CONTAINER,
                query,
                parameters=parameters
                + [
                    {"name": "@offset", "value": (page - 1) * per_page},
                    {"name": "@limit", "value": per_page},
                ],
            )
            return [IssueSummaryDocument(**r) for r in results], total

        longitude, latitude, radius = near
        conditions.append("ST_DISTANCE(c.location, @point) <= @radius")
        parameters.extend(
            [
                {"name": "@point", "value": point(longitude, latitude)},
                {"name": "@radius", "value": radius},
            ]
        )
        where_clause = " AND ".join(conditions)

        # Cosmos DB cannot ORDER BY a computed distance, so sort in Python
        results = await query_items(
            ISSUES_CONTAINER,
            f"SELECT {SUMMARY_FIELDS} FROM c WHERE {where_clause}",
            parameters=parameters,
        )
        issues = [IssueSummaryDocument(**r) for r in results]
        issues.sort(
            key=lambda issue: haversine_distance(
                longitude, latitude, issue.location.longitude, issue.location.latitude
            )
        )

        start = (page - 1) * per_page
        return issues[start : start + per_page], len(issues)

    # ========================================================================
    # Write Operations
    # ========================================================================

    async def create(
        self,
        title: str,
        description: str,
        category: str,
        location: GeoLocation,
        reporter_id: str,
        images: Optional[list[ImageRef]] = None,
    ) -> IssueDocument:
        """Create an issue in the initial status with its first history entry."""
        now = utc_now()
        issue = IssueDocument(
            title=title,
            description=description,
            category=category,
            status=INITIAL_STATUS,
            location=location,
            images=images or [],
            reporter_id=reporter_id,
            status_history=[
                StatusHistoryEntry(
                    status=INITIAL_STATUS,
                    changed_by=reporter_id,
                    comment=INITIAL_COMMENT,
                    timestamp=now,
                )
            ],
            created_at=now,
            updated_at=now,
        )

        created = await create_item(ISSUES_CONTAINER, to_document_body(issue))
        logger.info(f"Created issue {issue.id} for reporter {reporter_id}")
        return IssueDocument(**created)

    async def apply_status_transition(
        self,
        issue_id: str,
        expected_status: str,
        entry: StatusHistoryEntry,
    ) -> Optional[IssueDocument]:
        """
        Set the status and append the history entry in one atomic patch.

        The patch only applies while the stored status still equals
        ``expected_status``.

        Returns:
            The updated issue, or None if the issue is gone or its status
            changed since it was read
        """
        expected = IssueStatus(expected_status).value
        operations = [
            {"op": "set", "path": "/status", "value": IssueStatus(entry.status).value},
            {"op": "add", "path": "/status_history/-", "value": entry.model_dump(mode="json")},
            {"op": "set", "path": "/updated_at", "value": format_utc(entry.timestamp)},
        ]
        try:
            updated = await patch_item(
                ISSUES_CONTAINER,
                issue_id,
                partition_key=issue_id,
                operations=operations,
                filter_predicate=f"FROM c WHERE c.status = '{expected}'",
            )
        except CosmosAccessConditionFailedError:
            logger.info(f"Status of issue {issue_id} is no longer {expected}")
            return None
        except CosmosResourceNotFoundError:
            return None

        logger.debug(f"Issue {issue_id} moved {expected} -> {entry.status}")
        return IssueDocument(**updated)

    async def append_comment(self, issue_id: str, comment: IssueComment) -> Optional[IssueDocument]:
        """Append a comment atomically. Returns None if the issue does not exist."""
        operations = [
            {"op": "add", "path": "/comments/-", "value": comment.model_dump(mode="json")},
            {"op": "set", "path": "/updated_at", "value": format_utc(comment.timestamp)},
        ]
        try:
            updated = await patch_item(
                ISSUES_CONTAINER,
                issue_id,
                partition_key=issue_id,
                operations=operations,
            )
        except CosmosResourceNotFoundError:
            return None
        return IssueDocument(**updated)

    async def delete(self, issue_id: str) -> bool:
        """Delete an issue. Returns False if it did not exist."""
        try:
            await delete_item(ISSUES_CONTAINER, issue_id, partition_key=issue_id)
        except CosmosResourceNotFoundError:
            return False
        logger.info(f"Deleted issue {issue_id}")
        return True
