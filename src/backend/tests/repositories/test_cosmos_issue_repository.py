"""
Tests for Cosmos DB issue repository.
"""

from unittest.mock import patch

import pytest
from azure.cosmos.exceptions import CosmosAccessConditionFailedError, CosmosResourceNotFoundError

from models.cosmos_documents import (
    GeoLocation,
    IssueComment,
    IssueDocument,
    StatusHistoryEntry,
)
from repositories.cosmos_issue_repository import CosmosIssueRepository

MODULE = "repositories.cosmos_issue_repository"


def _issue_row(issue_id: str, coordinates=(79.86, 6.93), summary: bool = False) -> dict:
    issue = IssueDocument(
        id=issue_id,
        title="Pothole",
        description="Deep pothole on Galle Road",
        category="Pothole",
        location=GeoLocation(coordinates=list(coordinates)),
        reporter_id="citizen-1",
        status_history=[StatusHistoryEntry(status="Pending", changed_by="citizen-1", comment="Issue reported")],
    )
    row = issue.model_dump(mode="json")
    if summary:
        row.pop("status_history")
    return row


@pytest.mark.unit
class TestCosmosIssueRepository:
    """Test CosmosIssueRepository operations."""

    async def test_create_starts_pending_with_history(self) -> None:
        with patch(f"{MODULE}.create_item") as mock_create:
            mock_create.side_effect = lambda container, item: item

            issue = await CosmosIssueRepository().create(
                title="Pothole",
                description="Deep pothole on Galle Road",
                category="Pothole",
                location=GeoLocation(coordinates=[79.86, 6.93]),
                reporter_id="citizen-1",
            )

            container, body = mock_create.call_args.args
            assert container == "issues"
            assert body["status"] == "Pending"
            assert body["status_history"][0]["changed_by"] == "citizen-1"
            assert body["status_history"][0]["comment"] == "Issue reported"
            assert body["location"]["type"] == "Point"
            assert issue.status == "Pending"

    async def test_get_by_id_missing(self) -> None:
        with patch(f"{MODULE}.read_item") as mock_read:
            mock_read.return_value = None

            assert await CosmosIssueRepository().get_by_id("missing") is None

    async def test_status_transition_is_conditional(self) -> None:
        entry = StatusHistoryEntry(status="In Progress", changed_by="official-1", comment="On it")
        with patch(f"{MODULE}.patch_item") as mock_patch:
            mock_patch.return_value = _issue_row("issue-1")

            result = await CosmosIssueRepository().apply_status_transition("issue-1", "Pending", entry)

            assert result is not None
            kwargs = mock_patch.call_args.kwargs
            assert kwargs["partition_key"] == "issue-1"
            assert kwargs["filter_predicate"] == "FROM c WHERE c.status = 'Pending'"
            ops = kwargs["operations"]
            assert ops[0] == {"op": "set", "path": "/status", "value": "In Progress"}
            assert ops[1]["op"] == "add"
            assert ops[1]["path"] == "/status_history/-"
            assert ops[1]["value"]["changed_by"] == "official-1"

    @pytest.mark.parametrize(
        "error",
        [
            CosmosAccessConditionFailedError(status_code=412, message="Precondition failed"),
            CosmosResourceNotFoundError(status_code=404, message="Not found"),
        ],
    )
    async def test_status_transition_lost(self, error) -> None:
        entry = StatusHistoryEntry(status="In Progress", changed_by="official-1")
        with patch(f"{MODULE}.patch_item") as mock_patch:
            mock_patch.side_effect = error

            assert await CosmosIssueRepository().apply_status_transition("issue-1", "Pending", entry) is None

    async def test_append_comment_missing_issue(self) -> None:
        with patch(f"{MODULE}.patch_item") as mock_patch:
            mock_patch.side_effect = CosmosResourceNotFoundError(status_code=404, message="Not found")

            comment = IssueComment(author_id="official-1", text="Hello")
            assert await CosmosIssueRepository().append_comment("missing", comment) is None

    async def test_delete(self) -> None:
        with patch(f"{MODULE}.delete_item") as mock_delete:
            assert await CosmosIssueRepository().delete("issue-1") is True
            mock_delete.assert_awaited_once_with("issues", "issue-1", partition_key="issue-1")

    async def test_delete_missing(self) -> None:
        with patch(f"{MODULE}.delete_item") as mock_delete:
            mock_delete.side_effect = CosmosResourceNotFoundError(status_code=404, message="Not found")

            assert await CosmosIssueRepository().delete("missing") is False


@pytest.mark.unit
class TestIssueListings:
    async def test_list_by_reporter(self) -> None:
        with (
            patch(f"{MODULE}.query_count") as mock_count,
            patch(f"{MODULE}.query_items") as mock_query,
        ):
            mock_count.return_value = 12
            mock_query.return_value = [_issue_row("issue-1")]

            issues, total = await CosmosIssueRepository().list_by_reporter(
                "citizen-1", page=2, per_page=5, status="Pending"
            )

            assert total == 12
            assert issues[0].id == "issue-1"
            params = {p["name"]: p["value"] for p in mock_query.call_args.kwargs["parameters"]}
            assert params["@reporter_id"] == "citizen-1"
            assert params["@status"] == "Pending"
            assert params["@offset"] == 5
            assert params["@limit"] == 5

    async def test_public_feed_excludes_withdrawn_and_history(self) -> None:
        with (
            patch(f"{MODULE}.query_count") as mock_count,
            patch(f"{MODULE}.query_items") as mock_query,
        ):
            mock_count.return_value = 1
            mock_query.return_value = [_issue_row("issue-1", summary=True)]

            issues, total = await CosmosIssueRepository().list_public()

            assert total == 1
            query = mock_query.call_args.args[1]
            assert "status_history" not in query
            assert "SELECT *" not in query
            params = {p["name"]: p["value"] for p in mock_query.call_args.kwargs["parameters"]}
            assert params["@withdrawn"] == "Withdrawn"
            assert "status_history" not in issues[0].model_dump()

    async def test_public_feed_near_point_sorts_by_distance(self) -> None:
        with patch(f"{MODULE}.query_items") as mock_query:
            mock_query.return_value = [
                _issue_row("far", coordinates=(79.90, 6.93), summary=True),
                _issue_row("near", coordinates=(79.861, 6.93), summary=True),
                _issue_row("middle", coordinates=(79.87, 6.93), summary=True),
            ]

            issues, total = await CosmosIssueRepository().list_public(page=1, per_page=2, near=(79.86, 6.93, 5000.0))

            assert total == 3
            assert [i.id for i in issues] == ["near", "middle"]
            query = mock_query.call_args.args[1]
            assert "ST_DISTANCE(c.location, @point) <= @radius" in query
            params = {p["name"]: p["value"] for p in mock_query.call_args.kwargs["parameters"]}
            assert params["@point"] == {"type": "Point", "coordinates": [79.86, 6.93]}
            assert params["@radius"] == 5000.0
