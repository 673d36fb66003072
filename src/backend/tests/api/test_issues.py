"""
Tests for issue endpoints.

Services run on in-memory repositories; authentication uses real tokens.
"""

import pytest
from httpx import AsyncClient

from fakes import add_issue
from models.cosmos_documents import ImageRef, IssueStatus


def _report_form(**overrides) -> dict[str, str]:
    data = {
        "title": "Pothole",
        "description": "Deep pothole on Galle Road",
        "category": "Pothole",
        "longitude": "79.86",
        "latitude": "6.93",
        "address": "Galle Road",
    }
    data.update(overrides)
    return data


@pytest.mark.unit
class TestReportIssue:
    async def test_report_issue(self, client: AsyncClient, override_services, auth_headers) -> None:
        response = await client.post("/api/v1/issues", data=_report_form(), headers=auth_headers())

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "success"
        assert body["message"] == "Issue reported successfully"
        issue = body["data"]
        assert issue["status"] == "Pending"
        assert issue["reporter_id"] == "citizen-1"
        assert issue["location"]["coordinates"] == [79.86, 6.93]
        assert len(issue["status_history"]) == 1

    async def test_report_issue_with_photos(self, client: AsyncClient, override_services, auth_headers) -> None:
        files = [
            ("images", ("a.jpg", b"\xff\xd8first", "image/jpeg")),
            ("images", ("b.png", b"\x89PNGsecond", "image/png")),
        ]

        response = await client.post("/api/v1/issues", data=_report_form(), files=files, headers=auth_headers())

        assert response.status_code == 201
        assert [i["storage_key"] for i in response.json()["data"]["images"]] == ["issues/0.jpg", "issues/1.jpg"]

    async def test_report_requires_authentication(self, client: AsyncClient, override_services) -> None:
        response = await client.post("/api/v1/issues", data=_report_form())

        assert response.status_code == 401
        assert response.json()["status"] == "error"

    async def test_report_rejects_unknown_category(self, client: AsyncClient, override_services, auth_headers) -> None:
        response = await client.post("/api/v1/issues", data=_report_form(category="Volcano"), headers=auth_headers())

        assert response.status_code == 422

    async def test_report_rejects_blank_title(self, client: AsyncClient, override_services, auth_headers) -> None:
        response = await client.post("/api/v1/issues", data=_report_form(title="   "), headers=auth_headers())

        assert response.status_code == 422


@pytest.mark.unit
class TestIssueListing:
    async def test_public_feed(self, client: AsyncClient, override_services, issue_repo) -> None:
        add_issue(issue_repo)
        add_issue(issue_repo, path=(IssueStatus.PENDING, IssueStatus.WITHDRAWN))

        response = await client.get("/api/v1/issues")

        assert response.status_code == 200
        data = response.json()["data"]
        assert len(data["issues"]) == 1
        assert "status_history" not in data["issues"][0]
        assert data["pagination"] == {"page": 1, "per_page": 10, "total": 1, "total_pages": 1}

    async def test_public_feed_rejects_half_a_point(self, client: AsyncClient, override_services) -> None:
        response = await client.get("/api/v1/issues", params={"longitude": 79.86})

        assert response.status_code == 400
        assert response.json()["status"] == "error"

    async def test_my_issues(self, client: AsyncClient, override_services, issue_repo, auth_headers) -> None:
        add_issue(issue_repo, reporter_id="citizen-1")
        add_issue(issue_repo, reporter_id="citizen-2")

        response = await client.get("/api/v1/issues/my-issues", headers=auth_headers("citizen-1", "user"))

        assert response.status_code == 200
        issues = response.json()["data"]["issues"]
        assert len(issues) == 1
        assert issues[0]["reporter_id"] == "citizen-1"
        assert issues[0]["status_history"]

    async def test_my_issues_status_filter(self, client: AsyncClient, override_services, issue_repo, auth_headers) -> None:
        add_issue(issue_repo, reporter_id="citizen-1")
        add_issue(issue_repo, reporter_id="citizen-1", path=(IssueStatus.PENDING, IssueStatus.IN_PROGRESS))

        response = await client.get(
            "/api/v1/issues/my-issues", params={"status": "In Progress"}, headers=auth_headers()
        )

        assert [i["status"] for i in response.json()["data"]["issues"]] == ["In Progress"]

    async def test_issue_detail_is_public(self, client: AsyncClient, override_services, issue_repo) -> None:
        issue = add_issue(issue_repo, reporter_id="citizen-1")

        response = await client.get(f"/api/v1/issues/{issue.id}")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["reporter"]["name"] == "Ada Citizen"
        assert data["status_history"][0]["changed_by"]["id"] == "citizen-1"

    async def test_issue_detail_not_found(self, client: AsyncClient, override_services) -> None:
        response = await client.get("/api/v1/issues/missing")

        assert response.status_code == 404
        assert response.json() == {"status": "error", "message": "Issue not found"}


@pytest.mark.unit
class TestIssueWorkflowEndpoints:
    async def test_official_moves_issue(self, client: AsyncClient, override_services, issue_repo, auth_headers) -> None:
        issue = add_issue(issue_repo)

        response = await client.patch(
            f"/api/v1/issues/{issue.id}/status",
            json={"status": "In Progress", "comment": "Crew dispatched"},
            headers=auth_headers("official-1", "official"),
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "In Progress"
        assert data["status_history"][-1]["comment"] == "Crew dispatched"

    async def test_citizen_cannot_use_status_route(
        self, client: AsyncClient, override_services, issue_repo, auth_headers
    ) -> None:
        issue = add_issue(issue_repo)

        response = await client.patch(
            f"/api/v1/issues/{issue.id}/status", json={"status": "In Progress"}, headers=auth_headers()
        )

        assert response.status_code == 403
        assert response.json()["message"] == "User role 'citizen' is not authorized to access this route"

    async def test_invalid_transition_is_400(self, client: AsyncClient, override_services, issue_repo, auth_headers) -> None:
        issue = add_issue(issue_repo)

        response = await client.patch(
            f"/api/v1/issues/{issue.id}/status",
            json={"status": "Resolved"},
            headers=auth_headers("admin-1", "admin"),
        )

        assert response.status_code == 400
        assert response.json()["message"] == 'Cannot transition from "Pending" to "Resolved"'

    async def test_unknown_status_value_is_422(self, client: AsyncClient, override_services, issue_repo, auth_headers) -> None:
        issue = add_issue(issue_repo)

        response = await client.patch(
            f"/api/v1/issues/{issue.id}/status",
            json={"status": "Closed"},
            headers=auth_headers("admin-1", "admin"),
        )

        assert response.status_code == 422

    async def test_withdraw(self, client: AsyncClient, override_services, issue_repo, auth_headers) -> None:
        issue = add_issue(issue_repo, reporter_id="citizen-1")

        response = await client.patch(f"/api/v1/issues/{issue.id}/withdraw", headers=auth_headers())

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "Withdrawn"

    async def test_withdraw_someone_elses_issue(self, client: AsyncClient, override_services, issue_repo, auth_headers) -> None:
        issue = add_issue(issue_repo, reporter_id="citizen-1")

        response = await client.patch(f"/api/v1/issues/{issue.id}/withdraw", headers=auth_headers("citizen-2"))

        assert response.status_code == 403
        assert response.json()["message"] == "You can only withdraw your own reports"

    async def test_staff_comment(self, client: AsyncClient, override_services, issue_repo, auth_headers) -> None:
        issue = add_issue(issue_repo)

        response = await client.post(
            f"/api/v1/issues/{issue.id}/comments",
            json={"text": "Scheduled for Monday"},
            headers=auth_headers("official-1", "official"),
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["comments"][0]["text"] == "Scheduled for Monday"
        assert data["status"] == "Pending"


@pytest.mark.unit
class TestDeleteIssueEndpoint:
    async def test_reporter_deletes(self, client: AsyncClient, override_services, issue_repo, media_service, auth_headers) -> None:
        images = [ImageRef(url="https://media.test/issues/x.jpg", storage_key="issues/x.jpg")]
        issue = add_issue(issue_repo, reporter_id="citizen-1", images=images)

        response = await client.delete(f"/api/v1/issues/{issue.id}", headers=auth_headers())

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["issue_id"] == issue.id
        assert data["media"] == [{"storage_key": "issues/x.jpg", "deleted": True, "error": None}]
        assert media_service.deleted == ["issues/x.jpg"]

    async def test_official_cannot_delete(self, client: AsyncClient, override_services, issue_repo, auth_headers) -> None:
        issue = add_issue(issue_repo, reporter_id="citizen-1")

        response = await client.delete(f"/api/v1/issues/{issue.id}", headers=auth_headers("official-1", "official"))

        assert response.status_code == 403
        assert issue.id in issue_repo.issues
