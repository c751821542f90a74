"""
Tests for request validation and the 400 error envelope.

Tests validate:
- Required fields, string bounds and enum membership
- UUID, ISO-8601 date and numeric range parsing
- Cross-field date rules
- Field-level error detail
"""

import uuid


def _fields(response) -> list[str]:
    return [error["field"] for error in response.json()["errors"]]


class TestTaskValidation:
    """Tests for task request bodies."""

    async def test_missing_title(self, client, dev_headers):
        response = await client.post("/api/tasks", json={"description": "no title"}, headers=dev_headers)

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["data"] is None
        assert "title" in _fields(response)

    async def test_title_too_short(self, client, dev_headers):
        response = await client.post("/api/tasks", json={"title": "x"}, headers=dev_headers)
        assert response.status_code == 400

    async def test_blank_title_is_stripped_then_rejected(self, client, dev_headers):
        response = await client.post("/api/tasks", json={"title": "    "}, headers=dev_headers)
        assert response.status_code == 400

    async def test_unknown_status(self, client, dev_headers):
        response = await client.post(
            "/api/tasks", json={"title": "Valid", "status": "Someday"}, headers=dev_headers
        )

        assert response.status_code == 400
        assert _fields(response) == ["status"]

    async def test_negative_hours(self, client, dev_headers):
        response = await client.post(
            "/api/tasks", json={"title": "Valid", "estimatedHours": -1}, headers=dev_headers
        )

        assert response.status_code == 400
        assert _fields(response) == ["estimatedHours"]

    async def test_malformed_uuid_in_body(self, client, dev_headers):
        response = await client.post(
            "/api/tasks", json={"title": "Valid", "assigneeId": "not-a-uuid"}, headers=dev_headers
        )
        assert response.status_code == 400

    async def test_malformed_uuid_in_path(self, client, dev_headers):
        response = await client.get("/api/tasks/not-a-uuid", headers=dev_headers)

        assert response.status_code == 400
        assert _fields(response) == ["task_id"]

    async def test_limit_out_of_range(self, client, dev_headers):
        response = await client.get("/api/tasks?limit=1000", headers=dev_headers)
        assert response.status_code == 400

    async def test_bad_date(self, client, dev_headers):
        response = await client.post(
            "/api/tasks", json={"title": "Valid", "dueDate": "31/12/2025"}, headers=dev_headers
        )

        assert response.status_code == 400
        assert _fields(response) == ["dueDate"]


class TestSprintValidation:
    """Tests for sprint date ordering."""

    async def test_end_before_start(self, client, sm_headers):
        response = await client.post(
            "/api/sprints",
            json={
                "name": "S1",
                "startDate": "2025-01-10",
                "endDate": "2025-01-01",
                "boardId": str(uuid.uuid4()),
            },
            headers=sm_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"] == "End date must be after start date"

    async def test_same_day_rejected(self, client, sm_headers):
        response = await client.post(
            "/api/sprints",
            json={
                "name": "S1",
                "startDate": "2025-01-10",
                "endDate": "2025-01-10",
                "boardId": str(uuid.uuid4()),
            },
            headers=sm_headers,
        )

        assert response.status_code == 400
        assert response.json()["message"] == "End date must be after start date"

    async def test_missing_board(self, client, sm_headers):
        response = await client.post(
            "/api/sprints",
            json={"name": "S1", "startDate": "2025-01-01", "endDate": "2025-01-10"},
            headers=sm_headers,
        )

        assert response.status_code == 400
        assert "boardId" in _fields(response)

    async def test_update_keeps_date_order(self, client, sm_headers, make_sprint):
        """A partial update is checked against the stored dates."""
        sprint = await make_sprint(start="2025-01-01", end="2025-01-14")
        response = await client.put(
            f"/api/sprints/{sprint['id']}", json={"endDate": "2024-12-31"}, headers=sm_headers
        )

        assert response.status_code == 400
        assert response.json()["error"] == "End date must be after start date"


class TestProjectValidation:
    """Tests for project request bodies."""

    async def test_negative_budget(self, client, po_headers):
        response = await client.post(
            "/api/projects", json={"name": "Budgeted", "totalBudget": -5}, headers=po_headers
        )

        assert response.status_code == 400
        assert _fields(response) == ["totalBudget"]

    async def test_progress_above_100(self, client, po_headers):
        response = await client.post(
            "/api/projects", json={"name": "Progress", "progress": 101}, headers=po_headers
        )
        assert response.status_code == 400

    async def test_completion_before_start(self, client, po_headers):
        response = await client.post(
            "/api/projects",
            json={"name": "Timeline", "startDate": "2025-03-01", "completionDate": "2025-02-01"},
            headers=po_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Completion date must be on or after start date"


class TestExpenseValidation:
    """Tests for expense and budget item amounts."""

    async def test_zero_amount(self, client, dev_headers, project):
        response = await client.post(
            f"/api/projects/{project.id}/expenses",
            json={"amount": 0, "category": "Travel"},
            headers=dev_headers,
        )

        assert response.status_code == 400
        assert _fields(response) == ["amount"]

    async def test_budget_item_amount_required(self, client, po_headers, project):
        response = await client.post(
            f"/api/projects/{project.id}/budgets",
            json={"name": "Hosting", "category": "Infrastructure"},
            headers=po_headers,
        )

        assert response.status_code == 400
        assert _fields(response) == ["amount"]
