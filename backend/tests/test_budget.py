"""
Tests for budget computation and the expense approval workflow.

Tests validate:
- Remaining budget and the at-risk flag
- Pending -> Approved | Rejected transitions
- Spent recomputed from approved expenses only
- Budget item ownership and category fallback
"""

import uuid
from decimal import Decimal

import pytest

from projecthub.models import Expense, Project
from projecthub.services.budget import compute_budget_status


class TestComputeBudgetStatus:
    """Tests for compute_budget_status."""

    def test_half_spent_is_healthy(self):
        status = compute_budget_status(Decimal("10000"), Decimal("3000") + Decimal("2000"), 0.10)

        assert status.remaining == Decimal("5000")
        assert status.at_risk is False
        assert status.utilization == 50.0

    def test_under_threshold_is_at_risk(self):
        spent = Decimal("3000") + Decimal("2000") + Decimal("4500")
        status = compute_budget_status(Decimal("10000"), spent, 0.10)

        assert status.remaining == Decimal("500")
        assert status.at_risk is True

    def test_exactly_at_threshold_is_healthy(self):
        status = compute_budget_status(Decimal("10000"), Decimal("9000"), 0.10)
        assert status.at_risk is False

    def test_overspent_is_at_risk(self):
        status = compute_budget_status(Decimal("100"), Decimal("150"), 0.10)

        assert status.remaining == Decimal("-50")
        assert status.at_risk is True

    @pytest.mark.parametrize("spent", [Decimal("0"), Decimal("25")])
    def test_zero_budget(self, spent):
        """Without a budget only overspending counts as risk."""
        status = compute_budget_status(Decimal("0"), spent, 0.10)

        assert status.utilization == 0.0
        assert status.at_risk is (spent > 0)


async def _submit(client, headers, project_id, **body) -> dict:
    body.setdefault("amount", 100)
    body.setdefault("category", "Travel")
    response = await client.post(f"/api/projects/{project_id}/expenses", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestExpenseWorkflow:
    """Tests for submission, approval and rejection."""

    async def test_submission_is_pending(self, client, dev_headers, developer, project):
        expense = await _submit(client, dev_headers, project.id, amount=250.5, date="2025-02-01")

        assert expense["paymentStatus"] == "Pending"
        assert expense["amount"] == 250.5
        assert expense["date"] == "2025-02-01"
        assert expense["createdById"] == str(developer.id)
        assert expense["approvedBy"] is None

    async def test_approve(self, client, dev_headers, po_headers, product_owner, project):
        expense = await _submit(client, dev_headers, project.id)

        response = await client.post(f"/api/expenses/{expense['id']}/approve", headers=po_headers)

        assert response.status_code == 200
        approved = response.json()["data"]
        assert approved["paymentStatus"] == "Approved"
        assert approved["approvedBy"] == str(product_owner.id)
        assert approved["approvedAt"] is not None

    async def test_approval_is_terminal(self, client, dev_headers, po_headers, project):
        expense = await _submit(client, dev_headers, project.id)
        await client.post(f"/api/expenses/{expense['id']}/approve", headers=po_headers)

        again = await client.post(f"/api/expenses/{expense['id']}/approve", headers=po_headers)
        assert again.status_code == 409
        assert again.json()["error"] == (
            "Only pending expenses can be approved (current status: Approved)"
        )

        reject = await client.post(f"/api/expenses/{expense['id']}/reject", headers=po_headers)
        assert reject.status_code == 409

    async def test_reject_with_reason(self, client, dev_headers, po_headers, product_owner, project):
        expense = await _submit(client, dev_headers, project.id)

        response = await client.post(
            f"/api/expenses/{expense['id']}/reject",
            json={"reason": "No receipt"},
            headers=po_headers,
        )

        assert response.status_code == 200
        rejected = response.json()["data"]
        assert rejected["paymentStatus"] == "Rejected"
        assert rejected["rejectedBy"] == str(product_owner.id)
        assert rejected["rejectionReason"] == "No receipt"

    async def test_reject_without_body(self, client, dev_headers, po_headers, project):
        expense = await _submit(client, dev_headers, project.id)
        response = await client.post(f"/api/expenses/{expense['id']}/reject", headers=po_headers)

        assert response.status_code == 200
        assert response.json()["data"]["rejectionReason"] is None

    async def test_edit_only_while_pending(self, client, dev_headers, po_headers, project):
        expense = await _submit(client, dev_headers, project.id)

        edited = await client.put(
            f"/api/expenses/{expense['id']}", json={"amount": 120}, headers=dev_headers
        )
        assert edited.json()["data"]["amount"] == 120.0

        await client.post(f"/api/expenses/{expense['id']}/approve", headers=po_headers)
        response = await client.put(
            f"/api/expenses/{expense['id']}", json={"amount": 999}, headers=dev_headers
        )

        assert response.status_code == 409
        assert response.json()["error"] == "Only pending expenses can be edited"

    async def test_unknown_expense(self, client, po_headers):
        response = await client.post(f"/api/expenses/{uuid.uuid4()}/approve", headers=po_headers)

        assert response.status_code == 404
        assert response.json()["error"] == "Expense not found"


class TestBudgetItems:
    """Tests for budget items referenced by expenses."""

    async def _item(self, client, headers, project_id, **body) -> dict:
        body = {"name": "Flights", "category": "Travel", "amount": 2000, **body}
        response = await client.post(
            f"/api/projects/{project_id}/budgets", json=body, headers=headers
        )
        assert response.status_code == 201, response.text
        return response.json()["data"]

    async def test_category_falls_back_to_budget_item(self, client, po_headers, dev_headers, project):
        item = await self._item(client, po_headers, project.id, category="Hardware")
        response = await client.post(
            f"/api/projects/{project.id}/expenses",
            json={"amount": 80, "budgetItemId": item["id"]},
            headers=dev_headers,
        )

        assert response.status_code == 201
        assert response.json()["data"]["category"] == "Hardware"

    async def test_category_required_without_item(self, client, dev_headers, project):
        response = await client.post(
            f"/api/projects/{project.id}/expenses", json={"amount": 80}, headers=dev_headers
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Category is required"

    async def test_budget_item_from_other_project(
        self, client, po_headers, dev_headers, project, session_factory, product_owner
    ):
        async with session_factory() as session:
            other = Project(
                name="Other", project_id_str="OTH-1", owner_id=product_owner.id,
                total_budget=Decimal("500"),
            )
            session.add(other)
            await session.commit()
        item = await self._item(client, po_headers, other.id)

        response = await client.post(
            f"/api/projects/{project.id}/expenses",
            json={"amount": 10, "budgetItemId": item["id"]},
            headers=dev_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Budget item does not belong to this project"

    async def test_developer_cannot_manage_budget(self, client, dev_headers, project):
        response = await client.post(
            f"/api/projects/{project.id}/budgets",
            json={"name": "Flights", "category": "Travel", "amount": 10},
            headers=dev_headers,
        )
        assert response.status_code == 403


class TestBudgetSummary:
    """Tests for GET /api/projects/{id}/budgets/summary and the cached used budget."""

    async def test_summary_counts_approved_only(
        self, client, po_headers, dev_headers, project, load
    ):
        await client.post(
            f"/api/projects/{project.id}/budgets",
            json={"name": "Flights", "category": "Travel", "amount": 6000},
            headers=po_headers,
        )
        approved = []
        for amount in (3000, 2000):
            expense = await _submit(client, dev_headers, project.id, amount=amount)
            await client.post(f"/api/expenses/{expense['id']}/approve", headers=po_headers)
            approved.append(expense)
        await _submit(client, dev_headers, project.id, amount=700)
        rejected = await _submit(client, dev_headers, project.id, amount=400)
        await client.post(f"/api/expenses/{rejected['id']}/reject", headers=po_headers)

        response = await client.get(
            f"/api/projects/{project.id}/budgets/summary", headers=dev_headers
        )

        assert response.status_code == 200
        summary = response.json()["data"]
        assert summary["totalBudget"] == 10000.0
        assert summary["allocated"] == 6000.0
        assert summary["spent"] == 5000.0
        assert summary["pending"] == 700.0
        assert summary["remaining"] == 5000.0
        assert summary["utilization"] == 50.0
        assert summary["atRisk"] is False
        assert summary["categories"] == [
            {"category": "Travel", "budgeted": 6000.0, "spent": 5000.0, "remaining": 1000.0}
        ]

        refreshed = await load(Project, project.id)
        assert refreshed.used_budget == Decimal("5000.00")

    async def test_summary_flags_risk(self, client, po_headers, dev_headers, project):
        expense = await _submit(client, dev_headers, project.id, amount=9500)
        await client.post(f"/api/expenses/{expense['id']}/approve", headers=po_headers)

        response = await client.get(
            f"/api/projects/{project.id}/budgets/summary", headers=dev_headers
        )

        assert response.json()["data"]["atRisk"] is True
        assert response.json()["data"]["remaining"] == 500.0

    async def test_deleting_approved_expense_refreshes_used_budget(
        self, client, po_headers, dev_headers, project, load
    ):
        expense = await _submit(client, dev_headers, project.id, amount=1200)
        await client.post(f"/api/expenses/{expense['id']}/approve", headers=po_headers)

        response = await client.delete(f"/api/expenses/{expense['id']}", headers=po_headers)

        assert response.status_code == 200
        assert await load(Expense, expense["id"]) is None
        refreshed = await load(Project, project.id)
        assert refreshed.used_budget == Decimal("0")
