"""
Tests for projects, team membership, user administration and reports.

Tests validate:
- Project creation defaults, soft delete and membership
- Admin user management guards
- Report aggregates
"""

import uuid

from projecthub.models import Project


class TestProjects:
    """Tests for /api/projects."""

    async def test_create_defaults(self, client, po_headers, product_owner):
        response = await client.post(
            "/api/projects", json={"name": "Mobile App", "totalBudget": 5000}, headers=po_headers
        )

        assert response.status_code == 201
        project = response.json()["data"]
        assert project["ownerId"] == str(product_owner.id)
        assert project["status"] == "Not Started"
        assert project["totalBudget"] == 5000.0
        assert project["usedBudget"] == 0.0
        assert [m["id"] for m in project["members"]] == [str(product_owner.id)]

    async def test_used_budget_is_not_writable(self, client, po_headers, project):
        response = await client.put(
            f"/api/projects/{project.id}", json={"usedBudget": 999}, headers=po_headers
        )

        assert response.status_code == 200
        assert response.json()["data"]["usedBudget"] == 0.0

    async def test_unknown_member(self, client, po_headers):
        response = await client.post(
            "/api/projects",
            json={"name": "Ghost Team", "memberIds": [str(uuid.uuid4())]},
            headers=po_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"] == "One or more team members do not exist"

    async def test_soft_delete(self, client, po_headers, project, load):
        response = await client.delete(f"/api/projects/{project.id}", headers=po_headers)
        assert response.status_code == 200

        assert (await client.get(f"/api/projects/{project.id}", headers=po_headers)).status_code == 404
        listing = await client.get("/api/projects", headers=po_headers)
        assert listing.json()["data"] == []
        assert (await load(Project, project.id)).deleted_at is not None

    async def test_search(self, client, po_headers, project):
        by_name = await client.get("/api/projects?search=relaunch", headers=po_headers)
        by_code = await client.get("/api/projects?search=web-1", headers=po_headers)
        miss = await client.get("/api/projects?search=payroll", headers=po_headers)

        assert [p["id"] for p in by_name.json()["data"]] == [str(project.id)]
        assert [p["id"] for p in by_code.json()["data"]] == [str(project.id)]
        assert miss.json()["data"] == []


class TestMembers:
    """Tests for /api/projects/{id}/members."""

    async def test_add_and_remove(self, client, po_headers, project, developer):
        added = await client.post(
            f"/api/projects/{project.id}/members",
            json={"userId": str(developer.id)},
            headers=po_headers,
        )
        assert added.status_code == 201
        assert [m["id"] for m in added.json()["data"]] == [str(developer.id)]

        again = await client.post(
            f"/api/projects/{project.id}/members",
            json={"userId": str(developer.id)},
            headers=po_headers,
        )
        assert again.status_code == 409

        removed = await client.delete(
            f"/api/projects/{project.id}/members/{developer.id}", headers=po_headers
        )
        assert removed.json()["data"] == []

    async def test_remove_non_member(self, client, po_headers, project, developer):
        response = await client.delete(
            f"/api/projects/{project.id}/members/{developer.id}", headers=po_headers
        )
        assert response.status_code == 400


class TestUserAdministration:
    """Tests for admin-only /api/users operations."""

    async def test_admin_creates_user(self, client, admin_headers):
        response = await client.post(
            "/api/users",
            json={
                "email": "Grace@Example.com",
                "password": "long-enough",
                "firstName": "Grace",
                "lastName": "Hopper",
                "role": "Scrum Master",
            },
            headers=admin_headers,
        )

        assert response.status_code == 201
        user = response.json()["data"]
        assert user["email"] == "grace@example.com"
        assert user["role"] == "Scrum Master"

    async def test_admin_cannot_demote_self(self, client, admin, admin_headers):
        response = await client.put(
            f"/api/users/{admin.id}", json={"role": "Developer"}, headers=admin_headers
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Administrators cannot demote or deactivate themselves"

    async def test_admin_cannot_deactivate_self(self, client, admin, admin_headers):
        response = await client.delete(f"/api/users/{admin.id}", headers=admin_headers)
        assert response.status_code == 400

    async def test_deactivate_user(self, client, admin_headers, developer, dev_headers):
        response = await client.delete(f"/api/users/{developer.id}", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "Inactive"
        me = await client.get("/api/auth/me", headers=dev_headers)
        assert me.status_code == 403

    async def test_profile_update_ignores_role(self, client, developer, dev_headers):
        response = await client.put(
            "/api/users/me",
            json={"firstName": "Dev", "role": "Admin"},
            headers=dev_headers,
        )

        assert response.status_code == 200
        assert response.json()["data"]["firstName"] == "Dev"
        assert response.json()["data"]["role"] == "Developer"


class TestReports:
    """Tests for /api/reports."""

    async def test_project_report(self, client, dev_headers, project):
        response = await client.get("/api/reports/projects", headers=dev_headers)

        assert response.status_code == 200
        report = response.json()["data"]
        assert report["statusDistribution"] == [{"status": "Not Started", "count": 1}]
        assert [p["id"] for p in report["recentProjects"]] == [str(project.id)]

    async def test_budget_report(self, client, dev_headers, po_headers, project):
        for amount, category in ((1500, "Travel"), (500, "Hardware"), (300, "Travel")):
            response = await client.post(
                f"/api/projects/{project.id}/expenses",
                json={"amount": amount, "category": category},
                headers=dev_headers,
            )
            expense_id = response.json()["data"]["id"]
            if amount != 300:
                await client.post(f"/api/expenses/{expense_id}/approve", headers=po_headers)

        response = await client.get("/api/reports/budget", headers=dev_headers)

        report = response.json()["data"]
        assert report["projects"] == [
            {
                "id": str(project.id),
                "name": project.name,
                "totalBudget": 10000.0,
                "spent": 2000.0,
                "utilization": 20.0,
            }
        ]
        assert report["expensesByCategory"] == [
            {"category": "Travel", "totalAmount": 1500.0},
            {"category": "Hardware", "totalAmount": 500.0},
        ]

    async def test_team_report(self, client, dev_headers, developer, project):
        for title, task_status in (("Open one", "In Progress"), ("Open two", "To Do"), ("Shipped", "Done")):
            await client.post(
                "/api/tasks",
                json={
                    "title": title,
                    "status": task_status,
                    "assigneeId": str(developer.id),
                    "projectId": str(project.id),
                },
                headers=dev_headers,
            )

        response = await client.get("/api/reports/team", headers=dev_headers)

        members = {m["id"]: m for m in response.json()["data"]["members"]}
        assert members[str(developer.id)]["openTasks"] == 2
        assert members[str(developer.id)]["projectsCount"] == 1
