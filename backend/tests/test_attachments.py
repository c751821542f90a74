"""
Tests for file attachments.

Tests validate:
- Upload to each parent kind and the exactly-one-parent rule
- Size and emptiness limits
- Download and deletion of the stored file
- Stored files removed when their parent epic, story or task is deleted
"""

import uuid
from pathlib import Path

import pytest

from projecthub.exceptions import ValidationError
from projecthub.models import Attachment
from projecthub.models.attachment import ProjectParent, TaskParent, make_parent


def _file(content: bytes = b"hello world", name: str = "notes.txt", kind: str = "text/plain"):
    return {"file": (name, content, kind)}


class TestParentRef:
    """Tests for the attachment parent value and its storage guard."""

    def test_make_parent(self):
        parent_id = uuid.uuid4()
        assert make_parent("Task", parent_id) == TaskParent(parent_id)

    def test_unknown_kind(self):
        with pytest.raises(ValidationError) as exc_info:
            make_parent("comment", uuid.uuid4())
        assert exc_info.value.errors[0]["field"] == "parentType"

    def test_parent_setter_clears_other_columns(self):
        attachment = Attachment(parent=TaskParent(uuid.uuid4()))
        project_id = uuid.uuid4()

        attachment.parent = ProjectParent(project_id)

        assert attachment.project_id == project_id
        assert attachment.task_id is None
        assert attachment.parent_type == "project"

    async def test_no_parent_rejected_on_flush(self, session_factory, developer):
        async with session_factory() as session:
            session.add(
                Attachment(
                    uploaded_by_id=developer.id,
                    file_name="x.txt",
                    original_name="x.txt",
                    file_size=1,
                    file_path="/tmp/x.txt",
                )
            )
            with pytest.raises(ValidationError):
                await session.flush()

    async def test_two_parents_rejected_on_flush(self, session_factory, developer, project, epic):
        async with session_factory() as session:
            attachment = Attachment(
                parent=ProjectParent(project.id),
                uploaded_by_id=developer.id,
                file_name="x.txt",
                original_name="x.txt",
                file_size=1,
                file_path="/tmp/x.txt",
            )
            attachment.epic_id = epic.id
            session.add(attachment)
            with pytest.raises(ValidationError):
                await session.flush()


class TestUpload:
    """Tests for the upload endpoints."""

    async def test_upload_to_project(self, client, dev_headers, developer, project, settings):
        response = await client.post(
            f"/api/projects/{project.id}/attachments",
            files=_file(),
            data={"description": "Meeting notes"},
            headers=dev_headers,
        )

        assert response.status_code == 201
        attachment = response.json()["data"]
        assert attachment["parentType"] == "project"
        assert attachment["parentId"] == str(project.id)
        assert attachment["originalName"] == "notes.txt"
        assert attachment["fileSize"] == 11
        assert attachment["fileType"] == "text/plain"
        assert attachment["description"] == "Meeting notes"
        assert attachment["uploadedById"] == str(developer.id)
        assert attachment["fileName"].endswith(".txt")

        stored = Path(settings.upload_dir) / "project" / attachment["fileName"]
        assert stored.read_bytes() == b"hello world"

        listing = await client.get(f"/api/projects/{project.id}/attachments", headers=dev_headers)
        assert [a["id"] for a in listing.json()["data"]] == [attachment["id"]]

    async def test_upload_to_epic(self, client, dev_headers, epic):
        response = await client.post(
            "/api/attachments",
            files=_file(),
            data={"parentType": "epic", "parentId": str(epic.id), "isPublic": "true"},
            headers=dev_headers,
        )

        assert response.status_code == 201
        attachment = response.json()["data"]
        assert attachment["parentType"] == "epic"
        assert attachment["isPublic"] is True

    async def test_unknown_parent_type(self, client, dev_headers, project):
        response = await client.post(
            "/api/attachments",
            files=_file(),
            data={"parentType": "comment", "parentId": str(project.id)},
            headers=dev_headers,
        )

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "parentType"

    async def test_missing_parent(self, client, dev_headers):
        response = await client.post(
            "/api/attachments",
            files=_file(),
            data={"parentType": "task", "parentId": str(uuid.uuid4())},
            headers=dev_headers,
        )

        assert response.status_code == 404
        assert response.json()["error"] == "Task not found"

    async def test_oversized_file(self, client, dev_headers, project, settings):
        content = b"x" * (1024 * 1024 + 1)
        response = await client.post(
            f"/api/projects/{project.id}/attachments", files=_file(content), headers=dev_headers
        )

        assert response.status_code == 400
        assert response.json()["error"] == "File exceeds the maximum upload size of 1 MB"
        project_dir = Path(settings.upload_dir) / "project"
        assert not any(project_dir.iterdir())

    async def test_empty_file(self, client, dev_headers, project):
        response = await client.post(
            f"/api/projects/{project.id}/attachments", files=_file(b""), headers=dev_headers
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Uploaded file is empty"

    async def test_viewer_cannot_upload(self, client, viewer_headers, project):
        response = await client.post(
            f"/api/projects/{project.id}/attachments", files=_file(), headers=viewer_headers
        )
        assert response.status_code == 403


class TestDownloadAndDelete:
    """Tests for download and delete."""

    async def _upload(self, client, headers, project_id) -> dict:
        response = await client.post(
            f"/api/projects/{project_id}/attachments",
            files=_file(b"report body", name="report.txt"),
            headers=headers,
        )
        assert response.status_code == 201, response.text
        return response.json()["data"]

    async def test_download(self, client, dev_headers, project):
        attachment = await self._upload(client, dev_headers, project.id)

        response = await client.get(
            f"/api/attachments/{attachment['id']}/download", headers=dev_headers
        )

        assert response.status_code == 200
        assert response.content == b"report body"
        assert "report.txt" in response.headers["content-disposition"]

    async def test_download_missing_file(self, client, dev_headers, project, settings):
        attachment = await self._upload(client, dev_headers, project.id)
        (Path(settings.upload_dir) / "project" / attachment["fileName"]).unlink()

        response = await client.get(
            f"/api/attachments/{attachment['id']}/download", headers=dev_headers
        )

        assert response.status_code == 404
        assert response.json()["error"] == "File not found"

    async def test_delete_removes_file(self, client, dev_headers, project, settings, load):
        attachment = await self._upload(client, dev_headers, project.id)
        stored = Path(settings.upload_dir) / "project" / attachment["fileName"]
        assert stored.exists()

        response = await client.delete(f"/api/attachments/{attachment['id']}", headers=dev_headers)

        assert response.status_code == 200
        assert not stored.exists()
        assert await load(Attachment, attachment["id"]) is None


class TestParentDeletion:
    """Deleting a parent removes the files of its attachments."""

    async def _attach(self, client, headers, settings, kind: str, parent_id) -> Path:
        response = await client.post(
            "/api/attachments",
            files=_file(),
            data={"parentType": kind, "parentId": str(parent_id)},
            headers=headers,
        )
        assert response.status_code == 201, response.text
        stored = Path(settings.upload_dir) / kind / response.json()["data"]["fileName"]
        assert stored.exists()
        return stored

    async def test_epic_delete_removes_epic_and_story_files(
        self, client, dev_headers, sm_headers, epic, make_story, settings
    ):
        story = await make_story()
        epic_file = await self._attach(client, dev_headers, settings, "epic", epic.id)
        story_file = await self._attach(client, dev_headers, settings, "story", story["id"])

        response = await client.delete(f"/api/epics/{epic.id}", headers=sm_headers)

        assert response.status_code == 200
        assert not epic_file.exists()
        assert not story_file.exists()

    async def test_story_delete_removes_files(
        self, client, dev_headers, sm_headers, make_story, settings
    ):
        story = await make_story()
        stored = await self._attach(client, dev_headers, settings, "story", story["id"])

        response = await client.delete(f"/api/stories/{story['id']}", headers=sm_headers)

        assert response.status_code == 200
        assert not stored.exists()

    async def test_task_purge_removes_files(
        self, client, dev_headers, admin_headers, project, settings
    ):
        created = await client.post(
            "/api/tasks",
            json={"title": "Fix login", "projectId": str(project.id)},
            headers=dev_headers,
        )
        task_id = created.json()["data"]["id"]
        stored = await self._attach(client, dev_headers, settings, "task", task_id)

        response = await client.delete(f"/api/tasks/{task_id}/purge", headers=admin_headers)

        assert response.status_code == 200
        assert not stored.exists()

    async def test_other_files_untouched(
        self, client, dev_headers, sm_headers, project, make_story, settings
    ):
        kept = await self._attach(client, dev_headers, settings, "project", project.id)
        story = await make_story()
        await self._attach(client, dev_headers, settings, "story", story["id"])

        await client.delete(f"/api/stories/{story['id']}", headers=sm_headers)

        assert kept.exists()
