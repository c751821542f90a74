"""
Pytest configuration and shared fixtures.

Provides an application bound to an in-memory SQLite database, an httpx
client talking to it over ASGI, one user per role with bearer headers, and a
small project tree (project, board, epic) to hang resources off.
"""

from collections.abc import AsyncGenerator
from decimal import Decimal
from uuid import UUID

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from projecthub.api.v1.auth import create_access_token
from projecthub.config import Settings
from projecthub.db.base import Base
from projecthub.main import create_app
from projecthub.models import Board, Epic, Project, User
from projecthub.models.enums import UserRole, UserStatus
from projecthub.utils.passwords import hash_password

TEST_PASSWORD = "s3cret-pass"


# ==============================================================================
# Application Fixtures
# ==============================================================================


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings for an isolated in-memory database and upload directory."""
    return Settings(
        database_url="sqlite+aiosqlite://",
        environment="development",
        log_level="WARNING",
        jwt_secret_key="test-secret",
        bcrypt_rounds=4,
        upload_dir=tmp_path / "uploads",
        max_upload_size_mb=1,
    )


@pytest.fixture
async def app(settings) -> AsyncGenerator[FastAPI, None]:
    """Application with the schema created from the ORM metadata."""
    application = create_app(settings)
    async with application.state.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield application
    await application.state.engine.dispose()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http:
        yield http


@pytest.fixture
def session_factory(app):
    """Open short-lived sessions for seeding and inspecting the database."""
    return app.state.session_factory


async def _add(session_factory, *objects):
    async with session_factory() as session:
        session.add_all(objects)
        await session.commit()
    return objects[0] if len(objects) == 1 else objects


# ==============================================================================
# User Fixtures
# ==============================================================================


@pytest.fixture
def make_user(session_factory, settings):
    """Factory creating a persisted user with the given role."""
    counter = {"n": 0}

    async def _make(role: UserRole = UserRole.DEVELOPER, **fields) -> User:
        counter["n"] += 1
        values = {
            "email": f"{role.value.lower().replace(' ', '.')}{counter['n']}@example.com",
            "password_hash": hash_password(TEST_PASSWORD, rounds=settings.bcrypt_rounds),
            "first_name": role.value.split()[0],
            "last_name": f"User{counter['n']}",
            "role": role,
            "status": UserStatus.ACTIVE,
        }
        values.update(fields)
        return await _add(session_factory, User(**values))

    return _make


@pytest.fixture
def password() -> str:
    """Plain-text password of every user made by ``make_user``."""
    return TEST_PASSWORD


@pytest.fixture
def auth_headers(settings):
    """Build bearer headers for a user."""

    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id, settings)}"}

    return _headers


@pytest.fixture
async def admin(make_user) -> User:
    return await make_user(UserRole.ADMIN)


@pytest.fixture
async def product_owner(make_user) -> User:
    return await make_user(UserRole.PRODUCT_OWNER)


@pytest.fixture
async def scrum_master(make_user) -> User:
    return await make_user(UserRole.SCRUM_MASTER)


@pytest.fixture
async def developer(make_user) -> User:
    return await make_user(UserRole.DEVELOPER)


@pytest.fixture
async def viewer(make_user) -> User:
    return await make_user(UserRole.VIEWER)


@pytest.fixture
def admin_headers(admin, auth_headers):
    return auth_headers(admin)


@pytest.fixture
def po_headers(product_owner, auth_headers):
    return auth_headers(product_owner)


@pytest.fixture
def sm_headers(scrum_master, auth_headers):
    return auth_headers(scrum_master)


@pytest.fixture
def dev_headers(developer, auth_headers):
    return auth_headers(developer)


@pytest.fixture
def viewer_headers(viewer, auth_headers):
    return auth_headers(viewer)


# ==============================================================================
# Domain Fixtures
# ==============================================================================


@pytest.fixture
async def project(session_factory, product_owner) -> Project:
    """Project with a 10,000 total budget owned by the product owner."""
    return await _add(
        session_factory,
        Project(
            name="Website Relaunch",
            project_id_str="WEB-1",
            owner_id=product_owner.id,
            total_budget=Decimal("10000.00"),
        ),
    )


@pytest.fixture
async def board(session_factory, project) -> Board:
    return await _add(session_factory, Board(project_id=project.id, name="Main board"))


@pytest.fixture
async def epic(session_factory, project) -> Epic:
    return await _add(session_factory, Epic(project_id=project.id, name="Checkout"))


@pytest.fixture
def make_story(client, sm_headers, epic):
    """Create a story through the API and return its JSON payload."""

    async def _make(title: str = "Pay by card", **fields) -> dict:
        body = {"title": title, **fields}
        response = await client.post(f"/api/epics/{epic.id}/stories", json=body, headers=sm_headers)
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return _make


@pytest.fixture
def make_sprint(client, sm_headers, board):
    """Create a Planning sprint on the board and return its JSON payload."""

    async def _make(name: str = "Sprint 1", start: str = "2025-01-01", end: str = "2025-01-14") -> dict:
        response = await client.post(
            "/api/sprints",
            json={"name": name, "startDate": start, "endDate": end, "boardId": str(board.id)},
            headers=sm_headers,
        )
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return _make


@pytest.fixture
def load(session_factory):
    """Load a row by id in a fresh session."""

    async def _load(model, entity_id: UUID | str):
        async with session_factory() as session:
            return await session.get(model, UUID(str(entity_id)))

    return _load
