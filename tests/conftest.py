"""
Shared fixtures for the API and service tests.

Each test gets its own SQLite database file with foreign keys enforced, and
the FastAPI app runs in-process behind ``httpx.ASGITransport`` with ``get_db``
pointed at that database.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from datetime import UTC, datetime  # noqa: E402
from uuid import uuid4  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy import event, func, select  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402

from huddle.core.config import get_settings  # noqa: E402
from huddle.core.security import ClientPrincipal, encode_client_principal  # noqa: E402
from huddle.db.base import Base  # noqa: E402
from huddle.db.session import get_db  # noqa: E402
from huddle.main import app  # noqa: E402

API_ROOT = "http://test" + get_settings().api_prefix


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'huddle.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def http(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url=API_ROOT) as client:
        yield client
    app.dependency_overrides.clear()


def make_principal(email: str, external_id: str | None = None, roles: tuple[str, ...] = ("authenticated",)):
    return ClientPrincipal(
        identityProvider="github",
        userId=external_id or f"ext-{email}",
        userDetails=email,
        userRoles=list(roles),
    )


def principal_headers(principal: ClientPrincipal) -> dict[str, str]:
    return {get_settings().principal_header: encode_client_principal(principal)}


@pytest.fixture
def as_user():
    def build(email: str, external_id: str | None = None, roles: tuple[str, ...] = ("authenticated",)):
        return principal_headers(make_principal(email, external_id, roles))

    return build


@pytest.fixture
def principal_factory():
    return make_principal


@pytest.fixture
def alice(as_user):
    return as_user("alice@example.com")


@pytest.fixture
def bob(as_user):
    return as_user("bob@example.com")


@pytest.fixture
def carol(as_user):
    return as_user("carol@example.com")


@pytest.fixture
def dave(as_user):
    return as_user("dave@example.com")


class Api:
    """Thin helpers over the HTTP surface to keep tests readable."""

    def __init__(self, http: httpx.AsyncClient, session_factory) -> None:
        self.http = http
        self.session_factory = session_factory

    async def create_server(self, headers, name: str = "Test", is_restricted: bool = False) -> dict:
        response = await self.http.post(
            "/servers", json={"name": name, "is_restricted": is_restricted}, headers=headers
        )
        assert response.status_code == 201, response.text
        return response.json()

    async def join(self, headers, server: dict) -> dict:
        response = await self.http.post(f"/invites/{server['invite_code']}", headers=headers)
        assert response.status_code in (200, 201), response.text
        return response.json()

    async def members(self, headers, server_id: str) -> list[dict]:
        response = await self.http.get(f"/servers/{server_id}/members", headers=headers)
        assert response.status_code == 200, response.text
        return response.json()

    async def member_id(self, headers, server_id: str, email: str) -> str:
        members = await self.members(headers, server_id)
        return next(member["id"] for member in members if member["user"]["email"] == email)

    async def set_role(self, headers, server_id: str, member_id: str, role: str) -> httpx.Response:
        return await self.http.patch(
            f"/servers/{server_id}/members/{member_id}", json={"role": role}, headers=headers
        )

    async def post_message(
        self,
        headers,
        server_id: str,
        content: str = "hello",
        *,
        sequence: int = 1,
        sent_at: datetime | None = None,
        client_id=None,
    ) -> httpx.Response:
        body = {
            "client_id": str(client_id or uuid4()),
            "content": content,
            "sent_at": (sent_at or datetime.now(UTC)).isoformat(),
            "sequence": sequence,
        }
        return await self.http.post(f"/servers/{server_id}/messages", json=body, headers=headers)

    async def messages(self, headers, server_id: str, **params) -> list[dict]:
        response = await self.http.get(f"/servers/{server_id}/messages", params=params, headers=headers)
        assert response.status_code == 200, response.text
        return response.json()

    async def count(self, model) -> int:
        async with self.session_factory() as session:
            return (await session.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.fixture
def api(http, session_factory):
    return Api(http, session_factory)
