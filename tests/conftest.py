"""
ERMS - Test configuration and fixtures
"""
import os
from datetime import date, timedelta
from typing import AsyncGenerator

import pytest
from faker import Faker
from httpx import ASGITransport, AsyncClient

# Set testing environment before the settings object is created
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./erms_test.db"
os.environ["ENVIRONMENT"] = "Testing"
os.environ["SECRET_KEY"] = "test-cookie-secret-key"
os.environ["JWT_KEY"] = "test-jwt-signing-key-that-is-long-enough-for-hs256"
os.environ["JWT_ISSUER"] = "http://test"
os.environ["JWT_AUDIENCE"] = "http://test"
os.environ["API_BASE_URL"] = "http://test"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["USE_DB_PROCEDURES"] = "false"

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from erms.config import settings
from erms.database import Base, enable_sqlite_foreign_keys
from erms.dependencies import get_api_http_client, get_db
from erms.main import app
from erms.models.department import Department
from erms.models.project import Project
from erms.models.task import ProjectTask
from erms.models.user import User
from erms.permissions import ADMIN, EMPLOYEE, MANAGER, ROLES
from erms.services import identity
from erms.services.tokens import issue_token
from erms.utils.security import create_cookie_token

fake = Faker()

PASSWORD = "Passw0rd!"


@pytest.fixture
async def engine(tmp_path):
    """A fresh SQLite database file per test"""
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'erms.db'}", echo=False)
    enable_sqlite_foreign_keys(test_engine)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        await identity.ensure_roles(session, ROLES)
        yield session


@pytest.fixture
async def client(db_session, session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Test client; each request gets its own session, page-to-API calls stay in-process"""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_api_http_client():
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as api_client:
            yield api_client

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_api_http_client] = override_api_http_client

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ── Data builders ───────────────────────────────────────

@pytest.fixture
async def department(db_session) -> Department:
    dept = Department(department_name="Engineering")
    db_session.add(dept)
    await db_session.commit()
    return dept


@pytest.fixture
def make_user(db_session, department):
    async def _make_user(role: str | None = EMPLOYEE, email: str | None = None, password: str = PASSWORD, **fields):
        user = User(
            user_name=email or f"{fake.unique.user_name()}@example.com",
            email=email or None,
            first_name=fields.pop("first_name", fake.first_name()),
            last_name=fields.pop("last_name", fake.last_name()),
            hire_date=fields.pop("hire_date", date(2020, 1, 6)),
            department_id=fields.pop("department_id", department.department_id),
            email_confirmed=True,
            **fields,
        )
        user.email = user.email or user.user_name
        result = await identity.create_user(db_session, user, password)
        assert result.succeeded, result.descriptions
        if role:
            assert (await identity.add_to_roles(db_session, user, [role])).succeeded
        return user
    return _make_user


@pytest.fixture
async def admin_user(make_user) -> User:
    return await make_user(ADMIN, first_name="Ada", last_name="Admin")


@pytest.fixture
async def manager_user(make_user) -> User:
    return await make_user(MANAGER, first_name="Max", last_name="Manager")


@pytest.fixture
async def employee_user(make_user) -> User:
    return await make_user(EMPLOYEE, first_name="Eve", last_name="Employee")


@pytest.fixture
def make_project(db_session):
    async def _make_project(manager: User, name: str = "Apollo", **fields):
        project = Project(
            project_name=name,
            description=fields.pop("description", "Test project"),
            start_date=fields.pop("start_date", date.today() - timedelta(days=30)),
            end_date=fields.pop("end_date", None),
            manager_id=manager.id,
            **fields,
        )
        db_session.add(project)
        await db_session.commit()
        return project
    return _make_project


@pytest.fixture
def make_task(db_session):
    async def _make_task(project: Project, assignee: User, name: str = "Write tests", **fields):
        task = ProjectTask(
            project_id=project.project_id,
            assignee_id=assignee.id,
            task_name=name,
            description=fields.pop("description", None),
            due_date=fields.pop("due_date", date.today() + timedelta(days=3)),
            priority=fields.pop("priority", "Medium"),
            status=fields.pop("status", "Not Started"),
        )
        db_session.add(task)
        await db_session.commit()
        return task
    return _make_task


# ── Credentials ─────────────────────────────────────────

def bearer_headers(user: User, roles: list[str]) -> dict:
    return {"Authorization": f"Bearer {issue_token(user, roles).token}"}


def login_cookie(client: AsyncClient, user: User) -> None:
    """Attach a signed auth cookie for ``user`` without going through the login form."""
    token = create_cookie_token({"typ": "auth", "sub": user.id, "stamp": user.security_stamp})
    client.cookies.set(settings.AUTH_COOKIE_NAME, token)


@pytest.fixture
def admin_headers(admin_user) -> dict:
    return bearer_headers(admin_user, [ADMIN])


@pytest.fixture
def manager_headers(manager_user) -> dict:
    return bearer_headers(manager_user, [MANAGER])


@pytest.fixture
def employee_headers(employee_user) -> dict:
    return bearer_headers(employee_user, [EMPLOYEE])
