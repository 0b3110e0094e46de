"""
HTTP clients the pages use to reach the REST API
"""
import json
from datetime import date

import httpx
import pytest

from conftest import PASSWORD, login_cookie
from erms.clients.api_service import (
    ApiRequestError, ApiUnauthorizedError, AuthApiService, ProjectApiService, TaskApiService
)
from erms.clients.project_api_client import ProjectApiClient
from erms.dependencies import get_api_http_client
from erms.main import app
from erms.schemas.project import ProjectCreate

PROJECT = {
    "project_id": 7,
    "project_name": "Apollo",
    "description": None,
    "start_date": "2024-01-01",
    "end_date": None,
    "manager_id": "m-1",
    "manager_name": "Max Manager",
    "task_count": 2,
    "row_version": 1,
}


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://api.test")


def responding(status_code: int, payload=None, content: bytes | None = None):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if content is not None:
            return httpx.Response(status_code, content=content)
        return httpx.Response(status_code, json=payload)

    return handler, seen


# ── ProjectApiClient ────────────────────────────────────

async def test_project_client_sends_bearer_token():
    handler, seen = responding(200, [PROJECT])
    async with mock_client(handler) as client:
        result = await ProjectApiClient(client, "abc").get_projects()

    assert result.ok
    assert result.data[0].project_name == "Apollo"
    assert seen[0].headers["Authorization"] == "Bearer abc"
    assert seen[0].url.path == "/api/ProjectsApi"


async def test_project_client_without_token_sends_no_header():
    handler, seen = responding(200, [])
    async with mock_client(handler) as client:
        result = await ProjectApiClient(client).get_projects()
    assert result.data == []
    assert "Authorization" not in seen[0].headers


@pytest.mark.parametrize("status_code", [401, 500])
async def test_project_client_error_statuses(status_code):
    handler, _ = responding(status_code, {"detail": "x"})
    async with mock_client(handler) as client:
        result = await ProjectApiClient(client, "abc").get_projects()
    assert result.data is None
    assert result.unauthorized is (status_code == 401)


async def test_project_client_empty_body():
    handler, _ = responding(200, content=b"")
    async with mock_client(handler) as client:
        api = ProjectApiClient(client, "abc")
        assert (await api.get_projects()).data == []
        assert (await api.get_project_by_id(7)).data is None


async def test_project_client_not_found():
    handler, _ = responding(404, {"detail": "Project with ID 7 not found."})
    async with mock_client(handler) as client:
        result = await ProjectApiClient(client, "abc").get_project_by_id(7)
    assert result.not_found
    assert result.data is None


async def test_project_client_connection_failure():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    async with mock_client(handler) as client:
        result = await ProjectApiClient(client, "abc").get_projects()
    assert result.status_code is None
    assert not result.ok


async def test_project_client_malformed_json():
    handler, _ = responding(200, content=b'[{"project_id": "nope"}]')
    async with mock_client(handler) as client:
        result = await ProjectApiClient(client, "abc").get_projects()
    assert result.data is None


# ── ApiService family ───────────────────────────────────

async def test_api_service_uses_token_provider_and_serializes_body():
    handler, seen = responding(201, PROJECT)

    async def token_provider():
        return "tok"

    async with mock_client(handler) as client:
        api = ProjectApiService(client, token_provider)
        created = await api.create_project(ProjectCreate(
            project_name="Apollo", start_date=date(2024, 1, 1), manager_id="m-1"
        ))

    assert created.project_id == 7
    request = seen[0]
    assert request.method == "POST"
    assert request.headers["Authorization"] == "Bearer tok"
    assert json.loads(request.content)["start_date"] == "2024-01-01"


async def test_api_service_raises_on_unauthorized():
    handler, _ = responding(401, {"error": "Unauthorized"})
    async with mock_client(handler) as client:
        with pytest.raises(ApiUnauthorizedError):
            await ProjectApiService(client).get_projects()


async def test_api_service_raises_with_status_and_body():
    handler, _ = responding(409, {"detail": "Concurrency conflict updating task 3."})
    async with mock_client(handler) as client:
        with pytest.raises(ApiRequestError) as info:
            await TaskApiService(client).update_task_status(3, "Completed")
    assert info.value.status_code == 409
    assert "Concurrency conflict" in info.value.body


async def test_api_service_wraps_transport_failures():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    async with mock_client(handler) as client:
        with pytest.raises(ApiRequestError) as info:
            await ProjectApiService(client).get_projects()
    assert info.value.status_code is None
    assert "refused" in info.value.body


async def test_task_service_status_patch_payload():
    handler, seen = responding(200, {"message": "ok"})
    async with mock_client(handler) as client:
        await TaskApiService(client).update_task_status(3, "Completed")
    assert seen[0].method == "PATCH"
    assert seen[0].url.path == "/api/TasksApi/3/status"
    assert json.loads(seen[0].content) == {"status": "Completed", "row_version": None}


async def test_auth_service_returns_none_for_bad_credentials():
    handler, _ = responding(401, {"detail": "Invalid credentials."})
    async with mock_client(handler) as client:
        assert await AuthApiService(client).get_token("eve@example.com", "bad") is None


# ── Against the running app ─────────────────────────────

async def test_services_against_app(client, manager_user, employee_user, make_project, make_task):
    project = await make_project(manager_user)
    await make_task(project, employee_user)

    token = await AuthApiService(client).get_token(manager_user.email, PASSWORD)
    assert token is not None

    async def token_provider():
        return token.token

    projects = await ProjectApiService(client, token_provider).get_projects()
    assert [p.task_count for p in projects] == [1]

    tasks = await TaskApiService(client, token_provider).get_tasks_for_project(project.project_id)
    assert [t.assignee_id for t in tasks] == [employee_user.id]


async def test_projects_client_pages(client, employee_user, manager_user, make_project):
    project = await make_project(manager_user, name="Voyager")
    login_cookie(client, employee_user)

    response = await client.get("/ProjectsClient/Index")
    assert response.status_code == 200
    assert "Voyager" in response.text

    response = await client.get(f"/ProjectsClient/Details/{project.project_id}")
    assert response.status_code == 200

    response = await client.get("/ProjectsClient/Details/8080")
    assert response.status_code == 404


async def test_projects_client_pages_when_api_unreachable(client, employee_user):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    async def unreachable_api():
        async with mock_client(handler) as http_client:
            yield http_client

    previous = app.dependency_overrides[get_api_http_client]
    app.dependency_overrides[get_api_http_client] = unreachable_api
    login_cookie(client, employee_user)
    try:
        index = await client.get("/ProjectsClient/Index")
        details = await client.get("/ProjectsClient/Details/1")
    finally:
        app.dependency_overrides[get_api_http_client] = previous

    for response in (index, details):
        assert response.status_code == 502
        assert "The project service returned an error." in response.text
        assert "no response" in response.text
