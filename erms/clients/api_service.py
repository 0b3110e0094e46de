"""
Typed wrappers over the REST API.

Unlike ``ProjectApiClient`` these raise on failure: ``ApiUnauthorizedError``
for 401, ``ApiRequestError`` for any other non-success status or when the
API cannot be reached.
"""

from typing import Awaitable, Callable

import httpx
from pydantic import BaseModel, TypeAdapter

from erms.logging_config import get_logger
from erms.schemas.auth import LoginRequest, TokenResponse
from erms.schemas.employee import EmployeeCreate, EmployeeDto, EmployeeUpdate
from erms.schemas.project import ProjectCreate, ProjectDto, ProjectUpdate
from erms.schemas.task import TaskCreate, TaskDto, TaskStatusUpdate, TaskUpdate

logger = get_logger(__name__)

TokenProvider = Callable[[], Awaitable[str | None]]


class ApiRequestError(Exception):
    """``status_code`` is None when the request never got a response."""

    def __init__(self, status_code: int | None, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(f"API request failed with status {status_code}: {body}")


class ApiUnauthorizedError(ApiRequestError):
    def __init__(self, body: str = ""):
        super().__init__(401, body)


class ApiService:
    def __init__(self, client: httpx.AsyncClient, token_provider: TokenProvider | None = None):
        self.client = client
        self.token_provider = token_provider

    async def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.token_provider is not None:
            token = await self.token_provider()
            if token:
                headers["Authorization"] = f"Bearer {token}"
        return headers

    @staticmethod
    def create_json_content(model: BaseModel) -> dict:
        return model.model_dump(mode="json")

    async def send(self, method: str, path: str, body: BaseModel | None = None) -> httpx.Response:
        json = self.create_json_content(body) if body is not None else None
        try:
            response = await self.client.request(method, path, json=json, headers=await self._headers())
        except httpx.HTTPError as e:
            logger.error("%s %s could not reach the API: %s", method, path, e)
            raise ApiRequestError(None, str(e)) from e
        if response.status_code == 401:
            logger.warning("%s %s rejected as unauthorized", method, path)
            raise ApiUnauthorizedError(response.text)
        if response.is_error:
            logger.warning("%s %s failed with %s", method, path, response.status_code)
            raise ApiRequestError(response.status_code, response.text)
        return response


class ProjectApiService(ApiService):
    async def get_projects(self) -> list[ProjectDto]:
        response = await self.send("GET", "/api/ProjectsApi")
        return TypeAdapter(list[ProjectDto]).validate_json(response.content or b"[]")

    async def get_project(self, project_id: int) -> ProjectDto:
        response = await self.send("GET", f"/api/ProjectsApi/{project_id}")
        return ProjectDto.model_validate_json(response.content)

    async def create_project(self, project: ProjectCreate) -> ProjectDto:
        response = await self.send("POST", "/api/ProjectsApi", project)
        return ProjectDto.model_validate_json(response.content)

    async def update_project(self, project_id: int, project: ProjectUpdate) -> None:
        await self.send("PUT", f"/api/ProjectsApi/{project_id}", project)

    async def delete_project(self, project_id: int) -> None:
        await self.send("DELETE", f"/api/ProjectsApi/{project_id}")


class TaskApiService(ApiService):
    async def get_tasks(self) -> list[TaskDto]:
        response = await self.send("GET", "/api/TasksApi")
        return TypeAdapter(list[TaskDto]).validate_json(response.content or b"[]")

    async def get_task(self, task_id: int) -> TaskDto:
        response = await self.send("GET", f"/api/TasksApi/{task_id}")
        return TaskDto.model_validate_json(response.content)

    async def get_tasks_for_user(self, user_id: str) -> list[TaskDto]:
        response = await self.send("GET", f"/api/TasksApi/user/{user_id}")
        return TypeAdapter(list[TaskDto]).validate_json(response.content or b"[]")

    async def get_tasks_for_project(self, project_id: int) -> list[TaskDto]:
        response = await self.send("GET", f"/api/TasksApi/project/{project_id}")
        return TypeAdapter(list[TaskDto]).validate_json(response.content or b"[]")

    async def create_task(self, task: TaskCreate) -> TaskDto:
        response = await self.send("POST", "/api/TasksApi", task)
        return TaskDto.model_validate_json(response.content)

    async def update_task(self, task_id: int, task: TaskUpdate) -> None:
        await self.send("PUT", f"/api/TasksApi/{task_id}", task)

    async def update_task_status(self, task_id: int, status: str) -> None:
        await self.send("PATCH", f"/api/TasksApi/{task_id}/status", TaskStatusUpdate(status=status))

    async def delete_task(self, task_id: int) -> None:
        await self.send("DELETE", f"/api/TasksApi/{task_id}")


class EmployeeApiService(ApiService):
    async def get_employees(self) -> list[EmployeeDto]:
        response = await self.send("GET", "/api/EmployeesApi")
        return TypeAdapter(list[EmployeeDto]).validate_json(response.content or b"[]")

    async def get_employee(self, employee_id: str) -> EmployeeDto:
        response = await self.send("GET", f"/api/EmployeesApi/{employee_id}")
        return EmployeeDto.model_validate_json(response.content)

    async def create_employee(self, employee: EmployeeCreate) -> EmployeeDto:
        response = await self.send("POST", "/api/EmployeesApi", employee)
        return EmployeeDto.model_validate_json(response.content)

    async def update_employee(self, employee_id: str, employee: EmployeeUpdate) -> None:
        await self.send("PUT", f"/api/EmployeesApi/{employee_id}", employee)

    async def delete_employee(self, employee_id: str) -> None:
        await self.send("DELETE", f"/api/EmployeesApi/{employee_id}")


class AuthApiService(ApiService):
    async def get_token(self, email: str, password: str) -> TokenResponse | None:
        """Exchange credentials for a bearer token; None when they are rejected."""
        try:
            response = await self.send("POST", "/api/Auth/token", LoginRequest(email=email, password=password))
        except ApiUnauthorizedError:
            return None
        return TokenResponse.model_validate_json(response.content)
