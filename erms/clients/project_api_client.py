from dataclasses import dataclass
from typing import Generic, TypeVar

import httpx
from pydantic import TypeAdapter, ValidationError

from erms.logging_config import get_logger
from erms.schemas.project import ProjectDto

logger = get_logger(__name__)

T = TypeVar("T")

PROJECT_LIST = TypeAdapter(list[ProjectDto])


@dataclass
class ApiResult(Generic[T]):
    """Outcome of an API call; ``data`` is None whenever the call did not succeed."""
    status_code: int | None
    data: T | None = None

    @property
    def ok(self) -> bool:
        return self.status_code is not None and 200 <= self.status_code < 300

    @property
    def unauthorized(self) -> bool:
        return self.status_code == 401

    @property
    def not_found(self) -> bool:
        return self.status_code == 404


class ProjectApiClient:
    """Reads projects from the REST API on behalf of the page controllers."""

    def __init__(self, client: httpx.AsyncClient, token: str | None = None):
        self.client = client
        self.token = token

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _get(self, path: str) -> httpx.Response | None:
        try:
            return await self.client.get(path, headers=self._headers())
        except httpx.HTTPError as exc:
            logger.error("HTTP request to %s failed: %s", path, exc)
            return None

    async def get_projects(self) -> ApiResult[list[ProjectDto]]:
        response = await self._get("/api/ProjectsApi")
        if response is None:
            return ApiResult(None)
        if response.status_code != 200:
            logger.warning("Project list request returned %s", response.status_code)
            return ApiResult(response.status_code)
        if not response.content.strip():
            return ApiResult(response.status_code, [])
        try:
            return ApiResult(response.status_code, PROJECT_LIST.validate_json(response.content))
        except ValidationError as exc:
            logger.error("Could not read project list: %s", exc)
            return ApiResult(response.status_code)

    async def get_project_by_id(self, project_id: int) -> ApiResult[ProjectDto]:
        response = await self._get(f"/api/ProjectsApi/{project_id}")
        if response is None:
            return ApiResult(None)
        if response.status_code != 200:
            if response.status_code != 404:
                logger.warning("Project %s request returned %s", project_id, response.status_code)
            return ApiResult(response.status_code)
        if not response.content.strip():
            return ApiResult(response.status_code)
        try:
            return ApiResult(response.status_code, ProjectDto.model_validate_json(response.content))
        except ValidationError as exc:
            logger.error("Could not read project %s: %s", project_id, exc)
            return ApiResult(response.status_code)
