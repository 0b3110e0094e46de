import httpx
from fastapi import APIRouter, Depends, HTTPException, Request

from erms.clients.api_service import ApiRequestError, ApiUnauthorizedError, ProjectApiService
from erms.dependencies import Principal, api_token_for, get_api_http_client, require_page
from erms.logging_config import get_logger
from erms.templating import redirect, render

logger = get_logger(__name__)

router = APIRouter(prefix="/ProjectsClient", tags=["projects-client"], include_in_schema=False)


def project_api_service(
    principal: Principal = Depends(require_page("project.view")),
    http_client: httpx.AsyncClient = Depends(get_api_http_client),
) -> ProjectApiService:
    async def token_provider():
        return api_token_for(principal)
    return ProjectApiService(http_client, token_provider)


@router.get("")
@router.get("/Index")
async def index(
    request: Request,
    principal: Principal = Depends(require_page("project.view")),
    api: ProjectApiService = Depends(project_api_service),
):
    try:
        projects = await api.get_projects()
    except ApiUnauthorizedError:
        return redirect("/Account/Login", status_code=302)
    except ApiRequestError as exc:
        logger.error("Project list request failed with %s", exc.status_code)
        return render(
            request, "projects_client/error.html", status_code=502,
            principal=principal, status=exc.status_code, body=exc.body
        )
    return render(request, "projects_client/index.html", principal=principal, projects=projects)


@router.get("/Details/{project_id}")
async def details(
    project_id: int,
    request: Request,
    principal: Principal = Depends(require_page("project.view")),
    api: ProjectApiService = Depends(project_api_service),
):
    try:
        project = await api.get_project(project_id)
    except ApiUnauthorizedError:
        return redirect("/Account/Login", status_code=302)
    except ApiRequestError as exc:
        if exc.status_code == 404:
            raise HTTPException(status_code=404, detail="Project not found")
        logger.error("Project %s request failed with %s", project_id, exc.status_code)
        return render(
            request, "projects_client/error.html", status_code=502,
            principal=principal, status=exc.status_code, body=exc.body
        )
    return render(request, "projects_client/details.html", principal=principal, project=project)
