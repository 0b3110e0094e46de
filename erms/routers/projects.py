import httpx
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from erms.clients.project_api_client import ProjectApiClient
from erms.dependencies import Principal, api_token_for, get_api_http_client, get_db, require_page
from erms.exceptions import ConcurrencyError, DependencyError, NotFoundError, ValidationFailed
from erms.logging_config import get_logger
from erms.permissions import is_allowed
from erms.schemas.project import ProjectCreate, ProjectUpdate
from erms.schemas.views import FormState, ProjectFormViewModel, select_options
from erms.services import projects as project_service
from erms.services.common import EDIT_CONFLICT_MESSAGE
from erms.templating import redirect, render
from erms.utils.forms import optional_int, read_form, validate_form

logger = get_logger(__name__)

router = APIRouter(prefix="/Project", tags=["projects"], include_in_schema=False)

HAS_TASKS_MESSAGE = "This project cannot be deleted because it has associated tasks."
LOAD_FAILED_MESSAGE = "Failed to load projects from API."


def _login_redirect(return_url: str):
    return redirect(f"/Account/Login?ReturnUrl={return_url}", status_code=302)


async def _manager_options(db: AsyncSession, selected=None):
    users = await project_service.list_manager_candidates(db)
    return select_options(((u.id, f"{u.first_name} {u.last_name}") for u in users), selected)


async def _render_form(request, db, principal, model: ProjectFormViewModel, form: FormState, action: str):
    model.managers = await _manager_options(db, model.manager_id)
    return render(request, "project/form.html", principal=principal, model=model, form=form, action=action)


@router.get("")
@router.get("/Index")
async def index(
    request: Request,
    principal: Principal = Depends(require_page("project.view")),
    http_client: httpx.AsyncClient = Depends(get_api_http_client),
):
    api = ProjectApiClient(http_client, api_token_for(principal))
    result = await api.get_projects()
    if result.unauthorized:
        return _login_redirect("/Project/Index")

    error = None
    projects = result.data or []
    if not result.data:
        error = LOAD_FAILED_MESSAGE
    return render(
        request, "project/index.html",
        principal=principal, projects=projects, error=error,
        can_create=is_allowed("project.create", principal.roles),
        can_edit=is_allowed("project.edit", principal.roles),
        can_delete=is_allowed("project.delete", principal.roles),
    )


@router.get("/Details/{project_id}")
async def details(
    project_id: int,
    request: Request,
    principal: Principal = Depends(require_page("project.view")),
    http_client: httpx.AsyncClient = Depends(get_api_http_client),
):
    api = ProjectApiClient(http_client, api_token_for(principal))
    result = await api.get_project_by_id(project_id)
    if result.unauthorized:
        return _login_redirect(f"/Project/Details/{project_id}")
    if result.data is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return render(request, "project/details.html", principal=principal, project=result.data)


@router.get("/Create")
async def create_page(
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("project.create")),
):
    return await _render_form(request, db, principal, ProjectFormViewModel(), FormState(), "/Project/Create")


@router.post("/Create")
async def create(
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("project.create")),
):
    data = await read_form(request)
    payload, form = validate_form(ProjectCreate, data)
    if payload is not None:
        try:
            await project_service.create_project(db, payload)
            return redirect("/Project/Index", "Project created successfully.")
        except ValidationFailed as exc:
            for field, messages in exc.errors.items():
                for message in messages:
                    form.add(field, message)
    return await _render_form(
        request, db, principal, ProjectFormViewModel.from_form(data), form, "/Project/Create"
    )


@router.get("/Edit/{project_id}")
async def edit_page(
    project_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("project.edit")),
):
    project = await project_service.find_project(db, project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return await _render_form(
        request, db, principal, ProjectFormViewModel.from_entity(project), FormState(),
        f"/Project/Edit/{project_id}"
    )


@router.post("/Edit/{project_id}")
async def edit(
    project_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("project.edit")),
):
    data = await read_form(request)
    if optional_int(data.get("project_id")) != project_id:
        raise HTTPException(status_code=404, detail="Project not found")

    payload, form = validate_form(ProjectUpdate, data)
    if payload is not None:
        try:
            await project_service.update_project(db, project_id, payload)
            return redirect("/Project/Index", "Project updated successfully.")
        except NotFoundError:
            raise HTTPException(status_code=404, detail="Project not found")
        except ValidationFailed as exc:
            for field, messages in exc.errors.items():
                for message in messages:
                    form.add(field, message)
        except ConcurrencyError:
            logger.warning("Concurrency conflict editing project %s", project_id)
            form.add("", EDIT_CONFLICT_MESSAGE)

    return await _render_form(
        request, db, principal, ProjectFormViewModel.from_form(data), form, f"/Project/Edit/{project_id}"
    )


@router.get("/Delete/{project_id}")
async def delete_page(
    project_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("project.delete")),
):
    try:
        project = await project_service.get_project_with_manager(db, project_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Project not found")
    error = HAS_TASKS_MESSAGE if await project_service.has_tasks(db, project_id) else None
    return render(request, "project/delete.html", principal=principal, project=project, error=error)


@router.post("/Delete/{project_id}")
async def delete_confirmed(
    project_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("project.delete")),
):
    try:
        await project_service.delete_project(db, project_id)
    except NotFoundError:
        return redirect("/Project/Index")
    except DependencyError:
        project = await project_service.get_project_with_manager(db, project_id)
        return render(
            request, "project/delete.html", principal=principal, project=project, error=HAS_TASKS_MESSAGE
        )
    return redirect("/Project/Index", "Project deleted successfully.")
