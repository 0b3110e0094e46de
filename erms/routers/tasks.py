from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from erms.dependencies import Principal, get_db, require_page
from erms.exceptions import ConcurrencyError, NotFoundError, ValidationFailed
from erms.logging_config import get_logger
from erms.models.task import TASK_PRIORITIES, TASK_STATUSES
from erms.permissions import is_allowed
from erms.schemas.task import TaskCreate, TaskStatusUpdate, TaskUpdate
from erms.schemas.views import FormState, TaskFormViewModel, select_options
from erms.services import projects as project_service
from erms.services import tasks as task_service
from erms.services.common import EDIT_CONFLICT_MESSAGE
from erms.templating import redirect, render
from erms.utils.forms import optional_int, read_form, validate_form

logger = get_logger(__name__)

router = APIRouter(prefix="/Task", tags=["tasks"], include_in_schema=False)


def _missing_message(task_id: int) -> str:
    return f"Task with ID {task_id} no longer exists."


def _validate_task_form(model_cls, data: dict):
    payload, form = validate_form(model_cls, data)
    # Blank selections get a friendlier message than the type error
    if not data.get("project_id"):
        form.errors["project_id"] = ["Project must be selected."]
    if not data.get("assignee_id"):
        form.errors["assignee_id"] = ["Assignee must be selected."]
    return (payload if form.is_valid else None), form


def _merge_errors(form: FormState, exc: ValidationFailed) -> None:
    for field, messages in exc.errors.items():
        for message in messages:
            form.add(field, message)


async def _render_form(request, db, principal, model: TaskFormViewModel, form: FormState, action: str):
    users = await project_service.list_manager_candidates(db)
    model.projects = select_options(await project_service.list_project_choices(db), model.project_id)
    model.assignees = select_options(((u.id, f"{u.first_name} {u.last_name}") for u in users), model.assignee_id)
    model.statuses = select_options(((s, s) for s in TASK_STATUSES), model.status)
    model.priorities = select_options(((p, p) for p in TASK_PRIORITIES), model.priority)
    return render(request, "task/form.html", principal=principal, model=model, form=form, action=action)


def _list_context(principal: Principal) -> dict:
    return {
        "can_create": is_allowed("task.create", principal.roles),
        "can_edit": is_allowed("task.edit", principal.roles),
        "can_delete": is_allowed("task.delete", principal.roles),
        "statuses": TASK_STATUSES,
    }


@router.get("")
@router.get("/Index")
async def index(
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("task.view")),
):
    tasks = await task_service.list_tasks(db)
    return render(
        request, "task/index.html", principal=principal, tasks=tasks, title="All Tasks", **_list_context(principal)
    )


@router.get("/MyTasks")
async def my_tasks(
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("task.view")),
):
    tasks = await task_service.tasks_for_user(db, principal.user_id)
    return render(
        request, "task/index.html", principal=principal, tasks=tasks, title="My Tasks", **_list_context(principal)
    )


@router.get("/Details/{task_id}")
async def details(
    task_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("task.view")),
):
    task = await task_service.find_task(db, task_id)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return render(request, "task/details.html", principal=principal, task=task, statuses=TASK_STATUSES)


@router.get("/Create")
async def create_page(
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("task.create")),
):
    model = TaskFormViewModel(project_id=request.query_params.get("project_id", ""))
    return await _render_form(request, db, principal, model, FormState(), "/Task/Create")


@router.post("/Create")
async def create(
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("task.create")),
):
    data = await read_form(request)
    payload, form = _validate_task_form(TaskCreate, data)
    if payload is not None:
        try:
            await task_service.create_task(db, payload)
            return redirect("/Task/Index", "Task created successfully.")
        except ValidationFailed as exc:
            _merge_errors(form, exc)
    return await _render_form(request, db, principal, TaskFormViewModel.from_form(data), form, "/Task/Create")


@router.get("/Edit/{task_id}")
async def edit_page(
    task_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("task.edit")),
):
    task = await task_service.find_task(db, task_id)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return await _render_form(
        request, db, principal, TaskFormViewModel.from_entity(task), FormState(), f"/Task/Edit/{task_id}"
    )


@router.post("/Edit/{task_id}")
async def edit(
    task_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("task.edit")),
):
    data = await read_form(request)
    if optional_int(data.get("task_id")) != task_id:
        raise HTTPException(status_code=404, detail="Task not found")

    payload, form = _validate_task_form(TaskUpdate, data)
    if payload is not None:
        try:
            await task_service.update_task(db, task_id, payload)
            return redirect("/Task/Index", "Task updated successfully.")
        except NotFoundError:
            logger.warning("Task %s disappeared before the edit was saved", task_id)
            form.add("", _missing_message(task_id))
        except ValidationFailed as exc:
            _merge_errors(form, exc)
        except ConcurrencyError:
            logger.warning("Concurrency conflict editing task %s", task_id)
            form.add("", EDIT_CONFLICT_MESSAGE)

    return await _render_form(
        request, db, principal, TaskFormViewModel.from_form(data), form, f"/Task/Edit/{task_id}"
    )


@router.get("/Delete/{task_id}")
async def delete_page(
    task_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("task.delete")),
):
    task = await task_service.find_task(db, task_id)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return render(request, "task/delete.html", principal=principal, task=task)


@router.post("/Delete/{task_id}")
async def delete_confirmed(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("task.delete")),
):
    try:
        await task_service.delete_task(db, task_id)
    except NotFoundError:
        return redirect("/Task/Index", _missing_message(task_id), category="warning")
    return redirect("/Task/Index", "Task deleted successfully.")


@router.post("/UpdateStatus/{task_id}")
async def update_status(
    task_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("task.status")),
):
    data = await read_form(request)
    payload, _ = validate_form(TaskStatusUpdate, data)
    if payload is None:
        return redirect("/Task/MyTasks", "Please choose a status.", category="danger")

    try:
        await task_service.update_task_status(db, task_id, payload)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Task not found")
    except ConcurrencyError:
        return redirect("/Task/MyTasks", EDIT_CONFLICT_MESSAGE, category="warning")

    logger.info("User %s set task %s to %s", principal.user_id, task_id, payload.status)
    return redirect("/Task/MyTasks", "Task status updated.")
