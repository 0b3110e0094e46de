from datetime import date, timedelta

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import joinedload

from erms.exceptions import NotFoundError, ValidationFailed
from erms.logging_config import get_logger
from erms.models.project import Project
from erms.models.task import COMPLETED, ProjectTask
from erms.models.user import User
from erms.schemas.task import TaskCreate, TaskDto, TaskStatusUpdate, TaskUpdate
from erms.services.common import check_version, commit_or_conflict

logger = get_logger(__name__)


def to_task_dto(task: ProjectTask) -> TaskDto:
    return TaskDto(
        task_id=task.task_id,
        task_name=task.task_name,
        description=task.description,
        due_date=task.due_date,
        priority=task.priority,
        status=task.status,
        project_id=task.project_id,
        project_name=task.project.project_name if task.project else None,
        assignee_id=task.assignee_id,
        assignee_name=f"{task.assignee.first_name} {task.assignee.last_name}" if task.assignee else None,
        row_version=task.row_version,
    )


def _task_query():
    return select(ProjectTask).options(joinedload(ProjectTask.project), joinedload(ProjectTask.assignee))


async def list_tasks(db: AsyncSession) -> list[ProjectTask]:
    result = await db.execute(_task_query().order_by(ProjectTask.due_date, ProjectTask.task_id))
    return list(result.scalars().all())


async def find_task(db: AsyncSession, task_id: int) -> ProjectTask | None:
    result = await db.execute(_task_query().filter(ProjectTask.task_id == task_id))
    return result.scalars().first()


async def get_task(db: AsyncSession, task_id: int) -> ProjectTask:
    task = await find_task(db, task_id)
    if not task:
        raise NotFoundError(f"Task with ID {task_id} not found.")
    return task


async def tasks_for_user(db: AsyncSession, user_id: str) -> list[ProjectTask]:
    result = await db.execute(select(User.id).filter(User.id == user_id))
    if result.scalars().first() is None:
        raise NotFoundError(f"User with ID {user_id} not found.")
    result = await db.execute(
        _task_query().filter(ProjectTask.assignee_id == user_id).order_by(ProjectTask.due_date, ProjectTask.task_id)
    )
    return list(result.scalars().all())


async def tasks_for_project(db: AsyncSession, project_id: int) -> list[ProjectTask]:
    result = await db.execute(select(Project.project_id).filter(Project.project_id == project_id))
    if result.scalars().first() is None:
        raise NotFoundError(f"Project with ID {project_id} not found.")
    result = await db.execute(
        _task_query().filter(ProjectTask.project_id == project_id).order_by(ProjectTask.due_date, ProjectTask.task_id)
    )
    return list(result.scalars().all())


def upcoming_deadlines(tasks: list[ProjectTask], today: date | None = None, days: int = 7) -> list[ProjectTask]:
    """Open tasks due between today and ``days`` days from now, soonest first."""
    today = today or date.today()
    horizon = today + timedelta(days=days)
    due = [t for t in tasks if today <= t.due_date <= horizon and t.status != COMPLETED]
    return sorted(due, key=lambda t: t.due_date)


async def _validate_references(db: AsyncSession, project_id: int, assignee_id: str) -> None:
    result = await db.execute(select(Project.project_id).filter(Project.project_id == project_id))
    if result.scalars().first() is None:
        logger.warning("Project %s not found for task", project_id)
        raise ValidationFailed.single("project_id", f"Project with ID {project_id} does not exist.")
    result = await db.execute(select(User.id).filter(User.id == assignee_id))
    if result.scalars().first() is None:
        logger.warning("Assignee %s not found for task", assignee_id)
        raise ValidationFailed.single("assignee_id", f"Assignee with ID {assignee_id} does not exist.")


async def create_task(db: AsyncSession, data: TaskCreate) -> ProjectTask:
    logger.info(
        "Attempting to create task %s for project %s, assignee %s",
        data.task_name, data.project_id, data.assignee_id
    )
    await _validate_references(db, data.project_id, data.assignee_id)
    task = ProjectTask(
        task_name=data.task_name,
        description=data.description,
        priority=data.priority,
        status=data.status,
        due_date=data.due_date,
        assignee_id=data.assignee_id,
        project_id=data.project_id,
    )
    db.add(task)
    await db.commit()
    logger.info("Created task %s", task.task_id)
    return task


async def update_task(db: AsyncSession, task_id: int, data: TaskUpdate) -> ProjectTask:
    task = await get_task(db, task_id)
    await _validate_references(db, data.project_id, data.assignee_id)

    conflict = f"Concurrency conflict updating task {task_id}."
    check_version(task, data.row_version, conflict)

    task.task_name = data.task_name
    task.description = data.description
    task.priority = data.priority
    task.status = data.status
    task.due_date = data.due_date
    task.assignee_id = data.assignee_id
    task.project_id = data.project_id
    await commit_or_conflict(db, conflict)
    logger.info("Updated task %s", task_id)
    return task


async def update_task_status(db: AsyncSession, task_id: int, data: TaskStatusUpdate) -> ProjectTask:
    task = await get_task(db, task_id)
    conflict = f"Concurrency conflict updating task {task_id}."
    check_version(task, data.row_version, conflict)
    task.status = data.status
    await commit_or_conflict(db, conflict)
    logger.info("Task %s status set to %s", task_id, data.status)
    return task


async def delete_task(db: AsyncSession, task_id: int) -> None:
    task = await get_task(db, task_id)
    await db.delete(task)
    await commit_or_conflict(db, f"Concurrency conflict deleting task {task_id}.")
    logger.info("Deleted task %s", task_id)
