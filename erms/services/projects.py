from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import joinedload

from erms.exceptions import DependencyError, NotFoundError, ValidationFailed
from erms.logging_config import get_logger
from erms.models.project import Project
from erms.models.task import ProjectTask
from erms.models.user import User
from erms.schemas.project import ProjectCreate, ProjectDto, ProjectUpdate
from erms.services.common import check_version, commit_or_conflict

logger = get_logger(__name__)


def manager_name(manager: User | None, missing: str = "N/A") -> str:
    if manager is None:
        return missing
    return f"{manager.first_name} {manager.last_name}"


def to_project_dto(project: Project, task_count: int) -> ProjectDto:
    return ProjectDto(
        project_id=project.project_id,
        project_name=project.project_name,
        description=project.description,
        start_date=project.start_date,
        end_date=project.end_date,
        manager_id=project.manager_id,
        manager_name=manager_name(project.manager),
        task_count=task_count,
        row_version=project.row_version,
    )


def _with_task_counts():
    counts = (
        select(ProjectTask.project_id, func.count(ProjectTask.task_id).label("task_count"))
        .group_by(ProjectTask.project_id)
        .subquery()
    )
    return (
        select(Project, func.coalesce(counts.c.task_count, 0))
        .outerjoin(counts, counts.c.project_id == Project.project_id)
        .options(joinedload(Project.manager))
    )


async def list_projects(db: AsyncSession) -> list[ProjectDto]:
    result = await db.execute(_with_task_counts().order_by(Project.project_name))
    return [to_project_dto(project, count) for project, count in result.all()]


async def get_project_dto(db: AsyncSession, project_id: int) -> ProjectDto:
    result = await db.execute(_with_task_counts().filter(Project.project_id == project_id))
    row = result.first()
    if not row:
        raise NotFoundError(f"Project with ID {project_id} not found.")
    return to_project_dto(row[0], row[1])


async def find_project(db: AsyncSession, project_id: int | None) -> Project | None:
    if project_id is None:
        return None
    result = await db.execute(select(Project).filter(Project.project_id == project_id))
    return result.scalars().first()


async def get_project(db: AsyncSession, project_id: int) -> Project:
    project = await find_project(db, project_id)
    if not project:
        raise NotFoundError(f"Project with ID {project_id} not found.")
    return project


async def get_project_with_manager(db: AsyncSession, project_id: int) -> Project:
    result = await db.execute(
        select(Project).options(joinedload(Project.manager)).filter(Project.project_id == project_id)
    )
    project = result.scalars().first()
    if not project:
        raise NotFoundError(f"Project with ID {project_id} not found.")
    return project


async def task_count(db: AsyncSession, project_id: int) -> int:
    result = await db.execute(select(func.count(ProjectTask.task_id)).filter(ProjectTask.project_id == project_id))
    return result.scalar() or 0


async def has_tasks(db: AsyncSession, project_id: int) -> bool:
    return await task_count(db, project_id) > 0


async def list_manager_candidates(db: AsyncSession) -> list[User]:
    result = await db.execute(select(User).order_by(User.last_name, User.first_name))
    return list(result.scalars().all())


async def _validate_manager(db: AsyncSession, manager_id: str) -> None:
    result = await db.execute(select(User.id).filter(User.id == manager_id))
    if result.scalars().first() is None:
        logger.warning("Manager %s not found", manager_id)
        raise ValidationFailed.single("manager_id", f"Manager with ID {manager_id} does not exist.")


async def create_project(db: AsyncSession, data: ProjectCreate) -> Project:
    logger.info("Attempting to create project %s", data.project_name)
    await _validate_manager(db, data.manager_id)

    project = Project(
        project_name=data.project_name,
        description=data.description,
        start_date=data.start_date,
        end_date=data.end_date,
        manager_id=data.manager_id,
    )
    db.add(project)
    await db.commit()
    logger.info("Created project %s", project.project_id)
    return project


async def update_project(db: AsyncSession, project_id: int, data: ProjectUpdate) -> Project:
    project = await get_project(db, project_id)
    await _validate_manager(db, data.manager_id)

    conflict = f"Concurrency conflict updating project {project_id}."
    check_version(project, data.row_version, conflict)

    project.project_name = data.project_name
    project.description = data.description
    project.start_date = data.start_date
    project.end_date = data.end_date
    project.manager_id = data.manager_id
    await commit_or_conflict(db, conflict)
    logger.info("Updated project %s", project_id)
    return project


async def delete_project(db: AsyncSession, project_id: int) -> None:
    project = await get_project(db, project_id)
    if await has_tasks(db, project_id):
        logger.warning("Refused to delete project %s: it has tasks", project_id)
        raise DependencyError(
            f"Cannot delete project {project_id} because it has associated tasks. "
            "Please reassign or delete tasks first."
        )
    await db.delete(project)
    await commit_or_conflict(db, f"Concurrency conflict deleting project {project_id}.")
    logger.info("Deleted project %s", project_id)


async def list_project_choices(db: AsyncSession) -> list[tuple[int, str]]:
    result = await db.execute(select(Project.project_id, Project.project_name).order_by(Project.project_name))
    return [(row.project_id, row.project_name) for row in result.all()]
