from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import joinedload

from erms.models.task import COMPLETED, IN_PROGRESS, NOT_STARTED, ProjectTask
from erms.permissions import ADMIN, MANAGER
from erms.schemas.views import DashboardViewModel, DeadlineItem, ProjectTaskCount
from erms.services import projects as project_service
from erms.services.tasks import upcoming_deadlines


async def build_dashboard(db: AsyncSession, user_id: str, roles: list[str], today: date | None = None) -> DashboardViewModel:
    result = await db.execute(
        select(ProjectTask).options(joinedload(ProjectTask.project)).filter(ProjectTask.assignee_id == user_id)
    )
    tasks = list(result.scalars().all())

    model = DashboardViewModel(
        total_tasks=len(tasks),
        completed_tasks=sum(1 for t in tasks if t.status == COMPLETED),
        in_progress_tasks=sum(1 for t in tasks if t.status == IN_PROGRESS),
        pending_tasks=sum(1 for t in tasks if t.status == NOT_STARTED),
        upcoming_deadlines=[
            DeadlineItem(
                task_id=t.task_id,
                task_name=t.task_name,
                project_name=t.project.project_name,
                due_date=t.due_date,
                status=t.status,
            )
            for t in upcoming_deadlines(tasks, today=today)
        ],
    )

    if ADMIN in roles or MANAGER in roles:
        projects = await project_service.list_projects(db)
        model.show_project_stats = True
        model.total_projects = len(projects)
        model.projects_with_tasks = sum(1 for p in projects if p.task_count > 0)
        model.projects = [
            ProjectTaskCount(project_id=p.project_id, project_name=p.project_name, task_count=p.task_count)
            for p in projects
        ]
    return model
