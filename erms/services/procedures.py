"""
Reporting procedures.

``get_project_task_summary`` and ``update_task_status_bulk`` have a fixed
parameter and result contract. With ``USE_DB_PROCEDURES`` they call the
PostgreSQL functions defined in ``erms/sql/procedures.sql``; otherwise the
same statements run through SQLAlchemy Core so any backend works.
"""

import re
from datetime import date
from pathlib import Path

from sqlalchemy import case, func, literal, text, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from erms.config import settings
from erms.logging_config import get_logger
from erms.models.project import Project
from erms.models.task import COMPLETED, ProjectTask
from erms.models.user import User
from erms.schemas.report import ProjectTaskSummaryResult

logger = get_logger(__name__)

SUMMARY_PROCEDURE = text(
    "SELECT project_id, project_name, start_date, end_date, manager_name, total_tasks, completed_tasks "
    "FROM sp_get_project_task_summary()"
)
BULK_STATUS_PROCEDURE = text(
    "SELECT sp_update_task_status_bulk(:target_status, :current_status, :due_date_threshold)"
)

PROCEDURES_SQL = Path(__file__).resolve().parent.parent / "sql" / "procedures.sql"


def _summary_statement():
    manager_name = func.coalesce(User.first_name + literal(" ") + User.last_name, literal("N/A"))
    completed = func.coalesce(func.sum(case((ProjectTask.status == COMPLETED, 1), else_=0)), 0)
    return (
        select(
            Project.project_id.label("project_id"),
            Project.project_name.label("project_name"),
            Project.start_date.label("start_date"),
            Project.end_date.label("end_date"),
            manager_name.label("manager_name"),
            func.count(ProjectTask.task_id).label("total_tasks"),
            completed.label("completed_tasks"),
        )
        .select_from(Project)
        .outerjoin(User, User.id == Project.manager_id)
        .outerjoin(ProjectTask, ProjectTask.project_id == Project.project_id)
        .group_by(
            Project.project_id, Project.project_name, Project.start_date, Project.end_date,
            User.first_name, User.last_name,
        )
        .order_by(Project.project_name)
    )


def map_summary_row(row) -> ProjectTaskSummaryResult:
    """Map one result row by column name; pydantic rejects rows of the wrong shape."""
    return ProjectTaskSummaryResult(
        project_id=row["project_id"],
        project_name=row["project_name"],
        start_date=row["start_date"],
        end_date=row["end_date"],
        manager_name=row["manager_name"] or "N/A",
        total_tasks=int(row["total_tasks"] or 0),
        completed_tasks=int(row["completed_tasks"] or 0),
    )


async def get_project_task_summary(db: AsyncSession) -> list[ProjectTaskSummaryResult]:
    logger.info("Generating project task summary")
    statement = SUMMARY_PROCEDURE if settings.USE_DB_PROCEDURES else _summary_statement()
    result = await db.execute(statement)
    return [map_summary_row(row) for row in result.mappings().all()]


async def update_task_status_bulk(
    db: AsyncSession, target_status: str, current_status: str, due_date_threshold: date
) -> int:
    """Move tasks in ``current_status`` due on or before the threshold to ``target_status``.

    Returns the number of tasks changed.
    """
    if settings.USE_DB_PROCEDURES:
        result = await db.execute(BULK_STATUS_PROCEDURE, {
            "target_status": target_status,
            "current_status": current_status,
            "due_date_threshold": due_date_threshold,
        })
        affected = result.scalar() or 0
    else:
        result = await db.execute(
            update(ProjectTask)
            .where(ProjectTask.status == current_status, ProjectTask.due_date <= due_date_threshold)
            .values(status=target_status, row_version=ProjectTask.row_version + 1)
            .execution_options(synchronize_session=False)
        )
        affected = result.rowcount
    await db.commit()
    logger.info(
        "Bulk status update %r -> %r for tasks due on or before %s: %d row(s)",
        current_status, target_status, due_date_threshold, affected
    )
    return affected


def procedure_statements(sql: str | None = None) -> list[str]:
    """Split the procedure DDL into one statement per function definition."""
    if sql is None:
        sql = PROCEDURES_SQL.read_text(encoding="utf-8")
    # Function bodies contain semicolons, so split after each closing "$$;"
    chunks = re.split(r"(?<=\$\$;)", sql)
    statements = []
    for chunk in chunks:
        lines = [line for line in chunk.splitlines() if not line.strip().startswith("--")]
        statement = "\n".join(lines).strip()
        if statement:
            statements.append(statement)
    return statements


async def install_procedures(db: AsyncSession) -> int:
    """Create or replace the PostgreSQL reporting functions. Returns how many were applied."""
    statements = procedure_statements()
    for statement in statements:
        await db.execute(text(statement))
    await db.commit()
    logger.info("Installed %d reporting procedure(s)", len(statements))
    return len(statements)
