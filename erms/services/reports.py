import io

import matplotlib
matplotlib.use('Agg')
from matplotlib.figure import Figure

import pandas as pd
import seaborn as sns
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import aliased

from erms.models.department import Department
from erms.models.project import Project
from erms.models.task import COMPLETED, ProjectTask
from erms.models.user import User
from erms.schemas.report import EmployeePerformanceRow, ProjectReportRow
from erms.schemas.views import ReportFilter

TASK_COLUMNS = ["task_id", "project_id", "assignee_id", "status", "due_date"]


async def get_task_dataframe(db: AsyncSession) -> pd.DataFrame:
    result = await db.execute(
        select(
            ProjectTask.task_id, ProjectTask.project_id, ProjectTask.assignee_id,
            ProjectTask.status, ProjectTask.due_date
        )
    )
    rows = result.all()
    if not rows:
        return pd.DataFrame(columns=TASK_COLUMNS)

    df = pd.DataFrame([dict(row._mapping) for row in rows], columns=TASK_COLUMNS)
    df["due_date"] = pd.to_datetime(df["due_date"]).dt.date
    return df


def count_by(df: pd.DataFrame, key: str) -> dict:
    """Total and completed task counts per value of ``key``."""
    if df.empty:
        return {}
    grouped = df.assign(completed=df["status"] == COMPLETED).groupby(key).agg(
        total=("task_id", "count"), completed=("completed", "sum")
    )
    return {
        index: (int(row.total), int(row.completed))
        for index, row in grouped.iterrows()
    }


def performance_percent(total: int, completed: int) -> int:
    return completed * 100 // total if total > 0 else 0


def status_counts(df: pd.DataFrame) -> pd.DataFrame:
    if df.empty:
        return pd.DataFrame(columns=["status", "count"])
    return df.groupby("status").size().reset_index(name="count")


async def project_report(db: AsyncSession, filters: ReportFilter) -> list[ProjectReportRow]:
    manager = aliased(User)
    query = (
        select(Project, manager, Department.department_name)
        .outerjoin(manager, manager.id == Project.manager_id)
        .outerjoin(Department, Department.department_id == manager.department_id)
    )
    if filters.start_date:
        query = query.filter(Project.start_date >= filters.start_date)
    if filters.end_date:
        query = query.filter((Project.end_date <= filters.end_date) | (Project.end_date.is_(None)))
    if filters.department_id:
        query = query.filter(manager.department_id == filters.department_id)

    result = await db.execute(query.order_by(Project.project_name))
    counts = count_by(await get_task_dataframe(db), "project_id")

    rows = []
    for project, mgr, department_name in result.all():
        total, completed = counts.get(project.project_id, (0, 0))
        rows.append(ProjectReportRow(
            project_id=project.project_id,
            project_name=project.project_name,
            manager_name=f"{mgr.first_name} {mgr.last_name}" if mgr else "Not Assigned",
            department_name=department_name,
            start_date=project.start_date,
            end_date=project.end_date,
            total_tasks=total,
            completed_tasks=completed,
        ))
    return rows


async def employee_performance(db: AsyncSession, filters: ReportFilter) -> list[EmployeePerformanceRow]:
    query = select(User, Department.department_name).outerjoin(
        Department, Department.department_id == User.department_id
    )
    if filters.department_id:
        query = query.filter(User.department_id == filters.department_id)
    if filters.start_date:
        query = query.filter(User.assigned_tasks.any(ProjectTask.due_date >= filters.start_date))
    if filters.end_date:
        query = query.filter(User.assigned_tasks.any(ProjectTask.due_date <= filters.end_date))

    result = await db.execute(query.order_by(User.last_name, User.first_name))
    counts = count_by(await get_task_dataframe(db), "assignee_id")

    rows = []
    for user, department_name in result.all():
        total, completed = counts.get(user.id, (0, 0))
        rows.append(EmployeePerformanceRow(
            employee_id=user.id,
            employee_name=f"{user.first_name} {user.last_name}",
            department_name=department_name or "Not Assigned",
            total_tasks=total,
            completed_tasks=completed,
            performance=performance_percent(total, completed),
        ))
    return rows


def generate_status_chart(df: pd.DataFrame) -> io.BytesIO | None:
    counts = status_counts(df)
    if counts.empty:
        return None

    # Thread-safe plotting using OO API
    fig = Figure(figsize=(7, 3.5))
    ax = fig.subplots()
    sns.barplot(data=counts, x="status", y="count", color="steelblue", ax=ax)
    ax.set_title("Tasks by Status")
    ax.set_xlabel("")
    ax.set_ylabel("Tasks")

    buf = io.BytesIO()
    fig.savefig(buf, format="png", bbox_inches="tight")
    buf.seek(0)
    return buf
