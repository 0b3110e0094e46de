"""
Reporting procedures: project task summary and bulk status update
"""
from datetime import date, timedelta

import pytest
from pydantic import ValidationError

from erms.models.task import NOT_STARTED, OVERDUE
from erms.services import procedures


async def test_project_task_summary(db_session, manager_user, employee_user, make_project, make_task):
    apollo = await make_project(manager_user, name="Apollo")
    await make_project(manager_user, name="Borealis")
    await make_task(apollo, employee_user, name="A", status="Completed")
    await make_task(apollo, employee_user, name="B", status="In Progress")

    rows = await procedures.get_project_task_summary(db_session)
    assert [(r.project_name, r.total_tasks, r.completed_tasks) for r in rows] == [
        ("Apollo", 2, 1), ("Borealis", 0, 0)
    ]
    assert rows[0].manager_name == "Max Manager"


async def test_project_task_summary_empty(db_session):
    assert await procedures.get_project_task_summary(db_session) == []


def test_map_summary_row_rejects_wrong_shape():
    row = {
        "project_id": 1, "project_name": "Apollo", "start_date": date(2024, 1, 1), "end_date": None,
        "manager_name": None, "total_tasks": 3, "completed_tasks": 1,
    }
    assert procedures.map_summary_row(row).manager_name == "N/A"

    with pytest.raises(KeyError):
        procedures.map_summary_row({"project_id": 1})
    with pytest.raises(ValidationError):
        procedures.map_summary_row({**row, "start_date": "someday"})


async def test_bulk_status_update_matches_status_and_due_date(
    db_session, manager_user, employee_user, make_project, make_task
):
    project = await make_project(manager_user)
    today = date(2024, 5, 10)
    await make_task(project, employee_user, name="Past", due_date=today - timedelta(days=1))
    await make_task(project, employee_user, name="Due", due_date=today)
    await make_task(project, employee_user, name="Next", due_date=today + timedelta(days=1))
    await make_task(project, employee_user, name="Busy", due_date=today - timedelta(days=1), status="In Progress")

    affected = await procedures.update_task_status_bulk(db_session, OVERDUE, NOT_STARTED, today)
    assert affected == 2

    # A second sweep finds nothing left to move
    assert await procedures.update_task_status_bulk(db_session, OVERDUE, NOT_STARTED, today) == 0


def test_procedure_statements_splits_function_bodies():
    sql = """
-- header comment
CREATE OR REPLACE FUNCTION a() RETURNS integer LANGUAGE sql AS $$
    SELECT 1;
$$;

-- second
CREATE OR REPLACE FUNCTION b() RETURNS integer LANGUAGE plpgsql AS $$
BEGIN
    RETURN 2;
END;
$$;
"""
    statements = procedures.procedure_statements(sql)
    assert len(statements) == 2
    assert statements[0].startswith("CREATE OR REPLACE FUNCTION a()")
    assert statements[1].endswith("$$;")
    assert all("--" not in s for s in statements)


def test_shipped_procedures_file():
    statements = procedures.procedure_statements()
    assert len(statements) == 2
    assert "sp_get_project_task_summary" in statements[0]
    assert "sp_update_task_status_bulk" in statements[1]
