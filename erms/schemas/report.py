from datetime import date
from pydantic import BaseModel, Field


class ProjectTaskSummaryResult(BaseModel):
    """One row of the project task summary procedure."""
    project_id: int
    project_name: str
    start_date: date
    end_date: date | None = None
    manager_name: str
    total_tasks: int = Field(..., ge=0)
    completed_tasks: int = Field(..., ge=0)


class ProjectReportRow(BaseModel):
    project_id: int
    project_name: str
    manager_name: str
    department_name: str | None = None
    start_date: date
    end_date: date | None = None
    total_tasks: int
    completed_tasks: int


class EmployeePerformanceRow(BaseModel):
    employee_id: str
    employee_name: str
    department_name: str
    total_tasks: int
    completed_tasks: int
    performance: int

    @property
    def performance_label(self) -> str:
        return f"{self.performance}%"
