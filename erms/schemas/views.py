"""Per-page view models handed to the Jinja templates."""

from datetime import date
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from erms.schemas.report import EmployeePerformanceRow, ProjectReportRow, ProjectTaskSummaryResult
from erms.utils.sanitization import blank_to_none, sanitize_string


class SelectOption(BaseModel):
    value: str
    text: str
    selected: bool = False


def select_options(pairs, selected=None) -> list[SelectOption]:
    selected = "" if selected is None else str(selected)
    return [SelectOption(value=str(v), text=t, selected=str(v) == selected) for v, t in pairs]


class FormState(BaseModel):
    """Field errors plus model-level errors (key ``""``) for a posted form."""
    errors: dict[str, list[str]] = {}

    def add(self, field: str, message: str) -> None:
        self.errors.setdefault(field, []).append(message)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def summary(self) -> list[str]:
        return self.errors.get("", [])

    def for_field(self, field: str) -> list[str]:
        return self.errors.get(field, [])

    @classmethod
    def from_validation_error(cls, exc) -> "FormState":
        state = cls()
        for err in exc.errors():
            loc = [str(part) for part in err.get("loc", ()) if part not in ("body",)]
            message = err.get("msg", "Invalid value.")
            if err.get("type") == "value_error" and "error" in err.get("ctx", {}):
                message = str(err["ctx"]["error"])
            state.add(loc[-1] if loc else "", message)
        return state


# ── Account ─────────────────────────────────────────────

class LoginViewModel(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    remember_me: bool = False


class RegisterViewModel(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=100)
    confirm_password: str = ""
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    hire_date: date
    department_id: int

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def sanitize(cls, v):
        return sanitize_string(v)

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("The password and confirmation password do not match.")
        return self


# ── Admin ───────────────────────────────────────────────

class UserManagementViewModel(BaseModel):
    user_id: str
    email: str
    first_name: str
    last_name: str
    department: str
    roles: list[str] = []
    is_locked: bool = False


class RoleSelection(BaseModel):
    role_name: str
    is_selected: bool = False


class EditUserRolesViewModel(BaseModel):
    user_id: str
    user_name: str
    email: str
    roles: list[RoleSelection] = []


# ── Dashboard ───────────────────────────────────────────

class DeadlineItem(BaseModel):
    task_id: int
    task_name: str
    project_name: str
    due_date: date
    status: str


class ProjectTaskCount(BaseModel):
    project_id: int
    project_name: str
    task_count: int


class DashboardViewModel(BaseModel):
    total_tasks: int = 0
    completed_tasks: int = 0
    in_progress_tasks: int = 0
    pending_tasks: int = 0
    upcoming_deadlines: list[DeadlineItem] = []
    show_project_stats: bool = False
    total_projects: int = 0
    projects_with_tasks: int = 0
    projects: list[ProjectTaskCount] = []


# ── Reports ─────────────────────────────────────────────

class ReportFilter(BaseModel):
    start_date: date | None = None
    end_date: date | None = None
    department_id: int | None = None

    @field_validator("start_date", "end_date", "department_id", mode="before")
    @classmethod
    def blank_filter(cls, v):
        return blank_to_none(v)


class ProjectReportViewModel(BaseModel):
    filters: ReportFilter
    departments: list[SelectOption] = []
    rows: list[ProjectReportRow] = []


class EmployeePerformanceViewModel(BaseModel):
    filters: ReportFilter
    departments: list[SelectOption] = []
    rows: list[EmployeePerformanceRow] = []


class ProjectSummaryViewModel(BaseModel):
    rows: list[ProjectTaskSummaryResult] = []


# ── CRUD forms ──────────────────────────────────────────
# Form view models keep the raw posted strings so a rejected form redisplays
# exactly what the user typed.

def _text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


class DepartmentFormViewModel(BaseModel):
    department_id: str = ""
    department_name: str = ""
    row_version: str = ""

    @classmethod
    def from_entity(cls, department) -> "DepartmentFormViewModel":
        return cls(
            department_id=_text(department.department_id),
            department_name=_text(department.department_name),
            row_version=_text(department.row_version),
        )

    @classmethod
    def from_form(cls, data: dict) -> "DepartmentFormViewModel":
        return cls(**{k: _text(data.get(k)) for k in cls.model_fields})


class ProjectFormViewModel(BaseModel):
    project_id: str = ""
    project_name: str = ""
    description: str = ""
    start_date: str = ""
    end_date: str = ""
    manager_id: str = ""
    row_version: str = ""
    managers: list[SelectOption] = []

    @classmethod
    def from_entity(cls, project) -> "ProjectFormViewModel":
        return cls(
            project_id=_text(project.project_id),
            project_name=_text(project.project_name),
            description=_text(project.description),
            start_date=_text(project.start_date),
            end_date=_text(project.end_date),
            manager_id=_text(project.manager_id),
            row_version=_text(project.row_version),
        )

    @classmethod
    def from_form(cls, data: dict) -> "ProjectFormViewModel":
        return cls(**{k: _text(data.get(k)) for k in cls.model_fields if k != "managers"})


class TaskFormViewModel(BaseModel):
    task_id: str = ""
    task_name: str = ""
    description: str = ""
    due_date: str = ""
    priority: str = "Medium"
    status: str = "Not Started"
    project_id: str = ""
    assignee_id: str = ""
    row_version: str = ""
    projects: list[SelectOption] = []
    assignees: list[SelectOption] = []
    statuses: list[SelectOption] = []
    priorities: list[SelectOption] = []

    @classmethod
    def from_entity(cls, task) -> "TaskFormViewModel":
        return cls(
            task_id=_text(task.task_id),
            task_name=_text(task.task_name),
            description=_text(task.description),
            due_date=_text(task.due_date),
            priority=_text(task.priority),
            status=_text(task.status),
            project_id=_text(task.project_id),
            assignee_id=_text(task.assignee_id),
            row_version=_text(task.row_version),
        )

    @classmethod
    def from_form(cls, data: dict) -> "TaskFormViewModel":
        option_lists = {"projects", "assignees", "statuses", "priorities"}
        return cls(**{k: _text(data.get(k)) for k in cls.model_fields if k not in option_lists})
