from datetime import date
from pydantic import BaseModel, Field, field_validator
from erms.utils.sanitization import sanitize_string, blank_to_none


class TaskBase(BaseModel):
    task_name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    priority: str = Field("Medium", min_length=1, max_length=50)
    status: str = Field("Not Started", min_length=1, max_length=50)
    due_date: date
    assignee_id: str = Field(..., min_length=1)
    project_id: int

    @field_validator("task_name", "description", "priority", "status", mode="before")
    @classmethod
    def sanitize(cls, v):
        return sanitize_string(v)


class TaskCreate(TaskBase):
    pass


class TaskUpdate(TaskBase):
    row_version: int | None = None

    @field_validator("row_version", mode="before")
    @classmethod
    def empty_version(cls, v):
        return blank_to_none(v)


class TaskStatusUpdate(BaseModel):
    status: str = Field(..., min_length=1, max_length=50)
    row_version: int | None = None

    @field_validator("row_version", mode="before")
    @classmethod
    def empty_version(cls, v):
        return blank_to_none(v)

    @field_validator("status", mode="before")
    @classmethod
    def sanitize(cls, v):
        return sanitize_string(v)


class TaskDto(BaseModel):
    task_id: int
    task_name: str
    description: str | None = None
    due_date: date
    priority: str | None = None
    status: str
    project_id: int
    project_name: str | None = None
    assignee_id: str | None = None
    assignee_name: str | None = None
    row_version: int | None = None
