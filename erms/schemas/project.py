from datetime import date
from pydantic import BaseModel, Field, field_validator
from erms.utils.sanitization import sanitize_string, blank_to_none


class ProjectBase(BaseModel):
    project_name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    start_date: date
    end_date: date | None = None
    manager_id: str = Field(..., min_length=1)

    @field_validator("project_name", "description", mode="before")
    @classmethod
    def sanitize(cls, v):
        return sanitize_string(v)

    @field_validator("end_date", mode="before")
    @classmethod
    def empty_end_date(cls, v):
        return blank_to_none(v)


class ProjectCreate(ProjectBase):
    pass


class ProjectUpdate(ProjectBase):
    # When supplied, must match the stored version or the update is rejected
    row_version: int | None = None

    @field_validator("row_version", mode="before")
    @classmethod
    def empty_version(cls, v):
        return blank_to_none(v)


class ProjectDto(BaseModel):
    project_id: int
    project_name: str
    description: str | None = None
    start_date: date
    end_date: date | None = None
    manager_id: str | None = None
    manager_name: str = "N/A"
    task_count: int = 0
    row_version: int | None = None
