from pydantic import BaseModel, Field, field_validator
from erms.utils.sanitization import sanitize_string, blank_to_none


class DepartmentBase(BaseModel):
    department_name: str = Field(..., min_length=1, max_length=50)

    @field_validator("department_name", mode="before")
    @classmethod
    def sanitize(cls, v):
        return sanitize_string(v)


class DepartmentCreate(DepartmentBase):
    pass


class DepartmentUpdate(DepartmentBase):
    department_id: int
    row_version: int | None = None

    @field_validator("row_version", mode="before")
    @classmethod
    def empty_version(cls, v):
        return blank_to_none(v)

