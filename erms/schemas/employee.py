from datetime import date
from pydantic import BaseModel, EmailStr, Field, field_validator
from erms.utils.sanitization import sanitize_string, blank_to_none


class EmployeeBase(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    phone_number: str | None = Field(None, max_length=50)
    hire_date: date
    department_id: int

    @field_validator("first_name", "last_name", "phone_number", mode="before")
    @classmethod
    def sanitize(cls, v):
        return blank_to_none(sanitize_string(v))


class EmployeeCreate(EmployeeBase):
    password: str
    roles: list[str] = Field(..., min_length=1)


class EmployeeUpdate(EmployeeBase):
    # None leaves role membership untouched
    roles: list[str] | None = None


class EmployeeDto(BaseModel):
    id: str
    first_name: str
    last_name: str
    email: str
    phone_number: str | None = None
    hire_date: date
    department_id: int
    department_name: str | None = None
    roles: list[str] = []
