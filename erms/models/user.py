import uuid

from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, ForeignKey, Table
from sqlalchemy.orm import relationship
from erms.database import Base
from erms.models.department import Department


def new_id() -> str:
    return str(uuid.uuid4())


user_roles = Table(
    "user_roles",
    Base.metadata,
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", String(36), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
)


class Role(Base):
    __tablename__ = "roles"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(256), unique=True, nullable=False)
    normalized_name = Column(String(256), unique=True, index=True, nullable=False)


class User(Base):
    """Application user and credential record.

    ``password_hash`` holds a bcrypt hash. ``access_failed_count`` counts
    consecutive failed sign-ins; ``lockout_end`` suspends sign-in until the
    given instant (``None`` means not locked).
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    user_name = Column(String(256), unique=True, nullable=False)
    normalized_user_name = Column(String(256), unique=True, index=True, nullable=False)
    email = Column(String(256), nullable=False)
    normalized_email = Column(String(256), unique=True, index=True, nullable=False)
    email_confirmed = Column(Boolean, nullable=False, default=False)
    password_hash = Column(String(255), nullable=True)
    security_stamp = Column(String(36), nullable=False, default=new_id)
    phone_number = Column(String(50), nullable=True)
    lockout_end = Column(DateTime(timezone=True), nullable=True)
    lockout_enabled = Column(Boolean, nullable=False, default=True)
    access_failed_count = Column(Integer, nullable=False, default=0)

    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    hire_date = Column(Date, nullable=False)
    department_id = Column(Integer, ForeignKey("departments.department_id", ondelete="RESTRICT"), nullable=False)
    row_version = Column(Integer, nullable=False)

    department = relationship("Department", back_populates="users", lazy="raise")
    managed_projects = relationship(
        "Project", back_populates="manager", lazy="raise", passive_deletes=True,
        foreign_keys="[Project.manager_id]"
    )
    assigned_tasks = relationship(
        "ProjectTask", back_populates="assignee", lazy="raise", passive_deletes=True,
        foreign_keys="[ProjectTask.assignee_id]"
    )

    __mapper_args__ = {"version_id_col": row_version}

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
