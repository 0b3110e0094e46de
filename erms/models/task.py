from sqlalchemy import Column, Integer, String, Text, Date, ForeignKey
from sqlalchemy.orm import relationship
from erms.database import Base
from erms.models.project import Project

# Status is an open string; these are the values the UI offers.
NOT_STARTED = "Not Started"
IN_PROGRESS = "In Progress"
COMPLETED = "Completed"
OVERDUE = "Overdue"
TASK_STATUSES = [NOT_STARTED, IN_PROGRESS, COMPLETED, OVERDUE]
TASK_PRIORITIES = ["Low", "Medium", "High", "Critical"]


class ProjectTask(Base):
    __tablename__ = "project_tasks"

    task_id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.project_id", ondelete="RESTRICT"), nullable=False)
    assignee_id = Column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    task_name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    due_date = Column(Date, nullable=False, index=True)
    priority = Column(String(50), nullable=False, default="Medium")
    status = Column(String(50), nullable=False, default=NOT_STARTED)
    row_version = Column(Integer, nullable=False)

    project = relationship("Project", back_populates="tasks", lazy="raise", foreign_keys=[project_id])
    assignee = relationship("User", back_populates="assigned_tasks", lazy="raise", foreign_keys=[assignee_id])

    __mapper_args__ = {"version_id_col": row_version}
