from sqlalchemy import Column, Integer, String, Text, Date, ForeignKey
from sqlalchemy.orm import relationship
from erms.database import Base
from erms.models.user import User

class Project(Base):
    __tablename__ = "projects"

    project_id = Column(Integer, primary_key=True, index=True)
    project_name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    start_date = Column(Date, nullable=False, index=True)
    end_date = Column(Date, nullable=True)
    manager_id = Column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    row_version = Column(Integer, nullable=False)

    manager = relationship("User", back_populates="managed_projects", lazy="raise", foreign_keys=[manager_id])
    tasks = relationship("ProjectTask", back_populates="project", lazy="raise", passive_deletes=True)

    __mapper_args__ = {"version_id_col": row_version}
