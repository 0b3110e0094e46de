from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship
from erms.database import Base

class Department(Base):
    __tablename__ = "departments"

    department_id = Column(Integer, primary_key=True, index=True)
    department_name = Column(String(50), nullable=False)
    row_version = Column(Integer, nullable=False)

    users = relationship("User", back_populates="department", lazy="raise", passive_deletes=True)

    __mapper_args__ = {"version_id_col": row_version}
