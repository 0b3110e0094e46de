from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from erms.exceptions import DependencyError, NotFoundError
from erms.logging_config import get_logger
from erms.models.department import Department
from erms.models.user import User
from erms.schemas.department import DepartmentCreate, DepartmentUpdate
from erms.services.common import EDIT_CONFLICT_MESSAGE as CONFLICT_MESSAGE, check_version, commit_or_conflict

logger = get_logger(__name__)

HAS_EMPLOYEES_MESSAGE = "This department cannot be deleted because it has employees."


async def list_departments(db: AsyncSession) -> list[Department]:
    result = await db.execute(select(Department).order_by(Department.department_name))
    return list(result.scalars().all())


async def find_department(db: AsyncSession, department_id: int | None) -> Department | None:
    if department_id is None:
        return None
    result = await db.execute(select(Department).filter(Department.department_id == department_id))
    return result.scalars().first()


async def department_exists(db: AsyncSession, department_id: int | None) -> bool:
    return await find_department(db, department_id) is not None


async def get_department(db: AsyncSession, department_id: int) -> Department:
    department = await find_department(db, department_id)
    if not department:
        raise NotFoundError(f"Department with ID {department_id} not found.")
    return department


async def employee_count(db: AsyncSession, department_id: int) -> int:
    result = await db.execute(select(func.count(User.id)).filter(User.department_id == department_id))
    return result.scalar() or 0


async def create_department(db: AsyncSession, data: DepartmentCreate) -> Department:
    department = Department(department_name=data.department_name)
    db.add(department)
    await db.commit()
    logger.info("Created department %s (%s)", department.department_id, department.department_name)
    return department


async def update_department(db: AsyncSession, department_id: int, data: DepartmentUpdate) -> Department:
    department = await get_department(db, department_id)
    check_version(department, data.row_version, CONFLICT_MESSAGE)
    department.department_name = data.department_name
    await commit_or_conflict(db, CONFLICT_MESSAGE)
    logger.info("Updated department %s", department_id)
    return department


async def delete_department(db: AsyncSession, department_id: int) -> None:
    department = await get_department(db, department_id)
    if await employee_count(db, department_id):
        logger.warning("Refused to delete department %s: it still has employees", department_id)
        raise DependencyError(HAS_EMPLOYEES_MESSAGE)
    await db.delete(department)
    await commit_or_conflict(db, CONFLICT_MESSAGE)
    logger.info("Deleted department %s", department_id)
