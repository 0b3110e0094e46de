from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import joinedload

from erms.exceptions import DependencyError, IdentityOperationError, NotFoundError, ValidationFailed
from erms.logging_config import get_logger
from erms.models.project import Project
from erms.models.task import ProjectTask
from erms.models.user import User
from erms.schemas.employee import EmployeeCreate, EmployeeDto, EmployeeUpdate
from erms.services import identity
from erms.services.departments import department_exists

logger = get_logger(__name__)


def to_employee_dto(user: User, roles: list[str]) -> EmployeeDto:
    return EmployeeDto(
        id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        email=user.email,
        phone_number=user.phone_number,
        hire_date=user.hire_date,
        department_id=user.department_id,
        department_name=user.department.department_name if user.department else None,
        roles=roles,
    )


async def list_employees(db: AsyncSession) -> list[EmployeeDto]:
    result = await db.execute(
        select(User).options(joinedload(User.department)).order_by(User.last_name, User.first_name)
    )
    users = list(result.scalars().all())
    roles = await identity.get_roles_for_users(db, [u.id for u in users])
    logger.info("Retrieved %d employees", len(users))
    return [to_employee_dto(u, roles.get(u.id, [])) for u in users]


async def get_employee_user(db: AsyncSession, user_id: str) -> User:
    result = await db.execute(select(User).options(joinedload(User.department)).filter(User.id == user_id))
    user = result.scalars().first()
    if not user:
        logger.warning("Employee %s not found", user_id)
        raise NotFoundError(f"Employee with ID {user_id} not found.")
    return user


async def get_employee(db: AsyncSession, user_id: str) -> EmployeeDto:
    user = await get_employee_user(db, user_id)
    return to_employee_dto(user, await identity.get_roles(db, user.id))


async def _validate_department(db: AsyncSession, department_id: int) -> None:
    if not await department_exists(db, department_id):
        logger.warning("Department %s not found", department_id)
        raise ValidationFailed.single("department_id", f"Department with ID {department_id} does not exist.")


async def _validate_roles(db: AsyncSession, roles: list[str]) -> None:
    for role_name in roles:
        if not await identity.role_exists(db, role_name):
            logger.warning("Role %s not found", role_name)
            raise ValidationFailed.single("roles", f"Role '{role_name}' does not exist.")


async def create_employee(db: AsyncSession, data: EmployeeCreate) -> User:
    logger.info("Attempting to create a new employee with email: %s", data.email)
    await _validate_department(db, data.department_id)
    await _validate_roles(db, data.roles)

    user = User(
        user_name=data.email,
        email=data.email,
        email_confirmed=True,
        first_name=data.first_name,
        last_name=data.last_name,
        phone_number=data.phone_number,
        hire_date=data.hire_date,
        department_id=data.department_id,
    )
    result = await identity.create_user(db, user, data.password)
    if not result.succeeded:
        for description in result.descriptions:
            logger.warning("Identity error creating %s: %s", data.email, description)
        raise IdentityOperationError(result.errors)

    role_result = await identity.add_to_roles(db, user, data.roles)
    if not role_result.succeeded:
        for description in role_result.descriptions:
            logger.warning("Error assigning roles to user %s: %s", user.id, description)
    else:
        logger.info("Assigned roles %s to user %s", ",".join(data.roles), user.id)
    return user


async def update_employee(db: AsyncSession, user_id: str, data: EmployeeUpdate) -> User:
    logger.info("Attempting to update employee %s", user_id)
    user = await get_employee_user(db, user_id)
    await _validate_department(db, data.department_id)

    email_changed = identity.normalize(data.email) != user.normalized_email
    if email_changed:
        other = await identity.find_by_email(db, data.email)
        if other is not None and other.id != user.id:
            raise ValidationFailed.single("email", "Email address is already in use.")

    user.first_name = data.first_name
    user.last_name = data.last_name
    user.phone_number = data.phone_number
    user.hire_date = data.hire_date
    user.department_id = data.department_id

    if email_changed:
        result = await identity.set_email(db, user, data.email)
    else:
        result = await identity.update_user(db, user)
    if not result.succeeded:
        raise IdentityOperationError(result.errors)

    if data.roles is not None:
        await _validate_roles(db, data.roles)
        sync = await identity.sync_roles(db, user, data.roles)
        if not sync.succeeded:
            logger.warning("One or more errors occurred during role update for user %s", user_id)
    return user


async def dependency_reasons(db: AsyncSession, user_id: str) -> list[str]:
    reasons = []
    managed = await db.execute(select(func.count(Project.project_id)).filter(Project.manager_id == user_id))
    if managed.scalar():
        reasons.append("Managing one or more projects.")
    assigned = await db.execute(select(func.count(ProjectTask.task_id)).filter(ProjectTask.assignee_id == user_id))
    if assigned.scalar():
        reasons.append("Assigned one or more tasks.")
    return reasons


async def delete_employee(db: AsyncSession, user_id: str) -> None:
    logger.info("Attempting to delete employee %s", user_id)
    user = await get_employee_user(db, user_id)

    reasons = await dependency_reasons(db, user_id)
    if reasons:
        message = (
            "Cannot delete employee because they are referenced elsewhere: "
            + " ".join(reasons)
            + " Please reassign responsibilities before deleting."
        )
        logger.warning("Delete failed for user %s. %s", user_id, message)
        raise DependencyError(message)

    result = await identity.delete_user(db, user)
    if not result.succeeded:
        raise IdentityOperationError(result.errors)
