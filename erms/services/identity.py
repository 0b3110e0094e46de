"""
Credential store and role management.

Passwords are hashed with bcrypt (see ``erms.utils.security``). Failed
sign-ins increment ``User.access_failed_count``; reaching
``LOCKOUT_MAX_FAILED_ACCESS_ATTEMPTS`` sets ``User.lockout_end`` to
now + ``LOCKOUT_MINUTES`` and resets the counter. A user is locked out while
``lockout_enabled`` is set and ``lockout_end`` lies in the future.

Every operation that changes state commits and reports problems through an
``IdentityResult`` instead of raising.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import joinedload
from sqlalchemy.orm.exc import StaleDataError

from erms.config import settings
from erms.exceptions import IdentityError, IdentityOperationError
from erms.logging_config import get_logger
from erms.models.user import Role, User, new_id, user_roles
from erms.utils.security import get_password_hash, verify_password

logger = get_logger(__name__)

# Lock value used by administrators; far enough out to mean "until unlocked".
LOCKED_FOREVER = datetime(9999, 12, 31, 23, 59, 59, tzinfo=timezone.utc)


@dataclass
class IdentityResult:
    succeeded: bool
    errors: list[IdentityError] = field(default_factory=list)

    @classmethod
    def success(cls) -> "IdentityResult":
        return cls(True)

    @classmethod
    def failed(cls, *errors: IdentityError) -> "IdentityResult":
        return cls(False, list(errors))

    @property
    def descriptions(self) -> list[str]:
        return [e.description for e in self.errors]

    def raise_for_errors(self) -> None:
        if not self.succeeded:
            raise IdentityOperationError(self.errors)


class SignInResult(str, enum.Enum):
    SUCCEEDED = "succeeded"
    LOCKED_OUT = "locked_out"
    NOT_ALLOWED = "not_allowed"
    FAILED = "failed"


def normalize(value: str | None) -> str | None:
    return value.strip().upper() if value else value


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands timestamps back without tzinfo
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def concurrency_failure() -> IdentityError:
    return IdentityError("ConcurrencyFailure", "Optimistic concurrency failure, object has been modified.")


# ── Password policy ─────────────────────────────────────

def validate_password(password: str | None) -> list[IdentityError]:
    password = password or ""
    errors = []
    if len(password) < settings.PASSWORD_REQUIRED_LENGTH:
        errors.append(IdentityError(
            "PasswordTooShort",
            f"Passwords must be at least {settings.PASSWORD_REQUIRED_LENGTH} characters."
        ))
    if all(c.isalnum() for c in password):
        errors.append(IdentityError(
            "PasswordRequiresNonAlphanumeric",
            "Passwords must have at least one non alphanumeric character."
        ))
    if not any(c.isdigit() for c in password):
        errors.append(IdentityError("PasswordRequiresDigit", "Passwords must have at least one digit ('0'-'9')."))
    if not any(c.islower() for c in password):
        errors.append(IdentityError("PasswordRequiresLower", "Passwords must have at least one lowercase ('a'-'z')."))
    if not any(c.isupper() for c in password):
        errors.append(IdentityError("PasswordRequiresUpper", "Passwords must have at least one uppercase ('A'-'Z')."))
    return errors


# ── Lookups ─────────────────────────────────────────────

async def find_by_id(db: AsyncSession, user_id: str) -> User | None:
    result = await db.execute(select(User).filter(User.id == user_id))
    return result.scalars().first()


async def list_users(db: AsyncSession) -> list[User]:
    result = await db.execute(
        select(User).options(joinedload(User.department)).order_by(User.last_name, User.first_name)
    )
    return list(result.scalars().all())


async def find_by_email(db: AsyncSession, email: str) -> User | None:
    if not email:
        return None
    result = await db.execute(select(User).filter(User.normalized_email == normalize(email)))
    return result.scalars().first()


async def find_by_name(db: AsyncSession, user_name: str) -> User | None:
    if not user_name:
        return None
    result = await db.execute(select(User).filter(User.normalized_user_name == normalize(user_name)))
    return result.scalars().first()


async def _uniqueness_errors(db: AsyncSession, user: User) -> list[IdentityError]:
    errors = []
    owner = await find_by_name(db, user.user_name)
    if owner is not None and owner.id != user.id:
        errors.append(IdentityError("DuplicateUserName", f"Username '{user.user_name}' is already taken."))
    owner = await find_by_email(db, user.email)
    if owner is not None and owner.id != user.id:
        errors.append(IdentityError("DuplicateEmail", f"Email '{user.email}' is already taken."))
    return errors


# ── User lifecycle ──────────────────────────────────────

async def create_user(db: AsyncSession, user: User, password: str) -> IdentityResult:
    if not user.id:
        user.id = new_id()
    user.user_name = user.user_name or user.email
    user.normalized_user_name = normalize(user.user_name)
    user.normalized_email = normalize(user.email)
    user.security_stamp = new_id()
    if user.access_failed_count is None:
        user.access_failed_count = 0
    if user.lockout_enabled is None:
        user.lockout_enabled = True

    errors = validate_password(password) + await _uniqueness_errors(db, user)
    if errors:
        return IdentityResult.failed(*errors)

    user.password_hash = get_password_hash(password)
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        return IdentityResult.failed(IdentityError("DuplicateEmail", f"Email '{user.email}' is already taken."))

    logger.info("Created user %s (%s)", user.id, user.email)
    return IdentityResult.success()


async def update_user(db: AsyncSession, user: User) -> IdentityResult:
    user.normalized_user_name = normalize(user.user_name)
    user.normalized_email = normalize(user.email)
    errors = await _uniqueness_errors(db, user)
    if errors:
        return IdentityResult.failed(*errors)
    try:
        await db.commit()
    except StaleDataError:
        await db.rollback()
        return IdentityResult.failed(concurrency_failure())
    return IdentityResult.success()


async def set_email(db: AsyncSession, user: User, email: str) -> IdentityResult:
    """Change email and user name together; both stay unique.

    The new address is unconfirmed and existing cookie sessions end.
    """
    user.email = email
    user.user_name = email
    user.email_confirmed = False
    user.security_stamp = new_id()
    return await update_user(db, user)


async def delete_user(db: AsyncSession, user: User) -> IdentityResult:
    await db.delete(user)
    try:
        await db.commit()
    except StaleDataError:
        await db.rollback()
        return IdentityResult.failed(concurrency_failure())
    except IntegrityError:
        await db.rollback()
        return IdentityResult.failed(IdentityError("DeleteFailed", "The user is still referenced by other records."))
    logger.info("Deleted user %s", user.id)
    return IdentityResult.success()


# ── Lockout ─────────────────────────────────────────────

def is_locked_out(user: User) -> bool:
    if not user.lockout_enabled:
        return False
    end = as_utc(user.lockout_end)
    return end is not None and end > utcnow()


async def set_lockout_end(db: AsyncSession, user: User, lockout_end: datetime | None) -> IdentityResult:
    if not user.lockout_enabled:
        return IdentityResult.failed(IdentityError("LockoutNotEnabled", "Lockout is not enabled for this user."))
    user.lockout_end = lockout_end
    if lockout_end is None:
        user.access_failed_count = 0
    elif as_utc(lockout_end) > utcnow():
        # Locking ends existing cookie sessions
        user.security_stamp = new_id()
    try:
        await db.commit()
    except StaleDataError:
        await db.rollback()
        return IdentityResult.failed(concurrency_failure())
    return IdentityResult.success()


async def access_failed(db: AsyncSession, user: User) -> None:
    user.access_failed_count = (user.access_failed_count or 0) + 1
    if user.lockout_enabled and user.access_failed_count >= settings.LOCKOUT_MAX_FAILED_ACCESS_ATTEMPTS:
        user.lockout_end = utcnow() + timedelta(minutes=settings.LOCKOUT_MINUTES)
        user.access_failed_count = 0
        logger.warning("User %s locked out after repeated failed sign-ins", user.id)
    await db.commit()


async def check_password_sign_in(
    db: AsyncSession, user: User, password: str, lockout_on_failure: bool = True
) -> SignInResult:
    if settings.REQUIRE_CONFIRMED_ACCOUNT and not user.email_confirmed:
        return SignInResult.NOT_ALLOWED
    if is_locked_out(user):
        return SignInResult.LOCKED_OUT

    if verify_password(password, user.password_hash):
        if user.access_failed_count:
            user.access_failed_count = 0
            await db.commit()
        return SignInResult.SUCCEEDED

    if lockout_on_failure:
        await access_failed(db, user)
        if is_locked_out(user):
            return SignInResult.LOCKED_OUT
    return SignInResult.FAILED


# ── Roles ───────────────────────────────────────────────

async def ensure_roles(db: AsyncSession, names) -> None:
    result = await db.execute(select(Role.normalized_name))
    existing = set(result.scalars().all())
    added = False
    for name in names:
        if normalize(name) not in existing:
            db.add(Role(name=name, normalized_name=normalize(name)))
            added = True
    if added:
        await db.commit()


async def get_all_roles(db: AsyncSession) -> list[Role]:
    result = await db.execute(select(Role).order_by(Role.name))
    return list(result.scalars().all())


async def find_role(db: AsyncSession, name: str) -> Role | None:
    if not name:
        return None
    result = await db.execute(select(Role).filter(Role.normalized_name == normalize(name)))
    return result.scalars().first()


async def role_exists(db: AsyncSession, name: str) -> bool:
    return await find_role(db, name) is not None


async def get_roles(db: AsyncSession, user_id: str) -> list[str]:
    result = await db.execute(
        select(Role.name)
        .join(user_roles, user_roles.c.role_id == Role.id)
        .filter(user_roles.c.user_id == user_id)
        .order_by(Role.name)
    )
    return list(result.scalars().all())


async def get_roles_for_users(db: AsyncSession, user_ids) -> dict[str, list[str]]:
    ids = list(user_ids)
    roles: dict[str, list[str]] = {user_id: [] for user_id in ids}
    if not ids:
        return roles
    result = await db.execute(
        select(user_roles.c.user_id, Role.name)
        .join(Role, Role.id == user_roles.c.role_id)
        .filter(user_roles.c.user_id.in_(ids))
        .order_by(Role.name)
    )
    for user_id, role_name in result.all():
        roles[user_id].append(role_name)
    return roles


async def add_to_roles(db: AsyncSession, user: User, role_names) -> IdentityResult:
    current = {normalize(r) for r in await get_roles(db, user.id)}
    errors = []
    role_ids = []
    for name in role_names:
        role = await find_role(db, name)
        if role is None:
            errors.append(IdentityError("InvalidRoleName", f"Role {name} does not exist."))
        elif role.normalized_name in current:
            errors.append(IdentityError("UserAlreadyInRole", f"User already in role '{name}'."))
        else:
            role_ids.append(role.id)
            current.add(role.normalized_name)
    if errors:
        return IdentityResult.failed(*errors)

    for role_id in role_ids:
        await db.execute(insert(user_roles).values(user_id=user.id, role_id=role_id))
    if role_ids:
        user.security_stamp = new_id()
    try:
        await db.commit()
    except StaleDataError:
        await db.rollback()
        return IdentityResult.failed(concurrency_failure())
    return IdentityResult.success()


async def remove_from_roles(db: AsyncSession, user: User, role_names) -> IdentityResult:
    current = {normalize(r) for r in await get_roles(db, user.id)}
    errors = []
    role_ids = []
    for name in role_names:
        role = await find_role(db, name)
        if role is None or role.normalized_name not in current:
            errors.append(IdentityError("UserNotInRole", f"User is not in role '{name}'."))
        else:
            role_ids.append(role.id)
    if errors:
        return IdentityResult.failed(*errors)

    if role_ids:
        await db.execute(
            delete(user_roles).where(user_roles.c.user_id == user.id, user_roles.c.role_id.in_(role_ids))
        )
        user.security_stamp = new_id()
    try:
        await db.commit()
    except StaleDataError:
        await db.rollback()
        return IdentityResult.failed(concurrency_failure())
    return IdentityResult.success()


def diff_roles(current, selected) -> tuple[list[str], list[str]]:
    """Return ``(to_add, to_remove)`` turning ``current`` into ``selected``."""
    current_set = set(current)
    selected_set = set(selected)
    to_add = sorted(selected_set - current_set)
    to_remove = sorted(current_set - selected_set)
    return to_add, to_remove


@dataclass
class RoleSyncResult:
    removed: IdentityResult
    added: IdentityResult

    @property
    def succeeded(self) -> bool:
        return self.removed.succeeded and self.added.succeeded


async def sync_roles(db: AsyncSession, user: User, selected) -> RoleSyncResult:
    current = await get_roles(db, user.id)
    to_add, to_remove = diff_roles(current, selected)

    removed = IdentityResult.success()
    if to_remove:
        removed = await remove_from_roles(db, user, to_remove)
        if not removed.succeeded:
            logger.warning("Failed to remove roles %s from user %s", ",".join(to_remove), user.id)
            return RoleSyncResult(removed, IdentityResult.success())

    added = IdentityResult.success()
    if to_add:
        added = await add_to_roles(db, user, to_add)
        if not added.succeeded:
            logger.warning("Failed to add roles %s to user %s", ",".join(to_add), user.id)

    return RoleSyncResult(removed, added)
