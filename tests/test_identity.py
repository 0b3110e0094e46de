"""
Credential store: password policy, lockout and role membership
"""
from datetime import timedelta

import pytest

from conftest import PASSWORD
from erms.config import settings
from erms.models.user import User
from erms.permissions import ADMIN, EMPLOYEE, MANAGER
from erms.services import identity
from erms.services.identity import SignInResult
from erms.utils.security import get_password_hash, verify_password


def test_password_hash_round_trip():
    hashed = get_password_hash(PASSWORD)
    assert hashed != PASSWORD
    assert verify_password(PASSWORD, hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password(PASSWORD, None)
    assert not verify_password(PASSWORD, "not-a-bcrypt-hash")


@pytest.mark.parametrize("password, code", [
    ("Sh0rt!", "PasswordTooShort"),
    ("NoDigits!!", "PasswordRequiresDigit"),
    ("noupper1!", "PasswordRequiresUpper"),
    ("NOLOWER1!", "PasswordRequiresLower"),
    ("NoSymbol123", "PasswordRequiresNonAlphanumeric"),
])
def test_password_policy(password, code):
    assert code in [e.code for e in identity.validate_password(password)]


def test_password_policy_accepts_strong_password():
    assert identity.validate_password(PASSWORD) == []


def test_diff_roles():
    assert identity.diff_roles([EMPLOYEE], [MANAGER, ADMIN]) == ([ADMIN, MANAGER], [EMPLOYEE])
    assert identity.diff_roles([EMPLOYEE], [EMPLOYEE]) == ([], [])


async def test_create_user_normalizes_and_hashes(db_session, employee_user):
    assert employee_user.normalized_email == employee_user.email.upper()
    assert employee_user.password_hash.startswith("$2")
    assert await identity.find_by_email(db_session, employee_user.email.upper()) is not None


async def test_create_user_rejects_duplicates(db_session, department, employee_user):
    twin = User(
        user_name=employee_user.email.upper(), email=employee_user.email.upper(),
        first_name="Twin", last_name="User", hire_date=employee_user.hire_date,
        department_id=department.department_id,
    )
    result = await identity.create_user(db_session, twin, PASSWORD)
    assert not result.succeeded
    assert {e.code for e in result.errors} == {"DuplicateUserName", "DuplicateEmail"}


async def test_sign_in_results(db_session, employee_user):
    assert await identity.check_password_sign_in(db_session, employee_user, PASSWORD) == SignInResult.SUCCEEDED
    assert await identity.check_password_sign_in(db_session, employee_user, "bad") == SignInResult.FAILED
    assert employee_user.access_failed_count == 1

    # Success resets the failure counter
    await identity.check_password_sign_in(db_session, employee_user, PASSWORD)
    assert employee_user.access_failed_count == 0


async def test_lockout_after_max_failures(db_session, employee_user):
    for _ in range(settings.LOCKOUT_MAX_FAILED_ACCESS_ATTEMPTS - 1):
        assert await identity.check_password_sign_in(db_session, employee_user, "bad") == SignInResult.FAILED
    assert await identity.check_password_sign_in(db_session, employee_user, "bad") == SignInResult.LOCKED_OUT
    assert identity.is_locked_out(employee_user)

    remaining = identity.as_utc(employee_user.lockout_end) - identity.utcnow()
    assert timedelta(minutes=settings.LOCKOUT_MINUTES - 1) < remaining <= timedelta(minutes=settings.LOCKOUT_MINUTES)


async def test_lock_rotates_stamp_and_unlock_resets_counter(db_session, employee_user):
    stamp = employee_user.security_stamp
    await identity.check_password_sign_in(db_session, employee_user, "bad")
    assert employee_user.access_failed_count == 1

    assert (await identity.set_lockout_end(db_session, employee_user, identity.LOCKED_FOREVER)).succeeded
    assert identity.is_locked_out(employee_user)
    assert employee_user.security_stamp != stamp

    assert (await identity.set_lockout_end(db_session, employee_user, None)).succeeded
    assert not identity.is_locked_out(employee_user)
    assert employee_user.access_failed_count == 0


async def test_lockout_requires_lockout_enabled(db_session, make_user):
    user = await make_user(lockout_enabled=False)
    result = await identity.set_lockout_end(db_session, user, identity.LOCKED_FOREVER)
    assert not result.succeeded
    assert result.errors[0].code == "LockoutNotEnabled"
    assert not identity.is_locked_out(user)


async def test_unconfirmed_account_not_allowed(db_session, make_user, monkeypatch):
    user = await make_user()
    user.email_confirmed = False
    await db_session.commit()
    monkeypatch.setattr(settings, "REQUIRE_CONFIRMED_ACCOUNT", True)
    assert await identity.check_password_sign_in(db_session, user, PASSWORD) == SignInResult.NOT_ALLOWED


async def test_ensure_roles_is_idempotent(db_session):
    await identity.ensure_roles(db_session, [ADMIN, MANAGER, EMPLOYEE])
    assert [r.name for r in await identity.get_all_roles(db_session)] == [ADMIN, EMPLOYEE, MANAGER]


async def test_role_membership(db_session, employee_user):
    stamp = employee_user.security_stamp

    result = await identity.add_to_roles(db_session, employee_user, [EMPLOYEE])
    assert not result.succeeded
    assert result.errors[0].code == "UserAlreadyInRole"

    result = await identity.add_to_roles(db_session, employee_user, ["Astronaut"])
    assert result.errors[0].code == "InvalidRoleName"

    result = await identity.remove_from_roles(db_session, employee_user, [MANAGER])
    assert result.errors[0].code == "UserNotInRole"

    assert employee_user.security_stamp == stamp

    sync = await identity.sync_roles(db_session, employee_user, [MANAGER])
    assert sync.succeeded
    assert await identity.get_roles(db_session, employee_user.id) == [MANAGER]
    assert employee_user.security_stamp != stamp


async def test_roles_for_users(db_session, admin_user, employee_user):
    roles = await identity.get_roles_for_users(db_session, [admin_user.id, employee_user.id, "nobody"])
    assert roles == {admin_user.id: [ADMIN], employee_user.id: [EMPLOYEE], "nobody": []}
    assert await identity.get_roles_for_users(db_session, []) == {}
