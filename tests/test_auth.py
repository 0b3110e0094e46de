"""
Authentication: bearer tokens for the API and the cookie sign-in pages
"""
from jose import jwt

from conftest import PASSWORD, login_cookie
from erms.config import settings
from erms.services import identity
from erms.services.tokens import JWT_ALGORITHM, decode_token


async def test_token_endpoint_issues_signed_jwt(client, manager_user):
    response = await client.post("/api/Auth/token", json={"email": manager_user.email, "password": PASSWORD})
    assert response.status_code == 200
    body = response.json()
    assert "expiration" in body

    claims = jwt.decode(
        body["token"], settings.JWT_KEY, algorithms=[JWT_ALGORITHM],
        audience=settings.JWT_AUDIENCE, issuer=settings.JWT_ISSUER,
    )
    assert claims["nameid"] == manager_user.id
    assert claims["sub"] == manager_user.user_name
    assert claims["email"] == manager_user.email
    assert claims["firstname"] == "Max"
    assert claims["lastname"] == "Manager"
    assert claims["role"] == ["Manager"]
    assert claims["jti"]


async def test_token_from_endpoint_opens_the_api(client, employee_user):
    response = await client.post("/api/Auth/token", json={"email": employee_user.email, "password": PASSWORD})
    token = response.json()["token"]

    response = await client.get("/api/ProjectsApi", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200


async def test_token_with_wrong_password(client, employee_user):
    response = await client.post("/api/Auth/token", json={"email": employee_user.email, "password": "nope"})
    assert response.status_code == 401
    assert response.json() == {"detail": "Invalid credentials."}
    assert response.headers["WWW-Authenticate"] == "Bearer"


async def test_token_for_unknown_email(client, db_session):
    response = await client.post("/api/Auth/token", json={"email": "ghost@example.com", "password": PASSWORD})
    assert response.status_code == 401
    assert response.json() == {"detail": "Invalid credentials."}


async def test_repeated_failures_lock_the_account(client, employee_user, session_factory):
    for _ in range(settings.LOCKOUT_MAX_FAILED_ACCESS_ATTEMPTS - 1):
        response = await client.post("/api/Auth/token", json={"email": employee_user.email, "password": "bad"})
        assert response.json() == {"detail": "Invalid credentials."}

    response = await client.post("/api/Auth/token", json={"email": employee_user.email, "password": "bad"})
    assert response.json() == {"detail": "Account locked out."}

    # Even the right password is refused while locked
    response = await client.post("/api/Auth/token", json={"email": employee_user.email, "password": PASSWORD})
    assert response.status_code == 401
    assert response.json() == {"detail": "Account locked out."}

    async with session_factory() as s:
        stored = await identity.find_by_id(s, employee_user.id)
        assert identity.is_locked_out(stored)
        assert stored.access_failed_count == 0


async def test_expired_or_foreign_tokens_are_rejected(client, employee_user):
    foreign = jwt.encode(
        {"nameid": employee_user.id, "iss": "http://elsewhere", "aud": settings.JWT_AUDIENCE},
        settings.JWT_KEY, algorithm=JWT_ALGORITHM,
    )
    assert decode_token(foreign) is None

    response = await client.get("/api/ProjectsApi", headers={"Authorization": f"Bearer {foreign}"})
    assert response.status_code == 401


async def test_get_my_token_requires_cookie(client, db_session):
    response = await client.get("/api/Auth/get-my-token")
    assert response.status_code == 401
    assert response.json() == {"detail": "User session not found or invalid."}


async def test_get_my_token_for_signed_in_user(client, admin_user):
    login_cookie(client, admin_user)
    response = await client.get("/api/Auth/get-my-token")
    assert response.status_code == 200
    claims = decode_token(response.json()["token"])
    assert claims["nameid"] == admin_user.id
    assert claims["role"] == ["Admin"]


# ── Cookie sign-in pages ────────────────────────────────

async def test_login_page_sets_cookie_and_redirects(client, employee_user):
    response = await client.post(
        "/Account/Login",
        data={"email": employee_user.email, "password": PASSWORD, "return_url": "/Task/MyTasks"},
    )
    assert response.status_code == 303
    assert response.headers["location"] == "/Task/MyTasks"
    assert settings.AUTH_COOKIE_NAME in response.cookies

    response = await client.get("/Task/MyTasks")
    assert response.status_code == 200
    assert "My Tasks" in response.text


async def test_login_ignores_external_return_url(client, employee_user):
    response = await client.post(
        "/Account/Login",
        data={"email": employee_user.email, "password": PASSWORD, "return_url": "https://evil.example.com/"},
    )
    assert response.status_code == 303
    assert response.headers["location"] == "/"


async def test_login_with_bad_password_redisplays_form(client, employee_user):
    response = await client.post("/Account/Login", data={"email": employee_user.email, "password": "wrong"})
    assert response.status_code == 200
    assert "Invalid login attempt." in response.text
    assert settings.AUTH_COOKIE_NAME not in response.cookies


async def test_login_when_locked_redirects_to_lockout(client, employee_user, session_factory):
    async with session_factory() as s:
        user = await identity.find_by_id(s, employee_user.id)
        assert (await identity.set_lockout_end(s, user, identity.LOCKED_FOREVER)).succeeded

    response = await client.post("/Account/Login", data={"email": employee_user.email, "password": PASSWORD})
    assert response.status_code == 303
    assert response.headers["location"] == "/Account/Lockout"


async def test_register_creates_employee_and_signs_in(client, department, session_factory):
    response = await client.post(
        "/Account/Register",
        data={
            "email": "new.hire@example.com",
            "password": "Welcome#2024",
            "confirm_password": "Welcome#2024",
            "first_name": "New",
            "last_name": "Hire",
            "hire_date": "2024-04-01",
            "department_id": str(department.department_id),
        },
    )
    assert response.status_code == 303
    assert settings.AUTH_COOKIE_NAME in response.cookies

    async with session_factory() as s:
        user = await identity.find_by_email(s, "new.hire@example.com")
        assert await identity.get_roles(s, user.id) == ["Employee"]


async def test_register_password_mismatch(client, department):
    response = await client.post(
        "/Account/Register",
        data={
            "email": "new.hire@example.com",
            "password": "Welcome#2024",
            "confirm_password": "Different#2024",
            "first_name": "New",
            "last_name": "Hire",
            "hire_date": "2024-04-01",
            "department_id": str(department.department_id),
        },
    )
    assert response.status_code == 200
    assert "The password and confirmation password do not match." in response.text


async def test_role_change_ends_cookie_session(client, employee_user, session_factory):
    login_cookie(client, employee_user)
    assert (await client.get("/Task/MyTasks")).status_code == 200

    async with session_factory() as s:
        user = await identity.find_by_id(s, employee_user.id)
        assert (await identity.add_to_roles(s, user, ["Manager"])).succeeded

    response = await client.get("/Task/MyTasks")
    assert response.status_code == 302
    assert response.headers["location"].startswith("/Account/Login?ReturnUrl=")


async def test_lock_ends_cookie_session(client, employee_user, session_factory):
    login_cookie(client, employee_user)
    assert (await client.get("/Task/MyTasks")).status_code == 200

    async with session_factory() as s:
        user = await identity.find_by_id(s, employee_user.id)
        assert (await identity.set_lockout_end(s, user, identity.LOCKED_FOREVER)).succeeded

    response = await client.get("/Task/MyTasks")
    assert response.status_code == 302
    assert response.headers["location"].startswith("/Account/Login?ReturnUrl=")

    response = await client.get("/api/Auth/get-my-token")
    assert response.status_code == 401


async def test_failed_sign_in_lockout_ends_cookie_session(client, employee_user, session_factory):
    login_cookie(client, employee_user)
    assert (await client.get("/Task/MyTasks")).status_code == 200

    async with session_factory() as s:
        user = await identity.find_by_id(s, employee_user.id)
        for _ in range(settings.LOCKOUT_MAX_FAILED_ACCESS_ATTEMPTS):
            await identity.check_password_sign_in(s, user, "wrong-password")
        assert identity.is_locked_out(user)

    assert (await client.get("/Task/MyTasks")).status_code == 302


async def test_logout_clears_cookie(client, employee_user):
    await client.post("/Account/Login", data={"email": employee_user.email, "password": PASSWORD})
    assert (await client.get("/Task/MyTasks")).status_code == 200

    response = await client.post("/Account/Logout")
    assert response.status_code == 303
    assert response.headers["location"] == "/"

    response = await client.get("/Task/MyTasks")
    assert response.status_code == 302
