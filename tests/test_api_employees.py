"""
Employees REST API
"""
from sqlalchemy.future import select

from conftest import login_cookie
from erms.models.user import User
from erms.services import identity


def _payload(department, **overrides):
    payload = {
        "first_name": "Grace",
        "last_name": "Hopper",
        "email": "grace.hopper@example.com",
        "phone_number": "555-0100",
        "hire_date": "2021-03-01",
        "department_id": department.department_id,
        "password": "Cobol#1959",
        "roles": ["Employee"],
    }
    payload.update(overrides)
    return payload


async def test_list_employees_includes_roles(client, employee_headers, admin_user, employee_user):
    response = await client.get("/api/EmployeesApi", headers=employee_headers)
    assert response.status_code == 200
    by_id = {e["id"]: e for e in response.json()}
    assert by_id[admin_user.id]["roles"] == ["Admin"]
    assert by_id[employee_user.id]["department_name"] == "Engineering"
    assert "password_hash" not in by_id[employee_user.id]


async def test_get_missing_employee(client, employee_headers):
    response = await client.get("/api/EmployeesApi/nobody", headers=employee_headers)
    assert response.status_code == 404
    assert response.json()["detail"] == "Employee with ID nobody not found."


async def test_create_employee(client, admin_headers, department, session_factory):
    response = await client.post("/api/EmployeesApi", json=_payload(department), headers=admin_headers)
    assert response.status_code == 201
    body = response.json()
    assert response.headers["Location"] == f"/api/EmployeesApi/{body['id']}"
    assert body["email"] == "grace.hopper@example.com"
    assert body["roles"] == ["Employee"]

    async with session_factory() as s:
        user = await identity.find_by_email(s, "GRACE.HOPPER@example.com")
        assert user is not None
        assert user.email_confirmed is True


async def test_create_employee_requires_admin(client, manager_headers, department):
    response = await client.post("/api/EmployeesApi", json=_payload(department), headers=manager_headers)
    assert response.status_code == 403


async def test_create_employee_unknown_department_and_role(client, admin_headers, department):
    response = await client.post(
        "/api/EmployeesApi", json=_payload(department, department_id=999), headers=admin_headers
    )
    assert response.status_code == 400
    assert response.json()["errors"] == {"department_id": ["Department with ID 999 does not exist."]}

    response = await client.post(
        "/api/EmployeesApi", json=_payload(department, roles=["Janitor"]), headers=admin_headers
    )
    assert response.status_code == 400
    assert response.json()["errors"] == {"roles": ["Role 'Janitor' does not exist."]}


async def test_create_employee_weak_password(client, admin_headers, department):
    response = await client.post(
        "/api/EmployeesApi", json=_payload(department, password="short"), headers=admin_headers
    )
    assert response.status_code == 400
    messages = response.json()["errors"][""]
    assert "Passwords must be at least 8 characters." in messages
    assert "Passwords must have at least one digit ('0'-'9')." in messages


async def test_create_employee_duplicate_email(client, admin_headers, department, employee_user):
    response = await client.post(
        "/api/EmployeesApi", json=_payload(department, email=employee_user.email), headers=admin_headers
    )
    assert response.status_code == 400
    assert any("is already taken" in m for m in response.json()["errors"][""])


async def test_update_employee_changes_roles(client, admin_headers, department, employee_user, session_factory):
    payload = _payload(department, email="eve@example.com", first_name="Evelyn", roles=["Manager"])
    payload.pop("password")
    response = await client.put(f"/api/EmployeesApi/{employee_user.id}", json=payload, headers=admin_headers)
    assert response.status_code == 204

    async with session_factory() as s:
        stored = await identity.find_by_id(s, employee_user.id)
        assert stored.first_name == "Evelyn"
        assert stored.user_name == "eve@example.com"
        assert await identity.get_roles(s, employee_user.id) == ["Manager"]


async def test_update_employee_email_in_use(client, admin_headers, department, employee_user, manager_user):
    payload = _payload(department, email=manager_user.email)
    payload.pop("password")
    response = await client.put(f"/api/EmployeesApi/{employee_user.id}", json=payload, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["errors"] == {"email": ["Email address is already in use."]}


async def test_update_employee_email_change_ends_cookie_session(
    client, admin_headers, department, employee_user, session_factory
):
    login_cookie(client, employee_user)
    assert (await client.get("/Task/MyTasks")).status_code == 200

    payload = _payload(department, email="new.address@example.com")
    payload.pop("password")
    payload.pop("roles")
    response = await client.put(f"/api/EmployeesApi/{employee_user.id}", json=payload, headers=admin_headers)
    assert response.status_code == 204

    async with session_factory() as s:
        stored = await identity.find_by_id(s, employee_user.id)
        assert stored.email == "new.address@example.com"
        assert stored.user_name == "new.address@example.com"
        assert stored.email_confirmed is False
        assert stored.security_stamp != employee_user.security_stamp
        assert await identity.get_roles(s, employee_user.id) == ["Employee"]

    assert (await client.get("/Task/MyTasks")).status_code == 302


async def test_delete_employee_with_tasks_refused(
    client, admin_headers, manager_user, employee_user, make_project, make_task
):
    project = await make_project(manager_user)
    await make_task(project, employee_user)

    response = await client.delete(f"/api/EmployeesApi/{manager_user.id}", headers=admin_headers)
    assert response.status_code == 400
    assert "Managing one or more projects." in response.json()["detail"]

    response = await client.delete(f"/api/EmployeesApi/{employee_user.id}", headers=admin_headers)
    assert response.status_code == 400
    assert "Assigned one or more tasks." in response.json()["detail"]


async def test_delete_employee(client, admin_headers, employee_user, session_factory):
    response = await client.delete(f"/api/EmployeesApi/{employee_user.id}", headers=admin_headers)
    assert response.status_code == 204

    async with session_factory() as s:
        result = await s.execute(select(User).filter(User.id == employee_user.id))
        assert result.scalars().first() is None
