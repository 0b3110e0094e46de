"""
Smoke check against a running ERMS server (not collected by pytest).

    python tests/live_api_check.py [base_url]

Signs in as the seeded administrator, then walks the project and task
endpoints, creating and deleting its own rows.
"""
import urllib.request
import urllib.error
import json
import os
import sys

BASE_URL = sys.argv[1] if len(sys.argv) > 1 else os.getenv("ERMS_URL", "http://127.0.0.1:8000")
ADMIN_EMAIL = os.getenv("SEED_ADMIN_EMAIL", "admin@example.com")
ADMIN_PASSWORD = os.getenv("SEED_ADMIN_PASSWORD", "Admin@12345")

TOKEN = None


def log(msg, status="INFO"):
    print(f"[{status}] {msg}")


def make_request(method, endpoint, data=None):
    url = f"{BASE_URL}{endpoint}"
    req = urllib.request.Request(url, method=method)
    req.add_header('Content-Type', 'application/json')
    req.add_header('Accept', 'application/json')
    if TOKEN:
        req.add_header('Authorization', f'Bearer {TOKEN}')

    if data:
        req.data = json.dumps(data).encode('utf-8')

    try:
        with urllib.request.urlopen(req) as response:
            status_code = response.getcode()
            body = response.read()
            content_type = response.headers.get('Content-Type', '')

            if body:
                if 'json' in content_type:
                    return status_code, json.loads(body)
                return status_code, body.decode('utf-8', errors='replace')
            return status_code, None
    except urllib.error.HTTPError as e:
        return e.code, e.read().decode('utf-8')
    except urllib.error.URLError as e:
        return 503, str(e.reason)


def run_checks():
    global TOKEN
    failed = False

    # 1. Anonymous calls are challenged
    log("Testing GET /api/ProjectsApi without a token ...")
    status, _ = make_request("GET", "/api/ProjectsApi")
    if status == 401:
        log("Anonymous request rejected", "PASS")
    else:
        log(f"Expected 401, got {status}", "FAIL")
        failed = True

    # 2. Token
    log("Testing POST /api/Auth/token ...")
    status, response = make_request("POST", "/api/Auth/token", {"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    if status != 200:
        log(f"Could not sign in as {ADMIN_EMAIL}: {response}", "FAIL")
        sys.exit(1)
    TOKEN = response["token"]
    log(f"Token issued, expires {response['expiration']}", "PASS")

    # 3. Pick a manager and create a project
    status, employees = make_request("GET", "/api/EmployeesApi")
    if status != 200 or not employees:
        log(f"Failed to list employees: {employees}", "FAIL")
        sys.exit(1)
    manager_id = employees[0]["id"]

    log("Testing POST /api/ProjectsApi ...")
    status, project = make_request("POST", "/api/ProjectsApi", {
        "project_name": "Smoke Check Project",
        "description": "Created by live_api_check.py",
        "start_date": "2026-01-01",
        "manager_id": manager_id,
    })
    if status != 201:
        log(f"Failed to create project: {project}", "FAIL")
        sys.exit(1)
    project_id = project["project_id"]
    log(f"Project created. ID: {project_id}", "PASS")

    # 4. Task lifecycle
    log("Testing POST /api/TasksApi ...")
    status, task = make_request("POST", "/api/TasksApi", {
        "task_name": "Smoke Check Task",
        "due_date": "2026-02-01",
        "priority": "High",
        "project_id": project_id,
        "assignee_id": manager_id,
    })
    if status == 201:
        task_id = task["task_id"]
        log(f"Task created. ID: {task_id}", "PASS")
    else:
        log(f"Failed to create task: {task}", "FAIL")
        sys.exit(1)

    log(f"Testing PATCH /api/TasksApi/{task_id}/status ...")
    status, response = make_request("PATCH", f"/api/TasksApi/{task_id}/status", {"status": "In Progress"})
    if status == 200:
        log("Status updated", "PASS")
    else:
        log(f"Failed to update status: {response}", "FAIL")
        failed = True

    log(f"Testing DELETE /api/ProjectsApi/{project_id} while it has tasks ...")
    status, response = make_request("DELETE", f"/api/ProjectsApi/{project_id}")
    if status == 400:
        log("Delete refused as expected", "PASS")
    else:
        log(f"Expected 400, got {status}: {response}", "FAIL")
        failed = True

    # 5. Read endpoints
    read_endpoints = [
        "/api/ProjectsApi",
        f"/api/ProjectsApi/{project_id}",
        "/api/TasksApi",
        f"/api/TasksApi/{task_id}",
        f"/api/TasksApi/user/{manager_id}",
        f"/api/TasksApi/project/{project_id}",
    ]
    for endpoint in read_endpoints:
        log(f"Testing GET {endpoint} ...")
        status, response = make_request("GET", endpoint)
        if status == 200:
            log(f"Endpoint {endpoint} operational", "PASS")
        else:
            log(f"Endpoint {endpoint} failed: {status}. Response: {response}", "FAIL")
            failed = True

    # 6. Clean up
    for endpoint in (f"/api/TasksApi/{task_id}", f"/api/ProjectsApi/{project_id}"):
        log(f"Testing DELETE {endpoint} ...")
        status, response = make_request("DELETE", endpoint)
        if status == 204:
            log("Deleted", "PASS")
        else:
            log(f"Failed to delete: {response}", "FAIL")
            failed = True

    if failed:
        sys.exit(1)
    else:
        print("\nAll checks passed.")


if __name__ == "__main__":
    run_checks()
