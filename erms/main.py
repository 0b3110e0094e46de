import traceback
from contextlib import asynccontextmanager
from urllib.parse import quote

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.exception_handlers import http_exception_handler, request_validation_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from erms.config import settings
from erms.database import AsyncSessionLocal
from erms.exceptions import AccessDeniedRedirect, ERMSError, LoginRequired
from erms.logging_config import get_logger, get_request_id, setup_logging
from erms.middleware import RequestLoggingMiddleware
from erms.permissions import ROLES
from erms.services.identity import ensure_roles
from erms.templating import render

# Imported for their table definitions
from erms.models import department, project, task, user  # noqa: F401

from erms.routers.account import router as account_router
from erms.routers.admin import router as admin_router
from erms.routers.api_auth import router as api_auth_router
from erms.routers.api_employees import router as api_employees_router
from erms.routers.api_projects import router as api_projects_router
from erms.routers.api_tasks import router as api_tasks_router
from erms.routers.dashboard import router as dashboard_router
from erms.routers.departments import router as departments_router
from erms.routers.home import router as home_router
from erms.routers.projects import router as projects_router
from erms.routers.projects_client import router as projects_client_router
from erms.routers.reports import router as reports_router
from erms.routers.tasks import router as tasks_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("Starting ERMS (%s)", settings.ENVIRONMENT)
    try:
        async with AsyncSessionLocal() as db:
            await ensure_roles(db, ROLES)
    except SQLAlchemyError as e:
        logger.error("Could not seed roles, is the schema installed? %s", e)
    yield
    logger.info("ERMS shut down")


app = FastAPI(
    lifespan=lifespan,
    title="ERMS",
    description="Enterprise Resource Management System: departments, employees, projects and tasks",
    version="1.0.0",
)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=settings.CORS_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "Location"],
)


def _is_api(request: Request) -> bool:
    return request.url.path.startswith("/api/")


@app.exception_handler(ERMSError)
async def erms_error_handler(request: Request, exc: ERMSError):
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    if exc.status_code >= 500:
        logger.error("%s: %s", exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    if not _is_api(request):
        return await request_validation_exception_handler(request, exc)
    errors: dict[str, list[str]] = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        errors.setdefault(loc[-1] if loc else "", []).append(err.get("msg", "Invalid value."))
    return JSONResponse(
        status_code=400,
        content={"title": "One or more validation errors occurred.", "status": 400, "errors": errors},
    )


@app.exception_handler(StarletteHTTPException)
async def page_http_error_handler(request: Request, exc: StarletteHTTPException):
    if _is_api(request) or exc.status_code != 404:
        return await http_exception_handler(request, exc)
    return render(request, "home/not_found.html", status_code=404)


@app.exception_handler(LoginRequired)
async def login_required_handler(request: Request, exc: LoginRequired):
    return RedirectResponse(f"/Account/Login?ReturnUrl={quote(exc.return_url)}", status_code=302)


@app.exception_handler(AccessDeniedRedirect)
async def access_denied_handler(request: Request, exc: AccessDeniedRedirect):
    return RedirectResponse(f"/Account/AccessDenied?ReturnUrl={quote(exc.return_url)}", status_code=302)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    if settings.is_development:
        detail = "".join(traceback.format_exception(exc))
    else:
        detail = "An internal server error prevented processing the request."
    return JSONResponse(
        status_code=500,
        media_type="application/problem+json",
        content={
            "status": 500,
            "title": "An unexpected error occurred.",
            "detail": detail,
            "instance": request.url.path,
            "traceId": get_request_id(),
        },
    )


app.include_router(home_router)
app.include_router(account_router)
app.include_router(dashboard_router)
app.include_router(departments_router)
app.include_router(projects_router)
app.include_router(projects_client_router)
app.include_router(tasks_router)
app.include_router(reports_router)
app.include_router(admin_router)
app.include_router(api_auth_router)
app.include_router(api_projects_router)
app.include_router(api_tasks_router)
app.include_router(api_employees_router)
