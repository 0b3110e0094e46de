from datetime import timedelta

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from erms.config import settings
from erms.dependencies import Principal, get_cookie_principal, get_db
from erms.logging_config import get_logger
from erms.models.user import User
from erms.permissions import EMPLOYEE
from erms.schemas.views import FormState, LoginViewModel, RegisterViewModel, select_options
from erms.services import identity
from erms.services.departments import department_exists, list_departments
from erms.services.identity import SignInResult
from erms.templating import redirect, render
from erms.utils.forms import is_local_url, read_form, validate_form
from erms.utils.security import create_cookie_token

logger = get_logger(__name__)

router = APIRouter(prefix="/Account", tags=["account"], include_in_schema=False)


def sign_in(response, user: User, persistent: bool = False) -> None:
    lifetime = timedelta(minutes=settings.COOKIE_EXPIRE_MINUTES)
    token = create_cookie_token(
        {"typ": "auth", "sub": user.id, "stamp": user.security_stamp}, expires_delta=lifetime
    )
    response.set_cookie(
        settings.AUTH_COOKIE_NAME,
        token,
        max_age=int(lifetime.total_seconds()) if persistent else None,
        httponly=True,
        samesite="lax",
    )


async def _department_options(db: AsyncSession, selected=None):
    departments = await list_departments(db)
    return select_options([(d.department_id, d.department_name) for d in departments], selected)


@router.get("/Login")
async def login_page(request: Request, ReturnUrl: str | None = None):
    return render(request, "account/login.html", form=FormState(), values={}, return_url=ReturnUrl)


@router.post("/Login")
async def login(request: Request, ReturnUrl: str | None = None, db: AsyncSession = Depends(get_db)):
    data = await read_form(request)
    data["remember_me"] = data.get("remember_me") in ("true", "on", "1")
    return_url = data.pop("return_url", None) or ReturnUrl
    model, form = validate_form(LoginViewModel, data)

    if model is not None:
        user = await identity.find_by_email(db, model.email)
        if user is not None:
            result = await identity.check_password_sign_in(db, user, model.password, lockout_on_failure=True)
            if result == SignInResult.SUCCEEDED:
                logger.info("User %s logged in", user.id)
                response = redirect(return_url if is_local_url(return_url) else "/")
                sign_in(response, user, persistent=model.remember_me)
                return response
            if result == SignInResult.LOCKED_OUT:
                logger.warning("User %s account locked out", user.id)
                return redirect("/Account/Lockout")
        form.add("", "Invalid login attempt.")

    data.pop("password", None)
    return render(request, "account/login.html", form=form, values=data, return_url=return_url)


@router.get("/Register")
async def register_page(request: Request, db: AsyncSession = Depends(get_db)):
    return render(
        request, "account/register.html",
        form=FormState(), values={}, departments=await _department_options(db)
    )


@router.post("/Register")
async def register(request: Request, db: AsyncSession = Depends(get_db)):
    data = await read_form(request)
    model, form = validate_form(RegisterViewModel, data)

    if model is not None:
        if not await department_exists(db, model.department_id):
            form.add("department_id", "Selected department does not exist.")
        else:
            user = User(
                user_name=model.email,
                email=model.email,
                first_name=model.first_name,
                last_name=model.last_name,
                hire_date=model.hire_date,
                department_id=model.department_id,
            )
            result = await identity.create_user(db, user, model.password)
            if result.succeeded:
                logger.info("User %s created a new account", user.id)
                role_result = await identity.add_to_roles(db, user, [EMPLOYEE])
                if not role_result.succeeded:
                    logger.warning("Could not assign default role to %s: %s", user.id, role_result.descriptions)
                response = redirect("/")
                sign_in(response, user)
                return response
            for description in result.descriptions:
                form.add("", description)

    data.pop("password", None)
    data.pop("confirm_password", None)
    return render(
        request, "account/register.html",
        form=form, values=data, departments=await _department_options(db, data.get("department_id"))
    )


@router.post("/Logout")
async def logout(principal: Principal | None = Depends(get_cookie_principal)):
    if principal is not None:
        logger.info("User %s logged out", principal.user_id)
    response = redirect("/")
    response.delete_cookie(settings.AUTH_COOKIE_NAME)
    return response


@router.get("/Lockout")
async def lockout(request: Request):
    return render(request, "account/lockout.html")


@router.get("/AccessDenied")
async def access_denied(request: Request, principal: Principal | None = Depends(get_cookie_principal)):
    return render(request, "account/access_denied.html", principal=principal)
