from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from erms.dependencies import Principal, get_db, require_page
from erms.logging_config import get_logger
from erms.models.task import NOT_STARTED, OVERDUE
from erms.schemas.views import EditUserRolesViewModel, FormState, RoleSelection, UserManagementViewModel
from erms.services import identity
from erms.services import procedures
from erms.templating import redirect, render
from erms.utils.forms import read_form

logger = get_logger(__name__)

router = APIRouter(prefix="/Admin", tags=["admin"], include_in_schema=False)


async def _edit_roles_model(db: AsyncSession, user, selected) -> EditUserRolesViewModel:
    roles = await identity.get_all_roles(db)
    return EditUserRolesViewModel(
        user_id=user.id,
        user_name=user.user_name or "",
        email=user.email or "",
        roles=[RoleSelection(role_name=r.name, is_selected=r.name in selected) for r in roles],
    )


async def _load_user_or_404(db: AsyncSession, user_id: str):
    user = await identity.find_by_id(db, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("")
@router.get("/Index")
async def index(request: Request, principal: Principal = Depends(require_page("admin.manage"))):
    return render(request, "admin/index.html", principal=principal)


@router.get("/Users")
async def users(
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("admin.manage")),
):
    users = await identity.list_users(db)
    roles_by_user = await identity.get_roles_for_users(db, [u.id for u in users])
    rows = [
        UserManagementViewModel(
            user_id=u.id,
            email=u.email or "",
            first_name=u.first_name,
            last_name=u.last_name,
            department=u.department.department_name if u.department else "N/A",
            roles=roles_by_user.get(u.id, []),
            is_locked=identity.is_locked_out(u),
        )
        for u in users
    ]
    return render(request, "admin/users.html", principal=principal, users=rows)


@router.get("/EditUserRoles/{user_id}")
async def edit_user_roles_page(
    user_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("admin.manage")),
):
    user = await _load_user_or_404(db, user_id)
    model = await _edit_roles_model(db, user, await identity.get_roles(db, user.id))
    return render(request, "admin/edit_user_roles.html", principal=principal, model=model, form=FormState())


@router.post("/EditUserRoles/{user_id}")
async def edit_user_roles(
    user_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("admin.manage")),
):
    user = await _load_user_or_404(db, user_id)
    data = await read_form(request)
    selected = data.get("selected_roles", [])
    if isinstance(selected, str):
        selected = [selected]

    result = await identity.sync_roles(db, user, selected)
    if result.succeeded:
        logger.info("Admin %s set roles of user %s to %s", principal.user_id, user.id, ",".join(sorted(selected)))
        return redirect("/Admin/Users", f"Roles for user {user.email} updated successfully.")

    form = FormState()
    failed = result.removed if not result.removed.succeeded else result.added
    for description in failed.descriptions:
        form.add("", description)
    form.add("", "Failed to remove existing roles." if failed is result.removed else "Failed to add selected roles.")

    model = await _edit_roles_model(db, user, selected)
    return render(request, "admin/edit_user_roles.html", principal=principal, model=model, form=form)


@router.post("/ToggleUserLock/{user_id}")
async def toggle_user_lock(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("admin.manage")),
):
    user = await _load_user_or_404(db, user_id)
    if identity.is_locked_out(user):
        result = await identity.set_lockout_end(db, user, None)
        success = f"User {user.email} unlocked successfully."
    else:
        result = await identity.set_lockout_end(db, user, identity.LOCKED_FOREVER)
        success = f"User {user.email} locked successfully."

    if result.succeeded:
        logger.info("Admin %s toggled lock for user %s", principal.user_id, user.id)
        return redirect("/Admin/Users", success)

    message = " ".join([f"Error toggling lock status for user {user.email}."] + result.descriptions)
    return redirect("/Admin/Users", message, category="danger")


@router.post("/MarkOverdueTasks")
async def mark_overdue_tasks(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("admin.manage")),
):
    try:
        affected = await procedures.update_task_status_bulk(db, OVERDUE, NOT_STARTED, date.today())
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Error marking overdue tasks: %s", e, exc_info=True)
        return redirect("/Admin/Index", "An error occurred while trying to mark overdue tasks.", category="danger")

    return redirect(
        "/Admin/Index",
        f"{affected} '{NOT_STARTED}' task(s) due on or before today were marked as '{OVERDUE}'.",
    )
