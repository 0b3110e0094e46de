from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from erms.dependencies import Principal, get_db, require_page
from erms.services.dashboard import build_dashboard
from erms.templating import render

router = APIRouter(prefix="/Dashboard", tags=["dashboard"], include_in_schema=False)


@router.get("")
@router.get("/Index")
async def index(
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("dashboard.view")),
):
    model = await build_dashboard(db, principal.user_id, principal.roles)
    return render(request, "dashboard/index.html", principal=principal, model=model)
