from fastapi import APIRouter, Depends, Request

from erms.dependencies import Principal, get_cookie_principal
from erms.logging_config import get_request_id
from erms.templating import render

router = APIRouter(tags=["home"], include_in_schema=False)


@router.get("/")
@router.get("/Home/Index")
async def index(request: Request, principal: Principal | None = Depends(get_cookie_principal)):
    return render(request, "home/index.html", principal=principal)


@router.get("/Home/Privacy")
async def privacy(request: Request, principal: Principal | None = Depends(get_cookie_principal)):
    return render(request, "home/privacy.html", principal=principal)


@router.get("/Home/Error")
async def error(request: Request, principal: Principal | None = Depends(get_cookie_principal)):
    return render(request, "home/error.html", principal=principal, request_id=get_request_id())
