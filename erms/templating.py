from datetime import timedelta
from pathlib import Path

from fastapi import Request
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates

from erms.utils.security import create_cookie_token, decode_cookie_token

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))

FLASH_COOKIE = "erms_flash"


def set_flash(response, message: str, category: str = "success") -> None:
    token = create_cookie_token(
        {"typ": "flash", "message": message, "category": category}, expires_delta=timedelta(minutes=5)
    )
    response.set_cookie(FLASH_COOKIE, token, httponly=True, samesite="lax")


def pop_flash(request: Request) -> dict | None:
    token = request.cookies.get(FLASH_COOKIE)
    if not token:
        return None
    payload = decode_cookie_token(token)
    if not payload or payload.get("typ") != "flash":
        return None
    return {"message": payload.get("message", ""), "category": payload.get("category", "success")}


def render(request: Request, template: str, status_code: int = 200, principal=None, **context):
    flash = pop_flash(request)
    context.update({"flash": flash, "principal": principal})
    response = templates.TemplateResponse(request, template, context, status_code=status_code)
    if request.cookies.get(FLASH_COOKIE):
        response.delete_cookie(FLASH_COOKIE)
    return response


def redirect(url: str, message: str | None = None, category: str = "success", status_code: int = 303) -> RedirectResponse:
    response = RedirectResponse(url, status_code=status_code)
    if message:
        set_flash(response, message, category)
    return response
