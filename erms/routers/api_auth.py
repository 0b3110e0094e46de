from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from erms.dependencies import Principal, get_cookie_principal, get_db
from erms.logging_config import get_logger
from erms.schemas.auth import LoginRequest, TokenResponse
from erms.services import identity
from erms.services.identity import SignInResult
from erms.services.tokens import issue_token

logger = get_logger(__name__)

router = APIRouter(prefix="/api/Auth", tags=["auth"])


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


@router.post("/token", response_model=TokenResponse)
async def login_for_access_token(login: LoginRequest, db: AsyncSession = Depends(get_db)):
    user = await identity.find_by_email(db, login.email)
    if not user:
        logger.warning("Token request for unknown email %s", login.email)
        raise _unauthorized("Invalid credentials.")

    result = await identity.check_password_sign_in(db, user, login.password, lockout_on_failure=True)
    if result == SignInResult.LOCKED_OUT:
        logger.warning("Token request for locked out user %s", user.id)
        raise _unauthorized("Account locked out.")
    if result == SignInResult.NOT_ALLOWED:
        raise _unauthorized("Login not allowed.")
    if result != SignInResult.SUCCEEDED:
        raise _unauthorized("Invalid credentials.")

    roles = await identity.get_roles(db, user.id)
    return issue_token(user, roles)


@router.get("/get-my-token", response_model=TokenResponse)
async def get_my_token(principal: Principal | None = Depends(get_cookie_principal)):
    if principal is None or principal.user is None:
        raise _unauthorized("User session not found or invalid.")
    return issue_token(principal.user, principal.roles)
