from dataclasses import dataclass, field

import httpx
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from erms.config import settings
from erms.database import get_db as db_session
from erms.exceptions import (
    AccessDeniedRedirect, AuthenticationError, AuthorizationError, LoginRequired, TokenConfigurationError
)
from erms.logging_config import get_logger
from erms.models.user import User
from erms.permissions import is_allowed
from erms.services import identity
from erms.services.tokens import decode_token, issue_token, roles_from_claims
from erms.utils.security import decode_cookie_token

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


class BearerChallenge(AuthenticationError):
    """401 returned to API callers without a usable bearer token."""

    def __init__(self):
        super().__init__("Valid authentication token required.")

    def to_dict(self):
        return {"error": "Unauthorized", "message": self.message}


@dataclass
class Principal:
    user_id: str
    user_name: str | None
    email: str | None
    roles: list[str] = field(default_factory=list)
    scheme: str = "cookie"
    first_name: str = ""
    last_name: str = ""
    user: User | None = None

    def is_in_role(self, role: str) -> bool:
        return role in self.roles

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or (self.email or "")


async def get_db(db: AsyncSession = Depends(db_session)):
    return db


def _return_url(request: Request) -> str:
    url = request.url.path
    if request.url.query:
        url += f"?{request.url.query}"
    return url


# ── Bearer (API) ────────────────────────────────────────

async def get_bearer_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Principal:
    if credentials is None:
        raise BearerChallenge()
    payload = decode_token(credentials.credentials)
    if payload is None or not payload.get("nameid"):
        raise BearerChallenge()
    return Principal(
        user_id=payload["nameid"],
        user_name=payload.get("sub"),
        email=payload.get("email"),
        roles=roles_from_claims(payload),
        scheme="bearer",
        first_name=payload.get("firstname", ""),
        last_name=payload.get("lastname", ""),
    )


def require_api(action: str):
    async def dependency(principal: Principal = Depends(get_bearer_principal)) -> Principal:
        if not is_allowed(action, principal.roles):
            logger.warning("User %s denied %s", principal.user_id, action)
            raise AuthorizationError()
        return principal
    return dependency


# ── Cookie (pages) ──────────────────────────────────────

async def get_cookie_principal(request: Request, db: AsyncSession = Depends(get_db)) -> Principal | None:
    token = request.cookies.get(settings.AUTH_COOKIE_NAME)
    if not token:
        return None
    payload = decode_cookie_token(token)
    if payload is None or payload.get("typ") != "auth":
        return None

    user = await identity.find_by_id(db, payload.get("sub"))
    # A changed security stamp (roles, email, lock) ends existing sessions
    if user is None or user.security_stamp != payload.get("stamp"):
        return None
    if identity.is_locked_out(user):
        return None

    return Principal(
        user_id=user.id,
        user_name=user.user_name,
        email=user.email,
        roles=await identity.get_roles(db, user.id),
        scheme="cookie",
        first_name=user.first_name,
        last_name=user.last_name,
        user=user,
    )


def require_page(action: str):
    async def dependency(
        request: Request, principal: Principal | None = Depends(get_cookie_principal)
    ) -> Principal:
        if principal is None:
            raise LoginRequired(_return_url(request))
        if not is_allowed(action, principal.roles):
            logger.warning("User %s denied %s", principal.user_id, action)
            raise AccessDeniedRedirect(_return_url(request))
        return principal
    return dependency


# ── API client for pages ────────────────────────────────

async def get_api_http_client():
    base_url = settings.api_base_url or "http://127.0.0.1:8000"
    async with httpx.AsyncClient(base_url=base_url, timeout=10.0) as client:
        yield client


def api_token_for(principal: Principal) -> str | None:
    """Bearer token the page layer forwards when calling the API for this user."""
    if principal.user is None:
        return None
    try:
        return issue_token(principal.user, principal.roles).token
    except TokenConfigurationError:
        logger.error("Cannot call the API for user %s: token signing is not configured", principal.user_id)
        return None
