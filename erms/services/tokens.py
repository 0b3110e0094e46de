import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from jose import JWTError, jwt

from erms.config import settings
from erms.exceptions import TokenConfigurationError
from erms.logging_config import get_logger
from erms.models.user import User
from erms.schemas.auth import TokenResponse

logger = get_logger(__name__)

JWT_ALGORITHM = "HS256"


def _require_configuration() -> tuple[str, str, str]:
    key, issuer, audience = settings.JWT_KEY, settings.JWT_ISSUER, settings.JWT_AUDIENCE
    if not key or not issuer or not audience:
        logger.error("JWT Key, Issuer, or Audience is not configured.")
        raise TokenConfigurationError()
    return key, issuer, audience


def build_claims(user: User, roles: list[str]) -> Dict[str, Any]:
    return {
        "nameid": user.id,
        "sub": user.user_name,
        "email": user.email,
        "jti": str(uuid.uuid4()),
        "firstname": user.first_name,
        "lastname": user.last_name,
        "role": list(roles),
    }


def issue_token(user: User, roles: list[str]) -> TokenResponse:
    """Sign a bearer token for ``user`` carrying one role claim per role."""
    key, issuer, audience = _require_configuration()
    expiration = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRE_HOURS)

    claims = build_claims(user, roles)
    claims.update({"iss": issuer, "aud": audience, "exp": expiration})
    try:
        token = jwt.encode(claims, key, algorithm=JWT_ALGORITHM)
    except JWTError as exc:
        logger.error("Error generating JWT for user %s: %s", user.id, exc)
        raise TokenConfigurationError() from exc

    logger.info("Issued JWT for user %s", user.id)
    return TokenResponse(token=token, expiration=expiration)


def decode_token(token: str) -> Dict[str, Any] | None:
    """Validate signature, issuer, audience and lifetime. Returns None when invalid."""
    if not settings.JWT_KEY:
        return None
    try:
        return jwt.decode(
            token,
            settings.JWT_KEY,
            algorithms=[JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
        )
    except JWTError:
        return None


def roles_from_claims(payload: Dict[str, Any]) -> list[str]:
    roles = payload.get("role") or []
    if isinstance(roles, str):
        return [roles]
    return list(roles)
