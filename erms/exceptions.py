"""
Domain exceptions for ERMS.

Services raise these; the API layer turns them into JSON responses via the
handlers registered in ``erms.main`` and the page routers catch them to
redisplay forms.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional


class ERMSError(Exception):
    """Base exception for all ERMS errors"""

    status_code = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message}


class NotFoundError(ERMSError):
    status_code = 404

    def __init__(self, message: str):
        super().__init__(message, code="NOT_FOUND")


class ValidationFailed(ERMSError):
    """Input referenced missing rows or broke a rule; carries per-field messages."""

    status_code = 400
    title = "One or more validation errors occurred."

    def __init__(self, errors: Dict[str, List[str]]):
        self.errors = errors
        first = next((msgs[0] for msgs in errors.values() if msgs), self.title)
        super().__init__(first, code="VALIDATION_FAILED", details={"errors": errors})

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationFailed":
        return cls({field: [message]})

    def to_dict(self) -> Dict[str, Any]:
        return {"title": self.title, "status": self.status_code, "errors": self.errors}


class DependencyError(ERMSError):
    """A delete was refused because other rows still reference the target."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message, code="HAS_DEPENDENCIES")


class ConcurrencyError(ERMSError):
    status_code = 409

    def __init__(self, message: str):
        super().__init__(message, code="CONCURRENCY_CONFLICT")


class AuthenticationError(ERMSError):
    status_code = 401

    def __init__(self, message: str = "Invalid credentials."):
        super().__init__(message, code="AUTH_FAILED")


class AuthorizationError(ERMSError):
    status_code = 403

    def __init__(self, message: str = "You do not have permission to perform this action."):
        super().__init__(message, code="NOT_AUTHORIZED")


class TokenConfigurationError(ERMSError):
    status_code = 500

    def __init__(self, message: str = "Error generating token response."):
        super().__init__(message, code="TOKEN_CONFIGURATION")


@dataclass(frozen=True)
class IdentityError:
    code: str
    description: str


class IdentityOperationError(ERMSError):
    status_code = 400

    def __init__(self, errors: List[IdentityError]):
        self.errors = list(errors)
        super().__init__(
            "; ".join(e.description for e in self.errors) or "Identity operation failed.",
            code="IDENTITY_FAILED",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": ValidationFailed.title,
            "status": self.status_code,
            "errors": {"": [e.description for e in self.errors]},
        }


# Page-flow signals, converted to redirects by the handlers in erms.main

class LoginRequired(Exception):
    def __init__(self, return_url: str = "/"):
        self.return_url = return_url
        super().__init__(return_url)


class AccessDeniedRedirect(Exception):
    def __init__(self, return_url: str = "/"):
        self.return_url = return_url
        super().__init__(return_url)
