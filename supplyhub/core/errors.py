"""
Error types shared by every domain operation.

ServiceError carries one of a closed set of codes; the API layer maps the
code to an HTTP status. Verification, validation and export failures are
plain exceptions with a human-readable message.
"""

UNAUTHENTICATED = "UNAUTHENTICATED"
FORBIDDEN = "FORBIDDEN"
NOT_FOUND = "NOT_FOUND"
EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"

HTTP_STATUS = {
    UNAUTHENTICATED: 401,
    FORBIDDEN: 403,
    NOT_FOUND: 404,
    EXTERNAL_SERVICE_ERROR: 502,
}


class ServiceError(Exception):
    """Structured failure surfaced to the caller as {code, message}."""

    def __init__(self, code: str, message: str):
        if code not in HTTP_STATUS:
            raise ValueError(f"Unknown error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message

    @property
    def status(self) -> int:
        return HTTP_STATUS[self.code]

    def to_dict(self) -> dict:
        return {"ok": False, "error": self.message, "code": self.code}


class VerificationError(Exception):
    """Email verification code rejected (missing, expired, wrong or used)."""


class ValidationError(ValueError):
    """Caller supplied an argument that breaks an invariant."""


def unauthenticated(message: str = "User not logged in") -> ServiceError:
    return ServiceError(UNAUTHENTICATED, message)


def forbidden(message: str) -> ServiceError:
    return ServiceError(FORBIDDEN, message)


def not_found(message: str) -> ServiceError:
    return ServiceError(NOT_FOUND, message)


def external(message: str) -> ServiceError:
    return ServiceError(EXTERNAL_SERVICE_ERROR, message)
