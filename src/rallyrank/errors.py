"""
Error taxonomy for ladder operations.

Every failure surfaced to a caller is a LadderError subclass carrying a
machine-stable code, a human-readable message and an HTTP-style status hint.
The web layer turns these into JSON responses; library callers can catch
them directly.

    ValidationError  400  malformed score, bad team shape, conflicting winner
    Unauthorized     401  missing caller identity
    Forbidden        403  caller not allowed to act on this match
    NotFound         404  match or player missing
    Conflict         409  match already confirmed
"""

from typing import Any, Optional


class LadderError(Exception):
    """Base class for all errors raised by ladder operations."""

    status_code: int = 400
    default_code: str = "ladder_error"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code

    def to_dict(self) -> dict[str, Any]:
        """Payload for API responses."""
        return {"code": self.code, "message": self.message}

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(code='{self.code}', status={self.status_code})>"


class ValidationError(LadderError):
    """Input or stored state failed validation."""

    status_code = 400
    default_code = "validation_error"


class Unauthorized(LadderError):
    """No caller identity was supplied."""

    status_code = 401
    default_code = "unauthorized"


class Forbidden(LadderError):
    """Caller is identified but may not perform this action."""

    status_code = 403
    default_code = "forbidden"


class NotFound(LadderError):
    """Referenced match or player does not exist."""

    status_code = 404
    default_code = "not_found"


class Conflict(LadderError):
    """Operation conflicts with the current state (e.g. already confirmed)."""

    status_code = 409
    default_code = "conflict"
