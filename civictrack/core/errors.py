# File: civictrack/core/errors.py
# Project: civictrack

"""Typed failures raised by the issue engine.

Every error carries a stable ``code`` the HTTP layer returns verbatim, an HTTP
status, and a ``context`` dict with whatever the caller needs to act on it
(current status, allowed transitions, offending ids).
"""

from typing import Any, Dict, Iterable, Optional


class IssueError(Exception):
    code = "ERROR"
    status_code = 400

    def __init__(self, message: str, code: Optional[str] = None, **context: Any):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "detail": self.message, **self.context}


class ValidationFailed(IssueError):
    code = "VALIDATION"
    status_code = 400


class OutsideJurisdiction(IssueError):
    code = "OUTSIDE_JURISDICTION"
    status_code = 422


class InvalidTransition(IssueError):
    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, current: Any, requested: Any, allowed: Iterable[Any]):
        current_value = getattr(current, "value", current)
        requested_value = getattr(requested, "value", requested)
        allowed_values = sorted(getattr(s, "value", s) for s in allowed)
        super().__init__(
            f"Cannot move issue from {current_value} to {requested_value}",
            current_status=current_value,
            requested_status=requested_value,
            allowed=allowed_values,
        )


class InvalidAssignee(IssueError):
    code = "INVALID_ASSIGNEE"
    status_code = 400


class NotFound(IssueError):
    code = "NOT_FOUND"
    status_code = 404


class PreconditionFailed(IssueError):
    code = "PRECONDITION_FAILED"
    status_code = 412


class PermissionDenied(IssueError):
    code = "FORBIDDEN"
    status_code = 403
