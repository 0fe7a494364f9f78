"""Error taxonomy for the issue analytics engine, plus user-facing messages."""

from __future__ import annotations


class IssueAnalyticsError(Exception):
    """Base class for every error this package raises."""


class CollaboratorUnavailable(IssueAnalyticsError):
    """A store query or write failed. The current operation is aborted."""

    def __init__(self, operation: str, cause: BaseException | None = None):
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{operation} failed{detail}")


class ConflictError(IssueAnalyticsError):
    """An identical ignore entry already exists."""

    def __init__(self, category: str, issue_type: str, scope_machine: str | None = None):
        self.category = category
        self.issue_type = issue_type
        self.scope_machine = scope_machine
        scope = scope_machine or "all machines"
        super().__init__(
            f"{issue_type.capitalize()} category '{category}' is already ignored for {scope}"
        )


class InvalidInput(IssueAnalyticsError, ValueError):
    """Rejected before any query is issued."""


# ---------------------------------------------------------------------------
# User-facing messages
# ---------------------------------------------------------------------------
_FRIENDLY = [
    (("connection", "network", "timeout", "fetch"), {
        "title": "Connection Error",
        "message": "Unable to connect to the database. Please check your connection and try again.",
        "type": "error",
    }),
    (("unauthorized", "authentication", "permission", "access denied"), {
        "title": "Authentication Error",
        "message": "You don't have permission to perform this action. Please contact your administrator.",
        "type": "error",
    }),
    (("duplicate", "already exists", "already ignored", "unique constraint", "conflict"), {
        "title": "Duplicate Entry",
        "message": "This record already exists.",
        "type": "warning",
    }),
    (("validation", "invalid", "required", "format"), {
        "title": "Validation Error",
        "message": "The data you provided is invalid. Please check your input and try again.",
        "type": "warning",
    }),
    (("not found", "does not exist", "404"), {
        "title": "Not Found",
        "message": "The requested data could not be found. It may have been deleted or doesn't exist.",
        "type": "info",
    }),
    (("database", "sql", "query", "supabase", "failed"), {
        "title": "Database Error",
        "message": "An error occurred while accessing the database. Please try again later.",
        "type": "error",
    }),
]


def friendly_error(exc):
    """Map an exception to a {title, message, type} dict for display."""
    if isinstance(exc, ConflictError):
        return {"title": "Already Ignored", "message": str(exc), "type": "warning"}
    if isinstance(exc, InvalidInput):
        return {"title": "Validation Error", "message": str(exc), "type": "warning"}

    text = str(exc).lower()
    for keywords, payload in _FRIENDLY:
        if any(kw in text for kw in keywords):
            return dict(payload)
    return {
        "title": "An Error Occurred",
        "message": "Something went wrong. Please try again. If the problem persists, contact support.",
        "type": "error",
    }
