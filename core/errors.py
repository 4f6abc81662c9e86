"""
TaskHub Error Taxonomy.

Domain exceptions raised by repositories and services. The API layer maps
each class to an HTTP status in api/errors.py; nothing below the router
layer knows about HTTP.

- NotFound: referenced entity does not exist (404)
- ValidationError: missing field, enum out of range, malformed id (400)
- Conflict: duplicate membership, e.g. participant already present (400)
- TransactionAborted: a multi-write unit was rolled back (500)
- Unauthorized: no caller identity on the request (401)
"""
from __future__ import annotations


class TaskHubError(Exception):
    """Base class. `message` is safe to show to API callers."""

    status_code: int = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
        self.message = message


class NotFound(TaskHubError):
    status_code = 404

    @classmethod
    def of(cls, kind: str) -> "NotFound":
        """NotFound.of("Task") -> NotFound("Task not found")."""
        return cls(f"{kind} not found")


class ValidationError(TaskHubError):
    status_code = 400


class Conflict(TaskHubError):
    status_code = 400


class TransactionAborted(TaskHubError):
    status_code = 500


class Unauthorized(TaskHubError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)
