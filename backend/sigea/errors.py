"""Domain error taxonomy.

Services raise these instead of HTTP exceptions; `main.py` registers a
single handler that turns any `DomainError` into a JSON error response
using the class' `status_code`.
"""

from typing import Optional


class DomainError(Exception):
    status_code = 500
    error = "operation failed"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(DomainError):
    """The target entity (or a referenced one looked up directly) is absent."""
    status_code = 404
    error = "not found"


class BadReference(DomainError):
    """A foreign id supplied in a request does not resolve."""
    status_code = 400
    error = "bad reference"


class InvalidRange(DomainError):
    status_code = 400
    error = "invalid time range"


class ValidationFailure(DomainError, ValueError):
    status_code = 400
    error = "validation error"


class ScheduleConflict(DomainError):
    """The teacher already has an overlapping assignment.

    `assignment` is the existing `TeachingAssignment` that collides.
    """
    status_code = 409
    error = "schedule conflict"

    def __init__(self, message: str, assignment: Optional[object] = None):
        super().__init__(message)
        self.assignment = assignment
