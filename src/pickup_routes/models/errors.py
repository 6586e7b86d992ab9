"""Error taxonomy for optimization, session and tracking operations."""
from typing import List, Optional


class PickupRouteError(Exception):
    """Base class for every error raised by the routing core."""


class ConstraintViolation(PickupRouteError):
    """Optimization input rejected before any assignment work."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFound(PickupRouteError):
    """Referenced route, session or student does not exist."""


class InvalidState(PickupRouteError):
    """Operation attempted outside its legal session state."""

    def __init__(self, message: str, status: Optional[str] = None):
        super().__init__(message)
        self.status = status


class SessionConflict(PickupRouteError):
    """A non-terminal session already exists for the route and date."""

    def __init__(self, message: str, existing_session_id: Optional[str] = None):
        super().__init__(message)
        self.existing_session_id = existing_session_id


class IncompletePickups(PickupRouteError):
    """Completion refused while students are still unresolved."""

    def __init__(self, student_ids: List[str]):
        self.student_ids = list(student_ids)
        super().__init__(
            f"{len(self.student_ids)} student(s) still pending: {', '.join(self.student_ids)}"
        )


class DependencyUnavailable(PickupRouteError):
    """A collaborator call failed or timed out; the caller should retry."""

    retryable = True

    def __init__(self, dependency: str, message: str):
        super().__init__(f"{dependency} unavailable: {message}")
        self.dependency = dependency
