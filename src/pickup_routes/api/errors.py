"""Translate routing errors into HTTP responses."""
from fastapi import HTTPException
from loguru import logger

from ..models.errors import (
    ConstraintViolation,
    DependencyUnavailable,
    IncompletePickups,
    InvalidState,
    NotFound,
    SessionConflict,
)


def to_http_exception(error: Exception) -> HTTPException:
    if isinstance(error, (ConstraintViolation, ValueError)):
        return HTTPException(status_code=422, detail={
            "error": "constraint_violation",
            "message": str(error),
            "field": getattr(error, "field", None),
        })
    if isinstance(error, NotFound):
        return HTTPException(status_code=404, detail={"error": "not_found", "message": str(error)})
    if isinstance(error, IncompletePickups):
        return HTTPException(status_code=409, detail={
            "error": "incomplete_pickups",
            "message": str(error),
            "student_ids": error.student_ids,
        })
    if isinstance(error, SessionConflict):
        return HTTPException(status_code=409, detail={
            "error": "session_conflict",
            "message": str(error),
            "existing_session_id": error.existing_session_id,
        })
    if isinstance(error, InvalidState):
        return HTTPException(status_code=409, detail={
            "error": "invalid_state",
            "message": str(error),
            "status": error.status,
        })
    if isinstance(error, DependencyUnavailable):
        return HTTPException(status_code=503, detail={
            "error": "dependency_unavailable",
            "message": str(error),
            "dependency": error.dependency,
            "retryable": error.retryable,
        })

    logger.error(f"Unhandled error: {error}")
    return HTTPException(status_code=500, detail={"error": "internal_error", "message": str(error)})
