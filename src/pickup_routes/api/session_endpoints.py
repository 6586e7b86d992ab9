"""API endpoints for the pickup session lifecycle."""
from typing import Optional

from fastapi import APIRouter, HTTPException
from loguru import logger

from . import dependencies as deps
from .errors import to_http_exception
from .schemas import (
    BeginSessionRequest,
    CancelSessionRequest,
    CompleteSessionRequest,
    PickupUpdate,
    ScheduleSessionRequest,
    StartSessionRequest,
    serialize_pickup,
    serialize_progress,
    serialize_session,
    serialize_stop,
)

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


def _session_with_pickups(session_id: str):
    return {
        **serialize_session(deps.session_service.get(session_id)),
        "pickups": [serialize_pickup(p) for p in deps.session_service.pickups(session_id)],
    }


@router.post("", status_code=201)
def start_session(request: StartSessionRequest):
    """Open an in-progress session for a route and seed one pending pickup per student."""
    try:
        session = deps.session_service.start(
            request.route_id,
            request.driver_id,
            request.service_date,
            start_location=request.start_location.to_coordinate() if request.start_location else None,
        )
        return _session_with_pickups(session.session_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error starting session for route {request.route_id}: {e}")
        raise to_http_exception(e)


@router.post("/schedule", status_code=201)
def schedule_session(request: ScheduleSessionRequest):
    try:
        session = deps.session_service.schedule(request.route_id, request.driver_id, request.service_date)
        return serialize_session(session)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error scheduling session for route {request.route_id}: {e}")
        raise to_http_exception(e)


@router.post("/{session_id}/begin")
def begin_session(session_id: str, request: Optional[BeginSessionRequest] = None):
    try:
        location = request.start_location.to_coordinate() if request and request.start_location else None
        deps.session_service.begin(session_id, start_location=location)
        return _session_with_pickups(session_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error beginning session {session_id}: {e}")
        raise to_http_exception(e)


@router.patch("/{session_id}/pickups/{student_id}")
def update_pickup(session_id: str, student_id: str, update: PickupUpdate):
    """
    Record a pickup outcome for one student.

    - **status**: picked_up, absent, no_show or pending
    - **note**: optional driver note, expected for absent and no_show
    """
    try:
        pickup = deps.session_service.record_pickup(session_id, student_id, update.status, note=update.note)
        return serialize_pickup(pickup)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating pickup for student {student_id} in session {session_id}: {e}")
        raise to_http_exception(e)


@router.post("/{session_id}/complete")
def complete_session(session_id: str, request: Optional[CompleteSessionRequest] = None):
    """
    Close the session.

    Pending students with a same-day absence are marked absent automatically;
    any other pending student blocks completion with a 409 listing their ids.
    """
    try:
        deps.session_service.complete(
            session_id,
            end_location=request.end_location.to_coordinate() if request and request.end_location else None,
            notes=request.notes if request else None,
        )
        return _session_with_pickups(session_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error completing session {session_id}: {e}")
        raise to_http_exception(e)


@router.post("/{session_id}/cancel")
def cancel_session(session_id: str, request: Optional[CancelSessionRequest] = None):
    try:
        session = deps.session_service.cancel(session_id, reason=request.reason if request else None)
        return serialize_session(session)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error cancelling session {session_id}: {e}")
        raise to_http_exception(e)


@router.get("/{session_id}")
def get_session(session_id: str):
    try:
        return _session_with_pickups(session_id)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e)


@router.get("/{session_id}/progress")
def get_session_progress(session_id: str):
    try:
        return serialize_progress(deps.session_service.progress(session_id))
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e)


@router.get("/{session_id}/next-stop")
def get_next_stop(session_id: str):
    """Lowest-order stop that still has an unresolved pickup; null once the route is done."""
    try:
        stop = deps.tracking_service.next_stop(session_id)
        return {
            "session_id": session_id,
            "next_stop": serialize_stop(stop) if stop else None,
            "route_complete": stop is None,
        }
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e)
