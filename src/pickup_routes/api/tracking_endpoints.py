"""API endpoints for live vehicle tracking."""
from fastapi import APIRouter, BackgroundTasks, HTTPException
from loguru import logger

from . import dependencies as deps
from .errors import to_http_exception
from .schemas import LocationFixIn, serialize_direction, serialize_fix, serialize_ingest

router = APIRouter(prefix="/api/tracking", tags=["tracking"])


@router.post("/{driver_id}/sessions/{session_id}/fixes", status_code=202)
def ingest_fix(driver_id: str, session_id: str, fix: LocationFixIn, background_tasks: BackgroundTasks):
    """
    Append a location fix for a driver's session.

    Fixes for sessions that are not in progress are stored and reported as
    ``ignored``; they are never rejected. Alert delivery runs after the
    response is sent.
    """
    try:
        result = deps.tracking_service.ingest(driver_id, session_id, fix.to_fix(driver_id, session_id))
        if result.alerts:
            background_tasks.add_task(deps.tracking_service.deliver_alerts, result.alerts)
        return serialize_ingest(result)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error ingesting fix for driver {driver_id}, session {session_id}: {e}")
        raise to_http_exception(e)


@router.get("/{driver_id}/sessions/{session_id}/location")
def get_current_location(driver_id: str, session_id: str):
    try:
        fix = deps.tracking_service.current_location(driver_id, session_id)
        if fix is None:
            raise HTTPException(status_code=404, detail={
                "error": "not_found",
                "message": f"No location reported for driver {driver_id} in session {session_id}",
            })
        return serialize_fix(fix)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e)


@router.get("/sessions/{session_id}/directions")
def get_directions(session_id: str):
    """Straight-line legs from the latest fix through every remaining stop."""
    try:
        directions = deps.tracking_service.directions(session_id)
        return {
            "session_id": session_id,
            "directions": [serialize_direction(d) for d in directions],
        }
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e)
