"""Request models and response serializers for the pickup routing API."""
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..models.route import Direction, OptimizationResult, ProposedRoute, Route, RouteStop, RouteWarning
from ..models.school import Constraints, Coordinate, School, parse_clock_time
from ..models.session import PickupStatus, Session, SessionProgress, StudentPickup
from ..models.tracking import IngestResult, LocationFix, ProximityAlert
from ..routing import geo


# Requests

class CoordinateIn(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)

    def to_coordinate(self) -> Coordinate:
        return Coordinate(self.lat, self.lon)


class SchoolIn(BaseModel):
    school_id: str
    name: str
    dismissal_time: str = Field(..., description="Dismissal time of day, HH:MM")
    student_count: int = Field(0, ge=0)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: str = ""

    def to_school(self) -> School:
        location = None
        if self.latitude is not None and self.longitude is not None:
            location = Coordinate(self.latitude, self.longitude)
        return School(
            school_id=self.school_id,
            name=self.name,
            dismissal_time=parse_clock_time(self.dismissal_time),
            student_count=self.student_count,
            location=location,
            address=self.address,
        )


class ConstraintsIn(BaseModel):
    vehicle_count: int
    seats_per_vehicle: int
    max_route_minutes: int = 90
    buffer_minutes: int = 10
    start_address: str = ""
    end_address: str = ""

    def to_constraints(self) -> Constraints:
        return Constraints(
            vehicle_count=self.vehicle_count,
            seats_per_vehicle=self.seats_per_vehicle,
            max_route_minutes=self.max_route_minutes,
            buffer_minutes=self.buffer_minutes,
            start_address=self.start_address,
            end_address=self.end_address,
        )


class OptimizationRequest(BaseModel):
    constraints: ConstraintsIn
    schools: Optional[List[SchoolIn]] = Field(
        None, description="Schools to plan; defaults to the roster's schools with active students"
    )


class CommitRequest(OptimizationRequest):
    vehicle_indexes: List[int]
    driver_ids: Dict[int, str] = {}
    route_names: Dict[int, str] = {}


class ScheduleSessionRequest(BaseModel):
    route_id: str
    driver_id: str
    service_date: date


class StartSessionRequest(ScheduleSessionRequest):
    start_location: Optional[CoordinateIn] = None


class BeginSessionRequest(BaseModel):
    start_location: Optional[CoordinateIn] = None


class PickupUpdate(BaseModel):
    status: PickupStatus
    note: Optional[str] = None


class CompleteSessionRequest(BaseModel):
    end_location: Optional[CoordinateIn] = None
    notes: Optional[str] = None


class CancelSessionRequest(BaseModel):
    reason: Optional[str] = None


def local_naive(value: datetime) -> datetime:
    """Offset-aware times become local wall-clock time, matching the service clocks."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


class LocationFixIn(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    timestamp: Optional[datetime] = None
    speed: Optional[float] = None
    bearing: Optional[float] = None
    accuracy: Optional[float] = None

    def to_fix(self, driver_id: str, session_id: str) -> LocationFix:
        return LocationFix(
            driver_id=driver_id,
            session_id=session_id,
            location=Coordinate(self.latitude, self.longitude),
            timestamp=local_naive(self.timestamp) if self.timestamp else datetime.now(),
            speed=self.speed,
            bearing=self.bearing,
            accuracy=self.accuracy,
        )


# Responses

def _clock(value) -> Optional[str]:
    return value.strftime("%H:%M") if value is not None else None


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _coordinate(value: Optional[Coordinate]) -> Optional[Dict[str, float]]:
    return {"lat": value.lat, "lon": value.lon} if value is not None else None


def serialize_school(school: School) -> Dict[str, Any]:
    return {
        "school_id": school.school_id,
        "name": school.name,
        "dismissal_time": _clock(school.dismissal_time),
        "student_count": school.student_count,
        "location": _coordinate(school.location),
        "address": school.address,
    }


def serialize_stop(stop: RouteStop) -> Dict[str, Any]:
    return {
        "order_index": stop.order_index,
        "estimated_arrival_time": _clock(stop.estimated_arrival_time),
        "school": serialize_school(stop.school),
    }


def serialize_warning(warning: RouteWarning) -> Dict[str, Any]:
    return {
        "kind": warning.kind.value,
        "severity": warning.severity.value,
        "message": warning.message,
        "school_id": warning.school_id,
    }


def serialize_proposal(proposal: ProposedRoute) -> Dict[str, Any]:
    metrics = proposal.metrics
    return {
        "vehicle_index": proposal.vehicle_index,
        "stops": [serialize_stop(stop) for stop in proposal.stops],
        "metrics": {
            **metrics.rounded,
            "total_students": metrics.total_students,
            "stop_timings": [
                {
                    "school_id": timing.school_id,
                    "simulated_arrival": _clock(timing.simulated_arrival),
                    "dismissal_time": _clock(timing.dismissal_time),
                    "minutes_before_dismissal": round(timing.minutes_before_dismissal, 1),
                }
                for timing in metrics.stop_timings
            ],
            "warnings": [serialize_warning(w) for w in metrics.warnings],
        },
    }


def serialize_result(result: OptimizationResult) -> Dict[str, Any]:
    return {
        "vehicle_count": result.constraints.vehicle_count,
        "seats_per_vehicle": result.constraints.seats_per_vehicle,
        "assigned_school_count": result.assigned_school_count,
        "routes": [serialize_proposal(p) for p in result.routes],
        "unassigned": [
            {"school": serialize_school(item.school), "reason": item.reason} for item in result.unassigned
        ],
        "warnings": [serialize_warning(w) for w in result.warnings],
    }


def serialize_route(route: Route) -> Dict[str, Any]:
    return {
        "route_id": route.route_id,
        "name": route.name,
        "driver_id": route.driver_id,
        "start_address": route.start_address,
        "end_address": route.end_address,
        "is_active": route.is_active,
        "stops": [serialize_stop(stop) for stop in route.stops],
        "created_at": _iso(route.created_at),
    }


def serialize_session(session: Session) -> Dict[str, Any]:
    return {
        "session_id": session.session_id,
        "route_id": session.route_id,
        "driver_id": session.driver_id,
        "service_date": session.service_date.isoformat(),
        "status": session.status.value,
        "start_time": _iso(session.start_time),
        "completed_time": _iso(session.completed_time),
        "duration_minutes": session.duration_minutes,
        "start_location": _coordinate(session.start_location),
        "end_location": _coordinate(session.end_location),
        "notes": session.notes,
    }


def serialize_pickup(pickup: StudentPickup) -> Dict[str, Any]:
    return {
        "pickup_id": pickup.pickup_id,
        "student_id": pickup.student_id,
        "school_id": pickup.school_id,
        "status": pickup.status.value,
        "picked_up_at": _iso(pickup.picked_up_at),
        "driver_notes": pickup.driver_notes,
    }


def serialize_progress(progress: SessionProgress) -> Dict[str, Any]:
    return {
        "session_id": progress.session_id,
        "total": progress.total,
        "picked_up": progress.picked_up,
        "resolved": progress.resolved,
        "percent": round(progress.percent, 1),
    }


def serialize_alert(alert: ProximityAlert) -> Dict[str, Any]:
    return {
        "kind": alert.kind.value,
        "severity": alert.severity.value,
        "school_id": alert.school_id,
        "school_name": alert.school_name,
        "distance": round(alert.distance, 2),
        "distance_km": round(geo.miles_to_km(alert.distance), 2),
        "minutes_until_dismissal": round(alert.minutes_until_dismissal, 1),
        "message": alert.message,
        "raised_at": _iso(alert.raised_at),
    }


def serialize_fix(fix: LocationFix) -> Dict[str, Any]:
    return {
        "driver_id": fix.driver_id,
        "session_id": fix.session_id,
        "location": _coordinate(fix.location),
        "timestamp": _iso(fix.timestamp),
        "speed": fix.speed,
        "bearing": fix.bearing,
        "accuracy": fix.accuracy,
    }


def serialize_ingest(result: IngestResult) -> Dict[str, Any]:
    return {
        "status": result.status,
        "alerts": [serialize_alert(a) for a in result.alerts],
    }


def serialize_direction(direction: Direction) -> Dict[str, Any]:
    return {
        "school_id": direction.school_id,
        "school_name": direction.school_name,
        "order_index": direction.order_index,
        "distance": round(direction.distance, 2),
        "distance_km": round(geo.miles_to_km(direction.distance), 2),
        "travel_minutes": direction.travel_minutes,
        "bearing": round(direction.bearing, 1),
        "cardinal": direction.cardinal,
        "estimated_arrival_time": _clock(direction.estimated_arrival_time),
        "dismissal_time": _clock(direction.dismissal_time),
    }
