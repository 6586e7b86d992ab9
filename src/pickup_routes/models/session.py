"""Data models for pickup sessions and per-student pickups."""
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .school import Coordinate


class SessionStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.CANCELLED)


class PickupStatus(str, Enum):
    PENDING = "pending"
    PICKED_UP = "picked_up"
    ABSENT = "absent"
    NO_SHOW = "no_show"

    @property
    def is_resolved(self) -> bool:
        return self is not PickupStatus.PENDING


@dataclass
class Session:
    session_id: str
    route_id: str
    driver_id: str
    service_date: date
    status: SessionStatus = SessionStatus.PENDING
    start_time: Optional[datetime] = None
    completed_time: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    start_location: Optional[Coordinate] = None
    end_location: Optional[Coordinate] = None
    notes: Optional[str] = None

    def __post_init__(self):
        if not self.session_id or not isinstance(self.session_id, str):
            raise ValueError("session_id must be a non-empty string")
        if not isinstance(self.service_date, date):
            raise ValueError("service_date must be a date object")
        if not isinstance(self.status, SessionStatus):
            self.status = SessionStatus(self.status)


@dataclass
class StudentPickup:
    pickup_id: str
    session_id: str
    student_id: str
    school_id: str
    status: PickupStatus = PickupStatus.PENDING
    picked_up_at: Optional[datetime] = None
    driver_notes: Optional[str] = None


@dataclass(frozen=True)
class SessionProgress:
    session_id: str
    total: int
    picked_up: int
    resolved: int

    @property
    def percent(self) -> float:
        return (self.picked_up / self.total) * 100 if self.total else 0.0


@dataclass
class SessionMetrics:
    duration_minutes: int
    total_students: int
    picked_up: int
    absent: int
    no_show: int
    schools_visited: int
    distance_driven: float
    average_speed: Optional[float] = None
    max_speed: Optional[float] = None


@dataclass
class PickupHistoryRecord:
    """Permanent record written once per completed session."""

    session_id: str
    route_id: str
    driver_id: str
    service_date: date
    completed_at: datetime
    metrics: SessionMetrics
    pickups: List[Dict[str, Any]] = field(default_factory=list)
    notes: Optional[str] = None
