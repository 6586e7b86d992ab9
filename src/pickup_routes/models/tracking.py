"""Data models for location fixes and alerts."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from .route import Severity
from .school import Coordinate


class AlertKind(str, Enum):
    PROXIMITY = "proximity"
    LATE_ARRIVAL = "late_arrival"
    MISSED_SCHOOL = "missed_school"


@dataclass(frozen=True)
class LocationFix:
    driver_id: str
    session_id: str
    location: Coordinate
    timestamp: datetime
    speed: Optional[float] = None
    bearing: Optional[float] = None
    accuracy: Optional[float] = None


@dataclass(frozen=True)
class ProximityAlert:
    session_id: str
    driver_id: str
    school_id: str
    school_name: str
    distance: float
    minutes_until_dismissal: float
    severity: Severity
    kind: AlertKind = AlertKind.PROXIMITY
    raised_at: datetime = field(default_factory=datetime.now)

    @property
    def message(self) -> str:
        if self.kind is AlertKind.MISSED_SCHOOL:
            return f"Vehicle missed pickup at {self.school_name} ({self.distance:.1f} mi away)"
        if self.kind is AlertKind.LATE_ARRIVAL:
            return f"Vehicle running late for {self.school_name} ({self.distance:.1f} mi away)"
        return (
            f"Vehicle is {self.distance:.1f} mi from {self.school_name} with "
            f"{round(self.minutes_until_dismissal)} min until dismissal"
        )


@dataclass
class IngestResult:
    status: str
    fix: LocationFix
    alerts: List[ProximityAlert] = field(default_factory=list)

    @property
    def evaluated(self) -> bool:
        """Ignored fixes are still appended to the log, just not alerted on."""
        return self.status == "accepted"
