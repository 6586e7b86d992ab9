"""Roster and optimization input models."""
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional

from .errors import ConstraintViolation


def parse_clock_time(value) -> time:
    """Parse "HH:MM" (or "HH:MM:SS") into a time-of-day; time values pass through."""
    if isinstance(value, time):
        return value
    parts = str(value).strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"Expected HH:MM time of day, got {value!r}")
    hours, minutes = int(parts[0]), int(parts[1])
    seconds = int(parts[2]) if len(parts) == 3 else 0
    return time(hours, minutes, seconds)


def minutes_of_day(value: time) -> float:
    return value.hour * 60 + value.minute + value.second / 60


def shift_time(value: time, minutes: float) -> time:
    """Move a time-of-day by minutes within the same service day (clamped at midnight)."""
    anchor = datetime.combine(date(2000, 1, 1), value)
    shifted = anchor + timedelta(minutes=minutes)
    if shifted.date() < anchor.date():
        return time(0, 0)
    if shifted.date() > anchor.date():
        return time(23, 59, 59)
    return shifted.time()


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lon: float

    def __post_init__(self):
        if not -90.0 <= self.lat <= 90.0:
            raise ValueError(f"latitude out of range: {self.lat}")
        if not -180.0 <= self.lon <= 180.0:
            raise ValueError(f"longitude out of range: {self.lon}")


@dataclass(frozen=True)
class School:
    school_id: str
    name: str
    dismissal_time: time
    student_count: int = 0
    location: Optional[Coordinate] = None
    address: str = ""

    @property
    def dismissal_minutes(self) -> float:
        return minutes_of_day(self.dismissal_time)


@dataclass(frozen=True)
class Student:
    student_id: str
    school_id: str
    first_name: str = ""
    last_name: str = ""
    is_active: bool = True

    @property
    def display_name(self) -> str:
        name = f"{self.first_name} {self.last_name}".strip()
        return name or self.student_id


@dataclass(frozen=True)
class Absence:
    student_id: str
    absence_date: date
    reason: Optional[str] = None


@dataclass(frozen=True)
class Constraints:
    """Operator-supplied limits for one optimization run."""

    vehicle_count: int
    seats_per_vehicle: int
    max_route_minutes: int = 90
    buffer_minutes: int = 10
    start_address: str = ""
    end_address: str = ""

    def validate(self):
        if self.vehicle_count < 1:
            raise ConstraintViolation("vehicle_count must be at least 1", field="vehicle_count")
        if self.seats_per_vehicle < 1:
            raise ConstraintViolation("seats_per_vehicle must be at least 1", field="seats_per_vehicle")
        if self.max_route_minutes < 1:
            raise ConstraintViolation("max_route_minutes must be at least 1", field="max_route_minutes")
        if self.buffer_minutes < 0:
            raise ConstraintViolation("buffer_minutes must not be negative", field="buffer_minutes")
