"""Data models for clusters, routes and route evaluation."""
from dataclasses import dataclass, field
from datetime import datetime, time
from enum import Enum
from typing import List, Optional

from .school import Constraints, Coordinate, School


class Severity(str, Enum):
    ADVISORY = "advisory"
    WARNING = "warning"
    CRITICAL = "critical"


class WarningKind(str, Enum):
    LATE_ARRIVAL = "late_arrival"
    TIGHT_TIMING = "tight_timing"
    SCHEDULING_CONFLICT = "scheduling_conflict"
    OVER_CAPACITY = "over_capacity"
    ROUTE_TOO_LONG = "route_too_long"
    UNASSIGNED_SCHOOL = "unassigned_school"


@dataclass(frozen=True)
class RouteWarning:
    kind: WarningKind
    severity: Severity
    message: str
    school_id: Optional[str] = None


@dataclass
class Cluster:
    """Schools provisionally assigned to one vehicle slot."""

    vehicle_index: int
    schools: List[School] = field(default_factory=list)
    seat_total: int = 0
    earliest_dismissal: Optional[time] = None
    latest_dismissal: Optional[time] = None

    def remaining_seats(self, seats_per_vehicle: int) -> int:
        return seats_per_vehicle - self.seat_total

    def add(self, school: School):
        self.schools.append(school)
        self.seat_total += school.student_count
        if self.earliest_dismissal is None or school.dismissal_time < self.earliest_dismissal:
            self.earliest_dismissal = school.dismissal_time
        if self.latest_dismissal is None or school.dismissal_time > self.latest_dismissal:
            self.latest_dismissal = school.dismissal_time

    @property
    def is_empty(self) -> bool:
        return not self.schools


@dataclass(frozen=True)
class RouteStop:
    school: School
    order_index: int
    estimated_arrival_time: time


@dataclass
class Route:
    route_id: str
    name: str
    stops: List[RouteStop]
    driver_id: Optional[str] = None
    start_address: str = ""
    end_address: str = ""
    start_point: Optional[Coordinate] = None
    end_point: Optional[Coordinate] = None
    is_active: bool = True
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        indexes = [stop.order_index for stop in self.stops]
        if indexes != list(range(len(self.stops))):
            raise ValueError(f"order_index must be dense 0..n-1, got {indexes}")
        arrivals = [stop.estimated_arrival_time for stop in self.stops]
        if any(later < earlier for earlier, later in zip(arrivals, arrivals[1:])):
            raise ValueError("estimated_arrival_time must be non-decreasing across stops")

    @property
    def school_ids(self) -> List[str]:
        return [stop.school.school_id for stop in self.stops]


@dataclass(frozen=True)
class RouteAssignment:
    route_id: str
    student_id: str
    school_id: str
    is_active: bool = True


@dataclass(frozen=True)
class StopTiming:
    school_id: str
    simulated_arrival: time
    dismissal_time: time
    minutes_before_dismissal: float


@dataclass
class RouteMetrics:
    total_distance: float
    total_minutes: float
    total_students: int
    seat_utilization: float
    stop_timings: List[StopTiming] = field(default_factory=list)
    warnings: List[RouteWarning] = field(default_factory=list)

    @property
    def rounded(self) -> dict:
        """Totals the way reports display them."""
        return {
            "total_distance": round(self.total_distance, 1),
            "total_minutes": round(self.total_minutes),
            "seat_utilization": round(self.seat_utilization),
        }


@dataclass(frozen=True)
class UnassignableSchool:
    """A school that fit no vehicle; reported, never raised."""

    school: School
    reason: str


@dataclass
class ProposedRoute:
    vehicle_index: int
    stops: List[RouteStop]
    metrics: RouteMetrics

    @property
    def is_empty(self) -> bool:
        return not self.stops


@dataclass
class OptimizationResult:
    constraints: Constraints
    clusters: List[Cluster]
    routes: List[ProposedRoute]
    unassigned: List[UnassignableSchool] = field(default_factory=list)
    warnings: List[RouteWarning] = field(default_factory=list)

    @property
    def assigned_school_count(self) -> int:
        return sum(len(cluster.schools) for cluster in self.clusters)


@dataclass(frozen=True)
class Direction:
    school_id: str
    school_name: str
    order_index: int
    distance: float
    travel_minutes: int
    bearing: float
    cardinal: str
    estimated_arrival_time: time
    dismissal_time: time
