"""Route feasibility walk, totals and driver directions."""
from dataclasses import dataclass, field
from datetime import time
from typing import List, Optional

from loguru import logger

from ..configurations.config import Config
from ..models.route import Direction, RouteMetrics, RouteStop, RouteWarning, Severity, StopTiming, WarningKind
from ..models.school import Constraints, Coordinate, minutes_of_day, parse_clock_time
from . import geo


@dataclass(frozen=True)
class MetricsConfig:
    assumed_speed: float = field(default_factory=lambda: Config.ASSUMED_SPEED_MPH)
    day_start: time = field(default_factory=lambda: parse_clock_time(Config.DAY_START_TIME))
    tight_timing_minutes: float = field(default_factory=lambda: Config.TIGHT_TIMING_MINUTES)


def _clock_to_time(minutes: float) -> time:
    seconds = min(max(int(round(minutes * 60)), 0), 24 * 3600 - 1)
    return time(seconds // 3600, seconds % 3600 // 60, seconds % 60)


def travel_minutes(miles: float, speed: float = None) -> float:
    speed = speed or Config.ASSUMED_SPEED_MPH
    return miles / speed * 60


def evaluate_route(stops: List[RouteStop], constraints: Constraints,
                   config: MetricsConfig = None) -> RouteMetrics:
    """Walk the stops on a simulated clock and collect advisory warnings."""
    config = config or MetricsConfig()
    warnings: List[RouteWarning] = []
    timings: List[StopTiming] = []

    total_distance = 0.0
    total_minutes = 0.0
    clock = minutes_of_day(config.day_start)

    for i, stop in enumerate(stops):
        school = stop.school
        if i > 0:
            previous = stops[i - 1].school
            leg_distance = 0.0
            if previous.location is not None and school.location is not None:
                leg_distance = geo.distance(previous.location, school.location)
            else:
                logger.debug(f"Missing coordinates between {previous.name} and {school.name}; leg distance taken as 0")
            leg_minutes = travel_minutes(leg_distance, config.assumed_speed) + constraints.buffer_minutes
            total_distance += leg_distance
            total_minutes += leg_minutes
            clock += leg_minutes

        slack = school.dismissal_minutes - clock
        arrival = _clock_to_time(clock)
        timings.append(StopTiming(
            school_id=school.school_id,
            simulated_arrival=arrival,
            dismissal_time=school.dismissal_time,
            minutes_before_dismissal=slack,
        ))

        if slack < 0:
            warnings.append(RouteWarning(
                kind=WarningKind.LATE_ARRIVAL,
                severity=Severity.CRITICAL,
                message=(f"CRITICAL: Late arrival at {school.name} - arrives {abs(round(slack))} minutes late "
                         f"({arrival:%H:%M} arrival vs {school.dismissal_time:%H:%M} dismissal)"),
                school_id=school.school_id,
            ))
        elif slack < config.tight_timing_minutes:
            warnings.append(RouteWarning(
                kind=WarningKind.TIGHT_TIMING,
                severity=Severity.ADVISORY,
                message=f"TIMING RISK: {school.name} has very tight timing ({round(slack)} minutes before dismissal)",
                school_id=school.school_id,
            ))

    for current, following in zip(stops, stops[1:]):
        if current.school.dismissal_time > following.school.dismissal_time:
            warnings.append(RouteWarning(
                kind=WarningKind.SCHEDULING_CONFLICT,
                severity=Severity.WARNING,
                message=(f"Timing conflict: {current.school.name} ({current.school.dismissal_time:%H:%M}) "
                         f"dismisses after {following.school.name} ({following.school.dismissal_time:%H:%M})"),
                school_id=current.school.school_id,
            ))

    if total_minutes > constraints.max_route_minutes:
        warnings.append(RouteWarning(
            kind=WarningKind.ROUTE_TOO_LONG,
            severity=Severity.WARNING,
            message=f"Route exceeds {constraints.max_route_minutes} minute limit ({round(total_minutes)} minutes)",
        ))

    total_students = sum(stop.school.student_count for stop in stops)
    utilization = total_students / constraints.seats_per_vehicle * 100
    if utilization > 100:
        warnings.append(RouteWarning(
            kind=WarningKind.OVER_CAPACITY,
            severity=Severity.CRITICAL,
            message=f"Over capacity: {total_students} students for {constraints.seats_per_vehicle} seats",
        ))

    return RouteMetrics(
        total_distance=total_distance,
        total_minutes=total_minutes,
        total_students=total_students,
        seat_utilization=utilization,
        stop_timings=timings,
        warnings=warnings,
    )


def plan_directions(origin: Coordinate, stops: List[RouteStop],
                    speed: Optional[float] = None) -> List[Direction]:
    """Straight-line leg-by-leg directions from the vehicle's position through each stop."""
    directions = []
    current = origin
    for stop in stops:
        target = stop.school.location
        if target is None:
            continue
        leg = geo.distance(current, target)
        heading = geo.bearing(current, target)
        directions.append(Direction(
            school_id=stop.school.school_id,
            school_name=stop.school.name,
            order_index=stop.order_index,
            distance=leg,
            travel_minutes=round(travel_minutes(leg, speed)),
            bearing=heading,
            cardinal=geo.cardinal(heading),
            estimated_arrival_time=stop.estimated_arrival_time,
            dismissal_time=stop.school.dismissal_time,
        ))
        current = target
    return directions
