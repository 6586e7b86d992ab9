"""Session summaries and history reporting."""
from typing import List, Optional

import pandas as pd
from loguru import logger

from ..models.route import Route
from ..models.session import PickupHistoryRecord, PickupStatus, Session, SessionMetrics, StudentPickup
from ..models.tracking import LocationFix
from ..routing import geo


def duration_minutes(session: Session) -> int:
    if session.start_time is None or session.completed_time is None:
        return 0
    return max(0, round((session.completed_time - session.start_time).total_seconds() / 60))


def driven_distance(fixes: List[LocationFix]) -> float:
    ordered = sorted(fixes, key=lambda fix: fix.timestamp)
    return sum(geo.distance(a.location, b.location) for a, b in zip(ordered, ordered[1:]))


def schools_visited(route: Optional[Route], pickups: List[StudentPickup]) -> int:
    """Stops whose students are all resolved."""
    if route is None:
        return 0
    visited = 0
    for stop in route.stops:
        at_stop = [p for p in pickups if p.school_id == stop.school.school_id]
        if at_stop and all(p.status.is_resolved for p in at_stop):
            visited += 1
    return visited


def summarize_session(session: Session, pickups: List[StudentPickup], fixes: List[LocationFix],
                      route: Optional[Route] = None) -> SessionMetrics:
    counts = {status: 0 for status in PickupStatus}
    for pickup in pickups:
        counts[pickup.status] += 1

    speeds = [fix.speed for fix in fixes if fix.speed is not None]
    return SessionMetrics(
        duration_minutes=duration_minutes(session),
        total_students=len(pickups),
        picked_up=counts[PickupStatus.PICKED_UP],
        absent=counts[PickupStatus.ABSENT],
        no_show=counts[PickupStatus.NO_SHOW],
        schools_visited=schools_visited(route, pickups),
        distance_driven=round(driven_distance(fixes), 2),
        average_speed=round(sum(speeds) / len(speeds), 1) if speeds else None,
        max_speed=max(speeds) if speeds else None,
    )


HISTORY_COLUMNS = [
    "session_id", "route_id", "driver_id", "service_date", "completed_at", "duration_minutes",
    "total_students", "picked_up", "absent", "no_show", "schools_visited", "distance_driven",
]


def pickup_history_frame(records: List[PickupHistoryRecord]) -> pd.DataFrame:
    """One row per completed session, newest first."""
    rows = [
        {
            "session_id": r.session_id,
            "route_id": r.route_id,
            "driver_id": r.driver_id,
            "service_date": r.service_date.isoformat(),
            "completed_at": r.completed_at,
            "duration_minutes": r.metrics.duration_minutes,
            "total_students": r.metrics.total_students,
            "picked_up": r.metrics.picked_up,
            "absent": r.metrics.absent,
            "no_show": r.metrics.no_show,
            "schools_visited": r.metrics.schools_visited,
            "distance_driven": r.metrics.distance_driven,
        }
        for r in records
    ]
    df = pd.DataFrame(rows, columns=HISTORY_COLUMNS)
    if not df.empty:
        df = df.sort_values("completed_at", ascending=False).reset_index(drop=True)
    logger.debug(f"Built pickup history frame with {len(df)} rows")
    return df


def pickup_detail_frame(records: List[PickupHistoryRecord]) -> pd.DataFrame:
    """One row per student pickup across completed sessions (absence export)."""
    rows = []
    for record in records:
        for pickup in record.pickups:
            rows.append({"session_id": record.session_id, "service_date": record.service_date.isoformat(),
                         **pickup})
    return pd.DataFrame(rows)
