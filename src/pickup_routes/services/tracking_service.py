"""Live location ingestion, next-stop resolution and proximity alerting."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from loguru import logger

from ..configurations.config import Config
from ..models.route import Direction, RouteStop, Severity
from ..models.session import Session, SessionStatus
from ..models.tracking import AlertKind, IngestResult, LocationFix, ProximityAlert
from ..routing import geo
from ..routing.route_metrics import plan_directions
from .locks import KeyedLocks
from .notification_service import NotificationService
from .storage import InMemoryStore


@dataclass(frozen=True)
class AlertConfig:
    distance_threshold: float = field(default_factory=lambda: Config.PROXIMITY_DISTANCE_MILES)
    window_minutes: float = field(default_factory=lambda: Config.PROXIMITY_WINDOW_MINUTES)
    near_school_distance: float = field(default_factory=lambda: Config.NEAR_SCHOOL_MILES)
    late_threshold_minutes: float = field(default_factory=lambda: Config.ALERT_THRESHOLD_MINUTES)


def should_alert(distance: float, minutes_until_dismissal: float, config: AlertConfig = None) -> bool:
    """Far away AND close to the deadline; either alone is not actionable."""
    config = config or AlertConfig()
    return distance > config.distance_threshold and 0 < minutes_until_dismissal <= config.window_minutes


def proximity_severity(minutes_until_dismissal: float, config: AlertConfig = None) -> Severity:
    config = config or AlertConfig()
    return Severity.CRITICAL if minutes_until_dismissal <= config.window_minutes / 2 else Severity.WARNING


def _minutes_until(now: datetime, session: Session, clock_time) -> float:
    target = datetime.combine(session.service_date, clock_time)
    return (target - now.replace(tzinfo=None)).total_seconds() / 60


class TrackingService:
    def __init__(self, store: InMemoryStore, notifier: NotificationService = None,
                 locks: KeyedLocks = None, clock: Callable[[], datetime] = None,
                 config: AlertConfig = None):
        self.store = store
        self.notifier = notifier or NotificationService()
        self.locks = locks or KeyedLocks()
        self.clock = clock or datetime.now
        self.config = config or AlertConfig()

    def ingest(self, driver_id: str, session_id: str, fix: LocationFix) -> IngestResult:
        """Append a fix; evaluate it only while the session is in progress.

        Alerts are recorded here but not delivered; callers hand
        ``result.alerts`` to :meth:`deliver_alerts` off the request path.
        """
        with self.locks.hold(session_id):
            self.store.append_fix(fix)
            session = self.store.find_session(session_id)
            if session is None or session.status is not SessionStatus.IN_PROGRESS:
                state = session.status.value if session else "unknown"
                logger.debug(f"Fix from driver {driver_id} for {state} session {session_id} stored, not evaluated")
                return IngestResult(status="ignored", fix=fix)
            alerts = self._evaluate(session, fix)

        for alert in alerts:
            self.notifier.record(alert)
        return IngestResult(status="accepted", fix=fix, alerts=alerts)

    def deliver_alerts(self, alerts: List[ProximityAlert]) -> int:
        """Post recorded alerts to the webhook; returns how many were delivered."""
        return sum(1 for alert in alerts if self._deliver(self.notifier.deliver, alert))

    def next_stop(self, session_id: str) -> Optional[RouteStop]:
        """Lowest-order stop with an unresolved pickup; None once every stop is resolved."""
        session = self.store.get_session(session_id)
        return self._next_stop(session)

    def evaluate(self, session_id: str, fix: LocationFix) -> List[ProximityAlert]:
        with self.locks.hold(session_id):
            session = self.store.get_session(session_id)
            return self._evaluate(session, fix)

    def current_location(self, driver_id: str, session_id: str) -> Optional[LocationFix]:
        return self.store.latest_fix(session_id, driver_id)

    def directions(self, session_id: str) -> List[Direction]:
        """Remaining legs from the latest fix through every unresolved stop."""
        session = self.store.get_session(session_id)
        fix = self.store.latest_fix(session_id, session.driver_id)
        if fix is None:
            return []
        return plan_directions(fix.location, self._remaining_stops(session))

    def check_missed_schools(self, now: datetime = None) -> List[ProximityAlert]:
        """Sweep in-progress sessions for late-arrival and missed-school conditions.

        Repeat conditions are suppressed at dispatch through the alert log.
        """
        now = now or self.clock()
        raised = []
        for session in self.store.sessions_by_status(SessionStatus.IN_PROGRESS):
            with self.locks.hold(session.session_id):
                fix = self.store.latest_fix(session.session_id, session.driver_id)
                if fix is None:
                    continue
                raised.extend(self._missed_school_alerts(session, fix, now))

        sent = [alert for alert in raised if self._deliver(self.notifier.dispatch_once, alert)]
        if raised:
            logger.info(f"Missed-school check raised {len(raised)} alerts, {len(sent)} newly dispatched")
        return sent

    # Internals

    def _remaining_stops(self, session: Session) -> List[RouteStop]:
        route = self.store.get_route(session.route_id)
        pickups = self.store.pickups_for_session(session.session_id)
        remaining = []
        for stop in sorted(route.stops, key=lambda s: s.order_index):
            at_stop = [p for p in pickups if p.school_id == stop.school.school_id]
            if any(not p.status.is_resolved for p in at_stop):
                remaining.append(stop)
        return remaining

    def _next_stop(self, session: Session) -> Optional[RouteStop]:
        remaining = self._remaining_stops(session)
        return remaining[0] if remaining else None

    def _evaluate(self, session: Session, fix: LocationFix) -> List[ProximityAlert]:
        stop = self._next_stop(session)
        if stop is None or stop.school.location is None:
            return []

        miles = geo.distance(fix.location, stop.school.location)
        minutes_left = _minutes_until(self.clock(), session, stop.school.dismissal_time)
        if not should_alert(miles, minutes_left, self.config):
            return []

        return [ProximityAlert(
            session_id=session.session_id,
            driver_id=fix.driver_id,
            school_id=stop.school.school_id,
            school_name=stop.school.name,
            distance=miles,
            minutes_until_dismissal=minutes_left,
            severity=proximity_severity(minutes_left, self.config),
            raised_at=self.clock(),
        )]

    def _missed_school_alerts(self, session: Session, fix: LocationFix, now: datetime) -> List[ProximityAlert]:
        alerts = []
        for stop in self._remaining_stops(session):
            school = stop.school
            if school.location is None:
                continue
            miles = geo.distance(fix.location, school.location)
            if miles <= self.config.near_school_distance:
                continue

            minutes_to_expected = _minutes_until(now, session, stop.estimated_arrival_time)
            if 0 <= minutes_to_expected <= self.config.late_threshold_minutes:
                kind, severity = AlertKind.LATE_ARRIVAL, Severity.WARNING
            elif minutes_to_expected < 0:
                kind, severity = AlertKind.MISSED_SCHOOL, Severity.CRITICAL
            else:
                continue

            alerts.append(ProximityAlert(
                session_id=session.session_id,
                driver_id=session.driver_id,
                school_id=school.school_id,
                school_name=school.name,
                distance=miles,
                minutes_until_dismissal=_minutes_until(now, session, school.dismissal_time),
                severity=severity,
                kind=kind,
                raised_at=now,
            ))
        return alerts

    @staticmethod
    def _deliver(send, alert: ProximityAlert) -> bool:
        try:
            return send(alert)
        except Exception as e:
            logger.error(f"Alert dispatch failed for session {alert.session_id}: {e}")
            return False
