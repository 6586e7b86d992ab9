"""Pickup session lifecycle: pending -> in_progress -> completed | cancelled."""
import uuid
from dataclasses import replace
from datetime import date, datetime
from typing import Callable, List, Optional

from loguru import logger

from ..models.errors import DependencyUnavailable, IncompletePickups, InvalidState, SessionConflict
from ..models.school import Coordinate
from ..models.session import (
    PickupHistoryRecord,
    PickupStatus,
    Session,
    SessionProgress,
    SessionStatus,
    StudentPickup,
)
from .locks import KeyedLocks
from .metrics_service import summarize_session
from .storage import InMemoryStore

ABSENCE_AUTO_NOTE = "Student marked absent for today"


class SessionService:
    def __init__(self, store: InMemoryStore, absence_provider, history_sink,
                 locks: KeyedLocks = None, clock: Callable[[], datetime] = None):
        self.store = store
        self.absence_provider = absence_provider
        self.history_sink = history_sink
        self.locks = locks or KeyedLocks()
        self.clock = clock or datetime.now

    # Opening

    def schedule(self, route_id: str, driver_id: str, service_date: date) -> Session:
        """Create a pending session without seeding pickups."""
        self.store.get_route(route_id)
        with self.locks.hold(("route", route_id, service_date)):
            self._ensure_no_open_session(route_id, service_date)
            session = self.store.add_session(Session(
                session_id=uuid.uuid4().hex,
                route_id=route_id,
                driver_id=driver_id,
                service_date=service_date,
            ))
        logger.info(f"Scheduled session {session.session_id} for route {route_id} on {service_date}")
        return replace(session)

    def start(self, route_id: str, driver_id: str, service_date: date,
              start_location: Optional[Coordinate] = None) -> Session:
        """Open an in-progress session for the route and seed one pending pickup per assigned student."""
        self.store.get_route(route_id)
        with self.locks.hold(("route", route_id, service_date)):
            self._ensure_no_open_session(route_id, service_date)
            session = Session(
                session_id=uuid.uuid4().hex,
                route_id=route_id,
                driver_id=driver_id,
                service_date=service_date,
            )
            with self.locks.hold(session.session_id):
                self._open(session, start_location)
                self.store.add_session(session)
        logger.success(f"Driver {driver_id} started route {route_id} (session {session.session_id})")
        return replace(session)

    def begin(self, session_id: str, start_location: Optional[Coordinate] = None) -> Session:
        """Promote a scheduled session to in_progress."""
        with self.locks.hold(session_id):
            session = self.store.get_session(session_id)
            if session.status is not SessionStatus.PENDING:
                raise InvalidState(f"Session {session_id} is {session.status.value}, expected pending",
                                   status=session.status.value)
            self._open(session, start_location)
        logger.success(f"Driver {session.driver_id} began session {session_id}")
        return replace(session)

    # Pickups

    def record_pickup(self, session_id: str, student_id: str, status, note: str = None) -> StudentPickup:
        status = PickupStatus(status)
        with self.locks.hold(session_id):
            session = self.store.get_session(session_id)
            self._require_in_progress(session, "record pickups")
            pickup = self.store.get_pickup(session_id, student_id)

            pickup.status = status
            pickup.picked_up_at = self.clock() if status is PickupStatus.PICKED_UP else None
            if note is not None:
                pickup.driver_notes = note
            if status in (PickupStatus.ABSENT, PickupStatus.NO_SHOW) and not pickup.driver_notes:
                logger.warning(f"Student {student_id} marked {status.value} without a driver note")

        logger.info(f"Session {session_id}: student {student_id} -> {status.value}")
        return replace(pickup)

    # Closing

    def complete(self, session_id: str, end_location: Optional[Coordinate] = None,
                 notes: str = None) -> Session:
        """Close the session once every student is resolved.

        Pending students with a same-day absence are resolved to ``absent`` first.
        Nothing is mutated unless the absence lookup and the history write both succeed.
        """
        with self.locks.hold(session_id):
            session = self.store.get_session(session_id)
            self._require_in_progress(session, "complete")
            pickups = self.store.pickups_for_session(session_id)

            pending = [p for p in pickups if p.status is PickupStatus.PENDING]
            auto_absent = set()
            if pending:
                absent_ids = {a.student_id for a in self._absences_for(session.service_date)}
                auto_absent = {p.student_id for p in pending if p.student_id in absent_ids}
                unresolved = [p.student_id for p in pending if p.student_id not in auto_absent]
                if unresolved:
                    logger.warning(f"Session {session_id} cannot complete: {len(unresolved)} students pending")
                    raise IncompletePickups(sorted(unresolved))

            final_pickups = [
                replace(p, status=PickupStatus.ABSENT, picked_up_at=None, driver_notes=ABSENCE_AUTO_NOTE)
                if p.student_id in auto_absent else replace(p)
                for p in pickups
            ]

            completed_time = self.clock()
            closed = replace(
                session,
                status=SessionStatus.COMPLETED,
                completed_time=completed_time,
                end_location=end_location,
                notes=notes if notes is not None else session.notes,
            )
            route = self.store.get_route(session.route_id)
            metrics = summarize_session(closed, final_pickups, self.store.fixes_for(session_id), route)
            closed.duration_minutes = metrics.duration_minutes

            record = PickupHistoryRecord(
                session_id=session_id,
                route_id=session.route_id,
                driver_id=session.driver_id,
                service_date=session.service_date,
                completed_at=completed_time,
                metrics=metrics,
                pickups=[self._pickup_detail(p) for p in final_pickups],
                notes=closed.notes,
            )
            self._record_history(record)

            for pickup in pickups:
                if pickup.student_id in auto_absent:
                    pickup.status = PickupStatus.ABSENT
                    pickup.picked_up_at = None
                    pickup.driver_notes = ABSENCE_AUTO_NOTE
            session.status = closed.status
            session.completed_time = closed.completed_time
            session.duration_minutes = closed.duration_minutes
            session.end_location = closed.end_location
            session.notes = closed.notes

        if auto_absent:
            logger.info(f"Session {session_id}: auto-marked {len(auto_absent)} absent students")
        logger.success(f"Session {session_id} completed in {session.duration_minutes} minutes "
                       f"({metrics.picked_up}/{metrics.total_students} picked up)")
        return replace(session)

    def cancel(self, session_id: str, reason: str = None) -> Session:
        with self.locks.hold(session_id):
            session = self.store.get_session(session_id)
            if session.status.is_terminal:
                raise InvalidState(f"Session {session_id} is already {session.status.value}",
                                   status=session.status.value)
            session.status = SessionStatus.CANCELLED
            if reason:
                session.notes = reason
        logger.info(f"Session {session_id} cancelled{': ' + reason if reason else ''}")
        return replace(session)

    # Queries

    def get(self, session_id: str) -> Session:
        return replace(self.store.get_session(session_id))

    def pickups(self, session_id: str) -> List[StudentPickup]:
        self.store.get_session(session_id)
        return [replace(p) for p in self.store.pickups_for_session(session_id)]

    def progress(self, session_id: str) -> SessionProgress:
        pickups = self.pickups(session_id)
        return SessionProgress(
            session_id=session_id,
            total=len(pickups),
            picked_up=sum(1 for p in pickups if p.status is PickupStatus.PICKED_UP),
            resolved=sum(1 for p in pickups if p.status.is_resolved),
        )

    def sessions_for_date(self, service_date: date) -> List[Session]:
        return [replace(s) for s in self.store.sessions_on(service_date)]

    # Internals

    def _ensure_no_open_session(self, route_id: str, service_date: date):
        for existing in self.store.sessions_for(route_id, service_date):
            if not existing.status.is_terminal:
                raise SessionConflict(
                    f"Route {route_id} already has a {existing.status.value} session on {service_date}",
                    existing_session_id=existing.session_id,
                )

    def _open(self, session: Session, start_location: Optional[Coordinate]):
        route = self.store.get_route(session.route_id)
        route_schools = set(route.school_ids)
        assignments = [a for a in self.store.assignments_for_route(route.route_id) if a.school_id in route_schools]

        session.status = SessionStatus.IN_PROGRESS
        session.start_time = self.clock()
        session.start_location = start_location
        self.store.add_pickups(session.session_id, [
            StudentPickup(
                pickup_id=uuid.uuid4().hex,
                session_id=session.session_id,
                student_id=assignment.student_id,
                school_id=assignment.school_id,
            )
            for assignment in assignments
        ])
        logger.info(f"Seeded {len(assignments)} pickups for session {session.session_id}")

    @staticmethod
    def _require_in_progress(session: Session, action: str):
        if session.status is not SessionStatus.IN_PROGRESS:
            raise InvalidState(f"Cannot {action} on a {session.status.value} session",
                               status=session.status.value)

    def _absences_for(self, service_date: date):
        try:
            return self.absence_provider.absences_for_date(service_date)
        except DependencyUnavailable:
            raise
        except Exception as e:
            logger.error(f"Absence lookup for {service_date} failed: {e}")
            raise DependencyUnavailable("absences", str(e)) from e

    def _record_history(self, record: PickupHistoryRecord):
        try:
            self.history_sink.record_completed_session(record)
        except DependencyUnavailable:
            raise
        except Exception as e:
            logger.error(f"History write for session {record.session_id} failed: {e}")
            raise DependencyUnavailable("history", str(e)) from e

    @staticmethod
    def _pickup_detail(pickup: StudentPickup) -> dict:
        return {
            "student_id": pickup.student_id,
            "school_id": pickup.school_id,
            "status": pickup.status.value,
            "picked_up_at": pickup.picked_up_at.isoformat() if pickup.picked_up_at else None,
            "driver_notes": pickup.driver_notes,
        }
