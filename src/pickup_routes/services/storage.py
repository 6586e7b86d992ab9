"""In-memory repository for routes, sessions, pickups and the location fix log."""
import threading
from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional

from loguru import logger

from ..models.errors import NotFound
from ..models.route import Route, RouteAssignment
from ..models.session import Session, SessionStatus, StudentPickup
from ..models.tracking import LocationFix


class InMemoryStore:
    def __init__(self):
        self._lock = threading.RLock()
        self.routes: Dict[str, Route] = {}
        self.assignments: Dict[str, List[RouteAssignment]] = defaultdict(list)
        self.sessions: Dict[str, Session] = {}
        self.pickups: Dict[str, Dict[str, StudentPickup]] = defaultdict(dict)
        self.fixes: Dict[str, List[LocationFix]] = defaultdict(list)

    # Routes

    def add_route(self, route: Route, assignments: List[RouteAssignment] = None) -> Route:
        with self._lock:
            self.routes[route.route_id] = route
            self.assignments[route.route_id] = list(assignments or [])
        logger.info(f"Stored route {route.route_id} with {len(route.stops)} stops "
                    f"and {len(assignments or [])} student assignments")
        return route

    def get_route(self, route_id: str) -> Route:
        with self._lock:
            route = self.routes.get(route_id)
        if route is None:
            raise NotFound(f"Route {route_id} not found")
        return route

    def list_routes(self) -> List[Route]:
        with self._lock:
            return list(self.routes.values())

    def assignments_for_route(self, route_id: str) -> List[RouteAssignment]:
        with self._lock:
            return [a for a in self.assignments.get(route_id, []) if a.is_active]

    # Sessions

    def add_session(self, session: Session) -> Session:
        with self._lock:
            self.sessions[session.session_id] = session
        return session

    def get_session(self, session_id: str) -> Session:
        with self._lock:
            session = self.sessions.get(session_id)
        if session is None:
            raise NotFound(f"Session {session_id} not found")
        return session

    def find_session(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self.sessions.get(session_id)

    def sessions_for(self, route_id: str, service_date: date) -> List[Session]:
        with self._lock:
            return [s for s in self.sessions.values()
                    if s.route_id == route_id and s.service_date == service_date]

    def sessions_by_status(self, status: SessionStatus) -> List[Session]:
        with self._lock:
            return [s for s in self.sessions.values() if s.status == status]

    def sessions_on(self, service_date: date) -> List[Session]:
        with self._lock:
            return [s for s in self.sessions.values() if s.service_date == service_date]

    # Pickups

    def add_pickups(self, session_id: str, pickups: List[StudentPickup]):
        with self._lock:
            for pickup in pickups:
                self.pickups[session_id][pickup.student_id] = pickup

    def pickups_for_session(self, session_id: str) -> List[StudentPickup]:
        with self._lock:
            return list(self.pickups.get(session_id, {}).values())

    def get_pickup(self, session_id: str, student_id: str) -> StudentPickup:
        with self._lock:
            pickup = self.pickups.get(session_id, {}).get(student_id)
        if pickup is None:
            raise NotFound(f"Student {student_id} has no pickup in session {session_id}")
        return pickup

    # Location fixes (append-only)

    def append_fix(self, fix: LocationFix):
        with self._lock:
            self.fixes[fix.session_id].append(fix)

    def fixes_for(self, session_id: str, driver_id: str = None) -> List[LocationFix]:
        with self._lock:
            fixes = list(self.fixes.get(session_id, []))
        if driver_id is not None:
            fixes = [fix for fix in fixes if fix.driver_id == driver_id]
        return sorted(fixes, key=lambda fix: fix.timestamp)

    def latest_fix(self, session_id: str, driver_id: str = None) -> Optional[LocationFix]:
        fixes = self.fixes_for(session_id, driver_id)
        return fixes[-1] if fixes else None
