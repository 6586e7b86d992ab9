"""Shared fixtures: schools, a committed route with students, and a controllable clock."""
from datetime import date, datetime, time

import pytest

from pickup_routes.models.route import Route, RouteAssignment
from pickup_routes.models.school import Absence, Coordinate, School, Student
from pickup_routes.routing.sequencer import sequence_schools
from pickup_routes.services.history_service import InMemoryHistorySink
from pickup_routes.services.locks import KeyedLocks
from pickup_routes.services.notification_service import NotificationService
from pickup_routes.services.roster_service import InMemoryRoster
from pickup_routes.services.session_service import SessionService
from pickup_routes.services.storage import InMemoryStore
from pickup_routes.services.tracking_service import TrackingService

SERVICE_DATE = date(2026, 10, 19)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self):
        return self.now

    def set(self, hour: int, minute: int):
        self.now = datetime.combine(self.now.date(), time(hour, minute))


def make_school(school_id, dismissal, count=0, lat=None, lon=None, name=None):
    location = Coordinate(lat, lon) if lat is not None else None
    hours, minutes = dismissal.split(":")
    return School(
        school_id=school_id,
        name=name or f"School {school_id}",
        dismissal_time=time(int(hours), int(minutes)),
        student_count=count,
        location=location,
    )


@pytest.fixture
def clock():
    return FakeClock(datetime.combine(SERVICE_DATE, time(14, 30)))


@pytest.fixture
def route_schools():
    return [
        make_school("lincoln", "14:50", 2, lat=36.1500, lon=-86.7900, name="Lincoln Elementary"),
        make_school("central", "15:00", 3, lat=36.1627, lon=-86.7816, name="Central Middle"),
    ]


@pytest.fixture
def students():
    return [
        Student("s1", "lincoln", "Ava", "Hill"),
        Student("s2", "lincoln", "Ben", "Cole"),
        Student("s3", "central", "Cai", "Diaz"),
        Student("s4", "central", "Dee", "Ebert"),
        Student("s5", "central", "Eli", "Fox"),
    ]


@pytest.fixture
def store(route_schools, students):
    store = InMemoryStore()
    route = Route(route_id="route-1", name="Route 1", stops=sequence_schools(route_schools))
    store.add_route(route, [RouteAssignment("route-1", s.student_id, s.school_id) for s in students])
    return store


@pytest.fixture
def roster(route_schools, students):
    return InMemoryRoster(schools=route_schools, students=students)


@pytest.fixture
def history_sink():
    return InMemoryHistorySink()


@pytest.fixture
def locks():
    return KeyedLocks()


@pytest.fixture
def session_service(store, roster, history_sink, locks, clock):
    return SessionService(store, absence_provider=roster, history_sink=history_sink, locks=locks, clock=clock)


@pytest.fixture
def notifier():
    return NotificationService(webhook_url="")


@pytest.fixture
def tracking_service(store, notifier, locks, clock):
    return TrackingService(store, notifier=notifier, locks=locks, clock=clock)


@pytest.fixture
def absent_s5():
    return Absence(student_id="s5", absence_date=SERVICE_DATE, reason="Sick")
