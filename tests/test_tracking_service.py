"""Tests for location ingestion, next-stop resolution and alerting."""
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest

from conftest import SERVICE_DATE
from pickup_routes.models.route import Severity
from pickup_routes.models.school import Coordinate
from pickup_routes.models.session import PickupStatus
from pickup_routes.models.tracking import AlertKind, LocationFix
from pickup_routes.services.notification_service import NotificationService
from pickup_routes.services.tracking_service import AlertConfig, TrackingService, proximity_severity, should_alert

CENTRAL = Coordinate(36.1627, -86.7816)
# 0.050653 degrees of latitude is 3.5 miles
THREE_AND_A_HALF_MILES_SOUTH = Coordinate(36.1627 - 0.050653, -86.7816)


def _fix(session_id, location, when, driver_id="driver-1"):
    return LocationFix(driver_id=driver_id, session_id=session_id, location=location, timestamp=when)


@pytest.fixture
def active_session(session_service):
    session = session_service.start("route-1", "driver-1", SERVICE_DATE)
    return session.session_id


def _finish_lincoln(session_service, session_id):
    session_service.record_pickup(session_id, "s1", PickupStatus.PICKED_UP)
    session_service.record_pickup(session_id, "s2", PickupStatus.ABSENT, note="Home sick")


@pytest.mark.parametrize("distance,minutes,expected", [
    (2.0, 5, False),
    (2.01, 5, True),
    (3.5, 0, False),
    (3.5, 0.1, True),
    (3.5, 10, True),
    (3.5, 11, False),
    (3.5, -4, False),
    (1.0, 5, False),
])
def test_alert_requires_distance_and_deadline(distance, minutes, expected):
    config = AlertConfig(distance_threshold=2, window_minutes=10)
    assert should_alert(distance, minutes, config) is expected


def test_proximity_severity_escalates_in_second_half_of_window():
    config = AlertConfig(distance_threshold=2, window_minutes=10)
    assert proximity_severity(8, config) is Severity.WARNING
    assert proximity_severity(5, config) is Severity.CRITICAL


def test_far_vehicle_near_dismissal_raises_one_alert(session_service, tracking_service, notifier, clock,
                                                     active_session):
    """3.5 miles from Central Middle with 8 minutes to its 15:00 dismissal."""
    _finish_lincoln(session_service, active_session)
    clock.set(14, 52)

    result = tracking_service.ingest("driver-1", active_session,
                                     _fix(active_session, THREE_AND_A_HALF_MILES_SOUTH, clock.now))

    assert result.status == "accepted"
    assert len(result.alerts) == 1
    alert = result.alerts[0]
    assert alert.school_id == "central"
    assert alert.distance == pytest.approx(3.5, abs=0.01)
    assert alert.minutes_until_dismissal == pytest.approx(8)
    assert alert.severity is Severity.WARNING
    assert len(notifier.recent_alerts(active_session)) == 1


def test_alerts_are_recomputed_for_every_fix(session_service, tracking_service, notifier, clock, active_session):
    _finish_lincoln(session_service, active_session)
    clock.set(14, 52)
    tracking_service.ingest("driver-1", active_session, _fix(active_session, THREE_AND_A_HALF_MILES_SOUTH, clock.now))
    clock.set(14, 57)
    second = tracking_service.ingest("driver-1", active_session,
                                     _fix(active_session, THREE_AND_A_HALF_MILES_SOUTH, clock.now))

    assert second.alerts[0].severity is Severity.CRITICAL
    assert len(notifier.recent_alerts(active_session)) == 2


def test_close_vehicle_raises_nothing(session_service, tracking_service, clock, active_session):
    _finish_lincoln(session_service, active_session)
    clock.set(14, 55)
    result = tracking_service.ingest("driver-1", active_session, _fix(active_session, CENTRAL, clock.now))
    assert result.status == "accepted"
    assert result.alerts == []


def test_fix_for_unknown_or_closed_session_is_stored_but_ignored(session_service, tracking_service, clock,
                                                                 active_session):
    ignored = tracking_service.ingest("driver-9", "no-such-session",
                                      _fix("no-such-session", CENTRAL, clock.now, driver_id="driver-9"))
    assert ignored.status == "ignored"
    assert not ignored.evaluated
    assert tracking_service.current_location("driver-9", "no-such-session") is not None

    session_service.cancel(active_session)
    late = tracking_service.ingest("driver-1", active_session,
                                   _fix(active_session, THREE_AND_A_HALF_MILES_SOUTH, clock.now))
    assert late.status == "ignored"
    assert late.alerts == []


def test_current_location_is_latest_fix(tracking_service, clock, active_session):
    earlier = _fix(active_session, Coordinate(36.10, -86.80), clock.now)
    later = _fix(active_session, Coordinate(36.12, -86.79), clock.now + timedelta(seconds=30))
    tracking_service.ingest("driver-1", active_session, later)
    tracking_service.ingest("driver-1", active_session, earlier)

    assert tracking_service.current_location("driver-1", active_session).location == later.location
    assert tracking_service.current_location("driver-2", active_session) is None


def test_next_stop_advances_as_pickups_resolve(session_service, tracking_service, active_session):
    assert tracking_service.next_stop(active_session).school.school_id == "lincoln"

    _finish_lincoln(session_service, active_session)
    assert tracking_service.next_stop(active_session).school.school_id == "central"

    for student_id in ("s3", "s4", "s5"):
        session_service.record_pickup(active_session, student_id, PickupStatus.PICKED_UP)
    assert tracking_service.next_stop(active_session) is None


def test_directions_cover_remaining_stops(session_service, tracking_service, clock, active_session):
    assert tracking_service.directions(active_session) == []

    tracking_service.ingest("driver-1", active_session, _fix(active_session, THREE_AND_A_HALF_MILES_SOUTH, clock.now))
    assert [d.school_id for d in tracking_service.directions(active_session)] == ["lincoln", "central"]

    _finish_lincoln(session_service, active_session)
    legs = tracking_service.directions(active_session)
    assert [d.school_id for d in legs] == ["central"]
    assert legs[0].cardinal == "N"
    assert legs[0].distance == pytest.approx(3.5, abs=0.01)


def test_ingest_records_alerts_without_posting(session_service, store, locks, clock, active_session):
    notifier = NotificationService(webhook_url="http://hooks.local/alerts")
    service = TrackingService(store, notifier=notifier, locks=locks, clock=clock)
    _finish_lincoln(session_service, active_session)
    clock.set(14, 52)

    with patch("pickup_routes.services.notification_service.requests.post") as mock_post:
        result = service.ingest("driver-1", active_session,
                                _fix(active_session, THREE_AND_A_HALF_MILES_SOUTH, clock.now))
        mock_post.assert_not_called()

    assert result.status == "accepted"
    assert len(result.alerts) == 1
    assert len(notifier.recent_alerts(active_session)) == 1


def test_delivery_failure_is_contained(store, locks, clock, session_service, active_session):
    notifier = MagicMock()
    notifier.deliver.side_effect = RuntimeError("webhook down")
    service = TrackingService(store, notifier=notifier, locks=locks, clock=clock)
    _finish_lincoln(session_service, active_session)
    clock.set(14, 52)

    result = service.ingest("driver-1", active_session, _fix(active_session, THREE_AND_A_HALF_MILES_SOUTH, clock.now))

    assert result.status == "accepted"
    assert service.deliver_alerts(result.alerts) == 0
    notifier.deliver.assert_called_once_with(result.alerts[0])
    assert len(store.fixes_for(active_session)) == 1


def test_ingest_releases_its_session_lock(tracking_service, locks, clock):
    tracking_service.ingest("driver-9", "ghost", _fix("ghost", CENTRAL, clock.now, driver_id="driver-9"))
    assert len(locks) == 0


# Missed-school monitor

def test_missed_school_check_dedupes_per_kind(session_service, tracking_service, notifier, clock, active_session):
    _finish_lincoln(session_service, active_session)
    tracking_service.ingest("driver-1", active_session, _fix(active_session, THREE_AND_A_HALF_MILES_SOUTH, clock.now))

    # Central expects the bus at 14:55
    running_late = tracking_service.check_missed_schools(now=clock.now.replace(hour=14, minute=50))
    assert [(a.school_id, a.kind) for a in running_late] == [("central", AlertKind.LATE_ARRIVAL)]

    repeat = tracking_service.check_missed_schools(now=running_late[0].raised_at + timedelta(minutes=2))
    assert repeat == []

    missed = tracking_service.check_missed_schools(now=running_late[0].raised_at + timedelta(minutes=10))
    assert [(a.kind, a.severity) for a in missed] == [(AlertKind.MISSED_SCHOOL, Severity.CRITICAL)]
    assert len(notifier.recent_alerts(active_session)) == 2


def test_missed_school_check_quiet_when_near_or_early(tracking_service, clock, active_session):
    tracking_service.ingest("driver-1", active_session, _fix(active_session, CENTRAL, clock.now))
    # Central is close; Lincoln is ~1 mile away but its 14:45 arrival is more than 10 minutes off
    assert tracking_service.check_missed_schools(now=clock.now.replace(hour=14, minute=20)) == []
