"""Tests for optimization runs and committing proposals as routes."""
from unittest.mock import MagicMock

import pytest

from conftest import make_school
from pickup_routes.models.errors import ConstraintViolation
from pickup_routes.models.route import WarningKind
from pickup_routes.models.school import Constraints, Student
from pickup_routes.services.roster_service import InMemoryRoster
from pickup_routes.services.route_generator_service import RouteGeneratorService
from pickup_routes.services.storage import InMemoryStore


@pytest.fixture
def schools():
    return [
        make_school("a", "14:50", 2, lat=36.15, lon=-86.79),
        make_school("b", "15:00", 1, lat=36.16, lon=-86.78),
        make_school("c", "15:10", 2, lat=36.17, lon=-86.77),
    ]


@pytest.fixture
def generator():
    roster = InMemoryRoster(students=[
        Student("a1", "a"), Student("a2", "a"),
        Student("b1", "b"), Student("b2", "b", is_active=False),
        Student("c1", "c"), Student("c2", "c"),
    ])
    return RouteGeneratorService(store=InMemoryStore(), roster=roster)


def test_optimize_proposes_one_route_per_vehicle(generator, schools):
    result = generator.optimize(schools, Constraints(vehicle_count=2, seats_per_vehicle=10))

    assert len(result.routes) == 2
    assert [r.vehicle_index for r in result.routes] == [0, 1]
    assert result.assigned_school_count == 3
    assert result.unassigned == []
    assert generator.store.list_routes() == []


def test_unassigned_school_adds_warning(generator, schools):
    result = generator.optimize(schools, Constraints(vehicle_count=1, seats_per_vehicle=3))

    unassigned_ids = {item.school.school_id for item in result.unassigned}
    assert unassigned_ids
    flagged = {w.school_id for w in result.warnings if w.kind is WarningKind.UNASSIGNED_SCHOOL}
    assert flagged == unassigned_ids


def test_optimize_is_repeatable(generator, schools):
    constraints = Constraints(vehicle_count=2, seats_per_vehicle=3)
    first = generator.optimize(schools, constraints)
    second = generator.optimize(schools, constraints)

    def layout(result):
        return [[s.school.school_id for s in r.stops] for r in result.routes]

    assert layout(first) == layout(second)


def test_commit_stores_route_and_active_student_assignments(generator, schools):
    result = generator.optimize(schools, Constraints(vehicle_count=1, seats_per_vehicle=10,
                                                     start_address="Depot", end_address="Depot"))

    routes = generator.commit(result, [0], driver_ids={0: "driver-7"}, route_names={0: "North loop"})

    assert len(routes) == 1
    route = routes[0]
    assert route.name == "North loop"
    assert route.driver_id == "driver-7"
    assert route.start_address == "Depot"
    assert route.school_ids == ["a", "b", "c"]
    stored = generator.store.get_route(route.route_id)
    assert stored is route
    assigned = sorted(a.student_id for a in generator.store.assignments_for_route(route.route_id))
    assert assigned == ["a1", "a2", "b1", "c1", "c2"]


def test_commit_skips_empty_proposals(generator):
    result = generator.optimize([make_school("a", "15:00", 2)], Constraints(vehicle_count=3, seats_per_vehicle=10))
    routes = generator.commit(result, [0, 1, 2])
    assert len(routes) == 1
    assert routes[0].name == "Route 1"


def test_commit_rejects_unknown_vehicle(generator, schools):
    result = generator.optimize(schools, Constraints(vehicle_count=1, seats_per_vehicle=10))
    with pytest.raises(ConstraintViolation):
        generator.commit(result, [4])


def test_commit_forwards_route_warnings(generator, schools):
    generator.notifier = MagicMock()
    result = generator.optimize(schools, Constraints(vehicle_count=1, seats_per_vehicle=10))

    routes = generator.commit(result, [0])

    generator.notifier.dispatch_route_warnings.assert_called_once_with(
        routes[0].name, result.routes[0].metrics.warnings
    )
