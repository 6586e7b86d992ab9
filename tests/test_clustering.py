"""Tests for seat- and dismissal-aware school clustering."""
import pytest

from conftest import make_school
from pickup_routes.clustering.assign_schools import ScoringConfig, SchoolClusterer, cluster_schools
from pickup_routes.models.errors import ConstraintViolation
from pickup_routes.models.school import Constraints


@pytest.fixture
def three_schools():
    return [
        make_school("c", "15:10", 12),
        make_school("a", "14:50", 10),
        make_school("b", "15:00", 8),
    ]


def _ids(cluster):
    return [school.school_id for school in cluster.schools]


def test_single_vehicle_holds_all_at_exact_capacity(three_schools):
    """30 students in 30 seats fit one vehicle, ordered by dismissal."""
    clusters, unassigned = cluster_schools(three_schools, Constraints(vehicle_count=1, seats_per_vehicle=30))

    assert len(clusters) == 1
    assert unassigned == []
    assert _ids(clusters[0]) == ["a", "b", "c"]
    assert clusters[0].seat_total == 30


def test_school_that_cannot_join_is_reported_not_raised(three_schools):
    """With 15 seats and 2 vehicles the 12-student school has nowhere to go."""
    clusters, unassigned = cluster_schools(three_schools, Constraints(vehicle_count=2, seats_per_vehicle=15))

    assert len(clusters) == 2
    assert _ids(clusters[0]) == ["a"]
    assert _ids(clusters[1]) == ["b"]
    assert [item.school.school_id for item in unassigned] == ["c"]
    assert "capacity" in unassigned[0].reason


def test_enough_vehicles_assign_every_school(three_schools):
    clusters, unassigned = cluster_schools(three_schools, Constraints(vehicle_count=3, seats_per_vehicle=15))

    assert unassigned == []
    assert [_ids(c) for c in clusters] == [["a"], ["b"], ["c"]]


def test_capacity_is_never_exceeded():
    schools = [make_school(f"s{i}", f"14:{10 + i * 5}", count) for i, count in enumerate([7, 9, 4, 6, 5, 8])]
    constraints = Constraints(vehicle_count=3, seats_per_vehicle=14)

    clusters, unassigned = cluster_schools(schools, constraints)

    for cluster in clusters:
        assert cluster.seat_total <= constraints.seats_per_vehicle
        assert cluster.seat_total == sum(s.student_count for s in cluster.schools)
    placed = sum(len(c.schools) for c in clusters)
    assert placed + len(unassigned) == len(schools)


def test_returns_exactly_vehicle_count_clusters():
    clusters, _ = cluster_schools([make_school("a", "15:00", 5)], Constraints(vehicle_count=4, seats_per_vehicle=20))
    assert len(clusters) == 4
    assert [c.vehicle_index for c in clusters] == [0, 1, 2, 3]
    assert sum(1 for c in clusters if c.is_empty) == 3


def test_schools_without_students_are_skipped():
    clusters, unassigned = cluster_schools(
        [make_school("empty", "15:00", 0), make_school("full", "15:00", 3)],
        Constraints(vehicle_count=1, seats_per_vehicle=10),
    )
    assert _ids(clusters[0]) == ["full"]
    assert unassigned == []


def test_oversized_school_reason_mentions_seats():
    _, unassigned = cluster_schools([make_school("big", "15:00", 40)], Constraints(vehicle_count=2, seats_per_vehicle=30))
    assert "exceed" in unassigned[0].reason


def test_clustering_is_deterministic():
    schools = [
        make_school("n1", "14:45", 6, lat=36.20, lon=-86.70),
        make_school("n2", "14:45", 6, lat=36.10, lon=-86.70),
        make_school("n3", "15:00", 4),
        make_school("n4", "15:15", 9, lat=36.15, lon=-86.75),
        make_school("n5", "15:00", 3, lat=36.00, lon=-86.80),
    ]
    constraints = Constraints(vehicle_count=2, seats_per_vehicle=16)

    first, _ = cluster_schools(schools, constraints)
    second, _ = cluster_schools(list(reversed(schools)), constraints)

    assert [_ids(c) for c in first] == [_ids(c) for c in second]


def test_same_time_schools_sort_by_latitude_then_missing_location():
    schools = [
        make_school("no_loc", "15:00", 1),
        make_school("north", "15:00", 1, lat=36.3, lon=-86.7),
        make_school("south", "15:00", 1, lat=36.0, lon=-86.7),
    ]
    clusters, _ = cluster_schools(schools, Constraints(vehicle_count=1, seats_per_vehicle=10))
    assert _ids(clusters[0]) == ["south", "north", "no_loc"]


def test_ties_go_to_lowest_vehicle_index():
    clusters, _ = cluster_schools([make_school("a", "15:00", 5)], Constraints(vehicle_count=3, seats_per_vehicle=10))
    assert _ids(clusters[0]) == ["a"]


def test_score_prefers_time_adjacency():
    clusterer = SchoolClusterer(ScoringConfig(time_score_max=80, time_gap_penalty_per_minute=2,
                                              capacity_score_weight=20))
    clusters, _ = clusterer.cluster_schools(
        [make_school("early", "14:00", 5)], Constraints(vehicle_count=2, seats_per_vehicle=20)
    )
    busy, empty = clusters
    near = make_school("near", "14:05", 5)

    # 80 - 2*5 + 5/15*20 vs 80 + 5/20*20
    assert clusterer.score(near, busy, 20) == pytest.approx(70 + 20 / 3)
    assert clusterer.score(near, empty, 20) == pytest.approx(85)
    assert clusterer.score(make_school("huge", "14:05", 16), busy, 20) is None


@pytest.mark.parametrize("vehicles,seats", [(0, 10), (2, 0), (-1, 5)])
def test_invalid_constraints_rejected(vehicles, seats):
    with pytest.raises(ConstraintViolation):
        cluster_schools([make_school("a", "15:00", 5)], Constraints(vehicle_count=vehicles, seats_per_vehicle=seats))
