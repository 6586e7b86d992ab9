"""Assign schools to a fixed number of vehicle slots under seat and dismissal-time constraints."""
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from loguru import logger

from ..configurations.config import Config
from ..models.route import Cluster, UnassignableSchool
from ..models.school import Constraints, School, minutes_of_day


@dataclass(frozen=True)
class ScoringConfig:
    time_score_max: float = field(default_factory=lambda: Config.TIME_SCORE_MAX)
    time_gap_penalty_per_minute: float = field(default_factory=lambda: Config.TIME_GAP_PENALTY_PER_MINUTE)
    capacity_score_weight: float = field(default_factory=lambda: Config.CAPACITY_SCORE_WEIGHT)


class SchoolClusterer:
    """Greedy, single-pass, deterministic clustering of schools into vehicle buckets.

    Time adjacency dominates the score so a vehicle is never asked to be at two
    schools at the same dismissal moment; capacity fit only breaks near-ties.
    """

    def __init__(self, config: ScoringConfig = None):
        self.config = config or ScoringConfig()

    def cluster_schools(self, schools: List[School],
                        constraints: Constraints) -> Tuple[List[Cluster], List[UnassignableSchool]]:
        """Return exactly ``vehicle_count`` clusters plus the schools that fit nowhere."""
        constraints.validate()

        candidates = [school for school in schools if school.student_count > 0]
        candidates.sort(key=self._sort_key)

        clusters = [Cluster(vehicle_index=i) for i in range(constraints.vehicle_count)]
        unassigned: List[UnassignableSchool] = []

        for school in candidates:
            best_index = self._best_cluster(school, clusters, constraints.seats_per_vehicle)

            if best_index is None:
                reason = self._unassigned_reason(school, constraints)
                logger.warning(f"Could not assign {school.name} ({school.student_count} students): {reason}")
                unassigned.append(UnassignableSchool(school=school, reason=reason))
                continue

            cluster = clusters[best_index]
            cluster.add(school)
            logger.debug(
                f"Assigned {school.name} ({school.dismissal_time:%H:%M}) to vehicle {best_index + 1} - "
                f"capacity: {cluster.seat_total}/{constraints.seats_per_vehicle}"
            )

        logger.info(
            f"Clustered {len(candidates) - len(unassigned)}/{len(candidates)} schools "
            f"across {constraints.vehicle_count} vehicles"
        )
        return clusters, unassigned

    def score(self, school: School, cluster: Cluster, seats_per_vehicle: int) -> Optional[float]:
        """Score for placing ``school`` in ``cluster``; ``None`` when it does not fit."""
        remaining = cluster.remaining_seats(seats_per_vehicle)
        if remaining < school.student_count or remaining <= 0:
            return None

        if cluster.is_empty:
            time_score = self.config.time_score_max
        else:
            gap = abs(school.dismissal_minutes - minutes_of_day(cluster.latest_dismissal))
            time_score = max(0.0, self.config.time_score_max - self.config.time_gap_penalty_per_minute * gap)

        capacity_score = (school.student_count / remaining) * self.config.capacity_score_weight
        return time_score + capacity_score

    def _best_cluster(self, school: School, clusters: List[Cluster], seats_per_vehicle: int) -> Optional[int]:
        best_index = None
        best_score = None
        for cluster in clusters:
            score = self.score(school, cluster, seats_per_vehicle)
            # strict comparison keeps ties on the lowest vehicle index
            if score is not None and (best_score is None or score > best_score):
                best_score = score
                best_index = cluster.vehicle_index
        return best_index

    @staticmethod
    def _sort_key(school: School):
        has_location = school.location is not None
        latitude = school.location.lat if has_location else 0.0
        return (school.dismissal_minutes, not has_location, latitude)

    @staticmethod
    def _unassigned_reason(school: School, constraints: Constraints) -> str:
        if school.student_count > constraints.seats_per_vehicle:
            return (f"{school.student_count} students exceed the {constraints.seats_per_vehicle} "
                    f"seats of a single vehicle")
        return "all vehicles are at capacity"


def cluster_schools(schools: List[School], constraints: Constraints,
                    config: ScoringConfig = None) -> Tuple[List[Cluster], List[UnassignableSchool]]:
    return SchoolClusterer(config).cluster_schools(schools, constraints)
