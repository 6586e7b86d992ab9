"""Route generation: cluster schools per vehicle, sequence, evaluate and commit."""
import uuid
from typing import Dict, Iterable, List, Optional

from loguru import logger

from ..clustering.assign_schools import SchoolClusterer
from ..models.errors import ConstraintViolation
from ..models.route import (
    OptimizationResult,
    ProposedRoute,
    Route,
    RouteAssignment,
    RouteWarning,
    Severity,
    WarningKind,
)
from ..models.school import Constraints, School
from ..routing.route_metrics import MetricsConfig, evaluate_route
from ..routing.sequencer import sequence_cluster
from .notification_service import NotificationService
from .storage import InMemoryStore


class RouteGeneratorService:
    """Generate one proposed route per vehicle and persist the ones a dispatcher accepts."""

    def __init__(self, store: InMemoryStore = None, roster=None,
                 clusterer: SchoolClusterer = None, metrics_config: MetricsConfig = None,
                 notifier: NotificationService = None):
        self.store = store or InMemoryStore()
        self.roster = roster
        self.notifier = notifier
        self.clusterer = clusterer or SchoolClusterer()
        self.metrics_config = metrics_config

    def optimize(self, schools: List[School], constraints: Constraints) -> OptimizationResult:
        """Pure planning step; nothing is stored."""
        clusters, unassigned = self.clusterer.cluster_schools(schools, constraints)

        routes = []
        warnings: List[RouteWarning] = []
        for cluster in clusters:
            stops = sequence_cluster(cluster)
            metrics = evaluate_route(stops, constraints, self.metrics_config)
            routes.append(ProposedRoute(vehicle_index=cluster.vehicle_index, stops=stops, metrics=metrics))
            warnings.extend(metrics.warnings)

        for item in unassigned:
            warnings.append(RouteWarning(
                kind=WarningKind.UNASSIGNED_SCHOOL,
                severity=Severity.WARNING,
                message=f"{item.school.name} could not be assigned: {item.reason}",
                school_id=item.school.school_id,
            ))

        result = OptimizationResult(
            constraints=constraints,
            clusters=clusters,
            routes=routes,
            unassigned=unassigned,
            warnings=warnings,
        )
        logger.success(
            f"Optimized {result.assigned_school_count} schools into "
            f"{sum(1 for r in routes if not r.is_empty)}/{constraints.vehicle_count} routes "
            f"({len(unassigned)} unassigned, {len(warnings)} warnings)"
        )
        return result

    def commit(self, result: OptimizationResult, vehicle_indexes: Iterable[int],
               driver_ids: Optional[Dict[int, str]] = None,
               route_names: Optional[Dict[int, str]] = None) -> List[Route]:
        """Persist the selected proposals with a student assignment row per active student.

        Late-arrival and scheduling-conflict warnings of each committed route
        are forwarded to the notifier when one is configured.
        """
        driver_ids = driver_ids or {}
        route_names = route_names or {}
        by_index = {proposal.vehicle_index: proposal for proposal in result.routes}

        selected = []
        for index in vehicle_indexes:
            if index not in by_index:
                raise ConstraintViolation(f"No proposed route for vehicle {index}", field="vehicle_indexes")
            selected.append(by_index[index])

        students_by_school = self._active_students_by_school()
        constraints = result.constraints

        committed = []
        for proposal in selected:
            if proposal.is_empty:
                logger.warning(f"Skipping empty proposal for vehicle {proposal.vehicle_index + 1}")
                continue

            route_id = uuid.uuid4().hex
            route = Route(
                route_id=route_id,
                name=route_names.get(proposal.vehicle_index, f"Route {proposal.vehicle_index + 1}"),
                stops=list(proposal.stops),
                driver_id=driver_ids.get(proposal.vehicle_index),
                start_address=constraints.start_address,
                end_address=constraints.end_address,
            )
            assignments = [
                RouteAssignment(route_id=route_id, student_id=student_id, school_id=stop.school.school_id)
                for stop in proposal.stops
                for student_id in students_by_school.get(stop.school.school_id, [])
            ]
            self.store.add_route(route, assignments)
            committed.append(route)
            logger.info(f"Committed {route.name} with {len(route.stops)} stops and "
                        f"{len(assignments)} student assignments")
            if self.notifier is not None:
                self.notifier.dispatch_route_warnings(route.name, proposal.metrics.warnings)

        return committed

    def _active_students_by_school(self) -> Dict[str, List[str]]:
        if self.roster is None:
            return {}
        grouped: Dict[str, List[str]] = {}
        for student in self.roster.active_students():
            grouped.setdefault(student.school_id, []).append(student.student_id)
        return grouped
