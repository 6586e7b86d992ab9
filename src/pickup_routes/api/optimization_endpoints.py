"""API endpoints for route optimization."""
from fastapi import APIRouter, HTTPException
from loguru import logger

from . import dependencies as deps
from .errors import to_http_exception
from .schemas import CommitRequest, OptimizationRequest, serialize_result, serialize_route

router = APIRouter(prefix="/api/optimization", tags=["optimization"])


def _run(request: OptimizationRequest):
    constraints = request.constraints.to_constraints()
    if request.schools is not None:
        schools = [school.to_school() for school in request.schools]
    else:
        schools = deps.roster.schools_with_active_student_counts()
    return deps.route_generator.optimize(schools, constraints)


@router.post("/run")
def run_optimization(request: OptimizationRequest):
    """
    Cluster schools into one proposed route per vehicle and evaluate each route.

    Nothing is stored; unassigned schools and feasibility warnings are reported
    alongside the proposals.
    """
    try:
        return serialize_result(_run(request))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Optimization run failed: {e}")
        raise to_http_exception(e)


@router.post("/commit", status_code=201)
def commit_optimization(request: CommitRequest):
    """
    Re-run the optimizer and persist the selected vehicle slots as routes.

    The optimizer is deterministic, so the same inputs reproduce the proposals
    the operator reviewed.
    """
    try:
        result = _run(request)
        routes = deps.route_generator.commit(
            result,
            request.vehicle_indexes,
            driver_ids=request.driver_ids,
            route_names=request.route_names,
        )
        return {
            "routes": [serialize_route(route) for route in routes],
            "unassigned": [item.school.school_id for item in result.unassigned],
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Optimization commit failed: {e}")
        raise to_http_exception(e)
