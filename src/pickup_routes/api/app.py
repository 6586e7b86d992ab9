"""FastAPI application for school pickup route coordination."""
from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from ..configurations.config import Config
from . import dependencies as deps
from .optimization_endpoints import router as optimization_router
from .session_endpoints import router as session_router
from .tracking_endpoints import router as tracking_router

load_dotenv()

app = FastAPI(
    title="School Pickup Route Coordinator",
    description="Afternoon pickup route planning, driver sessions and live tracking alerts",
    version="1.0.0",
    openapi_tags=[
        {
            "name": "optimization",
            "description": "Cluster schools into vehicle routes and commit them",
        },
        {
            "name": "sessions",
            "description": "Driver sessions and per-student pickups",
        },
        {
            "name": "tracking",
            "description": "Location fixes, proximity alerts and directions",
        },
        {
            "name": "scheduler",
            "description": "Periodic missed-school monitoring",
        },
    ],
)

app.include_router(optimization_router)
app.include_router(session_router)
app.include_router(tracking_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    logger.info("🚀 Starting pickup route coordinator...")
    Config.validate()
    if Config.MONITOR_ENABLED:
        deps.scheduler_service.start_scheduler()
        logger.success("✅ Startup complete (missed-school monitor enabled)")
    else:
        logger.success("✅ Startup complete (missed-school monitor disabled)")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("🛑 Shutting down pickup route coordinator...")
    if deps.scheduler_service.is_running:
        deps.scheduler_service.stop_scheduler()
    logger.info("✅ Shutdown complete")


@app.get("/scheduler/status", tags=["scheduler"])
async def scheduler_status():
    return deps.scheduler_service.get_scheduler_status()


@app.post("/scheduler/trigger", tags=["scheduler"])
async def trigger_scheduler():
    """Run the missed-school check now, outside the interval."""
    try:
        return await run_in_threadpool(deps.scheduler_service.trigger_manual_check)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Manual check failed: {str(e)}")


@app.get("/")
async def root():
    return {
        "service": "School Pickup Route Coordinator",
        "status": "ok",
        "monitor": deps.scheduler_service.get_scheduler_status()["status"],
        "endpoints": [
            "POST /api/optimization/run",
            "POST /api/optimization/commit",
            "POST /api/sessions",
            "POST /api/sessions/schedule",
            "POST /api/sessions/{session_id}/begin",
            "PATCH /api/sessions/{session_id}/pickups/{student_id}",
            "POST /api/sessions/{session_id}/complete",
            "POST /api/sessions/{session_id}/cancel",
            "GET /api/sessions/{session_id}",
            "GET /api/sessions/{session_id}/progress",
            "GET /api/sessions/{session_id}/next-stop",
            "POST /api/tracking/{driver_id}/sessions/{session_id}/fixes",
            "GET /api/tracking/{driver_id}/sessions/{session_id}/location",
            "GET /api/tracking/sessions/{session_id}/directions",
            "GET /scheduler/status",
            "POST /scheduler/trigger",
        ],
        "docs": "/docs",
    }
