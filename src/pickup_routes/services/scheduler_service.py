"""Scheduler service for the periodic missed-school check."""
from datetime import datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

from ..configurations.config import Config
from .tracking_service import TrackingService

JOB_ID = "missed_school_check"


class SchedulerService:
    def __init__(self, tracking_service: TrackingService, interval_minutes: float = None):
        self.scheduler = AsyncIOScheduler()
        self.tracking_service = tracking_service
        self.interval_minutes = interval_minutes or Config.MISSED_SCHOOL_CHECK_MINUTES
        self.is_running = False
        self.last_run = None
        self.last_alert_count = 0

    def missed_school_job(self):
        """Scheduled job: alert on in-progress sessions that are running late or passed a school.

        Plain function, so the scheduler runs it in its thread pool executor.
        """
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        try:
            logger.info(f"🕐 [MONITOR] Checking for missed schools at {timestamp}")
            alerts = self.tracking_service.check_missed_schools()
            self.last_run = datetime.now()
            self.last_alert_count = len(alerts)

            if alerts:
                logger.warning(f"⚠️ [MONITOR] Dispatched {len(alerts)} late/missed school alerts")
            else:
                logger.info("✅ [MONITOR] All active routes on schedule")
        except Exception as e:
            logger.error(f"❌ [MONITOR] Missed-school check failed at {timestamp}: {e}")

    def start_scheduler(self):
        if self.is_running:
            logger.warning("Scheduler is already running")
            return

        try:
            self.scheduler.add_job(
                self.missed_school_job,
                trigger=IntervalTrigger(minutes=self.interval_minutes),
                id=JOB_ID,
                name="Missed School Check",
                replace_existing=True,
            )
            self.scheduler.start()
            self.is_running = True

            logger.success(f"🚀 Scheduler started - missed-school check every {self.interval_minutes} minutes")
            logger.info("📅 Next run: " + str(self.scheduler.get_job(JOB_ID).next_run_time))
        except Exception as e:
            logger.error(f"Failed to start scheduler: {e}")

    def stop_scheduler(self):
        if not self.is_running:
            logger.warning("Scheduler is not running")
            return

        try:
            self.scheduler.shutdown()
            self.is_running = False
            logger.info("🛑 Scheduler stopped")
        except Exception as e:
            logger.error(f"Failed to stop scheduler: {e}")

    def get_scheduler_status(self):
        """Current scheduler state and job information."""
        if not self.is_running:
            return {
                "status": "stopped",
                "message": "Scheduler is not running",
                "last_run": self.last_run.isoformat() if self.last_run else None,
            }

        try:
            job = self.scheduler.get_job(JOB_ID)
            if job:
                return {
                    "status": "running",
                    "job_name": job.name,
                    "next_run_time": str(job.next_run_time),
                    "trigger": str(job.trigger),
                    "last_run": self.last_run.isoformat() if self.last_run else None,
                    "last_alert_count": self.last_alert_count,
                    "message": f"Missed-school check every {self.interval_minutes} minutes",
                }
            return {
                "status": "running",
                "message": "Scheduler running but no jobs found",
            }
        except Exception as e:
            return {
                "status": "error",
                "message": f"Error getting scheduler status: {e}",
            }

    def trigger_manual_check(self):
        logger.info("🔧 Manual missed-school check triggered")
        self.missed_school_job()
        return {
            "status": "completed",
            "message": "Manual check completed",
            "alerts_dispatched": self.last_alert_count,
        }
