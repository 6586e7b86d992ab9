"""Service wiring shared by every router."""
from dotenv import load_dotenv
from loguru import logger

from ..configurations.config import Config
from ..services.history_service import HttpHistorySink, InMemoryHistorySink
from ..services.locks import KeyedLocks
from ..services.notification_service import NotificationService
from ..services.roster_service import InMemoryRoster, RosterService
from ..services.route_generator_service import RouteGeneratorService
from ..services.scheduler_service import SchedulerService
from ..services.session_service import SessionService
from ..services.storage import InMemoryStore
from ..services.tracking_service import TrackingService

load_dotenv()

store = InMemoryStore()
locks = KeyedLocks()

if Config.ROSTER_API_BASE_URL:
    roster = RosterService()
else:
    logger.info("ROSTER_API_BASE_URL not set, using in-memory roster")
    roster = InMemoryRoster()

history_sink = HttpHistorySink() if Config.HISTORY_API_BASE_URL else InMemoryHistorySink()
notifier = NotificationService()

route_generator = RouteGeneratorService(store=store, roster=roster, notifier=notifier)
session_service = SessionService(store, absence_provider=roster, history_sink=history_sink, locks=locks)
tracking_service = TrackingService(store, notifier=notifier, locks=locks)
scheduler_service = SchedulerService(tracking_service)
