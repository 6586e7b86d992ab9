"""Notification dispatch for proximity alerts and route warnings.

Alert computation lives in the tracking service; this module only records and
delivers. Delivery failures are logged and never propagate back to ingestion.
"""
import threading
from datetime import datetime
from typing import Dict, List, Tuple

import requests
from dotenv import load_dotenv
from loguru import logger

from ..configurations.config import Config
from ..models.route import RouteWarning, Severity
from ..models.tracking import AlertKind, ProximityAlert

load_dotenv()

PRIORITY_BY_SEVERITY = {
    Severity.ADVISORY: "medium",
    Severity.WARNING: "high",
    Severity.CRITICAL: "urgent",
}


class AlertLog:
    """Audit log of dispatched alerts, keyed by (session, school, kind)."""

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: List[ProximityAlert] = []
        self._sent: Dict[Tuple[str, str, AlertKind], datetime] = {}

    def record(self, alert: ProximityAlert):
        with self._lock:
            self._entries.append(alert)
            self._sent[(alert.session_id, alert.school_id, alert.kind)] = alert.raised_at

    def already_sent(self, session_id: str, school_id: str, kind: AlertKind) -> bool:
        with self._lock:
            return (session_id, school_id, kind) in self._sent

    def for_session(self, session_id: str) -> List[ProximityAlert]:
        with self._lock:
            return [alert for alert in self._entries if alert.session_id == session_id]

    def __len__(self):
        with self._lock:
            return len(self._entries)


class NotificationService:
    def __init__(self, webhook_url: str = None, alert_log: AlertLog = None, timeout: float = None):
        self.webhook_url = webhook_url if webhook_url is not None else Config.NOTIFICATION_WEBHOOK_URL
        self.alert_log = alert_log or AlertLog()
        self.timeout = timeout or Config.DEPENDENCY_TIMEOUT_SECONDS

    def dispatch(self, alert: ProximityAlert) -> bool:
        """Record and deliver an alert. Returns whether delivery succeeded."""
        self.record(alert)
        return self.deliver(alert)

    def record(self, alert: ProximityAlert):
        self.alert_log.record(alert)
        log = logger.error if alert.severity is Severity.CRITICAL else logger.warning
        log(f"🚨 {alert.kind.value.upper()} [{alert.severity.value}] session {alert.session_id}: {alert.message}")

    def deliver(self, alert: ProximityAlert) -> bool:
        """Post an already recorded alert to the webhook."""
        return self._post({
            "type": alert.kind.value,
            "title": f"{alert.kind.value.replace('_', ' ').title()}: {alert.school_name}",
            "message": alert.message,
            "priority": PRIORITY_BY_SEVERITY[alert.severity],
            "sessionId": alert.session_id,
            "driverId": alert.driver_id,
            "schoolId": alert.school_id,
            "distance": round(alert.distance, 2),
            "minutesUntilDismissal": round(alert.minutes_until_dismissal, 1),
            "timestamp": alert.raised_at.isoformat(),
        })

    def dispatch_once(self, alert: ProximityAlert) -> bool:
        """Deliver unless the same (session, school, kind) alert was already sent."""
        if self.alert_log.already_sent(alert.session_id, alert.school_id, alert.kind):
            logger.debug(f"Suppressing repeat {alert.kind.value} alert for session {alert.session_id} "
                         f"at school {alert.school_id}")
            return False
        return self.dispatch(alert)

    def dispatch_route_warnings(self, route_label: str, warnings: List[RouteWarning]) -> int:
        """Forward late-arrival and scheduling-conflict warnings; returns how many were sent."""
        sent = 0
        for warning in warnings:
            if warning.severity is Severity.ADVISORY:
                continue
            logger.warning(f"{route_label}: {warning.message}")
            self._post({
                "type": warning.kind.value,
                "title": f"Route warning: {route_label}",
                "message": warning.message,
                "priority": PRIORITY_BY_SEVERITY[warning.severity],
                "schoolId": warning.school_id,
                "timestamp": datetime.now().isoformat(),
            })
            sent += 1
        return sent

    def _post(self, payload: Dict) -> bool:
        if not self.webhook_url:
            return True
        try:
            response = requests.post(self.webhook_url, json=payload, timeout=self.timeout)
            if response.status_code in (200, 201, 202, 204):
                return True
            logger.error(f"Notification webhook returned status {response.status_code}: {response.text[:200]}")
        except requests.RequestException as e:
            logger.error(f"Notification webhook failed: {e}")
        return False

    def recent_alerts(self, session_id: str) -> List[ProximityAlert]:
        return self.alert_log.for_session(session_id)
