"""History sinks for completed sessions."""
import os
import threading
from dataclasses import asdict
from datetime import date, datetime
from typing import Dict, List, Optional

import requests
from dotenv import load_dotenv
from loguru import logger

from ..configurations.config import Config
from ..models.errors import DependencyUnavailable
from ..models.session import PickupHistoryRecord
from .metrics_service import pickup_detail_frame, pickup_history_frame

load_dotenv()


def _jsonable(value):
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    if hasattr(value, "value"):
        return value.value
    return value


def record_payload(record: PickupHistoryRecord) -> Dict:
    return _jsonable(asdict(record))


class InMemoryHistorySink:
    """Keeps one record per session; re-recording the same session is a no-op."""

    def __init__(self):
        self._lock = threading.Lock()
        self._records: Dict[str, PickupHistoryRecord] = {}

    def record_completed_session(self, record: PickupHistoryRecord) -> bool:
        with self._lock:
            if record.session_id in self._records:
                logger.info(f"History for session {record.session_id} already recorded")
                return False
            self._records[record.session_id] = record
        logger.success(f"Recorded history for session {record.session_id} "
                       f"({record.metrics.picked_up}/{record.metrics.total_students} picked up)")
        return True

    def get(self, session_id: str) -> Optional[PickupHistoryRecord]:
        with self._lock:
            return self._records.get(session_id)

    def records(self, driver_id: str = None, route_id: str = None) -> List[PickupHistoryRecord]:
        with self._lock:
            records = list(self._records.values())
        if driver_id is not None:
            records = [r for r in records if r.driver_id == driver_id]
        if route_id is not None:
            records = [r for r in records if r.route_id == route_id]
        return records

    def export_csv(self, output_dir: str = "output", details: bool = False) -> str:
        """Write pickup history to a timestamped CSV and return its path."""
        records = self.records()
        df = pickup_detail_frame(records) if details else pickup_history_frame(records)
        os.makedirs(output_dir, exist_ok=True)
        kind = "pickups" if details else "history"
        output_file = os.path.join(output_dir, f"{kind}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv")
        df.to_csv(output_file, index=False)
        logger.success(f"Exported {len(df)} rows to {output_file}")
        return output_file


class HttpHistorySink:
    """Posts completed sessions to the history API; the session id makes retries idempotent."""

    def __init__(self, base_url: str = None, timeout: float = None):
        self.base_url = (base_url or Config.HISTORY_API_BASE_URL).rstrip("/")
        self.timeout = timeout or Config.DEPENDENCY_TIMEOUT_SECONDS
        self.session = requests.Session()
        logger.info(f"HttpHistorySink initialized with base URL: {self.base_url}")

    def record_completed_session(self, record: PickupHistoryRecord) -> bool:
        url = f"{self.base_url}/api/pickup-history/{record.session_id}"
        try:
            response = self.session.put(url, json=record_payload(record), timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"History sink request failed for session {record.session_id}: {e}")
            raise DependencyUnavailable("history", str(e)) from e

        if response.status_code in (200, 201, 204):
            logger.success(f"Recorded history for session {record.session_id}")
            return True
        if response.status_code == 409:
            logger.info(f"History for session {record.session_id} already recorded")
            return False

        logger.error(f"History sink returned status {response.status_code}: {response.text[:200]}")
        raise DependencyUnavailable("history", f"status {response.status_code}")
