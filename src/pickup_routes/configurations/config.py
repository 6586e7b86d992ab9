"""Configuration settings for the school pickup routing service."""
import os

from dotenv import load_dotenv

load_dotenv()


class Config:
    # Roster / absence API Configuration
    ROSTER_API_BASE_URL: str = os.getenv("ROSTER_API_BASE_URL") or ""
    ROSTER_API_TOKEN: str = os.getenv("ROSTER_API_TOKEN") or ""

    # History sink and notification webhook
    HISTORY_API_BASE_URL: str = os.getenv("HISTORY_API_BASE_URL") or ""
    NOTIFICATION_WEBHOOK_URL: str = os.getenv("NOTIFICATION_WEBHOOK_URL") or ""

    # Timeout applied to every collaborator call (seconds)
    DEPENDENCY_TIMEOUT_SECONDS: float = float(os.getenv("DEPENDENCY_TIMEOUT_SECONDS", "10"))

    # Server Configuration
    PORT: int = int(os.getenv("PORT", "8000"))
    API_HOST: str = os.getenv("API_HOST", "127.0.0.1")

    # Geo: the whole core works in miles
    EARTH_RADIUS_MILES: float = 3959.0
    KM_PER_MILE: float = 1.609344

    # Sequencing and route evaluation
    ARRIVAL_LEAD_MINUTES: int = int(os.getenv("ARRIVAL_LEAD_MINUTES", "5"))
    ASSUMED_SPEED_MPH: float = float(os.getenv("ASSUMED_SPEED_MPH", "25"))
    DAY_START_TIME: str = os.getenv("DAY_START_TIME", "13:30")
    TIGHT_TIMING_MINUTES: int = int(os.getenv("TIGHT_TIMING_MINUTES", "5"))

    # Clustering weights
    TIME_SCORE_MAX: float = float(os.getenv("TIME_SCORE_MAX", "80"))
    TIME_GAP_PENALTY_PER_MINUTE: float = float(os.getenv("TIME_GAP_PENALTY_PER_MINUTE", "2"))
    CAPACITY_SCORE_WEIGHT: float = float(os.getenv("CAPACITY_SCORE_WEIGHT", "20"))

    # Proximity alerting
    PROXIMITY_DISTANCE_MILES: float = float(os.getenv("PROXIMITY_DISTANCE_MILES", "2"))
    PROXIMITY_WINDOW_MINUTES: float = float(os.getenv("PROXIMITY_WINDOW_MINUTES", "10"))

    # Missed school monitor
    NEAR_SCHOOL_MILES: float = float(os.getenv("NEAR_SCHOOL_MILES", "0.62"))
    ALERT_THRESHOLD_MINUTES: int = int(os.getenv("ALERT_THRESHOLD_MINUTES", "10"))
    MISSED_SCHOOL_CHECK_MINUTES: int = int(os.getenv("MISSED_SCHOOL_CHECK_MINUTES", "2"))
    MONITOR_ENABLED: bool = os.getenv("MONITOR_ENABLED", "true").lower() in ("1", "true", "yes")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def validate(cls):
        problems = []
        if cls.ASSUMED_SPEED_MPH <= 0:
            problems.append("ASSUMED_SPEED_MPH must be positive")
        if cls.ARRIVAL_LEAD_MINUTES < 0:
            problems.append("ARRIVAL_LEAD_MINUTES must not be negative")
        if cls.DEPENDENCY_TIMEOUT_SECONDS <= 0:
            problems.append("DEPENDENCY_TIMEOUT_SECONDS must be positive")
        if cls.MISSED_SCHOOL_CHECK_MINUTES < 1:
            problems.append("MISSED_SCHOOL_CHECK_MINUTES must be at least 1")
        try:
            hours, minutes = cls.DAY_START_TIME.split(":")
            if not (0 <= int(hours) < 24 and 0 <= int(minutes) < 60):
                problems.append(f"DAY_START_TIME out of range: {cls.DAY_START_TIME}")
        except ValueError:
            problems.append(f"DAY_START_TIME must be HH:MM, got {cls.DAY_START_TIME!r}")
        if problems:
            raise ValueError(f"Invalid configuration: {'; '.join(problems)}")
