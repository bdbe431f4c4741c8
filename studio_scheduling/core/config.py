"""Configuration settings for the scheduling service."""

import os
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


class Settings:
    PROJECT_NAME: str = os.getenv("PROJECT_NAME", "Studio Scheduling Service")
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./studio_scheduling.db")
    SECRET_KEY: str = os.getenv("SECRET_KEY", "")
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
    ADMIN_ROLE: str = os.getenv("ADMIN_ROLE", "admin")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    NOTIFICATION_SERVICE_URL: str = os.getenv(
        "NOTIFICATION_SERVICE_URL",
        "http://localhost:8004",
    )
    NOTIFICATION_SERVICE_TIMEOUT: float = float(
        os.getenv("NOTIFICATION_SERVICE_TIMEOUT", "10")
    )

    # An equipment item that is still checked out blocks new bookings until
    # at least now + this horizon, since its real return time is unknown.
    EQUIPMENT_CUSTODY_HORIZON_HOURS: float = float(
        os.getenv("EQUIPMENT_CUSTODY_HORIZON_HOURS", "24")
    )
    # Items without an explicit next maintenance date are due this long after
    # their last maintenance (or registration).
    MAINTENANCE_INTERVAL_DAYS: int = int(os.getenv("MAINTENANCE_INTERVAL_DAYS", "180"))
    RECURRENCE_MAX_OCCURRENCES: int = int(os.getenv("RECURRENCE_MAX_OCCURRENCES", "365"))
    RECURRENCE_MAX_HORIZON_DAYS: int = int(os.getenv("RECURRENCE_MAX_HORIZON_DAYS", "730"))
    AVAILABILITY_MAX_WORKERS: int = int(os.getenv("AVAILABILITY_MAX_WORKERS", "8"))
    AVAILABILITY_TIMEOUT_SECONDS: float = float(
        os.getenv("AVAILABILITY_TIMEOUT_SECONDS", "10")
    )
    RESOURCE_LOCK_TIMEOUT_SECONDS: float = float(
        os.getenv("RESOURCE_LOCK_TIMEOUT_SECONDS", "10")
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()

__all__ = ["settings", "get_settings", "Settings"]
