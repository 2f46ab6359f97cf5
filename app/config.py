from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()


class Config:
    # Slot grids (public booking page vs. operator calendar)
    SLOT_STEP_MINUTES: int = int(os.getenv("SLOT_STEP_MINUTES", "15"))
    CALENDAR_SNAP_MINUTES: int = int(os.getenv("CALENDAR_SNAP_MINUTES", "10"))

    # Visible calendar bounds, hour of day
    CALENDAR_MIN_HOUR: int = int(os.getenv("CALENDAR_MIN_HOUR", "7"))
    CALENDAR_MAX_HOUR: int = int(os.getenv("CALENDAR_MAX_HOUR", "22"))

    # Services
    MIN_BOOKING_DURATION_MINUTES: int = int(os.getenv("MIN_BOOKING_DURATION_MINUTES", "5"))
    DEFAULT_SERVICE_DURATION_MINUTES: int = int(os.getenv("DEFAULT_SERVICE_DURATION_MINUTES", "30"))

    # Salon-local wall clock used when a request does not name one
    DEFAULT_TIMEZONE: str = os.getenv("DEFAULT_TIMEZONE", "UTC")

    # HTTP
    CORS_ALLOWED_ORIGINS: list[str] = [
        origin.strip()
        for origin in os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:3000").split(",")
        if origin.strip()
    ]
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
