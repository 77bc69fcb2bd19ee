"""Configuration for Chillcast cooling defaults and runtime settings."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

OPEN_METEO_FORECAST_URL = "https://api.open-meteo.com/v1/forecast"


@dataclass(frozen=True)
class CoolingConfig:
    """Physical constants for the cooling model and projection."""

    reference_volume_ml: float = 330.0
    volume_exponent: float = 0.33
    aluminum_base_k: float = 0.012
    glass_base_k: float = 0.011
    freeze_threshold_c: float = 1.0
    projection_step_minutes: float = 60.0
    min_projection_points: int = 24
    location_ambient_c: dict[str, float] = field(
        default_factory=lambda: {"freezer": -20.0, "fridge": 5.0}
    )


DEFAULT_CONFIG = CoolingConfig()

# (label, °C, description)
TARGET_PRESETS: list[tuple[str, float, str]] = [
    ("Slushy", 0.0, "Icy slushy consistency"),
    ("Super Cold", 1.0, "Almost freezing, very cold"),
    ("Perfect", 2.0, "Ideal drinking temperature"),
    ("Cold", 3.0, "Nice and cold"),
    ("Chilled", 4.0, "Lightly chilled"),
    ("Cool", 5.0, "Just cool enough"),
    ("Cool-ish", 6.0, "Barely chilled"),
]


@dataclass(frozen=True)
class Settings:
    """Runtime settings resolved from the environment."""

    database_url: str | None = None
    weather_api_url: str = OPEN_METEO_FORECAST_URL
    forecast_days: int = 7
    worker_poll_seconds: float = 30.0
    notify_timeout_seconds: float = 10.0
    vapid_public_key: str | None = None
    vapid_private_key: str | None = None
    vapid_subject: str | None = None
    max_delivery_attempts: int = 5

    def require_database_url(self) -> str:
        """Return the database URL or raise when it is not configured."""
        if not self.database_url:
            raise RuntimeError("Missing required environment variable: DATABASE_URL")
        return self.database_url

    def require_vapid(self) -> tuple[str, str]:
        """Return (private key, subject) or raise when push is not configured."""
        missing = [
            name
            for name, value in (
                ("VAPID_PRIVATE_KEY", self.vapid_private_key),
                ("VAPID_SUBJECT", self.vapid_subject),
            )
            if not value
        ]
        if missing:
            raise RuntimeError(f"Missing required environment variable: {', '.join(missing)}")
        return self.vapid_private_key, self.vapid_subject


def load_settings() -> Settings:
    """Load settings from ``.env`` and the process environment."""
    load_dotenv()
    return Settings(
        database_url=os.getenv("DATABASE_URL") or None,
        weather_api_url=os.getenv("WEATHER_API_URL", OPEN_METEO_FORECAST_URL),
        forecast_days=int(os.getenv("FORECAST_DAYS", "7")),
        worker_poll_seconds=float(os.getenv("WORKER_POLL_SECONDS", "30")),
        notify_timeout_seconds=float(os.getenv("NOTIFY_TIMEOUT_SECONDS", "10")),
        vapid_public_key=os.getenv("VAPID_PUBLIC_KEY") or None,
        vapid_private_key=os.getenv("VAPID_PRIVATE_KEY") or None,
        vapid_subject=os.getenv("VAPID_SUBJECT") or None,
        max_delivery_attempts=int(os.getenv("MAX_DELIVERY_ATTEMPTS", "5")),
    )
