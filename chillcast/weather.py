"""Open-Meteo integration (current temperature & hourly forecast)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import OPEN_METEO_FORECAST_URL
from .services.cooling_model import round_half_up
from .services.forecast_projector import ForecastSample

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 15
DEFAULT_FORECAST_DAYS = 7

_RETRY_CONFIG = Retry(
    total=3,
    backoff_factor=1.5,
    status_forcelist=[429, 500, 502, 503, 504],
    allowed_methods=["GET"],
    raise_on_status=False,
)


@dataclass
class WeatherReading:
    """Current outdoor temperature at a coordinate."""

    temperature: int
    latitude: float
    longitude: float
    timestamp: str


# --- Internal helpers -------------------------------------------------------


def _build_session() -> requests.Session:
    """Create a ``requests.Session`` with retry/backoff on both schemes."""
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=_RETRY_CONFIG)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


def _label(latitude: float, longitude: float) -> str:
    return f"{latitude:.4f},{longitude:.4f}"


def validate_coordinates(latitude: float, longitude: float) -> None:
    """Raise ``ValueError`` for coordinates outside the WGS84 range."""
    if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
        raise ValueError(f"Coordinates out of range: {latitude}, {longitude}")


def _get_json(
    session: requests.Session, url: str, params: dict[str, Any], label: str
) -> dict[str, Any]:
    """GET *url* with *params* and return parsed JSON.

    Raises:
        requests.HTTPError: Non-2xx after retries.
        requests.exceptions.Timeout: Request exceeded deadline.
    """
    try:
        response = session.get(url, params=params, timeout=REQUEST_TIMEOUT_SECONDS)
        response.raise_for_status()
    except requests.exceptions.Timeout:
        logger.error("[%s] Request timed out after %s s.", label, REQUEST_TIMEOUT_SECONDS)
        raise
    except requests.exceptions.RetryError as exc:
        logger.error("[%s] All retries exhausted: %s", label, exc)
        raise
    return response.json()  # type: ignore[return-value]


def _parse_hourly(label: str, hourly: dict[str, Any]) -> list[ForecastSample]:
    """Convert the parallel-array ``hourly`` block into forecast samples.

    Unparseable timestamps and missing temperatures are skipped with a warning.
    """
    times: list[str] = hourly.get("time") or []
    if not times:
        logger.warning("[%s] No hourly time entries in response.", label)
        return []

    temperatures = hourly.get("temperature_2m") or [None] * len(times)

    samples: list[ForecastSample] = []
    for ts_str, temp in zip(times, temperatures):
        try:
            ts = datetime.fromisoformat(ts_str).replace(tzinfo=timezone.utc)
        except ValueError:
            logger.warning("[%s] Skipping unparseable timestamp '%s'.", label, ts_str)
            continue
        if temp is None:
            logger.warning("[%s] Skipping %s with no temperature.", label, ts_str)
            continue
        samples.append(ForecastSample(timestamp=ts, ambient_temp=float(temp)))
    return samples


# --- Public API -------------------------------------------------------------


def fetch_current_temperature(
    latitude: float,
    longitude: float,
    url: str = OPEN_METEO_FORECAST_URL,
) -> WeatherReading:
    """Fetch the current 2 m temperature for a coordinate.

    Raises:
        ValueError: Coordinates out of range or malformed ``current`` block.
        requests.HTTPError: Non-2xx after retries.
    """
    validate_coordinates(latitude, longitude)
    label = _label(latitude, longitude)
    params: dict[str, Any] = {
        "latitude": latitude,
        "longitude": longitude,
        "current": "temperature_2m",
    }
    payload = _get_json(_build_session(), url, params, label)
    current = payload.get("current")
    if not isinstance(current, dict) or not isinstance(
        current.get("temperature_2m"), (int, float)
    ):
        raise ValueError(f"[{label}] 'current.temperature_2m' missing in forecast response")

    return WeatherReading(
        temperature=int(round_half_up(current["temperature_2m"])),
        latitude=latitude,
        longitude=longitude,
        timestamp=current.get("time") or datetime.now(timezone.utc).isoformat(),
    )


def fetch_hourly_forecast(
    latitude: float,
    longitude: float,
    days: int = DEFAULT_FORECAST_DAYS,
    url: str = OPEN_METEO_FORECAST_URL,
) -> list[ForecastSample]:
    """Fetch hourly ambient temperatures for the next *days* days.

    Returns:
        ``ForecastSample`` list ordered by timestamp.

    Raises:
        ValueError: Coordinates out of range or missing ``hourly`` block.
        requests.HTTPError: Non-2xx after retries.
    """
    validate_coordinates(latitude, longitude)
    label = _label(latitude, longitude)
    params: dict[str, Any] = {
        "latitude": latitude,
        "longitude": longitude,
        "hourly": "temperature_2m",
        "timezone": "UTC",
        "forecast_days": days,
    }
    logger.info("[forecast] %s for %d days", label, days)
    payload = _get_json(_build_session(), url, params, label)
    hourly = payload.get("hourly")
    if not isinstance(hourly, dict):
        raise ValueError(f"[{label}] 'hourly' key missing in forecast response")
    samples = _parse_hourly(label, hourly)
    logger.info("[forecast] [%s] parsed %d samples.", label, len(samples))
    return samples
