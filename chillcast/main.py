"""FastAPI backend exposing Chillcast cooling, projection and timer endpoints."""

from __future__ import annotations

import logging
import math
from functools import lru_cache

import requests
from fastapi import Depends, FastAPI, HTTPException, Query

from . import weather
from .config import DEFAULT_CONFIG, TARGET_PRESETS, Settings, load_settings
from .schemas import (
    AmbientVesselInput,
    CleanupResponse,
    CoolingLocation,
    CoolingRequest,
    CoolingTimeResponse,
    MediumOut,
    PresetsResponse,
    ProjectionAutoRequest,
    ProjectionPointOut,
    ProjectionRequest,
    ProjectionResponse,
    PushPublicKeyResponse,
    SubscriptionRequest,
    SuccessResponse,
    TargetPreset,
    TemperatureRequest,
    TemperatureResponse,
    TimerCreateRequest,
    TimerCreateResponse,
    TimerOut,
    TimerStatusResponse,
    ValidationResponse,
    VesselInput,
    WeatherResponse,
)
from .services.coefficients import MEDIUM_PROFILES, medium_profile
from .services.cooling_model import CoolingModel, CoolingParameters
from .services.forecast_projector import (
    ForecastProjector,
    ForecastSample,
    ProjectionPoint,
    first_freeze_risk,
    first_target_reached,
    hours_until,
)
from .services.timers import TimerRequestError, TimerService
from .store import KeyValueStore, PostgresKeyValueStore

logger = logging.getLogger(__name__)

app = FastAPI(title="Chillcast API", version="0.1.0")
model = CoolingModel()
projector = ForecastProjector()


@lru_cache
def get_settings() -> Settings:
    return load_settings()


@lru_cache
def get_store() -> KeyValueStore:
    """Key-value store built, validated and migrated once per process."""
    store = PostgresKeyValueStore(get_settings().require_database_url())
    store.init_schema()
    return store


def get_timer_service(store: KeyValueStore = Depends(get_store)) -> TimerService:
    return TimerService(store, model)


def _base_ambient(request: AmbientVesselInput) -> float:
    if request.base_ambient_temp is not None:
        return request.base_ambient_temp
    if request.location is None or request.location is CoolingLocation.OUTSIDE:
        raise HTTPException(
            status_code=400,
            detail="base_ambient_temp is required unless location is freezer or fridge",
        )
    return DEFAULT_CONFIG.location_ambient_c[request.location.value]


def _require_positive_volume(request: VesselInput) -> None:
    if request.volume_ml <= 0:
        raise HTTPException(status_code=400, detail="volume must be positive")


def _to_parameters(
    request: VesselInput, base_ambient_temp: float, target_temp: float
) -> CoolingParameters:
    return CoolingParameters(
        current_temp=request.current_temp,
        target_temp=target_temp,
        base_ambient_temp=base_ambient_temp,
        volume_ml=request.volume_ml,
        vessel_material=request.vessel_material,
        cooling_medium=request.cooling_medium,
    )


def _cooling_parameters(request: CoolingRequest) -> CoolingParameters:
    return _to_parameters(request, _base_ambient(request), request.target_temp)


def _projection_response(points: list[ProjectionPoint]) -> ProjectionResponse:
    reached = first_target_reached(points)
    freeze = first_freeze_risk(points)
    return ProjectionResponse(
        points=[
            ProjectionPointOut(
                timestamp=p.timestamp,
                beverage_temp=p.beverage_temp,
                ambient_temp=p.ambient_temp,
                target_reached=p.target_reached,
                freeze_risk=p.freeze_risk,
            )
            for p in points
        ],
        target_reached_at=reached.timestamp if reached else None,
        hours_to_target=hours_until(points, reached) if reached else None,
        freeze_risk_at=freeze.timestamp if freeze else None,
    )


@app.get("/health")
def health() -> dict[str, str]:
    """Service health endpoint."""
    return {"status": "ok"}


@app.get("/v1/presets", response_model=PresetsResponse)
def presets() -> PresetsResponse:
    """Target presets, location ambients and cooling media with warnings."""
    return PresetsResponse(
        targets=[
            TargetPreset(label=label, value=value, description=description)
            for label, value, description in TARGET_PRESETS
        ],
        locations=dict(DEFAULT_CONFIG.location_ambient_c),
        media=[
            MediumOut(
                medium=medium,
                name=profile.name,
                ambient_temp=profile.ambient_temp,
                description=profile.description,
                warning=profile.warning,
            )
            for medium, profile in MEDIUM_PROFILES.items()
        ],
    )


@app.post("/v1/cooling/validate", response_model=ValidationResponse)
def validate_cooling(request: CoolingRequest) -> ValidationResponse:
    """Report whether the parameters describe a reachable cooling goal."""
    params = _cooling_parameters(request)
    error = model.validate(params)
    return ValidationResponse(
        valid=error is None,
        code=error.code.value if error else None,
        message=error.message if error else None,
        effective_ambient_temp=params.effective_ambient,
    )


@app.post("/v1/cooling/time", response_model=CoolingTimeResponse)
def cooling_time(request: CoolingRequest) -> CoolingTimeResponse:
    """Minutes until the target is reached; 400 on invalid parameters."""
    params = _cooling_parameters(request)
    error = model.validate(params)
    if error is not None:
        raise HTTPException(status_code=400, detail=error.message)
    minutes = model.solve_cooling_time(params)
    reachable = not math.isinf(minutes)
    return CoolingTimeResponse(
        minutes=int(minutes) if reachable else None,
        reachable=reachable,
        effective_ambient_temp=params.effective_ambient,
        warning=medium_profile(params.cooling_medium).warning,
    )


@app.post("/v1/cooling/temperature", response_model=TemperatureResponse)
def cooling_temperature(request: TemperatureRequest) -> TemperatureResponse:
    """Beverage temperature after the requested number of minutes."""
    _require_positive_volume(request)
    params = _to_parameters(request, _base_ambient(request), request.current_temp)
    return TemperatureResponse(
        minutes=request.minutes,
        temperature=model.temperature_at_time(params, request.minutes),
    )


@app.post("/v1/projection", response_model=ProjectionResponse)
def project_forecast(request: ProjectionRequest) -> ProjectionResponse:
    """Project beverage temperature over caller-supplied hourly samples."""
    _require_positive_volume(request)
    forecast = [ForecastSample(hour.timestamp, hour.ambient_temp) for hour in request.hours]
    params = _to_parameters(request, 0.0, request.target_temp)
    return _projection_response(projector.project(params, forecast, request.target_temp))


@app.post("/v1/projection/auto", response_model=ProjectionResponse)
def project_forecast_auto(request: ProjectionAutoRequest) -> ProjectionResponse:
    """Fetch the hourly forecast for a coordinate and project over it."""
    _require_positive_volume(request)
    settings = get_settings()
    try:
        forecast = weather.fetch_hourly_forecast(
            request.latitude,
            request.longitude,
            days=request.forecast_days or settings.forecast_days,
            url=settings.weather_api_url,
        )
    except (requests.RequestException, ValueError) as exc:
        logger.exception("Forecast fetch failed")
        raise HTTPException(status_code=502, detail="Failed to fetch weather forecast") from exc

    params = _to_parameters(request, 0.0, request.target_temp)
    return _projection_response(projector.project(params, forecast, request.target_temp))


@app.get("/v1/weather", response_model=WeatherResponse)
def current_weather(
    latitude: float = Query(..., ge=-90.0, le=90.0),
    longitude: float = Query(..., ge=-180.0, le=180.0),
) -> WeatherResponse:
    """Current outdoor temperature used for the outside location."""
    try:
        reading = weather.fetch_current_temperature(
            latitude, longitude, url=get_settings().weather_api_url
        )
    except (requests.RequestException, ValueError) as exc:
        logger.exception("Weather fetch failed")
        raise HTTPException(status_code=502, detail="Failed to fetch weather data") from exc
    return WeatherResponse(
        temperature=reading.temperature,
        latitude=reading.latitude,
        longitude=reading.longitude,
        timestamp=reading.timestamp,
    )


@app.post("/v1/timers", response_model=TimerCreateResponse)
def create_timer(
    request: TimerCreateRequest,
    timers: TimerService = Depends(get_timer_service),
) -> TimerCreateResponse:
    """Validate, solve and persist a countdown for the user."""
    params = _cooling_parameters(request.cooling)
    try:
        timer, minutes = timers.create_timer(request.user_id, params, request.beverage_name)
    except TimerRequestError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return TimerCreateResponse(
        start_time=timer.start_time,
        expiry_time=timer.expiry_time,
        cooling_minutes=minutes,
    )


@app.get("/v1/timers/{user_id}", response_model=TimerStatusResponse)
def timer_status(
    user_id: str,
    timers: TimerService = Depends(get_timer_service),
) -> TimerStatusResponse:
    """Remaining time for the user's active timer, if any."""
    status = timers.get_status(user_id)
    if status is None:
        return TimerStatusResponse(has_timer=False, timer=None)
    return TimerStatusResponse(
        has_timer=True,
        timer=TimerOut(
            **status.timer.to_dict(),
            remaining_ms=status.remaining_ms,
            remaining_minutes=status.remaining_minutes,
            is_expired=status.is_expired,
        ),
    )


@app.delete("/v1/timers/{user_id}", response_model=SuccessResponse)
def cancel_timer(
    user_id: str,
    timers: TimerService = Depends(get_timer_service),
) -> SuccessResponse:
    timers.cancel_timer(user_id)
    return SuccessResponse(success=True)


@app.get("/v1/push/public-key", response_model=PushPublicKeyResponse)
def push_public_key() -> PushPublicKeyResponse:
    """VAPID application server key browsers subscribe with."""
    public_key = get_settings().vapid_public_key
    if not public_key:
        raise HTTPException(status_code=503, detail="Push notifications are not configured")
    return PushPublicKeyResponse(public_key=public_key)


@app.post("/v1/subscriptions", response_model=SuccessResponse)
def subscribe(
    request: SubscriptionRequest,
    timers: TimerService = Depends(get_timer_service),
) -> SuccessResponse:
    """Store the push subscription used for ready notifications."""
    try:
        timers.save_subscription(request.user_id, request.subscription)
    except TimerRequestError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return SuccessResponse(success=True)


@app.delete("/v1/subscriptions/{user_id}", response_model=SuccessResponse)
def unsubscribe(
    user_id: str,
    timers: TimerService = Depends(get_timer_service),
) -> SuccessResponse:
    timers.remove_subscription(user_id)
    return SuccessResponse(success=True)


@app.post("/v1/admin/cleanup-timers", response_model=CleanupResponse)
def cleanup_timers(timers: TimerService = Depends(get_timer_service)) -> CleanupResponse:
    """Delete every stored timer."""
    deleted = timers.cleanup_timers()
    if deleted == 0:
        return CleanupResponse(deleted=0, message="No timers to clean up")
    return CleanupResponse(deleted=deleted, message=f"Cleaned up {deleted} old timers")
