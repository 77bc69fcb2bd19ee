"""Pydantic request/response schemas for Chillcast endpoints."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from .services.coefficients import CoolingMedium, VesselMaterial


class CoolingLocation(str, Enum):
    FREEZER = "freezer"
    FRIDGE = "fridge"
    OUTSIDE = "outside"


class VesselInput(BaseModel):
    """Beverage and vessel description shared by every cooling request."""

    current_temp: float = Field(..., ge=-10.0, le=40.0, examples=[20.0])
    volume_ml: float = Field(default=330.0, examples=[330.0])
    vessel_material: VesselMaterial = VesselMaterial.ALUMINUM
    cooling_medium: CoolingMedium = CoolingMedium.NONE


class AmbientVesselInput(VesselInput):
    """Vessel plus environment; ``base_ambient_temp`` wins over ``location``."""

    base_ambient_temp: float | None = None
    location: CoolingLocation | None = Field(default=None, examples=["freezer"])


class CoolingRequest(AmbientVesselInput):
    target_temp: float = Field(..., ge=-10.0, le=40.0, examples=[2.0])


class ValidationResponse(BaseModel):
    valid: bool
    code: str | None = None
    message: str | None = None
    effective_ambient_temp: float


class CoolingTimeResponse(BaseModel):
    """Minutes to target; ``minutes`` is null when the target is unreachable."""

    minutes: int | None
    reachable: bool
    effective_ambient_temp: float
    warning: str | None = None


class TemperatureRequest(AmbientVesselInput):
    minutes: float = Field(..., ge=0.0)


class TemperatureResponse(BaseModel):
    minutes: float
    temperature: float


class ForecastHourInput(BaseModel):
    """One hourly ambient forecast point."""

    timestamp: datetime
    ambient_temp: float


class ProjectionRequest(VesselInput):
    """Projection over caller-supplied hourly ambient temperatures."""

    target_temp: float = Field(..., ge=-10.0, le=40.0)
    hours: list[ForecastHourInput] = Field(default_factory=list)


class ProjectionAutoRequest(VesselInput):
    """Projection over a forecast fetched for a coordinate."""

    target_temp: float = Field(..., ge=-10.0, le=40.0)
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    forecast_days: int | None = Field(default=None, ge=1, le=16)


class ProjectionPointOut(BaseModel):
    timestamp: datetime
    beverage_temp: float
    ambient_temp: float
    target_reached: bool
    freeze_risk: bool


class ProjectionResponse(BaseModel):
    """Projected trajectory plus the first target/freeze events, if any."""

    points: list[ProjectionPointOut]
    target_reached_at: datetime | None = None
    hours_to_target: int | None = None
    freeze_risk_at: datetime | None = None


class WeatherResponse(BaseModel):
    temperature: int
    latitude: float
    longitude: float
    timestamp: str


class TimerCreateRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    cooling: CoolingRequest
    beverage_name: str | None = None


class TimerCreateResponse(BaseModel):
    success: bool = True
    start_time: int
    expiry_time: int
    cooling_minutes: int


class TimerOut(BaseModel):
    user_id: str
    start_time: int
    expiry_time: int
    target_temp: float
    notification_sent: bool
    task_handle: str
    beverage_name: str | None = None
    delivery_attempts: int = 0
    remaining_ms: int
    remaining_minutes: int
    is_expired: bool


class TimerStatusResponse(BaseModel):
    has_timer: bool
    timer: TimerOut | None = None


class SubscriptionRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    subscription: dict[str, Any]


class SuccessResponse(BaseModel):
    success: bool


class CleanupResponse(BaseModel):
    success: bool = True
    deleted: int
    message: str


class TargetPreset(BaseModel):
    label: str
    value: float
    description: str


class MediumOut(BaseModel):
    medium: CoolingMedium
    name: str
    ambient_temp: float | None
    description: str
    warning: str | None = None


class PresetsResponse(BaseModel):
    targets: list[TargetPreset]
    locations: dict[str, float]
    media: list[MediumOut]


class PushPublicKeyResponse(BaseModel):
    public_key: str
