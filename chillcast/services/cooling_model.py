"""Newton's Law of Cooling solver for time-to-target and temperature-at-time.

T(t) = T_ambient + (T_initial - T_ambient) * e^(-kt), so the time to reach a
target is t = -ln((T_target - T_ambient) / (T_initial - T_ambient)) / k.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

from ..config import DEFAULT_CONFIG, CoolingConfig
from .coefficients import CoolingMedium, VesselMaterial, derive_coefficient, resolve_ambient


@dataclass(frozen=True)
class CoolingParameters:
    """One cooling request; a non-NONE medium overrides the base ambient."""

    current_temp: float
    target_temp: float
    base_ambient_temp: float
    volume_ml: float = 330.0
    vessel_material: VesselMaterial = VesselMaterial.ALUMINUM
    cooling_medium: CoolingMedium = CoolingMedium.NONE

    @property
    def effective_ambient(self) -> float:
        return resolve_ambient(self.cooling_medium, self.base_ambient_temp)


class ValidationErrorCode(str, Enum):
    INVALID_VOLUME = "invalid_volume"
    ALREADY_AT_OR_BELOW_AMBIENT = "already_at_or_below_ambient"
    ALREADY_AT_OR_BELOW_TARGET = "already_at_or_below_target"
    TARGET_UNREACHABLE_IN_ENVIRONMENT = "target_unreachable_in_environment"


@dataclass(frozen=True)
class CoolingValidationError:
    """Reason a parameter set cannot produce a meaningful cooling time."""

    code: ValidationErrorCode
    message: str


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves towards positive infinity (``round`` uses banker's rounding)."""
    scale = 10**digits
    return math.floor(value * scale + 0.5) / scale


@dataclass
class CoolingModel:
    """Closed-form cooling calculations over validated parameters."""

    config: CoolingConfig = DEFAULT_CONFIG

    def coefficient(self, params: CoolingParameters) -> tuple[float, float]:
        """Return ``(k, effective_ambient)`` for *params*."""
        return derive_coefficient(
            params.vessel_material,
            params.volume_ml,
            params.cooling_medium,
            params.base_ambient_temp,
            self.config,
        )

    def solve_cooling_time(self, params: CoolingParameters) -> float:
        """Minutes until *params.target_temp* is reached.

        Returns 0 when no cooling is possible or needed and ``math.inf`` when
        the target is at or below the ambient. Equality with the ambient is
        unreachable because the curve only meets it in the limit.
        """
        ambient = params.effective_ambient
        if params.current_temp <= ambient:
            return 0
        if params.target_temp >= params.current_temp:
            return 0
        if params.target_temp <= ambient:
            return math.inf

        k, ambient = self.coefficient(params)
        ratio = (params.target_temp - ambient) / (params.current_temp - ambient)
        minutes = -math.log(ratio) / k
        return max(0, int(round_half_up(minutes)))

    def temperature_at_time(self, params: CoolingParameters, minutes: float) -> float:
        """Beverage temperature after *minutes*, to one decimal.

        ``params.target_temp`` is ignored.
        """
        k, ambient = self.coefficient(params)
        temperature = ambient + (params.current_temp - ambient) * math.exp(-k * minutes)
        return round_half_up(temperature, 1)

    def validate(self, params: CoolingParameters) -> CoolingValidationError | None:
        """Check *params* before trusting :meth:`solve_cooling_time`."""
        if params.volume_ml <= 0:
            return CoolingValidationError(
                ValidationErrorCode.INVALID_VOLUME, "volume must be positive"
            )

        ambient = params.effective_ambient
        if params.current_temp <= ambient:
            return CoolingValidationError(
                ValidationErrorCode.ALREADY_AT_OR_BELOW_AMBIENT,
                "already at or below environment temperature",
            )
        if params.current_temp <= params.target_temp:
            return CoolingValidationError(
                ValidationErrorCode.ALREADY_AT_OR_BELOW_TARGET,
                "already cold enough, no cooling needed",
            )
        if params.target_temp <= ambient:
            return CoolingValidationError(
                ValidationErrorCode.TARGET_UNREACHABLE_IN_ENVIRONMENT,
                f"cannot cool to or below environment temperature {ambient:g}",
            )
        return None
