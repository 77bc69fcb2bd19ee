"""Hour-by-hour beverage temperature projection against an ambient forecast."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import NamedTuple, Sequence

from ..config import DEFAULT_CONFIG, CoolingConfig
from .coefficients import resolve_ambient
from .cooling_model import CoolingModel, CoolingParameters, round_half_up


class ForecastSample(NamedTuple):
    """Ambient temperature for one forecast hour."""

    timestamp: datetime
    ambient_temp: float


@dataclass(frozen=True)
class ProjectionPoint:
    """Predicted beverage state at one forecast timestamp."""

    timestamp: datetime
    beverage_temp: float
    ambient_temp: float
    target_reached: bool
    freeze_risk: bool


@dataclass
class ForecastProjector:
    """Walks a forecast applying Newton's Law over fixed hourly steps.

    Each sample is treated as the ambient held for the hour that follows it,
    so step *i* is driven by sample *i - 1*. An active cooling medium
    replaces the outdoor forecast entirely.
    """

    config: CoolingConfig = DEFAULT_CONFIG

    def project(
        self,
        params: CoolingParameters,
        forecast: Sequence[ForecastSample],
        target_temp: float,
    ) -> list[ProjectionPoint]:
        """Project beverage temperature for every sample in *forecast*.

        ``params.base_ambient_temp`` and ``params.target_temp`` are ignored.
        An empty forecast yields an empty projection.
        """
        if not forecast:
            return []

        k, _ = CoolingModel(self.config).coefficient(params)
        step_decay = math.exp(-k * self.config.projection_step_minutes)

        points: list[ProjectionPoint] = []
        beverage_temp = params.current_temp
        prev_ambient = 0.0

        for index, sample in enumerate(forecast):
            ambient = resolve_ambient(params.cooling_medium, sample.ambient_temp)
            if index > 0:
                beverage_temp = prev_ambient + (beverage_temp - prev_ambient) * step_decay

            shown = round_half_up(beverage_temp, 1)
            point = ProjectionPoint(
                timestamp=sample.timestamp,
                beverage_temp=shown,
                ambient_temp=ambient,
                target_reached=shown <= target_temp,
                freeze_risk=shown < self.config.freeze_threshold_c,
            )
            points.append(point)
            prev_ambient = ambient

            if (
                point.target_reached
                and point.freeze_risk
                and len(points) >= self.config.min_projection_points
            ):
                break

        return points


def first_target_reached(points: Sequence[ProjectionPoint]) -> ProjectionPoint | None:
    return next((p for p in points if p.target_reached), None)


def first_freeze_risk(points: Sequence[ProjectionPoint]) -> ProjectionPoint | None:
    return next((p for p in points if p.freeze_risk), None)


def hours_until(points: Sequence[ProjectionPoint], point: ProjectionPoint) -> int:
    """Whole hours between the first projected point and *point*."""
    delta = point.timestamp - points[0].timestamp
    return int(round_half_up(delta.total_seconds() / 3600))
