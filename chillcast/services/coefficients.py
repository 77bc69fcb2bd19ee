"""Heat-transfer coefficient derivation shared by the model and projector.

The coefficient ``k`` (per minute) starts from a material base value, is
scaled by surface-area-to-volume against a 330 ml reference can
(SA/V ∝ V^(-1/3) for geometrically similar cylinders), and is multiplied by
the active cooling medium's profile.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

from ..config import DEFAULT_CONFIG, CoolingConfig


class VesselMaterial(str, Enum):
    """Container material."""

    ALUMINUM = "aluminum"
    GLASS = "glass"


class CoolingMedium(str, Enum):
    """Explicit cooling method; NONE means still air at the base ambient."""

    NONE = "none"
    SNOW = "snow"
    WATER = "water"
    ICE_WATER = "ice_water"
    SALT_ICE_WATER = "salt_ice_water"
    CO2 = "co2"


@dataclass(frozen=True)
class MediumProfile:
    """Static heat-transfer characteristics of a cooling medium."""

    name: str
    ambient_temp: float | None
    multiplier: float
    aluminum_bonus: float
    description: str
    warning: str | None = None


MEDIUM_PROFILES: dict[CoolingMedium, MediumProfile] = {
    CoolingMedium.NONE: MediumProfile(
        name="Air",
        ambient_temp=None,
        multiplier=1.0,
        aluminum_bonus=1.0,
        description="Still air at the chosen location temperature",
    ),
    CoolingMedium.SNOW: MediumProfile(
        name="In Snow",
        ambient_temp=0.0,
        multiplier=1.3,
        aluminum_bonus=1.1,
        description="Snow provides better contact than air but less than water",
    ),
    CoolingMedium.WATER: MediumProfile(
        name="In Cold Water",
        ambient_temp=10.0,
        multiplier=2.5,
        aluminum_bonus=1.3,
        description="Cold tap water conducts heat far better than air",
    ),
    CoolingMedium.ICE_WATER: MediumProfile(
        name="In Ice Water",
        ambient_temp=0.0,
        multiplier=4.0,
        aluminum_bonus=1.4,
        description="Ice-water bath absorbs heat through melting ice",
    ),
    CoolingMedium.SALT_ICE_WATER: MediumProfile(
        name="In Salt Ice Water",
        ambient_temp=-21.0,
        multiplier=6.0,
        aluminum_bonus=1.4,
        description="Salt lowers the freezing point to the NaCl eutectic (~-21 °C)",
    ),
    CoolingMedium.CO2: MediumProfile(
        name="CO2 Fire Extinguisher",
        ambient_temp=-78.5,
        multiplier=12.0,
        aluminum_bonus=1.4,
        description="Sublimating dry ice at -78.5 °C in direct contact",
        warning="Can cause thermal shock! Risk of explosion with sealed containers.",
    ),
}


def medium_profile(medium: CoolingMedium) -> MediumProfile:
    """Return the static profile for *medium*."""
    return MEDIUM_PROFILES[medium]


def resolve_ambient(medium: CoolingMedium, base_ambient_temp: float) -> float:
    """Ambient temperature the beverage approaches; an active medium wins."""
    profile = MEDIUM_PROFILES[medium]
    if profile.ambient_temp is None:
        return base_ambient_temp
    return profile.ambient_temp


def base_coefficient(material: VesselMaterial, config: CoolingConfig = DEFAULT_CONFIG) -> float:
    """Per-minute coefficient for *material* before volume and medium scaling."""
    if material is VesselMaterial.ALUMINUM:
        return config.aluminum_base_k
    return config.glass_base_k


def derive_coefficient(
    material: VesselMaterial,
    volume_ml: float,
    medium: CoolingMedium,
    base_ambient_temp: float,
    config: CoolingConfig = DEFAULT_CONFIG,
) -> tuple[float, float]:
    """Compute ``(k, effective_ambient)`` for a vessel in a cooling medium.

    Pure arithmetic; *volume_ml* must already be validated as positive.
    """
    k = base_coefficient(material, config)
    k *= math.pow(config.reference_volume_ml / volume_ml, config.volume_exponent)

    profile = MEDIUM_PROFILES[medium]
    k *= profile.multiplier
    if material is VesselMaterial.ALUMINUM:
        k *= profile.aluminum_bonus

    return k, resolve_ambient(medium, base_ambient_temp)
