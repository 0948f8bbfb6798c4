"""Spatial unit (HRU) properties, forcing and time containers.

These are read-only inputs to every process. Property containers are
validated on construction so that a misconfigured unit fails during
model assembly rather than producing silent garbage rates.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from hydroflux.process.errors import ConfigurationError

__all__ = [
    "HRUType",
    "SurfaceProps",
    "VegetationProps",
    "VegVarProps",
    "ForcingSample",
    "HydroUnit",
    "TimeStruct",
]


class HRUType(str, Enum):
    """Spatial unit categories."""
    STANDARD = "standard"
    WETLAND = "wetland"
    LAKE = "lake"
    GLACIER = "glacier"
    ROCK = "rock"


def _check_fraction(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise ConfigurationError(f"{name} must be within [0, 1], got {value}")


def _check_non_negative(name: str, value: float) -> None:
    if value < 0.0:
        raise ConfigurationError(f"{name} must be non-negative, got {value}")


@dataclass(frozen=True)
class SurfaceProps:
    """Land use / surface properties.

    Attributes
    ----------
    forest_coverage : float
        Fraction of the unit covered by forest canopy, Fc [0, 1]
    """

    forest_coverage: float = 0.0

    def __post_init__(self):
        _check_fraction("forest_coverage", self.forest_coverage)


@dataclass(frozen=True)
class VegetationProps:
    """Static vegetation class properties.

    Attributes
    ----------
    trunk_fraction : float
        Fraction of canopy evaporation drawn from trunk storage [0, 1]
    stemflow_frac : float
        Fraction of canopy overflow diverted to stemflow [0, 1]
    drip_proportion : float
        Slow-drain drip coefficient (1/d)
    max_capacity : float
        Maximum canopy rain storage capacity (mm)
    max_height : float
        Maximum vegetation height (m)
    """

    trunk_fraction: float = 0.0
    stemflow_frac: float = 0.0
    drip_proportion: float = 0.0
    max_capacity: float = 0.0
    max_height: float = 0.0

    def __post_init__(self):
        _check_fraction("trunk_fraction", self.trunk_fraction)
        _check_fraction("stemflow_frac", self.stemflow_frac)
        _check_non_negative("drip_proportion", self.drip_proportion)
        _check_non_negative("max_capacity", self.max_capacity)
        _check_non_negative("max_height", self.max_height)


@dataclass(frozen=True)
class VegVarProps:
    """Season-dependent vegetation properties.

    Attributes
    ----------
    capacity : float
        Current canopy storage capacity per unit canopy area (mm)
    height : float
        Current vegetation height (m)
    """

    capacity: float = 0.0
    height: float = 0.0

    def __post_init__(self):
        _check_non_negative("capacity", self.capacity)
        _check_non_negative("height", self.height)


@dataclass(frozen=True)
class ForcingSample:
    """Meteorological forcing for one unit and timestep.

    Attributes
    ----------
    pet : float
        Potential evapotranspiration (mm/d); negative values are
        tolerated and treated as zero by the processes
    wind_vel : float
        Wind velocity (m/s)
    temp_ave : float
        Average air temperature (C)
    """

    pet: float = 0.0
    wind_vel: float = 0.0
    temp_ave: float = 0.0


@dataclass(frozen=True)
class HydroUnit:
    """One homogeneous simulated land area as seen by a process."""

    hru_id: int | str = 0
    hru_type: HRUType = HRUType.STANDARD
    surface: SurfaceProps = field(default_factory=SurfaceProps)
    vegetation: VegetationProps = field(default_factory=VegetationProps)
    veg_var: VegVarProps = field(default_factory=VegVarProps)
    forcing: ForcingSample = field(default_factory=ForcingSample)

    def with_forcing(self, forcing: ForcingSample) -> HydroUnit:
        """Copy of this unit carrying a new forcing sample."""
        return HydroUnit(
            hru_id=self.hru_id,
            hru_type=self.hru_type,
            surface=self.surface,
            vegetation=self.vegetation,
            veg_var=self.veg_var,
            forcing=forcing,
        )


@dataclass(frozen=True)
class TimeStruct:
    """Model time at which a process is evaluated.

    Attributes
    ----------
    model_time : float
        Days since simulation start
    day_of_year : int
        Julian day (1-366)
    year : int
        Calendar year
    """

    model_time: float = 0.0
    day_of_year: int = 1
    year: int = 2000
