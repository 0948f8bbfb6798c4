"""Centralized unit documentation for hydroflux.

Provides a single place to see what units the process layer expects for
storages, rates, forcings and parameters. Kernels do no unit conversion:
callers must supply values in these units.

Storages and fluxes are expressed per unit area of the spatial unit
(not per unit canopy area) unless noted.
"""

from __future__ import annotations

from dataclasses import dataclass

from hydroflux.process.state import SVType


@dataclass(frozen=True, slots=True)
class UnitSpec:
    """Document a quantity's units."""

    units: str
    notes: str = ""


# -----------------------------------------------------------------------------
# State variables (storage units; rates are the same per day)
# -----------------------------------------------------------------------------

STATE_UNITS: dict[SVType, UnitSpec] = {
    SVType.CANOPY: UnitSpec("mm"),
    SVType.CANOPY_SNOW: UnitSpec("mm", "snow water equivalent"),
    SVType.TRUNK: UnitSpec("mm"),
    SVType.ATMOSPHERE: UnitSpec("mm", "cumulative loss sink"),
    SVType.AET: UnitSpec("mm", "actual ET consumed in the current step"),
    SVType.PONDED_WATER: UnitSpec("mm"),
    SVType.SNOW: UnitSpec("mm", "snow water equivalent"),
    SVType.SURFACE_WATER: UnitSpec("mm"),
    SVType.SOIL: UnitSpec("mm"),
    SVType.DEPRESSION: UnitSpec("mm"),
    SVType.CONSTITUENT: UnitSpec("mg/m^2"),
}

RATE_TIME_UNITS = "day"


# -----------------------------------------------------------------------------
# Forcings and parameters
# -----------------------------------------------------------------------------

FORCING_UNITS: dict[str, UnitSpec] = {
    "pet": UnitSpec("mm/day", "negative values are treated as zero"),
    "wind_vel": UnitSpec("m/s"),
    "temp_ave": UnitSpec("C"),
}

PARAM_UNITS: dict[str, UnitSpec] = {
    "FOREST_COVERAGE": UnitSpec("unitless", "fraction [0, 1]"),
    "MAX_CAPACITY": UnitSpec("mm", "per unit canopy area"),
    "TRUNK_FRACTION": UnitSpec("unitless", "fraction [0, 1]"),
    "STEMFLOW_FRAC": UnitSpec("unitless", "fraction [0, 1]"),
    "DRIP_PROPORTION": UnitSpec("1/day"),
    "SNOW_ROUGHNESS": UnitSpec("m"),
}


def state_units(sv_type: SVType) -> str:
    """Storage units of a compartment type."""
    return STATE_UNITS[SVType(sv_type)].units


def rate_units(sv_type: SVType) -> str:
    """Flux units for transfers out of a compartment type."""
    return f"{state_units(sv_type)}/{RATE_TIME_UNITS}"


def param_units(name: str) -> str:
    """Units of a named parameter, or 'unknown' if undocumented."""
    spec = PARAM_UNITS.get(name.upper())
    return spec.units if spec is not None else "unknown"
