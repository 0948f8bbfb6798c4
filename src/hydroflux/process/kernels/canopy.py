"""Canopy interception storage fluxes.

Pure physics kernels for canopy evaporation, canopy snow sublimation and
canopy drip. All rates are per unit area of the spatial unit (mm/d) and
storages are depths (mm).
"""

from __future__ import annotations

from numba import njit

__all__ = [
    "rutter_evaporation",
    "maximum_evaporation",
    "drain_all",
    "rutter_drip",
    "slow_drain_drip",
    "clamp_outflow",
]


@njit(cache=True)
def rutter_evaporation(
    storage: float,
    capacity: float,
    forest_coverage: float,
    pet: float,
    trunk_fraction: float,
) -> float:
    """
    Evaporation proportional to fractional canopy saturation.

    E = (1 - Ft) * Fc * PET * (S / (C * Fc))

    Physical constraints:
        - S is clamped to [0, C * Fc] before use
        - 0 <= E <= (1 - Ft) * Fc * PET

    Parameters
    ----------
    storage : float
        Canopy storage (mm), may be slightly negative from numerical drift
    capacity : float
        Canopy storage capacity per unit canopy area (mm)
    forest_coverage : float
        Forest coverage fraction Fc, must be > 0
    pet : float
        Remaining potential ET (mm/d), >= 0
    trunk_fraction : float
        Fraction of evaporation drawn from trunk storage, Ft

    Returns
    -------
    float
        Canopy evaporation rate (mm/d)

    References
    ----------
    Rutter, A.J. et al. (1971) A predictive model of rainfall interception
    in forests.
    """
    cap = capacity * forest_coverage
    if cap <= 0.0:
        return 0.0
    stor = storage
    if stor < 0.0:
        stor = 0.0
    elif stor > cap:
        stor = cap
    return (1.0 - trunk_fraction) * forest_coverage * pet * (stor / cap)


@njit(cache=True)
def maximum_evaporation(forest_coverage: float, pet: float) -> float:
    """Evaporation at the full remaining potential rate over the canopy."""
    return forest_coverage * pet


@njit(cache=True)
def drain_all(storage: float, timestep: float) -> float:
    """Rate that empties the whole store within one timestep.

    Negative storage is treated as empty, so the rate is never negative.
    """
    if storage <= 0.0:
        return 0.0
    return storage / timestep


@njit(cache=True)
def rutter_drip(
    storage: float,
    capacity: float,
    forest_coverage: float,
    stemflow_frac: float,
    timestep: float,
) -> float:
    """
    Canopy drip as overflow above storage capacity.

    D = (1 - p) * max((S - Fc * C) / dt, 0)

    Storage in excess of capacity drains within one timestep, so the
    canopy can never hold more than its capacity for a full step.

    Parameters
    ----------
    storage : float
        Canopy storage (mm)
    capacity : float
        Canopy storage capacity per unit canopy area (mm)
    forest_coverage : float
        Forest coverage fraction Fc
    stemflow_frac : float
        Fraction of overflow diverted to stemflow, p
    timestep : float
        Timestep length (d)

    Returns
    -------
    float
        Drip rate (mm/d), >= 0

    References
    ----------
    Federer, C.A. (2010) BROOK90: A simulation model for evaporation, soil
    water, and streamflow.
    """
    overflow = (storage - forest_coverage * capacity) / timestep
    if overflow < 0.0:
        overflow = 0.0
    return (1.0 - stemflow_frac) * overflow


@njit(cache=True)
def slow_drain_drip(
    storage: float,
    capacity: float,
    forest_coverage: float,
    drip_proportion: float,
    timestep: float,
) -> float:
    """
    Overflow drip plus a slow linear drain of canopy-area storage.

    D = max((S - Fc * C) / dt, 0) + min(k * S / Fc, (S / Fc) / dt)

    The slow term is bounded so that it never drains more than the
    canopy-area storage within one step.

    Parameters
    ----------
    storage : float
        Canopy storage (mm)
    capacity : float
        Canopy storage capacity per unit canopy area (mm)
    forest_coverage : float
        Forest coverage fraction Fc, must be > 0
    drip_proportion : float
        Linear drain coefficient k (1/d)
    timestep : float
        Timestep length (d)

    Returns
    -------
    float
        Drip rate (mm/d)
    """
    overflow = (storage - forest_coverage * capacity) / timestep
    if overflow < 0.0:
        overflow = 0.0
    canopy_stor = storage / forest_coverage
    slow = drip_proportion * canopy_stor
    limit = canopy_stor / timestep
    if slow > limit:
        slow = limit
    return overflow + slow


@njit(cache=True)
def clamp_outflow(
    rate: float,
    storage: float,
    timestep: float,
    floor_at_zero: bool = True,
) -> float:
    """
    Restrict a loss rate so that it cannot overdraw its source.

    Physical constraints:
        - rate <= max(storage, 0) / dt (no overdraft within one step)
        - rate >= 0 when floor_at_zero is set

    Parameters
    ----------
    rate : float
        Proposed loss rate (mm/d)
    storage : float
        Current source storage (mm), negative drift is treated as empty
    timestep : float
        Timestep length (d)
    floor_at_zero : bool
        Also enforce non-negativity

    Returns
    -------
    float
        Constrained rate (mm/d)
    """
    out = rate
    if floor_at_zero and out < 0.0:
        out = 0.0
    stor = storage
    if stor < 0.0:
        stor = 0.0
    limit = stor / timestep
    if out > limit:
        out = limit
    return out
