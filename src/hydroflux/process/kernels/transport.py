"""Advective constituent transport.

Pure kernels that move constituent mass along water fluxes and keep the
resulting mass rates within what each source compartment holds.
"""

from __future__ import annotations

import numpy as np
from numba import njit
from numpy.typing import NDArray

__all__ = ["advective_flux", "limit_source_outflows"]

# Water storage (mm) below which a compartment is treated as dry
DRY_STORAGE = 1e-9


@njit(cache=True)
def advective_flux(
    water_rate: NDArray[np.float64],
    source_mass: NDArray[np.float64],
    source_water: NDArray[np.float64],
) -> NDArray[np.float64]:
    """
    Constituent mass flux carried by each water flux.

    J = Q * C_src,   C_src = M_src / W_src

    Physical constraints:
        - J = 0 when the source holds no water (concentration undefined)
        - negative source mass is treated as zero

    Parameters
    ----------
    water_rate : (n_links,)
        Water flux along each link (mm/d)
    source_mass : (n_links,)
        Constituent mass in the source compartment (mg/m2)
    source_water : (n_links,)
        Water storage in the source compartment (mm)

    Returns
    -------
    flux : (n_links,)
        Constituent mass rate along each link (mg/m2/d)
    """
    n = water_rate.shape[0]
    flux = np.zeros(n, dtype=np.float64)

    for i in range(n):
        if source_water[i] <= DRY_STORAGE:
            continue
        mass = source_mass[i]
        if mass < 0.0:
            mass = 0.0
        flux[i] = water_rate[i] * mass / source_water[i]

    return flux


@njit(cache=True)
def limit_source_outflows(
    rates: NDArray[np.float64],
    sources: NDArray[np.int64],
    storage: NDArray[np.float64],
    timestep: float,
) -> NDArray[np.float64]:
    """
    Clamp rates to be non-negative and jointly within source storage.

    When several links drain the same compartment, they are scaled by a
    common factor so their sum equals storage / dt.

    Parameters
    ----------
    rates : (n_links,)
        Proposed mass rates (mg/m2/d)
    sources : (n_links,)
        State vector index of each link's source compartment
    storage : (n_state_vars,)
        Current state vector
    timestep : float
        Timestep length (d)

    Returns
    -------
    limited : (n_links,)
        Constrained rates
    """
    n = rates.shape[0]
    limited = np.empty(n, dtype=np.float64)
    for i in range(n):
        limited[i] = rates[i] if rates[i] > 0.0 else 0.0

    scale = np.ones(n, dtype=np.float64)
    for i in range(n):
        src = sources[i]
        total = 0.0
        for j in range(n):
            if sources[j] == src:
                total += limited[j]
        avail = storage[src]
        if avail < 0.0:
            avail = 0.0
        avail = avail / timestep
        if total > avail:
            scale[i] = avail / total

    for i in range(n):
        limited[i] *= scale[i]

    return limited
