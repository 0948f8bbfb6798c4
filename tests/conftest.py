"""
Shared pytest fixtures for hydroflux process tests.

This module provides:
- Registries with and without optional compartments
- A factory for spatial units with canopy properties
- Default run options and a fresh step ledger
"""

from __future__ import annotations

from typing import Callable

import pytest

from hydroflux.config import ModelOptions
from hydroflux.process.hru import (
    ForcingSample,
    HRUType,
    HydroUnit,
    SurfaceProps,
    VegetationProps,
    VegVarProps,
)
from hydroflux.process.state import StateVarRegistry, StepLedger, SVType


def _canopy_registry(with_trunk: bool) -> StateVarRegistry:
    registry = StateVarRegistry()
    registry.register(SVType.CANOPY)
    registry.register(SVType.CANOPY_SNOW)
    registry.register(SVType.ATMOSPHERE)
    registry.register(SVType.AET)
    registry.register(SVType.PONDED_WATER)
    if with_trunk:
        registry.register(SVType.TRUNK)
    return registry


@pytest.fixture
def registry() -> StateVarRegistry:
    """Canopy compartments, atmosphere, AET and ponded water; no trunk."""
    return _canopy_registry(with_trunk=False)


@pytest.fixture
def registry_with_trunk() -> StateVarRegistry:
    """Same as ``registry`` plus a TRUNK compartment."""
    return _canopy_registry(with_trunk=True)


@pytest.fixture
def make_hru() -> Callable[..., HydroUnit]:
    """Factory for a spatial unit with a canopy.

    Keyword arguments override the defaults below.
    """

    def _make(
        forest_coverage: float = 0.6,
        capacity: float = 5.0,
        pet: float = 4.0,
        hru_type: HRUType = HRUType.STANDARD,
        trunk_fraction: float = 0.0,
        stemflow_frac: float = 0.0,
        drip_proportion: float = 0.0,
        wind_vel: float = 2.0,
    ) -> HydroUnit:
        return HydroUnit(
            hru_id="test",
            hru_type=hru_type,
            surface=SurfaceProps(forest_coverage=forest_coverage),
            vegetation=VegetationProps(
                trunk_fraction=trunk_fraction,
                stemflow_frac=stemflow_frac,
                drip_proportion=drip_proportion,
                max_capacity=capacity,
            ),
            veg_var=VegVarProps(capacity=capacity),
            forcing=ForcingSample(pet=pet, wind_vel=wind_vel),
        )

    return _make


@pytest.fixture
def options() -> ModelOptions:
    """Daily timestep, competitive ET enabled."""
    return ModelOptions(timestep=1.0)


@pytest.fixture
def ledger() -> StepLedger:
    return StepLedger()
