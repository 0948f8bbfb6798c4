"""
hydroflux Process Package

Timestep flux accounting with:
- Pure physics kernels (numba JIT)
- Explicit state variable registry and per-step ET ledger
- Validated process connectivity
- Structured logging
"""

from hydroflux.process import kernels
from hydroflux.process.advection import Advection, ConstituentTransport, TransportModel
from hydroflux.process.base import HydroProcess, ParamClass, ParticipatingParam, ProcessType
from hydroflux.process.errors import (
    ConfigurationError,
    UnimplementedFeatureError,
    ValidationIssue,
)
from hydroflux.process.hru import (
    ForcingSample,
    HRUType,
    HydroUnit,
    SurfaceProps,
    TimeStruct,
    VegetationProps,
    VegVarProps,
)
from hydroflux.process.loop import StepOutput, run_loop, step_unit
from hydroflux.process.model import ProcessModel, build_processes, build_registry
from hydroflux.process.state import Compartment, StateVarRegistry, StepLedger, SVType
from hydroflux.process.vegetation import (
    CanopyDrip,
    CanopyDripType,
    CanopyEvaporation,
    CanopyEvapType,
    CanopySublimation,
    SublimationType,
)

__all__ = [
    "kernels",
    "SVType",
    "Compartment",
    "StateVarRegistry",
    "StepLedger",
    "HRUType",
    "HydroUnit",
    "SurfaceProps",
    "VegetationProps",
    "VegVarProps",
    "ForcingSample",
    "TimeStruct",
    "ConfigurationError",
    "UnimplementedFeatureError",
    "ValidationIssue",
    "HydroProcess",
    "ProcessType",
    "ParamClass",
    "ParticipatingParam",
    "CanopyEvaporation",
    "CanopyEvapType",
    "CanopySublimation",
    "SublimationType",
    "CanopyDrip",
    "CanopyDripType",
    "Advection",
    "ConstituentTransport",
    "TransportModel",
    "ProcessModel",
    "build_registry",
    "build_processes",
    "StepOutput",
    "step_unit",
    "run_loop",
]
