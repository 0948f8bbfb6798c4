"""Canopy interception processes.

Provides:
- CanopyEvaporation: canopy storage -> atmosphere, crediting AET
- CanopySublimation: canopy snow storage -> atmosphere, crediting AET
- CanopyDrip: canopy storage -> a caller-chosen compartment

Evaporation and sublimation compete for the step's potential ET through
the StepLedger. Each declares a second, self-referencing AET connection
whose rate is the PET it consumed; the integrator commits that rate to
the ledger before the next process runs.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Optional, Sequence

from hydroflux.process.base import (
    HydroProcess,
    ParamClass,
    ParticipatingParam,
    ProcessType,
    coerce_variant,
)
from hydroflux.process.errors import (
    ConfigurationError,
    UnimplementedFeatureError,
    ValidationIssue,
)
from hydroflux.process.kernels.canopy import (
    clamp_outflow,
    drain_all,
    maximum_evaporation,
    rutter_drip,
    rutter_evaporation,
    slow_drain_drip,
)
from hydroflux.process.state import Compartment, StateVarRegistry, SVType

if TYPE_CHECKING:
    import numpy as np
    from numpy.typing import NDArray

    from hydroflux.config import ModelOptions
    from hydroflux.process.hru import HydroUnit, TimeStruct
    from hydroflux.process.state import StepLedger

__all__ = [
    "CanopyEvapType",
    "SublimationType",
    "CanopyDripType",
    "CanopyEvaporation",
    "CanopySublimation",
    "CanopyDrip",
]


class CanopyEvapType(str, Enum):
    """Canopy evaporation formulations."""
    RUTTER = "rutter"      # proportional to fractional canopy saturation
    MAXIMUM = "maximum"    # evaporates at the remaining PET rate
    ALL = "all"            # whole canopy store evaporates within the step


class SublimationType(str, Enum):
    """Canopy snow sublimation formulations."""
    MAXIMUM = "maximum"
    ALL = "all"
    SVERDRUP = "sverdrup"
    KUZMIN = "kuzmin"
    CENTRAL_SIERRA = "central_sierra"
    PBSM = "pbsm"
    WILLIAMS = "williams"

    @property
    def wind_driven(self) -> bool:
        return self not in (SublimationType.MAXIMUM, SublimationType.ALL)


class CanopyDripType(str, Enum):
    """Canopy drip formulations."""
    RUTTER = "rutter"          # overflow above capacity only
    SLOWDRAIN = "slowdrain"    # overflow plus linear drain of storage


class _EvaporativeCanopyProcess(HydroProcess):
    """Shared plumbing for canopy losses to the atmosphere that consume PET."""

    source_type: SVType

    def __init__(
        self,
        process_type: ProcessType,
        registry: StateVarRegistry,
        connections: Optional[Sequence[tuple[int, int]]] = None,
    ):
        super().__init__(process_type, registry)
        if connections is None:
            i_aet = registry.require_index(SVType.AET)
            connections = [
                (registry.require_index(self.source_type),
                 registry.require_index(SVType.ATMOSPHERE)),
                (i_aet, i_aet),
            ]
        self._set_connections(connections)

    def _validate_connectivity(self) -> list[ValidationIssue]:
        if self.n_connections != 2:
            return [ValidationIssue(
                self.name, f"expected 2 connections, found {self.n_connections}"
            )]
        issues = []
        issues += self._check_type(self.from_index(0), self.source_type, "source")
        issues += self._check_type(self.to_index(0), SVType.ATMOSPHERE, "destination")
        issues += self._check_type(self.from_index(1), SVType.AET, "ET accumulator")
        if not self.connections[1].is_self_link:
            issues.append(ValidationIssue(self.name, "ET accumulator link must be a self link"))
        return issues

    def _reconcile(
        self,
        state: NDArray[np.float64],
        options: ModelOptions,
        rates: NDArray[np.float64],
        floor_at_zero: bool,
    ) -> NDArray[np.float64]:
        old_rate = rates[0]
        rates[0] = clamp_outflow(old_rate, state[self.from_index(0)], options.timestep, floor_at_zero)
        if rates[0] != old_rate:
            # clipped amount was never consumed
            rates[1] -= old_rate - rates[0]
            self.log.debug("rate_clamped", before=float(old_rate), after=float(rates[0]))
        return rates


class CanopyEvaporation(_EvaporativeCanopyProcess):
    """Loss of intercepted rain from the canopy to the atmosphere.

    Connections
    -----------
    0 : CANOPY -> ATMOSPHERE, evaporation rate (mm/d)
    1 : AET -> AET, PET consumed by this process (mm/d)

    Parameters
    ----------
    variant : CanopyEvapType or str
        Evaporation formulation
    registry : StateVarRegistry
        Model state variable registry
    connections : sequence of (from, to), optional
        Explicit connectivity; defaults to the standard compartments
    """

    source_type = SVType.CANOPY

    def __init__(
        self,
        variant: CanopyEvapType | str,
        registry: StateVarRegistry,
        connections: Optional[Sequence[tuple[int, int]]] = None,
    ):
        self.variant = coerce_variant(CanopyEvapType, variant)
        super().__init__(ProcessType.CANOPY_EVAPORATION, registry, connections)
        self.log = self.log.bind(variant=self.variant.value)

    def validate(self) -> list[ValidationIssue]:
        return self._validate_connectivity()

    def get_participating_param_list(self) -> list[ParticipatingParam]:
        if self.variant == CanopyEvapType.RUTTER:
            return [
                ParticipatingParam("FOREST_COVERAGE", ParamClass.LANDUSE),
                ParticipatingParam("MAX_CAPACITY", ParamClass.VEGETATION),
                ParticipatingParam("TRUNK_FRACTION", ParamClass.VEGETATION),
            ]
        if self.variant == CanopyEvapType.MAXIMUM:
            return [ParticipatingParam("FOREST_COVERAGE", ParamClass.LANDUSE)]
        if self.variant == CanopyEvapType.ALL:
            return []
        raise ConfigurationError(f"Undefined canopy evaporation algorithm: {self.variant}")

    @classmethod
    def get_participating_state_var_list(cls, variant=None) -> list[Compartment]:
        return [
            Compartment(SVType.CANOPY),
            Compartment(SVType.ATMOSPHERE),
            Compartment(SVType.AET),
        ]

    def get_rates_of_change(
        self,
        state: NDArray[np.float64],
        hru: HydroUnit,
        options: ModelOptions,
        tt: TimeStruct,
        ledger: StepLedger,
    ) -> NDArray[np.float64]:
        """Canopy evaporation and the PET it consumes (mm/d).

        Rates are zero for units without a canopy (type or Fc = 0).
        """
        rates = self.zero_rates()
        if not self.applies_to(hru):
            return rates
        fc = hru.surface.forest_coverage
        if fc == 0.0:
            return rates

        pet = ledger.remaining_pet(
            hru.forcing.pet, options.timestep, options.suppress_competitive_et
        )
        stor = state[self.from_index(0)]

        if self.variant == CanopyEvapType.RUTTER:
            ft = hru.vegetation.trunk_fraction
            if not self._registry.has(SVType.TRUNK):
                ft = 0.0
            rate = rutter_evaporation(stor, hru.veg_var.capacity, fc, pet, ft)
        elif self.variant == CanopyEvapType.MAXIMUM:
            rate = maximum_evaporation(fc, pet)
        elif self.variant == CanopyEvapType.ALL:
            rate = drain_all(stor, options.timestep)
        else:
            raise ConfigurationError(f"Undefined canopy evaporation algorithm: {self.variant}")

        rates[0] = rate
        rates[1] = rate
        return rates

    def apply_constraints(
        self,
        state: NDArray[np.float64],
        hru: HydroUnit,
        options: ModelOptions,
        tt: TimeStruct,
        ledger: StepLedger,
        rates: NDArray[np.float64],
    ) -> NDArray[np.float64]:
        """Clamp evaporation to [0, storage/dt] and give back clipped PET."""
        if not self.applies_to(hru):
            return rates
        return self._reconcile(state, options, rates, floor_at_zero=True)


class CanopySublimation(_EvaporativeCanopyProcess):
    """Loss of intercepted snow from the canopy to the atmosphere.

    Connections
    -----------
    0 : CANOPY_SNOW -> ATMOSPHERE, sublimation rate (mm/d)
    1 : AET -> AET, PET consumed by this process (mm/d)

    Wind-driven variants are declared but their canopy-height wind
    adjustment is not available; selecting one fails at initialization.
    """

    source_type = SVType.CANOPY_SNOW

    def __init__(
        self,
        variant: SublimationType | str,
        registry: StateVarRegistry,
        connections: Optional[Sequence[tuple[int, int]]] = None,
    ):
        self.variant = coerce_variant(SublimationType, variant)
        super().__init__(ProcessType.CANOPY_SNOW_EVAPORATION, registry, connections)
        self.log = self.log.bind(variant=self.variant.value)

    def validate(self) -> list[ValidationIssue]:
        issues = self._validate_connectivity()
        if self.variant.wind_driven:
            issues.append(ValidationIssue(
                self.name,
                "wind-driven canopy sublimation requires wind velocity adjusted "
                "to canopy height, which is not implemented",
                stub=True,
            ))
        return issues

    def get_participating_param_list(self) -> list[ParticipatingParam]:
        if self.variant == SublimationType.MAXIMUM:
            return [ParticipatingParam("FOREST_COVERAGE", ParamClass.LANDUSE)]
        if self.variant == SublimationType.SVERDRUP:
            return [ParticipatingParam("SNOW_ROUGHNESS", ParamClass.GLOBAL)]
        return []

    @classmethod
    def get_participating_state_var_list(cls, variant=None) -> list[Compartment]:
        return [
            Compartment(SVType.CANOPY_SNOW),
            Compartment(SVType.ATMOSPHERE),
            Compartment(SVType.AET),
        ]

    def get_rates_of_change(
        self,
        state: NDArray[np.float64],
        hru: HydroUnit,
        options: ModelOptions,
        tt: TimeStruct,
        ledger: StepLedger,
    ) -> NDArray[np.float64]:
        rates = self.zero_rates()
        if not self.applies_to(hru):
            return rates
        fc = hru.surface.forest_coverage
        if fc == 0.0:
            return rates

        pet = ledger.remaining_pet(
            hru.forcing.pet, options.timestep, options.suppress_competitive_et
        )

        if self.variant == SublimationType.MAXIMUM:
            rate = maximum_evaporation(fc, pet)
        elif self.variant == SublimationType.ALL:
            rate = drain_all(state[self.from_index(0)], options.timestep)
        else:
            raise UnimplementedFeatureError(
                f"Canopy sublimation '{self.variant.value}' must adjust wind "
                f"velocity to canopy height"
            )

        rates[0] = rate
        rates[1] = rate
        return rates

    def apply_constraints(
        self,
        state: NDArray[np.float64],
        hru: HydroUnit,
        options: ModelOptions,
        tt: TimeStruct,
        ledger: StepLedger,
        rates: NDArray[np.float64],
    ) -> NDArray[np.float64]:
        """Clamp sublimation to storage/dt and give back clipped PET."""
        if not self.applies_to(hru):
            return rates
        return self._reconcile(state, options, rates, floor_at_zero=False)


class CanopyDrip(HydroProcess):
    """Loss of water from canopy storage to the land surface.

    Connections
    -----------
    0 : CANOPY -> destination, drip rate (mm/d)

    Parameters
    ----------
    variant : CanopyDripType or str
        Drip formulation
    to_index : int or None
        State vector index receiving the drip; None is rejected
    registry : StateVarRegistry
        Model state variable registry
    from_index : int, optional
        Explicit source index; defaults to CANOPY
    """

    def __init__(
        self,
        variant: CanopyDripType | str,
        to_index: Optional[int],
        registry: StateVarRegistry,
        from_index: Optional[int] = None,
    ):
        self.variant = coerce_variant(CanopyDripType, variant)
        super().__init__(ProcessType.CANOPY_DRIP, registry)
        self.log = self.log.bind(variant=self.variant.value)
        if to_index is None:
            raise ConfigurationError("CanopyDrip: invalid 'to' compartment specified")
        if from_index is None:
            from_index = registry.require_index(SVType.CANOPY)
        self._set_connections([(from_index, to_index)])

    def validate(self) -> list[ValidationIssue]:
        issues = self._check_type(self.from_index(0), SVType.CANOPY, "source")
        if not 0 <= self.to_index(0) < self._registry.n_state_vars:
            issues.append(ValidationIssue(self.name, "destination compartment does not exist"))
        elif self.to_index(0) == self.from_index(0):
            issues.append(ValidationIssue(self.name, "destination must differ from source"))
        return issues

    def get_participating_param_list(self) -> list[ParticipatingParam]:
        if self.variant == CanopyDripType.RUTTER:
            return [
                ParticipatingParam("FOREST_COVERAGE", ParamClass.LANDUSE),
                ParticipatingParam("MAX_CAPACITY", ParamClass.VEGETATION),
                ParticipatingParam("STEMFLOW_FRAC", ParamClass.VEGETATION),
            ]
        if self.variant == CanopyDripType.SLOWDRAIN:
            return [
                ParticipatingParam("DRIP_PROPORTION", ParamClass.VEGETATION),
                ParticipatingParam("MAX_CAPACITY", ParamClass.VEGETATION),
                ParticipatingParam("FOREST_COVERAGE", ParamClass.LANDUSE),
            ]
        raise ConfigurationError(f"Undefined canopy drip algorithm: {self.variant}")

    @classmethod
    def get_participating_state_var_list(cls, variant=None) -> list[Compartment]:
        # destination is user-specified
        return [Compartment(SVType.CANOPY)]

    def get_rates_of_change(
        self,
        state: NDArray[np.float64],
        hru: HydroUnit,
        options: ModelOptions,
        tt: TimeStruct,
        ledger: StepLedger,
    ) -> NDArray[np.float64]:
        rates = self.zero_rates()
        if not self.applies_to(hru):
            return rates
        fc = hru.surface.forest_coverage
        if fc == 0.0:
            return rates

        stor = state[self.from_index(0)]
        cap = hru.veg_var.capacity

        if self.variant == CanopyDripType.RUTTER:
            p = hru.vegetation.stemflow_frac
            if not self._registry.has(SVType.TRUNK):
                p = 0.0
            rates[0] = rutter_drip(stor, cap, fc, p, options.timestep)
        elif self.variant == CanopyDripType.SLOWDRAIN:
            rates[0] = slow_drain_drip(
                stor, cap, fc, hru.vegetation.drip_proportion, options.timestep
            )
        else:
            raise ConfigurationError(f"Undefined canopy drip algorithm: {self.variant}")
        return rates

    def apply_constraints(
        self,
        state: NDArray[np.float64],
        hru: HydroUnit,
        options: ModelOptions,
        tt: TimeStruct,
        ledger: StepLedger,
        rates: NDArray[np.float64],
    ) -> NDArray[np.float64]:
        """Drip cannot remove more than the canopy holds."""
        if not self.applies_to(hru):
            return rates
        rates[0] = clamp_outflow(rates[0], state[self.from_index(0)], options.timestep, True)
        return rates
