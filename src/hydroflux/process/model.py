"""Model assembly: registry sizing, process construction and validation.

Assembly runs in three phases:

1. ``build_registry`` sizes the state space from the static
   participating-state-variable queries, before any process exists.
2. Processes are constructed against that registry (``build_processes``
   does this from a ModelConfig).
3. ``ProcessModel.initialize`` validates every process and fails with a
   single ConfigurationError listing all problems. A model that fails
   validation is never partially usable.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Optional, Sequence

from hydroflux.logging import get_logger
from hydroflux.process.advection import Advection, ConstituentTransport
from hydroflux.process.base import HydroProcess, ParticipatingParam, ProcessType, coerce_variant
from hydroflux.process.errors import ConfigurationError, ValidationIssue, raise_for_issues
from hydroflux.process.state import Compartment, StateVarRegistry, SVType
from hydroflux.process.vegetation import (
    CanopyDrip,
    CanopyDripType,
    CanopyEvaporation,
    CanopyEvapType,
    CanopySublimation,
    SublimationType,
)

if TYPE_CHECKING:
    from hydroflux.config import ModelConfig, ProcessSpec

__all__ = [
    "PROCESS_CLASSES",
    "build_registry",
    "build_processes",
    "ProcessModel",
]

logger = get_logger("model")

PROCESS_CLASSES: dict[ProcessType, type[HydroProcess]] = {
    ProcessType.CANOPY_EVAPORATION: CanopyEvaporation,
    ProcessType.CANOPY_SNOW_EVAPORATION: CanopySublimation,
    ProcessType.CANOPY_DRIP: CanopyDrip,
    ProcessType.ADVECTION: Advection,
}

_VARIANT_ENUMS = {
    ProcessType.CANOPY_EVAPORATION: CanopyEvapType,
    ProcessType.CANOPY_SNOW_EVAPORATION: SublimationType,
    ProcessType.CANOPY_DRIP: CanopyDripType,
}


def _process_type(name: str) -> ProcessType:
    try:
        return ProcessType(name)
    except ValueError:
        choices = ", ".join(p.value for p in ProcessType)
        raise ConfigurationError(
            f"Unknown process type '{name}' (expected one of: {choices})"
        ) from None


def _destination(spec: ProcessSpec) -> Optional[Compartment]:
    if spec.to is None:
        return None
    try:
        return Compartment(SVType(spec.to), spec.to_level)
    except ValueError:
        raise ConfigurationError(f"Unknown compartment type '{spec.to}'") from None


def build_registry(
    specs: Iterable[ProcessSpec],
    extra: Iterable[Compartment] = (),
) -> StateVarRegistry:
    """Size the state variable space for a set of process entries.

    Uses only the static participating-state-variable queries plus any
    user-chosen destinations, so it can run before processes exist.

    Parameters
    ----------
    specs : iterable of ProcessSpec
        Process entries from configuration
    extra : iterable of Compartment
        Additional compartments to register (e.g. TRUNK)

    Returns
    -------
    StateVarRegistry
    """
    registry = StateVarRegistry()
    for spec in specs:
        ptype = _process_type(spec.type)
        cls = PROCESS_CLASSES[ptype]
        variant = None
        if ptype in _VARIANT_ENUMS and spec.variant is not None:
            variant = coerce_variant(_VARIANT_ENUMS[ptype], spec.variant)
        for comp in cls.get_participating_state_var_list(variant):
            registry.register(comp.sv_type, comp.level)
        dest = _destination(spec)
        if dest is not None:
            registry.register(dest.sv_type, dest.level)
    for comp in extra:
        registry.register(comp.sv_type, comp.level)
    return registry


def build_processes(
    config: ModelConfig,
    registry: StateVarRegistry,
    transport: Optional[ConstituentTransport] = None,
) -> list[HydroProcess]:
    """Construct processes in configuration order.

    Advection entries register their constituent with ``transport``
    (created on demand) and track the water connections of every
    hydrologic process listed before them.
    """
    processes: list[HydroProcess] = []
    for spec in config.processes:
        ptype = _process_type(spec.type)
        if ptype == ProcessType.CANOPY_DRIP:
            dest = _destination(spec)
            to_index = None if dest is None else registry.index_of(dest.sv_type, dest.level)
            processes.append(CanopyDrip(spec.variant or CanopyDripType.RUTTER, to_index, registry))
        elif ptype == ProcessType.ADVECTION:
            if not spec.constituent:
                raise ConfigurationError("Advection entry missing 'constituent'")
            if transport is None:
                transport = ConstituentTransport(registry)
            transport.track(processes)
            if transport.constituent_index(spec.constituent) is None:
                transport.add_constituent(spec.constituent)
            processes.append(Advection(spec.constituent, transport, registry))
        elif ptype == ProcessType.CANOPY_EVAPORATION:
            processes.append(CanopyEvaporation(spec.variant or CanopyEvapType.RUTTER, registry))
        else:
            processes.append(CanopySublimation(spec.variant or SublimationType.MAXIMUM, registry))
    return processes


class ProcessModel:
    """An ordered, validated set of processes sharing one registry.

    Process order is significant: evaporative processes earlier in the
    list see more of the step's potential ET.

    Parameters
    ----------
    registry : StateVarRegistry
        Registry every process was built against
    processes : sequence of HydroProcess
        Processes in invocation order
    """

    def __init__(self, registry: StateVarRegistry, processes: Sequence[HydroProcess]):
        for p in processes:
            if p.registry is not registry:
                raise ConfigurationError(f"{p!r} was built against a different registry")
        self.registry = registry
        self.processes = list(processes)
        self._initialized = False

    @classmethod
    def from_config(cls, config: ModelConfig, extra: Iterable[Compartment] = ()) -> "ProcessModel":
        """Assemble and initialize a model from configuration."""
        extra = [*config.extra_compartments(), *extra]
        registry = build_registry(config.processes, extra)
        model = cls(registry, build_processes(config, registry))
        model.initialize()
        return model

    def __len__(self) -> int:
        return len(self.processes)

    def __iter__(self):
        return iter(self.processes)

    def validate(self) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        for p in self.processes:
            issues.extend(p.validate())
        return issues

    def initialize(self) -> None:
        """Validate all processes; raise once with every issue found."""
        if self._initialized:
            return
        issues = self.validate()
        if issues:
            logger.error("model_invalid", n_issues=len(issues))
        raise_for_issues(issues, "ProcessModel.initialize")
        for p in self.processes:
            p.initialize()
        self._initialized = True
        logger.info(
            "model_assembled",
            n_processes=len(self.processes),
            n_state_vars=self.registry.n_state_vars,
        )

    @property
    def initialized(self) -> bool:
        return self._initialized

    def required_parameters(self) -> list[ParticipatingParam]:
        """Union of participating parameters, in first-seen order."""
        seen: dict[ParticipatingParam, None] = {}
        for p in self.processes:
            for param in p.get_participating_param_list():
                seen.setdefault(param, None)
        return list(seen)

    def check_parameters(self, available: Iterable[tuple[str, str]]) -> None:
        """Fail if any required (name, class) pair is not available.

        Parameters
        ----------
        available : iterable of (name, class)
            Parameters the parameter loader can supply; class may be a
            ParamClass or its string value
        """
        have = {(str(name).upper(), str(getattr(pc, "value", pc)).lower()) for name, pc in available}
        missing = [
            p for p in self.required_parameters()
            if (p.name, p.param_class.value) not in have
        ]
        if missing:
            detail = ", ".join(f"{p.name} ({p.param_class.value})" for p in missing)
            raise ConfigurationError(f"Missing required parameters: {detail}")
