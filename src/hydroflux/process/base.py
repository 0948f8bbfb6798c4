"""Common interface for mass-transfer processes.

Every process declares the compartments it moves mass between, computes
an unconstrained rate for each declared connection, and then corrects
those rates against the current state before the integrator commits
them. The integrator calls, per unit and timestep, in this order:

    rates = process.get_rates_of_change(state, hru, options, tt, ledger)
    process.apply_constraints(state, hru, options, tt, ledger, rates)

Assembly-time queries (participating parameters and state variables) are
side-effect free and used only to size and validate the model.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any, NamedTuple, Sequence

import numpy as np

from hydroflux.logging import get_logger
from hydroflux.process.errors import ConfigurationError, ValidationIssue, raise_for_issues
from hydroflux.process.hru import HRUType
from hydroflux.process.state import Compartment, Connection, StateVarRegistry, SVType

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from hydroflux.config import ModelOptions
    from hydroflux.process.hru import HydroUnit, TimeStruct
    from hydroflux.process.state import StepLedger

__all__ = [
    "ProcessType",
    "ParamClass",
    "ParticipatingParam",
    "HydroProcess",
    "CANOPY_HRU_TYPES",
    "coerce_variant",
]

logger = get_logger("process")

# Unit types that carry a vegetation canopy
CANOPY_HRU_TYPES = frozenset({HRUType.STANDARD, HRUType.WETLAND})


class ProcessType(str, Enum):
    """Physical mechanisms represented by a process."""
    CANOPY_EVAPORATION = "canopy_evaporation"
    CANOPY_SNOW_EVAPORATION = "canopy_snow_evaporation"
    CANOPY_DRIP = "canopy_drip"
    ADVECTION = "advection"


class ParamClass(str, Enum):
    """Parameter-class category owning a named parameter."""
    SOIL = "soil"
    VEGETATION = "vegetation"
    LANDUSE = "landuse"
    TERRAIN = "terrain"
    GLOBAL = "global"


class ParticipatingParam(NamedTuple):
    """A parameter a process requires, with its owning class."""

    name: str
    param_class: ParamClass


def coerce_variant(enum_cls: type[Enum], value: Any) -> Any:
    """Resolve an algorithm selector, rejecting values with no formula."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        choices = ", ".join(m.value for m in enum_cls)
        raise ConfigurationError(
            f"Unknown {enum_cls.__name__} '{value}' (expected one of: {choices})"
        ) from None


class HydroProcess(ABC):
    """Base class for one physical mass-transfer mechanism.

    Subclasses set their connectivity in ``__init__`` through
    ``_set_connections`` and implement the rate and constraint methods.
    Connectivity is immutable after construction.

    Parameters
    ----------
    process_type : ProcessType
        Mechanism tag
    registry : StateVarRegistry
        Index resolution table of the model this process belongs to
    """

    def __init__(self, process_type: ProcessType, registry: StateVarRegistry):
        self._process_type = process_type
        self._registry = registry
        self._connections: tuple[Connection, ...] = ()
        self._initialized = False
        self.log = logger.bind(process=process_type.value)

    # ------------------------------------------------------------------
    # Connectivity
    # ------------------------------------------------------------------

    def _set_connections(self, pairs: Sequence[tuple[int, int]]) -> None:
        self._connections = tuple(Connection(int(f), int(t)) for f, t in pairs)

    @property
    def process_type(self) -> ProcessType:
        return self._process_type

    @property
    def registry(self) -> StateVarRegistry:
        return self._registry

    @property
    def connections(self) -> tuple[Connection, ...]:
        return self._connections

    @property
    def n_connections(self) -> int:
        return len(self._connections)

    def from_index(self, k: int = 0) -> int:
        return self._connections[k].from_index

    def to_index(self, k: int = 0) -> int:
        return self._connections[k].to_index

    @property
    def name(self) -> str:
        variant = getattr(self, "variant", None)
        if variant is None:
            return self._process_type.value
        return f"{self._process_type.value}:{variant.value}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, n_connections={self.n_connections})"

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _check_type(
        self,
        index: int | None,
        expected: SVType,
        role: str,
    ) -> list[ValidationIssue]:
        if index is None or not 0 <= index < self._registry.n_state_vars:
            return [ValidationIssue(self.name, f"{role} compartment does not exist")]
        actual = self._registry.type_of(index)
        if actual != expected:
            return [ValidationIssue(
                self.name,
                f"{role} must be {expected.value}, found {actual.value}",
            )]
        return []

    @abstractmethod
    def validate(self) -> list[ValidationIssue]:
        """Check connectivity and variant; report problems without raising."""

    def initialize(self) -> None:
        """Validate this process once, raising on any problem.

        Raises
        ------
        ConfigurationError
            Connectivity or construction arguments are inconsistent
        UnimplementedFeatureError
            The selected variant is a declared stub
        """
        if self._initialized:
            return
        issues = self.validate()
        if issues:
            self.log.error("process_invalid", issues=[str(i) for i in issues])
        raise_for_issues(issues, f"{type(self).__name__}.initialize")
        self._initialized = True
        self.log.debug("process_initialized", n_connections=self.n_connections)

    @property
    def initialized(self) -> bool:
        return self._initialized

    # ------------------------------------------------------------------
    # Per-timestep interface
    # ------------------------------------------------------------------

    @staticmethod
    def applies_to(hru: HydroUnit) -> bool:
        """Whether canopy processes operate on this unit type."""
        return hru.hru_type in CANOPY_HRU_TYPES

    def zero_rates(self) -> NDArray[np.float64]:
        return np.zeros(self.n_connections, dtype=np.float64)

    @abstractmethod
    def get_rates_of_change(
        self,
        state: NDArray[np.float64],
        hru: HydroUnit,
        options: ModelOptions,
        tt: TimeStruct,
        ledger: StepLedger,
    ) -> NDArray[np.float64]:
        """Unconstrained rates (one per connection) for this timestep."""

    @abstractmethod
    def apply_constraints(
        self,
        state: NDArray[np.float64],
        hru: HydroUnit,
        options: ModelOptions,
        tt: TimeStruct,
        ledger: StepLedger,
        rates: NDArray[np.float64],
    ) -> NDArray[np.float64]:
        """Correct ``rates`` in place against the current state."""

    # ------------------------------------------------------------------
    # Assembly-time queries
    # ------------------------------------------------------------------

    @abstractmethod
    def get_participating_param_list(self) -> list[ParticipatingParam]:
        """Parameters this process instance requires."""

    @classmethod
    def get_participating_state_var_list(cls, variant: Any = None) -> list[Compartment]:
        """Compartments a variant touches, independent of any instance."""
        return []
