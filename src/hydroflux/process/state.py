"""State variable space, connectivity and per-step bookkeeping.

Provides:
- SVType / Compartment: semantic identity of a storage compartment
- StateVarRegistry: resolves compartments to state vector indices
- Connection: one (from, to) link declared by a process
- StepLedger: the competing evapotranspiration budget and the water
  fluxes committed so far within one timestep

A state vector is a flat numpy float64 array with one entry per
registered compartment. The registry is built once per model and passed
explicitly to every process; there is no global model object.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Iterable, NamedTuple, Optional

import numpy as np

from hydroflux.process.errors import ConfigurationError

if TYPE_CHECKING:
    from numpy.typing import NDArray

__all__ = [
    "SVType",
    "Compartment",
    "StateVarRegistry",
    "Connection",
    "FluxRecord",
    "StepLedger",
    "WATER_TYPES",
]


class SVType(str, Enum):
    """Semantic compartment types."""
    CANOPY = "canopy"
    CANOPY_SNOW = "canopy_snow"
    TRUNK = "trunk"
    ATMOSPHERE = "atmosphere"
    AET = "aet"
    PONDED_WATER = "ponded_water"
    SNOW = "snow"
    SURFACE_WATER = "surface_water"
    SOIL = "soil"
    DEPRESSION = "depression"
    CONSTITUENT = "constituent"


# Compartments holding water (as opposed to accumulators and constituent mass)
WATER_TYPES = frozenset({
    SVType.CANOPY,
    SVType.CANOPY_SNOW,
    SVType.TRUNK,
    SVType.ATMOSPHERE,
    SVType.PONDED_WATER,
    SVType.SNOW,
    SVType.SURFACE_WATER,
    SVType.SOIL,
    SVType.DEPRESSION,
})


class Compartment(NamedTuple):
    """A compartment type plus optional level (None for single level)."""

    sv_type: SVType
    level: Optional[int] = None

    def __str__(self) -> str:
        if self.level is None:
            return self.sv_type.value
        return f"{self.sv_type.value}[{self.level}]"


class StateVarRegistry:
    """Index resolution table for one model's state vector.

    Compartments are appended in registration order and never removed,
    so indices resolved at process construction stay valid for the life
    of the model.

    Example:
        registry = StateVarRegistry()
        i_can = registry.register(SVType.CANOPY)
        registry.index_of(SVType.TRUNK)   # None, not modeled
        state = registry.zeros()
    """

    def __init__(self, compartments: Iterable[Compartment] = ()):
        self._compartments: list[Compartment] = []
        self._index: dict[Compartment, int] = {}
        for comp in compartments:
            self.register(comp.sv_type, comp.level)

    def register(self, sv_type: SVType, level: Optional[int] = None) -> int:
        """Register a compartment, returning its index (idempotent)."""
        comp = Compartment(SVType(sv_type), level)
        if comp in self._index:
            return self._index[comp]
        self._index[comp] = len(self._compartments)
        self._compartments.append(comp)
        return self._index[comp]

    def index_of(self, sv_type: SVType, level: Optional[int] = None) -> Optional[int]:
        """Index of a compartment, or None if it is not part of the model."""
        return self._index.get(Compartment(SVType(sv_type), level))

    def require_index(self, sv_type: SVType, level: Optional[int] = None) -> int:
        """Index of a compartment that must exist."""
        idx = self.index_of(sv_type, level)
        if idx is None:
            raise ConfigurationError(
                f"State variable {Compartment(sv_type, level)} is not registered"
            )
        return idx

    def has(self, sv_type: SVType, level: Optional[int] = None) -> bool:
        return Compartment(SVType(sv_type), level) in self._index

    def compartment(self, index: int) -> Compartment:
        return self._compartments[index]

    def type_of(self, index: int) -> SVType:
        return self._compartments[index].sv_type

    @property
    def n_state_vars(self) -> int:
        return len(self._compartments)

    def __len__(self) -> int:
        return len(self._compartments)

    def __iter__(self):
        return iter(self._compartments)

    def names(self) -> list[str]:
        """Compartment labels in index order."""
        return [str(c) for c in self._compartments]

    def zeros(self) -> NDArray[np.float64]:
        """A fresh state vector sized for this registry."""
        return np.zeros(len(self._compartments), dtype=np.float64)


@dataclass(frozen=True)
class Connection:
    """Directed link along which a process moves mass.

    A link whose source and destination are the same compartment is an
    accumulator credit (e.g. AET) rather than a transfer.
    """

    from_index: int
    to_index: int

    @property
    def is_self_link(self) -> bool:
        return self.from_index == self.to_index


class FluxRecord(NamedTuple):
    """A committed transfer between two compartments within one step."""

    from_index: int
    to_index: int
    rate: float


@dataclass
class StepLedger:
    """Order-sensitive bookkeeping shared by the processes of one unit.

    Reset at the start of every timestep. Evaporative processes read the
    remaining potential ET through ``remaining_pet`` during rate
    computation; the integrator writes each process's constrained
    consumption back with ``credit`` before the next process runs.

    Attributes
    ----------
    aet : float
        Actual ET consumed so far this step (mm)
    fluxes : list[FluxRecord]
        Water transfers committed so far this step (mm/d)
    """

    aet: float = 0.0
    fluxes: list[FluxRecord] = field(default_factory=list)

    def reset(self) -> None:
        self.aet = 0.0
        self.fluxes.clear()

    def remaining_pet(
        self,
        pet: float,
        timestep: float,
        suppress_competitive_et: bool = False,
    ) -> float:
        """Potential ET left for the next evaporative process (mm/d).

        PET is floored at zero; unless competition is suppressed, the
        consumption already recorded this step is subtracted and the
        result floored again.
        """
        remaining = max(pet, 0.0)
        if not suppress_competitive_et:
            remaining = max(remaining - self.aet / timestep, 0.0)
        return remaining

    def credit(self, rate: float, timestep: float) -> None:
        """Record consumption of ``rate`` (mm/d) over one timestep."""
        self.aet += rate * timestep

    def record_flux(self, from_index: int, to_index: int, rate: float) -> None:
        self.fluxes.append(FluxRecord(from_index, to_index, rate))
