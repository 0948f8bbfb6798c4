"""Advective transport of dissolved constituents.

A constituent moves along the same water fluxes the hydrologic
processes have already committed this step, at the concentration of the
compartment the water leaves. The transport model owns the mass-balance
formula and the mapping between water and constituent compartments;
Advection applies the usual non-negativity and no-overdraft discipline
to whatever the transport model proposes.

Water leaving to the atmosphere carries no constituent, so evaporation
concentrates the remaining store.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, NamedTuple, Optional, Protocol, Sequence

import numpy as np

from hydroflux.logging import get_logger
from hydroflux.process.base import HydroProcess, ParticipatingParam, ProcessType
from hydroflux.process.errors import ConfigurationError, ValidationIssue
from hydroflux.process.kernels.transport import advective_flux, limit_source_outflows
from hydroflux.process.state import WATER_TYPES, Compartment, StateVarRegistry, SVType

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from hydroflux.config import ModelOptions
    from hydroflux.process.hru import HydroUnit, TimeStruct
    from hydroflux.process.state import FluxRecord, StepLedger

__all__ = [
    "TransportLink",
    "TransportModel",
    "ConstituentTransport",
    "Advection",
]

logger = get_logger("transport")


class TransportLink(NamedTuple):
    """A water link and the constituent stores at either end."""

    water_from: int
    water_to: int
    mass_from: int
    mass_to: int


class TransportModel(Protocol):
    """What Advection needs from a transport model."""

    def constituent_index(self, name: str) -> Optional[int]:
        ...

    def links(self, constituent: int) -> list[TransportLink]:
        ...

    def advective_rates(
        self,
        constituent: int,
        links: Sequence[TransportLink],
        state: NDArray[np.float64],
        fluxes: Sequence[FluxRecord],
        timestep: float,
    ) -> NDArray[np.float64]:
        ...

    def get_participating_param_list(self, constituent: int) -> list[ParticipatingParam]:
        ...


class ConstituentTransport:
    """Reference transport model using mixed-cell concentrations.

    Each constituent gets one CONSTITUENT compartment per carrying water
    compartment. Levels are assigned sequentially across constituents.

    Example:
        transport = ConstituentTransport(registry)
        c = transport.add_constituent("nitrate")
        transport.add_water_link(i_canopy, i_ponded)
        advection = Advection("nitrate", transport, registry)
    """

    def __init__(self, registry: StateVarRegistry):
        self._registry = registry
        self._names: list[str] = []
        self._mass_index: list[dict[int, int]] = []
        self._water_links: list[tuple[int, int]] = []

    @property
    def n_constituents(self) -> int:
        return len(self._names)

    def constituent_index(self, name: str) -> Optional[int]:
        try:
            return self._names.index(name)
        except ValueError:
            return None

    def carriers(self) -> list[int]:
        """Water compartments that hold dissolved mass."""
        return [
            i for i, comp in enumerate(self._registry)
            if comp.sv_type in WATER_TYPES and comp.sv_type != SVType.ATMOSPHERE
        ]

    def add_constituent(
        self,
        name: str,
        carriers: Optional[Iterable[int]] = None,
    ) -> int:
        """Register a constituent and its storage compartments.

        Parameters
        ----------
        name : str
            Constituent name, unique within the model
        carriers : iterable of int, optional
            Water compartment indices that carry it; defaults to every
            registered water compartment except the atmosphere

        Returns
        -------
        int
            Constituent index
        """
        if name in self._names:
            raise ConfigurationError(f"Constituent '{name}' already registered")
        if carriers is None:
            carriers = self.carriers()
        mass_index = {}
        for w in carriers:
            if self._registry.type_of(w) not in WATER_TYPES:
                raise ConfigurationError(
                    f"Constituent '{name}' cannot be carried by {self._registry.compartment(w)}"
                )
            level = sum(len(m) for m in self._mass_index) + len(mass_index)
            mass_index[w] = self._registry.register(SVType.CONSTITUENT, level)
        self._names.append(name)
        self._mass_index.append(mass_index)
        logger.debug("constituent_added", constituent=name, n_stores=len(mass_index))
        return len(self._names) - 1

    def add_water_link(self, from_index: int, to_index: int) -> None:
        """Declare a water connection that may carry dissolved mass."""
        pair = (from_index, to_index)
        if from_index != to_index and pair not in self._water_links:
            self._water_links.append(pair)

    def track(self, processes: Iterable[HydroProcess]) -> None:
        """Declare the water connections of already-built processes."""
        for process in processes:
            for conn in process.connections:
                if (self._registry.type_of(conn.from_index) in WATER_TYPES
                        and self._registry.type_of(conn.to_index) in WATER_TYPES):
                    self.add_water_link(conn.from_index, conn.to_index)

    def mass_index(self, constituent: int, water_index: int) -> Optional[int]:
        return self._mass_index[constituent].get(water_index)

    def links(self, constituent: int) -> list[TransportLink]:
        stores = self._mass_index[constituent]
        return [
            TransportLink(wf, wt, stores[wf], stores[wt])
            for wf, wt in self._water_links
            if wf in stores and wt in stores
        ]

    def advective_rates(
        self,
        constituent: int,
        links: Sequence[TransportLink],
        state: NDArray[np.float64],
        fluxes: Sequence[FluxRecord],
        timestep: float,
    ) -> NDArray[np.float64]:
        """Mass rates along ``links`` from this step's water fluxes.

        ``links`` is the set the caller's connections were built from, so
        the result always matches them in length and order. Concentrations
        use the water each source held at the start of the step,
        reconstructed from the committed fluxes.
        """
        n = len(links)
        water_rate = np.zeros(n, dtype=np.float64)
        start_water = state.astype(np.float64, copy=True)
        for rec in fluxes:
            start_water[rec.from_index] += rec.rate * timestep
            start_water[rec.to_index] -= rec.rate * timestep
            for k, link in enumerate(links):
                if rec.from_index == link.water_from and rec.to_index == link.water_to:
                    water_rate[k] += rec.rate

        source_mass = np.array([state[link.mass_from] for link in links], dtype=np.float64)
        source_water = np.array([start_water[link.water_from] for link in links], dtype=np.float64)
        return advective_flux(water_rate, source_mass, source_water)

    def get_participating_param_list(self, constituent: int) -> list[ParticipatingParam]:
        return []


class Advection(HydroProcess):
    """Moves a constituent along committed water fluxes.

    Connections
    -----------
    k : constituent store at water_from -> constituent store at water_to,
        one per transport link (mg/m2/d)

    Parameters
    ----------
    constituent : str
        Name of the constituent to advect
    transport : TransportModel
        Transport model owning concentrations and links
    registry : StateVarRegistry
        Model state variable registry
    """

    def __init__(
        self,
        constituent: str,
        transport: TransportModel,
        registry: StateVarRegistry,
    ):
        super().__init__(ProcessType.ADVECTION, registry)
        index = transport.constituent_index(constituent)
        if index is None:
            raise ConfigurationError(f"Advection: unknown constituent '{constituent}'")
        self.constituent = constituent
        self._constit_ind = index
        self._transport = transport
        # links are fixed here; later additions to the transport model do not apply
        self._links = tuple(transport.links(index))
        self._set_connections([(link.mass_from, link.mass_to) for link in self._links])
        self._sources = np.array([c.from_index for c in self.connections], dtype=np.int64)
        self.log = self.log.bind(constituent=constituent)

    @property
    def name(self) -> str:
        return f"{self._process_type.value}:{self.constituent}"

    @property
    def constituent_index(self) -> int:
        return self._constit_ind

    def validate(self) -> list[ValidationIssue]:
        issues = []
        for k, conn in enumerate(self.connections):
            issues += self._check_type(conn.from_index, SVType.CONSTITUENT, f"link {k} source")
            issues += self._check_type(conn.to_index, SVType.CONSTITUENT, f"link {k} destination")
        return issues

    def get_participating_param_list(self) -> list[ParticipatingParam]:
        return self._transport.get_participating_param_list(self._constit_ind)

    @classmethod
    def get_participating_state_var_list(cls, variant=None) -> list[Compartment]:
        # constituent stores are registered by the transport model
        return []

    def get_rates_of_change(
        self,
        state: NDArray[np.float64],
        hru: HydroUnit,
        options: ModelOptions,
        tt: TimeStruct,
        ledger: StepLedger,
    ) -> NDArray[np.float64]:
        if self.n_connections == 0:
            return self.zero_rates()
        return self._transport.advective_rates(
            self._constit_ind, self._links, state, ledger.fluxes, options.timestep
        )

    def apply_constraints(
        self,
        state: NDArray[np.float64],
        hru: HydroUnit,
        options: ModelOptions,
        tt: TimeStruct,
        ledger: StepLedger,
        rates: NDArray[np.float64],
    ) -> NDArray[np.float64]:
        """Non-negative rates, jointly limited by each source's mass."""
        if self.n_connections == 0:
            return rates
        rates[:] = limit_source_outflows(
            rates, self._sources, state.astype(np.float64), options.timestep
        )
        return rates
