"""Timestep orchestration for a single spatial unit.

Provides a reference integrator that honors the process call contract:
for each process, in model order, rates are computed, constrained and
committed to the state before the next process runs. Committing is what
makes the evapotranspiration ledger order-sensitive: a process sees the
PET left by everything invoked before it in the same step.

Independent units share no mutable state and may be stepped in any
order; processes within a unit may not.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional, Sequence

import numpy as np
import pandas as pd

from hydroflux.logging import get_logger
from hydroflux.process.errors import ConfigurationError
from hydroflux.process.hru import TimeStruct
from hydroflux.process.state import WATER_TYPES, StepLedger, SVType

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from hydroflux.config import ModelOptions
    from hydroflux.process.base import HydroProcess
    from hydroflux.process.hru import ForcingSample, HydroUnit
    from hydroflux.process.model import ProcessModel

__all__ = ["StepOutput", "commit_rates", "step_unit", "run_loop"]

logger = get_logger("loop")


@dataclass
class StepOutput:
    """Container for per-step output arrays.

    Attributes
    ----------
    n_steps : int
        Number of simulated timesteps
    storage : NDArray[np.float64]
        State vector at the end of each step, (n_steps, n_state_vars)
    aet : NDArray[np.float64]
        Actual ET consumed in each step (mm), (n_steps,)
    rates : list[NDArray[np.float64]]
        Constrained rates per process, each (n_steps, n_connections)
    """

    n_steps: int
    n_state_vars: int
    n_connections: Sequence[int]
    storage: NDArray[np.float64] = field(default=None)
    aet: NDArray[np.float64] = field(default=None)
    rates: list = field(default=None)

    def __post_init__(self):
        if self.storage is None:
            self.storage = np.zeros((self.n_steps, self.n_state_vars), dtype=np.float64)
        if self.aet is None:
            self.aet = np.zeros(self.n_steps, dtype=np.float64)
        if self.rates is None:
            self.rates = [
                np.zeros((self.n_steps, n), dtype=np.float64) for n in self.n_connections
            ]

    def to_dataframe(
        self,
        state_names: Sequence[str],
        process_names: Sequence[str],
    ) -> pd.DataFrame:
        """Tabulate storages, AET and each process's primary rate."""
        data = {name: self.storage[:, i] for i, name in enumerate(state_names)}
        data["aet_step"] = self.aet
        for k, (name, arr) in enumerate(zip(process_names, self.rates)):
            if arr.shape[1]:
                data[f"p{k}:{name}"] = arr[:, 0]
        df = pd.DataFrame(data)
        df.index.name = "step"
        return df


def commit_rates(
    process: HydroProcess,
    rates: NDArray[np.float64],
    state: NDArray[np.float64],
    ledger: StepLedger,
    timestep: float,
) -> None:
    """Apply one process's constrained rates to the state and ledger.

    Transfers move rate * dt from source to destination. Self links credit
    their compartment; an AET self link is also the ledger write.
    """
    registry = process.registry
    for conn, rate in zip(process.connections, rates):
        if conn.is_self_link:
            state[conn.from_index] += rate * timestep
            if registry.type_of(conn.from_index) == SVType.AET:
                ledger.credit(rate, timestep)
            continue
        state[conn.from_index] -= rate * timestep
        state[conn.to_index] += rate * timestep
        if (registry.type_of(conn.from_index) in WATER_TYPES
                and registry.type_of(conn.to_index) in WATER_TYPES):
            ledger.record_flux(conn.from_index, conn.to_index, rate)


def step_unit(
    model: ProcessModel,
    state: NDArray[np.float64],
    hru: HydroUnit,
    options: ModelOptions,
    tt: TimeStruct,
    ledger: Optional[StepLedger] = None,
) -> list[NDArray[np.float64]]:
    """Advance one unit by one timestep.

    Parameters
    ----------
    model : ProcessModel
        Initialized process model
    state : NDArray[np.float64]
        State vector (modified in-place)
    hru : HydroUnit
        Unit properties and this step's forcing
    options : ModelOptions
        Run settings
    tt : TimeStruct
        Time of this step
    ledger : StepLedger, optional
        Ledger to reuse; reset before use

    Returns
    -------
    list of NDArray[np.float64]
        Constrained rates of each process, in model order
    """
    if not model.initialized:
        raise ConfigurationError("ProcessModel must be initialized before stepping")
    if ledger is None:
        ledger = StepLedger()
    ledger.reset()
    i_aet = model.registry.index_of(SVType.AET)
    if i_aet is not None:
        state[i_aet] = 0.0

    results = []
    for process in model:
        rates = process.get_rates_of_change(state, hru, options, tt, ledger)
        process.apply_constraints(state, hru, options, tt, ledger, rates)
        commit_rates(process, rates, state, ledger, options.timestep)
        results.append(rates)
    return results


def run_loop(
    model: ProcessModel,
    state: NDArray[np.float64],
    hru: HydroUnit,
    forcings: Sequence[ForcingSample],
    options: ModelOptions,
    start: Optional[TimeStruct] = None,
) -> tuple[StepOutput, NDArray[np.float64]]:
    """Run one unit through a sequence of forcing samples.

    Returns
    -------
    output : StepOutput
        Per-step storages, AET and rates
    final_state : NDArray[np.float64]
        State after the last step (a copy; ``state`` is not modified)
    """
    if start is None:
        start = TimeStruct()
    state = np.asarray(state, dtype=np.float64).copy()
    output = StepOutput(
        n_steps=len(forcings),
        n_state_vars=model.registry.n_state_vars,
        n_connections=[p.n_connections for p in model],
    )
    ledger = StepLedger()

    for step_idx, forcing in enumerate(forcings):
        elapsed = step_idx * options.timestep
        tt = TimeStruct(
            model_time=start.model_time + elapsed,
            day_of_year=(start.day_of_year - 1 + int(elapsed)) % 365 + 1,
            year=start.year + (start.day_of_year - 1 + int(elapsed)) // 365,
        )
        rates = step_unit(model, state, hru.with_forcing(forcing), options, tt, ledger)

        output.storage[step_idx, :] = state
        output.aet[step_idx] = ledger.aet
        for k, r in enumerate(rates):
            output.rates[k][step_idx, :] = r

    logger.debug("loop_complete", n_steps=len(forcings), hru=hru.hru_id)
    return output, state
