"""Integration tests for timestep orchestration.

Tests verify:
1. StepOutput initialization and DataFrame export
2. step_unit commits each process before the next runs
3. run_loop integrates a configured model over several steps
4. Constituent mass moves with committed water fluxes
"""

import numpy as np
import pandas as pd
import pytest
from numpy.testing import assert_allclose, assert_array_almost_equal

from hydroflux.config import ModelConfig, ModelOptions
from hydroflux.process.errors import ConfigurationError
from hydroflux.process.hru import ForcingSample, TimeStruct
from hydroflux.process.loop import StepOutput, commit_rates, run_loop, step_unit
from hydroflux.process.model import ProcessModel
from hydroflux.process.state import SVType
from hydroflux.process.vegetation import CanopyDrip, CanopyEvaporation

pytestmark = pytest.mark.integration

TT = TimeStruct()


def _model_from(*processes, compartments=()):
    config = ModelConfig.from_dict({
        "processes": list(processes),
        "compartments": list(compartments),
    })
    return ProcessModel.from_config(config)


class TestStepOutput:
    """Tests for StepOutput container."""

    def test_initialization(self):
        output = StepOutput(n_steps=10, n_state_vars=4, n_connections=[2, 1])

        assert output.storage.shape == (10, 4)
        assert output.aet.shape == (10,)
        assert [r.shape for r in output.rates] == [(10, 2), (10, 1)]

    def test_initialized_to_zeros(self):
        output = StepOutput(n_steps=3, n_state_vars=2, n_connections=[2])

        assert_array_almost_equal(output.storage, np.zeros((3, 2)))
        assert_array_almost_equal(output.rates[0], np.zeros((3, 2)))

    def test_to_dataframe(self):
        output = StepOutput(n_steps=2, n_state_vars=2, n_connections=[2, 0])
        output.storage[:, 0] = [1.0, 0.5]
        output.rates[0][:, 0] = [0.5, 0.25]

        df = output.to_dataframe(["canopy", "atmosphere"], ["canopy_evaporation:all", "advection:n"])

        assert isinstance(df, pd.DataFrame)
        assert list(df.columns) == ["canopy", "atmosphere", "aet_step", "p0:canopy_evaporation:all"]
        assert df.index.name == "step"
        assert df["canopy"].tolist() == [1.0, 0.5]


class TestStepUnit:
    """Tests for step_unit."""

    def test_requires_initialized_model(self, registry, make_hru, options):
        model = ProcessModel(registry, [CanopyEvaporation("all", registry)])
        with pytest.raises(ConfigurationError, match="initialized"):
            step_unit(model, registry.zeros(), make_hru(), options, TT)

    def test_evaporation_then_drip(self, make_hru, options):
        """Drip sees canopy storage already reduced by evaporation."""
        model = _model_from(
            {"type": "canopy_evaporation", "variant": "maximum"},
            {"type": "canopy_drip", "variant": "rutter", "to": "ponded_water"},
        )
        reg = model.registry
        state = reg.zeros()
        state[reg.index_of(SVType.CANOPY)] = 3.0
        hru = make_hru(forest_coverage=0.5, capacity=2.0, pet=1.0)

        evap, drip = step_unit(model, state, hru, options, TT)

        # evap 0.5 leaves 2.5 mm; threshold Fc * C = 1 mm -> 1.5 mm drips
        assert_allclose(evap, [0.5, 0.5])
        assert_allclose(drip, [1.5])
        assert_allclose(state[reg.index_of(SVType.CANOPY)], 1.0)
        assert_allclose(state[reg.index_of(SVType.ATMOSPHERE)], 0.5)
        assert_allclose(state[reg.index_of(SVType.PONDED_WATER)], 1.5)
        assert_allclose(state[reg.index_of(SVType.AET)], 0.5)

    def test_ledger_reset_each_step(self, make_hru, options, ledger):
        model = _model_from({"type": "canopy_evaporation", "variant": "maximum"})
        reg = model.registry
        state = reg.zeros()
        state[reg.index_of(SVType.CANOPY)] = 10.0
        hru = make_hru(forest_coverage=1.0, pet=2.0)

        step_unit(model, state, hru, options, TT, ledger)
        rates = step_unit(model, state, hru, options, TT, ledger)

        assert_allclose(rates[0], [2.0, 2.0])
        assert_allclose(ledger.aet, 2.0)
        assert_allclose(state[reg.index_of(SVType.CANOPY)], 6.0)

    def test_commit_records_water_fluxes_only(self, registry, ledger):
        i_can = registry.index_of(SVType.CANOPY)
        process = CanopyEvaporation("all", registry)
        state = registry.zeros()
        state[i_can] = 1.0

        commit_rates(process, np.array([1.0, 1.0]), state, ledger, 1.0)

        assert len(ledger.fluxes) == 1
        assert ledger.fluxes[0].from_index == i_can
        assert_allclose(ledger.aet, 1.0)

    def test_subdaily_commit(self, registry, ledger):
        i_can = registry.index_of(SVType.CANOPY)
        i_pond = registry.index_of(SVType.PONDED_WATER)
        process = CanopyDrip("rutter", i_pond, registry)
        state = registry.zeros()
        state[i_can] = 1.0

        commit_rates(process, np.array([2.0]), state, ledger, 0.25)

        assert_allclose(state[i_can], 0.5)
        assert_allclose(state[i_pond], 0.5)


class TestRunLoop:
    """Tests for run_loop."""

    def test_shapes_and_input_untouched(self, make_hru, options):
        model = _model_from(
            {"type": "canopy_evaporation", "variant": "rutter"},
            {"type": "canopy_drip", "variant": "slowdrain", "to": "ponded_water"},
            compartments=["trunk"],
        )
        reg = model.registry
        state = reg.zeros()
        state[reg.index_of(SVType.CANOPY)] = 2.0
        initial = state.copy()
        forcings = [ForcingSample(pet=p) for p in (1.0, 2.0, 3.0, 0.0)]
        hru = make_hru(forest_coverage=0.6, capacity=5.0, drip_proportion=0.2, trunk_fraction=0.1)

        output, final = run_loop(model, state, hru, forcings, options)

        assert output.storage.shape == (4, reg.n_state_vars)
        assert_array_almost_equal(state, initial)
        assert_array_almost_equal(output.storage[-1], final)
        assert output.aet[-1] == 0.0
        # canopy storage declines monotonically with no input
        canopy = output.storage[:, reg.index_of(SVType.CANOPY)]
        assert np.all(np.diff(canopy) <= 0.0)

    def test_dataframe_export(self, make_hru, options):
        model = _model_from({"type": "canopy_evaporation", "variant": "all"})
        reg = model.registry
        state = reg.zeros()
        state[reg.index_of(SVType.CANOPY)] = 1.2

        output, _ = run_loop(model, state, make_hru(), [ForcingSample(pet=4.0)] * 3, options)
        df = output.to_dataframe(reg.names(), [p.name for p in model])

        assert len(df) == 3
        assert_allclose(df["aet_step"].to_numpy(), [1.2, 0.0, 0.0])
        assert_allclose(df["p0:canopy_evaporation:all"].to_numpy(), [1.2, 0.0, 0.0])

    def test_subdaily_steps(self, make_hru):
        options = ModelOptions(timestep=0.5)
        model = _model_from({"type": "canopy_evaporation", "variant": "maximum"})
        reg = model.registry
        state = reg.zeros()
        state[reg.index_of(SVType.CANOPY)] = 10.0
        hru = make_hru(forest_coverage=1.0)

        output, final = run_loop(model, state, hru, [ForcingSample(pet=2.0)] * 4, options)

        # 2 mm/d over four half-day steps
        assert_allclose(output.aet, [1.0] * 4)
        assert_allclose(final[reg.index_of(SVType.CANOPY)], 6.0)


class TestAdvectionInLoop:
    """Constituent transport driven by committed water fluxes."""

    def test_constituent_follows_drip(self, make_hru, options):
        model = _model_from(
            {"type": "canopy_evaporation", "variant": "rutter"},
            {"type": "canopy_drip", "variant": "rutter", "to": "ponded_water"},
            {"type": "advection", "constituent": "nitrate"},
        )
        reg = model.registry
        advection = model.processes[2]
        m_can, m_pond = advection.from_index(0), advection.to_index(0)
        state = reg.zeros()
        state[reg.index_of(SVType.CANOPY)] = 3.0
        state[m_can] = 6.0
        hru = make_hru(forest_coverage=0.5, capacity=4.0, pet=0.0)

        rates = step_unit(model, state, hru, options, TT)

        # 1 mm drips from 3 mm at 2 mg/mm
        assert_allclose(rates[1], [1.0])
        assert_allclose(rates[2], [2.0])
        assert_allclose(state[m_can], 4.0)
        assert_allclose(state[m_pond], 2.0)

    def test_constituent_mass_conserved(self, make_hru, options):
        model = _model_from(
            {"type": "canopy_evaporation", "variant": "rutter"},
            {"type": "canopy_drip", "variant": "slowdrain", "to": "ponded_water"},
            {"type": "advection", "constituent": "nitrate"},
        )
        reg = model.registry
        advection = model.processes[2]
        state = reg.zeros()
        state[reg.index_of(SVType.CANOPY)] = 4.0
        state[advection.from_index(0)] = 5.0
        hru = make_hru(forest_coverage=0.5, capacity=4.0, pet=3.0, drip_proportion=0.4)

        output, final = run_loop(model, state, hru, [ForcingSample(pet=3.0)] * 6, options)

        mass = [i for i, c in enumerate(reg) if c.sv_type == SVType.CONSTITUENT]
        assert_allclose(final[mass].sum(), 5.0, atol=1e-10)
        assert np.all(output.storage[:, mass] >= -1e-12)
