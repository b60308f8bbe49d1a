"""
Unit tests for the TNNP06 integrator.

Tests cover:
- Resting stability
- Action potential upstroke and repolarization
- Determinism and batch/single-cell agreement
- Stimulus bookkeeping and calcium conservation through a full step
- Input validation and instability reporting
"""

import dataclasses

import pytest
import numpy as np

from tnnp06.parameters_tnnp import (
    CellType,
    CellState,
    MembraneCurrentParams,
    TNNPParams,
    default_params,
    default_initial_conditions,
    STATE_NAMES,
    STATE_INDICES,
    GATE_NAMES,
    N_STATES,
)
from tnnp06.calcium_tnnp import total_cell_calcium
from tnnp06.ten_tusscher_2006 import (
    TenTusscher2006Model,
    NumericalInstabilityError,
    tnnp_step,
    tnnp_step_kernel,
    step,
    check_state,
    run_single_cell,
    measure_apd,
)


V = STATE_INDICES["V"]


@pytest.fixture(scope="module")
def epi_ap():
    """Single epicardial action potential, stimulated at t = 0."""
    model = TenTusscher2006Model(cell_type="epi", dt=0.02)
    return run_single_cell(model, t_end=450.0, stim_amplitude=-52.0,
                           stim_start=0.0, stim_duration=1.0)


class TestRestingState:
    """Tests for the unstimulated cell."""

    def test_endo_rest_stable(self):
        """Test an endocardial cell stays within 0.5 mV of rest for 20 ms."""
        model = TenTusscher2006Model(cell_type=CellType.ENDO, dt=0.02)
        states = model.initialize_state(1)
        V0 = states[0, V]
        for _ in range(1000):
            model.ionic_step(states)
        assert abs(states[0, V] - V0) <= 0.5
        check_state(states)

    def test_epi_rest_no_stimulus(self):
        """Test an epicardial cell does not fire without stimulus."""
        model = TenTusscher2006Model(cell_type="epi", dt=0.02)
        results = run_single_cell(model, t_end=50.0, stim_amplitude=0.0, record_every=10)
        assert np.max(results['V']) < -80.0


class TestActionPotential:
    """Tests for a stimulated epicardial action potential."""

    def test_upstroke(self, epi_ap):
        """Test V exceeds 0 mV within 2 ms of stimulus onset."""
        t, V = epi_ap['t'], epi_ap['V']
        assert np.max(V[t <= 2.0]) > 0.0

    def test_peak(self, epi_ap):
        """Test overshoot stays physiological."""
        assert 10.0 < np.max(epi_ap['V']) < 60.0

    def test_repolarization(self, epi_ap):
        """Test V is back below -80 mV by 400 ms, after a full plateau."""
        t, V = epi_ap['t'], epi_ap['V']
        i_peak = np.argmax(V)
        below = np.nonzero(V[i_peak:] < -80.0)[0]
        assert below.size > 0
        t_repol = t[i_peak + below[0]]
        assert t_repol <= 400.0
        assert t_repol >= 250.0
        assert np.all(V[t >= 400.0] < -80.0)

    def test_apd(self, epi_ap):
        """Test APD90 is finite and ordered after APD50."""
        apd50 = measure_apd(epi_ap['t'], epi_ap['V'], threshold=0.5)
        apd90 = measure_apd(epi_ap['t'], epi_ap['V'], threshold=0.9)
        assert 150.0 < apd50 < apd90 < 400.0

    def test_states_in_domain(self, epi_ap):
        """Test gates stay in [0, 1] and concentrations positive."""
        for name in GATE_NAMES + ("R_prime",):
            trace = epi_ap[name]
            assert np.all(trace >= 0.0) and np.all(trace <= 1.0), name
        for name in ("Ca_i", "Ca_SR", "Ca_SS", "Na_i", "K_i"):
            assert np.all(epi_ap[name] > 0.0), name

    def test_calcium_transient(self, epi_ap):
        """Test cytoplasmic calcium rises during the action potential."""
        assert np.max(epi_ap['Ca_i']) > 3.0 * epi_ap['Ca_i'][0]

    def test_traces(self, epi_ap):
        """Test every state is recorded."""
        assert set(epi_ap) == {'t'} | set(STATE_NAMES)
        assert all(len(epi_ap[name]) == len(epi_ap['t']) for name in STATE_NAMES)

    def test_no_response_apd(self):
        """Test measure_apd returns NaN without an action potential."""
        t = np.linspace(0.0, 100.0, 101)
        assert np.isnan(measure_apd(t, np.full_like(t, -85.0)))


class TestStep:
    """Tests for the functional step."""

    def test_input_not_mutated(self):
        """Test step returns a new state and leaves the input alone."""
        params = default_params("epi")
        state = default_initial_conditions("epi")
        before = state.copy()
        new = step(state, params, -52.0, 0.02)
        assert isinstance(new, CellState)
        assert state == before
        assert new is not state
        assert new.V > state.V

    def test_deterministic(self):
        """Test repeated runs are bit-identical."""
        params = default_params("mid")

        def run():
            state = default_initial_conditions("mid")
            for n in range(500):
                state = step(state, params, -52.0 if n < 50 else 0.0, 0.02)
            return state.to_array()

        assert np.array_equal(run(), run())

    def test_stimulus_carries_potassium(self):
        """Test stimulus current changes V and K_i only."""
        params = default_params("epi")
        p = params.kernel_constants()
        y = default_initial_conditions("epi").to_array()
        dt = 0.02
        I_stim = -52.0

        y0 = tnnp_step(y, 0.0, dt, p)
        y1 = tnnp_step(y, I_stim, dt, p)

        dK = -dt * I_stim * p.Cm / (p.V_C * p.F)
        assert y1[STATE_INDICES["K_i"]] - y0[STATE_INDICES["K_i"]] == pytest.approx(dK, rel=1e-6)
        assert y1[V] - y0[V] == pytest.approx(-dt * I_stim, rel=1e-9)
        changed = {STATE_NAMES[i] for i in np.nonzero(y1 != y0)[0]}
        assert changed == {"V", "K_i"}

    def test_calcium_conserved_without_sarcolemmal_flux(self):
        """Test cell calcium is conserved when no current crosses the membrane."""
        params = default_params("epi")
        params = dataclasses.replace(
            params,
            currents=dataclasses.replace(params.currents, G_CaL=0.0, G_bCa=0.0, G_pCa=0.0),
            exchangers=dataclasses.replace(params.exchangers, k_NaCa=0.0),
            ca_fluxes=dataclasses.replace(params.ca_fluxes, V_rel=0.0),
        )
        p = params.kernel_constants()
        state = default_initial_conditions("epi")
        new = step(state, params, 0.0, 0.02)
        before = total_cell_calcium(state.Ca_i, state.Ca_SR, state.Ca_SS, p)
        after = total_cell_calcium(new.Ca_i, new.Ca_SR, new.Ca_SS, p)
        assert after == pytest.approx(before, rel=1e-12)

    def test_sodium_block(self):
        """Test a cell with I_Na blocked fails to fire from a weak stimulus."""
        params = default_params("epi")
        blocked = dataclasses.replace(params, currents=MembraneCurrentParams(
            G_Na=0.0, G_to=params.currents.G_to, G_Ks=params.currents.G_Ks))
        state = default_initial_conditions("epi")
        for n in range(150):
            state = step(state, blocked, -20.0 if n < 50 else 0.0, 0.02)
        assert state.V < 0.0

    def test_extreme_voltage_returns_state(self):
        """Test an out-of-range V yields a non-finite state instead of raising."""
        state = default_initial_conditions("epi")
        state.V = 1e4
        new = step(state, default_params("epi"), 0.0, 0.02)
        assert isinstance(new, CellState)
        assert not new.is_finite()
        with pytest.raises(NumericalInstabilityError):
            check_state(new)

    def test_extreme_negative_voltage_returns_state(self):
        """Test a large negative V does not raise inside the step."""
        state = default_initial_conditions("epi")
        state.V = -1e4
        new = step(state, default_params("epi"), 0.0, 0.02)
        assert isinstance(new, CellState)

    def test_extreme_voltage_in_batch(self):
        """Test one diverging cell in a batch is reported, not raised."""
        p = default_params().kernel_constants()
        Y = np.tile(default_initial_conditions().to_array(), (3, 1))
        Y[2, V] = 1e4
        tnnp_step_kernel(Y, np.zeros(3), 0.02, p)
        assert np.all(np.isfinite(Y[:2]))
        with pytest.raises(NumericalInstabilityError, match="1 cell"):
            check_state(Y)

    @pytest.mark.parametrize("dt", [0.0, -0.01, float("nan"), float("inf")])
    def test_invalid_dt(self, dt):
        """Test non-positive or non-finite dt raises error."""
        with pytest.raises(ValueError, match="dt must be > 0"):
            step(default_initial_conditions(), default_params(), 0.0, dt)


class TestModel:
    """Tests for the model class and batch kernel."""

    def test_initialize_state(self):
        """Test state array shape and contents."""
        model = TenTusscher2006Model(cell_type="endo")
        states = model.initialize_state(4)
        assert states.shape == (4, N_STATES)
        assert states.dtype == np.float64
        np.testing.assert_array_equal(states[2], default_initial_conditions("endo").to_array())

    def test_batch_matches_single(self):
        """Test the batch kernel equals stepping each cell alone."""
        model = TenTusscher2006Model(cell_type="epi", dt=0.02)
        states = model.initialize_state(3)
        I_stim = np.array([0.0, -52.0, -10.0])
        for _ in range(100):
            model.ionic_step(states, I_stim)

        for i in range(3):
            y = default_initial_conditions("epi").to_array()
            for _ in range(100):
                y = tnnp_step(y, I_stim[i], 0.02, model.constants)
            np.testing.assert_array_equal(states[i], y)

    def test_cells_independent(self):
        """Test stimulating one cell leaves the others at rest."""
        model = TenTusscher2006Model(cell_type="epi")
        states = model.initialize_state(2)
        I_stim = np.array([-52.0, 0.0])
        for _ in range(100):
            model.ionic_step(states, I_stim)
        assert states[0, V] > 0.0
        assert states[1, V] < -80.0

    def test_scalar_stimulus_broadcast(self):
        """Test a scalar stimulus applies to every cell."""
        model = TenTusscher2006Model(cell_type="epi")
        states = model.initialize_state(2)
        model.ionic_step(states, -52.0)
        np.testing.assert_array_equal(states[0], states[1])

    def test_step_cell_matches_step(self):
        """Test the model wrapper agrees with the functional step."""
        model = TenTusscher2006Model(cell_type="mid", dt=0.01)
        state = default_initial_conditions("mid")
        assert model.step_cell(state, -30.0) == step(state, model.params, -30.0, 0.01)

    def test_kernel_in_place(self):
        """Test the raw kernel writes into its input array."""
        p = default_params().kernel_constants()
        Y = np.tile(default_initial_conditions().to_array(), (2, 1))
        Y0 = Y.copy()
        tnnp_step_kernel(Y, np.array([-52.0, -52.0]), 0.02, p)
        assert not np.array_equal(Y, Y0)

    def test_bad_shape(self):
        """Test a state array with the wrong width raises error."""
        model = TenTusscher2006Model()
        with pytest.raises(ValueError, match="states must have shape"):
            model.ionic_step(np.zeros((2, 18)))

    def test_bad_dt(self):
        """Test the model rejects non-positive dt."""
        with pytest.raises(ValueError, match="dt must be > 0"):
            TenTusscher2006Model(dt=0.0)

    def test_bad_n_cells(self):
        """Test at least one cell is required."""
        with pytest.raises(ValueError, match="n_cells"):
            TenTusscher2006Model().initialize_state(0)

    def test_params_take_precedence(self):
        """Test explicit params fix the cell type."""
        model = TenTusscher2006Model(params=default_params("endo"), cell_type="epi")
        assert model.cell_type is CellType.ENDO
        assert model.ic == default_initial_conditions("endo")

    @pytest.mark.parametrize("cell_type, G_to, G_Ks", [
        (CellType.ENDO, 0.073, 0.392),
        (CellType.M, 0.294, 0.098),
    ])
    def test_constructed_params_use_cell_type(self, cell_type, G_to, G_Ks):
        """Test directly constructed params reach the kernels with cell-type conductances."""
        model = TenTusscher2006Model(params=TNNPParams(cell_type=cell_type))
        assert model.cell_type is cell_type
        assert model.constants.G_to == G_to
        assert model.constants.G_Ks == G_Ks
        assert model.ic == default_initial_conditions(cell_type)

    def test_logs_configuration(self, caplog):
        """Test the model logs its configuration."""
        with caplog.at_level("INFO", logger="tnnp06.ten_tusscher_2006"):
            TenTusscher2006Model(cell_type="mid", dt=0.02)
        assert "TenTusscher2006Model (M)" in caplog.text

    def test_large_dt_warns(self, caplog):
        """Test a dt above the stable range is logged."""
        with caplog.at_level("WARNING", logger="tnnp06.ten_tusscher_2006"):
            TenTusscher2006Model(dt=0.1)
        assert "exceeds 0.02 ms" in caplog.text


class TestCheckState:
    """Tests for instability reporting."""

    def test_finite_passes(self):
        """Test a valid state passes silently."""
        check_state(default_initial_conditions())
        check_state(np.tile(default_initial_conditions().to_array(), (3, 1)))

    def test_nan_raises(self):
        """Test a NaN component raises NumericalInstabilityError."""
        state = default_initial_conditions()
        state.Ca_SS = float("nan")
        with pytest.raises(NumericalInstabilityError, match="Ca_SS"):
            check_state(state)

    def test_batch_reports_cells(self):
        """Test the batch message counts affected cells."""
        Y = np.tile(default_initial_conditions().to_array(), (3, 1))
        Y[1, V] = np.inf
        with pytest.raises(NumericalInstabilityError, match="1 cell"):
            check_state(Y)

    def test_is_arithmetic_error(self):
        """Test the error can be caught as ArithmeticError."""
        assert issubclass(NumericalInstabilityError, ArithmeticError)
