"""
ten Tusscher 2006 Human Ventricular Ionic Model (Numba-Optimized)
=================================================================

Single-cell integrator for the TNNP06 model.

State Variables (19 total):
- V: Membrane potential [mV]
- Xr1, Xr2, Xs: Delayed rectifier gates
- m, h, j: Fast Na+ channel gates
- d, f, f2, fCass: L-type Ca2+ channel gates
- s, r: Transient outward gates
- Ca_i, Ca_SR, Ca_SS: Free Ca2+ in cytoplasm, SR and subspace [mM]
- R_prime: Recovered ryanodine receptor fraction
- Na_i, K_i: Intracellular Na+ and K+ [mM]

One step, in order:
1. Reversal potentials from the current concentrations
2. Steady states and time constants of all gates at the current V
3. Rush-Larsen update of every gate
4. Currents from the previous V and the updated gates
5. R_prime, then Na_i, K_i and total Ca2+ by forward Euler; free Ca2+
   from the buffering quadratic
6. V by forward Euler

Currents are per unit capacitance (pA/pF), so dV/dt = -(I_ion + I_stim).
The cell capacitance Cm only converts current densities into ion fluxes.

Stable for dt <= 0.02 ms. Larger steps produce non-finite states instead of
raising; use ``check_state`` to turn that into an exception.

Reference:
    ten Tusscher KHWJ, Panfilov AV. "Alternans and spiral breakup in a human
    ventricular tissue model." Am J Physiol Heart Circ Physiol.
    2006;291(3):H1088-H1100.
"""

from __future__ import annotations
import logging
import math
import numpy as np
import numba
from typing import Dict, Optional, Union

from .parameters_tnnp import (
    TNNPParams, CellState, CellType, KernelConstants,
    default_params, default_initial_conditions,
    STATE_NAMES, N_STATES,
)
from .gating_tnnp import gate_steady_states, gate_time_constants, rush_larsen_update
from .calcium_tnnp import update_calcium
from .currents_tnnp import (
    membrane_currents,
    IDX_V, IDX_CA_I, IDX_CA_SR, IDX_CA_SS, IDX_R_PRIME, IDX_NA_I, IDX_K_I,
)

logger = logging.getLogger(__name__)

# Gates occupy a contiguous block of the state vector (Xr1 ... r)
GATE_START = 1
N_GATES = 12


class NumericalInstabilityError(ArithmeticError):
    """A state became non-finite, usually because dt was too large."""


# =============================================================================
# Single-Cell Step (Numba)
# =============================================================================

@numba.jit(nopython=True, cache=True, error_model="numpy")
def tnnp_step(y: np.ndarray, I_stim: float, dt: float, p: KernelConstants) -> np.ndarray:
    """
    Advance one cell by dt.

    Parameters
    ----------
    y : np.ndarray
        State vector (19,) in standard order, not modified
    I_stim : float
        Stimulus current density [pA/pF], negative depolarizes
    dt : float
        Time step [ms], > 0
    p : KernelConstants
        Model constants

    Returns
    -------
    y_new : np.ndarray
        New state vector (19,)

    Notes
    -----
    Currents and I_stim are densities in pA/pF, so the voltage update is

        V_new = V - dt * (I_ion + I_stim)

    with no division by the cell capacitance. Cm only appears where current
    densities are converted to Na+, K+ and Ca2+ fluxes.

    Compiled with the numpy error model: a division by zero gives inf or
    NaN in the returned state instead of raising.
    """
    y_new = y.copy()

    V = y[IDX_V]
    Ca_i = y[IDX_CA_I]
    Ca_SR = y[IDX_CA_SR]
    Ca_SS = y[IDX_CA_SS]
    R_prime = y[IDX_R_PRIME]
    Na_i = y[IDX_NA_I]
    K_i = y[IDX_K_I]

    # ===================
    # Gates (Rush-Larsen)
    # ===================
    g_inf = gate_steady_states(V, Ca_SS)
    g_tau = gate_time_constants(V, Ca_SS)
    for k in range(N_GATES):
        idx = GATE_START + k
        y_new[idx] = rush_larsen_update(y[idx], g_inf[k], g_tau[k], dt)

    # ===================
    # Currents (old V and concentrations, new gates)
    # ===================
    (i_na, i_cal, i_to, i_kr, i_ks, i_k1,
     i_naca, i_nak, i_pca, i_pk, i_bna, i_bca) = membrane_currents(y_new, p)

    I_ion = (i_na + i_cal + i_to + i_kr + i_ks + i_k1
             + i_naca + i_nak + i_pca + i_pk + i_bna + i_bca)

    # ===================
    # Concentrations
    # ===================
    inv_VcF = p.Cm / (p.V_C * p.F)

    dNa_i = -(i_na + i_bna + 3.0 * i_nak + 3.0 * i_naca) * inv_VcF
    dK_i = -(I_stim + i_k1 + i_to + i_kr + i_ks - 2.0 * i_nak + i_pk) * inv_VcF

    Ca_i_new, Ca_SR_new, Ca_SS_new, R_prime_new, j_rel, j_up, j_leak, j_xfer = \
        update_calcium(Ca_i, Ca_SR, Ca_SS, R_prime, i_cal, i_bca, i_pca, i_naca, dt, p)

    y_new[IDX_CA_I] = Ca_i_new
    y_new[IDX_CA_SR] = Ca_SR_new
    y_new[IDX_CA_SS] = Ca_SS_new
    y_new[IDX_R_PRIME] = R_prime_new
    y_new[IDX_NA_I] = Na_i + dt * dNa_i
    y_new[IDX_K_I] = K_i + dt * dK_i

    # ===================
    # Voltage
    # ===================
    y_new[IDX_V] = V - dt * (I_ion + I_stim)

    return y_new


# =============================================================================
# Batch Kernel (independent cells)
# =============================================================================

@numba.jit(nopython=True, cache=True, error_model="numpy")
def tnnp_step_kernel(Y: np.ndarray, I_stim: np.ndarray, dt: float,
                     p: KernelConstants) -> None:
    """
    Numba kernel stepping a batch of uncoupled cells.
    Updates Y (n_cells, 19) in-place; I_stim has shape (n_cells,).
    """
    n_cells = Y.shape[0]
    for i in range(n_cells):
        Y[i, :] = tnnp_step(Y[i], I_stim[i], dt, p)


# =============================================================================
# Python-Level Helpers
# =============================================================================

def _check_dt(dt: float) -> float:
    dt = float(dt)
    if not math.isfinite(dt) or dt <= 0.0:
        raise ValueError(f"dt must be > 0, got {dt}")
    return dt


def step(state: CellState, params: TNNPParams, stimulus_current: float,
         dt: float) -> CellState:
    """
    Return the state one step later. The input state is not modified.

    Raises
    ------
    ValueError
        If dt is not a positive finite number.
    """
    dt = _check_dt(dt)
    y_new = tnnp_step(state.to_array(), float(stimulus_current), dt,
                      params.kernel_constants())
    return CellState.from_array(y_new)


def check_state(state: Union[CellState, np.ndarray]) -> None:
    """
    Raise NumericalInstabilityError if any state component is not finite.

    Accepts a CellState, a state vector (19,) or a batch (n_cells, 19).
    """
    if isinstance(state, CellState):
        Y = state.to_array()[np.newaxis, :]
    else:
        Y = np.atleast_2d(np.asarray(state, dtype=np.float64))

    bad = ~np.isfinite(Y)
    if not bad.any():
        return

    cells, columns = np.nonzero(bad)
    names = sorted({STATE_NAMES[c] for c in columns})
    raise NumericalInstabilityError(
        f"non-finite state in {len(set(cells.tolist()))} cell(s): {', '.join(names)}"
    )


# =============================================================================
# Model Class
# =============================================================================

class TenTusscher2006Model:
    """ten Tusscher 2006 ionic model for batches of uncoupled cells."""

    def __init__(
        self,
        params: Optional[TNNPParams] = None,
        cell_type: Union[str, CellType] = CellType.EPI,
        initial_conditions: Optional[CellState] = None,
        dt: float = 0.02,
    ):
        self.params = params or default_params(cell_type)
        self.cell_type = self.params.cell_type
        self.ic = initial_conditions or default_initial_conditions(self.cell_type)
        self.dt = _check_dt(dt)
        self.constants = self.params.kernel_constants()

        logger.info("TenTusscher2006Model (%s):", self.cell_type.name)
        logger.info("  dt = %s ms", self.dt)
        logger.info("  G_to = %s nS/pF, G_Ks = %s nS/pF",
                    self.params.currents.G_to, self.params.currents.G_Ks)
        if self.dt > 0.02:
            logger.warning("dt = %s ms exceeds 0.02 ms; the forward Euler "
                           "updates may become unstable", self.dt)

    def initialize_state(self, n_cells: int = 1) -> np.ndarray:
        """Create an (n_cells, 19) state array filled with the initial conditions."""
        if n_cells < 1:
            raise ValueError(f"n_cells must be >= 1, got {n_cells}")
        return np.tile(self.ic.to_array(), (n_cells, 1))

    def ionic_step(self, states: np.ndarray, I_stim: Optional[np.ndarray] = None) -> None:
        """Perform ionic model step (in-place)."""
        if states.ndim != 2 or states.shape[1] != N_STATES:
            raise ValueError(f"states must have shape (n_cells, {N_STATES}), got {states.shape}")
        n_cells = states.shape[0]

        if I_stim is None:
            I_stim = np.zeros(n_cells)
        else:
            I_stim = np.ascontiguousarray(
                np.broadcast_to(np.asarray(I_stim, dtype=np.float64), (n_cells,))
            )

        tnnp_step_kernel(states, I_stim, self.dt, self.constants)

    def step_cell(self, state: CellState, I_stim: float = 0.0) -> CellState:
        """Advance a single CellState, returning a new one."""
        y_new = tnnp_step(state.to_array(), float(I_stim), self.dt, self.constants)
        return CellState.from_array(y_new)


# =============================================================================
# Single-Cell Simulation
# =============================================================================

def run_single_cell(
    model: TenTusscher2006Model,
    t_end: float = 500.0,
    stim_amplitude: float = -52.0,
    stim_start: float = 10.0,
    stim_duration: float = 1.0,
    record_every: int = 1,
) -> Dict[str, np.ndarray]:
    """
    Run a single cell with one square stimulus pulse.

    Returns traces keyed by 't' and every state name, sampled before each
    recorded step.
    """
    if record_every < 1:
        raise ValueError(f"record_every must be >= 1, got {record_every}")

    dt = model.dt
    n_steps = int(np.ceil(t_end / dt))
    n_records = (n_steps + record_every - 1) // record_every

    state = model.initialize_state(1)
    results = {name: np.zeros(n_records) for name in ('t',) + STATE_NAMES}

    I_stim = np.zeros(1)
    k = 0

    for n in range(n_steps):
        t = n * dt
        if n % record_every == 0:
            results['t'][k] = t
            for idx, name in enumerate(STATE_NAMES):
                results[name][k] = state[0, idx]
            k += 1

        if stim_start <= t < stim_start + stim_duration:
            I_stim[0] = stim_amplitude
        else:
            I_stim[0] = 0.0

        model.ionic_step(state, I_stim)

    logger.debug("run_single_cell: %d steps, %d records", n_steps, n_records)
    return results


def measure_apd(t: np.ndarray, V: np.ndarray, threshold: float = 0.9) -> float:
    """Measure APD at given repolarization threshold."""
    t = np.asarray(t)
    V = np.asarray(V)
    V_rest = V[0]
    i_max = np.argmax(V)
    V_max = V[i_max]
    t_max = t[i_max]

    if V_max < -40:
        return np.nan

    V_thresh = V_rest + (1 - threshold) * (V_max - V_rest)

    for i in range(i_max, len(V)):
        if V[i] < V_thresh:
            return t[i] - t_max

    return np.nan


# =============================================================================
# Test
# =============================================================================

if __name__ == "__main__":
    import time
    import matplotlib.pyplot as plt

    logging.basicConfig(level=logging.INFO, format="%(message)s")

    print("=" * 60)
    print("TEN TUSSCHER 2006 SINGLE CELL TEST")
    print("=" * 60)

    fig, axes = plt.subplots(2, 1, figsize=(10, 7), sharex=True)

    for cell_type in CellType:
        model = TenTusscher2006Model(cell_type=cell_type, dt=0.02)

        print(f"\nRunning {cell_type.name} cell (500 ms)...")
        start = time.perf_counter()
        results = run_single_cell(model, t_end=500.0, stim_amplitude=-52.0,
                                  stim_start=10.0, stim_duration=1.0, record_every=5)
        elapsed = time.perf_counter() - start
        print(f"Completed in {elapsed:.2f}s")

        t = results['t']
        V = results['V']
        check_state(np.column_stack([results[name] for name in STATE_NAMES]))

        apd90 = measure_apd(t, V, threshold=0.9)
        apd50 = measure_apd(t, V, threshold=0.5)

        print(f"\nResults:")
        print(f"  V_rest = {V[0]:.1f} mV")
        print(f"  V_peak = {np.max(V):.1f} mV")
        print(f"  APD50 = {apd50:.1f} ms")
        print(f"  APD90 = {apd90:.1f} ms")
        print(f"  [Ca2+]i peak = {np.max(results['Ca_i'])*1e6:.1f} nM")

        axes[0].plot(t, V, label=cell_type.name)
        axes[1].plot(t, results['Ca_i'] * 1e6, label=cell_type.name)

    axes[0].set_ylabel('V [mV]')
    axes[1].set_ylabel('[Ca2+]i [nM]')
    axes[1].set_xlabel('t [ms]')
    for ax in axes:
        ax.legend()
        ax.grid(True)
    plt.tight_layout()
    plt.savefig('tnnp_single_ap.png', dpi=150)
    print("\nSaved tnnp_single_ap.png")
