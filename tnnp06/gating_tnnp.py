"""
ten Tusscher 2006 (TNNP06) Gating Variable Kinetics
====================================================

Steady states, time constants and rate terms for the twelve gates.

Gating Variables:
- Xr1, Xr2: Rapid delayed rectifier (I_Kr)
- Xs: Slow delayed rectifier (I_Ks)
- m, h, j: Fast sodium current (I_Na)
- d, f, f2, fCass: L-type calcium current (I_CaL)
- s, r: Transient outward current (I_to)

Every function is a closed-form expression of V (fCass: of Ca_SS) and is
Numba-accelerated. Valid for V within roughly [-100, +60] mV.

Reference:
    ten Tusscher KHWJ, Panfilov AV. Am J Physiol Heart Circ Physiol.
    2006;291(3):H1088-H1100.
"""

from __future__ import annotations
import numpy as np
import numba
from typing import Tuple


# =============================================================================
# I_Kr Gating: Xr1 (activation)
# =============================================================================

@numba.jit(nopython=True, cache=True, error_model="numpy")
def alpha_xr1(V: float) -> float:
    """alpha_xr1 = 450 / (1 + exp((-45 - V) / 10))"""
    return 450.0 / (1.0 + np.exp((-45.0 - V) / 10.0))


@numba.jit(nopython=True, cache=True, error_model="numpy")
def beta_xr1(V: float) -> float:
    """beta_xr1 = 6 / (1 + exp((V + 30) / 11.5))"""
    return 6.0 / (1.0 + np.exp((V + 30.0) / 11.5))


@numba.jit(nopython=True, cache=True, error_model="numpy")
def xr1_inf(V: float) -> float:
    """Xr1 steady-state."""
    return 1.0 / (1.0 + np.exp((-26.0 - V) / 7.0))


@numba.jit(nopython=True, cache=True, error_model="numpy")
def tau_xr1(V: float) -> float:
    """Xr1 time constant [ms] = alpha_xr1 * beta_xr1."""
    return alpha_xr1(V) * beta_xr1(V)


# =============================================================================
# I_Kr Gating: Xr2 (inactivation)
# =============================================================================

@numba.jit(nopython=True, cache=True, error_model="numpy")
def alpha_xr2(V: float) -> float:
    """alpha_xr2 = 3 / (1 + exp((-60 - V) / 20))"""
    return 3.0 / (1.0 + np.exp((-60.0 - V) / 20.0))


@numba.jit(nopython=True, cache=True, error_model="numpy")
def beta_xr2(V: float) -> float:
    """beta_xr2 = 1.12 / (1 + exp((V - 60) / 20))"""
    return 1.12 / (1.0 + np.exp((V - 60.0) / 20.0))


@numba.jit(nopython=True, cache=True, error_model="numpy")
def xr2_inf(V: float) -> float:
    """Xr2 steady-state."""
    return 1.0 / (1.0 + np.exp((V + 88.0) / 24.0))


@numba.jit(nopython=True, cache=True, error_model="numpy")
def tau_xr2(V: float) -> float:
    """Xr2 time constant [ms] = alpha_xr2 * beta_xr2."""
    return alpha_xr2(V) * beta_xr2(V)


# =============================================================================
# I_Ks Gating: Xs (activation)
# =============================================================================

@numba.jit(nopython=True, cache=True, error_model="numpy")
def alpha_xs(V: float) -> float:
    """alpha_xs = 1400 / sqrt(1 + exp((5 - V) / 6))"""
    return 1400.0 / np.sqrt(1.0 + np.exp((5.0 - V) / 6.0))


@numba.jit(nopython=True, cache=True, error_model="numpy")
def beta_xs(V: float) -> float:
    """beta_xs = 1 / (1 + exp((V - 35) / 15))"""
    return 1.0 / (1.0 + np.exp((V - 35.0) / 15.0))


@numba.jit(nopython=True, cache=True, error_model="numpy")
def xs_inf(V: float) -> float:
    """Xs steady-state."""
    return 1.0 / (1.0 + np.exp((-5.0 - V) / 14.0))


@numba.jit(nopython=True, cache=True, error_model="numpy")
def tau_xs(V: float) -> float:
    """Xs time constant [ms] = alpha_xs * beta_xs + 80."""
    return alpha_xs(V) * beta_xs(V) + 80.0


# =============================================================================
# I_Na Gating: m-gate (activation)
# =============================================================================

@numba.jit(nopython=True, cache=True, error_model="numpy")
def alpha_m(V: float) -> float:
    """
    m-gate rate term.

    alpha_m = 1 / (1 + exp((-60 - V) / 5))
    """
    return 1.0 / (1.0 + np.exp((-60.0 - V) / 5.0))


@numba.jit(nopython=True, cache=True, error_model="numpy")
def beta_m(V: float) -> float:
    """
    m-gate rate term.

    beta_m = 0.1 / (1 + exp((V + 35) / 5)) + 0.1 / (1 + exp((V - 50) / 200))
    """
    return 0.1 / (1.0 + np.exp((V + 35.0) / 5.0)) + 0.1 / (1.0 + np.exp((V - 50.0) / 200.0))


@numba.jit(nopython=True, cache=True, error_model="numpy")
def m_inf(V: float) -> float:
    """
    m-gate steady-state.

    m_inf = 1 / (1 + exp((-56.86 - V) / 9.03))^2
    """
    x = 1.0 + np.exp((-56.86 - V) / 9.03)
    return 1.0 / (x * x)


@numba.jit(nopython=True, cache=True, error_model="numpy")
def tau_m(V: float) -> float:
    """m-gate time constant [ms] = alpha_m * beta_m (~0.1 ms)."""
    return alpha_m(V) * beta_m(V)


# =============================================================================
# I_Na Gating: h-gate (fast inactivation)
# =============================================================================

@numba.jit(nopython=True, cache=True, error_model="numpy")
def alpha_h(V: float) -> float:
    """
    h-gate opening rate.

    For V >= -40 mV: alpha_h = 0
    For V < -40 mV:  alpha_h = 0.057 * exp(-(V + 80) / 6.8)
    """
    if V >= -40.0:
        return 0.0
    return 0.057 * np.exp(-(V + 80.0) / 6.8)


@numba.jit(nopython=True, cache=True, error_model="numpy")
def beta_h(V: float) -> float:
    """
    h-gate closing rate.

    For V >= -40 mV: beta_h = 0.77 / (0.13 * (1 + exp(-(V + 10.66) / 11.1)))
    For V < -40 mV:  beta_h = 2.7 * exp(0.079 * V) + 3.1e5 * exp(0.3485 * V)
    """
    if V >= -40.0:
        return 0.77 / (0.13 * (1.0 + np.exp(-(V + 10.66) / 11.1)))
    return 2.7 * np.exp(0.079 * V) + 3.1e5 * np.exp(0.3485 * V)


@numba.jit(nopython=True, cache=True, error_model="numpy")
def h_inf(V: float) -> float:
    """
    h-gate steady-state.

    h_inf = 1 / (1 + exp((V + 71.55) / 7.43))^2
    """
    x = 1.0 + np.exp((V + 71.55) / 7.43)
    return 1.0 / (x * x)


@numba.jit(nopython=True, cache=True, error_model="numpy")
def tau_h(V: float) -> float:
    """h-gate time constant [ms] = 1 / (alpha_h + beta_h)."""
    return 1.0 / (alpha_h(V) + beta_h(V))


# =============================================================================
# I_Na Gating: j-gate (slow inactivation)
# =============================================================================

@numba.jit(nopython=True, cache=True, error_model="numpy")
def alpha_j(V: float) -> float:
    """
    j-gate opening rate.

    For V >= -40 mV: alpha_j = 0
    For V < -40 mV:
        alpha_j = (-25428 * exp(0.2444*V) - 6.948e-6 * exp(-0.04391*V))
                  * (V + 37.78) / (1 + exp(0.311 * (V + 79.23)))
    """
    if V >= -40.0:
        return 0.0
    term1 = -25428.0 * np.exp(0.2444 * V)
    term2 = 6.948e-6 * np.exp(-0.04391 * V)
    return (term1 - term2) * (V + 37.78) / (1.0 + np.exp(0.311 * (V + 79.23)))


@numba.jit(nopython=True, cache=True, error_model="numpy")
def beta_j(V: float) -> float:
    """
    j-gate closing rate.

    For V >= -40 mV:
        beta_j = 0.6 * exp(0.057 * V) / (1 + exp(-0.1 * (V + 32)))
    For V < -40 mV:
        beta_j = 0.02424 * exp(-0.01052 * V) / (1 + exp(-0.1378 * (V + 40.14)))
    """
    if V >= -40.0:
        return 0.6 * np.exp(0.057 * V) / (1.0 + np.exp(-0.1 * (V + 32.0)))
    return 0.02424 * np.exp(-0.01052 * V) / (1.0 + np.exp(-0.1378 * (V + 40.14)))


@numba.jit(nopython=True, cache=True, error_model="numpy")
def j_inf(V: float) -> float:
    """j-gate steady-state (same curve as h_inf)."""
    return h_inf(V)


@numba.jit(nopython=True, cache=True, error_model="numpy")
def tau_j(V: float) -> float:
    """j-gate time constant [ms] = 1 / (alpha_j + beta_j)."""
    return 1.0 / (alpha_j(V) + beta_j(V))


# =============================================================================
# I_CaL Gating: d-gate (activation)
# =============================================================================

@numba.jit(nopython=True, cache=True, error_model="numpy")
def alpha_d(V: float) -> float:
    """alpha_d = 1.4 / (1 + exp((-35 - V) / 13)) + 0.25"""
    return 1.4 / (1.0 + np.exp((-35.0 - V) / 13.0)) + 0.25


@numba.jit(nopython=True, cache=True, error_model="numpy")
def beta_d(V: float) -> float:
    """beta_d = 1.4 / (1 + exp((V + 5) / 5))"""
    return 1.4 / (1.0 + np.exp((V + 5.0) / 5.0))


@numba.jit(nopython=True, cache=True, error_model="numpy")
def gamma_d(V: float) -> float:
    """gamma_d = 1 / (1 + exp((50 - V) / 20))"""
    return 1.0 / (1.0 + np.exp((50.0 - V) / 20.0))


@numba.jit(nopython=True, cache=True, error_model="numpy")
def d_inf(V: float) -> float:
    """d-gate steady-state."""
    return 1.0 / (1.0 + np.exp((-8.0 - V) / 7.5))


@numba.jit(nopython=True, cache=True, error_model="numpy")
def tau_d(V: float) -> float:
    """d-gate time constant [ms] = alpha_d * beta_d + gamma_d."""
    return alpha_d(V) * beta_d(V) + gamma_d(V)


# =============================================================================
# I_CaL Gating: f-gate (slow voltage inactivation)
# =============================================================================

@numba.jit(nopython=True, cache=True, error_model="numpy")
def f_inf(V: float) -> float:
    """f-gate steady-state."""
    return 1.0 / (1.0 + np.exp((V + 20.0) / 7.0))


@numba.jit(nopython=True, cache=True, error_model="numpy")
def tau_f(V: float) -> float:
    """
    f-gate time constant [ms].

    tau_f = 1102.5 * exp(-(V + 27)^2 / 225) + 200 / (1 + exp((13 - V) / 10))
            + 180 / (1 + exp((V + 30) / 10)) + 20
    """
    return (1102.5 * np.exp(-(V + 27.0) * (V + 27.0) / 225.0)
            + 200.0 / (1.0 + np.exp((13.0 - V) / 10.0))
            + 180.0 / (1.0 + np.exp((V + 30.0) / 10.0))
            + 20.0)


# =============================================================================
# I_CaL Gating: f2-gate (fast voltage inactivation)
# =============================================================================

@numba.jit(nopython=True, cache=True, error_model="numpy")
def f2_inf(V: float) -> float:
    """
    f2-gate steady-state.

    f2_inf = 0.67 / (1 + exp((V + 35) / 7)) + 0.33

    Never falls below 0.33: f2 inactivation is incomplete.
    """
    return 0.67 / (1.0 + np.exp((V + 35.0) / 7.0)) + 0.33


@numba.jit(nopython=True, cache=True, error_model="numpy")
def tau_f2(V: float) -> float:
    """
    f2-gate time constant [ms].

    tau_f2 = 562 * exp(-(V + 27)^2 / 240) + 31 / (1 + exp((25 - V) / 10))
             + 80 / (1 + exp((V + 30) / 10))
    """
    # 562 / 240 / 31 / 80 are the published 2006 constants, as in the CellML
    # export of the model. Some ports of TNNP06 use different values here.
    return (562.0 * np.exp(-(V + 27.0) * (V + 27.0) / 240.0)
            + 31.0 / (1.0 + np.exp((25.0 - V) / 10.0))
            + 80.0 / (1.0 + np.exp((V + 30.0) / 10.0)))


# =============================================================================
# I_CaL Gating: fCass-gate (subspace calcium inactivation)
# =============================================================================

@numba.jit(nopython=True, cache=True, error_model="numpy")
def fCass_inf(Ca_SS: float) -> float:
    """
    fCass steady-state.

    fCass_inf = 0.6 / (1 + (Ca_SS / 0.05)^2) + 0.4

    Parameters
    ----------
    Ca_SS : float
        Free subspace calcium [mM]
    """
    ratio = Ca_SS / 0.05
    return 0.6 / (1.0 + ratio * ratio) + 0.4


@numba.jit(nopython=True, cache=True, error_model="numpy")
def tau_fCass(Ca_SS: float) -> float:
    """fCass time constant [ms] = 80 / (1 + (Ca_SS / 0.05)^2) + 2."""
    ratio = Ca_SS / 0.05
    return 80.0 / (1.0 + ratio * ratio) + 2.0


# =============================================================================
# I_to Gating: s-gate (inactivation)
# =============================================================================

@numba.jit(nopython=True, cache=True, error_model="numpy")
def s_inf(V: float) -> float:
    """s-gate steady-state."""
    return 1.0 / (1.0 + np.exp((V + 20.0) / 5.0))


@numba.jit(nopython=True, cache=True, error_model="numpy")
def tau_s(V: float) -> float:
    """
    s-gate time constant [ms].

    tau_s = 85 * exp(-(V + 45)^2 / 320) + 5 / (1 + exp((V - 20) / 5)) + 3
    """
    return (85.0 * np.exp(-(V + 45.0) * (V + 45.0) / 320.0)
            + 5.0 / (1.0 + np.exp((V - 20.0) / 5.0))
            + 3.0)


# =============================================================================
# I_to Gating: r-gate (activation)
# =============================================================================

@numba.jit(nopython=True, cache=True, error_model="numpy")
def r_inf(V: float) -> float:
    """r-gate steady-state."""
    return 1.0 / (1.0 + np.exp((20.0 - V) / 6.0))


@numba.jit(nopython=True, cache=True, error_model="numpy")
def tau_r(V: float) -> float:
    """r-gate time constant [ms] = 9.5 * exp(-(V + 40)^2 / 1800) + 0.8."""
    return 9.5 * np.exp(-(V + 40.0) * (V + 40.0) / 1800.0) + 0.8


# =============================================================================
# Convenience: All Gates in State Order
# =============================================================================

@numba.jit(nopython=True, cache=True, error_model="numpy")
def gate_steady_states(V: float, Ca_SS: float) -> Tuple[float, float, float, float,
                                                         float, float, float, float,
                                                         float, float, float, float]:
    """
    Steady states of all twelve gates.

    Returns
    -------
    Xr1, Xr2, Xs, m, h, j, d, f, f2, fCass, s, r
    """
    return (
        xr1_inf(V), xr2_inf(V), xs_inf(V),
        m_inf(V), h_inf(V), j_inf(V),
        d_inf(V), f_inf(V), f2_inf(V), fCass_inf(Ca_SS),
        s_inf(V), r_inf(V),
    )


@numba.jit(nopython=True, cache=True, error_model="numpy")
def gate_time_constants(V: float, Ca_SS: float) -> Tuple[float, float, float, float,
                                                          float, float, float, float,
                                                          float, float, float, float]:
    """
    Time constants [ms] of all twelve gates, in the same order as
    gate_steady_states.
    """
    return (
        tau_xr1(V), tau_xr2(V), tau_xs(V),
        tau_m(V), tau_h(V), tau_j(V),
        tau_d(V), tau_f(V), tau_f2(V), tau_fCass(Ca_SS),
        tau_s(V), tau_r(V),
    )


# =============================================================================
# Rush-Larsen Update
# =============================================================================

@numba.jit(nopython=True, cache=True, error_model="numpy")
def rush_larsen_update(y: float, y_inf: float, tau: float, dt: float) -> float:
    """
    Rush-Larsen exponential integrator for gating variables.

    y_new = y_inf - (y_inf - y) * exp(-dt / tau)

    Exact for a frozen V, so the result is a convex combination of y and
    y_inf and stays in [0, 1] for any dt > 0.
    """
    return y_inf - (y_inf - y) * np.exp(-dt / tau)


# =============================================================================
# Test Module
# =============================================================================

if __name__ == "__main__":
    import matplotlib.pyplot as plt

    print("Testing TNNP06 Gating Kinetics")
    print("=" * 60)

    V_range = np.linspace(-100, 60, 500)
    names = ("Xr1", "Xr2", "Xs", "m", "h", "j", "d", "f", "f2", "fCass", "s", "r")

    Ca_SS_rest = 0.00007
    inf_vals = np.array([gate_steady_states(V, Ca_SS_rest) for V in V_range])
    tau_vals = np.array([gate_time_constants(V, Ca_SS_rest) for V in V_range])

    for k, name in enumerate(names):
        print(f"{name:>6}: inf(-85) = {inf_vals[np.argmin(abs(V_range + 85)), k]:.6f}   "
              f"tau range = [{tau_vals[:, k].min():.4f}, {tau_vals[:, k].max():.2f}] ms")

    fig, axes = plt.subplots(1, 2, figsize=(14, 5))
    for k, name in enumerate(names):
        if name == "fCass":
            continue
        axes[0].plot(V_range, inf_vals[:, k], label=name, linewidth=2)
        axes[1].semilogy(V_range, tau_vals[:, k], label=name, linewidth=2)

    axes[0].set_xlabel('V [mV]')
    axes[0].set_ylabel('Steady-state')
    axes[0].set_title('TNNP06 Gating: Steady-State')
    axes[0].legend(ncol=2)
    axes[0].grid(True, alpha=0.3)

    axes[1].set_xlabel('V [mV]')
    axes[1].set_ylabel('Time constant [ms]')
    axes[1].set_title('TNNP06 Gating: Time Constants')
    axes[1].legend(ncol=2)
    axes[1].grid(True, alpha=0.3)

    plt.tight_layout()
    plt.savefig('gating_tnnp_test.png', dpi=150)
    print(f"\nPlot saved: gating_tnnp_test.png")

    plt.show()
