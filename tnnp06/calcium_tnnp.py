"""
ten Tusscher 2006 (TNNP06) Calcium Handling
===========================================

Intracellular calcium dynamics across three compartments:

- Cytoplasm (Ca_i), buffered by Buf_C
- Sarcoplasmic reticulum (Ca_SR), buffered by Buf_SR
- Dyadic subspace (Ca_SS), buffered by Buf_SS

Fluxes:
- I_rel:  SR release through ryanodine receptors into the subspace
- I_up:   SERCA uptake from the cytoplasm into the SR
- I_leak: passive SR leak into the cytoplasm
- I_xfer: diffusion from the subspace into the cytoplasm

The ryanodine receptor uses the reduced form of the four-state Markov
model: only the recovered fraction R_prime is tracked and the open
probability is algebraic in Ca_SS, Ca_SR and R_prime.

Buffers are in rapid equilibrium. Each step advances total (free + bound)
calcium and recovers free calcium from the closed-form root of the
buffering quadratic.

Reference:
    ten Tusscher KHWJ, Panfilov AV. Am J Physiol Heart Circ Physiol.
    2006;291(3):H1088-H1100.
"""

from __future__ import annotations
import numpy as np
import numba
from typing import Tuple

from .parameters_tnnp import KernelConstants


# =============================================================================
# Ryanodine Receptor (reduced Markov model)
# =============================================================================

@numba.jit(nopython=True, cache=True, error_model="numpy")
def k_casr(Ca_SR: float, p: KernelConstants) -> float:
    """
    SR-calcium dependent scaling of the release rates.

    k_CaSR = max_SR - (max_SR - min_SR) / (1 + (EC / Ca_SR)^2)

    Falls from max_SR (empty SR) to min_SR (full SR), so a loaded SR
    raises k1 and favours release.
    """
    ratio = p.EC / Ca_SR
    return p.max_SR - (p.max_SR - p.min_SR) / (1.0 + ratio * ratio)


@numba.jit(nopython=True, cache=True, error_model="numpy")
def ryr_rates(Ca_SR: float, p: KernelConstants) -> Tuple[float, float]:
    """
    Effective release rate constants.

    k1 = k1_prime / k_CaSR
    k2 = k2_prime * k_CaSR
    """
    kcasr = k_casr(Ca_SR, p)
    return p.k1_prime / kcasr, p.k2_prime * kcasr


@numba.jit(nopython=True, cache=True, error_model="numpy")
def dR_prime_dt(Ca_SS: float, Ca_SR: float, R_prime: float, p: KernelConstants) -> float:
    """dR'/dt = -k2 * Ca_SS * R' + k4 * (1 - R')"""
    k1, k2 = ryr_rates(Ca_SR, p)
    return -k2 * Ca_SS * R_prime + p.k4 * (1.0 - R_prime)


@numba.jit(nopython=True, cache=True, error_model="numpy")
def update_R_prime(Ca_SS: float, Ca_SR: float, R_prime: float, dt: float,
                   p: KernelConstants) -> float:
    """Explicit Euler step of R_prime (stable for dt <= 0.02 ms)."""
    return R_prime + dt * dR_prime_dt(Ca_SS, Ca_SR, R_prime, p)


@numba.jit(nopython=True, cache=True, error_model="numpy")
def ryr_open_probability(Ca_SS: float, Ca_SR: float, R_prime: float,
                         p: KernelConstants) -> float:
    """
    Open fraction of release channels.

    O = k1 * Ca_SS^2 * R' / (k3 + k1 * Ca_SS^2)
    """
    k1, k2 = ryr_rates(Ca_SR, p)
    k1_ca2 = k1 * Ca_SS * Ca_SS
    return k1_ca2 * R_prime / (p.k3 + k1_ca2)


# =============================================================================
# Intracellular Fluxes [mM/ms]
# =============================================================================

@numba.jit(nopython=True, cache=True, error_model="numpy")
def I_rel(O: float, Ca_SR: float, Ca_SS: float, p: KernelConstants) -> float:
    """SR release: I_rel = V_rel * O * (Ca_SR - Ca_SS)"""
    return p.V_rel * O * (Ca_SR - Ca_SS)


@numba.jit(nopython=True, cache=True, error_model="numpy")
def I_up(Ca_i: float, p: KernelConstants) -> float:
    """SERCA uptake: I_up = V_maxup / (1 + (K_up / Ca_i)^2)"""
    ratio = p.K_up / Ca_i
    return p.V_maxup / (1.0 + ratio * ratio)


@numba.jit(nopython=True, cache=True, error_model="numpy")
def I_leak(Ca_SR: float, Ca_i: float, p: KernelConstants) -> float:
    """SR leak: I_leak = V_leak * (Ca_SR - Ca_i)"""
    return p.V_leak * (Ca_SR - Ca_i)


@numba.jit(nopython=True, cache=True, error_model="numpy")
def I_xfer(Ca_SS: float, Ca_i: float, p: KernelConstants) -> float:
    """Subspace transfer: I_xfer = V_xfer * (Ca_SS - Ca_i)"""
    return p.V_xfer * (Ca_SS - Ca_i)


# =============================================================================
# Rapid Buffering
# =============================================================================

@numba.jit(nopython=True, cache=True, error_model="numpy")
def buffered_total(Ca_free: float, Buf: float, K_buf: float) -> float:
    """Total calcium: free + Buf * free / (free + K_buf)"""
    return Ca_free + Buf * Ca_free / (Ca_free + K_buf)


@numba.jit(nopython=True, cache=True, error_model="numpy")
def free_from_total(Ca_total: float, Buf: float, K_buf: float) -> float:
    """
    Free calcium in equilibrium with a buffer, given total calcium.

    Non-negative root of

        Ca_free^2 + (Buf - Ca_total + K_buf) * Ca_free - K_buf * Ca_total = 0

    Parameters
    ----------
    Ca_total : float
        Free + bound calcium [mM], >= 0
    Buf : float
        Total buffer concentration [mM]
    K_buf : float
        Buffer dissociation constant [mM]

    Notes
    -----
    For b >= 0 the root is evaluated as 2c / (b + sqrt(b^2 + 4c)), which is
    the same root without the cancellation of sqrt(b^2 + 4c) - b when the
    free fraction is tiny (SR buffer: b ~ 10 mM, c ~ 1e-4 mM^2).
    """
    b = Buf - Ca_total + K_buf
    c = K_buf * Ca_total
    disc = np.sqrt(b * b + 4.0 * c)
    if b >= 0.0:
        return 2.0 * c / (b + disc)
    return 0.5 * (disc - b)


# =============================================================================
# Concentration Update
# =============================================================================

@numba.jit(nopython=True, cache=True, error_model="numpy")
def update_calcium(Ca_i: float, Ca_SR: float, Ca_SS: float, R_prime: float,
                   i_CaL: float, i_bCa: float, i_pCa: float, i_NaCa: float,
                   dt: float, p: KernelConstants
                   ) -> Tuple[float, float, float, float, float, float, float, float]:
    """
    Advance all calcium compartments and R_prime by one step.

    Parameters
    ----------
    Ca_i, Ca_SR, Ca_SS : float
        Free calcium before the step [mM]
    R_prime : float
        Recovered ryanodine receptor fraction before the step
    i_CaL, i_bCa, i_pCa, i_NaCa : float
        Sarcolemmal calcium-carrying currents [pA/pF]
    dt : float
        Time step [ms]
    p : KernelConstants
        Model constants

    Returns
    -------
    Ca_i, Ca_SR, Ca_SS, R_prime, I_rel, I_up, I_leak, I_xfer
        New free concentrations [mM], new R_prime and the fluxes used [mM/ms]

    Notes
    -----
    Total calcium changes are explicit Euler:

        dCa_SR_tot = I_up - I_rel - I_leak
        dCa_SS_tot = -I_CaL*Cm/(2*V_SS*F) + I_rel*V_SR/V_SS - I_xfer*V_C/V_SS
        dCa_i_tot  = -(I_bCa + I_pCa - 2*I_NaCa)*Cm/(2*V_C*F)
                     - (I_up - I_leak)*V_SR/V_C + I_xfer

    The intracellular fluxes cancel in V_C*Ca_i_tot + V_SR*Ca_SR_tot +
    V_SS*Ca_SS_tot, so only sarcolemmal currents change the cell's calcium.
    """
    R_prime_new = update_R_prime(Ca_SS, Ca_SR, R_prime, dt, p)
    O = ryr_open_probability(Ca_SS, Ca_SR, R_prime_new, p)

    j_rel = I_rel(O, Ca_SR, Ca_SS, p)
    j_up = I_up(Ca_i, p)
    j_leak = I_leak(Ca_SR, Ca_i, p)
    j_xfer = I_xfer(Ca_SS, Ca_i, p)

    inv_VcF2 = p.Cm / (2.0 * p.V_C * p.F)
    inv_VssF2 = p.Cm / (2.0 * p.V_SS * p.F)

    # SR
    dCa_SR = dt * (j_up - j_rel - j_leak)
    total_SR = buffered_total(Ca_SR, p.Buf_SR, p.K_bufsr) + dCa_SR
    Ca_SR_new = free_from_total(total_SR, p.Buf_SR, p.K_bufsr)

    # Subspace
    dCa_SS = dt * (-i_CaL * inv_VssF2
                   + j_rel * (p.V_SR / p.V_SS)
                   - j_xfer * (p.V_C / p.V_SS))
    total_SS = buffered_total(Ca_SS, p.Buf_SS, p.K_bufss) + dCa_SS
    Ca_SS_new = free_from_total(total_SS, p.Buf_SS, p.K_bufss)

    # Cytoplasm
    dCa_i = dt * (-(i_bCa + i_pCa - 2.0 * i_NaCa) * inv_VcF2
                  - (j_up - j_leak) * (p.V_SR / p.V_C)
                  + j_xfer)
    total_i = buffered_total(Ca_i, p.Buf_C, p.K_bufc) + dCa_i
    Ca_i_new = free_from_total(total_i, p.Buf_C, p.K_bufc)

    return Ca_i_new, Ca_SR_new, Ca_SS_new, R_prime_new, j_rel, j_up, j_leak, j_xfer


@numba.jit(nopython=True, cache=True, error_model="numpy")
def total_cell_calcium(Ca_i: float, Ca_SR: float, Ca_SS: float, p: KernelConstants) -> float:
    """
    Volume-weighted total (free + buffered) calcium [mM·µL].

    V_C * Ca_i_tot + V_SR * Ca_SR_tot + V_SS * Ca_SS_tot
    """
    return (p.V_C * buffered_total(Ca_i, p.Buf_C, p.K_bufc)
            + p.V_SR * buffered_total(Ca_SR, p.Buf_SR, p.K_bufsr)
            + p.V_SS * buffered_total(Ca_SS, p.Buf_SS, p.K_bufss))


# =============================================================================
# Test Module
# =============================================================================

if __name__ == "__main__":
    from .parameters_tnnp import default_params, default_initial_conditions

    print("Testing TNNP06 Calcium Handling")
    print("=" * 60)

    p = default_params("epi").kernel_constants()
    s = default_initial_conditions("epi")

    print(f"k_CaSR at Ca_SR = {s.Ca_SR} mM: {k_casr(s.Ca_SR, p):.4f}")
    print(f"O at rest: {ryr_open_probability(s.Ca_SS, s.Ca_SR, s.R_prime, p):.3e}")
    print(f"I_up   = {I_up(s.Ca_i, p):.3e} mM/ms")
    print(f"I_leak = {I_leak(s.Ca_SR, s.Ca_i, p):.3e} mM/ms")
    print(f"I_xfer = {I_xfer(s.Ca_SS, s.Ca_i, p):.3e} mM/ms")

    for total in (0.0, 1e-6, 1e-3, 1.0, 20.0):
        free = free_from_total(total, p.Buf_SR, p.K_bufsr)
        print(f"SR total {total:8.2e} mM -> free {free:.6e} mM "
              f"-> total {buffered_total(free, p.Buf_SR, p.K_bufsr):.6e} mM")
