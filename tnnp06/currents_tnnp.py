"""
ten Tusscher 2006 (TNNP06) Ionic Currents
=========================================

The 12 transmembrane currents of the TNNP06 model:

Voltage-Gated Channels:
- I_Na:  Fast sodium current
- I_CaL: L-type calcium current (GHK, subspace Ca2+)
- I_to:  Transient outward potassium current
- I_Kr:  Rapid delayed rectifier potassium current
- I_Ks:  Slow delayed rectifier potassium current
- I_K1:  Inward rectifier potassium current

Pumps & Exchangers:
- I_NaCa: Na+/Ca2+ exchanger
- I_NaK:  Na+/K+ ATPase pump
- I_pCa:  Sarcolemmal Ca2+ pump
- I_pK:   Plateau potassium current

Background Leak:
- I_bNa: Background sodium current
- I_bCa: Background calcium current

All currents are densities in pA/pF (outward positive). Validity range:
V in roughly [-100, +60] mV with positive concentrations; outside it the
exponentials are still evaluated but no accuracy is claimed.

Reference:
    ten Tusscher KHWJ, Panfilov AV. Am J Physiol Heart Circ Physiol.
    2006;291(3):H1088-H1100.
"""

from __future__ import annotations
import numpy as np
import numba
from typing import NamedTuple, Tuple

from .parameters_tnnp import (
    KernelConstants, TNNPParams, CellState, STATE_INDICES,
)
from .calcium_tnnp import I_rel, I_up, I_leak, I_xfer, ryr_open_probability


# Compile-time state indices for the array-level kernels
IDX_V = STATE_INDICES["V"]
IDX_XR1 = STATE_INDICES["Xr1"]
IDX_XR2 = STATE_INDICES["Xr2"]
IDX_XS = STATE_INDICES["Xs"]
IDX_M = STATE_INDICES["m"]
IDX_H = STATE_INDICES["h"]
IDX_J = STATE_INDICES["j"]
IDX_D = STATE_INDICES["d"]
IDX_F = STATE_INDICES["f"]
IDX_F2 = STATE_INDICES["f2"]
IDX_FCASS = STATE_INDICES["fCass"]
IDX_S = STATE_INDICES["s"]
IDX_R = STATE_INDICES["r"]
IDX_CA_I = STATE_INDICES["Ca_i"]
IDX_CA_SR = STATE_INDICES["Ca_SR"]
IDX_CA_SS = STATE_INDICES["Ca_SS"]
IDX_R_PRIME = STATE_INDICES["R_prime"]
IDX_NA_I = STATE_INDICES["Na_i"]
IDX_K_I = STATE_INDICES["K_i"]


# =============================================================================
# Reversal Potentials (Nernst Equation)
# =============================================================================

@numba.jit(nopython=True, cache=True, error_model="numpy")
def E_Na(Na_i: float, p: KernelConstants) -> float:
    """
    Sodium reversal potential (Nernst).

    E_Na = (RT/F) * ln(Na_o / Na_i)

    Parameters
    ----------
    Na_i : float
        Intracellular Na+ [mM]
    p : KernelConstants
        Model constants (RTONF, Na_o)

    Returns
    -------
    E_Na : float
        Reversal potential [mV]
    """
    return p.RTONF * np.log(p.Na_o / Na_i)


@numba.jit(nopython=True, cache=True, error_model="numpy")
def E_K(K_i: float, p: KernelConstants) -> float:
    """
    Potassium reversal potential (Nernst).

    E_K = (RT/F) * ln(K_o / K_i)
    """
    return p.RTONF * np.log(p.K_o / K_i)


@numba.jit(nopython=True, cache=True, error_model="numpy")
def E_Ca(Ca_i: float, p: KernelConstants) -> float:
    """
    Calcium reversal potential (Nernst).

    E_Ca = (RT/2F) * ln(Ca_o / Ca_i)

    Note: Factor of 2 for divalent ion.
    """
    return 0.5 * p.RTONF * np.log(p.Ca_o / Ca_i)


@numba.jit(nopython=True, cache=True, error_model="numpy")
def E_Ks(K_i: float, Na_i: float, p: KernelConstants) -> float:
    """
    Reversal potential for I_Ks with Na+ permeability.

    E_Ks = (RT/F) * ln((K_o + p_KNa * Na_o) / (K_i + p_KNa * Na_i))
    """
    return p.RTONF * np.log((p.K_o + p.p_KNa * p.Na_o) / (K_i + p.p_KNa * Na_i))


@numba.jit(nopython=True, cache=True, error_model="numpy")
def reversal_potentials(Na_i: float, K_i: float, Ca_i: float,
                        p: KernelConstants) -> Tuple[float, float, float, float]:
    """Return (E_Na, E_K, E_Ca, E_Ks) [mV]."""
    return E_Na(Na_i, p), E_K(K_i, p), E_Ca(Ca_i, p), E_Ks(K_i, Na_i, p)


# =============================================================================
# Fast Sodium Current (I_Na)
# =============================================================================

@numba.jit(nopython=True, cache=True, error_model="numpy")
def I_Na(V: float, m: float, h: float, j: float, e_na: float,
         p: KernelConstants) -> float:
    """
    Fast sodium current.

    I_Na = G_Na * m³ * h * j * (V - E_Na)
    """
    return p.G_Na * m * m * m * h * j * (V - e_na)


# =============================================================================
# L-Type Calcium Current (I_CaL) - GHK Formulation
# =============================================================================

@numba.jit(nopython=True, cache=True, error_model="numpy")
def I_CaL(V: float, d: float, f: float, f2: float, fCass: float,
          Ca_SS: float, p: KernelConstants) -> float:
    """
    L-type calcium current (GHK, driven by subspace Ca2+).

    I_CaL = G_CaL * d * f * f2 * fCass * 4 (V-15) F²/(RT)
            * (0.25 Ca_SS exp(2(V-15)F/RT) - Ca_o) / (exp(2(V-15)F/RT) - 1)

    Parameters
    ----------
    V : float
        Membrane potential [mV]
    d, f, f2, fCass : float
        Gating variables
    Ca_SS : float
        Subspace Ca2+ [mM]
    p : KernelConstants
        Model constants

    Returns
    -------
    I_CaL : float
        Current density [pA/pF]

    Notes
    -----
    The 15 mV shift makes V = 15 mV a removable singularity. There the
    limit G_CaL * d * f * f2 * fCass * 2F * (0.25 Ca_SS - Ca_o) is used.
    """
    gate = p.G_CaL * d * f * f2 * fCass
    dV = V - 15.0
    if dV == 0.0:
        return gate * 2.0 * p.F * (0.25 * Ca_SS - p.Ca_o)
    x = 2.0 * dV * p.FONRT
    return (gate * 4.0 * dV * p.F * p.FONRT
            * (0.25 * Ca_SS * np.exp(x) - p.Ca_o) / np.expm1(x))


# =============================================================================
# Potassium Currents (I_to, I_Kr, I_Ks, I_K1, I_pK)
# =============================================================================

@numba.jit(nopython=True, cache=True, error_model="numpy")
def I_to(V: float, r: float, s: float, e_k: float, p: KernelConstants) -> float:
    """Transient outward current: I_to = G_to * r * s * (V - E_K)"""
    return p.G_to * r * s * (V - e_k)


@numba.jit(nopython=True, cache=True, error_model="numpy")
def I_Kr(V: float, Xr1: float, Xr2: float, e_k: float, p: KernelConstants) -> float:
    """
    Rapid delayed rectifier current.

    I_Kr = G_Kr * sqrt(K_o / 5.4) * Xr1 * Xr2 * (V - E_K)
    """
    return p.G_Kr * np.sqrt(p.K_o / 5.4) * Xr1 * Xr2 * (V - e_k)


@numba.jit(nopython=True, cache=True, error_model="numpy")
def I_Ks(V: float, Xs: float, e_ks: float, p: KernelConstants) -> float:
    """Slow delayed rectifier current: I_Ks = G_Ks * Xs² * (V - E_Ks)"""
    return p.G_Ks * Xs * Xs * (V - e_ks)


@numba.jit(nopython=True, cache=True, error_model="numpy")
def xK1_inf(V: float, e_k: float) -> float:
    """
    Instantaneous rectification of I_K1.

    alpha_K1 = 0.1 / (1 + exp(0.06 (V - E_K - 200)))
    beta_K1 = (3 exp(0.0002 (V - E_K + 100)) + exp(0.1 (V - E_K - 10)))
              / (1 + exp(-0.5 (V - E_K)))
    xK1_inf = alpha_K1 / (alpha_K1 + beta_K1)
    """
    dV = V - e_k
    a = 0.1 / (1.0 + np.exp(0.06 * (dV - 200.0)))
    b = (3.0 * np.exp(0.0002 * (dV + 100.0)) + np.exp(0.1 * (dV - 10.0))) / \
        (1.0 + np.exp(-0.5 * dV))
    return a / (a + b)


@numba.jit(nopython=True, cache=True, error_model="numpy")
def I_K1(V: float, e_k: float, p: KernelConstants) -> float:
    """
    Inward rectifier potassium current.

    I_K1 = G_K1 * sqrt(K_o / 5.4) * xK1_inf * (V - E_K)
    """
    return p.G_K1 * np.sqrt(p.K_o / 5.4) * xK1_inf(V, e_k) * (V - e_k)


@numba.jit(nopython=True, cache=True, error_model="numpy")
def I_pK(V: float, e_k: float, p: KernelConstants) -> float:
    """Plateau potassium current: I_pK = G_pK * (V - E_K) / (1 + exp((25 - V) / 5.98))"""
    return p.G_pK * (V - e_k) / (1.0 + np.exp((25.0 - V) / 5.98))


# =============================================================================
# Na+/Ca2+ Exchanger (I_NaCa)
# =============================================================================

@numba.jit(nopython=True, cache=True, error_model="numpy")
def I_NaCa(V: float, Na_i: float, Ca_i: float, p: KernelConstants) -> float:
    """
    Na+/Ca2+ exchanger current.

    Exchanges 3 Na+ for 1 Ca2+ (electrogenic).

    I_NaCa = k_NaCa * (exp(γVF/RT) Na_i³ Ca_o - exp((γ-1)VF/RT) Na_o³ Ca_i α)
             / ((K_mNa_i³ + Na_o³) (K_mCa + Ca_o) (1 + k_sat exp((γ-1)VF/RT)))

    Notes
    -----
    Positive I_NaCa = Ca2+ entry (reverse mode)
    Negative I_NaCa = Ca2+ extrusion (forward mode)
    """
    exp_gamma = np.exp(p.gamma_NaCa * V * p.FONRT)
    exp_gamma_1 = np.exp((p.gamma_NaCa - 1.0) * V * p.FONRT)

    Na_i_cubed = Na_i * Na_i * Na_i
    Na_o_cubed = p.Na_o * p.Na_o * p.Na_o

    numerator = (exp_gamma * Na_i_cubed * p.Ca_o
                 - exp_gamma_1 * Na_o_cubed * Ca_i * p.alpha_NaCa)
    denominator = ((p.K_mNa_i ** 3 + Na_o_cubed)
                   * (p.K_mCa + p.Ca_o)
                   * (1.0 + p.k_sat * exp_gamma_1))

    return p.k_NaCa * numerator / denominator


# =============================================================================
# Na+/K+ ATPase Pump (I_NaK)
# =============================================================================

@numba.jit(nopython=True, cache=True, error_model="numpy")
def I_NaK(V: float, Na_i: float, p: KernelConstants) -> float:
    """
    Na+/K+ ATPase pump current.

    Pumps 3 Na+ out, 2 K+ in (electrogenic).

    I_NaK = P_NaK * K_o / (K_o + K_mK) * Na_i / (Na_i + K_mNa)
            / (1 + 0.1245 exp(-0.1 VF/RT) + 0.0353 exp(-VF/RT))
    """
    f_NaK = 1.0 / (1.0 + 0.1245 * np.exp(-0.1 * V * p.FONRT)
                   + 0.0353 * np.exp(-V * p.FONRT))
    K_term = p.K_o / (p.K_o + p.K_mK)
    Na_term = Na_i / (Na_i + p.K_mNa)
    return p.P_NaK * K_term * Na_term * f_NaK


# =============================================================================
# Sarcolemmal Ca2+ Pump and Background Currents
# =============================================================================

@numba.jit(nopython=True, cache=True, error_model="numpy")
def I_pCa(Ca_i: float, p: KernelConstants) -> float:
    """Sarcolemmal Ca2+ pump: I_pCa = G_pCa * Ca_i / (K_pCa + Ca_i)"""
    return p.G_pCa * Ca_i / (p.K_pCa + Ca_i)


@numba.jit(nopython=True, cache=True, error_model="numpy")
def I_bNa(V: float, e_na: float, p: KernelConstants) -> float:
    """Background sodium current: I_bNa = G_bNa * (V - E_Na)"""
    return p.G_bNa * (V - e_na)


@numba.jit(nopython=True, cache=True, error_model="numpy")
def I_bCa(V: float, e_ca: float, p: KernelConstants) -> float:
    """Background calcium current: I_bCa = G_bCa * (V - E_Ca)"""
    return p.G_bCa * (V - e_ca)


# =============================================================================
# All Transmembrane Currents
# =============================================================================

@numba.jit(nopython=True, cache=True, error_model="numpy")
def membrane_currents(y: np.ndarray, p: KernelConstants) -> Tuple[
        float, float, float, float, float, float,
        float, float, float, float, float, float]:
    """
    Evaluate the 12 transmembrane currents for one state vector.

    Parameters
    ----------
    y : np.ndarray
        State vector (19,) in standard order
    p : KernelConstants
        Model constants

    Returns
    -------
    I_Na, I_CaL, I_to, I_Kr, I_Ks, I_K1, I_NaCa, I_NaK, I_pCa, I_pK, I_bNa, I_bCa
        Current densities [pA/pF]
    """
    V = y[IDX_V]
    Ca_i = y[IDX_CA_I]
    Na_i = y[IDX_NA_I]
    K_i = y[IDX_K_I]

    e_na, e_k, e_ca, e_ks = reversal_potentials(Na_i, K_i, Ca_i, p)

    i_na = I_Na(V, y[IDX_M], y[IDX_H], y[IDX_J], e_na, p)
    i_cal = I_CaL(V, y[IDX_D], y[IDX_F], y[IDX_F2], y[IDX_FCASS], y[IDX_CA_SS], p)
    i_to = I_to(V, y[IDX_R], y[IDX_S], e_k, p)
    i_kr = I_Kr(V, y[IDX_XR1], y[IDX_XR2], e_k, p)
    i_ks = I_Ks(V, y[IDX_XS], e_ks, p)
    i_k1 = I_K1(V, e_k, p)
    i_naca = I_NaCa(V, Na_i, Ca_i, p)
    i_nak = I_NaK(V, Na_i, p)
    i_pca = I_pCa(Ca_i, p)
    i_pk = I_pK(V, e_k, p)
    i_bna = I_bNa(V, e_na, p)
    i_bca = I_bCa(V, e_ca, p)

    return (i_na, i_cal, i_to, i_kr, i_ks, i_k1,
            i_naca, i_nak, i_pca, i_pk, i_bna, i_bca)


@numba.jit(nopython=True, cache=True, error_model="numpy")
def I_ion_total(y: np.ndarray, p: KernelConstants) -> float:
    """
    Total ionic current (sum of the 12 transmembrane currents).

    Intracellular fluxes (I_rel, I_up, I_leak, I_xfer) are not included.
    """
    (i_na, i_cal, i_to, i_kr, i_ks, i_k1,
     i_naca, i_nak, i_pca, i_pk, i_bna, i_bca) = membrane_currents(y, p)
    return (i_na + i_cal + i_to + i_kr + i_ks + i_k1
            + i_naca + i_nak + i_pca + i_pk + i_bna + i_bca)


# =============================================================================
# Observation Helpers
# =============================================================================

class Currents(NamedTuple):
    """Snapshot of all currents [pA/pF] and intracellular fluxes [mM/ms]."""
    I_Na: float
    I_CaL: float
    I_to: float
    I_Kr: float
    I_Ks: float
    I_K1: float
    I_NaCa: float
    I_NaK: float
    I_pCa: float
    I_pK: float
    I_bNa: float
    I_bCa: float
    I_rel: float
    I_up: float
    I_leak: float
    I_xfer: float

    @property
    def I_ion(self) -> float:
        """Sum of the transmembrane currents."""
        return sum(self[:12])


def compute_currents(state: CellState, params: TNNPParams) -> Currents:
    """
    Evaluate every current and flux for a state, without advancing it.

    Gates are taken as stored in the state, so this reports what the
    state implies rather than what the next step will use.
    """
    p = params.kernel_constants()
    y = state.to_array()
    transmembrane = membrane_currents(y, p)

    O = ryr_open_probability(state.Ca_SS, state.Ca_SR, state.R_prime, p)
    fluxes = (
        I_rel(O, state.Ca_SR, state.Ca_SS, p),
        I_up(state.Ca_i, p),
        I_leak(state.Ca_SR, state.Ca_i, p),
        I_xfer(state.Ca_SS, state.Ca_i, p),
    )
    return Currents(*(float(v) for v in transmembrane + fluxes))


# =============================================================================
# Test Module
# =============================================================================

if __name__ == "__main__":
    import matplotlib.pyplot as plt
    from .parameters_tnnp import default_params, default_initial_conditions

    print("Testing TNNP06 Currents")
    print("=" * 60)

    params = default_params("epi")
    p = params.kernel_constants()
    state = default_initial_conditions("epi")

    currents = compute_currents(state, params)
    for name, value in currents._asdict().items():
        print(f"  {name:7s} = {value: .5e}")
    print(f"  I_ion   = {currents.I_ion: .5e} pA/pF")

    # I-V curves with all gates open at resting concentrations
    V_range = np.linspace(-100, 60, 321)
    e_k = E_K(state.K_i, p)
    i_k1 = np.array([I_K1(V, e_k, p) for V in V_range])
    i_cal = np.array([I_CaL(V, 1.0, 1.0, 1.0, 1.0, state.Ca_SS, p) for V in V_range])
    i_naca = np.array([I_NaCa(V, state.Na_i, state.Ca_i, p) for V in V_range])

    fig, axes = plt.subplots(1, 3, figsize=(14, 4))
    axes[0].plot(V_range, i_k1)
    axes[0].set_title('I_K1')
    axes[1].plot(V_range, i_cal)
    axes[1].set_title('I_CaL (d=f=f2=fCass=1)')
    axes[2].plot(V_range, i_naca)
    axes[2].set_title('I_NaCa')
    for ax in axes:
        ax.set_xlabel('V [mV]')
        ax.set_ylabel('I [pA/pF]')
        ax.grid(True)
    plt.tight_layout()
    plt.savefig('tnnp_currents_test.png', dpi=150)
    print("\nSaved tnnp_currents_test.png")
