"""
tnnp06: ten Tusscher 2006 Human Ventricular Cell Model
======================================================

A biophysical ionic model with 19 state variables, 12 transmembrane
currents, subspace/SR calcium handling and Rush-Larsen gate integration.

Reference:
    ten Tusscher KHWJ, Panfilov AV. Am J Physiol Heart Circ Physiol.
    2006;291(3):H1088-H1100.
"""

from .parameters_tnnp import (
    CellType,
    PhysicalConstants,
    CellGeometry,
    ExtracellularConcentrations,
    MembraneCurrentParams,
    ExchangerPumpParams,
    CalciumFluxParams,
    BufferParams,
    TNNPParams,
    KernelConstants,
    CellState,
    default_params,
    default_initial_conditions,
    STATE_NAMES,
    STATE_INDICES,
    N_STATES,
)
from .currents_tnnp import Currents, compute_currents
from .ten_tusscher_2006 import (
    TenTusscher2006Model,
    NumericalInstabilityError,
    step,
    check_state,
    run_single_cell,
    measure_apd,
)

__version__ = "0.1.0"
__all__ = [
    "CellType",
    "PhysicalConstants",
    "CellGeometry",
    "ExtracellularConcentrations",
    "MembraneCurrentParams",
    "ExchangerPumpParams",
    "CalciumFluxParams",
    "BufferParams",
    "TNNPParams",
    "KernelConstants",
    "CellState",
    "default_params",
    "default_initial_conditions",
    "STATE_NAMES",
    "STATE_INDICES",
    "N_STATES",
    "Currents",
    "compute_currents",
    "TenTusscher2006Model",
    "NumericalInstabilityError",
    "step",
    "check_state",
    "run_single_cell",
    "measure_apd",
]
