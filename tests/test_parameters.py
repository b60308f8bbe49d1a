"""
Unit tests for the parameter and state module.

Tests cover:
- Cell-type defaults and parsing
- Parameter validation
- Immutability of the configuration
- State vector conversion and domain checks
"""

import dataclasses

import pytest
import numpy as np

from tnnp06.parameters_tnnp import (
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
    GATE_NAMES,
)


class TestCellType:
    """Tests for cell-type parsing."""

    @pytest.mark.parametrize("text, expected", [
        ("epi", CellType.EPI),
        ("Epicardial", CellType.EPI),
        ("ENDO", CellType.ENDO),
        ("endocardial", CellType.ENDO),
        ("m", CellType.M),
        ("mid", CellType.M),
        ("mid-myocardial", CellType.M),
    ])
    def test_parse_aliases(self, text, expected):
        """Test accepted spellings map to the right member."""
        assert CellType.parse(text) is expected

    def test_parse_member(self):
        """Test an enum member passes through unchanged."""
        assert CellType.parse(CellType.ENDO) is CellType.ENDO

    def test_parse_unknown(self):
        """Test an unknown cell type raises error."""
        with pytest.raises(ValueError, match="unknown cell type"):
            CellType.parse("atrial")


class TestDefaults:
    """Tests for default parameter sets."""

    @pytest.mark.parametrize("cell_type, G_to, G_Ks", [
        (CellType.EPI, 0.294, 0.392),
        (CellType.ENDO, 0.073, 0.392),
        (CellType.M, 0.294, 0.098),
    ])
    def test_cell_type_conductances(self, cell_type, G_to, G_Ks):
        """Test cell type selects G_to and G_Ks only."""
        params = default_params(cell_type)
        assert params.cell_type is cell_type
        assert params.currents.G_to == G_to
        assert params.currents.G_Ks == G_Ks
        assert params.currents.G_Na == 14.838
        assert params.currents.G_Kr == 0.153

    def test_published_values(self):
        """Test a sample of published constants."""
        params = default_params()
        assert params.geometry.Cm == 0.185
        assert params.geometry.V_C == 0.016404
        assert params.ext_conc.Ca_o == 2.0
        assert params.exchangers.k_NaCa == 1000.0
        assert params.ca_fluxes.V_rel == 0.102
        assert params.buffers.Buf_SR == 10.0

    def test_string_cell_type(self):
        """Test default_params accepts strings."""
        assert default_params("endo") == default_params(CellType.ENDO)

    def test_group_override(self):
        """Test replacing a parameter group."""
        params = TNNPParams.for_cell_type(
            "epi", ca_fluxes=CalciumFluxParams(V_rel=0.0)
        )
        assert params.ca_fluxes.V_rel == 0.0
        assert params.currents.G_to == 0.294

    @pytest.mark.parametrize("cell_type, G_to, G_Ks", [
        (CellType.EPI, 0.294, 0.392),
        (CellType.ENDO, 0.073, 0.392),
        (CellType.M, 0.294, 0.098),
    ])
    def test_constructor_applies_cell_type(self, cell_type, G_to, G_Ks):
        """Test the plain constructor selects the cell-type conductances."""
        params = TNNPParams(cell_type=cell_type)
        assert params.currents.G_to == G_to
        assert params.currents.G_Ks == G_Ks
        assert params == TNNPParams.for_cell_type(cell_type)

    def test_constructor_parses_string(self):
        """Test the constructor accepts a cell-type string."""
        params = TNNPParams(cell_type="endo")
        assert params.cell_type is CellType.ENDO
        assert params.currents.G_to == 0.073

    def test_constructor_unknown_cell_type(self):
        """Test the constructor rejects an unknown cell type."""
        with pytest.raises(ValueError, match="unknown cell type"):
            TNNPParams(cell_type="atrial")

    def test_constructor_defaults_to_epi(self):
        """Test the no-argument constructor is the epicardial set."""
        params = TNNPParams()
        assert params.cell_type is CellType.EPI
        assert params == default_params("epi")

    def test_explicit_currents_kept(self):
        """Test an explicit currents group is not overridden by the cell type."""
        currents = MembraneCurrentParams(G_to=0.5, G_Ks=0.2)
        params = TNNPParams(cell_type=CellType.ENDO, currents=currents)
        assert params.currents is currents
        assert params.currents.G_to == 0.5
        assert params.kernel_constants().G_Ks == 0.2

    def test_summary(self):
        """Test summary mentions the cell type and key conductances."""
        text = default_params("mid").summary()
        assert "(M)" in text
        assert "G_Ks = 0.098" in text


class TestValidation:
    """Tests for parameter validation."""

    def test_negative_conductance(self):
        """Test a negative conductance raises error."""
        with pytest.raises(ValueError, match="G_Na must be >= 0"):
            MembraneCurrentParams(G_Na=-1.0)

    def test_zero_conductance_allowed(self):
        """Test zero conductances are valid (channel block)."""
        assert MembraneCurrentParams(G_CaL=0.0).G_CaL == 0.0

    def test_non_finite_conductance(self):
        """Test NaN is rejected."""
        with pytest.raises(ValueError, match="G_Kr must be >= 0"):
            MembraneCurrentParams(G_Kr=float("nan"))

    def test_zero_volume(self):
        """Test volumes must be strictly positive."""
        with pytest.raises(ValueError, match="V_SS must be > 0"):
            CellGeometry(V_SS=0.0)

    def test_zero_capacitance(self):
        """Test capacitance must be strictly positive."""
        with pytest.raises(ValueError, match="Cm must be > 0"):
            CellGeometry(Cm=0.0)

    def test_negative_extracellular(self):
        """Test extracellular concentrations must be positive."""
        with pytest.raises(ValueError, match="K_o must be > 0"):
            ExtracellularConcentrations(K_o=-5.4)

    def test_temperature(self):
        """Test temperature must be positive."""
        with pytest.raises(ValueError, match="T must be > 0"):
            PhysicalConstants(T=0.0)

    def test_inconsistent_rtonf(self):
        """Test RTONF must match R*T/F."""
        with pytest.raises(ValueError, match="RTONF"):
            PhysicalConstants(T=300.0)

    def test_gamma_range(self):
        """Test gamma_NaCa must lie in [0, 1]."""
        with pytest.raises(ValueError, match="gamma_NaCa"):
            ExchangerPumpParams(gamma_NaCa=1.5)

    def test_sr_sigmoid_bounds(self):
        """Test min_SR <= max_SR."""
        with pytest.raises(ValueError, match="min_SR"):
            CalciumFluxParams(min_SR=3.0, max_SR=2.5)

    def test_buffer_constant(self):
        """Test buffer dissociation constants must be positive."""
        with pytest.raises(ValueError, match="K_bufsr must be > 0"):
            BufferParams(K_bufsr=0.0)


class TestImmutability:
    """Tests that configuration is read-only."""

    def test_frozen_group(self):
        """Test assignment to a group field fails."""
        params = default_params()
        with pytest.raises(dataclasses.FrozenInstanceError):
            params.currents.G_Na = 0.0

    def test_frozen_aggregate(self):
        """Test assignment to the aggregate fails."""
        params = default_params()
        with pytest.raises(dataclasses.FrozenInstanceError):
            params.cell_type = CellType.M

    def test_kernel_constants(self):
        """Test the flat view mirrors the groups."""
        params = default_params("endo")
        p = params.kernel_constants()
        assert isinstance(p, KernelConstants)
        assert p.G_to == 0.073
        assert p.Cm == params.geometry.Cm
        assert p.K_bufss == params.buffers.K_bufss
        assert all(isinstance(v, float) for v in p)


class TestCellState:
    """Tests for the state container."""

    def test_layout(self):
        """Test state ordering constants."""
        assert N_STATES == 19
        assert len(STATE_NAMES) == N_STATES
        assert STATE_INDICES["V"] == 0
        assert STATE_INDICES["K_i"] == 18
        assert GATE_NAMES == ("Xr1", "Xr2", "Xs", "m", "h", "j",
                              "d", "f", "f2", "fCass", "s", "r")

    def test_array_round_trip(self):
        """Test to_array/from_array preserve every field."""
        state = default_initial_conditions("epi")
        y = state.to_array()
        assert y.shape == (N_STATES,)
        assert y[STATE_INDICES["Ca_SR"]] == 3.64
        assert CellState.from_array(y) == state

    def test_from_array_shape(self):
        """Test wrong shape raises error."""
        with pytest.raises(ValueError, match="shape"):
            CellState.from_array(np.zeros(18))

    def test_fresh_copy(self):
        """Test default_initial_conditions returns independent copies."""
        a = default_initial_conditions("endo")
        a.V = 0.0
        b = default_initial_conditions("endo")
        assert b.V == -86.2

    def test_endo_m_share_initial_conditions(self):
        """Test ENDO and M start from the same state."""
        assert default_initial_conditions("endo") == default_initial_conditions("mid")

    @pytest.mark.parametrize("cell_type", list(CellType))
    def test_defaults_in_domain(self, cell_type):
        """Test default initial conditions are valid states."""
        state = default_initial_conditions(cell_type)
        assert state.is_finite()
        assert state.domain_violations() == []

    def test_domain_violations(self):
        """Test out-of-domain components are reported."""
        state = default_initial_conditions()
        state.h = 1.2
        state.Na_i = 0.0
        state.V = float("nan")
        problems = state.domain_violations()
        assert len(problems) == 3
        assert any(p.startswith("h =") for p in problems)
        assert any(p.startswith("Na_i =") for p in problems)
        assert any(p.startswith("V is not finite") for p in problems)
        assert not state.is_finite()
