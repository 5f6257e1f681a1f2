"""Tests for epifit.models: derivatives, propensities and helpers."""

import numpy as np
import pytest

from epifit.errors import InvalidParameter
from epifit.models import (
    HostMacroparasiteModel,
    ModelKind,
    SEIRModel,
    SIBRModel,
    SIRDemographyModel,
    SIRModel,
    build_model,
)


# ═══════════════════════════════════════════════════════════════════════
# DERIVATIVES
# ═══════════════════════════════════════════════════════════════════════

class TestDerivatives:
    """Right-hand sides of the continuous models."""

    @pytest.mark.parametrize("model, y, params", [
        (SIRModel(N=1000), [990, 10, 0], {"beta": 0.5, "gamma": 0.2}),
        (SEIRModel(N=1000), [980, 10, 10, 0], {"beta": 0.5, "sigma": 0.3, "gamma": 0.2}),
        (SIBRModel(N=763), [700, 40, 20, 3], {"beta": 2.0, "gamma": 1 / 3, "delta": 1 / 3}),
        (SIRDemographyModel(N=1000), [900, 50, 50], {"beta": 0.5, "gamma": 0.2, "mu": 0.01}),
    ])
    def test_closed_population_sums_to_zero(self, model, y, params):
        """Flows between compartments cancel when the population is constant."""
        dydt = model.derivatives(0.0, np.array(y, dtype=float), params)
        assert dydt.sum() == pytest.approx(0.0, abs=1e-10)

    def test_sir_values(self):
        model = SIRModel(N=100)
        dS, dI, dR = model.derivatives(0.0, np.array([90.0, 10.0, 0.0]), {"beta": 1.0, "gamma": 0.5})
        assert dS == pytest.approx(-9.0)
        assert dI == pytest.approx(4.0)
        assert dR == pytest.approx(5.0)

    def test_frequency_dependent_without_n_uses_total(self):
        fixed = SIRModel(N=100)
        free = SIRModel()
        y = np.array([90.0, 10.0, 0.0])
        p = {"beta": 1.0, "gamma": 0.5}
        np.testing.assert_allclose(fixed.derivatives(0, y, p), free.derivatives(0, y, p))

    @pytest.mark.parametrize("S0, grows", [(600.0, True), (400.0, False)])
    def test_density_dependent_invasion_threshold(self, S0, grows):
        """dI/dt > 0 at t=0 iff beta*S0/gamma > 1 (threshold S0 = gamma/beta = 500)."""
        model = SIRModel(density_dependent=True)
        params = {"beta": 0.001, "gamma": 0.5}
        dI = model.derivatives(0.0, np.array([S0, 1.0, 0.0]), params)[1]
        assert (dI > 0) == grows
        assert (params["beta"] * S0 / params["gamma"] > 1) == grows

    def test_macroparasite_host_growth_without_parasites(self):
        model = HostMacroparasiteModel()
        params = {"a": 1.0, "b": 0.5, "alpha": 0.1, "mu": 0.2, "beta": 2.0, "H0": 10.0, "k": 1.0}
        dH, dP = model.derivatives(0.0, np.array([100.0, 0.0]), params)
        assert dH == pytest.approx(50.0)
        assert dP == 0.0


# ═══════════════════════════════════════════════════════════════════════
# PROPENSITIES
# ═══════════════════════════════════════════════════════════════════════

class TestPropensities:
    """Discrete-event formulation."""

    def test_sir_rates_and_changes(self):
        model = SIRModel(N=100)
        prop = model.propensities(np.array([99, 1, 0]), {"beta": 0.5, "gamma": 0.2})
        np.testing.assert_allclose(prop.rates, [0.5 * 99 / 100, 0.2])
        np.testing.assert_array_equal(prop.changes, [[-1, 1, 0], [0, -1, 1]])
        assert prop.total == pytest.approx(0.695)

    def test_changes_conserve_closed_population(self):
        for model in (SIRModel(), SEIRModel(), SIBRModel()):
            assert np.all(model.transitions.sum(axis=1) == 0)

    def test_demography_has_births_and_deaths(self):
        model = SIRDemographyModel(N=100)
        assert model.transitions[0].tolist() == [1, 0, 0]
        assert model.transitions.shape == (6, 3)

    def test_negative_rate_rejected(self):
        model = SIRModel(N=100)
        with pytest.raises(InvalidParameter):
            model.propensities(np.array([99, 1, 0]), {"beta": -0.5, "gamma": 0.2})

    def test_macroparasite_is_continuous_only(self):
        model = HostMacroparasiteModel()
        assert not model.supports_stochastic
        with pytest.raises(NotImplementedError):
            model.propensities(np.array([100, 10]), {})


# ═══════════════════════════════════════════════════════════════════════
# PARAMETERS, STATES, R0
# ═══════════════════════════════════════════════════════════════════════

class TestModelHelpers:

    def test_check_params_missing(self):
        with pytest.raises(InvalidParameter, match="delta"):
            SIBRModel(N=763).check_params({"beta": 2.0, "gamma": 0.3})

    def test_check_params_negative(self):
        with pytest.raises(InvalidParameter):
            SIRModel().check_params({"beta": 0.5, "gamma": -0.1})

    def test_check_params_ignores_extra_names(self):
        out = SIRModel().check_params({"beta": 0.5, "gamma": 0.1, "obs_sd": 3.0})
        assert out == {"beta": 0.5, "gamma": 0.1}

    def test_initial_state_fills_susceptibles(self):
        y0 = SIBRModel(N=763).initial_state(I=1)
        np.testing.assert_array_equal(y0, [762, 1, 0, 0])

    def test_initial_state_overfull(self):
        with pytest.raises(InvalidParameter):
            SIRModel(N=100).initial_state(I=120)

    def test_macroparasite_needs_positive_aggregation(self):
        params = {"a": 1.0, "b": 0.5, "alpha": 0.1, "mu": 0.2, "beta": 2.0, "H0": 10.0, "k": 0.0}
        with pytest.raises(InvalidParameter, match="k="):
            HostMacroparasiteModel().check_params(params)

    def test_initial_state_rejects_unknown(self):
        with pytest.raises(ValueError):
            SIRModel(N=10).initial_state(X=1)

    def test_population_must_be_positive(self):
        with pytest.raises(ValueError):
            SIRModel(N=0)

    def test_r0(self):
        assert SIRModel().basic_reproduction_number({"beta": 0.5, "gamma": 0.2}) == pytest.approx(2.5)
        assert SIRDemographyModel().basic_reproduction_number(
            {"beta": 0.5, "gamma": 0.2, "mu": 0.05}) == pytest.approx(2.0)
        assert SIRModel(N=1000, density_dependent=True).basic_reproduction_number(
            {"beta": 0.001, "gamma": 0.5}) == pytest.approx(2.0)
        assert SIBRModel().basic_reproduction_number(
            {"beta": 2.0, "gamma": 1 / 3, "delta": 1 / 3}) == pytest.approx(6.0)

    def test_build_model(self):
        model = build_model("sibr", N=763)
        assert isinstance(model, SIBRModel)
        assert model.N == 763
        assert isinstance(build_model(ModelKind.SEIR), SEIRModel)
        with pytest.raises(ValueError):
            build_model("sis")
