"""
End-to-end: the 1978 boarding-school influenza outbreak fitted with the SIBR
model (boys confined to bed are the observed compartment).
"""

import numpy as np
import pytest

from dataio import load_boarding_school_flu
from epifit.comparison import compare_models
from epifit.fitting import fit
from epifit.integrate import integrate
from epifit.objectives import Objective, Observations

START = {"beta": 2.0, "gamma": 1 / 3, "delta": 1 / 3}
BOUNDS = {"beta": (0.5, 5.0), "gamma": (0.05, 2.0), "delta": (0.05, 2.0)}


@pytest.fixture
def flu():
    return load_boarding_school_flu()


@pytest.fixture
def flu_data(flu):
    return Observations.from_dataframe(flu.to_dataframe(), "day", "flu", compartment="B")


@pytest.fixture
def sse_objective(sibr_model, flu_data):
    return Objective(sibr_model, flu_data, sibr_model.initial_state(I=1),
                     fit=["beta", "gamma", "delta"])


class TestDataset:

    def test_shape(self, flu):
        df = flu.to_dataframe()
        assert list(df.columns) == ["day", "flu", "convalescent"]
        assert len(df) == 14
        assert df["flu"].max() == 298
        assert flu.population == 763

    def test_summary_text(self, flu):
        text = flu.summary()
        assert "Peak flu: 298 (day 6)" in text


class TestBoardingSchool:

    def test_documented_sse(self, sse_objective):
        sse = sse_objective.evaluate(START)
        assert sse == pytest.approx(58260, rel=0.025)
        assert sse == pytest.approx(59325.7, rel=1e-3)

    def test_initial_state(self, sibr_model):
        np.testing.assert_array_equal(sibr_model.initial_state(I=1), [762, 1, 0, 0])

    def test_epidemic_shape(self, sibr_model):
        traj = integrate(sibr_model, sibr_model.initial_state(I=1), np.linspace(0, 14, 141), START)
        np.testing.assert_allclose(traj.totals, 763, rtol=1e-8)
        assert sibr_model.basic_reproduction_number(START) == pytest.approx(6.0)
        assert traj.summary(infectious="B")["peak_infected"] > 200

    def test_minimising_lowers_sse(self, sse_objective):
        result = fit(sse_objective, start=START, bounds=BOUNDS,
                     options={"xatol": 1e-5, "fatol": 1e-3, "maxiter": 4000})
        assert result.converged
        assert result.value < 0.5 * sse_objective.evaluate(START)
        assert result.params["beta"] > result.params["gamma"]

    def test_likelihood_comparison(self, sibr_model, flu_data):
        y0 = sibr_model.initial_state(I=1)
        full = Objective(sibr_model, flu_data, y0, fit=["beta", "gamma", "delta"],
                         criterion="nll", distribution="poisson")
        nested = full.hold(delta=1 / 3)
        options = {"xatol": 1e-5, "fatol": 1e-5, "maxiter": 4000}
        r_nested = fit(nested, start={"beta": 2.0, "gamma": 1 / 3}, bounds=BOUNDS, hessian=False,
                       options=options)
        # starting from the nested optimum, the full fit cannot do worse
        r_full = fit(full, start=r_nested.params, bounds=BOUNDS, hessian=False, options=options)
        assert r_full.value <= r_nested.value + 1e-3

        df = compare_models({"SIBR": r_full, "SIBR (delta=1/3)": r_nested})
        assert set(df["k"]) == {2, 3}
        assert df["weight"].sum() == pytest.approx(1.0)
