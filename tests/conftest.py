"""Shared fixtures: a reference SIR epidemic and data generated from it."""

import numpy as np
import pytest

from epifit.fitting import fit
from epifit.integrate import integrate
from epifit.models import SIBRModel, SIRModel
from epifit.objectives import Objective, Observations

SIR_PARAMS = {"beta": 0.5, "gamma": 0.2}
SIR_N = 1000
SIR_I0 = 10
DAYS = np.arange(0, 31)


def _sir_truth():
    model = SIRModel(N=SIR_N)
    y0 = model.initial_state(I=SIR_I0)
    return model, y0, integrate(model, y0, DAYS, SIR_PARAMS)


@pytest.fixture
def sir_model():
    return SIRModel(N=SIR_N)


@pytest.fixture
def sir_params():
    return dict(SIR_PARAMS)


@pytest.fixture
def sir_y0(sir_model):
    return sir_model.initial_state(I=SIR_I0)


@pytest.fixture
def sir_truth():
    return _sir_truth()[2]


@pytest.fixture
def noiseless_data(sir_truth):
    """I(t) on days 1-30, straight from the ODE"""
    return Observations(sir_truth.t[1:], sir_truth.series("I")[1:], compartment="I")


@pytest.fixture
def sibr_model():
    return SIBRModel(N=763)


@pytest.fixture(scope="session")
def poisson_setup():
    """Poisson counts around the reference epidemic, plus the NLL objective"""
    model, y0, truth = _sir_truth()
    rng = np.random.default_rng(2026)
    counts = rng.poisson(truth.series("I")[1:])
    data = Observations(truth.t[1:], counts, compartment="I")
    objective = Objective(model, data, y0, fit=["beta", "gamma"], criterion="nll", distribution="poisson")
    return objective


@pytest.fixture(scope="session")
def poisson_fit(poisson_setup):
    return fit(
        poisson_setup,
        start={"beta": 0.45, "gamma": 0.22},
        bounds={"beta": (0.05, 2.0), "gamma": (0.01, 1.0)},
        options={"xatol": 1e-6, "fatol": 1e-5, "maxiter": 4000},
    )
