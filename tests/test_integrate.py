"""Tests for epifit.integrate and epifit.trajectory."""

import sys
from types import SimpleNamespace

import numpy as np
import pytest

from epifit.errors import IntegrationFailure, InvalidParameter
from epifit.integrate import integrate
from epifit.models import HostMacroparasiteModel, SEIRModel
from epifit.settings import SolverSettings
from epifit.trajectory import Trajectory


class TestIntegrate:

    def test_population_conserved(self, sir_model, sir_y0, sir_params):
        traj = integrate(sir_model, sir_y0, np.linspace(0, 200, 401), sir_params)
        np.testing.assert_allclose(traj.totals, 1000.0, rtol=1e-6)

    def test_output_at_requested_times(self, sir_model, sir_y0, sir_params):
        times = np.array([0.0, 0.5, 3.0, 7.25, 20.0])
        traj = integrate(sir_model, sir_y0, times, sir_params)
        np.testing.assert_array_equal(traj.t, times)
        assert traj.y.shape == (5, 3)
        np.testing.assert_allclose(traj.y[0], sir_y0)

    def test_deterministic(self, sir_model, sir_y0, sir_params):
        a = integrate(sir_model, sir_y0, np.arange(0, 50), sir_params)
        b = integrate(sir_model, sir_y0, np.arange(0, 50), sir_params)
        np.testing.assert_array_equal(a.y, b.y)

    def test_start_before_first_output(self, sir_model, sir_y0, sir_params):
        full = integrate(sir_model, sir_y0, [0.0, 5.0, 10.0], sir_params)
        later = integrate(sir_model, sir_y0, [5.0, 10.0], sir_params, t0=0.0)
        assert len(later) == 2
        np.testing.assert_allclose(later.y, full.y[1:], rtol=1e-6)

    def test_epidemic_grows_when_r0_above_one(self, sir_model, sir_y0, sir_params):
        traj = integrate(sir_model, sir_y0, np.arange(0, 11), sir_params)
        assert traj.series("I")[1] > traj.series("I")[0]

    def test_stiff_system(self):
        """Very fast E->I progression alongside slow recovery."""
        model = SEIRModel(N=1e6)
        params = {"beta": 0.4, "sigma": 1e4, "gamma": 0.1}
        traj = integrate(model, model.initial_state(E=10), np.arange(0, 101), params)
        np.testing.assert_allclose(traj.totals, 1e6, rtol=1e-6)

    def test_growing_population(self):
        model = HostMacroparasiteModel()
        params = {"a": 1.0, "b": 0.5, "alpha": 1e-4, "mu": 0.5, "beta": 2.0, "H0": 100.0, "k": 1.0}
        traj = integrate(model, [100.0, 50.0], np.linspace(0, 5, 11), params)
        assert traj.series("H")[-1] > 100.0

    def test_rejects_unordered_times(self, sir_model, sir_y0, sir_params):
        with pytest.raises(ValueError):
            integrate(sir_model, sir_y0, [0.0, 2.0, 1.0], sir_params)

    def test_rejects_time_before_start(self, sir_model, sir_y0, sir_params):
        with pytest.raises(ValueError):
            integrate(sir_model, sir_y0, [1.0, 2.0], sir_params, t0=3.0)

    def test_negative_rate_is_invalid_parameter(self, sir_model, sir_y0):
        with pytest.raises(InvalidParameter):
            integrate(sir_model, sir_y0, np.arange(0, 10), {"beta": -0.5, "gamma": 0.2})

    def test_negative_initial_state(self, sir_model, sir_params):
        with pytest.raises(InvalidParameter):
            integrate(sir_model, [1010, -10, 0], np.arange(0, 10), sir_params)

    def test_solver_failure_raises(self, monkeypatch, sir_model, sir_y0, sir_params):
        def failing(*args, **kwargs):
            return SimpleNamespace(success=False, message="Required step size is less than spacing",
                                   y=np.empty((3, 0)), nfev=10)

        monkeypatch.setattr(sys.modules["epifit.integrate"], "solve_ivp", failing)
        with pytest.raises(IntegrationFailure, match="step size"):
            integrate(sir_model, sir_y0, np.arange(0, 10), sir_params)

    def test_other_solver_method(self, sir_model, sir_y0, sir_params):
        lsoda = integrate(sir_model, sir_y0, np.arange(0, 30), sir_params)
        radau = integrate(sir_model, sir_y0, np.arange(0, 30), sir_params,
                          settings=SolverSettings(method="Radau"))
        np.testing.assert_allclose(lsoda.y, radau.y, rtol=1e-4, atol=1e-4)


class TestTrajectory:

    @pytest.fixture
    def path(self):
        t = np.array([0.0, 1.5, 3.0])
        y = np.array([[9, 1, 0], [8, 2, 0], [8, 1, 1]])
        return Trajectory(t, y, ("S", "I", "R"), kind="gillespie")

    def test_resample_is_right_continuous(self, path):
        grid = path.resample([0.0, 1.0, 1.5, 2.0, 3.0, 4.0])
        np.testing.assert_array_equal(grid.series("I"), [1, 1, 2, 2, 1, 1])
        assert grid.kind == "gillespie"

    def test_read_only(self, path):
        with pytest.raises(ValueError):
            path.y[0, 0] = 100

    def test_shape_checked(self):
        with pytest.raises(ValueError):
            Trajectory(np.arange(3.0), np.zeros((2, 3)), ("S", "I", "R"))

    def test_unknown_compartment(self, path):
        with pytest.raises(KeyError):
            path.series("E")

    def test_to_dataframe(self, path):
        df = path.to_dataframe()
        assert list(df.columns) == ["t", "S", "I", "R"]
        assert len(df) == 3

    def test_summary(self, sir_truth):
        summary = sir_truth.summary()
        assert summary["peak_infected"] == pytest.approx(sir_truth.series("I").max())
        assert 0.0 < summary["final_size"] < 1.0
        assert summary["peak_prevalence"] == pytest.approx(summary["peak_infected"] / 1000)
