"""
===========================================================
objectives.py
Author: Veronica Scerra
Last Updated: 2026-02-03
===========================================================

Description:
    Fit criteria comparing a simulated compartment against an
    observed time series:

      1) sum of squared errors (SSE)
      2) negative log-likelihood (NLL) under a measurement-error
         distribution: Poisson (mean = model prediction), Normal
         (sd = obs_sd), negative binomial (dispersion = obs_k),
         or any callable returning log densities.

    An Objective is a callable over the vector of free
    parameters, so it can be handed straight to
    scipy.optimize.minimize.

Example Usage:
    data = Observations.from_dataframe(flu, "day", "flu", compartment="B")
    sse = Objective(SIBRModel(N=763), data, y0=[762, 1, 0, 0],
                    fit=["beta", "gamma"], fixed={"delta": 1/3})
    sse([2.0, 1/3])

Notes:
    - The model is simulated at the observation times. If the
      first observation is later than t0, t0 is prepended to the
      simulation and left out of the comparison.
    - Failed simulations (solver failure, negative compartments,
      out-of-bounds vectors, non-finite predictions) score
      PENALTY instead of raising, so the optimizer can back off.
    - Observation/prediction length mismatches always raise
      DataShapeMismatch.
-----------------------------------------------------------
License: MIT
===========================================================
"""
from __future__ import annotations
import copy
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from scipy.stats import nbinom, norm, poisson

from .errors import DataShapeMismatch, SimulationError
from .integrate import integrate
from .models.base import CompartmentModel
from .settings import PENALTY, SolverSettings
from .trajectory import Trajectory

logger = logging.getLogger(__name__)

LogDensity = Callable[[np.ndarray, np.ndarray, Mapping[str, float]], np.ndarray]
Observable = Union[str, Callable[[Trajectory], np.ndarray]]
InitialState = Union[Sequence[float], Callable[[Mapping[str, float]], Sequence[float]]]

# floor on predicted counts for count likelihoods
MIN_MEAN = 1e-8


@dataclass(frozen=True)
class Observations:
    """
    Observed time series of one compartment.

    Attributes:
    times: ndarray. Strictly increasing observation times
    values: ndarray. Observed values, same length as times
    compartment: str, optional. Model compartment the values measure
    """
    times: np.ndarray
    values: np.ndarray
    compartment: Optional[str] = None

    def __post_init__(self):
        times = np.asarray(self.times, dtype=float)
        values = np.asarray(self.values, dtype=float)
        if times.shape != values.shape or times.ndim != 1:
            raise DataShapeMismatch(
                f"observation times {times.shape} and values {values.shape} must be 1-D and equal length"
            )
        if len(times) == 0:
            raise ValueError("observations are empty")
        if np.any(np.diff(times) <= 0):
            raise ValueError("observation times must be strictly increasing")
        object.__setattr__(self, "times", times)
        object.__setattr__(self, "values", values)

    def __len__(self) -> int:
        return len(self.times)

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame, time_col: str = "day", value_col: str = "flu",
                       compartment: Optional[str] = None) -> "Observations":
        """Build from a table with one row per time point"""
        return cls(df[time_col].to_numpy(dtype=float), df[value_col].to_numpy(dtype=float), compartment)


def _poisson(y: np.ndarray, yhat: np.ndarray, params: Mapping[str, float]) -> np.ndarray:
    return poisson.logpmf(y, np.maximum(yhat, MIN_MEAN))


def _normal(y: np.ndarray, yhat: np.ndarray, params: Mapping[str, float]) -> np.ndarray:
    return norm.logpdf(y, loc=yhat, scale=params["obs_sd"])


def _negbin(y: np.ndarray, yhat: np.ndarray, params: Mapping[str, float]) -> np.ndarray:
    # mean yhat, variance yhat + yhat^2/k
    k = params["obs_k"]
    mean = np.maximum(yhat, MIN_MEAN)
    return nbinom.logpmf(y, k, k / (k + mean))


# name -> (log density, extra parameter names)
DISTRIBUTIONS: Dict[str, Tuple[LogDensity, Tuple[str, ...]]] = {
    "poisson": (_poisson, ()),
    "normal": (_normal, ("obs_sd",)),
    "negbin": (_negbin, ("obs_k",)),
}


class Objective:
    """
    Scalar fit criterion over a vector of free parameters.

    Parameters:
    -----------
    model: CompartmentModel
    data: Observations
    y0: array-like or callable
        Initial state at t0, or a function of the full parameter dict
        (for fitting initial conditions such as I0)
    fit: sequence of str
        Names of the free parameters, in vector order
    fixed: mapping, optional
        Values for every other parameter the model/distribution needs
    criterion: str
        "sse" or "nll"
    distribution: str or callable
        For "nll": "poisson", "normal", "negbin", or a log density
        function (y, yhat, params) -> array
    extra_params: sequence of str
        Parameter names a custom distribution needs
    observe: str or callable, optional
        Compartment compared with the data (defaults to data.compartment),
        or a function mapping the simulated Trajectory to predictions
    t0: float
        Time of the initial state
    bounds: mapping, optional
        name -> (lower, upper). Vectors outside score PENALTY.
    settings: SolverSettings, optional
    """

    def __init__(
            self,
            model: CompartmentModel,
            data: Observations,
            y0: InitialState,
            fit: Sequence[str],
            fixed: Optional[Mapping[str, float]] = None,
            criterion: str = "sse",
            distribution: Union[str, LogDensity] = "poisson",
            extra_params: Sequence[str] = (),
            observe: Optional[Observable] = None,
            t0: float = 0.0,
            bounds: Optional[Mapping[str, Tuple[float, float]]] = None,
            settings: Optional[SolverSettings] = None,
    ):
        if criterion not in ("sse", "nll"):
            raise ValueError("criterion must be 'sse' or 'nll'")
        self.model = model
        self.data = data
        self.y0 = y0
        self.fit_names: Tuple[str, ...] = tuple(fit)
        self.fixed: Dict[str, float] = {k: float(v) for k, v in (fixed or {}).items()}
        self.criterion = criterion
        self.t0 = float(t0)
        self.bounds = dict(bounds or {})
        self.settings = settings

        if isinstance(distribution, str):
            if distribution not in DISTRIBUTIONS:
                raise ValueError(f"unknown distribution {distribution!r}; choose from {sorted(DISTRIBUTIONS)}")
            self._logpdf, needed = DISTRIBUTIONS[distribution]
        else:
            self._logpdf, needed = distribution, tuple(extra_params)
        self.distribution = distribution
        self.extra_names: Tuple[str, ...] = needed if criterion == "nll" else ()

        observe = observe if observe is not None else data.compartment
        if observe is None:
            raise ValueError("no observed compartment: pass observe= or set data.compartment")
        if isinstance(observe, str):
            model.index(observe)
        self.observe = observe

        if data.times[0] < self.t0:
            raise ValueError(f"first observation time {data.times[0]} precedes t0={self.t0}")
        self._check_names()

    def _check_names(self) -> None:
        overlap = set(self.fit_names) & set(self.fixed)
        if overlap:
            raise ValueError(f"parameter(s) {sorted(overlap)} are both fitted and fixed")
        if len(set(self.fit_names)) != len(self.fit_names):
            raise ValueError(f"duplicate names in fit: {self.fit_names}")
        known = set(self.fit_names) | set(self.fixed)
        missing = [p for p in self.model.parameter_names + self.extra_names if p not in known]
        if missing:
            raise ValueError(f"parameter(s) {missing} are neither fitted nor fixed")

    def __repr__(self) -> str:
        return (f"Objective({self.model.name}, criterion={self.criterion!r}, "
                f"fit={list(self.fit_names)}, fixed={self.fixed})")

    @property
    def n_observations(self) -> int:
        return len(self.data)

    def params(self, x: Sequence[float]) -> Dict[str, float]:
        """Full parameter dict for a vector of free parameter values"""
        x = np.atleast_1d(np.asarray(x, dtype=float))
        if len(x) != len(self.fit_names):
            raise ValueError(f"expected {len(self.fit_names)} values for {self.fit_names}, got {len(x)}")
        return {**self.fixed, **dict(zip(self.fit_names, x.tolist()))}

    def vector(self, params: Mapping[str, float]) -> np.ndarray:
        """Free parameter vector from a dict"""
        return np.array([params[n] for n in self.fit_names], dtype=float)

    def hold(self, **values: float) -> "Objective":
        """Copy of this objective with some free parameters fixed at `values`"""
        unknown = set(values) - set(self.fit_names)
        if unknown:
            raise ValueError(f"cannot hold {sorted(unknown)}: not free parameters of {self}")
        held = copy.copy(self)
        held.fit_names = tuple(n for n in self.fit_names if n not in values)
        held.fixed = {**self.fixed, **{k: float(v) for k, v in values.items()}}
        return held

    def _initial_state(self, params: Mapping[str, float]) -> np.ndarray:
        y0 = self.y0(params) if callable(self.y0) else self.y0
        return np.asarray(y0, dtype=float)

    def simulate(self, params: Mapping[str, float]) -> Trajectory:
        """Trajectory at t0 (if needed) followed by the observation times"""
        times = self.data.times
        if times[0] > self.t0:
            times = np.concatenate([[self.t0], times])
        return integrate(self.model, self._initial_state(params), times, params,
                         t0=self.t0, settings=self.settings)

    def predict(self, params: Mapping[str, float]) -> np.ndarray:
        """
        Predicted observations at the data times.

        Raises simulation errors instead of penalising them.
        """
        traj = self.simulate(params)
        if isinstance(self.observe, str):
            pred = traj.series(self.observe)
        else:
            pred = np.asarray(self.observe(traj), dtype=float)
        drop = len(traj) - len(self.data)
        if drop not in (0, 1) or len(pred) != len(traj):
            raise DataShapeMismatch(
                f"{len(pred)} predictions for {len(traj)} simulated times and {len(self.data)} observations"
            )
        return np.asarray(pred[drop:], dtype=float)

    def _in_bounds(self, params: Mapping[str, float]) -> bool:
        for name, (lo, hi) in self.bounds.items():
            if name in params and not (lo <= params[name] <= hi):
                return False
        return True

    def evaluate(self, params: Mapping[str, float]) -> float:
        """Criterion value at a full parameter dict"""
        if not self._in_bounds(params):
            return PENALTY
        try:
            pred = self.predict(params)
        except SimulationError as e:
            logger.debug("penalised %s: %s", params, e)
            return PENALTY
        if not np.all(np.isfinite(pred)):
            logger.debug("penalised %s: non-finite prediction", params)
            return PENALTY

        y = self.data.values
        if self.criterion == "sse":
            value = float(np.sum((y - pred) ** 2))
        else:
            value = -float(np.sum(self._logpdf(y, pred, params)))
        if not np.isfinite(value):
            return PENALTY
        return value

    def __call__(self, x: Sequence[float]) -> float:
        return self.evaluate(self.params(x))

    def residuals(self, params: Mapping[str, float]) -> np.ndarray:
        """Observed minus predicted"""
        return self.data.values - self.predict(params)


def sum_of_squared_error(observed: Sequence[float], predicted: Sequence[float]) -> float:
    """Plain SSE between two equal-length series"""
    observed = np.asarray(observed, dtype=float)
    predicted = np.asarray(predicted, dtype=float)
    if observed.shape != predicted.shape:
        raise DataShapeMismatch(f"observed {observed.shape} vs predicted {predicted.shape}")
    return float(np.sum((observed - predicted) ** 2))


def negative_log_likelihood(
        observed: Sequence[float],
        predicted: Sequence[float],
        distribution: str = "poisson",
        **extra: float,
) -> float:
    """NLL of observed values given predictions, e.g. distribution='normal', obs_sd=2.0"""
    observed = np.asarray(observed, dtype=float)
    predicted = np.asarray(predicted, dtype=float)
    if observed.shape != predicted.shape:
        raise DataShapeMismatch(f"observed {observed.shape} vs predicted {predicted.shape}")
    logpdf, needed = DISTRIBUTIONS[distribution]
    missing = [n for n in needed if n not in extra]
    if missing:
        raise ValueError(f"{distribution} likelihood needs {missing}")
    return -float(np.sum(logpdf(observed, predicted, extra)))
