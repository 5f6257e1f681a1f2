"""
===========================================================
fitting.py
Author: Veronica Scerra
Last Updated: 2026-02-03
===========================================================

Description:
    Parameter estimation by minimising an Objective:
      1) grid_search(): coarse grid over chosen parameters,
         tidy DataFrame of criterion values
      2) fit(): bounded multivariate minimisation with
         scipy.optimize.minimize (Nelder-Mead, L-BFGS-B, ...)
      3) fit_single(): bounded one-parameter minimisation with
         minimize_scalar, every other parameter held
      4) refit(): restart from a previous optimum

    NLL fits also carry the asymptotic covariance matrix
    (inverse of a finite-difference Hessian at the optimum).

Example Usage:
    from epifit.fitting import fit, refit
    result = fit(objective, start={"beta": 2.0, "gamma": 0.5},
                 bounds={"beta": (0.1, 5), "gamma": (0.05, 2)})
    result = refit(objective, result)

Notes:
    - Non-convergence is reported in FitResult.converged, never
      raised.
    - Bounds default to epifit.settings.DEFAULT_BOUNDS.
-----------------------------------------------------------
License: MIT
===========================================================
"""
from __future__ import annotations
import itertools
import logging
import warnings
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from scipy.optimize import minimize, minimize_scalar

from .comparison import aic, bic
from .objectives import Objective
from .settings import PENALTY, bounds_for

logger = logging.getLogger(__name__)

Bounds = Mapping[str, Tuple[float, float]]

# scipy methods that accept a bounds argument
BOUNDED_METHODS = {"Nelder-Mead", "L-BFGS-B", "TNC", "SLSQP", "Powell", "trust-constr", "COBYLA"}


@dataclass(frozen=True)
class FitResult:
    """
    Outcome of one optimisation call.

    Attributes:
    params: mapping (read-only). Every parameter value (fitted and fixed)
    value: float. Objective value at the optimum
    converged: bool. Optimizer success and a finite, non-penalty value
    message: str. Optimizer message
    free: tuple of str. Fitted parameter names, in vector order
    fixed: mapping (read-only). Held parameter values
    method: str. Optimisation method
    n_evaluations: int. Objective evaluations used
    n_observations: int. Data points in the objective
    criterion: str. "sse" or "nll"
    covariance: ndarray, optional. Asymptotic covariance of the free parameters
    profiles: mapping (read-only). Profile likelihoods attached with with_profiles()
    """
    params: Mapping[str, float]
    value: float
    converged: bool
    message: str
    free: Tuple[str, ...]
    fixed: Mapping[str, float]
    method: str
    n_evaluations: int
    n_observations: int
    criterion: str
    covariance: Optional[np.ndarray] = None
    profiles: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # read-only views; results are never mutated in place
        for name in ("params", "fixed", "profiles"):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))
        if self.covariance is not None:
            cov = np.array(self.covariance, dtype=float)
            cov.setflags(write=False)
            object.__setattr__(self, "covariance", cov)

    @property
    def x(self) -> np.ndarray:
        return np.array([self.params[n] for n in self.free])

    @property
    def n_params(self) -> int:
        return len(self.free)

    @property
    def nll(self) -> float:
        if self.criterion != "nll":
            raise ValueError("result was not fitted by likelihood")
        return self.value

    @property
    def aic(self) -> float:
        return aic(self.nll, self.n_params)

    @property
    def bic(self) -> float:
        return bic(self.nll, self.n_params, self.n_observations)

    @property
    def standard_errors(self) -> Optional[Dict[str, float]]:
        if self.covariance is None:
            return None
        return dict(zip(self.free, np.sqrt(np.diag(self.covariance)).tolist()))

    def with_profiles(self, **profiles: Any) -> "FitResult":
        """Copy with profile likelihoods attached"""
        return replace(self, profiles={**self.profiles, **profiles})

    def to_series(self) -> pd.Series:
        return pd.Series(dict(self.params), name=self.criterion)

    def __repr__(self) -> str:
        shown = ", ".join(f"{n}={self.params[n]:.4g}" for n in self.free)
        status = "converged" if self.converged else "NOT converged"
        return f"FitResult({shown}; {self.criterion}={self.value:.6g}, {status})"


def _bounds_list(names: Sequence[str], bounds: Optional[Bounds]) -> list:
    bounds = bounds or {}
    out = []
    for n in names:
        lo, hi = bounds.get(n, bounds_for(n))
        if not lo < hi:
            raise ValueError(f"bounds for {n} must satisfy lower < upper, got ({lo}, {hi})")
        out.append((float(lo), float(hi)))
    return out


def _start_vector(objective: Objective, start: Union[Mapping[str, float], Sequence[float]]) -> np.ndarray:
    if isinstance(start, Mapping):
        missing = [n for n in objective.fit_names if n not in start]
        if missing:
            raise ValueError(f"no start value for {missing}")
        return objective.vector(start)
    x0 = np.asarray(start, dtype=float)
    if x0.shape != (len(objective.fit_names),):
        raise ValueError(f"start must have {len(objective.fit_names)} values for {objective.fit_names}")
    return x0


def numerical_hessian(f, x: np.ndarray, bounds: Sequence[Tuple[float, float]], rel_step: float = 1e-3) -> Optional[np.ndarray]:
    """
    Central finite-difference Hessian of f at x.

    Steps shrink to stay inside the bounds. Returns None when x sits on a
    bound or any evaluation hits the penalty.
    """
    x = np.asarray(x, dtype=float)
    k = len(x)
    h = rel_step * np.maximum(np.abs(x), 1e-3)
    for i, (lo, hi) in enumerate(bounds):
        room = min(x[i] - lo, hi - x[i])
        if room <= 0:
            return None
        h[i] = min(h[i], room / 2)

    f0 = f(x)
    H = np.empty((k, k))
    for i in range(k):
        ei = np.zeros(k); ei[i] = h[i]
        fp, fm = f(x + ei), f(x - ei)
        if max(fp, fm, f0) >= PENALTY:
            return None
        H[i, i] = (fp - 2 * f0 + fm) / h[i] ** 2
        for j in range(i + 1, k):
            ej = np.zeros(k); ej[j] = h[j]
            vals = [f(x + ei + ej), f(x + ei - ej), f(x - ei + ej), f(x - ei - ej)]
            if max(vals) >= PENALTY:
                return None
            H[i, j] = H[j, i] = (vals[0] - vals[1] - vals[2] + vals[3]) / (4 * h[i] * h[j])
    return H


def covariance_from_hessian(H: np.ndarray) -> Optional[np.ndarray]:
    """Inverse of an NLL Hessian, or None if it is not positive definite"""
    eigenvalues = np.linalg.eigvalsh(H)
    if np.any(eigenvalues <= 0):
        warnings.warn(f"Hessian is not positive definite (eigenvalues {eigenvalues}); no covariance estimate")
        return None
    return np.linalg.inv(H)


def _make_result(objective: Objective, x: np.ndarray, value: float, success: bool, message: str,
                 method: str, nfev: int, covariance: Optional[np.ndarray] = None) -> FitResult:
    value = float(value)
    converged = bool(success and np.isfinite(value) and value < PENALTY)
    result = FitResult(
        params=objective.params(x),
        value=value,
        converged=converged,
        message=str(message),
        free=objective.fit_names,
        fixed=dict(objective.fixed),
        method=method,
        n_evaluations=int(nfev),
        n_observations=objective.n_observations,
        criterion=objective.criterion,
        covariance=covariance,
    )
    if converged:
        logger.info("%s fit of %s: %s", method, objective.model.name, result)
    else:
        logger.warning("%s fit of %s did not converge: %s", method, objective.model.name, message)
    return result


def fit(
        objective: Objective,
        start: Union[Mapping[str, float], Sequence[float]],
        bounds: Optional[Bounds] = None,
        method: str = "Nelder-Mead",
        options: Optional[Dict[str, Any]] = None,
        hessian: Optional[bool] = None,
) -> FitResult:
    """
    Minimise the objective over its free parameters.

    Parameters:
    -----------
    objective: Objective
    start: dict or sequence. Initial free parameter values
    bounds: dict, optional. name -> (lower, upper); defaults per name
    method: str. Any scipy.optimize.minimize method
    options: dict, optional. Passed to minimize
    hessian: bool, optional. Estimate the covariance matrix
        (default: only for likelihood fits)

    Returns:
    --------
    FitResult
    """
    if not objective.fit_names:
        raise ValueError("objective has no free parameters")
    bnds = _bounds_list(objective.fit_names, bounds)
    lo, hi = np.array(bnds).T
    x0 = np.clip(_start_vector(objective, start), lo, hi)

    res = minimize(
        objective,
        x0,
        method=method,
        bounds=bnds if method in BOUNDED_METHODS else None,
        options=options,
    )
    x = np.atleast_1d(res.x)

    if hessian is None:
        hessian = objective.criterion == "nll"
    covariance = None
    if hessian and res.success:
        H = numerical_hessian(objective, x, bnds)
        if H is None:
            warnings.warn("optimum is on a bound or next to an infeasible region; no covariance estimate")
        else:
            covariance = covariance_from_hessian(H)

    return _make_result(objective, x, res.fun, res.success, res.message, method,
                        getattr(res, "nfev", 0), covariance)


def fit_single(
        objective: Objective,
        name: Optional[str] = None,
        bounds: Optional[Tuple[float, float]] = None,
        at: Optional[Mapping[str, float]] = None,
        xatol: float = 1e-8,
        maxiter: int = 500,
) -> FitResult:
    """
    Bounded minimisation over one parameter with all others held.

    Parameters:
    -----------
    objective: Objective
    name: str, optional. Parameter to fit; required when the objective has
        more than one free parameter
    bounds: tuple, optional. (lower, upper) for that parameter
    at: dict, optional. Values for the other free parameters (e.g. a
        previous FitResult.params)
    """
    if name is None:
        if len(objective.fit_names) != 1:
            raise ValueError(f"name is required with several free parameters {objective.fit_names}")
        name = objective.fit_names[0]
    others = [n for n in objective.fit_names if n != name]
    if name not in objective.fit_names:
        raise ValueError(f"{name} is not a free parameter of {objective}")
    if others:
        if at is None or any(n not in at for n in others):
            raise ValueError(f"values for held parameters {others} are required (at=...)")
        objective = objective.hold(**{n: at[n] for n in others})

    lo, hi = bounds if bounds is not None else bounds_for(name)
    res = minimize_scalar(
        lambda v: objective([v]),
        bounds=(lo, hi),
        method="bounded",
        options={"xatol": xatol, "maxiter": maxiter},
    )
    return _make_result(objective, np.array([res.x]), res.fun, res.success,
                        getattr(res, "message", ""), "bounded", getattr(res, "nfev", 0))


def refit(
        objective: Objective,
        previous: FitResult,
        bounds: Optional[Bounds] = None,
        method: Optional[str] = None,
        options: Optional[Dict[str, Any]] = None,
        hessian: Optional[bool] = None,
) -> FitResult:
    """Restart the optimizer from a previous optimum"""
    method = method or previous.method
    if method == "bounded":
        name = previous.free[0]
        b = None if bounds is None else bounds.get(name)
        return fit_single(objective, name, bounds=b, at=previous.params)
    return fit(objective, start=previous.params, bounds=bounds, method=method,
               options=options, hessian=hessian)


def grid_search(objective: Objective, grids: Mapping[str, Sequence[float]]) -> pd.DataFrame:
    """
    Evaluate the objective on the Cartesian product of per-parameter grids.

    Returns a tidy DataFrame with one column per free parameter plus
    'value', sorted so the best point is the first row.
    """
    names = objective.fit_names
    missing = [n for n in names if n not in grids]
    if missing:
        raise ValueError(f"no grid given for {missing}")
    records = []
    for combo in itertools.product(*(grids[n] for n in names)):
        rec = dict(zip(names, map(float, combo)))
        rec["value"] = objective(list(combo))
        records.append(rec)
    df = pd.DataFrame.from_records(records)
    return df.sort_values("value").reset_index(drop=True)
