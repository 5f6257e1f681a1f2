"""
===========================================================
uncertainty.py
Author: Veronica Scerra
Last Updated: 2026-02-03
===========================================================

Description:
    Confidence intervals for likelihood fits:

      1) profile_likelihood(): fix one parameter on a grid,
         re-optimise the rest, and find where
         2*(profile NLL - minimum NLL) crosses the chi-squared
         quantile with one degree of freedom.
      2) bootstrap(): parametric bootstrap. Draw parameter
         vectors from MVN(MLE, covariance) and take empirical
         quantiles of any derived statistic (e.g. R0 = beta/gamma).
      3) wald_intervals(): normal approximation from the
         covariance matrix.

Example Usage:
    prof = profile_likelihood(objective, result, "beta")
    prof.lower, prof.upper
    boot = bootstrap(result, lambda p: p["beta"] / p["gamma"], rng=1)

Notes:
    - Use at least 1000 bootstrap draws for stable tails.
-----------------------------------------------------------
License: MIT
===========================================================
"""
from __future__ import annotations
import logging
import warnings
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from scipy.stats import chi2, norm

from .fitting import FitResult, fit
from .objectives import Objective
from .settings import bounds_for

logger = logging.getLogger(__name__)

Statistic = Union[str, Callable[[Mapping[str, float]], float]]


def _require_likelihood(result: FitResult) -> None:
    if result.criterion != "nll":
        raise ValueError("confidence intervals need a likelihood (criterion='nll') fit")


@dataclass(frozen=True)
class Profile:
    """
    Profile likelihood of one parameter.

    Attributes:
    name: str. Profiled parameter
    values: ndarray. Grid of fixed values (ascending)
    nll: ndarray. Minimum NLL over the other parameters at each value
    mle: float. Point estimate
    minimum: float. Lowest NLL seen (fit or profile)
    cutoff: float. NLL level bounding the interval
    lower, upper: float or None. Interval ends (None: no crossing on the grid)
    level: float. Confidence level
    """
    name: str
    values: np.ndarray
    nll: np.ndarray
    mle: float
    minimum: float
    cutoff: float
    lower: Optional[float]
    upper: Optional[float]
    level: float

    @property
    def deviance(self) -> np.ndarray:
        """2*(profile NLL - minimum)"""
        return 2.0 * (self.nll - self.minimum)

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame({self.name: self.values, "nll": self.nll, "deviance": self.deviance})


def _crossing(values: Sequence[float], nll: Sequence[float], cutoff: float) -> Optional[float]:
    """First point where the curve rises through cutoff, walking away from the MLE"""
    for k in range(1, len(values)):
        if nll[k - 1] <= cutoff < nll[k]:
            w = (cutoff - nll[k - 1]) / (nll[k] - nll[k - 1])
            return float(values[k - 1] + w * (values[k] - values[k - 1]))
    return None


def profile_likelihood(
        objective: Objective,
        result: FitResult,
        name: str,
        values: Optional[Sequence[float]] = None,
        n_points: int = 21,
        span: float = 0.5,
        level: float = 0.95,
        bounds: Optional[Mapping[str, Tuple[float, float]]] = None,
        method: Optional[str] = None,
) -> Profile:
    """
    Profile the NLL over one parameter.

    Parameters:
    -----------
    objective: Objective used for the fit
    result: FitResult at the MLE
    name: str. Parameter to profile
    values: array-like, optional. Grid of fixed values; by default n_points
        evenly spaced over mle*(1 -/+ span), kept inside the default bounds
    level: float. Confidence level
    bounds, method: passed to fit() for the re-optimisation

    Each grid point is re-optimised starting from the neighbouring point's
    optimum, moving outward from the MLE in both directions.
    """
    _require_likelihood(result)
    if name not in result.free:
        raise ValueError(f"{name} was not fitted in {result}")
    mle = result.params[name]
    if values is None:
        lo, hi = (bounds or {}).get(name, bounds_for(name))
        values = np.linspace(max(mle * (1 - span), lo), min(mle * (1 + span), hi), n_points)
    values = np.unique(np.asarray(values, dtype=float))
    others = [n for n in result.free if n != name]
    method = method or (result.method if result.method != "bounded" else "Nelder-Mead")

    def solve(direction: np.ndarray) -> List[float]:
        out = []
        start = {n: result.params[n] for n in others}
        for v in direction:
            held = objective.hold(**{name: v})
            if not others:
                out.append(held([]))
                continue
            r = fit(held, start=start, bounds=bounds, method=method, hessian=False)
            if r.converged:
                start = {n: r.params[n] for n in others}
            out.append(r.value)
        return out

    below = values[values < mle][::-1]
    above = values[values >= mle]
    nll_below = solve(below)[::-1]
    nll_above = solve(above)
    nll = np.array(nll_below + nll_above, dtype=float)

    minimum = min(result.value, float(nll.min()))
    if nll.min() < result.value - 1e-6:
        logger.warning("profile of %s found NLL %.6g below the fit's %.6g; consider refitting",
                       name, nll.min(), result.value)
    cutoff = minimum + chi2.ppf(level, df=1) / 2.0

    # walk outward from the MLE on each side
    lower = _crossing(np.r_[mle, below], np.r_[result.value, nll[:len(below)][::-1]], cutoff)
    upper = _crossing(np.r_[mle, above], np.r_[result.value, nll[len(below):]], cutoff)
    logger.info("profile %s: mle=%.4g, %g%% interval (%s, %s)", name, mle, 100 * level, lower, upper)

    return Profile(name=name, values=values, nll=nll, mle=mle, minimum=minimum,
                   cutoff=cutoff, lower=lower, upper=upper, level=level)


@dataclass(frozen=True)
class BootstrapResult:
    """
    Attributes:
    draws: ndarray, shape (n_draws, k). Sampled free parameter vectors
    values: ndarray, shape (n_draws,). Statistic at each draw
    estimate: float. Statistic at the MLE
    lower, upper: float. Empirical quantiles
    level: float. Confidence level
    """
    draws: np.ndarray
    values: np.ndarray
    estimate: float
    lower: float
    upper: float
    level: float


def _as_function(statistic: Statistic) -> Callable[[Mapping[str, float]], float]:
    if isinstance(statistic, str):
        return lambda p: p[statistic]
    return statistic


def bootstrap(
        result: FitResult,
        statistic: Statistic,
        n_draws: int = 1000,
        rng: Union[np.random.Generator, int, None] = None,
        level: float = 0.95,
) -> BootstrapResult:
    """
    Parametric bootstrap of a statistic through the asymptotic covariance.

    Parameters:
    -----------
    result: FitResult with a covariance matrix
    statistic: str or callable. Parameter name, or function of the full
        parameter dict (e.g. lambda p: p["beta"] / p["gamma"])
    n_draws: int. Number of multivariate-normal draws
    rng: numpy Generator or seed
    level: float. Confidence level of the quantile interval
    """
    _require_likelihood(result)
    if result.covariance is None:
        raise ValueError("result has no covariance matrix; fit with hessian=True")
    if n_draws < 1000:
        warnings.warn(f"{n_draws} draws may give unstable tail quantiles; 1000 or more is recommended")
    rng = np.random.default_rng(rng)
    f = _as_function(statistic)

    draws = rng.multivariate_normal(result.x, result.covariance, size=n_draws)
    values = np.array([f({**result.fixed, **dict(zip(result.free, d))}) for d in draws], dtype=float)
    alpha = 1.0 - level
    lower, upper = np.quantile(values, [alpha / 2, 1 - alpha / 2])
    return BootstrapResult(draws=draws, values=values, estimate=float(f(result.params)),
                           lower=float(lower), upper=float(upper), level=level)


def wald_intervals(result: FitResult, level: float = 0.95) -> pd.DataFrame:
    """estimate +/- z * standard error for every fitted parameter"""
    _require_likelihood(result)
    if result.covariance is None:
        raise ValueError("result has no covariance matrix; fit with hessian=True")
    z = norm.ppf(0.5 + level / 2)
    se = np.sqrt(np.diag(result.covariance))
    est = result.x
    return pd.DataFrame(
        {"estimate": est, "std_error": se, "lower": est - z * se, "upper": est + z * se},
        index=pd.Index(result.free, name="parameter"),
    )


def profile_all(objective: Objective, result: FitResult, **kwargs) -> Dict[str, Profile]:
    """Profile every fitted parameter"""
    return {name: profile_likelihood(objective, result, name, **kwargs) for name in result.free}
