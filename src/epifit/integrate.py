"""
===========================================================
integrate.py
Author: Veronica Scerra
Last Updated: 2026-02-03
===========================================================

Description:
    Deterministic integration of any CompartmentModel with
    scipy's solve_ivp. The default method (LSODA) picks its
    own step sizes and switches between non-stiff and stiff
    solvers without caller intervention.

Example Usage:
    from epifit.integrate import integrate
    from epifit.models import SIRModel
    model = SIRModel(N=10000)
    traj = integrate(model, model.initial_state(I=10),
                     np.arange(0, 161), {"beta": 0.3, "gamma": 0.1})

Notes:
    - Output is returned at exactly the requested times.
    - Solver failure raises IntegrationFailure; nothing is
      retried with looser tolerances.
-----------------------------------------------------------
License: MIT
===========================================================
"""
from __future__ import annotations
import logging
from typing import Mapping, Optional, Sequence

import numpy as np
from scipy.integrate import solve_ivp

from .errors import IntegrationFailure, InvalidParameter
from .models.base import CompartmentModel
from .settings import DEFAULT_SOLVER, SolverSettings
from .trajectory import Trajectory

logger = logging.getLogger(__name__)


def _check_times(times: np.ndarray, t0: float) -> None:
    if times.ndim != 1 or len(times) == 0:
        raise ValueError("times must be a non-empty 1-D sequence")
    if np.any(np.diff(times) <= 0):
        raise ValueError("times must be strictly increasing")
    if times[0] < t0:
        raise ValueError(f"first output time {times[0]} precedes start time {t0}")


def integrate(
        model: CompartmentModel,
        y0: Sequence[float],
        times: Sequence[float],
        params: Mapping[str, float],
        t0: Optional[float] = None,
        settings: Optional[SolverSettings] = None,
) -> Trajectory:
    """
    Integrate the model's ODE system and sample it at `times`.

    Parameters:
    -----------
    model: CompartmentModel
        Supplies derivatives(t, y, params)
    y0: array-like
        State at t0, ordered as model.compartments
    times: array-like
        Strictly increasing output times, times[0] >= t0
    params: mapping
        Rate constants keyed by model.parameter_names
    t0: float, optional
        Start of integration (defaults to times[0])
    settings: SolverSettings, optional
        Method and tolerances

    Returns:
    --------
    Trajectory with one state per requested time

    Raises:
    -------
    InvalidParameter: bad parameter names/values, negative initial state,
        or a solution that goes negative beyond the tolerance
    IntegrationFailure: the solver reports failure
    """
    settings = settings or DEFAULT_SOLVER
    times = np.asarray(times, dtype=float)
    t0 = float(times[0]) if t0 is None and len(times) else t0
    _check_times(times, t0)

    p = model.check_params(params)
    y0 = np.asarray(y0, dtype=float)
    if y0.shape != (len(model.compartments),):
        raise ValueError(f"{model.name} expects {len(model.compartments)} compartments, got shape {y0.shape}")
    if np.any(y0 < 0):
        raise InvalidParameter(f"initial state must be non-negative, got {y0}")

    if times[-1] == t0:
        # nothing to integrate
        return Trajectory(times.copy(), y0[None, :].copy(), model.compartments, kind="ode")

    solution = solve_ivp(
        fun=lambda t, y: model.derivatives(t, y, p),
        t_span=(t0, float(times[-1])),
        y0=y0,
        method=settings.method,
        t_eval=times,
        rtol=settings.rtol,
        atol=settings.atol,
        max_step=settings.max_step,
    )

    if not solution.success:
        raise IntegrationFailure(f"{model.name}: ODE solver failed: {solution.message}")
    if solution.y.shape[1] != len(times):
        raise IntegrationFailure(
            f"{model.name}: solver returned {solution.y.shape[1]} of {len(times)} requested points"
        )

    y = solution.y.T.copy()
    if not np.all(np.isfinite(y)):
        raise IntegrationFailure(f"{model.name}: non-finite values in solution")
    if np.any(y < -settings.negativity_tolerance * max(1.0, float(np.abs(y0).sum()))):
        worst = model.compartments[int(np.argmin(y.min(axis=0)))]
        raise InvalidParameter(f"{model.name}: compartment {worst} went negative ({y.min():.3g})")
    # clip round-off below zero
    np.maximum(y, 0.0, out=y)

    logger.debug("integrated %s over [%g, %g] with %d rhs evaluations",
                 model.name, t0, times[-1], solution.nfev)
    return Trajectory(times.copy(), y, model.compartments, kind="ode")
