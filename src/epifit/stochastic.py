"""
===========================================================
stochastic.py
Author: Veronica Scerra
Last Updated: 2026-02-03
===========================================================

Description:
    Discrete stochastic simulation of any CompartmentModel
    that defines propensities():

        - gillespie(): exact Stochastic Simulation Algorithm.
          Exponential waiting times with rate a_tot; the event
          is chosen by where u*a_tot falls in the cumulative
          propensities.
        - fixed_step(): constant time step dt, at most one event
          per step with probability a_j*dt each.
        - simulate_ensemble(): independent realisations on child
          generator streams spawned from one seed.

Example Usage:
    from epifit.stochastic import gillespie
    model = SIRModel(N=1000)
    traj = gillespie(model, [999, 1, 0], {"beta": 0.5, "gamma": 0.2},
                     t_max=200, rng=42)

Notes:
    - Every random draw comes from the rng argument (a numpy
      Generator or a seed). Nothing touches global state.
    - A state where every propensity is zero is absorbing; the
      path so far is returned without error.
    - fixed_step() raises InvalidParameter when sum(a_j)*dt > 1
      unless check_probability=False.
-----------------------------------------------------------
License: MIT
===========================================================
"""
from __future__ import annotations
import logging
from typing import Callable, List, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd
from numpy.random import Generator

from .errors import InvalidParameter
from .models.base import CompartmentModel
from .trajectory import Trajectory

logger = logging.getLogger(__name__)

RngLike = Optional[Union[Generator, int, np.random.SeedSequence]]


def _initial_counts(model: CompartmentModel, y0: Sequence[float]) -> np.ndarray:
    if not model.supports_stochastic:
        raise NotImplementedError(f"{model.name} has no discrete-event formulation")
    y0 = np.asarray(y0, dtype=float)
    if y0.shape != (len(model.compartments),):
        raise ValueError(f"{model.name} expects {len(model.compartments)} compartments, got shape {y0.shape}")
    if not np.allclose(y0, np.round(y0)):
        raise ValueError(f"stochastic initial state must hold whole numbers, got {y0}")
    if np.any(y0 < 0):
        raise InvalidParameter(f"initial state must be non-negative, got {y0}")
    return np.round(y0).astype(np.int64)


def _apply(state: np.ndarray, change: np.ndarray, t: float, model: CompartmentModel) -> np.ndarray:
    new = state + change
    if np.any(new < 0):
        raise InvalidParameter(f"{model.name}: event at t={t:.4g} drove a compartment negative ({new})")
    return new


def gillespie(
        model: CompartmentModel,
        y0: Sequence[float],
        params: Mapping[str, float],
        t_max: float,
        rng: RngLike = None,
        t0: float = 0.0,
        stop_when: Optional[Callable[[np.ndarray], bool]] = None,
        max_events: Optional[int] = None,
) -> Trajectory:
    """
    Exact stochastic simulation (Gillespie's direct method).

    Parameters:
    -----------
    model: CompartmentModel with a discrete-event formulation
    y0: array-like of non-negative integers
    params: mapping of rate constants
    t_max: float. End of the simulation
    rng: numpy Generator or seed
    t0: float. Start time
    stop_when: callable, optional. state -> bool, e.g. lambda s: s[1] == 0
    max_events: int, optional. Safety cap on the number of events

    Returns:
    --------
    Trajectory at the irregular event times (kind="gillespie"). The initial
    state is always the first point. If the run reaches t_max, the final
    state is also recorded at t_max.
    """
    if t_max <= t0:
        raise ValueError("t_max must be greater than t0")
    p = model.check_params(params)
    state = _initial_counts(model, y0)
    rng = np.random.default_rng(rng)

    times: List[float] = [float(t0)]
    states: List[np.ndarray] = [state.copy()]
    t = float(t0)
    n_events = 0

    while True:
        if stop_when is not None and stop_when(state):
            logger.debug("%s: stop condition met at t=%.3f", model.name, t)
            break
        prop = model.propensities(state, p)
        a_tot = prop.total
        if a_tot <= 0:
            logger.debug("%s: absorbing state %s reached at t=%.3f", model.name, state, t)
            break

        u1, u2 = rng.random(2)
        # 1 - u1 lies in (0, 1], so the log is finite
        tau = np.log(1.0 / (1.0 - u1)) / a_tot
        if t + tau > t_max:
            times.append(float(t_max))
            states.append(state.copy())
            break

        cumulative = np.cumsum(prop.rates)
        j = int(np.searchsorted(cumulative, u2 * a_tot, side="right"))
        j = min(j, len(cumulative) - 1)

        t += tau
        state = _apply(state, prop.changes[j], t, model)
        times.append(t)
        states.append(state.copy())

        n_events += 1
        if max_events is not None and n_events >= max_events:
            logger.warning("%s: stopped after max_events=%d at t=%.3f", model.name, max_events, t)
            break

    return Trajectory(np.array(times), np.vstack(states), model.compartments, kind="gillespie")


def fixed_step(
        model: CompartmentModel,
        y0: Sequence[float],
        params: Mapping[str, float],
        t_max: float,
        dt: float,
        rng: RngLike = None,
        t0: float = 0.0,
        check_probability: bool = True,
        stop_when: Optional[Callable[[np.ndarray], bool]] = None,
) -> Trajectory:
    """
    Fixed time-step stochastic simulation.

    Each step draws one uniform number and selects either no event or
    exactly one event j with probability a_j * dt, then advances time
    by dt whatever the outcome. A final partial step ends the run
    exactly at t_max.

    Parameters:
    -----------
    dt: float
        Step length. Must keep sum(a_j) * dt <= 1 for the whole run.
    check_probability: bool
        Raise InvalidParameter when the bound is violated. When False the
        excess probability mass is ignored, so later events in the event
        list are under-sampled.

    Returns:
    --------
    Trajectory on the grid t0, t0+dt, ..., t_max (kind="fixed-step"),
    cut short when an absorbing state or stop condition is reached.
    """
    if dt <= 0:
        raise ValueError("dt must be positive")
    if t_max <= t0:
        raise ValueError("t_max must be greater than t0")
    p = model.check_params(params)
    state = _initial_counts(model, y0)
    rng = np.random.default_rng(rng)

    n_steps = int(np.ceil((t_max - t0) / dt - 1e-9))
    times: List[float] = [float(t0)]
    states: List[np.ndarray] = [state.copy()]
    warned = False

    for k in range(n_steps):
        t = t0 + k * dt
        # last step is shortened so the run ends exactly at t_max
        t_next = float(t_max) if k == n_steps - 1 else min(t0 + (k + 1) * dt, float(t_max))
        h = t_next - t
        if stop_when is not None and stop_when(state):
            logger.debug("%s: stop condition met at t=%.3f", model.name, t)
            break
        prop = model.propensities(state, p)
        if prop.total <= 0:
            logger.debug("%s: absorbing state %s reached at t=%.3f", model.name, state, t)
            break

        probs = prop.rates * h
        total = probs.sum()
        if total > 1.0:
            if check_probability:
                raise InvalidParameter(
                    f"{model.name}: event probability {total:.3f} exceeds 1 at t={t:.4g}; reduce dt"
                )
            if not warned:
                logger.warning("%s: event probability %.3f > 1 at t=%.4g, excess ignored",
                               model.name, total, t)
                warned = True

        u = rng.random()
        j = int(np.searchsorted(np.cumsum(probs), u, side="right"))
        if j < len(probs):
            state = _apply(state, prop.changes[j], t_next, model)
        times.append(t_next)
        states.append(state.copy())

    return Trajectory(np.array(times), np.vstack(states), model.compartments, kind="fixed-step")


def max_stable_dt(model: CompartmentModel, y: Sequence[float], params: Mapping[str, float]) -> float:
    """
    Largest dt keeping the per-step event probability at most 1 in state y.

    Propensities grow with the population, so evaluate this at the most
    active state expected during the run (e.g. the epidemic peak).
    """
    a_tot = model.propensities(np.asarray(y, dtype=float), model.check_params(params)).total
    return np.inf if a_tot <= 0 else 1.0 / a_tot


def simulate_ensemble(
        simulate: Callable[[Generator], Trajectory],
        n_runs: int,
        seed: Optional[Union[int, np.random.SeedSequence]] = None,
) -> List[Trajectory]:
    """
    Run `simulate(rng)` n_runs times, each with its own child generator.

    Example:
    runs = simulate_ensemble(
        lambda rng: gillespie(model, y0, params, t_max=100, rng=rng),
        n_runs=500, seed=1)
    """
    if n_runs < 1:
        raise ValueError("n_runs must be at least 1")
    root = seed if isinstance(seed, np.random.SeedSequence) else np.random.SeedSequence(seed)
    return [simulate(np.random.default_rng(child)) for child in root.spawn(n_runs)]


def final_sizes(trajectories: Sequence[Trajectory], compartment: str = "R") -> np.ndarray:
    """Final value of one compartment for every run"""
    return np.array([traj.series(compartment)[-1] for traj in trajectories])


def extinction_probability(
        trajectories: Sequence[Trajectory],
        threshold: float,
        compartment: str = "R",
) -> float:
    """
    Fraction of runs that fizzled out: final `compartment` count at or
    below threshold (a minor outbreak).
    """
    sizes = final_sizes(trajectories, compartment)
    return float(np.mean(sizes <= threshold))


def ensemble_summary(trajectories: Sequence[Trajectory]) -> pd.DataFrame:
    """One row per run: end time, number of recorded points, final state"""
    records = []
    for run, traj in enumerate(trajectories):
        rec = {"run": run, "t_end": float(traj.t[-1]), "n_points": len(traj)}
        rec.update({c: traj.final_state[i] for i, c in enumerate(traj.compartments)})
        records.append(rec)
    return pd.DataFrame.from_records(records)
