"""
===========================================================
base.py
Author: Veronica Scerra
Last Updated: 2026-02-03
===========================================================

Description:
    Common interface for compartmental models. A model object
    owns its structure (compartment names, parameter names,
    event change vectors) and exposes two capabilities:

        - derivatives(t, y, params): continuous-time right-hand
          side, consumed by epifit.integrate
        - propensities(y, params): event rates plus integer
          state-change vectors, consumed by epifit.stochastic

    Rate constants always arrive as an explicit mapping, never
    as attributes of the model, so a single model instance can
    be evaluated at many parameter vectors during fitting.

Notes:
    - Structural constants (population size N, transmission
      form) are fixed at construction.
    - Rate bounds belong to the optimizer. Models only reject
      values that make the dynamics meaningless (negative rates).
-----------------------------------------------------------
License: MIT
===========================================================
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Sequence, Tuple

import numpy as np

from ..errors import InvalidParameter


@dataclass(frozen=True)
class PropensitySet:
    """
    Event rates at one state.

    Attributes:
    rates: ndarray, shape (K,). Non-negative rate of each event
    changes: ndarray, shape (K, C). Integer change applied to the state by each event
    """
    rates: np.ndarray
    changes: np.ndarray

    @property
    def total(self) -> float:
        return float(self.rates.sum())


class CompartmentModel(ABC):
    """
    Base class for compartmental epidemic models.

    Subclasses declare `compartments`, `parameter_names` and, when they
    support stochastic simulation, `events` and `transitions`
    (one row per event, one column per compartment).

    Parameters:
    -----------
    N: float, optional
        Population size used by frequency-dependent transmission. When
        None the current total of the state vector is used.
    """
    name: str = "compartmental"
    compartments: Tuple[str, ...] = ()
    parameter_names: Tuple[str, ...] = ()
    events: Tuple[str, ...] = ()
    transitions: Optional[np.ndarray] = None

    def __init__(self, N: Optional[float] = None):
        if N is not None and N <= 0:
            raise ValueError("population N must be positive")
        self.N = None if N is None else float(N)

    @abstractmethod
    def derivatives(self, t: float, y: np.ndarray, params: Mapping[str, float]) -> np.ndarray:
        """Right-hand side dy/dt at time t"""

    def rates(self, y: np.ndarray, params: Mapping[str, float]) -> np.ndarray:
        """Event rates at state y, ordered as `events`"""
        raise NotImplementedError(f"{type(self).__name__} has no discrete-event formulation")

    def propensities(self, y: np.ndarray, params: Mapping[str, float]) -> PropensitySet:
        """
        Rates and state-change vectors for stochastic simulation.

        Raises:
        InvalidParameter if any rate is negative or not finite
        """
        if self.transitions is None:
            raise NotImplementedError(f"{type(self).__name__} has no discrete-event formulation")
        a = np.asarray(self.rates(y, params), dtype=float)
        if not np.all(np.isfinite(a)):
            raise InvalidParameter(f"non-finite propensity in {self.name}: {a}")
        if np.any(a < 0):
            bad = [e for e, r in zip(self.events, a) if r < 0]
            raise InvalidParameter(f"negative propensity for event(s) {bad}")
        return PropensitySet(rates=a, changes=self.transitions)

    @property
    def supports_stochastic(self) -> bool:
        return self.transitions is not None

    def population(self, y: np.ndarray) -> float:
        """N if fixed, otherwise the current total"""
        return self.N if self.N is not None else float(np.sum(y))

    def check_params(self, params: Mapping[str, float]) -> Dict[str, float]:
        """
        Return a plain dict of the model's parameters.

        Raises:
        InvalidParameter if a name is missing or a rate is negative/NaN
        """
        missing = [p for p in self.parameter_names if p not in params]
        if missing:
            raise InvalidParameter(f"{self.name} is missing parameter(s): {missing}")
        out = {p: float(params[p]) for p in self.parameter_names}
        for p, v in out.items():
            if not np.isfinite(v) or v < 0:
                raise InvalidParameter(f"parameter {p}={v} must be a non-negative finite number")
        return out

    def initial_state(self, **counts: float) -> np.ndarray:
        """
        Build an ordered state vector from compartment counts.

        Unspecified compartments are zero, except the first one, which
        is filled up to N when N is known.

        Example:
        SIBRModel(N=763).initial_state(I=1) -> [762, 1, 0, 0]
        """
        unknown = set(counts) - set(self.compartments)
        if unknown:
            raise ValueError(f"unknown compartment(s) {sorted(unknown)} for {self.name}")
        y0 = np.array([float(counts.get(c, 0.0)) for c in self.compartments])
        first = self.compartments[0]
        if first not in counts and self.N is not None:
            y0[0] = self.N - y0[1:].sum()
        if np.any(y0 < 0):
            raise InvalidParameter(f"initial state must be non-negative, got {y0}")
        return y0

    def index(self, compartment: str) -> int:
        try:
            return self.compartments.index(compartment)
        except ValueError:
            raise KeyError(f"{self.name} has no compartment {compartment!r}") from None

    def basic_reproduction_number(self, params: Mapping[str, float]) -> float:
        raise NotImplementedError(f"R0 is not defined for {type(self).__name__}")

    def __repr__(self) -> str:
        n = "" if self.N is None else f"N={self.N:.0f}, "
        return f"{type(self).__name__}({n}compartments={list(self.compartments)})"


def change_vectors(compartments: Sequence[str], moves: Sequence[Tuple[Optional[str], Optional[str]]]) -> np.ndarray:
    """
    Build an integer transition matrix from (source, target) pairs.

    None as source means an arrival (birth), None as target a removal (death).
    """
    changes = np.zeros((len(moves), len(compartments)), dtype=int)
    for k, (src, dst) in enumerate(moves):
        if src is not None:
            changes[k, compartments.index(src)] -= 1
        if dst is not None:
            changes[k, compartments.index(dst)] += 1
    return changes
