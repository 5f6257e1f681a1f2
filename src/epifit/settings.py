"""
===========================================================
settings.py
Author: Veronica Scerra
Last Updated: 2026-02-03
===========================================================

Description:
    Shared numerical settings: ODE solver tolerances, the
    penalty returned by objectives for failed simulations,
    default parameter bounds, and a logging helper for
    scripts and notebooks.

Example Usage:
    from epifit.settings import SolverSettings, configure_logging
    configure_logging("DEBUG")
    tight = SolverSettings(rtol=1e-10, atol=1e-10)
-----------------------------------------------------------
License: MIT
===========================================================
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Dict, Tuple, Union

import numpy as np

# returned by objectives in place of an exception
PENALTY = 1e10


@dataclass(frozen=True)
class SolverSettings:
    """
    Options passed to scipy's solve_ivp.

    Parameters:
    -----------
    method: str
        Integration method. LSODA switches between Adams (non-stiff)
        and BDF (stiff) automatically.
    rtol, atol: float
        Relative and absolute tolerances
    max_step: float
        Largest internal step
    negativity_tolerance: float
        Compartments below -negativity_tolerance count as negative
    """
    method: str = "LSODA"
    rtol: float = 1e-8
    atol: float = 1e-8
    max_step: float = np.inf
    negativity_tolerance: float = 1e-6


DEFAULT_SOLVER = SolverSettings()

# used when fit() is called without explicit bounds
DEFAULT_BOUNDS: Dict[str, Tuple[float, float]] = {
    'beta': (1e-6, 10.0),
    'gamma': (1e-6, 5.0),
    'sigma': (1e-6, 5.0),
    'delta': (1e-6, 5.0),
    'mu': (0.0, 1.0),
    'obs_sd': (1e-6, 1e4),
    'obs_k': (1e-3, 1e4),
}

FALLBACK_BOUNDS: Tuple[float, float] = (0.0, 1e3)


def bounds_for(name: str) -> Tuple[float, float]:
    """Default (lower, upper) bound for a parameter name"""
    return DEFAULT_BOUNDS.get(name, FALLBACK_BOUNDS)


def configure_logging(level: Union[int, str] = logging.INFO) -> None:
    """Attach a console handler to the package logger"""
    logger = logging.getLogger("epifit")
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
        logger.addHandler(handler)
    logger.setLevel(level)
