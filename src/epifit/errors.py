"""
===========================================================
errors.py
Author: Veronica Scerra
Last Updated: 2026-02-03
===========================================================

Description:
    Exception types raised by the simulation and fitting code.

    - IntegrationFailure: the ODE solver could not meet its
      tolerance. Fatal for that call, never retried.
    - InvalidParameter: negative rates, negative compartments,
      or a fixed-step probability mass above 1.
    - DataShapeMismatch: observed and simulated series differ
      in length.

Notes:
    - An absorbing stochastic state (all propensities zero) is
      normal termination and has no exception type.
    - Optimizer non-convergence is reported on FitResult.
-----------------------------------------------------------
License: MIT
===========================================================
"""


class EpifitError(Exception):
    """Base class for all package errors"""


class SimulationError(EpifitError):
    """A simulation could not produce a usable trajectory"""


class IntegrationFailure(SimulationError):
    """ODE solver failed to reach the requested tolerance"""


class InvalidParameter(SimulationError, ValueError):
    """Parameter vector or state outside the model's domain"""


class DataShapeMismatch(EpifitError, ValueError):
    """Observation and simulation lengths disagree"""
