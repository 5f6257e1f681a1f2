"""
epifit: compartmental epidemic models, deterministic and stochastic
simulation, likelihood-based calibration, uncertainty and AIC comparison.
"""
from .comparison import aic, bic, compare_models
from .errors import DataShapeMismatch, EpifitError, IntegrationFailure, InvalidParameter, SimulationError
from .fitting import FitResult, fit, fit_single, grid_search, refit
from .integrate import integrate
from .models import (
    CompartmentModel,
    HostMacroparasiteModel,
    ModelKind,
    PropensitySet,
    SEIRModel,
    SIBRModel,
    SIRDemographyModel,
    SIRModel,
    build_model,
)
from .objectives import Objective, Observations
from .settings import PENALTY, SolverSettings, configure_logging
from .stochastic import fixed_step, gillespie, simulate_ensemble
from .trajectory import Trajectory
from .uncertainty import bootstrap, profile_likelihood, wald_intervals

__version__ = "0.1.0"
