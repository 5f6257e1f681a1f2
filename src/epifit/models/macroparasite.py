"""
===========================================================
macroparasite.py
Author: Veronica Scerra
Last Updated: 2026-02-03
===========================================================
Host-Macroparasite Model (Anderson & May, 1978)

Compartments:
    H: host population
    P: total parasite population carried by hosts

Parasites are negative-binomially distributed among hosts
with aggregation k; parasite-induced host mortality alpha is
proportional to burden.

    dH/dt = (a - b) H - alpha P
    dP/dt = beta P H / (H0 + H) - (mu + b + alpha) P
            - alpha (k + 1)/k P^2 / H

Notes:
    - Population is not conserved.
    - Continuous formulation only: P is a worm count, not an
      individual moving between compartments.
-----------------------------------------------------------
License: MIT
===========================================================
"""
from __future__ import annotations
from typing import Dict, Mapping, Optional

import numpy as np

from ..errors import InvalidParameter
from .base import CompartmentModel


class HostMacroparasiteModel(CompartmentModel):
    """
    Parameters:
    -----------
    a: float. Host birth rate
    b: float. Host natural death rate
    alpha: float. Parasite-induced host death rate per parasite
    mu: float. Parasite death rate inside the host
    beta: float. Maximum rate of new parasite establishment
    H0: float. Host density at which establishment is half maximal
    k: float. Negative binomial aggregation parameter
    """
    name = "host-macroparasite"
    compartments = ("H", "P")
    parameter_names = ("a", "b", "alpha", "mu", "beta", "H0", "k")

    def check_params(self, params: Mapping[str, float]) -> Dict[str, float]:
        out = super().check_params(params)
        # k divides the aggregation term
        if out["k"] <= 0:
            raise InvalidParameter(f"aggregation k={out['k']} must be positive")
        return out

    def derivatives(self, t: float, y: np.ndarray, params: Mapping[str, float]) -> np.ndarray:
        H, P = y
        a, b, alpha = params["a"], params["b"], params["alpha"]
        mu, beta, H0, k = params["mu"], params["beta"], params["H0"], params["k"]
        dH = (a - b) * H - alpha * P
        if H <= 0:
            return np.array([dH, -(mu + b + alpha) * P])
        dP = (beta * P * H / (H0 + H)
              - (mu + b + alpha) * P
              - alpha * (k + 1) / k * P ** 2 / H)
        return np.array([dH, dP])

    def basic_reproduction_number(self, params: Mapping[str, float], H: Optional[float] = None) -> float:
        """
        Expected offspring of one parasite in a host population of size H
        (defaults to N). beta*H/(H0+H) / (mu + b + alpha)
        """
        H = self.N if H is None else H
        if H is None:
            raise ValueError("host population size is required")
        establish = params["beta"] * H / (params["H0"] + H)
        return establish / (params["mu"] + params["b"] + params["alpha"])
