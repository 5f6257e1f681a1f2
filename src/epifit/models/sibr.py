"""
===========================================================
sibr.py
Author: Veronica Scerra
Last Updated: 2026-02-03
===========================================================
SIBR Model (Susceptible-Infectious-Bedridden-Recovered)

Used for the 1978 boarding school influenza outbreak, where
the reported series is the number of boys confined to bed.
Infectious boys are taken to bed at rate gamma and leave the
sick bay at rate delta:

    S --beta*S*I/N--> I --gamma--> B --delta--> R

-----------------------------------------------------------
License: MIT
===========================================================
"""
from __future__ import annotations
from typing import Mapping

import numpy as np

from .base import CompartmentModel, change_vectors


class SIBRModel(CompartmentModel):
    """
    Parameters:
    -----------
    beta: float
        Transmission rate
    gamma: float
        Rate of confinement to bed (1/gamma = infectious days before bed)
    delta: float
        Rate of leaving bed (1/delta = days in bed)
    """
    name = "SIBR"
    compartments = ("S", "I", "B", "R")
    parameter_names = ("beta", "gamma", "delta")
    events = ("infection", "to_bed", "recovery")
    transitions = change_vectors(compartments, [("S", "I"), ("I", "B"), ("B", "R")])

    def derivatives(self, t: float, y: np.ndarray, params: Mapping[str, float]) -> np.ndarray:
        S, I, B, R = y
        inf = params["beta"] * S * I / self.population(y)
        bed = params["gamma"] * I
        out = params["delta"] * B
        return np.array([-inf, inf - bed, bed - out, out])

    def rates(self, y: np.ndarray, params: Mapping[str, float]) -> np.ndarray:
        S, I, B, R = y
        return np.array([
            params["beta"] * S * I / self.population(y),
            params["gamma"] * I,
            params["delta"] * B,
        ])

    def basic_reproduction_number(self, params: Mapping[str, float]) -> float:
        # bedridden boys no longer transmit
        return params["beta"] / params["gamma"] if params["gamma"] > 0 else np.inf
