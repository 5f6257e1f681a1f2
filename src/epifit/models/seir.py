"""
===========================================================
seir.py
Author: Veronica Scerra
Last Updated: 2026-02-03
===========================================================

Description:
    SEIR (Susceptible-Exposed-Infectious-Recovered) model with
    constant rates and frequency-dependent transmission.

Notes:
    - beta: transmission rate
    - sigma: progression rate E->I  [1/sigma = incubation period]
    - gamma: recovery rate          [1/gamma = infectious period]
-----------------------------------------------------------
License: MIT
===========================================================
"""
from __future__ import annotations
from typing import Mapping

import numpy as np

from .base import CompartmentModel, change_vectors


class SEIRModel(CompartmentModel):
    name = "SEIR"
    compartments = ("S", "E", "I", "R")
    parameter_names = ("beta", "sigma", "gamma")
    events = ("infection", "onset", "recovery")
    transitions = change_vectors(compartments, [("S", "E"), ("E", "I"), ("I", "R")])

    def derivatives(self, t: float, y: np.ndarray, params: Mapping[str, float]) -> np.ndarray:
        S, E, I, R = y
        inf = params["beta"] * S * I / self.population(y)
        onset = params["sigma"] * E
        rec = params["gamma"] * I
        return np.array([-inf, inf - onset, onset - rec, rec])

    def rates(self, y: np.ndarray, params: Mapping[str, float]) -> np.ndarray:
        S, E, I, R = y
        return np.array([
            params["beta"] * S * I / self.population(y),
            params["sigma"] * E,
            params["gamma"] * I,
        ])

    def basic_reproduction_number(self, params: Mapping[str, float]) -> float:
        # same as SIR without births/deaths: every exposed case becomes infectious
        return params["beta"] / params["gamma"] if params["gamma"] > 0 else np.inf
