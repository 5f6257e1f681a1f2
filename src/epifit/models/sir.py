"""
===========================================================
sir.py
Author: Veronica Scerra
Last Updated: 2026-02-03
===========================================================
SIR (Susceptible-Infected-Recovered) Models

- SIRModel: closed population, permanent immunity
- SIRDemographyModel: births into S, natural deaths from
  every compartment at rate mu (population stays near N)

Transmission is frequency-dependent (beta*S*I/N) by default.
With density_dependent=True it is beta*S*I, and the
invasion condition becomes beta*S0/gamma > 1.

Example Usage:
    from epifit.models import SIRModel
    model = SIRModel(N=10000)
    dydt = model.derivatives(0.0, model.initial_state(I=10),
                             {"beta": 0.3, "gamma": 0.1})
-----------------------------------------------------------
License: MIT
===========================================================
"""
from __future__ import annotations
from typing import Mapping, Optional

import numpy as np

from .base import CompartmentModel, change_vectors


class SIRModel(CompartmentModel):
    """
    SIR compartmental model

    Parameters:
    -----------
    beta: float
        Transmission rate (contacts per time x probability of transmission per contact)
    gamma: float
        Recovery rate (1/gamma = mean infectious period)
    """
    name = "SIR"
    compartments = ("S", "I", "R")
    parameter_names = ("beta", "gamma")
    events = ("infection", "recovery")
    transitions = change_vectors(compartments, [("S", "I"), ("I", "R")])

    def __init__(self, N: Optional[float] = None, density_dependent: bool = False):
        super().__init__(N)
        self.density_dependent = density_dependent

    def force_of_infection(self, y: np.ndarray, beta: float) -> float:
        """Per-capita infection rate of a susceptible"""
        I = y[self.index("I")]
        if self.density_dependent:
            return beta * I
        return beta * I / self.population(y)

    def derivatives(self, t: float, y: np.ndarray, params: Mapping[str, float]) -> np.ndarray:
        S, I, R = y
        inf = self.force_of_infection(y, params["beta"]) * S
        rec = params["gamma"] * I
        return np.array([-inf, inf - rec, rec])

    def rates(self, y: np.ndarray, params: Mapping[str, float]) -> np.ndarray:
        S, I, R = y
        return np.array([
            self.force_of_infection(y, params["beta"]) * S,
            params["gamma"] * I,
        ])

    def basic_reproduction_number(self, params: Mapping[str, float]) -> float:
        """beta/gamma, or beta*N/gamma for density-dependent transmission"""
        beta, gamma = params["beta"], params["gamma"]
        if gamma <= 0:
            return np.inf
        if self.density_dependent:
            if self.N is None:
                raise ValueError("density-dependent R0 needs a population size N")
            return beta * self.N / gamma
        return beta / gamma


class SIRDemographyModel(SIRModel):
    """
    SIR with births and natural deaths.

    Parameters:
    -----------
    beta, gamma: float
        As in SIRModel
    mu: float
        Per-capita birth and death rate (1/mu = life expectancy)
    """
    name = "SIR-demography"
    parameter_names = ("beta", "gamma", "mu")
    events = ("birth", "infection", "recovery", "death_S", "death_I", "death_R")
    transitions = change_vectors(
        SIRModel.compartments,
        [(None, "S"), ("S", "I"), ("I", "R"), ("S", None), ("I", None), ("R", None)],
    )

    def derivatives(self, t: float, y: np.ndarray, params: Mapping[str, float]) -> np.ndarray:
        S, I, R = y
        mu = params["mu"]
        inf = self.force_of_infection(y, params["beta"]) * S
        rec = params["gamma"] * I
        births = mu * self.population(y)
        return np.array([
            births - inf - mu * S,
            inf - rec - mu * I,
            rec - mu * R,
        ])

    def rates(self, y: np.ndarray, params: Mapping[str, float]) -> np.ndarray:
        S, I, R = y
        mu = params["mu"]
        return np.array([
            mu * self.population(y),
            self.force_of_infection(y, params["beta"]) * S,
            params["gamma"] * I,
            mu * S,
            mu * I,
            mu * R,
        ])

    def basic_reproduction_number(self, params: Mapping[str, float]) -> float:
        # infectious period shortened by natural death
        beta, gamma, mu = params["beta"], params["gamma"], params["mu"]
        if gamma + mu <= 0:
            return np.inf
        if self.density_dependent:
            if self.N is None:
                raise ValueError("density-dependent R0 needs a population size N")
            beta = beta * self.N
        return beta / (gamma + mu)
