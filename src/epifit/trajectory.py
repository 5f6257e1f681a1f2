"""
===========================================================
trajectory.py
Author: Veronica Scerra
Last Updated: 2026-02-03
===========================================================

Description:
    Container for one simulated path, shared by the ODE
    integrator and both stochastic simulators.

    Continuous trajectories hold exactly the requested output
    times. Stochastic trajectories hold the irregular event
    times; use resample() to put them on a regular grid.

Example Usage:
    traj = integrate(model, y0, t, params)
    traj.series("I")
    traj.summary()
    traj.to_dataframe()
-----------------------------------------------------------
License: MIT
===========================================================
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Sequence, Tuple

import numpy as np
import pandas as pd


@dataclass(frozen=True)
class Trajectory:
    """
    Attributes:
    t: ndarray, shape (n,). Time points
    y: ndarray, shape (n, C). State at each time point
    compartments: tuple of str. Column names of y
    kind: str. "ode", "gillespie" or "fixed-step"
    """
    t: np.ndarray
    y: np.ndarray
    compartments: Tuple[str, ...]
    kind: str = "ode"

    def __post_init__(self):
        if self.y.ndim != 2 or self.y.shape != (len(self.t), len(self.compartments)):
            raise ValueError(
                f"state array has shape {self.y.shape}, expected "
                f"({len(self.t)}, {len(self.compartments)})"
            )
        # read-only views; trajectories are never mutated in place
        self.t.setflags(write=False)
        self.y.setflags(write=False)

    def __len__(self) -> int:
        return len(self.t)

    def series(self, compartment: str) -> np.ndarray:
        """Time series of one compartment"""
        try:
            idx = self.compartments.index(compartment)
        except ValueError:
            raise KeyError(f"no compartment {compartment!r} in {self.compartments}") from None
        return self.y[:, idx]

    def __getitem__(self, compartment: str) -> np.ndarray:
        return self.series(compartment)

    @property
    def final_state(self) -> np.ndarray:
        return self.y[-1].copy()

    @property
    def totals(self) -> np.ndarray:
        """Sum over compartments at each time point"""
        return self.y.sum(axis=1)

    def resample(self, times: Sequence[float]) -> "Trajectory":
        """
        Sample the path at `times` as a right-continuous step function
        (the state at t is the state after the last event at or before t).

        Times before the first recorded point take the initial state;
        times after the last point take the final state.
        """
        times = np.asarray(times, dtype=float)
        idx = np.searchsorted(self.t, times, side="right") - 1
        idx = np.clip(idx, 0, len(self.t) - 1)
        return Trajectory(times.copy(), self.y[idx].copy(), self.compartments, kind=self.kind)

    def to_dataframe(self) -> pd.DataFrame:
        """Tidy copy with a 't' column followed by one column per compartment"""
        df = pd.DataFrame(self.y, columns=list(self.compartments))
        df.insert(0, "t", self.t)
        return df

    def summary(self, infectious: str = "I", removed: str = "R") -> Dict[str, float]:
        """Peak timing and size of the infectious series plus final size"""
        I = self.series(infectious)
        N0 = float(self.y[0].sum())
        peak_idx = int(np.argmax(I))
        out = {
            "peak_time": float(self.t[peak_idx]),
            "peak_infected": float(I[peak_idx]),
            "peak_prevalence": float(I[peak_idx] / N0) if N0 > 0 else np.nan,
        }
        if removed in self.compartments:
            out["final_size"] = float(self.series(removed)[-1] / N0) if N0 > 0 else np.nan
        return out
