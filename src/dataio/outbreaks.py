"""
===========================================================
outbreaks.py
Author: Veronica Scerra
Last Updated: 2026-02-03
===========================================================
Outbreak datasets for model fitting

Small published outbreak series kept in memory, returned as
an OutbreakData container or as a tidy DataFrame with one
row per time point.
-----------------------------------------------------------
License: MIT
===========================================================
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict

import numpy as np
import pandas as pd


@dataclass
class OutbreakData:
    """
    Container for outbreak data with metadata.

    Attributes:
    -----------
    name: str
        Name of the outbreak
    time: np.ndarray
        Time points (days since outbreak start)
    counts: np.ndarray
        Observed count at each time point
    population: float
        Total population at risk
    extra: dict
        Additional series on the same time points
    time_label, count_label: str
        Column names used by to_dataframe()
    description: str
        Description of the outbreak
    source: str
        Data source/reference
    """
    name: str
    time: np.ndarray
    counts: np.ndarray
    population: float
    extra: Dict[str, np.ndarray] = field(default_factory=dict)
    time_label: str = "day"
    count_label: str = "count"
    description: str = ""
    source: str = ""

    def __post_init__(self):
        self.time = np.asarray(self.time)
        self.counts = np.asarray(self.counts)
        if self.time.shape != self.counts.shape:
            raise ValueError("time and counts must have the same length")
        for label, series in self.extra.items():
            if len(series) != len(self.time):
                raise ValueError(f"series {label!r} does not match the time points")

    def to_dataframe(self) -> pd.DataFrame:
        """ Convert to pandas DataFrame for easy manipulation """
        data = {self.time_label: self.time, self.count_label: self.counts}
        data.update({k: np.asarray(v) for k, v in self.extra.items()})
        return pd.DataFrame(data)

    def summary(self) -> str:
        """ Generate summary statistics of the outbreak"""
        peak_idx = int(np.argmax(self.counts))
        return (
            f"Outbreak: {self.name}\n"
            f"{'=' * 50}\n"
            f"Observations: {len(self.time)} ({self.time_label} {self.time[0]}-{self.time[-1]})\n"
            f"Peak {self.count_label}: {self.counts[peak_idx]} ({self.time_label} {self.time[peak_idx]})\n"
            f"Population: {self.population:.0f}\n"
        )


def load_boarding_school_flu() -> OutbreakData:
    """
    Load the 1978 English boarding school influenza outbreak data.

    763 boys were at risk; one boy returning from holiday started the
    outbreak. `flu` is the daily number of boys confined to bed, days 1-14
    (day 0 is the introduction); `convalescent` is the number back from
    the sick bay but not yet in class.

    Returns:
    --------
    OutbreakData with to_dataframe() columns day, flu, convalescent

    References:
    -----------
    Anonymous (1978). "Influenza in a boarding school".
    British Medical Journal, 1, 587
    """
    day = np.arange(1, 15)
    in_bed = np.array([3, 8, 26, 76, 225, 298, 258, 233, 189, 128, 68, 29, 14, 4])
    convalescent = np.array([0, 0, 0, 0, 9, 17, 105, 162, 176, 166, 150, 85, 47, 20])

    return OutbreakData(
        name="1978 English Boarding School Influenza",
        time=day,
        counts=in_bed,
        population=763,
        extra={"convalescent": convalescent},
        time_label="day",
        count_label="flu",
        description="Influenza outbreak in a boarding school of 763 boys. "
                    "One infected boy returned from holiday and sparked an epidemic.",
        source="British Medical Journal (1978), 1:587",
    )
