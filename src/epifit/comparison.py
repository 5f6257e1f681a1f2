"""
===========================================================
comparison.py
Author: Veronica Scerra
Last Updated: 2026-02-03
===========================================================

Description:
    Information-criterion model comparison.

        AIC = 2*NLL + 2*k
        BIC = 2*NLL + k*ln(n)

    compare_models() ranks likelihood fits by ascending AIC
    (lower is preferred) and reports delta-AIC and Akaike
    weights.

Notes:
    - Comparisons only make sense for fits to the same
      observations under the same likelihood family. That is
      the caller's responsibility; a differing number of
      observations triggers a warning.
-----------------------------------------------------------
License: MIT
===========================================================
"""
from __future__ import annotations
import warnings
from typing import TYPE_CHECKING, Mapping

import numpy as np
import pandas as pd

if TYPE_CHECKING:
    from .fitting import FitResult


def aic(nll: float, k: int) -> float:
    """Akaike Information Criterion from a minimised NLL and k fitted parameters"""
    if k < 0:
        raise ValueError("parameter count must be non-negative")
    return 2.0 * nll + 2.0 * k


def bic(nll: float, k: int, n: int) -> float:
    """Bayesian Information Criterion for n observations"""
    if n < 1:
        raise ValueError("need at least one observation")
    return 2.0 * nll + k * np.log(n)


def compare_models(results: Mapping[str, "FitResult"]) -> pd.DataFrame:
    """
    Rank likelihood fits by AIC.

    Parameters:
    -----------
    results: dict
        Model label -> FitResult fitted with criterion="nll"

    Returns:
    --------
    DataFrame with columns model, nll, k, aic, bic, delta_aic, weight,
    converged; best model first
    """
    if not results:
        raise ValueError("no results to compare")
    records = []
    for label, res in results.items():
        if res.criterion != "nll":
            raise ValueError(f"{label}: AIC needs a likelihood fit, got criterion={res.criterion!r}")
        records.append({
            "model": label,
            "nll": res.value,
            "k": res.n_params,
            "n": res.n_observations,
            "aic": aic(res.value, res.n_params),
            "bic": bic(res.value, res.n_params, res.n_observations),
            "converged": res.converged,
        })
    df = pd.DataFrame.from_records(records)
    if df["n"].nunique() > 1:
        warnings.warn("models were fitted to different numbers of observations; AIC values are not comparable")

    df = df.sort_values(["aic", "k"]).reset_index(drop=True)
    df["delta_aic"] = df["aic"] - df["aic"].iloc[0]
    rel = np.exp(-0.5 * df["delta_aic"])
    df["weight"] = rel / rel.sum()
    return df[["model", "nll", "k", "n", "aic", "bic", "delta_aic", "weight", "converged"]]
