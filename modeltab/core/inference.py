"""Inference helpers for coefficient tables.

Completes partially reported coefficient tables (confidence intervals from
standard errors, test statistics, two-sided p-values) and moves estimates to
the exponentiated scale. All functions are vectorised over numpy arrays and
propagate ``nan`` for missing inputs.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy import stats

__all__ = [
    "ci_from_se",
    "ci_level_to_alpha",
    "critical_value",
    "exponentiate",
    "normalize_ci_level",
    "pvalue_from_statistic",
    "statistic_from_se",
]


def normalize_ci_level(level: float | None, *, default: float = 0.95) -> float:
    """Normalize confidence level to a probability (0, 1)."""
    if not (0.0 < float(default) < 1.0):
        raise ValueError("default confidence level must lie in (0, 1)")
    if level is None:
        coerced = float(default)
    else:
        coerced = float(level)
        # Accept percentage-style inputs (e.g., 90 for 90%)
        if coerced > 1.0:
            coerced /= 100.0
    if not (0.0 < coerced < 1.0):
        raise ValueError("ci_level must be in (0, 1); supply e.g. 0.95 or 95")
    return coerced


def ci_level_to_alpha(level: float | None, *, default: float = 0.95) -> float:
    """Return the corresponding tail probability ``alpha`` for a confidence level."""
    return 1.0 - normalize_ci_level(level, default=default)


def _as_float(values: ArrayLike | None, size: int) -> NDArray[np.float64]:
    if values is None:
        return np.full(size, np.nan, dtype=np.float64)
    arr = np.asarray(values, dtype=np.float64).reshape(-1)
    if arr.size == 1 and size != 1:
        arr = np.full(size, float(arr[0]), dtype=np.float64)
    if arr.size != size:
        raise ValueError(f"expected {size} values, got {arr.size}")
    return arr


def critical_value(
    level: float, df: ArrayLike | None = None, *, size: int = 1,
) -> NDArray[np.float64]:
    """Two-sided critical values: Student t where ``df`` is finite, else normal."""
    alpha = ci_level_to_alpha(level)
    dfs = _as_float(df, size)
    q = np.full(size, stats.norm.ppf(1.0 - alpha / 2.0), dtype=np.float64)
    finite = np.isfinite(dfs) & (dfs > 0)
    if np.any(finite):
        q[finite] = stats.t.ppf(1.0 - alpha / 2.0, dfs[finite])
    return q


def ci_from_se(
    estimate: ArrayLike,
    se: ArrayLike,
    level: float = 0.95,
    df: ArrayLike | None = None,
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Wald interval ``estimate -/+ q * se`` on the linear scale."""
    est = np.asarray(estimate, dtype=np.float64).reshape(-1)
    s = _as_float(se, est.size)
    q = critical_value(level, df, size=est.size)
    return est - q * s, est + q * s


def statistic_from_se(estimate: ArrayLike, se: ArrayLike) -> NDArray[np.float64]:
    """Wald statistic ``estimate / se``; ``nan`` where ``se`` is zero or missing."""
    est = np.asarray(estimate, dtype=np.float64).reshape(-1)
    s = _as_float(se, est.size)
    out = np.full(est.size, np.nan, dtype=np.float64)
    ok = np.isfinite(s) & (s > 0)
    out[ok] = est[ok] / s[ok]
    return out


def pvalue_from_statistic(
    statistic: ArrayLike, df: ArrayLike | None = None,
) -> NDArray[np.float64]:
    """Two-sided p-values: t reference where ``df`` is finite, else normal."""
    stat = np.asarray(statistic, dtype=np.float64).reshape(-1)
    dfs = _as_float(df, stat.size)
    out = 2.0 * stats.norm.sf(np.abs(stat))
    finite = np.isfinite(dfs) & (dfs > 0)
    if np.any(finite):
        out[finite] = 2.0 * stats.t.sf(np.abs(stat[finite]), dfs[finite])
    return out


def exponentiate(
    estimate: ArrayLike,
    se: ArrayLike | None = None,
    lower: ArrayLike | None = None,
    upper: ArrayLike | None = None,
) -> tuple[NDArray[np.float64], NDArray[np.float64], NDArray[np.float64], NDArray[np.float64]]:
    """Move estimates to the multiplicative scale.

    Estimates and interval bounds are exponentiated; standard errors follow
    the delta method, ``se * exp(estimate)``.
    """
    est = np.asarray(estimate, dtype=np.float64).reshape(-1)
    exp_est = np.exp(est)
    s = _as_float(se, est.size)
    lo = _as_float(lower, est.size)
    hi = _as_float(upper, est.size)
    return exp_est, s * exp_est, np.exp(lo), np.exp(hi)
