"""Coefficient records, model extracts and the library-neutral result container.

This module defines the immutable records produced by the extractor
(:class:`CoefficientRecord`, :class:`ModelExtract`), the generic fitted-result
container accepted as input (:class:`FittedModel`) and :func:`make_records`,
which completes a partially reported coefficient table and applies the
exponential transform.
"""

# modeltab/extract/base.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import numpy as np
import pandas as pd

from modeltab.core import inference as inf
from modeltab.core.families import ModelFamily
from modeltab.errors import ExtractionError
from modeltab.utils.helpers import is_missing, normalize_term

if TYPE_CHECKING:  # import-only typing
    from collections.abc import Sequence

    from numpy.typing import ArrayLike

    from modeltab.utils.labels import LabelProvider

__all__ = [
    "CoefficientRecord",
    "FittedModel",
    "ModelExtract",
    "make_records",
]

# Accepted spellings of tidy coefficient-table columns (broom and snake_case).
_TIDY_COLUMNS: dict[str, tuple[str, ...]] = {
    "term": ("term", "name", "parameter", "coefficient"),
    "estimate": ("estimate", "coef", "params", "beta"),
    "se": ("std.error", "std_error", "se", "bse"),
    "conf_low": ("conf.low", "conf_low", "ci_low", "lower"),
    "conf_high": ("conf.high", "conf_high", "ci_high", "upper"),
    "statistic": ("statistic", "t", "z", "tvalue"),
    "p_value": ("p.value", "p_value", "pvalue", "p"),
    "df": ("df", "df_error"),
}


@dataclass(frozen=True)
class CoefficientRecord:
    """One coefficient as it will be displayed (already on the display scale)."""

    identity: str
    estimate: float
    se: float | None = None
    ci: tuple[float, float] | None = None
    statistic: float | None = None
    p_value: float | None = None
    df: float | None = None
    std_estimate: float | None = None
    std_se: float | None = None
    raw_name: str = ""


@dataclass(frozen=True)
class ModelExtract:
    """Everything the table composer needs to know about one fitted model."""

    records: tuple[CoefficientRecord, ...]
    family: ModelFamily
    dep_var: str = ""
    zero_inflation: tuple[CoefficientRecord, ...] | None = None
    exponentiated: bool = False
    n_obs: int | None = None
    stats: dict[str, Any] = field(default_factory=dict)
    labels: LabelProvider | None = None
    model_info: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.zero_inflation is not None and not self.family.has_zero_inflation_block:
            raise ValueError("only zero-inflated families carry a zero-inflation block")

    @property
    def identities(self) -> list[str]:
        return [rec.identity for rec in self.records]

    @property
    def zero_identities(self) -> list[str]:
        return [rec.identity for rec in (self.zero_inflation or ())]

    def record(self, identity: str, *, zero_part: bool = False) -> CoefficientRecord | None:
        block = self.zero_inflation if zero_part else self.records
        for rec in block or ():
            if rec.identity == identity:
                return rec
        return None

    def __repr__(self) -> str:  # pragma: no cover - convenience only
        zi = 0 if self.zero_inflation is None else len(self.zero_inflation)
        return (
            f"ModelExtract(k={len(self.records)}, zi={zi}, n={self.n_obs}, "
            f"dep_var={self.dep_var!r}, family={self.family})"
        )


@dataclass
class FittedModel:
    """Container for a fitted model's coefficient table.

    Stores point estimates and whatever inference the modelling library
    reported. Missing confidence intervals, statistics and p-values are
    completed during extraction.

    ``model_info`` carries summary statistics under the keys ``"R2"``,
    ``"R2_adj"``, ``"PseudoR2"``, ``"PseudoR2Kind"``, ``"R2_marginal"``,
    ``"R2_conditional"``, ``"ICC"``, ``"NGroups"``, ``"AIC"`` and ``"LogLik"``.
    """

    params: pd.Series
    se: pd.Series | None = None
    conf_int: pd.DataFrame | None = None  # columns: lower, upper
    statistic: pd.Series | None = None
    pvalues: pd.Series | None = None
    df: pd.Series | float | None = None
    n_obs: int | None = None
    distribution: str = "gaussian"
    link: str = "identity"
    mixed: bool = False
    dep_var: str | None = None
    zero_inflation: FittedModel | None = None
    std_params: pd.Series | None = None
    std_se: pd.Series | None = None
    model_info: dict[str, Any] = field(default_factory=dict)
    data: pd.DataFrame | None = None

    def __repr__(self) -> str:  # pragma: no cover - convenience only
        return (
            f"FittedModel(k={len(self.params)}, n={self.n_obs}, "
            f"{self.distribution}/{self.link}, mixed={self.mixed})"
        )

    @classmethod
    def from_tidy(cls, frame: pd.DataFrame, **kwargs: Any) -> FittedModel:
        """Build a container from a tidy coefficient frame.

        One row per term; recognised columns are ``term``, ``estimate``,
        ``std.error``, ``conf.low``, ``conf.high``, ``statistic``, ``p.value``
        and ``df`` (snake_case spellings are accepted too). When no ``term``
        column exists the frame index is used.
        """
        if not isinstance(frame, pd.DataFrame) or frame.empty:
            raise ExtractionError("tidy coefficient table must be a non-empty DataFrame")
        lookup = {str(c).lower(): c for c in frame.columns}

        def _col(key: str) -> pd.Series | None:
            for alias in _TIDY_COLUMNS[key]:
                if alias in lookup:
                    return frame[lookup[alias]]
            return None

        est = _col("estimate")
        if est is None:
            raise ExtractionError("tidy coefficient table has no estimate column")
        terms = _col("term")
        index = pd.Index(
            [str(t) for t in (terms if terms is not None else frame.index)], name="term",
        )

        def _series(values: pd.Series | None) -> pd.Series | None:
            if values is None:
                return None
            return pd.Series(np.asarray(values, dtype=float), index=index)

        lo, hi = _col("conf_low"), _col("conf_high")
        conf = None
        if lo is not None and hi is not None:
            conf = pd.DataFrame(
                {"lower": np.asarray(lo, dtype=float), "upper": np.asarray(hi, dtype=float)},
                index=index,
            )
        return cls(
            params=_series(est),
            se=_series(_col("se")),
            conf_int=conf,
            statistic=_series(_col("statistic")),
            pvalues=_series(_col("p_value")),
            df=_series(_col("df")),
            **kwargs,
        )


def _optional(values: ArrayLike | None, size: int) -> np.ndarray:
    if values is None:
        return np.full(size, np.nan, dtype=np.float64)
    arr = np.asarray(values, dtype=np.float64).reshape(-1)
    if arr.size == 1 and size != 1:
        return np.full(size, float(arr[0]), dtype=np.float64)
    if arr.size != size:
        raise ExtractionError(
            f"coefficient table columns disagree in length ({arr.size} vs {size})",
        )
    return arr


def _opt(value: float) -> float | None:
    return None if is_missing(value) else float(value)


def make_records(  # noqa: PLR0913
    names: Sequence[Any],
    estimate: ArrayLike,
    *,
    se: ArrayLike | None = None,
    lower: ArrayLike | None = None,
    upper: ArrayLike | None = None,
    statistic: ArrayLike | None = None,
    pvalue: ArrayLike | None = None,
    df: ArrayLike | None = None,
    std_estimate: ArrayLike | None = None,
    std_se: ArrayLike | None = None,
    exponentiate: bool = False,
    ci_level: float = 0.95,
) -> tuple[CoefficientRecord, ...]:
    """Build display-scale records from a linear-scale coefficient table.

    Missing intervals are rebuilt from standard errors (t reference where
    ``df`` is known, normal otherwise), missing statistics from
    ``estimate / se`` and missing p-values from the statistic. With
    ``exponentiate`` the estimate, bounds and standardised estimate move to
    the multiplicative scale and standard errors follow the delta method.
    """
    names = [str(n) for n in names]
    est = np.asarray(estimate, dtype=np.float64).reshape(-1)
    k = est.size
    if k == 0 or len(names) != k:
        raise ExtractionError(
            f"coefficient table is empty or mislabelled ({len(names)} names, {k} estimates)",
        )
    s = _optional(se, k)
    lo = _optional(lower, k)
    hi = _optional(upper, k)
    stat = _optional(statistic, k)
    p = _optional(pvalue, k)
    dfs = _optional(df, k)
    std_b = _optional(std_estimate, k)
    std_s = _optional(std_se, k)

    need_ci = ~(np.isfinite(lo) & np.isfinite(hi)) & np.isfinite(s)
    if np.any(need_ci):
        lo_fill, hi_fill = inf.ci_from_se(est, s, ci_level, dfs)
        lo = np.where(need_ci, lo_fill, lo)
        hi = np.where(need_ci, hi_fill, hi)
    stat = np.where(np.isfinite(stat), stat, inf.statistic_from_se(est, s))
    p = np.where(np.isfinite(p), p, inf.pvalue_from_statistic(stat, dfs))

    if exponentiate:
        est, s, lo, hi = inf.exponentiate(est, s, lo, hi)
        std_b, std_s, _, _ = inf.exponentiate(std_b, std_s)

    records = []
    for j, name in enumerate(names):
        ci = None
        if np.isfinite(lo[j]) and np.isfinite(hi[j]):
            ci = (float(lo[j]), float(hi[j]))
        records.append(
            CoefficientRecord(
                identity=normalize_term(name),
                estimate=float(est[j]),
                se=_opt(s[j]),
                ci=ci,
                statistic=_opt(stat[j]),
                p_value=_opt(p[j]),
                df=_opt(dfs[j]),
                std_estimate=_opt(std_b[j]),
                std_se=_opt(std_s[j]),
                raw_name=name,
            ),
        )
    identities = [r.identity for r in records]
    if len(set(identities)) != len(identities):
        raise ExtractionError("coefficient table contains duplicate term identities")
    return tuple(records)
