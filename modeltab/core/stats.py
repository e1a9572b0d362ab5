"""Per-model summary statistics.

Statistics are collected by providers registered per :class:`FamilyKind`.
Each provider receives the fitted model object and its family and returns a
partial ``{key: value}`` mapping; for every key the first provider that
reports a finite value wins. Goodness-of-fit values are taken from the
modelling library whenever it reports them. The only statistic computed here
is the variance decomposition for linear mixed models
(:func:`nakagawa_r2`), which the common libraries do not report.

Keys: ``nobs``, ``r2``, ``r2_adj``, ``pseudo_r2``, ``pseudo_r2_kind``,
``r2_marginal``, ``r2_conditional``, ``icc``, ``ngroups``, ``aic``,
``loglik``.
"""

from __future__ import annotations

import logging
import warnings
from collections.abc import Callable
from typing import Any

import numpy as np

from modeltab.core.families import FamilyKind, ModelFamily
from modeltab.utils.helpers import is_missing

LOGGER = logging.getLogger(__name__)

__all__ = [
    "library_stats",
    "mixed_variance_stats",
    "nakagawa_r2",
    "register_stat_provider",
    "summary_stats",
]

StatProvider = Callable[[Any, ModelFamily], dict[str, Any]]

# FittedModel.model_info keys -> summary keys
_INFO_KEYS = {
    "NObs": "nobs",
    "R2": "r2",
    "R2_adj": "r2_adj",
    "PseudoR2": "pseudo_r2",
    "PseudoR2Kind": "pseudo_r2_kind",
    "R2_marginal": "r2_marginal",
    "R2_conditional": "r2_conditional",
    "ICC": "icc",
    "NGroups": "ngroups",
    "AIC": "aic",
    "LogLik": "loglik",
}

_PROVIDERS: dict[FamilyKind, list[StatProvider]] = {kind: [] for kind in FamilyKind}


def register_stat_provider(kind: FamilyKind, provider: StatProvider, *, first: bool = False) -> None:
    """Add a statistics provider for one family kind."""
    if not callable(provider):
        raise TypeError("stat provider must be callable.")
    if first:
        _PROVIDERS[kind].insert(0, provider)
    else:
        _PROVIDERS[kind].append(provider)


def _attr(obj: Any, name: str) -> Any:
    """Read an attribute, tolerating statsmodels properties that fail to evaluate."""
    try:
        value = getattr(obj, name, None)
    except (AttributeError, NotImplementedError, ValueError, np.linalg.LinAlgError):
        return None
    return value


def _pseudo_r2(model: Any) -> dict[str, Any]:
    prsq = _attr(model, "prsquared")
    if not is_missing(prsq):
        return {"pseudo_r2": prsq, "pseudo_r2_kind": "McFadden"}
    pseudo = _attr(model, "pseudo_rsquared")
    if not callable(pseudo):
        return {}
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            value = pseudo(kind="cs")
    except (TypeError, ValueError, AttributeError) as exc:
        LOGGER.debug("pseudo_rsquared unavailable: %s", exc)
        return {}
    return {"pseudo_r2": value, "pseudo_r2_kind": "Cox-Snell"}


def library_stats(model: Any, family: ModelFamily) -> dict[str, Any]:
    """Statistics reported by the modelling library itself."""
    out: dict[str, Any] = {}
    info = getattr(model, "model_info", None)
    if isinstance(info, dict):
        for src, dst in _INFO_KEYS.items():
            if src in info:
                out[dst] = info[src]
    nobs = getattr(model, "n_obs", None)
    if nobs is None:
        nobs = _attr(model, "nobs")
    if not is_missing(nobs):
        out.setdefault("nobs", int(nobs))
    rsq = _attr(model, "rsquared") if family.kind is FamilyKind.LINEAR else None
    if not is_missing(rsq):
        out.setdefault("r2", rsq)
        out.setdefault("r2_adj", _attr(model, "rsquared_adj"))
    elif "r2" not in out and family.kind is not FamilyKind.MIXED_WITH_DF:
        # Gaussian GLMs are linear but only report pseudo R2.
        for key, value in _pseudo_r2(model).items():
            out.setdefault(key, value)
    out.setdefault("aic", _attr(model, "aic"))
    out.setdefault("loglik", _attr(model, "llf"))
    return out


def nakagawa_r2(
    fixed_predictor: np.ndarray,
    exog_re: np.ndarray | None,
    cov_re: np.ndarray,
    resid_var: float,
) -> dict[str, float]:
    """Marginal/conditional R2 and adjusted ICC of a linear mixed model.

    Nakagawa & Schielzeth (2013), with Johnson's (2014) extension for random
    slopes: the random-effect variance is the mean of ``z_i' S z_i`` over
    observations, ``S`` the random-effects covariance. Without a random
    design matrix only the intercept variance ``S[0, 0]`` is used.
    """
    var_fixed = float(np.var(np.asarray(fixed_predictor, dtype=np.float64), ddof=1))
    sigma = np.atleast_2d(np.asarray(cov_re, dtype=np.float64))
    if exog_re is not None:
        Z = np.asarray(exog_re, dtype=np.float64)
        if Z.ndim == 1:
            Z = Z.reshape(-1, 1)
        var_random = float(np.mean(np.sum((Z @ sigma) * Z, axis=1)))
    else:
        var_random = float(sigma[0, 0])
    total = var_fixed + var_random + float(resid_var)
    if not total > 0.0:
        return {}
    return {
        "r2_marginal": var_fixed / total,
        "r2_conditional": (var_fixed + var_random) / total,
        "icc": var_random / (var_random + float(resid_var)),
    }


def mixed_variance_stats(model: Any, family: ModelFamily) -> dict[str, Any]:
    """Variance-decomposition statistics for statsmodels ``MixedLMResults``."""
    inner = getattr(model, "_results", model)
    mdl = getattr(inner, "model", None)
    cov_re = getattr(inner, "cov_re", None)
    fe_params = getattr(inner, "fe_params", None)
    if mdl is None or cov_re is None or fe_params is None:
        return {}
    out: dict[str, Any] = {}
    ngroups = getattr(mdl, "n_groups", None)
    if ngroups is not None:
        out["ngroups"] = int(ngroups)
    try:
        X = np.asarray(mdl.exog, dtype=np.float64)
        eta = X @ np.asarray(fe_params, dtype=np.float64)
        out.update(
            nakagawa_r2(eta, getattr(mdl, "exog_re", None), np.asarray(cov_re), float(inner.scale)),
        )
    except (AttributeError, TypeError, ValueError, np.linalg.LinAlgError) as exc:
        LOGGER.debug("Mixed-model R2 unavailable: %s", exc)
    return out


def summary_stats(model: Any, family: ModelFamily) -> dict[str, Any]:
    """Merge every provider registered for ``family.kind``."""
    merged: dict[str, Any] = {}
    for provider in _PROVIDERS[family.kind]:
        try:
            found = provider(model, family)
        except (AttributeError, TypeError, ValueError, ZeroDivisionError, np.linalg.LinAlgError) as exc:
            LOGGER.debug("Stat provider %r failed: %s", provider, exc)
            continue
        for key, value in (found or {}).items():
            if key in merged:
                continue
            if isinstance(value, str):
                merged[key] = value
            elif not is_missing(value):
                merged[key] = float(value) if key not in {"nobs", "ngroups"} else int(value)
    # A pseudo R2 kind without a value is meaningless.
    if "pseudo_r2" not in merged:
        merged.pop("pseudo_r2_kind", None)
    return merged


for _kind in FamilyKind:
    register_stat_provider(_kind, library_stats)
register_stat_provider(FamilyKind.MIXED_WITH_DF, mixed_variance_stats)
