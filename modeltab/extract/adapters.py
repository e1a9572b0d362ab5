"""Coefficient extraction from fitted model objects.

Each adapter recognises one kind of result object and turns it into a
:class:`~modeltab.extract.base.ModelExtract`. Adapters are tried in
registration order; the first whose ``matches`` returns True is used.

Built-in adapters:

- :class:`FittedModelAdapter` for :class:`~modeltab.extract.base.FittedModel`
  containers and tidy coefficient DataFrames.
- :class:`StatsmodelsAdapter` for statsmodels linear, GLM, discrete
  (binary and count), zero-inflated count and linear mixed results.
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Protocol

import numpy as np
import pandas as pd
from statsmodels.discrete.count_model import ZeroInflatedResults
from statsmodels.discrete.discrete_model import BinaryResults, CountResults, DiscreteResults
from statsmodels.genmod.generalized_linear_model import GLMResults
from statsmodels.regression.linear_model import RegressionResults
from statsmodels.regression.mixed_linear_model import MixedLMResults

from modeltab.core import inference as inf
from modeltab.core.families import ModelFamily
from modeltab.core.standardize import posthoc_standardize
from modeltab.core.stats import summary_stats
from modeltab.errors import ConfigurationError, ExtractionError
from modeltab.extract.base import FittedModel, ModelExtract, make_records
from modeltab.utils.helpers import INTERCEPT, normalize_term
from modeltab.utils.labels import MappingLabels

LOGGER = logging.getLogger(__name__)

__all__ = [
    "FittedModelAdapter",
    "ModelAdapter",
    "StatsmodelsAdapter",
    "extract_model",
    "get_adapter",
    "register_adapter",
    "wants_exponentiation",
]

Transform = Literal["auto", "exp", "none"]
TRANSFORMS = ("auto", "exp", "none")

# statsmodels prefixes zero-inflation parameters with this token.
_INFLATE_PREFIX = "inflate_"


class ModelAdapter(Protocol):
    name: str

    def matches(self, model: Any) -> bool: ...

    def extract(
        self, model: Any, *, transform: Transform, ci_level: float, standardize: bool,
    ) -> ModelExtract: ...


def wants_exponentiation(family: ModelFamily, transform: str) -> bool:
    """Decide whether estimates of ``family`` are shown on the exponentiated scale."""
    if transform == "none":
        return False
    if transform == "exp":
        return family.supports_exponentiation
    return family.requires_exponentiation


def _align(values: Any, names: list[str], size: int) -> np.ndarray | None:
    """Line up a Series (by label) or array (by position) with ``names``."""
    if values is None:
        return None
    if isinstance(values, pd.Series):
        if all(n in values.index for n in names):
            return values.reindex(names).to_numpy(dtype=np.float64)
        values = values.to_numpy()
    if np.isscalar(values):
        return np.full(size, float(values), dtype=np.float64)
    arr = np.asarray(values, dtype=np.float64).reshape(-1)
    if arr.size != size:
        raise ExtractionError(f"column of length {arr.size} does not match {size} coefficients")
    return arr


def _frame_labels(frame: Any) -> MappingLabels | None:
    if isinstance(frame, pd.DataFrame):
        provider = MappingLabels.from_frame(frame)
        return provider if provider else None
    return None


class FittedModelAdapter:
    """Adapter for :class:`FittedModel` containers and tidy DataFrames."""

    name = "fitted"

    def matches(self, model: Any) -> bool:
        return isinstance(model, (FittedModel, pd.DataFrame))

    def _block(
        self,
        fm: FittedModel,
        *,
        exponentiate: bool,
        ci_level: float,
        df: Any,
        standardize: bool,
    ):
        params = fm.params
        if not isinstance(params, pd.Series) or params.empty:
            raise ExtractionError("params must be a non-empty pandas Series")
        names = [str(n) for n in params.index]
        k = len(names)
        lower = upper = None
        if isinstance(fm.conf_int, pd.DataFrame) and fm.conf_int.shape[1] >= 2:
            conf = fm.conf_int
            lo_col = "lower" if "lower" in conf.columns else conf.columns[0]
            hi_col = "upper" if "upper" in conf.columns else conf.columns[1]
            lower = _align(conf[lo_col], names, k)
            upper = _align(conf[hi_col], names, k)
        std_b = std_s = None
        if standardize:
            std_b = _align(fm.std_params, names, k)
            std_s = _align(fm.std_se, names, k)
            if std_b is None:
                LOGGER.debug("No standardized coefficients supplied for %r", fm)
        return make_records(
            names,
            params.to_numpy(dtype=np.float64),
            se=_align(fm.se, names, k),
            lower=lower,
            upper=upper,
            statistic=_align(fm.statistic, names, k),
            pvalue=_align(fm.pvalues, names, k),
            df=_align(df, names, k),
            std_estimate=std_b,
            std_se=std_s,
            exponentiate=exponentiate,
            ci_level=ci_level,
        )

    def extract(
        self, model: Any, *, transform: Transform = "auto", ci_level: float = 0.95, standardize: bool = False,
    ) -> ModelExtract:
        fm = FittedModel.from_tidy(model) if isinstance(model, pd.DataFrame) else model
        family = ModelFamily.classify(
            fm.distribution,
            fm.link,
            mixed=fm.mixed,
            zero_inflated=fm.zero_inflation is not None,
        )
        exponentiate = wants_exponentiation(family, transform)
        info: dict[str, Any] = {"ci_level": ci_level, "adapter": self.name}
        df = fm.df
        if family.supports_degrees_of_freedom:
            if df is None and fm.n_obs is not None:
                df = float(fm.n_obs - len(fm.params))
                info["df_method"] = "residual"
            elif df is not None:
                info["df_method"] = "supplied"
        else:
            df = None
        records = self._block(
            fm, exponentiate=exponentiate, ci_level=ci_level, df=df, standardize=standardize,
        )
        zero = None
        if fm.zero_inflation is not None:
            zero = self._block(
                fm.zero_inflation,
                exponentiate=exponentiate,
                ci_level=ci_level,
                df=None,
                standardize=False,
            )
        return ModelExtract(
            records=records,
            family=family,
            dep_var=str(fm.dep_var or ""),
            zero_inflation=zero,
            exponentiated=exponentiate,
            n_obs=fm.n_obs,
            stats=summary_stats(fm, family),
            labels=_frame_labels(fm.data),
            model_info=info,
        )


class StatsmodelsAdapter:
    """Adapter for fitted statsmodels results (wrapped or bare)."""

    name = "statsmodels"
    _supported = (RegressionResults, GLMResults, DiscreteResults, MixedLMResults)

    def matches(self, model: Any) -> bool:
        return isinstance(getattr(model, "_results", model), self._supported)

    @staticmethod
    def family_of(inner: Any) -> ModelFamily:
        mdl = inner.model
        if isinstance(inner, MixedLMResults):
            return ModelFamily.classify("gaussian", "identity", mixed=True)
        if isinstance(inner, ZeroInflatedResults):
            main = getattr(mdl, "model_main", None)
            dist = type(main).__name__ if main is not None else "poisson"
            return ModelFamily.classify(dist, "log", zero_inflated=True)
        if isinstance(inner, GLMResults):
            fam = mdl.family
            return ModelFamily.classify(type(fam).__name__, type(fam.link).__name__)
        if isinstance(inner, BinaryResults):
            return ModelFamily.classify("binomial", type(mdl).__name__)
        if isinstance(inner, CountResults):
            return ModelFamily.classify(type(mdl).__name__, "log")
        return ModelFamily.classify("gaussian", "identity")

    @staticmethod
    def _names(model: Any, inner: Any, size: int) -> list[str]:
        params = getattr(model, "params", None)
        if isinstance(params, pd.Series):
            return [str(n) for n in params.index]
        data = getattr(inner.model, "data", None)
        for cand in (getattr(data, "param_names", None), getattr(inner.model, "exog_names", None)):
            if cand is not None and len(cand) == size:
                return [str(n) for n in cand]
        raise ExtractionError("cannot determine coefficient names")

    def extract(  # noqa: PLR0914
        self, model: Any, *, transform: Transform = "auto", ci_level: float = 0.95, standardize: bool = False,
    ) -> ModelExtract:
        inner = getattr(model, "_results", model)
        mdl = inner.model
        raw = np.asarray(getattr(model, "params", None), dtype=np.float64)
        if raw.ndim != 1 or raw.size == 0:
            raise ExtractionError(
                f"{type(inner).__name__} does not expose a single-equation coefficient table",
            )
        family = self.family_of(inner)
        names = self._names(model, inner, raw.size)
        k = raw.size
        exponentiate = wants_exponentiation(family, transform)
        alpha = inf.ci_level_to_alpha(ci_level)

        se = _align(getattr(model, "bse", None), names, k)
        stat = _align(getattr(model, "tvalues", None), names, k)
        pvals = _align(getattr(model, "pvalues", None), names, k)
        conf = np.asarray(model.conf_int(alpha=alpha), dtype=np.float64)
        lower, upper = conf[:, 0], conf[:, 1]

        n_obs = getattr(inner, "nobs", None)
        if n_obs is None:
            n_obs = len(np.asarray(mdl.endog))
        n_obs = int(n_obs)
        info: dict[str, Any] = {"ci_level": ci_level, "adapter": self.name}

        # Positions of the conditional (main) and zero-inflation coefficients.
        main_pos = list(range(k))
        zero_pos: list[int] = []
        df = None
        if isinstance(inner, MixedLMResults):
            main_pos = list(range(int(inner.k_fe)))
            df = float(n_obs - np.linalg.matrix_rank(np.asarray(mdl.exog)))
            info["df_method"] = "residual"
            # Recompute intervals and p-values on the t reference.
            lower = upper = pvals = None
        elif isinstance(inner, ZeroInflatedResults):
            zero_pos = [j for j, n in enumerate(names) if n.startswith(_INFLATE_PREFIX)]
            k_main = np.asarray(mdl.exog).shape[1]
            main_pos = [j for j in range(k) if j not in zero_pos][:k_main]
        elif isinstance(inner, (CountResults, BinaryResults)):
            main_pos = list(range(np.asarray(mdl.exog).shape[1]))
        elif isinstance(inner, RegressionResults):
            df = float(inner.df_resid)
            info["df_method"] = "residual"

        def _take(arr: np.ndarray | None, pos: list[int]) -> np.ndarray | None:
            return None if arr is None else arr[pos]

        std_b = std_s = None
        if standardize and not family.has_zero_inflation_block:
            try:
                endog = mdl.endog if family.supports_degrees_of_freedom else None
                std_b, std_s = posthoc_standardize(raw[main_pos], _take(se, main_pos), mdl.exog, endog)
                # Constant columns standardise to nan already; pin the intercept explicitly.
                for j, pos in enumerate(main_pos):
                    if normalize_term(names[pos]) == INTERCEPT:
                        std_b[j] = std_s[j] = np.nan
            except (AttributeError, ValueError) as exc:
                LOGGER.debug("Post-hoc standardization unavailable: %s", exc)
                std_b = std_s = None

        records = make_records(
            [names[j] for j in main_pos],
            raw[main_pos],
            se=_take(se, main_pos),
            lower=_take(lower, main_pos),
            upper=_take(upper, main_pos),
            statistic=_take(stat, main_pos),
            pvalue=_take(pvals, main_pos),
            df=df,
            std_estimate=std_b,
            std_se=std_s,
            exponentiate=exponentiate,
            ci_level=ci_level,
        )
        zero = None
        if family.has_zero_inflation_block:
            if not zero_pos:
                raise ExtractionError("zero-inflated model without inflation coefficients")
            zero = make_records(
                [names[j][len(_INFLATE_PREFIX):] for j in zero_pos],
                raw[zero_pos],
                se=_take(se, zero_pos),
                lower=_take(lower, zero_pos),
                upper=_take(upper, zero_pos),
                statistic=_take(stat, zero_pos),
                pvalue=_take(pvals, zero_pos),
                exponentiate=exponentiate,
                ci_level=ci_level,
            )
        frame = getattr(getattr(mdl, "data", None), "frame", None)
        stats = summary_stats(model, family)
        stats.setdefault("nobs", n_obs)
        return ModelExtract(
            records=records,
            family=family,
            dep_var=str(getattr(mdl, "endog_names", "") or ""),
            zero_inflation=zero,
            exponentiated=exponentiate,
            n_obs=n_obs,
            stats=stats,
            labels=_frame_labels(frame),
            model_info=info,
        )


_ADAPTERS: list[ModelAdapter] = [FittedModelAdapter(), StatsmodelsAdapter()]


def register_adapter(adapter: ModelAdapter, *, first: bool = True) -> None:
    """Make a custom adapter available to :func:`extract_model`."""
    if not (hasattr(adapter, "matches") and hasattr(adapter, "extract")):
        raise TypeError("adapter must define matches() and extract().")
    if first:
        _ADAPTERS.insert(0, adapter)
    else:
        _ADAPTERS.append(adapter)


def get_adapter(model: Any) -> ModelAdapter:
    for adapter in _ADAPTERS:
        if adapter.matches(model):
            return adapter
    raise ExtractionError(f"no coefficient table recognised on {type(model).__name__} object")


def extract_model(
    model: Any,
    *,
    transform: Transform = "auto",
    ci_level: float = 0.95,
    standardize: bool = False,
) -> ModelExtract:
    """Extract the coefficient table and metadata of one fitted model.

    Raises
    ------
    ExtractionError
        When the object has no recognisable coefficient table.
    ConfigurationError
        For an unknown ``transform``.

    """
    if transform not in TRANSFORMS:
        raise ConfigurationError(f"transform must be one of {TRANSFORMS}, got {transform!r}")
    level = inf.normalize_ci_level(ci_level)
    adapter = get_adapter(model)
    try:
        return adapter.extract(model, transform=transform, ci_level=level, standardize=standardize)
    except ExtractionError:
        raise
    except (AttributeError, IndexError, KeyError, TypeError, ValueError, np.linalg.LinAlgError) as exc:
        raise ExtractionError(f"{adapter.name} extraction failed: {exc}") from exc
