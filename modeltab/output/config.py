"""Table configuration.

:class:`TableConfig` gathers every option recognised by
:func:`modeltab.output.summary.tab_model` and validates them up front, so a
bad configuration fails before any model is touched. Defaults for
``digits`` and ``n_jobs`` can be set through the ``MODELTAB_DIGITS`` and
``MODELTAB_JOBS`` environment variables.
"""
from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from modeltab.core.inference import normalize_ci_level
from modeltab.errors import ConfigurationError
from modeltab.extract.adapters import TRANSFORMS
from modeltab.utils.labels import LabelProvider, MappingLabels

_LOGGER = logging.getLogger(__name__)

__all__ = ["P_STYLES", "TableConfig", "default_digits", "default_jobs"]

P_STYLES = ("numeric", "stars", "numeric_stars")


def _env_int(name: str, default: int, *, minimum: int) -> int:
    raw = str(os.environ.get(name, "")).strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        _LOGGER.debug("Ignoring non-integer %s=%r", name, raw)
        return default
    return max(minimum, value)


def default_digits() -> int:
    """Decimal places for estimates; ``MODELTAB_DIGITS`` overrides the default of 2."""
    return _env_int("MODELTAB_DIGITS", 2, minimum=0)


def default_jobs() -> int:
    """Extraction worker threads; ``MODELTAB_JOBS`` overrides the default of 1."""
    return _env_int("MODELTAB_JOBS", 1, minimum=1)


def _check_labels(value: Any, name: str) -> Any:
    if value is None or isinstance(value, Mapping):
        return value
    if isinstance(value, str) or not isinstance(value, Sequence):
        raise ConfigurationError(f"{name} must be a sequence of labels or a mapping")
    return [str(v) for v in value]


@dataclass
class TableConfig:
    """Options for building a unified regression table.

    Label overrides
        ``pred_labels`` (predictor rows) and ``dv_labels`` (model columns)
        are either positional sequences or mappings keyed by term identity /
        dependent-variable name.
    Term selection
        ``terms`` (keep-set) and ``rm_terms`` (remove-set) are mutually
        exclusive; ``order_terms`` reorders the filtered rows by position.
    Columns
        ``show_*`` flags select statistic columns; ``collapse_ci`` and
        ``collapse_se`` fold intervals / standard errors into the estimate
        cell; ``headers`` overrides column headers per column kind.
    Summary rows
        ``show_obs``, ``show_r2``, ``show_icc``, ``show_ngroups``,
        ``show_aic``, ``show_loglik`` and caller-supplied ``stats`` entries
        ``(label, callable[, options])``.
    """

    pred_labels: Sequence[str] | Mapping[str, str] | None = None
    dv_labels: Sequence[str] | Mapping[str, str] | None = None
    terms: Sequence[str] | None = None
    rm_terms: Sequence[str] | None = None
    order_terms: Sequence[int] | None = None
    show_intercept: bool = True
    show_est: bool = True
    show_ci: bool = True
    show_se: bool = False
    show_std: bool = False
    show_p: bool = True
    show_stat: bool = False
    show_df: bool = False
    show_zeroinf: bool = True
    collapse_ci: bool = False
    collapse_se: bool = False
    transform: str = "auto"
    ci_level: float = 0.95
    digits: int = field(default_factory=default_digits)
    digits_p: int = 3
    p_style: str = "numeric"
    p_threshold: Sequence[float] = (0.05, 0.01, 0.001)
    ci_separator: str = "–"
    headers: Mapping[Any, str] | None = None
    auto_label: bool = True
    labels: LabelProvider | Mapping[str, str] | None = None
    show_obs: bool = True
    show_r2: bool = True
    show_icc: bool = True
    show_ngroups: bool = True
    show_aic: bool = False
    show_loglik: bool = False
    stats: Sequence[tuple[Any, ...]] | None = None
    n_jobs: int = field(default_factory=default_jobs)

    def __post_init__(self) -> None:
        if self.terms is not None and self.rm_terms is not None:
            raise ConfigurationError(
                "terms (keep-set) and rm_terms (remove-set) are mutually exclusive; supply only one.",
            )
        for name in ("terms", "rm_terms"):
            value = getattr(self, name)
            if isinstance(value, str):
                setattr(self, name, [value])
        self.pred_labels = _check_labels(self.pred_labels, "pred_labels")
        self.dv_labels = _check_labels(self.dv_labels, "dv_labels")
        if self.order_terms is not None:
            try:
                self.order_terms = [int(i) for i in self.order_terms]
            except (TypeError, ValueError) as exc:
                raise ConfigurationError("order_terms must be a sequence of integer positions") from exc
        if self.transform not in TRANSFORMS:
            raise ConfigurationError(f"transform must be one of {TRANSFORMS}, got {self.transform!r}")
        if self.p_style not in P_STYLES:
            raise ConfigurationError(f"p_style must be one of {P_STYLES}, got {self.p_style!r}")
        try:
            self.ci_level = normalize_ci_level(self.ci_level)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(str(exc)) from exc
        try:
            self.digits = int(self.digits)
            self.digits_p = int(self.digits_p)
            cuts = [float(c) for c in self.p_threshold]
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"digits, digits_p and p_threshold must be numeric: {exc}") from exc
        if self.digits < 0 or self.digits_p < 1:
            raise ConfigurationError("digits must be >= 0 and digits_p >= 1")
        if len(cuts) != 3 or not all(0.0 < c < 1.0 for c in cuts) or sorted(cuts, reverse=True) != cuts:
            raise ConfigurationError("p_threshold must hold three descending cut-offs in (0, 1)")
        self.p_threshold = tuple(cuts)
        if self.n_jobs < 1:
            raise ConfigurationError("n_jobs must be >= 1")
        if isinstance(self.labels, Mapping):
            self.labels = MappingLabels(variable_labels=self.labels)
        self.stats = self._normalize_stats(self.stats)

    @staticmethod
    def _normalize_stats(
        stats: Sequence[tuple[Any, ...]] | None,
    ) -> list[tuple[str, Callable[..., Any], dict[str, Any]]]:
        out: list[tuple[str, Callable[..., Any], dict[str, Any]]] = []
        for entry in stats or ():
            if not isinstance(entry, (tuple, list)) or len(entry) < 2:
                raise ConfigurationError("stats entries must be (label, callable[, options]).")
            func = entry[1]
            if not callable(func):
                raise ConfigurationError("stats callable must be callable.")
            options = entry[2] if len(entry) > 2 else {}
            out.append((str(entry[0]), func, dict(options or {})))
        return out
