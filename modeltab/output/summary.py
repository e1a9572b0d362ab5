"""Unified regression tables.

:func:`tab_model` extracts every supplied model, reconciles their
coefficients into one ordered row set, resolves display labels, composes the
per-model statistic columns and attaches summary statistics. The result is a
:class:`~modeltab.output.table.UnifiedTableModel` with no presentation markup.
"""

from __future__ import annotations

import logging
import warnings
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Any

import numpy as np

from modeltab.errors import ConfigurationError, ExtractionError
from modeltab.extract.adapters import extract_model
from modeltab.extract.base import CoefficientRecord, ModelExtract
from modeltab.output.config import TableConfig
from modeltab.output.table import (
    Cell,
    ColumnKind,
    ColumnSpec,
    ModelColumnSpec,
    RowSpec,
    SummaryRow,
    UnifiedTableModel,
)
from modeltab.utils.helpers import (
    INTERCEPT,
    collect_param_index,
    filter_terms,
    format_number,
    format_pvalue,
    is_missing,
    normalize_term,
    significance_stars,
)
from modeltab.utils.labels import ChainLabels, LabelProvider, auto_label

LOGGER = logging.getLogger(__name__)

__all__ = [
    "build_rows",
    "compose_columns",
    "extract_models",
    "resolve_labels",
    "tab_model",
]

_DEFAULT_HEADERS = {
    ColumnKind.CI: "CI",
    ColumnKind.SE: "std. Error",
    ColumnKind.STD_ESTIMATE: "std. Beta",
    ColumnKind.STD_SE: "standardized std. Error",
    ColumnKind.P_VALUE: "p",
    ColumnKind.DF: "df",
}

_R2_DIGITS = 3


def _as_model_list(models: Any) -> list[Any]:
    if isinstance(models, (list, tuple)):
        return list(models)
    return [models]


def _build_config(config: TableConfig | None, options: dict[str, Any]) -> TableConfig:
    try:
        if config is None:
            return TableConfig(**options)
        return replace(config, **options) if options else config
    except TypeError as exc:
        raise ConfigurationError(f"unrecognised option: {exc}") from exc


def extract_models(
    models: Sequence[Any], cfg: TableConfig,
) -> tuple[list[tuple[int, ModelExtract]], list[ExtractionError]]:
    """Extract each model; failures are collected instead of raised.

    Returns ``(index, extract)`` pairs in input order and the per-model
    errors. With ``cfg.n_jobs > 1`` extraction runs on a thread pool, but the
    output order is still the input order.
    """

    def _one(item: tuple[int, Any]) -> tuple[int, ModelExtract | None, ExtractionError | None]:
        idx, model = item
        try:
            return idx, extract_model(
                model,
                transform=cfg.transform,
                ci_level=cfg.ci_level,
                standardize=cfg.show_std,
            ), None
        except ExtractionError as exc:
            return idx, None, ExtractionError(exc.message, model=idx)

    items = list(enumerate(models))
    if cfg.n_jobs > 1 and len(items) > 1:
        with ThreadPoolExecutor(max_workers=min(cfg.n_jobs, len(items))) as pool:
            outcomes = list(pool.map(_one, items))
    else:
        outcomes = [_one(item) for item in items]

    extracts: list[tuple[int, ModelExtract]] = []
    errors: list[ExtractionError] = []
    for idx, extract, err in outcomes:
        if err is not None:
            LOGGER.debug("Extraction failed for model %d: %s", idx + 1, err.message)
            warnings.warn(f"Omitting model {idx + 1}: {err.message}", RuntimeWarning, stacklevel=3)
            errors.append(err)
        else:
            extracts.append((idx, extract))
    return extracts, errors


def _blocks(extract: ModelExtract, cfg: TableConfig) -> list[list[str]]:
    blocks = [extract.identities]
    if cfg.show_zeroinf and extract.zero_inflation is not None:
        blocks.append(extract.zero_identities)
    return blocks


def build_rows(extracts: Sequence[ModelExtract], cfg: TableConfig) -> list[str]:
    """Row identities: first-seen union, then filtering, then ``order_terms``."""
    pool = collect_param_index(block for ext in extracts for block in _blocks(ext, cfg))
    if not cfg.show_intercept:
        pool = [name for name in pool if name != INTERCEPT]
    rows = filter_terms(pool, keep=cfg.terms, remove=cfg.rm_terms)
    if cfg.order_terms is not None:
        order = list(cfg.order_terms)
        if sorted(order) != list(range(len(rows))):
            raise ConfigurationError(
                f"order_terms must be a permutation of 0..{len(rows) - 1} "
                f"({len(rows)} rows after filtering), got {order}",
            )
        rows = [rows[i] for i in order]
    return rows


def _label_provider(extracts: Sequence[ModelExtract], cfg: TableConfig) -> LabelProvider | None:
    if not cfg.auto_label:
        return None
    providers = [cfg.labels] if cfg.labels is not None else []
    providers.extend(ext.labels for ext in extracts if ext.labels is not None)
    return ChainLabels(providers) if providers else None


def resolve_labels(
    rows: Sequence[str],
    overrides: Sequence[str] | Mapping[str, str] | None,
    provider: LabelProvider | None,
) -> list[str]:
    """Display labels for ``rows``.

    Positional overrides must match the row count exactly. Keyed overrides
    win where they match; other rows use the automatic label (or the raw
    identity when ``provider`` is None). Unmatched keys are ignored.
    """
    if overrides is not None and not isinstance(overrides, Mapping):
        labels = list(overrides)
        if len(labels) != len(rows):
            raise ConfigurationError(
                f"pred_labels has {len(labels)} entries but the table shows {len(rows)} rows",
            )
        return [str(lab) for lab in labels]
    keyed: dict[str, str] = {}
    aliased: dict[str, dict[str, str]] = {}
    for key, value in (overrides or {}).items():
        name = normalize_term(key)
        if name == str(key):
            keyed[name] = str(value)
        else:
            aliased.setdefault(name, {})[str(key)] = str(value)
    # A key spelled exactly as the identity beats its aliases.
    for name, by_alias in aliased.items():
        if name in keyed:
            continue
        if len(set(by_alias.values())) > 1:
            raise ConfigurationError(
                f"pred_labels gives conflicting labels for {name!r} via {sorted(by_alias)}",
            )
        keyed[name] = next(iter(by_alias.values()))
    unmatched = set(keyed).difference(rows)
    if unmatched:
        LOGGER.debug("Ignoring labels for terms not in the table: %s", sorted(unmatched))
    return [keyed[name] if name in keyed else auto_label(name, provider) for name in rows]


def _model_label(
    idx: int,
    extract: ModelExtract,
    cfg: TableConfig,
    provider: LabelProvider | None,
) -> str:
    dv = cfg.dv_labels
    if dv is not None and not isinstance(dv, Mapping):
        return str(dv[idx])
    if isinstance(dv, Mapping) and extract.dep_var in dv:
        return str(dv[extract.dep_var])
    if extract.dep_var:
        if provider is not None:
            found = provider.variable_label(extract.dep_var)
            if found:
                return found
        return extract.dep_var
    return f"({idx + 1})"


def _header_overrides(cfg: TableConfig) -> dict[ColumnKind, str]:
    out: dict[ColumnKind, str] = {}
    for key, value in (cfg.headers or {}).items():
        try:
            kind = key if isinstance(key, ColumnKind) else ColumnKind(str(key))
        except ValueError as exc:
            raise ConfigurationError(f"unknown column kind in headers: {key!r}") from exc
        out[kind] = str(value)
    return out


def _folds(cfg: TableConfig) -> tuple[bool, bool]:
    """Whether SE / CI text is folded into the estimate cell."""
    return (cfg.show_est and cfg.collapse_se, cfg.show_est and cfg.collapse_ci)


def compose_columns(extract: ModelExtract, cfg: TableConfig) -> tuple[ColumnSpec, ...]:
    """Statistic columns shown for one model, in display order."""
    overrides = _header_overrides(cfg)
    fold_se, fold_ci = _folds(cfg)
    family = extract.family
    wanted: list[ColumnKind] = []
    if cfg.show_est:
        wanted.append(ColumnKind.ESTIMATE)
    if cfg.show_std:
        wanted.extend([ColumnKind.STD_ESTIMATE, ColumnKind.STD_SE])
    if cfg.show_se and not fold_se:
        wanted.append(ColumnKind.SE)
    if cfg.show_ci and not fold_ci:
        wanted.append(ColumnKind.CI)
    if cfg.show_stat:
        wanted.append(ColumnKind.STATISTIC)
    if cfg.show_df and family.supports_degrees_of_freedom:
        wanted.append(ColumnKind.DF)
    if cfg.show_p and cfg.p_style != "stars":
        wanted.append(ColumnKind.P_VALUE)
    if cfg.show_zeroinf and family.has_zero_inflation_block:
        zero_bases = {ColumnKind.ESTIMATE, ColumnKind.SE, ColumnKind.CI, ColumnKind.STATISTIC, ColumnKind.P_VALUE}
        wanted.extend(kind.zero_variant() for kind in list(wanted) if kind in zero_bases)

    def _header(kind: ColumnKind) -> str:
        if kind in overrides:
            return overrides[kind]
        if kind.zero_inflated:
            if kind is ColumnKind.ZI_ESTIMATE:
                base = family.estimate_label(extract.exponentiated, zero_part=True)
            elif kind is ColumnKind.ZI_STATISTIC:
                # The zero part is a binomial model: Wald z.
                base = "z"
            else:
                base = _DEFAULT_HEADERS[kind.base]
            return f"{base} (zero-inflated)"
        if kind is ColumnKind.ESTIMATE:
            return family.estimate_label(extract.exponentiated)
        if kind is ColumnKind.STATISTIC:
            return family.statistic_label
        return _DEFAULT_HEADERS[kind]

    return tuple(ColumnSpec(kind, _header(kind)) for kind in wanted)


def _format_df(value: float, digits: int) -> str:
    if float(value).is_integer():
        return str(int(value))
    return format_number(value, digits)


def _record_cells(
    rec: CoefficientRecord,
    cfg: TableConfig,
    *,
    zero_part: bool,
    with_df: bool,
) -> dict[ColumnKind, Cell]:
    """Every cell a record can fill, independent of column visibility."""
    digits = cfg.digits
    fold_se, fold_ci = _folds(cfg)
    stars = significance_stars(rec.p_value, cfg.p_threshold)
    ci_text = ""
    if rec.ci is not None:
        ci_text = f"{format_number(rec.ci[0], digits)}{cfg.ci_separator}{format_number(rec.ci[1], digits)}"

    est_text = format_number(rec.estimate, digits)
    if cfg.p_style == "stars" and cfg.show_p:
        est_text += stars
    if fold_se and rec.se is not None:
        est_text += f" ({format_number(rec.se, digits)})"
    if fold_ci and ci_text:
        est_text += f" ({ci_text})"

    def _kind(kind: ColumnKind) -> ColumnKind:
        return kind.zero_variant() if zero_part else kind

    cells = {_kind(ColumnKind.ESTIMATE): Cell(rec.estimate, est_text)}
    if rec.ci is not None:
        cells[_kind(ColumnKind.CI)] = Cell(rec.ci, ci_text)
    if rec.se is not None:
        cells[_kind(ColumnKind.SE)] = Cell(rec.se, format_number(rec.se, digits))
    if rec.statistic is not None:
        cells[_kind(ColumnKind.STATISTIC)] = Cell(rec.statistic, format_number(rec.statistic, digits))
    if rec.p_value is not None:
        p_text = format_pvalue(rec.p_value, cfg.digits_p)
        if cfg.p_style == "numeric_stars":
            p_text += stars
        cells[_kind(ColumnKind.P_VALUE)] = Cell(rec.p_value, p_text)
    if not zero_part:
        if rec.std_estimate is not None:
            cells[ColumnKind.STD_ESTIMATE] = Cell(rec.std_estimate, format_number(rec.std_estimate, digits))
        if rec.std_se is not None:
            cells[ColumnKind.STD_SE] = Cell(rec.std_se, format_number(rec.std_se, digits))
        if with_df and rec.df is not None:
            cells[ColumnKind.DF] = Cell(rec.df, _format_df(rec.df, digits))
    return cells


def _resolve_option(option: Any, idx: int, name: str) -> Any:
    if isinstance(option, dict):
        for key in (name, idx, str(idx)):
            if key in option:
                return option[key]
        return option.get("_default")
    if isinstance(option, (list, tuple)):
        return option[idx] if idx < len(option) else None
    return option


def _format_stat_value(val: Any, digits: int) -> str:
    if val is None:
        return ""
    if isinstance(val, (int, np.integer)) and not isinstance(val, bool):
        return str(int(val))
    if isinstance(val, (float, np.floating)):
        return format_number(val, digits)
    return str(val)


def _summary_rows(  # noqa: PLR0912
    extracts: Sequence[tuple[int, ModelExtract]],
    labels: dict[int, str],
    cfg: TableConfig,
) -> list[SummaryRow]:
    rows: list[SummaryRow] = []

    def _collect(key: str, label: str, render) -> None:
        cells: dict[int, Cell] = {}
        for idx, ext in extracts:
            found = render(ext)
            if found is not None:
                cells[idx] = found
        if cells:
            rows.append(SummaryRow(key, label, cells))

    def _num(ext: ModelExtract, key: str, digits: int = _R2_DIGITS) -> Cell | None:
        value = ext.stats.get(key)
        if is_missing(value):
            return None
        return Cell(value, format_number(value, digits))

    def _pair(ext: ModelExtract, first: str, second: str) -> Cell | None:
        a, b = ext.stats.get(first), ext.stats.get(second)
        if is_missing(a):
            return None
        if is_missing(b):
            return Cell((a, None), format_number(a, _R2_DIGITS))
        return Cell((a, b), f"{format_number(a, _R2_DIGITS)} / {format_number(b, _R2_DIGITS)}")

    if cfg.show_obs:

        def _nobs(ext: ModelExtract) -> Cell | None:
            n = ext.n_obs if ext.n_obs is not None else ext.stats.get("nobs")
            return None if is_missing(n) else Cell(int(n), str(int(n)))

        _collect("nobs", "Observations", _nobs)
    if cfg.show_r2:
        _collect("r2", "R2 / R2 adjusted", lambda ext: _pair(ext, "r2", "r2_adj"))
        kinds: list[str] = []
        for _, ext in extracts:
            kind = ext.stats.get("pseudo_r2_kind")
            if kind and kind not in kinds:
                kinds.append(kind)
        for kind in kinds:
            _collect(
                f"pseudo_r2:{kind}",
                f"R2 {kind}",
                lambda ext, kind=kind: _num(ext, "pseudo_r2") if ext.stats.get("pseudo_r2_kind") == kind else None,
            )
        _collect(
            "r2_mixed",
            "Marginal R2 / Conditional R2",
            lambda ext: _pair(ext, "r2_marginal", "r2_conditional"),
        )
    if cfg.show_icc:
        _collect("icc", "ICC", lambda ext: _num(ext, "icc", 2))
    if cfg.show_ngroups:

        def _ngroups(ext: ModelExtract) -> Cell | None:
            n = ext.stats.get("ngroups")
            return None if is_missing(n) else Cell(int(n), str(int(n)))

        _collect("ngroups", "N groups", _ngroups)
    if cfg.show_aic:
        _collect("aic", "AIC", lambda ext: _num(ext, "aic", cfg.digits))
    if cfg.show_loglik:
        _collect("loglik", "log-Likelihood", lambda ext: _num(ext, "loglik", cfg.digits))

    for label, func, options in cfg.stats:
        cells: dict[int, Cell] = {}
        for idx, ext in extracts:
            kwargs = {k: _resolve_option(v, idx, labels[idx]) for k, v in options.items()}
            try:
                value = func(ext, **kwargs)
            except (
                AttributeError,
                KeyError,
                RuntimeError,
                TypeError,
                ValueError,
                ZeroDivisionError,
                np.linalg.LinAlgError,
            ) as exc:
                LOGGER.debug("Custom stat %r failed for model %d: %s", label, idx + 1, exc)
                value = None
            if isinstance(value, (float, np.floating)) and not np.isfinite(value):
                value = None
            cells[idx] = Cell(value, _format_stat_value(value, cfg.digits))
        rows.append(SummaryRow(f"stat:{label}", label, cells))
    return rows


def tab_model(
    models: Any,
    *,
    config: TableConfig | None = None,
    **options: Any,
) -> UnifiedTableModel:
    """Build a unified table model from one or more fitted models.

    Parameters
    ----------
    models
        A fitted model or a list of them: statsmodels results,
        :class:`~modeltab.extract.base.FittedModel` containers, tidy
        coefficient DataFrames, or anything a registered adapter accepts.
    config
        A :class:`~modeltab.output.config.TableConfig`; keyword ``options``
        override its fields (or build one when ``config`` is omitted).

    Returns
    -------
    UnifiedTableModel
        Rows in first-seen order across the models, per-model column specs,
        the sparse value grid and the summary rows. Models that could not be
        extracted are omitted and listed in ``errors``.

    Raises
    ------
    ConfigurationError
        For invalid options, mutually exclusive term filters or label lists
        whose length does not match the table.
    ExtractionError
        When none of the models could be extracted.

    """
    cfg = _build_config(config, options)
    model_list = _as_model_list(models)
    if not model_list:
        raise ConfigurationError("no models supplied")
    if cfg.dv_labels is not None and not isinstance(cfg.dv_labels, Mapping):
        if len(cfg.dv_labels) != len(model_list):
            raise ConfigurationError(
                f"dv_labels has {len(cfg.dv_labels)} entries but {len(model_list)} models were supplied",
            )
    _header_overrides(cfg)

    extracts, errors = extract_models(model_list, cfg)
    if not extracts:
        raise ExtractionError("none of the supplied models could be extracted")
    only = [ext for _, ext in extracts]

    row_ids = build_rows(only, cfg)
    provider = _label_provider(only, cfg)
    row_labels = resolve_labels(row_ids, cfg.pred_labels, provider)
    rows = tuple(RowSpec(identity, label) for identity, label in zip(row_ids, row_labels))

    model_labels = {idx: _model_label(idx, ext, cfg, provider) for idx, ext in extracts}
    columns = tuple(
        ModelColumnSpec(
            model_index=idx,
            label=model_labels[idx],
            dep_var=ext.dep_var,
            family=ext.family,
            exponentiated=ext.exponentiated,
            columns=compose_columns(ext, cfg),
        )
        for idx, ext in extracts
    )

    values: dict[tuple[str, int, ColumnKind], Cell] = {}
    for idx, ext in extracts:
        with_df = ext.family.supports_degrees_of_freedom
        zero_shown = cfg.show_zeroinf and ext.zero_inflation is not None
        for identity in row_ids:
            rec = ext.record(identity)
            if rec is not None:
                for kind, cell in _record_cells(rec, cfg, zero_part=False, with_df=with_df).items():
                    values[(identity, idx, kind)] = cell
            zrec = ext.record(identity, zero_part=True) if zero_shown else None
            if zrec is not None:
                for kind, cell in _record_cells(zrec, cfg, zero_part=True, with_df=False).items():
                    values[(identity, idx, kind)] = cell

    LOGGER.debug(
        "Built table with %d rows over %d models (%d omitted)", len(rows), len(columns), len(errors),
    )
    return UnifiedTableModel(
        rows=rows,
        columns=columns,
        values=values,
        summary_rows=tuple(_summary_rows(extracts, model_labels, cfg)),
        errors=tuple(errors),
    )
