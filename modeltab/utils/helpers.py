"""Shared helper utilities.

Term-name normalisation, row-union construction, term filtering and number
formatting used by the extractor and the table composer.
"""
from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Sequence
from typing import Any

LOGGER = logging.getLogger(__name__)

__all__ = [
    "INTERCEPT",
    "collect_param_index",
    "escape_latex",
    "filter_terms",
    "format_number",
    "format_pvalue",
    "is_missing",
    "normalize_term",
    "significance_stars",
]

INTERCEPT = "(Intercept)"

# R, patsy/formulaic, statsmodels and Stata spellings of the constant.
_INTERCEPT_ALIASES = frozenset({"(Intercept)", "Intercept", "const", "_cons", "cons"})


def normalize_term(name: Any) -> str:
    """Map every intercept dialect to ``(Intercept)``; other names pass through."""
    text = str(name).strip()
    if text in _INTERCEPT_ALIASES:
        return INTERCEPT
    return text


def is_missing(value: Any) -> bool:
    """True for ``None`` and non-finite floats."""
    if value is None:
        return True
    try:
        return not math.isfinite(float(value))
    except (TypeError, ValueError):
        return True


def collect_param_index(blocks: Iterable[Sequence[Any]]) -> list[str]:
    """Return the ordered union of term identities across coefficient blocks.

    Identities are ordered by first appearance; a name seen in a later block
    keeps the position of its first occurrence.
    """
    seen: dict[str, None] = {}
    for block in blocks:
        for name in block:
            key = str(name)
            if key not in seen:
                seen[key] = None
    return list(seen)


def filter_terms(
    pool: Sequence[str],
    *,
    keep: Iterable[Any] | None = None,
    remove: Iterable[Any] | None = None,
) -> list[str]:
    """Apply a keep-set or a remove-set to ``pool``, preserving its order.

    Callers guarantee that at most one of ``keep``/``remove`` is given.
    Identities that are not in ``pool`` are ignored.
    """
    selected = list(pool)
    if keep is not None:
        wanted = {normalize_term(k) for k in keep}
        unknown = wanted.difference(selected)
        if unknown:
            LOGGER.debug("Ignoring unknown terms in keep-set: %s", sorted(unknown))
        selected = [name for name in selected if name in wanted]
    if remove is not None:
        dropped = {normalize_term(r) for r in remove}
        unknown = dropped.difference(selected)
        if unknown:
            LOGGER.debug("Ignoring unknown terms in remove-set: %s", sorted(unknown))
        selected = [name for name in selected if name not in dropped]
    return selected


def format_number(value: Any, digits: int = 2) -> str:
    """Fixed-point rendering; missing values render as an empty string."""
    if is_missing(value):
        return ""
    return f"{float(value):.{digits}f}"


def format_pvalue(value: Any, digits: int = 3) -> str:
    """Render a p-value, collapsing values below the display precision to ``<0.001``."""
    if is_missing(value):
        return ""
    p = float(value)
    floor = 10.0 ** (-digits)
    if p < floor:
        return f"<{floor:.{digits}f}"
    return f"{p:.{digits}f}"


def significance_stars(value: Any, thresholds: Sequence[float] = (0.05, 0.01, 0.001)) -> str:
    """One star per threshold the p-value falls below."""
    if is_missing(value):
        return ""
    p = float(value)
    return "*" * sum(1 for cut in thresholds if p < cut)


def escape_latex(obj: Any) -> str:
    """Minimal LaTeX escaping (consistent with tabulate's expectations)."""
    text = str(obj)
    replacements = {
        "\\": r"\textbackslash{}",
        "&": r"\&",
        "%": r"\%",
        "$": r"\$",
        "#": r"\#",
        "_": r"\_",
        "{": r"\{",
        "}": r"\}",
        "~": r"\textasciitilde{}",
        "^": r"\textasciicircum{}",
    }
    # Single pass so replacement output is never re-escaped.
    return "".join(replacements.get(ch, ch) for ch in text)
