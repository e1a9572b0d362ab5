"""Variable and value label metadata, and automatic term labelling.

A :class:`LabelProvider` answers two questions: the descriptive label of a
variable, and the descriptive label of one level of a categorical variable.
Providers are built from plain mappings (:class:`MappingLabels`) or harvested
from a DataFrame (:meth:`MappingLabels.from_frame`), which reads

- ``df.attrs["variable_labels"]``: ``{column: label}``
- ``df.attrs["value_labels"]``: ``{column: {level: label}}``
- categorical / object columns for the list of known levels.

:func:`auto_label` turns a coefficient identity into a display label using a
provider. It understands patsy/formulaic factor terms (``C(x)[T.b]``,
``x[T.b]``, ``x[b]``), R-style concatenated factor terms (``xb``, for known
categorical variables) and interactions (``a:b``).
"""
from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

import pandas as pd

from modeltab.utils.helpers import INTERCEPT

LOGGER = logging.getLogger(__name__)

__all__ = [
    "ChainLabels",
    "LabelProvider",
    "MappingLabels",
    "auto_label",
    "split_interaction",
]

# Object columns with more distinct values than this are not treated as factors.
_MAX_OBJECT_LEVELS = 50

_FACTOR_TERM = re.compile(
    r"^(?:C\(\s*(?P<cvar>[^,)]+?)\s*(?:,[^)]*)?\)|(?P<var>[^\[\]]+?))\[(?:T\.)?(?P<level>.*)\]$",
)


@runtime_checkable
class LabelProvider(Protocol):
    def variable_label(self, name: str) -> str | None: ...

    def level_label(self, name: str, level: str) -> str | None: ...

    def factor_levels(self, name: str) -> Sequence[str]: ...

    def factor_variables(self) -> Sequence[str]: ...


class MappingLabels:
    """Label provider backed by plain dictionaries."""

    def __init__(
        self,
        variable_labels: Mapping[Any, Any] | None = None,
        value_labels: Mapping[Any, Mapping[Any, Any]] | None = None,
        levels: Mapping[Any, Sequence[Any]] | None = None,
    ) -> None:
        self._variables = {str(k): str(v) for k, v in (variable_labels or {}).items() if v}
        self._values = {
            str(var): {str(lvl): str(lab) for lvl, lab in mapping.items()}
            for var, mapping in (value_labels or {}).items()
        }
        self._levels: dict[str, list[str]] = {}
        for var, lvls in (levels or {}).items():
            self._levels[str(var)] = [str(x) for x in lvls]
        for var, mapping in self._values.items():
            known = self._levels.setdefault(var, [])
            known.extend(lvl for lvl in mapping if lvl not in known)

    @classmethod
    def from_frame(cls, frame: pd.DataFrame) -> MappingLabels:
        """Harvest label metadata from a DataFrame's ``attrs`` and dtypes."""
        attrs = getattr(frame, "attrs", {}) or {}
        levels: dict[str, list[str]] = {}
        for col in frame.columns:
            series = frame[col]
            if isinstance(series.dtype, pd.CategoricalDtype):
                levels[str(col)] = [str(x) for x in series.cat.categories]
            elif (
                pd.api.types.is_object_dtype(series.dtype)
                or pd.api.types.is_string_dtype(series.dtype)
                or pd.api.types.is_bool_dtype(series.dtype)
            ):
                uniq = pd.unique(series.dropna())
                if len(uniq) <= _MAX_OBJECT_LEVELS:
                    levels[str(col)] = [str(x) for x in uniq]
        return cls(
            variable_labels=attrs.get("variable_labels"),
            value_labels=attrs.get("value_labels"),
            levels=levels,
        )

    def variable_label(self, name: str) -> str | None:
        return self._variables.get(name)

    def level_label(self, name: str, level: str) -> str | None:
        return self._values.get(name, {}).get(level)

    def factor_levels(self, name: str) -> Sequence[str]:
        return self._levels.get(name, [])

    def factor_variables(self) -> Sequence[str]:
        return list(self._levels)

    def __bool__(self) -> bool:
        return bool(self._variables or self._values or self._levels)


class ChainLabels:
    """Query several providers in order; the first non-empty answer wins."""

    def __init__(self, providers: Sequence[LabelProvider]) -> None:
        self.providers = [p for p in providers if p is not None]

    def variable_label(self, name: str) -> str | None:
        for provider in self.providers:
            found = provider.variable_label(name)
            if found:
                return found
        return None

    def level_label(self, name: str, level: str) -> str | None:
        for provider in self.providers:
            found = provider.level_label(name, level)
            if found:
                return found
        return None

    def factor_levels(self, name: str) -> Sequence[str]:
        out: list[str] = []
        for provider in self.providers:
            out.extend(lvl for lvl in provider.factor_levels(name) if lvl not in out)
        return out

    def factor_variables(self) -> Sequence[str]:
        out: list[str] = []
        for provider in self.providers:
            out.extend(v for v in provider.factor_variables() if v not in out)
        return out


def split_interaction(identity: str) -> list[str]:
    """Split ``a:b`` on colons that are not nested in brackets or parentheses."""
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for ch in identity:
        if ch in "([":
            depth += 1
        elif ch in ")]":
            depth = max(0, depth - 1)
        if ch == ":" and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    parts.append("".join(current))
    return [p.strip() for p in parts if p.strip()]


def _split_factor(part: str, provider: LabelProvider) -> tuple[str, str | None]:
    m = _FACTOR_TERM.match(part)
    if m:
        var = (m.group("cvar") or m.group("var") or "").strip()
        return var, m.group("level")
    if provider.variable_label(part) is not None:
        return part, None
    # R-style treatment contrasts: variable name immediately followed by the level.
    best: tuple[str, str] | None = None
    for var in provider.factor_variables():
        if part.startswith(var) and len(part) > len(var):
            level = part[len(var):]
            if level in provider.factor_levels(var) and (best is None or len(var) > len(best[0])):
                best = (var, level)
    if best is not None:
        return best
    return part, None


def _label_part(part: str, provider: LabelProvider) -> str | None:
    var, level = _split_factor(part, provider)
    var_label = provider.variable_label(var)
    if level is None:
        return var_label
    level_label = provider.level_label(var, level)
    if var_label is None and level_label is None:
        return None
    return f"{var_label or var}: {level_label or level}"


def auto_label(identity: str, provider: LabelProvider | None) -> str:
    """Derive a display label for ``identity``; fall back to the identity itself."""
    if provider is None or identity == INTERCEPT:
        return identity
    parts = split_interaction(identity)
    labels = [_label_part(p, provider) for p in parts]
    if all(lab is None for lab in labels):
        return identity
    return " × ".join(lab if lab is not None else raw for lab, raw in zip(labels, parts))
