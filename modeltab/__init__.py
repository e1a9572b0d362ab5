"""modeltab: unified coefficient tables for fitted regression models.

This package reconciles the coefficients of one or more fitted models
(statsmodels results, generic fitted-result containers or tidy coefficient
tables) into a single renderer-agnostic table model with aligned rows,
automatic labels, per-model statistic columns and summary statistics.
"""
from __future__ import annotations

from importlib import import_module
from typing import Any

__version__ = "0.1.0"

__all__ = [
    "ColumnKind",
    "ConfigurationError",
    "ExtractionError",
    "FittedModel",
    "MappingLabels",
    "ModelFamily",
    "ModeltabError",
    "TableConfig",
    "UnifiedTableModel",
    "extract_model",
    "tab_model",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "ColumnKind": ("modeltab.output.table", "ColumnKind"),
    "ConfigurationError": ("modeltab.errors", "ConfigurationError"),
    "ExtractionError": ("modeltab.errors", "ExtractionError"),
    "FittedModel": ("modeltab.extract.base", "FittedModel"),
    "MappingLabels": ("modeltab.utils.labels", "MappingLabels"),
    "ModelFamily": ("modeltab.core.families", "ModelFamily"),
    "ModeltabError": ("modeltab.errors", "ModeltabError"),
    "TableConfig": ("modeltab.output.config", "TableConfig"),
    "UnifiedTableModel": ("modeltab.output.table", "UnifiedTableModel"),
    "extract_model": ("modeltab.extract.adapters", "extract_model"),
    "tab_model": ("modeltab.output.summary", "tab_model"),
}


def __getattr__(name: str) -> Any:
    """Lazily import public classes and functions on first access."""
    if name in _LAZY_IMPORTS:
        module_name, attr_name = _LAZY_IMPORTS[name]
        module = import_module(module_name)
        attr = getattr(module, attr_name)
        globals()[name] = attr
        return attr
    raise AttributeError(f"module 'modeltab' has no attribute '{name}'")


def __dir__() -> list[str]:
    """Ensure dir() exposes lazily imported names."""
    return sorted(set(globals()) | set(__all__))
