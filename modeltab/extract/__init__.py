"""Extractor exports with lazy loading.

Coefficient records, the generic fitted-result container and the adapter
registry. Lazy imports keep ``import modeltab`` from pulling in statsmodels
until a model is actually extracted.
"""
from __future__ import annotations

from importlib import import_module
from typing import Any

__all__ = [
    "CoefficientRecord",
    "FittedModel",
    "ModelExtract",
    "extract_model",
    "register_adapter",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "CoefficientRecord": ("modeltab.extract.base", "CoefficientRecord"),
    "FittedModel": ("modeltab.extract.base", "FittedModel"),
    "ModelExtract": ("modeltab.extract.base", "ModelExtract"),
    "extract_model": ("modeltab.extract.adapters", "extract_model"),
    "register_adapter": ("modeltab.extract.adapters", "register_adapter"),
}


def __getattr__(name: str) -> Any:
    """Lazily import extractor classes and functions."""
    if name in _LAZY_IMPORTS:
        module_name, attr_name = _LAZY_IMPORTS[name]
        attr = getattr(import_module(module_name), attr_name)
        globals()[name] = attr
        return attr
    raise AttributeError(f"module 'modeltab.extract' has no attribute '{name}'")


def __dir__() -> list[str]:
    """Expose lazily loaded attributes to ``dir()``."""
    return sorted(set(globals()) | set(__all__))
