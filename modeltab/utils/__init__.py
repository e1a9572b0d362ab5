# modeltab/utils/__init__.py
"""Utility functions module."""
from .helpers import collect_param_index, filter_terms, normalize_term
from .labels import ChainLabels, LabelProvider, MappingLabels, auto_label

__all__ = [
    "ChainLabels",
    "LabelProvider",
    "MappingLabels",
    "auto_label",
    "collect_param_index",
    "filter_terms",
    "normalize_term",
]
