"""Core computational modules for modeltab."""
from . import families, inference, standardize, stats

__all__ = ["families", "inference", "standardize", "stats"]
