"""Exception hierarchy for table construction.

Configuration errors are fatal for the whole table; extraction errors are
raised per model and collected by :func:`modeltab.output.summary.tab_model`,
which omits the offending model and keeps going.
"""

from __future__ import annotations

__all__ = ["ConfigurationError", "ExtractionError", "ModeltabError"]


class ModeltabError(Exception):
    """Base exception for modeltab failures.

    Attributes:
        message: Human-readable error description.
        model: Position of the model in the caller's input list, when the
            error concerns a single model.
    """

    def __init__(self, message: str, model: int | None = None) -> None:
        self.message = message
        self.model = model
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.model is not None:
            return f"[model {self.model + 1}] {self.message}"
        return self.message


class ConfigurationError(ModeltabError, ValueError):
    """Invalid caller configuration; no table is produced."""


class ExtractionError(ModeltabError, ValueError):
    """A model object has no recognisable coefficient table."""
