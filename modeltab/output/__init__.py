# modeltab/output/__init__.py
"""Table composition and the renderer-agnostic table model."""
from .config import TableConfig
from .summary import tab_model
from .table import Cell, ColumnKind, ColumnSpec, ModelColumnSpec, RowSpec, SummaryRow, UnifiedTableModel

__all__ = [
    "Cell",
    "ColumnKind",
    "ColumnSpec",
    "ModelColumnSpec",
    "RowSpec",
    "SummaryRow",
    "TableConfig",
    "UnifiedTableModel",
    "tab_model",
]
