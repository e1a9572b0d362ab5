"""Renderer-agnostic table model.

A :class:`UnifiedTableModel` is what :func:`~modeltab.output.summary.tab_model`
hands to a renderer: ordered rows, per-model column specifications, a sparse
value grid keyed by ``(row identity, model index, column kind)`` and trailing
summary rows. Cells absent from the grid render blank.

``to_frame`` and ``to_text`` give a quick pandas / plain-text (or LaTeX) view
of the same structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, cast

import pandas as pd
from tabulate import tabulate

from modeltab.utils.helpers import escape_latex

if TYPE_CHECKING:
    from modeltab.core.families import ModelFamily
    from modeltab.errors import ExtractionError

__all__ = [
    "Cell",
    "ColumnKind",
    "ColumnSpec",
    "ModelColumnSpec",
    "RowSpec",
    "SummaryRow",
    "UnifiedTableModel",
]

_MIDRULE = "MTMIDRULE"


class ColumnKind(str, Enum):
    ESTIMATE = "estimate"
    CI = "ci"
    SE = "se"
    STD_ESTIMATE = "std_estimate"
    STD_SE = "std_se"
    P_VALUE = "p_value"
    STATISTIC = "statistic"
    DF = "df"
    ZI_ESTIMATE = "zi_estimate"
    ZI_CI = "zi_ci"
    ZI_SE = "zi_se"
    ZI_P_VALUE = "zi_p_value"
    ZI_STATISTIC = "zi_statistic"

    @property
    def zero_inflated(self) -> bool:
        return self.value.startswith("zi_")

    @property
    def base(self) -> ColumnKind:
        """The conditional-model kind a zero-inflation kind mirrors."""
        return ColumnKind(self.value[3:]) if self.zero_inflated else self

    def zero_variant(self) -> ColumnKind:
        return ColumnKind(f"zi_{self.value}")


@dataclass(frozen=True)
class Cell:
    value: Any
    text: str


@dataclass(frozen=True)
class RowSpec:
    identity: str
    label: str


@dataclass(frozen=True)
class ColumnSpec:
    kind: ColumnKind
    header: str


@dataclass(frozen=True)
class ModelColumnSpec:
    model_index: int
    label: str
    dep_var: str
    family: ModelFamily
    exponentiated: bool
    columns: tuple[ColumnSpec, ...]

    @property
    def kinds(self) -> tuple[ColumnKind, ...]:
        return tuple(col.kind for col in self.columns)


@dataclass(frozen=True)
class SummaryRow:
    key: str
    label: str
    cells: dict[int, Cell] = field(default_factory=dict)


@dataclass(frozen=True)
class UnifiedTableModel:
    rows: tuple[RowSpec, ...]
    columns: tuple[ModelColumnSpec, ...]
    values: dict[tuple[str, int, ColumnKind], Cell]
    summary_rows: tuple[SummaryRow, ...] = ()
    errors: tuple[ExtractionError, ...] = ()

    @property
    def identities(self) -> list[str]:
        return [row.identity for row in self.rows]

    @property
    def labels(self) -> list[str]:
        return [row.label for row in self.rows]

    def cell(self, identity: str, model_index: int, kind: ColumnKind) -> Cell | None:
        return self.values.get((identity, model_index, kind))

    def text(self, identity: str, model_index: int, kind: ColumnKind) -> str:
        found = self.cell(identity, model_index, kind)
        return "" if found is None else found.text

    def summary(self, key: str) -> SummaryRow | None:
        for row in self.summary_rows:
            if row.key == key:
                return row
        return None

    def _body(self) -> list[list[str]]:
        body: list[list[str]] = []
        for row in self.rows:
            line = [row.label]
            for spec in self.columns:
                line.extend(self.text(row.identity, spec.model_index, col.kind) for col in spec.columns)
            body.append(line)
        return body

    def _footer(self) -> list[list[str]]:
        footer: list[list[str]] = []
        for srow in self.summary_rows:
            line = [srow.label]
            for spec in self.columns:
                found = srow.cells.get(spec.model_index)
                cells = [""] * len(spec.columns)
                if cells:
                    cells[0] = "" if found is None else found.text
                line.extend(cells)
            footer.append(line)
        return footer

    def to_frame(self) -> pd.DataFrame:
        """Display strings as a DataFrame; columns are ``(model label, header)``."""
        columns = pd.MultiIndex.from_tuples(
            [(spec.label, col.header) for spec in self.columns for col in spec.columns],
        )
        lines = [*self._body(), *self._footer()]
        index = pd.Index([line[0] for line in lines], name="term")
        return pd.DataFrame([line[1:] for line in lines], index=index, columns=columns)

    def to_text(self, tablefmt: str = "simple", *, escape: bool = True) -> str:
        """Render a preview with ``tabulate``.

        ``tablefmt`` is any tabulate format; ``"latex"`` and
        ``"latex_booktabs"`` produce a LaTeX tabular whose cells are escaped
        here (unless ``escape=False``) rather than by tabulate.
        """
        latex = tablefmt in {"latex", "latex_raw", "latex_booktabs"}
        esc = escape_latex if (latex and escape) else str
        headers = [""] + [
            f"{esc(spec.label)}\n{esc(col.header)}" if not latex else esc(f"{spec.label}: {col.header}")
            for spec in self.columns
            for col in spec.columns
        ]
        body = [[esc(c) for c in line] for line in self._body()]
        footer = [[esc(c) for c in line] for line in self._footer()]
        if latex:
            booktabs = tablefmt == "latex_booktabs"
            rule = [_MIDRULE] * len(headers)
            table = cast(
                "str",
                tabulate(
                    [*body, rule, *footer] if footer else body,
                    headers=headers,
                    stralign="center",
                    tablefmt="latex_raw",
                    disable_numparse=True,
                ),
            )
            booktab_rules = iter((r"\toprule", r"\midrule", r"\bottomrule"))
            out_lines = []
            for ln in table.splitlines():
                stripped = ln.strip()
                if stripped.startswith(_MIDRULE) and stripped.count(_MIDRULE) == len(headers):
                    out_lines.append(r"\midrule" if booktabs else r"\hline")
                elif booktabs and stripped == r"\hline":
                    out_lines.append(next(booktab_rules, r"\midrule"))
                else:
                    out_lines.append(ln)
            return "\n".join(out_lines)
        # Blank separator row between coefficients and summary statistics.
        sep = ["" for _ in headers]
        return cast(
            "str",
            tabulate(
                [*body, sep, *footer] if footer else body,
                headers=headers,
                stralign="center",
                tablefmt=tablefmt,
                disable_numparse=True,
            ),
        )
