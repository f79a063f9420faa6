"""Split one sheet holding several stacked pivot tables into separate tables.

The first non-blank row is the master header. Every later row that is fully
blank, or that repeats the master header, closes the table being collected.
All tables share the master header's columns.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Sequence, Tuple

from sheetview.dataset import Grid, RowDataset, build_columns, cell_to_str, is_blank_row, rows_to_dataset
from sheetview.errors import EmptyDataset


def matches_header(row: Sequence[Any], template: Sequence[str]) -> bool:
    """True when ``row`` repeats the header; blank template cells match anything."""
    for idx, expected in enumerate(template):
        if not expected:
            continue
        actual = cell_to_str(row[idx]) if idx < len(row) else ""
        if actual != expected:
            return False
    return True


def split_blocks(grid: Grid) -> Tuple[List[Any], List[List[Sequence[Any]]]]:
    """Return (master header cells, data blocks); blocks never contain separator rows."""
    start = next((i for i, row in enumerate(grid) if not is_blank_row(row)), None)
    if start is None:
        return [], []

    header = list(grid[start])
    template = [cell_to_str(cell) for cell in header]
    blocks: List[List[Sequence[Any]]] = []
    current: List[Sequence[Any]] = []

    for row in grid[start + 1 :]:
        if is_blank_row(row) or matches_header(row, template):
            if current:
                blocks.append(current)
                current = []
            continue
        current.append(row)
    if current:
        blocks.append(current)
    return header, blocks


@dataclass(frozen=True, eq=False)
class PivotExtraction:
    columns: Tuple[str, ...]
    tables: List[RowDataset]

    @property
    def row_count(self) -> int:
        return sum(len(t) for t in self.tables)

    def combined(self) -> RowDataset:
        """All tables stacked; used for deriving filter options across tables."""
        rows: List[List[Any]] = []
        for table in self.tables:
            rows.extend(table.frame.values.tolist())
        return RowDataset.from_rows(self.columns, rows)


def extract_pivot_tables(grid: Grid) -> PivotExtraction:
    header, blocks = split_blocks(grid)
    if not header:
        raise EmptyDataset("No pivot tables found: the sheet is blank.")
    columns = build_columns(header)
    tables = [rows_to_dataset(columns, block) for block in blocks]
    tables = [t for t in tables if not t.empty]
    if not tables:
        raise EmptyDataset("No pivot tables found: only header rows are present.")
    return PivotExtraction(columns=columns, tables=tables)
