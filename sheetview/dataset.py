from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from sheetview.errors import EmptyDataset


Grid = Sequence[Sequence[Any]]


def cell_to_str(value: Any) -> str:
    """Trimmed display form of a raw cell; every flavor of missing becomes ""."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, (pd.Timestamp, dt.datetime)):
        if pd.isna(value):
            return ""
        if (value.hour, value.minute, value.second, value.microsecond) == (0, 0, 0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, dt.date):
        return value.isoformat()
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    return str(value).strip()


def is_blank(value: Any) -> bool:
    return cell_to_str(value) == ""


def is_blank_row(row: Iterable[Any]) -> bool:
    return all(is_blank(cell) for cell in row)


def build_columns(header: Sequence[Any]) -> Tuple[str, ...]:
    """Column ids for a header row: trimmed labels, placeholders for blanks, suffixes for repeats."""
    seen: Dict[str, int] = {}
    used: set = set()
    columns: List[str] = []
    for idx, cell in enumerate(header):
        label = cell_to_str(cell) or f"Column {idx + 1}"
        count = seen.get(label, 0)
        seen[label] = count + 1
        candidate = label if count == 0 else f"{label}_{count + 1}"
        while candidate in used:
            count += 1
            candidate = f"{label}_{count + 1}"
        used.add(candidate)
        columns.append(candidate)
    return tuple(columns)


def _clean_cell(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
    return None if is_blank(value) else value


@dataclass(frozen=True, eq=False)
class RowDataset:
    """Immutable row set sharing one column list.

    ``frame`` holds raw cell values (None for blanks); ``text`` holds the
    display string of every cell and is what filters, search and sort read.
    """

    columns: Tuple[str, ...]
    frame: pd.DataFrame
    text: pd.DataFrame

    @classmethod
    def from_rows(cls, columns: Sequence[str], rows: Iterable[Sequence[Any]]) -> "RowDataset":
        columns = tuple(columns)
        width = len(columns)
        records: List[List[Any]] = []
        for row in rows:
            cells = [_clean_cell(row[i]) if i < len(row) else None for i in range(width)]
            records.append(cells)
        frame = pd.DataFrame(records, columns=list(columns), dtype=object)
        return cls.from_frame(frame)

    @classmethod
    def from_frame(cls, frame: pd.DataFrame) -> "RowDataset":
        frame = frame.reset_index(drop=True).astype(object)
        frame = frame.where(frame.notna(), None)
        text = frame.apply(lambda col: col.map(cell_to_str)) if len(frame) else frame.astype(str)
        return cls(columns=tuple(str(c) for c in frame.columns), frame=frame, text=text)

    def __len__(self) -> int:
        return len(self.frame)

    @property
    def empty(self) -> bool:
        return len(self.frame) == 0

    def take(self, positions: Sequence[int]) -> "RowDataset":
        positions = list(positions)
        return RowDataset(
            columns=self.columns,
            frame=self.frame.iloc[positions].reset_index(drop=True),
            text=self.text.iloc[positions].reset_index(drop=True),
        )

    def mask(self, keep: pd.Series) -> "RowDataset":
        keep = keep.to_numpy(dtype=bool)
        return RowDataset(
            columns=self.columns,
            frame=self.frame[keep].reset_index(drop=True),
            text=self.text[keep].reset_index(drop=True),
        )

    def rows(self, columns: Optional[Sequence[str]] = None) -> List[Dict[str, Any]]:
        cols = list(columns) if columns else list(self.columns)
        return self.frame[cols].to_dict(orient="records")

    def text_rows(self, columns: Optional[Sequence[str]] = None) -> List[Dict[str, str]]:
        cols = list(columns) if columns else list(self.columns)
        return self.text[cols].to_dict(orient="records")


def rows_to_dataset(columns: Sequence[str], rows: Iterable[Sequence[Any]]) -> RowDataset:
    kept = [row for row in rows if not is_blank_row(row)]
    return RowDataset.from_rows(columns, kept)


def build_dataset(grid: Grid) -> RowDataset:
    """First row is the header; fully blank data rows are dropped."""
    if not grid:
        raise EmptyDataset("The sheet has no rows.")
    columns = build_columns(grid[0])
    if not columns:
        raise EmptyDataset("The sheet has no header row.")
    dataset = rows_to_dataset(columns, grid[1:])
    if dataset.empty:
        raise EmptyDataset("The sheet has a header row but no data rows.")
    return dataset


def grid_from_frame(raw: pd.DataFrame) -> List[List[Any]]:
    """Raw cell grid from a header-less ``pd.read_excel`` frame."""
    if raw.empty:
        return []
    obj = raw.astype(object)
    return obj.where(obj.notna(), None).values.tolist()
