from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sheetview.config import BLANK_OPTION, CATEGORICAL_MAX_UNIQUE, SELECT_FILTER_MAX_VALUES
from sheetview.dataset import RowDataset, cell_to_str


_DIGIT_RUN = re.compile(r"([0-9]+)")


def to_number(value: Any) -> Optional[float]:
    """Loose numeric read used for column sniffing: commas allowed, nothing else."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if math.isnan(value) else float(value)
    text = cell_to_str(value).replace(",", "")
    if not text:
        return None
    try:
        out = float(text)
    except ValueError:
        return None
    return None if math.isnan(out) else out


def natural_key(value: str) -> Tuple:
    """Case-insensitive, numeric-aware ordering key ("2a" < "3" < "10").

    Blanks sort first. Every other value is compared chunk by chunk, digit
    runs as integers ahead of letters; exact text breaks ties.
    """
    raw = (value or "").strip()
    text = raw.lower()
    if not text:
        return (0, (), "")
    parts = []
    for chunk in _DIGIT_RUN.split(text):
        if not chunk:
            continue
        if _DIGIT_RUN.fullmatch(chunk):
            parts.append((0, int(chunk), ""))
        else:
            parts.append((1, 0, chunk))
    return (1, tuple(parts), raw)


def derive_filter_options(dataset: RowDataset, column: str, *, include_blank: bool = False) -> List[str]:
    """Distinct non-empty display values of ``column`` over the full dataset."""
    if column not in dataset.columns:
        return []
    values = dataset.text[column]
    options = sorted({v for v in values if v}, key=natural_key)
    if include_blank and (values == "").any():
        options.append(BLANK_OPTION)
    return options


def derive_all_filter_options(
    dataset: RowDataset, columns: Sequence[str], *, include_blank: bool = False
) -> Dict[str, List[str]]:
    return {col: derive_filter_options(dataset, col, include_blank=include_blank) for col in columns}


@dataclass(frozen=True)
class ColumnProfile:
    column: str
    non_empty: int
    unique: int
    numeric_share: float

    @property
    def is_numeric(self) -> bool:
        return self.non_empty > 0 and self.numeric_share >= 0.6

    def is_categorical(self, max_unique: int = CATEGORICAL_MAX_UNIQUE) -> bool:
        return self.non_empty > 0 and self.numeric_share < 0.5 and 1 < self.unique <= max_unique


def profile_column(dataset: RowDataset, column: str) -> ColumnProfile:
    values = [v for v in dataset.frame[column].tolist() if cell_to_str(v)]
    if not values:
        return ColumnProfile(column=column, non_empty=0, unique=0, numeric_share=0.0)
    numeric = sum(1 for v in values if to_number(v) is not None)
    unique = len({cell_to_str(v) for v in values})
    return ColumnProfile(column=column, non_empty=len(values), unique=unique, numeric_share=numeric / len(values))


def profile_columns(dataset: RowDataset) -> List[ColumnProfile]:
    return [profile_column(dataset, col) for col in dataset.columns]


def numeric_columns(dataset: RowDataset) -> List[str]:
    return [p.column for p in profile_columns(dataset) if p.is_numeric]


def categorical_columns(dataset: RowDataset, *, max_unique: int = CATEGORICAL_MAX_UNIQUE) -> List[str]:
    return [p.column for p in profile_columns(dataset) if p.is_categorical(max_unique)]


def filter_control_kind(options: Sequence[str], *, max_values: int = SELECT_FILTER_MAX_VALUES) -> str:
    """Pivot filters: short option lists get a select box, long ones a text box."""
    return "select" if len(options) <= max_values else "text"
