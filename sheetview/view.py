from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from sheetview.config import BLANK_OPTION
from sheetview.dataset import RowDataset
from sheetview.filters import SortKey, ViewState
from sheetview.options import natural_key


def filter_mask(dataset: RowDataset, selections: Mapping[str, Sequence[str]]) -> pd.Series:
    mask = pd.Series(True, index=dataset.text.index)
    for col, selected in selections.items():
        if not selected or col not in dataset.columns:
            continue
        accepted = set(selected)
        if BLANK_OPTION in accepted:
            accepted.add("")
        mask &= dataset.text[col].isin(accepted)
    return mask


def apply_filters(dataset: RowDataset, selections: Mapping[str, Sequence[str]]) -> RowDataset:
    """OR within one column's selection, AND across columns; empty selection passes everything."""
    if not any(selections.values()):
        return dataset
    return dataset.mask(filter_mask(dataset, selections))


def apply_column_search(dataset: RowDataset, column_search: Mapping[str, str]) -> RowDataset:
    mask = pd.Series(True, index=dataset.text.index)
    active = False
    for col, needle in column_search.items():
        needle = (needle or "").strip().lower()
        if not needle or col not in dataset.columns:
            continue
        active = True
        mask &= dataset.text[col].str.lower().str.contains(needle, regex=False)
    return dataset.mask(mask) if active else dataset


def search_mask(dataset: RowDataset, query: str) -> pd.Series:
    needle = query.strip().lower()
    if not needle or dataset.empty:
        return pd.Series(True, index=dataset.text.index)
    hits = dataset.text.apply(lambda col: col.str.lower().str.contains(needle, regex=False))
    return hits.any(axis=1)


def apply_search(dataset: RowDataset, query: str) -> RowDataset:
    if not (query or "").strip():
        return dataset
    return dataset.mask(search_mask(dataset, query))


def apply_sort(dataset: RowDataset, sort: Optional[SortKey]) -> RowDataset:
    """Stable sort on the display text of one column."""
    if sort is None or sort.column not in dataset.columns or len(dataset) < 2:
        return dataset
    keys = [natural_key(v) for v in dataset.text[sort.column].tolist()]
    order = sorted(range(len(keys)), key=keys.__getitem__, reverse=sort.descending)
    return dataset.take(order)


@dataclass(frozen=True)
class Page:
    page: int
    page_size: int
    total_pages: int
    start: int
    stop: int


def page_bounds(total: int, page: int, page_size: int) -> Page:
    page_size = max(1, int(page_size))
    total_pages = max(1, math.ceil(total / page_size))
    page = min(max(1, int(page)), total_pages)
    start = (page - 1) * page_size
    stop = min(start + page_size, total)
    return Page(page=page, page_size=page_size, total_pages=total_pages, start=start, stop=stop)


def paginate(dataset: RowDataset, page: int, page_size: int) -> Tuple[RowDataset, Page]:
    bounds = page_bounds(len(dataset), page, page_size)
    return dataset.take(range(bounds.start, bounds.stop)), bounds


@dataclass(frozen=True, eq=False)
class ViewResult:
    columns: Tuple[str, ...]
    rows: List[Dict[str, Any]]
    matched: RowDataset
    total_rows: int
    matched_rows: int
    page: Page

    def to_payload(self) -> Dict[str, Any]:
        return {
            "columns": list(self.columns),
            "rows": self.rows,
            "total_rows": self.total_rows,
            "matched_rows": self.matched_rows,
            "page": self.page.page,
            "page_size": self.page.page_size,
            "total_pages": self.page.total_pages,
            "first_row": self.page.start + 1 if self.matched_rows else 0,
            "last_row": self.page.stop,
        }


def select_rows(dataset: RowDataset, state: ViewState) -> RowDataset:
    """Filter, column search, global search and sort; no pagination."""
    matched = apply_filters(dataset, state.selections)
    matched = apply_column_search(matched, state.column_search)
    matched = apply_search(matched, state.search)
    return apply_sort(matched, state.sort)


def visible_columns(dataset: RowDataset, state: ViewState) -> Tuple[str, ...]:
    wanted = set(state.visible_columns)
    if not wanted:
        return dataset.columns
    return tuple(c for c in dataset.columns if c in wanted) or dataset.columns


def run_query(dataset: RowDataset, state: ViewState) -> ViewResult:
    matched = select_rows(dataset, state)
    page_rows, bounds = paginate(matched, state.page, state.page_size)
    columns = visible_columns(dataset, state)
    return ViewResult(
        columns=columns,
        rows=page_rows.text_rows(columns),
        matched=matched,
        total_rows=len(dataset),
        matched_rows=len(matched),
        page=bounds,
    )
