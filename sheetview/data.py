from __future__ import annotations

import io
import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple, Union

import httpx
import pandas as pd
from openpyxl.utils import column_index_from_string

from sheetview.config import DEFAULT_SOURCE, FETCH_TIMEOUT_SECONDS
from sheetview.dataset import Grid, RowDataset, build_dataset, cell_to_str, grid_from_frame
from sheetview.errors import FetchFailed, MissingSheet
from sheetview.pivot import PivotExtraction, extract_pivot_tables


logger = logging.getLogger(__name__)

Source = Union[str, Path]


def is_remote(source: Source) -> bool:
    return str(source).lower().startswith(("http://", "https://"))


def read_source_bytes(source: Source) -> bytes:
    """Workbook bytes from a local path or an http(s) URL."""
    if is_remote(source):
        try:
            response = httpx.get(str(source), timeout=FETCH_TIMEOUT_SECONDS, follow_redirects=True, headers={"Cache-Control": "no-store"})
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise FetchFailed(f"Unable to load {source}: {exc}") from exc
        return response.content
    path = Path(source)
    try:
        return path.read_bytes()
    except OSError as exc:
        raise FetchFailed(f"Unable to load {path.name}. Please ensure the file is present.") from exc


def source_signature(source: Source) -> Optional[Tuple[str, float, int]]:
    """(name, mtime, size) for local files; None for URLs, which are never cached."""
    if is_remote(source):
        return None
    path = Path(source)
    try:
        stat = path.stat()
    except OSError:
        return None
    return (str(path.resolve()), stat.st_mtime, stat.st_size)


def list_sheets(content: bytes) -> List[str]:
    try:
        with pd.ExcelFile(io.BytesIO(content)) as book:
            return [str(name) for name in book.sheet_names]
    except Exception as exc:
        raise FetchFailed(f"Unable to read the workbook: {exc}") from exc


def read_sheet_grid(content: bytes, sheet_name: str) -> List[List[Any]]:
    sheets = list_sheets(content)
    if sheet_name not in sheets:
        raise MissingSheet(sheet_name, tuple(sheets))
    raw = pd.read_excel(io.BytesIO(content), sheet_name=sheet_name, header=None)
    return grid_from_frame(raw)


@lru_cache(maxsize=8)
def _load_grid_cached(source: str, sheet_name: str, signature: Tuple[str, float, int]) -> Tuple[Tuple[Any, ...], ...]:
    grid = read_sheet_grid(read_source_bytes(source), sheet_name)
    logger.info("Loaded %s rows from %s [%s]", len(grid), Path(source).name, sheet_name)
    return tuple(tuple(row) for row in grid)


def load_grid(source: Source = DEFAULT_SOURCE, sheet_name: str = "Sheet1") -> List[List[Any]]:
    signature = source_signature(source)
    if signature is None:
        return read_sheet_grid(read_source_bytes(source), sheet_name)
    return [list(row) for row in _load_grid_cached(str(source), sheet_name, signature)]


def clear_cache() -> None:
    _load_grid_cached.cache_clear()


def project_columns(grid: Grid, letters: Sequence[str]) -> List[List[Any]]:
    """Keep only the given Excel columns (e.g. "A", "AJ"); a blank header becomes "Column <letter>"."""
    if not letters or not grid:
        return [list(row) for row in grid]
    indices = [column_index_from_string(letter.strip().upper()) - 1 for letter in letters]

    def pick(row: Sequence[Any]) -> List[Any]:
        return [row[i] if i < len(row) else None for i in indices]

    header = pick(grid[0])
    header = [cell if cell_to_str(cell) else f"Column {letter.strip().upper()}" for cell, letter in zip(header, letters)]
    return [header] + [pick(row) for row in grid[1:]]


def load_dataset(source: Source = DEFAULT_SOURCE, sheet_name: str = "Sheet1", *, column_letters: Sequence[str] = ()) -> RowDataset:
    grid = load_grid(source, sheet_name)
    return build_dataset(project_columns(grid, column_letters))


def load_pivot_tables(source: Source = DEFAULT_SOURCE, sheet_name: str = "Sheet 2") -> PivotExtraction:
    return extract_pivot_tables(load_grid(source, sheet_name))


def dataset_signature(dataset: RowDataset) -> Tuple[int, str]:
    """Cheap change detector: row count plus the serialized last row."""
    if dataset.empty:
        return (0, "")
    last = dataset.text.iloc[-1].tolist()
    return (len(dataset), json.dumps(last, ensure_ascii=False))


def dataset_to_csv(dataset: RowDataset, columns: Optional[Sequence[str]] = None) -> bytes:
    cols = list(columns) if columns else list(dataset.columns)
    return dataset.text[cols].to_csv(index=False).encode("utf-8")
