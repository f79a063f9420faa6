from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Sequence

from sheetview.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE


SORT_DIRECTIONS = ("asc", "desc")


@dataclass(frozen=True)
class SortKey:
    column: str
    direction: str = "asc"

    @property
    def descending(self) -> bool:
        return self.direction == "desc"


@dataclass(frozen=True)
class ViewState:
    """Everything the user can change about a view; serializable with ``asdict``."""

    selections: Dict[str, List[str]] = field(default_factory=dict)
    column_search: Dict[str, str] = field(default_factory=dict)
    search: str = ""
    sort: Optional[SortKey] = None
    visible_columns: List[str] = field(default_factory=list)
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE


def _as_str_list(values: Optional[Iterable[object]]) -> List[str]:
    if not values:
        return []
    if isinstance(values, str):
        values = [values]
    out: List[str] = []
    for v in values:
        if v is None:
            continue
        s = str(v).strip()
        if s not in out:
            out.append(s)
    return out


def _as_int(value: object, default: int) -> int:
    try:
        return int(value)  # type: ignore[arg-type]
    except Exception:
        return default


def normalize_view_state(
    raw: Optional[dict],
    *,
    columns: Optional[Sequence[str]] = None,
    default_page_size: int = DEFAULT_PAGE_SIZE,
) -> ViewState:
    """Coerce an untrusted dict (query params, JSON body, session) into a ViewState.

    Unknown columns are dropped when ``columns`` is given.
    """
    raw = raw or {}
    known = set(columns) if columns is not None else None

    selections: Dict[str, List[str]] = {}
    for col, values in (raw.get("selections") or {}).items():
        if known is not None and col not in known:
            continue
        picked = _as_str_list(values)
        if picked:
            selections[str(col)] = picked

    column_search: Dict[str, str] = {}
    for col, text in (raw.get("column_search") or {}).items():
        if known is not None and col not in known:
            continue
        text = str(text or "").strip()
        if text:
            column_search[str(col)] = text

    search = str(raw.get("search") or "").strip()

    sort = None
    raw_sort = raw.get("sort")
    if isinstance(raw_sort, SortKey):
        raw_sort = {"column": raw_sort.column, "direction": raw_sort.direction}
    if isinstance(raw_sort, dict) and raw_sort.get("column"):
        col = str(raw_sort["column"])
        direction = str(raw_sort.get("direction") or "asc").lower()
        if direction not in SORT_DIRECTIONS:
            direction = "asc"
        if known is None or col in known:
            sort = SortKey(column=col, direction=direction)

    visible = _as_str_list(raw.get("visible_columns"))
    if known is not None:
        visible = [c for c in visible if c in known]

    page_size = _as_int(raw.get("page_size", default_page_size), default_page_size)
    page_size = max(1, min(MAX_PAGE_SIZE, page_size))
    page = max(1, _as_int(raw.get("page", 1), 1))

    return ViewState(
        selections=selections,
        column_search=column_search,
        search=search,
        sort=sort,
        visible_columns=visible,
        page=page,
        page_size=page_size,
    )


def toggle_sort(state: ViewState, column: str) -> ViewState:
    """Same column flips direction; a new column starts ascending."""
    if state.sort is not None and state.sort.column == column:
        direction = "desc" if state.sort.direction == "asc" else "asc"
        return replace(state, sort=SortKey(column=column, direction=direction))
    return replace(state, sort=SortKey(column=column, direction="asc"))


def clear_sort(state: ViewState) -> ViewState:
    return replace(state, sort=None)


def set_selection(state: ViewState, column: str, values: Iterable[object]) -> ViewState:
    selections = dict(state.selections)
    picked = _as_str_list(values)
    if picked:
        selections[column] = picked
    else:
        selections.pop(column, None)
    return replace(state, selections=selections, page=1)


def set_column_search(state: ViewState, column: str, text: str) -> ViewState:
    column_search = dict(state.column_search)
    text = (text or "").strip()
    if text:
        column_search[column] = text
    else:
        column_search.pop(column, None)
    return replace(state, column_search=column_search, page=1)


def set_search(state: ViewState, text: str) -> ViewState:
    return replace(state, search=(text or "").strip(), page=1)


def set_page(state: ViewState, page: int) -> ViewState:
    return replace(state, page=max(1, int(page)))


def set_visible_columns(state: ViewState, columns: Iterable[str]) -> ViewState:
    return replace(state, visible_columns=_as_str_list(columns))


def reset_filters(state: ViewState) -> ViewState:
    """Clear selections, column text filters and search; sort and layout are kept."""
    return replace(state, selections={}, column_search={}, search="", page=1)
