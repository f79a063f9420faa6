from __future__ import annotations

import datetime as dt
import io
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Sequence, Tuple

from openpyxl import load_workbook

from sheetview.config import PRIMARY_SHEET_NAME
from sheetview.dataset import build_columns, cell_to_str
from sheetview.errors import EmptyDataset, MissingSheet
from sheetview.options import natural_key, to_number


DATE_KEYWORDS = ("date", "month", "year", "created", "updated")
FORCED_NUMBER_COLUMNS: FrozenSet[str] = frozenset({"Parent Level Sales", "Review Count"})
SAMPLE_SIZE = 30
MAX_SELECT_OPTIONS = 8

FIELD_TYPES = ("number", "date", "select", "text")


@dataclass(frozen=True)
class FormField:
    name: str
    index: int
    field_type: str
    options: Tuple[str, ...] = ()
    required: bool = True

    def __post_init__(self) -> None:
        if self.field_type not in FIELD_TYPES:
            raise ValueError(f"Unknown field type: {self.field_type}")

    @property
    def placeholder(self) -> str:
        if self.field_type == "date":
            return "YYYY-MM-DD"
        if self.field_type == "select":
            return "Select or type"
        return ""


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    text = cell_to_str(value)
    if not text:
        return False
    try:
        float(text)
    except ValueError:
        return False
    return True


def infer_field_type(header: str, values: Iterable[Any], *, forced_numeric: FrozenSet[str] = FORCED_NUMBER_COLUMNS) -> str:
    if header in forced_numeric:
        return "number"
    lowered = header.lower()
    if any(keyword in lowered for keyword in DATE_KEYWORDS):
        return "date"
    sample = [v for v in values if cell_to_str(v)][:SAMPLE_SIZE]
    if not sample:
        return "text"
    if all(_is_number(v) for v in sample):
        return "number"
    unique = {cell_to_str(v) for v in sample}
    if 0 < len(unique) <= MAX_SELECT_OPTIONS:
        return "select"
    return "text"


def infer_select_options(values: Iterable[Any]) -> List[str]:
    return sorted({cell_to_str(v) for v in values if cell_to_str(v)}, key=natural_key)


def build_form_fields(header: Sequence[Any], rows: Sequence[Sequence[Any]]) -> List[FormField]:
    fields: List[FormField] = []
    for idx, name in enumerate(build_columns(header)):
        column_values = [row[idx] if idx < len(row) else None for row in rows]
        field_type = infer_field_type(name, column_values)
        options = tuple(infer_select_options(column_values)) if field_type == "select" else ()
        fields.append(FormField(name=name, index=idx, field_type=field_type, options=options))
    return fields


def _sheet_rows(content: bytes, sheet_name: str) -> List[List[Any]]:
    book = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    try:
        if sheet_name not in book.sheetnames:
            raise MissingSheet(sheet_name, tuple(book.sheetnames))
        return [list(row) for row in book[sheet_name].iter_rows(values_only=True)]
    finally:
        book.close()


def read_form_fields(content: bytes, sheet_name: str = PRIMARY_SHEET_NAME) -> List[FormField]:
    rows = _sheet_rows(content, sheet_name)
    if not rows or not any(cell_to_str(c) for c in rows[0]):
        raise EmptyDataset(f"{sheet_name} does not contain headers.")
    header = list(rows[0])
    while header and not cell_to_str(header[-1]):
        header.pop()
    return build_form_fields(header, rows[1:])


def validate_record(fields: Sequence[FormField], values: Mapping[str, Any]) -> Dict[str, str]:
    """Field name -> message for every invalid entry; empty when the record is good."""
    errors: Dict[str, str] = {}
    for f in fields:
        raw = cell_to_str(values.get(f.name))
        if not raw:
            if f.required:
                errors[f.name] = "This field is required."
            continue
        if f.field_type == "number" and to_number(raw) is None:
            errors[f.name] = "Please enter a valid number."
        elif f.field_type == "date":
            try:
                dt.date.fromisoformat(raw)
            except ValueError:
                errors[f.name] = "Please enter a date as YYYY-MM-DD."
    return errors


def coerce_value(f: FormField, raw: Any) -> Any:
    text = cell_to_str(raw)
    if not text:
        return None
    if f.field_type == "number":
        number = to_number(text)
        if number is None:
            return text
        return int(number) if number.is_integer() else number
    if f.field_type == "date":
        try:
            return dt.date.fromisoformat(text)
        except ValueError:
            return text
    return text


def append_row(content: bytes, sheet_name: str, fields: Sequence[FormField], values: Mapping[str, Any]) -> bytes:
    """Workbook bytes with one row appended to ``sheet_name``; other sheets are untouched."""
    book = load_workbook(io.BytesIO(content))
    if sheet_name not in book.sheetnames:
        raise MissingSheet(sheet_name, tuple(book.sheetnames))
    sheet = book[sheet_name]
    width = max(sheet.max_column, len(fields))
    row: List[Any] = [None] * width
    for f in fields:
        row[f.index] = coerce_value(f, values.get(f.name))
    sheet.append(row)
    out = io.BytesIO()
    book.save(out)
    return out.getvalue()
