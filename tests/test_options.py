from __future__ import annotations

from sheetview.config import BLANK_OPTION
from sheetview.dataset import build_dataset
from sheetview.filters import SortKey
from sheetview.options import (
    categorical_columns,
    derive_filter_options,
    filter_control_kind,
    natural_key,
    numeric_columns,
    profile_column,
    to_number,
)
from sheetview.view import apply_sort


def test_natural_key_orders_numbers_numerically():
    values = ["10", "2", "1", "Item 10", "item 2", "", "apple"]
    assert sorted(values, key=natural_key) == ["", "1", "2", "10", "apple", "item 2", "Item 10"]


def test_natural_key_is_case_insensitive():
    assert sorted(["shelf 2", "Shelf 10", "SHELF 1"], key=natural_key) == ["SHELF 1", "shelf 2", "Shelf 10"]


def test_mixed_numbers_and_text_sort_chunk_by_chunk():
    ds = build_dataset([["Size"], ["10"], ["2a"], ["3"]])
    assert derive_filter_options(ds, "Size") == ["2a", "3", "10"]
    assert apply_sort(ds, SortKey("Size")).text["Size"].tolist() == ["2a", "3", "10"]
    assert apply_sort(ds, SortKey("Size", "desc")).text["Size"].tolist() == ["10", "3", "2a"]


def test_to_number_accepts_commas_only():
    assert to_number("1,200") == 1200.0
    assert to_number(" 12 ") == 12.0
    assert to_number("$5") is None
    assert to_number("") is None
    assert to_number(None) is None
    assert to_number(True) is None
    assert to_number(float("nan")) is None


def test_filter_options_are_distinct_sorted_and_skip_blanks():
    ds = build_dataset([["Size"], ["10"], ["2"], ["2"], [""], ["1"], ["x"]])
    assert derive_filter_options(ds, "Size") == ["1", "2", "10", "x"]


def test_filter_options_blank_sentinel():
    ds = build_dataset([["Size", "Other"], ["10", "a"], ["", "b"]])
    assert derive_filter_options(ds, "Size", include_blank=True) == ["10", BLANK_OPTION]
    assert derive_filter_options(ds, "Other", include_blank=True) == ["a", "b"]


def test_filter_options_unknown_column():
    ds = build_dataset([["Size"], ["1"]])
    assert derive_filter_options(ds, "Nope") == []


def test_column_roles(sales_dataset):
    assert numeric_columns(sales_dataset) == ["Units"]
    assert categorical_columns(sales_dataset) == ["Name", "Region", "Amount"]
    profile = profile_column(sales_dataset, "Amount")
    assert profile.non_empty == 3
    assert profile.numeric_share == 1 / 3


def test_filter_control_kind():
    assert filter_control_kind([str(i) for i in range(20)]) == "select"
    assert filter_control_kind([str(i) for i in range(21)]) == "text"
