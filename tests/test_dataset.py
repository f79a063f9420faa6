from __future__ import annotations

import datetime as dt
import math

import pandas as pd
import pytest

from sheetview.dataset import build_columns, build_dataset, cell_to_str, grid_from_frame, is_blank_row
from sheetview.errors import EmptyDataset


def test_cell_to_str_normalizes_missing_and_numbers():
    assert cell_to_str(None) == ""
    assert cell_to_str(float("nan")) == ""
    assert cell_to_str(pd.NA) == ""
    assert cell_to_str("  Shelf ") == "Shelf"
    assert cell_to_str(1200.0) == "1200"
    assert cell_to_str(12.5) == "12.5"
    assert cell_to_str(7) == "7"
    assert cell_to_str(pd.Timestamp("2024-03-01")) == "2024-03-01"
    assert cell_to_str(dt.date(2024, 3, 1)) == "2024-03-01"


def test_build_columns_fills_blanks_and_dedupes():
    cols = build_columns(["Name", " ", "Name", None, "Name"])
    assert cols == ("Name", "Column 2", "Name_2", "Column 4", "Name_3")


def test_build_columns_never_collides_with_existing_suffix():
    cols = build_columns(["A", "A", "A_2"])
    assert len(set(cols)) == 3
    assert cols[:2] == ("A", "A_2")


def test_build_dataset_drops_only_fully_blank_rows(sales_grid):
    ds = build_dataset(sales_grid)
    assert ds.columns == ("Name", "Region", "Amount", "Units")
    assert len(ds) == 4
    assert ds.text["Name"].tolist() == ["Alice", "Bob", "Alice", "Carol"]


def test_build_dataset_pads_short_rows_and_ignores_extra_cells():
    ds = build_dataset([["A", "B"], ["x"], ["y", "z", "ignored"]])
    assert ds.text_rows() == [{"A": "x", "B": ""}, {"A": "y", "B": "z"}]
    assert ds.rows()[0]["B"] is None


def test_row_kept_when_single_cell_filled():
    ds = build_dataset([["Name", "Amount"], ["A", "$1,200"], ["B", ""], ["A", "$300"]])
    assert len(ds) == 3
    assert ds.text["Name"].tolist() == ["A", "B", "A"]


@pytest.mark.parametrize("grid", [[], [[]], [["A", "B"]], [["A", "B"], [None, " "]]])
def test_build_dataset_empty_inputs(grid):
    with pytest.raises(EmptyDataset):
        build_dataset(grid)


def test_is_blank_row():
    assert is_blank_row(["", None, "  ", float("nan")])
    assert not is_blank_row(["", 0])


def test_grid_from_frame_replaces_nan_with_none():
    raw = pd.DataFrame([["a", math.nan], [1.0, "b"]])
    assert grid_from_frame(raw) == [["a", None], [1.0, "b"]]
    assert grid_from_frame(pd.DataFrame()) == []
