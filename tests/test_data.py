from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from sheetview import data
from sheetview.data import (
    dataset_signature,
    dataset_to_csv,
    list_sheets,
    load_dataset,
    load_grid,
    load_pivot_tables,
    project_columns,
    read_source_bytes,
    source_signature,
)
from sheetview.dataset import build_dataset
from sheetview.errors import FetchFailed, MissingSheet
from conftest import make_excel


@pytest.fixture(autouse=True)
def _fresh_cache():
    data.clear_cache()
    yield
    data.clear_cache()


def test_load_dataset_from_workbook(workbook_path: Path):
    ds = load_dataset(workbook_path, "Sheet1")
    assert ds.columns == ("Name", "Region", "Amount", "Units")
    assert len(ds) == 4
    assert ds.text["Units"].tolist() == ["10", "3", "2", "7"]
    assert ds.text["Amount"].tolist()[0] == "$1,200"


def test_list_sheets(workbook_path: Path):
    assert list_sheets(workbook_path.read_bytes()) == ["Sheet1", "Sheet 2"]


def test_missing_sheet(workbook_path: Path):
    with pytest.raises(MissingSheet) as exc:
        load_dataset(workbook_path, "Nope")
    assert exc.value.available == ("Sheet1", "Sheet 2")
    assert "Nope not found" in exc.value.status_message


def test_missing_file(tmp_path: Path):
    with pytest.raises(FetchFailed):
        load_dataset(tmp_path / "absent.xlsx", "Sheet1")


def test_not_a_workbook(tmp_path: Path):
    bogus = tmp_path / "bogus.xlsx"
    bogus.write_bytes(b"not a zip")
    with pytest.raises(FetchFailed):
        load_grid(bogus, "Sheet1")


def test_load_pivot_tables_from_workbook(workbook_path: Path):
    extraction = load_pivot_tables(workbook_path, "Sheet 2")
    assert extraction.columns == ("Store", "Item", "Qty")
    assert [len(t) for t in extraction.tables] == [2, 1]


def test_grid_cache_follows_file_signature(tmp_path: Path):
    path = make_excel(tmp_path / "book.xlsx", {"Sheet1": [["A"], ["1"]]})
    first = load_dataset(path, "Sheet1")
    assert load_dataset(path, "Sheet1").text_rows() == first.text_rows()
    sig = source_signature(path)
    make_excel(path, {"Sheet1": [["A"], ["1"], ["2"], ["3"]]})
    assert source_signature(path) != sig
    assert len(first) == 1
    assert len(load_dataset(path, "Sheet1")) == 3


def test_remote_source_uses_http(monkeypatch, workbook_path: Path):
    content = workbook_path.read_bytes()

    def fake_get(url, **kwargs):
        return httpx.Response(200, content=content, request=httpx.Request("GET", url))

    monkeypatch.setattr(data.httpx, "get", fake_get)
    assert source_signature("https://example.test/Combined.xlsx") is None
    ds = load_dataset("https://example.test/Combined.xlsx", "Sheet1")
    assert len(ds) == 4


def test_remote_source_failure(monkeypatch):
    def fake_get(url, **kwargs):
        return httpx.Response(404, request=httpx.Request("GET", url))

    monkeypatch.setattr(data.httpx, "get", fake_get)
    with pytest.raises(FetchFailed):
        read_source_bytes("https://example.test/missing.xlsx")


def test_project_columns_by_letter():
    grid = [["Name", None, "Amount"], ["a", "x", 1], ["b"]]
    projected = project_columns(grid, ["A", "c", "B", "D"])
    assert projected == [
        ["Name", "Amount", "Column B", "Column D"],
        ["a", 1, "x", None],
        ["b", None, None, None],
    ]
    assert project_columns(grid, []) == grid


def test_dataset_signature_tracks_count_and_last_row(sales_dataset):
    sig = dataset_signature(sales_dataset)
    assert sig[0] == 4
    assert "Carol" in sig[1]
    changed = build_dataset([list(sales_dataset.columns)] + [r for r in sales_dataset.frame.values.tolist()[:-1]] + [["Carol", "East", "1,000.50", 8]])
    assert dataset_signature(changed) != sig
    assert dataset_signature(build_dataset([list(sales_dataset.columns)] + sales_dataset.frame.values.tolist())) == sig


def test_dataset_to_csv(sales_dataset):
    csv = dataset_to_csv(sales_dataset, ["Name", "Units"]).decode("utf-8").splitlines()
    assert csv[0] == "Name,Units"
    assert csv[1] == "Alice,10"
