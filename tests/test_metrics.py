from __future__ import annotations

import pytest

from sheetview.config import BLANK_OPTION, KpiSpec
from sheetview.dataset import build_dataset
from sheetview.metrics import (
    compute_kpis,
    default_group_column,
    default_kpis,
    distribution,
    group_summary,
    group_sums,
    parse_number,
)
from sheetview.view import apply_filters


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("$1,200", 1200.0),
        ("1,000.50", 1000.5),
        ("-42", -42.0),
        ("€ 3.5", 3.5),
        ("", 0.0),
        ("n/a", 0.0),
        ("-", 0.0),
        ("1-2.3.4", 1.0),
        (None, 0.0),
        (7, 7.0),
        (2.5, 2.5),
        (float("nan"), 0.0),
        (True, 0.0),
    ],
)
def test_parse_number(raw, expected):
    assert parse_number(raw) == expected


def test_sum_over_filter_example():
    ds = build_dataset([["Name", "Amount"], ["A", "$1,200"], ["B", ""], ["A", "$300"]])
    filtered = apply_filters(ds, {"Name": ["A"]})
    assert len(filtered) == 2
    kpis = compute_kpis(filtered, [KpiSpec(key="total", column="Amount", type="sum")])
    assert kpis == {"total": 1500.0}


def test_kpis_over_empty_set_are_zero(sales_dataset):
    empty = apply_filters(sales_dataset, {"Name": ["Nobody"]})
    specs = [
        KpiSpec(key="sum", column="Amount", type="sum"),
        KpiSpec(key="unique", column="Name", type="unique"),
        KpiSpec(key="rows", column=None, type="count"),
        KpiSpec(key="mean", column="Units", type="mean"),
    ]
    assert compute_kpis(empty, specs) == {"sum": 0.0, "unique": 0, "rows": 0, "mean": None}


def test_unique_ignores_blanks(sales_dataset):
    kpis = compute_kpis(sales_dataset, [KpiSpec(key="amounts", column="Amount", type="unique")])
    assert kpis["amounts"] == 3


def test_ratio_and_mean(sales_dataset):
    specs = [
        KpiSpec(key="mean", column="Units", type="mean"),
        KpiSpec(key="ratio", column="Amount", type="ratio", denominator="Units"),
        KpiSpec(key="zero", column="Units", type="ratio", denominator="Nope"),
    ]
    kpis = compute_kpis(sales_dataset, specs)
    assert kpis["mean"] == pytest.approx(22 / 4)
    assert kpis["ratio"] == pytest.approx(2500.5 / 22)
    assert kpis["zero"] is None


def test_kpi_spec_validation():
    with pytest.raises(ValueError):
        KpiSpec(key="x", column="A", type="median")
    with pytest.raises(ValueError):
        KpiSpec(key="x", column="A", type="ratio")


def test_default_kpis_follow_numeric_columns(sales_dataset):
    keys = [k.key for k in default_kpis(sales_dataset)]
    assert keys == ["rows", "sum_1", "mean_1"]
    assert default_group_column(sales_dataset) == "Name"


def test_group_summary_keeps_first_seen_order(sales_dataset):
    summary = group_summary(sales_dataset, "Region", ["Units"])
    assert summary.columns.tolist() == ["label", "count", "Units Sum", "Units Avg"]
    assert summary["label"].tolist() == ["East", "West"]
    assert summary["count"].tolist() == [2, 2]
    assert summary["Units Sum"].tolist() == [17.0, 5.0]
    assert summary["Units Avg"].tolist() == [8.5, 2.5]


def test_group_summary_blank_labels_become_unspecified():
    ds = build_dataset([["Kind", "Qty"], ["", 1], ["a", 2], [None, 3]])
    summary = group_summary(ds, "Kind", ["Qty"])
    assert summary["label"].tolist() == ["Unspecified", "a"]
    assert summary["Qty Sum"].tolist() == [4.0, 2.0]


def test_group_sums_and_distribution(sales_dataset):
    sums = group_sums(sales_dataset, "Name", "Amount")
    assert sums.to_dict(orient="records") == [
        {"label": "Alice", "value": 1500.0},
        {"label": "Carol", "value": 1000.5},
        {"label": "Bob", "value": 0.0},
    ]
    counts = distribution(sales_dataset, "Amount")
    assert counts["label"].tolist() == ["1,000.50", "$1,200", "$300", BLANK_OPTION]
    assert counts["value"].tolist() == [1, 1, 1, 1]
    assert distribution(sales_dataset, "Name", top_n=1).to_dict(orient="records") == [{"label": "Alice", "value": 2}]
