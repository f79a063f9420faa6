from __future__ import annotations

import math
import re
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from sheetview.config import BLANK_OPTION, UNSPECIFIED_GROUP, KpiSpec
from sheetview.dataset import RowDataset, cell_to_str
from sheetview.options import categorical_columns, natural_key, numeric_columns


_NON_NUMERIC = re.compile(r"[^0-9.\-]")
_LEADING_NUMBER = re.compile(r"-?(?:[0-9]+\.?[0-9]*|\.[0-9]+)")


def parse_number(value: Any) -> float:
    """Best-effort numeric read for sums: "$1,200" -> 1200.0, junk -> 0.0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return 0.0 if math.isnan(value) or math.isinf(value) else float(value)
    stripped = _NON_NUMERIC.sub("", cell_to_str(value))
    match = _LEADING_NUMBER.match(stripped)
    if not match:
        return 0.0
    return float(match.group(0))


def column_numbers(dataset: RowDataset, column: str) -> pd.Series:
    if column not in dataset.columns or dataset.empty:
        return pd.Series(dtype=float)
    return dataset.frame[column].map(parse_number).astype(float)


def column_sum(dataset: RowDataset, column: str) -> float:
    return float(column_numbers(dataset, column).sum())


def unique_count(dataset: RowDataset, column: str) -> int:
    if column not in dataset.columns:
        return 0
    values = dataset.text[column]
    return int(values[values != ""].nunique())


def compute_kpi(dataset: RowDataset, spec: KpiSpec) -> Optional[float]:
    if spec.type == "count":
        return len(dataset)
    if spec.column is None:
        return None
    if spec.type == "unique":
        return unique_count(dataset, spec.column)
    if spec.type == "sum":
        return column_sum(dataset, spec.column)
    if spec.type == "mean":
        return column_sum(dataset, spec.column) / len(dataset) if len(dataset) else None
    if spec.type == "ratio":
        denominator = column_sum(dataset, spec.denominator or "")
        return column_sum(dataset, spec.column) / denominator if denominator else None
    return None


def compute_kpis(dataset: RowDataset, specs: Sequence[KpiSpec]) -> Dict[str, Optional[float]]:
    return {spec.key: compute_kpi(dataset, spec) for spec in specs}


def default_kpis(dataset: RowDataset) -> List[KpiSpec]:
    """Sum and mean of the first numeric column, ratio of the first two, plus a row count."""
    numeric = numeric_columns(dataset)
    specs: List[KpiSpec] = [KpiSpec(key="rows", column=None, type="count", label="Rows")]
    if numeric:
        first = numeric[0]
        specs.append(KpiSpec(key="sum_1", column=first, type="sum", label=f"{first} Sum", format="currency"))
        specs.append(KpiSpec(key="mean_1", column=first, type="mean", label=f"{first} Average"))
    if len(numeric) > 1:
        first, second = numeric[0], numeric[1]
        specs.append(
            KpiSpec(key="ratio_1_2", column=first, type="ratio", denominator=second, label=f"{first} ÷ {second}", format="ratio")
        )
    return specs


def default_group_column(dataset: RowDataset) -> str:
    categorical = categorical_columns(dataset)
    return categorical[0] if categorical else dataset.columns[0]


def group_summary(dataset: RowDataset, group_column: str, value_columns: Sequence[str]) -> pd.DataFrame:
    """One row per group value (first-seen order): label, row count, sum and average per value column."""
    out_cols = ["label", "count"]
    for col in value_columns:
        out_cols += [f"{col} Sum", f"{col} Avg"]
    if dataset.empty or group_column not in dataset.columns:
        return pd.DataFrame(columns=out_cols)

    labels = dataset.text[group_column].replace("", UNSPECIFIED_GROUP)
    work = pd.DataFrame({"label": labels})
    for col in value_columns:
        work[col] = column_numbers(dataset, col)
    grouped = work.groupby("label", sort=False)
    summary = grouped.size().rename("count").reset_index()
    for col in value_columns:
        sums = grouped[col].sum().reset_index(drop=True)
        summary[f"{col} Sum"] = sums.astype(float)
        summary[f"{col} Avg"] = (sums / summary["count"]).astype(float)
    return summary[out_cols]


def group_sums(dataset: RowDataset, group_column: str, value_column: Optional[str], *, top_n: Optional[int] = None) -> pd.DataFrame:
    """Chart series: value per group, summed (or counted when no value column), largest first."""
    if dataset.empty or group_column not in dataset.columns:
        return pd.DataFrame(columns=["label", "value"])
    labels = dataset.text[group_column].replace("", UNSPECIFIED_GROUP)
    if value_column:
        values = column_numbers(dataset, value_column)
    else:
        values = pd.Series(1.0, index=labels.index)
    series = pd.DataFrame({"label": labels, "value": values}).groupby("label", sort=False)["value"].sum().reset_index()
    series = series.sort_values("value", ascending=False, kind="stable")
    if top_n:
        series = series.head(top_n)
    return series.reset_index(drop=True)


def distribution(dataset: RowDataset, column: str, *, top_n: Optional[int] = None) -> pd.DataFrame:
    """Row count per distinct display value; blanks reported as the blank sentinel."""
    if dataset.empty or column not in dataset.columns:
        return pd.DataFrame(columns=["label", "value"])
    counts = dataset.text[column].replace("", BLANK_OPTION).value_counts()
    rows = sorted(counts.items(), key=lambda kv: (-kv[1], natural_key(kv[0])))
    if top_n:
        rows = rows[:top_n]
    return pd.DataFrame(rows, columns=["label", "value"])
