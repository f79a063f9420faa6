from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

import altair as alt
import pandas as pd

from sheetview.config import ChartSpec
from sheetview.dataset import RowDataset
from sheetview.metrics import distribution, group_sums

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def bar_chart(series: pd.DataFrame, *, title: str, x_title: str, y_title: str, value_format: str = ",") -> alt.Chart:
    return (
        alt.Chart(series, title=title)
        .mark_bar()
        .encode(
            x=alt.X("label:N", title=x_title, sort="-y"),
            y=alt.Y("value:Q", title=y_title, axis=alt.Axis(format="~s")),
            tooltip=[alt.Tooltip("label:N", title=x_title), alt.Tooltip("value:Q", title=y_title, format=value_format)],
        )
    )


def series_for(dataset: RowDataset, spec: ChartSpec) -> pd.DataFrame:
    if spec.type == "distribution":
        return distribution(dataset, spec.column or "", top_n=spec.top_n)
    return group_sums(dataset, spec.column or "", spec.value_column, top_n=spec.top_n)


def build_chart(dataset: RowDataset, spec: ChartSpec) -> Optional[alt.Chart]:
    series = series_for(dataset, spec)
    if series.empty:
        return None
    if spec.type == "distribution":
        title = spec.title or f"{spec.column} distribution"
        return bar_chart(series, title=title, x_title=spec.column or "", y_title="Rows", value_format=",d")
    y_title = f"{spec.value_column} Sum" if spec.value_column else "Rows"
    title = spec.title or f"{y_title} by {spec.column}"
    return bar_chart(series, title=title, x_title=spec.column or "", y_title=y_title)


def default_charts(group_column: str, value_columns: Sequence[str]) -> list:
    charts = [ChartSpec(key="rows_by_group", type="distribution", column=group_column)]
    if value_columns:
        charts.append(ChartSpec(key="sum_by_group", type="group_sum", column=group_column, value_column=value_columns[0]))
    return charts


def build_charts(dataset: RowDataset, specs: Sequence[ChartSpec]) -> Dict[str, Dict[str, Any]]:
    out: Dict[str, Dict[str, Any]] = {}
    for spec in specs:
        chart = build_chart(dataset, spec)
        if chart is not None:
            out[spec.key] = to_vega_spec(chart)
    return out
