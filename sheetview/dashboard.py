from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, List, Tuple

from sheetview.charts import build_charts, default_charts
from sheetview.config import ChartSpec, DashboardSpec, KpiSpec
from sheetview.dataset import RowDataset
from sheetview.filters import ViewState
from sheetview.metrics import compute_kpis, default_group_column, default_kpis, group_summary
from sheetview.options import (
    categorical_columns,
    derive_all_filter_options,
    filter_control_kind,
    numeric_columns,
)
from sheetview.pivot import PivotExtraction
from sheetview.view import ViewResult, run_query, select_rows


@dataclass(frozen=True)
class ResolvedDashboard:
    """A DashboardSpec with every "infer from data" gap filled in for one dataset."""

    spec: DashboardSpec
    filter_columns: Tuple[str, ...]
    kpis: Tuple[KpiSpec, ...]
    charts: Tuple[ChartSpec, ...]
    group_column: str
    value_columns: Tuple[str, ...]


def resolve_dashboard(spec: DashboardSpec, dataset: RowDataset) -> ResolvedDashboard:
    numeric = tuple(numeric_columns(dataset))
    filter_columns = tuple(c for c in spec.filter_columns if c in dataset.columns)
    if not filter_columns:
        if spec.layout == "pivot":
            filter_columns = dataset.columns
        else:
            filter_columns = tuple(categorical_columns(dataset))
    group_column = spec.group_column if spec.group_column in dataset.columns else default_group_column(dataset)
    kpis = spec.kpis or tuple(default_kpis(dataset))
    charts = spec.charts or tuple(default_charts(group_column, numeric))
    return ResolvedDashboard(
        spec=spec,
        filter_columns=filter_columns,
        kpis=kpis,
        charts=charts,
        group_column=group_column,
        value_columns=numeric,
    )


def filter_controls(resolved: ResolvedDashboard, dataset: RowDataset) -> List[Dict[str, Any]]:
    """Option lists always come from the full dataset, never the filtered view."""
    options = derive_all_filter_options(
        dataset, resolved.filter_columns, include_blank=resolved.spec.include_blank_option
    )
    controls = []
    for col in resolved.filter_columns:
        kind = filter_control_kind(options[col]) if resolved.spec.layout == "pivot" else "multiselect"
        controls.append({"column": col, "kind": kind, "options": options[col] if kind != "text" else []})
    return controls


def status_text(total: int, matched: int) -> str:
    if matched == total:
        return f"Loaded {total:,} rows"
    return f"Showing {matched:,} of {total:,} rows"


def summary_dataset(resolved: ResolvedDashboard, filtered: RowDataset) -> RowDataset:
    frame = group_summary(filtered, resolved.group_column, resolved.value_columns)
    frame = frame.rename(columns={"label": resolved.group_column, "count": "Rows"})
    return RowDataset.from_frame(frame)


def query_view(resolved: ResolvedDashboard, dataset: RowDataset, state: ViewState) -> Tuple[ViewResult, RowDataset]:
    """The table as shown on screen, plus the source rows KPIs and charts are computed over.

    Summary layouts filter the source rows, then search and sort the grouped rows.
    """
    if resolved.spec.layout == "pivot":
        raise ValueError("Pivot dashboards are computed with compute_pivot_view")
    if resolved.spec.layout == "summary":
        filtered = select_rows(dataset, replace(state, search="", sort=None))
        table_state = replace(state, selections={}, column_search={}, visible_columns=[])
        return run_query(summary_dataset(resolved, filtered), table_state), filtered
    result = run_query(dataset, state)
    return result, result.matched


def compute_dashboard(spec: DashboardSpec, dataset: RowDataset, state: ViewState) -> Dict[str, Any]:
    """Full payload for a table or summary dashboard: controls, KPIs, charts and one page of rows."""
    resolved = resolve_dashboard(spec, dataset)
    result, kpi_rows = query_view(resolved, dataset, state)

    return {
        "dashboard": spec.name,
        "title": spec.title,
        "state": asdict(state),
        "status": status_text(len(dataset), len(kpi_rows)),
        "controls": filter_controls(resolved, dataset),
        "kpis": [
            {"key": k.key, "label": k.label or k.key, "format": k.format, "value": v}
            for k, v in zip(resolved.kpis, compute_kpis(kpi_rows, resolved.kpis).values())
        ],
        "charts": build_charts(kpi_rows, resolved.charts),
        "table": result.to_payload(),
        "all_columns": list(dataset.columns),
    }


def compute_pivot_view(spec: DashboardSpec, extraction: PivotExtraction, state: ViewState) -> Dict[str, Any]:
    """Same filters applied to every pivot table at once; tables are not paginated."""
    combined = extraction.combined()
    resolved = resolve_dashboard(spec, combined)
    tables = []
    for idx, table in enumerate(extraction.tables, start=1):
        matched = select_rows(table, state)
        tables.append(
            {
                "title": f"Pivot Table {idx}",
                "columns": list(extraction.columns),
                "rows": matched.text_rows(),
                "total_rows": len(table),
                "matched_rows": len(matched),
            }
        )
    matched_total = sum(t["matched_rows"] for t in tables)
    return {
        "dashboard": spec.name,
        "title": spec.title,
        "state": asdict(state),
        "status": status_text(extraction.row_count, matched_total),
        "controls": filter_controls(resolved, combined),
        "tables": tables,
    }


def state_columns(resolved: ResolvedDashboard, dataset: RowDataset) -> List[str]:
    """Column ids a ViewState may reference: dataset columns, plus summary columns for summary layouts."""
    columns = list(dataset.columns)
    if resolved.spec.layout == "summary":
        columns += [resolved.group_column, "Rows"]
        for col in resolved.value_columns:
            columns += [f"{col} Sum", f"{col} Avg"]
    return columns
