import logging
from contextlib import contextmanager
from dataclasses import asdict
from typing import Any, Dict, List, Optional

import altair as alt
import pandas as pd
import streamlit as st

from sheetview import config
from sheetview.config import DASHBOARDS, DashboardSpec, RepoSettings
from sheetview.dashboard import compute_dashboard, compute_pivot_view, resolve_dashboard, state_columns
from sheetview.data import dataset_signature, load_dataset, load_pivot_tables, read_source_bytes
from sheetview.errors import SheetViewError
from sheetview.filters import (
    ViewState,
    clear_sort,
    normalize_view_state,
    reset_filters,
    set_column_search,
    set_page,
    set_search,
    set_selection,
    set_visible_columns,
    toggle_sort,
)
from sheetview.record_entry import FormField, read_form_fields, validate_record
from sheetview.refresh import RefreshMonitor
from sheetview.remote import GitHubContentStore, RecordValidationError, append_record

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
alt.data_transformers.disable_max_rows()


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #e5e7eb;margin-bottom: 10px;}
        .app-top-bar .breadcrumb {color: #6b7280;font-size: 0.9rem;margin-bottom: 2px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;color: #111827;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-header {display: flex;justify-content: space-between;align-items: center;margin-bottom: 8px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(
        f"""
        <div class="card">
          <div class="card-header"><div class="card-title">{title}</div></div>
        """,
        unsafe_allow_html=True,
    )
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def format_filter_summary(state: ViewState) -> str:
    chips = [f"{col}: {', '.join(vals)}" for col, vals in state.selections.items()]
    chips += [f"{col} contains “{text}”" for col, text in state.column_search.items()]
    if state.search:
        chips.append(f"Search: {state.search}")
    if not chips:
        chips = ["Filters: All"]
    return "".join([f"<span class='chip'>{txt}</span>" for txt in chips])


def render_page_header(title: str, breadcrumb: str, filter_summary_html: str):
    inject_base_styles()
    st.markdown(
        f"<div class='app-top-bar'><div class='breadcrumb'>{breadcrumb}</div><div class='page-title'>{title}</div></div>",
        unsafe_allow_html=True,
    )
    st.markdown(f"<div class='chip-row'>{filter_summary_html}</div>", unsafe_allow_html=True)


def format_kpi(value: Optional[float], fmt: str) -> str:
    if value is None or pd.isna(value):
        return "—"
    if fmt == "currency":
        return f"${value:,.2f}"
    if fmt == "ratio":
        return f"{value:.2%}" if value <= 1 else f"{value:,.2f}"
    return f"{value:,.2f}".rstrip("0").rstrip(".")


# ---------- state ----------
def get_state(name: str, columns: List[str], spec: DashboardSpec) -> ViewState:
    raw = st.session_state.get(f"view_state::{name}")
    return normalize_view_state(raw, columns=columns, default_page_size=spec.page_size)


def put_state(name: str, state: ViewState) -> None:
    st.session_state[f"view_state::{name}"] = asdict(state)


@st.cache_resource
def get_monitor(source: str, name: str) -> RefreshMonitor:
    spec = DASHBOARDS[name]
    if spec.layout == "pivot":
        monitor = RefreshMonitor(
            lambda: load_pivot_tables(source, spec.sheet_name),
            lambda ex: (ex.row_count, dataset_signature(ex.tables[-1])),
        )
    else:
        monitor = RefreshMonitor(
            lambda: load_dataset(source, spec.sheet_name, column_letters=spec.column_letters),
            dataset_signature,
        )
    monitor.load()
    monitor.start()
    return monitor


@st.fragment(run_every=config.REFRESH_INTERVAL_SECONDS)
def watch_for_updates(monitor: RefreshMonitor, key: str):
    seen = st.session_state.setdefault(key, monitor.version)
    if monitor.last_error:
        st.caption(f"Last refresh failed, showing previous data: {monitor.last_error}")
    if monitor.version != seen:
        st.session_state[key] = monitor.version
        st.rerun(scope="app")


# ---------- pages ----------
def render_filter_controls(name: str, state: ViewState, controls: List[Dict[str, Any]]) -> ViewState:
    with st.sidebar:
        st.markdown("### Filters")
        for control in controls:
            col = control["column"]
            if control["kind"] == "text":
                text = st.text_input(col, value=state.column_search.get(col, ""), key=f"{name}::text::{col}", placeholder="Type to search")
                if text.strip() != state.column_search.get(col, ""):
                    state = set_column_search(state, col, text)
            else:
                picked = st.multiselect(col, options=control["options"], default=[v for v in state.selections.get(col, []) if v in control["options"]], key=f"{name}::sel::{col}")
                if picked != state.selections.get(col, []):
                    state = set_selection(state, col, picked)
        if st.button("Reset filters", key=f"{name}::reset"):
            for key in [k for k in st.session_state.keys() if str(k).startswith(f"{name}::")]:
                del st.session_state[key]
            state = reset_filters(state)
            put_state(name, state)
            st.rerun()
    return state


def render_table_page(spec: DashboardSpec, monitor: RefreshMonitor):
    dataset = monitor.current
    resolved = resolve_dashboard(spec, dataset)
    state = get_state(spec.name, state_columns(resolved, dataset), spec)

    search = st.text_input("Search", value=state.search, key=f"{spec.name}::search")
    if search.strip() != state.search:
        state = set_search(state, search)
    payload = compute_dashboard(spec, dataset, state)
    state = render_filter_controls(spec.name, state, payload["controls"])
    payload = compute_dashboard(spec, dataset, state)

    render_page_header(spec.title, f"Home / {spec.title}", format_filter_summary(state))
    st.caption(payload["status"])

    with card("Key metrics"):
        kpis = payload["kpis"]
        cols = st.columns(max(1, len(kpis)))
        for col, kpi in zip(cols, kpis):
            col.metric(kpi["label"], format_kpi(kpi["value"], kpi["format"]))

    if payload["charts"]:
        with card("Charts"):
            chart_cols = st.columns(len(payload["charts"]))
            for col, spec_dict in zip(chart_cols, payload["charts"].values()):
                col.altair_chart(alt.Chart.from_dict(spec_dict), use_container_width=True)

    table = payload["table"]
    with card("Rows"):
        c1, c2, c3 = st.columns([3, 2, 3])
        sort_options = ["(none)"] + table["columns"]
        current_sort = state.sort.column if state.sort else "(none)"
        sort_col = c1.selectbox("Sort by", sort_options, index=sort_options.index(current_sort) if current_sort in sort_options else 0)
        if sort_col == "(none)":
            state = clear_sort(state)
        elif sort_col != current_sort:
            state = toggle_sort(state, sort_col)
        if state.sort and c2.button(f"Direction: {state.sort.direction}"):
            put_state(spec.name, toggle_sort(state, state.sort.column))
            st.rerun()
        if spec.layout == "table":
            visible = c3.multiselect("Columns", options=payload["all_columns"], default=state.visible_columns)
            state = set_visible_columns(state, visible)
        payload = compute_dashboard(spec, dataset, state)
        table = payload["table"]
        state = set_page(state, table["page"])
        st.dataframe(pd.DataFrame(table["rows"], columns=table["columns"]), hide_index=True, use_container_width=True)

        p1, p2, p3 = st.columns([1, 2, 1])
        if p1.button("Previous", disabled=table["page"] <= 1):
            put_state(spec.name, set_page(state, table["page"] - 1))
            st.rerun()
        p2.markdown(f"Page {table['page']} of {table['total_pages']}")
        if p3.button("Next", disabled=table["page"] >= table["total_pages"]):
            put_state(spec.name, set_page(state, table["page"] + 1))
            st.rerun()

    put_state(spec.name, state)


def render_pivot_page(spec: DashboardSpec, monitor: RefreshMonitor):
    extraction = monitor.current
    state = get_state(spec.name, list(extraction.columns), spec)
    search = st.text_input("Search", value=state.search, key=f"{spec.name}::search")
    if search.strip() != state.search:
        state = set_search(state, search)
    payload = compute_pivot_view(spec, extraction, state)
    state = render_filter_controls(spec.name, state, payload["controls"])
    payload = compute_pivot_view(spec, extraction, state)

    render_page_header(spec.title, f"Home / {spec.title}", format_filter_summary(state))
    st.caption(payload["status"])
    for table in payload["tables"]:
        with card(f"{table['title']} ({table['matched_rows']} of {table['total_rows']} rows)"):
            st.dataframe(pd.DataFrame(table["rows"], columns=table["columns"]), hide_index=True, use_container_width=True)
    put_state(spec.name, state)


def render_field(f: FormField) -> str:
    label = f"{f.name} *" if f.required else f.name
    if f.field_type == "select":
        choice = st.selectbox(label, options=["", *f.options, "Other…"], key=f"record::{f.index}")
        if choice == "Other…":
            return st.text_input(f"{f.name} (other)", key=f"record::{f.index}::other")
        return choice
    return st.text_input(label, key=f"record::{f.index}", placeholder=f.placeholder)


def render_record_page(source: str):
    render_page_header("Add Record", "Home / Add Record", "")
    settings = RepoSettings()
    st.caption(settings.target_label)
    try:
        fields = read_form_fields(read_source_bytes(source), settings.sheet_name)
    except SheetViewError as exc:
        st.error(exc.status_message)
        return

    with st.form("record_form"):
        cols = st.columns(2)
        values: Dict[str, str] = {}
        for i, f in enumerate(fields):
            with cols[i % 2]:
                values[f.name] = render_field(f)
        submitted = st.form_submit_button("Save record")

    if not submitted:
        return
    errors = validate_record(fields, values)
    if errors:
        for name, message in errors.items():
            st.error(f"{name}: {message}")
        return
    store = GitHubContentStore(settings)
    try:
        append_record(store, values)
    except RecordValidationError as exc:
        st.error(str(exc))
    except SheetViewError as exc:
        st.error(exc.status_message)
    else:
        st.success("Record added successfully")
    finally:
        store.close()


# ---------- UI setup ----------
st.set_page_config(page_title="Spreadsheet Dashboard", layout="wide")
inject_base_styles()
st.title("Spreadsheet Dashboard")
st.caption("Filter, search and sort the shared workbook; charts and KPIs follow the filters.")

source = config.DEFAULT_SOURCE
with st.sidebar:
    st.markdown("### Navigate")
    pages = [spec.title for spec in DASHBOARDS.values()] + ["Add Record"]
    nav_choice = st.radio("Navigate", pages, index=0)
    st.markdown("---")

if nav_choice == "Add Record":
    render_record_page(source)
else:
    spec = next(s for s in DASHBOARDS.values() if s.title == nav_choice)
    try:
        monitor = get_monitor(source, spec.name)
    except SheetViewError as exc:
        st.error(exc.status_message)
        st.stop()
    watch_for_updates(monitor, f"seen_version::{spec.name}")
    if spec.layout == "pivot":
        render_pivot_page(spec, monitor)
    else:
        render_table_page(spec, monitor)
