from __future__ import annotations

import logging
import math
from typing import Dict

import numpy as np
import pandas as pd
from fastapi import Depends, FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import (
    DashboardInfo,
    DashboardListResponse,
    FormFieldModel,
    RecordFormResponse,
    RecordModel,
    RecordSavedResponse,
    ViewStateModel,
)
from sheetview import config
from sheetview.config import DASHBOARDS, DashboardSpec, RepoSettings
from sheetview.dashboard import (
    compute_dashboard,
    compute_pivot_view,
    filter_controls,
    query_view,
    resolve_dashboard,
    state_columns,
)
from sheetview.data import dataset_to_csv, load_dataset, load_pivot_tables, read_source_bytes
from sheetview.errors import (
    EmptyDataset,
    FetchFailed,
    MissingSheet,
    RemoteNotConfigured,
    RemoteWriteConflict,
    SheetViewError,
)
from sheetview.filters import ViewState, normalize_view_state
from sheetview.record_entry import read_form_fields
from sheetview.remote import GitHubContentStore, RecordValidationError, append_record


app = FastAPI(title="Sheetview Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:8501"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_STATUS: Dict[type, int] = {
    MissingSheet: 404,
    EmptyDataset: 422,
    FetchFailed: 502,
    RemoteWriteConflict: 409,
    RemoteNotConfigured: 400,
}


def get_source() -> str:
    return config.DEFAULT_SOURCE


def get_repo_settings() -> RepoSettings:
    return RepoSettings()


def get_store(settings: RepoSettings = Depends(get_repo_settings)) -> GitHubContentStore:
    return GitHubContentStore(settings)


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


def _error(exc: Exception, operation: str) -> JSONResponse:
    if isinstance(exc, SheetViewError):
        status = next((code for kind, code in ERROR_STATUS.items() if isinstance(exc, kind)), 500)
        logger.warning("%s failed: %s", operation, exc)
        return JSONResponse(status_code=status, content={"error": exc.status_message, "type": type(exc).__name__})
    logger.exception("%s failed", operation)
    return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


def _not_found(name: str) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": f"Unknown dashboard: {name}", "type": "NotFound"})


def _state(model: ViewStateModel, columns, spec: DashboardSpec) -> ViewState:
    return normalize_view_state(model.model_dump(), columns=columns, default_page_size=spec.page_size)


@app.get("/dashboards")
def list_dashboards():
    infos = [
        DashboardInfo(name=s.name, title=s.title, sheet_name=s.sheet_name, layout=s.layout) for s in DASHBOARDS.values()
    ]
    return DashboardListResponse(dashboards=infos)


@app.get("/dashboards/{name}/meta")
def dashboard_meta(name: str, source: str = Depends(get_source)):
    spec = DASHBOARDS.get(name)
    if spec is None:
        return _not_found(name)
    try:
        if spec.layout == "pivot":
            extraction = load_pivot_tables(source, spec.sheet_name)
            dataset = extraction.combined()
            table_count = len(extraction.tables)
        else:
            dataset = load_dataset(source, spec.sheet_name, column_letters=spec.column_letters)
            table_count = 1
        resolved = resolve_dashboard(spec, dataset)
        return _json(
            {
                "dashboard": spec.name,
                "columns": list(dataset.columns),
                "row_count": len(dataset),
                "table_count": table_count,
                "group_column": resolved.group_column,
                "value_columns": list(resolved.value_columns),
                "controls": filter_controls(resolved, dataset),
                "kpis": [{"key": k.key, "label": k.label or k.key, "type": k.type} for k in resolved.kpis],
            }
        )
    except Exception as exc:
        return _error(exc, "dashboard_meta")


@app.post("/dashboards/{name}/query")
def dashboard_query(name: str, state: ViewStateModel, source: str = Depends(get_source)):
    spec = DASHBOARDS.get(name)
    if spec is None:
        return _not_found(name)
    try:
        if spec.layout == "pivot":
            extraction = load_pivot_tables(source, spec.sheet_name)
            view_state = _state(state, extraction.columns, spec)
            return _json(compute_pivot_view(spec, extraction, view_state))
        dataset = load_dataset(source, spec.sheet_name, column_letters=spec.column_letters)
        view_state = _state(state, state_columns(resolve_dashboard(spec, dataset), dataset), spec)
        return _json(compute_dashboard(spec, dataset, view_state))
    except Exception as exc:
        return _error(exc, "dashboard_query")


@app.post("/dashboards/{name}/export")
def dashboard_export(name: str, state: ViewStateModel, source: str = Depends(get_source)):
    spec = DASHBOARDS.get(name)
    if spec is None or spec.layout == "pivot":
        return _not_found(name)
    try:
        dataset = load_dataset(source, spec.sheet_name, column_letters=spec.column_letters)
        resolved = resolve_dashboard(spec, dataset)
        result, _ = query_view(resolved, dataset, _state(state, state_columns(resolved, dataset), spec))
        csv_bytes = dataset_to_csv(result.matched, result.columns)
        return Response(
            content=csv_bytes,
            media_type="text/csv",
            headers={"Content-Disposition": f"attachment; filename={spec.name}.csv"},
        )
    except Exception as exc:
        return _error(exc, "dashboard_export")


@app.get("/records/form")
def record_form(source: str = Depends(get_source), settings: RepoSettings = Depends(get_repo_settings)):
    try:
        fields = read_form_fields(read_source_bytes(source), settings.sheet_name)
        return RecordFormResponse(
            sheet_name=settings.sheet_name,
            target=settings.target_label,
            fields=[
                FormFieldModel(
                    name=f.name,
                    index=f.index,
                    field_type=f.field_type,
                    options=list(f.options),
                    required=f.required,
                    placeholder=f.placeholder,
                )
                for f in fields
            ],
        )
    except Exception as exc:
        return _error(exc, "record_form")


@app.post("/records")
def create_record(record: RecordModel, store: GitHubContentStore = Depends(get_store)):
    try:
        sha = append_record(store, record.values)
        return RecordSavedResponse(message="Record added successfully", sha=sha)
    except RecordValidationError as exc:
        return JSONResponse(
            status_code=422,
            content={"error": str(exc), "type": type(exc).__name__, "fields": exc.errors},
        )
    except Exception as exc:
        return _error(exc, "create_record")
    finally:
        store.close()
