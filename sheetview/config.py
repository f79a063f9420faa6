from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple

from pydantic_settings import BaseSettings, SettingsConfigDict


DATA_DIR = Path(__file__).resolve().parents[1] / "data"
DEFAULT_WORKBOOK = DATA_DIR / "Combined.xlsx"
DEFAULT_SOURCE = os.environ.get("SHEETVIEW_SOURCE", str(DEFAULT_WORKBOOK))

PRIMARY_SHEET_NAME = "Sheet1"
PIVOT_SHEET_NAME = "Sheet 2"

DEFAULT_PAGE_SIZE = 12
MAX_PAGE_SIZE = 500
REFRESH_INTERVAL_SECONDS = 15.0
FETCH_TIMEOUT_SECONDS = 30.0

BLANK_OPTION = "(Blank)"
UNSPECIFIED_GROUP = "Unspecified"
SELECT_FILTER_MAX_VALUES = 20
CATEGORICAL_MAX_UNIQUE = 50

KPI_TYPES = ("unique", "sum", "count", "mean", "ratio")
CHART_TYPES = ("group_sum", "distribution")
LAYOUTS = ("table", "summary", "pivot")


@dataclass(frozen=True)
class KpiSpec:
    key: str
    column: Optional[str]
    type: str = "sum"
    label: str = ""
    denominator: Optional[str] = None
    format: str = "number"

    def __post_init__(self) -> None:
        if self.type not in KPI_TYPES:
            raise ValueError(f"Unknown KPI type: {self.type}")
        if self.type == "ratio" and not self.denominator:
            raise ValueError(f"KPI {self.key} needs a denominator column")


@dataclass(frozen=True)
class ChartSpec:
    key: str
    type: str
    column: Optional[str] = None
    value_column: Optional[str] = None
    title: str = ""
    top_n: int = 15

    def __post_init__(self) -> None:
        if self.type not in CHART_TYPES:
            raise ValueError(f"Unknown chart type: {self.type}")


@dataclass(frozen=True)
class DashboardSpec:
    """Declarative description of one dashboard variant.

    Empty ``filter_columns``/``kpis``/``charts`` mean "infer from the data".
    ``column_letters`` restricts the sheet to a fixed set of Excel columns.
    """

    name: str
    title: str
    sheet_name: str
    layout: str = "table"
    column_letters: Tuple[str, ...] = ()
    filter_columns: Tuple[str, ...] = ()
    kpis: Tuple[KpiSpec, ...] = ()
    charts: Tuple[ChartSpec, ...] = ()
    group_column: Optional[str] = None
    page_size: int = DEFAULT_PAGE_SIZE
    include_blank_option: bool = False

    def __post_init__(self) -> None:
        if self.layout not in LAYOUTS:
            raise ValueError(f"Unknown layout: {self.layout}")


SUMMARY_DASHBOARD = DashboardSpec(
    name="summary",
    title="Floating Shelf Summary",
    sheet_name=PRIMARY_SHEET_NAME,
    layout="summary",
    column_letters=("A", "B", "C", "I", "M", "O", "R", "W", "AJ"),
)

TABLE_DASHBOARD = DashboardSpec(
    name="records",
    title="All Records",
    sheet_name=PRIMARY_SHEET_NAME,
    layout="table",
    include_blank_option=True,
)

PIVOT_DASHBOARD = DashboardSpec(
    name="pivot",
    title="Pivot Tables",
    sheet_name=PIVOT_SHEET_NAME,
    layout="pivot",
)

DASHBOARDS: Dict[str, DashboardSpec] = {
    spec.name: spec for spec in (SUMMARY_DASHBOARD, TABLE_DASHBOARD, PIVOT_DASHBOARD)
}


class RepoSettings(BaseSettings):
    """Where appended records are written back to (GitHub contents API)."""

    model_config = SettingsConfigDict(env_prefix="SHEETVIEW_GITHUB_", env_file=".env", extra="ignore")

    owner: str = ""
    repo: str = ""
    branch: str = "main"
    path: str = "data/Combined.xlsx"
    token: str = ""
    api_url: str = "https://api.github.com"
    sheet_name: str = PRIMARY_SHEET_NAME

    @property
    def is_configured(self) -> bool:
        return bool(self.owner.strip() and self.repo.strip() and self.token.strip())

    @property
    def target_label(self) -> str:
        if not (self.owner and self.repo):
            return "Repository details are missing."
        return f"Saving to {self.owner}/{self.repo}/{self.path} on {self.branch}."
