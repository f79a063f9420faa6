from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from sheetview.config import DEFAULT_PAGE_SIZE


class SortModel(BaseModel):
    column: str
    direction: Literal["asc", "desc"] = "asc"


class ViewStateModel(BaseModel):
    selections: Dict[str, List[str]] = Field(default_factory=dict)
    column_search: Dict[str, str] = Field(default_factory=dict)
    search: str = ""
    sort: Optional[SortModel] = None
    visible_columns: List[str] = Field(default_factory=list)
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE


class DashboardInfo(BaseModel):
    name: str
    title: str
    sheet_name: str
    layout: str


class DashboardListResponse(BaseModel):
    dashboards: List[DashboardInfo]


class FormFieldModel(BaseModel):
    name: str
    index: int
    field_type: str
    options: List[str] = Field(default_factory=list)
    required: bool = True
    placeholder: str = ""


class RecordFormResponse(BaseModel):
    sheet_name: str
    target: str
    fields: List[FormFieldModel]


class RecordModel(BaseModel):
    values: Dict[str, str]


class RecordSavedResponse(BaseModel):
    message: str
    sha: str
