from __future__ import annotations

import base64
import json
from pathlib import Path

import httpx
import pandas as pd
import pytest

from sheetview.dataset import build_dataset


def make_excel(path: Path, sheets: dict[str, list[list[object]]]) -> Path:
    with pd.ExcelWriter(path) as writer:
        for sheet, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=sheet, header=False, index=False)
    return path


class FakeGitHub:
    """In-memory stand-in for the contents endpoint, used as an httpx.MockTransport handler."""

    def __init__(self, content: bytes, sha: str = "abc1234"):
        self.content = content
        self.sha = sha
        self.put_status = 201
        self.inline = True
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/raw/Combined.xlsx":
            return httpx.Response(200, content=self.content)
        if request.method == "GET":
            body = {"sha": self.sha, "download_url": "https://raw.example.test/raw/Combined.xlsx"}
            body["content"] = base64.encodebytes(self.content).decode("ascii") if self.inline else ""
            return httpx.Response(200, json=body)
        if request.method == "PUT":
            if self.put_status not in (200, 201):
                return httpx.Response(self.put_status, json={"message": "sha mismatch"})
            payload = json.loads(request.content)
            self.content = base64.b64decode(payload["content"])
            self.sha = "def5678"
            return httpx.Response(self.put_status, json={"content": {"sha": self.sha}})
        return httpx.Response(405)


@pytest.fixture()
def sales_grid() -> list[list[object]]:
    return [
        ["Name", "Region", "Amount", "Units"],
        ["Alice", "East", "$1,200", 10],
        ["Bob", "West", "", 3],
        ["", "", "", None],
        ["Alice", "West", "$300", 2],
        ["Carol", "East", "1,000.50", 7],
    ]


@pytest.fixture()
def sales_dataset(sales_grid):
    return build_dataset(sales_grid)


@pytest.fixture()
def pivot_grid() -> list[list[object]]:
    return [
        ["Store", "Item", "Qty"],
        ["North", "Shelf", 4],
        ["North", "Bracket", 9],
        [None, None, None],
        ["Store", "Item", "Qty"],
        ["South", "Shelf", 1],
    ]


@pytest.fixture()
def workbook_path(tmp_path: Path, sales_grid, pivot_grid) -> Path:
    return make_excel(
        tmp_path / "Combined.xlsx",
        {"Sheet1": sales_grid, "Sheet 2": pivot_grid},
    )
