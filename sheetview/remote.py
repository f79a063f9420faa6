from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Dict, Mapping, Optional

import httpx

from sheetview.config import FETCH_TIMEOUT_SECONDS, RepoSettings
from sheetview.errors import FetchFailed, RemoteNotConfigured, RemoteWriteConflict
from sheetview.record_entry import append_row, read_form_fields, validate_record


logger = logging.getLogger(__name__)

CONFLICT_STATUSES = {409, 422}


@dataclass(frozen=True)
class RemoteFile:
    sha: str
    content: bytes


class RecordValidationError(ValueError):
    def __init__(self, errors: Dict[str, str]) -> None:
        self.errors = errors
        super().__init__("Please correct the highlighted fields.")


class GitHubContentStore:
    """Reads and replaces one file through the GitHub contents API."""

    def __init__(self, settings: RepoSettings, *, client: Optional[httpx.Client] = None) -> None:
        self.settings = settings
        self._client = client or httpx.Client(timeout=FETCH_TIMEOUT_SECONDS)

    @property
    def url(self) -> str:
        s = self.settings
        return f"{s.api_url.rstrip('/')}/repos/{s.owner}/{s.repo}/contents/{s.path.lstrip('/')}"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.token}",
            "Accept": "application/vnd.github+json",
        }

    def _require_configured(self) -> None:
        if not self.settings.is_configured:
            raise RemoteNotConfigured()

    def fetch(self) -> RemoteFile:
        self._require_configured()
        try:
            response = self._client.get(self.url, headers=self._headers(), params={"ref": self.settings.branch})
        except httpx.HTTPError as exc:
            raise FetchFailed(f"Unable to fetch repository file metadata: {exc}") from exc
        if response.status_code != 200:
            raise FetchFailed(f"Unable to fetch repository file metadata (HTTP {response.status_code}).")
        meta: Dict[str, Any] = response.json()
        encoded = meta.get("content") or ""
        if encoded and meta.get("encoding", "base64") == "base64":
            content = base64.b64decode(encoded)
        else:
            content = self._download(meta.get("download_url"))
        return RemoteFile(sha=str(meta.get("sha") or ""), content=content)

    def _download(self, url: Optional[str]) -> bytes:
        # Files over 1 MB come back without inline content.
        if not url:
            raise FetchFailed("Repository file has no downloadable content.")
        try:
            response = self._client.get(url, headers=self._headers())
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise FetchFailed(f"Unable to download repository file: {exc}") from exc
        return response.content

    def update(self, content: bytes, sha: str, message: str) -> str:
        """Replace the file; ``sha`` must be the blob the caller read. Returns the new blob sha."""
        self._require_configured()
        body = {
            "message": message,
            "content": base64.b64encode(content).decode("ascii"),
            "sha": sha,
            "branch": self.settings.branch,
        }
        try:
            response = self._client.put(self.url, headers=self._headers(), json=body)
        except httpx.HTTPError as exc:
            raise FetchFailed(f"Unable to write to repository file: {exc}") from exc
        if response.status_code in CONFLICT_STATUSES:
            raise RemoteWriteConflict()
        if response.status_code not in (200, 201):
            raise FetchFailed(f"Unable to write to repository file (HTTP {response.status_code}).")
        return str(response.json().get("content", {}).get("sha") or "")

    def close(self) -> None:
        self._client.close()


def append_record(store: GitHubContentStore, values: Mapping[str, Any], *, sheet_name: Optional[str] = None) -> str:
    """Fetch the workbook, validate and append one row, write it back. Returns the new sha."""
    sheet_name = sheet_name or store.settings.sheet_name
    remote = store.fetch()
    fields = read_form_fields(remote.content, sheet_name)
    errors = validate_record(fields, values)
    if errors:
        raise RecordValidationError(errors)
    updated = append_row(remote.content, sheet_name, fields, values)
    message = f"Append record to {PurePosixPath(store.settings.path).name}"
    new_sha = store.update(updated, remote.sha, message)
    logger.info("Appended record to %s (%s -> %s)", store.settings.path, remote.sha[:7], new_sha[:7])
    return new_sha
