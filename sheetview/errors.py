from __future__ import annotations


class SheetViewError(Exception):
    """Base class for every error surfaced to the presentation layer."""

    default_message = "Something went wrong while loading the workbook."

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.default_message)

    @property
    def status_message(self) -> str:
        return str(self)


class MissingSheet(SheetViewError):
    default_message = "The expected sheet was not found in the workbook."

    def __init__(self, sheet_name: str, available: tuple = ()) -> None:
        self.sheet_name = sheet_name
        self.available = tuple(available)
        super().__init__(f"{sheet_name} not found in the workbook.")


class EmptyDataset(SheetViewError):
    default_message = "No header or data rows found."


class FetchFailed(SheetViewError):
    default_message = "Unable to load the workbook. Please ensure the file is present."


class RemoteWriteConflict(SheetViewError):
    default_message = "The remote file changed since it was read. Reload and try again."


class RemoteNotConfigured(SheetViewError):
    default_message = "Repository details and token are required to save."
