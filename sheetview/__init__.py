"""Core (UI-agnostic) spreadsheet dashboard logic.

This package contains:
- workbook loading (XLSX -> raw grid -> row dataset)
- pivot block extraction for sheets holding several stacked tables
- view state normalization and the filter/search/sort/paginate pipeline
- KPI and chart-series computation (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
- record entry: form inference, row append and remote write-back
"""
