"""
Assessment export for compliscore.

This package provides:

- JSONExporter: the Assessment as a JSON document
- CSVExporter: one quoted row per control
- ExportManager: dispatch by ExportFormat

PDF is a known format but rendering it is left to an external
renderer; asking for it raises UnsupportedExportFormatError.
"""

from __future__ import annotations

from typing import Any

from compliscore.export.base import (
    BaseExporter,
    ExportFormat,
    ExportManager,
    ExportOptions,
    ExportResult,
)
from compliscore.export.csv_exporter import CSV_HEADER, CSVExporter
from compliscore.export.json_exporter import JSONExporter
from compliscore.models import Assessment


def create_export_manager() -> ExportManager:
    """
    Create an export manager with all registered exporters.

    Returns:
        ExportManager configured with the JSON and CSV exporters
    """
    manager = ExportManager()
    manager.register_exporter(JSONExporter())
    manager.register_exporter(CSVExporter())
    return manager


def export_assessment(
    assessment: Assessment,
    format: ExportFormat | str = ExportFormat.JSON,
) -> Any:
    """
    Shape an assessment for transport.

    Args:
        assessment: Assessment to export
        format: "json" returns the Assessment dict, "csv" returns CSV text

    Returns:
        The shaped assessment

    Raises:
        UnsupportedExportFormatError: For "pdf" or an unknown format
    """
    if isinstance(format, str):
        format = ExportFormat.from_string(format)
    return create_export_manager().shape(assessment, format)


__all__ = [
    "BaseExporter",
    "CSV_HEADER",
    "CSVExporter",
    "ExportFormat",
    "ExportManager",
    "ExportOptions",
    "ExportResult",
    "JSONExporter",
    "create_export_manager",
    "export_assessment",
]
