"""
Exporter interface and format dispatch for assessments.

An exporter works in two steps. `shape` builds the value handed to API
callers (a dict for JSON, text for CSV). `render` turns that into the
text written to disk.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from compliscore.errors import UnsupportedExportFormatError
from compliscore.models import Assessment

logger = logging.getLogger(__name__)


class ExportFormat(Enum):
    """Assessment export formats."""

    JSON = "json"
    CSV = "csv"
    # Recognized but never rendered here
    PDF = "pdf"

    @classmethod
    def from_string(cls, value: str) -> ExportFormat:
        """
        Parse a format name, ignoring case.

        Raises:
            UnsupportedExportFormatError: If the name is not a known format
        """
        try:
            return cls(value.lower())
        except ValueError:
            raise UnsupportedExportFormatError(value) from None


@dataclass
class ExportOptions:
    """
    How an assessment should be exported.

    Attributes:
        format: Output format
        output_path: File to write; None returns the content instead
        indent: JSON indentation, None for a single line
    """

    format: ExportFormat = ExportFormat.JSON
    output_path: Path | str | None = None
    indent: int | None = 2


@dataclass
class ExportResult:
    """
    Outcome of ExportManager.export.

    Exactly one of `output_path` and `content` is set on success.
    `error` is set on failure.
    """

    success: bool
    format: ExportFormat
    output_path: Path | None = None
    content: str | None = None
    bytes_written: int = 0
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    error: str | None = None


class BaseExporter(ABC):
    """Base class for one export format."""

    @property
    @abstractmethod
    def format(self) -> ExportFormat:
        """Format produced by this exporter."""

    @abstractmethod
    def shape(self, assessment: Assessment) -> Any:
        """Return the assessment in this format's transport shape."""

    def render(self, assessment: Assessment, options: ExportOptions) -> str:
        """Return the text written for an assessment. Text shapes pass through."""
        return self.shape(assessment)

    def export(self, assessment: Assessment, options: ExportOptions) -> ExportResult:
        """
        Render an assessment and either write it or return it.

        I/O and serialization problems are reported on the result rather
        than raised.
        """
        try:
            content = self.render(assessment, options)
            size = len(content.encode("utf-8"))
            if options.output_path is None:
                return ExportResult(True, self.format, content=content, bytes_written=size)
            path = self._write(content, Path(options.output_path))
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"{self.format.value.upper()} export failed: {e}")
            return ExportResult(False, self.format, error=str(e))

        logger.info(f"Exported {assessment.framework_id} to {path} ({size} bytes)")
        return ExportResult(True, self.format, output_path=path, bytes_written=size)

    @staticmethod
    def _write(content: str, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        # newline="" so "\n" is written as-is on every platform
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        return path


class ExportManager:
    """Registry of exporters keyed by format."""

    def __init__(self):
        self._exporters: dict[ExportFormat, BaseExporter] = {}

    def register_exporter(self, exporter: BaseExporter) -> None:
        self._exporters[exporter.format] = exporter

    def available_formats(self) -> list[ExportFormat]:
        return list(self._exporters)

    def get_exporter(self, format: ExportFormat) -> BaseExporter:
        """
        Look up the exporter for a format.

        Raises:
            UnsupportedExportFormatError: If no exporter is registered for it
        """
        try:
            return self._exporters[format]
        except KeyError:
            raise UnsupportedExportFormatError(format.value) from None

    def shape(self, assessment: Assessment, format: ExportFormat) -> Any:
        return self.get_exporter(format).shape(assessment)

    def export(self, assessment: Assessment, options: ExportOptions) -> ExportResult:
        """Export with the exporter for `options.format`, reporting a missing one as failure."""
        exporter = self._exporters.get(options.format)
        if exporter is None:
            return ExportResult(
                success=False,
                format=options.format,
                error=f"No exporter registered for format: {options.format.value}",
            )
        return exporter.export(assessment, options)
