"""
JSON export for compliscore.

The JSON shape is the Assessment itself, keyed by its camelCase field
names.
"""

from __future__ import annotations

import json
from typing import Any

from compliscore.export.base import BaseExporter, ExportFormat, ExportOptions
from compliscore.models import Assessment


class JSONExporter(BaseExporter):
    """Exports assessments as JSON."""

    @property
    def format(self) -> ExportFormat:
        return ExportFormat.JSON

    def shape(self, assessment: Assessment) -> dict[str, Any]:
        return assessment.to_dict()

    def render(self, assessment: Assessment, options: ExportOptions) -> str:
        return json.dumps(self.shape(assessment), indent=options.indent, default=str)
