"""
CSV export for compliscore.

Output is byte-exact:

    Control ID,Status,Evidence
    "cis-aws-1.2","implemented","aws-iam-user-mfa-enabled: pass - {...}"

The header is unquoted; every data cell is double-quoted with embedded
quotes doubled; evidence entries are joined with "; "; lines are
separated by "\\n" with no trailing newline.
"""

from __future__ import annotations

import csv
import io

from compliscore.export.base import BaseExporter, ExportFormat
from compliscore.models import Assessment

CSV_HEADER = "Control ID,Status,Evidence"
EVIDENCE_SEPARATOR = "; "


class CSVExporter(BaseExporter):
    """Exports assessments as one CSV row per control."""

    @property
    def format(self) -> ExportFormat:
        return ExportFormat.CSV

    def shape(self, assessment: Assessment) -> str:
        output = io.StringIO()
        writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")

        for control in assessment.controls:
            writer.writerow([
                control.control_id,
                control.status.value,
                EVIDENCE_SEPARATOR.join(control.evidence),
            ])

        rows = output.getvalue()
        if not rows:
            return CSV_HEADER
        return CSV_HEADER + "\n" + rows.rstrip("\n")
