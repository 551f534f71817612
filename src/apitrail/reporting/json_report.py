"""JSON reporter for machine consumption."""

from __future__ import annotations

import json
from pathlib import Path

from apitrail.reporting.assembler import SummaryReport
from apitrail.reporting.base import BaseReporter


class JSONReporter(BaseReporter):
    """Render a summary as indented JSON."""

    def __init__(self, output_path: str | Path | None = None, indent: int = 2) -> None:
        super().__init__(output_path)
        self.indent = indent

    @property
    def file_extension(self) -> str:
        return ".json"

    def generate(self, report: SummaryReport) -> str:
        return json.dumps(report.to_dict(), indent=self.indent, default=str)
