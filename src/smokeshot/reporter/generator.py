"""Report generation engine that dispatches to format-specific generators."""

from __future__ import annotations

import logging
from pathlib import Path

from smokeshot.core.types import TestResult

logger = logging.getLogger(__name__)

FORMATS = ("json", "junit_xml")


class ReportGenerator:
    """Generates test reports in multiple formats."""

    def __init__(self, output_dir: str | Path = "./reports"):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def generate(self, results: list[TestResult], formats: list[str] | None = None) -> list[str]:
        """Generate reports in specified formats. Returns list of file paths."""
        formats = formats or list(FORMATS)
        generated = []

        for fmt in formats:
            path = self._generate_format(fmt, results)
            if path:
                generated.append(str(path))
                logger.info("Generated %s report: %s", fmt, path)

        return generated

    def _generate_format(self, fmt: str, results: list[TestResult]) -> Path | None:
        if fmt == "json":
            from smokeshot.reporter.formats.json_report import JsonReporter
            return JsonReporter(self.output_dir).generate(results)
        elif fmt == "junit_xml":
            from smokeshot.reporter.formats.junit_xml import JunitXmlReporter
            return JunitXmlReporter(self.output_dir).generate(results)
        else:
            logger.warning("Unknown report format: %s", fmt)
            return None
