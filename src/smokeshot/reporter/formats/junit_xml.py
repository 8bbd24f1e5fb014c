"""JUnit XML report generator for CI integration."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from datetime import datetime
from itertools import groupby
from pathlib import Path

from smokeshot.core.types import TestResult, TestStatus


class JunitXmlReporter:
    def __init__(self, output_dir: Path):
        self.output_dir = output_dir

    def generate(self, results: list[TestResult]) -> Path:
        testsuites = ET.Element("testsuites")
        ordered = sorted(results, key=lambda r: r.suite)
        for suite, group in groupby(ordered, key=lambda r: r.suite):
            self._add_suite(testsuites, suite or "smokeshot", list(group))

        tree = ET.ElementTree(testsuites)
        path = self.output_dir / "junit-results.xml"
        ET.indent(tree, space="  ")
        tree.write(str(path), encoding="unicode", xml_declaration=True)
        return path

    @staticmethod
    def _add_suite(parent: ET.Element, suite: str, results: list[TestResult]) -> None:
        testsuite = ET.SubElement(parent, "testsuite", {
            "name": suite,
            "tests": str(len(results)),
            "failures": str(sum(1 for r in results if r.status == TestStatus.FAILED)),
            "errors": str(sum(1 for r in results if r.status == TestStatus.ERROR)),
            "skipped": str(sum(1 for r in results if r.status == TestStatus.SKIPPED)),
            "time": f"{sum(r.duration_ms for r in results) / 1000:.3f}",
            "timestamp": datetime.now().isoformat(),
        })

        for r in results:
            testcase = ET.SubElement(testsuite, "testcase", {
                "name": r.name,
                "classname": f"{suite}.{r.device_serial}" if r.device_serial else suite,
                "time": f"{r.duration_ms / 1000:.3f}",
            })

            if r.status == TestStatus.FAILED:
                failure = ET.SubElement(testcase, "failure", {
                    "message": r.error_message or "Test failed",
                    "type": "AssertionError",
                })
                failure.text = r.error_message or ""
            elif r.status == TestStatus.ERROR:
                error = ET.SubElement(testcase, "error", {
                    "message": r.error_message or "Test error",
                    "type": (r.error_message or "Exception").split(":", 1)[0],
                })
                error.text = r.error_message or ""
            elif r.status == TestStatus.SKIPPED:
                ET.SubElement(testcase, "skipped")
