from __future__ import annotations

import json
import xml.etree.ElementTree as ET

from smokeshot.core import types
from smokeshot.reporter.generator import ReportGenerator


def sample_results() -> list[types.TestResult]:
    return [
        types.TestResult(
            name="can take a screenshot", suite="Running Bevy Example",
            status=types.TestStatus.PASSED, duration_ms=1200, device_serial="emulator-5554",
            screenshots=["./screenshot.png"],
        ),
        types.TestResult(
            name="can take a screenshot", suite="Running Bevy Example",
            status=types.TestStatus.FAILED, duration_ms=300, device_serial="R58M",
            error_message="Expected foreground package 'org.bevyengine.example', got 'com.other.app'",
        ),
        types.TestResult(
            name="can take a screenshot", suite="Running Bevy Example",
            status=types.TestStatus.ERROR, device_serial="R58M",
            error_message="ScreenshotError: No space left on device",
        ),
    ]


def test_generates_json_and_junit(tmp_path):
    generated = ReportGenerator(tmp_path).generate(sample_results())

    assert sorted(generated) == sorted(
        [str(tmp_path / "report.json"), str(tmp_path / "junit-results.xml")]
    )


def test_json_report_summary(tmp_path):
    ReportGenerator(tmp_path).generate(sample_results(), formats=["json"])
    report = json.loads((tmp_path / "report.json").read_text())

    assert report["summary"] == {
        "total": 3, "passed": 1, "failed": 1, "errors": 1, "duration_ms": 1500,
    }
    assert report["results"][0]["suite"] == "Running Bevy Example"
    assert report["results"][0]["screenshots"] == ["./screenshot.png"]


def test_junit_report_groups_by_suite(tmp_path):
    ReportGenerator(tmp_path).generate(sample_results(), formats=["junit_xml"])
    root = ET.parse(tmp_path / "junit-results.xml").getroot()

    suite = root.find("testsuite")
    assert suite.get("name") == "Running Bevy Example"
    assert (suite.get("tests"), suite.get("failures"), suite.get("errors")) == ("3", "1", "1")
    cases = suite.findall("testcase")
    assert cases[0].get("classname") == "Running Bevy Example.emulator-5554"
    assert cases[1].find("failure").get("type") == "AssertionError"
    assert cases[2].find("error").get("type") == "ScreenshotError"


def test_unknown_format_is_skipped(tmp_path):
    assert ReportGenerator(tmp_path).generate(sample_results(), formats=["pdf"]) == []
