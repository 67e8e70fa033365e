"""Checkstyle runner.

Checkstyle's exit status is the number of violations it found, so it says
nothing about whether the run itself worked. Success is judged by whether the
XML report on stdout parses.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET

from formatbot_core.errors import StyleCheckError
from formatbot_core.models import Finding
from formatbot_core.utils.code import filter_by_extension
from formatbot_core.utils.process import run_command

logger = logging.getLogger(__name__)


def parse_report(xml_text: str) -> list[Finding]:
    """Parse a Checkstyle ``-f xml`` report into findings, in report order."""
    # Checkstyle may print audit banners around the XML document.
    start = xml_text.find("<?xml")
    if start < 0:
        start = xml_text.find("<checkstyle")
    end = xml_text.rfind("</checkstyle>")
    if start < 0 or end < 0:
        raise StyleCheckError("No Checkstyle XML report in output")
    try:
        root = ET.fromstring(xml_text[start : end + len("</checkstyle>")])
    except ET.ParseError as e:
        raise StyleCheckError(f"Could not parse Checkstyle report: {e}") from e

    findings = []
    for file_el in root.iter("file"):
        path = file_el.get("name", "")
        for error in file_el.iter("error"):
            column = error.get("column")
            findings.append(
                Finding(
                    path=path,
                    line=int(error.get("line", "0")),
                    column=int(column) if column else None,
                    severity=error.get("severity", "warning"),
                    message=error.get("message", ""),
                    source=error.get("source", ""),
                )
            )
    return findings


class StyleChecker:
    def __init__(self, cmd, extensions=(".java",), timeout: float = 300, cwd: str | None = None):
        self.cmd = list(cmd)
        self.extensions = tuple(extensions)
        self.timeout = timeout
        self.cwd = cwd

    def run_checks(self, paths: list[str]) -> list[Finding]:
        checked = filter_by_extension(paths, self.extensions)
        if not checked:
            logger.debug("No files to style check")
            return []

        logger.debug("Running Checkstyle over %d file(s)", len(checked))
        result = run_command(self.cmd + ["-f", "xml"] + checked, cwd=self.cwd, timeout=self.timeout)
        if result.timed_out:
            raise StyleCheckError(f"Checkstyle timed out after {self.timeout}s")
        findings = parse_report(result.stdout)
        logger.info("Checkstyle reported %d finding(s)", len(findings))
        return findings
