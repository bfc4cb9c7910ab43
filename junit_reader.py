"""
junit_reader.py – Read a JUnit XML report and extract Test Case ids.

Test names are expected to embed the Azure DevOps work-item id, e.g.
``"TC ID: 100001 [Login]"``.  Test cases without such an id are ignored.
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Iterable

from models import Outcome, TestRecord

logger = logging.getLogger("junit-ado-sync")

TC_ID_PATTERN = re.compile(r"TC ID:\s*(\d{6,})", re.IGNORECASE)


class ReportError(Exception):
    """The JUnit report could not be read or parsed."""


def load_report(path: str | Path) -> ET.Element | None:
    """Read and parse *path*; return ``None`` for an empty file."""
    try:
        data = Path(path).read_bytes()
    except OSError as exc:
        raise ReportError(f'Failed to read JUnit file "{path}": {exc.strerror or exc}') from exc

    if not data.strip():
        logger.debug("JUnit file %s is empty.", path)
        return None

    try:
        return ET.fromstring(data)
    except ET.ParseError as exc:
        raise ReportError(f"Failed to parse JUnit XML: {exc}") from exc


def collect_testcases(root: ET.Element | None) -> list[ET.Element]:
    """Return the <testcase> elements of a ``testsuite`` or ``testsuites`` root."""
    if root is None:
        return []
    if root.tag == "testsuite":
        return root.findall("testcase")
    if root.tag == "testsuites":
        testcases: list[ET.Element] = []
        for suite in root.findall("testsuite"):
            testcases.extend(suite.findall("testcase"))
        return testcases
    logger.debug("Unexpected JUnit root element <%s>; no test cases read.", root.tag)
    return []


def parse_tc_id(name: str) -> int | None:
    """Return the Test Case id embedded in *name*, if any."""
    match = TC_ID_PATTERN.search(name)
    return int(match.group(1)) if match else None


def extract_records(testcases: Iterable[ET.Element]) -> list[TestRecord]:
    """Turn test-case elements into TestRecords, keeping order and duplicates."""
    records: list[TestRecord] = []
    for tc in testcases:
        name = tc.get("name", "")
        tc_id = parse_tc_id(name)
        if tc_id is None:
            logger.debug("No TC ID in test case '%s'; skipping.", name)
            continue
        failed = tc.find("failure") is not None or tc.find("error") is not None
        records.append(
            TestRecord(
                identifier=tc_id,
                raw_name=name,
                outcome=Outcome.FAILED if failed else Outcome.PASSED,
            )
        )
    return records
