"""
models.py – Plain data-classes shared across every module.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Outcome(str, Enum):
    """Result of a single JUnit test case."""

    PASSED = "Passed"
    FAILED = "Failed"


@dataclass(frozen=True)
class TestRecord:
    """A JUnit test case that carries an Azure DevOps Test Case id."""

    __test__ = False  # not a pytest class

    identifier: int
    raw_name: str
    outcome: Outcome = Outcome.PASSED


@dataclass(frozen=True)
class TestPoint:
    """Binding between a Test Case and a suite inside a Test Plan."""

    __test__ = False

    test_case_id: int
    point_id: int


@dataclass
class RunSummary:
    """Counters accumulated over one sync run."""

    total: int = 0
    success: int = 0
    failed: int = 0
    skipped: int = 0
    failed_ids: list[int] = field(default_factory=list)
