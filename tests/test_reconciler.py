"""Tests for the per-record update loop."""

import itertools
import logging
import uuid
from unittest.mock import Mock, call

import pytest

from ado_client import ADOClient, AutomationUpdateError, UpdatePhase
from models import Outcome, RunSummary, TestRecord
from reconciler import Reconciler, count_known

RECORDS = [
    TestRecord(100001, "TC ID: 100001 [Login]", Outcome.PASSED),
    TestRecord(100002, "TC ID: 100002 [Logout]", Outcome.FAILED),
    TestRecord(100003, "TC ID: 100003 [Profile]", Outcome.PASSED),
]


@pytest.fixture
def ado() -> Mock:
    return Mock(spec=ADOClient)


def _sequential_ids():
    counter = itertools.count(1)
    return lambda: uuid.UUID(int=next(counter))


def test_reconcile_all_succeed(ado) -> None:
    summary = Reconciler(ado, id_factory=_sequential_ids()).reconcile(
        RECORDS, RunSummary(total=3)
    )

    assert (summary.success, summary.failed) == (3, 0)
    assert ado.apply_automation.call_args_list == [
        call(RECORDS[0], str(uuid.UUID(int=1))),
        call(RECORDS[1], str(uuid.UUID(int=2))),
        call(RECORDS[2], str(uuid.UUID(int=3))),
    ]


def test_reconcile_generates_fresh_id_per_record(ado) -> None:
    records = [RECORDS[0], RECORDS[0]]

    Reconciler(ado).reconcile(records, RunSummary())

    first_id = ado.apply_automation.call_args_list[0].args[1]
    second_id = ado.apply_automation.call_args_list[1].args[1]
    assert first_id != second_id
    assert uuid.UUID(first_id).version == 4


def test_reconcile_continues_after_failure(ado, caplog: pytest.LogCaptureFixture) -> None:
    """A failing record is counted and the next one still runs."""
    ado.apply_automation.side_effect = [
        None,
        AutomationUpdateError(100002, UpdatePhase.METADATA, "Work item does not exist."),
        None,
    ]

    with caplog.at_level(logging.INFO, logger="junit-ado-sync"):
        summary = Reconciler(ado).reconcile(RECORDS, RunSummary(total=3))

    assert (summary.success, summary.failed) == (2, 1)
    assert summary.failed_ids == [100002]
    assert ado.apply_automation.call_count == 3
    assert "Error while updating TC 100002: Work item does not exist." in caplog.text
    assert "Work item 100003 updated." in caplog.text


def test_update_one_reports_partial_update(ado, caplog: pytest.LogCaptureFixture) -> None:
    ado.apply_automation.side_effect = AutomationUpdateError(
        100001, UpdatePhase.TIMESTAMP, "Service unavailable"
    )

    with caplog.at_level(logging.ERROR, logger="junit-ado-sync"):
        assert Reconciler(ado).update_one(RECORDS[0]) is False

    assert "automation fields were already set" in caplog.text


def test_reconcile_empty(ado) -> None:
    summary = Reconciler(ado).reconcile([], RunSummary())

    assert summary == RunSummary()
    ado.apply_automation.assert_not_called()


def test_count_known() -> None:
    assert count_known(RECORDS, {100001: 11, 100003: 13, 999999: 99}) == 2
    assert count_known(RECORDS, {}) == 0
