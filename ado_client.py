"""
ado_client.py – All Azure DevOps REST / SDK interactions.

Uses the official `azure-devops` Python SDK for work-item operations and
raw REST (via `requests`) for the Test-Plan / Test-Suite / Test-Point
endpoints.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import requests
from azure.devops.connection import Connection
from azure.devops.v7_0.work_item_tracking.models import JsonPatchOperation
from msrest.authentication import BasicAuthentication
from msrest.exceptions import ClientException

from config import Settings
from models import TestPoint, TestRecord

logger = logging.getLogger("junit-ado-sync")

AUTOMATED_TEST_STORAGE = "Newman"
AUTOMATED_TEST_TYPE = "API Test"

FIELD_AUTOMATED_TEST_ID = "Microsoft.VSTS.TCM.AutomatedTestId"
FIELD_AUTOMATED_TEST_NAME = "Microsoft.VSTS.TCM.AutomatedTestName"
FIELD_AUTOMATED_TEST_STORAGE = "Microsoft.VSTS.TCM.AutomatedTestStorage"
FIELD_AUTOMATED_TEST_TYPE = "Microsoft.VSTS.TCM.AutomatedTestType"
FIELD_CHANGED_DATE = "System.ChangedDate"

CONTINUATION_HEADER = "x-ms-continuationtoken"


# ── Errors ──────────────────────────────────────────────────────────────

class ResolutionError(Exception):
    """The target suite or its test points could not be resolved."""


class UpdatePhase(str, Enum):
    METADATA = "metadata"
    TIMESTAMP = "timestamp"


class AutomationUpdateError(Exception):
    """One phase of the two-phase work-item update failed."""

    def __init__(self, work_item_id: int, phase: UpdatePhase, reason: str) -> None:
        super().__init__(f"{phase.value} update of work item {work_item_id} failed: {reason}")
        self.work_item_id = work_item_id
        self.phase = phase
        self.reason = reason

    @property
    def metadata_applied(self) -> bool:
        """True when the automation fields were written but the timestamp was not."""
        return self.phase is UpdatePhase.TIMESTAMP


def error_reason(exc: Exception) -> str:
    """Prefer the service's JSON ``message`` over the raw exception text."""
    response = getattr(exc, "response", None)
    if response is not None:
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict) and payload.get("message"):
            return str(payload["message"])
    return str(exc)


# ── Patch documents ─────────────────────────────────────────────────────

def automation_document(
    record: TestRecord, automated_test_id: str
) -> list[JsonPatchOperation]:
    """Fields that associate a Test Case with its automated test."""
    fields = [
        (FIELD_AUTOMATED_TEST_ID, automated_test_id),
        (FIELD_AUTOMATED_TEST_NAME, record.raw_name),
        (FIELD_AUTOMATED_TEST_STORAGE, AUTOMATED_TEST_STORAGE),
        (FIELD_AUTOMATED_TEST_TYPE, AUTOMATED_TEST_TYPE),
    ]
    return [
        JsonPatchOperation(op="add", path=f"/fields/{name}", value=value)
        for name, value in fields
    ]


def changed_date_document(changed_at: datetime) -> list[JsonPatchOperation]:
    """Re-save the work item so ADO recomputes its Automation Status."""
    stamp = changed_at.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return [
        JsonPatchOperation(
            op="add",
            path=f"/fields/{FIELD_CHANGED_DATE}",
            value=stamp.replace("+00:00", "Z"),
        )
    ]


# ── Main client ─────────────────────────────────────────────────────────

class ADOClient:
    """Wraps every ADO interaction needed by the sync run."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._project = settings.project
        self._plan_id = settings.plan_id
        self._wit_client = None

        # REST session for the Test Plan endpoints
        self._session = requests.Session()
        self._session.auth = ("", settings.pat)
        self._base = settings.project_url
        self._api = "api-version=7.0"
        self._json_header = {"Accept": "application/json"}

    @property
    def wit(self):
        """Work-item tracking client, connected on first use."""
        if self._wit_client is None:
            creds = BasicAuthentication("", self._settings.pat)
            connection = Connection(base_url=self._settings.org_url, creds=creds)
            self._wit_client = connection.clients.get_work_item_tracking_client()
        return self._wit_client

    def _get_all(self, url: str) -> list[dict[str, Any]]:
        """GET a list endpoint, following continuation tokens."""
        items: list[dict[str, Any]] = []
        token: str | None = None
        while True:
            params = {"continuationToken": token} if token else None
            resp = self._session.get(url, params=params, headers=self._json_header)
            resp.raise_for_status()
            items.extend(resp.json().get("value", []) or [])
            token = resp.headers.get(CONTINUATION_HEADER)
            if not token:
                return items

    # ── Test Plan / Suite lookup ────────────────────────────────────────

    def list_suites(self) -> list[dict[str, Any]]:
        """Return every suite in the configured Test Plan."""
        url = f"{self._base}/_apis/test/plans/{self._plan_id}/suites?{self._api}"
        try:
            return self._get_all(url)
        except requests.RequestException as exc:
            raise ResolutionError(
                f"Error while fetching test suites at {url}: {error_reason(exc)}"
            ) from exc

    def get_suite_id_by_name(self, suite_name: str) -> int:
        """Resolve *suite_name* (exact, case-sensitive) to a suite id."""
        logger.info('Resolving suite name "%s" under plan %s...', suite_name, self._plan_id)
        matches = [s for s in self.list_suites() if s.get("name") == suite_name]
        if not matches:
            raise ResolutionError(f'Suite with name "{suite_name}" not found.')
        if len(matches) > 1:
            ids = ", ".join(str(s.get("id")) for s in matches)
            raise ResolutionError(
                f'Suite name "{suite_name}" is ambiguous: matches suites {ids}.'
            )
        suite_id = int(matches[0]["id"])
        logger.info("Found suite ID: %s", suite_id)
        return suite_id

    def get_test_points(self, suite_id: int) -> list[TestPoint]:
        """Return the test points bound to *suite_id*."""
        url = (
            f"{self._base}/_apis/test/plans/{self._plan_id}"
            f"/suites/{suite_id}/points?{self._api}"
        )
        try:
            raw_points = self._get_all(url)
        except requests.RequestException as exc:
            raise ResolutionError(
                f"Error while fetching test points at {url}: {error_reason(exc)}"
            ) from exc
        return [
            TestPoint(test_case_id=int(p["testCase"]["id"]), point_id=int(p["id"]))
            for p in raw_points
        ]

    def get_test_point_map(self, suite_id: int) -> dict[int, int]:
        """Return {test_case_id: point_id} for *suite_id*."""
        return {p.test_case_id: p.point_id for p in self.get_test_points(suite_id)}

    # ── Work item automation fields ─────────────────────────────────────

    def apply_automation(
        self,
        record: TestRecord,
        automated_test_id: str,
        changed_at: datetime | None = None,
    ) -> None:
        """Set the automation fields, then re-save the work item.

        Raises AutomationUpdateError naming the phase that failed.  A failure
        in the timestamp phase leaves the metadata in place.
        """
        try:
            self.wit.update_work_item(
                document=automation_document(record, automated_test_id),
                id=record.identifier,
                project=self._project,
            )
        except (ClientException, requests.RequestException) as exc:
            raise AutomationUpdateError(
                record.identifier, UpdatePhase.METADATA, error_reason(exc)
            ) from exc

        try:
            self.wit.update_work_item(
                document=changed_date_document(changed_at or datetime.now(timezone.utc)),
                id=record.identifier,
                project=self._project,
            )
        except (ClientException, requests.RequestException) as exc:
            raise AutomationUpdateError(
                record.identifier, UpdatePhase.TIMESTAMP, error_reason(exc)
            ) from exc
        logger.debug("Work item %s linked to automated test %s", record.identifier, automated_test_id)
