"""
config.py – Settings loaded once from environment variables.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from typing import Mapping

REQUIRED_VARS = (
    "ADO_ORG",
    "ADO_PROJECT",
    "ADO_PAT",
    "ADO_TEST_PLAN_ID",
    "ADO_SUITE_NAME",
)

DEFAULT_JUNIT_PATH = "reportDEV.xml"
DEFAULT_BASE_URL = "https://dev.azure.com"


def mask_secret(value: str | None) -> str:
    """Return *value* with everything but its first and last two chars hidden."""
    if not value:
        return ""
    if len(value) > 6:
        return f"{value[:2]}***{value[-2:]}"
    return "***"


class SecretMaskingFilter(logging.Filter):
    """Replace known secrets in rendered log messages with their masked form."""

    def __init__(self, *secrets: str) -> None:
        super().__init__()
        self._secrets = [s for s in secrets if s]

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = message
        for secret in self._secrets:
            masked = masked.replace(secret, mask_secret(secret))
        if masked != message:
            record.msg = masked
            record.args = None
        return True


@dataclass(frozen=True)
class Settings:
    """Validated, read-only application settings."""

    # ── Azure DevOps ────────────────────────────────────────
    organization: str
    project: str
    pat: str
    plan_id: int
    suite_name: str
    base_url: str = DEFAULT_BASE_URL

    # ── Input ───────────────────────────────────────────────
    junit_path: str = DEFAULT_JUNIT_PATH

    @property
    def org_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/{self.organization}"

    @property
    def project_url(self) -> str:
        return f"{self.org_url}/{self.project}"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from *environ*; halt early if required values are missing."""
        env = os.environ if environ is None else environ

        missing = [name for name in REQUIRED_VARS if not env.get(name, "").strip()]
        if missing:
            sys.exit(
                f"[ERROR] Missing required environment variables: {', '.join(missing)}\n"
                "  → Copy .env.example to .env and fill in all values."
            )

        raw_plan_id = env["ADO_TEST_PLAN_ID"].strip()
        try:
            plan_id = int(raw_plan_id)
        except ValueError:
            sys.exit(
                f"[ERROR] ADO_TEST_PLAN_ID must be an integer, got '{raw_plan_id}'."
            )

        return cls(
            organization=env["ADO_ORG"].strip(),
            project=env["ADO_PROJECT"].strip(),
            pat=env["ADO_PAT"].strip(),
            plan_id=plan_id,
            suite_name=env["ADO_SUITE_NAME"],
            base_url=env.get("ADO_BASE_URL") or DEFAULT_BASE_URL,
            junit_path=env.get("JUNIT_PATH") or DEFAULT_JUNIT_PATH,
        )

    def __repr__(self) -> str:
        return (
            f"Settings(organization={self.organization!r}, project={self.project!r}, "
            f"pat={mask_secret(self.pat)!r}, plan_id={self.plan_id}, "
            f"suite_name={self.suite_name!r}, junit_path={self.junit_path!r})"
        )
