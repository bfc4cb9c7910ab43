"""Shared fixtures for the sync tests."""

from pathlib import Path
from typing import Any, Callable
from unittest.mock import Mock

import pytest
import requests

from config import Settings


@pytest.fixture
def settings() -> Settings:
    return Settings(
        organization="contoso",
        project="webshop",
        pat="abcdefghijklmnop",
        plan_id=42,
        suite_name="API Regression",
    )


@pytest.fixture
def make_response() -> Callable[..., Mock]:
    """Build a fake ``requests.Response`` carrying a JSON body."""

    def _make(
        payload: Any = None,
        status: int = 200,
        headers: dict[str, str] | None = None,
    ) -> Mock:
        resp = Mock(spec=requests.Response)
        resp.status_code = status
        resp.headers = headers or {}
        resp.json.return_value = payload if payload is not None else {}
        if status >= 400:
            resp.raise_for_status.side_effect = requests.HTTPError(
                f"{status} Client Error", response=resp
            )
        else:
            resp.raise_for_status.return_value = None
        return resp

    return _make


@pytest.fixture
def write_report(tmp_path: Path) -> Callable[[str], Path]:
    """Write a JUnit report into the temp dir and return its path."""

    def _write(content: str, name: str = "reportDEV.xml") -> Path:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path

    return _write
