"""
tests/conftest.py -- Shared test fixtures for the remediation engine tests.

This module provides:
  - _clean_settings (autouse): JF_* variables removed, get_settings() cache reset
  - settings: a Settings instance built from defaults only
  - baseline_document / candidate_document: the XRAY-1 / XRAY-2 scan pair
  - api_client: TestClient over the real FastAPI app

Document builders live in tests/factories.py.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from typing import Any

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from core.config import Settings, get_settings
from factories import violation

# ---------------------------------------------------------------------------
# Settings isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _clean_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Drop JF_* variables from the environment and reset the settings singleton."""
    for name in list(os.environ):
        if name.startswith("JF_"):
            monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


# ---------------------------------------------------------------------------
# Scan documents
# ---------------------------------------------------------------------------


@pytest.fixture
def baseline_document() -> dict[str, Any]:
    """One security violation, XRAY-1, on component A."""
    return {
        "scans": [
            {
                "vulnerabilities": [],
                "violations": [violation("XRAY-1", "npm://component-a:1.0.0", ["1.0.1"])],
            }
        ]
    }


@pytest.fixture
def candidate_document() -> dict[str, Any]:
    """XRAY-1 unchanged on A plus a new violation, XRAY-2, on component C."""
    return {
        "scans": [
            {
                "vulnerabilities": [],
                "violations": [
                    violation("XRAY-1", "npm://component-a:1.0.0", ["1.0.1"]),
                    violation("XRAY-2", "npm://component-c:2.3.0", ["2.3.4", "3.0.0"], cves=["CVE-2023-0001"]),
                ],
            }
        ]
    }


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[TestClient, None, None]:
    """TestClient over the real app. Rate limit counters start empty for each module."""
    limiter.reset()
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client
