"""Pytest configuration shared by the ``cash_audit`` test suite.

Makes the workspace ``packages/`` directory importable and keeps every test
hermetic with respect to environment configuration: a developer's real
``OPENAI_API_KEY`` or ``CASH_AUDIT_*`` overrides must never leak into tests
(they would switch the classifier from the "unavailable" path to a live call).
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

_ROOT = Path(__file__).resolve().parents[1]
_PKG_DIR = _ROOT / "packages"
# Ensure `packages/` precedes the repo root on sys.path so local packages resolve first.
sys.path[:0] = [p for p in [str(_PKG_DIR), str(_ROOT)] if p not in sys.path]

_ENV_VARS = (
    "OPENAI_API_KEY",
    "CASH_AUDIT_MODEL",
    "CASH_AUDIT_SAMPLE_LIMIT",
    "CASH_AUDIT_TIMEOUT_SEC",
)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def sample_csv_text() -> str:
    from cash_audit.config import sample_dataset_text

    return sample_dataset_text()
