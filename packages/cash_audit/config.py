"""Runtime settings and reference data for ``cash_audit``.

Nothing here is read implicitly by the core components. Callers build an
:class:`AuditSettings` (usually via :meth:`AuditSettings.from_env`) and pass
the denomination table and book balance to the cash-count entry point.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from importlib import resources

# Indonesian Rupiah notes and coins, largest first.
IDR_DENOMINATIONS: tuple[int, ...] = (
    100000,
    50000,
    20000,
    10000,
    5000,
    2000,
    1000,
    500,
    200,
    100,
)

_DEFAULT_MODEL = "gpt-5"
_DEFAULT_SAMPLE_LIMIT = 30
_DEFAULT_TIMEOUT_SEC = 60.0


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    try:
        value = int(raw) if raw else default
    except ValueError:
        return default
    return value if value > 0 else default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    try:
        value = float(raw) if raw else default
    except ValueError:
        return default
    return value if value > 0 else default


@dataclass(frozen=True, slots=True)
class AuditSettings:
    """Settings for the external LLM collaborators.

    Attributes
    ----------
    api_key:
        OpenAI API key. ``None`` means the classifier and summary generator
        report themselves unavailable without making a request.
    model:
        Responses API model name.
    sample_limit:
        Maximum number of ledger records sent for anomaly classification.
    timeout_sec:
        Client-side request timeout.
    """

    api_key: str | None = None
    model: str = _DEFAULT_MODEL
    sample_limit: int = _DEFAULT_SAMPLE_LIMIT
    timeout_sec: float = _DEFAULT_TIMEOUT_SEC

    @classmethod
    def from_env(cls) -> AuditSettings:
        """Build settings from ``OPENAI_API_KEY`` and ``CASH_AUDIT_*`` variables.

        Invalid or non-positive numeric values fall back to the defaults.
        """

        api_key = (os.getenv("OPENAI_API_KEY") or "").strip() or None
        model = (os.getenv("CASH_AUDIT_MODEL") or "").strip() or _DEFAULT_MODEL
        return cls(
            api_key=api_key,
            model=model,
            sample_limit=_env_int("CASH_AUDIT_SAMPLE_LIMIT", _DEFAULT_SAMPLE_LIMIT),
            timeout_sec=_env_float("CASH_AUDIT_TIMEOUT_SEC", _DEFAULT_TIMEOUT_SEC),
        )


def sample_dataset_text() -> str:
    """Return the bundled demo CSV (ledger and bank rows for October 2023)."""

    return (
        resources.files("cash_audit")
        .joinpath("data/sample_transactions.csv")
        .read_text(encoding="utf-8")
    )
