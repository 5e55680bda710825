"""Data models and type aliases for ``cash_audit``.

Transactions are immutable pydantic models. Every stage of the pipeline
(ingest, reconcile, annotate) returns a fresh batch instead of editing
records in place; use :meth:`Transaction.model_copy` with ``update=`` to
derive a changed record.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import Decimal
from enum import StrEnum
from typing import TypeAlias

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TxType(StrEnum):
    """Direction of a transaction. The sign lives here, never in ``amount``."""

    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class TxSource(StrEnum):
    """Origin partition: the internal book or the external bank statement."""

    LEDGER = "LEDGER"
    BANK = "BANK"


class TxStatus(StrEnum):
    PENDING = "PENDING"
    MATCHED = "MATCHED"
    UNMATCHED = "UNMATCHED"
    FLAGGED = "FLAGGED"


# ---------------------------------------------------------------------------
# Core record and collections
# ---------------------------------------------------------------------------


class Transaction(BaseModel):
    """A single ledger or bank transaction.

    Attributes
    ----------
    id:
        Opaque identifier, unique within a loaded batch.
    date:
        ISO-like calendar date string. Compared literally; no timezone or
        calendar parsing is applied.
    description:
        Free text from the source row.
    amount:
        Non-negative magnitude. Direction is carried by ``type``.
    type, source, status:
        See :class:`TxType`, :class:`TxSource`, :class:`TxStatus`.
    flag_reason:
        Optional explanation set by the timing tie-break during
        reconciliation or by anomaly annotation (annotation wins).
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str
    date: str
    description: str
    amount: Decimal = Field(ge=0)
    type: TxType
    source: TxSource
    status: TxStatus = TxStatus.PENDING
    flag_reason: str | None = None


Transactions: TypeAlias = Iterable[Transaction]
"""Any iterable of transactions; consumers materialize it once."""

TransactionBatch: TypeAlias = Sequence[Transaction]
"""An ordered, fully loaded batch (the unit of replacement)."""


# ---------------------------------------------------------------------------
# Reconciliation summary
# ---------------------------------------------------------------------------


class ReconSummary(BaseModel):
    """Counts over a reconciled batch.

    ``total_variance`` is the net unreconciled amount: the sum of unmatched
    ledger amounts minus the sum of unmatched bank amounts.
    """

    model_config = ConfigDict(frozen=True)

    total: int
    matched: int
    unmatched: int
    flagged: int
    pending: int
    timing_differences: int
    total_variance: Decimal


# ---------------------------------------------------------------------------
# Anomaly classification result
# ---------------------------------------------------------------------------


class AnomalyFinding(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str
    reason: str


class AnomalyReport(BaseModel):
    """Outcome of an anomaly classification request.

    ``available`` distinguishes "the service answered" from "the service could
    not be used". An available report with no ``flagged_ids`` means zero
    anomalies were found; an unavailable report must never flag anything.
    """

    model_config = ConfigDict(frozen=True)

    available: bool
    summary: str
    flagged_ids: tuple[str, ...] = ()
    findings: tuple[AnomalyFinding, ...] = ()

    @classmethod
    def unavailable(cls, summary: str) -> AnomalyReport:
        return cls(available=False, summary=summary)

    def reason_for(self, tx_id: str) -> str | None:
        """Return the first non-blank finding reason recorded for ``tx_id``."""

        for finding in self.findings:
            if finding.id == tx_id and finding.reason:
                return finding.reason
        return None


class AnomalyResponse(BaseModel):
    """Strict view of the classifier's JSON payload.

    Field names follow the wire schema requested from the model. Any shape
    mismatch raises ``pydantic.ValidationError``.
    """

    model_config = ConfigDict(strict=True, extra="forbid", str_strip_whitespace=True)

    summary: str
    flaggedIds: list[str]
    findings: list[AnomalyFinding]

    @field_validator("flaggedIds")
    @classmethod
    def _drop_blank_ids(cls, v: list[str]) -> list[str]:
        return [s.strip() for s in v if s.strip()]

    def to_report(self) -> AnomalyReport:
        return AnomalyReport(
            available=True,
            summary=self.summary,
            flagged_ids=tuple(dict.fromkeys(self.flaggedIds)),
            findings=tuple(self.findings),
        )
