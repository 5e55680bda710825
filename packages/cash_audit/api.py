"""Public API orchestration for the ``cash_audit`` package.

Ties the components together in their intended order:

ingest -> :func:`~cash_audit.reconcile.reconcile` -> (optional)
:func:`~cash_audit.classifier.classify_anomalies` ->
:func:`~cash_audit.anomalies.annotate`.

The cash count is independent and only contributes to the audit stats passed
to the summary generator.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from openai import OpenAI

from .anomalies import annotate
from .cash_count import CashCountResult
from .classifier import classify_anomalies
from .config import AuditSettings
from .ingest import parse_transactions
from .models import AnomalyReport, Transaction, Transactions, TxSource
from .reconcile import reconcile, summarize


class EmptyBatchError(ValueError):
    """Raised when an ingested CSV yields no transactions."""


def ingest_batch(text: str, *, today: date | None = None) -> list[Transaction]:
    """Parse CSV text into a fresh batch, rejecting an empty result.

    Individual malformed rows never fail the batch; only a batch with zero
    records raises :class:`EmptyBatchError`.
    """

    batch = parse_transactions(text, today=today)
    if not batch:
        raise EmptyBatchError("No valid transactions found in CSV.")
    return batch


def reconcile_csv(text: str, *, today: date | None = None) -> list[Transaction]:
    """Ingest CSV text and reconcile it in one step."""

    return reconcile(ingest_batch(text, today=today))


def scan_anomalies(
    transactions: Transactions,
    *,
    settings: AuditSettings | None = None,
    client: OpenAI | None = None,
) -> tuple[list[Transaction], AnomalyReport]:
    """Classify the ledger subset and overlay the flags on the whole batch.

    Returns ``(annotated_batch, report)``. When the classifier is unavailable
    the batch comes back unchanged and ``report.available`` is ``False``.
    """

    batch = list(transactions)
    ledger = [tx for tx in batch if tx.source is TxSource.LEDGER]
    report = classify_anomalies(ledger, settings=settings, client=client)
    return annotate(batch, report), report


def build_audit_stats(
    transactions: Transactions,
    *,
    cash: CashCountResult | None = None,
    report: AnomalyReport | None = None,
    currency: str = "IDR",
) -> dict[str, Any]:
    """Collect key figures for the partner summary.

    Keys: ``totalTransactions``, ``matched``, ``unmatched``, ``fraudFlags``,
    ``timingDifferences``, ``netUnreconciled``, plus ``anomalySummary`` when a
    report is given and ``cashOpnameVariance``/``cashOpnameBalanced`` when a
    cash count is given.
    """

    summary = summarize(transactions)
    stats: dict[str, Any] = {
        "totalTransactions": summary.total,
        "matched": summary.matched,
        "unmatched": summary.unmatched,
        "fraudFlags": summary.flagged,
        "timingDifferences": summary.timing_differences,
        "netUnreconciled": f"{currency} {summary.total_variance:,.2f}",
    }
    if report is not None:
        stats["anomalySummary"] = report.summary if report.available else "Not available"
    if cash is not None:
        stats["cashOpnameVariance"] = f"{currency} {cash.variance:,.2f}"
        stats["cashOpnameBalanced"] = cash.balanced
    return stats


__all__ = [
    "EmptyBatchError",
    "build_audit_stats",
    "ingest_batch",
    "reconcile_csv",
    "scan_anomalies",
]
