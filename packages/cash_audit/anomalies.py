"""Fold anomaly classifier output back into a transaction batch.

No classification happens here; see :mod:`cash_audit.classifier` for the
external call that produces an :class:`~cash_audit.models.AnomalyReport`.
"""

from __future__ import annotations

from .logging_setup import get_logger
from .models import AnomalyReport, Transaction, Transactions, TxStatus

FALLBACK_FLAG_REASON = "AI Flagged Anomaly"

_logger = get_logger("cash_audit.anomalies")


def annotate(transactions: Transactions, report: AnomalyReport) -> list[Transaction]:
    """Mark every transaction named in ``report.flagged_ids`` as ``FLAGGED``.

    The flag overrides any reconciliation status and replaces an existing
    ``flag_reason`` (such as the timing-difference tag). The reason comes from
    the matching finding, or :data:`FALLBACK_FLAG_REASON` when the report has
    none for that id. An unavailable report flags nothing.
    """

    batch = list(transactions)
    if not report.available:
        _logger.warning("annotate:skipped reason=unavailable summary=%r", report.summary)
        return batch

    flagged_ids = set(report.flagged_ids)
    out: list[Transaction] = []
    hits = 0
    for tx in batch:
        if tx.id in flagged_ids:
            hits += 1
            out.append(
                tx.model_copy(
                    update={
                        "status": TxStatus.FLAGGED,
                        "flag_reason": report.reason_for(tx.id) or FALLBACK_FLAG_REASON,
                    }
                )
            )
        else:
            out.append(tx)

    unknown = flagged_ids - {tx.id for tx in batch}
    if unknown:
        _logger.warning("annotate:unknown_ids count=%d ids=%s", len(unknown), sorted(unknown))
    _logger.info("annotate:done flagged_ids=%d flagged_records=%d", len(flagged_ids), hits)
    return out


__all__ = ["FALLBACK_FLAG_REASON", "annotate"]
