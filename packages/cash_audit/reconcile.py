"""Ledger-to-bank reconciliation.

Public API:
    - :func:`reconcile`
    - :func:`summarize`

Matching is greedy and first-found in ledger order. For each open ledger
record the engine picks, among bank records of the same amount and type that
are not yet matched:

1. the first one with the same date;
2. otherwise the first one still ``PENDING``;
3. otherwise the first remaining one (e.g. ``UNMATCHED`` from a prior pass).

A match chosen by step 2 or 3 did not agree on date and is tagged on the ledger
side with :data:`TIMING_DIFFERENCE_REASON`. Amounts always compare exactly.
The date distance is not bounded.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from .logging_setup import get_logger
from .models import ReconSummary, Transaction, Transactions, TxSource, TxStatus

TIMING_DIFFERENCE_REASON = "Timing Difference (Auto-Resolved)"

# Records in these states may still take part in matching.
_OPEN_STATUSES: frozenset[TxStatus] = frozenset({TxStatus.PENDING, TxStatus.UNMATCHED})

_logger = get_logger("cash_audit.reconcile")


def _pick_bank_candidate(
    ledger_tx: Transaction,
    batch: Sequence[Transaction],
    bank_positions: Sequence[int],
    consumed: set[int],
) -> tuple[int | None, bool]:
    """Return ``(position, same_date)`` of the bank record to pair, if any."""

    pending_pos: int | None = None
    fallback_pos: int | None = None
    for pos in bank_positions:
        if pos in consumed:
            continue
        bank_tx = batch[pos]
        if bank_tx.amount != ledger_tx.amount or bank_tx.type != ledger_tx.type:
            continue
        if bank_tx.date == ledger_tx.date:
            return pos, True
        if pending_pos is None and bank_tx.status is TxStatus.PENDING:
            pending_pos = pos
        if fallback_pos is None:
            fallback_pos = pos
    if pending_pos is not None:
        return pending_pos, False
    return fallback_pos, False


def reconcile(transactions: Transactions) -> list[Transaction]:
    """Resolve every open record of a batch to ``MATCHED`` or ``UNMATCHED``.

    The input records are not modified; a new list in the same order is
    returned. Records already ``MATCHED`` keep their state and are never
    offered as candidates again, so running this on a resolved batch changes
    nothing. ``FLAGGED`` records are under investigation and are left as-is.
    """

    batch: list[Transaction] = list(transactions)

    ledger_positions = [
        i
        for i, tx in enumerate(batch)
        if tx.source is TxSource.LEDGER and tx.status in _OPEN_STATUSES
    ]
    bank_positions = [
        i
        for i, tx in enumerate(batch)
        if tx.source is TxSource.BANK and tx.status in _OPEN_STATUSES
    ]

    # Bank positions already paired during this pass.
    consumed: set[int] = set()
    updates: dict[int, dict[str, object]] = {}
    timing = 0

    for l_pos in ledger_positions:
        ledger_tx = batch[l_pos]
        b_pos, same_date = _pick_bank_candidate(ledger_tx, batch, bank_positions, consumed)
        if b_pos is None:
            updates[l_pos] = {"status": TxStatus.UNMATCHED}
            continue

        consumed.add(b_pos)
        updates[b_pos] = {"status": TxStatus.MATCHED}
        if same_date:
            updates[l_pos] = {"status": TxStatus.MATCHED}
        else:
            updates[l_pos] = {"status": TxStatus.MATCHED, "flag_reason": TIMING_DIFFERENCE_REASON}
            timing += 1
            _logger.debug(
                "reconcile:timing_match ledger_id=%s bank_id=%s ledger_date=%s bank_date=%s",
                ledger_tx.id,
                batch[b_pos].id,
                ledger_tx.date,
                batch[b_pos].date,
            )

    for b_pos in bank_positions:
        if b_pos not in consumed and batch[b_pos].status is TxStatus.PENDING:
            updates[b_pos] = {"status": TxStatus.UNMATCHED}

    result = [
        tx.model_copy(update=updates[i]) if i in updates else tx for i, tx in enumerate(batch)
    ]

    _logger.info(
        "reconcile:done ledger_open=%d bank_open=%d pairs=%d timing=%d",
        len(ledger_positions),
        len(bank_positions),
        len(consumed),
        timing,
    )
    return result


def summarize(transactions: Transactions) -> ReconSummary:
    """Count statuses over a batch and compute the net unreconciled amount."""

    batch = list(transactions)
    counts = {status: 0 for status in TxStatus}
    timing = 0
    unmatched_ledger = Decimal(0)
    unmatched_bank = Decimal(0)
    for tx in batch:
        counts[tx.status] += 1
        if tx.status is TxStatus.MATCHED and tx.flag_reason == TIMING_DIFFERENCE_REASON:
            timing += 1
        if tx.status is TxStatus.UNMATCHED:
            if tx.source is TxSource.LEDGER:
                unmatched_ledger += tx.amount
            else:
                unmatched_bank += tx.amount

    return ReconSummary(
        total=len(batch),
        matched=counts[TxStatus.MATCHED],
        unmatched=counts[TxStatus.UNMATCHED],
        flagged=counts[TxStatus.FLAGGED],
        pending=counts[TxStatus.PENDING],
        timing_differences=timing,
        total_variance=unmatched_ledger - unmatched_bank,
    )


__all__ = ["TIMING_DIFFERENCE_REASON", "reconcile", "summarize"]
