"""Adapter for the flat ledger/bank CSV export.

CSV header (canonical order):
``ID, Date, Description, Amount, Type, Source``

Parsing is best-effort. A malformed field is replaced by a default instead of
failing the batch:

- ``id``: ``UNK-<row index>`` (suffixed when that collides with a real id)
- ``date``: the processing date (ISO ``YYYY-MM-DD``)
- ``description``: ``"Unknown Transaction"``
- ``amount``: ``0`` when missing, unparseable or absurdly large; sign is dropped
- ``type`` / ``source``: ``CREDIT`` / ``LEDGER`` when missing or unknown

Every record starts ``PENDING``. An empty result is returned as ``[]``; it is
the caller's job to reject an empty batch.
"""

from __future__ import annotations

import csv
from collections.abc import Sequence
from datetime import date
from decimal import Decimal, InvalidOperation
from os import PathLike
from pathlib import Path

from ..logging_setup import get_logger
from ..models import Transaction, TxSource, TxStatus, TxType

CANONICAL_COLUMNS: tuple[str, ...] = ("id", "date", "description", "amount", "type", "source")
UNKNOWN_DESCRIPTION = "Unknown Transaction"

# Amounts with more integer digits than this are treated as unparseable.
_MAX_AMOUNT_DIGITS = 16

_logger = get_logger("cash_audit.ingest.ledger_csv")


def _cell(values: Sequence[str], pos: int) -> str:
    if pos < len(values):
        return values[pos].strip()
    return ""


def _parse_amount(raw: str) -> Decimal:
    if not raw:
        return Decimal(0)
    try:
        value = Decimal(raw.replace(" ", ""))
    except InvalidOperation:
        return Decimal(0)
    if not value.is_finite() or value.adjusted() >= _MAX_AMOUNT_DIGITS:
        return Decimal(0)
    return abs(value)


def _parse_type(raw: str) -> TxType:
    try:
        return TxType(raw.upper())
    except ValueError:
        return TxType.CREDIT


def _parse_source(raw: str) -> TxSource:
    try:
        return TxSource(raw.upper())
    except ValueError:
        return TxSource.LEDGER


def _column_positions(header: Sequence[str]) -> tuple[int, ...]:
    """Map canonical columns to positions, by header name when it names them all."""

    names = [h.strip().lower() for h in header]
    if all(col in names for col in CANONICAL_COLUMNS):
        return tuple(names.index(col) for col in CANONICAL_COLUMNS)
    return tuple(range(len(CANONICAL_COLUMNS)))


def _unique_placeholder(row_index: int, taken: set[str]) -> str:
    candidate = f"UNK-{row_index}"
    suffix = 1
    while candidate in taken:
        candidate = f"UNK-{row_index}-{suffix}"
        suffix += 1
    return candidate


def parse_transactions(text: str, *, today: date | None = None) -> list[Transaction]:
    """Parse CSV text into ``PENDING`` transactions, one per non-blank data row.

    Parameters
    ----------
    text:
        Full CSV content including the header row. ``\\n`` and ``\\r\\n``
        line endings are both accepted; blank lines are skipped.
    today:
        Processing date used when a row has no date. Defaults to
        :meth:`datetime.date.today`.
    """

    processing_date = (today or date.today()).isoformat()
    lines = [line for line in text.lstrip("\ufeff").splitlines() if line.strip()]
    if not lines:
        return []

    # One reader per line: an unbalanced quote only degrades its own row.
    rows = [next(csv.reader([line], skipinitialspace=True), []) for line in lines]
    positions = _column_positions(rows[0])
    data_rows = rows[1:]

    explicit_ids = {
        _cell(row, positions[0]) for row in data_rows if _cell(row, positions[0])
    }
    taken: set[str] = set(explicit_ids)

    out: list[Transaction] = []
    defaulted = 0
    for row_index, row in enumerate(data_rows):
        tx_id, tx_date, desc, amount_raw, type_raw, source_raw = (
            _cell(row, pos) for pos in positions
        )
        if not tx_id:
            tx_id = _unique_placeholder(row_index, taken)
            taken.add(tx_id)
        if not (tx_date and desc and amount_raw and type_raw and source_raw):
            defaulted += 1

        out.append(
            Transaction(
                id=tx_id,
                date=tx_date or processing_date,
                description=desc or UNKNOWN_DESCRIPTION,
                amount=_parse_amount(amount_raw),
                type=_parse_type(type_raw),
                source=_parse_source(source_raw),
                status=TxStatus.PENDING,
            )
        )

    _logger.info("ingest:parsed rows=%d defaulted_rows=%d", len(out), defaulted)
    return out


def load_transactions(
    csv_path: str | PathLike[str], *, today: date | None = None
) -> list[Transaction]:
    """Read a UTF-8 CSV file and parse it with :func:`parse_transactions`.

    File-level errors (missing file, permissions, undecodable bytes) propagate.
    """

    text = Path(csv_path).read_text(encoding="utf-8-sig")
    return parse_transactions(text, today=today)


__all__ = ["CANONICAL_COLUMNS", "UNKNOWN_DESCRIPTION", "load_transactions", "parse_transactions"]
