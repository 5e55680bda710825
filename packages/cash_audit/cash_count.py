"""Cash count ("cash opname") against the book balance.

``physical_total = sum(denomination * count)`` and
``variance = physical_total - book_balance``. A zero variance means the count
is balanced; any other value is a discrepancy for the auditor to follow up.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

# Values with more integer digits than this are unusable.
_MAX_DIGITS = 18


@dataclass(frozen=True, slots=True)
class CashCountResult:
    physical_total: Decimal
    variance: Decimal

    @property
    def balanced(self) -> bool:
        return self.variance == 0


def _to_decimal(value: Any) -> Decimal:
    """Coerce to a finite, non-negative, bounded ``Decimal``; anything unusable is zero."""

    if isinstance(value, bool) or value is None:
        return Decimal(0)
    try:
        dec = Decimal(str(value).strip().replace(",", ""))
    except (InvalidOperation, ValueError):
        return Decimal(0)
    if not dec.is_finite() or dec < 0 or dec.adjusted() >= _MAX_DIGITS:
        return Decimal(0)
    return dec


def _to_count(value: Any) -> int:
    return int(_to_decimal(value))


def _to_denomination(value: Any) -> int | None:
    """Positive integral denomination, or ``None`` when ``value`` is not one."""

    denom = _to_decimal(value)
    if denom <= 0 or denom != denom.to_integral_value():
        return None
    return int(denom)


def compute_cash_count(denominations: Mapping[Any, Any], book_balance: Any) -> CashCountResult:
    """Compute the physical total and variance for a denomination tally.

    Total over its inputs: counts are truncated to non-negative integers,
    denominations that are not positive integers are ignored, and an
    unparseable book balance is treated as zero.
    """

    total = Decimal(0)
    for denom_raw, count_raw in denominations.items():
        denom = _to_denomination(denom_raw)
        if denom is None:
            continue
        total += denom * _to_count(count_raw)
    return CashCountResult(physical_total=total, variance=total - _to_decimal(book_balance))


@dataclass(slots=True)
class CashCount:
    """Editable count sheet; derived figures are recomputed on every read."""

    counts: dict[int, int] = field(default_factory=dict)
    book_balance: Decimal = Decimal(0)

    @classmethod
    def blank(cls, denominations: Iterable[Any], book_balance: Any = 0) -> CashCount:
        """Zero-filled sheet for an explicit denomination table.

        Entries that are not positive integers are left out.
        """

        valid = (_to_denomination(d) for d in denominations)
        return cls(
            counts={d: 0 for d in valid if d is not None},
            book_balance=_to_decimal(book_balance),
        )

    def set_count(self, denomination: Any, count: Any) -> None:
        """Record a tally; an invalid denomination is ignored."""

        denom = _to_denomination(denomination)
        if denom is not None:
            self.counts[denom] = _to_count(count)

    def set_book_balance(self, value: Any) -> None:
        self.book_balance = _to_decimal(value)

    @property
    def result(self) -> CashCountResult:
        return compute_cash_count(self.counts, self.book_balance)

    @property
    def physical_total(self) -> Decimal:
        return self.result.physical_total

    @property
    def variance(self) -> Decimal:
        return self.result.variance


__all__ = ["CashCount", "CashCountResult", "compute_cash_count"]
