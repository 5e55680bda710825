"""Public interface for the ``cash_audit`` package.

This module exposes the package's API functions and public models/types as the
stable import surface. There is no runtime logic here, only re-exports.
"""

from .anomalies import annotate
from .api import (
    EmptyBatchError,
    build_audit_stats,
    ingest_batch,
    reconcile_csv,
    scan_anomalies,
)
from .cash_count import CashCount, CashCountResult, compute_cash_count
from .classifier import classify_anomalies, generate_audit_summary
from .config import IDR_DENOMINATIONS, AuditSettings
from .ingest import load_transactions, parse_transactions
from .models import (
    AnomalyFinding,
    AnomalyReport,
    ReconSummary,
    Transaction,
    TxSource,
    TxStatus,
    TxType,
)
from .reconcile import TIMING_DIFFERENCE_REASON, reconcile, summarize

__all__ = [
    # API
    "annotate",
    "build_audit_stats",
    "classify_anomalies",
    "compute_cash_count",
    "generate_audit_summary",
    "ingest_batch",
    "load_transactions",
    "parse_transactions",
    "reconcile",
    "reconcile_csv",
    "scan_anomalies",
    "summarize",
    # Models / types
    "AnomalyFinding",
    "AnomalyReport",
    "AuditSettings",
    "CashCount",
    "CashCountResult",
    "EmptyBatchError",
    "ReconSummary",
    "Transaction",
    "TxSource",
    "TxStatus",
    "TxType",
    # Constants
    "IDR_DENOMINATIONS",
    "TIMING_DIFFERENCE_REASON",
]
