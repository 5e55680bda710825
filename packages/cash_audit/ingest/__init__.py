"""CSV ingestion for ledger and bank transaction exports."""

from .ledger_csv import load_transactions, parse_transactions

__all__ = ["load_transactions", "parse_transactions"]
