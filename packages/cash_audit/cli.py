"""CLI for the ``cash_audit`` package.

This module exposes callable command handlers (``cmd_*``) and a Typer-based
console interface. Environment variables (notably ``OPENAI_API_KEY``) are
loaded from a local ``.env`` using ``python-dotenv`` before any command runs.
Business logic lives in ``cash_audit.api`` and the component modules.
"""

from __future__ import annotations

import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .logging_setup import configure_logging
from .models import AnomalyReport, Transaction, TxStatus

console = Console()

_STATUS_STYLE = {
    TxStatus.MATCHED: "green",
    TxStatus.UNMATCHED: "red",
    TxStatus.FLAGGED: "yellow",
    TxStatus.PENDING: "dim",
}


# ---- Small module-level helpers used by CLI commands -------------------------


def _read_batch(csv_path: Path | None, *, use_sample: bool) -> list[Transaction] | None:
    """Load a batch from ``csv_path`` or the bundled sample.

    Errors are written to stderr and ``None`` is returned so callers can exit
    with a non-zero status.
    """

    from .api import EmptyBatchError, ingest_batch
    from .config import sample_dataset_text

    if use_sample:
        text = sample_dataset_text()
    elif csv_path is None:
        print("Error: provide --csv-path or --sample.", file=sys.stderr)
        return None
    else:
        try:
            text = csv_path.read_text(encoding="utf-8-sig")
        except FileNotFoundError:
            print(f"Error: File not found: {csv_path}", file=sys.stderr)
            return None
        except PermissionError:
            print(f"Error: Permission denied: {csv_path}", file=sys.stderr)
            return None
        except UnicodeDecodeError as e:
            print(f"Error: Failed to decode '{csv_path}' as UTF-8: {e}", file=sys.stderr)
            return None

    try:
        return ingest_batch(text)
    except EmptyBatchError as e:
        print(f"Error: {e}", file=sys.stderr)
        return None


def _parse_counts(raw_counts: Sequence[str]) -> dict[str, str]:
    """Parse ``DENOMINATION=COUNT`` pairs; values are coerced later."""

    counts: dict[str, str] = {}
    for item in raw_counts:
        denom, sep, count = item.partition("=")
        if not sep:
            raise typer.BadParameter(f"expected DENOMINATION=COUNT, got {item!r}")
        counts[denom.strip()] = count.strip()
    return counts


def _render_transactions(batch: Sequence[Transaction]) -> None:
    table = Table(title="Transactions")
    table.add_column("ID")
    table.add_column("Date")
    table.add_column("Description")
    table.add_column("Amount", justify="right")
    table.add_column("Type")
    table.add_column("Source")
    table.add_column("Status")
    table.add_column("Note")
    for tx in batch:
        style = _STATUS_STYLE.get(tx.status, "")
        table.add_row(
            tx.id,
            tx.date,
            escape(tx.description),
            f"{tx.amount:,.2f}",
            tx.type.value,
            tx.source.value,
            f"[{style}]{tx.status.value}[/{style}]" if style else tx.status.value,
            escape(tx.flag_reason or ""),
        )
    console.print(table)


def _render_summary(batch: Sequence[Transaction]) -> None:
    from .reconcile import summarize

    s = summarize(batch)
    for label, value in (
        ("Total", s.total),
        ("Matched", s.matched),
        ("Unmatched", s.unmatched),
        ("Flagged", s.flagged),
        ("Timing differences", s.timing_differences),
        ("Net unreconciled", f"{s.total_variance:,.2f}"),
    ):
        console.print(f"{label}: {value}", highlight=False)


def _render_report(report: AnomalyReport) -> None:
    title = "Anomaly scan" if report.available else "Anomaly scan (unavailable)"
    console.print(Panel(escape(report.summary), title=title, border_style="cyan"))
    for finding in report.findings:
        console.print(escape(f"- {finding.id}: {finding.reason}"), highlight=False)


# ---- Command handlers --------------------------------------------------------


def cmd_reconcile(csv_path: Path | None, *, use_sample: bool = False) -> int:
    """Ingest a CSV, reconcile ledger against bank, and print the result."""

    from .reconcile import reconcile

    batch = _read_batch(csv_path, use_sample=use_sample)
    if batch is None:
        return 1
    reconciled = reconcile(batch)
    _render_transactions(reconciled)
    _render_summary(reconciled)
    return 0


def cmd_scan_anomalies(csv_path: Path | None, *, use_sample: bool = False) -> int:
    """Reconcile, then overlay anomaly flags from the classifier."""

    from .api import scan_anomalies
    from .reconcile import reconcile

    batch = _read_batch(csv_path, use_sample=use_sample)
    if batch is None:
        return 1
    annotated, report = scan_anomalies(reconcile(batch))
    _render_report(report)
    _render_transactions(annotated)
    _render_summary(annotated)
    return 0


def cmd_cash_count(raw_counts: Sequence[str], *, book_balance: str) -> int:
    """Tally denominations against the book balance and print the variance."""

    from .cash_count import CashCount
    from .config import IDR_DENOMINATIONS

    sheet = CashCount.blank(IDR_DENOMINATIONS, book_balance)
    # Denominations outside the table are added; invalid ones are skipped.
    for denom, count in _parse_counts(raw_counts).items():
        sheet.set_count(denom, count)

    result = sheet.result
    console.print(f"Physical total: {result.physical_total:,.2f}", highlight=False)
    console.print(f"Book balance: {sheet.book_balance:,.2f}", highlight=False)
    console.print(f"Variance: {result.variance:,.2f}", highlight=False)
    console.print("Balanced" if result.balanced else "Discrepancy: investigate variance")
    return 0


def cmd_summarize(
    csv_path: Path | None,
    *,
    use_sample: bool = False,
    scan: bool = False,
    raw_counts: Sequence[str] = (),
    book_balance: str | None = None,
) -> int:
    """Generate the partner summary paragraph for a reconciled batch."""

    from .api import build_audit_stats, scan_anomalies
    from .cash_count import compute_cash_count
    from .classifier import generate_audit_summary
    from .reconcile import reconcile

    batch = _read_batch(csv_path, use_sample=use_sample)
    if batch is None:
        return 1
    reconciled = reconcile(batch)

    report = None
    if scan:
        reconciled, report = scan_anomalies(reconciled)

    cash = None
    if raw_counts or book_balance is not None:
        cash = compute_cash_count(_parse_counts(raw_counts), book_balance or 0)

    stats = build_audit_stats(reconciled, cash=cash, report=report)
    console.print(Panel(escape(generate_audit_summary(stats)), title="Partner Summary Report"))
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Cash audit tooling: reconcile ledger against bank, scan for anomalies with "
        "OpenAI, and compute cash count variance. Loads OPENAI_API_KEY from a local .env."
    ),
)

CsvPathOption = Annotated[
    Path | None,
    typer.Option(
        "--csv-path",
        help="CSV with columns ID,Date,Description,Amount,Type,Source",
        dir_okay=False,
        file_okay=True,
    ),
]
SampleOption = Annotated[
    bool, typer.Option("--sample", help="Use the bundled sample dataset instead of a file.")
]
CountOption = Annotated[
    list[str] | None,
    typer.Option("--count", help="Denomination tally as DENOMINATION=COUNT (repeatable)."),
]


@app.command("reconcile")
def reconcile_cmd(csv_path: CsvPathOption = None, sample: SampleOption = False) -> None:
    """Reconcile ledger against bank transactions."""

    raise typer.Exit(cmd_reconcile(csv_path, use_sample=sample))


@app.command("scan-anomalies")
def scan_anomalies_cmd(csv_path: CsvPathOption = None, sample: SampleOption = False) -> None:
    """Reconcile and flag suspicious ledger transactions."""

    raise typer.Exit(cmd_scan_anomalies(csv_path, use_sample=sample))


@app.command("cash-count")
def cash_count_cmd(
    count: CountOption = None,
    book_balance: Annotated[str, typer.Option(help="Book balance to compare against.")] = "0",
) -> None:
    """Compute physical cash total and variance against the book balance."""

    raise typer.Exit(cmd_cash_count(count or [], book_balance=book_balance))


@app.command("summarize")
def summarize_cmd(
    csv_path: CsvPathOption = None,
    sample: SampleOption = False,
    scan: Annotated[bool, typer.Option(help="Include an anomaly scan in the stats.")] = False,
    count: CountOption = None,
    book_balance: Annotated[
        str | None, typer.Option(help="Book balance for the cash count stats.")
    ] = None,
) -> None:
    """Generate a partner summary paragraph from reconciliation stats."""

    raise typer.Exit(
        cmd_summarize(
            csv_path,
            use_sample=sample,
            scan=scan,
            raw_counts=count or [],
            book_balance=book_balance,
        )
    )


@app.callback()
def _root(
    log_level: Annotated[
        str | None, typer.Option(help="Log level (falls back to CASH_AUDIT_LOG_LEVEL).")
    ] = None,
) -> None:
    """Load ``.env`` from the working directory and configure logging."""

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging(log_level)


if __name__ == "__main__":  # pragma: no cover
    app()
