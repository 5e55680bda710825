from __future__ import annotations

from decimal import Decimal
from typing import Any

import pytest
from openai import OpenAIError

import cash_audit.classifier as classifier_mod
from cash_audit.api import build_audit_stats, scan_anomalies
from cash_audit.classifier import (
    ANALYSIS_ERROR_SUMMARY,
    MISSING_KEY_SUMMARY,
    SUMMARY_FAILED,
    SUMMARY_UNAVAILABLE,
    classify_anomalies,
    generate_audit_summary,
)
from cash_audit.config import AuditSettings
from cash_audit.ingest import parse_transactions
from cash_audit.models import Transaction, TxSource, TxStatus, TxType
from cash_audit.reconcile import reconcile
from tests.helpers.openai_stub import OpenAIStub, stub_factory

SETTINGS = AuditSettings(api_key="sk-test", model="test-model", sample_limit=30)


def _structuring_answer(sample: list[dict[str, Any]] | None) -> dict[str, Any]:
    assert sample is not None
    splits = [item["id"] for item in sample if item["amount"] == 4999]
    return {
        "summary": "Two payments of 4,999 on the same day suggest structuring.",
        "flaggedIds": splits,
        "findings": [{"id": i, "reason": "Split below authorization limit"} for i in splits],
    }


def _install_stub(monkeypatch: pytest.MonkeyPatch, stub: OpenAIStub) -> None:
    monkeypatch.setattr(classifier_mod, "OpenAI", stub_factory(stub))


# ---- classify_anomalies -------------------------------------------------------


def test_missing_api_key_is_unavailable_without_calling(monkeypatch: pytest.MonkeyPatch):
    calls: list[dict[str, Any]] = []
    _install_stub(monkeypatch, OpenAIStub(calls_out=calls))

    report = classify_anomalies([], settings=AuditSettings(api_key=None))

    assert report.available is False
    assert report.summary == MISSING_KEY_SUMMARY
    assert report.flagged_ids == ()
    assert calls == []


def test_request_shape_and_parsed_report(monkeypatch: pytest.MonkeyPatch, sample_csv_text: str):
    calls: list[dict[str, Any]] = []
    _install_stub(monkeypatch, OpenAIStub(_structuring_answer, calls_out=calls))
    batch = parse_transactions(sample_csv_text)

    report = classify_anomalies(batch, settings=SETTINGS)

    assert report.available is True
    assert report.flagged_ids == ("L005", "L006")
    assert report.reason_for("L006") == "Split below authorization limit"

    assert len(calls) == 1
    call = calls[0]
    assert call["model"] == "test-model"
    fmt = call["text"]["format"]
    assert fmt["type"] == "json_schema" and fmt["strict"] is True
    assert set(fmt["schema"]["required"]) == {"summary", "flaggedIds", "findings"}


def test_only_ledger_records_are_sampled_and_capped(monkeypatch: pytest.MonkeyPatch):
    seen: list[list[dict[str, Any]]] = []

    def _respond(sample):
        seen.append(sample)
        return {"summary": "Nothing found.", "flaggedIds": [], "findings": []}

    _install_stub(monkeypatch, OpenAIStub(_respond))
    batch = [
        Transaction(
            id=f"{'L' if i % 2 == 0 else 'B'}{i}",
            date="2024-01-01",
            description="x",
            amount=Decimal(i),
            type=TxType.DEBIT,
            source=TxSource.LEDGER if i % 2 == 0 else TxSource.BANK,
        )
        for i in range(100)
    ]

    report = classify_anomalies(batch, settings=SETTINGS)

    (sample,) = seen
    assert len(sample) == 30
    assert all(item["source"] == "LEDGER" for item in sample)
    assert list(sample[0]) == ["id", "date", "amount", "description", "source"]
    # Available with zero findings is distinct from unavailable.
    assert report.available is True
    assert report.flagged_ids == ()


@pytest.mark.parametrize(
    "answer",
    [
        "not json at all",
        {"summary": "x", "flaggedIds": "L001", "findings": []},
        {"summary": "x", "flaggedIds": [], "findings": [{"id": "L001"}]},
        {"summary": "x", "flaggedIds": [], "findings": [], "extra": 1},
        {"flaggedIds": [], "findings": []},
    ],
)
def test_malformed_output_degrades_to_unavailable(monkeypatch: pytest.MonkeyPatch, answer):
    _install_stub(monkeypatch, OpenAIStub(lambda _sample: answer))

    report = classify_anomalies([], settings=SETTINGS)

    assert report.available is False
    assert report.summary == ANALYSIS_ERROR_SUMMARY
    assert report.flagged_ids == ()


def test_client_error_degrades_to_unavailable(monkeypatch: pytest.MonkeyPatch):
    _install_stub(monkeypatch, OpenAIStub(raise_exc=OpenAIError("connection reset")))

    report = classify_anomalies([], settings=SETTINGS)

    assert report.available is False
    assert report.summary == ANALYSIS_ERROR_SUMMARY


def test_settings_default_to_environment(monkeypatch: pytest.MonkeyPatch):
    calls: list[dict[str, Any]] = []
    _install_stub(monkeypatch, OpenAIStub(calls_out=calls))
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    monkeypatch.setenv("CASH_AUDIT_MODEL", "env-model")

    report = classify_anomalies([])

    assert report.available is True
    assert calls[0]["model"] == "env-model"


# ---- scan_anomalies (end to end) ----------------------------------------------


def test_scan_flags_split_payments_after_reconciliation(
    monkeypatch: pytest.MonkeyPatch, sample_csv_text: str
):
    _install_stub(monkeypatch, OpenAIStub(_structuring_answer))
    reconciled = reconcile(parse_transactions(sample_csv_text))

    annotated, report = scan_anomalies(reconciled, settings=SETTINGS)

    by_id = {tx.id: tx for tx in annotated}
    assert report.available is True
    assert by_id["L005"].status is TxStatus.FLAGGED
    assert by_id["L006"].flag_reason == "Split below authorization limit"
    assert by_id["B005"].status is TxStatus.UNMATCHED
    assert by_id["L001"].status is TxStatus.MATCHED


def test_scan_without_key_leaves_batch_unchanged(sample_csv_text: str):
    reconciled = reconcile(parse_transactions(sample_csv_text))

    annotated, report = scan_anomalies(reconciled, settings=AuditSettings())

    assert report.available is False
    assert annotated == reconciled


# ---- generate_audit_summary ----------------------------------------------------


def test_summary_without_key_returns_fallback():
    assert generate_audit_summary({"matched": 1}, settings=AuditSettings()) == SUMMARY_UNAVAILABLE


def test_summary_returns_model_text(monkeypatch: pytest.MonkeyPatch, sample_csv_text: str):
    calls: list[dict[str, Any]] = []
    _install_stub(
        monkeypatch,
        OpenAIStub(lambda _sample: "  The cash balance exists and is accurate.  ", calls_out=calls),
    )
    stats = build_audit_stats(reconcile(parse_transactions(sample_csv_text)))

    text = generate_audit_summary(stats, settings=SETTINGS)

    assert text == "The cash balance exists and is accurate."
    assert '"totalTransactions": 16' in calls[0]["input"]
    assert "Existence and Accuracy" in calls[0]["input"]


def test_summary_failure_or_empty_text_returns_fallback(monkeypatch: pytest.MonkeyPatch):
    _install_stub(monkeypatch, OpenAIStub(raise_exc=OpenAIError("timeout")))
    assert generate_audit_summary({}, settings=SETTINGS) == SUMMARY_FAILED

    _install_stub(monkeypatch, OpenAIStub(lambda _sample: ""))
    assert generate_audit_summary({}, settings=SETTINGS) == SUMMARY_FAILED


def test_oversized_amount_is_sent_as_string(monkeypatch: pytest.MonkeyPatch):
    seen: list[list[dict[str, Any]]] = []

    def _respond(sample):
        seen.append(sample)
        return {"summary": "Nothing found.", "flaggedIds": [], "findings": []}

    _install_stub(monkeypatch, OpenAIStub(_respond))
    batch = [
        Transaction(
            id="L1",
            date="2024-01-01",
            description="Huge",
            amount=Decimal("1e5000"),
            type=TxType.CREDIT,
            source=TxSource.LEDGER,
        ),
        Transaction(
            id="L2",
            date="2024-01-01",
            description="Normal",
            amount=Decimal("450.50"),
            type=TxType.CREDIT,
            source=TxSource.LEDGER,
        ),
    ]

    report = classify_anomalies(batch, settings=SETTINGS)

    assert report.available is True
    (sample,) = seen
    assert sample[0]["amount"] == "1E+5000"
    assert sample[1]["amount"] == 450.5


def test_serialization_error_degrades_to_unavailable(monkeypatch: pytest.MonkeyPatch):
    def _boom(_sample):
        raise ValueError("Exceeds the limit for integer string conversion")

    calls: list[dict[str, Any]] = []
    _install_stub(monkeypatch, OpenAIStub(calls_out=calls))
    monkeypatch.setattr(classifier_mod.prompting, "serialize_sample_to_json", _boom)

    report = classify_anomalies([], settings=SETTINGS)

    assert report.available is False
    assert report.summary == ANALYSIS_ERROR_SUMMARY
    assert calls == []
