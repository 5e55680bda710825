"""External LLM collaborators: anomaly classification and partner summary.

Public API:
    - :func:`classify_anomalies`
    - :func:`generate_audit_summary`

Both calls go through the OpenAI Responses API and never raise for service
problems. A missing API key, a transport/API error, or a response that fails
validation degrades to a normal return value (an unavailable
:class:`~cash_audit.models.AnomalyReport`, or a fixed fallback string).
No side effects occur at import time.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from typing import Any

from openai import OpenAI, OpenAIError
from openai.types.responses import ResponseTextConfigParam

from . import prompting
from .config import AuditSettings
from .logging_setup import get_logger
from .models import AnomalyReport, AnomalyResponse, Transactions, TxSource

MISSING_KEY_SUMMARY = (
    "API Key is missing. Please configure the environment to use AI features."
)
ANALYSIS_ERROR_SUMMARY = "Error running analysis."
SUMMARY_UNAVAILABLE = "AI unavailable."
SUMMARY_FAILED = "Could not generate summary."

_logger = get_logger("cash_audit.classifier")


def _extract_response_text(resp: Any) -> str:
    """Locate the text output of a Responses SDK result.

    Prefer ``resp.output_text``; fall back to ``resp.output[0].content[0].text``.
    Raise ``ValueError`` when no text can be found.
    """

    text: str | None = getattr(resp, "output_text", None)
    if not text:
        try:
            first = resp.output[0] if getattr(resp, "output", None) else None
            content = getattr(first, "content", None)
            if content:
                txt_obj = getattr(content[0], "text", None)
                if isinstance(txt_obj, str):
                    text = txt_obj
                else:
                    maybe_val = getattr(txt_obj, "value", None)
                    if isinstance(maybe_val, str):
                        text = maybe_val
        except (AttributeError, IndexError, TypeError):
            text = None
    if not text or not isinstance(text, str):
        raise ValueError("Unexpected Responses API shape; unable to locate text output")
    return text


def _create_client(settings: AuditSettings) -> OpenAI:
    return OpenAI(api_key=settings.api_key, timeout=settings.timeout_sec)


def classify_anomalies(
    transactions: Transactions,
    *,
    settings: AuditSettings | None = None,
    client: OpenAI | None = None,
) -> AnomalyReport:
    """Ask the model to flag suspicious ledger transactions.

    Only ``LEDGER`` records are sent, capped at ``settings.sample_limit`` in
    input order. The response must validate against
    :class:`~cash_audit.models.AnomalyResponse`; anything else yields an
    unavailable report.

    Parameters
    ----------
    transactions:
        The batch (or its ledger subset) to sample from.
    settings:
        Defaults to :meth:`AuditSettings.from_env`.
    client:
        Optional preconstructed OpenAI client.
    """

    settings = settings or AuditSettings.from_env()
    if not settings.api_key and client is None:
        _logger.warning("classify:unavailable reason=missing_api_key")
        return AnomalyReport.unavailable(MISSING_KEY_SUMMARY)

    sample = [tx for tx in transactions if tx.source is TxSource.LEDGER][: settings.sample_limit]
    text_cfg = ResponseTextConfigParam(format=prompting.build_anomaly_response_format())

    _logger.info("classify:request num_transactions=%d model=%s", len(sample), settings.model)
    t0 = time.perf_counter()
    try:
        user_content = prompting.build_anomaly_user_content(
            prompting.serialize_sample_to_json(sample)
        )
        client = client or _create_client(settings)
        resp = client.responses.create(
            model=settings.model,
            instructions=prompting.build_anomaly_instructions(),
            input=user_content,
            text=text_cfg,
        )
        # pydantic.ValidationError subclasses ValueError.
        parsed = AnomalyResponse.model_validate_json(_extract_response_text(resp))
    except (OpenAIError, ValueError) as e:
        dt_ms = (time.perf_counter() - t0) * 1000.0
        _logger.error(
            "classify:failed latency_ms=%.2f error=%s detail=%s",
            dt_ms,
            e.__class__.__name__,
            e,
        )
        return AnomalyReport.unavailable(ANALYSIS_ERROR_SUMMARY)

    report = parsed.to_report()
    dt_ms = (time.perf_counter() - t0) * 1000.0
    _logger.info(
        "classify:done flagged=%d findings=%d latency_ms=%.2f",
        len(report.flagged_ids),
        len(report.findings),
        dt_ms,
    )
    return report


def generate_audit_summary(
    stats: Mapping[str, Any],
    *,
    settings: AuditSettings | None = None,
    client: OpenAI | None = None,
) -> str:
    """Return a formal partner-summary paragraph for ``stats``.

    The response text is not validated. Returns :data:`SUMMARY_UNAVAILABLE`
    when no API key is configured and :data:`SUMMARY_FAILED` when the call
    fails or produces no text.
    """

    settings = settings or AuditSettings.from_env()
    if not settings.api_key and client is None:
        _logger.warning("summary:unavailable reason=missing_api_key")
        return SUMMARY_UNAVAILABLE

    try:
        client = client or _create_client(settings)
        resp = client.responses.create(
            model=settings.model,
            input=prompting.build_summary_input(stats),
        )
        text = _extract_response_text(resp)
    except (OpenAIError, ValueError) as e:
        _logger.error("summary:failed error=%s detail=%s", e.__class__.__name__, e)
        return SUMMARY_FAILED
    return text.strip() or SUMMARY_FAILED


__all__ = [
    "ANALYSIS_ERROR_SUMMARY",
    "MISSING_KEY_SUMMARY",
    "SUMMARY_FAILED",
    "SUMMARY_UNAVAILABLE",
    "classify_anomalies",
    "generate_audit_summary",
]
