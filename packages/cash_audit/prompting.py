"""Prompt construction and payload serialization for the LLM collaborators.

This module builds:
- A deterministic JSON serialization of ledger transactions with a fixed
  field order.
- The instructions and user content for anomaly classification.
- The strict ``json_schema`` text format for the OpenAI Responses API.
- The prompt for the partner summary paragraph.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Any

from openai.types.responses.response_format_text_json_schema_config_param import (
    ResponseFormatTextJSONSchemaConfigParam,
)

from .models import Transaction

SAMPLE_FIELD_ORDER: tuple[str, ...] = ("id", "date", "amount", "description", "source")

BEGIN_MARKER = "BEGIN_TRANSACTIONS_JSON"
END_MARKER = "END_TRANSACTIONS_JSON"


# Integral amounts at or beyond this many digits are written as strings.
_MAX_INT_DIGITS = 18


def _json_number(value: Decimal) -> int | float | str:
    if not value.is_finite() or value.adjusted() >= _MAX_INT_DIGITS:
        return str(value)
    return int(value) if value == value.to_integral_value() else float(value)


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return _json_number(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def serialize_sample_to_json(transactions: Sequence[Transaction]) -> str:
    """Serialize transactions to a JSON array with a fixed field order.

    Field order per object is exactly: ``id, date, amount, description,
    source``. Amounts are emitted as JSON numbers, or as strings when too
    large to write as one.
    """

    arr: list[dict[str, Any]] = []
    for tx in transactions:
        arr.append(
            {
                "id": tx.id,
                "date": tx.date,
                "amount": _json_number(tx.amount),
                "description": tx.description,
                "source": tx.source.value,
            }
        )
    return json.dumps(arr, ensure_ascii=False)


def build_anomaly_instructions() -> str:
    return (
        "You are an expert cash audit assistant. Review the provided cash transactions "
        "and identify suspicious items. Only reference transaction ids that appear in the "
        "input. Output JSON only that conforms to the specified schema."
    )


def build_anomaly_user_content(sample_json: str) -> str:
    """Build the user content for anomaly classification.

    The transactions JSON is delimited by ``BEGIN_``/``END_`` marker lines so
    it can be located unambiguously.
    """

    return (
        "Analyze the following list of cash transactions.\n"
        "Look for anomalies such as:\n"
        "1. Split transactions (structuring) just below authorization limits.\n"
        "2. Round numbers where precise amounts are expected.\n"
        "3. Duplicate payments.\n"
        "4. Weekend or holiday transactions.\n"
        "\n"
        "Return a JSON object with:\n"
        "- 'summary': a brief executive summary of findings (max 2 sentences).\n"
        "- 'flaggedIds': an array of transaction ids that seem suspicious.\n"
        "- 'findings': an array of objects, each with the 'id' and 'reason' for a "
        "flagged transaction.\n"
        "\n"
        f"{BEGIN_MARKER}\n{sample_json}\n{END_MARKER}"
    )


def build_anomaly_response_format() -> ResponseFormatTextJSONSchemaConfigParam:
    """Return the strict JSON Schema text format for anomaly classification.

    Schema shape::

        {"summary": str, "flaggedIds": [str], "findings": [{"id": str, "reason": str}]}
    """

    return {
        "type": "json_schema",
        "name": "cash_anomalies",
        "schema": {
            "type": "object",
            "properties": {
                "summary": {"type": "string"},
                "flaggedIds": {"type": "array", "items": {"type": "string"}},
                "findings": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "id": {"type": "string"},
                            "reason": {"type": "string"},
                        },
                        "required": ["id", "reason"],
                        "additionalProperties": False,
                    },
                },
            },
            "required": ["summary", "flaggedIds", "findings"],
            "additionalProperties": False,
        },
        "strict": True,
    }


def build_summary_input(stats: Mapping[str, Any]) -> str:
    """Prompt for the partner summary paragraph over arbitrary audit stats."""

    stats_json = json.dumps(dict(stats), ensure_ascii=False, default=_json_default)
    return (
        "Generate a professional 'Partner Summary Report' paragraph for a Cash Audit "
        f"based on these stats: {stats_json}. Tone: Formal, Auditor. "
        "Focus on assertions: Existence and Accuracy."
    )
