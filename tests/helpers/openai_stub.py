"""Test helpers to stub the OpenAI Responses client used by ``classifier.py``.

The stub parses the user-content payload to extract the embedded transactions
JSON array and hands it to a test-provided ``respond`` callable, which returns
the JSON-serializable payload (or raw text) the fake model should answer with.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

BEGIN = "BEGIN_TRANSACTIONS_JSON\n"
END = "\nEND_TRANSACTIONS_JSON"


def extract_sample_from_user_content(user_content: str) -> list[dict[str, Any]]:
    b = user_content.find(BEGIN)
    e = user_content.rfind(END)
    if b == -1 or e == -1 or e <= b:
        raise AssertionError("classifier: user content missing embedded transactions JSON block")
    return json.loads(user_content[b + len(BEGIN) : e])


class _Resp:
    def __init__(self, text: str) -> None:
        self.output_text = text


class OpenAIStub:
    """Minimal stub matching the ``openai.OpenAI`` shape used by ``classifier.py``.

    Parameters
    ----------
    respond:
        Receives the decoded transaction sample (``None`` for requests without
        an embedded sample, e.g. the summary prompt) and returns either a
        string (used verbatim as ``output_text``) or a JSON-serializable object.
    calls_out:
        Appended with each ``responses.create`` call's kwargs.
    raise_exc:
        When set, ``responses.create`` raises it instead of answering.
    """

    def __init__(
        self,
        respond: Callable[[list[dict[str, Any]] | None], Any] | None = None,
        calls_out: list[dict[str, Any]] | None = None,
        raise_exc: BaseException | None = None,
    ) -> None:
        self._respond = respond or (lambda _sample: {"summary": "", "flaggedIds": [], "findings": []})
        self._calls = calls_out if calls_out is not None else []
        self._raise = raise_exc

        class _Responses:
            def __init__(self, outer: OpenAIStub) -> None:
                self._outer = outer

            def create(self, **kwargs):
                self._outer._calls.append(kwargs)
                if self._outer._raise is not None:
                    raise self._outer._raise
                user_content = kwargs["input"]
                sample = (
                    extract_sample_from_user_content(user_content)
                    if BEGIN in user_content
                    else None
                )
                answer = self._outer._respond(sample)
                text = answer if isinstance(answer, str) else json.dumps(answer)
                return _Resp(text)

        self.responses = _Responses(self)

    @property
    def calls(self) -> list[dict[str, Any]]:
        return self._calls


def stub_factory(stub: OpenAIStub) -> Callable[..., OpenAIStub]:
    """Return a callable usable in place of the ``OpenAI`` class."""

    def _make(*_a: Any, **_kw: Any) -> OpenAIStub:
        return stub

    return _make
