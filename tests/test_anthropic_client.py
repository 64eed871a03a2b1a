from __future__ import annotations

import json
from typing import Any, Dict, List

import pytest

from codebanter.errors import UpstreamError
from codebanter.models.anthropic import AnthropicClient
from codebanter.models.llm_client import (
    LLMRequest,
    LLMResponseFormatError,
    LLMRetryError,
    LLMTransportError,
)


def _message_response(*texts: str) -> str:
    return json.dumps(
        {
            "id": "msg_mock",
            "type": "message",
            "role": "assistant",
            "content": [{"type": "text", "text": text} for text in texts],
            "stop_reason": "end_turn",
        }
    )


def test_client_joins_text_blocks() -> None:
    seen: List[Dict[str, Any]] = []

    def transport(payload: Dict[str, Any]) -> str:
        seen.append(payload)
        return _message_response("Hello, ", "world")

    client = AnthropicClient(model="claude-test", max_tokens=128, transport=transport)
    reply = client.complete(LLMRequest(prompt="Say hello", system_prompt="Be brief."))

    assert reply == "Hello, world"
    assert seen == [
        {
            "model": "claude-test",
            "max_tokens": 128,
            "messages": [{"role": "user", "content": "Say hello"}],
            "system": "Be brief.",
        }
    ]


def test_client_ignores_non_text_blocks() -> None:
    def transport(_: Dict[str, Any]) -> str:
        return json.dumps(
            {
                "content": [
                    {"type": "tool_use", "id": "t1", "name": "noop", "input": {}},
                    {"type": "text", "text": "done"},
                ]
            }
        )

    client = AnthropicClient(transport=transport)

    assert client.complete(LLMRequest(prompt="go")) == "done"


def test_plain_text_transport_is_passed_through() -> None:
    client = AnthropicClient(transport=lambda _: "raw reply")

    assert client.complete(LLMRequest(prompt="go")) == "raw reply"


def test_api_error_payload_raises_transport_error() -> None:
    def transport(_: Dict[str, Any]) -> str:
        return json.dumps({"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}})

    client = AnthropicClient(transport=transport)

    with pytest.raises(LLMTransportError, match="Overloaded"):
        client.complete(LLMRequest(prompt="go"))


def test_missing_text_raises_format_error() -> None:
    client = AnthropicClient(transport=lambda _: json.dumps({"content": []}))

    with pytest.raises(LLMResponseFormatError):
        client.complete(LLMRequest(prompt="go"))


def test_retries_until_success() -> None:
    responses = iter([json.dumps({"content": []}), _message_response("second time lucky")])
    client = AnthropicClient(transport=lambda _: next(responses), max_attempts=2, retry_delay=0)

    assert client.complete(LLMRequest(prompt="go")) == "second time lucky"


def test_retry_exhaustion_is_an_upstream_error() -> None:
    def transport(_: Dict[str, Any]) -> str:
        raise LLMTransportError("connection reset")

    client = AnthropicClient(transport=transport, max_attempts=3, retry_delay=0)

    with pytest.raises(LLMRetryError, match="after 3 attempt") as excinfo:
        client.complete(LLMRequest(prompt="go"))
    assert isinstance(excinfo.value, UpstreamError)


def test_key_required_for_http_transport(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

    with pytest.raises(ValueError):
        AnthropicClient()


def test_key_read_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-env")

    client = AnthropicClient()

    assert client.model == "claude-3-5-sonnet-latest"
