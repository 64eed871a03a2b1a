"""Anthropic Messages API client."""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Callable, Dict, Optional

from .llm_client import LLMClient, LLMResponseFormatError, LLMTransportError

__all__ = ["ANTHROPIC_API_VERSION", "AnthropicClient", "DEFAULT_MODEL"]

LOGGER = logging.getLogger(__name__)

ANTHROPIC_API_VERSION = "2023-06-01"
DEFAULT_MODEL = "claude-3-5-sonnet-latest"

Transport = Callable[[Dict[str, Any]], str]


class AnthropicClient(LLMClient):
    """Thin adapter around the Anthropic Messages API."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: str = "https://api.anthropic.com/v1/messages",
        model: str = DEFAULT_MODEL,
        max_tokens: int = 4096,
        transport: Optional[Transport] = None,
        timeout: Optional[float] = None,
        max_attempts: int = 1,
        retry_delay: float = 0.5,
    ) -> None:
        super().__init__(
            model=model,
            max_tokens=max_tokens,
            max_attempts=max_attempts,
            retry_delay=retry_delay,
        )
        self._api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        self._base_url = base_url
        self._timeout = timeout
        self._transport = transport or self._http_transport

        if transport is None and not self._api_key:
            raise ValueError("An API key is required when using the default transport.")

    def _raw_invoke(self, payload: Dict[str, Any]) -> str:
        """Send the request over the configured transport."""
        LOGGER.info("Calling Anthropic API with %d characters", len(payload["messages"][0]["content"]))
        try:
            raw_response = self._transport(payload)
        except LLMTransportError:
            raise
        except Exception as error:  # pragma: no cover - transport bug
            raise LLMTransportError(f"Transport rejected the request: {error}") from error

        text = self._extract_text(raw_response)
        if text is None:
            raise LLMResponseFormatError("Anthropic response did not contain any text content.")
        LOGGER.info("Received response from Anthropic API")
        return text

    def _http_transport(self, payload: Dict[str, Any]) -> str:
        """Default HTTP transport that targets the Messages API."""
        import urllib.error
        import urllib.request

        data = json.dumps(payload).encode("utf-8")
        request = urllib.request.Request(
            self._base_url,
            data=data,
            headers={
                "Content-Type": "application/json",
                "x-api-key": str(self._api_key),
                "anthropic-version": ANTHROPIC_API_VERSION,
            },
            method="POST",
        )

        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                raw = response.read()
                status = getattr(response, "status", 200)
        except TimeoutError as error:  # pragma: no cover - network-dependent
            raise LLMTransportError("Anthropic response timed out.") from error
        except urllib.error.HTTPError as error:  # pragma: no cover - network-dependent
            message = error.read().decode("utf-8", errors="ignore")
            raise LLMTransportError(f"HTTP {error.code}: {message}") from error
        except urllib.error.URLError as error:  # pragma: no cover - network-dependent
            raise LLMTransportError(f"Failed to reach Anthropic endpoint: {error.reason}") from error

        if status >= 400:
            raise LLMTransportError(f"Unexpected HTTP status {status}")

        return raw.decode("utf-8")

    @staticmethod
    def _extract_text(raw_response: str) -> Optional[str]:
        """Join the text blocks of a Messages API response."""
        if not raw_response:
            return None

        try:
            data = json.loads(raw_response)
        except json.JSONDecodeError:
            return raw_response

        if not isinstance(data, dict):
            return None

        if data.get("type") == "error":
            error = data.get("error") if isinstance(data.get("error"), dict) else {}
            raise LLMTransportError(str(error.get("message") or "Anthropic API returned an error."))

        content = data.get("content")
        if isinstance(content, str):
            return content
        if not isinstance(content, list):
            return None

        parts = [
            block["text"]
            for block in content
            if isinstance(block, dict) and block.get("type") == "text" and isinstance(block.get("text"), str)
        ]
        if not parts:
            return None
        return "".join(parts)
