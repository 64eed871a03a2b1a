"""Client base class shared by the language-model integrations."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..errors import UpstreamError

__all__ = [
    "LLMClient",
    "LLMClientError",
    "LLMRequest",
    "LLMResponseFormatError",
    "LLMRetryError",
    "LLMTransportError",
]

LOGGER = logging.getLogger(__name__)


class LLMClientError(UpstreamError):
    """Base error raised for language-model client failures."""


class LLMTransportError(LLMClientError):
    """Raised when the underlying transport fails to return a response."""


class LLMResponseFormatError(LLMClientError):
    """Raised when the model returns a payload without any text."""


class LLMRetryError(LLMClientError):
    """Raised after exhausting the configured attempts."""


@dataclass(slots=True)
class LLMRequest:
    """Single-turn chat request sent to a model."""

    prompt: str
    system_prompt: Optional[str] = None
    temperature: Optional[float] = None

    def to_payload(self, model: str, max_tokens: int) -> Dict[str, Any]:
        """Render a transport-ready payload for the Messages API."""
        payload: Dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": self.prompt}],
        }
        if self.system_prompt:
            payload["system"] = self.system_prompt
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        return payload


class LLMClient:
    """High-level helper that returns the model's reply text."""

    def __init__(
        self,
        model: str,
        *,
        max_tokens: int = 4096,
        max_attempts: int = 1,
        retry_delay: float = 0.5,
    ) -> None:
        self._model = model
        self._max_tokens = max_tokens
        self._max_attempts = max(1, max_attempts)
        self._retry_delay = retry_delay

    @property
    def model(self) -> str:
        """Return the default model name configured for this client."""
        return self._model

    def complete(self, request: LLMRequest) -> str:
        """Invoke the model and return its reply text."""
        attempts = self._max_attempts
        last_error: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            payload = request.to_payload(self._model, self._max_tokens)
            try:
                text = self._raw_invoke(payload)
            except (LLMTransportError, LLMResponseFormatError) as error:
                last_error = error
                LOGGER.warning("Model call attempt %d/%d failed: %s", attempt, attempts, error)
                if attempt >= attempts:
                    break
                time.sleep(self._retry_delay)
                continue
            if not text.strip():
                last_error = LLMResponseFormatError("Model returned an empty response.")
                if attempt >= attempts:
                    break
                time.sleep(self._retry_delay)
                continue
            return text

        if attempts == 1 and last_error is not None:
            raise last_error
        error_message = (
            f"Failed to get a response after {attempts} attempt(s) for model "
            f"{self._model}: {last_error}"
        )
        raise LLMRetryError(error_message) from last_error

    def _raw_invoke(self, payload: Dict[str, Any]) -> str:
        """Perform the transport call. Subclasses must implement."""
        raise NotImplementedError("Subclasses must implement _raw_invoke().")
