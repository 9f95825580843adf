"""Abstract base class for LLM providers and shared response handling."""

import json
import re
from abc import ABC, abstractmethod
from typing import Any

from src.core.config import LLMConfig
from src.core.errors import MalformedModelOutput

SYSTEM_PROMPT = (
    "You are an expert job search assistant for the luxury private service "
    "industry. Always return valid JSON exactly as specified."
)


def strip_code_fences(raw_text: str) -> str:
    """Remove a surrounding ```json ... ``` wrapper, if present."""
    cleaned = re.sub(r"^```(?:json)?\s*\n?", "", raw_text.strip())
    return re.sub(r"\n?```\s*$", "", cleaned).strip()


def parse_json_response(raw_text: str | None) -> Any:
    """Decode an LLM response as JSON.

    Handles markdown-wrapped JSON (```json ... ```) and plain JSON.
    Raises MalformedModelOutput when the text is missing, blank or not JSON.
    """
    if not isinstance(raw_text, str) or not raw_text.strip():
        msg = f"LLM returned no text to parse (got {raw_text!r})"
        raise MalformedModelOutput(msg)
    try:
        return json.loads(strip_code_fences(raw_text))
    except json.JSONDecodeError as e:
        msg = f"Failed to parse LLM response as JSON: {e}"
        raise MalformedModelOutput(msg) from e


class LLMProvider(ABC):
    """Base class that every LLM provider must implement.

    Providers are constructed explicitly and passed to the components that need
    them; the timeout and retry budget come from ``LLMConfig``.
    """

    def __init__(self, config: LLMConfig | None = None) -> None:
        self.config = config or LLMConfig()

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Unique identifier for this provider (e.g. 'openai')."""

    @property
    @abstractmethod
    def default_model(self) -> str:
        """The default model ID used when the config names none."""

    @property
    @abstractmethod
    def env_var(self) -> str | None:
        """Environment variable name for the API key, or None if not needed."""

    @property
    def model(self) -> str:
        return self.config.model or self.default_model

    @abstractmethod
    def complete_chat(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 1024,
    ) -> str:
        """Send a single-turn chat prompt and return the raw response text.

        Args:
            prompt: User message.
            system: Override the system prompt. None falls back to SYSTEM_PROMPT.
            temperature: Sampling temperature.
            max_tokens: Upper bound on generated tokens.

        Returns:
            Raw text response from the LLM (expected to be JSON).
        """

    def transcribe_audio(self, audio: bytes) -> str:
        """Turn recorded speech into text. Not every provider supports this."""
        msg = f"{self.provider_id} does not support audio transcription"
        raise NotImplementedError(msg)
