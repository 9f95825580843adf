"""Ollama local LLM provider (OpenAI-compatible API)."""

import logging
import os

from src.core.errors import ProviderUnavailable
from src.llm.base import SYSTEM_PROMPT, LLMProvider

logger = logging.getLogger(__name__)

_OLLAMA_BASE_URL = "http://localhost:11434/v1"


class OllamaProvider(LLMProvider):
    """LLM provider using a local Ollama instance via OpenAI-compatible API."""

    @property
    def provider_id(self) -> str:
        return "ollama"

    @property
    def default_model(self) -> str:
        return "llama3"

    @property
    def env_var(self) -> None:
        return None

    def complete_chat(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 1024,
    ) -> str:
        try:
            import openai
        except ImportError:
            msg = (
                "openai is required for Ollama (OpenAI-compatible API). "
                "Install with: pip install 'nl-job-search[openai]'"
            )
            raise ImportError(msg) from None

        client = openai.OpenAI(
            base_url=os.environ.get("OLLAMA_BASE_URL", _OLLAMA_BASE_URL),
            api_key="ollama",
            timeout=self.config.timeout_seconds,
            max_retries=self.config.max_retries,
        )
        use_system = system if system is not None else SYSTEM_PROMPT

        logger.info("Sending prompt to Ollama (%s)...", self.model)
        response = client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": use_system},
                {"role": "user", "content": prompt},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
        )

        content = response.choices[0].message.content
        if not content:
            msg = "Ollama returned an empty response"
            raise ProviderUnavailable(msg)
        return content  # type: ignore[no-any-return]
