"""OpenAI LLM provider (chat completions and Whisper transcription)."""

import logging
import os
from typing import Any

from src.core.errors import ProviderUnavailable
from src.llm.base import SYSTEM_PROMPT, LLMProvider

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """LLM provider using the OpenAI API."""

    @property
    def provider_id(self) -> str:
        return "openai"

    @property
    def default_model(self) -> str:
        return "gpt-4o-mini"

    @property
    def env_var(self) -> str:
        return "OPENAI_API_KEY"

    def _client(self) -> Any:
        api_key = os.environ.get("OPENAI_API_KEY")
        if not api_key:
            msg = "OPENAI_API_KEY environment variable is required"
            raise ValueError(msg)

        try:
            import openai
        except ImportError:
            msg = (
                "openai is required for the OpenAI provider. "
                "Install with: pip install 'nl-job-search[openai]'"
            )
            raise ImportError(msg) from None

        return openai.OpenAI(
            api_key=api_key,
            timeout=self.config.timeout_seconds,
            max_retries=self.config.max_retries,
        )

    def complete_chat(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 1024,
    ) -> str:
        client = self._client()
        use_system = system if system is not None else SYSTEM_PROMPT

        logger.info("Sending prompt to OpenAI API (%s)...", self.model)
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
            msg = "OpenAI returned an empty response"
            raise ProviderUnavailable(msg)
        return content  # type: ignore[no-any-return]

    def transcribe_audio(self, audio: bytes) -> str:
        client = self._client()

        logger.info("Sending %d bytes of audio to OpenAI (%s)...",
                    len(audio), self.config.transcription_model)
        transcription = client.audio.transcriptions.create(
            file=("audio.webm", audio),
            model=self.config.transcription_model,
            language="en",
        )
        return transcription.text  # type: ignore[no-any-return]
