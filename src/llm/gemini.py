"""Google Gemini LLM provider (google-genai SDK)."""

import logging
import os

from src.core.errors import ProviderUnavailable
from src.llm.base import SYSTEM_PROMPT, LLMProvider

logger = logging.getLogger(__name__)


class GeminiProvider(LLMProvider):
    """LLM provider using the Google Gemini API (google-genai SDK).

    The SDK has no client-level retry budget, so ``max_retries`` is applied here.
    """

    @property
    def provider_id(self) -> str:
        return "gemini"

    @property
    def default_model(self) -> str:
        return "gemini-2.5-flash"

    @property
    def env_var(self) -> str:
        return "GOOGLE_API_KEY"

    def complete_chat(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 1024,
    ) -> str:
        api_key = os.environ.get("GOOGLE_API_KEY")
        if not api_key:
            msg = "GOOGLE_API_KEY environment variable is required"
            raise ValueError(msg)

        try:
            from google import genai
            from google.genai import types as genai_types
        except ImportError:
            msg = (
                "google-genai is required for the Gemini provider. "
                "Install with: pip install 'nl-job-search[gemini]'"
            )
            raise ImportError(msg) from None

        use_system = system if system is not None else SYSTEM_PROMPT
        client = genai.Client(
            api_key=api_key,
            http_options=genai_types.HttpOptions(
                timeout=int(self.config.timeout_seconds * 1000),
            ),
        )
        generation_config = genai_types.GenerateContentConfig(
            system_instruction=use_system,
            temperature=temperature,
            max_output_tokens=max_tokens,
        )

        attempts = self.config.max_retries + 1
        attempt = 1
        while True:
            logger.info("Sending prompt to Gemini API (%s), attempt %d/%d...",
                        self.model, attempt, attempts)
            try:
                response = client.models.generate_content(
                    model=self.model,
                    contents=prompt,
                    config=generation_config,
                )
                break
            except Exception:
                if attempt >= attempts:
                    raise
                logger.warning("Gemini request failed, retrying", exc_info=True)
                attempt += 1

        if not response.text:
            msg = "Gemini returned an empty response"
            raise ProviderUnavailable(msg)
        return response.text  # type: ignore[no-any-return]
