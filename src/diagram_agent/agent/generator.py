"""
The Generation Capability.

The worker depends only on the `DiagramGenerator` protocol: one awaitable call
that turns a prompt into text and signals failure by raising. `GeminiGenerator`
is the production implementation on top of Google's Generative AI SDK.

The SDK is configured lazily, on the first call, so a missing API key becomes a
failed task instead of stopping the server at import time.
"""

import logging
from typing import Optional

import google.generativeai as genai
from typing_extensions import Protocol

from ..config import DEFAULT_MODEL_NAME, Settings

logger = logging.getLogger(__name__)


class GenerationError(Exception):
    """The generation capability is misconfigured or returned unusable output."""


class DiagramGenerator(Protocol):
    async def generate(self, prompt: str) -> str:
        ...


class GeminiGenerator:
    """Generates text with a Gemini model, in a single non-streaming call."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: str = DEFAULT_MODEL_NAME,
        temperature: Optional[float] = None,
    ):
        self.api_key = api_key
        self.model_name = model_name
        self.temperature = temperature
        self._model = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "GeminiGenerator":
        return cls(
            api_key=settings.google_api_key,
            model_name=settings.model_name,
            temperature=settings.temperature,
        )

    def _get_model(self):
        if self._model is None:
            if not self.api_key:
                raise GenerationError("GOOGLE_API_KEY is not configured.")
            genai.configure(api_key=self.api_key)
            self._model = genai.GenerativeModel(self.model_name)
            logger.info("Initialized Gemini model '%s'.", self.model_name)
        return self._model

    async def generate(self, prompt: str) -> str:
        model = self._get_model()
        generation_config = None
        if self.temperature is not None:
            generation_config = genai.GenerationConfig(temperature=self.temperature)

        response = await model.generate_content_async(prompt, generation_config=generation_config)
        try:
            return response.text
        except ValueError as e:
            # Raised by the SDK when the candidate was blocked or is empty.
            raise GenerationError(f"Model returned no usable text: {e}") from e
