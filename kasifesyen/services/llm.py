"""LLM service for Google Gemini integration."""

import logging

from google import genai
from google.genai import types

from kasifesyen.config import Settings, get_settings

logger = logging.getLogger(__name__)

SAFETY_SETTINGS = [
    types.SafetySetting(category=category, threshold=types.HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE)
    for category in (
        types.HarmCategory.HARM_CATEGORY_HARASSMENT,
        types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
        types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
        types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
    )
]


class GeminiService:
    """Service for multimodal text generation and image synthesis with Gemini."""

    def __init__(self, settings: Settings | None = None, client: genai.Client | None = None) -> None:
        self.settings = settings or get_settings()
        self.model = self.settings.gemini_model
        self.image_model = self.settings.gemini_image_model
        self._client = client

    @property
    def is_configured(self) -> bool:
        """Check if a Gemini API key (or an explicit client) is available."""
        return self._client is not None or bool(self.settings.gemini_api_key)

    def _get_client(self) -> genai.Client:
        if self._client is None:
            if not self.settings.gemini_api_key:
                raise RuntimeError("Gemini API not configured")
            self._client = genai.Client(
                api_key=self.settings.gemini_api_key,
                # milliseconds
                http_options=types.HttpOptions(timeout=int(self.settings.model_timeout_seconds * 1000)),
            )
        return self._client

    async def generate_text(
        self,
        prompt: str,
        image: bytes | None = None,
        mime_type: str = "image/jpeg",
        temperature: float | None = None,
    ) -> str:
        """Generate a text response, optionally grounded on an inline image.

        Args:
            prompt: Instruction text
            image: Raw image bytes sent inline with the prompt
            mime_type: MIME type of the image

        Returns:
            The model's text output (may be empty)
        """
        contents: list[str | types.Part] = [prompt]
        if image is not None:
            contents.append(types.Part.from_bytes(data=image, mime_type=mime_type))

        response = await self._get_client().aio.models.generate_content(
            model=self.model,
            contents=contents,
            config=types.GenerateContentConfig(
                safety_settings=SAFETY_SETTINGS,
                temperature=temperature,
            ),
        )
        return response.text or ""

    async def generate_image(self, prompt: str) -> bytes | None:
        """Synthesize an image from a prompt.

        Returns the first inline image found across the response candidates,
        or None when the model answered with text only.
        """
        response = await self._get_client().aio.models.generate_content(
            model=self.image_model,
            contents=prompt,
            config=types.GenerateContentConfig(
                temperature=1,
                top_p=0.95,
                top_k=40,
                max_output_tokens=8192,
                response_modalities=["TEXT", "IMAGE"],
            ),
        )

        for candidate in response.candidates or []:
            parts = candidate.content.parts if candidate.content and candidate.content.parts else []
            for part in parts:
                if part.inline_data is not None and part.inline_data.data:
                    return part.inline_data.data

        logger.debug("Image model returned no inline image data")
        return None
