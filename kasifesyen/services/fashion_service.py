"""Outfit recommendations for a clothing item, with synthesized previews."""

import base64
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from kasifesyen.config import Settings, get_settings
from kasifesyen.errors import ExtractionFailure, InvalidInput
from kasifesyen.schemas.fashion import FashionResult, Gender
from kasifesyen.services.llm import GeminiService
from kasifesyen.services.llm_prompts import (
    build_outfit_image_prompt,
    get_fashion_prompt,
    get_image_generation_prompt,
)
from kasifesyen.services.sanitizer import parse_model_json

logger = logging.getLogger(__name__)

REQUIRED_KEYS = ("itemType", "outfits", "stylingTips", "itemDescription")


@dataclass
class FashionRequest:
    """A recommendation request: a photo of the item, a text description, or both."""

    image: bytes | None = None
    image_mime_type: str = "image/jpeg"
    prompt: str | None = None
    gender: Gender = Gender.FEMALE
    halal_mode: bool = False
    style_preference: str | None = None
    season: str | None = None
    occasion: str | None = None

    @property
    def description(self) -> str | None:
        if self.prompt and self.prompt.strip():
            return self.prompt.strip()
        return None


def parse_fashion_result(raw: str) -> FashionResult:
    """Parse model output into a FashionResult.

    Raises:
        ExtractionFailure: the output is not JSON, or a required key is missing or empty
    """
    payload: dict[str, Any] = parse_model_json(raw)

    missing = [key for key in REQUIRED_KEYS if not payload.get(key)]
    if missing:
        logger.warning(f"Fashion response is missing {missing}")
        raise ExtractionFailure("Invalid JSON structure from model", raw_text=raw)

    try:
        return FashionResult.model_validate(payload)
    except ValidationError as e:
        logger.warning(f"Fashion response failed validation: {e}")
        raise ExtractionFailure("Invalid JSON structure from model", raw_text=raw) from e


class FashionWorkflow:
    """Analyzes an item, recommends outfits and renders a preview for each."""

    def __init__(
        self,
        gemini: GeminiService,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.gemini = gemini
        self.settings = settings or get_settings()
        self.clock = clock

    async def recommend(self, request: FashionRequest) -> FashionResult:
        """Produce outfit recommendations for a request.

        Raises:
            InvalidInput: neither an image nor a description was given
            ExtractionFailure: the model response has the wrong shape
        """
        if not request.image and request.description is None:
            raise InvalidInput("Please provide either an image or a text description")

        started = self.clock()

        prompt = get_fashion_prompt(
            request.gender,
            request.halal_mode,
            style_preference=request.style_preference,
            season=request.season,
            occasion=request.occasion,
            user_description=request.description,
        )
        raw = await self.gemini.generate_text(
            prompt,
            image=request.image or None,
            mime_type=request.image_mime_type,
        )
        result = parse_fashion_result(raw)
        logger.info(f"Recommended {len(result.outfits)} outfits for a {result.item_type}")

        for outfit in result.outfits:
            if not outfit.outfit_prompt:
                outfit.outfit_prompt = build_outfit_image_prompt(
                    result.item_type, result.item_description, outfit
                )

        elapsed = self.clock() - started
        budget = self.settings.image_synthesis_budget_seconds
        if elapsed > budget:
            logger.warning(
                f"Skipping outfit images: {elapsed:.1f}s spent of a {budget:.1f}s budget"
            )
            return result

        for index, outfit in enumerate(result.outfits):
            outfit.generated_image = await self._render(index, outfit.outfit_prompt)

        return result

    async def _render(self, index: int, outfit_prompt: str) -> str:
        """Render one outfit; any failure yields the placeholder image."""
        try:
            image = await self.gemini.generate_image(get_image_generation_prompt(outfit_prompt))
        except Exception as e:
            logger.error(f"Error generating image for outfit {index}: {e}")
            return self.settings.placeholder_image_url

        if not image:
            logger.warning(f"No image data returned for outfit {index}")
            return self.settings.placeholder_image_url

        return f"data:image/png;base64,{base64.b64encode(image).decode('ascii')}"
