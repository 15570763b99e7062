"""Tax relief classification of receipt items."""

import logging
from collections.abc import Sequence

from kasifesyen.config import Settings, get_settings
from kasifesyen.schemas.receipt import LineItem
from kasifesyen.services.llm import GeminiService
from kasifesyen.services.llm_prompts import TAX_RELIEF_CATEGORIES, get_tax_relief_prompt

logger = logging.getLogger(__name__)

_CATEGORIES_BY_KEY = {name.lower(): name for name in TAX_RELIEF_CATEGORIES}


def match_tax_relief_category(text: str | None) -> str | None:
    """Map a model answer to a taxonomy label, or None when it names none."""
    if not text:
        return None
    cleaned = text.strip().strip("\"'*`.").strip()
    if not cleaned or cleaned.lower() == "null":
        return None
    return _CATEGORIES_BY_KEY.get(cleaned.lower())


class TaxReliefClassifier:
    """Asks the model which tax relief category a receipt's items fall under.

    Classification is optional enrichment: every failure degrades to None.
    """

    def __init__(self, gemini: GeminiService, settings: Settings | None = None):
        self.gemini = gemini
        self.settings = settings or get_settings()

    async def classify(self, items: Sequence[LineItem]) -> str | None:
        if not items:
            return None

        prompt = get_tax_relief_prompt(items, self.settings.settlement_currency)
        try:
            answer = await self.gemini.generate_text(prompt)
        except Exception as e:
            logger.warning(f"Tax relief classification failed: {e}")
            return None

        category = match_tax_relief_category(answer)
        if category is None and answer and answer.strip().strip("\"'").lower() != "null":
            logger.warning(f"Model returned an unknown tax relief category: {answer!r}")
        logger.info(f"Tax relief category: {category}")
        return category
