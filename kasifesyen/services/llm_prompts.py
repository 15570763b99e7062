"""LLM prompt templates for outfit recommendations and receipt extraction."""

from collections.abc import Sequence

from kasifesyen.schemas.fashion import Gender, ItemDescription, Outfit
from kasifesyen.schemas.receipt import LineItem

# ---------------------------------------------------------------------------
# Fashion
# ---------------------------------------------------------------------------

FASHION_RESPONSE_SCHEMA = """{
  "itemType": "string",
  "itemDescription": {
    "color": "string",
    "pattern": "string",
    "material": "string",
    "style": "string"
  },
  "outfits": [
    {
      "name": "string",
      "pieces": ["string", "string"],
      "occasions": ["string", "string"],
      "reasoning": "string",
      "outfitPrompt": "string"
    }
  ],
  "stylingTips": ["string", "string"]
}"""


def get_fashion_guidelines(gender: Gender, halal_mode: bool) -> str:
    """Return the audience and modesty guideline for the fashion prompt."""
    if gender == Gender.CAT:
        return "Create adorable and comfortable cat fashion recommendations."

    if halal_mode:
        if gender == Gender.MALE:
            return (
                "Ensure all outfits cover from knee to above the navel, adhering to "
                "Islamic guidelines for male modesty."
            )
        return (
            "Ensure all outfits provide full coverage from head to toe, including a hijab "
            "that covers hair, ears, and neck (showing only the oval face shape). Avoid "
            "outfits that reveal body shape/lines. The chest should be covered fully by "
            "the hijab **THIS IS IMPORTANT**."
        )

    audience = "men" if gender == Gender.MALE else "women"
    return f"Create fashion recommendations suitable for {audience}."


def get_fashion_prompt(
    gender: Gender,
    halal_mode: bool,
    style_preference: str | None = None,
    season: str | None = None,
    occasion: str | None = None,
    user_description: str | None = None,
) -> str:
    """Generate the outfit recommendation prompt."""
    specialty = "cat fashion" if gender == Gender.CAT else f"{gender.value}'s fashion"
    examples = "cat sweater, harness, bowtie" if gender == Gender.CAT else "shirt, pants, dress, etc"

    hints = []
    if style_preference:
        hints.append(f"- Preferred style: {style_preference}")
    if season:
        hints.append(f"- Season: {season}")
    if occasion:
        hints.append(f"- Occasion: {occasion}")
    hints_text = (
        "\nTake these preferences into account:\n" + "\n".join(hints) + "\n" if hints else ""
    )

    prompt = f"""You are a fashion expert specializing in {specialty}. {get_fashion_guidelines(gender, halal_mode)}

Analyze the clothing item and provide detailed fashion recommendations.

1. Identify the type of clothing item (e.g., {examples})
2. Describe its key features (color, pattern, material, style)
3. Suggest 3 different outfit combinations that would work well with this item
4. For each outfit, explain why it works and what occasions it would be suitable for
5. Provide styling tips specific to this item
{hints_text}
Format your response as a JSON object with the following structure, where
"outfitPrompt" is a detailed prompt to generate an image of that specific outfit:
{FASHION_RESPONSE_SCHEMA}

Return ONLY the JSON object, no other text."""

    if user_description:
        prompt += f"\n\nUser's description: {user_description}"
    return prompt


def build_outfit_image_prompt(item_type: str, item: ItemDescription, outfit: Outfit) -> str:
    """Build an image prompt for an outfit the model left without one."""
    item_text = (
        f"{item.color} {item_type} with {item.pattern} pattern, made of {item.material} "
        f"material, in a {item.style} style"
    )
    return (
        f"A photorealistic fashion outfit consisting of {', '.join(outfit.pieces)} "
        f"for {', '.join(outfit.occasions)}. The outfit MUST prominently feature the exact "
        f"{item_text} that the user described. Maintain the precise color, pattern, material, "
        "and style characteristics of the original item."
    )


def get_image_generation_prompt(outfit_prompt: str) -> str:
    """Wrap an outfit prompt for the image model."""
    return (
        f"Generate a photorealistic image of: {outfit_prompt}. It is CRITICAL that the "
        "generated image precisely matches the characteristics of the user's described "
        "clothing item, including exact color, pattern, material, and style details."
    )


# ---------------------------------------------------------------------------
# Receipts
# ---------------------------------------------------------------------------

EXPENSE_CATEGORIES = (
    "Food & Dining",
    "Transportation",
    "Travel & Lodging",
    "Office Supplies & Equipment",
    "Utilities & Bills",
    "Entertainment",
    "Medical & Health",
    "Shopping/Retail",
    "Professional Services",
    "Education & Training",
    "Miscellaneous",
)

TAX_RELIEF_CATEGORIES: dict[str, str] = {
    "Self": "Basic personal relief.",
    "Parent Medical": "Medical expenses for parents (special treatment, needs, Covid-19 tests).",
    "Disability Equipment": (
        "Purchase of basic support equipment for disabled individuals "
        "(self, spouse, child, parent)."
    ),
    "Disabled Person": "Relief for disabled individuals.",
    "Self Education": (
        "Education fees for self (tertiary, Masters, PhD, upskilling, vocational)."
    ),
    "Medical Illness": (
        "Medical expenses for serious diseases, fertility treatments, vaccinations, "
        "health screenings."
    ),
    "Medical Other": "Medical expenses for exams, Covid-19 tests, mental health consultations.",
    "Lifestyle": (
        "Books, journals, magazines, newspapers and similar publications; personal computer, "
        "smartphone or tablet; monthly internet bill; skill improvement or personal "
        "development course fees."
    ),
    "eBook/Digital": "Digital purchases (books, software), internet, gym memberships.",
    "Sports": "Sports equipment, rental fees, competition fees.",
    "Breastfeeding": "Breastfeeding equipment for children aged 2 and below.",
    "Childcare": "Childcare fees for registered centers/kindergartens (children 6 and below).",
    "Education Savings": "Net deposits in Skim Simpanan Pendidikan Nasional.",
    "Spouse/Alimony": "Relief for spouse or alimony payments.",
    "Disabled Spouse": "Relief for disabled spouse.",
    "Unmarried Child": "Relief for unmarried children.",
    "Child Education (18+)": "Relief for unmarried children (18+) in tertiary education.",
    "Disabled Child": "Relief for disabled children.",
    "Disabled Child Education": "Additional relief for disabled children (18+) in education.",
    "Life Insurance": "Life insurance premiums.",
    "Retirement/Pension": (
        "Mandatory/voluntary contributions to approved schemes (KWSP/EPF, pension)."
    ),
    "Annuity/PRS": "Deferred Annuity and Private Retirement Scheme.",
    "Medical Insurance": "Education and medical insurance.",
    "SOCSO": "Contributions to the Social Security Organisation.",
    "EV Charging": "Expenses on charging facilities for Electric Vehicles (personal use).",
}


def get_receipt_extraction_prompt(settlement_currency: str) -> str:
    """Generate the receipt verification and extraction prompt."""
    categories = "\n".join(f'    * "{category}"' for category in EXPENSE_CATEGORIES)
    return f"""You will be provided with an image. Determine whether it is a receipt and, if so, extract its contents.

**1. Receipt Verification**

A valid receipt shows identifiable elements such as a store/merchant name, a date of
purchase, purchased items with prices, the total amount paid and (optionally) the
payment method.

**2. Non-Receipt Handling**

If the image is NOT a valid receipt (a random photo, a document, anything else), respond
with ONLY:

{{
    "isReceipt": false,
    "reason": "Brief explanation of why this is not a valid receipt image"
}}

**3. Receipt Data Extraction**

If the image IS a valid receipt, respond with:

{{
    "isReceipt": true,
    "data": {{
        "storeName": "Store Name",
        "storeLocation": "City or country if printed, otherwise null",
        "receiptLanguage": "Language of the receipt text",
        "date": "YYYY-MM-DD",
        "items": [
            {{"name": "Item Description", "price": 0.00, "quantity": 1}}
        ],
        "subtotal": 0.00,
        "tax": {{"amount": 0.00, "rate": 0.00}},
        "discounts": [{{"description": "Discount Description", "amount": 0.00}}],
        "total": 0.00,
        "paymentMethod": "Cash, Credit Card, Debit Card, or null",
        "category": "General Expense Category",
        "currencyConverted": false,
        "originalCurrency": null
    }},
    "taxCategory": null,
    "confidenceScore": 0.9
}}

**4. Extraction Guidelines**

* Items:
    * Include ONLY products/services purchased; no discounts, taxes or other non-item lines.
    * Clean item names of discount/override text.
    * If both unit price and line total are present, ALWAYS use the line total for "price".
      Otherwise use whichever price is present.
    * If the quantity is missing, ambiguous or impossible, use null.
* Numbers:
    * Remove all currency symbols. Report every amount exactly as printed on the
      receipt; do NOT convert currencies yourself.
* Currency:
    * Set "currencyConverted" to true when the receipt is in any currency other than
      {settlement_currency}, false ONLY when it is explicitly in {settlement_currency}.
    * Set "originalCurrency" to the ISO currency code of the receipt ("$" alone means
      "USD", "£" means "GBP", "€" means "EUR"), or null when it is {settlement_currency}.
* Date: convert any printed format (MM/DD/YYYY, DD/MM/YYYY, ...) to YYYY-MM-DD; use null
  if it cannot be determined.
* Missing information: use null or empty strings. If crucial information is missing,
  return "isReceipt": false with a detailed reason.
* Category: choose the most general category from:
{categories}
* Accuracy: double check store name, item prices, quantities and totals; when several
  store names appear, use the most prominent one.
* Confidence: "confidenceScore" is between 0 (not confident) and 1 (very confident).

Your response MUST be valid JSON with no comments."""


def get_tax_relief_prompt(items: Sequence[LineItem], settlement_currency: str) -> str:
    """Generate the tax relief classification prompt for a receipt's items."""
    categories = "\n".join(
        f'* "{name}": {description}' for name, description in TAX_RELIEF_CATEGORIES.items()
    )
    items_text = "\n".join(f"- {item.name}: {item.price} {settlement_currency}" for item in items)
    return f"""Given a receipt with the following items, determine the most appropriate tax relief category for this receipt.
Analyze the items carefully and decide whether they qualify for any tax relief category.

Categories and their descriptions:
{categories}

If the receipt does not qualify for any tax relief category, respond with "null".

Receipt items:
{items_text}

Respond with just the category name or "null" without any additional explanation."""
