"""Classify and validate receipt extraction responses.

The model answers in one of two shapes: an explicit non-receipt
(``{"isReceipt": false, "reason": ...}``) or a receipt wrapped in ``data``.
``classify_receipt_response`` maps those to ``NonReceipt`` and
``ReceiptExtraction``; anything else is an ``ExtractionFailure``.
``validate_receipt`` then enforces the required fields and coerces every
number, turning unparseable values into 0 rather than rejecting the receipt.
"""

import json
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any

from kasifesyen.errors import ExtractionFailure, IncompleteReceipt
from kasifesyen.schemas.receipt import Discount, LineItem, Tax

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "Miscellaneous"

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")
_NUMERIC_SPAN_RE = re.compile(r"-?\d[\d.,]*")
_DECIMAL_COMMA_RE = re.compile(r"^-?\d+,\d{1,2}$")


@dataclass
class ReceiptExtraction:
    """A response the model marked as a receipt."""

    data: dict[str, Any]
    metadata: dict[str, Any] = field(default_factory=dict)
    tax_category: str | None = None
    confidence: float | None = None


@dataclass
class NonReceipt:
    """A response the model marked as not a receipt."""

    reason: str


@dataclass
class ValidatedReceipt:
    """Structurally complete receipt with numeric fields coerced."""

    store_name: str
    date: str
    items: list[LineItem]
    subtotal: float
    total: float
    tax: Tax | None = None
    discounts: list[Discount] | None = None
    category: str = DEFAULT_CATEGORY
    currency_converted: bool = False
    original_currency: str | None = None
    store_location: str | None = None
    receipt_language: str | None = None
    tax_category_hint: str | None = None
    confidence: float | None = None


def coerce_number(value: Any) -> float:
    """Best-effort conversion to float; anything unparseable becomes 0."""
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, int | float):
        try:
            number = float(value)
        except OverflowError:
            return 0.0
        return number if math.isfinite(number) else 0.0
    if isinstance(value, str):
        span = _NUMERIC_SPAN_RE.search(value)
        if span is None:
            return 0.0
        text = _normalize_separators(span.group().rstrip(".,"))
        match = _NUMBER_RE.search(text)
        if match:
            number = float(match.group())
            return number if math.isfinite(number) else 0.0
    return 0.0


def _normalize_separators(text: str) -> str:
    """Drop thousands separators and turn the decimal mark into a dot.

    With both marks present the last one is the decimal mark, so
    ``1.234,56`` and ``1,234.56`` both read as 1234.56.
    """
    if "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            return text.replace(".", "").replace(",", ".")
        return text.replace(",", "")
    if _DECIMAL_COMMA_RE.match(text):
        return text.replace(",", ".")
    return text.replace(",", "")


def coerce_amount(value: Any) -> float:
    """Coerce a monetary value, clamping negatives to 0."""
    return max(coerce_number(value), 0.0)


def coerce_quantity(value: Any) -> int | None:
    """Coerce a quantity to a positive integer, or None when not usable."""
    quantity = coerce_number(value)
    return int(quantity) if quantity >= 1 else None


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() in ("null", "none"):
        return None
    return text


def _first(mapping: dict[str, Any], *keys: str) -> Any:
    """Return the first present, non-null value among keys."""
    for key in keys:
        if mapping.get(key) is not None:
            return mapping[key]
    return None


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, list | dict):
        return not value
    return False


def classify_receipt_response(payload: Any) -> ReceiptExtraction | NonReceipt:
    """Map a parsed model response to a receipt or an explicit non-receipt."""
    if not isinstance(payload, dict):
        raise ExtractionFailure("Receipt response is not a JSON object", raw_text=str(payload))

    is_receipt = _first(payload, "isReceipt", "is_receipt")
    if is_receipt is not None and not _to_bool(is_receipt):
        reason = _optional_str(payload.get("reason")) or "Unable to identify receipt content"
        return NonReceipt(reason=reason)

    data = payload["data"] if "data" in payload else payload
    if not isinstance(data, dict):
        raise ExtractionFailure(
            "Receipt response has no data object", raw_text=json.dumps(payload, default=str)
        )

    metadata = payload.get("metadata")
    confidence = _first(payload, "confidenceScore", "confidence")
    return ReceiptExtraction(
        data=data,
        metadata=metadata if isinstance(metadata, dict) else {},
        tax_category=_optional_str(_first(payload, "taxCategory", "tax_category")),
        confidence=coerce_number(confidence) if confidence is not None else None,
    )


def _parse_items(raw_items: list[Any]) -> list[LineItem]:
    items = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            logger.warning(f"Skipping malformed receipt item: {raw!r}")
            continue
        name = _optional_str(raw.get("name"))
        if not name:
            logger.warning(f"Skipping receipt item without a name: {raw!r}")
            continue
        items.append(
            LineItem(
                name=name,
                price=coerce_amount(raw.get("price")),
                quantity=coerce_quantity(raw.get("quantity")),
            )
        )
    return items


def _parse_tax(raw_tax: Any) -> Tax | None:
    if raw_tax is None:
        return None
    if isinstance(raw_tax, dict):
        return Tax(rate=coerce_amount(raw_tax.get("rate")), amount=coerce_amount(raw_tax.get("amount")))
    # a bare number is the tax amount
    return Tax(amount=coerce_amount(raw_tax))


def _parse_discounts(raw_discounts: Any) -> list[Discount] | None:
    if not isinstance(raw_discounts, list):
        return None
    discounts = []
    for raw in raw_discounts:
        if not isinstance(raw, dict):
            continue
        discounts.append(
            Discount(
                description=_optional_str(raw.get("description")) or "Discount",
                # receipts print discounts as negatives; keep the magnitude
                amount=abs(coerce_number(raw.get("amount"))),
            )
        )
    return discounts


def validate_receipt(extraction: ReceiptExtraction) -> ValidatedReceipt:
    """Enforce required fields and coerce numeric values.

    Raises:
        IncompleteReceipt: store name, items, total or date is missing
    """
    data = extraction.data
    hints = extraction.metadata

    store_name = _optional_str(_first(data, "storeName", "store_name"))
    date = _optional_str(data.get("date"))
    raw_items = data.get("items")
    total = data.get("total")

    items = _parse_items(raw_items) if isinstance(raw_items, list) else []

    missing = [
        name
        for name, value in (
            ("store_name", store_name),
            ("items", items),
            ("total", total),
            ("date", date),
        )
        if _is_missing(value)
    ]
    if missing:
        logger.warning(f"Receipt extraction is missing required fields: {missing}")
        raise IncompleteReceipt(missing)

    currency_converted = _first(data, "currencyConverted", "currency_converted")
    if currency_converted is None:
        currency_converted = _first(hints, "currencyConverted", "currency_converted")
    original_currency = _first(data, "originalCurrency", "original_currency")
    if original_currency is None:
        original_currency = _first(hints, "originalCurrency", "original_currency")

    return ValidatedReceipt(
        store_name=store_name,
        date=date,
        items=items,
        subtotal=coerce_amount(data.get("subtotal")),
        total=coerce_amount(total),
        tax=_parse_tax(data.get("tax")),
        discounts=_parse_discounts(data.get("discounts")),
        category=_optional_str(data.get("category")) or DEFAULT_CATEGORY,
        currency_converted=_to_bool(currency_converted),
        original_currency=_optional_str(original_currency),
        store_location=_optional_str(_first(data, "storeLocation", "store_location")),
        receipt_language=_optional_str(_first(data, "receiptLanguage", "receipt_language")),
        tax_category_hint=extraction.tax_category,
        confidence=extraction.confidence,
    )
