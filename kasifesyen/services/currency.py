"""Currency code normalization and conversion to the settlement currency."""

import logging
import re
from dataclasses import dataclass, replace
from decimal import ROUND_HALF_UP, Decimal

import httpx

from kasifesyen.config import Settings, get_settings
from kasifesyen.errors import ConversionUnavailable
from kasifesyen.services.receipt_parser import ValidatedReceipt

logger = logging.getLogger(__name__)

ISO_CURRENCY_CODES = frozenset(
    {
        "MYR", "USD", "GBP", "EUR", "JPY", "CNY", "SGD", "AUD", "CAD", "NZD", "CHF",
        "HKD", "TWD", "KRW", "INR", "THB", "VND", "IDR", "PHP", "MMK", "BND",
    }
)  # fmt: skip

# Symbol -> candidate codes, most likely first
CURRENCY_SYMBOLS: dict[str, tuple[str, ...]] = {
    "$": ("USD", "CAD", "AUD", "SGD", "HKD"),
    "US$": ("USD",),
    "£": ("GBP",),
    "€": ("EUR",),
    "¥": ("JPY", "CNY"),
    "₹": ("INR",),
    "฿": ("THB",),
    "RM": ("MYR",),
    "S$": ("SGD",),
    "A$": ("AUD",),
    "C$": ("CAD",),
    "NT$": ("TWD",),
    "HK$": ("HKD",),
    "₩": ("KRW",),
    "₫": ("VND",),
    "Rp": ("IDR",),
    "₱": ("PHP",),
    "K": ("MMK",),
    "B$": ("BND",),
}

# Longest first so "HK$" wins over "$"
_SYMBOLS_BY_LENGTH = sorted(CURRENCY_SYMBOLS, key=len, reverse=True)
_WORD_RE = re.compile(r"[A-Z]+")
_CENTS = Decimal("0.01")


@dataclass(frozen=True)
class CurrencyContext:
    """Hints for an ambiguous currency symbol. Advisory only: logged, never decisive."""

    location: str | None = None
    language: str | None = None


def _symbol_matches(symbol: str, cleaned: str) -> bool:
    symbol = symbol.upper()
    if symbol.isalpha():
        # lettered symbols ("RM", "K") must stand alone, "SEK" is not "K"
        return symbol in _WORD_RE.findall(cleaned)
    return symbol in cleaned


def normalize_currency(raw: str | None, context: CurrencyContext | None = None) -> str | None:
    """Map a reported currency symbol or code to an ISO code.

    Returns None when no currency can be determined, meaning "do not convert".
    Never raises.
    """
    if not isinstance(raw, str):
        return None
    cleaned = raw.strip().upper()
    if not cleaned:
        return None

    if cleaned in ISO_CURRENCY_CODES:
        return cleaned

    for symbol in _SYMBOLS_BY_LENGTH:
        if not _symbol_matches(symbol, cleaned):
            continue
        candidates = CURRENCY_SYMBOLS[symbol]
        if context and (context.location or context.language):
            logger.info(
                f"Currency context - location: {context.location}, language: {context.language}"
            )
        if len(candidates) > 1:
            logger.info(
                f"Ambiguous currency symbol '{symbol}' could be: {', '.join(candidates)}; "
                f"using {candidates[0]}"
            )
        return candidates[0]

    logger.warning(f"Unknown currency format: {raw}")
    if len(cleaned) == 3 and cleaned.isalpha():
        return cleaned
    return None


def round_currency(value: Decimal) -> float:
    """Round half-up to cents."""
    return float(value.quantize(_CENTS, rounding=ROUND_HALF_UP))


class CurrencyConverter:
    """Converts amounts into the settlement currency using live exchange rates."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.api_url = self.settings.exchange_rate_api_url.rstrip("/")
        self.settlement_currency = self.settings.settlement_currency.upper()
        self.timeout = self.settings.exchange_rate_timeout_seconds
        self._transport = transport

    async def get_rate(self, currency: str) -> Decimal:
        """Get the rate from currency to the settlement currency.

        Raises:
            ConversionUnavailable: the rate source is unreachable or has no rate
        """
        code = currency.upper()
        if code == self.settlement_currency:
            return Decimal(1)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(f"{self.api_url}/{code}")
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Exchange rate lookup failed for {code}: {e}")
            raise ConversionUnavailable(code, str(e)) from e

        if not isinstance(data, dict) or data.get("result", "success") != "success":
            detail = data.get("error-type", "lookup failed") if isinstance(data, dict) else "bad payload"
            raise ConversionUnavailable(code, str(detail))

        rate = (data.get("rates") or {}).get(self.settlement_currency)
        if rate is None:
            raise ConversionUnavailable(code, f"no {self.settlement_currency} rate")

        logger.info(f"Exchange rate {code} -> {self.settlement_currency}: {rate}")
        return Decimal(str(rate))

    async def convert(self, amount: float, currency: str) -> float:
        """Convert a single amount, rounded to cents."""
        rate = await self.get_rate(currency)
        return round_currency(Decimal(str(amount)) * rate)

    async def convert_receipt(self, receipt: ValidatedReceipt, currency: str) -> ValidatedReceipt:
        """Convert every monetary field of a receipt with one rate.

        All or nothing: the rate is fetched before anything is converted, and a
        new receipt is returned so the input is never partially converted.
        """
        if currency.upper() == self.settlement_currency:
            return receipt

        rate = await self.get_rate(currency)

        def apply(amount: float) -> float:
            return round_currency(Decimal(str(amount)) * rate)

        items = []
        for item in receipt.items:
            converted = apply(item.price)
            logger.info(
                f"Item: {item.name} - {item.price} {currency} -> {converted} {self.settlement_currency}"
            )
            items.append(item.model_copy(update={"price": converted}))

        tax = receipt.tax.model_copy(update={"amount": apply(receipt.tax.amount)}) if receipt.tax else None
        discounts = (
            [d.model_copy(update={"amount": apply(d.amount)}) for d in receipt.discounts]
            if receipt.discounts is not None
            else None
        )

        converted_receipt = replace(
            receipt,
            items=items,
            subtotal=apply(receipt.subtotal),
            tax=tax,
            discounts=discounts,
            total=apply(receipt.total),
        )
        logger.info(
            f"Total: {receipt.total} {currency} -> {converted_receipt.total} {self.settlement_currency}"
        )
        return converted_receipt
