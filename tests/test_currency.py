"""Tests for currency normalization and conversion."""

import httpx
import pytest

from kasifesyen.errors import ConversionUnavailable
from kasifesyen.schemas.receipt import Discount, LineItem, Tax
from kasifesyen.services.currency import CurrencyContext, CurrencyConverter, normalize_currency
from kasifesyen.services.receipt_parser import ValidatedReceipt


def rate_transport(rates: dict[str, float], calls: list[str] | None = None) -> httpx.MockTransport:
    """Exchange-rate API double answering every base currency with the given rates."""

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request.url.path)
        return httpx.Response(200, json={"result": "success", "rates": rates})

    return httpx.MockTransport(handler)


def make_receipt() -> ValidatedReceipt:
    return ValidatedReceipt(
        store_name="Diner",
        date="2024-03-01",
        items=[LineItem(name="Burger", price=10.0, quantity=1), LineItem(name="Soda", price=2.5)],
        subtotal=12.5,
        total=12.0,
        tax=Tax(rate=6.0, amount=0.75),
        discounts=[Discount(description="Coupon", amount=1.25)],
        currency_converted=True,
        original_currency="USD",
    )


class TestNormalizeCurrency:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("usd", "USD"),
            (" MYR ", "MYR"),
            ("$", "USD"),
            ("US$", "USD"),
            ("S$", "SGD"),
            ("HK$", "HKD"),
            ("NT$", "TWD"),
            ("A$ 12.00", "AUD"),
            ("RM", "MYR"),
            ("RM 12.50", "MYR"),
            ("£", "GBP"),
            ("€", "EUR"),
            ("¥", "JPY"),
            ("Rp", "IDR"),
            ("₱", "PHP"),
            ("K", "MMK"),
        ],
    )
    def test_known_codes_and_symbols(self, raw, expected):
        assert normalize_currency(raw) == expected

    def test_lettered_symbol_must_be_whole_word(self):
        # "K" must not match inside an unlisted code
        assert normalize_currency("SEK") == "SEK"

    def test_unknown_three_letter_code_is_kept(self):
        assert normalize_currency("xyz") == "XYZ"

    @pytest.mark.parametrize("raw", [None, "", "   ", "12.50", "dollars"])
    def test_unknown_yields_none(self, raw):
        assert normalize_currency(raw) is None

    def test_context_is_advisory_only(self):
        context = CurrencyContext(location="Singapore", language="English")
        assert normalize_currency("$", context) == "USD"


class TestCurrencyConverter:
    @pytest.mark.asyncio
    async def test_settlement_currency_needs_no_lookup(self, settings):
        calls: list[str] = []
        converter = CurrencyConverter(settings, transport=rate_transport({"MYR": 4.0}, calls))

        assert await converter.get_rate("myr") == 1
        assert calls == []

    @pytest.mark.asyncio
    async def test_get_rate(self, settings):
        calls: list[str] = []
        converter = CurrencyConverter(settings, transport=rate_transport({"MYR": 4.7}, calls))

        rate = await converter.get_rate("usd")

        assert float(rate) == 4.7
        assert calls == ["/v6/latest/USD"]

    @pytest.mark.asyncio
    async def test_convert_rounds_half_up(self, settings):
        converter = CurrencyConverter(settings, transport=rate_transport({"MYR": 0.5}))

        assert await converter.convert(0.05, "JPY") == 0.03
        assert await converter.convert(100, "JPY") == 50.0

    @pytest.mark.asyncio
    async def test_missing_rate_raises(self, settings):
        converter = CurrencyConverter(settings, transport=rate_transport({"USD": 1.0}))

        with pytest.raises(ConversionUnavailable) as exc_info:
            await converter.get_rate("EUR")

        assert exc_info.value.currency == "EUR"
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_error_payload_raises(self, settings):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json={"result": "error", "error-type": "unsupported-code"})
        )
        converter = CurrencyConverter(settings, transport=transport)

        with pytest.raises(ConversionUnavailable, match="unsupported-code"):
            await converter.get_rate("ZZZ")

    @pytest.mark.asyncio
    async def test_http_error_raises(self, settings):
        converter = CurrencyConverter(
            settings, transport=httpx.MockTransport(lambda request: httpx.Response(503))
        )

        with pytest.raises(ConversionUnavailable):
            await converter.get_rate("USD")

    @pytest.mark.asyncio
    async def test_network_error_raises(self, settings):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        converter = CurrencyConverter(settings, transport=httpx.MockTransport(handler))

        with pytest.raises(ConversionUnavailable):
            await converter.get_rate("USD")

    @pytest.mark.asyncio
    async def test_convert_receipt_converts_every_amount_once(self, settings):
        calls: list[str] = []
        converter = CurrencyConverter(settings, transport=rate_transport({"MYR": 4.0}, calls))
        receipt = make_receipt()

        converted = await converter.convert_receipt(receipt, "USD")

        assert [item.price for item in converted.items] == [40.0, 10.0]
        assert [item.name for item in converted.items] == ["Burger", "Soda"]
        assert converted.subtotal == 50.0
        assert converted.tax.amount == 3.0
        assert converted.tax.rate == 6.0
        assert converted.discounts[0].amount == 5.0
        assert converted.total == 48.0
        assert len(calls) == 1
        # the input receipt is left as it was
        assert receipt.total == 12.0
        assert receipt.items[0].price == 10.0

    @pytest.mark.asyncio
    async def test_convert_receipt_is_all_or_nothing(self, settings):
        converter = CurrencyConverter(
            settings, transport=httpx.MockTransport(lambda request: httpx.Response(500))
        )
        receipt = make_receipt()

        with pytest.raises(ConversionUnavailable):
            await converter.convert_receipt(receipt, "USD")

        assert receipt.total == 12.0
        assert receipt.subtotal == 12.5
        assert [item.price for item in receipt.items] == [10.0, 2.5]

    @pytest.mark.asyncio
    async def test_convert_receipt_to_settlement_currency_is_identity(self, settings):
        converter = CurrencyConverter(settings, transport=rate_transport({}))
        receipt = make_receipt()

        assert await converter.convert_receipt(receipt, "MYR") is receipt
