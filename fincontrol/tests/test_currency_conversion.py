import unittest
from decimal import Decimal
from unittest import mock

from fincontrol.currency_conversion import (
    CompositeRateProvider,
    FrankfurterRateProvider,
    RateProviderUnavailable,
    StaticRateProvider,
    normalize_currency,
)


class CountingFrankfurterProvider(FrankfurterRateProvider):
    def __init__(self) -> None:
        super().__init__()
        self.calls = 0

    def _fetch_rates(self, base_currency: str):
        self.calls += 1
        return {"USD": Decimal("0.2"), "EUR": Decimal("0.18"), "GBP": Decimal("0.15")}


class UnavailableProvider:
    source = "down"

    def quote(self, currencies=("USD",)):
        raise RateProviderUnavailable("Down")


class CurrencyConversionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.provider = StaticRateProvider(
            rates={
                "BRL": Decimal("1"),
                "USD": Decimal("0.2"),
                "EUR": Decimal("0.25"),
            }
        )

    def test_static_quote_picks_requested_currencies(self) -> None:
        quote = self.provider.quote((" usd ", "EUR"))

        self.assertEqual(quote.rates, {"USD": Decimal("0.2"), "EUR": Decimal("0.25")})
        self.assertEqual(quote.source, "static")

    def test_missing_currency_raises(self) -> None:
        with self.assertRaises(ValueError):
            self.provider.quote(("CAD",))

    def test_invalid_currency_code(self) -> None:
        with self.assertRaises(ValueError):
            normalize_currency("US")
        self.assertEqual(normalize_currency(" gbp "), "GBP")

    def test_falls_back_when_live_provider_unavailable(self) -> None:
        provider = CompositeRateProvider(primary=UnavailableProvider(), fallback=self.provider)

        with self.assertLogs("fincontrol.currency_conversion", level="WARNING"):
            quote = provider.quote(("USD", "EUR"))

        self.assertEqual(quote.source, "static")
        self.assertEqual(quote.rates, {"USD": Decimal("0.2"), "EUR": Decimal("0.25")})

    def test_live_rates_are_cached(self) -> None:
        live = CountingFrankfurterProvider()
        provider = CompositeRateProvider(primary=live, fallback=StaticRateProvider())

        quote = provider.quote()
        again = provider.quote(("BRL", "USD"))

        self.assertEqual(quote.source, "frankfurter")
        self.assertEqual(quote.rates["EUR"], Decimal("0.18"))
        self.assertEqual(again.rates, {"BRL": Decimal("1"), "USD": Decimal("0.2")})
        self.assertEqual(again.last_update, quote.last_update)
        self.assertEqual(live.calls, 1)

    def test_expired_cache_fetches_again(self) -> None:
        live = CountingFrankfurterProvider()

        with mock.patch("fincontrol.currency_conversion.time.monotonic", side_effect=[0.0, 10.0, 3601.0]):
            live.quote()
            live.quote()
            live.quote()

        self.assertEqual(live.calls, 2)

    def test_default_static_rates_are_brl_based(self) -> None:
        quote = StaticRateProvider().quote(("BRL",))

        self.assertEqual(quote.rates, {"BRL": Decimal("1")})


if __name__ == "__main__":
    unittest.main()
