from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
import json
import logging
import time
from typing import Mapping, Protocol, Sequence
from urllib.error import HTTPError, URLError
from urllib.request import urlopen

logger = logging.getLogger(__name__)

BASE_CURRENCY = "BRL"
QUOTED_CURRENCIES = ("USD", "EUR", "GBP")

# Foreign currency bought by 1 BRL.
DEFAULT_RATES: dict[str, Decimal] = {
    "BRL": Decimal("1"),
    "USD": Decimal("0.18"),
    "EUR": Decimal("0.17"),
    "GBP": Decimal("0.14"),
}


class RateProviderUnavailable(RuntimeError):
    """Raised when a rate provider cannot fetch live rates."""


@dataclass(frozen=True)
class RateQuote:
    rates: dict[str, Decimal]
    last_update: datetime
    source: str


class RateProvider(Protocol):
    source: str

    def quote(self, currencies: Sequence[str] = QUOTED_CURRENCIES) -> RateQuote:
        ...


@dataclass(frozen=True)
class StaticRateProvider:
    """Deterministic, in-memory FX rates.

    Rates are expressed as target currency per 1 BRL.
    """

    rates: Mapping[str, Decimal] = None
    source: str = "static"

    def __post_init__(self) -> None:
        object.__setattr__(self, "rates", dict(self.rates or DEFAULT_RATES))

    def quote(self, currencies: Sequence[str] = QUOTED_CURRENCIES) -> RateQuote:
        return RateQuote(
            rates=pick_rates(self.rates, currencies),
            last_update=datetime.now(timezone.utc),
            source=self.source,
        )


@dataclass
class FrankfurterRateProvider:
    """Live BRL rates from the Frankfurter API, kept in memory for ``cache_ttl_seconds``."""

    base_url: str = "https://api.frankfurter.app"
    cache_ttl_seconds: int = 60 * 60
    source: str = "frankfurter"
    _cached: RateQuote | None = field(default=None, repr=False)
    _expires_at: float = field(default=0.0, repr=False)

    def quote(self, currencies: Sequence[str] = QUOTED_CURRENCIES) -> RateQuote:
        now = time.monotonic()
        if self._cached is None or self._expires_at <= now:
            rates = dict(self._fetch_rates(BASE_CURRENCY))
            rates[BASE_CURRENCY] = Decimal("1")
            self._cached = RateQuote(rates=rates, last_update=datetime.now(timezone.utc), source=self.source)
            self._expires_at = now + self.cache_ttl_seconds
        return RateQuote(
            rates=pick_rates(self._cached.rates, currencies),
            last_update=self._cached.last_update,
            source=self.source,
        )

    def _fetch_rates(self, base_currency: str) -> Mapping[str, Decimal]:
        url = f"{self.base_url}/latest?from={base_currency}&to={','.join(QUOTED_CURRENCIES)}"
        try:
            with urlopen(url, timeout=8) as response:
                payload = json.load(response)
        except (HTTPError, URLError, TimeoutError, json.JSONDecodeError) as exc:
            raise RateProviderUnavailable("Frankfurter API unavailable") from exc

        rates = payload.get("rates")
        if not isinstance(rates, dict):
            raise RateProviderUnavailable("Frankfurter response missing rates")
        return {normalize_currency(code): Decimal(str(value)) for code, value in rates.items()}


@dataclass(frozen=True)
class CompositeRateProvider:
    primary: RateProvider
    fallback: StaticRateProvider

    def quote(self, currencies: Sequence[str] = QUOTED_CURRENCIES) -> RateQuote:
        try:
            return self.primary.quote(currencies)
        except RateProviderUnavailable:
            logger.warning("Live exchange rates unavailable, serving static rates")
            return self.fallback.quote(currencies)


def pick_rates(rates: Mapping[str, Decimal], currencies: Sequence[str]) -> dict[str, Decimal]:
    picked: dict[str, Decimal] = {}
    for currency in currencies:
        code = normalize_currency(currency)
        if code not in rates:
            raise ValueError(f"Unsupported currency: {code}")
        picked[code] = rates[code]
    return picked


def normalize_currency(value: str) -> str:
    normalized = value.strip().upper()
    if len(normalized) != 3 or not normalized.isalpha():
        raise ValueError("Currency must be a 3-letter ISO 4217 code.")
    return normalized
