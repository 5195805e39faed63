"""
Currency Service
Serves point-in-time exchange rates and conversions from the stored ECB rates.
Derived rates are kept in an injected TTL cache.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional, Union

from finance.errors import InvalidInput
from finance.models.exchange_rate import ExchangeRate, BASE_CURRENCY
from finance.repositories.exchange_rate_repository import ExchangeRateRepository
from finance.services.rate_cache import RateCache

logger = logging.getLogger(__name__)

CACHE_PREFIX_RATE = "rate"
CACHE_KEY_SUPPORTED_CURRENCIES = ("supported_currencies",)
CACHE_KEY_LATEST_RATES = ("latest_rates",)

Amount = Union[Decimal, int, str]


@dataclass(frozen=True)
class ConversionResult:
    """Outcome of a single conversion, never persisted"""
    original_amount: Decimal
    from_currency: str
    to_currency: str
    converted_amount: Decimal
    rate_used: Decimal
    date: date


class CurrencyService:
    """Service for currency conversion on top of the EUR-based rate table"""

    def __init__(
        self,
        repository: ExchangeRateRepository,
        cache: RateCache,
        base_currency: str = BASE_CURRENCY
    ):
        self.repository = repository
        self.cache = cache
        self.base_currency = base_currency

    async def get_rate(
        self,
        target_date: date,
        from_currency: str,
        to_currency: str
    ) -> Optional[Decimal]:
        """
        Get the exchange rate from one currency to another on a date.

        Resolution order:
        1. same currency -> 1
        2. cache
        3. EUR -> X: stored rate
        4. X -> EUR: 1 / stored rate
        5. A -> B: rate(EUR->B) / rate(EUR->A)

        Args:
            target_date: Date of the rate, matched exactly
            from_currency: Source currency code (e.g. 'USD')
            to_currency: Target currency code (e.g. 'GBP')

        Returns:
            Units of to_currency per unit of from_currency, or None when any
            required stored rate is missing

        Raises:
            InvalidInput: If a currency code is empty
        """
        from_currency = _normalize_currency(from_currency, "from_currency")
        to_currency = _normalize_currency(to_currency, "to_currency")

        if from_currency == to_currency:
            return Decimal("1")

        cache_key = (CACHE_PREFIX_RATE, target_date, from_currency, to_currency)
        cached_rate = self.cache.get(cache_key)
        if cached_rate is not None:
            logger.debug(f"Cache hit for rate {from_currency} -> {to_currency} on {target_date}")
            return cached_rate

        rate: Optional[Decimal] = None

        if from_currency == self.base_currency:
            rate = await self._get_direct_rate(target_date, to_currency)
        elif to_currency == self.base_currency:
            direct_rate = await self._get_direct_rate(target_date, from_currency)
            if direct_rate is not None:
                rate = Decimal("1") / direct_rate
        else:
            # Cross rate through the base: A->B = (EUR->B) / (EUR->A)
            base_to_from = await self._get_direct_rate(target_date, from_currency)
            if base_to_from is not None:
                base_to_target = await self._get_direct_rate(target_date, to_currency)
                if base_to_target is not None:
                    rate = base_to_target / base_to_from

        if rate is None:
            logger.debug(f"No exchange rate for {from_currency} -> {to_currency} on {target_date}")
            return None

        self.cache.set(cache_key, rate)
        logger.debug(f"Calculated and cached rate {from_currency} -> {to_currency} on {target_date}: {rate}")
        return rate

    async def convert(
        self,
        amount: Amount,
        from_currency: str,
        to_currency: str,
        target_date: Optional[date] = None
    ) -> Optional[Decimal]:
        """
        Convert an amount between currencies.

        Args:
            amount: Non-negative amount in from_currency
            from_currency: Source currency
            to_currency: Target currency
            target_date: Rate date, defaults to the latest stored date

        Returns:
            Amount in to_currency, or None if no rate is available
        """
        result = await self.convert_amount(amount, from_currency, to_currency, target_date)
        return result.converted_amount if result else None

    async def convert_amount(
        self,
        amount: Amount,
        from_currency: str,
        to_currency: str,
        target_date: Optional[date] = None
    ) -> Optional[ConversionResult]:
        """Like convert() but returns the full ConversionResult"""
        amount = _validate_amount(amount)
        from_currency = _normalize_currency(from_currency, "from_currency")
        to_currency = _normalize_currency(to_currency, "to_currency")

        conversion_date = await self.resolve_date(target_date)
        rate = await self.get_rate(conversion_date, from_currency, to_currency)
        if rate is None:
            return None

        converted_amount = amount * rate
        logger.debug(
            f"Converted {amount} {from_currency} to {converted_amount} {to_currency} "
            f"using rate {rate} ({conversion_date})"
        )
        return ConversionResult(
            original_amount=amount,
            from_currency=from_currency,
            to_currency=to_currency,
            converted_amount=converted_amount,
            rate_used=rate,
            date=conversion_date
        )

    async def resolve_date(self, target_date: Optional[date] = None) -> date:
        """
        Pick the rate date for a query. The ECB does not publish on weekends,
        so "today" often has no rate; the latest stored date is used instead.
        """
        if target_date is not None:
            return target_date
        latest_date = await self.repository.latest_date()
        return latest_date or datetime.now(timezone.utc).date()

    async def get_supported_currencies(self) -> List[str]:
        """All currencies with at least one stored rate, plus EUR, sorted"""
        cached = self.cache.get(CACHE_KEY_SUPPORTED_CURRENCIES)
        if cached is not None:
            logger.debug("Cache hit for supported currencies")
            return list(cached)

        currencies = sorted(await self.repository.supported_currencies())
        self.cache.set(CACHE_KEY_SUPPORTED_CURRENCIES, tuple(currencies))
        logger.info(f"Retrieved {len(currencies)} supported currencies")
        return currencies

    async def get_latest_rates(self) -> List[ExchangeRate]:
        """All EUR-based rates of the most recent stored date"""
        cached = self.cache.get(CACHE_KEY_LATEST_RATES)
        if cached is not None:
            logger.debug("Cache hit for latest rates")
            return list(cached)

        latest_date = await self.repository.latest_date()
        if latest_date is None:
            logger.warning("No exchange rates found in database")
            return []

        rates = await self.repository.rates_for_date(latest_date)
        self.cache.set(CACHE_KEY_LATEST_RATES, tuple(rates))
        logger.info(f"Retrieved {len(rates)} latest exchange rates for {latest_date}")
        return rates

    async def get_last_update_time(self) -> Optional[datetime]:
        """Timestamp of the most recent rate ingestion"""
        return await self.repository.last_ingested_at()

    async def _get_direct_rate(self, target_date: date, target_currency: str) -> Optional[Decimal]:
        """Stored EUR -> target_currency rate"""
        exchange_rate = await self.repository.find_rate(target_date, target_currency)
        return exchange_rate.rate if exchange_rate else None


def _normalize_currency(code: Optional[str], field: str) -> str:
    if code is None or not str(code).strip():
        raise InvalidInput(f"{field} cannot be empty")
    return str(code).strip().upper()


def _validate_amount(amount: Amount) -> Decimal:
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except ArithmeticError:
        raise InvalidInput(f"Amount {amount!r} is not a number")
    if not value.is_finite():
        raise InvalidInput(f"Amount {amount!r} is not a number")
    if value < 0:
        raise InvalidInput("Amount cannot be negative")
    return value
