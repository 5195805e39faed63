"""
Unit Tests - ExchangeRate model
"""
from datetime import date
from decimal import Decimal

import pytest

from finance.models.exchange_rate import ExchangeRate, RateSource, BASE_CURRENCY


class TestExchangeRateModel:

    def test_normalizes_currency_and_defaults_base(self):
        rate = ExchangeRate(
            date=date(2025, 11, 7),
            target_currency=" usd ",
            rate=Decimal("1.1561"),
            source=RateSource.RECENT_FEED
        )

        assert rate.target_currency == "USD"
        assert rate.base_currency == BASE_CURRENCY
        assert rate.rate == Decimal("1.1561")

    @pytest.mark.parametrize("bad_rate", [Decimal("0"), Decimal("-1.5"), "NaN", "abc", None])
    def test_rejects_non_positive_or_invalid_rate(self, bad_rate):
        with pytest.raises(ValueError):
            ExchangeRate(
                date=date(2025, 11, 7),
                target_currency="USD",
                rate=bad_rate,
                source=RateSource.RECENT_FEED
            )

    def test_rate_is_rounded_to_stored_scale(self):
        rate = ExchangeRate(date=date(2025, 1, 2), target_currency="XAU", rate=Decimal("0.000412345678"),
                            source=RateSource.HISTORICAL_FEED)

        assert rate.rate == Decimal("0.00041235")
        assert rate.rate.as_tuple().exponent == -8

    @pytest.mark.parametrize("bad_rate", [Decimal("0.000000001"), Decimal("1E10")])
    def test_rejects_rate_outside_stored_range(self, bad_rate):
        with pytest.raises(ValueError):
            ExchangeRate(date=date(2025, 1, 2), target_currency="XAU", rate=bad_rate,
                         source=RateSource.HISTORICAL_FEED)

    def test_rejects_empty_currency(self):
        with pytest.raises(ValueError):
            ExchangeRate(date=date(2025, 11, 7), target_currency="  ", rate=Decimal("1.1"),
                         source=RateSource.RECENT_FEED)

    def test_rejects_foreign_base(self):
        with pytest.raises(ValueError):
            ExchangeRate(date=date(2025, 11, 7), base_currency="USD", target_currency="GBP",
                         rate=Decimal("0.76"), source=RateSource.RECENT_FEED)

    def test_update_rate_validates_and_switches_source(self):
        rate = ExchangeRate(date=date(2025, 11, 7), target_currency="USD", rate=Decimal("1.1"),
                            source=RateSource.HISTORICAL_FEED)

        rate.update_rate(Decimal("1.2"), RateSource.RECENT_FEED)
        assert rate.rate == Decimal("1.2")
        assert rate.source is RateSource.RECENT_FEED
        assert rate.ingested_at is not None

        with pytest.raises(ValueError):
            rate.update_rate(Decimal("0"), RateSource.RECENT_FEED)
