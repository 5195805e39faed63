"""
Currency Schemas
Pydantic models for currency and exchange rate API responses.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal

from finance.models.exchange_rate import RateSource


class CurrencyInfoResponse(BaseModel):
    """Supported currencies and freshness of the rate table"""
    supported_currencies: List[str]
    last_updated: Optional[datetime] = None
    total_count: int


class ExchangeRateResponse(BaseModel):
    """Rate between two currencies on a date"""
    date: date
    from_currency: str
    to_currency: str
    rate: Decimal = Field(..., description="Units of to_currency per unit of from_currency")


class ConversionResponse(BaseModel):
    """Result of converting an amount"""
    original_amount: Decimal
    from_currency: str
    converted_amount: Decimal
    to_currency: str
    exchange_rate: Decimal
    date: date


class StoredRateResponse(BaseModel):
    """A stored EUR-based rate"""
    date: date
    base_currency: str
    target_currency: str
    rate: Decimal
    source: RateSource
    ingested_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LatestRatesResponse(BaseModel):
    """Every stored rate of the most recent date"""
    rate_date: Optional[date] = None
    rates: List[StoredRateResponse]
