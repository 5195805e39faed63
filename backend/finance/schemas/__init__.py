"""
Pydantic schemas for API validation
"""
from finance.schemas.currency import (
    CurrencyInfoResponse,
    ExchangeRateResponse,
    ConversionResponse,
    StoredRateResponse,
    LatestRatesResponse,
)

__all__ = [
    "CurrencyInfoResponse",
    "ExchangeRateResponse",
    "ConversionResponse",
    "StoredRateResponse",
    "LatestRatesResponse",
]
