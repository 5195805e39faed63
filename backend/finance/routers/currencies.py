"""
Currencies Router
Read-only API endpoints for supported currencies, exchange rates and conversions.
"""
from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from finance.dependencies import get_currency_service
from finance.errors import InvalidInput, StorageError
from finance.schemas.currency import (
    CurrencyInfoResponse,
    ExchangeRateResponse,
    ConversionResponse,
    LatestRatesResponse,
    StoredRateResponse,
)
from finance.services.currency_service import CurrencyService


router = APIRouter()


@router.get("", response_model=CurrencyInfoResponse)
async def get_currencies(service: CurrencyService = Depends(get_currency_service)):
    """
    Get the list of supported currencies and the last rate update time.
    """
    try:
        currencies = await service.get_supported_currencies()
        last_updated = await service.get_last_update_time()
    except StorageError as e:
        raise HTTPException(status_code=503, detail=f"Exchange rate store unavailable: {str(e)}")

    return CurrencyInfoResponse(
        supported_currencies=currencies,
        last_updated=last_updated,
        total_count=len(currencies)
    )


@router.get("/exchange-rate", response_model=ExchangeRateResponse)
async def get_exchange_rate(
    from_currency: str = Query(..., alias="from", description="Source currency code (ISO 4217)"),
    to_currency: str = Query(..., alias="to", description="Target currency code (ISO 4217)"),
    rate_date: Optional[date] = Query(None, alias="date", description="Rate date, defaults to the latest stored date"),
    service: CurrencyService = Depends(get_currency_service)
):
    """
    Get the exchange rate between two currencies for a date.

    Returns 404 when no rate is stored for that date (weekends and ECB
    holidays have none).
    """
    try:
        resolved_date = await service.resolve_date(rate_date)
        rate = await service.get_rate(resolved_date, from_currency, to_currency)
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=503, detail=f"Exchange rate store unavailable: {str(e)}")

    if rate is None:
        raise HTTPException(
            status_code=404,
            detail=f"Exchange rate not found for {from_currency} to {to_currency} on {resolved_date}"
        )

    return ExchangeRateResponse(
        date=resolved_date,
        from_currency=from_currency.strip().upper(),
        to_currency=to_currency.strip().upper(),
        rate=rate
    )


@router.get("/convert", response_model=ConversionResponse)
async def convert_currency(
    amount: Decimal = Query(..., description="Amount to convert, must not be negative"),
    from_currency: str = Query(..., alias="from", description="Source currency code (ISO 4217)"),
    to_currency: str = Query(..., alias="to", description="Target currency code (ISO 4217)"),
    rate_date: Optional[date] = Query(None, alias="date", description="Rate date, defaults to the latest stored date"),
    service: CurrencyService = Depends(get_currency_service)
):
    """
    Convert an amount from one currency to another.
    """
    try:
        result = await service.convert_amount(amount, from_currency, to_currency, rate_date)
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=503, detail=f"Exchange rate store unavailable: {str(e)}")

    if result is None:
        raise HTTPException(
            status_code=404,
            detail=f"Exchange rate not found for {from_currency} to {to_currency}"
        )

    return ConversionResponse(
        original_amount=result.original_amount,
        from_currency=result.from_currency,
        converted_amount=result.converted_amount,
        to_currency=result.to_currency,
        exchange_rate=result.rate_used,
        date=result.date
    )


@router.get("/latest", response_model=LatestRatesResponse)
async def get_latest_rates(service: CurrencyService = Depends(get_currency_service)):
    """
    Get every EUR-based rate of the most recent stored date.
    """
    try:
        rates = await service.get_latest_rates()
    except StorageError as e:
        raise HTTPException(status_code=503, detail=f"Exchange rate store unavailable: {str(e)}")

    return LatestRatesResponse(
        rate_date=rates[0].date if rates else None,
        rates=[StoredRateResponse.model_validate(rate) for rate in rates]
    )
