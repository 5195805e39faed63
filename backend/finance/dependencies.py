"""
FastAPI dependencies wiring request handlers to the application-owned
rate cache and sync scheduler.
"""
from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from finance.database import get_db
from finance.repositories.exchange_rate_repository import ExchangeRateRepository
from finance.services.currency_service import CurrencyService
from finance.services.rate_cache import RateCache
from finance.services.scheduler_service import RateSyncScheduler


def get_rate_cache(request: Request) -> RateCache:
    return request.app.state.rate_cache


def get_currency_service(
    db: AsyncSession = Depends(get_db),
    cache: RateCache = Depends(get_rate_cache),
) -> CurrencyService:
    return CurrencyService(ExchangeRateRepository(db), cache)


def get_rate_sync(request: Request) -> RateSyncScheduler:
    rate_sync = getattr(request.app.state, "rate_sync", None)
    if rate_sync is None:
        raise HTTPException(status_code=503, detail="Exchange rate scheduler is not configured")
    return rate_sync
