"""
Admin Router
Maintenance endpoints for inspecting the exchange rate table.
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from finance.database import get_db
from finance.errors import StorageError
from finance.repositories.exchange_rate_repository import ExchangeRateRepository


router = APIRouter()


@router.get("/db-stats")
async def get_database_stats(db: AsyncSession = Depends(get_db)):
    """
    Get exchange rate table statistics, bypassing the rate cache.
    """
    repo = ExchangeRateRepository(db)
    try:
        latest_date = await repo.latest_date()
        return {
            "exchange_rates_count": await repo.count(),
            "latest_exchange_rate_date": latest_date.isoformat() if latest_date else None,
            "currencies": sorted(await repo.supported_currencies()),
        }
    except StorageError as e:
        raise HTTPException(status_code=503, detail=f"Exchange rate store unavailable: {str(e)}")
