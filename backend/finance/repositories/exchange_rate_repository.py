"""
ExchangeRate Repository
Sole owner of exchange rate persistence. Flushes but never commits:
the caller decides the unit of work.
"""
import enum
import logging
from typing import List, Optional, Set
from datetime import date, datetime
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from finance.errors import StorageError
from finance.models.exchange_rate import ExchangeRate, BASE_CURRENCY

logger = logging.getLogger(__name__)


class UpsertOutcome(enum.Enum):
    INSERTED = "inserted"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


class ExchangeRateRepository:
    """Repository for ExchangeRate model operations"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_rate(self, rate_date: date, target_currency: str) -> Optional[ExchangeRate]:
        """Exact-date lookup, no fallback to neighbouring dates"""
        try:
            result = await self.session.execute(
                select(ExchangeRate).where(
                    ExchangeRate.date == rate_date,
                    ExchangeRate.target_currency == target_currency.upper()
                )
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read rate for {target_currency} on {rate_date}: {e}") from e

    async def upsert(self, rate: ExchangeRate) -> UpsertOutcome:
        """
        Insert or update a rate.
        Uses date + target_currency as unique key. Repeating an identical
        record leaves the stored row untouched.
        """
        existing = await self.find_rate(rate.date, rate.target_currency)

        try:
            if existing is None:
                self.session.add(rate)
                await self.session.flush()
                return UpsertOutcome.INSERTED

            if existing.rate == rate.rate and existing.source == rate.source:
                return UpsertOutcome.UNCHANGED

            existing.update_rate(rate.rate, rate.source)
            await self.session.flush()
            return UpsertOutcome.UPDATED
        except SQLAlchemyError as e:
            raise StorageError(
                f"Failed to upsert rate for {rate.target_currency} on {rate.date}: {e}"
            ) from e

    async def latest_date(self) -> Optional[date]:
        """Most recent date with any stored rate"""
        try:
            result = await self.session.execute(select(func.max(ExchangeRate.date)))
            return result.scalar()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read latest rate date: {e}") from e

    async def dates_in_range(self, start_date: date, end_date: date) -> Set[date]:
        """Distinct dates with at least one stored rate, bounds inclusive"""
        try:
            result = await self.session.execute(
                select(ExchangeRate.date)
                .where(
                    ExchangeRate.date >= start_date,
                    ExchangeRate.date <= end_date
                )
                .distinct()
            )
            return set(result.scalars().all())
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read rate dates between {start_date} and {end_date}: {e}") from e

    async def supported_currencies(self) -> Set[str]:
        """Every target currency ever stored, plus the base currency"""
        try:
            result = await self.session.execute(
                select(ExchangeRate.target_currency).distinct()
            )
            currencies = set(result.scalars().all())
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read supported currencies: {e}") from e
        currencies.add(BASE_CURRENCY)
        return currencies

    async def last_ingested_at(self) -> Optional[datetime]:
        try:
            result = await self.session.execute(select(func.max(ExchangeRate.ingested_at)))
            return result.scalar()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read last ingestion time: {e}") from e

    async def rates_for_date(self, rate_date: date) -> List[ExchangeRate]:
        try:
            result = await self.session.execute(
                select(ExchangeRate)
                .where(ExchangeRate.date == rate_date)
                .order_by(ExchangeRate.target_currency.asc())
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read rates for {rate_date}: {e}") from e

    async def count(self) -> int:
        """Count stored rate rows"""
        try:
            result = await self.session.execute(select(func.count(ExchangeRate.id)))
            return result.scalar() or 0
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to count exchange rates: {e}") from e
