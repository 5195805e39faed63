"""
Database models for the finance backend.
All models are imported here to ensure they're discovered by Alembic for migrations.
"""

from finance.models.exchange_rate import ExchangeRate, RateSource, BASE_CURRENCY

__all__ = [
    "ExchangeRate",
    "RateSource",
    "BASE_CURRENCY",
]
