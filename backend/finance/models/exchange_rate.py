import enum
from sqlalchemy import String, Numeric, Date, DateTime, Enum, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, validates
from datetime import datetime, date, timezone
from decimal import Decimal, InvalidOperation

from finance.database import Base

# The ECB publishes every rate against the euro
BASE_CURRENCY = "EUR"

# Matches the Numeric(18, 8) rate column
RATE_SCALE = Decimal("1E-8")
MAX_RATE = Decimal("1E10")


class RateSource(enum.Enum):
    """Which ECB feed a rate was ingested from. Audit only."""
    RECENT_FEED = "recent_feed"
    HISTORICAL_FEED = "historical_feed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExchangeRate(Base):
    """
    Daily ECB reference rate: 1 EUR = `rate` units of `target_currency`.
    Exactly one row per (date, target_currency); re-ingestion updates in place.
    """
    __tablename__ = "exchange_rates"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    base_currency: Mapped[str] = mapped_column(String(3), nullable=False, default=BASE_CURRENCY)
    target_currency: Mapped[str] = mapped_column(String(3), nullable=False)  # USD, GBP, etc.
    rate: Mapped[Decimal] = mapped_column(Numeric(18, 8), nullable=False)
    source: Mapped[RateSource] = mapped_column(
        Enum(RateSource, native_enum=False, length=20, name="rate_source"),
        nullable=False
    )
    ingested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint('date', 'target_currency', name='uix_exchange_rate_date_currency'),
        Index('ix_exchange_rates_target_currency_date', 'target_currency', 'date'),
    )

    def __init__(self, **kwargs):
        kwargs.setdefault("base_currency", BASE_CURRENCY)
        super().__init__(**kwargs)

    @validates("base_currency")
    def _validate_base_currency(self, key, value):
        if value != BASE_CURRENCY:
            raise ValueError(f"Base currency must be {BASE_CURRENCY}, got {value!r}")
        return value

    @validates("target_currency")
    def _validate_target_currency(self, key, value):
        if value is None or not str(value).strip():
            raise ValueError("Target currency cannot be empty")
        return str(value).strip().upper()

    @validates("rate")
    def _validate_rate(self, key, value):
        return _positive_decimal(value)

    def update_rate(self, new_rate: Decimal, source: RateSource) -> None:
        """Replace the stored value after a re-ingestion observed a change."""
        self.rate = new_rate
        self.source = source
        self.ingested_at = _utcnow()

    def __repr__(self) -> str:
        return (
            f"<ExchangeRate(date={self.date}, {self.base_currency}/{self.target_currency}={self.rate}, "
            f"source={self.source.name if self.source else None})>"
        )


def _positive_decimal(value) -> Decimal:
    if value is None:
        raise ValueError("Exchange rate is required")
    try:
        rate = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"Exchange rate {value!r} is not a number")
    if not rate.is_finite() or rate <= 0:
        raise ValueError(f"Exchange rate must be positive, got {value!r}")
    if rate >= MAX_RATE:
        raise ValueError(f"Exchange rate {value!r} is too large")

    rate = rate.quantize(RATE_SCALE)
    if rate <= 0:
        raise ValueError(f"Exchange rate {value!r} rounds to zero at 8 decimal places")
    return rate
