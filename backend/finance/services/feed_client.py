"""
ECB Feed Client
Downloads the ECB euro reference rate XML feeds and turns them into
ExchangeRate records.

Feed structure:
    <gesmes:Envelope xmlns:gesmes="..." xmlns="...eurofxref">
      <Cube>
        <Cube time="2025-11-07">
          <Cube currency="USD" rate="1.1561"/>
          <Cube currency="GBP" rate="0.88025"/>
          ...
        </Cube>
      </Cube>
    </gesmes:Envelope>

Docs: https://www.ecb.europa.eu/stats/policy_and_exchange_rates/euro_reference_exchange_rates/html/index.en.html
"""
import logging
import xml.etree.ElementTree as ET
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import List, Optional

import httpx

from finance.config import settings
from finance.errors import FetchError, ParseError
from finance.models.exchange_rate import ExchangeRate, RateSource

logger = logging.getLogger(__name__)

ECB_NAMESPACE = "http://www.ecb.int/vocabulary/2002-08-01/eurofxref"
CUBE = f"{{{ECB_NAMESPACE}}}Cube"


class EcbFeedClient:
    """
    Client for the two ECB reference rate feeds.

    - recent: rolling ~90 day window, refreshed every business day
    - historical: every business day since 1999-01-04

    Transport failures raise FetchError (worth retrying). Bad content never
    raises: broken records are skipped and a broken document yields [].
    """

    def __init__(
        self,
        recent_url: Optional[str] = None,
        historical_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.recent_url = recent_url or settings.ecb_recent_feed_url
        self.historical_url = historical_url or settings.ecb_historical_feed_url
        self.timeout = timeout if timeout is not None else settings.feed_timeout_seconds
        self._transport = transport

    async def fetch_recent(self) -> List[ExchangeRate]:
        """Fetch the 90-day feed"""
        logger.info("Fetching 90-day exchange rates from ECB")
        return await self._fetch(self.recent_url, RateSource.RECENT_FEED)

    async def fetch_historical(self) -> List[ExchangeRate]:
        """Fetch the full history feed (large: ~7k dates x ~30 currencies)"""
        logger.info("Fetching historical exchange rates from ECB")
        return await self._fetch(self.historical_url, RateSource.HISTORICAL_FEED)

    async def _fetch(self, url: str, source: RateSource) -> List[ExchangeRate]:
        content = await self._download(url)
        rates = parse_feed(content, source)
        logger.info(f"Parsed {len(rates)} exchange rates from {source.name} ({url})")
        return rates

    async def _download(self, url: str) -> bytes:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.get(url)
                response.raise_for_status()
                return response.content
            except httpx.HTTPStatusError as e:
                raise FetchError(
                    f"ECB feed returned HTTP {e.response.status_code}",
                    url=url,
                    status_code=e.response.status_code
                ) from e
            except httpx.HTTPError as e:
                raise FetchError(f"Network error while fetching ECB feed: {e}", url=url) from e


def parse_feed(content: bytes, source: RateSource) -> List[ExchangeRate]:
    """
    Parse an ECB feed document into ExchangeRate records, one per
    (date, currency) cell. Never raises on bad content.
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        logger.warning(f"ECB feed is not valid XML: {e}")
        return []

    outer_cube = root.find(CUBE)
    if outer_cube is None:
        logger.warning("No Cube element found in ECB feed")
        return []

    rates: List[ExchangeRate] = []
    skipped = 0

    for date_cube in outer_cube.findall(CUBE):
        time_value = date_cube.get("time")
        try:
            rate_date = _parse_date(time_value)
        except ParseError as e:
            logger.warning(f"Skipping ECB day block: {e}")
            skipped += len(date_cube.findall(CUBE))
            continue

        for currency_cube in date_cube.findall(CUBE):
            try:
                rates.append(_parse_rate(rate_date, currency_cube, source))
            except ParseError as e:
                logger.warning(f"Skipping ECB record: {e}")
                skipped += 1

    if skipped:
        logger.warning(f"Skipped {skipped} malformed ECB records")

    return rates


def _parse_date(value: Optional[str]) -> date:
    if not value:
        raise ParseError("Cube element missing 'time' attribute")
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise ParseError(f"Invalid date format: {value!r}")


def _parse_rate(rate_date: date, cube: ET.Element, source: RateSource) -> ExchangeRate:
    currency = cube.get("currency")
    raw_rate = cube.get("rate")

    if not currency or not currency.strip() or raw_rate is None:
        raise ParseError(
            f"Cube element on {rate_date} missing 'currency' or 'rate' attribute",
            rate_date=rate_date,
            currency=currency
        )

    try:
        rate = Decimal(raw_rate.strip())
    except InvalidOperation:
        raise ParseError(
            f"Invalid rate format for {currency} on {rate_date}: {raw_rate!r}",
            rate_date=rate_date,
            currency=currency
        )

    try:
        return ExchangeRate(
            date=rate_date,
            target_currency=currency,
            rate=rate,
            source=source
        )
    except ValueError as e:
        raise ParseError(
            f"Rejected rate for {currency} on {rate_date}: {e}",
            rate_date=rate_date,
            currency=currency
        )
