"""
Unit Tests - ECB Feed Client
HTTP is served by httpx.MockTransport.
"""
from datetime import date
from decimal import Decimal

import httpx
import pytest

from finance.errors import FetchError
from finance.models.exchange_rate import RateSource
from finance.services.feed_client import EcbFeedClient, parse_feed

RECENT_URL = "https://ecb.test/eurofxref-hist-90d.xml"
HISTORICAL_URL = "https://ecb.test/eurofxref-hist.xml"

ECB_FEED = b"""<?xml version="1.0" encoding="UTF-8"?>
<gesmes:Envelope xmlns:gesmes="http://www.gesmes.org/xml/2002-08-01" xmlns="http://www.ecb.int/vocabulary/2002-08-01/eurofxref">
    <gesmes:subject>Reference rates</gesmes:subject>
    <gesmes:Sender>
        <gesmes:name>European Central Bank</gesmes:name>
    </gesmes:Sender>
    <Cube>
        <Cube time="2025-11-07">
            <Cube currency="USD" rate="1.1561"/>
            <Cube currency="GBP" rate="0.88025"/>
        </Cube>
        <Cube time="2025-11-06">
            <Cube currency="USD" rate="1.1525"/>
            <Cube currency="JPY" rate="177.40"/>
        </Cube>
    </Cube>
</gesmes:Envelope>
"""

DIRTY_FEED = b"""<?xml version="1.0" encoding="UTF-8"?>
<gesmes:Envelope xmlns:gesmes="http://www.gesmes.org/xml/2002-08-01" xmlns="http://www.ecb.int/vocabulary/2002-08-01/eurofxref">
    <Cube>
        <Cube time="2025-11-07">
            <Cube currency="USD" rate="1.1561"/>
            <Cube currency="GBP" rate="n/a"/>
            <Cube currency="CHF" rate="0"/>
            <Cube currency="SEK" rate="-10.9"/>
            <Cube currency="NOK"/>
            <Cube rate="1.95"/>
        </Cube>
        <Cube time="07/11/2025">
            <Cube currency="USD" rate="1.1525"/>
        </Cube>
        <Cube>
            <Cube currency="USD" rate="1.1525"/>
        </Cube>
        <Cube time="2025-11-05">
            <Cube currency="JPY" rate="176.9"/>
        </Cube>
    </Cube>
</gesmes:Envelope>
"""


def make_client(handler) -> EcbFeedClient:
    return EcbFeedClient(
        recent_url=RECENT_URL,
        historical_url=HISTORICAL_URL,
        timeout=5.0,
        transport=httpx.MockTransport(handler)
    )


class TestParseFeed:

    def test_parses_every_date_currency_cell(self):
        rates = parse_feed(ECB_FEED, RateSource.RECENT_FEED)

        cells = {(r.date, r.target_currency): r.rate for r in rates}
        assert cells == {
            (date(2025, 11, 7), "USD"): Decimal("1.1561"),
            (date(2025, 11, 7), "GBP"): Decimal("0.88025"),
            (date(2025, 11, 6), "USD"): Decimal("1.1525"),
            (date(2025, 11, 6), "JPY"): Decimal("177.40"),
        }
        assert all(r.source is RateSource.RECENT_FEED for r in rates)
        assert all(r.base_currency == "EUR" for r in rates)

    def test_skips_bad_records_without_aborting(self):
        rates = parse_feed(DIRTY_FEED, RateSource.HISTORICAL_FEED)

        assert [(r.date, r.target_currency) for r in rates] == [
            (date(2025, 11, 7), "USD"),
            (date(2025, 11, 5), "JPY"),
        ]

    @pytest.mark.parametrize("content", [
        b"",
        b"<not-xml",
        b"<html><body>Service unavailable</body></html>",
        b'<?xml version="1.0"?><Envelope xmlns="http://www.ecb.int/vocabulary/2002-08-01/eurofxref"/>',
    ])
    def test_malformed_document_yields_empty_list(self, content):
        assert parse_feed(content, RateSource.RECENT_FEED) == []


class TestEcbFeedClient:

    @pytest.mark.asyncio
    async def test_fetch_recent_and_historical_use_their_urls(self):
        requested = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            return httpx.Response(200, content=ECB_FEED)

        client = make_client(handler)

        recent = await client.fetch_recent()
        historical = await client.fetch_historical()

        assert requested == [RECENT_URL, HISTORICAL_URL]
        assert len(recent) == 4
        assert all(r.source is RateSource.RECENT_FEED for r in recent)
        assert all(r.source is RateSource.HISTORICAL_FEED for r in historical)

    @pytest.mark.asyncio
    async def test_http_error_status_raises_fetch_error(self):
        client = make_client(lambda request: httpx.Response(503, text="maintenance"))

        with pytest.raises(FetchError) as exc_info:
            await client.fetch_recent()

        assert exc_info.value.status_code == 503
        assert exc_info.value.url == RECENT_URL

    @pytest.mark.asyncio
    async def test_transport_error_raises_fetch_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)

        with pytest.raises(FetchError):
            await client.fetch_historical()

    @pytest.mark.asyncio
    async def test_malformed_body_is_not_a_fetch_error(self):
        client = make_client(lambda request: httpx.Response(200, content=b"<garbage"))

        assert await client.fetch_recent() == []
