import asyncio
from datetime import datetime, timezone

import httpx

from inbox_readiness import whois
from inbox_readiness.whois import WhoisCache, check_whois, extract_creation_date, parse_whois_text

NOW = datetime(2024, 3, 31, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, t=1000.0):
        self.t = t

    def __call__(self):
        return self.t


def mock_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def lookup(domain, handler, cache):
    async def _go():
        async with mock_client(handler) as client:
            return await check_whois(domain, cache=cache, client=client, now=NOW)
    return asyncio.run(_go())


def test_labelled_patterns_in_order():
    text = "Registration Date: 2001-01-01\nCreation Date: 2020-05-06\n"
    assert extract_creation_date(text) == "2020-05-06"
    assert extract_creation_date("created on: 2019-02-03") == "2019-02-03"
    assert extract_creation_date("Domain Create Date: 2018-07-08") == "2018-07-08"


def test_fallback_pattern_normalises_slashes():
    assert extract_creation_date("registered 14/02/2010 by someone") == "14-02-2010"


def test_age_in_days():
    result = parse_whois_text("Creation Date: 2024-03-01T00:00:00Z", now=NOW)
    assert result.creation_date == "2024-03-01"
    assert result.age_in_days == 30


def test_fallback_date_is_day_month_year():
    result = parse_whois_text("Registered: 01/03/2024", now=NOW)
    assert result.creation_date == "2024-03-01"
    assert result.age_in_days == 30


def test_no_date_is_unknown_age():
    result = parse_whois_text("No match for domain", now=NOW)
    assert result.creation_date is None
    assert result.age_in_days is None
    assert result.error is None


def test_invalid_date_is_unknown_age():
    result = parse_whois_text("Updated 31/02/2020", now=NOW)
    assert result.creation_date is None
    assert result.age_in_days is None


def test_future_date_clamps_to_zero():
    assert parse_whois_text("Creation Date: 2025-01-01", now=NOW).age_in_days == 0


def test_raw_excerpt_truncated():
    result = parse_whois_text("x" * 2000, now=NOW)
    assert len(result.raw_excerpt) == 500


def test_fetch_and_cache():
    calls = []

    def handler(request):
        calls.append(str(request.url))
        return httpx.Response(200, text="Creation Date: 2024-03-21")

    cache = WhoisCache(clock=FakeClock())
    first = lookup("example.com", handler, cache)
    second = lookup("example.com", handler, cache)
    assert first.age_in_days == 10
    assert second == first
    assert calls == ["https://www.whois.com/whois/example.com"]


def test_cache_expires():
    clock = FakeClock()
    cache = WhoisCache(ttl=3600, clock=clock)
    handler = lambda request: httpx.Response(200, text="Creation Date: 2000-01-01")
    lookup("example.com", handler, cache)
    clock.t += 3599
    assert cache.get("example.com") is not None
    clock.t += 1
    assert cache.get("example.com") is None
    assert len(cache) == 0


def test_cache_bounded():
    cache = WhoisCache(max_entries=2, clock=FakeClock())
    for domain in ("a.com", "b.com", "c.com"):
        cache.set(domain, parse_whois_text("", now=NOW))
    assert cache.get("a.com") is None
    assert cache.get("c.com") is not None
    assert len(cache) == 2


def test_http_error_is_error_result_and_not_cached():
    cache = WhoisCache(clock=FakeClock())
    result = lookup("example.com", lambda request: httpx.Response(503), cache)
    assert result.error == "Could not retrieve WHOIS information"
    assert "503" in result.details
    assert result.age_in_days is None
    assert cache.get("example.com") is None


def test_transport_error_is_error_result():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    result = lookup("example.com", handler, WhoisCache(clock=FakeClock()))
    assert result.error == "Could not retrieve WHOIS information"
    assert "connection refused" in result.details


def test_fetch_timeout_is_error_result_and_not_cached(monkeypatch):
    monkeypatch.setattr(whois, "WHOIS_TIMEOUT", 0.05)

    async def handler(request):
        await asyncio.Event().wait()

    cache = WhoisCache(clock=FakeClock())
    result = lookup("example.com", handler, cache)
    assert result.error == "Could not retrieve WHOIS information"
    assert result.details.startswith("Timeout after")
    assert result.details == "Timeout after 50ms"
    assert result.age_in_days is None
    assert cache.get("example.com") is None
    assert len(cache) == 0
