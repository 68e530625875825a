"""
WHOIS age lookup.

Registration metadata is read from a public WHOIS web gateway and the
creation date is pulled out of the page text with a short list of
patterns. Registrars do not agree on a format, so this is best effort:
a page without a recognisable date gives an unknown age, not an error.
"""
import asyncio
import logging
import re
import time
from collections import OrderedDict
from datetime import date, datetime, timezone
from typing import Callable, Optional

import httpx

from .models import WhoisResult

logger = logging.getLogger(__name__)

# ---------- Configuration ----------
WHOIS_URL = "https://www.whois.com/whois/{}"
WHOIS_TIMEOUT = 10.0  # seconds
WHOIS_CACHE_TTL = 3600.0  # seconds
WHOIS_CACHE_MAX_ENTRIES = 1024
RAW_EXCERPT_CHARS = 500
USER_AGENT = "inbox-readiness/0.1"
# -----------------------------------

CREATION_DATE_PATTERNS = [
    re.compile(r"Creation Date:\s*(\d{4}-\d{2}-\d{2})", re.I),
    re.compile(r"Created On:\s*(\d{4}-\d{2}-\d{2})", re.I),
    re.compile(r"Registration Date:\s*(\d{4}-\d{2}-\d{2})", re.I),
    re.compile(r"Domain Create Date:\s*(\d{4}-\d{2}-\d{2})", re.I),
]
FALLBACK_DATE_RE = re.compile(r"(\d{2}[-/]\d{2}[-/]\d{4})")


class WhoisCache:
    """In-memory TTL cache of WHOIS results keyed by domain.

    Entries older than `ttl` seconds are treated as missing and dropped.
    When `max_entries` is reached the oldest entry is evicted. `clock` is
    any zero-argument callable returning seconds, so tests can drive time.
    """

    def __init__(self, ttl: float = WHOIS_CACHE_TTL, max_entries: int = WHOIS_CACHE_MAX_ENTRIES,
                 clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self.max_entries = max_entries
        self.clock = clock
        self._entries: "OrderedDict[str, tuple]" = OrderedDict()

    def get(self, domain: str) -> Optional[WhoisResult]:
        entry = self._entries.get(domain)
        if entry is None:
            return None
        stored_at, value = entry
        if self.clock() - stored_at >= self.ttl:
            del self._entries[domain]
            return None
        return value

    def set(self, domain: str, value: WhoisResult) -> None:
        self._entries.pop(domain, None)
        while len(self._entries) >= self.max_entries:
            self._entries.popitem(last=False)
        self._entries[domain] = (self.clock(), value)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self):
        return len(self._entries)


# process-wide cache used when the caller does not inject one
default_cache = WhoisCache()


def extract_creation_date(text: str) -> Optional[str]:
    """Return the first creation date found in WHOIS text, as it appears.

    Labelled YYYY-MM-DD patterns are tried in order; otherwise the first
    DD-MM-YYYY / DD/MM/YYYY substring, with slashes turned into hyphens.
    """
    for pattern in CREATION_DATE_PATTERNS:
        m = pattern.search(text)
        if m:
            return m.group(1)
    m = FALLBACK_DATE_RE.search(text)
    if m:
        return m.group(1).replace("/", "-")
    return None


def parse_creation_date(raw: str) -> Optional[date]:
    for fmt in ("%Y-%m-%d", "%d-%m-%Y"):
        try:
            return datetime.strptime(raw, fmt).date()
        except ValueError:
            continue
    return None


def parse_whois_text(text: str, now: Optional[datetime] = None) -> WhoisResult:
    """Derive creation date and age in days from WHOIS page text."""
    now = now or datetime.now(timezone.utc)
    creation_date = None
    age_in_days = None
    raw = extract_creation_date(text)
    created = parse_creation_date(raw) if raw else None
    if created is not None:
        created_at = datetime(created.year, created.month, created.day, tzinfo=timezone.utc)
        creation_date = created.isoformat()
        age_in_days = max((now - created_at).days, 0)
    elif raw:
        logger.debug("unparseable WHOIS creation date %r", raw)
    return WhoisResult(
        creation_date=creation_date,
        age_in_days=age_in_days,
        raw_excerpt=text[:RAW_EXCERPT_CHARS],
    )


async def fetch_whois_text(domain: str, client: Optional[httpx.AsyncClient] = None,
                           timeout: Optional[float] = None) -> str:
    """Async: GET the WHOIS gateway page for a domain. Non-2xx raises."""
    url = WHOIS_URL.format(domain)
    timeout = WHOIS_TIMEOUT if timeout is None else timeout

    async def _get(c: httpx.AsyncClient) -> httpx.Response:
        return await asyncio.wait_for(c.get(url, timeout=timeout), timeout=timeout)

    if client is not None:
        response = await _get(client)
    else:
        async with httpx.AsyncClient(headers={"User-Agent": USER_AGENT}, follow_redirects=True) as c:
            response = await _get(c)
    if not response.is_success:
        raise httpx.HTTPStatusError(
            f"WHOIS lookup failed: {response.status_code}", request=response.request, response=response
        )
    return response.text


async def check_whois(domain: str, cache: Optional[WhoisCache] = None,
                      client: Optional[httpx.AsyncClient] = None,
                      now: Optional[datetime] = None) -> WhoisResult:
    """Async: return the WHOIS age result for a domain.

    Never raises for lookup problems: failures come back as a result with
    `error` set, which means "age unknown" to the verdict.
    """
    cache = default_cache if cache is None else cache
    cached = cache.get(domain)
    if cached is not None:
        logger.debug("WHOIS cache hit for %s", domain)
        return cached
    try:
        text = await fetch_whois_text(domain, client=client)
    except asyncio.TimeoutError:
        details = f"Timeout after {int(WHOIS_TIMEOUT * 1000)}ms"
        logger.warning("WHOIS error for %s: %s", domain, details)
        return WhoisResult(error="Could not retrieve WHOIS information", details=details)
    except httpx.HTTPError as e:
        logger.warning("WHOIS error for %s: %s", domain, e)
        return WhoisResult(error="Could not retrieve WHOIS information", details=str(e))
    result = parse_whois_text(text, now=now)
    cache.set(domain, result)
    return result
