import asyncio
import base64
import binascii
import logging
import re
from typing import List, Optional, Sequence

import dns.asyncresolver
import dns.exception
import dns.resolver

from .exceptions import TransientLookupError
from .models import DKIMResult, DMARCResult, MXRecord, MXResult, SPFResult
from .providers import identify_provider

logger = logging.getLogger(__name__)

# ---------- Configuration ----------
MX_TIMEOUT = 5.0  # seconds
SPF_TIMEOUT = 5.0
DMARC_TIMEOUT = 5.0
DKIM_SELECTOR_TIMEOUT = 3.0  # per selector attempt
MAX_MX_RECORDS = 3
DKIM_SELECTORS = [
    "google", "selector1", "selector2", "default", "dkim",
    "s1", "s2", "k1", "k2", "mx", "mail"
]
# -----------------------------------

_resolver: Optional[dns.asyncresolver.Resolver] = None


def get_resolver() -> dns.asyncresolver.Resolver:
    """Return the shared dnspython async resolver, creating it on first use."""
    global _resolver
    if _resolver is None:
        _resolver = dns.asyncresolver.Resolver()
    return _resolver


async def dns_query(name: str, rdtype: str, timeout: float, resolver=None):
    """Async: resolve name/rdtype within `timeout` seconds.

    Returns the answer, or None when the name or record type does not exist.
    Timeouts and transport failures raise TransientLookupError.
    """
    res = resolver or get_resolver()
    logger.debug("query %s %s (timeout %.1fs)", name, rdtype, timeout)
    try:
        return await asyncio.wait_for(res.resolve(name, rdtype, lifetime=timeout), timeout=timeout)
    except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
        return None
    except (asyncio.TimeoutError, dns.exception.Timeout) as e:
        raise TransientLookupError(f"Timeout after {int(timeout * 1000)}ms") from e
    except dns.exception.DNSException as e:
        raise TransientLookupError(f"{rdtype} lookup for {name} failed: {e}") from e


async def dns_query_txt(name: str, timeout: float, resolver=None) -> List[str]:
    """Async: return TXT strings for a DNS name, multi-string records joined."""
    answers = await dns_query(name, "TXT", timeout, resolver=resolver)
    if answers is None:
        return []
    return [b"".join(r.strings).decode("utf-8", errors="replace") for r in answers]


# ---------- MX ----------

async def check_mx(domain: str, resolver=None) -> MXResult:
    answers = await dns_query(domain, "MX", MX_TIMEOUT, resolver=resolver)
    if not answers:
        return MXResult(exists=False)
    records = sorted(
        (MXRecord(exchange=r.exchange.to_text(omit_final_dot=True), priority=r.preference) for r in answers),
        key=lambda rec: rec.priority,
    )
    return MXResult(
        exists=True,
        records=records[:MAX_MX_RECORDS],
        provider=identify_provider(records[0].exchange),
    )


# ---------- SPF ----------

def parse_spf(candidates: Sequence[str]) -> SPFResult:
    """Build the SPF result from the TXT strings that look like SPF.

    The first candidate is canonical; more than one candidate is itself
    a misconfiguration and is flagged via `multiple`.
    """
    if not candidates:
        return SPFResult(exists=False)
    record = candidates[0]
    if "-all" in record:
        policy = "hardfail"
    elif "~all" in record:
        policy = "softfail"
    elif "?all" in record:
        policy = "neutral"
    else:
        policy = "none"
    return SPFResult(
        exists=True,
        record=record,
        valid="v=spf1" in record,
        multiple=len(candidates) > 1,
        policy=policy,
    )


async def check_spf(domain: str, resolver=None) -> SPFResult:
    txts = await dns_query_txt(domain, SPF_TIMEOUT, resolver=resolver)
    return parse_spf([t for t in txts if "v=spf1" in t or "v=spf" in t])


# ---------- DKIM ----------

DKIM_KEY_RE = re.compile(r"k=rsa;?\s*p=([A-Za-z0-9+/=\s]+)", re.I)


def dkim_key_length(record: str) -> Optional[int]:
    """Bit length of the RSA public key material in a DKIM record.

    0 when the record carries no `k=rsa; p=` key, None when the key
    material is not valid base64. Missing `=` padding is tolerated.
    """
    m = DKIM_KEY_RE.search(record)
    if not m:
        return 0
    cleaned = re.sub(r"\s+", "", m.group(1))
    cleaned += "=" * (-len(cleaned) % 4)
    try:
        return len(base64.b64decode(cleaned)) * 8
    except (binascii.Error, ValueError):
        return None


def key_strength(bits: int) -> str:
    if bits >= 2048:
        return "strong"
    if bits >= 1024:
        return "medium"
    return "weak"


def is_dkim_record(txt: str) -> bool:
    return "v=DKIM1" in txt or "k=rsa" in txt


async def check_dkim(domain: str, selectors: Sequence[str] = DKIM_SELECTORS, resolver=None) -> DKIMResult:
    """Async: probe selectors in order and stop at the first DKIM record.

    A failed query, or key material that does not decode, skips that
    selector and the probing carries on.
    """
    for sel in selectors:
        name = f"{sel}._domainkey.{domain}"
        try:
            txts = await dns_query_txt(name, DKIM_SELECTOR_TIMEOUT, resolver=resolver)
        except TransientLookupError as e:
            logger.debug("DKIM selector %s skipped: %s", sel, e)
            continue
        matches = [t for t in txts if is_dkim_record(t)]
        if matches:
            record = matches[0]
            bits = dkim_key_length(record)
            if bits is None:
                logger.debug("DKIM selector %s skipped: undecodable key in %.60s", sel, record)
                continue
            return DKIMResult(
                exists=True,
                selector=sel,
                record=record,
                key_length=bits,
                key_strength=key_strength(bits),
            )
    return DKIMResult(exists=False)


# ---------- DMARC ----------

DMARC_POLICY_RE = re.compile(r"p=([^;\s]+)")
DMARC_SUBDOMAIN_POLICY_RE = re.compile(r"sp=([^;\s]+)")
DMARC_PCT_RE = re.compile(r"pct=([^;\s]+)")
DMARC_RUA_RE = re.compile(r"rua=([^;\s]+)")


def _percentage(raw: Optional[str]) -> int:
    digits = re.match(r"\d+", raw) if raw else None
    if not digits:
        return 100
    return min(int(digits.group(0)), 100)


def parse_dmarc(record: str) -> DMARCResult:
    """Extract each DMARC tag independently from a v=DMARC1 record."""
    def tag(pattern):
        m = pattern.search(record)
        return m.group(1) if m else None

    return DMARCResult(
        exists=True,
        record=record,
        policy=tag(DMARC_POLICY_RE) or "none",
        subdomain_policy=tag(DMARC_SUBDOMAIN_POLICY_RE),
        percentage=_percentage(tag(DMARC_PCT_RE)),
        reporting=tag(DMARC_RUA_RE),
    )


async def check_dmarc(domain: str, resolver=None) -> DMARCResult:
    txts = await dns_query_txt(f"_dmarc.{domain}", DMARC_TIMEOUT, resolver=resolver)
    for t in txts:
        if "v=DMARC1" in t:
            return parse_dmarc(t)
    return DMARCResult(exists=False)
