import asyncio
import logging
import re
import time
from typing import List, Optional, Sequence

import httpx

from . import dns_utils
from .exceptions import GlobalTimeoutError, InvalidDomainError
from .models import (DKIMResult, DMARCResult, MXResult, ReadinessReport,
                     SPFResult, WhoisResult)
from .whois import WhoisCache, check_whois

logger = logging.getLogger(__name__)

# ---------- Configuration ----------
GLOBAL_TIMEOUT = 15.0  # seconds, whole batch of lookups
YOUNG_DOMAIN_DAYS = 30
# -----------------------------------

READY = "ready"
RISKY = "risky"
NOT_READY = "notready"

DOMAIN_RE = re.compile(r"^([a-z0-9]+(-[a-z0-9]+)*\.)+[a-z]{2,}$", re.I)

MX_MISSING = "Set up MX records to receive email. Without MX records, your domain cannot receive email."
SPF_MISSING = ("Set up SPF record to prevent spoofing. This is required for deliverability. "
               "Format: v=spf1 include:_spf.your-provider.com ~all")
SPF_MULTIPLE = ("Multiple SPF records detected. This is invalid - consolidate all SPF mechanisms "
                "into a single record.")
SPF_WEAK_QUALIFIER = ("Your SPF record uses a neutral policy (?all). Consider using ~all (softfail) "
                      "or -all (hardfail) for better protection.")
DKIM_MISSING = ("Set up DKIM record to prove emails are not altered in transit. Contact your email "
                "provider for DKIM setup instructions.")
DKIM_WEAK = ("Your DKIM key is weak (less than 1024 bits). Consider upgrading to at least "
             "2048-bit RSA key.")
DMARC_MISSING = ("Set up DMARC record to tell receivers how to handle failing emails. Start with "
                 "p=none and add rua tag for reporting.")
DMARC_NONE = ('Your DMARC policy is set to "none". Consider moving to p=quarantine after '
              'monitoring reports.')
DMARC_QUARANTINE = ('Your DMARC policy is set to "quarantine". Good! Monitor reports and consider '
                    'moving to p=reject.')
YOUNG_DOMAIN = ("Your domain is {days} days old. Start with 20-30 emails per day for the first "
                "month to build reputation.")
VERDICT_LINES = {
    READY: ("Your domain is technically ready for cold email. Start with 20-30 emails per day "
            "and monitor bounce rates."),
    RISKY: ("Your domain is at risk. Follow the recommendations above and start with less than "
            "20 emails per day."),
    NOT_READY: ("Your domain is not ready for cold email. Fix the critical issues above before "
                "sending any emails."),
}
WARMUP_ADVICE = "Always warm up new domains/IPs for 2-4 weeks before full-scale campaigns."


def validate_domain(domain: str) -> str:
    """Normalise and validate a domain name; raises InvalidDomainError."""
    candidate = (domain or "").strip().lower()
    if not DOMAIN_RE.match(candidate):
        raise InvalidDomainError(domain)
    return candidate


def _is_young(whois: WhoisResult) -> bool:
    return whois.age_in_days is not None and whois.age_in_days < YOUNG_DOMAIN_DAYS


def determine_verdict(mx: MXResult, spf: SPFResult, dkim: DKIMResult,
                      dmarc: DMARCResult, whois: WhoisResult) -> str:
    """Rule-based readiness verdict.

    DMARC is accepted for symmetry with the other inputs but never
    changes the verdict; it only feeds recommendations. Unknown age is
    not a young domain.
    """
    if not mx.exists:
        return NOT_READY
    if not spf.exists or not dkim.exists:
        return NOT_READY
    if _is_young(whois):
        return RISKY
    return READY


def generate_recommendations(mx: MXResult, spf: SPFResult, dkim: DKIMResult,
                             dmarc: DMARCResult, whois: WhoisResult, verdict: str) -> List[str]:
    recommendations = []

    if not mx.exists:
        recommendations.append(MX_MISSING)

    if not spf.exists:
        recommendations.append(SPF_MISSING)
    elif spf.multiple:
        recommendations.append(SPF_MULTIPLE)
    elif spf.policy in ("neutral", "none"):
        recommendations.append(SPF_WEAK_QUALIFIER)

    if not dkim.exists:
        recommendations.append(DKIM_MISSING)
    elif dkim.key_strength == "weak":
        recommendations.append(DKIM_WEAK)

    if not dmarc.exists:
        recommendations.append(DMARC_MISSING)
    elif dmarc.policy == "none":
        recommendations.append(DMARC_NONE)
    elif dmarc.policy == "quarantine":
        recommendations.append(DMARC_QUARANTINE)

    if _is_young(whois):
        recommendations.append(YOUNG_DOMAIN.format(days=whois.age_in_days))

    recommendations.append(VERDICT_LINES.get(verdict, VERDICT_LINES[NOT_READY]))
    recommendations.append(WARMUP_ADVICE)
    return recommendations


def _settled(outcome, model, what: str, domain: str):
    """Turn a gather() outcome into a result, exceptions into an error placeholder."""
    if isinstance(outcome, BaseException):
        message = str(outcome) or f"{what} check failed"
        logger.warning("%s check failed for %s: %s", what, domain, message)
        return model(error=message)
    return outcome


async def run_checks(domain: str, resolver=None, whois_cache: Optional[WhoisCache] = None,
                     http_client: Optional[httpx.AsyncClient] = None,
                     dkim_selectors: Optional[Sequence[str]] = None):
    """Async: run the five lookups concurrently; one failing never blocks the others."""
    outcomes = await asyncio.gather(
        dns_utils.check_mx(domain, resolver=resolver),
        dns_utils.check_spf(domain, resolver=resolver),
        dns_utils.check_dkim(domain, selectors=dkim_selectors or dns_utils.DKIM_SELECTORS, resolver=resolver),
        dns_utils.check_dmarc(domain, resolver=resolver),
        check_whois(domain, cache=whois_cache, client=http_client),
        return_exceptions=True,
    )
    mx, spf, dkim, dmarc, whois = outcomes
    return (
        _settled(mx, MXResult, "MX", domain),
        _settled(spf, SPFResult, "SPF", domain),
        _settled(dkim, DKIMResult, "DKIM", domain),
        _settled(dmarc, DMARCResult, "DMARC", domain),
        _settled(whois, WhoisResult, "WHOIS", domain),
    )


async def generate_report(domain: str, resolver=None, whois_cache: Optional[WhoisCache] = None,
                          http_client: Optional[httpx.AsyncClient] = None,
                          timeout: float = GLOBAL_TIMEOUT,
                          dkim_selectors: Optional[Sequence[str]] = None) -> ReadinessReport:
    """Async: full readiness report for a domain.

    Raises InvalidDomainError before any lookup, and GlobalTimeoutError if
    the lookups together take longer than `timeout` seconds (pending
    lookups are cancelled and no partial report is returned).
    `dkim_selectors` replaces the well-known DKIM selector list.
    """
    domain = validate_domain(domain)
    t0 = time.time()
    checked_at = time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())

    try:
        mx, spf, dkim, dmarc, whois = await asyncio.wait_for(
            run_checks(domain, resolver=resolver, whois_cache=whois_cache, http_client=http_client,
                       dkim_selectors=dkim_selectors),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.warning("checks for %s exceeded %.1fs", domain, timeout)
        raise GlobalTimeoutError(timeout) from None

    verdict = determine_verdict(mx, spf, dkim, dmarc, whois)
    recommendations = generate_recommendations(mx, spf, dkim, dmarc, whois, verdict)
    elapsed = round(time.time() - t0, 2)
    logger.info("%s: verdict=%s in %ss", domain, verdict, elapsed)
    return ReadinessReport(
        domain=domain,
        mx=mx,
        spf=spf,
        dkim=dkim,
        dmarc=dmarc,
        whois=whois,
        verdict=verdict,
        recommendations=recommendations,
        checked_at=checked_at,
        elapsed_seconds=elapsed,
    )


def human_report(report: ReadinessReport) -> str:
    lines = []
    r = report
    lines.append(f"Cold email readiness report for: {r.domain}")
    lines.append(f"Checked at (UTC): {r.checked_at}")
    lines.append("-" * 60)
    lines.append("MX:")
    if r.mx.error:
        lines.append(f"  ! error: {r.mx.error}")
    elif not r.mx.exists:
        lines.append("  - No MX records found.")
    else:
        lines.append(f"  - Provider: {r.mx.provider}")
        for rec in r.mx.records:
            lines.append(f"  - {rec.priority} {rec.exchange}")
    lines.append("")
    lines.append("SPF:")
    if r.spf.error:
        lines.append(f"  ! error: {r.spf.error}")
    elif not r.spf.exists:
        lines.append("  - No SPF TXT record found.")
    else:
        lines.append(f"  - Record: {r.spf.record}")
        lines.append(f"  - Policy: {r.spf.policy}")
        if r.spf.multiple:
            lines.append("  - Multiple SPF records published!")
    lines.append("")
    lines.append("DKIM:")
    if r.dkim.error:
        lines.append(f"  ! error: {r.dkim.error}")
    elif not r.dkim.exists:
        lines.append("  - No DKIM selectors found with heuristic list.")
    else:
        lines.append(f"  - Selector: {r.dkim.selector}")
        lines.append(f"  - Key: {r.dkim.key_length} bits ({r.dkim.key_strength})")
        lines.append(f"  - raw TXT (first 200 chars): {(r.dkim.record or '')[:200]}")
    lines.append("")
    lines.append("DMARC:")
    if r.dmarc.error:
        lines.append(f"  ! error: {r.dmarc.error}")
    elif not r.dmarc.exists:
        lines.append("  - No DMARC record (no _dmarc.domain TXT).")
    else:
        lines.append(f"  - DMARC record: {r.dmarc.record}")
        lines.append(f"    - p = {r.dmarc.policy}")
        if r.dmarc.subdomain_policy:
            lines.append(f"    - sp = {r.dmarc.subdomain_policy}")
        lines.append(f"    - pct = {r.dmarc.percentage}")
        if r.dmarc.reporting:
            lines.append(f"    - rua = {r.dmarc.reporting}")
    lines.append("")
    lines.append("WHOIS:")
    if r.whois.error:
        lines.append(f"  ! {r.whois.error}: {r.whois.details}")
    elif r.whois.age_in_days is None:
        lines.append("  - Creation date not found (age unknown).")
    else:
        lines.append(f"  - Created: {r.whois.creation_date} ({r.whois.age_in_days} days ago)")
    lines.append("")
    lines.append(f"Verdict: {r.verdict.upper()}")
    for rec in r.recommendations:
        lines.append(f"    - {rec}")
    lines.append("-" * 60)
    lines.append(f"Elapsed time: {r.elapsed_seconds}s")
    return "\n".join(lines)
