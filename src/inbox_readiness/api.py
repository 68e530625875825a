from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel
from typing import Optional

from .core import generate_report, validate_domain
from .exceptions import GlobalTimeoutError, InvalidDomainError, TransientLookupError
from .models import DKIMResult, DMARCResult, MXResult, ReadinessReport, SPFResult, WhoisResult
from . import dns_utils, whois

app = FastAPI(title="inbox-readiness", version="0.1.0")


class CheckDomainRequest(BaseModel):
    domain: str


def _domain_or_400(domain: str) -> str:
    try:
        return validate_domain(domain)
    except InvalidDomainError:
        raise HTTPException(status_code=400, detail="Invalid domain format")


@app.get("/health")
async def health():
    """Simple health check endpoint."""
    return {"status": "ok", "service": "inbox-readiness"}


@app.post("/check-domain", response_model=ReadinessReport)
async def check_domain(req: CheckDomainRequest):
    """Full readiness report: records, WHOIS age, verdict and recommendations."""
    if not req.domain:
        raise HTTPException(status_code=400, detail="Domain is required")
    domain = _domain_or_400(req.domain)
    try:
        return await generate_report(domain)
    except GlobalTimeoutError:
        raise HTTPException(status_code=408, detail="Request timeout. Some DNS servers may be slow to respond.")
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/mx/{domain}", response_model=MXResult)
async def get_mx(domain: str):
    domain = _domain_or_400(domain)
    try:
        return await dns_utils.check_mx(domain)
    except TransientLookupError as e:
        raise HTTPException(status_code=502, detail=str(e))


@app.get("/spf/{domain}", response_model=SPFResult)
async def get_spf(domain: str):
    domain = _domain_or_400(domain)
    try:
        return await dns_utils.check_spf(domain)
    except TransientLookupError as e:
        raise HTTPException(status_code=502, detail=str(e))


@app.get("/dkim/{domain}", response_model=DKIMResult)
async def get_dkim(domain: str, selector: Optional[str] = Query(None)):
    """Return DKIM info.

    If 'selector' is provided, check that selector only. Otherwise probe the
    well-known selector list and stop at the first match.
    """
    domain = _domain_or_400(domain)
    selectors = [selector.strip()] if selector else dns_utils.DKIM_SELECTORS
    return await dns_utils.check_dkim(domain, selectors=selectors)


@app.get("/dmarc/{domain}", response_model=DMARCResult)
async def get_dmarc(domain: str):
    domain = _domain_or_400(domain)
    try:
        return await dns_utils.check_dmarc(domain)
    except TransientLookupError as e:
        raise HTTPException(status_code=502, detail=str(e))


@app.get("/whois/{domain}", response_model=WhoisResult)
async def get_whois(domain: str):
    """WHOIS creation date and age; lookup failures come back in the body."""
    domain = _domain_or_400(domain)
    return await whois.check_whois(domain)
