from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import List, Optional


class _Result(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MXRecord(_Result):
    exchange: str
    priority: int


class MXResult(_Result):
    exists: bool = False
    records: List[MXRecord] = []
    provider: Optional[str] = None
    error: Optional[str] = None


class SPFResult(_Result):
    exists: bool = False
    record: Optional[str] = None
    valid: bool = False
    multiple: bool = False
    policy: Optional[str] = None
    error: Optional[str] = None


class DKIMResult(_Result):
    exists: bool = False
    selector: Optional[str] = None
    record: Optional[str] = None
    key_length: Optional[int] = None
    key_strength: Optional[str] = None
    error: Optional[str] = None


class DMARCResult(_Result):
    exists: bool = False
    record: Optional[str] = None
    policy: Optional[str] = None
    subdomain_policy: Optional[str] = None
    percentage: Optional[int] = None
    reporting: Optional[str] = None
    error: Optional[str] = None


class WhoisResult(_Result):
    creation_date: Optional[str] = None
    age_in_days: Optional[int] = None
    raw_excerpt: Optional[str] = None
    error: Optional[str] = None
    details: Optional[str] = None


class ReadinessReport(_Result):
    domain: str
    mx: MXResult
    spf: SPFResult
    dkim: DKIMResult
    dmarc: DMARCResult
    whois: WhoisResult
    verdict: str
    recommendations: List[str]
    checked_at: str
    elapsed_seconds: float
