import asyncio

import dns.name
import dns.rdataclass
import dns.rdatatype
import dns.resolver
from dns.rdtypes.ANY.MX import MX
from dns.rdtypes.ANY.TXT import TXT
import pytest


def mx(priority, exchange):
    return MX(dns.rdataclass.IN, dns.rdatatype.MX, priority, dns.name.from_text(exchange))


def txt(value):
    """TXT rdata for `value`, split into 255-byte strings like a real zone would."""
    raw = value.encode()
    chunks = [raw[i:i + 255] for i in range(0, len(raw), 255)] or [b""]
    return TXT(dns.rdataclass.IN, dns.rdatatype.TXT, chunks)


class FakeResolver:
    """Stands in for dns.asyncresolver.Resolver.

    `answers` maps (name, rdtype) to a list of rdata, `errors` maps the same
    keys to an exception to raise, `hang` is a set of keys that never answer.
    Anything else is NXDOMAIN.
    """

    def __init__(self, answers=None, errors=None, hang=()):
        self.answers = answers or {}
        self.errors = errors or {}
        self.hang = set(hang)
        self.queries = []

    async def resolve(self, name, rdtype, lifetime=None):
        key = (name, rdtype)
        self.queries.append(key)
        if key in self.hang or "*" in self.hang:
            await asyncio.Event().wait()
        if key in self.errors:
            raise self.errors[key]
        if key in self.answers:
            return self.answers[key]
        raise dns.resolver.NXDOMAIN()


@pytest.fixture
def run():
    return asyncio.run
