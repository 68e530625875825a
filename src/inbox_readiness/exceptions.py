"""Error hierarchy for inbox-readiness."""


class InboxReadinessError(Exception):
    """Base exception for all inbox-readiness errors."""


class InvalidDomainError(InboxReadinessError, ValueError):
    """The provided domain name is malformed. Raised before any lookup."""

    def __init__(self, domain: str):
        super().__init__(f"Invalid domain format: {domain!r}")
        self.domain = domain


class TransientLookupError(InboxReadinessError):
    """A single lookup timed out or failed in transport.

    Absorbed by the orchestrator into a per-record error placeholder.
    """


class GlobalTimeoutError(InboxReadinessError, TimeoutError):
    """The whole batch of lookups exceeded its time budget."""

    def __init__(self, seconds: float):
        super().__init__(f"Timeout after {int(seconds * 1000)}ms")
        self.seconds = seconds
