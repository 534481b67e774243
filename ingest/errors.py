"""
Error taxonomy for activity ingestion.
Adapters raise these; the degradation policy catches ActivityError and falls back to placeholder data.
"""
from typing import Optional

# failure kinds reported by the activity source
RATE_LIMITED = 'rate_limited'
AUTH = 'auth'
NOT_FOUND = 'not_found'
TIMEOUT = 'timeout'
NETWORK = 'network'
SERVER_ERROR = 'server_error'
BAD_RESPONSE = 'bad_response'

RETRYABLE_KINDS = frozenset({RATE_LIMITED, TIMEOUT, NETWORK, SERVER_ERROR})


class ActivityError(Exception):
    """Base class for everything that routes a team to placeholder data."""


class MalformedReference(ActivityError):
    """A repository URL could not be parsed into owner/repo."""

    def __init__(self, url: str, message: str = 'malformed repository url'):
        self.url = url
        super().__init__(f"{message}: {url!r}")


class UpstreamFailure(ActivityError):
    """
    A call to the remote hosting API failed.

    kind is one of the module-level kind constants; retry_after is the server's
    Retry-After hint in seconds when one was given.
    """

    def __init__(self, kind: str, message: str, retry_after: Optional[float] = None):
        self.kind = kind
        self.message = message
        self.retry_after = retry_after
        super().__init__(f"{kind}: {message}")

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS


class PartialData(UpstreamFailure):
    """Some, but not all, of a team's fetches succeeded."""

    def __init__(self, failed: dict):
        self.failed = failed  # fetch name -> UpstreamFailure
        detail = ', '.join(f"{name} ({err.kind})" for name, err in failed.items())
        first = next(iter(failed.values()), None)
        super().__init__(first.kind if first else NETWORK, f"partial data, failed fetches: {detail}")


__all__ = [
    'ActivityError', 'MalformedReference', 'UpstreamFailure', 'PartialData',
    'RATE_LIMITED', 'AUTH', 'NOT_FOUND', 'TIMEOUT', 'NETWORK', 'SERVER_ERROR', 'BAD_RESPONSE',
    'RETRYABLE_KINDS',
]
