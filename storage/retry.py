"""
Retry/backoff policy and rate-limit header parsing.
Adapters never retry on their own; callers wrap adapter calls with call_with_retries.
"""

import logging
import os
import time
import random
import email.utils
from datetime import datetime, timezone
from typing import Callable, Optional, Dict, Any, Tuple, TypeVar
from ingest.errors import UpstreamFailure

log = logging.getLogger(__name__)

T = TypeVar('T')

# retry/backoff defaults from environment
# - TEAMPULSE_MAX_RETRIES: int, total attempts per call (1 disables retrying)
# - TEAMPULSE_BACKOFF_BASE: float (seconds)
# - TEAMPULSE_BACKOFF_JITTER: float (seconds) - if not set, jitter defaults to backoff base
# - TEAMPULSE_MAX_BACKOFF: float (seconds)
DEFAULT_MAX_RETRIES = int(os.getenv("TEAMPULSE_MAX_RETRIES", "3"))
DEFAULT_BACKOFF_BASE = float(os.getenv("TEAMPULSE_BACKOFF_BASE", "1.0"))
_env_jitter = os.getenv("TEAMPULSE_BACKOFF_JITTER")
DEFAULT_BACKOFF_JITTER = float(_env_jitter) if _env_jitter is not None and _env_jitter != "" else None
DEFAULT_MAX_BACKOFF = float(os.getenv("TEAMPULSE_MAX_BACKOFF", "30.0"))

# runtime-overrides
_runtime_max_retries: Optional[int] = None
_runtime_backoff_base: Optional[float] = None
_runtime_backoff_jitter: Optional[float] = None
_runtime_max_backoff: Optional[float] = None


def configure_retry(
    max_retries: Optional[int] = None, backoff_base: Optional[float] = None, backoff_jitter: Optional[float] = None, max_backoff: Optional[float] = None
):
    """Configure retry/backoff defaults at runtime (e.g. from CLI or settings)."""
    global _runtime_max_retries, _runtime_backoff_base, _runtime_backoff_jitter, _runtime_max_backoff
    if max_retries is not None:
        _runtime_max_retries = int(max_retries)
    if backoff_base is not None:
        _runtime_backoff_base = float(backoff_base)
    if backoff_jitter is not None:
        _runtime_backoff_jitter = float(backoff_jitter)
    if max_backoff is not None:
        _runtime_max_backoff = float(max_backoff)


def reset_retry():
    """Drop runtime overrides and return to environment defaults."""
    global _runtime_max_retries, _runtime_backoff_base, _runtime_backoff_jitter, _runtime_max_backoff
    _runtime_max_retries = _runtime_backoff_base = _runtime_backoff_jitter = _runtime_max_backoff = None


def _parse_retry_after(raw_ra: str):
    if not raw_ra:
        return None
    try:
        return float(raw_ra)
    except (TypeError, ValueError):
        try:
            dt = email.utils.parsedate_to_datetime(raw_ra)
        except (TypeError, ValueError):
            return None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        ra = (dt - datetime.now(timezone.utc)).total_seconds()
        return max(0.0, ra)


def _safe_int_from_headers(headers: Dict[str, Any], key: str) -> Optional[int]:
    try:
        val = headers.get(key)
        return int(val) if val is not None else None
    except (TypeError, ValueError):
        return None


def _safe_float_from_headers(headers: Dict[str, Any], key: str) -> Optional[float]:
    try:
        val = headers.get(key)
        return float(val) if val is not None else None
    except (TypeError, ValueError):
        return None


def parse_rate_headers(resp) -> Tuple[Optional[float], Optional[int], Optional[float]]:
    """Return (retry_after_seconds, rate_limit_remaining, rate_limit_reset_epoch) from a response."""
    headers = getattr(resp, 'headers', None) or {}
    ra = _parse_retry_after(headers.get('Retry-After'))
    rl_remaining = _safe_int_from_headers(headers, 'X-RateLimit-Remaining')
    rl_reset = _safe_float_from_headers(headers, 'X-RateLimit-Reset')
    return ra, rl_remaining, rl_reset


def _resolve_backoff_params(
    backoff_base_local: Optional[float], backoff_jitter_local: Optional[float], max_backoff_local: Optional[float]
):
    if backoff_base_local is not None:
        base_local = float(backoff_base_local)
    elif _runtime_backoff_base is not None:
        base_local = float(_runtime_backoff_base)
    else:
        base_local = float(DEFAULT_BACKOFF_BASE)

    if backoff_jitter_local is not None:
        jitter_local = float(backoff_jitter_local)
    elif _runtime_backoff_jitter is not None:
        jitter_local = float(_runtime_backoff_jitter)
    elif DEFAULT_BACKOFF_JITTER is not None:
        jitter_local = float(DEFAULT_BACKOFF_JITTER)
    else:
        jitter_local = base_local

    if max_backoff_local is not None:
        max_backoff_resolved = float(max_backoff_local)
    elif _runtime_max_backoff is not None:
        max_backoff_resolved = float(_runtime_max_backoff)
    else:
        max_backoff_resolved = float(DEFAULT_MAX_BACKOFF)

    return base_local, jitter_local, max_backoff_resolved


def effective_max_retries(max_retries: Optional[int] = None) -> int:
    if max_retries is not None:
        return max(1, int(max_retries))
    if _runtime_max_retries is not None:
        return max(1, int(_runtime_max_retries))
    return max(1, int(DEFAULT_MAX_RETRIES))


def _compute_wait_seconds(ra_local: Optional[float], backoff_local: float, jitter_local: float, max_backoff: float) -> float:
    if ra_local is not None:
        return min(float(ra_local) + random.uniform(0, jitter_local), max_backoff)
    return min(backoff_local + random.uniform(0, jitter_local), max_backoff)


def call_with_retries(
    fn: Callable[[], T],
    max_retries: Optional[int] = None,
    backoff_base: Optional[float] = None,
    backoff_jitter: Optional[float] = None,
    max_backoff: Optional[float] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call fn until it succeeds or attempts run out.

    Only retryable UpstreamFailure kinds (rate limit, timeout, network, server error) are retried;
    the delay doubles per attempt and honours a Retry-After hint. The last failure is re-raised.
    """
    attempts = effective_max_retries(max_retries)
    backoff, jitter_val, max_backoff_resolved = _resolve_backoff_params(backoff_base, backoff_jitter, max_backoff)
    attempt = 0
    while True:
        attempt += 1
        try:
            return fn()
        except UpstreamFailure as exc:
            if not exc.retryable or attempt >= attempts:
                raise
            wait_seconds = _compute_wait_seconds(exc.retry_after, backoff, jitter_val, max_backoff_resolved)
            log.info("retrying after %s (attempt %d/%d, waiting %.2fs)", exc.kind, attempt, attempts, wait_seconds)
            backoff = min(backoff * 2, max_backoff_resolved)
            sleep(wait_seconds)


__all__ = ["configure_retry", "reset_retry", "call_with_retries", "parse_rate_headers", "effective_max_retries"]
