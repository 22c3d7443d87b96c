"""
Module: datavault_services.rate_limiter
Responsibility: Per-identity fixed-window request counter guarding the
    claim endpoints from abuse.
Architecture position: Services layer.  Process-local, in-memory; one
    instance per process, injected into ClaimGateway.

Invariants enforced:
    - First request of an identity, or any request once its window has
      elapsed, opens a new window: count = 1, reset = now + window, allowed.
    - Within a window: allowed while count < limit (then count += 1),
      denied otherwise.
    - retry_after_seconds is always the time left until the window resets,
      rounded up to whole seconds, whether allowed or denied.
    - Expired buckets are swept once the map grows past ``max_entries``.

Non-goals:
    Not shared across processes; this damps abuse, it is not a quota.
"""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from typing import Mapping

from datavault_kernel.domain.clock import Clock, SystemClock
from datavault_kernel.logging_config import get_logger

logger = get_logger("services.rate_limiter")

TOKEN_PREFIX_START = 7  # len("Bearer ")
TOKEN_PREFIX_END = 23


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after_seconds: int
    remaining: int


@dataclass
class _Bucket:
    count: int
    reset_at: float


def identity_from_headers(headers: Mapping[str, str]) -> str:
    """
    Derive the limiter identity from request headers.

    ``token:<16 chars of the bearer credential>`` when an
    ``Authorization: Bearer`` header is present, else ``ip:<address>`` from
    the first ``X-Forwarded-For`` hop or ``X-Real-IP``, else ``ip:unknown``.
    """
    lowered = {k.lower(): v for k, v in headers.items()}
    auth = lowered.get("authorization", "")
    if auth.startswith("Bearer "):
        return f"token:{auth[TOKEN_PREFIX_START:TOKEN_PREFIX_END]}"

    forwarded = lowered.get("x-forwarded-for", "")
    address = forwarded.split(",")[0].strip() if forwarded else ""
    if not address:
        address = lowered.get("x-real-ip", "").strip()
    return f"ip:{address or 'unknown'}"


class RateLimiter:
    """Thread-safe fixed-window limiter keyed by identity."""

    def __init__(self, clock: Clock | None = None, max_entries: int = 10_000):
        self._clock = clock or SystemClock()
        self._max_entries = max_entries
        self._buckets: dict[str, _Bucket] = {}
        self._lock = threading.Lock()

    def check(self, identity: str, limit: int, window_seconds: float) -> RateLimitDecision:
        """Count one request for ``identity`` and decide whether it may proceed."""
        if limit < 1 or window_seconds <= 0:
            raise ValueError("limit and window_seconds must be positive")

        now = self._clock.timestamp()
        with self._lock:
            if len(self._buckets) >= self._max_entries:
                self._sweep(now)

            bucket = self._buckets.get(identity)
            if bucket is None or bucket.reset_at <= now:
                self._buckets[identity] = _Bucket(count=1, reset_at=now + window_seconds)
                return RateLimitDecision(
                    allowed=True,
                    retry_after_seconds=math.ceil(window_seconds),
                    remaining=limit - 1,
                )

            retry_after = math.ceil(bucket.reset_at - now)
            if bucket.count >= limit:
                logger.warning(
                    "rate_limit_denied",
                    extra={"identity": identity, "limit": limit, "retry_after_seconds": retry_after},
                )
                return RateLimitDecision(allowed=False, retry_after_seconds=retry_after, remaining=0)

            bucket.count += 1
            return RateLimitDecision(
                allowed=True,
                retry_after_seconds=retry_after,
                remaining=limit - bucket.count,
            )

    def _sweep(self, now: float) -> None:
        expired = [key for key, bucket in self._buckets.items() if bucket.reset_at <= now]
        for key in expired:
            del self._buckets[key]
        logger.debug("rate_limit_swept", extra={"evicted": len(expired), "tracked": len(self._buckets)})

    def tracked_identities(self) -> int:
        with self._lock:
            return len(self._buckets)

    def reset(self) -> None:
        """Forget every bucket. FOR TESTING ONLY."""
        with self._lock:
            self._buckets.clear()
