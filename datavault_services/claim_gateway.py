"""
Claim gateway: rate-limit gate in front of the claim engine.

The request layer calls ``ClaimGateway.claim`` with the caller identity.
A denied identity gets RateLimitExceededError (with retry guidance) and the
claim engine is never reached.
"""

from __future__ import annotations

from typing import Mapping

from sqlalchemy.engine import Engine

from datavault_config.settings import Settings
from datavault_kernel.domain.clock import Clock
from datavault_kernel.domain.registry import DatasetRegistry
from datavault_kernel.exceptions import RateLimitExceededError
from datavault_kernel.logging_config import LogContext
from datavault_services.claim_service import ClaimResult, ClaimService
from datavault_services.filters import FilterValue
from datavault_services.rate_limiter import RateLimiter


class ClaimGateway:
    def __init__(
        self,
        claim_service: ClaimService,
        rate_limiter: RateLimiter,
        limit: int = 60,
        window_seconds: float = 60.0,
    ):
        self._claims = claim_service
        self._limiter = rate_limiter
        self._limit = limit
        self._window = window_seconds

    @classmethod
    def from_settings(
        cls,
        engine: Engine,
        registry: DatasetRegistry,
        settings: Settings,
        clock: Clock | None = None,
    ) -> "ClaimGateway":
        return cls(
            ClaimService(engine, registry, max_attempts=settings.claim_max_attempts),
            RateLimiter(clock, max_entries=settings.rate_limiter_max_entries),
            limit=settings.rate_limit,
            window_seconds=settings.rate_window_seconds,
        )

    def claim(
        self,
        identity: str,
        dataset: str,
        filters: Mapping[str, FilterValue] | None,
        mark_used: bool = True,
    ) -> ClaimResult:
        """
        Rate-limit ``identity``, then claim (or peek) one record.

        Raises:
            RateLimitExceededError: identity is over its quota.
            Any error of ClaimService.find_and_claim.
        """
        decision = self._limiter.check(identity, self._limit, self._window)
        if not decision.allowed:
            raise RateLimitExceededError(identity, decision.retry_after_seconds)
        with LogContext.bind(actor_id=identity):
            return self._claims.find_and_claim(dataset, filters, claim=mark_used)
