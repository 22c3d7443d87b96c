"""
datavault_services -- Claim-once dispensing, listing, flags and rate limiting.

Architecture:
    Sits above datavault_kernel and datavault_config.  Nothing here imports
    datavault_ingestion; records reach the store only through ingestion,
    and services only ever update flag, extra and tracking columns.
"""

from datavault_services.claim_gateway import ClaimGateway
from datavault_services.claim_service import ClaimResult, ClaimService, ClaimStatus
from datavault_services.flag_service import BulkUpdateResult, FlagService
from datavault_services.rate_limiter import (
    RateLimitDecision,
    RateLimiter,
    identity_from_headers,
)
from datavault_services.record_selector import RecordPage, RecordSelector

__all__ = [
    "BulkUpdateResult",
    "ClaimGateway",
    "ClaimResult",
    "ClaimService",
    "ClaimStatus",
    "FlagService",
    "RateLimitDecision",
    "RateLimiter",
    "RecordPage",
    "RecordSelector",
    "identity_from_headers",
]
