"""Claim decision routing: orchestrates one decision cycle per claim snapshot."""

from .claim_workflow import (
    ClaimProcessor,
    ClaimProcessingResult,
    get_claim_processor,
    get_next_actions,
    process_claim_data,
    route_claim,
)

__all__ = [
    "ClaimProcessor",
    "ClaimProcessingResult",
    "get_claim_processor",
    "get_next_actions",
    "process_claim_data",
    "route_claim",
]
