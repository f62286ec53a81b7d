"""
Exception hierarchy for the claim decision engine.

Every error carries a machine-readable code (CE_*) so the orchestrator can
tell "could not score" apart from "scored as low risk".
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class ClaimEngineError(Exception):
    """
    Base exception for all engine errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (CE_*)
        details: Additional context about the error
        claim_id: Associated claim ID if applicable
    """
    message: str
    code: str = "CE_INTERNAL_ERROR"
    details: dict[str, Any] = field(default_factory=dict)
    claim_id: Optional[str] = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        text = f"[{self.code}] {self.message}"
        if self.claim_id:
            text += f" (claim: {self.claim_id})"
        return text

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logging and API responses."""
        result: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            result["details"] = self.details
        if self.claim_id:
            result["claim_id"] = self.claim_id
        return result


@dataclass
class MissingReferenceData(ClaimEngineError):
    """Policy or jurisdiction reference data is absent."""
    code: str = "CE_MISSING_REFERENCE_DATA"


@dataclass
class InvalidSnapshot(ClaimEngineError):
    """Claim snapshot is structurally malformed and cannot be scored."""
    code: str = "CE_INVALID_SNAPSHOT"


@dataclass
class ThresholdConfigurationError(ClaimEngineError):
    """Risk breakpoints or limits are not monotonically increasing."""
    code: str = "CE_THRESHOLD_CONFIG"


@dataclass
class IllegalTransition(ClaimEngineError):
    """Requested lifecycle transition is not allowed from the current status."""
    code: str = "CE_ILLEGAL_TRANSITION"
