"""
Risk composition.

Combines the pattern and medical fraud signals into one 0-100 score and
tier. Crossing the escalation threshold refers the claim to SIU: a
FRAUD_SUSPECTED trigger is emitted and a transition to SUSPENDED requested.
"""

import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict

from .config import DEFAULT_ENGINE_CONFIG, EngineConfig, RiskBreakpoints
from .medical_screener import MedicalScreeningResult, screen_medical_billing
from .pattern_scorer import PatternScore, score_patterns
from .schema import (
    ClaimSnapshot,
    ClaimStatus,
    EscalationTrigger,
    FraudIndicator,
    RiskTier,
    RoutingDecision,
    Severity,
    TriggerType,
)

logger = logging.getLogger(__name__)


class RiskScore(BaseModel):
    """
    Composite fraud risk for one claim snapshot.

    Holds no wall-clock values, so scoring the same snapshot twice yields
    an identical record.
    """
    model_config = ConfigDict(frozen=True)

    claim_id: str
    score: float
    tier: RiskTier
    indicators: tuple[FraudIndicator, ...] = ()
    pattern_score: float
    medical_score: Optional[float] = None
    siu_referral: bool = False
    routing: Optional[RoutingDecision] = None
    triggers: tuple[EscalationTrigger, ...] = ()
    requested_status: Optional[ClaimStatus] = None
    config_version: str = ""

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")


def clamp_score(score: float) -> float:
    return max(0.0, min(float(score), 100.0))


def tier_for_score(score: float, breakpoints: Optional[RiskBreakpoints] = None) -> RiskTier:
    """Map a score to its tier. Monotonic non-decreasing in score."""
    bp = breakpoints or DEFAULT_ENGINE_CONFIG.risk
    s = clamp_score(score)
    if s >= bp.critical:
        return RiskTier.CRITICAL
    if s >= bp.high:
        return RiskTier.HIGH
    if s >= bp.medium:
        return RiskTier.MEDIUM
    return RiskTier.LOW


def compose_risk(
    claim: ClaimSnapshot,
    pattern: PatternScore,
    medical: Optional[MedicalScreeningResult] = None,
    config: Optional[EngineConfig] = None,
) -> RiskScore:
    """
    Merge the fraud signals.

    The combined score is max(pattern, medical) so a single strong signal
    is never diluted.
    """
    config = config or DEFAULT_ENGINE_CONFIG
    bp = config.risk

    combined = pattern.score if medical is None else max(pattern.score, medical.score)
    score = clamp_score(combined)
    tier = tier_for_score(score, bp)

    indicators = pattern.indicators + (medical.indicators if medical else ())

    siu_referral = score >= bp.escalation
    triggers: tuple[EscalationTrigger, ...] = ()
    routing = None
    requested_status = None
    if siu_referral:
        triggers = (
            EscalationTrigger(
                type=TriggerType.FRAUD_SUSPECTED,
                severity=Severity.CRITICAL if tier == RiskTier.CRITICAL else Severity.HIGH,
                reason=f"Composite fraud score {score:.0f} at or above escalation threshold {bp.escalation:.0f}",
                detected_at=claim.as_of,
            ),
        )
        routing = RoutingDecision.SIU_ESCALATION
        requested_status = ClaimStatus.SUSPENDED
        logger.info(f"Claim {claim.claim_id} referred to SIU: score {score:.0f} ({tier.value})")

    return RiskScore(
        claim_id=claim.claim_id,
        score=score,
        tier=tier,
        indicators=indicators,
        pattern_score=pattern.score,
        medical_score=medical.score if medical else None,
        siu_referral=siu_referral,
        routing=routing,
        triggers=triggers,
        requested_status=requested_status,
        config_version=config.version,
    )


def score_risk(claim: ClaimSnapshot, config: Optional[EngineConfig] = None) -> RiskScore:
    """Score a claim: fans out to the pattern and medical scorers, then composes."""
    pattern = score_patterns(claim, config)
    medical = screen_medical_billing(claim, config)
    return compose_risk(claim, pattern, medical, config)
