"""
Claim-level fraud pattern scoring.

Four independent checks (timing, location, vehicle, repeat claimant) each
contribute an additive, capped score. All day counts are measured against
the snapshot's as_of timestamp so a snapshot always scores the same.
"""

import logging
from datetime import timedelta
from typing import Optional

from pydantic import BaseModel, ConfigDict

from .config import DEFAULT_ENGINE_CONFIG, EngineConfig, PatternRules
from .schema import ClaimSnapshot, ClaimStatus, FraudIndicator, IndicatorSource, TitleType

logger = logging.getLogger(__name__)


class PatternScore(BaseModel):
    """Fraud pattern score with the indicators that produced it."""
    model_config = ConfigDict(frozen=True)

    score: float
    raw_score: float
    timing_score: float = 0
    location_score: float = 0
    vehicle_score: float = 0
    repeat_score: float = 0
    indicators: tuple[FraudIndicator, ...] = ()


def _indicator(source: IndicatorSource, description: str, weight: float) -> FraudIndicator:
    return FraudIndicator(source=source, description=description, weight=weight)


# ============================================================================
# Sub-checks
# ============================================================================


def check_timing(claim: ClaimSnapshot, rules: PatternRules) -> tuple[float, list[FraudIndicator]]:
    """Losses soon after policy inception and late reporting."""
    score = 0.0
    indicators = []

    if claim.policy is not None:
        days = (claim.loss_date - claim.policy.effective_date).days
        if 0 <= days <= rules.inception_window_days:
            score += rules.inception_weight
            indicators.append(_indicator(
                IndicatorSource.TIMING,
                f"Claim occurred {days} days after policy effective date "
                f"(within {rules.inception_window_days} days)",
                rules.inception_weight,
            ))
        if 0 <= days <= rules.early_inception_days:
            score += rules.early_inception_weight
            indicators.append(_indicator(
                IndicatorSource.TIMING,
                f"Claim occurred {days} days after policy effective date "
                f"(within {rules.early_inception_days} days)",
                rules.early_inception_weight,
            ))

    delay = (claim.report_date - claim.loss_date).days
    if delay > rules.late_report_days:
        score += rules.late_report_weight
        indicators.append(_indicator(
            IndicatorSource.TIMING,
            f"Claim reported {delay} days after incident",
            rules.late_report_weight,
        ))

    return min(score, rules.timing_cap), indicators


def check_location(claim: ClaimSnapshot, rules: PatternRules) -> tuple[float, list[FraudIndicator]]:
    """Loss location text matched against the suspicious-location keyword list."""
    if not claim.loss_location:
        return 0.0, []

    location = claim.loss_location.lower()
    score = 0.0
    indicators = []
    for keyword in rules.location_keywords:
        if keyword in location:
            score += rules.location_weight
            indicators.append(_indicator(
                IndicatorSource.LOCATION,
                f"Loss location contains keyword: {keyword}",
                rules.location_weight,
            ))
    return min(score, rules.location_cap), indicators


def check_vehicle(claim: ClaimSnapshot, rules: PatternRules) -> tuple[float, list[FraudIndicator]]:
    """Branded titles and high amounts on old vehicles."""
    vehicle = claim.vehicle
    if vehicle is None:
        return 0.0, []

    score = 0.0
    indicators = []
    if vehicle.title_type in (TitleType.SALVAGE, TitleType.REBUILT):
        score += rules.salvage_title_weight
        indicators.append(_indicator(
            IndicatorSource.VEHICLE,
            f"Vehicle has {vehicle.title_type.value.lower()} title",
            rules.salvage_title_weight,
        ))

    if vehicle.year is not None:
        age = claim.as_of.year - vehicle.year
        if age > rules.old_vehicle_years and claim.estimated_amount > rules.high_amount_threshold:
            score += rules.high_amount_old_vehicle_weight
            indicators.append(_indicator(
                IndicatorSource.VEHICLE,
                f"High claim amount (${claim.estimated_amount:,.0f}) on {age}-year-old vehicle",
                rules.high_amount_old_vehicle_weight,
            ))

    return min(score, rules.vehicle_cap), indicators


def check_repeat_claimant(claim: ClaimSnapshot, rules: PatternRules) -> tuple[float, list[FraudIndicator]]:
    """
    Prior-claim history for the claimant.

    Contributes zero when no claim history is wired into the snapshot.
    """
    priors = claim.prior_claims
    if not priors:
        return 0.0, []

    score = 0.0
    indicators = []
    count = len(priors)
    for minimum, weight in sorted(rules.prior_claim_tiers, reverse=True):
        if count >= minimum:
            score += weight
            indicators.append(_indicator(
                IndicatorSource.REPEAT_CLAIMANT,
                f"Claimant has {count} prior claim(s) in system",
                weight,
            ))
            break

    window_start = claim.as_of.date() - timedelta(days=rules.recent_claims_window_days)
    recent = [p for p in priors if p.reported_date >= window_start]
    if len(recent) >= rules.recent_claims_count:
        score += rules.recent_claims_weight
        indicators.append(_indicator(
            IndicatorSource.REPEAT_CLAIMANT,
            f"{len(recent)} claims filed within last {rules.recent_claims_window_days} days",
            rules.recent_claims_weight,
        ))

    adverse = [p for p in priors if p.flagged_fraud or p.status == ClaimStatus.DENIED]
    if adverse:
        score += rules.adverse_history_weight
        indicators.append(_indicator(
            IndicatorSource.REPEAT_CLAIMANT,
            f"{len(adverse)} prior claim(s) were denied or flagged for fraud",
            rules.adverse_history_weight,
        ))

    return min(score, rules.repeat_cap), indicators


# ============================================================================
# Main API
# ============================================================================


def score_patterns(claim: ClaimSnapshot, config: Optional[EngineConfig] = None) -> PatternScore:
    """
    Run all four pattern checks and sum them before the 0-100 clamp.

    Args:
        claim: The claim snapshot
        config: Engine configuration (defaults to built-in rules)

    Returns:
        PatternScore with per-check sub-scores and indicators
    """
    rules = (config or DEFAULT_ENGINE_CONFIG).patterns

    timing, timing_ind = check_timing(claim, rules)
    location, location_ind = check_location(claim, rules)
    vehicle, vehicle_ind = check_vehicle(claim, rules)
    repeat, repeat_ind = check_repeat_claimant(claim, rules)

    raw = timing + location + vehicle + repeat
    result = PatternScore(
        score=max(0.0, min(raw, 100.0)),
        raw_score=raw,
        timing_score=timing,
        location_score=location,
        vehicle_score=vehicle,
        repeat_score=repeat,
        indicators=tuple(timing_ind + location_ind + vehicle_ind + repeat_ind),
    )
    logger.debug(f"Claim {claim.claim_id} pattern score {result.score} ({len(result.indicators)} indicators)")
    return result
