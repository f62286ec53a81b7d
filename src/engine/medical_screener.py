"""
Medical billing fraud screening.

Runs only for claims with at least one injured participant. Scores four
independently capped areas: injury/damage severity mismatch, provider
risk, per-bill billing anomalies, and treatment duration. Deterministic:
identical bill data flags identical anomalies on every run.
"""

import logging
from collections import defaultdict
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from .config import DEFAULT_ENGINE_CONFIG, EngineConfig, MedicalRules
from .schema import (
    BillComplexity,
    ClaimSnapshot,
    FraudIndicator,
    IndicatorSource,
    MedicalBillSnapshot,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Result Models
# ============================================================================


class SeverityLevel(str, Enum):
    MINOR = "MINOR"
    MODERATE = "MODERATE"
    SEVERE = "SEVERE"


class AnomalyKind(str, Enum):
    UPCODING = "UPCODING"
    UNBUNDLING = "UNBUNDLING"
    DUPLICATE_BILLING = "DUPLICATE_BILLING"


class MedicalAnomaly(BaseModel):
    """A billing anomaly tied to one bill."""
    model_config = ConfigDict(frozen=True)

    kind: AnomalyKind
    bill_id: str
    description: str
    related_bill_ids: tuple[str, ...] = ()


class MedicalScreeningResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: float
    raw_score: float
    mismatch_score: float = 0
    provider_score: float = 0
    billing_score: float = 0
    treatment_score: float = 0
    anomalies: tuple[MedicalAnomaly, ...] = ()
    indicators: tuple[FraudIndicator, ...] = ()

    def anomalies_for(self, bill_id: str) -> list[MedicalAnomaly]:
        return [a for a in self.anomalies if a.bill_id == bill_id]


# ============================================================================
# Severity Classifiers
# ============================================================================


def classify_severity(text: Optional[str], severe: tuple[str, ...], moderate: tuple[str, ...]) -> SeverityLevel:
    lower = (text or "").lower()
    if any(k in lower for k in severe):
        return SeverityLevel.SEVERE
    if any(k in lower for k in moderate):
        return SeverityLevel.MODERATE
    return SeverityLevel.MINOR


_SEVERITY_ORDER = [SeverityLevel.MINOR, SeverityLevel.MODERATE, SeverityLevel.SEVERE]


def check_injury_damage_mismatch(claim: ClaimSnapshot, rules: MedicalRules) -> tuple[float, list[FraudIndicator]]:
    """Serious injuries claimed alongside minor vehicle damage."""
    if claim.vehicle is None or not claim.vehicle.damage_description:
        return 0.0, []

    injuries = [
        classify_severity(p.injury_description, rules.severe_injury_keywords, rules.moderate_injury_keywords)
        for p in claim.injured_participants
    ]
    if not injuries:
        return 0.0, []
    injury = max(injuries, key=_SEVERITY_ORDER.index)
    damage = classify_severity(
        claim.vehicle.damage_description, rules.severe_damage_keywords, rules.moderate_damage_keywords,
    )
    if damage != SeverityLevel.MINOR:
        return 0.0, []

    if injury == SeverityLevel.SEVERE:
        weight = rules.severe_mismatch_weight
    elif injury == SeverityLevel.MODERATE:
        weight = rules.moderate_mismatch_weight
    else:
        return 0.0, []

    indicator = FraudIndicator(
        source=IndicatorSource.INJURY_MISMATCH,
        description=f"{injury.value.capitalize()} injury claimed with minor vehicle damage",
        weight=weight,
    )
    return min(weight, rules.mismatch_cap), [indicator]


# ============================================================================
# Provider Risk
# ============================================================================


def _provider_names(claim: ClaimSnapshot) -> set[str]:
    names = set()
    for bill in claim.medical_bills:
        if bill.provider_name:
            names.add(bill.provider_name.lower())
        if bill.facility_name:
            names.add(bill.facility_name.lower())
    for participant in claim.participants:
        names.update(p.lower() for p in participant.treatment_providers if p)
    return names


def check_providers(claim: ClaimSnapshot, rules: MedicalRules) -> tuple[float, list[FraudIndicator]]:
    """Watchlist matches, doctor shopping and out-of-state providers."""
    score = 0.0
    indicators = []
    providers = _provider_names(claim)

    for provider in sorted(providers):
        match = next((w for w in rules.provider_watchlist if w in provider), None)
        if match:
            score += rules.watchlist_weight
            indicators.append(FraudIndicator(
                source=IndicatorSource.PROVIDER,
                description=f"Provider '{provider}' matches watchlist pattern '{match}'",
                weight=rules.watchlist_weight,
            ))

    if len(providers) > rules.many_providers_count:
        weight = rules.many_providers_weight
    elif len(providers) > rules.several_providers_count:
        weight = rules.several_providers_weight
    else:
        weight = 0
    if weight:
        score += weight
        indicators.append(FraudIndicator(
            source=IndicatorSource.PROVIDER,
            description=f"Treatment across {len(providers)} distinct providers",
            weight=weight,
        ))

    home_state = claim.policy.holder_state if claim.policy else None
    if home_state:
        out_of_state = [
            b for b in claim.medical_bills
            if b.provider_state and b.provider_state.lower() != home_state.lower()
        ]
        if out_of_state:
            score += rules.out_of_state_weight
            indicators.append(FraudIndicator(
                source=IndicatorSource.PROVIDER,
                description=f"{len(out_of_state)} bill(s) from providers outside {home_state.upper()}",
                weight=rules.out_of_state_weight,
            ))

    return min(score, rules.provider_cap), indicators


# ============================================================================
# Billing Anomalies
# ============================================================================


def detect_upcoding(bill: MedicalBillSnapshot, rules: MedicalRules) -> Optional[str]:
    """Reason the bill looks upcoded, or None."""
    code = bill.procedure_code
    if not code:
        return None

    rule = next((r for r in rules.upcoding_rules if r.code == code), None)
    if rule is not None:
        description = bill.description.lower()
        if rule.high_risk_if in description or any(w in description for w in rules.low_complexity_words):
            return f"Code {code} billed for a service described as simpler (expected {rule.expected_code})"
        if code in rules.top_level_codes and bill.complexity in (None, BillComplexity.LOW, BillComplexity.MODERATE):
            return f"Highest-level code {code} without documented high complexity"

    for prefix, limit in sorted(rules.amount_thresholds.items()):
        if code.startswith(prefix) and bill.amount > limit:
            return f"Amount ${bill.amount:,.2f} above typical ${limit:,.0f} for {prefix}xx codes"
    return None


def detect_unbundling(
    bill: MedicalBillSnapshot,
    same_date: list[MedicalBillSnapshot],
    rules: MedicalRules,
) -> Optional[str]:
    """Reason the bill looks unbundled from same-date services, or None."""
    code = bill.procedure_code
    if not code:
        return None
    codes = [b.procedure_code for b in same_date if b.procedure_code]

    for pattern in rules.bundling_patterns:
        if code not in pattern.codes:
            continue
        matching = {c for c in codes if c in pattern.codes}
        if len(matching) >= 2:
            return f"{pattern.description} (should bill as {pattern.bundled_code})"

    if len(codes) > rules.same_date_code_limit:
        evals = [c for c in codes if c.startswith("992")]
        labs = [c for c in codes if c.startswith("8")]
        procedures = [c for c in codes if c.startswith("9") and not c.startswith("99")]
        if len(evals) > 1 or (evals and len(labs) >= 2 and procedures):
            return f"{len(codes)} codes billed on {bill.service_date.isoformat()} across eval/lab/procedure categories"
    return None


def find_duplicates(bills: tuple[MedicalBillSnapshot, ...]) -> dict[int, list[str]]:
    """
    Map bill position -> ids of the other bills sharing its date, amount and code.

    Grouping on the full key makes the relation symmetric.
    """
    groups: dict[tuple, list[int]] = defaultdict(list)
    for i, bill in enumerate(bills):
        if bill.procedure_code:
            groups[(bill.service_date, bill.amount, bill.procedure_code)].append(i)

    duplicates: dict[int, list[str]] = {}
    for members in groups.values():
        if len(members) < 2:
            continue
        for i in members:
            duplicates[i] = [bills[j].bill_id for j in members if j != i]
    return duplicates


def check_billing(claim: ClaimSnapshot, rules: MedicalRules) -> tuple[float, list[FraudIndicator], list[MedicalAnomaly]]:
    bills = claim.medical_bills
    if not bills:
        return 0.0, [], []

    by_date: dict = defaultdict(list)
    for bill in bills:
        by_date[bill.service_date].append(bill)
    duplicates = find_duplicates(bills)

    score = 0.0
    indicators: list[FraudIndicator] = []
    anomalies: list[MedicalAnomaly] = []

    def flag(kind: AnomalyKind, weight: float, bill: MedicalBillSnapshot, reason: str, related=()) -> None:
        nonlocal score
        score += weight
        anomalies.append(MedicalAnomaly(kind=kind, bill_id=bill.bill_id, description=reason,
                                        related_bill_ids=tuple(related)))
        indicators.append(FraudIndicator(
            source=IndicatorSource.BILLING,
            description=f"Bill {bill.bill_id}: {reason}",
            weight=weight,
        ))

    for i, bill in enumerate(bills):
        reason = detect_upcoding(bill, rules)
        if reason:
            flag(AnomalyKind.UPCODING, rules.upcoding_weight, bill, reason)

        same_date = by_date[bill.service_date]
        reason = detect_unbundling(bill, same_date, rules)
        if reason:
            related = [b.bill_id for b in same_date if b is not bill]
            flag(AnomalyKind.UNBUNDLING, rules.unbundling_weight, bill, reason, related)

        if i in duplicates:
            flag(
                AnomalyKind.DUPLICATE_BILLING,
                rules.duplicate_weight,
                bill,
                f"Duplicate of {', '.join(duplicates[i])} (same date, amount and code)",
                duplicates[i],
            )

    return min(score, rules.billing_cap), indicators, anomalies


# ============================================================================
# Treatment Patterns
# ============================================================================


def check_treatment(claim: ClaimSnapshot, rules: MedicalRules) -> tuple[float, list[FraudIndicator]]:
    score = 0.0
    indicators = []
    injured = claim.injured_participants

    days = max((p.treatment_days or 0 for p in injured), default=0)
    if days > rules.long_treatment_days:
        score += rules.long_treatment_weight
        indicators.append(FraudIndicator(
            source=IndicatorSource.TREATMENT,
            description=f"Treatment extended over {days} days",
            weight=rules.long_treatment_weight,
        ))

    sessions = max((p.physical_therapy_sessions or 0 for p in injured), default=0)
    if sessions > rules.excessive_pt_sessions:
        score += rules.excessive_pt_weight
        indicators.append(FraudIndicator(
            source=IndicatorSource.TREATMENT,
            description=f"{sessions} physical therapy sessions billed",
            weight=rules.excessive_pt_weight,
        ))

    return score, indicators


# ============================================================================
# Main API
# ============================================================================


def should_screen(claim: ClaimSnapshot) -> bool:
    """Medical screening applies only when a participant reports an injury."""
    return bool(claim.injured_participants)


def screen_medical_billing(
    claim: ClaimSnapshot,
    config: Optional[EngineConfig] = None,
) -> Optional[MedicalScreeningResult]:
    """
    Screen injury-related billing for fraud.

    Returns:
        MedicalScreeningResult, or None when no participant is injured
    """
    if not should_screen(claim):
        return None

    rules = (config or DEFAULT_ENGINE_CONFIG).medical

    mismatch, mismatch_ind = check_injury_damage_mismatch(claim, rules)
    provider, provider_ind = check_providers(claim, rules)
    billing, billing_ind, anomalies = check_billing(claim, rules)
    treatment, treatment_ind = check_treatment(claim, rules)

    raw = mismatch + provider + billing + treatment
    result = MedicalScreeningResult(
        score=max(0.0, min(raw, 100.0)),
        raw_score=raw,
        mismatch_score=mismatch,
        provider_score=provider,
        billing_score=billing,
        treatment_score=treatment,
        anomalies=tuple(anomalies),
        indicators=tuple(mismatch_ind + provider_ind + billing_ind + treatment_ind),
    )
    logger.debug(
        f"Claim {claim.claim_id} medical score {result.score}: {len(anomalies)} anomalies "
        f"across {len(claim.medical_bills)} bills"
    )
    return result
