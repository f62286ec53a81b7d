"""
SIU referral briefing.

Compiles what the Special Investigation Unit needs when a claim is
referred: priority, an executive summary of the strongest indicators,
investigative steps, legal considerations, referral contacts and an
exposure estimate.
"""

import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import date
from enum import Enum
from typing import Optional

from .jurisdiction import JurisdictionRule, add_deadline_days
from .medical_screener import MedicalScreeningResult
from .risk import RiskScore
from .schema import ClaimSnapshot, IndicatorSource

logger = logging.getLogger(__name__)


class BriefingPriority(str, Enum):
    ROUTINE = "ROUTINE"
    ELEVATED = "ELEVATED"
    URGENT = "URGENT"
    CRITICAL = "CRITICAL"


@dataclass
class InvestigativeStep:
    priority: str       # HIGH / MEDIUM / LOW
    action: str
    rationale: str
    timeline: str
    assign_to: str
    estimated_cost: Optional[float] = None


@dataclass
class ReferralContact:
    organization: str
    notes: str


@dataclass
class CriticalDate:
    deadline: date
    action: str
    responsible: str


@dataclass
class SIUBriefing:
    briefing_id: str
    claim_id: str
    priority: BriefingPriority
    fraud_score: float
    executive_summary: str
    investigative_steps: list[InvestigativeStep] = field(default_factory=list)
    legal_considerations: list[str] = field(default_factory=list)
    critical_dates: list[CriticalDate] = field(default_factory=list)
    referral_contacts: list[ReferralContact] = field(default_factory=list)
    exposure: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["priority"] = self.priority.value
        for item in data["critical_dates"]:
            item["deadline"] = item["deadline"].isoformat()
        return data


def briefing_priority(score: float) -> BriefingPriority:
    if score >= 75:
        return BriefingPriority.CRITICAL
    if score >= 60:
        return BriefingPriority.URGENT
    if score >= 50:
        return BriefingPriority.ELEVATED
    return BriefingPriority.ROUTINE


def _executive_summary(claim: ClaimSnapshot, risk: RiskScore) -> str:
    claimant = claim.participants[0].name if claim.participants else "Unknown Claimant"
    policy_number = claim.policy.policy_number if claim.policy else "N/A"

    lines = [
        f"EXECUTIVE SUMMARY - FRAUD SCORE: {risk.score:.0f}/100",
        "",
        f"Claimant: {claimant}",
        f"Policy: {policy_number}",
        f"Loss Date: {claim.loss_date.isoformat()}",
        f"Claimed Amount: ${claim.estimated_amount:,.0f}",
        "",
        "PRIMARY CONCERNS:",
    ]
    top = sorted(risk.indicators, key=lambda i: i.weight, reverse=True)[:3]
    for n, indicator in enumerate(top, 1):
        lines.append(f"{n}. [{indicator.source.value}] {indicator.description}")

    if risk.score >= 75:
        action = ("IMMEDIATE FULL INVESTIGATION with consideration for claim denial "
                  "and potential referral to law enforcement.")
    elif risk.score >= 60:
        action = "ENHANCED INVESTIGATION with expanded evidence gathering and independent verification."
    elif risk.score >= 50:
        action = "STANDARD SIU INVESTIGATION with focused review of flagged areas."
    else:
        action = "MONITORING with targeted verification of specific concerns."
    lines.extend(["", f"RECOMMENDATION: {action}"])
    return "\n".join(lines)


def _investigative_steps(
    claim: ClaimSnapshot,
    risk: RiskScore,
    medical: Optional[MedicalScreeningResult],
) -> list[InvestigativeStep]:
    steps = []
    if risk.score >= 75:
        steps.append(InvestigativeStep(
            priority="HIGH",
            action="Obtain recorded statement from claimant under oath",
            rationale="Critical fraud score warrants sworn testimony for potential legal action",
            timeline="Within 5 business days",
            assign_to="SIU",
            estimated_cost=500,
        ))
        steps.append(InvestigativeStep(
            priority="HIGH",
            action="Conduct surveillance of claimant activities",
            rationale="High fraud indicators suggest activity monitoring may reveal inconsistencies",
            timeline="10-14 days",
            assign_to="EXTERNAL",
            estimated_cost=3500,
        ))
    if medical is not None and medical.score > 50:
        steps.append(InvestigativeStep(
            priority="HIGH",
            action="Independent Medical Examination (IME)",
            rationale="Medical fraud indicators and injury inconsistencies require independent evaluation",
            timeline="Within 15 business days",
            assign_to="ADJUSTER",
            estimated_cost=1200,
        ))
        if medical.provider_score > 0:
            steps.append(InvestigativeStep(
                priority="HIGH",
                action="Provider investigation and possible fraud referral",
                rationale="High-risk provider involvement requires investigation",
                timeline="Within 10 business days",
                assign_to="SIU",
                estimated_cost=2000,
            ))
    if any(i.source == IndicatorSource.LOCATION for i in risk.indicators):
        steps.append(InvestigativeStep(
            priority="MEDIUM",
            action="Scene canvass and social media review of all parties",
            rationale="Loss location matches staged-accident patterns",
            timeline="Within 7 business days",
            assign_to="SIU",
            estimated_cost=800,
        ))
    return steps


def _legal_considerations(claim: ClaimSnapshot, risk: RiskScore) -> list[str]:
    considerations = []
    if risk.score >= 75:
        considerations.append("Potential criminal fraud - consider law enforcement referral")
        considerations.append("Document preservation required for potential litigation")
    if claim.in_litigation:
        considerations.append("Claimant represented by counsel - all communications through attorney")
        considerations.append("Discovery obligations if denial is contested")
    considerations.append("Maintain strict compliance with state unfair claims practice acts")
    considerations.append("Ensure all investigation activities comply with privacy laws and regulations")
    return considerations


def _referral_contacts(score: float) -> list[ReferralContact]:
    contacts = []
    if score >= 75:
        contacts.append(ReferralContact(
            organization="NICB",
            notes="National Insurance Crime Bureau - referral for suspected organized fraud",
        ))
    if score >= 80:
        contacts.append(ReferralContact(
            organization="FBI",
            notes="Consider referral for interstate fraud or organized crime",
        ))
    contacts.append(ReferralContact(
        organization="STATE_FRAUD_BUREAU",
        notes="State insurance fraud bureau - required reporting per state statute",
    ))
    return contacts


def _critical_dates(claim: ClaimSnapshot, rule: Optional[JurisdictionRule]) -> list[CriticalDate]:
    ack_days = rule.acknowledgment_days if rule else 15
    inv_days = rule.investigation_days if rule else 45
    business = bool(rule and rule.business_days)
    return [
        CriticalDate(
            deadline=add_deadline_days(claim.report_date, ack_days, business),
            action="Claim acknowledgment and investigation status communication",
            responsible="SIU Lead",
        ),
        CriticalDate(
            deadline=add_deadline_days(claim.report_date, inv_days, business),
            action="Complete investigation and issue coverage determination",
            responsible="Claims Manager",
        ),
    ]


def _exposure(claim: ClaimSnapshot) -> dict[str, float]:
    potential = claim.estimated_amount
    legal = 15000.0 if potential > 50000 else 5000.0
    recovery = claim.subrogation_recovery
    return {
        "potential_loss": potential,
        "projected_legal_costs": legal,
        "recovery_potential": recovery,
        "net_exposure": potential + legal - recovery,
    }


def build_siu_briefing(
    claim: ClaimSnapshot,
    risk: RiskScore,
    medical: Optional[MedicalScreeningResult] = None,
    rule: Optional[JurisdictionRule] = None,
) -> SIUBriefing:
    """Compile the SIU briefing for a referred claim."""
    briefing = SIUBriefing(
        briefing_id=f"SIU-{uuid.uuid4().hex[:10].upper()}",
        claim_id=claim.claim_id,
        priority=briefing_priority(risk.score),
        fraud_score=risk.score,
        executive_summary=_executive_summary(claim, risk),
        investigative_steps=_investigative_steps(claim, risk, medical),
        legal_considerations=_legal_considerations(claim, risk),
        critical_dates=_critical_dates(claim, rule),
        referral_contacts=_referral_contacts(risk.score),
        exposure=_exposure(claim),
    )
    logger.info(f"SIU briefing {briefing.briefing_id} for claim {claim.claim_id}: {briefing.priority.value}")
    return briefing
