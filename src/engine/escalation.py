"""
Escalation decisions.

Turns composite risk, coverage and claim financials plus escalation
triggers into one routing decision per trigger, then aggregates them into
an overall recommendation and a human-review flag. Decisions are never
merged, only aggregated.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterable, Optional

from pydantic import BaseModel, ConfigDict

from .config import DEFAULT_ENGINE_CONFIG, EngineConfig, EscalationRules
from .coverage import CoverageResult
from .jurisdiction import JurisdictionRule, add_deadline_days, is_total_loss
from .risk import RiskScore
from .schema import ClaimSnapshot, EscalationTrigger, Severity, TriggerType

logger = logging.getLogger(__name__)


# =============================================================================
# Enums and Models
# =============================================================================


class EscalationAction(str, Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    INVESTIGATE = "INVESTIGATE"
    REFER_SUPERVISOR = "REFER_SUPERVISOR"
    REFER_LEGAL = "REFER_LEGAL"


class AssigneeRole(str, Enum):
    CLAIMS_SUPERVISOR = "CLAIMS_SUPERVISOR"
    CLAIMS_MANAGER = "CLAIMS_MANAGER"
    SIU = "SIU"
    COVERAGE_SPECIALIST = "COVERAGE_SPECIALIST"
    COMPLIANCE_OFFICER = "COMPLIANCE_OFFICER"
    QA_TEAM = "QA_TEAM"
    BODILY_INJURY_ADJUSTER = "BODILY_INJURY_ADJUSTER"
    LEGAL_COUNSEL = "LEGAL_COUNSEL"


class OverallRecommendation(str, Enum):
    DENY = "DENY"
    INVESTIGATE = "INVESTIGATE"
    REFER = "REFER"
    PROCEED = "PROCEED"


class EscalationDecision(BaseModel):
    """Routing decision for exactly one trigger."""
    model_config = ConfigDict(frozen=True)

    escalation_id: str
    trigger_type: TriggerType
    priority: Severity
    action: EscalationAction
    assignee: Optional[AssigneeRole] = None
    reasoning: str
    deadline_days: Optional[int] = None
    deadline: Optional[datetime] = None
    required_documents: tuple[str, ...] = ()
    next_steps: tuple[str, ...] = ()


class EscalationOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    claim_id: str
    decided_at: datetime
    triggers: tuple[EscalationTrigger, ...] = ()
    decisions: tuple[EscalationDecision, ...] = ()
    recommendation: OverallRecommendation
    overall_recommendation: str
    requires_human_review: bool
    human_review_reason: Optional[str] = None

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")


@dataclass
class _DecisionContext:
    """Inputs shared by every trigger handler."""
    claim: ClaimSnapshot
    risk: Optional[RiskScore]
    rules: EscalationRules
    now: datetime
    business_days: bool = False

    def deadline(self, days: int) -> datetime:
        return add_deadline_days(self.now, days, self.business_days)

    def decision(self, trigger: EscalationTrigger, days: Optional[int] = None, **kwargs) -> EscalationDecision:
        escalation_id = f"ESC-{uuid.uuid4().hex[:12].upper()}"
        return EscalationDecision(
            escalation_id=escalation_id,
            trigger_type=trigger.type,
            deadline_days=days,
            deadline=self.deadline(days) if days is not None else None,
            **kwargs,
        )


# =============================================================================
# Trigger Handlers
# =============================================================================


def _claim_amount(claim: ClaimSnapshot) -> float:
    return claim.estimated_amount or claim.approved_amount or 0.0


def _handle_high_value(trigger: EscalationTrigger, ctx: _DecisionContext) -> EscalationDecision:
    amount = _claim_amount(ctx.claim)
    if amount <= ctx.rules.auto_approve_limit:
        return ctx.decision(
            trigger,
            priority=Severity.MEDIUM,
            action=EscalationAction.APPROVE,
            reasoning=f"Amount ${amount:,.0f} within auto-approval threshold",
            next_steps=("Proceed with standard processing", "Generate settlement documents"),
        )
    if amount <= ctx.rules.supervisor_limit:
        return ctx.decision(
            trigger,
            days=ctx.rules.supervisor_review_days,
            priority=Severity.HIGH,
            action=EscalationAction.REFER_SUPERVISOR,
            assignee=AssigneeRole.CLAIMS_SUPERVISOR,
            reasoning=f"Amount ${amount:,.0f} requires supervisor approval",
            next_steps=(
                "Route to claims supervisor queue",
                "Prepare summary for review",
                "Ensure all documentation complete",
            ),
        )
    return ctx.decision(
        trigger,
        days=ctx.rules.manager_review_days,
        priority=Severity.CRITICAL,
        action=EscalationAction.REFER_SUPERVISOR,
        assignee=AssigneeRole.CLAIMS_MANAGER,
        reasoning=f"Amount ${amount:,.0f} requires manager approval",
        next_steps=(
            "Escalate to claims manager immediately",
            "Prepare comprehensive claim package",
            "Schedule review meeting if needed",
        ),
    )


def _handle_fraud(trigger: EscalationTrigger, ctx: _DecisionContext) -> EscalationDecision:
    score = ctx.risk.score if ctx.risk else 0.0
    if score >= ctx.rules.fraud_auto_deny_score:
        return ctx.decision(
            trigger,
            days=ctx.rules.fraud_deny_days,
            priority=Severity.CRITICAL,
            action=EscalationAction.REJECT,
            assignee=AssigneeRole.SIU,
            reasoning=f"Fraud score {score:.0f} exceeds auto-deny threshold",
            required_documents=("Fraud investigation report", "Evidence summary", "SIU referral form"),
            next_steps=(
                "Deny claim pending investigation",
                "Create SIU case file",
                "Preserve all evidence",
                "Do not communicate denial reason to claimant until investigation complete",
            ),
        )
    if score >= ctx.rules.fraud_investigate_score:
        return ctx.decision(
            trigger,
            days=ctx.rules.fraud_investigate_days,
            priority=Severity.HIGH,
            action=EscalationAction.INVESTIGATE,
            assignee=AssigneeRole.SIU,
            reasoning=f"Fraud score {score:.0f} requires investigation",
            required_documents=("Additional documentation request", "Recorded statement", "EUO if needed"),
            next_steps=(
                "Hold claim for investigation",
                "Request additional documentation",
                "Consider recorded statement",
                "Continue processing non-fraud-related items",
            ),
        )
    return ctx.decision(
        trigger,
        priority=Severity.MEDIUM,
        action=EscalationAction.APPROVE,
        reasoning=f"Fraud indicators noted but score {score:.0f} below investigation threshold",
        next_steps=(
            "Document fraud indicators in file",
            "Proceed with standard processing",
            "Monitor for additional red flags",
        ),
    )


def _handle_coverage_dispute(trigger: EscalationTrigger, ctx: _DecisionContext) -> EscalationDecision:
    return ctx.decision(
        trigger,
        days=ctx.rules.coverage_dispute_days,
        priority=Severity.HIGH,
        action=EscalationAction.INVESTIGATE,
        assignee=AssigneeRole.COVERAGE_SPECIALIST,
        reasoning=trigger.reason or "Coverage determination disputed",
        required_documents=("Policy declarations", "Coverage analysis", "Exclusion review"),
        next_steps=(
            "Issue reservation of rights letter",
            "Complete coverage analysis",
            "Consult with underwriting if needed",
            "Document coverage determination",
        ),
    )


def _handle_total_loss(trigger: EscalationTrigger, ctx: _DecisionContext) -> EscalationDecision:
    return ctx.decision(
        trigger,
        days=ctx.rules.total_loss_days,
        priority=Severity.HIGH,
        action=EscalationAction.APPROVE,
        reasoning="Vehicle declared total loss - following total loss procedures",
        required_documents=("Total loss valuation", "Title", "Lienholder payoff letter"),
        next_steps=(
            "Obtain current payoff from lienholder",
            "Complete fair market value determination",
            "Prepare total loss settlement offer",
            "Arrange title and salvage transfer",
        ),
    )


def _handle_compliance(trigger: EscalationTrigger, ctx: _DecisionContext) -> EscalationDecision:
    return ctx.decision(
        trigger,
        days=ctx.rules.compliance_days,
        priority=Severity.CRITICAL,
        action=EscalationAction.INVESTIGATE,
        assignee=AssigneeRole.COMPLIANCE_OFFICER,
        reasoning=trigger.reason or "Compliance issue reported",
        next_steps=(
            "Review compliance violation immediately",
            "Document corrective actions",
            "Notify compliance department",
            "Implement remediation steps",
        ),
    )


def _handle_qa_failure(trigger: EscalationTrigger, ctx: _DecisionContext) -> EscalationDecision:
    return ctx.decision(
        trigger,
        days=ctx.rules.qa_failure_days,
        priority=Severity.HIGH,
        action=EscalationAction.INVESTIGATE,
        assignee=AssigneeRole.QA_TEAM,
        reasoning=trigger.reason or "Quality assurance check failed",
        next_steps=(
            "Review QA failures",
            "Correct identified issues",
            "Re-run QA validation",
            "Document root cause",
        ),
    )


def _handle_injury(trigger: EscalationTrigger, ctx: _DecisionContext) -> EscalationDecision:
    return ctx.decision(
        trigger,
        days=ctx.rules.injury_days,
        priority=Severity.HIGH,
        action=EscalationAction.REFER_SUPERVISOR,
        assignee=AssigneeRole.BODILY_INJURY_ADJUSTER,
        reasoning="Claim involves bodily injury - requires BI specialist",
        required_documents=("Medical records", "Treatment documentation", "Lost wage verification"),
        next_steps=(
            "Assign to bodily injury adjuster",
            "Request medical authorization",
            "Begin BI investigation",
            "Set appropriate BI reserves",
        ),
    )


def _handle_generic(trigger: EscalationTrigger, ctx: _DecisionContext) -> EscalationDecision:
    return ctx.decision(
        trigger,
        days=ctx.rules.generic_days,
        priority=trigger.severity,
        action=EscalationAction.INVESTIGATE,
        reasoning=trigger.reason or "Escalation raised",
        next_steps=(
            f"Review escalation: {trigger.type.value}",
            "Determine appropriate action",
            "Document resolution",
        ),
    )


_HANDLERS: dict[TriggerType, Callable[[EscalationTrigger, _DecisionContext], EscalationDecision]] = {
    TriggerType.HIGH_VALUE_CLAIM: _handle_high_value,
    TriggerType.FRAUD_SUSPECTED: _handle_fraud,
    TriggerType.COVERAGE_DISPUTE: _handle_coverage_dispute,
    TriggerType.TOTAL_LOSS: _handle_total_loss,
    TriggerType.COMPLIANCE_ISSUE: _handle_compliance,
    TriggerType.QA_FAILURE: _handle_qa_failure,
    TriggerType.INJURY_CLAIM: _handle_injury,
    TriggerType.GENERIC: _handle_generic,
}

_unhandled = set(TriggerType) - set(_HANDLERS)
if _unhandled:
    raise RuntimeError(f"No escalation handler for trigger types: {sorted(t.value for t in _unhandled)}")


# =============================================================================
# Trigger Derivation
# =============================================================================


def derive_triggers(
    claim: ClaimSnapshot,
    risk: Optional[RiskScore],
    coverage: Optional[CoverageResult],
    rules: EscalationRules,
    jurisdiction: Optional[JurisdictionRule] = None,
) -> list[EscalationTrigger]:
    """Triggers implied by the scoring artifacts and claim facts."""
    triggers: list[EscalationTrigger] = []
    if risk is not None:
        triggers.extend(risk.triggers)

    amount = _claim_amount(claim)
    if amount > rules.auto_approve_limit:
        triggers.append(EscalationTrigger(
            type=TriggerType.HIGH_VALUE_CLAIM,
            severity=Severity.CRITICAL if amount > rules.supervisor_limit else Severity.HIGH,
            reason=f"Claim amount ${amount:,.0f} exceeds auto-approval limit",
            detected_at=claim.as_of,
        ))

    if coverage is not None and coverage.applicable_exclusions:
        codes = ", ".join(e.code for e in coverage.applicable_exclusions)
        triggers.append(EscalationTrigger(
            type=TriggerType.COVERAGE_DISPUTE,
            severity=Severity.HIGH,
            reason=f"Policy exclusions apply: {codes}",
            detected_at=claim.as_of,
        ))

    if jurisdiction is not None and claim.vehicle is not None:
        acv = claim.vehicle.actual_cash_value
        if is_total_loss(claim.estimated_amount, acv, jurisdiction):
            triggers.append(EscalationTrigger(
                type=TriggerType.TOTAL_LOSS,
                severity=Severity.HIGH,
                reason=(
                    f"Estimate is {claim.estimated_amount / acv:.0%} of actual cash value "
                    f"({jurisdiction.state_code} threshold {jurisdiction.total_loss_threshold:.0%})"
                ),
                detected_at=claim.as_of,
            ))

    if claim.injured_participants:
        triggers.append(EscalationTrigger(
            type=TriggerType.INJURY_CLAIM,
            severity=Severity.HIGH,
            reason=f"{len(claim.injured_participants)} injured participant(s)",
            detected_at=claim.as_of,
        ))
    return triggers


def merge_triggers(
    explicit: Iterable[EscalationTrigger],
    derived: Iterable[EscalationTrigger],
) -> list[EscalationTrigger]:
    """Every explicit trigger, then derived triggers whose type is not yet present."""
    merged = list(explicit)
    seen = {t.type for t in merged}
    for trigger in derived:
        if trigger.type in seen:
            continue
        seen.add(trigger.type)
        merged.append(trigger)
    return merged


# =============================================================================
# Aggregation
# =============================================================================


def human_review_reasons(
    decisions: Iterable[EscalationDecision],
    claim: ClaimSnapshot,
    rules: EscalationRules,
) -> list[str]:
    """Reasons a human must review; empty when none apply."""
    decisions = list(decisions)
    reasons = []
    if any(d.priority == Severity.CRITICAL for d in decisions):
        reasons.append("Critical priority escalation")
    if any(d.action == EscalationAction.REFER_LEGAL for d in decisions):
        reasons.append("Legal referral")
    if any(d.action == EscalationAction.REFER_SUPERVISOR and d.priority == Severity.HIGH for d in decisions):
        reasons.append("High priority supervisor referral")
    if claim.in_litigation:
        reasons.append("Claim in litigation")
    if (claim.approved_amount or 0) > rules.supervisor_limit:
        reasons.append("Exceeds automated authority limit")
    return reasons


def overall_recommendation(decisions: Iterable[EscalationDecision]) -> tuple[OverallRecommendation, str]:
    """Precedence: any REJECT, then any INVESTIGATE, then any REFER_*, else PROCEED."""
    decisions = list(decisions)
    rejects = [d for d in decisions if d.action == EscalationAction.REJECT]
    investigations = [d for d in decisions if d.action == EscalationAction.INVESTIGATE]
    referrals = [d for d in decisions if d.action.value.startswith("REFER_")]

    if rejects:
        return OverallRecommendation.DENY, f"DENY: {'; '.join(d.reasoning for d in rejects)}"
    if investigations:
        return (
            OverallRecommendation.INVESTIGATE,
            f"INVESTIGATE: Hold for investigation - {len(investigations)} issues pending",
        )
    if referrals:
        assignee = referrals[0].assignee.value if referrals[0].assignee else "supervisor"
        return OverallRecommendation.REFER, f"REFER: Route to {assignee} for review"
    return OverallRecommendation.PROCEED, "PROCEED: All escalations resolved - continue processing"


# =============================================================================
# Main API
# =============================================================================


def decide_escalations(
    claim: ClaimSnapshot,
    risk_score: Optional[RiskScore],
    coverage_result: Optional[CoverageResult],
    triggers: Iterable[EscalationTrigger] = (),
    config: Optional[EngineConfig] = None,
    now: Optional[datetime] = None,
    jurisdiction: Optional[JurisdictionRule] = None,
    derive: bool = True,
) -> EscalationOutcome:
    """
    Decide how each escalation trigger is routed.

    Args:
        claim: The claim snapshot
        risk_score: Composite fraud risk (may carry a FRAUD_SUSPECTED trigger)
        coverage_result: Coverage analysis output
        triggers: Explicit triggers from other collaborators
        config: Engine configuration
        now: Decision time for deadlines (defaults to the current UTC time)
        jurisdiction: Rule used for business-day deadlines and the total-loss test
        derive: Also derive triggers from the risk, coverage and claim facts

    Returns:
        EscalationOutcome with one decision per trigger
    """
    rules = (config or DEFAULT_ENGINE_CONFIG).escalation
    now = now or datetime.now(timezone.utc)

    derived = derive_triggers(claim, risk_score, coverage_result, rules, jurisdiction) if derive else []
    all_triggers = merge_triggers(triggers, derived)

    ctx = _DecisionContext(
        claim=claim,
        risk=risk_score,
        rules=rules,
        now=now,
        business_days=bool(jurisdiction and jurisdiction.business_days),
    )
    decisions = [_HANDLERS[t.type](t, ctx) for t in all_triggers]

    recommendation, text = overall_recommendation(decisions)
    reasons = human_review_reasons(decisions, claim, rules)

    outcome = EscalationOutcome(
        claim_id=claim.claim_id,
        decided_at=now,
        triggers=tuple(all_triggers),
        decisions=tuple(decisions),
        recommendation=recommendation,
        overall_recommendation=text,
        requires_human_review=bool(reasons),
        human_review_reason="; ".join(reasons) or None,
    )
    logger.info(
        f"Claim {claim.claim_id}: {len(decisions)} escalation decision(s), {text}"
        + (f" [human review: {outcome.human_review_reason}]" if reasons else "")
    )
    return outcome
