"""
Claim decision workflow.

Runs one full decision cycle over a claim snapshot:
- Coverage analysis and fraud scoring (pattern + medical)
- Escalation decisions and routing
- Lifecycle transition and deadline tracking
- SIU briefing on referral

Every run is a new, fully attributed record; nothing is recomputed in place.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Optional

from ..engine.audit import AuditEvent, AuditSink, LoggingAuditSink
from ..engine.config import DEFAULT_ENGINE_CONFIG, EngineConfig
from ..engine.coverage import CoverageResult, evaluate_coverage
from ..engine.escalation import EscalationOutcome, OverallRecommendation, decide_escalations
from ..engine.jurisdiction import JurisdictionRuleBook, get_rule_book
from ..engine.lifecycle import (
    ClaimStateMachine,
    Deadline,
    LifecycleState,
    compute_deadlines,
    requested_status,
)
from ..engine.medical_screener import MedicalScreeningResult, screen_medical_billing
from ..engine.pattern_scorer import score_patterns
from ..engine.risk import RiskScore, compose_risk, score_risk
from ..engine.schema import (
    ClaimSnapshot,
    ClaimStatus,
    EscalationTrigger,
    RiskTier,
    RoutingDecision,
    build_claim_snapshot,
)
from ..engine.siu_briefing import SIUBriefing, build_siu_briefing

logger = logging.getLogger(__name__)


# =============================================================================
# Result
# =============================================================================


@dataclass
class ClaimProcessingResult:
    """Artifacts of one decision cycle."""
    claim_id: str
    processed_at: datetime
    coverage: CoverageResult
    risk: RiskScore
    escalation: EscalationOutcome
    lifecycle: LifecycleState
    medical: Optional[MedicalScreeningResult] = None

    # Routing
    routing_decision: RoutingDecision = RoutingDecision.STANDARD_QUEUE
    routing_reason: str = ""

    # Lifecycle
    previous_status: ClaimStatus = ClaimStatus.INTAKE
    requested_status: Optional[ClaimStatus] = None
    deadlines: list[Deadline] = field(default_factory=list)

    # Output
    siu_briefing: Optional[SIUBriefing] = None
    next_actions: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_overdue(self) -> bool:
        return any(d.is_overdue for d in self.deadlines)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "claim_id": self.claim_id,
            "processed_at": self.processed_at.isoformat(),
            "coverage": self.coverage.to_dict(),
            "risk": self.risk.to_dict(),
            "medical": self.medical.model_dump(mode="json") if self.medical else None,
            "escalation": self.escalation.to_dict(),
            "routing_decision": self.routing_decision.value,
            "routing_reason": self.routing_reason,
            "previous_status": self.previous_status.value,
            "requested_status": self.requested_status.value if self.requested_status else None,
            "status": self.lifecycle.status.value,
            "lifecycle": self.lifecycle.model_dump(mode="json"),
            "deadlines": [d.model_dump(mode="json") for d in self.deadlines],
            "is_overdue": self.is_overdue,
            "siu_briefing": self.siu_briefing.to_dict() if self.siu_briefing else None,
            "next_actions": self.next_actions,
            "warnings": self.warnings,
        }


# =============================================================================
# Routing
# =============================================================================


def route_claim(
    risk: RiskScore,
    coverage: CoverageResult,
    outcome: EscalationOutcome,
) -> tuple[RoutingDecision, str]:
    """
    Make routing decision based on all factors.

    Returns:
        Tuple of (routing_decision, routing_reason)
    """
    if risk.siu_referral:
        return RoutingDecision.SIU_ESCALATION, f"Fraud risk {risk.score:.0f} ({risk.tier.value}) referred to SIU"

    if outcome.requires_human_review:
        return RoutingDecision.HUMAN_REVIEW, outcome.human_review_reason or "Human review required"

    if not coverage.coverage_applies:
        return RoutingDecision.HUMAN_REVIEW, "No applicable coverage - coverage determination required"

    if outcome.recommendation == OverallRecommendation.PROCEED and risk.tier == RiskTier.LOW:
        return RoutingDecision.AUTO_APPROVE, "Low-risk claim within automated authority"

    return RoutingDecision.STANDARD_QUEUE, outcome.overall_recommendation


def get_next_actions(routing_decision: RoutingDecision, outcome: EscalationOutcome) -> list[str]:
    """Queue actions for the routing decision followed by each decision's next steps."""
    if routing_decision == RoutingDecision.AUTO_APPROVE:
        actions = [
            "Send acknowledgment to policyholder",
            "Generate settlement documents",
            "Schedule payment",
        ]
    elif routing_decision == RoutingDecision.SIU_ESCALATION:
        actions = [
            "Create SIU case file",
            "Hold all payments pending review",
            "Preserve all evidence",
        ]
    elif routing_decision == RoutingDecision.HUMAN_REVIEW:
        actions = [
            "Create review task",
            "Assign to reviewer with sufficient authority",
        ]
    else:  # STANDARD_QUEUE
        actions = [
            "Assign to adjuster queue",
            "Send acknowledgment to policyholder",
        ]

    for decision in outcome.decisions:
        for step in decision.next_steps:
            if step not in actions:
                actions.append(step)
    return actions


# =============================================================================
# Main API
# =============================================================================


class ClaimProcessor:
    """
    Process claims through coverage, fraud scoring, escalation and lifecycle.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        rule_book: Optional[JurisdictionRuleBook] = None,
        audit_sink: Optional[AuditSink] = None,
    ):
        self.config = config or DEFAULT_ENGINE_CONFIG
        self.rule_book = rule_book or get_rule_book()
        self.audit_sink = audit_sink or LoggingAuditSink()
        self.state_machine = ClaimStateMachine(audit_sink=self.audit_sink)

    def score_claim_risk(self, claim: ClaimSnapshot, actor: str = "claim-engine") -> RiskScore:
        """Composite fraud risk for a claim, recorded as one RISK_SCORED audit event."""
        risk = score_risk(claim, self.config)
        self.audit_sink.emit(AuditEvent(
            action="RISK_SCORED",
            entity_type="claim",
            entity_id=claim.claim_id,
            after={
                "risk_score": risk.score,
                "risk_tier": risk.tier.value,
                "siu_referral": risk.siu_referral,
            },
            actor=actor,
            timestamp=claim.as_of,
            details={"config_version": self.config.version},
        ))
        logger.info(f"Claim {claim.claim_id} risk scored: {risk.score:.0f} ({risk.tier.value})")
        return risk

    def decide_claim_escalations(
        self,
        claim: ClaimSnapshot,
        triggers: Iterable[EscalationTrigger] = (),
        now: Optional[datetime] = None,
        actor: str = "claim-engine",
    ) -> EscalationOutcome:
        """
        Score a claim and decide its escalations without touching the lifecycle.

        Emits one ESCALATIONS_DECIDED audit event.
        """
        now = now or claim.as_of
        rule, _ = self.rule_book.resolve(claim.jurisdiction, claim.report_date)
        risk = score_risk(claim, self.config)
        coverage = evaluate_coverage(claim)
        outcome = decide_escalations(
            claim, risk, coverage, triggers,
            config=self.config, now=now, jurisdiction=rule,
        )
        self.audit_sink.emit(AuditEvent(
            action="ESCALATIONS_DECIDED",
            entity_type="claim",
            entity_id=claim.claim_id,
            after={
                "risk_score": risk.score,
                "risk_tier": risk.tier.value,
                "recommendation": outcome.recommendation.value,
                "requires_human_review": outcome.requires_human_review,
            },
            actor=actor,
            timestamp=now,
            details={
                "config_version": self.config.version,
                "jurisdiction": rule.state_code,
                "decisions": [d.escalation_id for d in outcome.decisions],
            },
        ))
        return outcome

    def process_claim(
        self,
        claim: ClaimSnapshot,
        triggers: Iterable[EscalationTrigger] = (),
        state: Optional[LifecycleState] = None,
        now: Optional[datetime] = None,
        actor: str = "claim-engine",
    ) -> ClaimProcessingResult:
        """
        Run one decision cycle.

        Args:
            claim: The claim snapshot
            triggers: Explicit escalation triggers from other collaborators
            state: Current lifecycle state (built from the snapshot if omitted)
            now: Decision time; defaults to the snapshot's as_of
            actor: Who is attributed in audit records

        Returns:
            ClaimProcessingResult with all cycle artifacts
        """
        now = now or claim.as_of
        rule, warnings = self.rule_book.resolve(claim.jurisdiction, claim.report_date)

        # Step 1: Independent analyses over the same snapshot
        logger.info(f"Scoring claim {claim.claim_id}")
        coverage = evaluate_coverage(claim)
        pattern = score_patterns(claim, self.config)
        medical = screen_medical_billing(claim, self.config)

        # Step 2: Join
        risk = compose_risk(claim, pattern, medical, self.config)
        outcome = decide_escalations(
            claim, risk, coverage, triggers,
            config=self.config, now=now, jurisdiction=rule,
        )

        # Step 3: Route
        routing_decision, routing_reason = route_claim(risk, coverage, outcome)

        # Step 4: Lifecycle
        if state is None:
            state = LifecycleState(claim_id=claim.claim_id, status=claim.status, reported_date=claim.report_date)
        previous = state.status
        target = requested_status(previous, risk, outcome)
        if target is not None:
            state = self.state_machine.transition(state, target, at=now, actor=actor, reason=routing_reason)

        result = ClaimProcessingResult(
            claim_id=claim.claim_id,
            processed_at=now,
            coverage=coverage,
            risk=risk,
            medical=medical,
            escalation=outcome,
            lifecycle=state,
            routing_decision=routing_decision,
            routing_reason=routing_reason,
            previous_status=previous,
            requested_status=target,
            deadlines=compute_deadlines(state, rule, now),
            next_actions=get_next_actions(routing_decision, outcome),
            warnings=list(warnings) + list(coverage.warnings),
        )

        # Step 5: SIU briefing
        if risk.siu_referral:
            result.siu_briefing = build_siu_briefing(claim, risk, medical, rule)

        self.audit_sink.emit(AuditEvent(
            action="CLAIM_SCORED",
            entity_type="claim",
            entity_id=claim.claim_id,
            before={"status": previous.value},
            after={
                "status": state.status.value,
                "risk_score": risk.score,
                "risk_tier": risk.tier.value,
                "coverage_applies": coverage.coverage_applies,
                "recommendation": outcome.recommendation.value,
                "routing_decision": routing_decision.value,
            },
            actor=actor,
            timestamp=now,
            details={
                "config_version": self.config.version,
                "jurisdiction": rule.state_code,
                "decisions": [d.escalation_id for d in outcome.decisions],
            },
        ))

        logger.info(f"Claim {claim.claim_id} processed: {routing_decision.value} - {routing_reason}")
        return result


# Singleton instance
_processor: Optional[ClaimProcessor] = None


def get_claim_processor() -> ClaimProcessor:
    """Get or create the claim processor singleton."""
    global _processor
    if _processor is None:
        _processor = ClaimProcessor()
    return _processor


def process_claim_data(claim_data: dict[str, Any], triggers: Iterable[EscalationTrigger] = ()) -> dict:
    """
    Convenience function: validate raw claim data and run a decision cycle.

    Raises:
        InvalidSnapshot: if the claim data is malformed

    Returns:
        Dictionary with processing results
    """
    claim = build_claim_snapshot(claim_data)
    result = get_claim_processor().process_claim(claim, triggers)
    return result.to_dict()
