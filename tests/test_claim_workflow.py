"""
Tests for the claim decision workflow.

Runs the bundled example claims through ClaimProcessor and verifies the
joined result: routing, escalation, lifecycle transition, deadlines,
SIU briefing and audit records.
"""

import json
from pathlib import Path

import pytest

from src.engine.audit import InMemoryAuditSink
from src.engine.exceptions import InvalidSnapshot
from src.engine.escalation import AssigneeRole, EscalationAction, OverallRecommendation
from src.engine.lifecycle import DeadlineKind, DeadlineStatus
from src.engine.schema import (
    ClaimSnapshot,
    ClaimStatus,
    EscalationTrigger,
    RiskTier,
    RoutingDecision,
    Severity,
    TriggerType,
    build_claim_snapshot,
)
from src.routing.claim_workflow import ClaimProcessor, get_next_actions, process_claim_data, route_claim

EXAMPLES_DIR = Path(__file__).parent.parent / "data" / "examples"


# ============================================================================
# Helper Functions
# ============================================================================


def load_example(name: str) -> dict:
    return json.loads((EXAMPLES_DIR / f"{name}.json").read_text())


def create_claim(name: str, **overrides) -> ClaimSnapshot:
    data = load_example(name)
    data.update(overrides)
    return build_claim_snapshot(data)


def create_processor() -> tuple[ClaimProcessor, InMemoryAuditSink]:
    sink = InMemoryAuditSink()
    return ClaimProcessor(audit_sink=sink), sink


# ============================================================================
# Example Claims
# ============================================================================


class TestLowRiskClaim:

    def test_auto_approve(self):
        processor, sink = create_processor()
        claim = create_claim("claim_low_risk")

        result = processor.process_claim(claim)

        assert result.risk.score == 0
        assert result.risk.tier == RiskTier.LOW
        assert result.medical is None
        assert result.coverage.coverage_applies
        assert result.escalation.decisions == ()
        assert result.escalation.recommendation == OverallRecommendation.PROCEED
        assert result.routing_decision == RoutingDecision.AUTO_APPROVE
        assert result.previous_status == ClaimStatus.INTAKE
        assert result.requested_status == ClaimStatus.INVESTIGATION
        assert result.lifecycle.status == ClaimStatus.INVESTIGATION
        assert result.lifecycle.acknowledged_at == claim.as_of
        assert result.processed_at == claim.as_of
        assert result.siu_briefing is None
        assert result.warnings == []
        assert sink.actions() == ["CLAIM_STATUS_CHANGED", "CLAIM_SCORED"]

    def test_acknowledgment_met_on_intake(self):
        processor, _ = create_processor()
        result = processor.process_claim(create_claim("claim_low_risk"))

        deadlines = {d.kind: d for d in result.deadlines}
        assert deadlines[DeadlineKind.ACKNOWLEDGMENT].status == DeadlineStatus.MET
        assert deadlines[DeadlineKind.INVESTIGATION].status == DeadlineStatus.PENDING
        assert not result.is_overdue

    def test_next_actions(self):
        processor, _ = create_processor()
        result = processor.process_claim(create_claim("claim_low_risk"))
        assert result.next_actions[0] == "Send acknowledgment to policyholder"


class TestHighValueClaim:

    def test_manager_review(self):
        processor, _ = create_processor()

        result = processor.process_claim(create_claim("claim_high_value"))

        decisions = result.escalation.decisions
        assert [d.trigger_type for d in decisions] == [TriggerType.HIGH_VALUE_CLAIM]
        assert decisions[0].priority == Severity.CRITICAL
        assert decisions[0].assignee == AssigneeRole.CLAIMS_MANAGER
        assert result.escalation.requires_human_review
        assert result.escalation.recommendation == OverallRecommendation.REFER
        assert result.routing_decision == RoutingDecision.HUMAN_REVIEW
        assert result.routing_reason == "Critical priority escalation"
        assert result.lifecycle.status == ClaimStatus.INVESTIGATION

    def test_explicit_trigger_not_duplicated(self):
        processor, _ = create_processor()
        trigger = EscalationTrigger(type=TriggerType.HIGH_VALUE_CLAIM, severity=Severity.HIGH, reason="Desk review")

        result = processor.process_claim(create_claim("claim_high_value"), [trigger])

        assert len(result.escalation.decisions) == 1
        assert result.escalation.triggers[0].reason == "Desk review"


class TestSIUReferralClaim:

    def test_scores(self):
        processor, _ = create_processor()

        result = processor.process_claim(create_claim("claim_siu_referral"))

        assert result.risk.pattern_score == 80
        assert result.medical.mismatch_score == 15
        assert result.medical.provider_score == 15
        assert result.medical.billing_score == 50
        assert result.risk.medical_score == 80
        assert result.risk.score == 80
        assert result.risk.tier == RiskTier.CRITICAL
        assert result.risk.siu_referral

    def test_decisions_and_routing(self):
        processor, _ = create_processor()

        result = processor.process_claim(create_claim("claim_siu_referral"))

        by_type = {d.trigger_type: d for d in result.escalation.decisions}
        assert set(by_type) == {TriggerType.FRAUD_SUSPECTED, TriggerType.TOTAL_LOSS, TriggerType.INJURY_CLAIM}
        assert by_type[TriggerType.FRAUD_SUSPECTED].action == EscalationAction.INVESTIGATE
        assert result.escalation.recommendation == OverallRecommendation.INVESTIGATE
        assert result.routing_decision == RoutingDecision.SIU_ESCALATION
        assert result.requested_status == ClaimStatus.SUSPENDED
        assert result.lifecycle.status == ClaimStatus.SUSPENDED
        assert "Create SIU case file" in result.next_actions

    def test_briefing(self):
        processor, _ = create_processor()

        result = processor.process_claim(create_claim("claim_siu_referral"))

        briefing = result.siu_briefing
        assert briefing is not None
        assert briefing.priority.value == "CRITICAL"
        assert briefing.critical_dates[0].deadline.isoformat() == "2024-07-22"
        assert [c.organization for c in briefing.referral_contacts] == ["NICB", "FBI", "STATE_FRAUD_BUREAU"]

    def test_duplicate_bills_flagged(self):
        processor, _ = create_processor()
        result = processor.process_claim(create_claim("claim_siu_referral"))
        assert result.medical.anomalies_for("B-1")[0].related_bill_ids == ("B-2",)
        assert result.medical.anomalies_for("B-2")[0].related_bill_ids == ("B-1",)


# ============================================================================
# Processing Behavior
# ============================================================================


class TestProcessingBehavior:

    def test_rescoring_is_idempotent(self):
        processor, _ = create_processor()
        claim = create_claim("claim_siu_referral")

        first = processor.process_claim(claim)
        second = processor.process_claim(claim)

        assert first.risk.model_dump_json() == second.risk.model_dump_json()
        assert first.coverage.to_dict() == second.coverage.to_dict()
        assert first.medical == second.medical

    def test_terminal_claim_not_transitioned(self):
        processor, sink = create_processor()

        result = processor.process_claim(create_claim("claim_low_risk", status="CLOSED"))

        assert result.requested_status is None
        assert result.lifecycle.status == ClaimStatus.CLOSED
        assert all(d.status == DeadlineStatus.STOPPED for d in result.deadlines)
        assert sink.actions() == ["CLAIM_SCORED"]

    def test_missing_jurisdiction_warns(self):
        data = load_example("claim_low_risk")
        del data["jurisdiction"]
        processor, _ = create_processor()

        result = processor.process_claim(build_claim_snapshot(data))

        assert "Claim has no jurisdiction - default deadlines applied" in result.warnings

    def test_scored_event(self):
        processor, sink = create_processor()

        processor.process_claim(create_claim("claim_high_value"), actor="adjuster-12")

        event = sink.events[-1]
        assert event.action == "CLAIM_SCORED"
        assert event.actor == "adjuster-12"
        assert event.after["routing_decision"] == "HUMAN_REVIEW"
        assert event.details["jurisdiction"] == "TX"
        assert len(event.details["decisions"]) == 1

    def test_to_dict_is_json_serializable(self):
        processor, _ = create_processor()
        data = processor.process_claim(create_claim("claim_siu_referral")).to_dict()

        encoded = json.dumps(data)

        assert json.loads(encoded)["status"] == "SUSPENDED"
        assert data["siu_briefing"]["priority"] == "CRITICAL"


class TestRouting:

    def test_no_coverage_needs_review(self):
        processor, _ = create_processor()
        claim = create_claim("claim_low_risk", loss_type="BODILY_INJURY")

        result = processor.process_claim(claim)

        assert result.routing_decision == RoutingDecision.HUMAN_REVIEW
        assert result.routing_reason == "No applicable coverage - coverage determination required"

    def test_route_claim_standard_queue(self):
        processor, _ = create_processor()
        claim = create_claim("claim_low_risk", loss_location="Staged crash in parking lot by the parking garage")
        result = processor.process_claim(claim)

        decision, reason = route_claim(result.risk, result.coverage, result.escalation)

        assert result.risk.tier == RiskTier.MEDIUM
        assert decision == RoutingDecision.STANDARD_QUEUE
        assert reason == "PROCEED: All escalations resolved - continue processing"

    def test_next_actions_include_decision_steps(self):
        processor, _ = create_processor()
        result = processor.process_claim(create_claim("claim_high_value"))

        actions = get_next_actions(result.routing_decision, result.escalation)

        assert actions[:2] == ["Create review task", "Assign to reviewer with sufficient authority"]
        assert "Escalate to claims manager immediately" in actions


class TestPartialRuns:

    def test_score_claim_risk_emits_one_event(self):
        processor, sink = create_processor()

        risk = processor.score_claim_risk(create_claim("claim_siu_referral"), actor="fraud-desk")

        assert risk.score == 80
        assert sink.actions() == ["RISK_SCORED"]
        assert sink.events[0].actor == "fraud-desk"
        assert sink.events[0].after["siu_referral"] is True

    def test_decide_claim_escalations_emits_one_event(self):
        processor, sink = create_processor()
        triggers = [
            EscalationTrigger(type=TriggerType.COMPLIANCE_ISSUE, severity=Severity.HIGH, reason="Late acknowledgment"),
            EscalationTrigger(type=TriggerType.COMPLIANCE_ISSUE, severity=Severity.HIGH, reason="Missing disclosure"),
        ]

        outcome = processor.decide_claim_escalations(create_claim("claim_low_risk"), triggers)

        assert len(outcome.decisions) == 2
        assert sink.actions() == ["ESCALATIONS_DECIDED"]
        assert sink.events[0].details["decisions"] == [d.escalation_id for d in outcome.decisions]


class TestProcessClaimData:

    def test_returns_dict(self):
        data = process_claim_data(load_example("claim_low_risk"))
        assert data["routing_decision"] == "AUTO_APPROVE"
        assert data["status"] == "INVESTIGATION"

    def test_invalid_snapshot(self):
        with pytest.raises(InvalidSnapshot) as exc_info:
            process_claim_data({"claim_id": "CLM-BAD", "loss_date": "not-a-date"})
        assert exc_info.value.claim_id == "CLM-BAD"
        assert exc_info.value.details["errors"]
