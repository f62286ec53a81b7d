"""
Tests for the claim lifecycle state machine.

Verifies that:
- Only allowed transitions succeed; others raise IllegalTransition
- Lifecycle timestamps are stamped on the right transitions
- Every transition is recorded in history and emitted to the audit sink
- Statutory deadlines report PENDING / MET / OVERDUE / STOPPED
- requested_status() maps a decision cycle to the next status
"""

from datetime import date, datetime, timezone

import pytest

from src.engine.audit import InMemoryAuditSink
from src.engine.escalation import EscalationOutcome, OverallRecommendation
from src.engine.exceptions import IllegalTransition
from src.engine.jurisdiction import get_rule_book
from src.engine.lifecycle import (
    ClaimStateMachine,
    DeadlineKind,
    DeadlineStatus,
    LifecycleState,
    can_transition,
    compute_deadlines,
    is_overdue,
    requested_status,
)
from src.engine.pattern_scorer import PatternScore
from src.engine.risk import compose_risk
from src.engine.schema import ClaimStatus, build_claim_snapshot

CA_RULE = get_rule_book().lookup("CA", date(2024, 3, 1))


# ============================================================================
# Helper Functions
# ============================================================================


def at(month: int, day: int) -> datetime:
    return datetime(2024, month, day, 10, 0, tzinfo=timezone.utc)


def create_state(**overrides) -> LifecycleState:
    fields = {"claim_id": "CLM-LC-001", "reported_date": date(2024, 3, 1)}
    fields.update(overrides)
    return LifecycleState(**fields)


def create_outcome(recommendation: OverallRecommendation, review: bool = False) -> EscalationOutcome:
    return EscalationOutcome(
        claim_id="CLM-LC-001",
        decided_at=at(3, 2),
        recommendation=recommendation,
        overall_recommendation=f"{recommendation.value}: test",
        requires_human_review=review,
        human_review_reason="test" if review else None,
    )


def walk(machine: ClaimStateMachine, state: LifecycleState, *steps) -> LifecycleState:
    for status, when in steps:
        state = machine.transition(state, status, at=when)
    return state


# ============================================================================
# Transitions
# ============================================================================


class TestTransitions:

    def test_main_path(self):
        machine = ClaimStateMachine()
        state = walk(
            machine, create_state(),
            (ClaimStatus.INVESTIGATION, at(3, 2)),
            (ClaimStatus.EVALUATION, at(3, 20)),
            (ClaimStatus.PENDING_APPROVAL, at(3, 25)),
            (ClaimStatus.APPROVED, at(4, 1)),
            (ClaimStatus.PAYMENT_PROCESSING, at(4, 2)),
            (ClaimStatus.CLOSED, at(4, 10)),
        )

        assert state.status == ClaimStatus.CLOSED
        assert state.acknowledged_at == at(3, 2)
        assert state.investigation_completed_at == at(3, 20)
        assert state.settled_at == at(4, 1)
        assert state.closed_at == at(4, 10)
        assert state.denied_at is None
        assert state.is_terminal
        assert len(state.history) == 6

    def test_skipping_a_step_rejected(self):
        with pytest.raises(IllegalTransition) as exc_info:
            ClaimStateMachine().transition(create_state(), ClaimStatus.APPROVED)
        assert exc_info.value.code == "CE_ILLEGAL_TRANSITION"
        assert exc_info.value.claim_id == "CLM-LC-001"

    def test_terminal_states_have_no_exits(self):
        for status in ClaimStatus:
            assert not can_transition(ClaimStatus.CLOSED, status)
            assert not can_transition(ClaimStatus.DENIED, status)

    def test_deny_from_any_open_state(self):
        state = ClaimStateMachine().transition(create_state(status=ClaimStatus.EVALUATION), ClaimStatus.DENIED,
                                               at=at(3, 9))
        assert state.denied_at == at(3, 9)

    def test_acknowledgment_stamped_once(self):
        machine = ClaimStateMachine()
        state = walk(
            machine, create_state(),
            (ClaimStatus.INVESTIGATION, at(3, 2)),
            (ClaimStatus.SUSPENDED, at(3, 5)),
            (ClaimStatus.INVESTIGATION, at(3, 15)),
        )
        assert state.status == ClaimStatus.INVESTIGATION
        assert state.acknowledged_at == at(3, 2)

    def test_suspended_cannot_resume_elsewhere(self):
        with pytest.raises(IllegalTransition):
            ClaimStateMachine().transition(create_state(status=ClaimStatus.SUSPENDED), ClaimStatus.EVALUATION)

    def test_original_state_unchanged(self):
        state = create_state()
        ClaimStateMachine().transition(state, ClaimStatus.INVESTIGATION)
        assert state.status == ClaimStatus.INTAKE
        assert state.history == ()


class TestAuditTrail:

    def test_transition_emits_event(self):
        sink = InMemoryAuditSink()
        machine = ClaimStateMachine(audit_sink=sink)

        machine.transition(create_state(), ClaimStatus.INVESTIGATION, at=at(3, 2), actor="adjuster-7",
                           reason="Assigned")

        event = sink.events[0]
        assert event.action == "CLAIM_STATUS_CHANGED"
        assert event.entity_id == "CLM-LC-001"
        assert event.before == {"status": "INTAKE"}
        assert event.after == {"status": "INVESTIGATION"}
        assert event.actor == "adjuster-7"
        assert event.timestamp == at(3, 2)
        assert event.details == {"reason": "Assigned"}

    def test_history_records_actor(self):
        state = ClaimStateMachine().transition(create_state(), ClaimStatus.INVESTIGATION, actor="system")
        record = state.history[0]
        assert (record.from_status, record.to_status, record.actor) == (
            ClaimStatus.INTAKE, ClaimStatus.INVESTIGATION, "system",
        )

    def test_illegal_transition_emits_nothing(self):
        sink = InMemoryAuditSink()
        with pytest.raises(IllegalTransition):
            ClaimStateMachine(audit_sink=sink).transition(create_state(), ClaimStatus.CLOSED)
        assert sink.events == []


# ============================================================================
# Deadlines
# ============================================================================


def by_kind(deadlines):
    return {d.kind: d for d in deadlines}


class TestDeadlines:

    def test_pending(self):
        deadlines = by_kind(compute_deadlines(create_state(), CA_RULE, at(3, 10)))

        assert deadlines[DeadlineKind.ACKNOWLEDGMENT].due_date == date(2024, 3, 16)
        assert deadlines[DeadlineKind.INVESTIGATION].due_date == date(2024, 4, 10)
        assert all(d.status == DeadlineStatus.PENDING for d in deadlines.values())
        assert DeadlineKind.PAYMENT not in deadlines

    def test_overdue(self):
        state = create_state()
        deadlines = by_kind(compute_deadlines(state, CA_RULE, at(3, 20)))

        assert deadlines[DeadlineKind.ACKNOWLEDGMENT].status == DeadlineStatus.OVERDUE
        assert deadlines[DeadlineKind.INVESTIGATION].status == DeadlineStatus.PENDING
        assert is_overdue(state, CA_RULE, at(3, 20))

    def test_due_date_itself_not_overdue(self):
        deadlines = by_kind(compute_deadlines(create_state(), CA_RULE, at(3, 16)))
        assert deadlines[DeadlineKind.ACKNOWLEDGMENT].status == DeadlineStatus.PENDING

    def test_met(self):
        state = ClaimStateMachine().transition(create_state(), ClaimStatus.INVESTIGATION, at=at(3, 5))

        deadlines = by_kind(compute_deadlines(state, CA_RULE, at(3, 20)))

        assert deadlines[DeadlineKind.ACKNOWLEDGMENT].status == DeadlineStatus.MET
        assert deadlines[DeadlineKind.ACKNOWLEDGMENT].met_at == at(3, 5)
        assert not is_overdue(state, CA_RULE, at(3, 20))

    def test_stopped_on_denial(self):
        state = ClaimStateMachine().transition(create_state(), ClaimStatus.DENIED, at=at(3, 3))

        deadlines = by_kind(compute_deadlines(state, CA_RULE, at(5, 1)))

        assert deadlines[DeadlineKind.ACKNOWLEDGMENT].status == DeadlineStatus.STOPPED
        assert deadlines[DeadlineKind.INVESTIGATION].status == DeadlineStatus.STOPPED
        assert not is_overdue(state, CA_RULE, at(5, 1))

    def test_payment_deadline_after_settlement(self):
        state = walk(
            ClaimStateMachine(), create_state(),
            (ClaimStatus.INVESTIGATION, at(3, 2)),
            (ClaimStatus.EVALUATION, at(3, 20)),
            (ClaimStatus.PENDING_APPROVAL, at(3, 25)),
            (ClaimStatus.APPROVED, at(4, 1)),
        )

        deadlines = by_kind(compute_deadlines(state, CA_RULE, at(5, 5)))

        payment = deadlines[DeadlineKind.PAYMENT]
        assert payment.due_date == date(2024, 5, 1)
        assert payment.status == DeadlineStatus.OVERDUE
        assert deadlines[DeadlineKind.INVESTIGATION].status == DeadlineStatus.MET

    def test_business_day_rule(self):
        rule = CA_RULE.model_copy(update={"business_days": True, "acknowledgment_days": 5})
        deadlines = by_kind(compute_deadlines(create_state(), rule, at(3, 2)))
        # 2024-03-01 is a Friday
        assert deadlines[DeadlineKind.ACKNOWLEDGMENT].due_date == date(2024, 3, 8)


# ============================================================================
# Requested Status
# ============================================================================


class TestRequestedStatus:

    def test_intake_moves_to_investigation(self):
        outcome = create_outcome(OverallRecommendation.PROCEED)
        assert requested_status(ClaimStatus.INTAKE, None, outcome) == ClaimStatus.INVESTIGATION

    def test_investigation_holds(self):
        outcome = create_outcome(OverallRecommendation.INVESTIGATE)
        assert requested_status(ClaimStatus.INVESTIGATION, None, outcome) is None

    def test_evaluation_to_pending_approval(self):
        outcome = create_outcome(OverallRecommendation.REFER, review=True)
        assert requested_status(ClaimStatus.EVALUATION, None, outcome) == ClaimStatus.PENDING_APPROVAL

    def test_pending_approval_needs_clean_proceed(self):
        assert requested_status(
            ClaimStatus.PENDING_APPROVAL, None, create_outcome(OverallRecommendation.PROCEED),
        ) == ClaimStatus.APPROVED
        assert requested_status(
            ClaimStatus.PENDING_APPROVAL, None, create_outcome(OverallRecommendation.PROCEED, review=True),
        ) is None

    def test_deny(self):
        outcome = create_outcome(OverallRecommendation.DENY)
        assert requested_status(ClaimStatus.EVALUATION, None, outcome) == ClaimStatus.DENIED

    def test_siu_referral_wins_over_deny(self):
        claim = build_claim_snapshot({
            "claim_id": "CLM-LC-001", "as_of": "2024-03-02T00:00:00+00:00", "loss_date": "2024-03-01",
        })
        risk = compose_risk(claim, PatternScore(score=90, raw_score=90))
        outcome = create_outcome(OverallRecommendation.DENY)

        assert requested_status(ClaimStatus.INVESTIGATION, risk, outcome) == ClaimStatus.SUSPENDED

    def test_terminal_and_missing_inputs(self):
        outcome = create_outcome(OverallRecommendation.DENY)
        assert requested_status(ClaimStatus.CLOSED, None, outcome) is None
        assert requested_status(ClaimStatus.INTAKE, None, None) is None

    def test_already_suspended(self):
        claim = build_claim_snapshot({
            "claim_id": "CLM-LC-001", "as_of": "2024-03-02T00:00:00+00:00", "loss_date": "2024-03-01",
        })
        risk = compose_risk(claim, PatternScore(score=60, raw_score=60))
        assert requested_status(ClaimStatus.SUSPENDED, risk, None) is None
