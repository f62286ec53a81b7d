"""
Claim lifecycle state machine.

Owns claim status: validates transitions, stamps lifecycle timestamps,
and derives statutory deadlines from the jurisdiction rule. Deadlines are
never enforced by blocking transitions; overdue is a queryable fact.
"""

import logging
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from .audit import AuditEvent, AuditSink
from .escalation import EscalationOutcome, OverallRecommendation
from .exceptions import IllegalTransition
from .jurisdiction import JurisdictionRule, add_deadline_days
from .risk import RiskScore
from .schema import ClaimStatus

logger = logging.getLogger(__name__)


# ============================================================================
# Transition Table
# ============================================================================

TERMINAL_STATES = frozenset({ClaimStatus.CLOSED, ClaimStatus.DENIED})

_SIDE_BRANCHES = {ClaimStatus.DENIED, ClaimStatus.SUSPENDED}

ALLOWED_TRANSITIONS: dict[ClaimStatus, frozenset[ClaimStatus]] = {
    ClaimStatus.INTAKE: frozenset({ClaimStatus.INVESTIGATION} | _SIDE_BRANCHES),
    ClaimStatus.INVESTIGATION: frozenset({ClaimStatus.EVALUATION} | _SIDE_BRANCHES),
    ClaimStatus.EVALUATION: frozenset({ClaimStatus.PENDING_APPROVAL} | _SIDE_BRANCHES),
    ClaimStatus.PENDING_APPROVAL: frozenset({ClaimStatus.APPROVED} | _SIDE_BRANCHES),
    ClaimStatus.APPROVED: frozenset({ClaimStatus.PAYMENT_PROCESSING} | _SIDE_BRANCHES),
    ClaimStatus.PAYMENT_PROCESSING: frozenset({ClaimStatus.CLOSED} | _SIDE_BRANCHES),
    # Re-entry to INVESTIGATION on SIU clearance
    ClaimStatus.SUSPENDED: frozenset({ClaimStatus.INVESTIGATION, ClaimStatus.DENIED}),
    ClaimStatus.CLOSED: frozenset(),
    ClaimStatus.DENIED: frozenset(),
}


def can_transition(from_status: ClaimStatus, to_status: ClaimStatus) -> bool:
    return to_status in ALLOWED_TRANSITIONS[from_status]


# ============================================================================
# State Models
# ============================================================================


class TransitionRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    from_status: ClaimStatus
    to_status: ClaimStatus
    at: datetime
    actor: str
    reason: str = ""


class LifecycleState(BaseModel):
    """Immutable lifecycle record; each transition returns a new one."""
    model_config = ConfigDict(frozen=True)

    claim_id: str
    status: ClaimStatus = ClaimStatus.INTAKE
    reported_date: date
    acknowledged_at: Optional[datetime] = None
    investigation_completed_at: Optional[datetime] = None
    settled_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    denied_at: Optional[datetime] = None
    history: tuple[TransitionRecord, ...] = ()

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES


class DeadlineKind(str, Enum):
    ACKNOWLEDGMENT = "ACKNOWLEDGMENT"
    INVESTIGATION = "INVESTIGATION"
    PAYMENT = "PAYMENT"


class DeadlineStatus(str, Enum):
    PENDING = "PENDING"
    MET = "MET"
    OVERDUE = "OVERDUE"
    STOPPED = "STOPPED"   # Claim reached a terminal state before the obligation was met


class Deadline(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: DeadlineKind
    due_date: date
    status: DeadlineStatus
    met_at: Optional[datetime] = None

    @property
    def is_overdue(self) -> bool:
        return self.status == DeadlineStatus.OVERDUE


# ============================================================================
# Deadlines
# ============================================================================


def _deadline(
    kind: DeadlineKind,
    anchor: date,
    days: int,
    met_at: Optional[datetime],
    state: LifecycleState,
    rule: JurisdictionRule,
    as_of: date,
) -> Deadline:
    due = add_deadline_days(anchor, days, rule.business_days)
    if met_at is not None:
        status = DeadlineStatus.MET
    elif state.is_terminal:
        status = DeadlineStatus.STOPPED
    elif as_of > due:
        status = DeadlineStatus.OVERDUE
    else:
        status = DeadlineStatus.PENDING
    return Deadline(kind=kind, due_date=due, status=status, met_at=met_at)


def compute_deadlines(state: LifecycleState, rule: JurisdictionRule, as_of: datetime) -> list[Deadline]:
    """
    Statutory obligations for a claim as of a point in time.

    Acknowledgment and investigation run from the report date; payment
    runs from approval and is only present once the claim is settled.
    """
    on = as_of.date()
    deadlines = [
        _deadline(DeadlineKind.ACKNOWLEDGMENT, state.reported_date, rule.acknowledgment_days,
                  state.acknowledged_at, state, rule, on),
        _deadline(DeadlineKind.INVESTIGATION, state.reported_date, rule.investigation_days,
                  state.investigation_completed_at, state, rule, on),
    ]
    if state.settled_at is not None:
        deadlines.append(_deadline(
            DeadlineKind.PAYMENT, state.settled_at.date(), rule.payment_days,
            state.closed_at, state, rule, on,
        ))
    return deadlines


def is_overdue(state: LifecycleState, rule: JurisdictionRule, as_of: datetime) -> bool:
    """True when any running deadline has passed unmet."""
    return any(d.is_overdue for d in compute_deadlines(state, rule, as_of))


# ============================================================================
# State Machine
# ============================================================================


class ClaimStateMachine:
    """
    Applies status transitions.

    Usage:
        machine = ClaimStateMachine(audit_sink=sink)
        state = LifecycleState(claim_id="CLM-1", reported_date=date.today())
        state = machine.transition(state, ClaimStatus.INVESTIGATION, actor="adjuster-7")
    """

    def __init__(self, audit_sink: Optional[AuditSink] = None):
        self.audit_sink = audit_sink

    def transition(
        self,
        state: LifecycleState,
        to_status: ClaimStatus,
        at: Optional[datetime] = None,
        actor: str = "claim-engine",
        reason: str = "",
    ) -> LifecycleState:
        """
        Move a claim to a new status.

        Raises:
            IllegalTransition: if the move is not allowed from the current status
        """
        from_status = state.status
        if not can_transition(from_status, to_status):
            raise IllegalTransition(
                message=f"Cannot move claim from {from_status.value} to {to_status.value}",
                details={"from_status": from_status.value, "to_status": to_status.value},
                claim_id=state.claim_id,
            )

        at = at or datetime.now(timezone.utc)
        updates: dict = {"status": to_status}
        if to_status == ClaimStatus.INVESTIGATION and state.acknowledged_at is None:
            updates["acknowledged_at"] = at
        elif to_status == ClaimStatus.EVALUATION and state.investigation_completed_at is None:
            updates["investigation_completed_at"] = at
        elif to_status == ClaimStatus.APPROVED:
            updates["settled_at"] = at
        elif to_status == ClaimStatus.CLOSED:
            updates["closed_at"] = at
        elif to_status == ClaimStatus.DENIED:
            updates["denied_at"] = at

        record = TransitionRecord(from_status=from_status, to_status=to_status, at=at, actor=actor, reason=reason)
        updates["history"] = state.history + (record,)
        new_state = state.model_copy(update=updates)

        logger.info(
            f"Claim {state.claim_id}: {from_status.value} -> {to_status.value} by {actor}"
            + (f" ({reason})" if reason else "")
        )
        if self.audit_sink is not None:
            self.audit_sink.emit(AuditEvent(
                action="CLAIM_STATUS_CHANGED",
                entity_type="claim",
                entity_id=state.claim_id,
                before={"status": from_status.value},
                after={"status": to_status.value},
                actor=actor,
                timestamp=at,
                details={"reason": reason} if reason else {},
            ))
        return new_state


def requested_status(
    current: ClaimStatus,
    risk: Optional[RiskScore],
    outcome: Optional[EscalationOutcome],
) -> Optional[ClaimStatus]:
    """
    Status transition implied by a decision cycle, or None for no change.

    An SIU referral always requests SUSPENDED; otherwise the overall
    recommendation moves the claim one step along the main path.
    """
    if current in TERMINAL_STATES:
        return None
    if risk is not None and risk.requested_status is not None:
        target = risk.requested_status
    elif outcome is None:
        return None
    elif outcome.recommendation == OverallRecommendation.DENY:
        target = ClaimStatus.DENIED
    elif current == ClaimStatus.INTAKE:
        target = ClaimStatus.INVESTIGATION
    elif current == ClaimStatus.EVALUATION and outcome.recommendation in (
        OverallRecommendation.REFER, OverallRecommendation.PROCEED,
    ):
        target = ClaimStatus.PENDING_APPROVAL
    elif (
        current == ClaimStatus.PENDING_APPROVAL
        and outcome.recommendation == OverallRecommendation.PROCEED
        and not outcome.requires_human_review
    ):
        target = ClaimStatus.APPROVED
    else:
        return None
    return target if can_transition(current, target) else None
