"""
Jurisdiction reference data.

Per-state total-loss thresholds and statutory acknowledgment, investigation
and payment day limits, versioned by effective date.
"""

import logging
from datetime import date, timedelta
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import MissingReferenceData

logger = logging.getLogger(__name__)

DEFAULT_JURISDICTION = "DEFAULT"
BASELINE_EFFECTIVE_DATE = date(2020, 1, 1)


class JurisdictionRule(BaseModel):
    """Read-only statutory constants for one state."""
    model_config = ConfigDict(frozen=True)

    state_code: str
    total_loss_threshold: float = Field(gt=0, le=1, description="Repair cost / ACV ratio that makes a total loss")
    acknowledgment_days: int = Field(default=15, gt=0)
    investigation_days: int = Field(default=30, gt=0)
    payment_days: int = Field(default=30, gt=0)
    effective_date: date = BASELINE_EFFECTIVE_DATE
    business_days: bool = Field(default=False, description="Deadlines count business days instead of calendar days")


# ============================================================================
# Built-in Tables
# ============================================================================

TOTAL_LOSS_THRESHOLDS: dict[str, float] = {
    "AL": 0.75, "AK": 1.00, "AZ": 1.00, "AR": 0.70, "CA": 1.00,
    "CO": 1.00, "CT": 1.00, "DE": 1.00, "FL": 0.80, "GA": 1.00,
    "HI": 1.00, "ID": 1.00, "IL": 1.00, "IN": 0.70, "IA": 0.70,
    "KS": 1.00, "KY": 0.75, "LA": 0.75, "ME": 1.00, "MD": 0.75,
    "MA": 1.00, "MI": 0.75, "MN": 0.70, "MS": 1.00, "MO": 0.80,
    "MT": 1.00, "NE": 0.75, "NV": 0.65, "NH": 0.75, "NJ": 1.00,
    "NM": 1.00, "NY": 0.75, "NC": 0.75, "ND": 1.00, "OH": 1.00,
    "OK": 0.60, "OR": 0.80, "PA": 1.00, "RI": 1.00, "SC": 0.75,
    "SD": 1.00, "TN": 0.75, "TX": 1.00, "UT": 1.00, "VT": 1.00,
    "VA": 0.75, "WA": 1.00, "WV": 0.75, "WI": 0.70, "WY": 0.75,
}

# state -> (acknowledgment, investigation, payment) days
NOTIFICATION_DEADLINES: dict[str, tuple[int, int, int]] = {
    DEFAULT_JURISDICTION: (15, 30, 30),
    "CA": (15, 40, 30),
    "FL": (14, 90, 20),
    "NY": (15, 30, 30),
    "TX": (15, 15, 5),
    "IL": (15, 45, 30),
}

DEFAULT_TOTAL_LOSS_THRESHOLD = 0.75


def builtin_rules() -> list[JurisdictionRule]:
    """Rules for every state plus a DEFAULT fallback."""
    ack, inv, pay = NOTIFICATION_DEADLINES[DEFAULT_JURISDICTION]
    rules = [
        JurisdictionRule(
            state_code=DEFAULT_JURISDICTION,
            total_loss_threshold=DEFAULT_TOTAL_LOSS_THRESHOLD,
            acknowledgment_days=ack,
            investigation_days=inv,
            payment_days=pay,
        )
    ]
    for state, threshold in TOTAL_LOSS_THRESHOLDS.items():
        ack, inv, pay = NOTIFICATION_DEADLINES.get(state, NOTIFICATION_DEADLINES[DEFAULT_JURISDICTION])
        rules.append(JurisdictionRule(
            state_code=state,
            total_loss_threshold=threshold,
            acknowledgment_days=ack,
            investigation_days=inv,
            payment_days=pay,
        ))
    return rules


# ============================================================================
# Rule Book
# ============================================================================


class JurisdictionRuleBook:
    """
    Versioned lookup of jurisdiction rules.

    Each state may carry several rule versions; the one in force on a date
    is the latest whose effective_date is not after that date.
    """

    def __init__(self, rules: Iterable[JurisdictionRule]):
        self._rules: dict[str, list[JurisdictionRule]] = {}
        for rule in rules:
            self._rules.setdefault(rule.state_code.upper(), []).append(rule)
        for versions in self._rules.values():
            versions.sort(key=lambda r: r.effective_date)

    @property
    def states(self) -> list[str]:
        return sorted(self._rules)

    def lookup(self, state_code: str, as_of: date) -> JurisdictionRule:
        """
        Get the rule for a state on a date.

        Raises:
            MissingReferenceData: if no version of the state's rule is in force
        """
        versions = self._rules.get(state_code.upper(), [])
        in_force = [r for r in versions if r.effective_date <= as_of]
        if not in_force:
            raise MissingReferenceData(
                message=f"No jurisdiction rule for {state_code} in force on {as_of.isoformat()}",
                details={"state_code": state_code, "as_of": as_of.isoformat()},
            )
        return in_force[-1]

    def resolve(self, state_code: Optional[str], as_of: date) -> tuple[JurisdictionRule, list[str]]:
        """
        Like lookup(), but degrades to the DEFAULT rule.

        Returns:
            Tuple of (rule, warnings)
        """
        if state_code:
            try:
                return self.lookup(state_code, as_of), []
            except MissingReferenceData as e:
                logger.warning(f"{e}; falling back to {DEFAULT_JURISDICTION}")
                warning = f"Jurisdiction rule for {state_code} unavailable - default deadlines applied"
        else:
            warning = "Claim has no jurisdiction - default deadlines applied"
        return self.lookup(DEFAULT_JURISDICTION, as_of), [warning]


def add_deadline_days(start, days: int, business_days: bool = False):
    """
    Offset a date or datetime by a number of days.

    Calendar days unless business_days is set, in which case weekends
    are skipped.
    """
    if not business_days:
        return start + timedelta(days=days)
    current = start
    added = 0
    while added < days:
        current += timedelta(days=1)
        if current.weekday() < 5:  # Saturday = 5, Sunday = 6
            added += 1
    return current


def is_total_loss(repair_cost: float, actual_cash_value: Optional[float], rule: JurisdictionRule) -> bool:
    """True when repair cost reaches the state's share of actual cash value."""
    if not actual_cash_value:
        return False
    return repair_cost / actual_cash_value >= rule.total_loss_threshold


_default_book: Optional[JurisdictionRuleBook] = None


def get_rule_book() -> JurisdictionRuleBook:
    """Get or create the built-in rule book singleton."""
    global _default_book
    if _default_book is None:
        _default_book = JurisdictionRuleBook(builtin_rules())
    return _default_book
