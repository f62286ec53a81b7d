"""
Claim snapshot schema for the decision engine.

Defines immutable Pydantic models assembled once per decision cycle.
Every scorer takes a ClaimSnapshot; nothing downstream mutates it.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, model_validator

from .exceptions import InvalidSnapshot

SNAPSHOT_SCHEMA_VERSION = "1.0"


# ============================================================================
# Enums
# ============================================================================


class LossType(str, Enum):
    """Type of loss reported on the claim."""
    COLLISION = "COLLISION"
    COMPREHENSIVE = "COMPREHENSIVE"
    THEFT = "THEFT"
    VANDALISM = "VANDALISM"
    WEATHER = "WEATHER"
    FIRE = "FIRE"
    ANIMAL = "ANIMAL"
    HIT_AND_RUN = "HIT_AND_RUN"
    GLASS = "GLASS"
    BODILY_INJURY = "BODILY_INJURY"
    MECHANICAL = "MECHANICAL"
    OTHER = "OTHER"


class CoverageType(str, Enum):
    """Policy coverage provisions."""
    COLLISION = "COLLISION"
    COMPREHENSIVE = "COMPREHENSIVE"
    OTHER_THAN_COLLISION = "OTHER_THAN_COLLISION"
    THEFT = "THEFT"
    UNINSURED_MOTORIST_PD = "UNINSURED_MOTORIST_PD"
    GLASS = "GLASS"
    BODILY_INJURY = "BODILY_INJURY"
    PIP = "PIP"
    MEDPAY = "MEDPAY"
    LIABILITY = "LIABILITY"
    RENTAL = "RENTAL"
    TOWING = "TOWING"


class CoverageStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    CANCELLED = "CANCELLED"
    PENDING = "PENDING"


class PolicyKind(str, Enum):
    PERSONAL = "PERSONAL"
    COMMERCIAL = "COMMERCIAL"


class TitleType(str, Enum):
    CLEAN = "CLEAN"
    SALVAGE = "SALVAGE"
    REBUILT = "REBUILT"
    UNKNOWN = "UNKNOWN"


class LicenseStatus(str, Enum):
    VALID = "VALID"
    EXPIRED = "EXPIRED"
    SUSPENDED = "SUSPENDED"
    REVOKED = "REVOKED"
    UNKNOWN = "UNKNOWN"


class BillComplexity(str, Enum):
    """Documented medical decision-making complexity."""
    LOW = "LOW"
    MODERATE = "MODERATE"
    HIGH = "HIGH"


class ClaimStatus(str, Enum):
    """Regulated claim lifecycle states."""
    INTAKE = "INTAKE"
    INVESTIGATION = "INVESTIGATION"
    EVALUATION = "EVALUATION"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    PAYMENT_PROCESSING = "PAYMENT_PROCESSING"
    CLOSED = "CLOSED"
    DENIED = "DENIED"
    SUSPENDED = "SUSPENDED"


class RiskTier(str, Enum):
    """Ordered fraud risk tiers."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]


_TIER_RANK = {RiskTier.LOW: 0, RiskTier.MEDIUM: 1, RiskTier.HIGH: 2, RiskTier.CRITICAL: 3}


class Severity(str, Enum):
    """Declared severity of an escalation trigger."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class TriggerType(str, Enum):
    """Closed set of escalation trigger types."""
    HIGH_VALUE_CLAIM = "HIGH_VALUE_CLAIM"
    FRAUD_SUSPECTED = "FRAUD_SUSPECTED"
    COVERAGE_DISPUTE = "COVERAGE_DISPUTE"
    TOTAL_LOSS = "TOTAL_LOSS"
    COMPLIANCE_ISSUE = "COMPLIANCE_ISSUE"
    INJURY_CLAIM = "INJURY_CLAIM"
    QA_FAILURE = "QA_FAILURE"
    GENERIC = "GENERIC"


class RoutingDecision(str, Enum):
    """Where the claim should go next."""
    AUTO_APPROVE = "AUTO_APPROVE"          # Straight-through processing
    STANDARD_QUEUE = "STANDARD_QUEUE"      # Normal adjuster queue
    HUMAN_REVIEW = "HUMAN_REVIEW"          # Needs a human decision
    SIU_ESCALATION = "SIU_ESCALATION"      # Special Investigation Unit (fraud)


class IndicatorSource(str, Enum):
    """Which sub-check produced a fraud indicator."""
    TIMING = "TIMING"
    LOCATION = "LOCATION"
    VEHICLE = "VEHICLE"
    REPEAT_CLAIMANT = "REPEAT_CLAIMANT"
    INJURY_MISMATCH = "INJURY_MISMATCH"
    PROVIDER = "PROVIDER"
    BILLING = "BILLING"
    TREATMENT = "TREATMENT"


# ============================================================================
# Snapshot Models
# ============================================================================


class _Snapshot(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class PolicyCoverage(_Snapshot):
    """One coverage provision on a policy."""
    coverage_type: CoverageType
    status: CoverageStatus = CoverageStatus.ACTIVE
    limit: Optional[float] = Field(default=None, ge=0, description="Per-occurrence limit")
    aggregate_limit: Optional[float] = Field(default=None, ge=0)
    deductible: float = Field(default=0.0, ge=0)
    vehicle_vin: Optional[str] = Field(default=None, description="Set when the coverage is scoped to one vehicle")
    named_driver_only: bool = False
    named_drivers: tuple[str, ...] = ()
    pending_endorsement: bool = False


class PolicySnapshot(_Snapshot):
    """Policy terms as of the loss date."""
    policy_number: str
    effective_date: date
    expiration_date: Optional[date] = None
    policy_kind: PolicyKind = PolicyKind.PERSONAL
    coverages: tuple[PolicyCoverage, ...] = ()
    excluded_drivers: tuple[str, ...] = ()
    business_use_endorsement: bool = False
    rideshare_endorsement: bool = False
    delivery_endorsement: bool = False
    dui_exclusion: bool = False
    holder_state: Optional[str] = Field(default=None, description="Policyholder's home state code")

    def is_in_force(self, on: date) -> bool:
        if on < self.effective_date:
            return False
        return self.expiration_date is None or on <= self.expiration_date


class VehicleSnapshot(_Snapshot):
    vin: Optional[str] = None
    year: Optional[int] = None
    make: Optional[str] = None
    model: Optional[str] = None
    title_type: TitleType = TitleType.CLEAN
    damage_description: Optional[str] = None
    actual_cash_value: Optional[float] = Field(default=None, ge=0)


class DriverSnapshot(_Snapshot):
    name: Optional[str] = None
    license_status: LicenseStatus = LicenseStatus.VALID


class ParticipantSnapshot(_Snapshot):
    """A person involved in the loss."""
    name: str
    role: str = "CLAIMANT"
    injury_description: Optional[str] = None
    treatment_providers: tuple[str, ...] = ()
    treatment_days: Optional[int] = Field(default=None, ge=0)
    physical_therapy_sessions: Optional[int] = Field(default=None, ge=0)

    @property
    def is_injured(self) -> bool:
        return bool(self.injury_description and self.injury_description.strip())


class DocumentSnapshot(_Snapshot):
    """Uploaded document plus any prior AI/OCR analysis result."""
    document_id: str
    document_type: str
    analysis_score: Optional[float] = Field(default=None, ge=0, le=100)
    analysis_summary: Optional[str] = None


class MedicalBillSnapshot(_Snapshot):
    bill_id: str
    service_date: date
    procedure_code: Optional[str] = Field(default=None, description="CPT code")
    amount: float = Field(ge=0)
    description: str = ""
    complexity: Optional[BillComplexity] = None
    provider_name: Optional[str] = None
    facility_name: Optional[str] = None
    provider_state: Optional[str] = None


class PriorClaimSnapshot(_Snapshot):
    """A historical claim by the same claimant."""
    claim_id: str
    reported_date: date
    status: ClaimStatus = ClaimStatus.CLOSED
    flagged_fraud: bool = False


class ClaimSnapshot(_Snapshot):
    """
    Immutable read-only view of a claim, assembled per decision cycle.

    `as_of` is the evaluation timestamp: every "days since" computation
    uses it instead of the wall clock so scoring is reproducible.
    """
    schema_version: str = SNAPSHOT_SCHEMA_VERSION
    claim_id: str
    claim_number: Optional[str] = None
    as_of: datetime
    loss_type: LossType = LossType.COLLISION
    loss_date: date
    reported_date: Optional[date] = None
    loss_location: Optional[str] = None
    loss_description: Optional[str] = None
    estimated_amount: float = Field(
        default=0.0,
        ge=0,
        validation_alias=AliasChoices("estimated_amount", "estimated_loss"),
        description="Canonical claimed amount",
    )
    approved_amount: Optional[float] = Field(default=None, ge=0)
    jurisdiction: Optional[str] = Field(default=None, min_length=2, max_length=2)
    status: ClaimStatus = ClaimStatus.INTAKE

    policy: Optional[PolicySnapshot] = None
    vehicle: Optional[VehicleSnapshot] = None
    driver: Optional[DriverSnapshot] = None
    participants: tuple[ParticipantSnapshot, ...] = ()
    documents: tuple[DocumentSnapshot, ...] = ()
    medical_bills: tuple[MedicalBillSnapshot, ...] = ()
    prior_claims: tuple[PriorClaimSnapshot, ...] = ()

    # Loss-event facts
    suspected_intentional: bool = False
    business_use_at_time_of_loss: bool = False
    rideshare_activity: bool = False
    delivery_activity: bool = False
    involved_in_racing: bool = False
    dui_involved: bool = False
    police_report_number: Optional[str] = None
    glass_repair_only: bool = False
    subrogation_complete: bool = False
    subrogation_recovery: float = Field(default=0.0, ge=0)
    in_litigation: bool = False

    @model_validator(mode="after")
    def check_dates(self) -> "ClaimSnapshot":
        if self.loss_date > self.as_of.date():
            raise ValueError("loss_date is after the snapshot as_of timestamp")
        if self.reported_date is not None and self.reported_date < self.loss_date:
            raise ValueError("reported_date precedes loss_date")
        return self

    @property
    def report_date(self) -> date:
        """Date the claim was reported; falls back to the loss date."""
        return self.reported_date or self.loss_date

    @property
    def injured_participants(self) -> tuple[ParticipantSnapshot, ...]:
        return tuple(p for p in self.participants if p.is_injured)


# ============================================================================
# Shared Engine Records
# ============================================================================


class FraudIndicator(_Snapshot):
    """One detected fraud signal. Indicators are only ever appended within a run."""
    source: IndicatorSource
    description: str
    weight: float = Field(ge=0, description="Score contribution before caps")


class EscalationTrigger(_Snapshot):
    """An input fact requiring an escalation decision."""
    type: TriggerType
    severity: Severity = Severity.MEDIUM
    reason: str = ""
    detected_at: Optional[datetime] = None


def build_claim_snapshot(data: dict[str, Any]) -> ClaimSnapshot:
    """
    Validate raw claim-store data into a ClaimSnapshot.

    Raises:
        InvalidSnapshot: if the data is structurally malformed
    """
    try:
        return ClaimSnapshot.model_validate(data)
    except ValidationError as e:
        raise InvalidSnapshot(
            message="Claim snapshot failed validation",
            details={"errors": e.errors(include_url=False, include_context=False, include_input=False)},
            claim_id=data.get("claim_id") if isinstance(data, dict) else None,
        ) from e
