"""
Coverage analysis.

Determines which policy coverages respond to a claim's loss type, evaluates
the fixed exclusion list, records limits and deductibles, and derives
coverage gaps and recommendations from the verdict set.
"""

import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .schema import (
    ClaimSnapshot,
    CoverageStatus,
    CoverageType,
    LicenseStatus,
    LossType,
    PolicyCoverage,
    PolicyKind,
    PolicySnapshot,
)

logger = logging.getLogger(__name__)

NOT_ON_POLICY = "not on policy"


# ============================================================================
# Result Models
# ============================================================================


class CoverageVerdict(BaseModel):
    """Applicability of one coverage type to the claim."""
    model_config = ConfigDict(frozen=True)

    coverage_type: CoverageType
    name: str
    applies: bool
    reason: str
    limit: Optional[float] = None
    deductible: Optional[float] = None


class ExclusionRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    description: str
    applies: bool
    details: str = ""


class DeductibleDetermination(BaseModel):
    model_config = ConfigDict(frozen=True)

    coverage_type: CoverageType
    amount: float
    waived: bool = False
    waiver_reason: Optional[str] = None


class LimitInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    coverage_type: CoverageType
    per_occurrence: float
    aggregate: Optional[float] = None


class CoverageResult(BaseModel):
    """Outcome of coverage analysis for one claim snapshot."""
    model_config = ConfigDict(frozen=True)

    claim_id: str
    policy_number: Optional[str] = None
    verdicts: tuple[CoverageVerdict, ...] = Field(description="One verdict per candidate coverage type")
    exclusions: tuple[ExclusionRecord, ...] = ()
    deductibles: tuple[DeductibleDetermination, ...] = ()
    limits: tuple[LimitInfo, ...] = ()
    warnings: tuple[str, ...] = ()
    recommendations: tuple[str, ...] = ()

    @property
    def coverage_applies(self) -> bool:
        return any(v.applies for v in self.verdicts)

    @property
    def applicable_exclusions(self) -> tuple[ExclusionRecord, ...]:
        return tuple(e for e in self.exclusions if e.applies)

    def verdict_for(self, coverage_type: CoverageType) -> Optional[CoverageVerdict]:
        for verdict in self.verdicts:
            if verdict.coverage_type == coverage_type:
                return verdict
        return None

    def to_dict(self) -> dict:
        data = self.model_dump(mode="json")
        data["coverage_applies"] = self.coverage_applies
        return data


# ============================================================================
# Lookup Tables
# ============================================================================

LOSS_TYPE_TO_COVERAGE: dict[LossType, tuple[CoverageType, ...]] = {
    LossType.COLLISION: (CoverageType.COLLISION,),
    LossType.COMPREHENSIVE: (CoverageType.COMPREHENSIVE, CoverageType.OTHER_THAN_COLLISION),
    LossType.THEFT: (CoverageType.COMPREHENSIVE, CoverageType.THEFT),
    LossType.VANDALISM: (CoverageType.COMPREHENSIVE,),
    LossType.WEATHER: (CoverageType.COMPREHENSIVE,),
    LossType.FIRE: (CoverageType.COMPREHENSIVE,),
    LossType.ANIMAL: (CoverageType.COMPREHENSIVE,),
    LossType.HIT_AND_RUN: (CoverageType.COLLISION, CoverageType.UNINSURED_MOTORIST_PD),
    LossType.GLASS: (CoverageType.COMPREHENSIVE, CoverageType.GLASS),
    LossType.BODILY_INJURY: (CoverageType.BODILY_INJURY, CoverageType.PIP, CoverageType.MEDPAY),
}
DEFAULT_CANDIDATES = (CoverageType.COLLISION,)

COVERAGE_NAMES: dict[CoverageType, str] = {
    CoverageType.COLLISION: "Collision Coverage",
    CoverageType.COMPREHENSIVE: "Comprehensive Coverage",
    CoverageType.OTHER_THAN_COLLISION: "Other Than Collision",
    CoverageType.THEFT: "Theft Coverage",
    CoverageType.GLASS: "Glass Coverage",
    CoverageType.BODILY_INJURY: "Bodily Injury Liability",
    CoverageType.PIP: "Personal Injury Protection",
    CoverageType.MEDPAY: "Medical Payments",
    CoverageType.UNINSURED_MOTORIST_PD: "Uninsured Motorist Property Damage",
    CoverageType.LIABILITY: "Liability Coverage",
    CoverageType.RENTAL: "Rental Reimbursement",
    CoverageType.TOWING: "Towing and Labor",
}


def candidate_coverages(loss_type: LossType) -> tuple[CoverageType, ...]:
    """Coverage types that could respond to a loss type."""
    return LOSS_TYPE_TO_COVERAGE.get(loss_type, DEFAULT_CANDIDATES)


# ============================================================================
# Applicability
# ============================================================================


def _check_applies(coverage: PolicyCoverage, claim: ClaimSnapshot) -> tuple[bool, str]:
    if coverage.status != CoverageStatus.ACTIVE:
        return False, "Coverage not active"

    if coverage.vehicle_vin and claim.vehicle and claim.vehicle.vin:
        if coverage.vehicle_vin != claim.vehicle.vin:
            return False, "Coverage applies to different vehicle"

    if coverage.named_driver_only and claim.driver:
        named = set(coverage.named_drivers)
        if (claim.driver.name or "") not in named:
            return False, "Driver not listed as named driver"

    if coverage.pending_endorsement:
        return False, "Coverage endorsement pending"

    return True, "Coverage verified and applicable"


# ============================================================================
# Exclusions
# ============================================================================


def _business_use(claim: ClaimSnapshot, policy: PolicySnapshot) -> bool:
    if policy.policy_kind == PolicyKind.COMMERCIAL:
        return False
    if claim.business_use_at_time_of_loss:
        return not policy.business_use_endorsement
    if claim.rideshare_activity:
        return not policy.rideshare_endorsement
    if claim.delivery_activity:
        return not policy.delivery_endorsement
    return False


def _excluded_driver(claim: ClaimSnapshot, policy: PolicySnapshot) -> bool:
    if claim.driver is None:
        return False
    if (claim.driver.name or "") in set(policy.excluded_drivers):
        return True
    return claim.driver.license_status in (LicenseStatus.SUSPENDED, LicenseStatus.REVOKED)


def evaluate_exclusions(claim: ClaimSnapshot, policy: PolicySnapshot) -> list[ExclusionRecord]:
    """Evaluate every exclusion in fixed order; none short-circuits another."""
    exclusions = [
        ExclusionRecord(
            code="EX-001",
            description="Intentional damage or acts",
            applies=claim.suspected_intentional,
            details="Coverage excluded for intentional damage",
        ),
        ExclusionRecord(
            code="EX-002",
            description="Business/commercial use",
            applies=_business_use(claim, policy),
            details="Personal auto policy excludes commercial use",
        ),
        ExclusionRecord(
            code="EX-003",
            description="Racing or speed contests",
            applies=claim.involved_in_racing,
            details="Damage during racing or speed contests excluded",
        ),
    ]
    if policy.dui_exclusion:
        exclusions.append(ExclusionRecord(
            code="EX-004",
            description="DUI/DWI incident",
            applies=claim.dui_involved,
            details="Policy excludes coverage for DUI incidents",
        ))
    exclusions.extend([
        ExclusionRecord(
            code="EX-005",
            description="Unlicensed or excluded driver",
            applies=_excluded_driver(claim, policy),
            details="Driver not authorized to operate vehicle",
        ),
        ExclusionRecord(
            code="EX-006",
            description="Mechanical breakdown or wear and tear",
            applies=claim.loss_type == LossType.MECHANICAL,
            details="Normal wear and mechanical breakdown excluded",
        ),
        ExclusionRecord(
            code="EX-007",
            description="War, terrorism, nuclear hazard",
            applies=False,
            details="Standard exclusion for catastrophic events",
        ),
    ])
    return exclusions


# ============================================================================
# Deductibles
# ============================================================================


def deductible_waiver_reason(claim: ClaimSnapshot, coverage: PolicyCoverage) -> Optional[str]:
    """Reason the deductible is waived, or None when it applies."""
    if claim.loss_type == LossType.HIT_AND_RUN and claim.police_report_number:
        return "Hit and run with police report filed"
    if coverage.coverage_type == CoverageType.GLASS and claim.glass_repair_only:
        return "Glass repair (not replacement)"
    if claim.subrogation_complete and claim.subrogation_recovery > 0:
        return "Subrogation recovery completed"
    return None


# ============================================================================
# Gaps and Recommendations
# ============================================================================


def _coverage_gaps(verdicts: list[CoverageVerdict]) -> list[str]:
    gaps = []
    for coverage_type, label in (
        (CoverageType.COLLISION, "Collision"),
        (CoverageType.COMPREHENSIVE, "Comprehensive"),
    ):
        expected = [v for v in verdicts if v.coverage_type == coverage_type]
        if expected and not any(v.applies for v in expected):
            gaps.append(f"{label} coverage not applicable - verify coverage status")
    return gaps


def _recommendations(verdicts: list[CoverageVerdict], exclusions: list[ExclusionRecord]) -> list[str]:
    recommendations = []
    if any(e.applies for e in exclusions):
        recommendations.append("Review applicable exclusions with coverage counsel")

    applying = [v for v in verdicts if v.applies]
    if not applying:
        recommendations.append("Consider issuing coverage denial letter")
        recommendations.append("Review for any overlooked coverage that may apply")
    elif len(applying) < len(verdicts):
        recommendations.append("Partial coverage applies - process under applicable coverage only")
    return recommendations


# ============================================================================
# Main API
# ============================================================================


def evaluate_coverage(claim: ClaimSnapshot, policy: Optional[PolicySnapshot] = None) -> CoverageResult:
    """
    Determine which coverages apply to a claim.

    Args:
        claim: The claim snapshot
        policy: Policy snapshot; defaults to the one linked on the claim

    Returns:
        CoverageResult. Missing policy data yields not-applicable verdicts
        plus a warning rather than an exception.
    """
    policy = policy or claim.policy
    candidates = candidate_coverages(claim.loss_type)

    if policy is None:
        logger.warning(f"Claim {claim.claim_id}: no policy data, coverage degraded to not applicable")
        verdicts = [
            CoverageVerdict(
                coverage_type=ct,
                name=COVERAGE_NAMES.get(ct, ct.value),
                applies=False,
                reason="Policy data unavailable",
            )
            for ct in candidates
        ]
        return CoverageResult(
            claim_id=claim.claim_id,
            verdicts=tuple(verdicts),
            warnings=("Policy data unavailable - coverage could not be verified",),
            recommendations=("Obtain policy declarations before coverage determination",),
        )

    warnings: list[str] = []
    if not policy.is_in_force(claim.loss_date):
        warnings.append("Policy may not have been active on date of loss")

    by_type = {c.coverage_type: c for c in policy.coverages}
    verdicts: list[CoverageVerdict] = []
    deductibles: list[DeductibleDetermination] = []
    limits: list[LimitInfo] = []

    for coverage_type in candidates:
        name = COVERAGE_NAMES.get(coverage_type, coverage_type.value)
        coverage = by_type.get(coverage_type)
        if coverage is None:
            verdicts.append(CoverageVerdict(
                coverage_type=coverage_type, name=name, applies=False, reason=NOT_ON_POLICY,
            ))
            continue

        applies, reason = _check_applies(coverage, claim)
        verdicts.append(CoverageVerdict(
            coverage_type=coverage_type,
            name=name,
            applies=applies,
            reason=reason,
            limit=coverage.limit,
            deductible=coverage.deductible,
        ))
        if not applies:
            continue
        if coverage.limit:
            limits.append(LimitInfo(
                coverage_type=coverage_type,
                per_occurrence=coverage.limit,
                aggregate=coverage.aggregate_limit,
            ))
        if coverage.deductible:
            waiver = deductible_waiver_reason(claim, coverage)
            deductibles.append(DeductibleDetermination(
                coverage_type=coverage_type,
                amount=coverage.deductible,
                waived=waiver is not None,
                waiver_reason=waiver,
            ))

    exclusions = evaluate_exclusions(claim, policy)
    warnings.extend(_coverage_gaps(verdicts))

    result = CoverageResult(
        claim_id=claim.claim_id,
        policy_number=policy.policy_number,
        verdicts=tuple(verdicts),
        exclusions=tuple(exclusions),
        deductibles=tuple(deductibles),
        limits=tuple(limits),
        warnings=tuple(warnings),
        recommendations=tuple(_recommendations(verdicts, exclusions)),
    )
    logger.debug(
        f"Claim {claim.claim_id} coverage: applies={result.coverage_applies}, "
        f"exclusions={[e.code for e in result.applicable_exclusions]}"
    )
    return result
