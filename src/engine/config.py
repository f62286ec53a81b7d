"""
Versioned engine configuration.

Keyword tables, rule weights, risk breakpoints and authority limits are
injected data rather than module constants, so deployments and tests can
vary thresholds without code changes. Monotonicity is validated when the
configuration is built, never at scoring time.
"""

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .exceptions import ThresholdConfigurationError

if TYPE_CHECKING:
    from ..utils.config import Settings

logger = logging.getLogger(__name__)

ENGINE_CONFIG_VERSION = "2024.1"


class _Config(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


# ============================================================================
# Risk Breakpoints
# ============================================================================


class RiskBreakpoints(_Config):
    """Score thresholds (inclusive) for each tier, plus the SIU escalation threshold."""
    medium: float = 30
    high: float = 50
    critical: float = 75
    escalation: float = Field(default=50, description="Score at which SIU referral is emitted")

    @model_validator(mode="after")
    def check_monotonic(self) -> "RiskBreakpoints":
        if not 0 < self.medium < self.high < self.critical <= 100:
            raise ThresholdConfigurationError(
                message="Risk breakpoints must increase strictly: 0 < medium < high < critical <= 100",
                details={"medium": self.medium, "high": self.high, "critical": self.critical},
            )
        if not self.high <= self.escalation <= 100:
            raise ThresholdConfigurationError(
                message="Escalation threshold must be between the HIGH breakpoint and 100",
                details={"high": self.high, "escalation": self.escalation},
            )
        return self


# ============================================================================
# Fraud Pattern Rules
# ============================================================================


class PatternRules(_Config):
    """Weights and caps for the claim-level fraud pattern checks."""
    # Timing
    inception_window_days: int = 30
    inception_weight: float = 20
    early_inception_days: int = 7
    early_inception_weight: float = 15
    late_report_days: int = 30
    late_report_weight: float = 15
    timing_cap: float = 50

    # Location
    location_keywords: tuple[str, ...] = ("parking lot", "parking garage", "staged")
    location_weight: float = 10
    location_cap: float = 30

    # Vehicle
    salvage_title_weight: float = 15
    high_amount_threshold: float = 20000
    old_vehicle_years: int = 10
    high_amount_old_vehicle_weight: float = 20
    vehicle_cap: float = 35

    # Repeat claimant: (minimum prior claims, weight), highest match wins
    prior_claim_tiers: tuple[tuple[int, float], ...] = ((5, 30), (3, 20), (1, 10))
    recent_claims_window_days: int = 365
    recent_claims_count: int = 2
    recent_claims_weight: float = 15
    adverse_history_weight: float = 25
    repeat_cap: float = 50


# ============================================================================
# Medical Billing Rules
# ============================================================================


class UpcodingRule(_Config):
    code: str
    expected_code: str
    high_risk_if: str


class BundlingPattern(_Config):
    codes: tuple[str, ...]
    bundled_code: str
    description: str


class MedicalRules(_Config):
    """Keyword tables and weights for medical billing screening."""
    severe_injury_keywords: tuple[str, ...] = ("surgery", "fracture", "broken", "hospitalized", "icu", "coma")
    moderate_injury_keywords: tuple[str, ...] = ("whiplash", "sprain", "strain", "contusion", "laceration")
    severe_damage_keywords: tuple[str, ...] = ("total loss", "totaled", "destroyed", "fire", "rolled over")
    moderate_damage_keywords: tuple[str, ...] = ("frame damage", "airbag deployed", "significant", "major")
    severe_mismatch_weight: float = 30
    moderate_mismatch_weight: float = 15
    mismatch_cap: float = 30

    provider_watchlist: tuple[str, ...] = ("pain management", "injury center", "accident clinic", "lien-based")
    watchlist_weight: float = 15
    many_providers_count: int = 5
    many_providers_weight: float = 20
    several_providers_count: int = 3
    several_providers_weight: float = 10
    out_of_state_weight: float = 10
    provider_cap: float = 45

    upcoding_rules: tuple[UpcodingRule, ...] = (
        UpcodingRule(code="99215", expected_code="99214", high_risk_if="routine visit"),
        UpcodingRule(code="99223", expected_code="99222", high_risk_if="straightforward admission"),
        UpcodingRule(code="99285", expected_code="99284", high_risk_if="non-emergent"),
        UpcodingRule(code="97140", expected_code="97110", high_risk_if="basic therapy"),
    )
    low_complexity_words: tuple[str, ...] = ("routine", "simple", "basic")
    top_level_codes: tuple[str, ...] = ("99215", "99223", "99285")
    # CPT family prefix -> amount above which a bill looks inflated
    amount_thresholds: dict[str, float] = Field(default_factory=lambda: {"992": 500.0, "971": 200.0})
    bundling_patterns: tuple[BundlingPattern, ...] = (
        BundlingPattern(codes=("97110", "97140", "97530"), bundled_code="97542",
                        description="PT evaluation components billed separately"),
        BundlingPattern(codes=("99213", "36415", "85025"), bundled_code="99214",
                        description="Lab draw billed separately from visit"),
        BundlingPattern(codes=("29881", "29880"), bundled_code="29881",
                        description="Knee arthroscopy components billed separately"),
    )
    same_date_code_limit: int = 3
    upcoding_weight: float = 20
    unbundling_weight: float = 15
    duplicate_weight: float = 25
    billing_cap: float = 60

    long_treatment_days: int = 90
    long_treatment_weight: float = 15
    excessive_pt_sessions: int = 50
    excessive_pt_weight: float = 10


# ============================================================================
# Escalation Rules
# ============================================================================


class EscalationRules(_Config):
    """Authority limits, fraud thresholds (0-100 scale) and deadline offsets in days."""
    auto_approve_limit: float = 25000
    supervisor_limit: float = 100000
    fraud_auto_deny_score: float = 85
    fraud_investigate_score: float = 50

    supervisor_review_days: int = 2
    manager_review_days: int = 1
    fraud_deny_days: int = 1
    fraud_investigate_days: int = 5
    coverage_dispute_days: int = 3
    total_loss_days: int = 3
    compliance_days: int = 1
    injury_days: int = 2
    qa_failure_days: int = 2
    generic_days: int = 3

    @model_validator(mode="after")
    def check_limits(self) -> "EscalationRules":
        if not 0 <= self.auto_approve_limit < self.supervisor_limit:
            raise ThresholdConfigurationError(
                message="Authority limits must increase: auto_approve_limit < supervisor_limit",
                details={"auto_approve_limit": self.auto_approve_limit, "supervisor_limit": self.supervisor_limit},
            )
        if not 0 <= self.fraud_investigate_score < self.fraud_auto_deny_score <= 100:
            raise ThresholdConfigurationError(
                message="Fraud thresholds must increase: investigate < auto-deny <= 100",
                details={
                    "fraud_investigate_score": self.fraud_investigate_score,
                    "fraud_auto_deny_score": self.fraud_auto_deny_score,
                },
            )
        return self


# ============================================================================
# Engine Config
# ============================================================================


class EngineConfig(_Config):
    version: str = ENGINE_CONFIG_VERSION
    risk: RiskBreakpoints = RiskBreakpoints()
    patterns: PatternRules = PatternRules()
    medical: MedicalRules = MedicalRules()
    escalation: EscalationRules = EscalationRules()


DEFAULT_ENGINE_CONFIG = EngineConfig()


def load_engine_config(
    settings: Optional["Settings"] = None,
    config_file: Optional[Path] = None,
) -> EngineConfig:
    """
    Build the engine configuration for a deployment.

    Starts from defaults, merges an optional JSON file, then applies risk
    breakpoint overrides from settings.

    Raises:
        ThresholdConfigurationError: if the result is invalid or non-monotonic
    """
    data: dict = {}

    path = config_file
    if path is None and settings is not None and settings.engine_config_file:
        path = Path(settings.engine_config_file)
    if path is not None:
        try:
            data = json.loads(Path(path).read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise ThresholdConfigurationError(
                message=f"Could not read engine config file {path}: {e}",
            ) from e
        logger.info(f"Loaded engine config from {path}")

    if settings is not None:
        overrides = {
            "medium": settings.risk_medium_threshold,
            "high": settings.risk_high_threshold,
            "critical": settings.risk_critical_threshold,
            "escalation": settings.risk_escalation_threshold,
        }
        overrides = {k: v for k, v in overrides.items() if v is not None}
        if overrides:
            data.setdefault("risk", {}).update(overrides)

    try:
        config = EngineConfig.model_validate(data)
    except ValidationError as e:
        raise ThresholdConfigurationError(
            message="Invalid engine configuration",
            details={"errors": e.errors(include_url=False, include_context=False, include_input=False)},
        ) from e

    logger.info(
        f"Engine config {config.version}: tiers {config.risk.medium}/{config.risk.high}/"
        f"{config.risk.critical}, escalation {config.risk.escalation}"
    )
    return config
