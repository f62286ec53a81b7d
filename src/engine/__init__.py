"""
Claim decision engine.

Coverage analysis, fraud risk scoring, escalation routing and lifecycle
tracking over immutable claim snapshots.
"""

from .audit import AuditEvent, AuditSink, InMemoryAuditSink, LoggingAuditSink
from .config import DEFAULT_ENGINE_CONFIG, EngineConfig, RiskBreakpoints, load_engine_config
from .coverage import CoverageResult, CoverageVerdict, ExclusionRecord, evaluate_coverage
from .escalation import (
    AssigneeRole,
    EscalationAction,
    EscalationDecision,
    EscalationOutcome,
    OverallRecommendation,
    decide_escalations,
)
from .exceptions import (
    ClaimEngineError,
    IllegalTransition,
    InvalidSnapshot,
    MissingReferenceData,
    ThresholdConfigurationError,
)
from .jurisdiction import JurisdictionRule, JurisdictionRuleBook, get_rule_book
from .lifecycle import ClaimStateMachine, Deadline, LifecycleState, compute_deadlines, is_overdue
from .medical_screener import MedicalScreeningResult, screen_medical_billing
from .pattern_scorer import PatternScore, score_patterns
from .risk import RiskScore, compose_risk, score_risk, tier_for_score
from .schema import (
    # Enums
    ClaimStatus,
    CoverageType,
    LossType,
    RiskTier,
    RoutingDecision,
    Severity,
    TriggerType,
    # Models
    ClaimSnapshot,
    EscalationTrigger,
    FraudIndicator,
    PolicySnapshot,
    build_claim_snapshot,
)
from .siu_briefing import SIUBriefing, build_siu_briefing

__all__ = [
    # Main API
    "build_claim_snapshot",
    "evaluate_coverage",
    "score_patterns",
    "screen_medical_billing",
    "compose_risk",
    "score_risk",
    "tier_for_score",
    "decide_escalations",
    "compute_deadlines",
    "is_overdue",
    "build_siu_briefing",
    "load_engine_config",
    "get_rule_book",
    # Classes
    "ClaimStateMachine",
    "JurisdictionRuleBook",
    "AuditSink",
    "InMemoryAuditSink",
    "LoggingAuditSink",
    # Enums
    "AssigneeRole",
    "ClaimStatus",
    "CoverageType",
    "EscalationAction",
    "LossType",
    "OverallRecommendation",
    "RiskTier",
    "RoutingDecision",
    "Severity",
    "TriggerType",
    # Models
    "AuditEvent",
    "ClaimSnapshot",
    "CoverageResult",
    "CoverageVerdict",
    "Deadline",
    "DEFAULT_ENGINE_CONFIG",
    "EngineConfig",
    "EscalationDecision",
    "EscalationOutcome",
    "EscalationTrigger",
    "ExclusionRecord",
    "FraudIndicator",
    "JurisdictionRule",
    "LifecycleState",
    "MedicalScreeningResult",
    "PatternScore",
    "PolicySnapshot",
    "RiskBreakpoints",
    "RiskScore",
    "SIUBriefing",
    # Errors
    "ClaimEngineError",
    "IllegalTransition",
    "InvalidSnapshot",
    "MissingReferenceData",
    "ThresholdConfigurationError",
]
