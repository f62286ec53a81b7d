"""
Tests for the SIU referral briefing.

Verifies priority mapping, referral contacts, investigative steps,
critical dates and the exposure estimate.
"""

from datetime import date

import pytest

from src.engine.jurisdiction import get_rule_book
from src.engine.medical_screener import MedicalScreeningResult
from src.engine.pattern_scorer import PatternScore
from src.engine.risk import compose_risk
from src.engine.schema import ClaimSnapshot, FraudIndicator, IndicatorSource, build_claim_snapshot
from src.engine.siu_briefing import BriefingPriority, briefing_priority, build_siu_briefing


# ============================================================================
# Helper Functions
# ============================================================================


def create_claim(**overrides) -> ClaimSnapshot:
    data = {
        "claim_id": "CLM-SIU-001",
        "as_of": "2024-07-20T12:00:00+00:00",
        "loss_date": "2024-07-06",
        "reported_date": "2024-07-08",
        "estimated_amount": 22000,
        "policy": {"policy_number": "PA-FL-77", "effective_date": "2024-07-01"},
        "participants": [{"name": "Jordan Reyes", "injury_description": "Whiplash"}],
    }
    data.update(overrides)
    return build_claim_snapshot(data)


def create_risk(claim: ClaimSnapshot, score: float, indicators=()):
    return compose_risk(claim, PatternScore(score=score, raw_score=score, indicators=tuple(indicators)))


def indicator(source: IndicatorSource, description: str, weight: float) -> FraudIndicator:
    return FraudIndicator(source=source, description=description, weight=weight)


# ============================================================================
# Priority and Contacts
# ============================================================================


class TestPriority:

    @pytest.mark.parametrize("score,priority", [
        (40, BriefingPriority.ROUTINE),
        (50, BriefingPriority.ELEVATED),
        (60, BriefingPriority.URGENT),
        (75, BriefingPriority.CRITICAL),
    ])
    def test_thresholds(self, score, priority):
        assert briefing_priority(score) == priority


class TestReferralContacts:

    def organizations(self, score: float) -> list[str]:
        claim = create_claim()
        briefing = build_siu_briefing(claim, create_risk(claim, score))
        return [c.organization for c in briefing.referral_contacts]

    def test_state_bureau_always(self):
        assert self.organizations(55) == ["STATE_FRAUD_BUREAU"]

    def test_nicb_at_75(self):
        assert self.organizations(75) == ["NICB", "STATE_FRAUD_BUREAU"]

    def test_fbi_at_80(self):
        assert self.organizations(80) == ["NICB", "FBI", "STATE_FRAUD_BUREAU"]


# ============================================================================
# Briefing Content
# ============================================================================


class TestBriefingContent:

    def test_executive_summary_lists_top_indicators(self):
        claim = create_claim()
        risk = create_risk(claim, 80, [
            indicator(IndicatorSource.TIMING, "Early claim", 20),
            indicator(IndicatorSource.VEHICLE, "Salvage title", 15),
            indicator(IndicatorSource.LOCATION, "Parking lot", 10),
            indicator(IndicatorSource.TIMING, "Very early claim", 35),
        ])

        summary = build_siu_briefing(claim, risk).executive_summary

        assert "FRAUD SCORE: 80/100" in summary
        assert "Claimant: Jordan Reyes" in summary
        assert "1. [TIMING] Very early claim" in summary
        assert "3. [VEHICLE] Salvage title" in summary
        assert "Parking lot" not in summary
        assert "IMMEDIATE FULL INVESTIGATION" in summary

    def test_high_score_steps(self):
        claim = create_claim()
        steps = build_siu_briefing(claim, create_risk(claim, 80)).investigative_steps
        assert [s.action for s in steps] == [
            "Obtain recorded statement from claimant under oath",
            "Conduct surveillance of claimant activities",
        ]

    def test_medical_steps(self):
        claim = create_claim()
        medical = MedicalScreeningResult(score=60, raw_score=60, provider_score=15)

        steps = build_siu_briefing(claim, create_risk(claim, 60), medical).investigative_steps

        actions = [s.action for s in steps]
        assert "Independent Medical Examination (IME)" in actions
        assert "Provider investigation and possible fraud referral" in actions

    def test_no_ime_at_50(self):
        claim = create_claim()
        medical = MedicalScreeningResult(score=50, raw_score=50)
        steps = build_siu_briefing(claim, create_risk(claim, 55), medical).investigative_steps
        assert steps == []

    def test_litigation_considerations(self):
        claim = create_claim(in_litigation=True)
        considerations = build_siu_briefing(claim, create_risk(claim, 55)).legal_considerations
        assert "Claimant represented by counsel - all communications through attorney" in considerations


class TestCriticalDates:

    def test_jurisdiction_rule(self):
        claim = create_claim()
        rule = get_rule_book().lookup("FL", date(2024, 7, 8))

        dates = build_siu_briefing(claim, create_risk(claim, 80), rule=rule).critical_dates

        assert dates[0].deadline == date(2024, 7, 22)
        assert dates[1].deadline == date(2024, 10, 6)

    def test_without_rule(self):
        claim = create_claim()
        dates = build_siu_briefing(claim, create_risk(claim, 80)).critical_dates
        assert dates[0].deadline == date(2024, 7, 23)
        assert dates[1].deadline == date(2024, 8, 22)


class TestExposure:

    def test_small_claim(self):
        claim = create_claim(subrogation_recovery=2000)
        exposure = build_siu_briefing(claim, create_risk(claim, 60)).exposure
        assert exposure == {
            "potential_loss": 22000,
            "projected_legal_costs": 5000,
            "recovery_potential": 2000,
            "net_exposure": 25000,
        }

    def test_large_claim_legal_costs(self):
        claim = create_claim(estimated_amount=80000)
        exposure = build_siu_briefing(claim, create_risk(claim, 60)).exposure
        assert exposure["projected_legal_costs"] == 15000
        assert exposure["net_exposure"] == 95000

    def test_to_dict(self):
        claim = create_claim()
        data = build_siu_briefing(claim, create_risk(claim, 80)).to_dict()
        assert data["priority"] == "CRITICAL"
        assert data["critical_dates"][0]["deadline"] == "2024-07-23"
        assert data["briefing_id"].startswith("SIU-")
