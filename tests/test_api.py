"""
Tests for the FastAPI application.

The processor dependency is overridden with one that records audit events
in memory, so no database file is touched.
"""

import json
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from src.api.app import app, get_processor
from src.engine.audit import InMemoryAuditSink
from src.engine.jurisdiction import JurisdictionRuleBook
from src.routing import ClaimProcessor

EXAMPLES_DIR = Path(__file__).parent.parent / "data" / "examples"


# ============================================================================
# Helper Functions
# ============================================================================


def load_example(name: str) -> dict:
    return json.loads((EXAMPLES_DIR / f"{name}.json").read_text())


@pytest.fixture
def sink():
    return InMemoryAuditSink()


@pytest.fixture
def client(sink):
    processor = ClaimProcessor(audit_sink=sink)
    app.dependency_overrides[get_processor] = lambda: processor
    yield TestClient(app)
    app.dependency_overrides.clear()


# ============================================================================
# Health
# ============================================================================


class TestHealth:

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_health(self, client):
        data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert data["config"]["risk_breakpoints"]["critical"] == 75
        assert data["config"]["jurisdictions"] == 51


# ============================================================================
# Scoring Endpoints
# ============================================================================


class TestScoringEndpoints:

    def test_coverage(self, client):
        response = client.post("/coverage/evaluate", json=load_example("claim_low_risk"))

        assert response.status_code == 200
        data = response.json()
        assert data["coverage_applies"] is True
        assert data["verdicts"][0]["coverage_type"] == "COLLISION"

    def test_risk(self, client):
        data = client.post("/risk/score", json=load_example("claim_siu_referral")).json()
        assert data["score"] == 80
        assert data["tier"] == "CRITICAL"
        assert data["siu_referral"] is True

    def test_escalations(self, client):
        body = {
            "claim": load_example("claim_low_risk"),
            "triggers": [{"type": "COMPLIANCE_ISSUE", "severity": "CRITICAL", "reason": "Late notice"}],
        }

        data = client.post("/escalations/decide", json=body).json()

        assert data["recommendation"] == "INVESTIGATE"
        assert data["requires_human_review"] is True
        assert data["decisions"][0]["assignee"] == "COMPLIANCE_OFFICER"
        assert data["decided_at"].startswith("2024-03-12T10:00:00")

    def test_risk_score_is_audited(self, client, sink):
        client.post("/risk/score", json=load_example("claim_siu_referral"))

        assert sink.actions() == ["RISK_SCORED"]
        event = sink.events[0]
        assert event.entity_id == "CLM-2024-0003"
        assert event.after["risk_score"] == 80
        assert event.after["risk_tier"] == "CRITICAL"
        assert event.details["config_version"] == "2024.1"

    def test_escalations_are_audited(self, client, sink):
        client.post("/escalations/decide", json={"claim": load_example("claim_low_risk")})
        client.post("/escalations/decide", json={"claim": load_example("claim_high_value")})

        assert sink.actions() == ["ESCALATIONS_DECIDED", "ESCALATIONS_DECIDED"]
        assert sink.events[1].after["recommendation"] == "REFER"
        assert len(sink.events[1].details["decisions"]) == 1


class TestDecideClaim:

    def test_full_cycle(self, client, sink):
        response = client.post("/claims/decide", json={"claim": load_example("claim_high_value")})

        assert response.status_code == 200
        data = response.json()
        assert data["routing_decision"] == "HUMAN_REVIEW"
        assert data["status"] == "INVESTIGATION"
        assert sink.actions() == ["CLAIM_STATUS_CHANGED", "CLAIM_SCORED"]

    def test_siu_briefing_included(self, client):
        data = client.post("/claims/decide", json={"claim": load_example("claim_siu_referral")}).json()
        assert data["routing_decision"] == "SIU_ESCALATION"
        assert data["siu_briefing"]["priority"] == "CRITICAL"

    def test_invalid_snapshot(self, client):
        response = client.post("/claims/decide", json={"claim": {"claim_id": "CLM-BAD"}})

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "CE_INVALID_SNAPSHOT"
        assert error["claim_id"] == "CLM-BAD"

    def test_unknown_trigger_type(self, client):
        body = {"claim": load_example("claim_low_risk"), "triggers": [{"type": "NOT_A_TRIGGER"}]}
        assert client.post("/claims/decide", json=body).status_code == 422


# ============================================================================
# Reference Data
# ============================================================================


class TestJurisdictions:

    def test_lookup(self, client):
        data = client.get("/jurisdictions/tx", params={"as_of": "2024-06-01"}).json()
        assert data["state_code"] == "TX"
        assert data["payment_days"] == 5

    def test_unknown_state(self, client):
        response = client.get("/jurisdictions/ZZ")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "CE_MISSING_REFERENCE_DATA"

    def test_missing_rule_during_scoring(self, sink):
        processor = ClaimProcessor(rule_book=JurisdictionRuleBook([]), audit_sink=sink)
        app.dependency_overrides[get_processor] = lambda: processor
        try:
            response = TestClient(app).post("/escalations/decide", json={"claim": load_example("claim_low_risk")})
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "CE_MISSING_REFERENCE_DATA"
        assert sink.events == []
