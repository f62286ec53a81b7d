#!/usr/bin/env python3
"""
Claim Decision Engine - Demo Script

Runs the example claims in data/examples/ through a full decision cycle:
1. Low-risk claim - straight-through processing
2. High-value claim - manager referral and human review
3. Suspicious claim - SIU referral with briefing

Run with: python demo.py

Audit events are saved to: data/audit.db
View them with: python view_audit.py
"""

import json
from pathlib import Path

# Load environment variables
from dotenv import load_dotenv
load_dotenv()

from src.engine import build_claim_snapshot
from src.engine.exceptions import ClaimEngineError
from src.routing import ClaimProcessingResult, ClaimProcessor
from src.storage import get_audit_store

EXAMPLES_DIR = Path(__file__).parent / "data" / "examples"


def print_header(title: str):
    """Print a formatted section header."""
    print("\n" + "=" * 70)
    print(f"  {title}")
    print("=" * 70)


def print_subheader(title: str):
    """Print a formatted subsection header."""
    print(f"\n--- {title} ---")


def print_result(result: ClaimProcessingResult):
    """Print a formatted decision summary."""
    print(f"\n{'─' * 50}")
    print(f"Claim: {result.claim_id}")
    print(f"{'─' * 50}")

    # Coverage
    print(f"  Coverage applies: {'Yes' if result.coverage.coverage_applies else 'No'}")
    for verdict in result.coverage.verdicts:
        print(f"    - {verdict.name}: {verdict.reason}")
    for exclusion in result.coverage.applicable_exclusions:
        print(f"    ! {exclusion.code} {exclusion.description}")

    # Risk
    print(f"\n  Fraud score: {result.risk.score:.0f} ({result.risk.tier.value})")
    for indicator in result.risk.indicators[:5]:
        print(f"    - [{indicator.source.value}] {indicator.description}")
    if len(result.risk.indicators) > 5:
        print(f"    ... and {len(result.risk.indicators) - 5} more")

    # Escalations
    print(f"\n  {result.escalation.overall_recommendation}")
    for decision in result.escalation.decisions:
        assignee = decision.assignee.value if decision.assignee else "-"
        print(f"    - {decision.trigger_type.value}: {decision.action.value} -> {assignee} ({decision.priority.value})")
    if result.escalation.requires_human_review:
        print(f"  Human review: {result.escalation.human_review_reason}")

    # Routing and lifecycle
    print(f"\n  Routing: {result.routing_decision.value} - {result.routing_reason}")
    print(f"  Status: {result.previous_status.value} -> {result.lifecycle.status.value}")
    for deadline in result.deadlines:
        print(f"    {deadline.kind.value} due {deadline.due_date} ({deadline.status.value})")

    if result.siu_briefing:
        print(f"\n  SIU briefing {result.siu_briefing.briefing_id}: {result.siu_briefing.priority.value}")
        for step in result.siu_briefing.investigative_steps:
            print(f"    - [{step.priority}] {step.action}")

    if result.next_actions:
        print("\n  Next actions:")
        for action in result.next_actions[:6]:
            print(f"    - {action}")

    for warning in result.warnings:
        print(f"  WARNING: {warning}")


def main():
    print_header("Claim Decision Engine Demo")

    store = get_audit_store()
    processor = ClaimProcessor(audit_sink=store)

    for path in sorted(EXAMPLES_DIR.glob("claim_*.json")):
        print_subheader(path.name)
        with open(path, "r", encoding="utf-8") as f:
            claim_data = json.load(f)
        try:
            claim = build_claim_snapshot(claim_data)
        except ClaimEngineError as e:
            print(f"  Rejected: {e}")
            continue
        print_result(processor.process_claim(claim))

    print_header("Audit Trail")
    print(f"  Events stored: {store.count()}")
    print(f"  Database: {store.db_path}")
    print("  View with: python view_audit.py")


if __name__ == "__main__":
    main()
