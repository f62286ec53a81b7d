#!/usr/bin/env python3
"""
Export JSON Schemas for the claim snapshot and engine configuration.

This script exports the canonical JSON Schemas and validates example claims.
"""

import json
from pathlib import Path

from rich.console import Console

from src.engine.config import EngineConfig
from src.engine.exceptions import InvalidSnapshot
from src.engine.schema import ClaimSnapshot, build_claim_snapshot

console = Console()


def export_json_schema(model, output_path: str) -> dict:
    """Export the JSON Schema for a pydantic model."""
    schema = model.model_json_schema()

    output_file = Path(output_path)
    output_file.parent.mkdir(parents=True, exist_ok=True)

    with open(output_file, "w", encoding="utf-8") as f:
        json.dump(schema, f, indent=2, ensure_ascii=False)

    console.print(f"[green]✓[/green] JSON Schema exported to: {output_file}")
    console.print(f"  Title: {schema['title']}")
    console.print(f"  Properties: {len(schema['properties'])} top-level fields")
    return schema


def validate_example_claims():
    """Validate example claim JSON files against the snapshot schema."""
    examples_dir = Path("data/examples")
    example_files = sorted(examples_dir.glob("claim_*.json"))

    if not example_files:
        console.print("[yellow]⚠ No example claim files found in data/examples/[/yellow]")
        return

    console.rule("Validating Example Claims")

    valid_count = 0
    invalid_count = 0

    for example_file in example_files:
        console.print(f"\n📄 {example_file.name}")
        with open(example_file, "r", encoding="utf-8") as f:
            claim_data = json.load(f)
        try:
            claim = build_claim_snapshot(claim_data)
        except InvalidSnapshot as e:
            console.print(f"  [red]✗ Invalid:[/red] {e}")
            for error in e.details.get("errors", []):
                console.print(f"    {'.'.join(str(p) for p in error['loc'])}: {error['msg']}")
            invalid_count += 1
            continue

        console.print("  [green]✓ Valid[/green]")
        console.print(f"    Claim ID: {claim.claim_id}")
        console.print(f"    Loss Type: {claim.loss_type.value}")
        console.print(f"    Amount: ${claim.estimated_amount:,.0f}")
        console.print(f"    Injured Participants: {len(claim.injured_participants)}")
        valid_count += 1

    console.rule(f"Results: {valid_count} valid, {invalid_count} invalid")


def main():
    """Main entry point."""
    console.rule("Claim Decision Engine - JSON Schema Export")

    export_json_schema(ClaimSnapshot, "data/claim_snapshot_schema.json")
    export_json_schema(EngineConfig, "data/engine_config_schema.json")

    validate_example_claims()


if __name__ == "__main__":
    main()
