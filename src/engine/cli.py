#!/usr/bin/env python3
"""
CLI for running a claim decision cycle.

Usage:
    python -m src.engine.cli --claim-file data/examples/claim_low_risk.json
    python -m src.engine.cli --claim-file claim.json --trigger COMPLIANCE_ISSUE:CRITICAL:"Late notice" --pretty
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from ..routing import ClaimProcessingResult, ClaimProcessor
from ..storage import SQLiteAuditSink
from ..utils.config import get_settings
from .config import load_engine_config
from .schema import EscalationTrigger, Severity, TriggerType, build_claim_snapshot


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def read_claim_file(path: str) -> dict:
    """Read a claim snapshot from a JSON file."""
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def parse_trigger(value: str) -> EscalationTrigger:
    """
    Parse TYPE[:SEVERITY[:reason]] into an EscalationTrigger.

    Raises:
        argparse.ArgumentTypeError: on an unknown type or severity
    """
    parts = value.split(':', 2)
    try:
        trigger_type = TriggerType(parts[0].strip().upper())
        severity = Severity(parts[1].strip().upper()) if len(parts) > 1 and parts[1] else Severity.MEDIUM
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Invalid trigger '{value}': {e}") from e
    reason = parts[2].strip() if len(parts) > 2 else ""
    return EscalationTrigger(type=trigger_type, severity=severity, reason=reason)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Run coverage, fraud risk and escalation decisions for a claim snapshot',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Decide a claim
  python -m src.engine.cli --claim-file data/examples/claim_low_risk.json

  # Add an explicit escalation trigger
  python -m src.engine.cli --claim-file claim.json --trigger QA_FAILURE:HIGH:"Estimate mismatch"

  # Persist audit events to SQLite
  python -m src.engine.cli --claim-file claim.json --audit-db data/audit.db

  # Pretty print output
  python -m src.engine.cli --claim-file claim.json --pretty
        """
    )

    parser.add_argument(
        '--claim-file',
        type=str,
        required=True,
        help='Path to a JSON claim snapshot'
    )
    parser.add_argument(
        '--trigger',
        type=parse_trigger,
        action='append',
        default=[],
        metavar='TYPE[:SEVERITY[:reason]]',
        help='Explicit escalation trigger (repeatable)'
    )

    # Configuration
    parser.add_argument(
        '--audit-db',
        type=str,
        help='SQLite file for audit events (default: log events only)'
    )
    parser.add_argument(
        '--config-file',
        type=str,
        help='Engine config JSON (default: ENGINE_CONFIG_FILE setting or built-in rules)'
    )

    # Output options
    parser.add_argument(
        '--output',
        '-o',
        type=str,
        help='Output file path (default: print to stdout)'
    )
    parser.add_argument(
        '--pretty',
        action='store_true',
        help='Pretty print JSON output'
    )

    # Logging
    parser.add_argument(
        '--verbose',
        '-v',
        action='store_true',
        help='Enable verbose logging'
    )

    return parser.parse_args(argv)


def print_summary(result: ClaimProcessingResult, console: Console) -> None:
    """Print a decision summary table."""
    table = Table(title=f"Decision Summary: {result.claim_id}", header_style="bold cyan")
    table.add_column("Field", style="bold")
    table.add_column("Value", overflow="fold")

    table.add_row("Coverage Applies", "Yes" if result.coverage.coverage_applies else "No")
    table.add_row("Risk Score", f"{result.risk.score:.0f} ({result.risk.tier.value})")
    table.add_row("Indicators", str(len(result.risk.indicators)))
    table.add_row("Recommendation", result.escalation.overall_recommendation)
    table.add_row("Human Review", result.escalation.human_review_reason or "No")
    table.add_row("Routing", f"{result.routing_decision.value} - {result.routing_reason}")
    table.add_row("Status", f"{result.previous_status.value} -> {result.lifecycle.status.value}")
    for deadline in result.deadlines:
        table.add_row(f"{deadline.kind.value.title()} Due", f"{deadline.due_date.isoformat()} ({deadline.status.value})")
    if result.siu_briefing:
        table.add_row("SIU Priority", result.siu_briefing.priority.value)
    for warning in result.warnings:
        table.add_row("[yellow]Warning[/yellow]", warning)

    console.print(table)


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    args = parse_args(argv)

    # Setup logging
    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    try:
        claim_data = read_claim_file(args.claim_file)
        logger.info(f"Loaded claim snapshot from {args.claim_file}")

        config = load_engine_config(
            get_settings(),
            config_file=Path(args.config_file) if args.config_file else None,
        )
        audit_sink = SQLiteAuditSink(Path(args.audit_db)) if args.audit_db else None
        processor = ClaimProcessor(config=config, audit_sink=audit_sink)

        claim = build_claim_snapshot(claim_data)
        logger.info(f"Deciding claim {claim.claim_id} with {len(args.trigger)} explicit trigger(s)")
        result = processor.process_claim(claim, args.trigger)

        # Convert to JSON
        indent = 2 if args.pretty else None
        json_output = json.dumps(result.to_dict(), indent=indent, ensure_ascii=False)

        # Output
        if args.output:
            output_path = Path(args.output)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with open(output_path, 'w', encoding='utf-8') as f:
                f.write(json_output)
            logger.info(f"Output written to: {output_path}")
        else:
            print(json_output)

        # Print summary alongside file output, or on request
        if args.output or args.verbose:
            print_summary(result, Console(stderr=True))

    except Exception as e:
        logger.error(f"Error deciding claim: {e}", exc_info=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
