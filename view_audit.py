#!/usr/bin/env python3
"""
View the audit trail from the database.

Usage:
    python view_audit.py                       # Recent events
    python view_audit.py CLM-xxx               # Full trail for one claim
    python view_audit.py --action CLAIM_SCORED # Filter by action
    python view_audit.py --stats               # Event counts by action
"""

import argparse
from datetime import datetime

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from src.storage import SQLiteAuditSink, StoredAuditEvent, get_audit_store

console = Console()

ACTIONS = ("CLAIM_SCORED", "CLAIM_STATUS_CHANGED")


def format_datetime(iso_str: str) -> str:
    """Format ISO datetime string for display."""
    try:
        return datetime.fromisoformat(iso_str).strftime("%Y-%m-%d %H:%M:%S")
    except (ValueError, TypeError):
        return str(iso_str)


def summarize_change(event: StoredAuditEvent) -> str:
    """One-line before/after summary."""
    before = (event.before or {}).get("status", "")
    after = event.after or {}
    text = f"{before} -> {after.get('status', '')}" if before or after.get("status") else ""
    if "risk_score" in after:
        text += f"  score {after['risk_score']:.0f} ({after.get('risk_tier', '')})"
    if "routing_decision" in after:
        text += f"  {after['routing_decision']}"
    return text.strip()


def make_event_table(events: list[StoredAuditEvent], title: str) -> Table:
    """Create a table of audit events."""
    table = Table(title=title, box=box.ROUNDED, header_style="bold cyan")
    table.add_column("Timestamp", style="dim")
    table.add_column("Action", style="bold")
    table.add_column("Claim")
    table.add_column("Actor")
    table.add_column("Change", overflow="fold")

    for event in events:
        action = event.action
        if action == "CLAIM_STATUS_CHANGED" and (event.after or {}).get("status") in ("SUSPENDED", "DENIED"):
            action = f"[red]{action}[/red]"
        table.add_row(
            format_datetime(event.timestamp),
            action,
            event.entity_id,
            event.actor,
            summarize_change(event),
        )
    return table


def show_claim_trail(store: SQLiteAuditSink, claim_id: str):
    """Show every event recorded for one claim."""
    events = store.list_for_entity(claim_id)
    if not events:
        console.print(f"[yellow]No audit events for {claim_id}.[/yellow]")
        return

    console.print(Panel(f"[bold cyan]Audit trail: {claim_id}[/bold cyan]", expand=False))
    console.print(make_event_table(events, f"{len(events)} event(s)"))

    for event in events:
        if event.details:
            console.print(f"\n[bold]{event.event_id}[/bold] ({event.action})")
            for key, value in event.details.items():
                console.print(f"  {key}: {value}")


def show_stats(store: SQLiteAuditSink):
    """Show event counts by action."""
    console.print(f"[bold]Total events:[/bold] {store.count()}")
    for action in ACTIONS:
        console.print(f"  {action}: {store.count(action)}")


def main():
    parser = argparse.ArgumentParser(description="View the claim decision audit trail")
    parser.add_argument("claim_id", nargs="?", help="Show the full trail for one claim")
    parser.add_argument("--action", choices=ACTIONS, help="Filter by action")
    parser.add_argument("--limit", type=int, default=50, help="Number of recent events (default: 50)")
    parser.add_argument("--db", type=str, help="Audit database path (default: data/audit.db)")
    parser.add_argument("--stats", action="store_true", help="Show event counts")
    args = parser.parse_args()

    store = get_audit_store(args.db)
    console.print(f"\n[bold]Database:[/bold] {store.db_path.resolve()}\n")

    if args.stats:
        show_stats(store)
    elif args.claim_id:
        show_claim_trail(store, args.claim_id)
    else:
        events = store.list_recent(limit=args.limit, action=args.action)
        if not events:
            console.print("[yellow]No audit events yet. Run demo.py to create some.[/yellow]")
            return
        console.print(make_event_table(events, "Recent Audit Events"))


if __name__ == "__main__":
    main()
