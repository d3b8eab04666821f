# Alignment Memory - CLI
# SPDX-License-Identifier: AGPL-3.0

from __future__ import annotations
"""
CLI commands for Alignment Memory.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from alignment_memory import (
    AlignmentMemoryError,
    EventType,
    Settings,
    get_settings,
    open_state,
)


class AlignmentMemoryCLI:
    """CLI for Alignment Memory."""

    def __init__(self, settings: Settings, json_output: bool = False):
        self.settings = settings
        self.json_output = json_output
        self.state = open_state(settings)

    def _print(self, data, text: str):
        if self.json_output:
            print(json.dumps(data, indent=2, ensure_ascii=False))
        else:
            print(text)

    # ===== Constraints =====

    def constraint_add(self, key: str, value: str, strength: float = 1.0,
                       constraint_type: str = "hard", ttl: float = None):
        """Add a constraint."""
        record = self.state.constraints.add(key, value, strength=strength,
                                            constraint_type=constraint_type, ttl=ttl)
        if record is None:
            self._print({"key": key, "active": False},
                        f"Constraint recorded but pruned immediately: {key}")
        else:
            self._print(record.to_dict(), f"Constraint added: {key} [{record.type}]")

    def constraint_update(self, key: str, value: str = None, strength: float = None,
                          constraint_type: str = None, ttl: float = None, clear_ttl: bool = False):
        """Update a constraint."""
        kwargs = {"value": value, "strength": strength, "constraint_type": constraint_type}
        if clear_ttl:
            kwargs["ttl"] = None
        elif ttl is not None:
            kwargs["ttl"] = ttl

        record = self.state.constraints.update(key, **kwargs)
        if record is None:
            self._print({"key": key, "active": False}, f"Constraint updated and pruned: {key}")
        else:
            self._print(record.to_dict(), f"Constraint updated: {key}")

    def constraint_remove(self, key: str, reason: str = None, contradicted: bool = False):
        """Obsolete or contradict a constraint."""
        store = self.state.constraints
        if contradicted:
            event = store.contradict(key, reason or "contradicted")
        else:
            event = store.obsolete(key, reason or "explicitly removed")

        if event is None:
            self._print({"key": key, "removed": False}, f"No active constraint: {key}")
        else:
            self._print(event.to_dict(), f"Constraint removed: {key} ({event.event_type})")

    def constraint_clear(self):
        """Obsolete every constraint."""
        removed = self.state.constraints.clear()
        self._print({"removed": removed}, f"Cleared {removed} constraints")

    def constraint_list(self, constraint_type: str = None):
        """List active constraints."""
        store = self.state.constraints
        records = store.get_by_type(constraint_type) if constraint_type else store.get_all()

        if self.json_output:
            self._print([r.to_dict() for r in records], "")
        elif not records:
            print("No active constraints.")
        elif constraint_type:
            for r in records:
                print(f"{r.key}: {r.value} (strength: {r.strength})")
        else:
            print(store.get_canonical_state_string())

    # ===== Moods =====

    def mood_record(self, mood: str, intensity: float, reason: str = ""):
        """Record a mood observation."""
        event = self.state.moods.record_mood(mood, intensity, reason)
        self._print(event.to_dict(), f"Mood recorded: {mood} ({intensity}/10)")

    def mood_timeline(self, limit: int = 10):
        """Show recent mood observations."""
        events = self.state.moods.get_mood_timeline(limit)
        if self.json_output:
            self._print([e.to_dict() for e in events], "")
            return
        if not events:
            print("No mood history.")
        for e in events:
            p = e.payload
            print(f"{e.timestamp}  {p['mood']} ({p['intensity']}/10) - {p['reason']}")

    def mood_distress(self):
        """Show the current distress level."""
        moods = self.state.moods
        distress = moods.get_distress_level()
        data = distress.to_dict()
        data["admonishment_multiplier"] = moods.get_admonishment_multiplier(distress.level)
        self._print(
            data,
            f"Distress: {distress.level}/10 (multiplier {data['admonishment_multiplier']:.1f}x)"
            + (f", cause: {distress.primary_cause}" if distress.primary_cause else ""),
        )

    def mood_context(self):
        """Print the mood context block."""
        context = self.state.moods.get_mood_context_string()
        self._print({"context": context}, context or "No mood history.")

    # ===== Events =====

    def events_list(self, event_type: str = None, since: str = None):
        """List events."""
        log = self.state.event_log
        events = log.get_events_since(since) if since else log.get_events(event_type)
        if since and event_type:
            events = [e for e in events if e.event_type == event_type]

        if self.json_output:
            self._print([e.to_dict() for e in events], "")
            return
        for e in events:
            print(f"{e.event_id}  {e.timestamp}  {e.event_type:<24} {e.source}  "
                  f"{json.dumps(e.payload, ensure_ascii=False)}")

    def export(self, output_file: Path, redact: bool = False):
        """Export all events."""
        count = self.state.event_log.export(output_file, redact=redact)
        self._print({"exported": count, "output": str(output_file)}, f"Exported {count} events to {output_file}")

    def stats(self):
        """Show statistics."""
        stats = self.state.summary()
        if self.json_output:
            print(json.dumps(stats, indent=2))
        else:
            print(f"Event log: {stats['event_log']}")
            print(f"Events: {stats['events']}")
            print(f"Constraints: {stats['constraints']}")
            print(f"Mood observations: {stats['mood_observations']}")
            print(f"Distress: {stats['distress_level']}/10 "
                  f"(multiplier {stats['admonishment_multiplier']:.1f}x)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Alignment Memory CLI")
    parser.add_argument("--data-dir", help="Data directory (default from ALIGNMENT_MEMORY_DATA_DIR)")
    parser.add_argument("--json", action="store_true", help="JSON output")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # constraint subcommand
    constraint_parser = subparsers.add_parser("constraint", help="Constraint commands")
    constraint_sub = constraint_parser.add_subparsers(dest="constraint_command", required=True)

    add_parser = constraint_sub.add_parser("add", help="Add a constraint")
    add_parser.add_argument("key", help="Constraint key")
    add_parser.add_argument("value", help="Constraint rule text")
    add_parser.add_argument("--type", default="hard", choices=["hard", "soft"])
    add_parser.add_argument("--strength", type=float, default=1.0, help="Strength 0-1")
    add_parser.add_argument("--ttl", type=float, help="Lifetime in seconds")

    update_parser = constraint_sub.add_parser("update", help="Update a constraint")
    update_parser.add_argument("key", help="Constraint key")
    update_parser.add_argument("--value", help="New rule text")
    update_parser.add_argument("--type", choices=["hard", "soft"])
    update_parser.add_argument("--strength", type=float, help="Strength 0-1")
    update_parser.add_argument("--ttl", type=float, help="Lifetime in seconds")
    update_parser.add_argument("--clear-ttl", action="store_true", help="Remove the expiry")

    for name, help_text in (("obsolete", "Obsolete a constraint"), ("contradict", "Contradict a constraint")):
        remove_parser = constraint_sub.add_parser(name, help=help_text)
        remove_parser.add_argument("key", help="Constraint key")
        remove_parser.add_argument("--reason", help="Reason")

    constraint_sub.add_parser("clear", help="Obsolete all constraints")

    list_parser = constraint_sub.add_parser("list", help="List active constraints")
    list_parser.add_argument("--type", choices=["hard", "soft"])

    # mood subcommand
    mood_parser = subparsers.add_parser("mood", help="Mood commands")
    mood_sub = mood_parser.add_subparsers(dest="mood_command", required=True)

    record_parser = mood_sub.add_parser("record", help="Record a mood observation")
    record_parser.add_argument("mood", help="Mood label")
    record_parser.add_argument("intensity", type=float, help="Intensity 0-10")
    record_parser.add_argument("--reason", default="", help="Reason")

    timeline_parser = mood_sub.add_parser("timeline", help="Recent mood observations")
    timeline_parser.add_argument("--limit", type=int, default=10)

    mood_sub.add_parser("distress", help="Current distress level")
    mood_sub.add_parser("context", help="Mood context block")

    # events
    events_parser = subparsers.add_parser("events", help="List events")
    events_parser.add_argument("--type", choices=[t.value for t in EventType])
    events_parser.add_argument("--since", help="Only events after this event id")

    # export
    export_parser = subparsers.add_parser("export", help="Export events")
    export_parser.add_argument("output", help="Output file")
    export_parser.add_argument("--redact", action="store_true", help="Redact sensitive data")

    # stats
    subparsers.add_parser("stats", help="Show statistics")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    overrides = {}
    if args.data_dir:
        overrides["data_dir"] = Path(args.data_dir).expanduser()
    settings = get_settings(**overrides)

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    cli = AlignmentMemoryCLI(settings, json_output=args.json)

    try:
        if args.command == "constraint":
            cmd = args.constraint_command
            if cmd == "add":
                cli.constraint_add(args.key, args.value, args.strength, args.type, args.ttl)
            elif cmd == "update":
                cli.constraint_update(args.key, args.value, args.strength, args.type, args.ttl, args.clear_ttl)
            elif cmd in ("obsolete", "contradict"):
                cli.constraint_remove(args.key, args.reason, contradicted=cmd == "contradict")
            elif cmd == "clear":
                cli.constraint_clear()
            elif cmd == "list":
                cli.constraint_list(args.type)
        elif args.command == "mood":
            cmd = args.mood_command
            if cmd == "record":
                cli.mood_record(args.mood, args.intensity, args.reason)
            elif cmd == "timeline":
                cli.mood_timeline(args.limit)
            elif cmd == "distress":
                cli.mood_distress()
            elif cmd == "context":
                cli.mood_context()
        elif args.command == "events":
            cli.events_list(args.type, args.since)
        elif args.command == "export":
            cli.export(Path(args.output), args.redact)
        elif args.command == "stats":
            cli.stats()
        else:
            print(f"Unknown command: {args.command}", file=sys.stderr)
            return 1
    except AlignmentMemoryError as exc:
        if args.json:
            print(json.dumps(exc.to_dict(), indent=2), file=sys.stderr)
        else:
            print(f"Error: {exc.message}", file=sys.stderr)
        return 2
    except OSError as exc:
        if args.json:
            error = {"code": "IO_ERROR", "message": str(exc), "details": {"path": exc.filename}}
            print(json.dumps(error, indent=2, default=str), file=sys.stderr)
        else:
            print(f"Error: {exc}", file=sys.stderr)
        return 3

    save_result = cli.state.event_log.last_save_result
    if save_result is not None and not save_result.ok:
        print(f"Warning: event log not persisted: {save_result.error}", file=sys.stderr)
        return 3
    return 0


if __name__ == "__main__":
    sys.exit(main())
