"""cc-sidecar diagnostics CLI."""

from __future__ import annotations

import argparse
import json

from cc_sidecar.config import SidecarSettings, load_settings
from cc_sidecar.publisher import EVENT_COMPLETED, EVENT_FAILED
from cc_sidecar.registry import TaskRegistry
from cc_sidecar.storage import ChromaStore, ChromaUnavailableError

SESSION_EVENT_TYPES = (EVENT_COMPLETED, EVENT_FAILED)


def load_store(settings: SidecarSettings) -> ChromaStore:
    return ChromaStore(settings.chroma_persist_path)


def _unavailable(exc: Exception) -> None:
    print(f"Store unavailable: {exc}")
    raise SystemExit(1)


def _session_events(store: ChromaStore, event_type: str | None = None):
    types = (event_type,) if event_type else SESSION_EVENT_TYPES
    events = []
    for name in types:
        events.extend(store.search_events(filters={"event_type": name}))
    events.sort(key=lambda event: event.timestamp)
    return events


def cmd_events(args: argparse.Namespace) -> None:
    store = load_store(load_settings(args.config))
    try:
        events = _session_events(store, args.type)
    except ChromaUnavailableError as exc:
        _unavailable(exc)

    if args.limit is not None and args.limit > 0:
        events = events[-args.limit :]

    payload = [
        {
            "event_id": event.id,
            "event_type": event.event_type,
            "session_id": event.session_id,
            "task_id": event.metadata.get("task_id"),
            "exit_code": event.metadata.get("exit_code"),
            "duration_ms": event.metadata.get("duration_ms"),
            "transcript_path": event.metadata.get("transcript_path"),
            "timestamp": event.timestamp.isoformat(),
        }
        for event in events
    ]
    print(json.dumps(payload, indent=2))


def cmd_metrics(args: argparse.Namespace) -> None:
    store = load_store(load_settings(args.config))
    try:
        events = _session_events(store)
        mappings = store.list_task_mappings()
    except ChromaUnavailableError as exc:
        _unavailable(exc)

    type_counts: dict[str, int] = {}
    task_counts: dict[str, int] = {}
    total_duration = 0
    for event in events:
        type_counts[event.event_type] = type_counts.get(event.event_type, 0) + 1
        task_id = event.metadata.get("task_id")
        if task_id:
            task_counts[task_id] = task_counts.get(task_id, 0) + 1
        total_duration += int(event.metadata.get("duration_ms") or 0)

    metrics = {
        "sessions_total": len(events),
        "event_type_counts": type_counts,
        "sessions_by_task": task_counts,
        "untracked_sessions": len(events) - sum(task_counts.values()),
        "mean_duration_ms": total_duration // len(events) if events else 0,
        "task_mappings_total": len(mappings),
    }
    print(json.dumps(metrics, indent=2))


def cmd_mappings(args: argparse.Namespace) -> None:
    store = load_store(load_settings(args.config))
    try:
        mappings = store.list_task_mappings(task_id=args.task_id)
    except ChromaUnavailableError as exc:
        _unavailable(exc)

    payload = [
        {
            "session_id": mapping.session_id,
            "task_id": mapping.task_id,
            "owner_uuid": mapping.owner_uuid,
            "recorded_at": mapping.recorded_at.isoformat() if mapping.recorded_at else None,
        }
        for mapping in mappings
    ]
    print(json.dumps(payload, indent=2))


def cmd_map(args: argparse.Namespace) -> None:
    store = load_store(load_settings(args.config))
    try:
        mapping = TaskRegistry(store).register(args.session_id, args.task_id, args.owner_uuid)
    except ChromaUnavailableError as exc:
        _unavailable(exc)
    print(f"{mapping.session_id} -> {mapping.task_id}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="cc-sidecar diagnostics")
    parser.add_argument("--config", help="Path to a YAML config file", default=None)
    sub = parser.add_subparsers(dest="cmd")

    p_events = sub.add_parser("events", help="List published session events")
    p_events.add_argument("--type", choices=SESSION_EVENT_TYPES, default=None)
    p_events.add_argument(
        "--limit",
        type=int,
        default=None,
        help="If provided, show only the latest N events",
    )
    p_events.set_defaults(func=cmd_events)

    p_metrics = sub.add_parser("metrics", help="Show session event counts")
    p_metrics.set_defaults(func=cmd_metrics)

    p_mappings = sub.add_parser("mappings", help="List session to task mappings")
    p_mappings.add_argument("--task-id")
    p_mappings.set_defaults(func=cmd_mappings)

    p_map = sub.add_parser("map", help="Record which task owns a session")
    p_map.add_argument("session_id")
    p_map.add_argument("task_id")
    p_map.add_argument("--owner-uuid", default="")
    p_map.set_defaults(func=cmd_map)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
