"""CLI entry point."""

from __future__ import annotations

import argparse
import asyncio
import uuid
from pathlib import Path
from typing import Awaitable, Callable, Sequence, TypeVar

from rich.console import Console
from rich.rule import Rule
from rich.table import Table

from phasegate.config import DEFAULT_SETTINGS_PATH, load_settings
from phasegate.demo import seed_demo
from phasegate.exceptions import PhaseGateError, StoreUnavailableError
from phasegate.models import Collection, EngineSettings, Phase, StoreConfig, TransitionTrace
from phasegate.orchestration import PhaseGateEngine, ReadinessEntry, next_phases, path_between
from phasegate.store.database import open_record_store
from phasegate.store.repositories import SqliteRecordStore
from phasegate.utils.logging_config import LogLevel, get_logger, setup_logging
from phasegate.utils.structured_log import (
    AUDIT_FILE_NAME,
    bind_request,
    configure_audit_logging,
    load_audit_events,
    reset_audit_logging,
)

logger = get_logger(__name__)

T = TypeVar("T")

PHASE_CHOICES = [phase.value for phase in Phase]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="phasegate", description="Phase-gate lifecycle engine")
    parser.add_argument("--settings", default=DEFAULT_SETTINGS_PATH)
    parser.add_argument("--db", help="SQLite database path (overrides store.db_path)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug-level console logging")
    parser.add_argument("--debug", "-d", action="store_true", help="Verbose plus logger names and line numbers")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("seed-demo", help="Load the demo project into the database")

    nxt = sub.add_parser("next", help="List legal successor phases")
    nxt.add_argument("phase", choices=PHASE_CHOICES)

    path = sub.add_parser("path", help="Show the forward path between two phases")
    path.add_argument("start", choices=PHASE_CHOICES)
    path.add_argument("end", choices=PHASE_CHOICES)

    evaluate = sub.add_parser("evaluate", help="Evaluate a transition without applying it")
    evaluate.add_argument("work_package_id")
    evaluate.add_argument("--target", choices=PHASE_CHOICES, help="Target phase (default: next phase)")

    advance = sub.add_parser("advance", help="Evaluate and apply a transition")
    advance.add_argument("work_package_id")
    advance.add_argument("--target", choices=PHASE_CHOICES, help="Target phase (default: next phase)")
    advance.add_argument("--actor", required=True, help="Who is requesting the phase change")

    board = sub.add_parser("board", help="Next-transition readiness for every open work package")
    board.add_argument("project_id")

    history = sub.add_parser("history", help="Recorded transition traces for a work package")
    history.add_argument("work_package_id")
    history.add_argument(
        "--audit", action="store_true", help="Read the JSON-lines audit log instead of the database"
    )

    return parser


def _load_settings(args: argparse.Namespace) -> EngineSettings:
    settings = load_settings(args.settings)
    if args.db:
        settings = settings.model_copy(update={"store": StoreConfig(db_path=args.db)})
    if args.debug:
        level = LogLevel.FULL
    elif args.verbose:
        level = LogLevel.DETAILED
    else:
        level = LogLevel(settings.logging.level)
    setup_logging(level=level, log_file=settings.logging.log_file, debug=args.debug)
    if settings.logging.audit_log_dir:
        configure_audit_logging(settings.logging.audit_log_dir)
    return settings


async def _with_store(
    settings: EngineSettings,
    action: Callable[[PhaseGateEngine, SqliteRecordStore], Awaitable[T]],
) -> T:
    async with open_record_store(settings.store.db_path) as store:
        engine = PhaseGateEngine(store, settings, recorder=store)
        return await action(engine, store)


def _print_trace(console: Console, trace: TransitionTrace) -> None:
    status = "[green]PASS[/]" if trace.overall_pass else "[red]BLOCKED[/]"
    console.print(
        f"{trace.work_package_id}: {trace.from_phase.value} -> {trace.to_phase.value} {status}"
    )
    if not trace.blocking_reasons:
        return
    table = Table(title="Blocking reasons")
    table.add_column("#", style="dim", no_wrap=True)
    table.add_column("Reason", style="white")
    table.add_column("Required action", style="cyan")
    for index, (reason, action) in enumerate(zip(trace.blocking_reasons, trace.required_actions), 1):
        table.add_row(str(index), reason, action)
    console.print(table)


def _print_board(console: Console, project_id: str, entries: Sequence[ReadinessEntry]) -> None:
    table = Table(title=f"Readiness board: {project_id}")
    table.add_column("Work package", style="cyan", no_wrap=True)
    table.add_column("Phase", style="white")
    table.add_column("Next", style="white")
    table.add_column("Status", no_wrap=True)
    table.add_column("Blocking", style="white")
    for entry in entries:
        wp = entry.work_package
        if entry.error:
            table.add_row(wp.id, wp.phase.value, "", "[yellow]ERROR[/]", entry.error)
            continue
        trace = entry.trace
        status = "[green]READY[/]" if entry.ready else "[red]BLOCKED[/]"
        table.add_row(
            wp.id,
            wp.phase.value,
            trace.to_phase.value if trace else "",
            status,
            "; ".join(trace.blocking_reasons) if trace else "",
        )
    console.print(table)


def _resolve_target(engine: PhaseGateEngine, phase: Phase, target: str | None) -> Phase:
    if target:
        return Phase(target)
    successors = engine.next_phases(phase)
    if not successors:
        raise PhaseGateError(f"No transitions are allowed from {phase.value}")
    return successors[0]


async def _run_evaluate(console: Console, settings: EngineSettings, wp_id: str, target: str | None) -> int:
    async def action(engine: PhaseGateEngine, store: SqliteRecordStore) -> int:
        wp = await store.get(Collection.WORK_PACKAGE, wp_id)
        trace = await engine.evaluate(wp, _resolve_target(engine, wp.phase, target))
        _print_trace(console, trace)
        return 0

    return await _with_store(settings, action)


async def _run_advance(
    console: Console, settings: EngineSettings, wp_id: str, target: str | None, actor: str
) -> int:
    async def action(engine: PhaseGateEngine, store: SqliteRecordStore) -> int:
        bind_request(uuid.uuid4().hex[:12], actor=actor)
        wp = await store.get(Collection.WORK_PACKAGE, wp_id)
        outcome = await engine.execute(
            wp, _resolve_target(engine, wp.phase, target), writer=store.writer(actor)
        )
        _print_trace(console, outcome.trace)
        if not outcome.advanced:
            return 1
        console.print(
            f"[green]Advanced:[/] {wp_id} is now in {outcome.work_package.phase.value} "
            f"(version {outcome.work_package.version})"
        )
        return 0

    return await _with_store(settings, action)


async def _run_board(console: Console, settings: EngineSettings, project_id: str) -> int:
    async def action(engine: PhaseGateEngine, store: SqliteRecordStore) -> int:
        entries = await engine.readiness_board(project_id)
        if not entries:
            console.print(f"[dim]No open work packages for project {project_id}.[/]")
            return 0
        _print_board(console, project_id, entries)
        return 0

    return await _with_store(settings, action)


def _print_audit_history(console: Console, settings: EngineSettings, wp_id: str) -> int:
    if not settings.logging.audit_log_dir:
        console.print("[red]Error:[/] No audit log configured (logging.audit_log_dir)")
        return 1
    audit_path = Path(settings.logging.audit_log_dir) / AUDIT_FILE_NAME
    events = load_audit_events(str(audit_path), work_package_id=wp_id)
    if not events:
        console.print(f"[dim]No audit events for {wp_id}.[/]")
        return 0
    table = Table(title=f"Audit log: {wp_id}")
    table.add_column("Timestamp", style="dim", no_wrap=True)
    table.add_column("Action", style="white", no_wrap=True)
    table.add_column("Edge", style="cyan", no_wrap=True)
    table.add_column("Result", no_wrap=True)
    table.add_column("Actor", style="white")
    for event in events:
        if event.get("event") == "evaluation_error":
            result = f"[yellow]{event.get('error_type', 'ERROR')}[/]"
        else:
            result = "[green]PASS[/]" if event.get("overall_pass") else "[red]BLOCKED[/]"
        table.add_row(
            str(event.get("timestamp", ""))[:19],
            str(event.get("action", "error")),
            f"{event.get('from_phase', '?')} -> {event.get('to_phase', '?')}",
            result,
            str(event.get("actor") or ""),
        )
    console.print(table)
    return 0


async def _run_history(console: Console, settings: EngineSettings, wp_id: str, from_audit: bool) -> int:
    if from_audit:
        return _print_audit_history(console, settings, wp_id)

    async def action(engine: PhaseGateEngine, store: SqliteRecordStore) -> int:
        try:
            traces = await store.get_transition_traces(wp_id)
        except StoreUnavailableError as e:
            logger.warning(f"Transition table unreadable, falling back to the audit log: {e}")
            return _print_audit_history(console, settings, wp_id)
        if not traces:
            console.print(f"[dim]No recorded transitions for {wp_id}.[/]")
            return 0
        table = Table(title=f"Transition history: {wp_id}")
        table.add_column("Timestamp", style="dim", no_wrap=True)
        table.add_column("Edge", style="cyan", no_wrap=True)
        table.add_column("Result", no_wrap=True)
        table.add_column("Reasons", style="white")
        for trace in traces:
            table.add_row(
                trace.timestamp.isoformat(timespec="seconds"),
                f"{trace.from_phase.value} -> {trace.to_phase.value}",
                "[green]PASS[/]" if trace.overall_pass else "[red]BLOCKED[/]",
                str(len(trace.blocking_reasons)),
            )
        console.print(table)
        return 0

    return await _with_store(settings, action)


async def _run_seed(console: Console, settings: EngineSettings) -> int:
    async def action(engine: PhaseGateEngine, store: SqliteRecordStore) -> int:
        count = await seed_demo(store)
        console.print(f"[green]Seeded {count} records[/] into {settings.store.db_path}")
        return 0

    return await _with_store(settings, action)


def main(argv: Sequence[str] | None = None) -> int:
    console = Console()
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "next":
        successors = next_phases(Phase(args.phase))
        if successors:
            console.print(", ".join(phase.value for phase in successors))
        else:
            console.print(f"[dim]{args.phase} is terminal[/]")
        return 0

    if args.command == "path":
        try:
            path = path_between(Phase(args.start), Phase(args.end))
        except PhaseGateError as e:
            console.print(f"[red]Error:[/] {e}")
            return 1
        if path is None:
            console.print(f"[red]Unreachable:[/] {args.end} cannot be reached from {args.start}")
            return 1
        console.print(" -> ".join([args.start] + [phase.value for phase in path]))
        return 0

    try:
        settings = _load_settings(args)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error:[/] {e}")
        return 1

    console.print(Rule(f"[bold cyan]phasegate {args.command}[/bold cyan]", style="cyan"))
    try:
        if args.command == "seed-demo":
            return asyncio.run(_run_seed(console, settings))
        if args.command == "evaluate":
            return asyncio.run(_run_evaluate(console, settings, args.work_package_id, args.target))
        if args.command == "advance":
            return asyncio.run(
                _run_advance(console, settings, args.work_package_id, args.target, args.actor)
            )
        if args.command == "board":
            return asyncio.run(_run_board(console, settings, args.project_id))
        if args.command == "history":
            return asyncio.run(
                _run_history(console, settings, args.work_package_id, args.audit)
            )
    except PhaseGateError as e:
        console.print(f"[red]Error:[/] {type(e).__name__}: {e}")
        return 1
    finally:
        reset_audit_logging()

    console.print(f"Unknown command '{args.command}'")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
