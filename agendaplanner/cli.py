"""
CLI (Command Line Interface).

This module provides terminal commands around the recurrence engine, e.g.:

    agendaplanner seed
    agendaplanner recompute [--schedule <id>]
    agendaplanner project 2025-09-01 2025-09-08
    agendaplanner calendar 2025-09-01 2025-10-01 --group group_5a
    agendaplanner sessions <schedule_id>
    agendaplanner add-session <schedule_id> <day> <start> <end>
    agendaplanner remove-session <schedule_id> <index>
    agendaplanner create-schedule <group_id> <trimester_id> [--id <id>]
    agendaplanner delete-schedule <schedule_id>

Global options: --store <planner.json> and --verbose.

Store failures are reported as a retryable message with exit code 1.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import uuid
from datetime import date
from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from agendaplanner.calendar_view import CalendarFilters, CalendarRangeLoader
from agendaplanner.conflicts import day_name, sort_sessions, total_weekly_minutes, validate_session
from agendaplanner.model import Group, Holiday, Schedule, ScheduleSession, Trimester
from agendaplanner.placeholders import (
    PLACEHOLDER_COLLECTION,
    delete_schedule,
    recompute_all,
    recompute_for_schedule,
    recompute_schedule_by_id,
)
from agendaplanner.recurrence import normalize_range, project_range
from agendaplanner.seed import ensure_sample_data
from agendaplanner.storage import DataStore, StoreError, default_store_path

logger = logging.getLogger(__name__)

console = Console()


def _parse_date(text: str) -> date:
    try:
        return date.fromisoformat(text.strip())
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date (expected YYYY-MM-DD): {text!r}")


def _format_minutes(minutes: int) -> str:
    if minutes <= 0:
        return "0h"
    hours, rest = divmod(minutes, 60)
    return f"{hours}h {rest:02d}m" if rest else f"{hours}h"


def _open_store(args: argparse.Namespace) -> DataStore:
    path = Path(args.store) if args.store else default_store_path()
    return DataStore(path)


async def _cmd_seed(args: argparse.Namespace) -> int:
    store = _open_store(args)
    inserted = await ensure_sample_data(store)
    if not inserted:
        console.print("Sample data already present.")
        return 0
    n = await recompute_all(store)
    console.print(f"Sample data inserted ({n} placeholder slots generated).")
    return 0


async def _cmd_recompute(args: argparse.Namespace) -> int:
    store = _open_store(args)
    if args.schedule:
        n = await recompute_schedule_by_id(store, args.schedule.strip())
        console.print(f"Schedule {args.schedule}: {n} placeholder slots.")
    else:
        n = await recompute_all(store)
        console.print(f"Rebuilt placeholder cache: {n} slots.")
    return 0


async def _cmd_project(args: argparse.Namespace) -> int:
    store = _open_store(args)
    schedules_raw, trimesters_raw, groups_raw, holidays_raw = await asyncio.gather(
        store.get_all("schedules"),
        store.get_all("trimesters"),
        store.get_all("groups"),
        store.get_all("holidays"),
    )
    groups = [Group.from_dict(g) for g in groups_raw]
    slots = project_range(
        [Schedule.from_dict(s) for s in schedules_raw],
        [Trimester.from_dict(t) for t in trimesters_raw],
        groups,
        [Holiday.from_dict(h) for h in holidays_raw],
        args.start,
        args.end,
    )

    if not slots:
        console.print("No expected sessions in this range.")
        return 0

    name_by_id = {g.id: g.display_name for g in groups}
    table = Table(title="Expected sessions", box=box.SIMPLE_HEAVY)
    table.add_column("Date")
    table.add_column("Day")
    table.add_column("Time")
    table.add_column("Group")
    table.add_column("Schedule", style="dim")
    for slot in sorted(slots, key=lambda s: (s.date, s.start_time, s.group_id)):
        table.add_row(
            slot.date,
            day_name(slot.day_of_week)[:3],
            f"{slot.start_time}-{slot.end_time}",
            name_by_id.get(slot.group_id, slot.group_id),
            slot.schedule_id,
        )
    console.print(table)
    return 0


async def _cmd_calendar(args: argparse.Namespace) -> int:
    store = _open_store(args)
    loader = CalendarRangeLoader(store)
    await loader.on_visible_range_changed(args.start, args.end)
    if loader.error:
        console.print(f"[red]{loader.error}[/red]")
        return 1

    groups = [Group.from_dict(g) for g in await store.get_all("groups")]
    filters = CalendarFilters(
        trimester_id=args.trimester,
        group_id=args.group,
        level_id=args.level,
        statuses=frozenset(args.status or ()),
    )
    # the loader fetched a padded range; show only the requested window
    start, last = normalize_range(args.start, args.end)
    visible = [ev for ev in loader.events(groups, filters) if start.isoformat() <= ev.date <= last.isoformat()]

    if not visible:
        console.print("No events in this range.")
        return 0

    table = Table(title=f"Calendar {start.isoformat()} .. {last.isoformat()}", box=box.SIMPLE_HEAVY)
    table.add_column("Date")
    table.add_column("Time")
    table.add_column("Group")
    table.add_column("Kind")
    table.add_column("Status")
    for ev in sorted(visible, key=lambda e: (e.date, e.start_time, e.group_id)):
        kind = "[dim]slot[/dim]" if ev.is_placeholder else "lesson"
        table.add_row(ev.date, f"{ev.start_time}-{ev.end_time}", ev.title, kind, ev.status_label or "")
    console.print(table)
    return 0


async def _cmd_sessions(args: argparse.Namespace) -> int:
    store = _open_store(args)
    raw = await store.get("schedules", args.schedule_id.strip())
    if raw is None:
        console.print(f"Unknown schedule: {args.schedule_id}")
        return 1

    schedule = Schedule.from_dict(raw)
    table = Table(title=f"Schedule {schedule.id}", box=box.SIMPLE_HEAVY)
    table.add_column("#", style="dim")
    table.add_column("Day")
    table.add_column("Start")
    table.add_column("End")
    for i, s in enumerate(sort_sessions(schedule.sessions), start=1):
        table.add_row(str(i), day_name(s.day_of_week), s.start_time, s.end_time)
    console.print(table)
    console.print(f"Weekly total: {_format_minutes(total_weekly_minutes(schedule.sessions))}")
    return 0


async def _cmd_add_session(args: argparse.Namespace) -> int:
    store = _open_store(args)
    async with store.transaction("schedules", PLACEHOLDER_COLLECTION):
        raw = await store.get("schedules", args.schedule_id.strip())
        if raw is None:
            console.print(f"Unknown schedule: {args.schedule_id}")
            return 1

        schedule = Schedule.from_dict(raw)
        candidate = ScheduleSession(day_of_week=args.day, start_time=args.start.strip(), end_time=args.end.strip())

        problem = validate_session(schedule.sessions, candidate)
        if problem:
            console.print(f"[red]{problem}[/red]")
            return 1

        schedule.sessions = sort_sessions([*schedule.sessions, candidate])
        await store.put("schedules", schedule.to_dict())
        n = await recompute_for_schedule(store, schedule)

    console.print(f"{day_name(candidate.day_of_week)} session added ({n} placeholder slots).")
    return 0


async def _cmd_remove_session(args: argparse.Namespace) -> int:
    store = _open_store(args)
    async with store.transaction("schedules", PLACEHOLDER_COLLECTION):
        raw = await store.get("schedules", args.schedule_id.strip())
        if raw is None:
            console.print(f"Unknown schedule: {args.schedule_id}")
            return 1

        schedule = Schedule.from_dict(raw)
        # numbering follows the `sessions` table
        sessions = sort_sessions(schedule.sessions)
        if not 1 <= args.index <= len(sessions):
            console.print(f"[red]No session #{args.index} in schedule {schedule.id}.[/red]")
            return 1

        removed = sessions.pop(args.index - 1)
        schedule.sessions = sessions
        await store.put("schedules", schedule.to_dict())
        n = await recompute_for_schedule(store, schedule)

    console.print(f"{day_name(removed.day_of_week)} {removed.start_time}-{removed.end_time} session removed ({n} placeholder slots).")
    return 0


async def _cmd_create_schedule(args: argparse.Namespace) -> int:
    store = _open_store(args)
    group_id = args.group_id.strip()
    trimester_id = args.trimester_id.strip()
    schedule_id = (args.id or "").strip() or str(uuid.uuid4())

    async with store.transaction("schedules", PLACEHOLDER_COLLECTION):
        group, trimester = await asyncio.gather(store.get("groups", group_id), store.get("trimesters", trimester_id))
        if group is None:
            console.print(f"Unknown group: {group_id}")
            return 1
        if trimester is None:
            console.print(f"Unknown trimester: {trimester_id}")
            return 1

        existing = [Schedule.from_dict(s) for s in await store.get_all("schedules")]
        if any(s.id == schedule_id for s in existing):
            console.print(f"[red]Schedule {schedule_id} already exists.[/red]")
            return 1
        # one weekly template per group and trimester
        for s in existing:
            if s.group_id == group_id and s.trimester_id == trimester_id:
                console.print(f"[red]Group {group_id} already has schedule {s.id} for {trimester_id}.[/red]")
                return 1

        schedule = Schedule(id=schedule_id, group_id=group_id, trimester_id=trimester_id)
        await store.put("schedules", schedule.to_dict())
        await recompute_for_schedule(store, schedule)

    console.print(f"Schedule {schedule_id} created.")
    return 0


async def _cmd_delete_schedule(args: argparse.Namespace) -> int:
    store = _open_store(args)
    schedule_id = args.schedule_id.strip()
    async with store.transaction("schedules", PLACEHOLDER_COLLECTION):
        if await store.get("schedules", schedule_id) is None:
            console.print(f"Unknown schedule: {schedule_id}")
            return 1
        await delete_schedule(store, schedule_id)

    console.print(f"Schedule {schedule_id} deleted with its placeholder slots.")
    return 0


COMMANDS: dict[str, Any] = {
    "seed": _cmd_seed,
    "recompute": _cmd_recompute,
    "project": _cmd_project,
    "calendar": _cmd_calendar,
    "sessions": _cmd_sessions,
    "add-session": _cmd_add_session,
    "remove-session": _cmd_remove_session,
    "create-schedule": _cmd_create_schedule,
    "delete-schedule": _cmd_delete_schedule,
}


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argparse CLI parser with sub-commands.
    """
    parser = argparse.ArgumentParser(prog="agendaplanner", description="Agenda planner CLI")
    parser.add_argument("--store", type=str, default=None, help="Path to planner.json")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("seed", help="Insert sample data (if empty) and build placeholders")

    p_recompute = sub.add_parser("recompute", help="Rebuild placeholder slots")
    p_recompute.add_argument("--schedule", type=str, default=None, help="Only this schedule id")

    p_project = sub.add_parser("project", help="Preview expected sessions (end exclusive)")
    p_project.add_argument("start", type=_parse_date, help="Start date (YYYY-MM-DD)")
    p_project.add_argument("end", type=_parse_date, help="End date, exclusive (YYYY-MM-DD)")

    p_calendar = sub.add_parser("calendar", help="Lessons and placeholder slots for a window (end exclusive)")
    p_calendar.add_argument("start", type=_parse_date, help="Start date (YYYY-MM-DD)")
    p_calendar.add_argument("end", type=_parse_date, help="End date, exclusive (YYYY-MM-DD)")
    p_calendar.add_argument("--trimester", type=str, default=None)
    p_calendar.add_argument("--group", type=str, default=None)
    p_calendar.add_argument("--level", type=str, default=None)
    p_calendar.add_argument("--status", type=str, action="append", help="Lesson status (repeatable)")

    p_sessions = sub.add_parser("sessions", help="Show the weekly sessions of a schedule")
    p_sessions.add_argument("schedule_id", type=str)

    p_add = sub.add_parser("add-session", help="Add a weekly session to a schedule")
    p_add.add_argument("schedule_id", type=str)
    p_add.add_argument("day", type=int, help="Day of week (1=Monday .. 7=Sunday)")
    p_add.add_argument("start", type=str, help="Start time HH:MM")
    p_add.add_argument("end", type=str, help="End time HH:MM")

    p_remove = sub.add_parser("remove-session", help="Remove a weekly session from a schedule")
    p_remove.add_argument("schedule_id", type=str)
    p_remove.add_argument("index", type=int, help="Session number as listed by `sessions`")

    p_create = sub.add_parser("create-schedule", help="Create an empty schedule for a group and trimester")
    p_create.add_argument("group_id", type=str)
    p_create.add_argument("trimester_id", type=str)
    p_create.add_argument("--id", type=str, default=None, help="Schedule id (generated when omitted)")

    p_delete = sub.add_parser("delete-schedule", help="Delete a schedule and its placeholder slots")
    p_delete.add_argument("schedule_id", type=str)

    return parser


def main(argv: list[str] | None = None) -> None:
    """
    CLI entry point. Parses args, dispatches to command handlers,
    and exits via SystemExit with a return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    handler = COMMANDS.get(args.command)
    if handler is None:
        raise SystemExit(2)

    try:
        code = asyncio.run(handler(args))
    except StoreError as exc:
        logger.error("Store operation failed: %s", exc)
        console.print("[red]Could not access the planner store. Please try again.[/red]")
        raise SystemExit(1)

    raise SystemExit(code)
