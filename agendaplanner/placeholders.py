"""
Placeholder cache management.

The placeholder_slots collection is a derived index: it always holds exactly
the slots implied by the current schedules, trimesters, groups and holidays.
It is never edited by hand, only rebuilt here.

Both recompute operations swap the old slots for the new ones inside a
single store transaction, so a failed write never leaves a schedule with its
slots deleted but not re-inserted.
"""

from __future__ import annotations

import asyncio
import logging

from agendaplanner.intervals import build_holiday_windows
from agendaplanner.model import Group, Holiday, PlaceholderSlot, Schedule, Trimester
from agendaplanner.recurrence import generate_occurrences
from agendaplanner.storage import DataStore

logger = logging.getLogger(__name__)

PLACEHOLDER_COLLECTION = "placeholder_slots"


async def recompute_for_schedule(store: DataStore, schedule: Schedule) -> int:
    """
    Regenerate the slots of one schedule. Returns the number inserted.

    A schedule whose trimester or group is missing ends up with no slots.
    """
    trimester_raw, group_raw, holidays_raw = await asyncio.gather(
        store.get("trimesters", schedule.trimester_id),
        store.get("groups", schedule.group_id),
        store.get_all("holidays"),
    )

    slots: list[PlaceholderSlot] = []
    if trimester_raw is not None and group_raw is not None:
        windows = build_holiday_windows(Holiday.from_dict(h) for h in holidays_raw)
        slots = generate_occurrences(
            schedule,
            Trimester.from_dict(trimester_raw),
            Group.from_dict(group_raw),
            windows,
        )
    else:
        logger.debug(
            "Schedule %s references a missing trimester (%s) or group (%s)",
            schedule.id,
            schedule.trimester_id,
            schedule.group_id,
        )

    async with store.transaction(PLACEHOLDER_COLLECTION):
        await store.delete_where(PLACEHOLDER_COLLECTION, lambda row: row.get("schedule_id") == schedule.id)
        if slots:
            await store.bulk_put(PLACEHOLDER_COLLECTION, [s.to_dict() for s in slots])

    logger.info("Recomputed %d placeholder slots for schedule %s", len(slots), schedule.id)
    return len(slots)


async def recompute_schedule_by_id(store: DataStore, schedule_id: str) -> int:
    """
    Recompute by id. A schedule that no longer exists just loses its slots.
    """
    raw = await store.get("schedules", schedule_id)
    if raw is None:
        return await recompute_for_schedule(store, Schedule(id=schedule_id, group_id="", trimester_id=""))
    return await recompute_for_schedule(store, Schedule.from_dict(raw))


async def recompute_all(store: DataStore) -> int:
    """
    Rebuild the whole placeholder collection. Returns the number inserted.
    """
    schedules_raw, trimesters_raw, groups_raw, holidays_raw = await asyncio.gather(
        store.get_all("schedules"),
        store.get_all("trimesters"),
        store.get_all("groups"),
        store.get_all("holidays"),
    )

    trimester_by_id = {t.id: t for t in (Trimester.from_dict(x) for x in trimesters_raw)}
    group_by_id = {g.id: g for g in (Group.from_dict(x) for x in groups_raw)}
    windows = build_holiday_windows(Holiday.from_dict(h) for h in holidays_raw)

    all_slots: list[PlaceholderSlot] = []
    skipped = 0
    for raw in schedules_raw:
        schedule = Schedule.from_dict(raw)
        trimester = trimester_by_id.get(schedule.trimester_id)
        group = group_by_id.get(schedule.group_id)
        if trimester is None or group is None:
            skipped += 1
            continue
        all_slots.extend(generate_occurrences(schedule, trimester, group, windows))

    async with store.transaction(PLACEHOLDER_COLLECTION):
        await store.clear(PLACEHOLDER_COLLECTION)
        if all_slots:
            await store.bulk_put(PLACEHOLDER_COLLECTION, [s.to_dict() for s in all_slots])

    if skipped:
        logger.debug("Skipped %d schedules with dangling references", skipped)
    logger.info("Rebuilt placeholder cache: %d slots from %d schedules", len(all_slots), len(schedules_raw))
    return len(all_slots)


async def delete_schedule(store: DataStore, schedule_id: str) -> None:
    """
    Remove a schedule together with its cached slots.
    """
    async with store.transaction("schedules", PLACEHOLDER_COLLECTION):
        await store.delete("schedules", schedule_id)
        await store.delete_where(PLACEHOLDER_COLLECTION, lambda row: row.get("schedule_id") == schedule_id)
