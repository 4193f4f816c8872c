from __future__ import annotations

from typing import Collection, Iterable

from lesson_mentor.schemas import Checkpoint


def build_schedule(checkpoints: Iterable[Checkpoint], completed_ids: Collection[str] = ()) -> tuple[Checkpoint, ...]:
    """
    Not-yet-completed checkpoints in the order they should fire.

    Sorted ascending by timeSeconds; ties keep input order. A repeated id keeps its
    first occurrence.
    """
    seen: set[str] = set()
    pending: list[Checkpoint] = []
    for cp in checkpoints:
        if cp.id in seen or cp.id in completed_ids:
            continue
        seen.add(cp.id)
        pending.append(cp)
    return tuple(sorted(pending, key=lambda cp: cp.timeSeconds))


def next_checkpoint(schedule: Iterable[Checkpoint], triggered: Collection[str]) -> Checkpoint | None:
    for cp in schedule:
        if cp.id not in triggered:
            return cp
    return None
