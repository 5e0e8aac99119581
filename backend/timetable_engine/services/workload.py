from __future__ import annotations

from collections import Counter
from typing import Callable, Iterable

DEFAULT_DAILY_CEILING = 6
DEFAULT_WEEKLY_CEILING = 25

DEFAULT_FACULTY_POOL: tuple[str, ...] = (
    "Dr. Smith",
    "Prof. Johnson",
    "Dr. Brown",
    "Prof. Davis",
    "Dr. Wilson",
    "Prof. Anderson",
    "Dr. Taylor",
    "Prof. Martinez",
    "Dr. Garcia",
    "Prof. Rodriguez",
)


def constrained_ceiling(requested: int | None, cap: int) -> int:
    if requested is None:
        return cap
    if requested < 1:
        return 1
    return min(requested, cap)


def has_capacity(current: int, added: int, ceiling: int) -> bool:
    return current + added <= ceiling


def rank_faculty(
    pool: Iterable[str],
    *,
    load_of: Callable[[str], int],
    weekly_ceiling: int = DEFAULT_WEEKLY_CEILING,
    sticky: str | None = None,
) -> list[str]:
    """Order substitute faculty: the sticky one first, then lightest load, then roster order.

    Members already at the weekly ceiling are left out.
    """
    roster = list(dict.fromkeys(pool))
    position = {name: index for index, name in enumerate(roster)}
    available = [name for name in roster if load_of(name) < weekly_ceiling]
    return sorted(
        available,
        key=lambda name: (0 if name == sticky else 1, load_of(name), position[name]),
    )


def declared_faculty_demand(demands: Iterable[tuple[str | None, int]]) -> Counter[str]:
    """Sum slot demand per declared faculty from ``(faculty, slots)`` pairs."""
    totals: Counter[str] = Counter()
    for faculty, slots in demands:
        if faculty:
            totals[faculty] += slots
    return totals
