from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import cached_property

from timetable_engine.schemas.config import (
    DAY_ORDER,
    format_window,
    normalize_day,
    parse_time_to_minutes,
    parse_window,
)

logger = logging.getLogger(__name__)

DEFAULT_WORKING_DAYS: tuple[str, ...] = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday")
DEFAULT_START_TIME = "09:00"
DEFAULT_END_TIME = "17:00"
DEFAULT_LUNCH_TIME = "13:00 - 14:00"
DEFAULT_SLOT_MINUTES = 60


@dataclass(frozen=True)
class SlotSegment:
    start: int
    end: int

    @property
    def label(self) -> str:
        return format_window(self.start, self.end)


@dataclass(frozen=True)
class TimeGrid:
    days: tuple[str, ...]
    teaching_slots: tuple[SlotSegment, ...]
    lunch: SlotSegment | None
    slot_minutes: int = DEFAULT_SLOT_MINUTES

    @cached_property
    def slot_labels(self) -> tuple[str, ...]:
        return tuple(segment.label for segment in self.teaching_slots)

    @cached_property
    def lunch_slot(self) -> str | None:
        return self.lunch.label if self.lunch is not None else None

    @cached_property
    def _slot_positions(self) -> dict[str, int]:
        return {label: index for index, label in enumerate(self.slot_labels)}

    @cached_property
    def _day_positions(self) -> dict[str, int]:
        return {day: index for index, day in enumerate(self.days)}

    @cached_property
    def chronological_slots(self) -> tuple[str, ...]:
        """Teaching slots and the lunch slot in time order, used to order output."""
        segments = list(self.teaching_slots)
        if self.lunch is not None:
            segments.append(self.lunch)
        return tuple(segment.label for segment in sorted(segments, key=lambda item: item.start))

    @property
    def available_slot_count(self) -> int:
        return len(self.days) * len(self.teaching_slots)

    def slot_index(self, label: str) -> int:
        return self._slot_positions[label]

    def day_index(self, day: str) -> int:
        return self._day_positions[day]

    def is_teaching_slot(self, label: str) -> bool:
        return label in self._slot_positions

    def sort_key(self, day: str, label: str) -> tuple[int, int]:
        order = self.chronological_slots
        slot_rank = order.index(label) if label in order else len(order)
        return self._day_positions.get(day, len(self.days)), slot_rank

    def span_slots(self, label: str, count: int) -> tuple[str, ...] | None:
        """Return ``count`` back-to-back teaching slots starting at ``label``.

        Two slots are back-to-back only when one ends exactly where the next
        starts, so a span can never straddle the lunch window or a truncated end
        of day.
        """
        position = self._slot_positions.get(label)
        if position is None or count < 1:
            return None
        if position + count > len(self.teaching_slots):
            return None
        segments = self.teaching_slots[position : position + count]
        for previous, current in zip(segments, segments[1:]):
            if previous.end != current.start:
                return None
        return tuple(segment.label for segment in segments)


def order_working_days(days: list[str] | tuple[str, ...]) -> tuple[str, ...]:
    wanted: set[str] = set()
    for raw in days:
        day = normalize_day(raw)
        if day not in DAY_ORDER:
            logger.warning("Ignoring unknown working day %r", raw)
            continue
        wanted.add(day)
    return tuple(day for day in DAY_ORDER if day in wanted)


def default_time_grid() -> TimeGrid:
    lunch_start, lunch_end = parse_window(DEFAULT_LUNCH_TIME)
    start = parse_time_to_minutes(DEFAULT_START_TIME)
    end = parse_time_to_minutes(DEFAULT_END_TIME)
    slots = tuple(
        SlotSegment(cursor, cursor + DEFAULT_SLOT_MINUTES)
        for cursor in range(start, end, DEFAULT_SLOT_MINUTES)
        if not (cursor < lunch_end and cursor + DEFAULT_SLOT_MINUTES > lunch_start)
    )
    return TimeGrid(
        days=DEFAULT_WORKING_DAYS,
        teaching_slots=slots,
        lunch=SlotSegment(lunch_start, lunch_end),
        slot_minutes=DEFAULT_SLOT_MINUTES,
    )


def build_time_grid(
    *,
    working_days: list[str] | tuple[str, ...],
    start_time: str,
    end_time: str,
    lunch_time: str | None,
    max_classes_per_day: int,
    slot_minutes: int = DEFAULT_SLOT_MINUTES,
) -> TimeGrid:
    days = order_working_days(working_days)
    if not days:
        logger.warning("No usable working days configured; using %s", ", ".join(DEFAULT_WORKING_DAYS))
        days = DEFAULT_WORKING_DAYS

    try:
        day_start = parse_time_to_minutes(start_time)
        day_end = parse_time_to_minutes(end_time)
        lunch = SlotSegment(*parse_window(lunch_time)) if lunch_time else None
    except ValueError as exc:
        logger.warning("Unreadable teaching hours (%s); using the default grid", exc)
        return _with_days(default_time_grid(), days)

    slots: list[SlotSegment] = []
    cursor = day_start
    while cursor + slot_minutes <= day_end and len(slots) < max_classes_per_day:
        end = cursor + slot_minutes
        if lunch is not None and cursor < lunch.end and end > lunch.start:
            # Jump to the lunch end instead of scanning minute by minute.
            cursor = max(cursor + 1, lunch.end)
            continue
        slots.append(SlotSegment(start=cursor, end=end))
        cursor = end

    if not slots:
        logger.warning(
            "Teaching window %s-%s with lunch %s yields no slots; using the default grid",
            start_time,
            end_time,
            lunch_time,
        )
        return _with_days(default_time_grid(), days)

    return TimeGrid(days=days, teaching_slots=tuple(slots), lunch=lunch, slot_minutes=slot_minutes)


def _with_days(grid: TimeGrid, days: tuple[str, ...]) -> TimeGrid:
    return TimeGrid(days=days, teaching_slots=grid.teaching_slots, lunch=grid.lunch, slot_minutes=grid.slot_minutes)
