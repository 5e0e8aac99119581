from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timezone
from time import perf_counter

from timetable_engine.core.exceptions import GenerationTimeoutError
from timetable_engine.schemas.config import TimetableConfig
from timetable_engine.schemas.generator import SLOT_POLICIES, GenerationSettings
from timetable_engine.schemas.timetable import (
    BatchTimetableResult,
    GeneratedTimetable,
    MultiBatchResult,
    TimeSlotEntry,
)
from timetable_engine.services.assignments import Schedule
from timetable_engine.services.config_normalizer import NormalizedConfig, normalize_config
from timetable_engine.services.conflict_service import ConflictValidator
from timetable_engine.services.constraints import build_constraint_set
from timetable_engine.services.coordinator import BatchOutcome, CoordinatorOutcome, MultiBatchCoordinator
from timetable_engine.services.gap_filler import GapFillingOptimizer
from timetable_engine.services.metrics import MetricsCalculator
from timetable_engine.services.placement import Deadline
from timetable_engine.services.time_grid import TimeGrid, build_time_grid

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "No conflict-free solution found"
FALLBACK_MESSAGE = "Best-effort timetable: conflicts could not all be avoided, review the conflict report"


class TimetableEngine:
    """Runs normalise, grid, solve, gap fill, validate and score for one request."""

    def __init__(self, settings: GenerationSettings | None = None) -> None:
        self.settings = settings or GenerationSettings()
        self.metrics = MetricsCalculator(self.settings.metrics)

    def generate(self, config: TimetableConfig) -> MultiBatchResult:
        started = perf_counter()
        deadline = Deadline.start(self.settings.timeout_seconds)
        result = self._run(config, self.settings, deadline, started)
        if result.status == "timeout" or self.settings.options_per_batch < 2:
            return result

        alternatives = [policy for policy in SLOT_POLICIES if policy != self.settings.slot_policy]
        extra: dict[str, list[GeneratedTimetable]] = {}
        for policy in alternatives[: self.settings.options_per_batch - 1]:
            variant = self.settings.model_copy(update={"slot_policy": policy, "options_per_batch": 1})
            option = self._run(config, variant, deadline, started)
            if option.status == "timeout":
                logger.warning("Option %s dropped: generation deadline reached", policy)
                break
            for batch in option.batches:
                extra.setdefault(batch.batch_id, []).extend(batch.timetables)

        for batch in result.batches:
            ranked = sorted(extra.get(batch.batch_id, []), key=lambda item: -item.score)
            batch.timetables.extend(ranked)
        result.runtime_ms = int((perf_counter() - started) * 1000)
        return result

    def _run(
        self,
        config: TimetableConfig,
        settings: GenerationSettings,
        deadline: Deadline,
        started: float,
    ) -> MultiBatchResult:
        normalized = normalize_config(config, slot_minutes=settings.slot_minutes)
        source = normalized.config
        grid = build_time_grid(
            working_days=source.working_days,
            start_time=source.start_time,
            end_time=source.end_time,
            lunch_time=source.lunch_time,
            max_classes_per_day=source.max_classes_per_day,
            slot_minutes=settings.slot_minutes,
        )
        logger.info(
            "Timetable generation start | name=%s batches=%s occurrences=%s days=%s slots_per_day=%s strategy=%s policy=%s",
            source.name,
            len(normalized.batches),
            normalized.required_occurrences,
            len(grid.days),
            len(grid.teaching_slots),
            settings.strategy,
            settings.slot_policy,
        )

        constraint_set = build_constraint_set(settings)
        coordinator = MultiBatchCoordinator(
            normalized=normalized,
            grid=grid,
            constraint_set=constraint_set,
            settings=settings,
            deadline=deadline,
        )
        try:
            outcome = coordinator.run()
            pre_gap_fill = {
                item.batch.id: self.metrics.utilization(item.schedule, grid) for item in outcome.batches
            }
            if settings.gap_fill:
                optimizer = GapFillingOptimizer(coordinator.planner, normalized.subjects_by_batch, settings)
                for item in outcome.batches:
                    optimizer.fill(item.batch.id, item.deficits)
        except GenerationTimeoutError as exc:
            logger.warning("Timetable generation timed out: %s", exc.message)
            return self._timeout_result(normalized, started)

        validator = ConflictValidator(
            [entry for item in outcome.batches for entry in item.schedule],
            constraint_set=constraint_set,
            grid=grid,
            max_daily_classes=settings.max_faculty_classes_per_day,
            max_weekly_classes=settings.max_faculty_weekly_load,
        )
        report = validator.detect_conflicts()
        conflicts_by_batch = validator.count_by_batch(report)

        fingerprint = self._fingerprint(normalized, settings)
        results: list[BatchTimetableResult] = []
        efficiencies: list[float] = []
        for item in outcome.batches:
            timetable = self._build_timetable(
                item,
                outcome=outcome,
                grid=grid,
                conflicts=conflicts_by_batch.get(item.batch.id, 0),
                pre_gap_fill=pre_gap_fill[item.batch.id],
                fingerprint=fingerprint,
                title=source.name,
                option=settings.slot_policy,
            )
            efficiencies.append(timetable.efficiency)
            results.append(
                BatchTimetableResult(batch_id=item.batch.id, batch_name=item.batch.name, timetables=[timetable])
            )

        deficit_total = sum(item.deficit_total for item in outcome.batches)
        global_conflicts = report.total + deficit_total
        if outcome.fallback_used:
            global_conflicts = max(1, global_conflicts)
        runtime_ms = int((perf_counter() - started) * 1000)

        logger.info(
            "Timetable generation done | status=%s conflicts=%s deficits=%s runtime_ms=%s",
            "fallback" if outcome.fallback_used else "solved",
            global_conflicts,
            deficit_total,
            runtime_ms,
        )
        return MultiBatchResult(
            batches=results,
            global_conflicts=global_conflicts,
            overall_efficiency=self.metrics.overall_efficiency(efficiencies),
            generated_at=datetime.now(timezone.utc).isoformat(),
            strategy=outcome.strategy,
            status="fallback" if outcome.fallback_used else "solved",
            message=FALLBACK_MESSAGE if outcome.fallback_used else None,
            conflict_report=report,
            runtime_ms=runtime_ms,
        )

    def _build_timetable(
        self,
        item: BatchOutcome,
        *,
        outcome: CoordinatorOutcome,
        grid: TimeGrid,
        conflicts: int,
        pre_gap_fill: float,
        fingerprint: str,
        title: str,
        option: str,
    ) -> GeneratedTimetable:
        deficits = {subject_id: count for subject_id, count in sorted(item.deficits.items()) if count > 0}
        conflicts += sum(deficits.values())
        if item.status == "fallback":
            # A best-effort timetable never reports itself conflict-free.
            conflicts = max(1, conflicts)

        utilization = self.metrics.utilization(item.schedule, grid)
        efficiency = self.metrics.efficiency(
            conflicts,
            solved_jointly=outcome.solved_jointly and item.status == "solved",
        )
        return GeneratedTimetable(
            id=self._timetable_id(fingerprint, item.batch.id),
            name=self._timetable_name(title, item.batch.name, option),
            batch_id=item.batch.id,
            batch_name=item.batch.name,
            schedule=self._entries(item.schedule, grid),
            efficiency=efficiency,
            conflicts=conflicts,
            utilization=utilization,
            score=self.metrics.score(efficiency, utilization, conflicts),
            pre_gap_fill_utilization=pre_gap_fill,
            deficits=deficits,
            status=item.status,
            option=option,
        )

    def _timetable_name(self, title: str, batch_name: str, option: str) -> str:
        if option == self.settings.slot_policy:
            return f"{title} - {batch_name}"
        return f"{title} - {batch_name} ({option.capitalize()})"

    @staticmethod
    def _entries(schedule: Schedule, grid: TimeGrid) -> list[TimeSlotEntry]:
        ordered = sorted(schedule, key=lambda item: grid.sort_key(item.day, item.time_slot))
        return [
            TimeSlotEntry(
                day=item.day,
                time=item.time_slot,
                subject=item.display_name,
                faculty=item.faculty,
                room=item.room,
                type=item.type,
                batch_id=item.batch_id,
                subject_id=item.subject_id,
                variant=item.variant,
            )
            for item in ordered
        ]

    def _timeout_result(self, normalized: NormalizedConfig, started: float) -> MultiBatchResult:
        return MultiBatchResult(
            batches=[],
            global_conflicts=normalized.required_occurrences,
            overall_efficiency=self.metrics.efficiency(0, timed_out=True),
            generated_at=datetime.now(timezone.utc).isoformat(),
            strategy=self.settings.strategy,
            status="timeout",
            message=TIMEOUT_MESSAGE,
            runtime_ms=int((perf_counter() - started) * 1000),
        )

    @staticmethod
    def _fingerprint(normalized: NormalizedConfig, settings: GenerationSettings) -> str:
        payload = normalized.config.model_dump_json() + settings.model_dump_json()
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    @staticmethod
    def _timetable_id(fingerprint: str, batch_id: str) -> str:
        digest = hashlib.sha256(f"{fingerprint}:{batch_id}".encode("utf-8")).hexdigest()
        return f"tt-{digest[:16]}"


def generate_timetables(config: TimetableConfig, settings: GenerationSettings | None = None) -> MultiBatchResult:
    return TimetableEngine(settings).generate(config)
