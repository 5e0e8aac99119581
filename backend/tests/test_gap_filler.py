from collections import Counter

from timetable_engine.schemas.generator import GenerationSettings
from timetable_engine.services.config_normalizer import normalize_config
from timetable_engine.services.constraints import build_constraint_set
from timetable_engine.services.coordinator import MultiBatchCoordinator
from timetable_engine.services.gap_filler import GapFillingOptimizer
from timetable_engine.services.metrics import MetricsCalculator
from timetable_engine.services.time_grid import build_time_grid


def build(config, settings=None):
    settings = settings or GenerationSettings()
    normalized = normalize_config(config)
    source = normalized.config
    grid = build_time_grid(
        working_days=source.working_days,
        start_time=source.start_time,
        end_time=source.end_time,
        lunch_time=source.lunch_time,
        max_classes_per_day=source.max_classes_per_day,
    )
    coordinator = MultiBatchCoordinator(
        normalized=normalized,
        grid=grid,
        constraint_set=build_constraint_set(settings),
        settings=settings,
    )
    optimizer = GapFillingOptimizer(coordinator.planner, normalized.subjects_by_batch, settings)
    return coordinator, optimizer


def test_gap_fill_only_adds_and_raises_utilization(scenario_a_config):
    coordinator, optimizer = build(scenario_a_config)
    coordinator.run()
    schedule = coordinator.schedules["cse-a"]
    before = {(item.day, item.time_slot): item for item in schedule}
    pre = MetricsCalculator.utilization(schedule, coordinator.grid)

    report = optimizer.fill("cse-a", Counter())

    after = {(item.day, item.time_slot): item for item in schedule}
    assert all(after[key] == item for key, item in before.items())
    assert report.filled == len(after) - len(before)
    assert report.filled + report.unfillable == 35 - 7
    assert MetricsCalculator.utilization(schedule, coordinator.grid) >= pre
    assert report.filled > 0


def test_gap_fill_entries_do_not_count_toward_quota(scenario_a_config):
    coordinator, optimizer = build(scenario_a_config)
    coordinator.run()
    optimizer.fill("cse-a")
    schedule = coordinator.schedules["cse-a"]

    extras = [item for item in schedule if item.variant == "gap_fill"]
    assert extras
    assert all(not item.counts_toward_quota for item in extras)
    assert all(item.display_name.endswith("(gap-fill)") for item in extras)
    assert schedule.occurrence_counts() == Counter({"math": 4, "physics": 3})


def test_deficits_are_recovered_first(scenario_a_config):
    coordinator, optimizer = build(scenario_a_config)
    coordinator.seed_lunch()
    deficits = Counter({"physics": 2})

    report = optimizer.fill("cse-a", deficits)

    assert report.recovered == 2
    assert deficits["physics"] == 0
    counts = coordinator.schedules["cse-a"].occurrence_counts()
    assert counts["physics"] == 2
    first = coordinator.schedules["cse-a"].get("Monday", "09:00 - 10:00")
    assert first.subject_id == "physics" and first.variant == "class"


def test_gap_fill_respects_faculty_ceiling(scenario_a_config):
    coordinator, optimizer = build(scenario_a_config)
    coordinator.run()
    optimizer.fill("cse-a")
    ledger = coordinator.ledger
    for faculty in ("Dr. Smith", "Prof. Johnson"):
        assert ledger.faculty_load(faculty) <= 25
        for day in coordinator.grid.days:
            assert ledger.faculty_day_load(faculty, day) <= 6


def test_gap_fill_never_touches_lunch(scenario_a_config):
    coordinator, optimizer = build(scenario_a_config)
    coordinator.run()
    optimizer.fill("cse-a")
    for day in coordinator.grid.days:
        assert coordinator.schedules["cse-a"].get(day, "13:00 - 14:00").is_lunch
