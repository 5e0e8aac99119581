from timetable_engine.services.time_grid import SlotSegment, TimeGrid, build_time_grid, order_working_days


def _grid(**overrides):
    values = {
        "working_days": ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"],
        "start_time": "09:00",
        "end_time": "17:00",
        "lunch_time": "13:00 - 14:00",
        "max_classes_per_day": 8,
    }
    values.update(overrides)
    return build_time_grid(**values)


def test_standard_day_skips_lunch():
    grid = _grid()
    assert grid.slot_labels == (
        "09:00 - 10:00",
        "10:00 - 11:00",
        "11:00 - 12:00",
        "12:00 - 13:00",
        "14:00 - 15:00",
        "15:00 - 16:00",
        "16:00 - 17:00",
    )
    assert grid.lunch_slot == "13:00 - 14:00"
    assert grid.available_slot_count == 35
    assert grid.chronological_slots[4] == "13:00 - 14:00"


def test_max_classes_per_day_truncates():
    grid = _grid(max_classes_per_day=4)
    assert grid.slot_labels[-1] == "12:00 - 13:00"
    assert len(grid.slot_labels) == 4


def test_lunch_off_the_hour_shifts_the_afternoon():
    grid = _grid(lunch_time="12:30 - 13:30")
    assert grid.slot_labels == (
        "09:00 - 10:00",
        "10:00 - 11:00",
        "11:00 - 12:00",
        "13:30 - 14:30",
        "14:30 - 15:30",
        "15:30 - 16:30",
    )


def test_empty_window_falls_back_to_default_grid():
    grid = _grid(start_time="17:00", end_time="09:00", working_days=["Monday"])
    assert grid.days == ("Monday",)
    assert len(grid.slot_labels) == 7
    assert grid.lunch_slot == "13:00 - 14:00"


def test_unreadable_hours_fall_back_to_default_grid():
    grid = _grid(start_time="nine")
    assert grid.slot_labels[0] == "09:00 - 10:00"
    assert len(grid.slot_labels) == 7


def test_working_days_follow_canonical_order():
    assert order_working_days(["Fri", "Monday", "Funday", "Monday"]) == ("Monday", "Friday")
    assert _grid(working_days=[]).days == ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday")


def test_span_slots_never_cross_lunch_or_day_end():
    grid = _grid()
    assert grid.span_slots("09:00 - 10:00", 2) == ("09:00 - 10:00", "10:00 - 11:00")
    assert grid.span_slots("12:00 - 13:00", 2) is None
    assert grid.span_slots("16:00 - 17:00", 2) is None
    assert grid.span_slots("13:00 - 14:00", 1) is None


def test_grid_is_deterministic():
    assert _grid() == _grid()


def test_sort_key_places_lunch_between_morning_and_afternoon():
    grid = TimeGrid(
        days=("Monday",),
        teaching_slots=(SlotSegment(540, 600), SlotSegment(660, 720)),
        lunch=SlotSegment(600, 660),
    )
    labels = ["11:00 - 12:00", "10:00 - 11:00", "09:00 - 10:00"]
    assert sorted(labels, key=lambda label: grid.sort_key("Monday", label)) == [
        "09:00 - 10:00",
        "10:00 - 11:00",
        "11:00 - 12:00",
    ]
