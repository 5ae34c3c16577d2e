import pytest

from app.core.config import Settings
from app.core.exceptions import ConfigurationError
from app.services.time_grid import TimeGrid, TimeSlot


def weekday_grid() -> TimeGrid:
    return TimeGrid(
        days=["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"],
        day_start_min=8 * 60,
        day_end_min=21 * 60,
        granularity_min=30,
    )


def test_default_grid_dimensions():
    grid = TimeGrid.from_settings(Settings(database_url="sqlite://"))
    assert grid.days == ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday")
    assert grid.cells_per_day == 26
    assert grid.slot_count == 130
    assert grid.day_length_min == 13 * 60


def test_cell_mask_covers_partial_cells():
    grid = weekday_grid()
    assert grid.cell_mask("Monday", 480, 570) == 0b111
    assert grid.cell_mask("Mon", 480, 500) == 0b1
    assert grid.cell_mask("Tuesday", 480, 510) == 1 << 26
    # Outside the teaching day or grid days nothing is occupied.
    assert grid.cell_mask("Monday", 300, 420) == 0
    assert grid.cell_mask("Saturday", 480, 600) == 0


def test_window_mask_unions_windows():
    grid = weekday_grid()
    mask = grid.window_mask([("Monday", 480, 510), ("Monday", 510, 540)])
    assert mask == 0b11


def test_two_meeting_patterns_follow_canonical_days():
    grid = weekday_grid()
    patterns = grid.meeting_patterns(2, 90)

    assert len(patterns) == 24 * 5
    first = patterns[0]
    assert first.days == ("Monday", "Wednesday")
    assert first.label == "Mon/Wed 08:00-09:30"
    assert patterns[1].days == ("Tuesday", "Thursday")
    assert patterns[-1].slots[0].end_time == "21:00"
    assert grid.meeting_patterns(2, 90) is patterns


def test_patterns_fall_back_to_day_combinations():
    grid = TimeGrid(days=["Saturday", "Sunday"], day_start_min=540, day_end_min=600, granularity_min=60)
    patterns = grid.meeting_patterns(2, 60)
    assert [pattern.days for pattern in patterns] == [("Saturday", "Sunday")]


def test_patterns_empty_when_shape_does_not_fit():
    grid = weekday_grid()
    assert grid.meeting_patterns(6, 60) == ()
    assert grid.meeting_patterns(1, 14 * 60) == ()


def test_pattern_masks_match_slot_overlap():
    grid = weekday_grid()
    patterns = grid.meeting_patterns(2, 90)
    mon_wed_8 = patterns[0]
    mon_wed_830 = next(item for item in patterns if item.days == ("Monday", "Wednesday") and item.start_min == 510)
    tue_thu_8 = patterns[1]

    assert mon_wed_8.overlaps(mon_wed_830)
    assert mon_wed_8.mask & mon_wed_830.mask
    assert not mon_wed_8.overlaps(tue_thu_8)
    assert not mon_wed_8.mask & tue_thu_8.mask


def test_time_slot_overlap_is_half_open():
    first = TimeSlot(day="Monday", start_min=480, duration_min=60)
    second = TimeSlot(day="Monday", start_min=540, duration_min=60)
    assert not first.overlaps(second)
    assert first.label == "Monday 08:00-09:00"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"days": [], "day_start_min": 480, "day_end_min": 600, "granularity_min": 30},
        {"days": ["Funday"], "day_start_min": 480, "day_end_min": 600, "granularity_min": 30},
        {"days": ["Monday", "Mon"], "day_start_min": 480, "day_end_min": 600, "granularity_min": 30},
        {"days": ["Monday"], "day_start_min": 600, "day_end_min": 480, "granularity_min": 30},
        {"days": ["Monday"], "day_start_min": 480, "day_end_min": 600, "granularity_min": 0},
    ],
)
def test_invalid_grid_configuration(kwargs):
    with pytest.raises(ConfigurationError):
        TimeGrid(**kwargs)
