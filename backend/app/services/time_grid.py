from __future__ import annotations

from dataclasses import dataclass, field
from itertools import combinations
from typing import Iterable, Sequence

from app.core.config import Settings
from app.core.exceptions import ConfigurationError
from app.schemas.calendar import DAY_VALUES, minutes_to_time, normalize_day, parse_time_to_minutes

# Preferred weekly day combinations per meeting count, most conventional first.
CANONICAL_DAY_PATTERNS: dict[int, tuple[tuple[str, ...], ...]] = {
    1: (("Monday",), ("Tuesday",), ("Wednesday",), ("Thursday",), ("Friday",)),
    2: (
        ("Monday", "Wednesday"),
        ("Tuesday", "Thursday"),
        ("Wednesday", "Friday"),
        ("Monday", "Thursday"),
        ("Tuesday", "Friday"),
    ),
    3: (
        ("Monday", "Wednesday", "Friday"),
        ("Monday", "Tuesday", "Thursday"),
        ("Tuesday", "Thursday", "Friday"),
    ),
    4: (
        ("Monday", "Tuesday", "Wednesday", "Thursday"),
        ("Monday", "Tuesday", "Thursday", "Friday"),
        ("Tuesday", "Wednesday", "Thursday", "Friday"),
    ),
    5: (("Monday", "Tuesday", "Wednesday", "Thursday", "Friday"),),
}

DAY_ABBREVIATIONS = {
    "Monday": "Mon",
    "Tuesday": "Tue",
    "Wednesday": "Wed",
    "Thursday": "Thu",
    "Friday": "Fri",
    "Saturday": "Sat",
    "Sunday": "Sun",
}


@dataclass(frozen=True)
class TimeSlot:
    day: str
    start_min: int
    duration_min: int

    @property
    def end_min(self) -> int:
        return self.start_min + self.duration_min

    @property
    def start_time(self) -> str:
        return minutes_to_time(self.start_min)

    @property
    def end_time(self) -> str:
        return minutes_to_time(self.end_min)

    @property
    def label(self) -> str:
        return f"{self.day} {self.start_time}-{self.end_time}"

    def overlaps(self, other: TimeSlot) -> bool:
        return self.day == other.day and self.start_min < other.end_min and other.start_min < self.end_min


@dataclass(frozen=True)
class MeetingPattern:
    """The weekly slots one section occupies: same start and length on each day."""

    slots: tuple[TimeSlot, ...]
    mask: int = field(default=0, compare=False, repr=False)

    @property
    def days(self) -> tuple[str, ...]:
        return tuple(slot.day for slot in self.slots)

    @property
    def start_min(self) -> int:
        return self.slots[0].start_min

    @property
    def end_min(self) -> int:
        return self.slots[0].end_min

    @property
    def label(self) -> str:
        days = "/".join(DAY_ABBREVIATIONS.get(day, day) for day in self.days)
        return f"{days} {self.slots[0].start_time}-{self.slots[0].end_time}"

    def overlaps(self, other: MeetingPattern) -> bool:
        return any(left.overlaps(right) for left in self.slots for right in other.slots)


class TimeGrid:
    """Fixed weekly grid; every occupancy is a bitmask of grid cells.

    Cell ``i`` covers ``granularity`` minutes of one day; days are laid out
    back to back in configured order.
    """

    def __init__(
        self,
        *,
        days: Sequence[str],
        day_start_min: int,
        day_end_min: int,
        granularity_min: int,
    ) -> None:
        normalized = [normalize_day(day) for day in days]
        if not normalized:
            raise ConfigurationError("Schedule grid needs at least one day")
        invalid = [day for day in normalized if day not in DAY_VALUES]
        if invalid:
            raise ConfigurationError(f"Invalid schedule grid days: {', '.join(invalid)}")
        if len(set(normalized)) != len(normalized):
            raise ConfigurationError("Schedule grid days must be unique")
        if granularity_min <= 0:
            raise ConfigurationError("Schedule grid granularity must be positive")
        if day_end_min <= day_start_min:
            raise ConfigurationError("Schedule grid day end must be after day start")

        self.days: tuple[str, ...] = tuple(normalized)
        self.day_start_min = day_start_min
        self.day_end_min = day_end_min
        self.granularity_min = granularity_min
        self.cells_per_day = -(-(day_end_min - day_start_min) // granularity_min)
        self._day_index = {day: index for index, day in enumerate(self.days)}
        self._pattern_cache: dict[tuple[int, int], tuple[MeetingPattern, ...]] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> TimeGrid:
        try:
            start = parse_time_to_minutes(settings.schedule_day_start)
            end = parse_time_to_minutes(settings.schedule_day_end)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid schedule grid hours: {exc}") from exc
        return cls(
            days=settings.schedule_days,
            day_start_min=start,
            day_end_min=end,
            granularity_min=settings.schedule_slot_minutes,
        )

    @property
    def slot_count(self) -> int:
        return len(self.days) * self.cells_per_day

    @property
    def day_length_min(self) -> int:
        return self.day_end_min - self.day_start_min

    def cell_mask(self, day: str, start_min: int, end_min: int) -> int:
        index = self._day_index.get(normalize_day(day))
        if index is None:
            return 0
        start = max(start_min, self.day_start_min)
        end = min(end_min, self.day_end_min)
        if end <= start:
            return 0
        first = (start - self.day_start_min) // self.granularity_min
        last = -(-(end - self.day_start_min) // self.granularity_min)
        return ((1 << (last - first)) - 1) << (index * self.cells_per_day + first)

    def window_mask(self, windows: Iterable[tuple[str, int, int]]) -> int:
        mask = 0
        for day, start_min, end_min in windows:
            mask |= self.cell_mask(day, start_min, end_min)
        return mask

    def day_patterns(self, meetings_per_week: int) -> tuple[tuple[str, ...], ...]:
        canonical = tuple(
            pattern
            for pattern in CANONICAL_DAY_PATTERNS.get(meetings_per_week, ())
            if all(day in self._day_index for day in pattern)
        )
        if canonical:
            return canonical
        return tuple(combinations(self.days, meetings_per_week))

    def meeting_patterns(self, meetings_per_week: int, duration_min: int) -> tuple[MeetingPattern, ...]:
        """All patterns for a section shape, earliest start first."""
        key = (meetings_per_week, duration_min)
        cached = self._pattern_cache.get(key)
        if cached is not None:
            return cached

        patterns: list[MeetingPattern] = []
        if 1 <= meetings_per_week <= len(self.days) and 0 < duration_min <= self.day_length_min:
            day_patterns = self.day_patterns(meetings_per_week)
            last_start = self.day_end_min - duration_min
            for start in range(self.day_start_min, last_start + 1, self.granularity_min):
                for days in day_patterns:
                    slots = tuple(TimeSlot(day=day, start_min=start, duration_min=duration_min) for day in days)
                    mask = 0
                    for slot in slots:
                        mask |= self.cell_mask(slot.day, slot.start_min, slot.end_min)
                    patterns.append(MeetingPattern(slots=slots, mask=mask))

        result = tuple(patterns)
        self._pattern_cache[key] = result
        return result
