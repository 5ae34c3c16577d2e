from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator

from app.services.schedule_domain import (
    REASON_NO_CANDIDATES,
    CandidatePair,
    ClassroomRecord,
    ScheduleSnapshot,
    SectionRecord,
    UnassignedSection,
)
from app.services.time_grid import MeetingPattern

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SectionDomain:
    """Statically legal placements of one section.

    Candidates are the classrooms x patterns product minus pairs that collide
    with external bookings. They are produced lazily in value order: least
    wasted seats first, then earliest pattern; a candidate's position is its
    index in the full product, so iteration can resume after any position.
    """

    section: SectionRecord
    classrooms: tuple[ClassroomRecord, ...]
    patterns: tuple[MeetingPattern, ...]
    size: int
    classroom_ids: frozenset[str] = field(default=frozenset(), compare=False)

    def __len__(self) -> int:
        return self.size

    def candidates(self, start: int = 0) -> Iterator[tuple[int, CandidatePair]]:
        width = len(self.patterns)
        if width == 0:
            return
        first_room, first_pattern = divmod(max(0, start), width)
        for room_index in range(first_room, len(self.classrooms)):
            room = self.classrooms[room_index]
            offset = first_pattern if room_index == first_room else 0
            for pattern_index in range(offset, width):
                pattern = self.patterns[pattern_index]
                if room.booked_mask & pattern.mask:
                    continue
                yield room_index * width + pattern_index, CandidatePair(pattern=pattern, classroom=room)


def _count_candidates(classrooms: tuple[ClassroomRecord, ...], patterns: tuple[MeetingPattern, ...]) -> int:
    total = 0
    for room in classrooms:
        if not room.booked_mask:
            total += len(patterns)
            continue
        total += sum(1 for pattern in patterns if not room.booked_mask & pattern.mask)
    return total


def _explain_empty_domain(
    section: SectionRecord,
    *,
    all_patterns: tuple[MeetingPattern, ...],
    sized_rooms: list[ClassroomRecord],
    typed_rooms: tuple[ClassroomRecord, ...],
    free_patterns: tuple[MeetingPattern, ...],
) -> str:
    if not all_patterns:
        return (
            f"{section.meetings_per_week} x {section.duration_min} min meetings "
            "do not fit the weekly teaching grid"
        )
    if not sized_rooms:
        return f"no classroom seats {section.headcount} students"
    if not typed_rooms:
        kind = "lab" if section.requires_lab else "lecture"
        return f"no {kind} classroom seats {section.headcount} students"
    if not free_patterns:
        return "instructor is unavailable for every meeting pattern"
    return "every suitable classroom is booked externally at the instructor's available times"


def build_section_domain(snapshot: ScheduleSnapshot, section: SectionRecord) -> SectionDomain:
    sized_rooms = [room for room in snapshot.classrooms if room.capacity >= section.headcount]
    typed_rooms = tuple(
        sorted(
            (room for room in sized_rooms if room.is_lab == section.requires_lab),
            key=lambda room: (room.capacity - section.headcount, room.id),
        )
    )

    all_patterns = snapshot.grid.meeting_patterns(section.meetings_per_week, section.duration_min)
    free_patterns = all_patterns
    instructor = snapshot.instructors.get(section.instructor_id) if section.instructor_id else None
    if instructor is not None and instructor.unavailable_mask:
        free_patterns = tuple(pattern for pattern in all_patterns if not pattern.mask & instructor.unavailable_mask)

    return SectionDomain(
        section=section,
        classrooms=typed_rooms,
        patterns=free_patterns,
        size=_count_candidates(typed_rooms, free_patterns),
        classroom_ids=frozenset(room.id for room in typed_rooms),
    )


def build_domains(snapshot: ScheduleSnapshot) -> tuple[dict[str, SectionDomain], list[UnassignedSection]]:
    """Candidate domains for every schedulable section, plus the impossible ones.

    Sections whose domain is empty never reach the search.
    """
    domains: dict[str, SectionDomain] = {}
    impossible: list[UnassignedSection] = []

    for section in sorted(snapshot.sections, key=lambda item: item.id):
        domain = build_section_domain(snapshot, section)
        if domain.size:
            domains[section.id] = domain
            continue

        all_patterns = snapshot.grid.meeting_patterns(section.meetings_per_week, section.duration_min)
        sized_rooms = [room for room in snapshot.classrooms if room.capacity >= section.headcount]
        impossible.append(
            UnassignedSection(
                section_id=section.id,
                label=section.label,
                reason=REASON_NO_CANDIDATES,
                detail=_explain_empty_domain(
                    section,
                    all_patterns=all_patterns,
                    sized_rooms=sized_rooms,
                    typed_rooms=domain.classrooms,
                    free_patterns=domain.patterns,
                ),
            )
        )

    logger.debug(
        "Domains built | sections=%s | schedulable=%s | impossible=%s | candidates=%s",
        len(snapshot.sections),
        len(domains),
        len(impossible),
        sum(domain.size for domain in domains.values()),
    )
    return domains, impossible
