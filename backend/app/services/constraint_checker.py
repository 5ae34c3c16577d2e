from __future__ import annotations

from app.services.schedule_domain import CandidatePair, ConflictTag, SectionRecord


class OccupancyIndex:
    """Grid cells taken so far, per classroom and per instructor."""

    def __init__(self) -> None:
        self._classrooms: dict[str, int] = {}
        self._instructors: dict[str, int] = {}

    def classroom_mask(self, classroom_id: str) -> int:
        return self._classrooms.get(classroom_id, 0)

    def instructor_mask(self, instructor_id: str) -> int:
        return self._instructors.get(instructor_id, 0)

    def place(self, section: SectionRecord, pair: CandidatePair) -> None:
        mask = pair.pattern.mask
        room_id = pair.classroom.id
        self._classrooms[room_id] = self._classrooms.get(room_id, 0) | mask
        if section.instructor_id:
            self._instructors[section.instructor_id] = self._instructors.get(section.instructor_id, 0) | mask

    def release(self, section: SectionRecord, pair: CandidatePair) -> None:
        # Cells of one resource never overlap between placements, so clearing is exact.
        mask = pair.pattern.mask
        room_id = pair.classroom.id
        self._classrooms[room_id] = self._classrooms.get(room_id, 0) & ~mask
        if section.instructor_id:
            self._instructors[section.instructor_id] = self._instructors.get(section.instructor_id, 0) & ~mask


def check_candidate(occupancy: OccupancyIndex, section: SectionRecord, pair: CandidatePair) -> ConflictTag | None:
    """Return ``None`` when the placement is legal, else the first conflict found.

    Classroom clashes are reported before instructor clashes.
    """
    mask = pair.pattern.mask
    if occupancy.classroom_mask(pair.classroom.id) & mask:
        return ConflictTag.classroom_conflict
    if section.instructor_id and occupancy.instructor_mask(section.instructor_id) & mask:
        return ConflictTag.instructor_conflict
    return None
