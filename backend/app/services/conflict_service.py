from collections import defaultdict
from typing import Dict, List, Sequence

from app.models.classroom import RoomType
from app.models.schedule_entry import ScheduleEntry
from app.schemas.calendar import parse_time_to_minutes
from app.schemas.conflict import ConflictDetail, ConflictReport, ResolutionAction


class ConflictService:
    """Hard-constraint audit of a set of schedule entries.

    Used as the last gate before a generated schedule is written and for the
    validation report of a persisted term.
    """

    def __init__(
        self,
        entries: Sequence[ScheduleEntry],
        room_map: Dict[str, dict],
        section_map: Dict[str, dict],
        instructor_map: Dict[str, dict] | None = None,
    ):
        self.entries = list(entries)
        self.room_map = room_map
        self.section_map = section_map
        self.instructor_map = instructor_map or {}

    def detect_conflicts(self) -> ConflictReport:
        conflicts: List[ConflictDetail] = []
        checked_sections: set[str] = set()

        entries_by_day = defaultdict(list)
        for entry in self.entries:
            entries_by_day[entry.day_of_week].append(entry)

        for day in sorted(entries_by_day):
            day_entries = sorted(entries_by_day[day], key=lambda item: (item.start_time, item.id))
            n = len(day_entries)
            for i in range(n):
                e1 = day_entries[i]
                start1, end1 = parse_time_to_minutes(e1.start_time), parse_time_to_minutes(e1.end_time)

                # Room fit is a property of the section, report it once.
                if e1.section_id not in checked_sections:
                    checked_sections.add(e1.section_id)
                    conflicts.extend(self._room_fit_conflicts(e1))

                for j in range(i + 1, n):
                    e2 = day_entries[j]
                    start2, end2 = parse_time_to_minutes(e2.start_time), parse_time_to_minutes(e2.end_time)
                    if start2 >= end1:
                        break
                    if max(start1, start2) >= min(end1, end2):
                        continue
                    if e1.classroom_id == e2.classroom_id:
                        room_name = self.room_map.get(e1.classroom_id, {}).get("name", e1.classroom_id)
                        conflicts.append(ConflictDetail(
                            id=f"room-{e1.id}-{e2.id}",
                            conflict_type="classroom_conflict",
                            description=(
                                f"Classroom overlap in {room_name} on {day}: "
                                f"{self._label(e1.section_id)} and {self._label(e2.section_id)}"
                            ),
                            severity="hard",
                            affected_entries=[e1.id, e2.id],
                        ))
                    if e1.instructor_id and e1.instructor_id == e2.instructor_id:
                        instructor_name = self.instructor_map.get(e1.instructor_id, {}).get("name", e1.instructor_id)
                        conflicts.append(ConflictDetail(
                            id=f"inst-{e1.id}-{e2.id}",
                            conflict_type="instructor_conflict",
                            description=(
                                f"Instructor overlap for {instructor_name} on {day}: "
                                f"{self._label(e1.section_id)} and {self._label(e2.section_id)}"
                            ),
                            severity="hard",
                            affected_entries=[e1.id, e2.id],
                        ))

        resolutions: List[ResolutionAction] = []
        for conflict in conflicts:
            resolutions.extend(self.generate_resolutions(conflict))
        return ConflictReport(conflicts=conflicts, suggested_resolutions=resolutions)

    def generate_resolutions(self, conflict: ConflictDetail) -> List[ResolutionAction]:
        resolutions = []
        target = self._section_of(conflict.affected_entries[-1])
        if conflict.conflict_type in ("classroom_capacity", "classroom_type", "classroom_conflict"):
            resolutions.append(ResolutionAction(
                action_type="change_classroom",
                description="Move the section to a suitable free classroom",
                target_section_id=target,
                parameters={},
            ))
        if conflict.conflict_type in ("classroom_conflict", "instructor_conflict"):
            resolutions.append(ResolutionAction(
                action_type="move_section",
                description="Move the section to a different meeting pattern",
                target_section_id=target,
                parameters={},
            ))
        return resolutions

    def _room_fit_conflicts(self, entry: ScheduleEntry) -> List[ConflictDetail]:
        room = self.room_map.get(entry.classroom_id)
        section = self.section_map.get(entry.section_id)
        if not room or not section:
            return []

        found: List[ConflictDetail] = []
        capacity = room.get("capacity", 0)
        headcount = section.get("headcount", 0)
        if capacity < headcount:
            found.append(ConflictDetail(
                id=f"cap-{entry.section_id}",
                conflict_type="classroom_capacity",
                description=f"Classroom {room.get('name')} capacity ({capacity}) < headcount ({headcount})",
                severity="hard",
                affected_entries=[entry.id],
            ))
        room_is_lab = room.get("type") in (RoomType.lab, RoomType.lab.value)
        if bool(section.get("requires_lab")) != room_is_lab:
            kind = "Lab" if section.get("requires_lab") else "Non-lab"
            found.append(ConflictDetail(
                id=f"type-{entry.section_id}",
                conflict_type="classroom_type",
                description=f"{kind} section {section.get('label')} placed in {room.get('type')} room {room.get('name')}",
                severity="hard",
                affected_entries=[entry.id],
            ))
        return found

    def _label(self, section_id: str) -> str:
        return self.section_map.get(section_id, {}).get("label", section_id)

    def _section_of(self, entry_id: str) -> str:
        for entry in self.entries:
            if entry.id == entry_id:
                return entry.section_id
        return entry_id
