from __future__ import annotations

import logging
import threading
from collections import Counter
from dataclasses import dataclass
from time import perf_counter
from typing import Callable

from app.core.exceptions import ScheduleRunCancelledError, SchedulerError
from app.services.constraint_checker import OccupancyIndex, check_candidate
from app.services.domain_builder import SectionDomain, build_domains
from app.services.schedule_domain import (
    REASON_TIMED_OUT,
    Assignment,
    CandidatePair,
    ConflictTag,
    RunResult,
    ScheduleSnapshot,
    SearchState,
    Statistics,
    UnassignedSection,
)

logger = logging.getLogger(__name__)

TAG_PRIORITY = {tag: index for index, tag in enumerate(ConflictTag)}


@dataclass
class _Placement:
    domain: SectionDomain
    position: int
    pair: CandidatePair


class BacktrackingScheduler:
    """Single-use CSP search over one term snapshot.

    Sections are variables, (meeting pattern, classroom) pairs are values.
    Variables go most-constrained first; values in domain order. A section
    that finds no legal value gets ``max_backtracks`` unwind attempts: the
    most recent competing placement is moved to its next legal value and the
    section is retried. When every attempt fails the competitor goes back to
    where it was and the section is reported unassigned, so a placed section
    is never lost to a repair.
    """

    def __init__(
        self,
        snapshot: ScheduleSnapshot,
        *,
        max_backtracks: int = 3,
        timeout_seconds: float | None = None,
        cancel_event: threading.Event | None = None,
        clock: Callable[[], float] = perf_counter,
    ) -> None:
        self.snapshot = snapshot
        self.max_backtracks = max(0, max_backtracks)
        self.timeout_seconds = timeout_seconds
        self.cancel_event = cancel_event
        self.clock = clock

        self.state = SearchState.ready
        self.backtrack_count = 0
        self._occupancy = OccupancyIndex()
        self._placements: list[_Placement] = []

    def run(self) -> RunResult:
        if self.state is not SearchState.ready:
            raise SchedulerError(
                message="Scheduler instances run once; build a new one for another run",
                details={"state": self.state.value},
            )

        started = self.clock()
        self.state = SearchState.searching
        deadline = started + self.timeout_seconds if self.timeout_seconds is not None else None
        logger.info(
            "CSP SEARCH START | term=%s %s | sections=%s | classrooms=%s | max_backtracks=%s | timeout_s=%s",
            self.snapshot.semester,
            self.snapshot.year,
            len(self.snapshot.sections),
            len(self.snapshot.classrooms),
            self.max_backtracks,
            self.timeout_seconds,
        )

        domains, impossible = build_domains(self.snapshot)
        unassigned: dict[str, UnassignedSection] = {item.section_id: item for item in impossible}
        order = sorted(domains.values(), key=lambda domain: (domain.size, domain.section.id))

        for index, domain in enumerate(order):
            self._raise_if_cancelled()
            if deadline is not None and self.clock() >= deadline:
                for pending in order[index:]:
                    unassigned[pending.section.id] = UnassignedSection(
                        section_id=pending.section.id,
                        label=pending.section.label,
                        reason=REASON_TIMED_OUT,
                        detail=f"search stopped after {self.timeout_seconds:g}s before reaching this section",
                    )
                logger.warning(
                    "CSP SEARCH TIMEOUT | term=%s %s | placed=%s | remaining=%s",
                    self.snapshot.semester,
                    self.snapshot.year,
                    len(self._placements),
                    len(order) - index,
                )
                break

            tags: Counter[ConflictTag] = Counter()
            if self._place(domain, start=0, tags=tags):
                continue
            if self._repair(domain):
                continue
            unassigned[domain.section.id] = self._conflict_reason(domain, tags)

        assignments = {
            placement.domain.section.id: Assignment(
                section_id=placement.domain.section.id,
                course_code=placement.domain.section.course_code,
                classroom_id=placement.pair.classroom.id,
                instructor_id=placement.domain.section.instructor_id,
                pattern=placement.pair.pattern,
            )
            for placement in sorted(self._placements, key=lambda item: item.domain.section.id)
        }

        if not domains:
            self.state = SearchState.exhausted
        elif unassigned:
            self.state = SearchState.partially_succeeded
        else:
            self.state = SearchState.succeeded

        duration_ms = int((self.clock() - started) * 1000)
        result = RunResult(
            state=self.state,
            assignments=assignments,
            unassigned=[unassigned[key] for key in sorted(unassigned)],
            statistics=Statistics(
                scheduled_count=len(assignments),
                unscheduled_count=len(unassigned),
                backtrack_count=self.backtrack_count,
                duration_ms=duration_ms,
            ),
        )
        logger.info(
            "CSP SEARCH COMPLETE | term=%s %s | state=%s | scheduled=%s | unscheduled=%s | backtracks=%s | runtime_ms=%s",
            self.snapshot.semester,
            self.snapshot.year,
            self.state.value,
            result.statistics.scheduled_count,
            result.statistics.unscheduled_count,
            self.backtrack_count,
            duration_ms,
        )
        return result

    def _raise_if_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            logger.info(
                "CSP SEARCH CANCELLED | term=%s %s | placed=%s",
                self.snapshot.semester,
                self.snapshot.year,
                len(self._placements),
            )
            raise ScheduleRunCancelledError(self.snapshot.semester, self.snapshot.year)

    def _next_legal(
        self,
        domain: SectionDomain,
        *,
        start: int,
        tags: Counter[ConflictTag] | None = None,
    ) -> tuple[int, CandidatePair] | None:
        for position, pair in domain.candidates(start):
            tag = check_candidate(self._occupancy, domain.section, pair)
            if tag is None:
                return position, pair
            if tags is not None:
                tags[tag] += 1
        return None

    def _place(self, domain: SectionDomain, *, start: int, tags: Counter[ConflictTag] | None = None) -> bool:
        found = self._next_legal(domain, start=start, tags=tags)
        if found is None:
            return False
        position, pair = found
        self._occupancy.place(domain.section, pair)
        self._placements.append(_Placement(domain=domain, position=position, pair=pair))
        return True

    def _find_competitor(self, domain: SectionDomain) -> int | None:
        instructor_id = domain.section.instructor_id
        reach = 0
        for pattern in domain.patterns:
            reach |= pattern.mask
        for index in range(len(self._placements) - 1, -1, -1):
            placed = self._placements[index]
            # Only a placement sitting on one of the section's candidate times is in the way.
            if not placed.pair.pattern.mask & reach:
                continue
            if placed.pair.classroom.id in domain.classroom_ids:
                return index
            if instructor_id and placed.domain.section.instructor_id == instructor_id:
                return index
        return None

    def _repair(self, domain: SectionDomain) -> bool:
        if self.max_backtracks == 0:
            return False
        victim_index = self._find_competitor(domain)
        if victim_index is None:
            return False

        victim = self._placements.pop(victim_index)
        victim_section = victim.domain.section
        self._occupancy.release(victim_section, victim.pair)
        position = victim.position

        for _ in range(self.max_backtracks):
            self.backtrack_count += 1
            moved = self._next_legal(victim.domain, start=position + 1)
            if moved is None:
                break
            position, pair = moved
            self._occupancy.place(victim_section, pair)
            if self._place(domain, start=0):
                # Keep the moved section ahead of the one it made room for.
                self._placements.insert(
                    len(self._placements) - 1,
                    _Placement(domain=victim.domain, position=position, pair=pair),
                )
                logger.debug(
                    "CSP REPAIR | section=%s | moved=%s | to=%s",
                    domain.section.label,
                    victim_section.label,
                    pair.pattern.label,
                )
                return True
            self._occupancy.release(victim_section, pair)

        self._occupancy.place(victim_section, victim.pair)
        self._placements.insert(victim_index, victim)
        return False

    @staticmethod
    def _conflict_reason(domain: SectionDomain, tags: Counter[ConflictTag]) -> UnassignedSection:
        ranked = sorted(tags.items(), key=lambda item: (-item[1], TAG_PRIORITY[item[0]]))
        tag = ranked[0][0] if ranked else ConflictTag.classroom_conflict
        classroom_hits = tags.get(ConflictTag.classroom_conflict, 0)
        instructor_hits = tags.get(ConflictTag.instructor_conflict, 0)
        return UnassignedSection(
            section_id=domain.section.id,
            label=domain.section.label,
            reason=tag.value,
            detail=(
                f"all {domain.size} candidate placements are taken "
                f"({classroom_hits} classroom clashes, {instructor_hits} instructor clashes)"
            ),
        )
