from __future__ import annotations

import logging
import random
from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from time import perf_counter

from pydantic import BaseModel, ValidationError

from app.core.exceptions import ConfigurationError
from app.schemas.catalog import Classroom, Course, RoomKind, Subject, Teacher
from app.schemas.timetable import Cell, Grid, SessionShortfall, SubjectTeacherRow, TimetablePayload
from app.services.grid import FILLER_CELL, SlotLayout, empty_grid
from app.services.occupancy import UNASSIGNED_TEACHER, OccupancyRegistry, is_on_time_off

UNASSIGNED_TEACHER_NAME = "To Be Assigned"
LAB_GROUPS = ("Lab-1", "Lab-2")

logger = logging.getLogger(__name__)


@dataclass
class CoursePlacementState:
    """Room stickiness for one course: its lecture room and the room bound to each lab group."""

    course_room: str | None = None
    lab_rooms: dict[str, str] = field(default_factory=dict)


@dataclass
class GenerationResult:
    payload: TimetablePayload
    shortfalls: list[SessionShortfall]


def lab_group_for(scheduled: int) -> tuple[str, int]:
    if scheduled < 2:
        return LAB_GROUPS[0], 1
    return LAB_GROUPS[1], 2


def _coerce(model: type[BaseModel], items: Iterable, label: str) -> list:
    coerced = []
    for position, item in enumerate(items):
        if isinstance(item, model):
            coerced.append(item)
            continue
        try:
            coerced.append(model.model_validate(item))
        except ValidationError as exc:
            raise ConfigurationError(
                f"Invalid {label} at position {position}",
                details={"errors": exc.errors(include_url=False, include_context=False)},
            ) from exc
    return coerced


class TimetableGenerator:
    """Greedy randomized first-fit placement of subjects into weekly course grids.

    The generator never fails on unsatisfiable constraints: sessions that cannot be
    placed are reported as shortfalls and the slots they would have used are filled
    with the library filler. All randomness comes from ``self.random`` so a fixed
    seed reproduces a run exactly.
    """

    def __init__(
        self,
        layout: SlotLayout,
        *,
        rng: random.Random | None = None,
        random_seed: int | None = None,
        max_sessions_per_day: int = 2,
    ) -> None:
        self.layout = layout
        self.random = rng if rng is not None else random.Random(random_seed)
        self.max_sessions_per_day = max(1, max_sessions_per_day)

    def generate(
        self,
        courses: Iterable[Course | Mapping],
        subjects: Iterable[Subject | Mapping],
        teachers: Iterable[Teacher | Mapping],
        classrooms: Iterable[Classroom | Mapping],
        *,
        occupancy: OccupancyRegistry | None = None,
    ) -> GenerationResult:
        started = perf_counter()
        course_list: list[Course] = _coerce(Course, courses, "course")
        subject_list: list[Subject] = _coerce(Subject, subjects, "subject")
        teacher_list: list[Teacher] = _coerce(Teacher, teachers, "teacher")
        classroom_list: list[Classroom] = _coerce(Classroom, classrooms, "classroom")
        occupancy = occupancy if occupancy is not None else OccupancyRegistry()

        subject_index = {subject.short_name: subject for subject in subject_list}
        logger.info(
            "TIMETABLE GENERATION START | courses=%s | subjects=%s | teachers=%s | classrooms=%s",
            len(course_list),
            len(subject_list),
            len(teacher_list),
            len(classroom_list),
        )

        timetable: dict[str, Grid] = {}
        subject_teachers: dict[str, list[SubjectTeacherRow]] = {}
        shortfalls: list[SessionShortfall] = []
        for course in course_list:
            course_subjects = self._resolve_subjects(course, subject_index)
            grid, rows, course_shortfalls = self._schedule_course(
                course,
                course_subjects,
                teacher_list,
                classroom_list,
                occupancy,
            )
            timetable[course.short_name] = grid
            subject_teachers[course.short_name] = rows
            shortfalls.extend(course_shortfalls)

        payload = TimetablePayload(
            timetable=timetable,
            subject_teachers=subject_teachers,
            days=list(self.layout.days),
            slots=list(self.layout.slots),
            break_index=self.layout.break_index,
        )
        logger.info(
            "TIMETABLE GENERATION COMPLETE | courses=%s | shortfalls=%s | wall_ms=%s",
            len(course_list),
            len(shortfalls),
            int((perf_counter() - started) * 1000),
        )
        return GenerationResult(payload=payload, shortfalls=shortfalls)

    def _resolve_subjects(self, course: Course, subject_index: dict[str, Subject]) -> list[Subject]:
        missing = [name for name in course.subjects if name not in subject_index]
        if missing:
            raise ConfigurationError(
                f"Course {course.short_name} references unknown subject(s): {', '.join(missing)}",
                details={"course": course.short_name, "missing_subjects": missing},
            )
        return [subject_index[name] for name in course.subjects]

    def _eligible_rooms(self, course: Course, classrooms: list[Classroom]) -> list[Classroom]:
        rooms = [room for room in classrooms if room.kind == RoomKind.classroom and room.fits(course.strength)]
        if rooms:
            return rooms
        return [
            room
            for room in classrooms
            if room.kind == RoomKind.classroom and room.max_capacity >= course.strength
        ]

    @staticmethod
    def _find_teacher(teachers: list[Teacher], course: Course, subject: Subject) -> Teacher | None:
        return next((item for item in teachers if item.teaches(course.short_name, subject.short_name)), None)

    def _schedule_course(
        self,
        course: Course,
        course_subjects: list[Subject],
        teachers: list[Teacher],
        classrooms: list[Classroom],
        occupancy: OccupancyRegistry,
    ) -> tuple[Grid, list[SubjectTeacherRow], list[SessionShortfall]]:
        grid = empty_grid(self.layout)
        eligible_rooms = self._eligible_rooms(course, classrooms)
        labs = [room for room in classrooms if room.kind == RoomKind.lab]
        state = CoursePlacementState(course_room=eligible_rooms[0].room_number if eligible_rooms else None)
        if not eligible_rooms:
            logger.warning(
                "NO ELIGIBLE CLASSROOM | course=%s | strength=%s",
                course.short_name,
                course.strength,
            )

        ordered_subjects = list(course_subjects)
        self.random.shuffle(ordered_subjects)

        rows: list[SubjectTeacherRow] = []
        shortfalls: list[SessionShortfall] = []
        for subject in ordered_subjects:
            teacher = self._find_teacher(teachers, course, subject)
            rows.append(
                SubjectTeacherRow(
                    subject_short=subject.short_name,
                    subject_long=subject.full_name,
                    teacher_short=teacher.short_name if teacher else UNASSIGNED_TEACHER,
                    teacher_long=teacher.name if teacher else UNASSIGNED_TEACHER_NAME,
                )
            )
            scheduled = self._place_subject(grid, subject, teacher, eligible_rooms, labs, state, occupancy)
            if scheduled < subject.count:
                logger.warning(
                    "SUBJECT UNDER-SCHEDULED | course=%s | subject=%s | required=%s | scheduled=%s",
                    course.short_name,
                    subject.short_name,
                    subject.count,
                    scheduled,
                )
                shortfalls.append(
                    SessionShortfall(
                        course=course.short_name,
                        subject=subject.short_name,
                        required=subject.count,
                        scheduled=scheduled,
                    )
                )

        self._fill_remaining(grid)
        return grid, rows, shortfalls

    def _place_subject(
        self,
        grid: Grid,
        subject: Subject,
        teacher: Teacher | None,
        eligible_rooms: list[Classroom],
        labs: list[Classroom],
        state: CoursePlacementState,
        occupancy: OccupancyRegistry,
    ) -> int:
        scheduled = 0
        per_day: Counter[str] = Counter()
        while scheduled < subject.count:
            available_days = [day for day in self.layout.days if per_day[day] < self.max_sessions_per_day]
            if not available_days:
                break
            self.random.shuffle(available_days)

            placed = 0
            for day in available_days:
                if subject.is_lab:
                    placed = self._try_place_lab(grid, day, subject, teacher, scheduled, labs, state, occupancy)
                else:
                    placed = self._try_place_lecture(grid, day, subject, teacher, eligible_rooms, state, occupancy)
                if placed:
                    per_day[day] += placed
                    break
            if not placed:
                break
            scheduled += placed
        return scheduled

    def _teacher_can_take(
        self,
        teacher: Teacher | None,
        day: str,
        slot_indices: Iterable[int],
        occupancy: OccupancyRegistry,
    ) -> bool:
        if teacher is None:
            return True
        for index in slot_indices:
            slot = self.layout.slots[index]
            if not occupancy.is_teacher_free(day, slot, teacher.short_name):
                return False
            if is_on_time_off(teacher, day, slot):
                return False
        return True

    def _room_free(self, room: Classroom, day: str, slot_indices: Iterable[int], occupancy: OccupancyRegistry) -> bool:
        return all(occupancy.is_room_free(day, self.layout.slots[index], room.room_number) for index in slot_indices)

    def _pick_lab_room(
        self,
        labs: list[Classroom],
        lab_type: str | None,
        group: str,
        state: CoursePlacementState,
        day: str,
        pair: tuple[int, int],
        occupancy: OccupancyRegistry,
    ) -> Classroom | None:
        bound = state.lab_rooms.get(group)
        if bound:
            sticky = next(
                (
                    room
                    for room in labs
                    if room.room_number == bound
                    and room.matches_lab_type(lab_type)
                    and self._room_free(room, day, pair, occupancy)
                ),
                None,
            )
            if sticky is not None:
                return sticky

        free_labs = [room for room in labs if self._room_free(room, day, pair, occupancy)]
        typed = [room for room in free_labs if room.matches_lab_type(lab_type)]
        if typed:
            return self.random.choice(typed)
        if free_labs:
            return self.random.choice(free_labs)

        # Last resort: the occupancy check that follows will reject it.
        return next((room for room in labs if room.matches_lab_type(lab_type)), labs[0] if labs else None)

    def _try_place_lab(
        self,
        grid: Grid,
        day: str,
        subject: Subject,
        teacher: Teacher | None,
        scheduled: int,
        labs: list[Classroom],
        state: CoursePlacementState,
        occupancy: OccupancyRegistry,
    ) -> int:
        cells = grid[day]
        group, group_number = lab_group_for(scheduled)
        for pair in self.layout.lab_pairs:
            if any(cells[index] is not None for index in pair):
                continue
            room = self._pick_lab_room(labs, subject.lab_type, group, state, day, pair, occupancy)
            if room is None or not self._room_free(room, day, pair, occupancy):
                continue
            if not self._teacher_can_take(teacher, day, pair, occupancy):
                continue

            cell = Cell(
                subject=f"{subject.short_name} ({group} (G{group_number}))",
                teacher=teacher.short_name if teacher else UNASSIGNED_TEACHER,
                room=room.room_number,
                building=room.building,
                span=2,
                is_lab=True,
            )
            for index in pair:
                cells[index] = cell
                occupancy.book(day, self.layout.slots[index], room.room_number, teacher.short_name if teacher else None)
            state.lab_rooms[group] = room.room_number
            return 2
        return 0

    def _pick_lecture_room(
        self,
        rooms: list[Classroom],
        state: CoursePlacementState,
        day: str,
        index: int,
        occupancy: OccupancyRegistry,
    ) -> Classroom | None:
        if state.course_room:
            sticky = next(
                (
                    room
                    for room in rooms
                    if room.room_number == state.course_room and self._room_free(room, day, (index,), occupancy)
                ),
                None,
            )
            if sticky is not None:
                return sticky
        free_room = next((room for room in rooms if self._room_free(room, day, (index,), occupancy)), None)
        if free_room is not None:
            return free_room
        # Last resort: the occupancy check that follows will reject it.
        return rooms[0] if rooms else None

    def _try_place_lecture(
        self,
        grid: Grid,
        day: str,
        subject: Subject,
        teacher: Teacher | None,
        rooms: list[Classroom],
        state: CoursePlacementState,
        occupancy: OccupancyRegistry,
    ) -> int:
        cells = grid[day]
        for index in self.layout.lecture_order:
            if cells[index] is not None:
                continue
            room = self._pick_lecture_room(rooms, state, day, index, occupancy)
            if room is None or not self._room_free(room, day, (index,), occupancy):
                continue
            if not self._teacher_can_take(teacher, day, (index,), occupancy):
                continue

            cells[index] = Cell(
                subject=subject.short_name,
                teacher=teacher.short_name if teacher else UNASSIGNED_TEACHER,
                room=room.room_number,
                building=room.building,
            )
            occupancy.book(day, self.layout.slots[index], room.room_number, teacher.short_name if teacher else None)
            state.course_room = room.room_number
            return 1
        return 0

    def _fill_remaining(self, grid: Grid) -> None:
        for cells in grid.values():
            for index, cell in enumerate(cells):
                if cell is None and not self.layout.is_break(index):
                    cells[index] = FILLER_CELL
