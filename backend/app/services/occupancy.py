from __future__ import annotations

from collections import defaultdict

from app.schemas.catalog import Teacher, parse_time_to_minutes
from app.schemas.timetable import TimetablePayload
from app.services.grid import is_break_cell, is_filler, segments, slot_bounds

UNASSIGNED_TEACHER = "TBA"


class OccupancyRegistry:
    """Rooms and teachers booked per (day, slot label) during one scheduling run."""

    def __init__(self) -> None:
        self._rooms: dict[tuple[str, str], set[str]] = defaultdict(set)
        self._teachers: dict[tuple[str, str], set[str]] = defaultdict(set)

    def is_room_free(self, day: str, slot: str, room: str) -> bool:
        return room not in self._rooms.get((day, slot), ())

    def is_teacher_free(self, day: str, slot: str, teacher: str) -> bool:
        return teacher not in self._teachers.get((day, slot), ())

    def book(self, day: str, slot: str, room: str, teacher: str | None = None) -> None:
        if room:
            self._rooms[(day, slot)].add(room)
        if teacher:
            self._teachers[(day, slot)].add(teacher)

    @classmethod
    def from_timetable(cls, payload: TimetablePayload) -> OccupancyRegistry:
        """Rebuild bookings from stored grids, e.g. for manual reschedule checks."""
        registry = cls()
        for grid in payload.timetable.values():
            for day, cells in grid.items():
                for segment in segments(cells):
                    cell = segment.cell
                    if cell is None or is_break_cell(cell) or is_filler(cell):
                        continue
                    teacher = cell.teacher if cell.teacher != UNASSIGNED_TEACHER else None
                    for index in segment.slots:
                        registry.book(day, payload.slots[index], cell.room, teacher)
        return registry


def is_on_time_off(teacher: Teacher | None, day: str, slot: str) -> bool:
    """True when any of the teacher's time-off windows on ``day`` overlaps the slot."""
    if teacher is None or not teacher.time_off:
        return False
    slot_start, slot_end = slot_bounds(slot)
    for window in teacher.time_off:
        if window.day != day:
            continue
        off_start, off_end = parse_time_to_minutes(window.start), parse_time_to_minutes(window.end)
        if slot_start < off_end and slot_end > off_start:
            return True
    return False


def is_teacher_available(
    teacher: Teacher | None,
    day: str,
    slot: str,
    occupancy: OccupancyRegistry | None = None,
) -> bool:
    if teacher is None:
        return True
    if is_on_time_off(teacher, day, slot):
        return False
    if occupancy is not None and not occupancy.is_teacher_free(day, slot, teacher.short_name):
        return False
    return True
