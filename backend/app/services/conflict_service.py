from __future__ import annotations

from collections.abc import Iterator

from app.core.exceptions import ResourceNotFoundError
from app.schemas.editor import CellRef, ClashDescription, HighlightReport
from app.schemas.timetable import Cell, GridSet
from app.services.grid import Segment, SlotLayout, is_break_cell, is_filler, segments
from app.services.occupancy import UNASSIGNED_TEACHER

PLACEHOLDER_LABELS = {"", UNASSIGNED_TEACHER.casefold()}


def normalize_label(value: str | None) -> str:
    return (value or "").strip().casefold()


def resource_key(value: str | None) -> str:
    """Normalized teacher/room identity; placeholders never match anything."""
    key = normalize_label(value)
    return "" if key in PLACEHOLDER_LABELS else key


def is_resource_cell(cell: Cell | None) -> bool:
    return cell is not None and not is_break_cell(cell) and not is_filler(cell)


class ConflictService:
    """Clash signals for a selected cell across a set of course grids.

    Coarse (red): cells in other courses that reuse the selected teacher or room,
    whatever the slot. Precise (orange): cells of the selected course whose slots
    overlap another course's use of the selected teacher, room, or any lab when the
    selection is a lab. Nothing is cached between calls.
    """

    def __init__(self, grids: GridSet, layout: SlotLayout):
        self.grids = grids
        self.layout = layout

    def resolve(self, ref: CellRef) -> Segment:
        grid = self.grids.get(ref.course)
        if grid is None:
            raise ResourceNotFoundError("Course", ref.course)
        cells = grid.get(ref.day)
        if cells is None:
            raise ResourceNotFoundError("Day", f"{ref.day} in course {ref.course}")
        if not 0 <= ref.slot_index < len(cells):
            raise ResourceNotFoundError("Slot", str(ref.slot_index + 1))
        return next(segment for segment in segments(cells) if segment.covers(ref.slot_index))

    def _other_segments(self, course: str, day: str | None = None) -> Iterator[tuple[str, str, Segment]]:
        for other_course, grid in self.grids.items():
            if other_course == course:
                continue
            for other_day, cells in grid.items():
                if day is not None and other_day != day:
                    continue
                for segment in segments(cells):
                    if is_resource_cell(segment.cell):
                        yield other_course, other_day, segment

    def coarse_clashes(self, ref: CellRef) -> list[CellRef]:
        selected = self.resolve(ref).cell
        if not is_resource_cell(selected):
            return []
        teacher, room = resource_key(selected.teacher), resource_key(selected.room)
        flagged = []
        for other_course, other_day, segment in self._other_segments(ref.course):
            same_teacher = teacher and resource_key(segment.cell.teacher) == teacher
            same_room = room and resource_key(segment.cell.room) == room
            if same_teacher or same_room:
                flagged.append(CellRef(course=other_course, day=other_day, slot_index=segment.start))
        return flagged

    def _collides(self, selected: Cell, other: Cell) -> bool:
        teacher, room = resource_key(selected.teacher), resource_key(selected.room)
        if teacher and resource_key(other.teacher) == teacher:
            return True
        if room and resource_key(other.room) == room:
            return True
        return selected.is_lab and other.is_lab

    def precise_clashes(self, ref: CellRef) -> list[CellRef]:
        selected = self.resolve(ref).cell
        if not is_resource_cell(selected):
            return []
        if not (resource_key(selected.teacher) or resource_key(selected.room) or selected.is_lab):
            return []

        flagged = []
        for day, cells in self.grids[ref.course].items():
            busy = [
                segment
                for _, _, segment in self._other_segments(ref.course, day)
                if self._collides(selected, segment.cell)
            ]
            for segment in segments(cells):
                if is_break_cell(segment.cell):
                    continue
                if any(other.covers(index) for other in busy for index in segment.slots):
                    flagged.append(CellRef(course=ref.course, day=day, slot_index=segment.start))
        return flagged

    def highlight(self, ref: CellRef) -> HighlightReport:
        return HighlightReport(coarse=self.coarse_clashes(ref), precise=self.precise_clashes(ref))

    def has_precise_clash(self, selection: CellRef, target: CellRef) -> bool:
        start = self.resolve(target).start
        return any(
            flagged.course == target.course and flagged.day == target.day and flagged.slot_index == start
            for flagged in self.precise_clashes(selection)
        )

    def describe_drop_clash(self, source: CellRef, target: CellRef) -> ClashDescription:
        """Explain what the dragged cell would collide with at the target slot."""
        dragged = self.resolve(source).cell
        target_start = self.resolve(target).start
        reasons: list[str] = []
        with_course: str | None = None

        if is_resource_cell(dragged):
            teacher, room = resource_key(dragged.teacher), resource_key(dragged.room)
            for other_course, _, segment in self._other_segments(target.course, target.day):
                if not segment.covers(target_start):
                    continue
                other = segment.cell
                matched = []
                if teacher and resource_key(other.teacher) == teacher:
                    matched.append(f"Teacher ({dragged.teacher})")
                if room and resource_key(other.room) == room:
                    matched.append(f"Room ({dragged.room})")
                if dragged.is_lab and other.is_lab:
                    matched.append("Lab")
                if matched and with_course is None:
                    with_course = other_course
                reasons.extend(reason for reason in matched if reason not in reasons)

        if not reasons:
            reasons = ["Unknown"]

        slot_number = target_start + 1
        header = f"Clash detected for Course: {source.course}"
        if with_course:
            header += f" with {with_course}"
        message = f"{header}\n{', '.join(reasons)}\nDay: {target.day}, Slot: {slot_number}"
        return ClashDescription(
            course=source.course,
            with_course=with_course,
            categories=reasons,
            day=target.day,
            slot_number=slot_number,
            message=message,
        )
