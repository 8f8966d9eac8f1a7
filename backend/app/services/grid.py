from __future__ import annotations

from dataclasses import dataclass

from app.core.config import Settings
from app.core.exceptions import ConfigurationError
from app.schemas.catalog import parse_time_to_minutes
from app.schemas.timetable import Cell, DaySessionOut, Grid, GridSet, SubjectTeacherRow, TimetablePayload

BREAK_LABEL = "Break"
FILLER_LABEL = "Library"
LABEL_SEPARATOR = " / "

BREAK_CELL = Cell(subject=BREAK_LABEL)
FILLER_CELL = Cell(subject=FILLER_LABEL, room=FILLER_LABEL)


def slot_bounds(slot: str) -> tuple[int, int]:
    """Return the (start, end) minutes of a ``HH:MM-HH:MM`` slot label."""
    parts = slot.split("-")
    if len(parts) != 2:
        raise ValueError(f"Slot {slot!r} must look like HH:MM-HH:MM")
    start, end = parse_time_to_minutes(parts[0]), parse_time_to_minutes(parts[1])
    if end <= start:
        raise ValueError(f"Slot {slot!r} must end after it starts")
    return start, end


@dataclass(frozen=True)
class SlotLayout:
    days: tuple[str, ...]
    slots: tuple[str, ...]
    break_index: int

    def __post_init__(self) -> None:
        if not self.days:
            raise ConfigurationError("At least one teaching day is required")
        if not 0 <= self.break_index < len(self.slots):
            raise ConfigurationError(
                "Break index is outside the slot list",
                details={"break_index": self.break_index, "slot_count": len(self.slots)},
            )
        for slot in self.slots:
            try:
                slot_bounds(slot)
            except ValueError as exc:
                raise ConfigurationError(str(exc), details={"slot": slot}) from exc

    @classmethod
    def from_settings(cls, settings: Settings) -> SlotLayout:
        return cls(days=tuple(settings.days), slots=tuple(settings.slots), break_index=settings.break_index)

    @classmethod
    def from_payload(cls, payload: TimetablePayload) -> SlotLayout:
        return cls(days=tuple(payload.days), slots=tuple(payload.slots), break_index=payload.break_index)

    @property
    def slot_count(self) -> int:
        return len(self.slots)

    @property
    def first_half(self) -> tuple[int, ...]:
        return tuple(range(0, self.break_index))

    @property
    def second_half(self) -> tuple[int, ...]:
        return tuple(range(self.break_index + 1, len(self.slots)))

    @property
    def lecture_order(self) -> tuple[int, ...]:
        return self.first_half + self.second_half

    @property
    def lab_pairs(self) -> tuple[tuple[int, int], ...]:
        pairs = []
        for half in (self.first_half, self.second_half):
            for offset in range(0, len(half) - 1, 2):
                pairs.append((half[offset], half[offset + 1]))
        return tuple(pairs)

    def is_break(self, index: int) -> bool:
        return index == self.break_index


@dataclass(frozen=True)
class Segment:
    start: int
    span: int
    cell: Cell | None

    @property
    def slots(self) -> range:
        return range(self.start, self.start + self.span)

    def covers(self, index: int) -> bool:
        return self.start <= index < self.start + self.span


def is_filler(cell: Cell | None) -> bool:
    return cell is not None and cell.subject == FILLER_LABEL and not cell.is_lab


def is_break_cell(cell: Cell | None) -> bool:
    return cell is not None and cell.subject == BREAK_LABEL and not cell.is_lab


def empty_grid(layout: SlotLayout) -> Grid:
    grid: Grid = {}
    for day in layout.days:
        cells: list[Cell | None] = [None] * layout.slot_count
        cells[layout.break_index] = BREAK_CELL
        grid[day] = cells
    return grid


def copy_grids(grids: GridSet) -> GridSet:
    # Cells are frozen, so copying the containers is enough.
    return {course: {day: list(cells) for day, cells in grid.items()} for course, grid in grids.items()}


def segments(cells: list[Cell | None]) -> list[Segment]:
    """Split one day into segments, pairing each lab cell with its mirrored twin."""
    result: list[Segment] = []
    index = 0
    while index < len(cells):
        cell = cells[index]
        if cell is not None and cell.span == 2 and index + 1 < len(cells) and cells[index + 1] == cell:
            result.append(Segment(start=index, span=2, cell=cell))
            index += 2
        else:
            result.append(Segment(start=index, span=1, cell=cell))
            index += 1
    return result


def segment_at(cells: list[Cell | None], index: int) -> Segment:
    for segment in segments(cells):
        if segment.covers(index):
            return segment
    raise IndexError(f"Slot index {index} is outside the day")


def as_single(cell: Cell) -> Cell:
    return cell.model_copy(update={"span": 1, "is_lab": False})


def as_lab(cell: Cell) -> Cell:
    return cell.model_copy(update={"span": 2, "is_lab": True})


def split_lab(cell: Cell) -> tuple[Cell, Cell]:
    """Split a lab into a left single carrying its metadata and a filler right half."""
    return as_single(cell), FILLER_CELL


def write_segment(cells: list[Cell | None], start: int, cell: Cell) -> None:
    for index in range(start, start + cell.span):
        cells[index] = cell


def check_grid_invariants(grid: Grid, layout: SlotLayout) -> list[str]:
    """Describe every structural invariant the grid violates; empty when it is well formed."""
    problems: list[str] = []
    for day in layout.days:
        cells = grid.get(day)
        if cells is None:
            problems.append(f"{day}: missing day")
            continue
        if len(cells) != layout.slot_count:
            problems.append(f"{day}: expected {layout.slot_count} slots, found {len(cells)}")
            continue
        if not is_break_cell(cells[layout.break_index]):
            problems.append(f"{day}: break slot {layout.break_index + 1} does not hold the break marker")
        for segment in segments(cells):
            cell = segment.cell
            if cell is None:
                problems.append(f"{day}: slot {segment.start + 1} is empty")
                continue
            if cell.span == 2 and segment.span != 2:
                problems.append(f"{day}: lab at slot {segment.start + 1} is not mirrored into the next slot")
                continue
            if segment.span == 2 and any(layout.is_break(index) for index in segment.slots):
                problems.append(f"{day}: lab at slot {segment.start + 1} straddles the break")
            if segment.start != layout.break_index and is_break_cell(cell):
                problems.append(f"{day}: break marker found at slot {segment.start + 1}")
    return problems


def ensure_well_formed(grids: GridSet, layout: SlotLayout) -> None:
    """Raise ``ConfigurationError`` listing per-course problems when any grid is malformed."""
    problems = {
        course: issues
        for course, grid in grids.items()
        if (issues := check_grid_invariants(grid, layout))
    }
    if problems:
        raise ConfigurationError("Timetable violates grid invariants", details={"problems": problems})


def base_subject_name(label: str) -> str:
    """``"Phys Lab (Lab-1 (G1))"`` -> ``"Phys Lab"``."""
    return label.split("(")[0].strip()


def _resolve_names(cell: Cell, rows_by_subject: dict[str, SubjectTeacherRow]) -> tuple[str, str]:
    # Merged labs carry one "A / B" part per original lab, in subject and teacher alike.
    parts = [part.strip() for part in cell.subject.split(LABEL_SEPARATOR) if part.strip()] or [cell.subject]
    teachers = [part.strip() for part in cell.teacher.split(LABEL_SEPARATOR)]
    if len(parts) == 1:
        teachers = [cell.teacher]
    subjects: list[str] = []
    teacher_names: list[str] = []
    for position, part in enumerate(parts):
        row = rows_by_subject.get(base_subject_name(part).lower())
        subjects.append(row.subject_long if row and row.subject_long else part)
        fallback = teachers[position] if position < len(teachers) else ""
        teacher_names.append(row.teacher_long if row and row.teacher_long else fallback)
    return LABEL_SEPARATOR.join(subjects), LABEL_SEPARATOR.join(name for name in teacher_names if name)


def compact_day(
    cells: list[Cell | None],
    slots: list[str] | tuple[str, ...],
    summary_rows: list[SubjectTeacherRow] | None = None,
) -> list[DaySessionOut]:
    """Merge consecutive identical cells of one day into sessions with full names."""
    rows_by_subject = {row.subject_short.lower(): row for row in summary_rows or []}
    sessions: list[DaySessionOut] = []
    index = 0
    while index < len(cells):
        current = cells[index]
        end = index
        while end + 1 < len(cells) and cells[end + 1] == current:
            end += 1
        start_time = slots[index].split("-")[0]
        end_time = slots[end].split("-")[1]
        time_range = f"{start_time} - {end_time}"
        index = end + 1

        if current is None or is_filler(current):
            sessions.append(DaySessionOut(subject="Free", teacher="", room=FILLER_LABEL, time=time_range, kind="free"))
            continue
        if is_break_cell(current):
            sessions.append(DaySessionOut(subject=BREAK_LABEL, teacher="", room="", time=time_range, kind="break"))
            continue

        subject, teacher = _resolve_names(current, rows_by_subject)
        room = ", ".join(part for part in (current.room, current.building) if part) or "N/A"
        sessions.append(
            DaySessionOut(
                subject=subject,
                teacher=teacher or "N/A",
                room=room,
                time=time_range,
                kind="lab" if current.is_lab else "lecture",
            )
        )
    return sessions
