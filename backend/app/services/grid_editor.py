from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from app.core.exceptions import EditRejectedError, ResourceNotFoundError
from app.schemas.editor import CellRef, ClashDescription
from app.schemas.timetable import Cell, GridSet
from app.services.conflict_service import ConflictService
from app.services.grid import (
    FILLER_CELL,
    LABEL_SEPARATOR,
    Segment,
    SlotLayout,
    as_lab,
    as_single,
    copy_grids,
    segment_at,
    split_lab,
    write_segment,
)

logger = logging.getLogger(__name__)


class DropChoice(str, Enum):
    merge = "merge"
    exchange = "exchange"
    confirm = "confirm"
    decline = "decline"


class DropOperation(str, Enum):
    merge = "merge"
    exchange = "exchange"
    place_lab = "place_lab"
    split_lab = "split_lab"
    swap = "swap"


@dataclass(frozen=True)
class ClashPrompt:
    clash: ClashDescription


@dataclass(frozen=True)
class LabDropPrompt:
    source: CellRef
    target: CellRef
    source_cell: Cell
    target_cell: Cell


Prompt = ClashPrompt | LabDropPrompt
Decider = Callable[[Prompt], DropChoice]


@dataclass
class DropOutcome:
    applied: bool
    grids: GridSet
    message: str
    operation: DropOperation | None = None
    clash: ClashDescription | None = None


def join_labels(*parts: str) -> str:
    return LABEL_SEPARATOR.join(part for part in parts if part)


def merge_labs(target: Cell, source: Cell) -> Cell:
    return Cell(
        subject=join_labels(target.subject, source.subject),
        teacher=join_labels(target.teacher, source.teacher),
        room=join_labels(target.room, source.room),
        building=join_labels(target.building, source.building),
        span=2,
        is_lab=True,
    )


class GridEditor:
    """Applies one drag-and-drop of a cell onto another as a structural grid edit.

    The input grid set is never mutated; every applied edit returns a fresh copy.
    """

    def __init__(self, grids: GridSet, layout: SlotLayout, decide: Decider):
        self.grids = grids
        self.layout = layout
        self.decide = decide
        self.conflicts = ConflictService(grids, layout)

    def _segment(self, ref: CellRef) -> Segment:
        grid = self.grids.get(ref.course)
        if grid is None:
            raise ResourceNotFoundError("Course", ref.course)
        cells = grid.get(ref.day)
        if cells is None:
            raise ResourceNotFoundError("Day", f"{ref.day} in course {ref.course}")
        if not 0 <= ref.slot_index < len(cells):
            raise ResourceNotFoundError("Slot", str(ref.slot_index + 1))
        if self.layout.is_break(ref.slot_index):
            raise EditRejectedError(
                "The break slot cannot be edited",
                details={"course": ref.course, "day": ref.day, "slot": ref.slot_index + 1},
            )
        segment = segment_at(cells, ref.slot_index)
        if segment.cell is None:
            raise EditRejectedError(
                "Cannot edit an empty slot",
                details={"course": ref.course, "day": ref.day, "slot": ref.slot_index + 1},
            )
        return segment

    def _unchanged(self, message: str, clash: ClashDescription | None = None) -> DropOutcome:
        return DropOutcome(applied=False, grids=self.grids, message=message, clash=clash)

    def apply(self, source: CellRef, target: CellRef) -> DropOutcome:
        src = self._segment(source)
        tgt = self._segment(target)
        if (source.course, source.day, src.start) == (target.course, target.day, tgt.start):
            return self._unchanged("Source and target are the same cell")

        source = source.model_copy(update={"slot_index": src.start})
        target = target.model_copy(update={"slot_index": tgt.start})

        if self.conflicts.has_precise_clash(source, target):
            clash = self.conflicts.describe_drop_clash(source, target)
            if self.decide(ClashPrompt(clash=clash)) != DropChoice.confirm:
                logger.info(
                    "GRID DROP DECLINED | course=%s | day=%s | slot=%s | reasons=%s",
                    target.course,
                    target.day,
                    clash.slot_number,
                    ", ".join(clash.categories),
                )
                return self._unchanged("Drop cancelled because of a clash", clash=clash)

        source_is_lab = src.span == 2
        target_is_lab = tgt.span == 2
        if source_is_lab and target_is_lab:
            return self._lab_onto_lab(source, src, target, tgt)
        if source_is_lab:
            return self._lab_onto_single(source, src, target, tgt)
        if target_is_lab:
            return self._single_onto_lab(source, src, target, tgt)
        return self._swap_singles(source, src, target, tgt)

    def _day(self, grids: GridSet, ref: CellRef) -> list[Cell | None]:
        return grids[ref.course][ref.day]

    def _clear_lab(self, grids: GridSet, ref: CellRef, segment: Segment) -> None:
        cells = self._day(grids, ref)
        for index in segment.slots:
            cells[index] = FILLER_CELL

    def _lab_onto_lab(self, source: CellRef, src: Segment, target: CellRef, tgt: Segment) -> DropOutcome:
        choice = self.decide(LabDropPrompt(source=source, target=target, source_cell=src.cell, target_cell=tgt.cell))
        grids = copy_grids(self.grids)
        if choice == DropChoice.merge:
            self._clear_lab(grids, source, src)
            write_segment(self._day(grids, target), tgt.start, merge_labs(tgt.cell, src.cell))
            return DropOutcome(applied=True, grids=grids, message="Labs merged", operation=DropOperation.merge)
        if choice == DropChoice.exchange:
            write_segment(self._day(grids, source), src.start, tgt.cell)
            write_segment(self._day(grids, target), tgt.start, src.cell)
            return DropOutcome(applied=True, grids=grids, message="Labs exchanged", operation=DropOperation.exchange)
        return self._unchanged("Lab drop cancelled")

    def _lab_onto_single(self, source: CellRef, src: Segment, target: CellRef, tgt: Segment) -> DropOutcome:
        cells = self._day(self.grids, target)
        neighbour = tgt.start + 1
        details = {"course": target.course, "day": target.day, "slot": tgt.start + 1}
        if neighbour >= len(cells) or self.layout.is_break(neighbour):
            logger.info("GRID DROP REJECTED | reason=no_adjacent_slot | course=%s | day=%s", target.course, target.day)
            raise EditRejectedError("Cannot place a 2-slot lab here (needs two adjacent non-break slots)", details=details)
        if segment_at(cells, neighbour).span != 1:
            logger.info("GRID DROP REJECTED | reason=neighbour_is_lab | course=%s | day=%s", target.course, target.day)
            raise EditRejectedError("Cannot place a 2-slot lab here (the next slot belongs to another lab)", details=details)

        grids = copy_grids(self.grids)
        self._clear_lab(grids, source, src)
        write_segment(self._day(grids, target), tgt.start, as_lab(src.cell))
        return DropOutcome(applied=True, grids=grids, message="Lab moved", operation=DropOperation.place_lab)

    def _single_onto_lab(self, source: CellRef, src: Segment, target: CellRef, tgt: Segment) -> DropOutcome:
        grids = copy_grids(self.grids)
        left_half, right_half = split_lab(tgt.cell)
        target_cells = self._day(grids, target)
        target_cells[tgt.start] = as_single(src.cell)
        target_cells[tgt.start + 1] = right_half
        # The lab's right half is not carried anywhere.
        self._day(grids, source)[src.start] = left_half
        return DropOutcome(applied=True, grids=grids, message="Lab split", operation=DropOperation.split_lab)

    def _swap_singles(self, source: CellRef, src: Segment, target: CellRef, tgt: Segment) -> DropOutcome:
        grids = copy_grids(self.grids)
        self._day(grids, source)[src.start] = tgt.cell
        self._day(grids, target)[tgt.start] = src.cell
        return DropOutcome(applied=True, grids=grids, message="Cells swapped", operation=DropOperation.swap)
