from __future__ import annotations

from app.core.exceptions import AppError, EditRejectedError
from app.schemas.editor import CellRef, HighlightReport
from app.schemas.timetable import GridSet
from app.services.conflict_service import ConflictService
from app.services.grid import SlotLayout
from app.services.grid_editor import Decider, DropOutcome, GridEditor


class EditorSession:
    """Single-writer editing session driven by discrete interaction events.

    Each event runs to completion before the next one; highlights are rebuilt from
    the current grids on every selection and dropped when the drag ends.
    """

    def __init__(self, grids: GridSet, layout: SlotLayout, decide: Decider):
        self._grids = grids
        self.layout = layout
        self.decide = decide
        self.highlights: HighlightReport | None = None
        self.drag_source: CellRef | None = None

    @property
    def grids(self) -> GridSet:
        return self._grids

    def select(self, ref: CellRef) -> HighlightReport:
        self.highlights = None
        self.highlights = ConflictService(self._grids, self.layout).highlight(ref)
        return self.highlights

    def clear_selection(self) -> None:
        self.highlights = None

    def begin_drag(self, ref: CellRef) -> HighlightReport:
        if self.layout.is_break(ref.slot_index):
            raise EditRejectedError("The break slot cannot be dragged")
        report = self.select(ref)
        self.drag_source = ref
        return report

    def drag_over(self, ref: CellRef) -> bool:
        if self.drag_source is None or self.layout.is_break(ref.slot_index):
            return False
        cells = self._grids.get(ref.course, {}).get(ref.day)
        return cells is not None and 0 <= ref.slot_index < len(cells)

    def drop(self, target: CellRef) -> DropOutcome:
        if self.drag_source is None:
            raise EditRejectedError("No drag in progress")
        source = self.drag_source
        try:
            outcome = GridEditor(self._grids, self.layout, self.decide).apply(source, target)
        except AppError:
            self.end_drag()
            raise
        if outcome.applied:
            self._grids = outcome.grids
        self.end_drag()
        return outcome

    def end_drag(self) -> None:
        self.drag_source = None
        self.clear_selection()
