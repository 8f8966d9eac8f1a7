from fastapi import APIRouter

from app.core.exceptions import EditRejectedError
from app.schemas.editor import DropRequest, DropResponse, HighlightReport, HighlightRequest
from app.services.conflict_service import ConflictService
from app.services.grid import SlotLayout, ensure_well_formed
from app.services.grid_editor import ClashPrompt, Decider, DropChoice, GridEditor, Prompt

router = APIRouter()


def decider_for(request: DropRequest) -> Decider:
    """Answer editor prompts from the choices the client sent with the drop."""

    def decide(prompt: Prompt) -> DropChoice:
        if isinstance(prompt, ClashPrompt):
            return DropChoice.confirm if request.confirm_clash else DropChoice.decline
        if request.lab_choice is None:
            raise EditRejectedError(
                "Dropping a lab onto a lab needs lab_choice 'merge' or 'exchange'",
                details={"source": prompt.source.model_dump(), "target": prompt.target.model_dump()},
            )
        return DropChoice(request.lab_choice)

    return decide


@router.post("/highlights", response_model=HighlightReport)
def highlight_clashes(payload: HighlightRequest) -> HighlightReport:
    layout = SlotLayout.from_payload(payload.timetable)
    ensure_well_formed(payload.timetable.timetable, layout)
    return ConflictService(payload.timetable.timetable, layout).highlight(payload.selection)


@router.post("/drop", response_model=DropResponse)
def drop_cell(payload: DropRequest) -> DropResponse:
    layout = SlotLayout.from_payload(payload.timetable)
    ensure_well_formed(payload.timetable.timetable, layout)
    editor = GridEditor(payload.timetable.timetable, layout, decider_for(payload))
    outcome = editor.apply(payload.source, payload.target)
    return DropResponse(
        applied=outcome.applied,
        operation=outcome.operation.value if outcome.operation else None,
        message=outcome.message,
        clash=outcome.clash,
        timetable=payload.timetable.model_copy(update={"timetable": outcome.grids}),
    )
