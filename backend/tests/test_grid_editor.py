import pytest

from app.core.exceptions import EditRejectedError, ResourceNotFoundError
from app.schemas.editor import CellRef
from app.schemas.timetable import Cell
from app.services.grid import BREAK_CELL, FILLER_CELL, check_grid_invariants, copy_grids
from app.services.grid_editor import (
    ClashPrompt,
    DropChoice,
    DropOperation,
    GridEditor,
    LabDropPrompt,
    join_labels,
)

PHY = Cell(subject="Phy", teacher="T1", room="R1")
MATHS = Cell(subject="Maths", teacher="DS", room="R1")
DRAW = Cell(subject="Draw", teacher="TBA", room="R2")
CHEM_LAB = Cell(subject="Chem Lab", teacher="DI", room="L2", span=2, is_lab=True)
PHY_LAB = Cell(subject="PhyLab", teacher="PR", room="L1", span=2, is_lab=True)
F = FILLER_CELL
B = BREAK_CELL


class ScriptedDecider:
    def __init__(self, *choices):
        self.choices = list(choices)
        self.prompts = []

    def __call__(self, prompt):
        self.prompts.append(prompt)
        return self.choices.pop(0)


def never_asked(prompt):
    pytest.fail(f"unexpected prompt {prompt!r}")


@pytest.fixture
def grids():
    return {
        "CS1": {
            "Monday": [PHY, MATHS, CHEM_LAB, CHEM_LAB, B, F, F, F, F],
            "Tuesday": [F, DRAW, F, F, B, F, F, F, F],
            "Wednesday": [F, F, F, F, B, F, F, F, F],
            "Thursday": [F, F, F, F, B, PHY_LAB, PHY_LAB, F, F],
            "Friday": [F, F, F, F, B, F, F, F, F],
        }
    }


def ref(day, slot_index, course="CS1"):
    return CellRef(course=course, day=day, slot_index=slot_index)


def test_single_onto_lab_splits_the_lab(grids, layout):
    snapshot = copy_grids(grids)
    outcome = GridEditor(grids, layout, never_asked).apply(ref("Monday", 0), ref("Monday", 2))

    assert outcome.applied
    assert outcome.operation == DropOperation.split_lab
    monday = outcome.grids["CS1"]["Monday"]
    assert monday[2] == Cell(subject="Phy", teacher="T1", room="R1", span=1)
    assert monday[3] == F
    assert monday[0] == Cell(subject="Chem Lab", teacher="DI", room="L2", span=1)
    assert grids == snapshot


def test_single_onto_lab_right_half_drop_uses_segment_start(grids, layout):
    outcome = GridEditor(grids, layout, never_asked).apply(ref("Tuesday", 1), ref("Monday", 3))
    monday = outcome.grids["CS1"]["Monday"]
    assert monday[2] == DRAW
    assert monday[3] == F
    assert outcome.grids["CS1"]["Tuesday"][1].subject == "Chem Lab"


def test_swap_singles_is_an_involution(grids, layout):
    first = GridEditor(grids, layout, never_asked).apply(ref("Monday", 0), ref("Tuesday", 1))
    assert first.operation == DropOperation.swap
    assert first.grids["CS1"]["Monday"][0] == DRAW
    assert first.grids["CS1"]["Tuesday"][1] == PHY

    second = GridEditor(first.grids, layout, never_asked).apply(ref("Monday", 0), ref("Tuesday", 1))
    assert second.grids == grids


def test_lab_onto_lab_merge(grids, layout):
    decide = ScriptedDecider(DropChoice.merge)
    outcome = GridEditor(grids, layout, decide).apply(ref("Thursday", 6), ref("Monday", 3))

    prompt = decide.prompts[0]
    assert isinstance(prompt, LabDropPrompt)
    assert prompt.source.slot_index == 5
    assert prompt.target.slot_index == 2
    merged = Cell(subject="Chem Lab / PhyLab", teacher="DI / PR", room="L2 / L1", span=2, is_lab=True)
    assert outcome.operation == DropOperation.merge
    assert outcome.grids["CS1"]["Monday"][2:4] == [merged, merged]
    assert outcome.grids["CS1"]["Thursday"][5:7] == [F, F]


def test_lab_onto_lab_exchange(grids, layout):
    outcome = GridEditor(grids, layout, ScriptedDecider(DropChoice.exchange)).apply(
        ref("Thursday", 5), ref("Monday", 2)
    )
    assert outcome.operation == DropOperation.exchange
    assert outcome.grids["CS1"]["Monday"][2:4] == [PHY_LAB, PHY_LAB]
    assert outcome.grids["CS1"]["Thursday"][5:7] == [CHEM_LAB, CHEM_LAB]


def test_lab_onto_lab_cancel_leaves_grids_alone(grids, layout):
    outcome = GridEditor(grids, layout, ScriptedDecider(DropChoice.decline)).apply(
        ref("Thursday", 5), ref("Monday", 2)
    )
    assert not outcome.applied
    assert outcome.grids is grids


def test_lab_onto_single_moves_the_lab(grids, layout):
    outcome = GridEditor(grids, layout, never_asked).apply(ref("Thursday", 5), ref("Wednesday", 0))
    assert outcome.operation == DropOperation.place_lab
    assert outcome.grids["CS1"]["Wednesday"][0:2] == [PHY_LAB, PHY_LAB]
    assert outcome.grids["CS1"]["Thursday"][5:7] == [F, F]


@pytest.mark.parametrize(
    "target",
    [
        ("Wednesday", 3),
        ("Wednesday", 8),
        ("Monday", 1),
    ],
)
def test_lab_onto_single_without_two_free_adjacent_slots_is_rejected(grids, layout, target):
    snapshot = copy_grids(grids)
    with pytest.raises(EditRejectedError) as exc_info:
        GridEditor(grids, layout, never_asked).apply(ref("Thursday", 5), ref(*target))
    assert exc_info.value.status_code == 409
    assert grids == snapshot


@pytest.mark.parametrize("source,target", [(("Monday", 4), ("Monday", 0)), (("Monday", 0), ("Tuesday", 4))])
def test_break_slot_cannot_take_part_in_a_drop(grids, layout, source, target):
    with pytest.raises(EditRejectedError):
        GridEditor(grids, layout, never_asked).apply(ref(*source), ref(*target))


def test_unknown_course_is_not_found(grids, layout):
    with pytest.raises(ResourceNotFoundError):
        GridEditor(grids, layout, never_asked).apply(ref("Monday", 0), ref("Monday", 0, course="ZZ"))


def test_dropping_a_lab_onto_itself_is_a_no_op(grids, layout):
    outcome = GridEditor(grids, layout, never_asked).apply(ref("Monday", 3), ref("Monday", 2))
    assert not outcome.applied
    assert outcome.grids is grids


def test_empty_slot_cannot_be_dragged(grids, layout):
    grids["CS1"]["Friday"][0] = None
    with pytest.raises(EditRejectedError):
        GridEditor(grids, layout, never_asked).apply(ref("Friday", 0), ref("Monday", 0))


@pytest.fixture
def clashing_grids(grids):
    other = {day: [B if index == 4 else F for index in range(9)] for day in grids["CS1"]}
    other["Wednesday"][7] = Cell(subject="Stats", teacher="T1", room="R8")
    grids["CS2"] = other
    return grids


def test_clash_declined_leaves_grids_unchanged(clashing_grids, layout):
    decide = ScriptedDecider(DropChoice.decline)
    outcome = GridEditor(clashing_grids, layout, decide).apply(ref("Monday", 0), ref("Wednesday", 7))

    assert not outcome.applied
    assert outcome.grids is clashing_grids
    assert isinstance(decide.prompts[0], ClashPrompt)
    assert outcome.clash.categories == ["Teacher (T1)"]
    assert outcome.clash.with_course == "CS2"


def test_clash_confirmed_applies_the_drop(clashing_grids, layout):
    outcome = GridEditor(clashing_grids, layout, ScriptedDecider(DropChoice.confirm)).apply(
        ref("Monday", 0), ref("Wednesday", 7)
    )
    assert outcome.applied
    assert outcome.grids["CS1"]["Wednesday"][7] == PHY
    assert outcome.grids["CS1"]["Monday"][0] == F


def test_join_labels_skips_empty_parts():
    assert join_labels("L1", "", "L2") == "L1 / L2"


@pytest.mark.parametrize(
    "source,target,decide,operation",
    [
        (("Thursday", 5), ("Monday", 2), ScriptedDecider(DropChoice.merge), DropOperation.merge),
        (("Thursday", 5), ("Monday", 2), ScriptedDecider(DropChoice.exchange), DropOperation.exchange),
        (("Thursday", 6), ("Wednesday", 0), never_asked, DropOperation.place_lab),
        (("Monday", 0), ("Monday", 3), never_asked, DropOperation.split_lab),
        (("Monday", 1), ("Friday", 8), never_asked, DropOperation.swap),
    ],
)
def test_every_applied_drop_keeps_labs_contiguous_and_mirrored(grids, layout, source, target, decide, operation):
    assert check_grid_invariants(grids["CS1"], layout) == []

    outcome = GridEditor(grids, layout, decide).apply(ref(*source), ref(*target))

    assert outcome.applied
    assert outcome.operation == operation
    for grid in outcome.grids.values():
        assert check_grid_invariants(grid, layout) == []
