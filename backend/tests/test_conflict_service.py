import pytest

from app.core.exceptions import ResourceNotFoundError
from app.schemas.editor import CellRef
from app.schemas.timetable import Cell
from app.services.conflict_service import ConflictService, resource_key
from app.services.grid import BREAK_CELL, FILLER_CELL

SMITH = Cell(subject="Maths", teacher="Dr. Smith", room="R1")
SMITH_ELSEWHERE = Cell(subject="Stats", teacher=" dr. smith", room="R7")
SHARES_ROOM = Cell(subject="Chem", teacher="DI", room="r1")
UNASSIGNED = Cell(subject="Draw", teacher="TBA", room="R3")
PHY_LAB = Cell(subject="PhyLab (Lab-1 (G1))", teacher="PR", room="L1", span=2, is_lab=True)
CHEM_LAB = Cell(subject="ChemLab (Lab-1 (G1))", teacher="DI", room="L2", span=2, is_lab=True)


def filler_week(layout):
    return {
        day: [BREAK_CELL if layout.is_break(index) else FILLER_CELL for index in range(layout.slot_count)]
        for day in layout.days
    }


@pytest.fixture
def grids(layout):
    cs1, cs2, me1 = filler_week(layout), filler_week(layout), filler_week(layout)
    cs1["Monday"][0] = SMITH
    cs1["Monday"][1] = UNASSIGNED
    cs1["Tuesday"][2:4] = [PHY_LAB, PHY_LAB]
    cs1["Wednesday"][5] = Cell(subject="Phy", teacher="PR", room="R2")

    cs2["Monday"][0] = SHARES_ROOM
    cs2["Monday"][1] = Cell(subject="Mech", teacher="TBA", room="R9")
    cs2["Tuesday"][2:4] = [CHEM_LAB, CHEM_LAB]
    cs2["Wednesday"][7] = SMITH_ELSEWHERE

    me1["Friday"][8] = Cell(subject="Draw", teacher="Dr. Smith", room="R5")
    return {"CS1": cs1, "CS2": cs2, "ME1": me1}


@pytest.fixture
def service(grids, layout):
    return ConflictService(grids, layout)


def ref(course, day, slot_index):
    return CellRef(course=course, day=day, slot_index=slot_index)


def test_resource_key_ignores_placeholders():
    assert resource_key("  Dr. Smith ") == "dr. smith"
    assert resource_key("TBA") == ""
    assert resource_key("") == ""
    assert resource_key(None) == ""


def test_coarse_flags_same_teacher_or_room_in_other_courses_on_any_slot(service):
    flagged = service.coarse_clashes(ref("CS1", "Monday", 0))
    assert set(flagged) == {
        ref("CS2", "Monday", 0),
        ref("CS2", "Wednesday", 7),
        ref("ME1", "Friday", 8),
    }


def test_coarse_never_flags_the_selected_course(service):
    flagged = service.coarse_clashes(ref("CS1", "Wednesday", 5))
    assert all(item.course != "CS1" for item in flagged)
    assert flagged == []


def test_placeholder_teacher_does_not_match_other_placeholders(service):
    assert service.coarse_clashes(ref("CS1", "Monday", 1)) == []


def test_precise_flags_selected_course_slots_that_overlap_on_their_own_day(service):
    flagged = service.precise_clashes(ref("CS1", "Monday", 0))
    assert set(flagged) == {
        ref("CS1", "Monday", 0),
        ref("CS1", "Wednesday", 7),
        ref("CS1", "Friday", 8),
    }


def test_precise_flags_lab_over_lab_overlap(service):
    report = service.highlight(ref("CS1", "Tuesday", 3))
    assert report.coarse == []
    assert report.precise == [ref("CS1", "Tuesday", 2)]


@pytest.mark.parametrize("slot_index", [4, 8])
def test_break_and_filler_selections_have_no_signals(service, slot_index):
    report = service.highlight(ref("CS1", "Thursday", slot_index))
    assert report.coarse == []
    assert report.precise == []


def test_has_precise_clash_for_a_drop_target(service):
    selection = ref("CS1", "Monday", 0)
    assert service.has_precise_clash(selection, ref("CS1", "Wednesday", 7))
    assert not service.has_precise_clash(selection, ref("CS1", "Thursday", 7))


def test_resolve_rejects_unknown_cells(service):
    with pytest.raises(ResourceNotFoundError):
        service.resolve(ref("XX9", "Monday", 0))
    with pytest.raises(ResourceNotFoundError):
        service.resolve(ref("CS1", "Sunday", 0))
    with pytest.raises(ResourceNotFoundError) as exc_info:
        service.resolve(ref("CS1", "Monday", 20))
    assert exc_info.value.status_code == 404


def test_describe_teacher_clash(service):
    clash = service.describe_drop_clash(ref("CS1", "Monday", 0), ref("CS1", "Wednesday", 7))
    assert clash.with_course == "CS2"
    assert clash.categories == ["Teacher (Dr. Smith)"]
    assert clash.slot_number == 8
    assert clash.message == "Clash detected for Course: CS1 with CS2\nTeacher (Dr. Smith)\nDay: Wednesday, Slot: 8"


def test_describe_room_clash(service):
    clash = service.describe_drop_clash(ref("CS1", "Monday", 0), ref("CS1", "Monday", 0))
    assert clash.categories == ["Room (R1)"]


def test_describe_lab_clash_uses_segment_start(service):
    clash = service.describe_drop_clash(ref("CS1", "Tuesday", 2), ref("CS1", "Tuesday", 3))
    assert clash.categories == ["Lab"]
    assert clash.slot_number == 3


def test_describe_falls_back_to_unknown(service):
    clash = service.describe_drop_clash(ref("CS1", "Wednesday", 5), ref("CS1", "Thursday", 0))
    assert clash.categories == ["Unknown"]
    assert clash.with_course is None
    assert clash.message == "Clash detected for Course: CS1\nUnknown\nDay: Thursday, Slot: 1"
