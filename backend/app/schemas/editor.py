from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.timetable import TimetablePayload


class CellRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    course: str = Field(min_length=1)
    day: str = Field(min_length=1)
    slot_index: int = Field(ge=0)


class HighlightReport(BaseModel):
    coarse: list[CellRef] = Field(default_factory=list)
    precise: list[CellRef] = Field(default_factory=list)


class ClashDescription(BaseModel):
    course: str
    with_course: str | None = None
    categories: list[str]
    day: str
    slot_number: int
    message: str


class HighlightRequest(BaseModel):
    timetable: TimetablePayload
    selection: CellRef


class DropRequest(BaseModel):
    timetable: TimetablePayload
    source: CellRef
    target: CellRef
    lab_choice: Literal["merge", "exchange"] | None = None
    confirm_clash: bool = False


class DropResponse(BaseModel):
    applied: bool
    operation: Literal["merge", "exchange", "place_lab", "split_lab", "swap"] | None = None
    message: str
    clash: ClashDescription | None = None
    timetable: TimetablePayload
