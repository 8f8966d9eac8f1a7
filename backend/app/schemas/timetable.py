from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.schemas.catalog import Classroom, Course, Subject, Teacher, clean_day


class Cell(BaseModel):
    """One schedule entry. Lab cells (span 2) are stored in both positions they cover."""

    model_config = ConfigDict(frozen=True)

    subject: str = ""
    teacher: str = ""
    room: str = ""
    building: str = ""
    span: Literal[1, 2] = 1
    is_lab: bool = False

    @model_validator(mode="after")
    def validate_span(self) -> "Cell":
        if self.span == 2 and not self.is_lab:
            raise ValueError("Only lab cells may span two slots")
        return self


class SubjectTeacherRow(BaseModel):
    subject_short: str
    subject_long: str = ""
    teacher_short: str = ""
    teacher_long: str = ""


Grid = dict[str, list[Cell | None]]
GridSet = dict[str, Grid]


class TimetablePayload(BaseModel):
    timetable: dict[str, dict[str, list[Cell | None]]] = Field(default_factory=dict)
    subject_teachers: dict[str, list[SubjectTeacherRow]] = Field(default_factory=dict)
    days: list[str] = Field(min_length=1)
    slots: list[str] = Field(min_length=1)
    break_index: int = Field(default=4, ge=0)

    @model_validator(mode="after")
    def validate_day_lengths(self) -> "TimetablePayload":
        for course, grid in self.timetable.items():
            for day, cells in grid.items():
                if day not in self.days:
                    raise ValueError(f"Course {course} uses unknown day {day}")
                if len(cells) != len(self.slots):
                    raise ValueError(
                        f"Course {course} on {day} has {len(cells)} cells, expected {len(self.slots)}"
                    )
        return self


class SessionShortfall(BaseModel):
    course: str
    subject: str
    required: int
    scheduled: int


class GenerateTimetableRequest(BaseModel):
    courses: list[Course] = Field(min_length=1)
    subjects: list[Subject] = Field(default_factory=list)
    teachers: list[Teacher] = Field(default_factory=list)
    classrooms: list[Classroom] = Field(default_factory=list)
    random_seed: int | None = Field(default=None, ge=0, le=2_000_000_000)
    persist: bool = False
    label: str | None = Field(default=None, max_length=200)


class GenerateTimetableResponse(TimetablePayload):
    shortfalls: list[SessionShortfall] = Field(default_factory=list)
    record_id: int | None = None


class SaveTimetableRequest(TimetablePayload):
    label: str | None = Field(default=None, max_length=200)


class TimetableRecordOut(BaseModel):
    id: int
    label: str | None = None
    random_seed: int | None = None
    created_at: datetime | None = None
    payload: TimetablePayload


class DaySessionOut(BaseModel):
    subject: str
    teacher: str
    room: str
    time: str
    kind: Literal["lecture", "lab", "free", "break"]


class AvailabilityRequest(BaseModel):
    teacher: Teacher | None = None
    day: str
    slot: str
    timetable: TimetablePayload | None = None

    @field_validator("day")
    @classmethod
    def validate_day(cls, value: str) -> str:
        return clean_day(value)


class AvailabilityResponse(BaseModel):
    available: bool
    on_time_off: bool
    booked: bool
