from __future__ import annotations

import re
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

DAY_VALUES = {
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
}

TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{1,2})$")


def clean_day(value: str) -> str:
    day = value.strip()
    if day not in DAY_VALUES:
        raise ValueError("Invalid day value")
    return day


def normalize_time(value: str) -> str:
    match = TIME_PATTERN.match(value.strip())
    if not match:
        raise ValueError("Time must be in H:MM or HH:MM format")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError("Time must be a valid 24-hour clock value")
    return f"{hours:02d}:{minutes:02d}"


def parse_time_to_minutes(value: str) -> int:
    hours, minutes = normalize_time(value).split(":")
    return int(hours) * 60 + int(minutes)


def parse_capacity_range(value: str | list | tuple) -> tuple[int, int]:
    if isinstance(value, str):
        parts = [part.strip() for part in value.split("-")]
    elif isinstance(value, (list, tuple)):
        parts = list(value)
    else:
        raise ValueError("capacity_range must be 'min-max' or a [min, max] pair")
    if len(parts) != 2:
        raise ValueError("capacity_range must have exactly two bounds")
    try:
        low, high = int(parts[0]), int(parts[1])
    except (TypeError, ValueError) as exc:
        raise ValueError(f"capacity_range bounds must be integers, got {value!r}") from exc
    if low < 0 or high < low:
        raise ValueError(f"capacity_range {value!r} must satisfy 0 <= min <= max")
    return low, high


class RoomKind(str, Enum):
    classroom = "class"
    lab = "lab"


class TimeOffWindow(BaseModel):
    day: str
    start: str
    end: str

    @field_validator("day")
    @classmethod
    def validate_day(cls, value: str) -> str:
        return clean_day(value)

    @field_validator("start", "end")
    @classmethod
    def validate_time_format(cls, value: str) -> str:
        return normalize_time(value)

    @model_validator(mode="after")
    def validate_order(self) -> "TimeOffWindow":
        if parse_time_to_minutes(self.end) <= parse_time_to_minutes(self.start):
            raise ValueError("end must be after start")
        return self


class Subject(BaseModel):
    short_name: str = Field(min_length=1, max_length=50)
    full_name: str = Field(default="", max_length=200)
    count: int = Field(ge=0, le=40)
    is_lab: bool = False
    lab_type: str | None = Field(default=None, max_length=100)
    hours_per_session: int = Field(default=1, ge=1, le=8)

    @model_validator(mode="after")
    def clear_lab_type_for_lectures(self) -> "Subject":
        if not self.is_lab:
            self.lab_type = None
        elif self.lab_type is not None and not self.lab_type.strip():
            self.lab_type = None
        return self


class Course(BaseModel):
    short_name: str = Field(min_length=1, max_length=50)
    name: str = Field(default="", max_length=200)
    strength: int = Field(default=0, ge=0, le=5000)
    subjects: list[str] = Field(default_factory=list)


class Assignment(BaseModel):
    course: str = Field(min_length=1, max_length=50)
    subject: str = Field(min_length=1, max_length=50)


class Teacher(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    short_name: str = Field(min_length=1, max_length=50)
    assignments: list[Assignment] = Field(default_factory=list)
    time_off: list[TimeOffWindow] = Field(default_factory=list, max_length=100)

    def teaches(self, course: str, subject: str) -> bool:
        return any(item.course == course and item.subject == subject for item in self.assignments)


class Classroom(BaseModel):
    room_number: str = Field(min_length=1, max_length=50)
    building: str = Field(default="", max_length=200)
    kind: RoomKind
    capacity_range: tuple[int, int]
    lab_type: str | None = Field(default=None, max_length=100)

    @field_validator("capacity_range", mode="before")
    @classmethod
    def validate_capacity_range(cls, value):
        return parse_capacity_range(value)

    @property
    def min_capacity(self) -> int:
        return self.capacity_range[0]

    @property
    def max_capacity(self) -> int:
        return self.capacity_range[1]

    def fits(self, strength: int) -> bool:
        return self.min_capacity <= strength <= self.max_capacity

    def matches_lab_type(self, lab_type: str | None) -> bool:
        return not lab_type or self.lab_type == lab_type
