from __future__ import annotations

import logging
from datetime import datetime
from time import perf_counter

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_layout
from app.core.config import get_settings
from app.core.exceptions import ConfigurationError, ResourceNotFoundError
from app.models.timetable import GeneratedTimetable
from app.schemas.timetable import (
    AvailabilityRequest,
    AvailabilityResponse,
    DaySessionOut,
    GenerateTimetableRequest,
    GenerateTimetableResponse,
    SaveTimetableRequest,
    TimetablePayload,
    TimetableRecordOut,
)
from app.services.grid import SlotLayout, compact_day, ensure_well_formed, slot_bounds
from app.services.occupancy import OccupancyRegistry, is_on_time_off, is_teacher_available
from app.services.timetable_generator import TimetableGenerator

router = APIRouter()

logger = logging.getLogger(__name__)


def _latest_record(db: Session) -> GeneratedTimetable | None:
    return db.execute(select(GeneratedTimetable).order_by(GeneratedTimetable.id.desc())).scalars().first()


def _require_latest(db: Session) -> GeneratedTimetable:
    record = _latest_record(db)
    if record is None:
        raise ResourceNotFoundError("Timetable", "latest")
    return record


def _persist(db: Session, payload: TimetablePayload, *, label: str | None, random_seed: int | None) -> GeneratedTimetable:
    record = GeneratedTimetable(payload=payload.model_dump(mode="json"), label=label, random_seed=random_seed)
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info(
        "TIMETABLE SAVED | record_id=%s | label=%s | courses=%s",
        record.id,
        label,
        len(payload.timetable),
    )
    return record


@router.post("/generate", response_model=GenerateTimetableResponse)
def generate_timetable(
    payload: GenerateTimetableRequest,
    db: Session = Depends(get_db),
    layout: SlotLayout = Depends(get_layout),
) -> GenerateTimetableResponse:
    settings = get_settings()
    random_seed = payload.random_seed if payload.random_seed is not None else settings.random_seed
    started = perf_counter()
    try:
        generator = TimetableGenerator(
            layout,
            random_seed=random_seed,
            max_sessions_per_day=settings.max_sessions_per_day,
        )
        result = generator.generate(payload.courses, payload.subjects, payload.teachers, payload.classrooms)
    except Exception:
        logger.exception(
            "TIMETABLE GENERATION FAILED | courses=%s | seed=%s | wall_ms=%s",
            len(payload.courses),
            random_seed,
            int((perf_counter() - started) * 1000),
        )
        raise

    response = GenerateTimetableResponse(**result.payload.model_dump(), shortfalls=result.shortfalls)
    if payload.persist:
        record = _persist(db, result.payload, label=payload.label, random_seed=random_seed)
        response.record_id = record.id
    return response


@router.post("/save", response_model=TimetableRecordOut, status_code=status.HTTP_201_CREATED)
def save_timetable(payload: SaveTimetableRequest, db: Session = Depends(get_db)) -> TimetableRecordOut:
    ensure_well_formed(payload.timetable, SlotLayout.from_payload(payload))

    timetable = TimetablePayload.model_validate(payload.model_dump(exclude={"label"}))
    record = _persist(db, timetable, label=payload.label, random_seed=None)
    return TimetableRecordOut(
        id=record.id,
        label=record.label,
        random_seed=record.random_seed,
        created_at=record.created_at,
        payload=timetable,
    )


@router.get("/latest", response_model=TimetableRecordOut)
def latest_timetable(
    course: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> TimetableRecordOut:
    record = _require_latest(db)
    payload = TimetablePayload.model_validate(record.payload)
    if course and course in payload.timetable:
        payload = payload.model_copy(
            update={
                "timetable": {course: payload.timetable[course]},
                "subject_teachers": {course: payload.subject_teachers.get(course, [])},
            }
        )
    return TimetableRecordOut(
        id=record.id,
        label=record.label,
        random_seed=record.random_seed,
        created_at=record.created_at,
        payload=payload,
    )


@router.get("/latest/day", response_model=list[DaySessionOut])
def latest_day_view(
    course: str = Query(min_length=1),
    day: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[DaySessionOut]:
    payload = TimetablePayload.model_validate(_require_latest(db).payload)
    grid = payload.timetable.get(course)
    if grid is None:
        raise ResourceNotFoundError("Course", course)
    day_name = day or datetime.now().strftime("%A")
    cells = grid.get(day_name)
    if cells is None:
        return []
    return compact_day(cells, payload.slots, payload.subject_teachers.get(course, []))


@router.post("/availability", response_model=AvailabilityResponse)
def check_teacher_availability(
    payload: AvailabilityRequest,
    db: Session = Depends(get_db),
) -> AvailabilityResponse:
    try:
        slot_bounds(payload.slot)
    except ValueError as exc:
        raise ConfigurationError(str(exc), details={"slot": payload.slot}) from exc

    timetable = payload.timetable
    if timetable is None:
        record = _latest_record(db)
        timetable = TimetablePayload.model_validate(record.payload) if record is not None else None
    occupancy = OccupancyRegistry.from_timetable(timetable) if timetable is not None else OccupancyRegistry()

    teacher = payload.teacher
    on_time_off = is_on_time_off(teacher, payload.day, payload.slot)
    booked = teacher is not None and not occupancy.is_teacher_free(payload.day, payload.slot, teacher.short_name)
    return AvailabilityResponse(
        available=is_teacher_available(teacher, payload.day, payload.slot, occupancy),
        on_time_off=on_time_off,
        booked=booked,
    )
