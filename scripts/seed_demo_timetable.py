"""Generate a demo week for three courses and store it as the latest timetable.

Run:
  PYTHONPATH=backend python scripts/seed_demo_timetable.py [seed]
"""

from __future__ import annotations

import sys

from app.core.config import get_settings
from app.db.bootstrap import ensure_schema
from app.db.session import SessionLocal
from app.models.timetable import GeneratedTimetable
from app.services.grid import SlotLayout
from app.services.timetable_generator import TimetableGenerator

DEMO_COURSES = [
    {"short_name": "CSE-A", "name": "Computer Science A", "strength": 60, "subjects": ["DSA", "DBMS", "OS", "DSA Lab"]},
    {"short_name": "CSE-B", "name": "Computer Science B", "strength": 45, "subjects": ["DSA", "CN", "Maths", "CN Lab"]},
    {"short_name": "ECE-A", "name": "Electronics A", "strength": 70, "subjects": ["Signals", "Maths", "Circuits Lab"]},
]

DEMO_SUBJECTS = [
    {"short_name": "DSA", "full_name": "Data Structures and Algorithms", "count": 4},
    {"short_name": "DBMS", "full_name": "Database Management Systems", "count": 3},
    {"short_name": "OS", "full_name": "Operating Systems", "count": 3},
    {"short_name": "CN", "full_name": "Computer Networks", "count": 3},
    {"short_name": "Maths", "full_name": "Engineering Mathematics", "count": 4},
    {"short_name": "Signals", "full_name": "Signals and Systems", "count": 3},
    {"short_name": "DSA Lab", "full_name": "Data Structures Lab", "count": 4, "is_lab": True, "lab_type": "Computing"},
    {"short_name": "CN Lab", "full_name": "Networks Lab", "count": 2, "is_lab": True, "lab_type": "Computing"},
    {"short_name": "Circuits Lab", "full_name": "Circuits Lab", "count": 2, "is_lab": True, "lab_type": "Electronics"},
]

DEMO_TEACHERS = [
    {
        "name": "Dr. Anjali Menon",
        "short_name": "AM",
        "assignments": [{"course": "CSE-A", "subject": "DSA"}, {"course": "CSE-B", "subject": "DSA"}],
    },
    {
        "name": "Prof. Ravi Kumar",
        "short_name": "RK",
        "assignments": [{"course": "CSE-A", "subject": "DBMS"}, {"course": "CSE-A", "subject": "DSA Lab"}],
        "time_off": [{"day": "Friday", "start": "13:30", "end": "17:30"}],
    },
    {
        "name": "Dr. Meera Iyer",
        "short_name": "MI",
        "assignments": [{"course": "CSE-B", "subject": "Maths"}, {"course": "ECE-A", "subject": "Maths"}],
    },
    {
        "name": "Prof. Suresh Nair",
        "short_name": "SN",
        "assignments": [{"course": "ECE-A", "subject": "Signals"}, {"course": "ECE-A", "subject": "Circuits Lab"}],
    },
]

DEMO_CLASSROOMS = [
    {"room_number": "A101", "building": "Academic Block", "kind": "class", "capacity_range": "40-80"},
    {"room_number": "A102", "building": "Academic Block", "kind": "class", "capacity_range": "30-50"},
    {"room_number": "C201", "building": "Computing Centre", "kind": "lab", "capacity_range": "20-70", "lab_type": "Computing"},
    {"room_number": "C202", "building": "Computing Centre", "kind": "lab", "capacity_range": "20-70", "lab_type": "Computing"},
    {"room_number": "E110", "building": "Electronics Block", "kind": "lab", "capacity_range": "20-70", "lab_type": "Electronics"},
]


def main() -> None:
    random_seed = int(sys.argv[1]) if len(sys.argv) > 1 else get_settings().random_seed
    ensure_schema()
    layout = SlotLayout.from_settings(get_settings())
    result = TimetableGenerator(layout, random_seed=random_seed).generate(
        DEMO_COURSES,
        DEMO_SUBJECTS,
        DEMO_TEACHERS,
        DEMO_CLASSROOMS,
    )

    with SessionLocal() as session:
        record = GeneratedTimetable(
            payload=result.payload.model_dump(mode="json"),
            label="demo",
            random_seed=random_seed,
        )
        session.add(record)
        session.commit()
        record_id = record.id

    print(f"Stored demo timetable #{record_id} for {len(result.payload.timetable)} courses (seed={random_seed})")
    for shortfall in result.shortfalls:
        print(f"  - {shortfall.course}/{shortfall.subject}: {shortfall.scheduled} of {shortfall.required} sessions placed")


if __name__ == "__main__":
    main()
