import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")

import pytest
from fastapi.testclient import TestClient #gives you a fake http client that can call your FastAPI routes without running a real server.
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_db
from app.db.base import Base
from app.main import app
from app.services.grid import SlotLayout

DAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]
SLOTS = [
    "09:00-10:00",
    "10:00-11:00",
    "11:00-12:00",
    "12:00-13:00",
    "13:00-13:30",
    "13:30-14:30",
    "14:30-15:30",
    "15:30-16:30",
    "16:30-17:30",
]


@pytest.fixture()
def layout():
    return SlotLayout(days=tuple(DAYS), slots=tuple(SLOTS), break_index=4)


@pytest.fixture()
def catalog():
    return {
        "courses": [
            {"short_name": "CS1", "name": "Computer Science 1", "strength": 60, "subjects": ["Maths", "Phy", "PhyLab"]},
            {"short_name": "CS2", "name": "Computer Science 2", "strength": 45, "subjects": ["Maths2", "Chem", "ChemLab"]},
            {"short_name": "ME1", "name": "Mechanical 1", "strength": 70, "subjects": ["Mech", "Draw", "PhyLab"]},
        ],
        "subjects": [
            {"short_name": "Maths", "full_name": "Engineering Mathematics", "count": 4},
            {"short_name": "Maths2", "full_name": "Discrete Mathematics", "count": 3},
            {"short_name": "Phy", "full_name": "Physics", "count": 3},
            {"short_name": "Chem", "full_name": "Chemistry", "count": 3},
            {"short_name": "Mech", "full_name": "Mechanics", "count": 4},
            {"short_name": "Draw", "full_name": "Engineering Drawing", "count": 2},
            {"short_name": "PhyLab", "full_name": "Physics Lab", "count": 4, "is_lab": True, "lab_type": "Physics"},
            {"short_name": "ChemLab", "full_name": "Chemistry Lab", "count": 2, "is_lab": True, "lab_type": "Chemistry"},
        ],
        "teachers": [
            {
                "name": "Dr. Smith",
                "short_name": "DS",
                "assignments": [
                    {"course": "CS1", "subject": "Maths"},
                    {"course": "CS2", "subject": "Maths2"},
                ],
            },
            {
                "name": "Prof. Rao",
                "short_name": "PR",
                "assignments": [
                    {"course": "CS1", "subject": "Phy"},
                    {"course": "CS1", "subject": "PhyLab"},
                    {"course": "ME1", "subject": "PhyLab"},
                ],
                "time_off": [{"day": "Monday", "start": "9:00", "end": "11:00"}],
            },
            {
                "name": "Dr. Iyer",
                "short_name": "DI",
                "assignments": [
                    {"course": "CS2", "subject": "Chem"},
                    {"course": "CS2", "subject": "ChemLab"},
                    {"course": "ME1", "subject": "Mech"},
                ],
            },
        ],
        "classrooms": [
            {"room_number": "R1", "building": "Main", "kind": "class", "capacity_range": "40-80"},
            {"room_number": "R2", "building": "Main", "kind": "class", "capacity_range": [30, 50]},
            {"room_number": "L1", "building": "Science", "kind": "lab", "capacity_range": "20-40", "lab_type": "Physics"},
            {"room_number": "L2", "building": "Science", "kind": "lab", "capacity_range": "20-40", "lab_type": "Chemistry"},
        ],
    }


@pytest.fixture() #test client
def client(): #fake http client
    engine = create_engine( #create isolate DB
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine) #this base contains all the SQLAlchemy models and creates the tables inside the in-memory db

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
