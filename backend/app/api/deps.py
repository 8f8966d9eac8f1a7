from collections.abc import Generator

from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.db.session import SessionLocal
from app.services.grid import SlotLayout


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_layout() -> SlotLayout:
    return SlotLayout.from_settings(get_settings())
