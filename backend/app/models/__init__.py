from app.models.timetable import GeneratedTimetable  # noqa: F401
