from app.db.session import SessionLocal
from app.models.timetable import GeneratedTimetable

db = SessionLocal()
try:
    latest = db.query(GeneratedTimetable).order_by(GeneratedTimetable.id.desc()).first()
    print(f"Latest Timetable: {latest.id if latest else 'None'}")
    if latest:
        print(f"Created At: {latest.created_at} | Label: {latest.label} | Seed: {latest.random_seed}")
        courses = sorted((latest.payload or {}).get("timetable", {}))
        print(f"Courses: {', '.join(courses) if courses else 'None'}")

    recent = db.query(GeneratedTimetable).order_by(GeneratedTimetable.created_at.desc()).limit(5).all()
    print(f"Recent Timetables: {len(recent)}")
    for item in recent:
        print(f"  - #{item.id} {item.label or '(unlabelled)'} (Created: {item.created_at})")
finally:
    db.close()
