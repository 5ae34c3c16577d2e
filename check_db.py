from app.db.session import SessionLocal
from app.models.schedule_entry import ScheduleEntry
from app.models.schedule_run import ScheduleRun

db = SessionLocal()
try:
    latest = db.query(ScheduleRun).filter(ScheduleRun.committed_at.isnot(None)).order_by(ScheduleRun.committed_at.desc()).first()
    print(f"Latest Committed Run: {latest.id if latest else 'None'}")
    if latest:
        print(f"Term: {latest.semester.value} {latest.year}")
        print(f"Committed At: {latest.committed_at}")
        entries = db.query(ScheduleEntry).filter(
            ScheduleEntry.semester == latest.semester,
            ScheduleEntry.year == latest.year,
        ).count()
        print(f"Persisted Entries: {entries}")

    runs = db.query(ScheduleRun).order_by(ScheduleRun.created_at.desc()).limit(5).all()
    print(f"Recent Runs: {len(runs)}")
    for run in runs:
        mode = "preview" if run.preview_only else "commit"
        print(
            f"  - {run.semester.value} {run.year} {mode}: {run.status.value} "
            f"({run.scheduled_count} placed, {run.unscheduled_count} unplaced, {run.backtrack_count} backtracks)"
        )
finally:
    db.close()
