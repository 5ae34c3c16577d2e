from app.db.session import SessionLocal
from app.models.classroom import Classroom, RoomType
from app.models.course_section import CourseSection
from app.models.instructor import Instructor

db = SessionLocal()
try:
    print(f"Sections: {db.query(CourseSection).count()}")
    print(f"  - Lab: {db.query(CourseSection).filter(CourseSection.requires_lab.is_(True)).count()}")
    print(f"  - Without instructor: {db.query(CourseSection).filter(CourseSection.instructor_id.is_(None)).count()}")

    active_rooms = db.query(Classroom).filter(Classroom.is_active.is_(True)).all()
    print(f"Active Classrooms: {len(active_rooms)}")
    print(f"  - Lab: {sum(1 for room in active_rooms if room.type == RoomType.lab)}")
    print(f"Instructors: {db.query(Instructor).count()}")

    # Sections no active room of the right type can seat.
    largest_lab = max((room.capacity for room in active_rooms if room.is_lab), default=0)
    largest_lecture = max((room.capacity for room in active_rooms if not room.is_lab), default=0)
    oversized = [
        section
        for section in db.query(CourseSection).all()
        if section.expected_headcount > (largest_lab if section.requires_lab else largest_lecture)
    ]
    print(f"Sections Without A Fitting Room: {len(oversized)}")
    for section in oversized[:10]:
        print(f"  - {section.label} ({section.semester.value} {section.year}): {section.expected_headcount} students")

    instructor_ids = {item.id for item in db.query(Instructor.id).all()}
    dangling = [
        section.label
        for section in db.query(CourseSection).filter(CourseSection.instructor_id.isnot(None)).all()
        if section.instructor_id not in instructor_ids
    ]
    print(f"Sections With Unknown Instructor: {len(dangling)}")
    if dangling:
        print(f"Sample: {dangling[0]}")
finally:
    db.close()
