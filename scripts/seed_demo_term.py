"""Seed a demo term (classrooms, instructors, sections, bookings) for the scheduler.

Run:
  PYTHONPATH=backend python scripts/seed_demo_term.py
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass

from sqlalchemy import func, select

from app.db.bootstrap import ensure_runtime_schema_compatibility
from app.db.session import SessionLocal
from app.models.classroom import Classroom, RoomType
from app.models.classroom_booking import ClassroomBooking
from app.models.course_section import CourseSection, Semester
from app.models.instructor import Instructor

SEMESTER = Semester(os.getenv("SEED_SEMESTER", "Fall").strip() or "Fall")
YEAR = int(os.getenv("SEED_YEAR", "2026"))
MOCK_EMAIL_DOMAIN = os.getenv("SEED_MOCK_EMAIL_DOMAIN", "university.edu").strip().lower() or "university.edu"

FLOOR_LABELS = {
    1: "Ground Floor",
    2: "First Floor",
    3: "Second Floor",
}


@dataclass(frozen=True)
class CatalogItem:
    code: str
    name: str
    instructor: str
    sections: int
    headcount: int
    meetings: int = 2
    duration: int = 90
    requires_lab: bool = False


INSTRUCTORS = {
    "Dr. Meera Iyer": "Computer Science",
    "Dr. Arjun Rao": "Computer Science",
    "Prof. Kavya Nair": "Mathematics",
    "Dr. Rohan Das": "Physics",
    "Prof. Anita Kulkarni": "Chemistry",
    "Dr. Vikram Sen": "Biology",
}

# Recurring blocks an instructor cannot teach in.
UNAVAILABILITY = {
    "Dr. Arjun Rao": [{"day": "Friday", "start_time": "13:00", "end_time": "17:00"}],
    "Prof. Kavya Nair": [
        {"day": "Monday", "start_time": "08:00", "end_time": "10:00"},
        {"day": "Wednesday", "start_time": "08:00", "end_time": "10:00"},
    ],
    "Dr. Vikram Sen": [{"day": "Tuesday", "start_time": "12:00", "end_time": "14:00"}],
}

CATALOG = [
    CatalogItem("CS101", "Introduction to Programming", "Dr. Meera Iyer", sections=3, headcount=55),
    CatalogItem("CS201", "Data Structures", "Dr. Arjun Rao", sections=2, headcount=60),
    CatalogItem("CS202", "Programming Lab", "Dr. Arjun Rao", sections=2, headcount=28, meetings=1, duration=180, requires_lab=True),
    CatalogItem("MA101", "Calculus I", "Prof. Kavya Nair", sections=3, headcount=65, meetings=3, duration=60),
    CatalogItem("MA201", "Linear Algebra", "Prof. Kavya Nair", sections=1, headcount=45),
    CatalogItem("PH110", "Mechanics", "Dr. Rohan Das", sections=2, headcount=70),
    CatalogItem("PH111", "Mechanics Lab", "Dr. Rohan Das", sections=2, headcount=24, meetings=1, duration=120, requires_lab=True),
    CatalogItem("CH101", "General Chemistry", "Prof. Anita Kulkarni", sections=2, headcount=50),
    CatalogItem("CH102", "Chemistry Lab", "Prof. Anita Kulkarni", sections=2, headcount=24, meetings=1, duration=120, requires_lab=True),
    CatalogItem("BI101", "Cell Biology", "Dr. Vikram Sen", sections=1, headcount=40),
]

BOOKINGS = [
    {"classroom": "A101", "day": "Wednesday", "start": "12:00", "end": "13:00", "title": "Faculty seminar", "purpose": "event"},
    {"classroom": "LAB-1", "day": "Friday", "start": "08:00", "end": "12:00", "title": "Equipment maintenance", "purpose": "maintenance"},
]


def slugify_name(value: str) -> str:
    cleaned = re.sub(r"^(dr|prof)\.?\s+", "", value.strip().lower())
    return re.sub(r"[^a-z0-9]+", ".", cleaned).strip(".")


def upsert_classrooms(session) -> dict[str, Classroom]:
    rooms: dict[str, Classroom] = {}
    for floor in FLOOR_LABELS:
        for wing in ["A", "B"]:
            for index in range(1, 4):
                room_name = f"{wing}{floor}0{index}"
                room = session.execute(
                    select(Classroom).where(Classroom.name == room_name)
                ).scalar_one_or_none()
                capacity = [45, 60, 75][index - 1]
                if room is None:
                    room = Classroom(name=room_name)
                    session.add(room)
                room.building = f"Academic Block - {FLOOR_LABELS[floor]}"
                room.capacity = capacity
                room.type = RoomType.lecture
                room.is_active = True
                rooms[room_name] = room

    for index in range(1, 4):
        room_name = f"LAB-{index}"
        room = session.execute(
            select(Classroom).where(Classroom.name == room_name)
        ).scalar_one_or_none()
        if room is None:
            room = Classroom(name=room_name)
            session.add(room)
        room.building = "Academic Block - Laboratory Wing"
        room.capacity = 30
        room.type = RoomType.lab
        room.is_active = True
        rooms[room_name] = room
    session.flush()
    return rooms


def upsert_instructors(session) -> dict[str, Instructor]:
    instructors: dict[str, Instructor] = {}
    for name, department in INSTRUCTORS.items():
        email = f"{slugify_name(name)}@{MOCK_EMAIL_DOMAIN}"
        instructor = session.execute(
            select(Instructor).where(Instructor.email == email)
        ).scalar_one_or_none()
        if instructor is None:
            instructor = Instructor(email=email, name=name)
            session.add(instructor)
        instructor.name = name
        instructor.department = department
        instructor.unavailability_windows = UNAVAILABILITY.get(name, [])
        instructors[name] = instructor
    session.flush()
    return instructors


def upsert_sections(session, instructors: dict[str, Instructor]) -> None:
    for item in CATALOG:
        for number in range(1, item.sections + 1):
            section = session.execute(
                select(CourseSection).where(
                    CourseSection.course_code == item.code,
                    CourseSection.section_number == number,
                    CourseSection.semester == SEMESTER,
                    CourseSection.year == YEAR,
                )
            ).scalar_one_or_none()
            if section is None:
                section = CourseSection(
                    course_code=item.code,
                    section_number=number,
                    semester=SEMESTER,
                    year=YEAR,
                )
                session.add(section)
            section.course_name = item.name
            section.expected_headcount = item.headcount
            section.requires_lab = item.requires_lab
            section.meetings_per_week = item.meetings
            section.meeting_duration_minutes = item.duration
            section.instructor_id = instructors[item.instructor].id


def upsert_bookings(session, rooms: dict[str, Classroom]) -> None:
    for item in BOOKINGS:
        room = rooms[item["classroom"]]
        booking = session.execute(
            select(ClassroomBooking).where(
                ClassroomBooking.classroom_id == room.id,
                ClassroomBooking.semester == SEMESTER,
                ClassroomBooking.year == YEAR,
                ClassroomBooking.day_of_week == item["day"],
                ClassroomBooking.start_time == item["start"],
            )
        ).scalar_one_or_none()
        if booking is None:
            booking = ClassroomBooking(
                classroom_id=room.id,
                semester=SEMESTER,
                year=YEAR,
                day_of_week=item["day"],
                start_time=item["start"],
            )
            session.add(booking)
        booking.end_time = item["end"]
        booking.title = item["title"]
        booking.purpose = item["purpose"]


def main() -> None:
    ensure_runtime_schema_compatibility()
    with SessionLocal() as session:
        rooms = upsert_classrooms(session)
        instructors = upsert_instructors(session)
        upsert_sections(session, instructors)
        upsert_bookings(session, rooms)

        session.commit()

        room_count = session.execute(select(func.count(Classroom.id))).scalar_one()
        instructor_count = session.execute(select(func.count(Instructor.id))).scalar_one()
        section_count = session.execute(
            select(func.count(CourseSection.id)).where(
                CourseSection.semester == SEMESTER,
                CourseSection.year == YEAR,
            )
        ).scalar_one()
        booking_count = session.execute(select(func.count(ClassroomBooking.id))).scalar_one()

    print("Demo term seeded successfully.")
    print("")
    print(f"Term: {SEMESTER.value} {YEAR}")
    print(f"Classrooms (lecture + lab): {room_count}")
    print(f"Instructors: {instructor_count}")
    print(f"Course sections: {section_count}")
    print(f"Classroom bookings: {booking_count}")


if __name__ == "__main__":
    main()
