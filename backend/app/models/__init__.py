from app.models.activity_log import ActivityAction, ActivityLog  # noqa: F401
from app.models.classroom import Classroom, RoomType  # noqa: F401
from app.models.classroom_booking import ClassroomBooking  # noqa: F401
from app.models.course_section import CourseSection, Semester  # noqa: F401
from app.models.instructor import Instructor  # noqa: F401
from app.models.schedule_entry import ScheduleEntry  # noqa: F401
from app.models.schedule_lease import ScheduleLease  # noqa: F401
from app.models.schedule_run import ScheduleRun, ScheduleRunStatus  # noqa: F401
