# course_matching/models/base.py

# Central registry for all SQLAlchemy models. Importing this module makes
# sure Base.metadata knows every table before create_all() runs.

from course_matching.database import Base

from course_matching.models.user import User
from course_matching.models.course import Course
from course_matching.models.time_window import CourseTimeWindow
from course_matching.models.application import Application, ApplicationTimeChoice, ApplicationTimeRequest
from course_matching.models.match import Match, MatchStudent
from course_matching.models.availability_slot import AvailabilitySlot
from course_matching.models.matching_run import MatchingRun
from course_matching.models.admin_notification_email import AdminNotificationEmail
