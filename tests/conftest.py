# tests/conftest.py

from datetime import date, datetime, timezone

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from course_matching.database import Base, build_engine
import course_matching.models.base  # noqa: F401
from course_matching.models.application import Application, ApplicationTimeChoice
from course_matching.models.course import Course
from course_matching.models.time_window import CourseTimeWindow
from course_matching.models.user import User


class RecordingSender:
    """Email sender double that remembers every call."""

    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    def send(self, to, subject, text):
        if self.fail:
            raise ConnectionError("smtp down")
        self.sent.append((list(to), subject, text))


@pytest.fixture
def engine():
    """A fresh in-memory database per test, foreign keys enforced."""
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = Session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role="student", name=None, birthdate=None, email=None):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            username=f"{role}{n}",
            role=role,
            name=name or f"{role.title()} {n}",
            email=email if email is not None else f"{role}{n}@example.com",
            birthdate=birthdate,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_course(db):
    def _make(duration_minutes=60, capacity=4, title="Math 101"):
        course = Course(title=title, subject="math", grade_range="5-6",
                        duration_minutes=duration_minutes, capacity=capacity)
        db.add(course)
        db.commit()
        db.refresh(course)
        return course

    return _make


@pytest.fixture
def make_window(db):
    def _make(course, day_of_week=1, start_time="10:00", end_time="11:00", capacity=None, instructor_id=None):
        w = CourseTimeWindow(course_id=course.id, day_of_week=day_of_week, start_time=start_time,
                             end_time=end_time, capacity=capacity, instructor_id=instructor_id)
        db.add(w)
        db.commit()
        db.refresh(w)
        return w

    return _make


@pytest.fixture
def make_application(db):
    def _make(course, student, window_ids=(), created_at=None, status="pending"):
        app = Application(
            course_id=course.id,
            student_id=student.id,
            status=status,
            created_at=created_at or datetime.now(timezone.utc),
        )
        app.time_choices = [ApplicationTimeChoice(window_id=w) for w in window_ids]
        db.add(app)
        db.commit()
        db.refresh(app)
        return app

    return _make


def ts(day, hour=0, minute=0):
    """2026-10-<day> hh:mm UTC"""
    return datetime(2026, 10, day, hour, minute, tzinfo=timezone.utc)


def birthday(age, today=date(2026, 10, 19)):
    return date(today.year - age, 1, 1)
