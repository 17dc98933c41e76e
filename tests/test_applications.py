# tests/test_applications.py

from datetime import datetime, timedelta, timezone

import pytest

from course_matching.errors import ConflictError, NotFoundError, ValidationError
from course_matching.models.admin_notification_email import AdminNotificationEmail
from course_matching.models.application import Application
from course_matching.models.availability_slot import AvailabilitySlot
from course_matching.schemas.application import TimeRequestIn
from course_matching.services.applications import (
    DELETED_TIME,
    NO_SELECTION,
    apply_to_course,
    cancel_application,
    list_applications,
)
from course_matching.services.time_windows import delete_time_window

LONG_AGO = datetime(2020, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def admin_email(db):
    db.add(AdminNotificationEmail(email="admin@example.com"))
    db.commit()
    return "admin@example.com"


def test_apply_stores_choices_and_notifies_admins(db, make_user, make_course, make_window, sender, admin_email):
    course = make_course()
    w1, w2 = make_window(course, start_time="10:00", end_time="11:00"), make_window(course, start_time="11:00", end_time="12:00")
    student = make_user(name="Lee")

    app = apply_to_course(db, course.id, student.id, window_ids=[w2.id, w1.id, w2.id], sender=sender)

    assert app.status == "pending"
    assert [c.window_id for c in app.time_choices] == [w2.id, w1.id]
    assert sender.sent[0][0] == [admin_email]
    assert "Lee" in sender.sent[0][2]


def test_apply_with_time_requests_only(db, make_user, make_course, sender):
    course = make_course()
    student = make_user()

    app = apply_to_course(
        db, course.id, student.id,
        time_requests=[TimeRequestIn(day_of_week=1, start_time="10:00:00", end_time="11:00")],
        sender=sender,
    )

    assert [(r.day_of_week, r.start_time, r.end_time) for r in app.time_requests] == [(1, "10:00", "11:00")]
    (slot,) = db.query(AvailabilitySlot).filter(AvailabilitySlot.user_id == student.id).all()
    assert (slot.role, slot.capacity, slot.course_id) == ("student", 1, course.id)
    assert slot.end_at - slot.start_at == timedelta(hours=1)
    # no admin addresses configured: nothing is sent
    assert sender.sent == []


def test_apply_requires_a_selection(db, make_user, make_course):
    with pytest.raises(ValidationError):
        apply_to_course(db, make_course().id, make_user().id)


def test_apply_rejects_windows_of_other_courses(db, make_user, make_course, make_window):
    course, other = make_course(), make_course(title="Other")
    foreign = make_window(other)

    with pytest.raises(ValidationError):
        apply_to_course(db, course.id, make_user().id, window_ids=[foreign.id])

    assert db.query(Application).count() == 0


def test_apply_rejects_invalid_time_request(db, make_user, make_course):
    with pytest.raises(ValidationError):
        apply_to_course(
            db, make_course().id, make_user().id,
            time_requests=[TimeRequestIn(day_of_week=1, start_time="12:00", end_time="11:00")],
        )


def test_apply_twice_is_conflict(db, make_user, make_course, make_window, sender):
    course = make_course()
    w = make_window(course)
    student = make_user()
    apply_to_course(db, course.id, student.id, window_ids=[w.id], sender=sender)

    with pytest.raises(ConflictError) as exc:
        apply_to_course(db, course.id, student.id, window_ids=[w.id], sender=sender)

    assert exc.value.message == "You have already applied to this course."
    assert db.query(Application).count() == 1


def test_reapply_after_cancel_reactivates_same_row(db, make_user, make_course, make_window, make_application, sender):
    """
    GIVEN a cancelled application
    WHEN the student applies again with a different window
    THEN the same row is pending again, with new choices and a fresh created_at
    """
    course = make_course()
    w1 = make_window(course, start_time="10:00", end_time="11:00")
    w2 = make_window(course, start_time="11:00", end_time="12:00")
    student = make_user()
    old = make_application(course, student, [w1.id], created_at=LONG_AGO, status="cancelled")

    app = apply_to_course(db, course.id, student.id, window_ids=[w2.id], sender=sender)

    assert app.id == old.id
    assert app.status == "pending"
    assert [c.window_id for c in app.time_choices] == [w2.id]
    assert app.created_at > LONG_AGO
    assert db.query(Application).count() == 1


def test_cancel_own_application(db, make_user, make_course, make_window, make_application, sender, admin_email):
    course = make_course()
    student = make_user()
    app = make_application(course, student, [make_window(course).id])

    cancelled = cancel_application(db, app.id, student.id, sender=sender)

    assert cancelled.status == "cancelled"
    assert sender.sent[0][0] == [admin_email]


def test_cannot_cancel_someone_elses_application(db, make_user, make_course, make_window, make_application):
    course = make_course()
    app = make_application(course, make_user(), [make_window(course).id])

    with pytest.raises(NotFoundError):
        cancel_application(db, app.id, make_user().id)


def test_list_labels_deleted_windows(db, make_user, make_course, make_window, make_application):
    course = make_course()
    kept = make_window(course, day_of_week=1, start_time="10:00", end_time="11:00")
    gone = make_window(course, day_of_week=2, start_time="10:00", end_time="11:00")
    student = make_user(name="Park")
    make_application(course, student, [kept.id, gone.id])

    delete_time_window(db, gone.id, course_id=course.id)
    items = list_applications(db, course.id)

    assert len(items) == 1
    assert items[0].student_name == "Park"
    assert items[0].choice_labels == ["Mon 10:00 - 11:00", DELETED_TIME]


def test_list_shows_requested_times_and_filters_status(db, make_user, make_course, make_application, sender):
    course = make_course()
    student = make_user()
    apply_to_course(
        db, course.id, student.id,
        time_requests=[TimeRequestIn(day_of_week=3, start_time="14:00", end_time="15:00")],
        sender=sender,
    )
    make_application(course, make_user(), [], status="matched")

    pending = list_applications(db, course.id, status="pending")

    assert len(pending) == 1
    assert pending[0].choice_labels == [NO_SELECTION]
    assert pending[0].requested_times == ["Wed 14:00 - 15:00"]
    assert len(list_applications(db, course.id)) == 2


def test_reapply_replaces_requested_slots(db, make_user, make_course, sender):
    course = make_course()
    student = make_user()
    first = apply_to_course(
        db, course.id, student.id,
        time_requests=[TimeRequestIn(day_of_week=1, start_time="10:00", end_time="11:00"),
                       TimeRequestIn(day_of_week=2, start_time="10:00", end_time="11:00")],
        sender=sender,
    )
    cancel_application(db, first.id, student.id, sender=sender)

    apply_to_course(
        db, course.id, student.id,
        time_requests=[TimeRequestIn(day_of_week=5, start_time="15:00", end_time="16:00")],
        sender=sender,
    )

    slots = db.query(AvailabilitySlot).filter(AvailabilitySlot.user_id == student.id).all()
    assert len(slots) == 1
    assert slots[0].start_at.astimezone(timezone(timedelta(hours=9))).hour == 15
