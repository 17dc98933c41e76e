# tests/test_proposals.py

from datetime import date, datetime, timedelta, timezone

import pytest

from course_matching.errors import NotFoundError, ValidationError
from course_matching.models.match import Match
from course_matching.schemas.proposal import CourseEntity, PendingApplication, WindowEntity
from course_matching.services.proposals import (
    build_schedule_proposals,
    calculate_age,
    generate_schedule_proposals,
)

from conftest import birthday, ts

KST = timezone(timedelta(hours=9))
TODAY = date(2026, 10, 19)
# Monday 05:00 KST
GENERATED_AT = datetime(2026, 10, 18, 20, 0, tzinfo=timezone.utc)

COURSE = CourseEntity(id=1, duration_minutes=60, capacity=4)
A = WindowEntity(id=1, day_of_week=1, start_time="10:00", end_time="11:00")
B = WindowEntity(id=2, day_of_week=2, start_time="10:00", end_time="11:00")
C = WindowEntity(id=3, day_of_week=3, start_time="10:00", end_time="11:00")


def _app(student_id, window_ids, created_at=None, birthdate=None):
    return PendingApplication(
        id=100 + student_id,
        student_id=student_id,
        created_at=created_at or ts(1, student_id),
        window_ids=window_ids,
        birthdate=birthdate,
    )


def _build(windows, apps, course=COURSE, mode=None):
    return build_schedule_proposals(course, windows, apps, generated_at=GENERATED_AT, today=TODAY, mode=mode)


def _students(proposal):
    return [s.student_id for s in proposal.students]


def test_calculate_age():
    assert calculate_age(date(2014, 10, 19), TODAY) == 12
    assert calculate_age(date(2014, 10, 20), TODAY) == 11
    assert calculate_age(None, TODAY) is None


def test_popular_mode_targets_only_top_demand_windows():
    """
    GIVEN demand {A:3, B:3, C:1}
    WHEN proposals are built
    THEN only A and B are proposed, each with every applicant
    """
    apps = [_app(1, [1, 2]), _app(2, [1, 2]), _app(3, [1, 2, 3])]

    result = _build([C, B, A], apps)

    assert result.mode == "popular"
    assert result.max_demand == 3
    assert [p.window_id for p in result.proposals] == [1, 2]
    assert all(_students(p) == [1, 2, 3] for p in result.proposals)


def test_general_mode_places_each_student_once():
    apps = [_app(1, [1, 2]), _app(2, [1, 2]), _app(3, [1, 2, 3])]
    course = CourseEntity(id=1, duration_minutes=60, capacity=2)

    result = _build([A, B, C], apps, course=course, mode="general")

    assert result.mode == "general"
    assert [(p.window_id, _students(p)) for p in result.proposals] == [(1, [1, 2]), (2, [3])]


def test_general_mode_student_appears_in_first_window_only():
    apps = [_app(1, [2, 1])]

    result = _build([B, A], apps, mode="general")

    assert [(p.window_id, _students(p)) for p in result.proposals] == [(1, [1])]


def test_no_demand_falls_back_to_general_mode():
    result = _build([A, B], [_app(1, []), _app(2, [])])

    assert result.mode == "general"
    assert result.max_demand == 0
    assert result.proposals == []


def test_candidates_ordered_by_created_at_then_age_nulls_last():
    same_time = ts(1, 9)
    apps = [
        _app(1, [1], created_at=ts(1, 10), birthdate=birthday(10)),
        _app(2, [1], created_at=same_time, birthdate=None),
        _app(3, [1], created_at=same_time, birthdate=birthday(12)),
        _app(4, [1], created_at=same_time, birthdate=birthday(9)),
    ]

    result = _build([A], apps)

    assert _students(result.proposals[0]) == [3, 4, 2, 1]


def test_window_capacity_overrides_course_capacity():
    apps = [_app(i, [1]) for i in range(1, 6)]
    window = WindowEntity(id=1, day_of_week=1, start_time="10:00", end_time="11:00", capacity=3)

    proposal = _build([window], apps).proposals[0]

    assert proposal.capacity == 3
    assert _students(proposal) == [1, 2, 3]


def test_course_capacity_used_without_window_capacity():
    apps = [_app(i, [1]) for i in range(1, 7)]

    proposal = _build([A], apps).proposals[0]

    assert proposal.capacity == 4
    assert len(proposal.students) == 4


def test_proposal_slot_is_next_weekday_occurrence():
    proposal = _build([A], [_app(1, [1])]).proposals[0]

    assert proposal.slot_start_at == datetime(2026, 10, 19, 10, 0, tzinfo=KST)
    assert proposal.slot_end_at - proposal.slot_start_at == timedelta(minutes=60)
    assert proposal.students[0].application_id == 101


def test_unknown_mode_is_rejected():
    with pytest.raises(ValidationError):
        _build([A], [], mode="random")


def test_generate_reads_store_without_writing(db, make_user, make_course, make_window, make_application):
    course = make_course()
    w1 = make_window(course, day_of_week=1, start_time="10:00", end_time="11:00")
    w2 = make_window(course, day_of_week=1, start_time="11:00", end_time="12:00")
    older = make_user(birthdate=birthday(12))
    younger = make_user(birthdate=birthday(9))
    make_application(course, younger, [w1.id], created_at=ts(1, 9))
    make_application(course, older, [w1.id, w2.id], created_at=ts(1, 9))

    result = generate_schedule_proposals(db, course.id, now=GENERATED_AT)

    assert result.mode == "popular"
    assert [p.window_id for p in result.proposals] == [w1.id]
    assert _students(result.proposals[0]) == [older.id, younger.id]
    assert db.query(Match).count() == 0


def test_generate_unknown_course(db):
    with pytest.raises(NotFoundError):
        generate_schedule_proposals(db, 999)
