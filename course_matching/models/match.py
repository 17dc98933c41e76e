import enum

from sqlalchemy import Column, Integer, String, Text, Enum, ForeignKey, Index, UniqueConstraint, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from course_matching.database import Base, UTCDateTime


class MatchStatus(str, enum.Enum):
    proposed = "proposed"
    confirmed = "confirmed"
    rescheduled = "rescheduled"
    cancelled = "cancelled"


# "unassigned" is not a status: a match without students is deleted
ALLOWED_TRANSITIONS = {
    MatchStatus.proposed: {MatchStatus.confirmed, MatchStatus.cancelled},
    MatchStatus.confirmed: {MatchStatus.rescheduled, MatchStatus.cancelled},
    MatchStatus.rescheduled: {MatchStatus.rescheduled, MatchStatus.cancelled},
    MatchStatus.cancelled: set(),
}


class Match(Base):
    __tablename__ = "matches"

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)

    # stored in UTC
    slot_start_at = Column(UTCDateTime, nullable=False)
    slot_end_at = Column(UTCDateTime, nullable=False)

    instructor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    instructor_name = Column(String(100), nullable=True)
    capacity = Column(Integer, nullable=False)

    status = Column(Enum(MatchStatus, native_enum=False, length=20), nullable=False, default=MatchStatus.proposed)
    note = Column(Text, nullable=True)
    updated_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(UTCDateTime, server_default=func.now(), nullable=False)
    updated_at = Column(UTCDateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    # one live match per instructor slot; cancelled rows stay as history
    __table_args__ = (
        Index(
            "uix_match_slot",
            "course_id", "instructor_id", "slot_start_at", "slot_end_at",
            unique=True,
            sqlite_where=text("status != 'cancelled'"),
            postgresql_where=text("status != 'cancelled'"),
        ),
    )

    students = relationship("MatchStudent", back_populates="match", cascade="all, delete-orphan")


class MatchStudent(Base):
    __tablename__ = "match_students"

    id = Column(Integer, primary_key=True)
    match_id = Column(Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(UTCDateTime, server_default=func.now(), nullable=False)

    __table_args__ = (UniqueConstraint("match_id", "student_id", name="uix_match_student"),)

    match = relationship("Match", back_populates="students")
