from sqlalchemy import Column, Integer, String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from course_matching.database import Base, UTCDateTime

APPLICATION_STATUSES = ("pending", "matched", "cancelled")

class Application(Base):
    __tablename__ = "applications"

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="pending")
    created_at = Column(UTCDateTime, server_default=func.now(), nullable=False)

    # a cancelled row is re-activated, never duplicated
    __table_args__ = (UniqueConstraint("course_id", "student_id", name="uix_application_course_student"),)

    time_choices = relationship(
        "ApplicationTimeChoice", back_populates="application", cascade="all, delete-orphan"
    )
    time_requests = relationship(
        "ApplicationTimeRequest", back_populates="application", cascade="all, delete-orphan"
    )


class ApplicationTimeChoice(Base):
    __tablename__ = "application_time_choices"

    id = Column(Integer, primary_key=True)
    application_id = Column(Integer, ForeignKey("applications.id", ondelete="CASCADE"), nullable=False, index=True)
    # no FK: a deleted window leaves the id behind ("deleted time")
    window_id = Column(Integer, nullable=False, index=True)

    application = relationship("Application", back_populates="time_choices")


class ApplicationTimeRequest(Base):
    __tablename__ = "application_time_requests"

    id = Column(Integer, primary_key=True)
    application_id = Column(Integer, ForeignKey("applications.id", ondelete="CASCADE"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)

    application = relationship("Application", back_populates="time_requests")
