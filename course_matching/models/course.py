from sqlalchemy import Column, Integer, String, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from course_matching.database import Base, UTCDateTime

class Course(Base):
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    subject = Column(String(100), nullable=False, default="")
    grade_range = Column(String(50), nullable=False, default="")

    duration_minutes = Column(Integer, nullable=False, default=60)
    capacity = Column(Integer, nullable=False, default=4)

    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(UTCDateTime, server_default=func.now(), nullable=False)

    # relationship
    windows = relationship("CourseTimeWindow", back_populates="course", cascade="all, delete-orphan")
