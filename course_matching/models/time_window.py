from sqlalchemy import Column, Integer, String, ForeignKey
from sqlalchemy.orm import relationship
from course_matching.database import Base

class CourseTimeWindow(Base):
    __tablename__ = "course_time_windows"

    id = Column(Integer, primary_key=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)

    day_of_week = Column(Integer, nullable=False)  # 0=Sunday ... 6=Saturday
    start_time = Column(String(5), nullable=False)  # "HH:MM"
    end_time = Column(String(5), nullable=False)

    instructor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    instructor_name = Column(String(100), nullable=True)
    capacity = Column(Integer, nullable=True)

    course = relationship("Course", back_populates="windows")
