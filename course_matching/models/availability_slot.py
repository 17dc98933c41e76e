from sqlalchemy import Column, Integer, String, ForeignKey
from sqlalchemy.sql import func
from course_matching.database import Base, UTCDateTime

class AvailabilitySlot(Base):
    __tablename__ = "availability_slots"

    id = Column(Integer, primary_key=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(20), nullable=False)  # student / instructor
    start_at = Column(UTCDateTime, nullable=False)
    end_at = Column(UTCDateTime, nullable=False)
    capacity = Column(Integer, nullable=False, default=1)
    created_at = Column(UTCDateTime, server_default=func.now(), nullable=False)
