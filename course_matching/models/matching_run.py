from sqlalchemy import Column, Integer, String, ForeignKey
from sqlalchemy.sql import func
from course_matching.database import Base, UTCDateTime

class MatchingRun(Base):
    __tablename__ = "matching_runs"

    id = Column(Integer, primary_key=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="running")  # running / done / failed
    range_from = Column(UTCDateTime, nullable=False)
    range_to = Column(UTCDateTime, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    matched_count = Column(Integer, nullable=False, default=0)
    unmatched_count = Column(Integer, nullable=False, default=0)
    created_at = Column(UTCDateTime, server_default=func.now(), nullable=False)
