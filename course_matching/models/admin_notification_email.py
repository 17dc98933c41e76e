from sqlalchemy import Column, Integer, String
from sqlalchemy.sql import func
from course_matching.database import Base, UTCDateTime

class AdminNotificationEmail(Base):
    __tablename__ = "admin_notification_emails"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), nullable=False, unique=True)
    label = Column(String(100), nullable=True)
    created_at = Column(UTCDateTime, server_default=func.now(), nullable=False)
