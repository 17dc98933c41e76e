from sqlalchemy import Column, Integer, String, Date
from sqlalchemy.sql import func
from course_matching.database import Base, UTCDateTime

ROLES = ("admin", "student", "instructor")

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, nullable=False)
    role = Column(String(20), nullable=False, default="student")  # admin / student / instructor
    name = Column(String(100), nullable=False, default="")
    email = Column(String(255), nullable=True)
    phone = Column(String(30), nullable=True)
    birthdate = Column(Date, nullable=True)
    created_at = Column(UTCDateTime, server_default=func.now(), nullable=False)
