# gradebook/models/user.py
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from gradebook.db.base import Base

ROLES = ("admin", "teacher", "student")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, nullable=False, index=True)  # 学号/工号
    email = Column(String(255), nullable=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(100), nullable=False)  # 可重复，不唯一
    role = Column(String(20), nullable=False, default="student")  # 'admin' / 'teacher' / 'student'
    created_at = Column(DateTime(timezone=True), server_default=func.now())
