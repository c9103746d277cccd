from sqlmodel import SQLModel, Field
from datetime import date, datetime, timezone
from enum import Enum
import uuid


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


class RecordStatus(str, Enum):
    """Lifecycle flag shared by students and courses; an inactive student is a graduate"""
    active = "active"
    inactive = "inactive"


class Course(SQLModel, table=True):
    """Course model for database"""
    id: str = Field(default_factory=new_id, primary_key=True)
    name: str = Field(unique=True, index=True, min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=1000)
    duration: int = Field(gt=0)
    status: RecordStatus = Field(default=RecordStatus.active, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Student(SQLModel, table=True):
    """Student model for database.

    ``course`` holds the id of a Course. It is not a foreign key; the service
    layer checks it and keeps ``course_name`` in step with the course.
    """
    id: str = Field(default_factory=new_id, primary_key=True)
    name: str = Field(index=True, min_length=1, max_length=100)
    email: str = Field(unique=True, index=True)
    course: str = Field(index=True)
    course_name: str = Field(default="")
    enrollment_date: date
    status: RecordStatus = Field(default=RecordStatus.active, index=True)
    created_at: datetime = Field(default_factory=utcnow, index=True)
    # insertion counter, orders students created within the same instant
    seq: int = Field(default=0, index=True)
    updated_at: datetime = Field(default_factory=utcnow)
