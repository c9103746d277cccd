from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel
from typing import List, Optional
from datetime import date, datetime

from models import RecordStatus


class APIModel(BaseModel):
    """Base schema: camelCase on the wire, snake_case field names also accepted"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        str_strip_whitespace=True,
    )


# Student Schemas
class StudentBase(APIModel):
    """Base schema for student with common attributes"""
    name: str = Field(..., min_length=1, max_length=100, description="Student's full name")
    email: EmailStr = Field(..., description="Student's email address")
    course: str = Field(..., min_length=1, description="Id of the course the student is enrolled in")
    enrollment_date: date = Field(..., description="Enrollment date (ISO-8601)")
    status: RecordStatus = Field(RecordStatus.active, description="'inactive' marks a graduate")


class StudentCreate(StudentBase):
    """Schema for creating a new student"""
    pass


class StudentUpdate(APIModel):
    """Schema for updating a student (all fields optional)"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    course: Optional[str] = Field(None, min_length=1)
    enrollment_date: Optional[date] = None
    status: Optional[RecordStatus] = None


class StudentResponse(StudentBase):
    """Schema for student response"""
    id: str
    course_name: str
    created_at: datetime
    updated_at: datetime


# Course Schemas
class CourseBase(APIModel):
    """Base schema for course with common attributes"""
    name: str = Field(..., min_length=1, max_length=200, description="Course name")
    description: str = Field(..., min_length=1, max_length=1000, description="Course description")
    duration: int = Field(..., gt=0, description="Course duration")
    status: RecordStatus = Field(RecordStatus.active, description="Course status")


class CourseCreate(CourseBase):
    """Schema for creating a new course"""
    pass


class CourseUpdate(APIModel):
    """Schema for updating a course (all fields optional)"""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1, max_length=1000)
    duration: Optional[int] = Field(None, gt=0)
    status: Optional[RecordStatus] = None


class CourseResponse(CourseBase):
    """Schema for course response"""
    id: str
    created_at: datetime
    updated_at: datetime


# Dashboard Schemas
class CourseCount(APIModel):
    course_id: str
    course_name: str
    count: int


class DashboardStats(APIModel):
    """Snapshot shown on the dashboard cards"""
    total_students: int = Field(..., examples=[10])
    active_students: int = Field(..., examples=[7])
    total_courses: int = Field(..., examples=[4])
    active_courses: int = Field(..., examples=[3])
    graduates: int = Field(..., description="Students with status 'inactive'", examples=[3])
    course_counts: List[CourseCount]
    success_rate: int = Field(..., description="Graduates as a rounded percentage of all students", examples=[30])


# Misc Schemas
class MessageResponse(BaseModel):
    message: str


class HealthResponse(APIModel):
    status: str
    timestamp: datetime
    uptime_seconds: float
