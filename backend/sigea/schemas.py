"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable. Services build the `*Out`
models from table rows so controllers stay thin.
"""

from pydantic import BaseModel, field_validator
from datetime import datetime, time
from typing import Dict, Optional

from .models import Role
from .scheduling import WeekDay


class ErrorOut(BaseModel):
    """Body of every failed request."""
    status: int
    error: str
    message: str
    timestamp: datetime
    fields: Optional[Dict[str, str]] = None


class UserIn(BaseModel):
    name: str
    paternal_surname: str
    maternal_surname: Optional[str] = None
    email: str
    password: str
    role: Role


class UserUpdate(BaseModel):
    """Partial update; omitted fields keep their stored value."""
    name: Optional[str] = None
    paternal_surname: Optional[str] = None
    maternal_surname: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    role: Optional[Role] = None
    active: Optional[bool] = None


class UserOut(BaseModel):
    id: int
    name: str
    paternal_surname: str
    maternal_surname: Optional[str]
    email: str
    role: Role
    active: bool


class SupervisorCampusIn(BaseModel):
    supervisor_id: int
    campus_id: int


class CampusIn(BaseModel):
    name: str


class CampusOut(BaseModel):
    id: int
    name: str


class CareerIn(BaseModel):
    name: str
    campus_id: int


class CareerOut(BaseModel):
    id: int
    name: str
    campus_id: int


class CurriculumIn(BaseModel):
    name: str
    career_id: int


class CurriculumOut(BaseModel):
    id: int
    name: str
    career_id: int


class SubjectIn(BaseModel):
    name: str
    curriculum_id: int


class SubjectOut(BaseModel):
    id: int
    name: str
    curriculum_id: int


class GroupIn(BaseModel):
    """Payload for creating or editing a group.

    Times accept `HH:MM` (or `HH:MM:SS`) without a UTC offset;
    `week_day` is an upper-case day name such as `MONDAY`.
    """
    name: str
    week_day: WeekDay
    start_time: time
    end_time: time
    teacher_id: int
    career_id: int
    curriculum_id: int

    @field_validator("start_time", "end_time")
    @classmethod
    def _wall_clock_time(cls, value: time) -> time:
        if value.tzinfo is not None:
            raise ValueError("time must not carry a UTC offset")
        return value


class GroupOut(BaseModel):
    id: int
    name: str
    week_day: WeekDay
    start_time: str
    end_time: str
    teacher_id: int
    teacher_name: str
    career_id: int
    career_name: str
    curriculum_id: int
    curriculum_name: str


class EnrollmentIn(BaseModel):
    student_id: int


class QualificationIn(BaseModel):
    student_id: int
    group_id: int
    subject_id: int
    teacher_id: Optional[int] = None
    grade: Optional[int] = None


class QualificationUpdate(BaseModel):
    grade: Optional[int] = None
    teacher_id: Optional[int] = None


class QualificationOut(BaseModel):
    id: int
    student_id: int
    group_id: int
    subject_id: int
    teacher_id: Optional[int]
    grade: int
    date: datetime


class QualificationDetailOut(QualificationOut):
    """Qualification plus display fields for report screens."""
    teacher_name: str
    formatted_date: str


class RankingIn(BaseModel):
    teacher_id: int
    student_id: int
    star: int
    comment: Optional[str] = None


class RankingOut(BaseModel):
    id: int
    teacher_id: int
    student_id: int
    star: int
    comment: Optional[str]
    date: datetime


class RankingSummaryOut(BaseModel):
    teacher_id: int
    count: int
    average: Optional[float]
