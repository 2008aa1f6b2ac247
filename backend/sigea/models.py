"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Each class maps to a table; relationships are declared only where a
single foreign key makes the join unambiguous (groups). Other
references are resolved through repositories.
"""

from typing import Optional
from sqlmodel import SQLModel, Field, Relationship
from datetime import datetime, time, timezone
from enum import Enum

from .scheduling import TeachingAssignment, TimeInterval, WeekDay


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    ADMIN = "ADMIN"
    SUPERVISOR = "SUPERVISOR"
    TEACHER = "TEACHER"
    STUDENT = "STUDENT"


class User(SQLModel, table=True):
    """A person known to the system: staff or student.

    Fields:
    - `email`: unique login/contact address
    - `password_hash`: hashed password string (never store plaintext)
    - `role`: decides which operations accept the user (teacher, student...)
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    paternal_surname: str
    maternal_surname: Optional[str] = None
    email: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    role: Role = Field(index=True)
    active: bool = True
    created_at: datetime = Field(default_factory=_now)

    @property
    def full_name(self) -> str:
        parts = [self.name, self.paternal_surname, self.maternal_surname]
        return " ".join(p for p in parts if p)


class Campus(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)


class SupervisorCampus(SQLModel, table=True):
    """Link between a SUPERVISOR user and a campus they oversee."""
    supervisor_id: int = Field(foreign_key='user.id', primary_key=True)
    campus_id: int = Field(foreign_key='campus.id', primary_key=True)


class Career(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    campus_id: int = Field(foreign_key='campus.id')


class Curriculum(SQLModel, table=True):
    """A study plan belonging to a career."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    career_id: int = Field(foreign_key='career.id')


class Subject(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    curriculum_id: int = Field(foreign_key='curriculum.id')


class Group(SQLModel, table=True):
    """A teaching group: one teacher, one weekly slot.

    The row doubles as the teacher's `TeachingAssignment`; see
    `as_assignment`.
    """
    __tablename__ = "groups"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    week_day: WeekDay
    start_time: time
    end_time: time
    teacher_id: int = Field(foreign_key='user.id', index=True)
    career_id: int = Field(foreign_key='career.id', index=True)
    curriculum_id: int = Field(foreign_key='curriculum.id')
    teacher: Optional[User] = Relationship()
    career: Optional[Career] = Relationship()
    curriculum: Optional[Curriculum] = Relationship()

    def as_assignment(self) -> TeachingAssignment:
        return TeachingAssignment(
            id=self.id,
            teacher_id=self.teacher_id,
            interval=TimeInterval(self.week_day, self.start_time, self.end_time),
            group_name=self.name,
        )


class GroupStudent(SQLModel, table=True):
    """Enrollment of a student in a group."""
    group_id: int = Field(foreign_key='groups.id', primary_key=True)
    student_id: int = Field(foreign_key='user.id', primary_key=True)


class Qualification(SQLModel, table=True):
    """A grade given to a student for a subject within a group."""
    id: Optional[int] = Field(default=None, primary_key=True)
    student_id: int = Field(foreign_key='user.id', index=True)
    group_id: int = Field(foreign_key='groups.id', index=True)
    subject_id: int = Field(foreign_key='subject.id', index=True)
    teacher_id: Optional[int] = Field(default=None, foreign_key='user.id')
    grade: int
    date: datetime = Field(default_factory=_now)


class Ranking(SQLModel, table=True):
    """A student's star rating (1-5) of a teacher."""
    id: Optional[int] = Field(default=None, primary_key=True)
    teacher_id: int = Field(foreign_key='user.id', index=True)
    student_id: int = Field(foreign_key='user.id')
    star: int
    comment: Optional[str] = None
    date: datetime = Field(default_factory=_now)
