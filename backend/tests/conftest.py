import os

# Point the app at a private in-memory database before it is imported.
os.environ["SIGEA_DATABASE_URL"] = "sqlite://"

import pytest
from sqlmodel import SQLModel, Session

from sigea import models
from sigea.database import engine
from sigea.services import PWD_CTX


@pytest.fixture(autouse=True)
def reset_db():
    """Give every test empty tables."""
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield


@pytest.fixture
def session():
    with Session(engine) as s:
        yield s


def _user(session, name, role, email):
    u = models.User(
        name=name,
        paternal_surname="Lopez",
        email=email,
        password_hash=PWD_CTX.hash("secret"),
        role=role,
    )
    session.add(u)
    session.commit()
    session.refresh(u)
    return u


@pytest.fixture
def catalog(session):
    """Seed one campus/career/curriculum/subject, two teachers and a student.

    Returns a dict of ids so tests can build request payloads.
    """
    campus = models.Campus(name="Emiliano Zapata")
    session.add(campus)
    session.commit()
    career = models.Career(name="Software Development", campus_id=campus.id)
    session.add(career)
    session.commit()
    curriculum = models.Curriculum(name="Plan 2024", career_id=career.id)
    session.add(curriculum)
    session.commit()
    subject = models.Subject(name="Databases", curriculum_id=curriculum.id)
    session.add(subject)
    session.commit()
    teacher = _user(session, "Ana", models.Role.TEACHER, "ana@utez.edu.mx")
    other_teacher = _user(session, "Luis", models.Role.TEACHER, "luis@utez.edu.mx")
    student = _user(session, "Carla", models.Role.STUDENT, "carla@utez.edu.mx")
    supervisor = _user(session, "Marta", models.Role.SUPERVISOR, "marta@utez.edu.mx")
    return {
        "campus_id": campus.id,
        "career_id": career.id,
        "curriculum_id": curriculum.id,
        "subject_id": subject.id,
        "teacher_id": teacher.id,
        "other_teacher_id": other_teacher.id,
        "student_id": student.id,
        "supervisor_id": supervisor.id,
    }


@pytest.fixture
def group_payload(catalog):
    """Build a group request body for the seeded teacher/career/curriculum."""
    def make(start="08:00", end="09:00", week_day="MONDAY", name="3A", teacher_id=None):
        return {
            "name": name,
            "week_day": week_day,
            "start_time": start,
            "end_time": end,
            "teacher_id": teacher_id or catalog["teacher_id"],
            "career_id": catalog["career_id"],
            "curriculum_id": catalog["curriculum_id"],
        }
    return make
