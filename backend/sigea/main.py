"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the SIGEA academic-management
backend. Controllers are intentionally thin: they accept requests,
delegate to services, and return JSON responses. Services raise
`errors.DomainError` subclasses which the handlers below turn into
`{status, error, message, timestamp}` bodies.

Endpoints implemented (all under /sigea/api):
- /users, /users/supervisors/campuses
- /campuses, /careers, /curricula, /subjects
- /groups, /groups/teacher/{id}, /groups/career/{id}, /groups/{id}/students
- /qualifications, /qualifications/student|subject|group/{id}
- /rankings, /rankings/teacher/{id}, /rankings/teacher/{id}/summary
"""

from fastapi import FastAPI, Depends, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session
import json
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import List, Optional
from .database import create_db_and_tables, get_session
from . import services, models
from .errors import DomainError
from .schemas import (
    CampusIn, CampusOut, CareerIn, CareerOut, CurriculumIn, CurriculumOut,
    EnrollmentIn, ErrorOut, GroupIn, GroupOut, QualificationDetailOut,
    QualificationIn, QualificationOut, QualificationUpdate, RankingIn,
    RankingOut, RankingSummaryOut, SubjectIn, SubjectOut, SupervisorCampusIn,
    UserIn, UserOut, UserUpdate,
)
from .config import settings

API = "/sigea/api"

app = FastAPI(title="SIGEA Academic Management API")
logger = logging.getLogger("sigea.api")
if not logging.getLogger().handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)

if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()


def _error_response(status_code: int, error: str, message: str, fields: Optional[dict] = None) -> JSONResponse:
    body = ErrorOut(
        status=status_code,
        error=error,
        message=message,
        timestamp=datetime.now(timezone.utc),
        fields=fields,
    )
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body, exclude_none=True))


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    return _error_response(exc.status_code, exc.error, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    fields = {}
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p != "body"]
        fields[".".join(loc) or "body"] = err.get("msg", "invalid value")
    return _error_response(400, "validation error", "request validation failed", fields)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    # runs outside the request middleware, so the request id is attached here
    req_id = getattr(request.state, "request_id", None) or uuid.uuid4().hex
    logger.exception("unhandled error on %s %s request_id=%s", request.method, request.url.path, req_id)
    response = _error_response(500, "internal server error", f"unexpected error (request id {req_id})")
    response.headers["X-Request-ID"] = req_id
    return response


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception(
            "request_failed %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": elapsed_ms,
                },
                ensure_ascii=True,
            ),
        )
        raise
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    logger.info(
        "request_done %s",
        json.dumps(
            {
                "request_id": req_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
            },
            ensure_ascii=True,
        ),
    )
    return response


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}


# ---- users ----

@app.get(f'{API}/users', response_model=List[UserOut])
def list_users(role: Optional[models.Role] = None, db: Session = Depends(get_session)):
    """List users, optionally only those with the given `role`."""
    return services.UserService(db).list(role)


@app.get(f'{API}/users/{{user_id}}', response_model=UserOut)
def get_user(user_id: int, db: Session = Depends(get_session)):
    return services.UserService(db).get(user_id)


@app.post(f'{API}/users', response_model=UserOut, status_code=201)
def create_user(payload: UserIn, db: Session = Depends(get_session)):
    """Create a user; the password is stored hashed and never returned."""
    return services.UserService(db).create(payload)


@app.put(f'{API}/users/{{user_id}}', response_model=UserOut)
def update_user(user_id: int, payload: UserUpdate, db: Session = Depends(get_session)):
    return services.UserService(db).update(user_id, payload)


@app.delete(f'{API}/users/{{user_id}}', status_code=204)
def delete_user(user_id: int, db: Session = Depends(get_session)):
    services.UserService(db).delete(user_id)
    return Response(status_code=204)


@app.get(f'{API}/users/supervisors/{{supervisor_id}}/campuses', response_model=List[CampusOut])
def list_supervisor_campuses(supervisor_id: int, db: Session = Depends(get_session)):
    return services.UserService(db).list_campuses(supervisor_id)


@app.post(f'{API}/users/supervisors/campuses', response_model=List[CampusOut], status_code=201)
def assign_campus_to_supervisor(payload: SupervisorCampusIn, db: Session = Depends(get_session)):
    """Give a supervisor responsibility for a campus."""
    return services.UserService(db).assign_campus(payload.supervisor_id, payload.campus_id)


@app.delete(f'{API}/users/supervisors/campuses', status_code=204)
def remove_campus_from_supervisor(payload: SupervisorCampusIn, db: Session = Depends(get_session)):
    services.UserService(db).remove_campus(payload.supervisor_id, payload.campus_id)
    return Response(status_code=204)


# ---- catalog ----

@app.get(f'{API}/campuses', response_model=List[CampusOut])
def list_campuses(db: Session = Depends(get_session)):
    return services.CatalogService(db).list_campuses()


@app.get(f'{API}/campuses/{{campus_id}}', response_model=CampusOut)
def get_campus(campus_id: int, db: Session = Depends(get_session)):
    return services.CatalogService(db).get_campus(campus_id)


@app.post(f'{API}/campuses', response_model=CampusOut, status_code=201)
def create_campus(payload: CampusIn, db: Session = Depends(get_session)):
    return services.CatalogService(db).create_campus(payload)


@app.get(f'{API}/careers', response_model=List[CareerOut])
def list_careers(db: Session = Depends(get_session)):
    return services.CatalogService(db).list_careers()


@app.get(f'{API}/careers/{{career_id}}', response_model=CareerOut)
def get_career(career_id: int, db: Session = Depends(get_session)):
    return services.CatalogService(db).get_career(career_id)


@app.post(f'{API}/careers', response_model=CareerOut, status_code=201)
def create_career(payload: CareerIn, db: Session = Depends(get_session)):
    return services.CatalogService(db).create_career(payload)


@app.get(f'{API}/curricula', response_model=List[CurriculumOut])
def list_curricula(db: Session = Depends(get_session)):
    return services.CatalogService(db).list_curricula()


@app.get(f'{API}/curricula/{{curriculum_id}}', response_model=CurriculumOut)
def get_curriculum(curriculum_id: int, db: Session = Depends(get_session)):
    return services.CatalogService(db).get_curriculum(curriculum_id)


@app.post(f'{API}/curricula', response_model=CurriculumOut, status_code=201)
def create_curriculum(payload: CurriculumIn, db: Session = Depends(get_session)):
    return services.CatalogService(db).create_curriculum(payload)


@app.get(f'{API}/subjects', response_model=List[SubjectOut])
def list_subjects(db: Session = Depends(get_session)):
    return services.CatalogService(db).list_subjects()


@app.get(f'{API}/subjects/{{subject_id}}', response_model=SubjectOut)
def get_subject(subject_id: int, db: Session = Depends(get_session)):
    return services.CatalogService(db).get_subject(subject_id)


@app.post(f'{API}/subjects', response_model=SubjectOut, status_code=201)
def create_subject(payload: SubjectIn, db: Session = Depends(get_session)):
    return services.CatalogService(db).create_subject(payload)


# ---- groups ----

@app.get(f'{API}/groups', response_model=List[GroupOut])
def list_groups(db: Session = Depends(get_session)):
    return services.GroupService(db).list()


@app.get(f'{API}/groups/teacher/{{teacher_id}}', response_model=List[GroupOut])
def list_groups_by_teacher(teacher_id: int, db: Session = Depends(get_session)):
    return services.GroupService(db).list_by_teacher(teacher_id)


@app.get(f'{API}/groups/career/{{career_id}}', response_model=List[GroupOut])
def list_groups_by_career(career_id: int, db: Session = Depends(get_session)):
    return services.GroupService(db).list_by_career(career_id)


@app.get(f'{API}/groups/{{group_id}}', response_model=GroupOut)
def get_group(group_id: int, db: Session = Depends(get_session)):
    return services.GroupService(db).get(group_id)


@app.post(f'{API}/groups', response_model=GroupOut, status_code=201)
def create_group(payload: GroupIn, db: Session = Depends(get_session)):
    """Create a group.

    Fails with 400 when a referenced teacher/career/curriculum is unknown
    or the end time is not after the start time, and with 409 when the
    teacher already teaches an overlapping slot that weekday.
    """
    return services.GroupService(db).create(payload)


@app.put(f'{API}/groups/{{group_id}}', response_model=GroupOut)
def update_group(group_id: int, payload: GroupIn, db: Session = Depends(get_session)):
    """Edit a group; its own current slot never counts as a conflict."""
    return services.GroupService(db).update(group_id, payload)


@app.delete(f'{API}/groups/{{group_id}}', status_code=204)
def delete_group(group_id: int, db: Session = Depends(get_session)):
    services.GroupService(db).delete(group_id)
    return Response(status_code=204)


@app.get(f'{API}/groups/{{group_id}}/students', response_model=List[UserOut])
def list_group_students(group_id: int, db: Session = Depends(get_session)):
    return services.GroupService(db).list_students(group_id)


@app.post(f'{API}/groups/{{group_id}}/students', response_model=List[UserOut], status_code=201)
def enroll_student(group_id: int, payload: EnrollmentIn, db: Session = Depends(get_session)):
    return services.GroupService(db).enroll(group_id, payload.student_id)


@app.delete(f'{API}/groups/{{group_id}}/students/{{student_id}}', status_code=204)
def unenroll_student(group_id: int, student_id: int, db: Session = Depends(get_session)):
    services.GroupService(db).unenroll(group_id, student_id)
    return Response(status_code=204)


# ---- qualifications ----

@app.get(f'{API}/qualifications', response_model=List[QualificationOut])
def list_qualifications(db: Session = Depends(get_session)):
    return services.QualificationService(db).list()


@app.get(f'{API}/qualifications/student/{{student_id}}', response_model=List[QualificationOut])
def list_qualifications_by_student(student_id: int, db: Session = Depends(get_session)):
    """Grades of one student; 404 when the student has none."""
    return services.QualificationService(db).list_by_student(student_id)


@app.get(f'{API}/qualifications/subject/{{subject_id}}', response_model=List[QualificationOut])
def list_qualifications_by_subject(subject_id: int, db: Session = Depends(get_session)):
    return services.QualificationService(db).list_by_subject(subject_id)


@app.get(f'{API}/qualifications/group/{{group_id}}', response_model=List[QualificationOut])
def list_qualifications_by_group(group_id: int, db: Session = Depends(get_session)):
    return services.QualificationService(db).list_by_group(group_id)


@app.get(f'{API}/qualifications/group/{{group_id}}/details', response_model=List[QualificationDetailOut])
def list_qualification_details_by_group(group_id: int, db: Session = Depends(get_session)):
    """Group grades with teacher name and a dd/mm/yy date for reports."""
    return services.QualificationService(db).list_by_group_with_details(group_id)


@app.get(f'{API}/qualifications/{{qualification_id}}', response_model=QualificationOut)
def get_qualification(qualification_id: int, db: Session = Depends(get_session)):
    return services.QualificationService(db).get(qualification_id)


@app.post(f'{API}/qualifications', response_model=QualificationOut, status_code=201)
def create_qualification(payload: QualificationIn, db: Session = Depends(get_session)):
    """Record a grade (6-10) for a student enrolled in the group."""
    return services.QualificationService(db).create(payload)


@app.put(f'{API}/qualifications/{{qualification_id}}', response_model=QualificationOut)
def update_qualification(qualification_id: int, payload: QualificationUpdate, db: Session = Depends(get_session)):
    return services.QualificationService(db).update(qualification_id, payload)


@app.delete(f'{API}/qualifications/{{qualification_id}}', status_code=204)
def delete_qualification(qualification_id: int, db: Session = Depends(get_session)):
    services.QualificationService(db).delete(qualification_id)
    return Response(status_code=204)


# ---- rankings ----

@app.get(f'{API}/rankings', response_model=List[RankingOut])
def list_rankings(db: Session = Depends(get_session)):
    return services.RankingService(db).list()


@app.get(f'{API}/rankings/teacher/{{teacher_id}}', response_model=List[RankingOut])
def list_rankings_by_teacher(teacher_id: int, db: Session = Depends(get_session)):
    return services.RankingService(db).list_by_teacher(teacher_id)


@app.get(f'{API}/rankings/teacher/{{teacher_id}}/summary', response_model=RankingSummaryOut)
def ranking_summary(teacher_id: int, db: Session = Depends(get_session)):
    """Number of rankings and average star for a teacher."""
    return services.RankingService(db).summary(teacher_id)


@app.get(f'{API}/rankings/{{ranking_id}}', response_model=RankingOut)
def get_ranking(ranking_id: int, db: Session = Depends(get_session)):
    return services.RankingService(db).get(ranking_id)


@app.post(f'{API}/rankings', response_model=RankingOut, status_code=201)
def create_ranking(payload: RankingIn, db: Session = Depends(get_session)):
    return services.RankingService(db).create(payload)
