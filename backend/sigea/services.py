"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories
and domain rules. Services are intentionally thin: they resolve
references, validate, execute domain logic and persist aggregates via
repositories. Failures are raised as `errors.DomainError` subclasses;
the HTTP layer maps them to status codes.
"""

import logging
from datetime import datetime, timezone
from passlib.context import CryptContext
from typing import List, Optional
from sqlmodel import Session
from . import models, repositories, schemas
from .errors import BadReference, NotFound, ScheduleConflict, ValidationFailure
from .scheduling import ConflictQuery, TimeInterval, ensure_no_conflict, format_time

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
GRADE_MIN = 6
GRADE_MAX = 10
STAR_MIN = 1
STAR_MAX = 5

logger = logging.getLogger("sigea.services")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _resolve(repo, entity_id: int, label: str):
    """Look up a referenced row or raise `BadReference`."""
    entity = repo.get(entity_id)
    if entity is None:
        raise BadReference(f"{label} not found with id {entity_id}")
    return entity


class UserService:
    """User CRUD plus supervisor/campus assignment."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)
        self.campus_repo = repositories.CampusRepository(session)

    @staticmethod
    def to_response(u: models.User) -> schemas.UserOut:
        return schemas.UserOut(
            id=u.id,
            name=u.name,
            paternal_surname=u.paternal_surname,
            maternal_surname=u.maternal_surname,
            email=u.email,
            role=u.role,
            active=u.active,
        )

    def list(self, role: Optional[models.Role] = None) -> List[schemas.UserOut]:
        users = self.user_repo.list_by_role(role) if role else self.user_repo.list_all()
        return [self.to_response(u) for u in users]

    def get(self, user_id: int) -> schemas.UserOut:
        user = self.user_repo.get(user_id)
        if not user:
            raise NotFound(f"user not found with id {user_id}")
        return self.to_response(user)

    def create(self, dto: schemas.UserIn) -> schemas.UserOut:
        """Create a user with a hashed password; emails are unique."""
        email = dto.email.strip().lower()
        if self.user_repo.get_by_email(email):
            raise ValidationFailure(f"email already registered: {email}")
        if not dto.password:
            raise ValidationFailure("password must not be empty")
        user = models.User(
            name=dto.name,
            paternal_surname=dto.paternal_surname,
            maternal_surname=dto.maternal_surname,
            email=email,
            password_hash=PWD_CTX.hash(dto.password),
            role=dto.role,
        )
        saved = self.user_repo.save(user)
        logger.info("user created id=%s role=%s", saved.id, saved.role.value)
        return self.to_response(saved)

    def update(self, user_id: int, dto: schemas.UserUpdate) -> schemas.UserOut:
        """Apply the non-empty fields of `dto` to an existing user."""
        user = self.user_repo.get(user_id)
        if not user:
            raise NotFound(f"user not found with id {user_id}")
        if dto.email is not None:
            email = dto.email.strip().lower()
            other = self.user_repo.get_by_email(email)
            if other and other.id != user.id:
                raise ValidationFailure(f"email already registered: {email}")
            user.email = email
        if dto.password:
            user.password_hash = PWD_CTX.hash(dto.password)
        for field in ("name", "paternal_surname", "maternal_surname", "role", "active"):
            value = getattr(dto, field)
            if value is not None:
                setattr(user, field, value)
        return self.to_response(self.user_repo.save(user))

    def delete(self, user_id: int) -> None:
        """Delete a user nothing else points at.

        Groups, enrollments, qualifications and rankings keep their user
        ids, so a user still referenced by any of them cannot be removed.
        """
        if not self.user_repo.exists(user_id):
            raise NotFound(f"user not found with id {user_id}")
        group_repo = repositories.GroupRepository(self.session)
        if group_repo.list_by_teacher(user_id):
            raise ValidationFailure(f"user {user_id} still teaches groups")
        if group_repo.has_enrollments(user_id):
            raise ValidationFailure(f"user {user_id} is still enrolled in groups")
        if repositories.QualificationRepository(self.session).exists_for_user(user_id):
            raise ValidationFailure(f"user {user_id} still has qualifications")
        if repositories.RankingRepository(self.session).exists_for_user(user_id):
            raise ValidationFailure(f"user {user_id} still has rankings")
        self.user_repo.delete(user_id)
        logger.info("user deleted id=%s", user_id)

    def _supervisor_and_campus(self, supervisor_id: int, campus_id: int):
        supervisor = _resolve(self.user_repo, supervisor_id, "supervisor")
        if supervisor.role != models.Role.SUPERVISOR:
            raise ValidationFailure(f"user {supervisor_id} is not a supervisor")
        campus = _resolve(self.campus_repo, campus_id, "campus")
        return supervisor, campus

    def assign_campus(self, supervisor_id: int, campus_id: int) -> List[schemas.CampusOut]:
        """Link a campus to a supervisor (idempotent) and return their campuses."""
        self._supervisor_and_campus(supervisor_id, campus_id)
        if not self.user_repo.get_supervisor_campus(supervisor_id, campus_id):
            self.user_repo.add_supervisor_campus(supervisor_id, campus_id)
        return self.list_campuses(supervisor_id)

    def remove_campus(self, supervisor_id: int, campus_id: int) -> None:
        self._supervisor_and_campus(supervisor_id, campus_id)
        link = self.user_repo.get_supervisor_campus(supervisor_id, campus_id)
        if not link:
            raise NotFound(f"campus {campus_id} is not assigned to supervisor {supervisor_id}")
        self.user_repo.remove_supervisor_campus(link)

    def list_campuses(self, supervisor_id: int) -> List[schemas.CampusOut]:
        if not self.user_repo.exists(supervisor_id):
            raise NotFound(f"user not found with id {supervisor_id}")
        return [CatalogService.campus_response(c) for c in self.user_repo.list_campuses_for_supervisor(supervisor_id)]


class CatalogService:
    """Campuses, careers, curricula and subjects.

    Each entity only needs create/list/get; a child's parent id must
    resolve when it is created.
    """
    def __init__(self, session: Session):
        self.session = session
        self.campus_repo = repositories.CampusRepository(session)
        self.career_repo = repositories.CareerRepository(session)
        self.curriculum_repo = repositories.CurriculumRepository(session)
        self.subject_repo = repositories.SubjectRepository(session)

    @staticmethod
    def campus_response(c: models.Campus) -> schemas.CampusOut:
        return schemas.CampusOut(id=c.id, name=c.name)

    def create_campus(self, dto: schemas.CampusIn) -> schemas.CampusOut:
        if self.campus_repo.get_by_name(dto.name):
            raise ValidationFailure(f"campus already exists: {dto.name}")
        return self.campus_response(self.campus_repo.save(models.Campus(name=dto.name)))

    def list_campuses(self) -> List[schemas.CampusOut]:
        return [self.campus_response(c) for c in self.campus_repo.list_all()]

    def get_campus(self, campus_id: int) -> schemas.CampusOut:
        c = self.campus_repo.get(campus_id)
        if not c:
            raise NotFound(f"campus not found with id {campus_id}")
        return self.campus_response(c)

    def create_career(self, dto: schemas.CareerIn) -> schemas.CareerOut:
        _resolve(self.campus_repo, dto.campus_id, "campus")
        c = self.career_repo.save(models.Career(name=dto.name, campus_id=dto.campus_id))
        return schemas.CareerOut(id=c.id, name=c.name, campus_id=c.campus_id)

    def list_careers(self) -> List[schemas.CareerOut]:
        return [schemas.CareerOut(id=c.id, name=c.name, campus_id=c.campus_id) for c in self.career_repo.list_all()]

    def get_career(self, career_id: int) -> schemas.CareerOut:
        c = self.career_repo.get(career_id)
        if not c:
            raise NotFound(f"career not found with id {career_id}")
        return schemas.CareerOut(id=c.id, name=c.name, campus_id=c.campus_id)

    def create_curriculum(self, dto: schemas.CurriculumIn) -> schemas.CurriculumOut:
        _resolve(self.career_repo, dto.career_id, "career")
        c = self.curriculum_repo.save(models.Curriculum(name=dto.name, career_id=dto.career_id))
        return schemas.CurriculumOut(id=c.id, name=c.name, career_id=c.career_id)

    def list_curricula(self) -> List[schemas.CurriculumOut]:
        return [schemas.CurriculumOut(id=c.id, name=c.name, career_id=c.career_id) for c in self.curriculum_repo.list_all()]

    def get_curriculum(self, curriculum_id: int) -> schemas.CurriculumOut:
        c = self.curriculum_repo.get(curriculum_id)
        if not c:
            raise NotFound(f"curriculum not found with id {curriculum_id}")
        return schemas.CurriculumOut(id=c.id, name=c.name, career_id=c.career_id)

    def create_subject(self, dto: schemas.SubjectIn) -> schemas.SubjectOut:
        _resolve(self.curriculum_repo, dto.curriculum_id, "curriculum")
        s = self.subject_repo.save(models.Subject(name=dto.name, curriculum_id=dto.curriculum_id))
        return schemas.SubjectOut(id=s.id, name=s.name, curriculum_id=s.curriculum_id)

    def list_subjects(self) -> List[schemas.SubjectOut]:
        return [schemas.SubjectOut(id=s.id, name=s.name, curriculum_id=s.curriculum_id) for s in self.subject_repo.list_all()]

    def get_subject(self, subject_id: int) -> schemas.SubjectOut:
        s = self.subject_repo.get(subject_id)
        if not s:
            raise NotFound(f"subject not found with id {subject_id}")
        return schemas.SubjectOut(id=s.id, name=s.name, curriculum_id=s.curriculum_id)


class GroupService:
    """Group CRUD with teacher schedule validation, plus enrollment."""
    def __init__(self, session: Session):
        self.session = session
        self.group_repo = repositories.GroupRepository(session)
        self.user_repo = repositories.UserRepository(session)
        self.career_repo = repositories.CareerRepository(session)
        self.curriculum_repo = repositories.CurriculumRepository(session)

    @staticmethod
    def to_response(g: models.Group) -> schemas.GroupOut:
        return schemas.GroupOut(
            id=g.id,
            name=g.name,
            week_day=g.week_day,
            start_time=format_time(g.start_time),
            end_time=format_time(g.end_time),
            teacher_id=g.teacher.id,
            teacher_name=f"{g.teacher.name} {g.teacher.paternal_surname}",
            career_id=g.career.id,
            career_name=g.career.name,
            curriculum_id=g.curriculum.id,
            curriculum_name=g.curriculum.name,
        )

    def list(self) -> List[schemas.GroupOut]:
        return [self.to_response(g) for g in self.group_repo.list_all()]

    def list_by_teacher(self, teacher_id: int) -> List[schemas.GroupOut]:
        return [self.to_response(g) for g in self.group_repo.list_by_teacher(teacher_id)]

    def list_by_career(self, career_id: int) -> List[schemas.GroupOut]:
        return [self.to_response(g) for g in self.group_repo.list_by_career(career_id)]

    def get(self, group_id: int) -> schemas.GroupOut:
        return self.to_response(self._existing(group_id))

    def _existing(self, group_id: int) -> models.Group:
        g = self.group_repo.get(group_id)
        if not g:
            raise NotFound(f"group not found with id {group_id}")
        return g

    def prepare(self, dto: schemas.GroupIn, existing: Optional[models.Group] = None) -> models.Group:
        """Validate `dto` and return a group populated from it, unsaved.

        References are resolved first, then the time range, then the
        teacher's other assignments are scanned for overlap. On update
        `existing` is the group being edited: its own slot is excluded
        from the scan and it is the object that gets populated.
        """
        teacher = _resolve(self.user_repo, dto.teacher_id, "teacher")
        career = _resolve(self.career_repo, dto.career_id, "career")
        curriculum = _resolve(self.curriculum_repo, dto.curriculum_id, "curriculum")

        candidate = TimeInterval(dto.week_day, dto.start_time, dto.end_time)
        query = ConflictQuery(
            teacher_id=teacher.id,
            candidate=candidate,
            exclude_assignment_id=existing.id if existing is not None else None,
        )
        try:
            ensure_no_conflict(self.group_repo.assignments_for_teacher(teacher.id), query)
        except ScheduleConflict as exc:
            logger.warning("schedule conflict teacher=%s candidate=%s clash=%s", teacher.id, candidate, exc.assignment.id)
            raise

        g = existing if existing is not None else models.Group()
        g.name = dto.name
        g.week_day = dto.week_day
        g.start_time = dto.start_time
        g.end_time = dto.end_time
        g.teacher_id = teacher.id
        g.career_id = career.id
        g.curriculum_id = curriculum.id
        return g

    def create(self, dto: schemas.GroupIn) -> schemas.GroupOut:
        saved = self.group_repo.save(self.prepare(dto))
        logger.info("group created id=%s teacher=%s", saved.id, saved.teacher_id)
        return self.to_response(saved)

    def update(self, group_id: int, dto: schemas.GroupIn) -> schemas.GroupOut:
        existing = self._existing(group_id)
        saved = self.group_repo.save(self.prepare(dto, existing=existing))
        logger.info("group updated id=%s", saved.id)
        return self.to_response(saved)

    def delete(self, group_id: int) -> None:
        if not self.group_repo.exists(group_id):
            raise NotFound(f"group not found with id {group_id}")
        self.group_repo.delete(group_id)
        logger.info("group deleted id=%s", group_id)

    def enroll(self, group_id: int, student_id: int) -> List[schemas.UserOut]:
        """Enroll a STUDENT user in a group and return the group's students."""
        self._existing(group_id)
        student = _resolve(self.user_repo, student_id, "student")
        if student.role != models.Role.STUDENT:
            raise ValidationFailure(f"user {student_id} is not a student")
        if self.group_repo.is_enrolled(group_id, student_id):
            raise ValidationFailure(f"student {student_id} is already enrolled in group {group_id}")
        self.group_repo.enroll(group_id, student_id)
        return self.list_students(group_id)

    def list_students(self, group_id: int) -> List[schemas.UserOut]:
        self._existing(group_id)
        return [UserService.to_response(u) for u in self.group_repo.list_students(group_id)]

    def unenroll(self, group_id: int, student_id: int) -> None:
        if not self.group_repo.unenroll(group_id, student_id):
            raise NotFound(f"student {student_id} is not enrolled in group {group_id}")


def validate_grade(grade: Optional[int]) -> int:
    """Return `grade` if it lies in [GRADE_MIN, GRADE_MAX], else raise."""
    if grade is None or grade < GRADE_MIN or grade > GRADE_MAX:
        raise ValidationFailure(f"grade must be between {GRADE_MIN} and {GRADE_MAX}")
    return grade


class QualificationService:
    """Record and query grades given to enrolled students."""
    def __init__(self, session: Session):
        self.session = session
        self.q_repo = repositories.QualificationRepository(session)
        self.user_repo = repositories.UserRepository(session)
        self.group_repo = repositories.GroupRepository(session)
        self.subject_repo = repositories.SubjectRepository(session)

    @staticmethod
    def to_response(q: models.Qualification) -> schemas.QualificationOut:
        return schemas.QualificationOut(
            id=q.id,
            student_id=q.student_id,
            group_id=q.group_id,
            subject_id=q.subject_id,
            teacher_id=q.teacher_id,
            grade=q.grade,
            date=q.date,
        )

    def to_detail(self, q: models.Qualification) -> schemas.QualificationDetailOut:
        teacher_name = ""
        if q.teacher_id is not None:
            teacher = self.user_repo.get(q.teacher_id)
            if teacher:
                teacher_name = teacher.full_name
        return schemas.QualificationDetailOut(
            **self.to_response(q).model_dump(),
            teacher_name=teacher_name,
            formatted_date=q.date.strftime("%d/%m/%y") if q.date else "",
        )

    def list(self) -> List[schemas.QualificationOut]:
        return [self.to_response(q) for q in self.q_repo.list_all()]

    def get(self, qualification_id: int) -> schemas.QualificationOut:
        q = self.q_repo.get(qualification_id)
        if not q:
            raise NotFound(f"qualification not found with id {qualification_id}")
        return self.to_response(q)

    def list_by_student(self, student_id: int) -> List[schemas.QualificationOut]:
        found = self.q_repo.list_by_student(student_id)
        if not found:
            raise NotFound(f"no qualifications for student {student_id}")
        return [self.to_response(q) for q in found]

    def list_by_subject(self, subject_id: int) -> List[schemas.QualificationOut]:
        found = self.q_repo.list_by_subject(subject_id)
        if not found:
            raise NotFound(f"no qualifications for subject {subject_id}")
        return [self.to_response(q) for q in found]

    def list_by_group(self, group_id: int) -> List[schemas.QualificationOut]:
        return [self.to_response(q) for q in self.q_repo.list_by_group(group_id)]

    def list_by_group_with_details(self, group_id: int) -> List[schemas.QualificationDetailOut]:
        return [self.to_detail(q) for q in self.q_repo.list_by_group(group_id)]

    def create(self, dto: schemas.QualificationIn) -> schemas.QualificationOut:
        """Store a grade after checking references, enrollment and range."""
        student = _resolve(self.user_repo, dto.student_id, "student")
        group = _resolve(self.group_repo, dto.group_id, "group")
        subject = _resolve(self.subject_repo, dto.subject_id, "subject")
        teacher_id = None
        if dto.teacher_id is not None:
            teacher_id = _resolve(self.user_repo, dto.teacher_id, "teacher").id
        if not self.group_repo.is_enrolled(group.id, student.id):
            raise ValidationFailure(f"student {student.id} is not enrolled in group {group.id}")
        grade = validate_grade(dto.grade)
        q = models.Qualification(
            student_id=student.id,
            group_id=group.id,
            subject_id=subject.id,
            teacher_id=teacher_id,
            grade=grade,
            date=_now(),
        )
        saved = self.q_repo.save(q)
        logger.info("qualification created id=%s student=%s grade=%s", saved.id, saved.student_id, saved.grade)
        return self.to_response(saved)

    def update(self, qualification_id: int, dto: schemas.QualificationUpdate) -> schemas.QualificationOut:
        q = self.q_repo.get(qualification_id)
        if not q:
            raise NotFound(f"qualification not found with id {qualification_id}")
        if dto.grade is not None:
            q.grade = validate_grade(dto.grade)
        if dto.teacher_id is not None:
            q.teacher_id = _resolve(self.user_repo, dto.teacher_id, "teacher").id
        q.date = _now()
        return self.to_response(self.q_repo.save(q))

    def delete(self, qualification_id: int) -> None:
        if not self.q_repo.exists(qualification_id):
            raise NotFound(f"qualification not found with id {qualification_id}")
        self.q_repo.delete(qualification_id)


class RankingService:
    """Student ratings of teachers."""
    def __init__(self, session: Session):
        self.session = session
        self.ranking_repo = repositories.RankingRepository(session)
        self.user_repo = repositories.UserRepository(session)

    @staticmethod
    def to_response(r: models.Ranking) -> schemas.RankingOut:
        return schemas.RankingOut(
            id=r.id,
            teacher_id=r.teacher_id,
            student_id=r.student_id,
            star=r.star,
            comment=r.comment,
            date=r.date,
        )

    def list(self) -> List[schemas.RankingOut]:
        return [self.to_response(r) for r in self.ranking_repo.list_all()]

    def get(self, ranking_id: int) -> schemas.RankingOut:
        r = self.ranking_repo.get(ranking_id)
        if not r:
            raise NotFound(f"ranking not found with id {ranking_id}")
        return self.to_response(r)

    def list_by_teacher(self, teacher_id: int) -> List[schemas.RankingOut]:
        return [self.to_response(r) for r in self.ranking_repo.list_by_teacher(teacher_id)]

    def create(self, dto: schemas.RankingIn) -> schemas.RankingOut:
        teacher = _resolve(self.user_repo, dto.teacher_id, "teacher")
        student = _resolve(self.user_repo, dto.student_id, "student")
        if teacher.role != models.Role.TEACHER:
            raise ValidationFailure(f"user {teacher.id} is not a teacher")
        if dto.star < STAR_MIN or dto.star > STAR_MAX:
            raise ValidationFailure(f"star must be between {STAR_MIN} and {STAR_MAX}")
        r = models.Ranking(
            teacher_id=teacher.id,
            student_id=student.id,
            star=dto.star,
            comment=dto.comment,
            date=_now(),
        )
        return self.to_response(self.ranking_repo.save(r))

    def summary(self, teacher_id: int) -> schemas.RankingSummaryOut:
        if not self.user_repo.exists(teacher_id):
            raise NotFound(f"teacher not found with id {teacher_id}")
        count, average = self.ranking_repo.summary_for_teacher(teacher_id)
        return schemas.RankingSummaryOut(
            teacher_id=teacher_id,
            count=count,
            average=round(average, 2) if average is not None else None,
        )
