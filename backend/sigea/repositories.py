"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
campuses, careers, curricula, subjects, groups, qualifications,
rankings). Repositories return SQLModel objects and perform
commits/refreshes where appropriate. Business rules live in
`services`; nothing here validates.
"""

from typing import List, Optional
from sqlmodel import Session, select
from sqlalchemy import func, or_
from . import models
from .scheduling import TeachingAssignment


class _Repository:
    """Find/save/delete/exists shared by the single-key repositories."""
    model = None

    def __init__(self, session: Session):
        self.session = session

    def get(self, entity_id: int):
        """Fetch a row by primary key or `None`."""
        return self.session.get(self.model, entity_id)

    def exists(self, entity_id: int) -> bool:
        return self.get(entity_id) is not None

    def list_all(self) -> list:
        stmt = select(self.model).order_by(self.model.id)
        return list(self.session.exec(stmt).all())

    def save(self, entity):
        """Insert or update `entity` and return the refreshed instance."""
        self.session.add(entity)
        self.session.commit()
        self.session.refresh(entity)
        return entity

    def delete(self, entity_id: int) -> None:
        entity = self.get(entity_id)
        if entity is not None:
            self.session.delete(entity)
            self.session.commit()


class UserRepository(_Repository):
    """CRUD operations for `User` objects and supervisor/campus links."""
    model = models.User

    def get_by_email(self, email: str) -> Optional[models.User]:
        """Return a `User` by email or `None` if not found."""
        stmt = select(models.User).where(models.User.email == email)
        return self.session.exec(stmt).first()

    def list_by_role(self, role: models.Role) -> List[models.User]:
        stmt = select(models.User).where(models.User.role == role).order_by(models.User.id)
        return list(self.session.exec(stmt).all())

    def get_supervisor_campus(self, supervisor_id: int, campus_id: int) -> Optional[models.SupervisorCampus]:
        return self.session.get(models.SupervisorCampus, (supervisor_id, campus_id))

    def add_supervisor_campus(self, supervisor_id: int, campus_id: int) -> models.SupervisorCampus:
        link = models.SupervisorCampus(supervisor_id=supervisor_id, campus_id=campus_id)
        self.session.add(link)
        self.session.commit()
        return link

    def remove_supervisor_campus(self, link: models.SupervisorCampus) -> None:
        self.session.delete(link)
        self.session.commit()

    def list_campuses_for_supervisor(self, supervisor_id: int) -> List[models.Campus]:
        stmt = (
            select(models.Campus)
            .join(models.SupervisorCampus, models.SupervisorCampus.campus_id == models.Campus.id)
            .where(models.SupervisorCampus.supervisor_id == supervisor_id)
            .order_by(models.Campus.id)
        )
        return list(self.session.exec(stmt).all())

    def delete(self, entity_id: int) -> None:
        """Delete a user together with their supervisor/campus links."""
        links = self.session.exec(
            select(models.SupervisorCampus).where(models.SupervisorCampus.supervisor_id == entity_id)
        ).all()
        for link in links:
            self.session.delete(link)
        super().delete(entity_id)


class CampusRepository(_Repository):
    model = models.Campus

    def get_by_name(self, name: str) -> Optional[models.Campus]:
        stmt = select(models.Campus).where(models.Campus.name == name)
        return self.session.exec(stmt).first()


class CareerRepository(_Repository):
    model = models.Career


class CurriculumRepository(_Repository):
    model = models.Curriculum


class SubjectRepository(_Repository):
    model = models.Subject


class GroupRepository(_Repository):
    """Groups, their enrollments, and the teacher assignments they imply."""
    model = models.Group

    def list_by_teacher(self, teacher_id: int) -> List[models.Group]:
        stmt = select(models.Group).where(models.Group.teacher_id == teacher_id).order_by(models.Group.id)
        return list(self.session.exec(stmt).all())

    def list_by_career(self, career_id: int) -> List[models.Group]:
        stmt = select(models.Group).where(models.Group.career_id == career_id).order_by(models.Group.id)
        return list(self.session.exec(stmt).all())

    def assignments_for_teacher(self, teacher_id: int) -> List[TeachingAssignment]:
        """Return every weekly slot currently assigned to `teacher_id`."""
        return [g.as_assignment() for g in self.list_by_teacher(teacher_id)]

    def is_enrolled(self, group_id: int, student_id: int) -> bool:
        return self.session.get(models.GroupStudent, (group_id, student_id)) is not None

    def has_enrollments(self, student_id: int) -> bool:
        stmt = select(models.GroupStudent.group_id).where(models.GroupStudent.student_id == student_id)
        return self.session.exec(stmt).first() is not None

    def enroll(self, group_id: int, student_id: int) -> models.GroupStudent:
        link = models.GroupStudent(group_id=group_id, student_id=student_id)
        self.session.add(link)
        self.session.commit()
        return link

    def unenroll(self, group_id: int, student_id: int) -> bool:
        """Remove an enrollment; return False when there was none."""
        link = self.session.get(models.GroupStudent, (group_id, student_id))
        if link is None:
            return False
        self.session.delete(link)
        self.session.commit()
        return True

    def list_students(self, group_id: int) -> List[models.User]:
        stmt = (
            select(models.User)
            .join(models.GroupStudent, models.GroupStudent.student_id == models.User.id)
            .where(models.GroupStudent.group_id == group_id)
            .order_by(models.User.id)
        )
        return list(self.session.exec(stmt).all())

    def delete(self, entity_id: int) -> None:
        """Delete a group and the enrollments that belong to it."""
        links = self.session.exec(
            select(models.GroupStudent).where(models.GroupStudent.group_id == entity_id)
        ).all()
        for link in links:
            self.session.delete(link)
        super().delete(entity_id)


class QualificationRepository(_Repository):
    model = models.Qualification

    def list_by_student(self, student_id: int) -> List[models.Qualification]:
        stmt = select(models.Qualification).where(models.Qualification.student_id == student_id).order_by(models.Qualification.id)
        return list(self.session.exec(stmt).all())

    def list_by_subject(self, subject_id: int) -> List[models.Qualification]:
        stmt = select(models.Qualification).where(models.Qualification.subject_id == subject_id).order_by(models.Qualification.id)
        return list(self.session.exec(stmt).all())

    def list_by_group(self, group_id: int) -> List[models.Qualification]:
        stmt = select(models.Qualification).where(models.Qualification.group_id == group_id).order_by(models.Qualification.id)
        return list(self.session.exec(stmt).all())

    def exists_for_user(self, user_id: int) -> bool:
        """Return True if `user_id` is the student or the teacher of any grade."""
        stmt = select(models.Qualification.id).where(
            or_(models.Qualification.student_id == user_id, models.Qualification.teacher_id == user_id)
        )
        return self.session.exec(stmt).first() is not None


class RankingRepository(_Repository):
    model = models.Ranking

    def list_by_teacher(self, teacher_id: int) -> List[models.Ranking]:
        stmt = select(models.Ranking).where(models.Ranking.teacher_id == teacher_id).order_by(models.Ranking.id)
        return list(self.session.exec(stmt).all())

    def exists_for_user(self, user_id: int) -> bool:
        stmt = select(models.Ranking.id).where(
            or_(models.Ranking.teacher_id == user_id, models.Ranking.student_id == user_id)
        )
        return self.session.exec(stmt).first() is not None

    def summary_for_teacher(self, teacher_id: int):
        """Return `(count, average_star)` for a teacher; average is None without rankings."""
        stmt = select(func.count(models.Ranking.id), func.avg(models.Ranking.star)).where(
            models.Ranking.teacher_id == teacher_id
        )
        count, average = self.session.exec(stmt).one()
        return int(count or 0), (float(average) if average is not None else None)
