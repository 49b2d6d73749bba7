"""
Eligibility Resolver - which students get a hall ticket for an examination
"""

import logging
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    ExaminationNotFoundError,
    NoClassesForExamError,
    PersistenceError,
)
from app.models.academic import (
    Examination,
    ExaminationClass,
    SchoolClass,
    Student,
    StudentEnrollment,
    EnrollmentStatus,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EligibleStudent:
    """An actively enrolled student annotated with the class it sits in"""
    student_id: str
    admission_number: str
    student_name: str
    class_id: str
    class_code: str
    class_name: str
    section_id: Optional[str] = None


async def load_examination(db: AsyncSession, tenant_id: str, examination_id: str) -> Examination:
    try:
        result = await db.execute(
            select(Examination).where(
                Examination.tenant_id == tenant_id,
                Examination.id == examination_id,
            )
        )
    except SQLAlchemyError as e:
        raise PersistenceError(f"Failed to load examination: {e}", operation="load_examination")

    examination = result.scalar_one_or_none()
    if examination is None:
        raise ExaminationNotFoundError(examination_id)
    return examination


async def resolve_target_classes(
    db: AsyncSession,
    examination_id: str,
    class_id: Optional[str] = None,
) -> List[str]:
    """
    Classes assigned to the examination, narrowed to `class_id` when given.

    Raises NoClassesForExamError when the result is empty.
    """
    try:
        result = await db.execute(
            select(ExaminationClass.class_id).where(ExaminationClass.examination_id == examination_id)
        )
    except SQLAlchemyError as e:
        raise PersistenceError(f"Failed to load examination classes: {e}", operation="resolve_target_classes")

    assigned = [str(c) for c in result.scalars().all()]
    if not assigned:
        raise NoClassesForExamError(examination_id)

    if class_id is not None:
        class_id = str(class_id)
        if class_id not in assigned:
            raise NoClassesForExamError(examination_id, class_id=class_id)
        return [class_id]
    return assigned


async def iter_eligible_students(
    db: AsyncSession,
    tenant_id: str,
    class_ids: List[str],
    section_id: Optional[str] = None,
    page_size: int = 500,
) -> AsyncIterator[EligibleStudent]:
    """
    Active enrollments in `class_ids`, paged, in issuance order:
    class code, then admission number, then student id.
    """
    query = (
        select(
            Student.id,
            Student.admission_number,
            Student.first_name,
            Student.last_name,
            SchoolClass.id,
            SchoolClass.code,
            SchoolClass.name,
            StudentEnrollment.section_id,
        )
        .join(Student, StudentEnrollment.student_id == Student.id)
        .join(SchoolClass, StudentEnrollment.class_id == SchoolClass.id)
        .where(
            StudentEnrollment.tenant_id == tenant_id,
            StudentEnrollment.status == EnrollmentStatus.ACTIVE,
            StudentEnrollment.class_id.in_(class_ids),
        )
        .order_by(SchoolClass.code, Student.admission_number, Student.id)
    )
    if section_id is not None:
        query = query.where(StudentEnrollment.section_id == section_id)

    offset = 0
    while True:
        try:
            rows = (await db.execute(query.offset(offset).limit(page_size))).all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load enrolled students: {e}", operation="iter_eligible_students")

        for row in rows:
            yield EligibleStudent(
                student_id=str(row[0]),
                admission_number=row[1],
                student_name=f"{row[2]} {row[3] or ''}".strip(),
                class_id=str(row[4]),
                class_code=row[5],
                class_name=row[6],
                section_id=str(row[7]) if row[7] else None,
            )

        if len(rows) < page_size:
            break
        offset += page_size


async def resolve_eligible_students(
    db: AsyncSession,
    tenant_id: str,
    class_ids: List[str],
    section_id: Optional[str] = None,
    page_size: int = 500,
) -> List[EligibleStudent]:
    students: List[EligibleStudent] = []
    seen_class_codes = {}
    async for student in iter_eligible_students(db, tenant_id, class_ids, section_id, page_size):
        # Two active enrollments still mean one ticket, in the first class seen
        if student.student_id in seen_class_codes:
            logger.warning(
                f"[Eligibility] Student {student.admission_number} has more than one active enrollment; "
                f"keeping class {seen_class_codes[student.student_id]}, ignoring {student.class_code}"
            )
            continue
        seen_class_codes[student.student_id] = student.class_code
        students.append(student)
    return students
