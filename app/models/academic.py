"""
Academic Read Models - examinations, classes, sections, students, enrollments

These tables are owned by the academic and student modules of the platform.
They are mapped here so hall ticket issuance can resolve eligibility and
verification can show display fields; nothing in this service writes them
outside of tests and seeding.
"""

from sqlalchemy import Column, String, DateTime, Date, Boolean, Integer, ForeignKey, Index, Enum as SQLEnum
from datetime import datetime
import enum

from app.core.database import Base
from app.core.types import GUID, generate_uuid


class ExaminationStatus(str, enum.Enum):
    """Lifecycle of an examination"""
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class EnrollmentStatus(str, enum.Enum):
    """Status of a student's enrollment in a class"""
    ACTIVE = "active"
    COMPLETED = "completed"
    TRANSFERRED = "transferred"
    DROPPED = "dropped"


class Examination(Base):
    """Examination with its assigned classes"""
    __tablename__ = "examinations"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    tenant_id = Column(GUID, nullable=False, index=True)
    name = Column(String(200), nullable=False)
    status = Column(
        SQLEnum(ExaminationStatus, values_callable=lambda e: [m.value for m in e], native_enum=False, length=20),
        nullable=False,
        default=ExaminationStatus.DRAFT,
    )
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Examination {self.name} ({self.status})>"


class ExaminationClass(Base):
    """Class assigned to an examination"""
    __tablename__ = "examination_classes"

    examination_id = Column(GUID, ForeignKey("examinations.id", ondelete="CASCADE"), primary_key=True)
    class_id = Column(GUID, ForeignKey("classes.id"), primary_key=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class SchoolClass(Base):
    """Class (grade) such as "Grade 10", code "10A" """
    __tablename__ = "classes"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    tenant_id = Column(GUID, nullable=False, index=True)
    name = Column(String(50), nullable=False)
    code = Column(String(20), nullable=False)
    display_order = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<SchoolClass {self.code}>"


class Section(Base):
    """Section within a class"""
    __tablename__ = "sections"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    tenant_id = Column(GUID, nullable=False, index=True)
    class_id = Column(GUID, ForeignKey("classes.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(20), nullable=False)
    code = Column(String(20), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class Student(Base):
    """Student master record"""
    __tablename__ = "students"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    tenant_id = Column(GUID, nullable=False, index=True)
    admission_number = Column(String(20), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False, default="")
    photo_url = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self):
        return f"<Student {self.admission_number}>"


class StudentEnrollment(Base):
    """Student placed in a class/section for an academic year"""
    __tablename__ = "student_enrollments"
    __table_args__ = (
        Index('ix_student_enrollments_class_status', 'class_id', 'status'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    tenant_id = Column(GUID, nullable=False, index=True)
    student_id = Column(GUID, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    class_id = Column(GUID, ForeignKey("classes.id"), nullable=False)
    section_id = Column(GUID, ForeignKey("sections.id"), nullable=True)
    status = Column(
        SQLEnum(EnrollmentStatus, values_callable=lambda e: [m.value for m in e], native_enum=False, length=20),
        nullable=False,
        default=EnrollmentStatus.ACTIVE,
    )
    created_at = Column(DateTime, default=datetime.utcnow)
