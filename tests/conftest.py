"""
ExamGate - Test Configuration and Fixtures
"""
import os
import uuid
from datetime import datetime
from typing import AsyncGenerator, Optional
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from faker import Faker

# Set testing environment
os.environ['TESTING'] = 'true'
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite:///./test.db'
os.environ['HALL_TICKET_SECRET'] = 'test-hall-ticket-secret'
os.environ['ENVIRONMENT'] = 'test'

from app.main import app
from app.core.database import Base, get_db, enable_sqlite_savepoints
from app.models import (
    Examination,
    ExaminationClass,
    ExaminationStatus,
    SchoolClass,
    Section,
    Student,
    StudentEnrollment,
    EnrollmentStatus,
    HallTicket,
    HallTicketStatus,
)
from app.modules.hallticket.codec import VerificationCodec

fake = Faker()

TEST_SECRET = 'test-hall-ticket-secret'

# Test database setup
TEST_DATABASE_URL = 'sqlite+aiosqlite:///./test.db'
test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
enable_sqlite_savepoints(test_engine)
TestSessionLocal = async_sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False
)


class SchoolFactory:
    """Creates academic records and hall tickets for one tenant"""

    def __init__(self, session: AsyncSession, tenant_id: str):
        self.session = session
        self.tenant_id = tenant_id
        self._admission_counter = 0

    async def _save(self, obj):
        self.session.add(obj)
        await self.session.commit()
        return obj

    async def examination(
        self,
        name: str = "Mid Term Examination",
        status: ExaminationStatus = ExaminationStatus.SCHEDULED,
    ) -> Examination:
        return await self._save(Examination(tenant_id=self.tenant_id, name=name, status=status))

    async def school_class(self, code: str, name: Optional[str] = None) -> SchoolClass:
        return await self._save(SchoolClass(tenant_id=self.tenant_id, code=code, name=name or f"Class {code}"))

    async def section(self, school_class: SchoolClass, name: str = "A") -> Section:
        return await self._save(Section(
            tenant_id=self.tenant_id, class_id=school_class.id, name=name, code=name
        ))

    async def assign(self, examination: Examination, *classes: SchoolClass) -> None:
        for school_class in classes:
            self.session.add(ExaminationClass(examination_id=examination.id, class_id=school_class.id))
        await self.session.commit()

    async def student(
        self,
        school_class: Optional[SchoolClass] = None,
        admission_number: Optional[str] = None,
        section: Optional[Section] = None,
        status: EnrollmentStatus = EnrollmentStatus.ACTIVE,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> Student:
        if admission_number is None:
            self._admission_counter += 1
            admission_number = f"ADM{self._admission_counter:04d}"
        student = await self._save(Student(
            tenant_id=self.tenant_id,
            admission_number=admission_number,
            first_name=first_name or fake.first_name(),
            last_name=last_name if last_name is not None else fake.last_name(),
        ))
        if school_class is not None:
            await self.enroll(student, school_class, section=section, status=status)
        return student

    async def enroll(
        self,
        student: Student,
        school_class: SchoolClass,
        section: Optional[Section] = None,
        status: EnrollmentStatus = EnrollmentStatus.ACTIVE,
    ) -> StudentEnrollment:
        return await self._save(StudentEnrollment(
            tenant_id=self.tenant_id,
            student_id=student.id,
            class_id=school_class.id,
            section_id=section.id if section else None,
            status=status,
        ))

    async def ticket(
        self,
        examination: Examination,
        roll_number: str,
        student_id: Optional[str] = None,
        ticket_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
        codec: Optional[VerificationCodec] = None,
    ) -> HallTicket:
        """Store a ticket directly, bypassing issuance"""
        ticket_id = ticket_id or str(uuid.uuid4())
        student_id = student_id or str(uuid.uuid4())
        codec = codec or VerificationCodec(TEST_SECRET)
        created_at = created_at or datetime.utcnow()
        return await self._save(HallTicket(
            id=ticket_id,
            tenant_id=self.tenant_id,
            examination_id=examination.id,
            student_id=student_id,
            roll_number=roll_number,
            qr_code_data=codec.encode(ticket_id, student_id, examination.id, tenant_id=self.tenant_id),
            status=HallTicketStatus.GENERATED,
            generated_at=created_at,
            created_at=created_at,
            updated_at=created_at,
        ))


@pytest.fixture(scope='function')
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test"""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session
        await session.rollback()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database override"""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def tenant_id() -> str:
    return str(uuid.uuid4())


@pytest.fixture
def tenant_headers(tenant_id: str) -> dict:
    return {'X-Tenant-ID': tenant_id}


@pytest.fixture
def codec() -> VerificationCodec:
    return VerificationCodec(TEST_SECRET)


@pytest.fixture
def school(db_session: AsyncSession, tenant_id: str) -> SchoolFactory:
    return SchoolFactory(db_session, tenant_id)


@pytest.fixture
async def scheduled_exam(school: SchoolFactory):
    """
    Scheduled examination for classes 10A (two students) and 10B (one student).

    Returns (examination, class_10a, class_10b, [students in issuance order])
    """
    examination = await school.examination()
    class_10a = await school.school_class("10A", "Grade 10 A")
    class_10b = await school.school_class("10B", "Grade 10 B")
    await school.assign(examination, class_10a, class_10b)

    first = await school.student(class_10a, admission_number="ADM0001")
    second = await school.student(class_10a, admission_number="ADM0002")
    third = await school.student(class_10b, admission_number="ADM0003")
    return examination, class_10a, class_10b, [first, second, third]
