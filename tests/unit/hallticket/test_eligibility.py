"""
Unit Tests for eligibility resolution
"""
import uuid

import pytest

from app.core.exceptions import ExaminationNotFoundError, NoClassesForExamError
from app.models import EnrollmentStatus
from app.modules.hallticket.eligibility import (
    load_examination,
    resolve_eligible_students,
    resolve_target_classes,
)


class TestLoadExamination:
    """Test examination lookup"""

    @pytest.mark.asyncio
    async def test_loads_examination_of_tenant(self, db_session, school, tenant_id):
        exam = await school.examination(name="Quarterly")

        loaded = await load_examination(db_session, tenant_id, exam.id)

        assert loaded.name == "Quarterly"

    @pytest.mark.asyncio
    async def test_other_tenant_cannot_see_examination(self, db_session, school):
        exam = await school.examination()

        with pytest.raises(ExaminationNotFoundError):
            await load_examination(db_session, str(uuid.uuid4()), exam.id)


class TestResolveTargetClasses:
    """Test class selection"""

    @pytest.mark.asyncio
    async def test_all_assigned_classes(self, db_session, scheduled_exam):
        exam, class_10a, class_10b, _ = scheduled_exam

        classes = await resolve_target_classes(db_session, exam.id)

        assert set(classes) == {class_10a.id, class_10b.id}

    @pytest.mark.asyncio
    async def test_class_filter_narrows_selection(self, db_session, scheduled_exam):
        exam, class_10a, _, _ = scheduled_exam

        assert await resolve_target_classes(db_session, exam.id, class_10a.id) == [class_10a.id]

    @pytest.mark.asyncio
    async def test_unassigned_class_filter_is_rejected(self, db_session, school, scheduled_exam):
        exam, _, _, _ = scheduled_exam
        class_11 = await school.school_class("11A")

        with pytest.raises(NoClassesForExamError) as exc_info:
            await resolve_target_classes(db_session, exam.id, class_11.id)

        assert exc_info.value.details["class_id"] == class_11.id

    @pytest.mark.asyncio
    async def test_examination_without_classes(self, db_session, school):
        exam = await school.examination()

        with pytest.raises(NoClassesForExamError):
            await resolve_target_classes(db_session, exam.id)


class TestResolveEligibleStudents:
    """Test student selection and ordering"""

    @pytest.mark.asyncio
    async def test_ordered_by_class_code_then_admission_number(self, db_session, school, tenant_id):
        class_10b = await school.school_class("10B")
        class_10a = await school.school_class("10A")
        await school.student(class_10b, admission_number="ADM0001")
        await school.student(class_10a, admission_number="ADM0009")
        await school.student(class_10a, admission_number="ADM0003")

        students = await resolve_eligible_students(db_session, tenant_id, [class_10a.id, class_10b.id])

        assert [(s.class_code, s.admission_number) for s in students] == [
            ("10A", "ADM0003"),
            ("10A", "ADM0009"),
            ("10B", "ADM0001"),
        ]

    @pytest.mark.asyncio
    async def test_only_active_enrollments(self, db_session, school, tenant_id):
        class_10a = await school.school_class("10A")
        active = await school.student(class_10a)
        await school.student(class_10a, status=EnrollmentStatus.TRANSFERRED)
        await school.student(class_10a, status=EnrollmentStatus.DROPPED)

        students = await resolve_eligible_students(db_session, tenant_id, [class_10a.id])

        assert [s.student_id for s in students] == [active.id]

    @pytest.mark.asyncio
    async def test_section_filter(self, db_session, school, tenant_id):
        class_10a = await school.school_class("10A")
        section_a = await school.section(class_10a, "A")
        section_b = await school.section(class_10a, "B")
        in_a = await school.student(class_10a, section=section_a)
        await school.student(class_10a, section=section_b)

        students = await resolve_eligible_students(db_session, tenant_id, [class_10a.id], section_id=section_a.id)

        assert [s.student_id for s in students] == [in_a.id]
        assert students[0].section_id == section_a.id

    @pytest.mark.asyncio
    async def test_paged_reads_return_every_student(self, db_session, school, tenant_id):
        class_10a = await school.school_class("10A")
        for _ in range(5):
            await school.student(class_10a)

        students = await resolve_eligible_students(db_session, tenant_id, [class_10a.id], page_size=2)

        assert len(students) == 5
        assert len({s.student_id for s in students}) == 5

    @pytest.mark.asyncio
    async def test_duplicate_active_enrollment_counts_once(self, db_session, school, tenant_id):
        class_10a = await school.school_class("10A")
        class_10b = await school.school_class("10B")
        student = await school.student(class_10a)
        await school.enroll(student, class_10b)

        students = await resolve_eligible_students(db_session, tenant_id, [class_10a.id, class_10b.id])

        assert len(students) == 1
        assert students[0].class_code == "10A"

    @pytest.mark.asyncio
    async def test_display_name_joins_first_and_last_name(self, db_session, school, tenant_id):
        class_10a = await school.school_class("10A")
        await school.student(class_10a, first_name="Asha", last_name="Rao")

        students = await resolve_eligible_students(db_session, tenant_id, [class_10a.id])

        assert students[0].student_name == "Asha Rao"
