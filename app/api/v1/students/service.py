import csv
import io
import logging
import re
from typing import List, Optional, Tuple
from uuid import UUID

from fastapi import status
from openpyxl import Workbook
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.tenants.service import require_tenant
from app.core.config import settings
from app.core.enums import ExportFormat, Sex
from app.core.exceptions import ServiceError, StoragePersistError, StudentValidationError
from app.core.models import Student

from . import duplicates
from .index_allocator import format_index_number, next_index_number, record_assigned_index
from .schemas import DuplicateGroupResponse, StudentCreate, StudentResponse

logger = logging.getLogger(__name__)

VALID_SEX_VALUES = {s.value for s in Sex}
EXPORT_HEADERS = ("Name", "Class", "Section", "Index Number")
EXPORT_SHEET_NAME = "Students"
INDEX_CONSTRAINT_NAME = "uq_student_tenant_index_number"


def student_to_response(s: Student) -> StudentResponse:
    return StudentResponse(
        id=s.id,
        tenant_id=s.tenant_id,
        index_number=s.index_number,
        name=s.name,
        class_name=s.class_name,
        section=s.section,
        subjects=list(s.subjects or []),
        date_of_birth=s.date_of_birth,
        sex=s.sex,
        parent_name=s.parent_name,
        parent_phone=s.parent_phone,
        whatsapp_number=s.whatsapp_number,
        address=s.address or "",
        photo_url=s.photo_url or "",
        payment_type=s.payment_type,
        is_active=s.is_active,
        is_fee_exempt=s.is_fee_exempt,
        joined_at=s.joined_at,
    )


def validate_candidate(candidate: StudentCreate) -> List[str]:
    """Every required-field violation, in form order. Empty list means valid."""
    errors: List[str] = []
    if not candidate.name or not candidate.name.strip():
        errors.append("Name is required")
    if not candidate.class_name:
        errors.append("Class is required")
    if not candidate.section:
        errors.append("Section is required")
    if not candidate.subjects:
        errors.append("At least one subject is required")
    if candidate.date_of_birth is None:
        errors.append("Date of birth is required")
    if candidate.sex not in VALID_SEX_VALUES:
        errors.append("Valid sex (Male/Female) is required")
    if not candidate.parent_name:
        errors.append("Parent name is required")
    if not candidate.parent_phone:
        errors.append("Parent phone is required")
    return errors


def is_index_conflict(error: IntegrityError) -> bool:
    """True when the insert collided on the per-tenant index number, not on another constraint."""
    message = str(error.orig)
    # PostgreSQL names the constraint; SQLite lists the columns
    return INDEX_CONSTRAINT_NAME in message or "students.index_number" in message


def _build_student(tenant_id: UUID, candidate: StudentCreate, index_number: str, photo_url: str) -> Student:
    return Student(
        tenant_id=tenant_id,
        index_number=index_number,
        name=candidate.name,
        class_name=candidate.class_name,
        section=candidate.section,
        subjects=list(candidate.subjects),
        date_of_birth=candidate.date_of_birth,
        sex=candidate.sex,
        parent_name=candidate.parent_name,
        parent_phone=candidate.parent_phone,
        whatsapp_number=candidate.whatsapp_number or candidate.parent_phone,
        address=candidate.address or "",
        photo_url=photo_url or "",
        payment_type=candidate.payment_type or "monthly",
        is_active=candidate.is_active,
        is_fee_exempt=candidate.is_fee_exempt,
    )


async def save_student(
    db: AsyncSession,
    tenant_id: UUID,
    candidate: StudentCreate,
    index: int,
    photo_url: str = "",
) -> Student:
    """
    Insert and commit one student under MEC<index>.
    If another writer took that number first (unique constraint), re-allocate and retry.
    Raises StoragePersistError when the write fails or attempts run out.
    """
    attempts = max(1, settings.index_allocation_attempts)
    for attempt in range(1, attempts + 1):
        student = _build_student(tenant_id, candidate, format_index_number(index), photo_url)
        db.add(student)
        try:
            await db.flush()
            await record_assigned_index(db, tenant_id, index)
            await db.commit()
            await db.refresh(student)
        except IntegrityError as e:
            await db.rollback()
            if not is_index_conflict(e):
                raise StoragePersistError(f"Failed to save student: {e.orig}", e)
            logger.warning(
                "Index %s already taken for tenant %s (attempt %d/%d)",
                format_index_number(index), tenant_id, attempt, attempts,
            )
            if attempt == attempts:
                raise StoragePersistError(
                    f"Could not allocate a unique index number after {attempts} attempts", e
                )
            try:
                index = await next_index_number(db, tenant_id)
            except SQLAlchemyError as read_error:
                raise StoragePersistError(f"Failed to save student: {read_error}", read_error)
            continue
        except SQLAlchemyError as e:
            await db.rollback()
            raise StoragePersistError(f"Failed to save student: {e}", e)
        return student
    raise StoragePersistError("Could not allocate a unique index number")


async def allocate_and_save(
    db: AsyncSession,
    tenant_id: UUID,
    candidate: StudentCreate,
    photo_url: str = "",
) -> Student:
    try:
        index = await next_index_number(db, tenant_id)
    except SQLAlchemyError as e:
        raise StoragePersistError(f"Failed to allocate index number: {e}", e)
    return await save_student(db, tenant_id, candidate, index, photo_url)


# ----- Manual entry -----
async def create_student(
    db: AsyncSession,
    tenant_id: UUID,
    candidate: StudentCreate,
) -> StudentResponse:
    """Validate, allocate the next index number and store. Manual entry does not check for duplicates."""
    await require_tenant(db, tenant_id)
    errors = validate_candidate(candidate)
    if errors:
        raise StudentValidationError(errors)
    try:
        student = await allocate_and_save(db, tenant_id, candidate, candidate.photo_url)
    except StoragePersistError as e:
        raise ServiceError(e.message, status.HTTP_500_INTERNAL_SERVER_ERROR)
    logger.info("Created student %s (%s) for tenant %s", student.index_number, student.name, tenant_id)
    return student_to_response(student)


async def list_students(db: AsyncSession, tenant_id: UUID) -> List[StudentResponse]:
    await require_tenant(db, tenant_id)
    result = await db.execute(
        select(Student)
        .where(Student.tenant_id == tenant_id)
        .order_by(Student.joined_at, Student.index_number)
    )
    return [student_to_response(s) for s in result.scalars().all()]


async def get_student(db: AsyncSession, tenant_id: UUID, student_id: UUID) -> Optional[StudentResponse]:
    result = await db.execute(
        select(Student).where(Student.id == student_id, Student.tenant_id == tenant_id)
    )
    student = result.scalar_one_or_none()
    return student_to_response(student) if student else None


async def delete_student(db: AsyncSession, tenant_id: UUID, student_id: UUID) -> bool:
    """Remove the record. Its index number stays consumed (tenant high-water mark is untouched)."""
    result = await db.execute(
        select(Student).where(Student.id == student_id, Student.tenant_id == tenant_id)
    )
    student = result.scalar_one_or_none()
    if not student:
        return False
    await db.delete(student)
    await db.commit()
    logger.info("Deleted student %s from tenant %s", student.index_number, tenant_id)
    return True


async def list_duplicate_groups(db: AsyncSession, tenant_id: UUID) -> List[DuplicateGroupResponse]:
    await require_tenant(db, tenant_id)
    groups = await duplicates.find_duplicate_groups(db, tenant_id)
    return [g.to_response() for g in groups]


# ----- Export -----
def _grade_number(class_name: str) -> int:
    match = re.search(r"\d+", class_name or "")
    return int(match.group(0)) if match else 0


def _export_rows(students: List[Student]) -> List[Tuple[str, str, str, str]]:
    ordered = sorted(students, key=lambda s: (_grade_number(s.class_name), s.index_number))
    return [(s.name, s.class_name, s.section, s.index_number) for s in ordered]


async def export_students(
    db: AsyncSession,
    tenant_id: UUID,
    fmt: ExportFormat = ExportFormat.CSV,
) -> bytes:
    """Students sorted by grade number then index number, as CSV or an Excel workbook."""
    await require_tenant(db, tenant_id)
    result = await db.execute(select(Student).where(Student.tenant_id == tenant_id))
    rows = _export_rows(list(result.scalars().all()))

    if fmt == ExportFormat.XLSX:
        wb = Workbook()
        ws = wb.active
        ws.title = EXPORT_SHEET_NAME
        ws.append(list(EXPORT_HEADERS))
        for row in rows:
            ws.append(list(row))
        bio = io.BytesIO()
        wb.save(bio)
        return bio.getvalue()

    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(EXPORT_HEADERS)
    writer.writerows(rows)
    return buffer.getvalue().encode("utf-8")
