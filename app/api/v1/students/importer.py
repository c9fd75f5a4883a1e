"""
Bulk student import from CSV (Google Forms export or camelCase headers).

Rows run strictly one after another, each through:
    parse -> validate -> duplicate check -> allocate index -> resolve photo -> persist
Each row commits before the next one allocates, so index numbers inside one import are
consecutive. A failing row is recorded and skipped; earlier rows are never rolled back.
Only an unreadable table (StructuralInputError) aborts the whole call.
"""
import csv
import io
import logging
import time
from datetime import date
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.tenants.service import require_tenant
from app.core.exceptions import (
    ImageTransferError,
    RowValidationError,
    StoragePersistError,
    StructuralInputError,
)
from app.core.image_transfer import is_drive_link, transfer_external_image

from .duplicates import find_duplicate
from .index_allocator import next_index_number
from .schemas import (
    DuplicateResolution,
    ImportOutcome,
    ImportRowError,
    ImportWarning,
    StudentCreate,
    TableParseError,
)
from .service import save_student, student_to_response, validate_candidate

logger = logging.getLogger(__name__)

ImageTransfer = Callable[[str, str], Awaitable[str]]

# Header 1 is the CSV header, so the first data row is row 2
FIRST_DATA_ROW = 2

# Accepted column names per field, in priority order: Google Forms label first, then camelCase key.
FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "name": ("Full Name", "name"),
    "class_name": ("Class", "class"),
    "section": ("Section", "section"),
    "date_of_birth": ("Date of Birth", "dob"),
    "sex": ("Sex", "sex"),
    "parent_name": ("Parent/Guardian Name", "parentName"),
    "parent_phone": ("Parent Phone Number", "parentPhone"),
    "whatsapp_number": ("Whatsapp Number", "whatsappNumber"),
    "address": ("Address", "address"),
    "subjects": ("Subjects", "subjects"),
    "photo_url": ("Student Photo", "photoUrl"),
    "payment_type": ("Payment type", "paymentType"),
}

DEFAULT_PAYMENT_TYPE = "monthly"
MIN_BIRTH_YEAR = 1900
MAX_BIRTH_YEAR = 2100


# ----- Table parsing -----
def parse_table(raw_text: str) -> Tuple[List[Dict[str, str]], List[TableParseError]]:
    """
    Read CSV text into header-keyed rows. Headers are trimmed; blank lines are skipped.
    Returns (rows, errors); callers must not import anything when errors is non-empty.
    """
    errors: List[TableParseError] = []
    rows: List[Dict[str, str]] = []
    text = (raw_text or "").lstrip("\ufeff")
    reader = csv.reader(io.StringIO(text), strict=True)

    try:
        header: Optional[List[str]] = None
        for record in reader:
            if not record or all(not cell.strip() for cell in record):
                continue
            if header is None:
                header = [h.strip() for h in record]
                continue
            if len(record) < len(header):
                errors.append(TableParseError(
                    code="TooFewFields",
                    message=f"Too few fields: expected {len(header)} fields but parsed {len(record)}",
                    row=reader.line_num,
                ))
                continue
            if len(record) > len(header):
                errors.append(TableParseError(
                    code="TooManyFields",
                    message=f"Too many fields: expected {len(header)} fields but parsed {len(record)}",
                    row=reader.line_num,
                ))
                continue
            rows.append(dict(zip(header, record)))
    except csv.Error as e:
        errors.append(TableParseError(code="InvalidCsv", message=str(e), row=reader.line_num))
        return rows, errors

    if header is None:
        errors.append(TableParseError(code="MissingHeader", message="CSV has no header row"))
    return rows, errors


# ----- Row mapping -----
def resolve_field(row: Dict[str, Any], field: str) -> str:
    """First non-empty value among the field's aliases, trimmed; "" when none is present."""
    for alias in FIELD_ALIASES[field]:
        value = row.get(alias)
        if value is None:
            continue
        value = str(value).strip()
        if value:
            return value
    return ""


def parse_subjects(value: str) -> List[str]:
    if not value:
        return []
    return [s.strip() for s in value.split(",") if s.strip()]


def _in_range(year: int, month: int, day: int) -> bool:
    return MIN_BIRTH_YEAR < year < MAX_BIRTH_YEAR and 1 <= month <= 12 and 1 <= day <= 31


def _int_parts(value: str, sep: str) -> Optional[List[int]]:
    parts = [p.strip() for p in value.split(sep)]
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        return None
    try:
        return [int(p) for p in parts]
    except ValueError:
        return None


def _date_candidates(value: str) -> List[Tuple[int, int, int]]:
    """(year, month, day) readings of the value: M/D/Y for slash dates, Y-M-D for dash dates."""
    candidates = []
    if "/" in value:
        parts = _int_parts(value, "/")
        if parts:
            month, day, year = parts
            candidates.append((year, month, day))
    if "-" in value:
        parts = _int_parts(value, "-")
        if parts:
            candidates.append(tuple(parts))
    return candidates


def parse_date_of_birth(value: Optional[str]) -> Optional[date]:
    """
    MM/DD/YYYY (slash dates are always read month first, as Google Forms writes them)
    or YYYY-MM-DD. Returns None when the value is empty or unparseable.
    """
    if not value or not value.strip():
        return None
    for year, month, day in _date_candidates(value.strip()):
        if not _in_range(year, month, day):
            continue
        try:
            return date(year, month, day)
        except ValueError:
            continue
    return None


def is_impossible_calendar_date(value: Optional[str]) -> bool:
    """True for well-formed, in-range values that name no real day (02/31/2010)."""
    if not value or not value.strip():
        return False
    for year, month, day in _date_candidates(value.strip()):
        if not _in_range(year, month, day):
            continue
        try:
            date(year, month, day)
        except ValueError:
            return True
    return False


def _date_fallback_message(raw_dob: str) -> str:
    if not raw_dob:
        return "Date of birth missing, using current date"
    if is_impossible_calendar_date(raw_dob):
        return f"Impossible calendar date '{raw_dob}' for date of birth, using current date"
    return f"Could not parse date of birth '{raw_dob}', using current date"


def map_row(row: Dict[str, Any], row_number: int, warnings: List[ImportWarning]) -> StudentCreate:
    """Canonical candidate from one CSV row. A missing or bad date of birth becomes today plus a warning."""
    raw_dob = resolve_field(row, "date_of_birth")
    dob = parse_date_of_birth(raw_dob)
    if dob is None:
        dob = date.today()
        message = _date_fallback_message(raw_dob)
        logger.warning("Row %d: %s", row_number, message)
        warnings.append(ImportWarning(row=row_number, field="date_of_birth", message=message))

    parent_phone = resolve_field(row, "parent_phone")
    return StudentCreate(
        name=resolve_field(row, "name"),
        class_name=resolve_field(row, "class_name"),
        section=resolve_field(row, "section"),
        subjects=parse_subjects(resolve_field(row, "subjects")),
        date_of_birth=dob,
        sex=resolve_field(row, "sex"),
        parent_name=resolve_field(row, "parent_name"),
        parent_phone=parent_phone,
        whatsapp_number=resolve_field(row, "whatsapp_number") or parent_phone,
        address=resolve_field(row, "address"),
        photo_url=resolve_field(row, "photo_url"),
        payment_type=resolve_field(row, "payment_type") or DEFAULT_PAYMENT_TYPE,
    )


# ----- Orchestration -----
async def _resolve_photo(
    photo_ref: str,
    row_number: int,
    image_transfer: ImageTransfer,
) -> str:
    """Drive links are copied to permanent storage; other URLs are kept. Never fails the row."""
    if not photo_ref:
        return ""
    if not is_drive_link(photo_ref):
        return photo_ref
    destination = f"student_{int(time.time() * 1000)}_{row_number}.jpg"
    try:
        return await image_transfer(photo_ref, destination)
    except ImageTransferError as e:
        logger.error("Error processing photo for row %d: %s", row_number, e)
        return ""
    except Exception:
        logger.exception("Unexpected error processing photo for row %d", row_number)
        return ""


async def _import_row(
    db: AsyncSession,
    tenant_id: UUID,
    row: Dict[str, Any],
    row_number: int,
    outcome: ImportOutcome,
    image_transfer: ImageTransfer,
) -> None:
    candidate = map_row(row, row_number, outcome.warnings)

    errors = validate_candidate(candidate)
    if errors:
        raise RowValidationError(", ".join(errors))

    try:
        existing = await find_duplicate(db, tenant_id, candidate)
        original_index = existing.index_number if existing else None
        index = await next_index_number(db, tenant_id)
    except SQLAlchemyError as e:
        raise StoragePersistError(f"Failed to read existing students: {e}", e)

    photo_url = await _resolve_photo(candidate.photo_url, row_number, image_transfer)
    student = await save_student(db, tenant_id, candidate, index, photo_url)
    response = student_to_response(student)

    if original_index is not None:
        reason = (
            f"Duplicate detected (original: {original_index}), "
            f"assigned new index: {response.index_number}"
        )
        outcome.skipped_duplicates.append(DuplicateResolution(
            row=row_number,
            name=candidate.name,
            original_index_number=original_index,
            assigned_index_number=response.index_number,
            reason=reason,
        ))
        logger.info("Duplicate student at row %d: %s - %s", row_number, candidate.name, reason)

    outcome.success += 1
    outcome.successful_students.append(response)


def _summary(outcome: ImportOutcome) -> str:
    message = f"Import completed: {outcome.success} succeeded, {outcome.failed} failed"
    if outcome.skipped_duplicates:
        message += f", {len(outcome.skipped_duplicates)} duplicates assigned new index numbers"
    return message


async def import_students(
    db: AsyncSession,
    tenant_id: UUID,
    rows: List[Dict[str, Any]],
    image_transfer: ImageTransfer = transfer_external_image,
) -> ImportOutcome:
    """
    Import already-parsed rows for a tenant. success + failed == len(rows).
    Duplicates (same name, class, section, date of birth) are stored under a new index number
    and listed in skipped_duplicates; they count as successes.
    """
    await require_tenant(db, tenant_id)
    outcome = ImportOutcome()

    for offset, row in enumerate(rows):
        row_number = offset + FIRST_DATA_ROW
        try:
            await _import_row(db, tenant_id, row, row_number, outcome, image_transfer)
        except (RowValidationError, StoragePersistError) as e:
            logger.warning("Row %d failed: %s", row_number, e.message)
            outcome.errors.append(ImportRowError(row=row_number, error=e.message, data=dict(row)))
            outcome.failed += 1
        except Exception as e:
            logger.exception("Row %d failed with an unexpected error", row_number)
            await db.rollback()
            outcome.errors.append(ImportRowError(row=row_number, error=f"Unexpected error: {e}", data=dict(row)))
            outcome.failed += 1

    outcome.message = _summary(outcome)
    logger.info("Tenant %s: %s", tenant_id, outcome.message)
    return outcome


async def import_students_csv(
    db: AsyncSession,
    tenant_id: UUID,
    raw_text: str,
    image_transfer: ImageTransfer = transfer_external_image,
) -> ImportOutcome:
    """Parse CSV text and import it. Raises StructuralInputError before touching any row if the CSV is malformed."""
    rows, errors = parse_table(raw_text)
    if errors:
        raise StructuralInputError([e.model_dump() for e in errors])
    return await import_students(db, tenant_id, rows, image_transfer=image_transfer)

