from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import require_super_admin
from app.core.enums import ExportFormat
from app.core.exceptions import ServiceError, StructuralInputError, StudentValidationError
from app.db.session import get_db

from .schemas import (
    DuplicateGroupResponse,
    ImportOutcome,
    ImportStructuralErrorResponse,
    StudentCreate,
    StudentImportRequest,
    StudentResponse,
    StudentValidationErrorResponse,
)
from . import importer, service

router = APIRouter(
    prefix="/api/v1/tenants/{tenant_id}/students",
    tags=["students"],
    dependencies=[Depends(require_super_admin)],
)

EXPORT_MEDIA_TYPES = {
    ExportFormat.CSV: "text/csv",
    ExportFormat.XLSX: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


@router.post(
    "",
    response_model=StudentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": StudentValidationErrorResponse}},
)
async def create_student(
    tenant_id: UUID,
    payload: StudentCreate,
    db: AsyncSession = Depends(get_db),
) -> StudentResponse:
    """Manual single entry: validate, assign the next index number, store. No duplicate check."""
    try:
        return await service.create_student(db, tenant_id, payload)
    except StudentValidationError as e:
        raise HTTPException(status_code=e.status_code, detail={"message": e.message, "errors": e.errors})
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/import",
    response_model=ImportOutcome,
    responses={400: {"model": ImportStructuralErrorResponse}},
)
async def import_students(
    tenant_id: UUID,
    payload: StudentImportRequest,
    db: AsyncSession = Depends(get_db),
) -> ImportOutcome:
    """
    Bulk import from CSV text. Every row is attempted; failed rows come back in `errors`
    with their row number so they can be corrected and re-submitted.
    Duplicates are stored under a new index number and listed in `skipped_duplicates`.
    """
    try:
        return await importer.import_students_csv(db, tenant_id, payload.csv_data)
    except StructuralInputError as e:
        raise HTTPException(status_code=e.status_code, detail={"message": e.message, "errors": e.diagnostics})
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/import-file",
    response_model=ImportOutcome,
    responses={400: {"model": ImportStructuralErrorResponse}},
)
async def import_students_file(
    tenant_id: UUID,
    file: UploadFile = File(..., description="CSV file; first row is the header"),
    db: AsyncSession = Depends(get_db),
) -> ImportOutcome:
    """Same as /import with the CSV uploaded as a file."""
    if not file.filename or not file.filename.lower().endswith(".csv"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File must be a CSV file (.csv)")
    content = await file.read()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File is empty")
    try:
        raw_text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="CSV file must be UTF-8 encoded")
    try:
        return await importer.import_students_csv(db, tenant_id, raw_text)
    except StructuralInputError as e:
        raise HTTPException(status_code=e.status_code, detail={"message": e.message, "errors": e.diagnostics})
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[StudentResponse])
async def list_students(
    tenant_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> List[StudentResponse]:
    try:
        return await service.list_students(db, tenant_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/duplicates", response_model=List[DuplicateGroupResponse])
async def list_duplicate_groups(
    tenant_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> List[DuplicateGroupResponse]:
    """Students sharing name, class, section and date of birth, oldest first in each group."""
    try:
        return await service.list_duplicate_groups(db, tenant_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/export")
async def export_students(
    tenant_id: UUID,
    format: ExportFormat = Query(ExportFormat.CSV, description="csv or xlsx"),
    db: AsyncSession = Depends(get_db),
) -> Response:
    """Download name, class, section and index number, sorted by grade then index number."""
    try:
        content = await service.export_students(db, tenant_id, format)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return Response(
        content=content,
        media_type=EXPORT_MEDIA_TYPES[format],
        headers={"Content-Disposition": f"attachment; filename=students.{format.value}"},
    )


@router.get("/{student_id}", response_model=StudentResponse)
async def get_student(
    tenant_id: UUID,
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> StudentResponse:
    student = await service.get_student(db, tenant_id, student_id)
    if not student:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
    return student


@router.delete("/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_student(
    tenant_id: UUID,
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> None:
    deleted = await service.delete_student(db, tenant_id, student_id)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
