from datetime import date, datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class StudentCreate(BaseModel):
    """
    Candidate student, from the manual entry form or a mapped CSV row.
    Required fields are checked by service.validate_candidate so every violation is reported
    together instead of failing on the first one.
    """

    name: str = ""
    class_name: str = ""
    section: str = ""
    subjects: List[str] = Field(default_factory=list)
    date_of_birth: Optional[date] = None
    sex: str = ""  # Male | Female
    parent_name: str = ""
    parent_phone: str = ""
    whatsapp_number: Optional[str] = None  # Defaults to parent_phone
    address: str = ""
    photo_url: str = ""
    payment_type: str = "monthly"
    is_active: bool = True
    is_fee_exempt: bool = False

    @field_validator("subjects")
    @classmethod
    def drop_blank_subjects(cls, value: List[str]) -> List[str]:
        return [s.strip() for s in value if s and s.strip()]


class StudentResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    index_number: str
    name: str
    class_name: str
    section: str
    subjects: List[str]
    date_of_birth: date
    sex: str
    parent_name: str
    parent_phone: str
    whatsapp_number: str
    address: str
    photo_url: str
    payment_type: str
    is_active: bool
    is_fee_exempt: bool
    joined_at: datetime


class StudentValidationErrorResponse(BaseModel):
    message: str
    errors: List[str]


class StudentImportRequest(BaseModel):
    csv_data: str = Field(..., description="Raw CSV text; first row is the header (Google Forms export or camelCase keys)")


class TableParseError(BaseModel):
    """Diagnostic for a CSV that cannot be read as a table."""

    code: str  # MissingHeader | TooFewFields | TooManyFields | InvalidCsv
    message: str
    row: Optional[int] = None  # 1-based line in the CSV; the header is line 1


class ImportRowError(BaseModel):
    row: int
    error: str
    data: Dict[str, Any] = Field(default_factory=dict)


class DuplicateResolution(BaseModel):
    """Row matched an existing student and was stored under a fresh index number."""

    row: int
    name: str
    original_index_number: str
    assigned_index_number: str
    reason: str


class ImportWarning(BaseModel):
    row: int
    field: str
    message: str


class ImportOutcome(BaseModel):
    success: int = 0
    failed: int = 0
    errors: List[ImportRowError] = Field(default_factory=list)
    successful_students: List[StudentResponse] = Field(default_factory=list)
    skipped_duplicates: List[DuplicateResolution] = Field(default_factory=list)
    warnings: List[ImportWarning] = Field(default_factory=list)
    message: str = ""


class ImportStructuralErrorResponse(BaseModel):
    message: str
    errors: List[TableParseError]


class DuplicateGroupMember(BaseModel):
    id: UUID
    index_number: str
    joined_at: datetime


class DuplicateGroupResponse(BaseModel):
    tenant_id: UUID
    name: str
    class_name: str
    section: str
    date_of_birth: date
    students: List[DuplicateGroupMember]  # Oldest first
