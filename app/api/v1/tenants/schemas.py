from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class TenantCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=1, max_length=255)
    academy_name: str = Field(..., min_length=1, max_length=255)
    profile_photo_url: Optional[str] = None


class TenantUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    academy_name: Optional[str] = Field(None, min_length=1, max_length=255)
    profile_photo_url: Optional[str] = None
    sms_gateway_token: Optional[str] = None
    whatsapp_gateway_token: Optional[str] = None
    subjects: Optional[List[str]] = Field(None, description="Academy subject list; blank entries are dropped")


class TenantResponse(BaseModel):
    id: UUID
    name: str
    academy_name: str
    email: str
    profile_photo_url: str
    sms_gateway_token: str
    whatsapp_gateway_token: str
    subjects: List[str]
    student_count: int = 0
    created_at: datetime
    updated_at: datetime
