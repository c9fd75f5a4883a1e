"""
Academy (tenant) accounts managed by the super-administrator.

A tenant owns an isolated set of students: every student query is filtered by tenant_id,
and deleting a tenant deletes its students.
"""
import logging
from typing import Dict, List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.security import hash_password
from app.core.exceptions import ServiceError
from app.core.models import DEFAULT_ACADEMY_SUBJECTS, Student, Tenant

from .schemas import TenantCreate, TenantResponse, TenantUpdate

logger = logging.getLogger(__name__)


def _tenant_to_response(tenant: Tenant, student_count: int = 0) -> TenantResponse:
    return TenantResponse(
        id=tenant.id,
        name=tenant.name,
        academy_name=tenant.academy_name,
        email=tenant.email,
        profile_photo_url=tenant.profile_photo_url or "",
        sms_gateway_token=tenant.sms_gateway_token or "",
        whatsapp_gateway_token=tenant.whatsapp_gateway_token or "",
        subjects=list(tenant.subjects or []),
        student_count=student_count,
        created_at=tenant.created_at,
        updated_at=tenant.updated_at,
    )


async def _student_counts(db: AsyncSession, tenant_ids: List[UUID]) -> Dict[UUID, int]:
    if not tenant_ids:
        return {}
    result = await db.execute(
        select(Student.tenant_id, func.count(Student.id))
        .where(Student.tenant_id.in_(tenant_ids))
        .group_by(Student.tenant_id)
    )
    return {tenant_id: count for tenant_id, count in result.all()}


async def get_tenant_model(db: AsyncSession, tenant_id: UUID) -> Optional[Tenant]:
    return await db.get(Tenant, tenant_id)


async def require_tenant(db: AsyncSession, tenant_id: UUID) -> Tenant:
    """Return the tenant or raise a 404 ServiceError."""
    tenant = await get_tenant_model(db, tenant_id)
    if not tenant:
        raise ServiceError("Tenant not found", status.HTTP_404_NOT_FOUND)
    return tenant


async def create_tenant(db: AsyncSession, payload: TenantCreate) -> TenantResponse:
    """Create an academy account with the default subject settings."""
    email = payload.email.strip().lower()
    existing = await db.execute(select(Tenant.id).where(Tenant.email == email))
    if existing.scalar_one_or_none() is not None:
        raise ServiceError("An academy with this email already exists", status.HTTP_409_CONFLICT)

    try:
        tenant = Tenant(
            name=payload.name.strip(),
            academy_name=payload.academy_name.strip(),
            email=email,
            password_hash=hash_password(payload.password),
            profile_photo_url=payload.profile_photo_url or "",
            sms_gateway_token="",
            whatsapp_gateway_token="",
            subjects=list(DEFAULT_ACADEMY_SUBJECTS),
            last_index_number=0,
        )
        db.add(tenant)
        await db.commit()
        await db.refresh(tenant)
    except IntegrityError:
        await db.rollback()
        raise ServiceError("An academy with this email already exists", status.HTTP_409_CONFLICT)

    logger.info("Created tenant %s (%s)", tenant.id, tenant.academy_name)
    return _tenant_to_response(tenant)


async def list_tenants(db: AsyncSession) -> List[TenantResponse]:
    result = await db.execute(select(Tenant).order_by(Tenant.created_at))
    tenants = result.scalars().all()
    counts = await _student_counts(db, [t.id for t in tenants])
    return [_tenant_to_response(t, counts.get(t.id, 0)) for t in tenants]


async def get_tenant(db: AsyncSession, tenant_id: UUID) -> Optional[TenantResponse]:
    tenant = await get_tenant_model(db, tenant_id)
    if not tenant:
        return None
    counts = await _student_counts(db, [tenant.id])
    return _tenant_to_response(tenant, counts.get(tenant.id, 0))


async def update_tenant(
    db: AsyncSession,
    tenant_id: UUID,
    payload: TenantUpdate,
) -> Optional[TenantResponse]:
    tenant = await get_tenant_model(db, tenant_id)
    if not tenant:
        return None

    data = payload.model_dump(exclude_unset=True)
    subjects = None
    if data.get("subjects") is not None:
        subjects = [s.strip() for s in data["subjects"] if s and s.strip()]
        if not subjects:
            raise ServiceError("At least one subject is required", status.HTTP_400_BAD_REQUEST)

    if data.get("name"):
        tenant.name = data["name"].strip()
    if data.get("academy_name"):
        tenant.academy_name = data["academy_name"].strip()
    for field in ("profile_photo_url", "sms_gateway_token", "whatsapp_gateway_token"):
        if field in data and data[field] is not None:
            setattr(tenant, field, data[field])
    if subjects is not None:
        tenant.subjects = subjects

    await db.commit()
    await db.refresh(tenant)
    counts = await _student_counts(db, [tenant.id])
    return _tenant_to_response(tenant, counts.get(tenant.id, 0))


async def delete_tenant(db: AsyncSession, tenant_id: UUID) -> bool:
    """Delete the tenant and every student stored under it."""
    tenant = await get_tenant_model(db, tenant_id)
    if not tenant:
        return False
    result = await db.execute(delete(Student).where(Student.tenant_id == tenant_id))
    await db.delete(tenant)
    await db.commit()
    logger.info("Deleted tenant %s and %d student(s)", tenant_id, result.rowcount or 0)
    return True
