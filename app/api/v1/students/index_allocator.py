"""
Student index numbers: MEC1001, MEC1002, ... unique and increasing per tenant.

next_index_number scans the tenant's stored index numbers and the tenant's high-water
mark and returns one more than the largest. It is not a lock: two requests can compute
the same value, so writers rely on the (tenant_id, index_number) unique constraint and
re-allocate on conflict (see service.save_student).
"""
import logging
import re
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.models import Student, Tenant

logger = logging.getLogger(__name__)

INDEX_PREFIX = "MEC"
# First assigned number is INDEX_FLOOR + 1
INDEX_FLOOR = 1000

_INDEX_PATTERN = re.compile(rf"^{INDEX_PREFIX}(\d+)$")


def format_index_number(n: int) -> str:
    return f"{INDEX_PREFIX}{n}"


def parse_index_suffix(index_number: Optional[str]) -> Optional[int]:
    """Numeric part of MEC<digits>; None for missing or non-conforming values."""
    if not index_number or not isinstance(index_number, str):
        return None
    match = _INDEX_PATTERN.match(index_number.strip())
    if not match:
        return None
    return int(match.group(1))


async def next_index_number(db: AsyncSession, tenant_id: UUID) -> int:
    """
    Next index number (integer part) for the tenant: max(floor, high-water mark, stored suffixes) + 1.
    If the store read fails, falls back to 1001 + current student count.
    """
    try:
        hwm_result = await db.execute(select(Tenant.last_index_number).where(Tenant.id == tenant_id))
        highest = max(INDEX_FLOOR, hwm_result.scalar() or 0)

        result = await db.execute(select(Student.index_number).where(Student.tenant_id == tenant_id))
        for index_number in result.scalars().all():
            suffix = parse_index_suffix(index_number)
            if suffix is not None and suffix > highest:
                highest = suffix
        return highest + 1
    except SQLAlchemyError as e:
        logger.warning("Index scan failed for tenant %s, using count-based estimate: %s", tenant_id, e)
        await db.rollback()
        count_result = await db.execute(
            select(func.count(Student.id)).where(Student.tenant_id == tenant_id)
        )
        return INDEX_FLOOR + 1 + (count_result.scalar() or 0)


async def record_assigned_index(db: AsyncSession, tenant_id: UUID, n: int) -> None:
    """Raise the tenant's high-water mark to n (never lowers it). Caller commits."""
    await db.execute(
        update(Tenant)
        .where(Tenant.id == tenant_id, Tenant.last_index_number < n)
        .values(last_index_number=n)
    )
