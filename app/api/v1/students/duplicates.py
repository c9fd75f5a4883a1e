"""
Duplicate students: same (name, class, section, date of birth) within a tenant.

Matching is exact: no trimming, case folding or fuzzy comparison beyond what the import
parser already did to the raw cells.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.models import Student

from .schemas import DuplicateGroupMember, DuplicateGroupResponse, StudentCreate

logger = logging.getLogger(__name__)

DuplicateKey = Tuple[UUID, str, str, str, date]


@dataclass
class DuplicateGroup:
    tenant_id: UUID
    name: str
    class_name: str
    section: str
    date_of_birth: date
    students: List[Student] = field(default_factory=list)  # Oldest first

    @property
    def keep(self) -> Student:
        return self.students[0]

    @property
    def extras(self) -> List[Student]:
        return self.students[1:]

    def to_response(self) -> DuplicateGroupResponse:
        return DuplicateGroupResponse(
            tenant_id=self.tenant_id,
            name=self.name,
            class_name=self.class_name,
            section=self.section,
            date_of_birth=self.date_of_birth,
            students=[
                DuplicateGroupMember(id=s.id, index_number=s.index_number, joined_at=s.joined_at)
                for s in self.students
            ],
        )


async def find_duplicate(
    db: AsyncSession,
    tenant_id: UUID,
    candidate: StudentCreate,
) -> Optional[Student]:
    """First stored student of the tenant matching the candidate's 4-tuple, or None.
    Which one is returned when several match is unspecified."""
    result = await db.execute(
        select(Student)
        .where(
            Student.tenant_id == tenant_id,
            Student.name == candidate.name,
            Student.class_name == candidate.class_name,
            Student.section == candidate.section,
            Student.date_of_birth == candidate.date_of_birth,
        )
        .limit(1)
    )
    return result.scalars().first()


async def find_duplicate_groups(
    db: AsyncSession,
    tenant_id: Optional[UUID] = None,
) -> List[DuplicateGroup]:
    """Groups of two or more students sharing the 4-tuple, for one tenant or all tenants."""
    stmt = select(Student).order_by(Student.tenant_id, Student.joined_at, Student.index_number)
    if tenant_id is not None:
        stmt = stmt.where(Student.tenant_id == tenant_id)
    result = await db.execute(stmt)

    grouped: Dict[DuplicateKey, DuplicateGroup] = {}
    for s in result.scalars().all():
        key = (s.tenant_id, s.name, s.class_name, s.section, s.date_of_birth)
        group = grouped.get(key)
        if group is None:
            group = DuplicateGroup(
                tenant_id=s.tenant_id,
                name=s.name,
                class_name=s.class_name,
                section=s.section,
                date_of_birth=s.date_of_birth,
            )
            grouped[key] = group
        group.students.append(s)
    return [g for g in grouped.values() if len(g.students) > 1]


async def remove_duplicates(db: AsyncSession, groups: List[DuplicateGroup]) -> int:
    """Delete all but the oldest student of each group. Index numbers are not reclaimed."""
    removed = [(s.id, s.index_number, s.name, g.keep.index_number) for g in groups for s in g.extras]
    if not removed:
        return 0
    await db.execute(delete(Student).where(Student.id.in_([r[0] for r in removed])))
    await db.commit()
    for _, index_number, name, kept in removed:
        logger.info("Removed duplicate %s (%s), kept %s", index_number, name, kept)
    return len(removed)
