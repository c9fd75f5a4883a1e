"""Tenant-scoped student records. Column `class_name` avoids the Python keyword."""
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Student(Base):
    """Student belonging to exactly one tenant. index_number (MEC1001, ...) is assigned once at creation."""

    __tablename__ = "students"
    __table_args__ = (
        # Index number must be unique per tenant
        UniqueConstraint("tenant_id", "index_number", name="uq_student_tenant_index_number"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    index_number = Column(String(32), nullable=False)
    name = Column(String(255), nullable=False)
    class_name = Column("class", String(100), nullable=False)
    section = Column(String(50), nullable=False)
    subjects = Column(JSON, nullable=False, default=list)
    date_of_birth = Column(Date, nullable=False)
    # Male | Female
    sex = Column(String(10), nullable=False)
    parent_name = Column(String(255), nullable=False)
    parent_phone = Column(String(50), nullable=False)
    whatsapp_number = Column(String(50), nullable=False)
    address = Column(Text, nullable=False, default="")
    photo_url = Column(Text, nullable=False, default="")
    payment_type = Column(String(20), nullable=False, default="monthly")
    is_active = Column(Boolean, nullable=False, default=True)
    is_fee_exempt = Column(Boolean, nullable=False, default=False)
    joined_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    tenant = relationship("Tenant", back_populates="students")
