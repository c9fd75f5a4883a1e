import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base

DEFAULT_ACADEMY_SUBJECTS = [
    "Mathematics",
    "Science",
    "English",
    "History",
    "ICT",
    "Tamil",
    "Sinhala",
    "Commerce",
]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Tenant(Base):
    """
    Academy (admin account) in the multi-tenant platform.

    - id: internal primary key and the partition key of every student row.
    - last_index_number: highest student index suffix ever assigned for this tenant.
      Only moves up, so index numbers freed by deletion are never handed out again.
    """

    __tablename__ = "tenants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    academy_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(Text, nullable=False)
    profile_photo_url = Column(Text, nullable=False, default="")
    sms_gateway_token = Column(Text, nullable=False, default="")
    whatsapp_gateway_token = Column(Text, nullable=False, default="")
    subjects = Column(JSON, nullable=False, default=lambda: list(DEFAULT_ACADEMY_SUBJECTS))
    last_index_number = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    students = relationship(
        "Student",
        back_populates="tenant",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
