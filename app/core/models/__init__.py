from app.core.models.student import Student
from app.core.models.tenant import DEFAULT_ACADEMY_SUBJECTS, Tenant

__all__ = [
    "DEFAULT_ACADEMY_SUBJECTS",
    "Student",
    "Tenant",
]
