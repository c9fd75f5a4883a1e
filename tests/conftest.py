import os

# Settings are read at import time, so configure the test environment first.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["SUPER_ADMIN_EMAIL"] = "admin@example.com"
os.environ["INDEX_ALLOCATION_ATTEMPTS"] = "5"

from datetime import date, datetime, timezone  # noqa: E402
from typing import AsyncGenerator, Awaitable, Callable, Dict  # noqa: E402
from uuid import UUID  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.api.v1.tenants.schemas import TenantCreate  # noqa: E402
from app.api.v1.tenants.service import create_tenant  # noqa: E402
from app.auth.security import create_super_admin_token  # noqa: E402
from app.core.models import Student  # noqa: E402
from app.db.schema_check import ensure_schema  # noqa: E402
from app.db.session import get_db  # noqa: E402
from app.main import app  # noqa: E402


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture()
async def db_engine():
    """Fresh in-memory database per test. StaticPool keeps every session on the same connection."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await ensure_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture()
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for a test and override FastAPI dependency."""
    async_session = async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.pop(get_db, None)


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def admin_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_super_admin_token()}"}


@pytest.fixture()
async def tenant_id(db_session: AsyncSession) -> UUID:
    tenant = await create_tenant(
        db_session,
        TenantCreate(
            email="owner@maths-academy.lk",
            password="secret123",
            name="Nimal Perera",
            academy_name="Maths Academy",
        ),
    )
    return tenant.id


@pytest.fixture()
async def other_tenant_id(db_session: AsyncSession) -> UUID:
    tenant = await create_tenant(
        db_session,
        TenantCreate(
            email="owner@science-hub.lk",
            password="secret123",
            name="Kamala Silva",
            academy_name="Science Hub",
        ),
    )
    return tenant.id


StudentFactory = Callable[..., Awaitable[Student]]


@pytest.fixture()
def add_student(db_session: AsyncSession) -> StudentFactory:
    """Insert a student row directly, bypassing allocation."""

    async def _add(tenant_id: UUID, index_number: str, **overrides) -> Student:
        values = {
            "name": "Amal Fernando",
            "class_name": "Grade 10",
            "section": "A",
            "subjects": ["Mathematics"],
            "date_of_birth": date(2010, 3, 15),
            "sex": "Male",
            "parent_name": "Sunil Fernando",
            "parent_phone": "0771234567",
            "whatsapp_number": "0771234567",
            "joined_at": datetime.now(timezone.utc),
        }
        values.update(overrides)
        student = Student(tenant_id=tenant_id, index_number=index_number, **values)
        db_session.add(student)
        await db_session.commit()
        await db_session.refresh(student)
        return student

    return _add
