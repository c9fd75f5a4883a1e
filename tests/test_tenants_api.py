from uuid import UUID

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.security import create_access_token, verify_password
from app.core.models import DEFAULT_ACADEMY_SUBJECTS, Student, Tenant


@pytest.mark.asyncio
async def test_create_tenant(client: AsyncClient, db_session: AsyncSession, admin_headers) -> None:
    payload = {
        "email": "Owner@Maths-Academy.lk",
        "password": "StrongPass123",
        "name": "Nimal Perera",
        "academy_name": "Maths Academy",
    }

    response = await client.post("/api/v1/tenants", json=payload, headers=admin_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["email"] == "owner@maths-academy.lk"
    assert data["subjects"] == DEFAULT_ACADEMY_SUBJECTS
    assert data["student_count"] == 0

    tenant = await db_session.get(Tenant, UUID(data["id"]))
    assert tenant is not None
    assert tenant.last_index_number == 0
    assert verify_password("StrongPass123", tenant.password_hash)


@pytest.mark.asyncio
async def test_create_tenant_duplicate_email(client: AsyncClient, tenant_id, admin_headers) -> None:
    payload = {
        "email": "owner@maths-academy.lk",
        "password": "StrongPass123",
        "name": "Someone Else",
        "academy_name": "Another Academy",
    }

    response = await client.post("/api/v1/tenants", json=payload, headers=admin_headers)

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_non_super_admin_is_forbidden(client: AsyncClient) -> None:
    token = create_access_token(subject={"sub": "teacher@example.com", "email": "teacher@example.com"})

    response = await client.get("/api/v1/tenants", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 403
    assert response.json()["detail"] == "Access denied. Super admin access required."


@pytest.mark.asyncio
async def test_invalid_token_is_rejected(client: AsyncClient) -> None:
    response = await client.get("/api/v1/tenants", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_list_tenants_with_student_counts(
    client: AsyncClient, tenant_id, other_tenant_id, add_student, admin_headers
) -> None:
    await add_student(tenant_id, "MEC1001")
    await add_student(tenant_id, "MEC1002", name="Nimali")

    response = await client.get("/api/v1/tenants", headers=admin_headers)

    assert response.status_code == 200
    counts = {t["id"]: t["student_count"] for t in response.json()}
    assert counts == {str(tenant_id): 2, str(other_tenant_id): 0}


@pytest.mark.asyncio
async def test_update_tenant_subjects(client: AsyncClient, tenant_id, admin_headers) -> None:
    response = await client.patch(
        f"/api/v1/tenants/{tenant_id}",
        json={"subjects": ["Mathematics", " ", "Physics"], "sms_gateway_token": "sms-token"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["subjects"] == ["Mathematics", "Physics"]
    assert data["sms_gateway_token"] == "sms-token"


@pytest.mark.asyncio
async def test_update_tenant_rejects_empty_subjects(client: AsyncClient, tenant_id, admin_headers) -> None:
    response = await client.patch(
        f"/api/v1/tenants/{tenant_id}", json={"subjects": [""]}, headers=admin_headers
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_delete_tenant_removes_its_students(
    client: AsyncClient, db_session: AsyncSession, tenant_id, other_tenant_id, add_student, admin_headers
) -> None:
    await add_student(tenant_id, "MEC1001")
    await add_student(other_tenant_id, "MEC1001")

    response = await client.delete(f"/api/v1/tenants/{tenant_id}", headers=admin_headers)
    assert response.status_code == 204

    missing = await client.get(f"/api/v1/tenants/{tenant_id}", headers=admin_headers)
    assert missing.status_code == 404

    remaining = await db_session.execute(select(func.count(Student.id)))
    assert remaining.scalar() == 1


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
