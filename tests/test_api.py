from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.core.models import Batch

from tests.factories import auth_headers, make_batch, make_enrollment, make_invoice, make_user


@pytest.mark.asyncio
async def test_requests_without_token_are_rejected(client: AsyncClient) -> None:
    response = await client.post("/api/v1/batches/recompute")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_invalid_token_is_rejected(client: AsyncClient) -> None:
    response = await client.get(
        "/api/v1/students/any/enrollments/view",
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_enrollment_lifecycle_over_http(client: AsyncClient, db_session: AsyncSession) -> None:
    admin = await make_user(db_session, "admin@example.com", role="admin")
    student = await make_user(db_session, "a@example.com")
    other = await make_user(db_session, "b@example.com")
    batch = await make_batch(db_session, max_seats=1)

    response = await client.post(
        "/api/v1/enrollments",
        json={"student_id": student.id, "batch_id": batch.id, "amount": "1000"},
        headers=auth_headers(student),
    )
    assert response.status_code == 201
    enrollment_id = response.json()["id"]
    assert response.json()["status"] == "pending"

    # Students cannot approve
    response = await client.post(
        f"/api/v1/enrollments/{enrollment_id}/transition",
        json={"action": "approve"},
        headers=auth_headers(student),
    )
    assert response.status_code == 403

    response = await client.post(
        f"/api/v1/enrollments/{enrollment_id}/transition",
        json={"action": "approve"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 200
    assert response.json()["status"] == "approved"

    response = await client.post(
        "/api/v1/enrollments",
        json={"student_id": other.id, "batch_id": batch.id, "amount": "1000"},
        headers=auth_headers(other),
    )
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "capacity_exceeded"


@pytest.mark.asyncio
async def test_student_cannot_enroll_someone_else(client: AsyncClient, db_session: AsyncSession) -> None:
    student = await make_user(db_session, "a@example.com")
    other = await make_user(db_session, "b@example.com")
    batch = await make_batch(db_session)

    response = await client.post(
        "/api/v1/enrollments",
        json={"student_id": other.id, "batch_id": batch.id, "amount": "1000"},
        headers=auth_headers(student),
    )
    assert response.status_code == 403

    response = await client.post(
        "/api/v1/enrollments",
        json={"student_id": student.id, "batch_id": batch.id, "amount": "1000", "mode": "direct_add"},
        headers=auth_headers(student),
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_unapproved_student_gate_is_not_a_permission_error(
    client: AsyncClient, db_session: AsyncSession
) -> None:
    admin = await make_user(db_session, "admin@example.com", role="admin")
    student = await make_user(db_session, "a@example.com", approval_status="pending")
    batch = await make_batch(db_session)
    enrollment = await make_enrollment(db_session, student.id, batch.id)

    response = await client.post(
        f"/api/v1/enrollments/{enrollment.id}/transition",
        json={"action": "approve"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "student_not_approved"


@pytest.mark.asyncio
async def test_payment_flow_over_http(client: AsyncClient, db_session: AsyncSession) -> None:
    admin = await make_user(db_session, "admin@example.com", role="admin")
    student = await make_user(db_session, "a@example.com")
    batch = await make_batch(db_session, price=Decimal("5000"))

    response = await client.post(
        "/api/v1/invoices",
        json={"student_id": student.id, "batch_id": batch.id},
        headers=auth_headers(student),
    )
    assert response.status_code == 201
    invoice_id = response.json()["id"]

    response = await client.post(
        "/api/v1/invoices",
        json={"student_id": student.id, "batch_id": batch.id},
        headers=auth_headers(student),
    )
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "duplicate_invoice"

    response = await client.post(
        f"/api/v1/invoices/{invoice_id}/payments",
        json={"amount": "0", "method": "bkash", "sender_reference": "01700000000"},
        headers=auth_headers(student),
    )
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "invalid_amount"

    response = await client.post(
        f"/api/v1/invoices/{invoice_id}/payments",
        json={"amount": "5000", "method": "nagad", "sender_reference": "01700000000"},
        headers=auth_headers(student),
    )
    assert response.status_code == 201
    payment_id = response.json()["id"]

    response = await client.post(f"/api/v1/payments/{payment_id}/verify", headers=auth_headers(student))
    assert response.status_code == 403

    response = await client.post(f"/api/v1/payments/{payment_id}/verify", headers=auth_headers(admin))
    assert response.status_code == 200
    assert response.json()["status"] == "paid"

    response = await client.get(f"/api/v1/invoices/{invoice_id}", headers=auth_headers(student))
    assert response.status_code == 200
    assert response.json()["invoice"]["status"] == "paid"


@pytest.mark.asyncio
async def test_unknown_invoice_returns_invoice_not_found(client: AsyncClient, db_session: AsyncSession) -> None:
    student = await make_user(db_session, "a@example.com")

    response = await client.post(
        "/api/v1/invoices/missing/payments",
        json={"amount": "100", "method": "cash", "sender_reference": "desk"},
        headers=auth_headers(student),
    )

    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "invoice_not_found"


@pytest.mark.asyncio
async def test_student_view_is_self_or_admin(client: AsyncClient, db_session: AsyncSession) -> None:
    student = await make_user(db_session, "a@example.com")
    other = await make_user(db_session, "b@example.com")
    batch = await make_batch(db_session)
    await make_invoice(db_session, student.id, batch.id, final_amount=Decimal("5000"))

    response = await client.get(
        f"/api/v1/students/{student.id}/enrollments/view", headers=auth_headers(other)
    )
    assert response.status_code == 403

    response = await client.get(
        f"/api/v1/students/{student.id}/enrollments/view", headers=auth_headers(student)
    )
    assert response.status_code == 200
    views = response.json()
    assert len(views) == 1
    assert views[0]["is_virtual"] is True
    assert Decimal(views[0]["amount"]) == Decimal("5000")


@pytest.mark.asyncio
async def test_mentor_can_recompute_one_batch_but_not_all(client: AsyncClient, db_session: AsyncSession) -> None:
    mentor = await make_user(db_session, "mentor@example.com", role="mentor")
    batch = await make_batch(db_session, occupied_seats=3)

    response = await client.post(f"/api/v1/batches/{batch.id}/recompute", headers=auth_headers(mentor))
    assert response.status_code == 200
    assert response.json()["occupied_seats"] == 0
    assert response.json()["previous_occupied_seats"] == 3

    response = await client.post("/api/v1/batches/recompute", headers=auth_headers(mentor))
    assert response.status_code == 403

    response = await client.post("/api/v1/batches/missing/recompute", headers=auth_headers(mentor))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_admin_cleanup_endpoints(client: AsyncClient, db_session: AsyncSession) -> None:
    admin = await make_user(db_session, "admin@example.com", role="admin")
    student = await make_user(db_session, "a@example.com")
    batch = await make_batch(db_session)
    await make_enrollment(db_session, student.id, batch.id, status="approved")

    response = await client.post(
        "/api/v1/admin/cleanup/student", json={"email": student.email}, headers=auth_headers(student)
    )
    assert response.status_code == 403

    response = await client.post(
        "/api/v1/admin/cleanup/student", json={"email": "ghost@example.com"}, headers=auth_headers(admin)
    )
    assert response.status_code == 200
    assert response.json()["orphan_mode"] is True

    response = await client.delete(f"/api/v1/admin/students/{student.id}", headers=auth_headers(admin))
    assert response.status_code == 200
    body = response.json()
    assert body["student_deleted"] is True
    assert body["deleted"]["enrollments"] == 1
    assert await db_session.get(User, student.id) is None
    assert (await db_session.get(Batch, batch.id)).occupied_seats == 0


@pytest.mark.asyncio
async def test_student_approval_queue(client: AsyncClient, db_session: AsyncSession) -> None:
    admin = await make_user(db_session, "admin@example.com", role="admin")
    pending = await make_user(db_session, "new@example.com", approval_status="pending")
    await make_user(db_session, "done@example.com")
    batch = await make_batch(db_session)
    enrollment = await make_enrollment(db_session, pending.id, batch.id)

    response = await client.get("/api/v1/admin/student-approvals", headers=auth_headers(admin))
    assert response.status_code == 200
    assert [s["id"] for s in response.json()] == [pending.id]

    response = await client.post(
        f"/api/v1/admin/student-approvals/{pending.id}",
        json={"action": "approve"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 200
    assert response.json()["approval_status"] == "approved"
    assert response.json()["approved_by"] == admin.id

    # Account approval does not approve the enrollment
    response = await client.get(
        f"/api/v1/students/{pending.id}/enrollments/view", headers=auth_headers(admin)
    )
    assert response.json()[0]["status"] == "pending"
    assert response.json()[0]["enrollment_id"] == enrollment.id

    response = await client.post(
        f"/api/v1/admin/student-approvals/{pending.id}",
        json={"action": "reject", "reason": "late"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "invalid_transition"

    response = await client.post(
        f"/api/v1/admin/student-approvals/{admin.id}",
        json={"action": "approve"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 400
