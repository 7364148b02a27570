"""Tests for the local payment history API and redirect landing page."""

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import select

from quickpay.api.app import app
from quickpay.audit.logger import log_event
from quickpay.database import get_session
from quickpay.models.payment import AuditLog, Payment


@pytest_asyncio.fixture
async def client(db_session):
    async def override_session():
        yield db_session

    app.dependency_overrides[get_session] = override_session
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield http
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def recorded(db_session):
    """Two payments: one executed after a wait, one declined."""
    db_session.add_all([
        Payment(
            id="pay_ok",
            amount_in_minor=100,
            currency="GBP",
            beneficiary_name="Jane Doe",
            reference="rent",
            account_identifier_type="sort_code_account_number",
            status="executed",
            flow_outcome="wait",
            flow_steps=3,
        ),
        Payment(
            id="pay_no",
            amount_in_minor=250,
            currency="EUR",
            beneficiary_name="Jan Jansen",
            reference="reference",
            account_identifier_type="iban",
            status="authorization_required",
            flow_outcome="declined",
            flow_steps=1,
        ),
    ])
    await log_event(db_session, "payment_created", payment_id="pay_ok", details={"amount_in_minor": 100})
    await log_event(db_session, "provider_selected", payment_id="pay_ok", details={"provider_id": "ob-monzo"})
    await log_event(db_session, "status_changed", payment_id="pay_ok", details={"status": "executed"})
    await db_session.commit()


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


class TestPayments:
    @pytest.mark.asyncio
    async def test_list(self, client, recorded):
        response = await client.get("/api/payments")
        assert response.status_code == 200
        assert {p["id"] for p in response.json()} == {"pay_ok", "pay_no"}

    @pytest.mark.asyncio
    async def test_filter_by_status(self, client, recorded):
        response = await client.get("/api/payments", params={"status": "executed"})
        assert [p["id"] for p in response.json()] == ["pay_ok"]

    @pytest.mark.asyncio
    async def test_filter_by_flow_outcome(self, client, recorded):
        response = await client.get("/api/payments", params={"flow_outcome": "declined"})
        payments = response.json()
        assert [p["id"] for p in payments] == ["pay_no"]
        assert payments[0]["currency"] == "EUR"

    @pytest.mark.asyncio
    async def test_get(self, client, recorded):
        response = await client.get("/api/payments/pay_ok")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "executed"
        assert body["flow_steps"] == 3
        assert body["beneficiary_name"] == "Jane Doe"

    @pytest.mark.asyncio
    async def test_get_unknown(self, client, recorded):
        response = await client.get("/api/payments/pay_missing")
        assert response.status_code == 404
        assert response.json()["detail"] == "Payment not found: pay_missing"

    @pytest.mark.asyncio
    async def test_trace(self, client, recorded):
        response = await client.get("/api/payments/pay_ok/trace")
        assert response.status_code == 200
        body = response.json()
        assert body["payment"]["id"] == "pay_ok"
        assert [entry["action"] for entry in body["audit_trail"]] == [
            "payment_created",
            "provider_selected",
            "status_changed",
        ]
        assert body["audit_trail"][1]["details"] == {"provider_id": "ob-monzo"}

    @pytest.mark.asyncio
    async def test_trace_unknown(self, client, recorded):
        response = await client.get("/api/payments/pay_missing/trace")
        assert response.status_code == 404


class TestRedirectCallback:
    @pytest.mark.asyncio
    async def test_return_is_recorded(self, client, recorded, db_session):
        response = await client.get("/callback", params={"payment_id": "pay_ok"})

        assert response.status_code == 200
        assert "Authorization returned" in response.text
        result = await db_session.execute(
            select(AuditLog).where(AuditLog.payment_id == "pay_ok", AuditLog.action == "redirect_returned")
        )
        assert result.scalar_one().details is None

    @pytest.mark.asyncio
    async def test_provider_error_is_recorded(self, client, recorded, db_session):
        response = await client.get(
            "/callback", params={"payment_id": "pay_ok", "error": "access_denied"}
        )

        assert response.status_code == 200
        result = await db_session.execute(
            select(AuditLog).where(AuditLog.action == "redirect_returned")
        )
        assert result.scalar_one().details == '{"error": "access_denied"}'

    @pytest.mark.asyncio
    async def test_missing_payment_id(self, client):
        response = await client.get("/callback")
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_payment(self, client):
        response = await client.get("/callback", params={"payment_id": "<script>"})
        assert response.status_code == 404
        assert "&lt;script&gt;" in response.text
