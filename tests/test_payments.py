"""Simulated payment tests (Cashea installments and Mercantil full payment)."""

from decimal import Decimal

import pytest
from andaya.models import AuditLog, Reservation
from andaya.models.reservation import ReservationPaymentStatus, ReservationStatus
from andaya.tools.payment_tools import split_payment
from sqlalchemy import select

from tests.conftest import auth_headers

OWNER = auth_headers("owner-token")
RENTER = auth_headers("renter-token")


def test_cashea_split_rounds_upfront():
    assert split_payment("cashea", Decimal("330.00")) == {"upfront": Decimal("83"), "installments": 3}


def test_full_payment_has_no_installments():
    assert split_payment("mercantil", Decimal("330.00")) == {
        "upfront": Decimal("330.00"),
        "installments": 0,
    }


class TestSimulatePayment:
    @pytest.mark.asyncio
    async def test_cashea_payment(self, client, db_session, renter, make_reservation):
        reservation = await make_reservation(ReservationStatus.APPROVED)

        response = await client.post(
            "/api/v1/functions/simulate-payment",
            headers=RENTER,
            json={"reservation_id": str(reservation.id), "method": "cashea"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Payment simulated successfully"

        payment = data["payment"]
        assert payment["amount_total"] == 330.0
        assert payment["upfront"] == 83.0
        assert payment["installments"] == 3
        assert payment["method"] == "cashea_sim"
        assert payment["status"] == "paid"
        assert payment["provider_ref"].startswith("SIM-CASHEA-")

        stored = await db_session.get(Reservation, reservation.id)
        assert stored.payment_status == ReservationPaymentStatus.SIMULATED

        audit = await db_session.scalar(select(AuditLog).where(AuditLog.action == "payment_simulated"))
        assert audit.actor_id == renter.id
        assert audit.meta["method"] == "cashea"
        assert audit.meta["simulated"] is True

    @pytest.mark.asyncio
    async def test_reservation_can_only_be_paid_once(self, client, make_reservation):
        reservation = await make_reservation(ReservationStatus.APPROVED)
        body = {"reservation_id": str(reservation.id), "method": "mercantil"}

        first = await client.post("/api/v1/functions/simulate-payment", headers=RENTER, json=body)
        second = await client.post("/api/v1/functions/simulate-payment", headers=RENTER, json=body)

        assert first.status_code == 200
        assert second.status_code == 400
        assert second.json() == {"error": "This reservation has already been paid"}

    @pytest.mark.asyncio
    async def test_pending_reservation_cannot_be_paid(self, client, make_reservation):
        reservation = await make_reservation(ReservationStatus.PENDING)

        response = await client.post(
            "/api/v1/functions/simulate-payment",
            headers=RENTER,
            json={"reservation_id": str(reservation.id), "method": "cashea"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Reservation must be approved before payment"

    @pytest.mark.asyncio
    async def test_invalid_method(self, client, make_reservation):
        reservation = await make_reservation(ReservationStatus.APPROVED)

        response = await client.post(
            "/api/v1/functions/simulate-payment",
            headers=RENTER,
            json={"reservation_id": str(reservation.id), "method": "zelle"},
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_only_the_renter_pays(self, client, make_reservation):
        reservation = await make_reservation(ReservationStatus.APPROVED)

        response = await client.post(
            "/api/v1/functions/simulate-payment",
            headers=OWNER,
            json={"reservation_id": str(reservation.id), "method": "cashea"},
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_unknown_reservation(self, client, renter):
        response = await client.post(
            "/api/v1/functions/simulate-payment",
            headers=RENTER,
            json={"reservation_id": "8c5b0c0e-3d0c-4bb8-9a57-1f0c2b7f0a11", "method": "cashea"},
        )

        assert response.status_code == 404


class TestFallbackPayment:
    @pytest.mark.asyncio
    async def test_explicit_amount(self, client, db_session, make_reservation):
        reservation = await make_reservation(ReservationStatus.APPROVED)

        response = await client.post(
            "/api/v1/functions/mark-payment-simulated",
            headers=RENTER,
            json={"reservation_id": str(reservation.id), "method": "mercantil", "amount_bs": 500},
        )

        assert response.status_code == 200
        payment = response.json()["payment"]
        assert payment["amount_total"] == 500.0
        assert payment["upfront"] == 500.0
        assert payment["installments"] == 0
        assert payment["method"] == "full"
        assert payment["provider_ref"].startswith("FALLBACK-MERCANTIL-")

        audit = await db_session.scalar(
            select(AuditLog).where(AuditLog.action == "payment_simulated_fallback")
        )
        assert audit.meta["fallback"] is True

    @pytest.mark.asyncio
    async def test_payment_visible_to_owner(self, client, make_reservation):
        reservation = await make_reservation(ReservationStatus.APPROVED)
        await client.post(
            "/api/v1/functions/mark-payment-simulated",
            headers=RENTER,
            json={"reservation_id": str(reservation.id), "method": "cashea"},
        )

        response = await client.get(f"/api/v1/payments/{reservation.id}", headers=OWNER)

        assert response.status_code == 200
        assert response.json()["amount_total"] == 330.0
