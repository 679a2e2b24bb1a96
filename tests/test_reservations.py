"""Reservation lifecycle tests: pricing, booking, review, extension and closing."""

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from andaya.models import EmailLog, Reservation, ReservationEvent
from andaya.models.reservation import ReservationStatus
from andaya.models.vehicle import VehicleStatus
from sqlalchemy import select

from tests.conftest import auth_headers, future

OWNER = auth_headers("owner-token")
RENTER = auth_headers("renter-token")


async def events_of(db_session, reservation_id):
    result = await db_session.execute(
        select(ReservationEvent.type).where(ReservationEvent.reservation_id == reservation_id)
    )
    return list(result.scalars().all())


class TestPricingQuote:
    @pytest.mark.asyncio
    async def test_quote_is_public(self, client, vehicle):
        start = future(10)
        response = await client.post(
            "/api/v1/functions/pricing-quote",
            json={
                "vehicle_id": str(vehicle.id),
                "start_at": start.isoformat(),
                "end_at": (start + timedelta(days=3)).isoformat(),
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["pricing"]["pricing_mode"] == "daily"
        assert data["pricing"]["total_bs"] == 330.0

    @pytest.mark.asyncio
    async def test_missing_fields(self, client, vehicle):
        response = await client.post(
            "/api/v1/functions/pricing-quote", json={"vehicle_id": str(vehicle.id)}
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Missing required fields: vehicle_id, start_at, end_at"}

    @pytest.mark.asyncio
    async def test_end_before_start(self, client, vehicle):
        start = future(10)
        response = await client.post(
            "/api/v1/functions/pricing-quote",
            json={
                "vehicle_id": str(vehicle.id),
                "start_at": start.isoformat(),
                "end_at": (start - timedelta(hours=1)).isoformat(),
            },
        )

        assert response.status_code == 400
        assert response.json()["error"] == "end_at must be after start_at"

    @pytest.mark.asyncio
    async def test_paused_vehicle_cannot_be_quoted(self, client, db_session, vehicle):
        vehicle.status = VehicleStatus.PAUSED
        await db_session.commit()

        start = future(10)
        response = await client.post(
            "/api/v1/functions/pricing-quote",
            json={
                "vehicle_id": str(vehicle.id),
                "start_at": start.isoformat(),
                "end_at": (start + timedelta(days=1)).isoformat(),
            },
        )

        assert response.status_code == 404


class TestCreateReservation:
    @pytest.mark.asyncio
    async def test_requires_authentication(self, client, vehicle):
        start = future(10)
        response = await client.post(
            "/api/v1/reservations",
            json={
                "vehicle_id": str(vehicle.id),
                "start_at": start.isoformat(),
                "end_at": (start + timedelta(days=2)).isoformat(),
            },
        )

        assert response.status_code == 401
        assert response.json() == {"error": "No autorizado"}

    @pytest.mark.asyncio
    async def test_creates_pending_reservation_with_price_snapshot(
        self, client, db_session, vehicle, renter
    ):
        start = future(10)
        response = await client.post(
            "/api/v1/reservations",
            headers=RENTER,
            json={
                "vehicle_id": str(vehicle.id),
                "start_at": start.isoformat(),
                "end_at": (start + timedelta(days=3)).isoformat(),
                "notes": "Lo busco en Altamira",
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["renter_id"] == str(renter.id)
        assert data["owner_id"] == str(vehicle.owner_id)
        assert data["total_price_bs"] == 330.0
        assert data["grace_minutes"] == 30

        assert await events_of(db_session, uuid.UUID(data["id"])) == ["created"]

    @pytest.mark.asyncio
    async def test_overlapping_approved_reservation_conflicts(
        self, client, vehicle, renter, make_reservation
    ):
        start = future(10)
        await make_reservation(ReservationStatus.APPROVED, start, start + timedelta(days=3))

        response = await client.post(
            "/api/v1/reservations",
            headers=RENTER,
            json={
                "vehicle_id": str(vehicle.id),
                "start_at": (start + timedelta(days=1)).isoformat(),
                "end_at": (start + timedelta(days=2)).isoformat(),
            },
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_range_over_pending_days_is_refused(
        self, client, vehicle, renter, make_reservation
    ):
        start = future(10)
        await make_reservation(ReservationStatus.PENDING, start + timedelta(days=2), start + timedelta(days=3))

        response = await client.post(
            "/api/v1/reservations",
            headers=RENTER,
            json={
                "vehicle_id": str(vehicle.id),
                "start_at": start.isoformat(),
                "end_at": (start + timedelta(days=5)).isoformat(),
            },
        )

        assert response.status_code == 409
        assert response.json()["error"] == "Las fechas seleccionadas no están disponibles"

    @pytest.mark.asyncio
    async def test_owner_cannot_book_own_vehicle(self, client, vehicle):
        start = future(10)
        response = await client.post(
            "/api/v1/reservations",
            headers=OWNER,
            json={
                "vehicle_id": str(vehicle.id),
                "start_at": start.isoformat(),
                "end_at": (start + timedelta(days=1)).isoformat(),
            },
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_start_in_the_past_is_refused(self, client, vehicle, renter):
        start = future(-2)
        response = await client.post(
            "/api/v1/reservations",
            headers=RENTER,
            json={
                "vehicle_id": str(vehicle.id),
                "start_at": start.isoformat(),
                "end_at": (start + timedelta(days=3)).isoformat(),
            },
        )

        assert response.status_code == 400


class TestOwnerReview:
    @pytest.mark.asyncio
    async def test_owner_approves_and_renter_is_emailed(
        self, client, db_session, outbox, renter, make_reservation
    ):
        reservation = await make_reservation()

        response = await client.post(
            "/api/v1/functions/reservation-approve",
            headers=OWNER,
            json={"reservation_id": str(reservation.id)},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["email_sent"] is True
        assert data["reservation"]["status"] == "approved"

        sent = outbox.to(renter.email)
        assert len(sent) == 1
        assert sent[0]["subject"] == "¡Reserva aprobada! — Toyota Corolla 2020"
        # Owner phone becomes a WhatsApp contact button
        assert "https://wa.me/584145551234" in sent[0]["html"]

        log = await db_session.scalar(select(EmailLog).where(EmailLog.type == "reservation_approved"))
        assert log.status == "sent"
        assert "approved" in await events_of(db_session, reservation.id)

    @pytest.mark.asyncio
    async def test_approval_survives_email_failure(self, client, outbox, make_reservation):
        outbox.fail = True
        reservation = await make_reservation()

        response = await client.post(
            "/api/v1/functions/reservation-approve",
            headers=OWNER,
            json={"reservation_id": str(reservation.id)},
        )

        assert response.status_code == 200
        assert response.json()["email_sent"] is False
        assert response.json()["reservation"]["status"] == "approved"

    @pytest.mark.asyncio
    async def test_only_the_owner_can_approve(self, client, make_reservation):
        reservation = await make_reservation()

        response = await client.post(
            "/api/v1/functions/reservation-approve",
            headers=RENTER,
            json={"reservation_id": str(reservation.id)},
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_processed_reservation_cannot_be_approved_again(self, client, make_reservation):
        reservation = await make_reservation(ReservationStatus.APPROVED)

        response = await client.post(
            "/api/v1/functions/reservation-approve",
            headers=OWNER,
            json={"reservation_id": str(reservation.id)},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "La reserva ya fue procesada"

    @pytest.mark.asyncio
    async def test_reject_defaults_reason(self, client, outbox, renter, make_reservation):
        reservation = await make_reservation()

        response = await client.post(
            "/api/v1/functions/reservation-reject",
            headers=OWNER,
            json={"reservation_id": str(reservation.id)},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["reservation"]["status"] == "rejected"
        assert data["reservation"]["rejected_reason"] == "No especificado"
        assert outbox.to(renter.email)[0]["subject"] == "Reserva no aprobada — Toyota Corolla 2020"

    @pytest.mark.asyncio
    async def test_resend_approval_email(self, client, outbox, renter, make_reservation):
        reservation = await make_reservation(ReservationStatus.APPROVED)

        response = await client.post(
            "/api/v1/functions/reservation-approved",
            headers=OWNER,
            json={"reservation_id": str(reservation.id)},
        )

        assert response.status_code == 200
        assert response.json()["email_id"] == "email-1"
        assert len(outbox.to(renter.email)) == 1

    @pytest.mark.asyncio
    async def test_resend_requires_reservation_id(self, client, owner):
        response = await client.post(
            "/api/v1/functions/reservation-approved", headers=OWNER, json={}
        )

        assert response.status_code == 400


class TestRenterActions:
    @pytest.mark.asyncio
    async def test_renter_lists_and_reads_reservation(self, client, make_reservation):
        reservation = await make_reservation()

        listing = await client.get("/api/v1/reservations", headers=RENTER)
        assert [r["id"] for r in listing.json()] == [str(reservation.id)]

        owner_listing = await client.get("/api/v1/reservations?role=owner", headers=OWNER)
        assert len(owner_listing.json()) == 1

        detail = await client.get(f"/api/v1/reservations/{reservation.id}", headers=RENTER)
        assert detail.status_code == 200
        assert detail.json()["vehicle"]["brand"] == "Toyota"

    @pytest.mark.asyncio
    async def test_strangers_cannot_read_reservation(self, client, make_user, make_reservation):
        reservation = await make_reservation()
        await make_user("Pedro Extraño", token="stranger-token")

        response = await client.get(
            f"/api/v1/reservations/{reservation.id}", headers=auth_headers("stranger-token")
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_cancel_pending_reservation(self, client, db_session, make_reservation):
        reservation = await make_reservation()

        response = await client.post(f"/api/v1/reservations/{reservation.id}/cancel", headers=RENTER)

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert "cancelled" in await events_of(db_session, reservation.id)

    @pytest.mark.asyncio
    async def test_countdown(self, client, make_reservation):
        reservation = await make_reservation(ReservationStatus.APPROVED)

        response = await client.get(
            f"/api/v1/reservations/{reservation.id}/countdown", headers=RENTER
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "upcoming"
        assert data["reservation_id"] == str(reservation.id)


class TestExtension:
    @pytest.mark.asyncio
    async def test_extension_is_priced_and_owner_notified(
        self, client, db_session, outbox, owner, make_reservation
    ):
        start = future(10)
        end = start + timedelta(days=3)
        reservation = await make_reservation(ReservationStatus.APPROVED, start, end)

        response = await client.post(
            "/api/v1/functions/request-extension",
            headers=RENTER,
            json={
                "reservation_id": str(reservation.id),
                "new_end_at": (end + timedelta(days=1)).isoformat(),
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["extension_pricing"]["total_bs"] == 110.0

        sent = outbox.to(owner.email)
        assert sent[0]["subject"] == "Solicitud de extensión — Toyota Corolla 2020"
        assert "extension_requested" in await events_of(db_session, reservation.id)

    @pytest.mark.asyncio
    async def test_extension_over_another_booking_conflicts(self, client, make_reservation):
        start = future(10)
        end = start + timedelta(days=3)
        reservation = await make_reservation(ReservationStatus.APPROVED, start, end)
        await make_reservation(
            ReservationStatus.APPROVED, end + timedelta(days=1), end + timedelta(days=4)
        )

        response = await client.post(
            "/api/v1/functions/request-extension",
            headers=RENTER,
            json={
                "reservation_id": str(reservation.id),
                "new_end_at": (end + timedelta(days=2)).isoformat(),
            },
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_new_end_must_be_later(self, client, make_reservation):
        start = future(10)
        end = start + timedelta(days=3)
        reservation = await make_reservation(ReservationStatus.APPROVED, start, end)

        response = await client.post(
            "/api/v1/functions/request-extension",
            headers=RENTER,
            json={"reservation_id": str(reservation.id), "new_end_at": end.isoformat()},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "New end time must be after current end time"

    @pytest.mark.asyncio
    async def test_pending_reservation_cannot_be_extended(self, client, make_reservation):
        reservation = await make_reservation()

        response = await client.post(
            "/api/v1/functions/request-extension",
            headers=RENTER,
            json={
                "reservation_id": str(reservation.id),
                "new_end_at": future(30).isoformat(),
            },
        )

        assert response.status_code == 400


class TestCloseReservation:
    @pytest.mark.asyncio
    async def test_late_return_is_charged(self, client, db_session, outbox, owner, renter, make_reservation):
        start = future(10)
        end = start + timedelta(days=3)
        reservation = await make_reservation(
            ReservationStatus.APPROVED, start, end, late_fee_per_hour=Decimal("15")
        )

        response = await client.post(
            "/api/v1/functions/close-reservation",
            headers=OWNER,
            json={
                "reservation_id": str(reservation.id),
                "actual_return_at": (end + timedelta(hours=2, minutes=31)).isoformat(),
            },
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "overage_hours": 2.5,
            "late_fees_bs": 37.5,
            "final_total_bs": 367.5,
        }

        stored = await db_session.get(Reservation, reservation.id)
        assert stored.status == ReservationStatus.COMPLETED
        assert stored.final_total_bs == Decimal("367.50")

        assert outbox.to(renter.email)[0]["subject"] == "Recibo final — Toyota Corolla 2020"
        assert outbox.to(owner.email)[0]["subject"] == "Reserva completada — Toyota Corolla 2020"

    @pytest.mark.asyncio
    async def test_return_within_grace_costs_nothing_extra(self, client, make_reservation):
        start = future(10)
        end = start + timedelta(days=3)
        reservation = await make_reservation(ReservationStatus.APPROVED, start, end)

        response = await client.post(
            "/api/v1/functions/close-reservation",
            headers=OWNER,
            json={
                "reservation_id": str(reservation.id),
                "actual_return_at": (end + timedelta(minutes=25)).isoformat(),
            },
        )

        assert response.json()["late_fees_bs"] == 0.0
        assert response.json()["final_total_bs"] == 330.0

    @pytest.mark.asyncio
    async def test_renter_cannot_close(self, client, make_reservation):
        reservation = await make_reservation(ReservationStatus.APPROVED)

        response = await client.post(
            "/api/v1/functions/close-reservation",
            headers=RENTER,
            json={
                "reservation_id": str(reservation.id),
                "actual_return_at": future(20).isoformat(),
            },
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_missing_return_time(self, client, make_reservation):
        reservation = await make_reservation(ReservationStatus.APPROVED)

        response = await client.post(
            "/api/v1/functions/close-reservation",
            headers=OWNER,
            json={"reservation_id": str(reservation.id)},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Missing required fields"}
