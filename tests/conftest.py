"""Pytest configuration and fixtures."""

import json
import unicodedata
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio
from andaya.main import app
from andaya.models import Base, Profile, Reservation, UserRole, Vehicle
from andaya.models.profile import AppRole
from andaya.models.reservation import PricingMode, ReservationStatus
from andaya.models.vehicle import VehicleStatus
from andaya.services.auth_client import SupabaseAuthClient, get_auth_client
from andaya.services.database import get_db
from andaya.services.email_client import EmailService, get_email_service
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeAuthProvider:
    """In-memory stand-in for the hosted auth REST API, served through httpx.MockTransport."""

    def __init__(self):
        self.users: Dict[str, dict] = {}
        self.tokens: Dict[str, str] = {}
        self.generated_links: List[dict] = []
        self.fail_links = False

    def add_user(self, user_id: uuid.UUID, email: str, token: str, full_name: str = None) -> dict:
        payload = {
            "id": str(user_id),
            "email": email,
            "phone": "",
            "created_at": "2025-01-10T12:00:00Z",
            "last_sign_in_at": "2025-03-01T08:30:00Z",
            "email_confirmed_at": "2025-01-10T12:05:00Z",
            "user_metadata": {"full_name": full_name} if full_name else {},
        }
        self.users[str(user_id)] = payload
        self.tokens[token] = str(user_id)
        return payload

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path

        if path == "/auth/v1/user":
            token = request.headers.get("authorization", "").replace("Bearer ", "", 1)
            user_id = self.tokens.get(token)
            if user_id is None:
                return httpx.Response(401, json={"msg": "invalid JWT"})
            return httpx.Response(200, json=self.users[user_id])

        if path == "/auth/v1/admin/users":
            return httpx.Response(200, json={"users": list(self.users.values())})

        if path.startswith("/auth/v1/admin/users/"):
            user = self.users.get(path.rsplit("/", 1)[-1])
            if user is None:
                return httpx.Response(404, json={"msg": "User not found"})
            return httpx.Response(200, json=user)

        if path == "/auth/v1/admin/generate_link":
            if self.fail_links:
                return httpx.Response(500, json={"msg": "internal error"})
            body = json.loads(request.content)
            self.generated_links.append(body)
            return httpx.Response(
                200,
                json={"action_link": f"https://auth.test/verify?type={body['type']}&email={body['email']}"},
            )

        return httpx.Response(404, json={"msg": "not found"})


class EmailOutbox:
    """Records messages posted to the email API."""

    def __init__(self):
        self.messages: List[dict] = []
        self.fail = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.fail:
            return httpx.Response(500, text="provider down")
        payload = json.loads(request.content)
        self.messages.append(payload)
        return httpx.Response(200, json={"id": f"email-{len(self.messages)}"})

    def to(self, address: str) -> List[dict]:
        return [m for m in self.messages if address in m["to"]]


def auth_headers(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def future(days: int = 10, hour: int = 14) -> datetime:
    """A UTC timestamp ``days`` ahead at a fixed hour (mid-morning in Caracas)."""
    base = datetime.now(timezone.utc) + timedelta(days=days)
    return base.replace(hour=hour, minute=0, second=0, microsecond=0)


# ============================================================================
# Database
# ============================================================================


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create an in-memory test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session_maker = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async with async_session_maker() as session:
        yield session


# ============================================================================
# Hosted services
# ============================================================================


@pytest.fixture
def auth_provider() -> FakeAuthProvider:
    return FakeAuthProvider()


@pytest.fixture
def outbox() -> EmailOutbox:
    return EmailOutbox()


@pytest_asyncio.fixture
async def auth_client(auth_provider: FakeAuthProvider) -> AsyncGenerator[SupabaseAuthClient, None]:
    client = SupabaseAuthClient(
        base_url="https://auth.test",
        anon_key="anon-key",
        service_role_key="service-key",
        transport=httpx.MockTransport(auth_provider.handler),
    )
    yield client
    await client.close()


@pytest_asyncio.fixture
async def email_service(outbox: EmailOutbox) -> AsyncGenerator[EmailService, None]:
    service = EmailService(
        api_key="re_test",
        api_url="https://email.test",
        sender="AndaYa <test@andaya.test>",
        transport=httpx.MockTransport(outbox.handler),
    )
    yield service
    await service.close()


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    auth_client: SupabaseAuthClient,
    email_service: EmailService,
) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_auth_client] = lambda: auth_client
    app.dependency_overrides[get_email_service] = lambda: email_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ============================================================================
# Users
# ============================================================================


@pytest.fixture
def make_user(db_session: AsyncSession, auth_provider: FakeAuthProvider):
    """Factory creating a profile with roles and registering it with the auth provider."""

    async def _make_user(
        name: str,
        roles=(AppRole.RENTER,),
        phone: Optional[str] = None,
        token: Optional[str] = None,
    ) -> Profile:
        user_id = uuid.uuid4()
        first = unicodedata.normalize("NFKD", name.split()[0]).encode("ascii", "ignore").decode()
        slug = first.lower()
        email = f"{slug}@example.com"
        profile = Profile(
            id=user_id,
            full_name=name,
            first_name=name.split()[0],
            email=email,
            phone=phone,
        )
        db_session.add(profile)
        for role in roles:
            db_session.add(UserRole(user_id=user_id, role=role))
        await db_session.commit()

        auth_provider.add_user(user_id, email, token or f"{slug}-token", full_name=name)
        return profile

    return _make_user


@pytest_asyncio.fixture
async def owner(make_user) -> Profile:
    return await make_user(
        "Carlos Pérez", roles=(AppRole.RENTER, AppRole.OWNER), phone="0414-555-1234", token="owner-token"
    )


@pytest_asyncio.fixture
async def renter(make_user) -> Profile:
    return await make_user("María González", token="renter-token")


@pytest_asyncio.fixture
async def admin(make_user) -> Profile:
    return await make_user("Ana Admin", roles=(AppRole.ADMIN_PRIMARY,), token="admin-token")


# ============================================================================
# Listings & bookings
# ============================================================================


@pytest_asyncio.fixture
async def vehicle(db_session: AsyncSession, owner: Profile) -> Vehicle:
    """Active vehicle at Bs 100/day without an explicit hourly rate."""
    vehicle = Vehicle(
        owner_id=owner.id,
        title="Toyota Corolla 2020 automático",
        brand="Toyota",
        model="Corolla",
        year=2020,
        price_bs=Decimal("100.00"),
        city="Caracas",
        status=VehicleStatus.ACTIVE,
    )
    db_session.add(vehicle)
    await db_session.commit()
    await db_session.refresh(vehicle)
    return vehicle


@pytest.fixture
def make_reservation(db_session: AsyncSession, vehicle: Vehicle, renter: Profile):
    """Factory creating a reservation directly in the database."""

    async def _make_reservation(
        status: ReservationStatus = ReservationStatus.PENDING,
        start_at: Optional[datetime] = None,
        end_at: Optional[datetime] = None,
        total: Decimal = Decimal("330.00"),
        hourly_rate: Optional[Decimal] = None,
        late_fee_per_hour: Optional[Decimal] = None,
    ) -> Reservation:
        start_at = start_at or future(10)
        end_at = end_at or start_at + timedelta(days=3)
        reservation = Reservation(
            vehicle_id=vehicle.id,
            renter_id=renter.id,
            owner_id=vehicle.owner_id,
            start_at=start_at,
            end_at=end_at,
            grace_minutes=30,
            status=status,
            pricing_mode=PricingMode.DAILY,
            daily_price_bs=vehicle.price_bs,
            hourly_rate_bs=hourly_rate,
            late_fee_per_hour_bs=late_fee_per_hour,
            subtotal_bs=Decimal("300.00"),
            service_fee_bs=Decimal("30.00"),
            total_price_bs=total,
        )
        db_session.add(reservation)
        await db_session.commit()
        await db_session.refresh(reservation)
        return reservation

    return _make_reservation
