"""Shared test configuration and fixtures.

Every test gets a fresh in-memory SQLite database (aiosqlite driver, single
shared connection through ``StaticPool``) with all tables created, so tests
are isolated from each other and need no running PostgreSQL.
"""

import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from hotel_booking.auth.jwt import create_token_pair
from hotel_booking.auth.passwords import hash_password
from hotel_booking.database import Base, get_db, utcnow
from hotel_booking.domain.booking_state import BookingStatus, PaymentStatus, counts_toward_aggregates
from hotel_booking.main import app
from hotel_booking.models import Booking, Hotel, IdProof, User

TEST_DATABASE_URL = "sqlite+aiosqlite://"


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_engine():
    """Create an in-memory database with the full schema."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    """Independent-session factory, as used by the compliance sweep."""
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Provide an httpx AsyncClient wired to use the test DB session."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def fetch(db_session: AsyncSession):
    """Return a loader that reads a fresh copy of a row, bypassing the session cache."""

    async def _fetch(model, pk):
        db_session.expunge_all()
        return await db_session.get(model, pk)

    return _fetch


def headers_for(user: User) -> dict[str, str]:
    tokens = create_token_pair(str(user.id), role=user.role)
    return {"Authorization": f"Bearer {tokens['access_token']}"}


# ---------------------------------------------------------------------------
# Users and hotel
# ---------------------------------------------------------------------------


async def _create_user(db_session: AsyncSession, role: str, label: str) -> User:
    unique = uuid.uuid4().hex[:8]
    user = User(
        email=f"{label}-{unique}@test.com",
        hashed_password=hash_password("testpass123"),
        first_name=label.capitalize(),
        last_name="Tester",
        role=role,
        is_active=True,
        total_bookings=0,
        total_spent=Decimal("0"),
    )
    db_session.add(user)
    await db_session.flush()
    return user


@pytest_asyncio.fixture
async def guest_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "user", "guest")


@pytest_asyncio.fixture
async def owner_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "hotel_owner", "owner")


@pytest_asyncio.fixture
async def other_owner(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "hotel_owner", "rival")


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "admin", "admin")


@pytest.fixture
def guest_headers(guest_user: User) -> dict[str, str]:
    return headers_for(guest_user)


@pytest.fixture
def owner_headers(owner_user: User) -> dict[str, str]:
    return headers_for(owner_user)


@pytest.fixture
def other_owner_headers(other_owner: User) -> dict[str, str]:
    return headers_for(other_owner)


@pytest.fixture
def admin_headers(admin_user: User) -> dict[str, str]:
    return headers_for(admin_user)


@pytest_asyncio.fixture
async def hotel(db_session: AsyncSession, owner_user: User) -> Hotel:
    hotel = Hotel(
        owner_id=owner_user.id,
        name="Seaside Palms",
        city="Goa",
        country="India",
        price_per_night=Decimal("125.00"),
        total_bookings=0,
        total_revenue=Decimal("0"),
    )
    db_session.add(hotel)
    await db_session.flush()
    return hotel


# ---------------------------------------------------------------------------
# Bookings
# ---------------------------------------------------------------------------

BookingFactory = Callable[..., Awaitable[Booking]]


@pytest.fixture
def make_booking(db_session: AsyncSession, hotel: Hotel, guest_user: User) -> BookingFactory:
    """Create a booking the way checkout would, bumping hotel and guest counters."""

    async def _make(
        status: BookingStatus = BookingStatus.ID_PENDING,
        total_cost: Decimal = Decimal("500.00"),
        created_at: datetime | None = None,
        check_in: date | None = None,
        check_out: date | None = None,
        id_proof: IdProof | None = None,
    ) -> Booking:
        check_in = check_in or date.today() + timedelta(days=10)
        check_out = check_out or check_in + timedelta(days=3)
        booking = Booking(
            user_id=guest_user.id,
            hotel_id=hotel.id,
            first_name=guest_user.first_name,
            last_name=guest_user.last_name,
            email=guest_user.email,
            check_in=check_in,
            check_out=check_out,
            adult_count=2,
            child_count=0,
            total_cost=total_cost,
            status=status,
            payment_status=PaymentStatus.PAID,
            refund_amount=Decimal("0"),
            created_at=created_at or utcnow(),
            id_proof=id_proof,
        )
        db_session.add(booking)
        if counts_toward_aggregates(status):
            hotel.total_bookings += 1
            hotel.total_revenue += total_cost
            guest_user.total_bookings += 1
            guest_user.total_spent += total_cost
        await db_session.flush()
        return booking

    return _make


@pytest.fixture
def make_proof() -> Callable[..., IdProof]:
    """Build a submitted ID proof to attach to a new booking."""

    def _make(uploaded_at: datetime | None = None, front_image: str = "https://img.example/front.jpg") -> IdProof:
        return IdProof(
            id_type="Passport",
            front_image=front_image,
            back_image="https://img.example/back.jpg",
            status="SUBMITTED",
            uploaded_at=uploaded_at or utcnow(),
        )

    return _make
