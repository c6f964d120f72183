"""Test configuration and fixtures."""

import os

# Must be set before marketplace modules read their settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import timedelta  # noqa: E402
from uuid import uuid4  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from marketplace.core.clock import utcnow  # noqa: E402
from marketplace.core.database import Base, get_db  # noqa: E402
from marketplace.core.dependencies import AuthContext, Role, create_access_token  # noqa: E402
from marketplace.models import *  # noqa: E402,F403 - Import all models
from marketplace.schemas.tour import CreateTourRequest  # noqa: E402
from marketplace.services.tour_service import TourService  # noqa: E402

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_session(test_engine):
    """Create a test database session."""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def test_app(test_session):
    """Create the application with its database dependency pointed at the test session."""
    from marketplace.main import create_app

    app = create_app()

    async def override_get_db():
        yield test_session

    app.dependency_overrides[get_db] = override_get_db

    yield app

    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def admin():
    return AuthContext(user_id=uuid4(), role=Role.ADMIN)


@pytest.fixture
def seller():
    return AuthContext(user_id=uuid4(), role=Role.SELLER)


@pytest.fixture
def other_seller():
    return AuthContext(user_id=uuid4(), role=Role.SELLER)


@pytest.fixture
def customer():
    return AuthContext(user_id=uuid4(), role=Role.USER)


@pytest.fixture
def auth_headers():
    """Build an Authorization header for an AuthContext."""
    def build(auth: AuthContext) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(auth.user_id, auth.role)}"}
    return build


@pytest.fixture
def departure_date():
    """A departure well outside the cancellation notice period, at 09:00 UTC."""
    return (utcnow() + timedelta(days=30)).replace(hour=9, minute=0, second=0, microsecond=0)


@pytest.fixture
def sample_tour_data():
    """Sample tour data for testing."""
    return {
        "title": "Northern Lights Adventure",
        "code": "NLA-2024",
        "description": "Experience the magical Aurora Borealis in Iceland",
        "max_size": 10,
        "price_amount": 29999,
        "price_currency": "USD",
    }


@pytest_asyncio.fixture
async def sample_tour(test_session, sample_tour_data, seller):
    """A published 10-seat tour owned by ``seller``."""
    return await TourService(test_session).create_tour(
        CreateTourRequest(**sample_tour_data, tour_status="published"),
        seller,
    )


@pytest.fixture
def booking_payload(departure_date):
    """Build a camelCase booking request body for a tour."""
    def build(tour_id, adults: int = 2, children: int = 0, infants: int = 0, when=None) -> dict:
        return {
            "tourId": str(tour_id),
            "departureDate": (when or departure_date).isoformat(),
            "participants": {"adults": adults, "children": children, "infants": infants},
            "pricing": {"adultPrice": 10000, "childPrice": 5000, "infantPrice": 0, "currency": "USD"},
            "contactInfo": {
                "fullName": "Ada Traveller",
                "email": "ada@example.com",
                "phone": "+354 555 0100",
                "country": "Iceland",
            },
        }
    return build
