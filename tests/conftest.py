import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from repair_api.main import app
from repair_api.database import Base, get_db
from repair_api.api.deps import get_password_hash
from repair_api.models.user import User
from repair_api.models.technician import TechnicianLevel
from repair_api.models.service import CustomerDevice, Fault
from repair_api.services.technician_setup import create_technician_profile

from tests.factories import FaultFactory, bronze_silver_gold

# Test database URL (SQLite for testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"

COMPANY_ID = 1
ADMIN_EMAIL = "admin@repairshop.com"
ADMIN_PASSWORD = "testpassword123"


@pytest_asyncio.fixture
async def test_db():
    """Create test database and tables."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


async def _create_user(db: AsyncSession, email: str, password: str, **kwargs) -> User:
    user = User(
        email=email,
        hashed_password=get_password_hash(password),
        company_id=kwargs.pop("company_id", COMPANY_ID),
        is_active=True,
        **kwargs,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def admin_user(test_db: AsyncSession):
    """Create an admin user."""
    return await _create_user(
        test_db, ADMIN_EMAIL, ADMIN_PASSWORD,
        first_name="Asha", last_name="Admin", role="admin", is_admin=True,
    )


@pytest_asyncio.fixture
async def receptionist_user(test_db: AsyncSession):
    """Create a non-admin staff user."""
    return await _create_user(
        test_db, "frontdesk@repairshop.com", "frontdesk123",
        first_name="Ravi", last_name="Desk", role="receptionist",
    )


@pytest_asyncio.fixture
async def tech_user(test_db: AsyncSession):
    """Create a user who will become a technician."""
    return await _create_user(
        test_db, "tech@repairshop.com", "technician123",
        first_name="Meena", last_name="Tech",
    )


@pytest_asyncio.fixture
async def levels(test_db: AsyncSession):
    """BRONZE 0..999, SILVER 1000..4999, GOLD 5000.. for the test company."""
    rows = [TechnicianLevel(**data) for data in bronze_silver_gold(company_id=COMPANY_ID)]
    test_db.add_all(rows)
    await test_db.commit()
    return {level.code: level for level in rows}


@pytest_asyncio.fixture
async def technician(test_db: AsyncSession, tech_user: User, levels):
    """Technician profile at the base level."""
    return await create_technician_profile(test_db, COMPANY_ID, tech_user.id)


@pytest_asyncio.fixture
async def faults(test_db: AsyncSession):
    """Screen, battery and charging port faults."""
    rows = [
        Fault(**FaultFactory(code="SCREEN", name="Screen replacement", default_price=2500.0, technician_points=150)),
        Fault(**FaultFactory(code="BATTERY", name="Battery replacement", default_price=1200.0, technician_points=100)),
        Fault(**FaultFactory(code="PORT", name="Charging port repair", default_price=450.5, technician_points=50)),
    ]
    test_db.add_all(rows)
    await test_db.commit()
    return {fault.code: fault for fault in rows}


@pytest_asyncio.fixture
async def device(test_db: AsyncSession):
    """A customer's phone."""
    row = CustomerDevice(company_id=COMPANY_ID, customer_id=42, brand="Samsung", model="Galaxy A52")
    test_db.add(row)
    await test_db.commit()
    await test_db.refresh(row)
    return row


@pytest_asyncio.fixture
async def client(test_db: AsyncSession):
    """Create test client with overridden database."""

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def authenticated_client(client: AsyncClient, admin_user: User):
    """Create client authenticated as the admin."""
    response = await client.post(
        "/api/v2/auth/login",
        json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD},
    )
    token = response.json()["access_token"]

    client.headers["Authorization"] = f"Bearer {token}"
    return client


