import os

# Point the app's own engine at SQLite before anything imports app.config
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("DEBUG", "false")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.database import Base, get_db
from app.api.deps import create_access_token, get_password_hash
from app.models.customer import Customer, CustomerMetric
from app.models.user import User

from tests.factories import (
    AdminUserFactory,
    CustomerFactory,
    CustomerMetricFactory,
    TeamLeadUserFactory,
    UserFactory,
)

# In-memory SQLite shared across the session via StaticPool
TEST_DATABASE_URL = "sqlite+aiosqlite://"
TEST_PASSWORD = "testpassword123"  # noqa: S105


@pytest.fixture(scope="session")
def password_hash() -> str:
    return get_password_hash(TEST_PASSWORD)


@pytest_asyncio.fixture
async def test_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # FK enforcement, and let SQLAlchemy emit BEGIN itself so SAVEPOINT works
    @event.listens_for(engine.sync_engine, "connect")
    def _sqlite_connect(dbapi_conn, connection_record):
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _sqlite_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def test_db(session_factory):
    """Database session for a single test."""
    async with session_factory() as session:
        yield session


async def _create_user(db: AsyncSession, data: dict, password_hash: str) -> User:
    user = User(**data, hashed_password=password_hash)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def test_user(test_db: AsyncSession, password_hash: str):
    """A CSM user."""
    return await _create_user(test_db, UserFactory(email="test@example.com"), password_hash)


@pytest_asyncio.fixture
async def team_lead_user(test_db: AsyncSession, password_hash: str):
    return await _create_user(test_db, TeamLeadUserFactory(email="lead@example.com"), password_hash)


@pytest_asyncio.fixture
async def admin_user(test_db: AsyncSession, password_hash: str):
    return await _create_user(test_db, AdminUserFactory(email="admin@example.com"), password_hash)


@pytest_asyncio.fixture
async def customer(test_db: AsyncSession):
    """Customer with a metrics row."""
    customer = Customer(**CustomerFactory(name="Acme Grocers", nps_score=3, arr=60000.0))
    test_db.add(customer)
    await test_db.flush()
    test_db.add(CustomerMetric(customer_id=customer.id, **CustomerMetricFactory(active_stores=12)))
    await test_db.commit()
    await test_db.refresh(customer)
    return customer


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


def auth_headers(user: User) -> dict:
    token = create_access_token(data={"sub": str(user.id), "email": user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def authenticated_client(client: AsyncClient, test_user: User):
    """Client signed in as a CSM via the login endpoint."""
    response = await client.post(
        "/api/v2/auth/login",
        json={"email": "test@example.com", "password": TEST_PASSWORD},
    )
    token = response.json()["access_token"]

    client.headers["Authorization"] = f"Bearer {token}"
    return client


@pytest_asyncio.fixture
async def admin_client(client: AsyncClient, admin_user: User):
    client.headers.update(auth_headers(admin_user))
    return client


@pytest_asyncio.fixture
async def team_lead_client(client: AsyncClient, team_lead_user: User):
    client.headers.update(auth_headers(team_lead_user))
    return client
