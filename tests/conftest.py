"""
Test infrastructure for the portfolio services.

Strategy
--------
- SQLite in-memory via aiosqlite eliminates the need for a running Postgres
  instance in CI, keeping the suite fast and self-contained.
- StaticPool forces all async tasks to share the same in-memory database
  connection, which is required because SQLite in-memory databases are
  connection-scoped; a new connection would see an empty database.
- ``Database`` turns on SQLite foreign-key enforcement for the connection,
  so restricted deletes fail here the same way they do on Postgres.
- All tables are created fresh before each test and dropped after, giving
  each test a clean isolated state without needing transactions or truncation.
- bcrypt runs with the minimum work factor so hashing does not dominate the
  suite's runtime.
"""
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import StaticPool

from app.config import settings
from app.database import Database
from app.models import Role, User, UserStatus
from app.security import hash_password

# ---------------------------------------------------------------------------
# Test database — SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

database_test = Database(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TEST_PASSWORD = "s3cret-pass"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch):
    """Use the cheapest bcrypt work factor for every hash made in a test."""
    monkeypatch.setattr(settings, "BCRYPT_SALT_ROUNDS", 4)


@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    await database_test.create_all()
    yield
    await database_test.drop_all()


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """
    Yield a live AsyncSession for tests that call service functions
    directly.  Nothing is committed unless the test commits explicitly.
    """
    async with database_test.session_factory() as session:
        yield session


async def make_user(
    db: AsyncSession,
    email: str = "author@example.com",
    name: str = "Author",
    password: str | None = TEST_PASSWORD,
    status: UserStatus = UserStatus.ACTIVE,
    role: Role = Role.USER,
) -> User:
    """Insert a user straight through the ORM and return it."""
    user = User(
        name=name,
        email=email,
        password=hash_password(password) if password else None,
        status=status,
        role=role,
    )
    db.add(user)
    await db.flush()
    return user


@pytest_asyncio.fixture
async def author(db_session: AsyncSession) -> User:
    return await make_user(db_session)
