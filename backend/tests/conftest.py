"""Shared test fixtures for Spoolbook backend tests."""

import os
import shutil
import tempfile
from collections.abc import AsyncGenerator
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# IMPORTANT: Set environment variables BEFORE any app imports
# This must happen before settings/config are loaded
_test_data_dir = Path(tempfile.mkdtemp(prefix="spoolbook_test_data_"))
os.environ["LOG_TO_FILE"] = "false"
os.environ["DEBUG"] = "false"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-hs256-signing"
os.environ["DATA_DIR"] = str(_test_data_dir)
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_test_data_dir / 'unused.db'}"

from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

from backend.app.core.config import settings  # noqa: E402

settings.log_to_file = False
settings.smtp_host = None
settings.low_stock_webhook_url = None

from backend.app.core.database import Base, create_engine_for  # noqa: E402
from backend.app.services.ledger import Ledger  # noqa: E402
from backend.app.services.low_stock_notifier import LowStockNotifier  # noqa: E402


def pytest_sessionfinish(session, exitstatus):
    shutil.rmtree(_test_data_dir, ignore_errors=True)


@pytest.fixture
async def test_engine(tmp_path):
    """Create a test database engine.

    A file database rather than ``:memory:`` so each session gets its own
    connection and concurrent transactions contend the way they do in production.
    """
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")

    # Import all models to register them
    from backend.app.models import brand_shortcut, print_record, spool, user  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def mock_notifier():
    """Notifier double that records dispatches instead of sending anything."""
    return MagicMock(spec=LowStockNotifier)


@pytest.fixture
def ledger(session_factory, mock_notifier) -> Ledger:
    return Ledger(session_factory=session_factory, notifier=mock_notifier, threshold=200.0, timeout=5.0)


@pytest.fixture
async def async_client(session_factory, ledger) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client."""
    from backend.app.core.database import get_db
    from backend.app.main import app
    from backend.app.services.ledger import get_ledger

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_ledger] = lambda: ledger

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ============================================================================
# Factories
# ============================================================================


@pytest.fixture
def user_factory(db_session: AsyncSession):
    """Factory to create test users."""
    from backend.app.core.auth import get_password_hash
    from backend.app.models.user import User

    _counter = [0]

    async def _create_user(**kwargs):
        _counter[0] += 1
        password = kwargs.pop("password", "password123")
        defaults = {
            "username": f"maker{_counter[0]}",
            "email": f"maker{_counter[0]}@example.com",
            "password_hash": get_password_hash(password),
        }
        defaults.update(kwargs)
        user = User(**defaults)
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _create_user


@pytest.fixture
def spool_factory(db_session: AsyncSession):
    """Factory to create test spools."""
    from backend.app.models.spool import Spool

    async def _create_spool(user_id: int, **kwargs):
        defaults = {
            "material": "PLA",
            "brand": "Polymaker",
            "color_name": "Jade White",
            "color": "#FFFFFF",
            "total_weight": 1000.0,
            "price": 20.0,
        }
        defaults.update(kwargs)
        defaults.setdefault("remaining_weight", defaults["total_weight"])
        spool = Spool(user_id=user_id, **defaults)
        db_session.add(spool)
        await db_session.commit()
        await db_session.refresh(spool)
        return spool

    return _create_spool


@pytest.fixture
def auth_headers():
    """Build bearer headers for a user."""
    from backend.app.core.auth import create_token_for_user

    def _headers(user) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_token_for_user(user)}"}

    return _headers


@pytest.fixture
async def remaining_of(session_factory):
    """Read a spool's remaining weight straight from the store."""
    from backend.app.models.spool import Spool

    async def _remaining(spool_id: int) -> float | None:
        async with session_factory() as session:
            spool = await session.get(Spool, spool_id)
            return spool.remaining_weight if spool else None

    return _remaining
