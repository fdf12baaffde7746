import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from main import app
from database import Base, get_db
from models.user import User
from services.coins import grant_coins
from services.identity import issue_access_token
from services.ledger import TransactionType
from services.rate_limiter import InMemoryRateLimitStore


@pytest.fixture(autouse=True)
def reset_rate_limit_store():
    """Keep in-memory rate-limit state isolated between tests."""
    previous = getattr(app.state, "disable_rate_limits", False)
    app.state.disable_rate_limits = True
    app.state.rate_limit_store = InMemoryRateLimitStore()
    yield
    app.state.rate_limit_store = InMemoryRateLimitStore()
    app.state.disable_rate_limits = previous


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    db_path = tmp_path / "ledger.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield maker
    await engine.dispose()


@pytest_asyncio.fixture
async def api_client(session_maker):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.pop(get_db, None)


async def create_account(session_maker, user_id: str, coins: int = 0, email: str = None) -> None:
    """Create an account and fund it through the ledger so balance and log agree."""
    async with session_maker() as session:
        session.add(User(id=user_id, email=email or f"{user_id}@example.com", coin_balance=0))
        await session.commit()
        if coins:
            result = await grant_coins(
                session,
                user_id,
                coins,
                transaction_type=TransactionType.BONUS.value,
                description="Test funding",
            )
            assert result.success


def auth_headers(user_id: str, email: str = None) -> dict:
    token = issue_access_token(user_id, email=email or f"{user_id}@example.com")["token"]
    return {"Authorization": f"Bearer {token}"}
