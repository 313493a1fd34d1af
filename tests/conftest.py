import pytest
from httpx import ASGITransport, AsyncClient

from database import close_db, create_engine, init_db, make_session_factory
from main import app, get_store
from store import ReservationStore


@pytest.fixture
async def engine(tmp_path):
    # File-backed so concurrent sessions get their own connections
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'reservations.db'}", echo=False)
    await init_db(engine)
    yield engine
    await close_db(engine)


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def store(session_factory):
    return ReservationStore(session_factory)


@pytest.fixture
async def client(store):
    app.dependency_overrides[get_store] = lambda: store
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
