import asyncio
import sys
from pathlib import Path

import pytest
from sqlalchemy import event


BACKEND_PATH = Path(__file__).resolve().parents[1] / "backend"
if str(BACKEND_PATH) not in sys.path:
    sys.path.append(str(BACKEND_PATH))


@pytest.fixture()
def engine(tmp_path):
    """A fresh SQLite database file with every table created."""
    from database import Base, build_engine

    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'requests.db'}")

    # SQLite needs foreign key enforcement turned on explicitly
    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_conn, _):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async def create_tables():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(create_tables())
    yield engine
    asyncio.run(engine.dispose())


@pytest.fixture()
def session_maker(engine):
    from database import build_session_maker

    return build_session_maker(engine)


@pytest.fixture()
def client(session_maker):
    """FastAPI test client with the DB session bound to the SQLite database."""
    from fastapi.testclient import TestClient

    from database import get_postgres_session
    from server import app

    async def _override_get_session():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_postgres_session] = _override_get_session
    yield TestClient(app)
    app.dependency_overrides.clear()
