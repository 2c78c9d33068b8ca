import pytest
from sqlalchemy import create_engine, text

from flowsql import dispatcher
from tests.fakes import FakeConnection, FakeEngine


# SQLite file database seeded with three rows; every test gets a fresh one
@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "flowsql_test.db"
    engine = create_engine(f"sqlite:///{path}")
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE lista (id INTEGER PRIMARY KEY, name TEXT)"))
        conn.execute(text("INSERT INTO lista (id, name) VALUES (1, 'a'), (2, 'b'), (3, 'c')"))
    engine.dispose()
    return path


@pytest.fixture
def db_url(db_path):
    return f"sqlite+aiosqlite:///{db_path}"


# Reads the database directly, outside of the code under test
@pytest.fixture
def fetch(db_path):
    def fetch(sql, **params):
        engine = create_engine(f"sqlite:///{db_path}")
        try:
            with engine.connect() as conn:
                return [dict(row._mapping) for row in conn.execute(text(sql), params)]
        finally:
            engine.dispose()
    return fetch


# Replace the dispatcher's engine factory with a fake engine
@pytest.fixture
def install_engine(monkeypatch):
    def install(conn=None, connect_error=None):
        engine = FakeEngine(conn or FakeConnection(), connect_error)
        monkeypatch.setattr(dispatcher, "create_engine", lambda url: engine)
        return engine
    return install
