import pytest

from examples import hr_app, team_app
from keelorm.adapters import ConnectionConfig, SQLiteAdapter
from keelorm.persistence import Session
from keelorm.schema import SchemaBuilder


@pytest.fixture
def make_session(tmp_path):
    """
    Factory opening SQLite sessions on a per-test database file. Sessions
    created with the same ``name`` share the file.
    """
    sessions = []

    def factory(*models, name="test.db", **options):
        config = ConnectionConfig(url=f"sqlite:///{tmp_path / name}")
        session = Session(SQLiteAdapter(), connection_config=config, **options)
        SchemaBuilder(session.dialect).create_tables(session.store, models)
        sessions.append(session)
        return session

    yield factory
    for session in sessions:
        session.close()


@pytest.fixture
def team_dsn(tmp_path):
    return f"sqlite:///{tmp_path / 'team.db'}"


@pytest.fixture
def team_session(team_dsn):
    session = team_app.bootstrap_session(team_dsn)
    yield session
    session.close()


@pytest.fixture
def hr_session(tmp_path):
    session = hr_app.bootstrap_session(f"sqlite:///{tmp_path / 'hr.db'}")
    yield session
    session.close()
