"""Fixtures compartidas: una base SQLite temporal por test."""

import pytest
from sqlalchemy.orm import sessionmaker

import tournament_logic as logic
from app import create_app
from database import create_db_engine, init_db


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'debate_test.db'}"


@pytest.fixture
def engine(db_url):
    engine = create_db_engine(db_url)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    session = sessionmaker(bind=engine)()
    yield session
    session.close()


@pytest.fixture
def tournament(session):
    """Torneo 'Test Cup' recién creado."""
    return logic.add_tournament(session, 'Test Cup', '2025-05-01')


@pytest.fixture
def app(db_url):
    app = create_app({'DATABASE_URL': db_url, 'TESTING': True})
    yield app
    app.extensions['db_engine'].dispose()


@pytest.fixture
def runner(app):
    """Runner de comandos sobre una base ya inicializada con init-db."""
    runner = app.test_cli_runner()
    runner.invoke(args=['init-db'])
    return runner
