"""
Shared pytest fixtures for backend tests.

Every test runs with a freshly generated Fernet key and, where needed, an
in-memory SQLite database with all tables created.
"""

import pytest
from cryptography.fernet import Fernet
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import src.models  # noqa: F401  registers tables on Base.metadata
from src.db_base import Base
from src.tests.fakes import FIXED_NOW


# ============================================================================
# ENVIRONMENT
# ============================================================================

@pytest.fixture(autouse=True)
def encryption_key(monkeypatch):
    """Valid Fernet key for every test."""
    key = Fernet.generate_key().decode("utf-8")
    monkeypatch.setenv("ENCRYPTION_KEY", key)
    return key

@pytest.fixture
def fixed_clock():
    """Clock frozen at FIXED_NOW."""
    return lambda: FIXED_NOW

# ============================================================================
# DATABASE
# ============================================================================

@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()

@pytest.fixture
def db_session(db_engine):
    session = sessionmaker(bind=db_engine, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
