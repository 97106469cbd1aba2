"""Root-level pytest fixtures for all tests.

Provides shared fixtures:
- Database fixtures (in-memory and file-based SQLite)
- Isolation of the user data directory and config search path
- Small builders for shipments with history
"""

import os
from collections.abc import Generator

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from shiptrack.db.connection import _set_sqlite_pragma
from shiptrack.db.models import Base, Shipment, StatusUpdate


# ============================================================================
# Environment isolation
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep tests away from the real data dir, config files and DATABASE_URL."""
    monkeypatch.setenv("SHIPTRACK_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("SHIPTRACK_DB_PATH", raising=False)
    for key in list(os.environ):
        if key.startswith("SHIPTRACK_") and key != "SHIPTRACK_DATA_DIR":
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """In-memory SQLite session with foreign keys enforced."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(engine, "connect", _set_sqlite_pragma)
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def db_url(tmp_path) -> str:
    """URL of a file-based SQLite database for CLI tests."""
    return f"sqlite:///{tmp_path / 'shiptrack-test.db'}"


# ============================================================================
# Builders
# ============================================================================


def make_shipment(
    db: Session,
    order_id: str,
    tracking_id: str,
    history: list[tuple[str, str]] | None = None,
    is_published: bool = True,
    **fields,
) -> Shipment:
    """Insert a shipment with ``(status, timestamp)`` history rows 1..N."""
    shipment = Shipment(
        order_id=order_id,
        tracking_id=tracking_id,
        is_published=is_published,
        **fields,
    )
    db.add(shipment)
    db.flush()
    for ordinal, (status, timestamp) in enumerate(history or [], start=1):
        db.add(
            StatusUpdate(
                shipment_id=shipment.id,
                order_status=status,
                details=f"event {ordinal}",
                timestamp=timestamp,
                status_update_ord=ordinal,
            )
        )
        shipment.order_status = status
    db.commit()
    return shipment


@pytest.fixture
def shipment_factory(db):
    """Callable wrapper around make_shipment bound to the test session."""

    def _factory(order_id: str, tracking_id: str, **kwargs) -> Shipment:
        return make_shipment(db, order_id, tracking_id, **kwargs)

    return _factory
