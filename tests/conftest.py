# tests/conftest.py
import os
import tempfile
from datetime import datetime, timezone

# settings are read at import time, so point them at a throwaway SQLite file first
_tmpdir = tempfile.mkdtemp(prefix="techtool-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_tmpdir, 'test.db')}"
os.environ["SUPABASE_URL"] = "https://example.supabase.co"
for _name in ("DISCORD_WEBHOOK_URL", "OPENAI_API_KEY", "TICKET_ID_SCAN_LIMIT", "TICKET_PREFIX"):
    os.environ.pop(_name, None)

import pytest
from fastapi.testclient import TestClient

from techtool.core.auth import Principal, get_current_user
from techtool.core.database import Base, SessionLocal, engine
from techtool.main import app
from techtool.models import asset, chat, project, ticket, user  # noqa: F401
from techtool.models.ticket import Ticket
from techtool.models.user import User

ALICE = Principal(user_id="auth-alice", email="alice@example.com", name="Alice", image=None)


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def alice(db):
    row = User(id="u-alice", name="Alice", email="Alice@Example.com", role="admin", avatar_url="https://img/alice.png")
    db.add(row)
    db.commit()
    return row


@pytest.fixture
def client(alice):
    app.dependency_overrides[get_current_user] = lambda: ALICE
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def add_ticket(db):
    """Insert a ticket row directly, bypassing allocation."""
    def _add(display_id, created_at=None, **fields):
        row = Ticket(
            display_id=display_id,
            title=fields.pop("title", f"Ticket {display_id}"),
            created_at=created_at or datetime(2024, 1, 1, tzinfo=timezone.utc),
            **fields,
        )
        db.add(row)
        db.commit()
        return row
    return _add
