import json
import os
from concurrent.futures import Executor, Future

# Settings are read once at import; keep the suite away from a real database.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("FB_APP_SECRET", "test-app-secret")
os.environ.setdefault("FB_VERIFY_TOKEN", "test-verify-token")
os.environ.setdefault("ADMIN_TOKEN", "test-admin-token")
os.environ.setdefault("REDIS_URL", "")
os.environ.setdefault("AUTO_CREATE_SCHEMA", "false")

import pytest  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from inbox_api.database import build_engine, init_db  # noqa: E402
from inbox_api.repositories import SqlStore  # noqa: E402
from inbox_api.services.ports import StoreError  # noqa: E402

APP_SECRET = "test-app-secret"
PAGE_ID = "1000"


class InlineExecutor(Executor):
    """Runs submitted work immediately in the calling thread."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future


class FakeDedup:
    def __init__(self):
        self.marked = {}
        self.checked = []
        self.fail_check = False
        self.fail_mark = False

    def is_duplicate(self, event_id):
        self.checked.append(event_id)
        if self.fail_check:
            raise StoreError("redis unavailable")
        return event_id in self.marked

    def mark_processed(self, event_id, ttl_seconds):
        if self.fail_mark:
            raise StoreError("redis unavailable")
        self.marked[event_id] = ttl_seconds


def text_event(sender_id="psid-1", mid="m_1", text="hello", page_id=PAGE_ID):
    return {
        "sender": {"id": sender_id},
        "recipient": {"id": page_id},
        "timestamp": 1700000000000,
        "message": {"mid": mid, "text": text},
    }


def envelope(*events, page_id=PAGE_ID):
    return {
        "object": "page",
        "entry": [{"id": page_id, "time": 1700000000000, "messaging": list(events)}],
    }


def encode(payload) -> bytes:
    return json.dumps(payload).encode("utf-8")


@pytest.fixture
def session_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'inbox.db'}")
    init_db(bind=engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    yield factory
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return SqlStore(session_factory)


@pytest.fixture
def count_rows(session_factory):
    def _count(model):
        db = session_factory()
        try:
            return db.query(model).count()
        finally:
            db.close()

    return _count


@pytest.fixture
def dedup():
    return FakeDedup()


@pytest.fixture
def inline_executor():
    return InlineExecutor()
