import os, tempfile

# keep the analyzer on its offline fallback regardless of any local .env
os.environ["OPENAI_API_KEY"] = ""
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from main import app
from db import Base, get_db
from rate_limit import InMemoryRateLimiter, get_rate_limiter
from security import verify_admin

HDR = {"X-API-Key": "test-key"}


@pytest.fixture(scope="session")
def tmp_db_path():
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    return path

@pytest.fixture(scope="session")
def test_engine(tmp_db_path):
    url = f"sqlite:///{tmp_db_path}"
    engine = create_engine(url, connect_args={"check_same_thread": False})

    # SQLite force foreign key constraints
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    return engine

@pytest.fixture(scope="session")
def TestingSessionLocal(test_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

@pytest.fixture(scope="session", autouse=True)
def override_di(TestingSessionLocal):
    def _get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()
    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[verify_admin] = lambda: None

@pytest.fixture(autouse=True)
def limiter():
    # fresh counters per test so one test's submissions never throttle another
    lim = InMemoryRateLimiter(max_per_window=5, window_seconds=3600)
    app.dependency_overrides[get_rate_limiter] = lambda: lim
    yield lim
    app.dependency_overrides.pop(get_rate_limiter, None)

@pytest.fixture
def client():
    return TestClient(app)

@pytest.fixture
def make_survey(client):
    def _make(published=True, questions=None, title="Customer Feedback"):
        if questions is None:
            questions = [
                {"id": "q1", "type": "open_text", "title": "How was the service?"},
                {"id": "q2", "type": "multiple_choice", "title": "Which features do you use?",
                 "options": ["Reports", "Builder", "Export"]},
                {"id": "q3", "type": "single_choice", "title": "Would you recommend us?",
                 "options": ["Yes", "No"]},
            ]
        r = client.post("/admin/surveys", json={
            "title": title,
            "questions": questions,
            "is_published": published,
        }, headers=HDR)
        assert r.status_code == 200, r.text
        return r.json()["id"]
    return _make
