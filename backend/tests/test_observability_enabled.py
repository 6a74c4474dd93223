from __future__ import annotations

import os
import importlib
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.deps import get_db
from app.db.models.recommendation_record import RecommendationRecord
from app.db.models.survey import Survey
from app.db.models.user import User
from app.db.models.user_history import UserHistory
from app.observability import client as client_module


class _DummyTrace:
    def __init__(self, metadata=None, **kwargs):
        self.metadata = metadata or {}

    def update(self, metadata=None, **kwargs):
        if metadata:
            self.metadata = metadata

    def end(self):
        pass


class _DummyOpik:
    def __init__(self, *args, **kwargs):
        self.traces = []

    def trace(self, **kwargs):
        trace = _DummyTrace(metadata=kwargs.get("metadata"))
        self.traces.append(trace)
        return trace


@pytest.fixture()
def sqlite_override():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )

    @event.listens_for(engine, "connect")
    def set_fk(conn, record):  # pragma: no cover - sqlite setup
        cursor = conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    for model in (User, RecommendationRecord, UserHistory, Survey):
        model.__table__.create(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    return override_get_db


def test_app_traces_with_dummy_opik(monkeypatch, sqlite_override):
    monkeypatch.setenv("OPIK_ENABLED", "true")
    monkeypatch.setenv("OPIK_API_KEY", "test-key")

    import app.core.config as config_module
    import app.main as main_module

    importlib.reload(config_module)
    importlib.reload(client_module)
    monkeypatch.setattr(client_module, "Opik", _DummyOpik)
    client_module.reset_opik_client()
    reloaded_main = importlib.reload(main_module)
    reloaded_main.app.dependency_overrides[get_db] = sqlite_override

    try:
        with TestClient(reloaded_main.app) as test_client:
            assert test_client.get("/health").status_code == 200
            user_id = uuid4()
            assert test_client.post("/users", json={"user_id": str(user_id)}).status_code == 201
            resp = test_client.post(
                "/recommendations/resolve",
                json={
                    "user_id": str(user_id),
                    "program_type": "workout",
                    "payload": {"Monday": [{"name": "Push-up"}]},
                },
            )
            assert resp.status_code == 200
            assert resp.json()["origin"] == "explicit"

        opik = client_module.get_opik_client()
        assert isinstance(opik, _DummyOpik)
        trace_names = [trace.metadata.get("route") for trace in opik.traces]
        assert "/recommendations/resolve" in trace_names
    finally:
        reloaded_main.app.dependency_overrides.clear()
        monkeypatch.setenv("OPIK_ENABLED", "false")
        monkeypatch.delenv("OPIK_API_KEY", raising=False)
        importlib.reload(config_module)
        importlib.reload(client_module)
        client_module.reset_opik_client()
        importlib.reload(main_module)


@pytest.mark.skipif("OPIK_API_KEY" not in os.environ, reason="OPIK_API_KEY env var required for Opik tests")
def test_real_opik_client_initializes(monkeypatch):
    monkeypatch.setenv("OPIK_ENABLED", "true")
    monkeypatch.setenv("OPIK_PROJECT", "smart-healthcare-test")

    import app.core.config as config_module

    importlib.reload(config_module)
    importlib.reload(client_module)
    try:
        assert client_module.init_opik() is not None
    finally:
        monkeypatch.setenv("OPIK_ENABLED", "false")
        importlib.reload(config_module)
        importlib.reload(client_module)
