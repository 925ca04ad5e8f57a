from __future__ import annotations

import random

import pytest
from fastapi.testclient import TestClient

import main
from prode_engine.bulk_results import BulkResultService
from prode_engine.collaborators import build_service
from prode_engine.models import Principal
from prode_engine.store import InMemoryStore, StaticAuth, create_mock_store


@pytest.fixture
def store() -> InMemoryStore:
    return create_mock_store()


@pytest.fixture
def admin_service(store: InMemoryStore) -> BulkResultService:
    return build_service(store, StaticAuth(Principal("admin", is_admin=True)), rng=random.Random(7))


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch) -> TestClient:
    monkeypatch.setattr(main, "store", create_mock_store())
    monkeypatch.setattr(main, "rng", random.Random(11))
    return TestClient(main.app)
