# tests/conftest.py

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from crudbasico.config import Settings
from main import create_app

from .fakes import InMemoryTaskStore


@pytest.fixture()
def settings() -> Settings:
    return Settings(project_id="test-project", dataset_id="crudbasico_test", table_id="tasks")


@pytest.fixture()
def store() -> InMemoryTaskStore:
    return InMemoryTaskStore()


@pytest.fixture()
def client(settings: Settings, store: InMemoryTaskStore):
    app = create_app(settings=settings, store=store)
    with TestClient(app) as test_client:
        yield test_client
