import os
import tempfile

# main builds a module-level app on import; keep it off the real db.json
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="inminutes-uploads-"))

import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import MemoryBackend, Store
from main import create_app


@pytest.fixture
def store():
    return Store(MemoryBackend())


@pytest.fixture
def settings(tmp_path):
    return Settings(storage_backend="memory", upload_dir=str(tmp_path / "uploads"))


@pytest.fixture
def client(store, settings):
    return TestClient(create_app(store=store, settings=settings))


@pytest.fixture
def add_product(store):
    def _add(name, qty, price=100.0, **extra):
        return store.products.insert(
            {"name": name, "description": "", "price": price, "qty": qty, "inStock": qty > 0, "images": [], **extra}
        )

    return _add


@pytest.fixture
def add_user(store):
    def _add(name="Asha", email="asha@inminutes.in", phone="9800000000", password="pw"):
        return store.users.insert(
            {"name": name, "phone": phone, "email": email, "password": password, "addresses": [], "createdAt": "2026-01-01T00:00:00+00:00"}
        )

    return _add
