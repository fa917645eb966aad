"""
Persistence for the whole application state.

The state is one blob with the top-level keys ``products``, ``orders``,
``users``, ``admins`` and ``orderCounter``. A backend only loads and saves
that blob; the ``Store`` owns the in-memory copy, which stays the source
of truth for the life of the process even when a save fails.
"""
import copy
import json
import logging
import os
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from config import Settings
from repositories import Repository, admin_id, next_millis

logger = logging.getLogger(__name__)

HEAD_ADMIN_ID = "head_001"
FIRST_ORDER_NUMBER = 1001
STATE_DOC_ID = "state"
COLLECTIONS = ("products", "orders", "users", "admins")


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def default_state() -> Dict[str, Any]:
    return {
        "products": [],
        "orders": [],
        "users": [],
        "admins": [
            {
                "id": HEAD_ADMIN_ID,
                "name": "Head Admin",
                "email": "head@inminutes.in",
                "password": "head123",
                "role": "head",
                "createdAt": now_iso(),
            }
        ],
        "orderCounter": FIRST_ORDER_NUMBER,
    }


# ----------------------- Backends -----------------------
class MemoryBackend:
    """Keeps the last saved blob in process memory only."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._blob = copy.deepcopy(initial)

    def describe(self) -> str:
        return "memory (not persisted)"

    def load(self) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._blob)

    def save(self, blob: Dict[str, Any]) -> None:
        self._blob = copy.deepcopy(blob)


class JsonFileBackend:
    def __init__(self, path: str):
        self.path = path

    def describe(self) -> str:
        return os.path.abspath(self.path)

    def load(self) -> Optional[Dict[str, Any]]:
        if not os.path.exists(self.path):
            return None
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def save(self, blob: Dict[str, Any]) -> None:
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(blob, f, indent=2)
        os.replace(tmp_path, self.path)


class MongoBackend:
    """Stores the blob as a single document in the ``state`` collection."""

    def __init__(self, url: Optional[str] = None, name: str = "inminutes", collection=None):
        if collection is None:
            collection = MongoClient(url)[name]["state"]
        self.collection = collection

    def describe(self) -> str:
        return f"mongodb collection {self.collection.full_name}"

    def load(self) -> Optional[Dict[str, Any]]:
        doc = self.collection.find_one({"_id": STATE_DOC_ID})
        if not doc:
            return None
        doc = dict(doc)
        doc.pop("_id", None)
        return doc

    def save(self, blob: Dict[str, Any]) -> None:
        self.collection.replace_one({"_id": STATE_DOC_ID}, {"_id": STATE_DOC_ID, **blob}, upsert=True)


def open_backend(settings: Settings):
    if settings.storage_backend == "memory":
        return MemoryBackend()
    if settings.storage_backend == "file":
        return JsonFileBackend(settings.db_file)
    if settings.storage_backend == "mongo":
        if not settings.database_url:
            raise ValueError("DATABASE_URL must be set for the mongo storage backend")
        return MongoBackend(settings.database_url, settings.database_name)
    raise ValueError(f"Unknown storage backend: {settings.storage_backend!r}")


# ----------------------- State container -----------------------
class Store:
    """Repositories plus the order counter, loaded from and saved to a backend.

    Every mutation runs under ``lock`` so that read-then-write sequences
    such as the stock check in order placement are serialized.
    """

    def __init__(self, backend):
        self.backend = backend
        self.lock = threading.RLock()
        state = self._load()
        self.products = Repository(state["products"], next_millis)
        self.orders = Repository(state["orders"])
        self.users = Repository(state["users"], next_millis)
        self.admins = Repository(state["admins"], admin_id)
        self.order_counter = int(state["orderCounter"])

    def _load(self) -> Dict[str, Any]:
        state = default_state()
        try:
            data = self.backend.load()
        except (OSError, ValueError, PyMongoError) as e:
            logger.warning("DB load error, using defaults: %s", e)
            data = None
        if data:
            # snapshot keys replace the defaults wholesale
            state.update(data)
        return state

    def next_order_id(self) -> str:
        with self.lock:
            order_id = f"#ORD-{self.order_counter}"
            self.order_counter += 1
            return order_id

    def snapshot(self) -> Dict[str, Any]:
        with self.lock:
            blob = {name: getattr(self, name).all() for name in COLLECTIONS}
            blob["orderCounter"] = self.order_counter
            return blob

    def save(self) -> bool:
        """Best-effort save; failures are logged and the in-memory state kept."""
        try:
            self.backend.save(self.snapshot())
        except (OSError, TypeError, ValueError, PyMongoError):
            logger.exception("DB save error")
            return False
        return True
