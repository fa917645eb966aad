"""
Entity repositories.

Each repository wraps one collection of the state blob (a list of plain
dicts, as persisted). Lookups are linear scans; the collections are small.
"""
import threading
import time
from typing import Any, Callable, Dict, List, Optional

Record = Dict[str, Any]
Predicate = Callable[[Record], bool]


class MillisClock:
    """Millisecond timestamps that never repeat within the process."""

    def __init__(self):
        self._last = 0
        self._lock = threading.Lock()

    def __call__(self) -> int:
        with self._lock:
            now = int(time.time() * 1000)
            self._last = max(now, self._last + 1)
            return self._last


next_millis = MillisClock()


def admin_id() -> str:
    return f"adm_{next_millis()}"


class Repository:
    def __init__(self, records: List[Record], id_factory: Optional[Callable[[], Any]] = None):
        self._records = records
        self._id_factory = id_factory

    def insert(self, record: Record) -> Record:
        if record.get("id") is None:
            if self._id_factory is None:
                raise ValueError("record has no id and repository has no id factory")
            record = {"id": self._id_factory(), **{k: v for k, v in record.items() if k != "id"}}
        self._records.append(record)
        return record

    def all(self) -> List[Record]:
        return list(self._records)

    def count(self) -> int:
        return len(self._records)

    def find_by_id(self, record_id: Any) -> Optional[Record]:
        return self.find(lambda r: r.get("id") == record_id)

    def find(self, predicate: Predicate) -> Optional[Record]:
        for record in self._records:
            if predicate(record):
                return record
        return None

    def filter(self, predicate: Predicate) -> List[Record]:
        return [r for r in self._records if predicate(r)]

    def update_where(self, predicate: Predicate, updater: Callable[[Record], Record]) -> int:
        """Replace every matching record with ``updater(record)``."""
        count = 0
        for i, record in enumerate(self._records):
            if predicate(record):
                self._records[i] = updater(record)
                count += 1
        return count

    def delete_where(self, predicate: Predicate) -> int:
        before = len(self._records)
        self._records[:] = [r for r in self._records if not predicate(r)]
        return before - len(self._records)
