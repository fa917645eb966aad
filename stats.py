from typing import Any, Dict

from database import HEAD_ADMIN_ID, Store
from orders import DELIVERED


def compute_stats(store: Store) -> Dict[str, Any]:
    """Counts per collection and revenue from delivered orders, recomputed per call."""
    with store.lock:
        admins = store.admins.filter(lambda a: a.get("id") != HEAD_ADMIN_ID)
        revenue = sum(o.get("total", 0) for o in store.orders.all() if o.get("status") == DELIVERED)
        return {
            "products": store.products.count(),
            "orders": store.orders.count(),
            "users": store.users.count(),
            "admins": len(admins),
            "revenue": revenue,
        }
