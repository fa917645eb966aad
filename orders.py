"""
Order placement and inventory adjustment.

``place_order`` validates every line item against current stock before
touching any product, then decrements stock, prices the order and stores
it with the next sequential order id. The whole sequence holds the store
lock, so two concurrent orders cannot both pass validation against the
same units of stock.

Line-item prices are taken from the request as sent by the client unless
``server_side_pricing`` is enabled, in which case each item is repriced
from the catalog before the subtotal is computed.
"""
import logging
from typing import Any, Dict, List

from database import Store, now_iso
from errors import InsufficientStock, NotFound, ProductNotFound
from schemas import OrderCreateBody

logger = logging.getLogger(__name__)

DEFAULT_DELIVERY_FEE = 25
CONFIRMED = "Confirmed"
DELIVERED = "Delivered"


def _check_stock(store: Store, items) -> Dict[int, Dict[str, Any]]:
    """Check each line in request order: existence first, then stock."""
    products = {}
    requested: Dict[int, int] = {}
    for item in items:
        product = store.products.find_by_id(item.product_id)
        if product is None:
            raise ProductNotFound(item.product_id)
        products[item.product_id] = product
        # repeated lines for one product draw on the same stock
        requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity
        if product.get("qty", 0) < requested[item.product_id]:
            raise InsufficientStock(product["id"], product.get("name", ""), product.get("qty", 0))
    return products


def _decrement(product: Dict[str, Any], quantity: int) -> Dict[str, Any]:
    qty = product.get("qty", 0) - quantity
    return {**product, "qty": qty, "inStock": qty > 0}


def place_order(
    store: Store,
    body: OrderCreateBody,
    delivery_fee: float = DEFAULT_DELIVERY_FEE,
    server_side_pricing: bool = False,
) -> Dict[str, Any]:
    with store.lock:
        try:
            products = _check_stock(store, body.items)
        except (ProductNotFound, InsufficientStock) as e:
            logger.info("Order for user %s rejected: %s", body.user_id, e.message)
            raise

        for item in body.items:
            store.products.update_where(
                lambda p, pid=item.product_id: p.get("id") == pid,
                lambda p, q=item.quantity: _decrement(p, q),
            )

        items: List[Dict[str, Any]] = []
        for item in body.items:
            line = item.model_dump(by_alias=True)
            if server_side_pricing:
                line["price"] = products[item.product_id].get("price", 0)
            items.append(line)
        subtotal = sum(i["price"] * i["quantity"] for i in items)

        user = store.users.find_by_id(body.user_id) or {}
        order = {
            "id": store.next_order_id(),
            "userId": body.user_id,
            "userName": user.get("name") or "Unknown",
            "userPhone": user.get("phone") or "",
            "userEmail": user.get("email") or "",
            "items": items,
            "subtotal": subtotal,
            "deliveryFee": delivery_fee,
            "total": subtotal + delivery_fee,
            "paymentMethod": body.payment_method,
            "address": body.address,
            "status": CONFIRMED,
            "createdAt": now_iso(),
            "isNew": True,
        }
        store.orders.insert(order)
        store.save()

    logger.info("Order %s placed by user %s: %d items, total %s", order["id"], order["userId"], len(items), order["total"])
    return dict(order)


def list_orders(store: Store) -> List[Dict[str, Any]]:
    return store.orders.all()


def orders_for_user(store: Store, user_id: int) -> List[Dict[str, Any]]:
    return store.orders.filter(lambda o: o.get("userId") == user_id)


def set_status(store: Store, order_id: str, status: str) -> None:
    with store.lock:
        if not store.orders.update_where(lambda o: o.get("id") == order_id, lambda o: {**o, "status": status}):
            raise NotFound("Order")
        store.save()
    logger.info("Order %s status set to %s", order_id, status)


def mark_seen(store: Store, order_id: str) -> None:
    with store.lock:
        if not store.orders.update_where(lambda o: o.get("id") == order_id, lambda o: {**o, "isNew": False}):
            raise NotFound("Order")
        store.save()
