import threading

import pytest

import orders
from database import MemoryBackend, Store
from errors import InsufficientStock, NotFound, ProductNotFound
from schemas import OrderCreateBody


def order_body(user_id, *items, payment="COD", address="12 MG Road"):
    return OrderCreateBody.model_validate(
        {
            "userId": user_id,
            "items": [{"productId": pid, "quantity": q, "price": price} for pid, q, price in items],
            "paymentMethod": payment,
            "address": address,
        }
    )


def test_totals_reconcile_with_item_prices(store, add_product, add_user):
    milk = add_product("Milk", qty=10, price=30)
    bread = add_product("Bread", qty=5, price=45)
    user = add_user()

    order = orders.place_order(store, order_body(user["id"], (milk["id"], 2, 30), (bread["id"], 3, 45)))

    assert order["subtotal"] == 2 * 30 + 3 * 45
    assert order["deliveryFee"] == 25
    assert order["total"] == order["subtotal"] + order["deliveryFee"]
    assert order["status"] == "Confirmed"
    assert order["isNew"] is True
    assert order["paymentMethod"] == "COD"
    assert order["address"] == "12 MG Road"
    assert [i["productId"] for i in order["items"]] == [milk["id"], bread["id"]]


def test_configured_delivery_fee(store, add_product):
    p = add_product("Eggs", qty=4, price=8)
    order = orders.place_order(store, order_body(1, (p["id"], 1, 8)), delivery_fee=40)
    assert order["total"] == 48


def test_stock_decrement_and_in_stock_flag(store, add_product):
    rice = add_product("Rice", qty=5)
    salt = add_product("Salt", qty=3)

    orders.place_order(store, order_body(1, (rice["id"], 2, 100), (salt["id"], 3, 20)))

    assert store.products.find_by_id(rice["id"])["qty"] == 3
    assert store.products.find_by_id(rice["id"])["inStock"] is True
    assert store.products.find_by_id(salt["id"])["qty"] == 0
    assert store.products.find_by_id(salt["id"])["inStock"] is False


def test_insufficient_stock_on_later_item_mutates_nothing(store, add_product):
    tea = add_product("Tea", qty=10)
    sugar = add_product("Sugar", qty=2)

    with pytest.raises(InsufficientStock) as info:
        orders.place_order(store, order_body(1, (tea["id"], 4, 100), (sugar["id"], 3, 50)))

    assert info.value.product_id == sugar["id"]
    assert info.value.available == 2
    assert info.value.message == 'Only 2 units of "Sugar" available'
    assert store.products.find_by_id(tea["id"])["qty"] == 10
    assert store.products.find_by_id(sugar["id"])["qty"] == 2
    assert store.orders.count() == 0


def test_unknown_product_rejects_whole_order(store, add_product):
    tea = add_product("Tea", qty=10)

    with pytest.raises(ProductNotFound):
        orders.place_order(store, order_body(1, (tea["id"], 1, 100), (424242, 1, 10)))

    assert store.products.find_by_id(tea["id"])["qty"] == 10
    assert store.orders.count() == 0


def test_repeated_lines_share_the_same_stock(store, add_product):
    oil = add_product("Oil", qty=5)

    with pytest.raises(InsufficientStock):
        orders.place_order(store, order_body(1, (oil["id"], 3, 150), (oil["id"], 3, 150)))

    assert store.products.find_by_id(oil["id"])["qty"] == 5


def test_order_ids_are_sequential_and_failures_do_not_consume_them(store, add_product):
    p = add_product("Curd", qty=3)

    first = orders.place_order(store, order_body(1, (p["id"], 1, 40)))
    with pytest.raises(InsufficientStock):
        orders.place_order(store, order_body(1, (p["id"], 9, 40)))
    second = orders.place_order(store, order_body(1, (p["id"], 1, 40)))

    assert first["id"] == "#ORD-1001"
    assert second["id"] == "#ORD-1002"
    assert store.order_counter == 1003


def test_client_price_is_used_by_default(store, add_product):
    p = add_product("Paneer", qty=5, price=90)
    order = orders.place_order(store, order_body(1, (p["id"], 2, 1)))
    assert order["subtotal"] == 2


def test_server_side_pricing_reprices_items(store, add_product):
    p = add_product("Paneer", qty=5, price=90)
    order = orders.place_order(store, order_body(1, (p["id"], 2, 1)), server_side_pricing=True)
    assert order["items"][0]["price"] == 90
    assert order["subtotal"] == 180


def test_user_contact_is_snapshotted(store, add_product, add_user):
    p = add_product("Ghee", qty=2)
    user = add_user(name="Ravi", email="ravi@inminutes.in", phone="9811111111")

    order = orders.place_order(store, order_body(user["id"], (p["id"], 1, 500)))
    store.users.update_where(lambda u: u["id"] == user["id"], lambda u: {**u, "name": "Ravi K"})

    assert order["userName"] == "Ravi"
    assert order["userPhone"] == "9811111111"
    assert order["userEmail"] == "ravi@inminutes.in"
    assert store.orders.find_by_id(order["id"])["userName"] == "Ravi"


def test_missing_user_falls_back(store, add_product):
    p = add_product("Ghee", qty=2)
    order = orders.place_order(store, order_body(777, (p["id"], 1, 500)))
    assert (order["userName"], order["userPhone"], order["userEmail"]) == ("Unknown", "", "")
    assert order["userId"] == 777


def test_orders_for_user(store, add_product):
    p = add_product("Jam", qty=10)
    orders.place_order(store, order_body(1, (p["id"], 1, 10)))
    orders.place_order(store, order_body(2, (p["id"], 1, 10)))
    orders.place_order(store, order_body(1, (p["id"], 1, 10)))

    assert [o["id"] for o in orders.orders_for_user(store, 1)] == ["#ORD-1001", "#ORD-1003"]
    assert len(orders.list_orders(store)) == 3


def test_status_and_seen_updates(store, add_product):
    p = add_product("Jam", qty=10)
    order = orders.place_order(store, order_body(1, (p["id"], 1, 10)))

    orders.set_status(store, order["id"], "Out for delivery")
    orders.mark_seen(store, order["id"])

    stored = store.orders.find_by_id(order["id"])
    assert stored["status"] == "Out for delivery"
    assert stored["isNew"] is False
    assert stored["total"] == order["total"]


def test_status_update_for_unknown_order(store):
    with pytest.raises(NotFound):
        orders.set_status(store, "#ORD-9999", "Delivered")
    with pytest.raises(NotFound):
        orders.mark_seen(store, "#ORD-9999")


def test_concurrent_orders_never_oversell(store, add_product):
    p = add_product("Mangoes", qty=10)
    results = []

    def buy():
        try:
            orders.place_order(store, order_body(1, (p["id"], 1, 60)))
            results.append("ok")
        except InsufficientStock:
            results.append("rejected")

    threads = [threading.Thread(target=buy) for _ in range(25)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count("ok") == 10
    assert results.count("rejected") == 15
    assert store.products.find_by_id(p["id"])["qty"] == 0
    assert len({o["id"] for o in store.orders.all()}) == 10


class FailingBackend(MemoryBackend):
    def save(self, blob):
        raise OSError("read-only filesystem")


def test_order_and_stock_are_saved_together(store, add_product):
    p = add_product("Atta", qty=6, price=55)

    order = orders.place_order(store, order_body(1, (p["id"], 4, 55)))
    reloaded = Store(store.backend)

    assert reloaded.products.find_by_id(p["id"])["qty"] == 2
    assert reloaded.orders.find_by_id(order["id"]) == order
    assert reloaded.order_counter == 1002


def test_order_survives_a_failed_save():
    store = Store(FailingBackend())
    p = store.products.insert({"name": "Atta", "price": 55, "qty": 6, "inStock": True, "images": []})

    order = orders.place_order(store, order_body(1, (p["id"], 1, 55)))

    assert order["id"] == "#ORD-1001"
    assert store.orders.find_by_id("#ORD-1001") is not None
    assert store.products.find_by_id(p["id"])["qty"] == 5
    assert store.order_counter == 1002


def test_lines_are_checked_in_request_order(store, add_product):
    short = add_product("Honey", qty=1)

    with pytest.raises(InsufficientStock):
        orders.place_order(store, order_body(1, (short["id"], 2, 200), (424242, 1, 10)))
    with pytest.raises(ProductNotFound):
        orders.place_order(store, order_body(1, (424242, 1, 10), (short["id"], 2, 200)))


def test_whole_amounts_stay_integers(store, add_product):
    p = add_product("Butter", qty=3, price=52)

    order = orders.place_order(store, order_body(1, (p["id"], 2, 52)))

    assert order["subtotal"] == 104 and isinstance(order["subtotal"], int)
    assert order["total"] == 129 and isinstance(order["total"], int)
