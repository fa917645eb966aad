import logging
from typing import Any, Dict, List

from database import Store
from errors import NotFound
from schemas import ProductData, ProductUpdateData

logger = logging.getLogger(__name__)

# keys the server owns; client copies are ignored
_RESERVED = ("id", "inStock", "images", "keepImages")


def _client_fields(data) -> Dict[str, Any]:
    fields = data.model_dump(by_alias=True, exclude_none=True)
    return {k: v for k, v in fields.items() if k not in _RESERVED}


def list_products(store: Store) -> List[Dict[str, Any]]:
    return store.products.all()


def get_product(store: Store, product_id: int) -> Dict[str, Any]:
    product = store.products.find_by_id(product_id)
    if product is None:
        raise NotFound("Product")
    return product


def create_product(store: Store, data: ProductData, image_urls: List[str]) -> Dict[str, Any]:
    fields = _client_fields(data)
    with store.lock:
        product = store.products.insert(
            {**fields, "inStock": data.qty > 0, "images": list(image_urls)}
        )
        store.save()
    logger.info("Product %s created: %s (qty %s)", product["id"], product["name"], product["qty"])
    return product


def update_product(store: Store, product_id: int, data: ProductUpdateData, image_urls: List[str]) -> None:
    fields = _client_fields(data)
    images = [*data.keep_images, *image_urls]

    def apply(p):
        updated = {**p, **fields, "images": images}
        updated["inStock"] = updated.get("qty", 0) > 0
        return updated

    with store.lock:
        if not store.products.update_where(lambda p: p.get("id") == product_id, apply):
            raise NotFound("Product")
        store.save()
    logger.info("Product %s updated", product_id)


def delete_product(store: Store, product_id: int) -> None:
    with store.lock:
        if not store.products.delete_where(lambda p: p.get("id") == product_id):
            raise NotFound("Product")
        store.save()
    logger.info("Product %s deleted", product_id)
