import logging
import socket
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Type

from fastapi import APIRouter, Body, Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ValidationError

import accounts
import catalog
import orders
from config import Settings, get_settings
from database import Store, open_backend
from errors import AppError, ValidationFailed
from logger import configure_logging
from schemas import (
    AdminCreateBody,
    AdminUpdateBody,
    LoginBody,
    OrderCreateBody,
    OrderStatusBody,
    ProductData,
    ProductUpdateData,
    UserRegisterBody,
)
from stats import compute_stats
from storage import MAX_IMAGES, ImageStorage

logger = logging.getLogger(__name__)

router = APIRouter()

SUCCESS = {"success": True}


# ----------------------- Utils -----------------------
def get_store(request: Request) -> Store:
    return request.app.state.store


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def parse_json_field(model: Type[BaseModel], raw: str) -> Any:
    try:
        return model.model_validate_json(raw)
    except ValidationError as e:
        raise ValidationFailed(f"Invalid product data: {e.errors()[0]['msg']}")


def store_images(request: Request, uploads: Optional[List[UploadFile]]) -> List[str]:
    uploads = [u for u in uploads or [] if u.filename]
    if len(uploads) > MAX_IMAGES:
        raise ValidationFailed(f"At most {MAX_IMAGES} images are allowed")
    images: ImageStorage = request.app.state.images
    urls = []
    for upload in uploads:
        filename = images.save(upload.file, upload.filename)
        urls.append(str(request.url_for("images", path=filename)))
    return urls


# ----------------------- Health -----------------------
@router.get("/")
def root():
    return {"message": "In Minutes API running"}


@router.get("/ping")
def ping():
    return {"status": "alive", "time": datetime.now(timezone.utc).isoformat()}


# ----------------------- Products -----------------------
@router.get("/products")
def list_products(store: Store = Depends(get_store)):
    return catalog.list_products(store)


@router.post("/products")
def create_product(
    request: Request,
    data: str = Form(...),
    images: Optional[List[UploadFile]] = File(None),
    store: Store = Depends(get_store),
):
    body = parse_json_field(ProductData, data)
    return catalog.create_product(store, body, store_images(request, images))


@router.put("/products/{product_id}")
def update_product(
    product_id: int,
    request: Request,
    data: str = Form(...),
    images: Optional[List[UploadFile]] = File(None),
    store: Store = Depends(get_store),
):
    body = parse_json_field(ProductUpdateData, data)
    # no uploads are written for a product that does not exist
    catalog.get_product(store, product_id)
    catalog.update_product(store, product_id, body, store_images(request, images))
    return SUCCESS


@router.delete("/products/{product_id}")
def delete_product(product_id: int, store: Store = Depends(get_store)):
    catalog.delete_product(store, product_id)
    return SUCCESS


# ----------------------- Admins -----------------------
@router.get("/admins")
def list_admins(store: Store = Depends(get_store)):
    return accounts.list_admins(store)


@router.post("/admins")
def create_admin(body: AdminCreateBody, store: Store = Depends(get_store)):
    return accounts.create_admin(store, body)


@router.post("/admins/login")
def login_admin(body: LoginBody, store: Store = Depends(get_store)):
    return accounts.login_admin(store, body.email, body.password)


@router.put("/admins/{admin_id}")
def update_admin(admin_id: str, body: AdminUpdateBody, store: Store = Depends(get_store)):
    accounts.update_admin(store, admin_id, body)
    return SUCCESS


@router.delete("/admins/{admin_id}")
def delete_admin(admin_id: str, store: Store = Depends(get_store)):
    accounts.delete_admin(store, admin_id)
    return SUCCESS


# ----------------------- Users -----------------------
@router.get("/users")
def list_users(store: Store = Depends(get_store)):
    return accounts.list_users(store)


@router.post("/users/register")
def register_user(body: UserRegisterBody, store: Store = Depends(get_store)):
    return accounts.register_user(store, body)


@router.post("/users/login")
def login_user(body: LoginBody, store: Store = Depends(get_store)):
    return accounts.login_user(store, body.email, body.password)


@router.get("/users/{user_id}")
def get_user(user_id: int, store: Store = Depends(get_store)):
    return accounts.get_user(store, user_id)


@router.post("/users/{user_id}/address")
def add_address(user_id: int, fields: Dict[str, Any] = Body(...), store: Store = Depends(get_store)):
    return accounts.add_address(store, user_id, fields)


@router.delete("/users/{user_id}/address/{address_id}")
def remove_address(user_id: int, address_id: int, store: Store = Depends(get_store)):
    accounts.remove_address(store, user_id, address_id)
    return SUCCESS


# ----------------------- Orders -----------------------
@router.get("/orders")
def list_orders(store: Store = Depends(get_store)):
    return orders.list_orders(store)


@router.get("/orders/user/{user_id}")
def list_user_orders(user_id: int, store: Store = Depends(get_store)):
    return orders.orders_for_user(store, user_id)


@router.post("/orders")
def place_order(
    body: OrderCreateBody,
    store: Store = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
):
    return orders.place_order(
        store,
        body,
        delivery_fee=settings.delivery_fee,
        server_side_pricing=settings.server_side_pricing,
    )


@router.put("/orders/{order_id}/status")
def set_order_status(order_id: str, body: OrderStatusBody, store: Store = Depends(get_store)):
    orders.set_status(store, order_id, body.status)
    return SUCCESS


@router.put("/orders/{order_id}/seen")
def mark_order_seen(order_id: str, store: Store = Depends(get_store)):
    orders.mark_seen(store, order_id)
    return SUCCESS


# ----------------------- Stats -----------------------
@router.get("/stats")
def get_stats(store: Store = Depends(get_store)):
    return compute_stats(store)


# ----------------------- App -----------------------
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Validation failed", "details": jsonable_encoder(exc.errors())},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    log_startup(app.state.store, app.state.settings.port)
    yield


def create_app(store: Optional[Store] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.debug)
    if store is None:
        store = Store(open_backend(settings))

    app = FastAPI(title="In Minutes Backend", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.images = ImageStorage(settings.upload_dir)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type"],
    )
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.include_router(router)
    app.mount("/images", StaticFiles(directory=settings.upload_dir), name="images")
    return app


def get_local_ip() -> str:
    try:
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        s.connect(("8.8.8.8", 80))
        local_ip = s.getsockname()[0]
        s.close()
        return local_ip
    except OSError:
        return "127.0.0.1"


def log_startup(store: Store, port: int) -> None:
    logger.info("In Minutes backend running")
    logger.info("  Local:   http://localhost:%s", port)
    logger.info("  Network: http://%s:%s", get_local_ip(), port)
    logger.info("  Data saved to: %s", store.backend.describe())
    logger.info(
        "  Products: %d | Orders: %d | Users: %d",
        store.products.count(),
        store.orders.count(),
        store.users.count(),
    )


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)
