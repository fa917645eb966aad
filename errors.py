"""
Error taxonomy for the API.

Every error carries the HTTP status it is rendered with; the handler in
main turns it into ``{"error": message}``.
"""
from typing import Any


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(AppError):
    status_code = 400


class NotFound(AppError):
    status_code = 404

    def __init__(self, entity: str = "Resource"):
        super().__init__(f"{entity} not found")


class Conflict(AppError):
    status_code = 400


class ProductNotFound(AppError):
    status_code = 400

    def __init__(self, product_id: Any):
        super().__init__("Product not found")
        self.product_id = product_id


class InsufficientStock(AppError):
    status_code = 400

    def __init__(self, product_id: Any, name: str, available: int):
        super().__init__(f'Only {available} units of "{name}" available')
        self.product_id = product_id
        self.available = available


class AuthFailed(AppError):
    status_code = 401


class Forbidden(AppError):
    status_code = 403
