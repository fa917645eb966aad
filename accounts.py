"""
Admin and user accounts.

Credentials are compared as stored plaintext, exactly like the data the
clients already hold; nothing here issues sessions or tokens. Every record
leaving this module goes through ``safe_record``.
"""
import logging
from typing import Any, Dict, List, Optional

from database import HEAD_ADMIN_ID, Store, now_iso
from errors import AuthFailed, Conflict, Forbidden, NotFound
from repositories import Repository, next_millis
from schemas import AdminCreateBody, AdminUpdateBody, UserRegisterBody

logger = logging.getLogger(__name__)


def safe_record(record: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if record is None:
        return None
    return {k: v for k, v in record.items() if k != "password"}


def _login(repo: Repository, email: str, password: str, message: str) -> Dict[str, Any]:
    account = repo.find(lambda a: a.get("email") == email and a.get("password") == password)
    if account is None:
        raise AuthFailed(message)
    return safe_record(account)


# ----------------------- Admins -----------------------
def list_admins(store: Store) -> List[Dict[str, Any]]:
    return [safe_record(a) for a in store.admins.all()]


def create_admin(store: Store, body: AdminCreateBody) -> Dict[str, Any]:
    with store.lock:
        if store.admins.find(lambda a: a.get("email") == body.email):
            raise Conflict("Email already exists")
        admin = store.admins.insert(
            {
                "name": body.name,
                "email": body.email,
                "password": body.password,
                "role": body.role,
                "createdAt": now_iso(),
            }
        )
        store.save()
    logger.info("Admin %s created (%s)", admin["id"], admin["role"])
    return safe_record(admin)


def update_admin(store: Store, admin_id: str, body: AdminUpdateBody) -> None:
    changes = body.model_dump(exclude_none=True)
    with store.lock:
        if store.admins.find_by_id(admin_id) is None:
            raise NotFound("Admin")
        email = changes.get("email")
        if email and store.admins.find(lambda a: a.get("email") == email and a.get("id") != admin_id):
            raise Conflict("Email already exists")
        store.admins.update_where(lambda a: a.get("id") == admin_id, lambda a: {**a, **changes})
        store.save()
    logger.info("Admin %s updated: %s", admin_id, ", ".join(sorted(changes)) or "no changes")


def delete_admin(store: Store, admin_id: str) -> None:
    if admin_id == HEAD_ADMIN_ID:
        raise Forbidden("Cannot delete head admin")
    with store.lock:
        if not store.admins.delete_where(lambda a: a.get("id") == admin_id):
            raise NotFound("Admin")
        store.save()
    logger.info("Admin %s deleted", admin_id)


def login_admin(store: Store, email: str, password: str) -> Dict[str, Any]:
    return _login(store.admins, email, password, "Invalid credentials")


# ----------------------- Users -----------------------
def list_users(store: Store) -> List[Dict[str, Any]]:
    return [safe_record(u) for u in store.users.all()]


def get_user(store: Store, user_id: int) -> Dict[str, Any]:
    user = store.users.find_by_id(user_id)
    if user is None:
        raise NotFound("User")
    return safe_record(user)


def register_user(store: Store, body: UserRegisterBody) -> Dict[str, Any]:
    with store.lock:
        if store.users.find(lambda u: u.get("email") == body.email):
            raise Conflict("Email already registered")
        user = store.users.insert(
            {
                "name": body.name,
                "phone": body.phone,
                "email": body.email,
                "password": body.password,
                "addresses": [],
                "createdAt": now_iso(),
            }
        )
        store.save()
    logger.info("User %s registered", user["id"])
    return safe_record(user)


def login_user(store: Store, email: str, password: str) -> Dict[str, Any]:
    return _login(store.users, email, password, "Invalid email or password")


def add_address(store: Store, user_id: int, fields: Dict[str, Any]) -> Dict[str, Any]:
    address = {**{k: v for k, v in fields.items() if k != "id"}, "id": next_millis()}
    with store.lock:
        updated = store.users.update_where(
            lambda u: u.get("id") == user_id,
            lambda u: {**u, "addresses": [*u.get("addresses", []), address]},
        )
        if not updated:
            raise NotFound("User")
        store.save()
        return safe_record(store.users.find_by_id(user_id))


def remove_address(store: Store, user_id: int, address_id: int) -> None:
    with store.lock:
        updated = store.users.update_where(
            lambda u: u.get("id") == user_id,
            lambda u: {**u, "addresses": [a for a in u.get("addresses", []) if a.get("id") != address_id]},
        )
        if not updated:
            raise NotFound("User")
        store.save()
