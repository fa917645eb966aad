import os
from dataclasses import dataclass
from typing import Optional, Union


def _flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")


def _amount(name: str, default: int) -> Union[int, float]:
    value = float(os.getenv(name, default))
    return int(value) if value.is_integer() else value


@dataclass(frozen=True)
class Settings:
    storage_backend: str = "file"
    db_file: str = "db.json"
    database_url: Optional[str] = None
    database_name: str = "inminutes"
    upload_dir: str = "uploads"
    delivery_fee: Union[int, float] = 25
    server_side_pricing: bool = False
    port: int = 4000
    debug: bool = False


def get_settings() -> Settings:
    """Read settings from the environment."""
    return Settings(
        storage_backend=os.getenv("STORAGE_BACKEND", "file").lower(),
        db_file=os.getenv("DB_FILE", "db.json"),
        database_url=os.getenv("DATABASE_URL"),
        database_name=os.getenv("DATABASE_NAME", "inminutes"),
        upload_dir=os.getenv("UPLOAD_DIR", "uploads"),
        delivery_fee=_amount("DELIVERY_FEE", 25),
        server_side_pricing=_flag("SERVER_SIDE_PRICING"),
        port=int(os.getenv("PORT", 4000)),
        debug=_flag("DEBUG"),
    )
