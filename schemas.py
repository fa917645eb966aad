"""
Request schemas for the In Minutes API.

Bodies use camelCase keys on the wire (``productId``, ``keepImages``);
fields are snake_case in Python. Stored records are plain dicts with the
same camelCase keys.
"""
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, NonNegativeFloat, NonNegativeInt, field_validator
from pydantic.alias_generators import to_camel
from pydantic.networks import validate_email


def _checked_email(value: str) -> str:
    _, normalized = validate_email(value)
    if normalized.lower() != value.strip().lower():
        raise ValueError("value is not a plain email address")
    return value.strip()


# validated like EmailStr but kept exactly as the client typed it,
# since logins and duplicate checks compare emails verbatim
Email = Annotated[str, AfterValidator(_checked_email)]
# whole amounts stay ints in the stored JSON
Amount = Union[NonNegativeInt, NonNegativeFloat]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ----------------------- Products -----------------------
class ProductData(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    name: str = Field(..., min_length=1)
    description: str = ""
    price: Amount
    qty: int = Field(..., ge=0)


class ProductUpdateData(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Amount] = None
    qty: Optional[int] = Field(None, ge=0)
    keep_images: List[str] = []


# ----------------------- Accounts -----------------------
class LoginBody(BaseModel):
    email: str
    password: str


class AdminCreateBody(BaseModel):
    name: str = Field(..., min_length=1)
    email: Email
    password: str = Field(..., min_length=1)
    role: Literal["head", "admin"] = "admin"


class AdminUpdateBody(BaseModel):
    name: Optional[str] = None
    email: Optional[Email] = None
    password: Optional[str] = None

    @field_validator("name", "email", "password", mode="before")
    @classmethod
    def blank_means_unchanged(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class UserRegisterBody(BaseModel):
    name: str = Field(..., min_length=1)
    phone: str = ""
    email: Email
    password: str = Field(..., min_length=1)


# ----------------------- Orders -----------------------
class OrderItem(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    product_id: int
    quantity: int = Field(..., gt=0)
    price: Amount


class OrderCreateBody(CamelModel):
    user_id: int
    items: List[OrderItem] = Field(..., min_length=1)
    payment_method: str
    address: Union[str, Dict[str, Any]]


class OrderStatusBody(BaseModel):
    status: str = Field(..., min_length=1)
