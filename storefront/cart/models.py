from dataclasses import dataclass
from typing import Optional, Union
from pydantic import BaseModel, Field
from storefront.cart.constants import MAX_ITEM_QTY


@dataclass(frozen=True)
class AnonymousCart:
    session_id: str


@dataclass(frozen=True)
class OwnedCart:
    user_id: int


# a cart is keyed by exactly one of these
CartIdentity = Union[AnonymousCart, OwnedCart]


class CartItemInput(BaseModel):
    product_id: int
    quantity: int = Field(default=1, ge=1, le=MAX_ITEM_QTY)


class CartItemUpdate(BaseModel):
    quantity: int = Field(ge=0, le=MAX_ITEM_QTY)


class CartMergeInput(BaseModel):
    guest_session_id: Optional[str] = Field(default=None, min_length=1, max_length=128)
