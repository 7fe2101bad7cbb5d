from typing import Optional
from pydantic import BaseModel, Field
from storefront.orders.models import AddressIn


class ShippingRatesIn(BaseModel):
    address: Optional[AddressIn] = None


class ApplyPromoIn(BaseModel):
    code: str = Field(min_length=1, max_length=64)


class CreatePaymentIn(BaseModel):
    shipping_method: str
    promo_code: Optional[str] = Field(default=None, max_length=64)
