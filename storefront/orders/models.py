from typing import Optional
from pydantic import BaseModel, EmailStr, Field


class AddressIn(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    address_line1: str = Field(min_length=1, max_length=255)
    address_line2: Optional[str] = Field(default=None, max_length=255)
    city: str = Field(min_length=1, max_length=100)
    state: str = Field(min_length=2, max_length=100)
    zip_code: str = Field(pattern=r"^\d{5}(-\d{4})?$")
    country: str = Field(default="US", min_length=2, max_length=2)
    phone: Optional[str] = Field(default=None, max_length=32)


class ConfirmOrderIn(BaseModel):
    payment_intent_id: str = Field(min_length=1, max_length=128)
    shipping_method: str
    shipping_address: AddressIn
    billing_address: Optional[AddressIn] = None
    email: Optional[EmailStr] = None
    promo_code: Optional[str] = Field(default=None, max_length=64)
    notes: Optional[str] = Field(default=None, max_length=500)
