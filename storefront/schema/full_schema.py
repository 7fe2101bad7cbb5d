import enum
from uuid import UUID
from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, ForeignKey, Integer, Text, UniqueConstraint, BigInteger, Uuid
from uuid6 import uuid7
from datetime import datetime
from typing import Optional
from sqlmodel import Column, SQLModel, Field, String
from storefront.common.utils import now


# Catalog row, owned by the catalog service. This core reads name/price/active flag and applies signed stock adjustments.
class Product(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(sa_column=Column(String(255), nullable=False, unique=True))
    price: int = Field(sa_column=Column(BigInteger, nullable=False))  # cents
    stock_qty: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,sa_column=Column(DateTime(timezone=True), nullable=False,default=now, onupdate=now))

    __table_args__ = (
        CheckConstraint("stock_qty >= 0", name="ck_product_stock_non_negative"),
    )


# a cart belongs to exactly one of: an anonymous session or a user
class Cart(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True, index=True, unique=True))
    session_id: Optional[str] = Field(default=None, sa_column=Column(String(128), nullable=True, index=True, unique=True))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,sa_column=Column(DateTime(timezone=True), nullable=False,default=now, onupdate=now))
    expires_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False, index=True))
    # last payment intent opened for this cart and the total it was opened for, in cents
    payment_intent_id: Optional[str] = Field(default=None, sa_column=Column(String(128), nullable=True))
    quoted_total: Optional[int] = Field(default=None, sa_column=Column(BigInteger, nullable=True))

    __table_args__ = (
        CheckConstraint("(user_id IS NULL) <> (session_id IS NULL)", name="ck_cart_single_owner"),
    )


class CartItem(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    cart_id: int = Field(sa_column=Column(ForeignKey("cart.id", ondelete="CASCADE"), nullable=False, index=True))
    product_id: int = Field(sa_column=Column(ForeignKey("product.id", ondelete="CASCADE"), nullable=False))
    quantity: int = Field(default=1, sa_column=Column(Integer, nullable=False, default=1))
    price_at_add: int = Field(sa_column=Column(BigInteger, nullable=False))  # cents, captured when the line was first added
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,sa_column=Column(DateTime(timezone=True), nullable=False,default=now, onupdate=now))

    __table_args__ = (
        UniqueConstraint("cart_id", "product_id", name="uq_cart_product"),
        CheckConstraint("quantity >= 1", name="ck_cart_item_quantity_positive"),
    )

# --------------------------------------------------------------------------------------------

class DiscountType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class PromoCode(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    code: str = Field(sa_column=Column(String(64), nullable=False, unique=True, index=True))
    discount_type: str = Field(sa_column=Column(String(16), nullable=False))
    # whole percentage points for percentage codes, cents for fixed codes
    discount_value: int = Field(sa_column=Column(BigInteger, nullable=False))
    min_order_value: Optional[int] = Field(default=None, sa_column=Column(BigInteger, nullable=True))
    max_uses: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True))
    usage_count: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    starts_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    expires_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))

    __table_args__ = (
        CheckConstraint("max_uses IS NULL OR usage_count <= max_uses", name="ck_promo_usage_within_cap"),
    )

# --------------------------------------------------------------------------------------------

class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# Orders are never deleted, after creation only status and the status timestamps change.
class Orders(SQLModel, table=True):

    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: UUID = Field(default_factory=uuid7, sa_column=Column(Uuid(as_uuid=True), unique=True, index=True, nullable=False))
    order_number: str = Field(sa_column=Column(String(32), unique=True, index=True, nullable=False))
    user_id: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True, index=True))
    email: str = Field(sa_column=Column(String(320), nullable=False))
    status: str = Field(default=OrderStatus.PENDING.value, sa_column=Column(String(16), nullable=False, index=True))
    currency: str = Field(default="usd", sa_column=Column(String(8), nullable=False))
    subtotal: int = Field(default=0, sa_column=Column(BigInteger, nullable=False))  # cents
    discount: int = Field(default=0, sa_column=Column(BigInteger, nullable=False))
    shipping: int = Field(default=0, sa_column=Column(BigInteger, nullable=False))
    tax: int = Field(default=0, sa_column=Column(BigInteger, nullable=False))
    total: int = Field(default=0, sa_column=Column(BigInteger, nullable=False))
    amount_charged: Optional[int] = Field(default=None, sa_column=Column(BigInteger, nullable=True))  # intent amount, when known
    shipping_address: dict = Field(sa_column=Column(JSON, nullable=False))
    billing_address: dict = Field(sa_column=Column(JSON, nullable=False))
    shipping_method: str = Field(sa_column=Column(String(32), nullable=False))
    payment_intent_id: str = Field(sa_column=Column(String(128), nullable=False, unique=True, index=True))
    promo_code: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True))
    notes: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    placed_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, index=True))
    processing_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    shipped_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    delivered_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    cancelled_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,sa_column=Column(DateTime(timezone=True), nullable=False,default=now, onupdate=now))


# OrderItem rows are snapshots, later catalog edits never reach them
class OrderItem(SQLModel, table=True):

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(sa_column=Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True))
    product_id: int = Field(sa_column=Column(Integer, ForeignKey("product.id"), nullable=False))
    product_name: str = Field(sa_column=Column(String(255), nullable=False))
    unit_price: int = Field(sa_column=Column(BigInteger, nullable=False))  # cents
    quantity: int = Field(sa_column=Column(Integer, nullable=False))
    line_total: int = Field(sa_column=Column(BigInteger, nullable=False))

    __table_args__ = (
        UniqueConstraint("order_id", "product_id", name="uq_order_product"),
    )
