# storefront/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from typing import List, Literal
from decimal import Decimal
from datetime import datetime


ShapeName = Literal["GUITAR", "PIANO", "CASSETTE"]
OrderStatus = Literal["pending", "paid", "fulfilled", "cancelled"]


class Design(BaseModel):
    """Catalog entry, immutable after load."""

    id: str
    artist: str
    song: str
    shape: ShapeName
    price: Decimal
    formats: frozenset[str]
    asset_paths: dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


class DesignOut(BaseModel):
    """Public view of a design (no asset locations)."""

    id: str
    artist: str
    song: str
    shape: ShapeName
    price: Decimal
    formats: List[str]


class ItemIn(BaseModel):
    """Body for adding a line to the cart."""

    design_id: str = Field(..., alias="designId")
    format: str = Field(..., min_length=1, max_length=16)
    price: Decimal = Field(..., ge=0, description="Unit price")
    quantity: int = Field(1)

    model_config = ConfigDict(populate_by_name=True)


class ItemKeyIn(BaseModel):
    """Identifies one cart line: (designId, format)."""

    design_id: str = Field(..., alias="designId")
    format: str = Field(..., min_length=1, max_length=16)

    model_config = ConfigDict(populate_by_name=True)


class QuantityIn(ItemKeyIn):
    quantity: int


class CartItemOut(BaseModel):
    design_id: str
    format: str
    unit_price: Decimal
    quantity: int
    line_total: Decimal

    model_config = ConfigDict(from_attributes=True)


class CartOut(BaseModel):
    session_id: str
    items: List[CartItemOut]
    total: Decimal
    item_count: int

    model_config = ConfigDict(from_attributes=True)


class ExternalOrderOut(BaseModel):
    """What the client needs to send the buyer to the processor."""

    external_order_id: str
    status: str
    approve_url: str | None = None
    total: Decimal
    currency: str


class CaptureIn(BaseModel):
    external_order_id: str = Field(..., alias="externalOrderId", min_length=1, max_length=64)

    model_config = ConfigDict(populate_by_name=True)


class OrderItemOut(BaseModel):
    design_id: str
    format: str
    unit_price: Decimal
    quantity: int

    model_config = ConfigDict(from_attributes=True)


class OrderOut(BaseModel):
    id: str
    user_id: str
    items: List[OrderItemOut]
    total: Decimal
    status: OrderStatus
    payment_method: str
    payment_transaction_id: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DownloadGrantOut(BaseModel):
    id: str
    order_id: str
    design_id: str
    format: str
    expires_at: datetime
    consumed: bool
    download_url: str

    model_config = ConfigDict(from_attributes=True)


class CheckoutOut(BaseModel):
    """Result of a successful capture."""

    order: OrderOut
    grants: List[DownloadGrantOut]
    fulfilled: bool
