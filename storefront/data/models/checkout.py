# storefront/data/models/checkout.py
from sqlalchemy import Column, String, DateTime, Numeric, JSON
from datetime import datetime, timezone

from storefront.data.database import Base


class CheckoutModel(Base):
    """
    Processor order created from a cart, waiting for capture.
    items is the cart snapshot the processor was asked to charge.
    """

    __tablename__ = "checkouts"

    external_order_id = Column(String(64), primary_key=True)
    session_id = Column(String(128), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, default="guest")
    recipient = Column(String(255), nullable=True)
    items = Column(JSON, nullable=False)
    total = Column(Numeric(10, 2), nullable=False)
    status = Column(String(16), nullable=False, default="open")  # open, pending, captured, denied, expired
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
