# storefront/data/models/order.py
from sqlalchemy import Column, String, DateTime, Numeric
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import uuid

from storefront.data.database import Base


def _now():
    return datetime.now(timezone.utc)


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=lambda: uuid.uuid4().hex)
    user_id = Column(String(64), nullable=False, index=True, default="guest")
    status = Column(String(16), nullable=False, default="pending")  # pending, paid, fulfilled, cancelled
    total = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(String(32), nullable=False)
    # at most one order per captured payment
    payment_transaction_id = Column(String(64), nullable=True, unique=True)
    external_order_id = Column(String(64), nullable=True, index=True)
    recipient = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.position",
    )
    grants = relationship(
        "DownloadGrantModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="DownloadGrantModel.created_at",
    )
