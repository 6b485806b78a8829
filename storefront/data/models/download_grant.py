# storefront/data/models/download_grant.py
from sqlalchemy import Column, ForeignKey, String, DateTime, Boolean
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import uuid

from storefront.data.database import Base


class DownloadGrantModel(Base):
    __tablename__ = "download_grants"

    id = Column(String(36), primary_key=True, default=lambda: uuid.uuid4().hex)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    design_id = Column(String(100), nullable=False)
    format = Column(String(16), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    consumed = Column(Boolean, nullable=False, default=False)
    consumed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    order = relationship("OrderModel", back_populates="grants")
