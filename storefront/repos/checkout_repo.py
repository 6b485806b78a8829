# storefront/repos/checkout_repo.py
from datetime import datetime
from typing import List

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storefront.data.models.checkout import CheckoutModel


class CheckoutRepo:
    def __init__(self, db: Session):
        self.db = db

    def create(self, checkout: CheckoutModel) -> CheckoutModel:
        self.db.add(checkout)
        self.db.commit()
        self.db.refresh(checkout)
        return checkout

    def get(self, external_order_id: str) -> CheckoutModel | None:
        return self.db.get(CheckoutModel, external_order_id)

    def mark(self, external_order_id: str, status: str) -> None:
        self.db.execute(
            update(CheckoutModel)
            .where(CheckoutModel.external_order_id == external_order_id)
            .values(status=status)
        )
        self.db.commit()

    def list_open_older_than(self, cutoff: datetime) -> List[CheckoutModel]:
        return list(
            self.db.execute(
                select(CheckoutModel).where(
                    CheckoutModel.status == "open",
                    CheckoutModel.created_at < cutoff,
                )
            ).scalars().all()
        )
