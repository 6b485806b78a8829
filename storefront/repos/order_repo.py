# storefront/repos/order_repo.py
from datetime import datetime
from typing import List

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from storefront.data.models.order import OrderModel
from storefront.data.models.download_grant import DownloadGrantModel


class DuplicateTransaction(Exception):
    """Unique index on payment_transaction_id rejected an insert."""


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def create_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise DuplicateTransaction(order.payment_transaction_id) from e
        self.db.refresh(order)
        return order

    def get_order(self, order_id: str) -> OrderModel | None:
        return self.db.get(OrderModel, order_id)

    def get_by_transaction_id(self, transaction_id: str) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel).where(OrderModel.payment_transaction_id == transaction_id)
        ).scalar_one_or_none()

    def list_user_orders(self, user_id: str) -> List[OrderModel]:
        return list(
            self.db.execute(
                select(OrderModel)
                .options(selectinload(OrderModel.items))
                .where(OrderModel.user_id == user_id)
                .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            ).scalars().all()
        )

    def list_by_status(self, status: str, older_than: datetime | None = None) -> List[OrderModel]:
        stmt = select(OrderModel).where(OrderModel.status == status)
        if older_than is not None:
            stmt = stmt.where(OrderModel.created_at < older_than)
        return list(self.db.execute(stmt.order_by(OrderModel.created_at)).scalars().all())

    def save(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.commit()
        self.db.refresh(order)
        return order

    def claim_status(self, order_id: str, expected: str, new_status: str) -> int:
        #UPDATE orders SET status=:new WHERE id=:id AND status=:expected, not committed
        return self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.status == expected)
            .values(status=new_status)
            .execution_options(synchronize_session=False)
        ).rowcount

    def stage_grants(self, order: OrderModel, grants: List[DownloadGrantModel]) -> None:
        #flushed with the status claim, committed only once delivery is handed off
        for grant in grants:
            order.grants.append(grant)
        self.db.flush()

    def commit(self, order: OrderModel) -> OrderModel:
        self.db.commit()
        self.db.refresh(order)
        return order

    def get_grant(self, grant_id: str) -> DownloadGrantModel | None:
        return self.db.get(DownloadGrantModel, grant_id)

    def rollback(self):
        self.db.rollback()
