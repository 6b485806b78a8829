# storefront/services/order_service.py
from typing import List

from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.data.models.order_item import OrderItemModel
from storefront.domain.cart import Cart
from storefront.domain.errors import EmptyCartError, InvalidInput, InvalidTransition, OrderNotFound
from storefront.repos.order_repo import OrderRepo, DuplicateTransaction
from storefront.services.catalog_service import CatalogService
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

#owner of checkouts made without a user id; never a lookup key for history
GUEST_USER = "guest"

#forward only; fulfilled and cancelled are terminal
TRANSITIONS = {
    "pending": {"paid", "cancelled"},
    "paid": {"fulfilled", "cancelled"},
    "fulfilled": set(),
    "cancelled": set(),
}


class OrderService:
    """
    Order ledger, the system of record for what was paid for.
    Every mutation is committed before the call returns.
    At most one order exists per payment transaction id (unique index);
    recording the same transaction again returns the existing order.
    """

    def __init__(self, db: Session, catalog: CatalogService | None = None):
        self.db = db
        self.repo = OrderRepo(db)
        self.catalog = catalog

    def create_from_capture(
        self,
        cart: Cart,
        user_id: str | None,
        payment_method: str,
        transaction_id: str,
        external_order_id: str | None = None,
        recipient: str | None = None,
    ) -> OrderModel:
        """
        Use case: record a captured payment as a paid order.
        A pending order for the same transaction is promoted to paid.
        """
        existing = self.repo.get_by_transaction_id(transaction_id)
        if existing:
            if existing.status == "pending":
                logger.info(f"Order {existing.id}: transaction {transaction_id} completed, pending -> paid")
                return self.update_status(existing.id, "paid")
            logger.info(f"Transaction {transaction_id} already recorded as order {existing.id}")
            return existing

        return self._create(cart, user_id, payment_method, transaction_id, "paid", external_order_id, recipient)

    def record_pending(
        self,
        cart: Cart,
        user_id: str | None,
        payment_method: str,
        transaction_id: str,
        external_order_id: str | None = None,
        recipient: str | None = None,
    ) -> OrderModel:
        """Use case: the processor accepted the payment but has not settled it yet."""
        existing = self.repo.get_by_transaction_id(transaction_id)
        if existing:
            return existing
        return self._create(cart, user_id, payment_method, transaction_id, "pending", external_order_id, recipient)

    def _create(
        self,
        cart: Cart,
        user_id: str | None,
        payment_method: str,
        transaction_id: str,
        status: str,
        external_order_id: str | None,
        recipient: str | None,
    ) -> OrderModel:
        if cart.is_empty:
            raise EmptyCartError()
        self._validate_items(cart)

        order = OrderModel(
            user_id=user_id or GUEST_USER,
            status=status,
            total=cart.total,
            payment_method=payment_method,
            payment_transaction_id=transaction_id,
            external_order_id=external_order_id,
            recipient=recipient,
            items=[
                OrderItemModel(
                    position=n,
                    design_id=i.design_id,
                    format=i.format,
                    unit_price=i.unit_price,
                    quantity=i.quantity,
                )
                for n, i in enumerate(cart.snapshot())
            ],
        )

        try:
            created = self.repo.create_order(order)
        except DuplicateTransaction:
            #a concurrent request recorded the same transaction first
            existing = self.repo.get_by_transaction_id(transaction_id)
            if existing is None:
                raise
            logger.info(f"Transaction {transaction_id} raced, returning order {existing.id}")
            return existing

        logger.info(
            f"Order {created.id} recorded as {status} for user {created.user_id}, "
            f"transaction {transaction_id}, total {created.total}"
        )
        return created

    def _validate_items(self, cart: Cart) -> None:
        if self.catalog is None:
            return
        for item in cart.items:
            if self.catalog.get_design(item.design_id) is None:
                raise InvalidInput(f"Unknown design {item.design_id}")
            if not self.catalog.offers(item.design_id, item.format):
                raise InvalidInput(f"Design {item.design_id} is not sold as {item.format}")

    def get_order(self, order_id: str) -> OrderModel:
        order = self.repo.get_order(order_id)
        if not order:
            raise OrderNotFound(order_id)
        return order

    def get_by_transaction_id(self, transaction_id: str) -> OrderModel | None:
        return self.repo.get_by_transaction_id(transaction_id)

    def check_transition(self, order: OrderModel, new_status: str) -> None:
        if new_status not in TRANSITIONS:
            raise InvalidInput(f"Unknown order status {new_status}")
        if new_status not in TRANSITIONS.get(order.status, set()):
            raise InvalidTransition(order.id, order.status, new_status)

    def update_status(self, order_id: str, new_status: str) -> OrderModel:
        order = self.get_order(order_id)
        if order.status == new_status:
            return order
        self.check_transition(order, new_status)

        old = order.status
        order.status = new_status
        saved = self.repo.save(order)
        logger.info(f"Order {order_id}: {old} -> {new_status}")
        return saved

    def get_user_orders(self, user_id: str) -> List[OrderModel]:
        """Newest first."""
        return self.repo.list_user_orders(user_id)
