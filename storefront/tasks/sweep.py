# storefront/tasks/sweep.py
from datetime import datetime, timezone, timedelta
from typing import Dict

from sqlalchemy.orm import Session

from storefront.celery_worker import celery_app
from storefront.data.database import SessionLocal
from storefront.domain.errors import StorefrontError
from storefront.repos.checkout_repo import CheckoutRepo
from storefront.repos.order_repo import OrderRepo
from storefront.services.catalog_service import CatalogService
from storefront.services.fulfillment_service import FulfillmentService
from storefront.services.order_service import OrderService
from storefront.utils.settings import PENDING_ORDER_MAX_AGE_SECONDS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def sweep_orders(
    db: Session,
    catalog: CatalogService,
    delivery,
    now: datetime | None = None,
    max_age: int = PENDING_ORDER_MAX_AGE_SECONDS,
) -> Dict[str, int]:
    """
    - cancel pending orders older than max_age
    - expire open checkouts older than max_age
    - retry fulfillment of paid orders
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(seconds=max_age)
    repo = OrderRepo(db)
    ledger = OrderService(db, catalog)
    fulfillment = FulfillmentService(db, catalog, delivery)
    counts = {"cancelled": 0, "expired": 0, "fulfilled": 0, "still_paid": 0}

    for order in repo.list_by_status("pending", older_than=cutoff):
        ledger.update_status(order.id, "cancelled")
        counts["cancelled"] += 1

    checkouts = CheckoutRepo(db)
    for checkout in checkouts.list_open_older_than(cutoff):
        checkouts.mark(checkout.external_order_id, "expired")
        counts["expired"] += 1

    for order in repo.list_by_status("paid"):
        try:
            fulfillment.dispatch(order)
            counts["fulfilled"] += 1
        except StorefrontError as e:
            logger.warning(f"Order {order.id} still not fulfilled: {e}")
            counts["still_paid"] += 1

    logger.info(f"Sweep finished: {counts}")
    return counts


@celery_app.task(name="storefront.tasks.sweep.sweep_orders_task")
def sweep_orders_task():
    from storefront.dependencies import get_catalog, get_delivery

    logger.info("Order sweep started")
    db = SessionLocal()
    try:
        return sweep_orders(db, get_catalog(), get_delivery())
    finally:
        db.close()
