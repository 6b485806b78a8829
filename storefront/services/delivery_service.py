# storefront/services/delivery_service.py
from typing import Dict, List, Protocol, Tuple

from storefront.celery_worker import celery_app
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

DeliveryItem = Tuple[str, str, str]  # (design_id, format, grant_id)


class DeliveryService(Protocol):
    def deliver(self, order_id: str, recipient: str | None, items: List[DeliveryItem]) -> Dict[Tuple[str, str], bool]:
        """Hand purchased files to the buyer; result per (design_id, format)."""
        ...


class CeleryDeliveryService:
    """
    Hands an order's files to a Celery worker. The hand-off itself is the
    success signal; the worker does the actual sending.
    """

    def deliver(self, order_id: str, recipient: str | None, items: List[DeliveryItem]) -> Dict[Tuple[str, str], bool]:
        deliver_order_files_task.delay(order_id, recipient, [list(i) for i in items])
        logger.info(f"Delivery of {len(items)} file(s) for order {order_id} queued")
        return {(design_id, fmt): True for design_id, fmt, _ in items}


@celery_app.task(name="storefront.services.delivery_service.deliver_order_files_task")
def deliver_order_files_task(order_id: str, recipient: str | None, items: list):
    """
    Worker side of the hand-off. Sends the buyer their download links;
    for now only logs them.
    """
    for design_id, fmt, grant_id in items:
        logger.info(
            f"[DELIVERY] order {order_id} -> {recipient or 'account'}: "
            f"{design_id}/{fmt} at /downloads/{grant_id}"
        )
    return {"order_id": order_id, "recipient": recipient, "items": len(items), "status": "sent"}
