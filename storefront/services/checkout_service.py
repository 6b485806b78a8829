# storefront/services/checkout_service.py
from dataclasses import dataclass, field
from typing import Any, Dict, List

import requests
from sqlalchemy.orm import Session

from storefront.data.models.checkout import CheckoutModel
from storefront.data.models.download_grant import DownloadGrantModel
from storefront.data.models.order import OrderModel
from storefront.domain.cart import Cart
from storefront.domain.errors import (
    AssetMissing,
    CaptureFailed,
    CapturePending,
    DeliveryFailed,
    EmptyCartError,
    InvalidInput,
    PaymentGatewayError,
    WebhookVerificationFailed,
)
from storefront.repos.checkout_repo import CheckoutRepo
from storefront.services.cart_service import CartService
from storefront.services.catalog_service import CatalogService
from storefront.services.fulfillment_service import FulfillmentService
from storefront.services.order_service import GUEST_USER, OrderService
from storefront.services.payment_gateway import PaymentGateway, ExternalOrderDescriptor
from storefront.utils.settings import PAYPAL_WEBHOOK_ID
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

PAYMENT_METHOD = "paypal"


@dataclass
class CheckoutResult:
    order: OrderModel
    grants: List[DownloadGrantModel] = field(default_factory=list)
    fulfilled: bool = False


class CheckoutService:
    """
    cart -> processor order -> capture -> ledger -> fulfillment -> clear cart.

    The processor is charged for the cart snapshot stored when the checkout
    started; capture records exactly that snapshot. A denied or pending
    capture leaves the cart untouched.
    """

    def __init__(
        self,
        db: Session,
        cart_service: CartService,
        gateway: PaymentGateway,
        catalog: CatalogService,
        delivery,
        webhook_id: str = PAYPAL_WEBHOOK_ID,
    ):
        self.db = db
        self.carts = cart_service
        self.gateway = gateway
        self.checkouts = CheckoutRepo(db)
        self.ledger = OrderService(db, catalog)
        self.fulfillment = FulfillmentService(db, catalog, delivery)
        self.webhook_id = webhook_id

    def start(self, session_id: str, user_id: str | None = None, recipient: str | None = None) -> ExternalOrderDescriptor:
        cart = self.carts.get(session_id)
        if cart.is_empty:
            raise EmptyCartError()

        descriptor = self.gateway.create_order(cart)
        self.checkouts.create(
            CheckoutModel(
                external_order_id=descriptor.external_order_id,
                session_id=session_id,
                user_id=user_id or GUEST_USER,
                recipient=recipient,
                items=[i.to_dict() for i in descriptor.items],
                total=descriptor.total,
                status="open",
            )
        )
        logger.info(f"Checkout {descriptor.external_order_id} started for session {session_id}")
        return descriptor

    def capture(self, session_id: str, external_order_id: str) -> CheckoutResult:
        checkout = self.checkouts.get(external_order_id)
        if checkout is None or checkout.session_id != session_id:
            raise InvalidInput(f"Unknown checkout {external_order_id}")

        snapshot = Cart.from_dict(session_id, {"items": checkout.items})
        try:
            result = self.gateway.capture_order(external_order_id)
        except CapturePending as e:
            if e.transaction_id:
                self.ledger.record_pending(
                    snapshot, checkout.user_id, PAYMENT_METHOD, e.transaction_id,
                    external_order_id=external_order_id, recipient=checkout.recipient,
                )
            self.checkouts.mark(external_order_id, "pending")
            raise
        except CaptureFailed as e:
            logger.warning(
                f"Capture of {external_order_id} for session {session_id} not completed ({e.status}), cart kept"
            )
            raise

        if result.captured_amount != snapshot.total:
            logger.error(
                f"Processor order {external_order_id} captured {result.captured_amount} "
                f"but checkout totals {snapshot.total}, transaction {result.transaction_id}"
            )

        order = self.ledger.create_from_capture(
            snapshot,
            checkout.user_id,
            PAYMENT_METHOD,
            result.transaction_id,
            external_order_id=external_order_id,
            recipient=result.payer_email or checkout.recipient,
        )
        self.checkouts.mark(external_order_id, "captured")
        self.carts.clear(session_id)
        return self._fulfil(order)

    def _fulfil(self, order: OrderModel) -> CheckoutResult:
        # the purchase stands whatever happens here; a later sweep retries
        if order.status not in ("paid", "fulfilled"):
            return CheckoutResult(order=order)
        try:
            grants = self.fulfillment.dispatch(order)
        except (AssetMissing, DeliveryFailed) as e:
            logger.error(f"Order {order.id} paid, fulfillment deferred: {e}")
            return CheckoutResult(order=order)
        return CheckoutResult(order=order, grants=grants, fulfilled=True)

    #webhooks
    def verify_webhook(self, headers: Dict[str, str], event: Dict[str, Any]) -> None:
        if not self.webhook_id:
            logger.warning("PAYPAL_WEBHOOK_ID not set, webhook signature not verified")
            return
        try:
            ok = self.gateway.client.verify_webhook_signature(headers, event, self.webhook_id)
        except requests.RequestException as e:
            raise PaymentGatewayError("Webhook verification call failed") from e
        if not ok:
            raise WebhookVerificationFailed()

    def handle_webhook(self, event: Dict[str, Any]) -> str:
        event_type = event.get("event_type", "")
        resource = event.get("resource") or {}
        transaction_id = resource.get("id")
        external_order_id = ((resource.get("supplementary_data") or {}).get("related_ids") or {}).get("order_id")
        logger.info(f"Webhook {event_type}: transaction {transaction_id}, processor order {external_order_id}")

        if not transaction_id:
            return "ignored"

        if event_type == "PAYMENT.CAPTURE.COMPLETED":
            return self._on_completed(transaction_id, external_order_id)
        if event_type == "PAYMENT.CAPTURE.PENDING":
            return self._on_pending(transaction_id, external_order_id)
        if event_type == "PAYMENT.CAPTURE.DENIED":
            return self._on_denied(transaction_id, external_order_id)
        return "ignored"

    def _on_completed(self, transaction_id: str, external_order_id: str | None) -> str:
        existing = self.ledger.get_by_transaction_id(transaction_id)
        if existing and existing.status != "pending":
            logger.info(f"Webhook for transaction {transaction_id} already recorded as order {existing.id}")
            return "duplicate"

        checkout = self.checkouts.get(external_order_id) if external_order_id else None
        if checkout is None:
            logger.error(f"Completed capture {transaction_id} has no checkout record ({external_order_id})")
            return "unmatched"

        try:
            confirmed = self.gateway.confirm_capture(external_order_id, transaction_id)
        except (CaptureFailed, CapturePending) as e:
            logger.error(f"Completed capture {transaction_id} not confirmed by the processor: {e}")
            return "unconfirmed"

        snapshot = Cart.from_dict(checkout.session_id, {"items": checkout.items})
        if confirmed.captured_amount != snapshot.total:
            logger.error(
                f"Processor order {external_order_id} captured {confirmed.captured_amount} "
                f"but checkout totals {snapshot.total}, transaction {transaction_id}"
            )
        order = self.ledger.create_from_capture(
            snapshot, checkout.user_id, PAYMENT_METHOD, transaction_id,
            external_order_id=external_order_id, recipient=confirmed.payer_email or checkout.recipient,
        )
        self.checkouts.mark(checkout.external_order_id, "captured")
        self.carts.clear(checkout.session_id)
        self._fulfil(order)
        return "recorded"

    def _on_pending(self, transaction_id: str, external_order_id: str | None) -> str:
        checkout = self.checkouts.get(external_order_id) if external_order_id else None
        if checkout is None:
            logger.error(f"Pending capture {transaction_id} has no checkout record ({external_order_id})")
            return "unmatched"

        snapshot = Cart.from_dict(checkout.session_id, {"items": checkout.items})
        self.ledger.record_pending(
            snapshot, checkout.user_id, PAYMENT_METHOD, transaction_id,
            external_order_id=external_order_id, recipient=checkout.recipient,
        )
        if checkout.status == "open":
            self.checkouts.mark(checkout.external_order_id, "pending")
        return "pending"

    def _on_denied(self, transaction_id: str, external_order_id: str | None) -> str:
        order = self.ledger.get_by_transaction_id(transaction_id)
        if order and order.status == "pending":
            self.ledger.update_status(order.id, "cancelled")
        if external_order_id and self.checkouts.get(external_order_id) is not None:
            self.checkouts.mark(external_order_id, "denied")
        logger.warning(f"Capture {transaction_id} denied by the processor")
        return "denied"
