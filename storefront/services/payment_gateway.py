# storefront/services/payment_gateway.py
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List

import requests

from storefront.domain.cart import Cart, CartLineItem, to_money
from storefront.domain.errors import EmptyCartError, CaptureFailed, CapturePending, PaymentGatewayError
from storefront.services.catalog_service import CatalogService
from storefront.utils.settings import CURRENCY, BRAND_NAME, SITE_URL
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

FAILED_CAPTURE_STATUSES = {"DENIED", "DECLINED", "FAILED", "VOIDED", "REFUNDED"}
MAX_ITEM_NAME = 127


@dataclass
class ExternalOrderDescriptor:
    external_order_id: str
    status: str
    total: Decimal
    currency: str
    custom_id: str
    approve_url: str | None = None
    items: List[CartLineItem] = field(default_factory=list)


@dataclass
class CaptureResult:
    external_order_id: str
    transaction_id: str
    captured_amount: Decimal
    status: str
    payer_email: str | None = None


def _money(value: Decimal, currency: str) -> Dict[str, str]:
    return {"currency_code": currency, "value": f"{value:.2f}"}


class PaymentGateway:
    """
    Adapter over the payment processor: turns a cart into a processor order
    and reports capture outcomes. Duplicate captures are not filtered here,
    the order ledger's transaction-id guard handles them.
    """

    def __init__(
        self,
        client,
        catalog: CatalogService | None = None,
        currency: str = CURRENCY,
        brand_name: str = BRAND_NAME,
        site_url: str = SITE_URL,
    ):
        self.client = client
        self.catalog = catalog
        self.currency = currency
        self.brand_name = brand_name
        self.site_url = site_url.rstrip("/")

    def _item_name(self, item: CartLineItem) -> str:
        design = self.catalog.get_design(item.design_id) if self.catalog else None
        if design and (design.artist or design.song):
            name = f"{design.artist} - {design.song} ({item.format})".strip(" -")
        else:
            name = f"{self.brand_name} Design ({item.format})"
        return name[:MAX_ITEM_NAME]

    def build_order_payload(self, cart: Cart, custom_id: str) -> Dict[str, Any]:
        if cart.is_empty:
            raise EmptyCartError()

        lines = []
        item_total = Decimal("0.00")
        for item in cart.items:
            unit = to_money(item.unit_price)
            item_total += unit * item.quantity
            lines.append({
                "name": self._item_name(item),
                "unit_amount": _money(unit, self.currency),
                "quantity": str(item.quantity),
                "category": "DIGITAL_GOODS",
            })

        #the breakdown must add up to the cart total to the cent
        if item_total != cart.total:
            raise PaymentGatewayError(
                f"Line items add up to {item_total} but cart {cart.session_id} totals {cart.total}"
            )

        return {
            "intent": "CAPTURE",
            "purchase_units": [{
                "amount": {
                    **_money(cart.total, self.currency),
                    "breakdown": {"item_total": _money(item_total, self.currency)},
                },
                "items": lines,
                "description": f"{self.brand_name} Design Purchase",
                "custom_id": custom_id,
            }],
            "application_context": {
                "brand_name": self.brand_name,
                "return_url": f"{self.site_url}/payment/success",
                "cancel_url": f"{self.site_url}/payment/cancel",
                "landing_page": "BILLING",
                "user_action": "PAY_NOW",
                "shipping_preference": "NO_SHIPPING",
            },
        }

    def create_order(self, cart: Cart) -> ExternalOrderDescriptor:
        custom_id = f"cart_{uuid.uuid4().hex}"
        payload = self.build_order_payload(cart, custom_id)

        try:
            result = self.client.create_order(payload, request_id=custom_id)
        except requests.RequestException as e:
            logger.error(f"Processor order creation failed for session {cart.session_id}: {e}")
            raise PaymentGatewayError("Payment processor is unavailable") from e

        approve_url = next(
            (link.get("href") for link in result.get("links", []) if link.get("rel") in ("approve", "payer-action")),
            None,
        )
        logger.info(
            f"Processor order {result.get('id')} created for session {cart.session_id}, "
            f"total {cart.total} {self.currency}, custom_id {custom_id}"
        )
        return ExternalOrderDescriptor(
            external_order_id=result["id"],
            status=result.get("status", "CREATED"),
            total=cart.total,
            currency=self.currency,
            custom_id=custom_id,
            approve_url=approve_url,
            items=cart.snapshot(),
        )

    def capture_order(self, external_order_id: str) -> CaptureResult:
        try:
            result = self.client.capture_order(external_order_id, request_id=f"capture_{external_order_id}")
        except requests.HTTPError as e:
            result = self._handle_capture_error(external_order_id, e)
        except requests.RequestException as e:
            logger.error(f"Capture of processor order {external_order_id} failed: {e}")
            raise PaymentGatewayError("Payment processor is unavailable") from e

        return self.parse_capture(external_order_id, result)

    def _handle_capture_error(self, external_order_id: str, error: requests.HTTPError) -> Dict[str, Any]:
        response = error.response
        body: Dict[str, Any] = {}
        if response is not None:
            try:
                body = response.json()
            except ValueError:
                body = {}
        issues = [d.get("issue") for d in body.get("details", []) if d.get("issue")]

        if "ORDER_ALREADY_CAPTURED" in issues:
            #a retry of a capture that went through: report the original capture
            logger.info(f"Processor order {external_order_id} already captured, fetching it")
            try:
                return self.client.get_order(external_order_id)
            except requests.RequestException as e:
                raise PaymentGatewayError("Payment processor is unavailable") from e

        status = response.status_code if response is not None else None
        if status == 422:
            issue = issues[0] if issues else "UNPROCESSABLE"
            logger.error(f"Capture of processor order {external_order_id} refused: {issue}")
            raise CaptureFailed(external_order_id, issue)

        logger.error(f"Capture of processor order {external_order_id} failed with HTTP {status}: {body}")
        raise PaymentGatewayError(f"Payment processor answered HTTP {status}") from error

    def confirm_capture(self, external_order_id: str, transaction_id: str) -> CaptureResult:
        """
        Reads the processor order back and checks it holds a completed
        capture with this transaction id. Used for notifications, whose body
        alone is no proof of payment.
        """
        try:
            result = self.client.get_order(external_order_id)
        except requests.RequestException as e:
            logger.error(f"Lookup of processor order {external_order_id} failed: {e}")
            raise PaymentGatewayError("Payment processor is unavailable") from e

        captures = [
            c
            for unit in result.get("purchase_units", [])
            for c in unit.get("payments", {}).get("captures", [])
            if c.get("id") == transaction_id
        ]
        if not captures:
            logger.warning(f"Processor order {external_order_id} has no capture {transaction_id}")
            raise CaptureFailed(external_order_id, "NOT_CAPTURED")

        unit = {"payments": {"captures": captures}}
        return self.parse_capture(external_order_id, {**result, "purchase_units": [unit]})

    def parse_capture(self, external_order_id: str, result: Dict[str, Any]) -> CaptureResult:
        captures = [
            c
            for unit in result.get("purchase_units", [])
            for c in unit.get("payments", {}).get("captures", [])
        ]
        order_status = str(result.get("status", "")).upper()

        if not captures:
            if order_status in FAILED_CAPTURE_STATUSES:
                raise CaptureFailed(external_order_id, order_status)
            raise PaymentGatewayError(f"No capture in processor response for {external_order_id}")

        capture = captures[0]
        status = str(capture.get("status", order_status)).upper()
        transaction_id = capture.get("id")

        if status == "PENDING":
            logger.warning(f"Capture {transaction_id} for processor order {external_order_id} is pending")
            raise CapturePending(external_order_id, transaction_id)
        if status != "COMPLETED":
            logger.warning(f"Capture {transaction_id} for processor order {external_order_id} is {status}")
            raise CaptureFailed(external_order_id, status)

        amount = to_money(capture.get("amount", {}).get("value", "0"))
        payer_email = (result.get("payer") or {}).get("email_address")
        logger.info(f"Captured {amount} for processor order {external_order_id}, transaction {transaction_id}")
        return CaptureResult(
            external_order_id=external_order_id,
            transaction_id=transaction_id,
            captured_amount=amount,
            status=status,
            payer_email=payer_email,
        )
