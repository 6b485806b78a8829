# storefront/domain/errors.py
"""
Domain errors. Every class carries the HTTP status a router answers with
and a stable machine-readable code.
"""


class StorefrontError(Exception):
    status_code = 500
    code = "storefront_error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_detail(self) -> dict:
        return {"error": self.code, "message": self.message}


class InvalidInput(StorefrontError):
    status_code = 400
    code = "invalid_input"


class EmptyCartError(StorefrontError):
    status_code = 400
    code = "empty_cart"

    def __init__(self, message: str | None = None):
        super().__init__(message or "Cart is empty")


class SessionRequired(StorefrontError):
    status_code = 401
    code = "session_required"

    def __init__(self, message: str | None = None):
        super().__init__(message or "A session is required")


class CartBusy(StorefrontError):
    status_code = 409
    code = "cart_busy"


class CaptureFailed(StorefrontError):
    status_code = 402
    code = "capture_failed"

    def __init__(self, external_order_id: str, status: str, message: str | None = None):
        super().__init__(message or f"Payment for {external_order_id} was not completed ({status})")
        self.external_order_id = external_order_id
        self.status = status


class CapturePending(StorefrontError):
    status_code = 202
    code = "capture_pending"

    def __init__(self, external_order_id: str, transaction_id: str | None = None):
        super().__init__(f"Payment for {external_order_id} is pending at the processor")
        self.external_order_id = external_order_id
        self.transaction_id = transaction_id


class PaymentGatewayError(StorefrontError):
    status_code = 502
    code = "payment_gateway_error"


class WebhookVerificationFailed(StorefrontError):
    status_code = 400
    code = "webhook_verification_failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or "Webhook signature could not be verified")


class OrderNotFound(StorefrontError):
    status_code = 404
    code = "order_not_found"

    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class InvalidTransition(StorefrontError):
    status_code = 409
    code = "invalid_transition"

    def __init__(self, order_id: str, current: str, target: str):
        super().__init__(f"Order {order_id} cannot go from {current} to {target}")
        self.order_id = order_id
        self.current = current
        self.target = target


class NotPayable(StorefrontError):
    status_code = 409
    code = "not_payable"

    def __init__(self, order_id: str, status: str):
        super().__init__(f"Order {order_id} is {status}, only paid orders can be fulfilled")
        self.order_id = order_id
        self.status = status


class AssetMissing(StorefrontError):
    """
    Raised when a paid-for asset file cannot be found. Carries every missing
    (design_id, format) pair; design_id/format name the first one.
    """

    status_code = 500
    code = "asset_missing"

    def __init__(self, design_id: str, format: str, missing: list[tuple[str, str]] | None = None):
        self.missing = missing or [(design_id, format)]
        listed = ", ".join(f"{d}/{f}" for d, f in self.missing)
        super().__init__(f"Asset file missing for {listed}")
        self.design_id = design_id
        self.format = format


class DeliveryFailed(StorefrontError):
    status_code = 502
    code = "delivery_failed"


class GrantNotFound(StorefrontError):
    status_code = 404
    code = "grant_not_found"


class GrantUnavailable(StorefrontError):
    status_code = 410
    code = "grant_unavailable"
