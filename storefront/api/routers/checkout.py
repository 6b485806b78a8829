# storefront/api/routers/checkout.py
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from storefront.api.routers.cart import get_service as get_cart_service
from storefront.api.routers.orders import grant_to_dict
from storefront.data.database import get_db
from storefront.dependencies import (
    get_catalog,
    get_delivery,
    get_gateway,
    get_session_id,
    get_user_id,
    get_webhook_id,
)
from storefront.domain.errors import CapturePending, StorefrontError
from storefront.domain.schemas import CaptureIn, CheckoutOut, ExternalOrderOut, OrderOut
from storefront.services.cart_service import CartService
from storefront.services.checkout_service import CheckoutService
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/checkout", tags=["checkout"])


def get_service(
    db: Session = Depends(get_db),
    carts: CartService = Depends(get_cart_service),
    gateway=Depends(get_gateway),
    catalog=Depends(get_catalog),
    delivery=Depends(get_delivery),
    webhook_id: str = Depends(get_webhook_id),
) -> CheckoutService:
    return CheckoutService(
        db=db, cart_service=carts, gateway=gateway, catalog=catalog, delivery=delivery, webhook_id=webhook_id
    )


@router.post("/order", response_model=ExternalOrderOut)
def create_order(
    session_id: str = Depends(get_session_id),
    user_id: str | None = Depends(get_user_id),
    svc: CheckoutService = Depends(get_service),
):
    """Creates the processor order for the current cart."""
    try:
        descriptor = svc.start(session_id, user_id)
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())

    return ExternalOrderOut(
        external_order_id=descriptor.external_order_id,
        status=descriptor.status,
        approve_url=descriptor.approve_url,
        total=descriptor.total,
        currency=descriptor.currency,
    )


@router.post("/capture", response_model=CheckoutOut)
def capture(
    payload: CaptureIn,
    session_id: str = Depends(get_session_id),
    svc: CheckoutService = Depends(get_service),
):
    """
    Captures the payment, records the order and starts fulfillment.
    On a denied or pending payment the cart is left as it was.
    """
    try:
        result = svc.capture(session_id, payload.external_order_id)
    except CapturePending as e:
        return JSONResponse(status_code=e.status_code, content=e.to_detail())
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())

    return CheckoutOut(
        order=OrderOut.model_validate(result.order),
        grants=[grant_to_dict(g) for g in result.grants],
        fulfilled=result.fulfilled,
    )
