# storefront/api/routers/webhooks.py
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException, Request

from storefront.api.routers.checkout import get_service
from storefront.domain.errors import StorefrontError
from storefront.services.checkout_service import CheckoutService

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/paypal")
def paypal_webhook(
    request: Request,
    event: Dict[str, Any] = Body(...),
    svc: CheckoutService = Depends(get_service),
):
    """
    Processor event notifications. Handling is idempotent, the processor
    redelivers until it gets a 2xx.
    """
    try:
        svc.verify_webhook(dict(request.headers), event)
        outcome = svc.handle_webhook(event)
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    return {"status": outcome}
