# storefront/api/routers/orders.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.data.models.download_grant import DownloadGrantModel
from storefront.dependencies import get_catalog, get_user_id
from storefront.domain.errors import OrderNotFound, SessionRequired
from storefront.domain.schemas import DownloadGrantOut, OrderOut
from storefront.services.order_service import GUEST_USER, OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


def get_service(db: Session = Depends(get_db), catalog=Depends(get_catalog)) -> OrderService:
    return OrderService(db, catalog)


def grant_to_dict(grant: DownloadGrantModel) -> dict:
    return {
        "id": grant.id,
        "order_id": grant.order_id,
        "design_id": grant.design_id,
        "format": grant.format,
        "expires_at": grant.expires_at,
        "consumed": grant.consumed,
        "download_url": f"/downloads/{grant.id}",
    }


def require_user(user_id: str | None = Depends(get_user_id)) -> str:
    #guest orders share one owner id, so it cannot be used to read history
    if not user_id or user_id == GUEST_USER:
        raise HTTPException(status_code=401, detail=SessionRequired("Sign in to see your orders").to_detail())
    return user_id


@router.get("", response_model=List[OrderOut])
def list_orders(user_id: str = Depends(require_user), svc: OrderService = Depends(get_service)):
    """Order history of the caller, newest first."""
    return svc.get_user_orders(user_id)


def _owned_order(svc: OrderService, order_id: str, user_id: str):
    try:
        order = svc.get_order(order_id)
    except OrderNotFound as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    if order.user_id != user_id:
        raise HTTPException(status_code=403, detail={"error": "forbidden", "message": "Not your order"})
    return order


@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: str, user_id: str = Depends(require_user), svc: OrderService = Depends(get_service)):
    return _owned_order(svc, order_id, user_id)


@router.get("/{order_id}/grants", response_model=List[DownloadGrantOut])
def list_grants(order_id: str, user_id: str = Depends(require_user), svc: OrderService = Depends(get_service)):
    order = _owned_order(svc, order_id, user_id)
    return [grant_to_dict(g) for g in order.grants]
