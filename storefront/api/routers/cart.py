# storefront/api/routers/cart.py
from fastapi import APIRouter, Depends, HTTPException, Response

from storefront.dependencies import get_session_id, get_session_store, get_lock_service
from storefront.domain.errors import StorefrontError
from storefront.domain.schemas import CartOut, ItemIn, ItemKeyIn, QuantityIn
from storefront.services.cart_service import CartService, cart_to_dict

router = APIRouter(prefix="/cart", tags=["cart"])


def get_service(store=Depends(get_session_store), lock_service=Depends(get_lock_service)) -> CartService:
    return CartService(store=store, lock_service=lock_service)


@router.get("", response_model=CartOut)
def get_cart(session_id: str = Depends(get_session_id), svc: CartService = Depends(get_service)):
    return cart_to_dict(svc.get(session_id))


@router.post("/items", response_model=CartOut)
def add_item(
    payload: ItemIn,
    session_id: str = Depends(get_session_id),
    svc: CartService = Depends(get_service),
):
    try:
        cart = svc.add(session_id, payload.design_id, payload.format, payload.price, payload.quantity)
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    return cart_to_dict(cart)


@router.patch("/items", response_model=CartOut)
def set_quantity(
    payload: QuantityIn,
    session_id: str = Depends(get_session_id),
    svc: CartService = Depends(get_service),
):
    try:
        cart = svc.set_quantity(session_id, payload.design_id, payload.format, payload.quantity)
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    return cart_to_dict(cart)


@router.delete("/items", response_model=CartOut)
def remove_item(
    payload: ItemKeyIn,
    session_id: str = Depends(get_session_id),
    svc: CartService = Depends(get_service),
):
    try:
        cart = svc.remove(session_id, payload.design_id, payload.format)
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    return cart_to_dict(cart)


@router.delete("", status_code=204)
def clear_cart(session_id: str = Depends(get_session_id), svc: CartService = Depends(get_service)):
    try:
        svc.clear(session_id)
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    return Response(status_code=204)
