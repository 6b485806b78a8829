# storefront/dependencies.py
from functools import lru_cache

from fastapi import Cookie, Header

from storefront.domain.errors import SessionRequired
from storefront.services.catalog_service import CatalogService
from storefront.services.delivery_service import CeleryDeliveryService
from storefront.services.lock_service import LockService, LocalLockService
from storefront.services.payment_gateway import PaymentGateway
from storefront.services.paypal_client import PayPalClient
from storefront.services.session_store import MemorySessionStore, RedisSessionStore
from storefront.utils.settings import PAYPAL_WEBHOOK_ID, SESSION_BACKEND

SESSION_COOKIE = "sid"


@lru_cache
def get_catalog() -> CatalogService:
    return CatalogService.load()


@lru_cache
def get_session_store():
    if SESSION_BACKEND == "memory":
        return MemorySessionStore()
    return RedisSessionStore()


@lru_cache
def get_lock_service():
    if SESSION_BACKEND == "memory":
        return LocalLockService()
    return LockService()


@lru_cache
def get_gateway() -> PaymentGateway:
    return PaymentGateway(PayPalClient(), catalog=get_catalog())


@lru_cache
def get_delivery():
    return CeleryDeliveryService()


def get_webhook_id() -> str:
    return PAYPAL_WEBHOOK_ID


def get_session_id(
    sid: str | None = Cookie(default=None),
    x_session_id: str | None = Header(default=None),
) -> str:
    session_id = (x_session_id or sid or "").strip()
    if not session_id or len(session_id) > 128:
        raise SessionRequired()
    return session_id


def get_user_id(x_user_id: str | None = Header(default=None)) -> str | None:
    return x_user_id.strip() if x_user_id and x_user_id.strip() else None
