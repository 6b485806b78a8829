# tests/conftest.py
import json
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SESSION_BACKEND"] = "memory"
os.environ["PAYPAL_WEBHOOK_ID"] = ""

import pytest
from fastapi.testclient import TestClient

import storefront.data.models  # noqa: F401
from storefront.api import create_app
from storefront.data.database import Base, engine, SessionLocal, get_db
from storefront import dependencies
from storefront.services.cart_service import CartService
from storefront.services.catalog_service import CatalogService
from storefront.services.checkout_service import CheckoutService
from storefront.services.lock_service import LocalLockService
from storefront.services.payment_gateway import PaymentGateway
from storefront.services.session_store import MemorySessionStore


class FakePayPalClient:
    """Scripted stand-in for PayPalClient; remembers what it was asked."""

    def __init__(self):
        self.created = []
        self.captured = []
        self.amounts = {}
        self.capture_status = {}
        self.capture_errors = {}
        self.verified = True
        self._n = 0

    def create_order(self, payload, request_id=None):
        self._n += 1
        order_id = f"EXT-{self._n}"
        self.created.append(payload)
        self.amounts[order_id] = payload["purchase_units"][0]["amount"]["value"]
        return {
            "id": order_id,
            "status": "CREATED",
            "links": [{"rel": "approve", "href": f"https://paypal.test/checkoutnow?token={order_id}"}],
        }

    def capture_response(self, order_id, status="COMPLETED"):
        return {
            "id": order_id,
            "status": "COMPLETED" if status == "COMPLETED" else status,
            "payer": {"email_address": "buyer@example.com"},
            "purchase_units": [{
                "payments": {"captures": [{
                    "id": f"TXN-{order_id}",
                    "status": status,
                    "amount": {"currency_code": "USD", "value": self.amounts.get(order_id, "0.00")},
                }]},
            }],
        }

    def capture_order(self, order_id, request_id=None):
        self.captured.append(order_id)
        if order_id in self.capture_errors:
            raise self.capture_errors[order_id]
        return self.capture_response(order_id, self.capture_status.get(order_id, "COMPLETED"))

    def get_order(self, order_id):
        if order_id not in self.captured:
            return {"id": order_id, "status": "APPROVED", "purchase_units": [{"payments": {}}]}
        return self.capture_response(order_id, self.capture_status.get(order_id, "COMPLETED"))

    def verify_webhook_signature(self, headers, event, webhook_id):
        return self.verified


class RecordingDelivery:
    def __init__(self):
        self.calls = []
        self.fail = set()

    def deliver(self, order_id, recipient, items):
        self.calls.append((order_id, recipient, list(items)))
        return {(d, f): (d, f) not in self.fail for d, f, _ in items}


def write_asset(root, design_id, fmt):
    folder = root / design_id
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / f"{design_id}.{fmt.lower()}"
    path.write_bytes(f"{design_id}-{fmt}".encode())
    return path


@pytest.fixture
def assets_root(tmp_path):
    root = tmp_path / "assets"
    root.mkdir()
    for design_id, fmt in [("x", "SVG"), ("x", "PDF"), ("y", "PNG"), ("z", "SVG")]:
        write_asset(root, design_id, fmt)
    # z is sold as PDF too, but its PDF file is not on disk
    return root


@pytest.fixture
def catalog(tmp_path, assets_root):
    doc = {
        "designs": [
            {"id": "x", "artist": "Eagles", "song": "Hotel California", "shape": "GUITAR",
             "price": 3.00, "formats": ["SVG", "PDF"]},
            {"id": "y", "artist": "The Beatles", "song": "Let It Be", "shape": "PIANO",
             "price": 3.00, "formats": ["PNG"]},
            {"id": "z", "artist": "Queen", "song": "Bohemian Rhapsody", "shape": "CASSETTE",
             "price": 3.00, "formats": ["SVG", "PDF"]},
        ]
    }
    path = tmp_path / "designs.json"
    path.write_text(json.dumps(doc), encoding="utf-8")
    return CatalogService.load(path, assets_root)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def store():
    return MemorySessionStore()


@pytest.fixture
def locks():
    return LocalLockService(wait=1)


@pytest.fixture
def carts(store, locks):
    return CartService(store=store, lock_service=locks)


@pytest.fixture
def paypal():
    return FakePayPalClient()


@pytest.fixture
def gateway(paypal, catalog):
    return PaymentGateway(paypal, catalog=catalog)


@pytest.fixture
def delivery():
    return RecordingDelivery()


@pytest.fixture
def checkout(db, carts, gateway, catalog, delivery):
    return CheckoutService(db=db, cart_service=carts, gateway=gateway, catalog=catalog, delivery=delivery)


@pytest.fixture
def client(db, store, locks, gateway, catalog, delivery):
    app = create_app()

    def override_db():
        yield db

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[dependencies.get_session_store] = lambda: store
    app.dependency_overrides[dependencies.get_lock_service] = lambda: locks
    app.dependency_overrides[dependencies.get_gateway] = lambda: gateway
    app.dependency_overrides[dependencies.get_catalog] = lambda: catalog
    app.dependency_overrides[dependencies.get_delivery] = lambda: delivery

    with TestClient(app) as c:
        yield c
