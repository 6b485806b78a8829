# tests/test_payment_gateway.py
import json
from decimal import Decimal

import pytest
import requests

from storefront.domain.cart import Cart, CartLineItem
from storefront.domain.errors import CaptureFailed, CapturePending, EmptyCartError, PaymentGatewayError


def make_cart(*lines):
    return Cart("s1", [CartLineItem(d, f, Decimal(p), q) for d, f, p, q in lines])


def http_error(status, body):
    response = requests.Response()
    response.status_code = status
    response._content = json.dumps(body).encode()
    return requests.HTTPError(response=response)


def test_create_order_empty_cart_makes_no_call(gateway, paypal):
    with pytest.raises(EmptyCartError):
        gateway.create_order(Cart("s1"))
    assert paypal.created == []


def test_breakdown_adds_up_to_cart_total(gateway, paypal):
    cart = make_cart(("x", "SVG", "3.00", 1), ("y", "PNG", "3.00", 2), ("z", "PDF", "0.99", 3))
    descriptor = gateway.create_order(cart)

    unit = paypal.created[0]["purchase_units"][0]
    assert unit["amount"]["value"] == "11.97"
    assert unit["amount"]["breakdown"]["item_total"]["value"] == "11.97"
    line_sum = sum(Decimal(i["unit_amount"]["value"]) * int(i["quantity"]) for i in unit["items"])
    assert line_sum == cart.total
    assert descriptor.total == Decimal("11.97")
    assert descriptor.external_order_id == "EXT-1"
    assert descriptor.approve_url.endswith("token=EXT-1")


def test_line_items_use_design_names_and_correlation_id(gateway, paypal):
    gateway.create_order(make_cart(("x", "SVG", "3.00", 1), ("unknown", "PNG", "3.00", 1)))
    unit = paypal.created[0]["purchase_units"][0]

    assert unit["items"][0]["name"] == "Eagles - Hotel California (SVG)"
    assert unit["items"][1]["name"] == "Lyric Art Studio Design (PNG)"
    assert all(i["category"] == "DIGITAL_GOODS" for i in unit["items"])
    assert unit["custom_id"].startswith("cart_")
    assert unit["description"]


def test_descriptor_items_are_a_copy(gateway):
    cart = make_cart(("x", "SVG", "3.00", 1))
    descriptor = gateway.create_order(cart)
    cart.items[0].quantity = 9
    assert descriptor.items[0].quantity == 1


def test_capture_completed(gateway, paypal):
    gateway.create_order(make_cart(("x", "SVG", "3.00", 2)))
    result = gateway.capture_order("EXT-1")

    assert result.transaction_id == "TXN-EXT-1"
    assert result.captured_amount == Decimal("6.00")
    assert result.status == "COMPLETED"
    assert result.payer_email == "buyer@example.com"


@pytest.mark.parametrize("status", ["DENIED", "DECLINED", "FAILED"])
def test_capture_denied(gateway, paypal, status):
    paypal.capture_status["EXT-9"] = status
    with pytest.raises(CaptureFailed) as exc:
        gateway.capture_order("EXT-9")
    assert exc.value.status == status


def test_capture_pending_is_not_success(gateway, paypal):
    paypal.capture_status["EXT-9"] = "PENDING"
    with pytest.raises(CapturePending) as exc:
        gateway.capture_order("EXT-9")
    assert exc.value.transaction_id == "TXN-EXT-9"


def test_capture_unprocessable_is_capture_failed(gateway, paypal):
    paypal.capture_errors["EXT-9"] = http_error(422, {"details": [{"issue": "INSTRUMENT_DECLINED"}]})
    with pytest.raises(CaptureFailed) as exc:
        gateway.capture_order("EXT-9")
    assert exc.value.status == "INSTRUMENT_DECLINED"


def test_already_captured_reports_original_capture(gateway, paypal):
    gateway.create_order(make_cart(("x", "SVG", "3.00", 1)))
    paypal.capture_errors["EXT-1"] = http_error(422, {"details": [{"issue": "ORDER_ALREADY_CAPTURED"}]})
    result = gateway.capture_order("EXT-1")
    assert result.transaction_id == "TXN-EXT-1"


def test_transport_errors_become_gateway_errors(gateway, paypal):
    paypal.capture_errors["EXT-9"] = requests.ConnectionError("down")
    with pytest.raises(PaymentGatewayError):
        gateway.capture_order("EXT-9")

    paypal.capture_errors["EXT-8"] = http_error(500, {})
    with pytest.raises(PaymentGatewayError):
        gateway.capture_order("EXT-8")


def test_response_without_capture_is_an_error(gateway):
    with pytest.raises(PaymentGatewayError):
        gateway.parse_capture("EXT-1", {"id": "EXT-1", "status": "APPROVED", "purchase_units": []})


def test_confirm_capture_reads_the_order_back(gateway, paypal, monkeypatch):
    gateway.create_order(make_cart(("x", "SVG", "3.00", 1)))
    with pytest.raises(CaptureFailed):
        gateway.confirm_capture("EXT-1", "TXN-EXT-1")

    gateway.capture_order("EXT-1")
    confirmed = gateway.confirm_capture("EXT-1", "TXN-EXT-1")
    assert (confirmed.transaction_id, confirmed.captured_amount) == ("TXN-EXT-1", Decimal("3.00"))
    with pytest.raises(CaptureFailed):
        gateway.confirm_capture("EXT-1", "TXN-someone-else")

    def down(order_id):
        raise requests.Timeout("slow")

    monkeypatch.setattr(paypal, "get_order", down)
    with pytest.raises(PaymentGatewayError):
        gateway.confirm_capture("EXT-1", "TXN-EXT-1")
