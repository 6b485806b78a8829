# tests/test_cart_service.py
import random
import threading
from decimal import Decimal

import pytest

from storefront.domain.errors import InvalidInput, CartBusy
from storefront.services.cart_service import CartService
from storefront.services.lock_service import LocalLockService


def assert_totals(cart):
    assert cart.total == sum((i.unit_price * i.quantity for i in cart.items), Decimal("0"))
    assert cart.item_count == sum(i.quantity for i in cart.items)


def test_get_unknown_session_returns_empty_cart(carts):
    cart = carts.get("nobody")
    assert cart.session_id == "nobody"
    assert cart.items == []
    assert cart.total == Decimal("0.00")
    assert cart.item_count == 0


def test_two_lines_total_and_count(carts):
    carts.add("s1", "x", "SVG", "3.00", 1)
    cart = carts.add("s1", "y", "PNG", "3.00", 2)

    assert cart.total == Decimal("9.00")
    assert cart.item_count == 3
    assert carts.get("s1").total == Decimal("9.00")


def test_same_key_merges_into_one_line(carts):
    carts.add("s1", "x", "SVG", "3.00", 1)
    cart = carts.add("s1", "x", "SVG", "3.00", 2)

    assert len(cart.items) == 1
    assert cart.items[0].quantity == 3


def test_same_design_other_format_is_a_separate_line(carts):
    carts.add("s1", "x", "SVG", "3.00")
    cart = carts.add("s1", "x", "PDF", "3.00")
    assert [i.key for i in cart.items] == [("x", "SVG"), ("x", "PDF")]


def test_format_is_normalised(carts):
    carts.add("s1", "x", "svg", "3.00")
    cart = carts.add("s1", "x", "SVG", "3.00")
    assert len(cart.items) == 1
    assert cart.items[0].quantity == 2


def test_remove_missing_line_is_noop(carts):
    carts.add("s1", "x", "SVG", "3.00")
    cart = carts.remove("s1", "nope", "SVG")
    assert [i.key for i in cart.items] == [("x", "SVG")]
    assert carts.remove("empty-session", "x", "SVG").items == []


def test_remove_drops_only_matching_line(carts):
    carts.add("s1", "x", "SVG", "3.00")
    carts.add("s1", "x", "PDF", "3.00")
    cart = carts.remove("s1", "x", "SVG")
    assert [i.key for i in cart.items] == [("x", "PDF")]


def test_set_quantity_overwrites(carts):
    carts.add("s1", "x", "SVG", "3.00", 2)
    cart = carts.set_quantity("s1", "x", "SVG", 5)
    assert cart.items[0].quantity == 5
    assert cart.total == Decimal("15.00")


@pytest.mark.parametrize("qty", [0, -3])
def test_set_quantity_zero_or_less_removes(carts, qty):
    carts.add("s1", "x", "SVG", "3.00", 2)
    carts.add("s1", "y", "PNG", "3.00", 1)
    cart = carts.set_quantity("s1", "x", "SVG", qty)
    assert [i.key for i in cart.items] == [("y", "PNG")]


def test_set_quantity_on_missing_line_changes_nothing(carts):
    carts.add("s1", "x", "SVG", "3.00")
    cart = carts.set_quantity("s1", "y", "PNG", 4)
    assert [i.key for i in cart.items] == [("x", "SVG")]


def test_clear(carts, store):
    carts.add("s1", "x", "SVG", "3.00")
    carts.clear("s1")
    assert carts.get("s1").items == []
    assert store.get("s1") is None


def test_sessions_are_independent(carts):
    carts.add("a", "x", "SVG", "3.00")
    carts.add("b", "y", "PNG", "3.00", 4)
    assert carts.get("a").item_count == 1
    assert carts.get("b").item_count == 4


@pytest.mark.parametrize("design_id", ["", "   ", None, 42, "d" * 101])
def test_add_rejects_bad_design_id(carts, design_id):
    with pytest.raises(InvalidInput):
        carts.add("s1", design_id, "SVG", "3.00")


@pytest.mark.parametrize("qty", [0, -1, 101, 2.5, "3", True])
def test_add_rejects_bad_quantity(carts, qty):
    with pytest.raises(InvalidInput):
        carts.add("s1", "x", "SVG", "3.00", qty)


@pytest.mark.parametrize("price", ["abc", None, "-1", "NaN"])
def test_add_rejects_bad_price(carts, price):
    with pytest.raises(InvalidInput):
        carts.add("s1", "x", "SVG", price)


def test_merge_cannot_exceed_quantity_cap(carts):
    carts.add("s1", "x", "SVG", "3.00", 60)
    with pytest.raises(InvalidInput):
        carts.add("s1", "x", "SVG", "3.00", 50)
    assert carts.get("s1").items[0].quantity == 60


def test_float_prices_do_not_drift(carts):
    for _ in range(3):
        carts.add("s1", "x", "SVG", 0.1)
    assert carts.get("s1").total == Decimal("0.30")


def test_totals_hold_after_every_operation(carts):
    rnd = random.Random(7)
    keys = [("a", "SVG"), ("a", "PNG"), ("b", "PDF"), ("c", "EPS")]
    prices = {"a": "3.00", "b": "2.49", "c": "0.99"}
    for _ in range(200):
        design_id, fmt = rnd.choice(keys)
        op = rnd.choice(["add", "remove", "set"])
        if op == "add":
            try:
                cart = carts.add("s", design_id, fmt, prices[design_id], rnd.randint(1, 5))
            except InvalidInput:
                cart = carts.get("s")
        elif op == "remove":
            cart = carts.remove("s", design_id, fmt)
        else:
            cart = carts.set_quantity("s", design_id, fmt, rnd.randint(-1, 6))
        assert_totals(cart)
        assert_totals(carts.get("s"))
        assert len({i.key for i in cart.items}) == len(cart.items)


def test_concurrent_adds_to_one_session_are_not_lost(store):
    carts = CartService(store=store, lock_service=LocalLockService(wait=10))
    start = threading.Barrier(8)

    def worker():
        start.wait()
        for _ in range(10):
            carts.add("shared", "x", "SVG", "3.00", 1)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    cart = carts.get("shared")
    assert cart.item_count == 80
    assert cart.total == Decimal("240.00")


def test_busy_session_raises_cart_busy(store):
    locks = LocalLockService(wait=0.05)
    carts = CartService(store=store, lock_service=locks)
    with locks.hold("cart:s1"):
        with pytest.raises(CartBusy):
            carts.add("s1", "x", "SVG", "3.00")
    # another session is not blocked
    with locks.hold("cart:s1"):
        assert carts.add("s2", "x", "SVG", "3.00").item_count == 1


def test_local_locks_do_not_pile_up(store):
    locks = LocalLockService(wait=0.05)
    carts = CartService(store=store, lock_service=locks)
    for n in range(50):
        carts.add(f"s{n}", "x", "SVG", "3.00")
    assert locks._locks == {}

    with locks.hold("cart:s1"):
        assert list(locks._locks) == ["cart:s1"]
        with pytest.raises(CartBusy):
            carts.add("s1", "x", "SVG", "3.00")
        assert locks._locks["cart:s1"][1] == 1
    assert locks._locks == {}
