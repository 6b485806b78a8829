# storefront/services/cart_service.py
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict

from storefront.domain.cart import Cart, CartLineItem, to_money
from storefront.domain.errors import InvalidInput
from storefront.services.session_store import SessionStore
from storefront.utils.settings import MAX_DESIGN_ID_LENGTH, MAX_ITEM_QUANTITY
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def cart_to_dict(cart: Cart) -> Dict[str, Any]:
    return {
        "session_id": cart.session_id,
        "items": [
            {
                "design_id": i.design_id,
                "format": i.format,
                "unit_price": i.unit_price,
                "quantity": i.quantity,
                "line_total": i.line_total,
            }
            for i in cart.items
        ],
        "total": cart.total,
        "item_count": cart.item_count,
    }


class CartService:
    """
    Session-scoped cart.
    commands (add, remove, set_quantity, clear) run under a per-session lock
    as load -> mutate -> store, so two requests for one session cannot lose
    each other's update; query (get) only reads.
    """

    def __init__(
        self,
        store: SessionStore,
        lock_service,
        max_design_id_length: int = MAX_DESIGN_ID_LENGTH,
        max_quantity: int = MAX_ITEM_QUANTITY,
    ):
        self.store = store
        self.lock_service = lock_service
        self.max_design_id_length = max_design_id_length
        self.max_quantity = max_quantity

    #query
    def get(self, session_id: str) -> Cart:
        return Cart.from_dict(session_id, self.store.get(session_id))

    #commands
    def add(
        self,
        session_id: str,
        design_id: str,
        format: str,
        unit_price: Any,
        quantity: int = 1,
    ) -> Cart:
        design_id = self._check_design_id(design_id)
        format = self._check_format(format)
        price = self._check_price(unit_price)
        self._check_quantity(quantity)

        def apply(cart: Cart):
            existing = cart.find(design_id, format)
            if existing:
                if existing.quantity + quantity > self.max_quantity:
                    raise InvalidInput(f"At most {self.max_quantity} of one item per cart")
                logger.info(
                    f"Cart {session_id}: {design_id}/{format} already present, quantity "
                    f"{existing.quantity} -> {existing.quantity + quantity}"
                )
                existing.quantity += quantity
                existing.unit_price = price
            else:
                logger.info(f"Cart {session_id}: adding {design_id}/{format} x{quantity}")
                cart.items.append(CartLineItem(design_id, format, price, quantity))

        return self._mutate(session_id, apply)

    def remove(self, session_id: str, design_id: str, format: str) -> Cart:
        key = (str(design_id or "").strip(), str(format or "").strip().upper())

        def apply(cart: Cart):
            before = len(cart.items)
            cart.items = [i for i in cart.items if i.key != key]
            if len(cart.items) != before:
                logger.info(f"Cart {session_id}: removed {key[0]}/{key[1]}")

        return self._mutate(session_id, apply)

    def set_quantity(self, session_id: str, design_id: str, format: str, quantity: int) -> Cart:
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise InvalidInput("Quantity must be an integer")
        if quantity <= 0:
            return self.remove(session_id, design_id, format)
        self._check_quantity(quantity)
        key = (str(design_id or "").strip(), str(format or "").strip().upper())

        def apply(cart: Cart):
            item = cart.find(*key)
            if item:
                logger.info(f"Cart {session_id}: {key[0]}/{key[1]} quantity {item.quantity} -> {quantity}")
                item.quantity = quantity

        return self._mutate(session_id, apply)

    def clear(self, session_id: str) -> None:
        with self.lock_service.hold(f"cart:{session_id}"):
            self.store.delete(session_id)
        logger.info(f"Cart {session_id} cleared")

    def _mutate(self, session_id: str, apply: Callable[[Cart], None]) -> Cart:
        with self.lock_service.hold(f"cart:{session_id}"):
            cart = self.get(session_id)
            apply(cart)
            if cart.items:
                self.store.set(session_id, cart.to_dict())
            else:
                self.store.delete(session_id)
        return cart

    #validation
    def _check_design_id(self, design_id: Any) -> str:
        if not isinstance(design_id, str) or not design_id.strip():
            raise InvalidInput("designId is required")
        design_id = design_id.strip()
        if len(design_id) > self.max_design_id_length:
            raise InvalidInput(f"designId longer than {self.max_design_id_length} characters")
        return design_id

    @staticmethod
    def _check_format(format: Any) -> str:
        if not isinstance(format, str) or not format.strip():
            raise InvalidInput("format is required")
        return format.strip().upper()

    @staticmethod
    def _check_price(unit_price: Any) -> Decimal:
        try:
            price = to_money(unit_price)
        except (InvalidOperation, TypeError, ValueError):
            raise InvalidInput("price must be a number")
        if not price.is_finite() or price < 0:
            raise InvalidInput("price must be zero or more")
        return price

    def _check_quantity(self, quantity: Any) -> None:
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise InvalidInput("Quantity must be an integer")
        if quantity < 1 or quantity > self.max_quantity:
            raise InvalidInput(f"Quantity must be between 1 and {self.max_quantity}")
