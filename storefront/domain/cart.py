# storefront/domain/cart.py
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List

CENT = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    """Decimal rounded to the cent. Floats go through str() to avoid binary noise."""
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class CartLineItem:
    design_id: str
    format: str
    unit_price: Decimal
    quantity: int = 1

    @property
    def key(self) -> tuple[str, str]:
        return (self.design_id, self.format)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "design_id": self.design_id,
            "format": self.format,
            "unit_price": str(self.unit_price),
            "quantity": self.quantity,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CartLineItem":
        return cls(
            design_id=data["design_id"],
            format=data["format"],
            unit_price=to_money(data["unit_price"]),
            quantity=int(data["quantity"]),
        )


@dataclass
class Cart:
    """
    Line items of one session. total and item_count are computed from the
    items on every read, so they cannot drift from them.
    """

    session_id: str
    items: List[CartLineItem] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return sum((i.line_total for i in self.items), Decimal("0.00")).quantize(CENT)

    @property
    def item_count(self) -> int:
        return sum(i.quantity for i in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def find(self, design_id: str, format: str) -> CartLineItem | None:
        return next((i for i in self.items if i.key == (design_id, format)), None)

    def snapshot(self) -> List[CartLineItem]:
        # copies, so later cart mutations never reach an order
        return [CartLineItem(i.design_id, i.format, i.unit_price, i.quantity) for i in self.items]

    def to_dict(self) -> Dict[str, Any]:
        return {"items": [i.to_dict() for i in self.items]}

    @classmethod
    def from_dict(cls, session_id: str, data: Dict[str, Any] | None) -> "Cart":
        items = [CartLineItem.from_dict(i) for i in (data or {}).get("items", [])]
        return cls(session_id=session_id, items=items)
