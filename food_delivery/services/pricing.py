"""
Order Price Calculator

Turns loosely-typed line items from clients into canonical ``PricedItem``
objects and an authoritative order total.

Clients (mobile app, web app, Telegram bot) send the same fields under
different names, prices as strings or numbers and quantities as strings or
integers. All alias handling lives in ``FIELD_ALIASES``; nothing else in the
codebase should look at raw item keys.

Lenient mode (default) never rejects an order: a price that cannot be parsed
becomes 0 and a bad quantity becomes 1. Strict mode raises ``InvalidRequest``
for the first line without a usable price.
"""

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Mapping, Optional

from food_delivery.core.errors import InvalidRequest

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

DEFAULT_DISH_NAME = "Dish"

# Largest value of a 32-bit Integer column
MAX_INTEGER = 2_147_483_647
MAX_QUANTITY = MAX_INTEGER

_INT_PATTERN = re.compile(r"[+-]?\d+")

# Canonical field -> raw keys, in resolution order.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "unit_price": ("dish_price", "price", "dishPrice"),
    "name": ("dish_name", "name", "dishName"),
    "image": ("dish_image", "imageUrl", "image_url"),
    "dish_id": ("dish_id", "dishId"),
    "quantity": ("quantity",),
}


@dataclass(frozen=True)
class PricedItem:
    """A normalized line item. Unit price is already rounded to cents."""
    dish_id: Optional[int]
    name: str
    unit_price: Decimal
    quantity: int
    image: str = ""

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class PricedOrder:
    """Normalized items plus the totals derived from them."""
    items: tuple[PricedItem, ...]

    @property
    def total(self) -> Decimal:
        return sum((item.subtotal for item in self.items), ZERO)

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)


# =============================================================================
# PARSERS
# =============================================================================

def parse_price(value: Any) -> Optional[Decimal]:
    """
    Parse a price into a non-negative Decimal rounded to cents.

    Returns None for missing, non-numeric, non-finite or negative input.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, Decimal):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = Decimal(text)
        except InvalidOperation:
            return None
    else:
        return None

    if not parsed.is_finite() or parsed < 0:
        return None
    try:
        return parsed.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # Too many digits to represent in cents
        return None


def parse_quantity(value: Any) -> int:
    """
    Parse a quantity from its leading integer digits: "3" -> 3, "2.9" -> 2,
    "1e3" -> 1.

    Anything unusable, below 1 or above ``MAX_QUANTITY`` becomes 1.
    """
    quantity = None

    if isinstance(value, bool):
        quantity = None
    elif isinstance(value, int):
        quantity = value
    elif isinstance(value, (float, Decimal, str)):
        quantity = _leading_int(str(value))

    if quantity is None or not 1 <= quantity <= MAX_QUANTITY:
        return 1
    return quantity


def parse_id(value: Any) -> Optional[int]:
    """Parse a whole-number id. Non-positive or out-of-range ids are None."""
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    if not _INT_PATTERN.fullmatch(text):
        return None
    parsed = _leading_int(text)
    if parsed is None or not 0 < parsed <= MAX_INTEGER:
        return None
    return parsed


def _leading_int(text: str) -> Optional[int]:
    match = _INT_PATTERN.match(text.strip())
    if match is None:
        return None
    digits = match.group(0)
    # More digits than any column value can hold
    if len(digits.lstrip("+-").lstrip("0")) > len(str(MAX_INTEGER)):
        return None
    return int(digits)


# =============================================================================
# NORMALIZATION
# =============================================================================

def _first_present(raw: Mapping[str, Any], field: str) -> Any:
    for key in FIELD_ALIASES[field]:
        value = raw.get(key)
        if value not in (None, ""):
            return value
    return None


def resolve_unit_price(raw: Mapping[str, Any]) -> Optional[Decimal]:
    """
    Walk the price aliases in order and return the first positive price.

    A zero or unparseable value falls through to the next alias. Returns
    ``ZERO`` when some alias holds an explicit zero, None when nothing usable
    was found.
    """
    saw_zero = False
    for key in FIELD_ALIASES["unit_price"]:
        price = parse_price(raw.get(key))
        if price is None:
            continue
        if price > 0:
            return price
        saw_zero = True
    return ZERO if saw_zero else None


def normalize_item(raw: Any, index: int = 0, strict: bool = False) -> PricedItem:
    """Build a ``PricedItem`` from one raw client line item."""
    if not isinstance(raw, Mapping):
        if strict:
            raise InvalidRequest(f"Item #{index + 1} must be an object")
        raw = {}

    unit_price = resolve_unit_price(raw)
    if unit_price is None:
        if strict:
            raise InvalidRequest(f"Item #{index + 1} has no valid price")
        unit_price = ZERO

    name = _first_present(raw, "name")
    image = _first_present(raw, "image")

    return PricedItem(
        dish_id=parse_id(_first_present(raw, "dish_id")),
        name=str(name) if name is not None else DEFAULT_DISH_NAME,
        unit_price=unit_price,
        quantity=parse_quantity(_first_present(raw, "quantity")),
        image=str(image) if image is not None else "",
    )


def price_items(raw_items: Iterable[Any], strict: bool = False) -> PricedOrder:
    """
    Price a list of raw line items.

    Any ``total`` the client declared is ignored; the result is derived
    from unit price x quantity only.
    """
    return PricedOrder(
        items=tuple(
            normalize_item(raw, index=index, strict=strict)
            for index, raw in enumerate(raw_items)
        )
    )


def format_money(amount: Decimal) -> str:
    """Render an amount for humans: 1398.00 -> '1398', 10.50 -> '10.50'."""
    amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    if amount == amount.to_integral_value():
        return str(amount.quantize(Decimal(1)))
    return str(amount)
