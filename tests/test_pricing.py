"""Tests for the order price calculator."""

from decimal import Decimal

import pytest

from food_delivery.core.errors import InvalidRequest
from food_delivery.services.pricing import (
    DEFAULT_DISH_NAME,
    ZERO,
    format_money,
    normalize_item,
    parse_id,
    parse_price,
    parse_quantity,
    price_items,
    resolve_unit_price,
)


class TestPriceItems:
    """Totals are derived from unit price x quantity only."""

    def test_mixed_aliases_and_types(self):
        priced = price_items([
            {"price": "10.5", "quantity": 2},
            {"dish_price": 20, "quantity": "3"},
        ])

        assert priced.total == Decimal("81.00")
        assert priced.item_count == 5
        assert [i.unit_price for i in priced.items] == [Decimal("10.50"), Decimal("20.00")]

    def test_client_total_is_ignored(self):
        priced = price_items([{"dish_price": "5", "quantity": 2, "total": 1000}])

        assert priced.total == Decimal("10.00")

    def test_pricing_twice_gives_identical_totals(self):
        raw = [
            {"dish_name": "Pizza", "dish_price": "699.00", "quantity": 2},
            {"dishName": "Soup", "dishPrice": "249.99", "quantity": "1"},
            {"name": "Tea", "price": 0, "dish_price": None},
        ]

        first = price_items(raw)
        second = price_items(raw)

        assert first.total == second.total == Decimal("1647.99")
        assert first.items == second.items

    def test_empty_items(self):
        priced = price_items([])

        assert priced.total == ZERO
        assert priced.item_count == 0

    def test_subtotal(self):
        priced = price_items([{"dish_price": "699.00", "quantity": 2}])

        assert priced.items[0].subtotal == Decimal("1398.00")


class TestAliasResolution:
    """Field names accepted from the different clients."""

    def test_dish_price_wins_over_price(self):
        assert resolve_unit_price({"dish_price": "3", "price": "4"}) == Decimal("3.00")

    def test_zero_falls_through_to_next_alias(self):
        assert resolve_unit_price({"dish_price": 0, "price": "7.25"}) == Decimal("7.25")

    def test_unparseable_falls_through_to_legacy_alias(self):
        assert resolve_unit_price({"dish_price": "abc", "dishPrice": "12"}) == Decimal("12.00")

    def test_explicit_zero_only(self):
        assert resolve_unit_price({"price": "0"}) == ZERO

    def test_nothing_usable(self):
        assert resolve_unit_price({"name": "Soup"}) is None

    def test_name_and_image_aliases(self):
        item = normalize_item({"dishName": "Borscht", "imageUrl": "http://img/1.png", "dishId": "7"})

        assert item.name == "Borscht"
        assert item.image == "http://img/1.png"
        assert item.dish_id == 7

    def test_defaults(self):
        item = normalize_item({})

        assert item.name == DEFAULT_DISH_NAME
        assert item.image == ""
        assert item.dish_id is None
        assert item.unit_price == ZERO
        assert item.quantity == 1


class TestLenientMode:
    """Default mode never rejects an order."""

    def test_bad_price_becomes_zero(self):
        priced = price_items([{"dish_price": "twelve", "quantity": 2}])

        assert priced.items[0].unit_price == ZERO
        assert priced.total == ZERO

    def test_non_mapping_item_is_priced_as_empty(self):
        priced = price_items(["pizza", {"dish_price": "2", "quantity": 1}])

        assert priced.items[0].name == DEFAULT_DISH_NAME
        assert priced.items[0].unit_price == ZERO
        assert priced.total == Decimal("2.00")

    def test_negative_price_is_unparseable(self):
        assert normalize_item({"dish_price": "-5"}).unit_price == ZERO

    @pytest.mark.parametrize("quantity", ["1e3", "1e5000", "99999999999"])
    def test_exponent_or_oversized_quantity_counts_once(self, quantity):
        priced = price_items([{"dish_price": "699.00", "quantity": quantity}])

        assert priced.items[0].quantity == 1
        assert priced.total == Decimal("699.00")

    def test_oversized_dish_id_is_dropped(self):
        assert normalize_item({"dish_id": "9" * 30, "dish_price": "1"}).dish_id is None


class TestStrictMode:

    def test_missing_price_rejected_with_line_number(self):
        with pytest.raises(InvalidRequest) as exc_info:
            price_items([{"dish_price": "1"}, {"dish_name": "Soup"}], strict=True)

        assert "#2" in exc_info.value.message

    def test_non_mapping_rejected(self):
        with pytest.raises(InvalidRequest):
            price_items([42], strict=True)

    def test_explicit_zero_accepted(self):
        priced = price_items([{"dish_price": 0}], strict=True)

        assert priced.total == ZERO


class TestParsers:

    @pytest.mark.parametrize("value, expected", [
        ("10.5", Decimal("10.50")),
        (" 3 ", Decimal("3.00")),
        (20, Decimal("20.00")),
        (0.1, Decimal("0.10")),
        ("1.005", Decimal("1.01")),
        (Decimal("2.499"), Decimal("2.50")),
    ])
    def test_parse_price(self, value, expected):
        assert parse_price(value) == expected

    @pytest.mark.parametrize("value", [None, "", "abc", "NaN", "Infinity", True, [], "-1"])
    def test_parse_price_rejects(self, value):
        assert parse_price(value) is None

    @pytest.mark.parametrize("value, expected", [
        (3, 3),
        ("3", 3),
        ("2.0", 2),
        (None, 1),
        ("many", 1),
        (0, 1),
        (-4, 1),
        (True, 1),
        ("2.9", 2),
        (2.9, 2),
        (" 7 pcs", 7),
        ("1e3", 1),
        ("1e5000", 1),
        (1e300, 1),
        (float("nan"), 1),
        ("9" * 5000, 1),
        (2147483647, 2147483647),
        (2147483648, 1),
        ("2147483648", 1),
    ])
    def test_parse_quantity(self, value, expected):
        assert parse_quantity(value) == expected

    @pytest.mark.parametrize("value, expected", [
        (5, 5),
        ("7", 7),
        (" 12 ", 12),
        (None, None),
        (True, None),
        ("", None),
        ("2.5", None),
        ("1e3", None),
        ("0", None),
        (-3, None),
        ("2147483648", None),
        ("9" * 5000, None),
    ])
    def test_parse_id(self, value, expected):
        assert parse_id(value) == expected


class TestFormatMoney:

    def test_whole_amount_has_no_decimals(self):
        assert format_money(Decimal("1398.00")) == "1398"

    def test_fractional_amount_keeps_cents(self):
        assert format_money(Decimal("10.5")) == "10.50"
