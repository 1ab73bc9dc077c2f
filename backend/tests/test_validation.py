from decimal import Decimal

import pytest

from storecore.errors import InvalidAmount, InvalidQuantity, ValidationError
from storecore.validation import (
    amount_to_cents,
    cents_from_payload,
    clean_text,
    coerce_int,
    percent,
    positive_int,
)


@pytest.mark.parametrize("value, expected", [(5, 5), ("7", 7), (" 12 ", 12), (-3, -3)])
def test_coerce_int_accepts_integers(value, expected):
    assert coerce_int(value, "qty") == expected


@pytest.mark.parametrize("value", [True, 1.0, "1.5", "1e5", "", "abc", None, [1]])
def test_coerce_int_rejects_everything_else(value):
    with pytest.raises(ValidationError):
        coerce_int(value, "qty")


def test_positive_int_uses_quantity_error():
    with pytest.raises(InvalidQuantity):
        positive_int(0, "quantity")


@pytest.mark.parametrize("value, expected", [
    ("100.00", 10000),
    (99.5, 9950),
    ("0.005", 1),
    ("0.004", 0),
    (3, 300),
])
def test_amount_to_cents_rounds_half_up(value, expected):
    assert amount_to_cents(value, "amount") == expected


@pytest.mark.parametrize("value", ["-0.01", "NaN", "Infinity", "x", True])
def test_amount_to_cents_rejects(value):
    with pytest.raises(InvalidAmount):
        amount_to_cents(value, "amount")


def test_cents_key_wins_over_decimal_key():
    assert cents_from_payload({"price": "9.99", "price_cents": 100}, "price") == 100
    assert cents_from_payload({"price": "9.99"}, "price") == 999
    assert cents_from_payload({}, "price", required=False) is None
    with pytest.raises(InvalidAmount):
        cents_from_payload({}, "price")


def test_percent_bounds():
    assert percent("18", "igv") == Decimal("18")
    with pytest.raises(ValidationError):
        percent(101, "igv")


def test_clean_text():
    assert clean_text("  hola ") == "hola"
    assert clean_text("   ") is None
    assert clean_text(None) is None
    with pytest.raises(ValidationError):
        clean_text("abcdef", max_length=3)
