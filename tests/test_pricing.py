"""
Markup, currency helpers and the checkout price breakdown
"""

import pytest

from iholiday.core.errors import BookingFlowError
from iholiday.services.pricing import (
    apply_markup,
    compute_breakdown,
    convert_currency,
    format_currency,
    resolve_promo,
    to_minor_units,
)


def test_apply_markup():
    assert apply_markup(1000, 10) == 1100.0
    assert apply_markup(1000, 0) == 1000


def test_convert_and_format():
    assert convert_currency(83.2, "INR", "USD") == 1.0
    assert convert_currency(50, "INR", "XYZ") == 50
    assert format_currency(1234.5, "INR") == "₹1,234.50"
    assert format_currency(10, "CHF") == "CHF10.00"


def test_minor_units_round_half_up():
    assert to_minor_units(4650) == 465000
    assert to_minor_units("10.005") == 1001
    assert to_minor_units(0.1) == 10


def test_resolve_promo_is_case_insensitive():
    assert resolve_promo(" welcome100 ", {"WELCOME100": 100.0}) == 100.0
    with pytest.raises(BookingFlowError):
        resolve_promo("NOPE", {"WELCOME100": 100.0})


def test_breakdown_sums_fares_and_extras():
    price = compute_breakdown(
        [{"base_fare": 4000, "taxes": 650, "offered_fare": 4650},
         {"base_fare": 4200, "taxes": 650, "offered_fare": 4850}, None],
        addons_total=400,
        insurance=200,
        discount=100,
        currency="INR",
    )
    assert price.base_fare == 8200
    assert price.taxes == 1300
    assert price.fees == 600
    assert price.discount == 100
    assert price.total == 9400
    assert price.display()["total"] == "₹9,400.00"


def test_discount_never_exceeds_total():
    price = compute_breakdown([{"base_fare": 50, "taxes": 0, "offered_fare": 50}], discount=100)
    assert price.discount == 50
    assert price.total == 0
