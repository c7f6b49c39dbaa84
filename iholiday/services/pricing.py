"""
Pricing helpers - markup, currency conversion/formatting and the checkout
price breakdown
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, Optional

from pydantic import BaseModel

from iholiday.core.errors import BookingFlowError

CURRENCIES = {
    "INR": {"code": "INR", "symbol": "₹", "name": "Indian Rupee"},
    "USD": {"code": "USD", "symbol": "$", "name": "US Dollar"},
    "EUR": {"code": "EUR", "symbol": "€", "name": "Euro"},
    "GBP": {"code": "GBP", "symbol": "£", "name": "British Pound"},
    "AED": {"code": "AED", "symbol": "د.إ", "name": "UAE Dirham"},
    "JPY": {"code": "JPY", "symbol": "¥", "name": "Japanese Yen"},
}

# Units per 1 USD
EXCHANGE_RATES = {
    "USD": 1.0,
    "EUR": 0.93,
    "INR": 83.2,
    "GBP": 0.81,
    "AED": 3.67,
    "JPY": 151.5,
}


def apply_markup(amount: float, pct: float) -> float:
    """amount * (1 + pct/100), rounded to 2 decimals; no-op for pct <= 0"""
    if pct <= 0:
        return amount
    return round(float(amount) * (1 + pct / 100), 2)


def convert_currency(amount: float, from_currency: str, to_currency: str) -> float:
    """Convert through USD; unknown currencies return the amount unchanged"""
    source = EXCHANGE_RATES.get(from_currency.upper())
    target = EXCHANGE_RATES.get(to_currency.upper())
    if source is None or target is None:
        return amount
    return round(amount / source * target, 2)


def currency_symbol(code: str) -> str:
    currency = CURRENCIES.get(code.upper())
    return currency["symbol"] if currency else code.upper()


def format_currency(amount: float, code: str = "INR") -> str:
    return f"{currency_symbol(code)}{amount:,.2f}"


def to_minor_units(amount: Any) -> int:
    """Major units to integer paise/cents, rounding half up"""
    value = Decimal(str(amount)) * 100
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def resolve_promo(code: str, promo_codes: Dict[str, float]) -> float:
    discount = promo_codes.get(code.strip().upper())
    if discount is None:
        raise BookingFlowError(f"Promo code {code} is not valid")
    return float(discount)


class PriceBreakdown(BaseModel):
    base_fare: float = 0.0
    taxes: float = 0.0
    fees: float = 0.0
    discount: float = 0.0
    total: float = 0.0
    currency: str = "INR"

    def display(self) -> Dict[str, str]:
        return {
            key: format_currency(getattr(self, key), self.currency)
            for key in ("base_fare", "taxes", "fees", "discount", "total")
        }


def compute_breakdown(
    fares: Iterable[Optional[Dict[str, float]]],
    addons_total: float = 0.0,
    insurance: float = 0.0,
    discount: float = 0.0,
    currency: str = "INR",
) -> PriceBreakdown:
    """
    Sum the selected fares and extras

    Each fare is a dict with base_fare, taxes and offered_fare. The total uses
    the offered fare plus extras minus discount, floored at zero, and the
    applied discount never exceeds what it can take off.
    """
    base = taxes = offered = 0.0
    for fare in fares:
        if not fare:
            continue
        base += fare.get("base_fare", 0.0)
        taxes += fare.get("taxes", 0.0)
        offered += fare.get("offered_fare", 0.0)

    fees = round(addons_total + insurance, 2)
    gross = round(offered + fees, 2)
    applied_discount = round(min(max(discount, 0.0), gross), 2)
    return PriceBreakdown(
        base_fare=round(base, 2),
        taxes=round(taxes, 2),
        fees=fees,
        discount=applied_discount,
        total=round(max(gross - applied_discount, 0.0), 2),
        currency=currency,
    )
