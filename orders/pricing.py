"""Pour-size pricing and stock ratios for bar items."""
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from rest_framework.exceptions import ValidationError


POUR_30 = "30ml"
POUR_60 = "60ml"
POUR_90 = "90ml"
BOTTLE = "Btl"

POUR_SIZES = (POUR_30, POUR_60, POUR_90, BOTTLE)

# Price of a pour relative to the base (30ml) price
POUR_MULTIPLIERS = {
    POUR_30: Decimal("1"),
    POUR_60: Decimal("2"),
    POUR_90: Decimal("3"),
    BOTTLE: Decimal("12"),
}

# Bottle-equivalents consumed by one pour
POUR_DEDUCTIONS = {
    POUR_30: Decimal("0.04"),
    POUR_60: Decimal("0.08"),
    POUR_90: Decimal("0.12"),
    BOTTLE: Decimal("1.00"),
}


def validate_variant(variant):
    if variant is not None and variant not in POUR_SIZES:
        raise ValidationError({'variant': f"Unknown pour size '{variant}'. Use one of {', '.join(POUR_SIZES)}."})
    return variant


def price_for_variant(item, variant=None):
    """Unit price of ``item`` for a pour size.

    An explicit override in ``item.variant_prices`` wins; otherwise the base
    price is scaled by the pour multiplier. Items sold without a variant use
    the base price.
    """
    base = Decimal(str(item.price))
    if variant is None:
        return base
    validate_variant(variant)
    overrides = item.variant_prices or {}
    override = overrides.get(variant)
    if override not in (None, ""):
        return Decimal(str(override))
    return base * POUR_MULTIPLIERS[variant]


def deduction_for_variant(variant=None):
    if variant is None:
        return Decimal("1")
    return POUR_DEDUCTIONS[validate_variant(variant)]


def default_voice_variant(item):
    """Beer is sold by the bottle, spirits by the smallest pour."""
    if item.business_unit != "BAR":
        return None
    if (item.sub_category or "").lower() == "beer":
        return BOTTLE
    return POUR_30


def apply_tax(subtotal, rate=None):
    """Return ``(tax, grand_total)`` with tax rounded to a whole currency unit."""
    if rate is None:
        rate = settings.VENUE["DINE_IN_TAX_RATE"]
    subtotal = Decimal(str(subtotal))
    tax = (subtotal * Decimal(str(rate))).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return tax, subtotal + tax
