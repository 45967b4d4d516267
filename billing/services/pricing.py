"""
Pricing calculator.

Pure functions over Decimal. Nothing here touches the database; callers pass
in the plan price, product variant options and the subscriber's selections.
Amounts are only rounded to cents by `money()`, which callers apply at the
point a value becomes a stored money amount.
"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from django.conf import settings

from billing.exceptions import ValidationError


CENT = Decimal('0.01')
ZERO = Decimal('0')
HUNDRED = Decimal('100')


def to_decimal(value, default=ZERO):
    """
    Coerce numbers and numeric strings to Decimal. Floats go through str() to
    avoid binary noise. NaN and Infinity count as non-numeric.
    """
    if value is None or value == '':
        return default
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value))
        except (InvalidOperation, ValueError):
            return default
    return value if value.is_finite() else default


def money(value):
    """Round to cents, half up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value):
    """Decimal-safe string with exactly two decimal places."""
    return str(money(value))


def coerce_quantity(value):
    """
    Quantity defaults to 1 when absent, non-numeric or below 1. Fractions are
    truncated. Anything above BILLING_MAX_QUANTITY is rejected.
    """
    quantity = to_decimal(value, default=None)
    if quantity is None or quantity < 1:
        return 1
    if quantity > settings.BILLING_MAX_QUANTITY:
        raise ValidationError(f'Quantity cannot exceed {settings.BILLING_MAX_QUANTITY}')
    return int(quantity)


def default_tax_percent(plan_tax_percent):
    """Plan tax percent, or the configured default (18) when the plan has none."""
    if plan_tax_percent is None or plan_tax_percent == '':
        return to_decimal(settings.BILLING_DEFAULT_TAX_PERCENT)
    return to_decimal(plan_tax_percent)


def compute_variant_extra(variant_options, selected_variants):
    """
    Sum the extra price of every selected (attribute, value) pair that exists
    among the product's variant options. Unknown selections contribute 0.
    """
    if not selected_variants:
        return ZERO
    extra = ZERO
    for attribute, value in selected_variants.items():
        for option_attribute, option_value, option_extra in variant_options:
            if option_attribute == attribute and option_value == value:
                extra += to_decimal(option_extra)
                break
    return extra


def compute_base_price(plan_price, quantity, variant_options=(), selected_variants=None):
    """basePrice = (plan price + variant extras) * quantity. Not rounded."""
    variant_extra = compute_variant_extra(variant_options, selected_variants)
    return (to_decimal(plan_price) + variant_extra) * quantity


def compute_tax(subtotal, tax_percent):
    return to_decimal(subtotal) * to_decimal(tax_percent) / HUNDRED


@dataclass
class PriceBreakdown:
    """Priced subscription event, rounded to cents and internally consistent."""
    base_price: Decimal
    discount_amount: Decimal
    subtotal: Decimal
    tax_percent: Decimal
    tax_amount: Decimal
    total: Decimal


def price_breakdown(base_price, discount_amount, tax_percent):
    """
    Derive subtotal, tax and total.

    The discount is rounded to cents first. Base and subtotal are then exact
    cents, so rounding tax once keeps total == subtotal + tax exactly and equal
    to (base - discount) * (1 + tax% / 100) rounded at the end.
    """
    base_price = money(base_price)
    discount_amount = money(discount_amount)
    subtotal = base_price - discount_amount
    tax_percent = to_decimal(tax_percent)
    tax_amount = money(compute_tax(subtotal, tax_percent))
    return PriceBreakdown(
        base_price=base_price,
        discount_amount=discount_amount,
        subtotal=subtotal,
        tax_percent=tax_percent,
        tax_amount=tax_amount,
        total=subtotal + tax_amount,
    )
