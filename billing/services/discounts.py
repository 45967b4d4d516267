"""
Discount resolver.

A discount comes from one of two sources: the plan's built-in default or a
company discount code. A valid code overrides the plan default; the two never
stack.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

from .pricing import HUNDRED, ZERO, to_decimal


PERCENT_FIRST_MONTH = 'percent_first_month'
FIXED = 'fixed'
DISCOUNT_TYPES = (PERCENT_FIRST_MONTH, FIXED)


@dataclass(frozen=True)
class PlanDefault:
    """Discount configured on the plan itself."""
    discount_type: str
    value: Decimal


@dataclass(frozen=True)
class CodeOverride:
    """Discount from a redeemed company code."""
    discount_type: str
    value: Decimal
    code: str
    discount_id: Optional[int] = None


DiscountSource = Union[PlanDefault, CodeOverride]


@dataclass(frozen=True)
class AppliedDiscount:
    source: Optional[DiscountSource]
    amount: Decimal

    @property
    def discount_type(self):
        return self.source.discount_type if self.source else None

    @property
    def value(self):
        return self.source.value if self.source else None

    @property
    def code(self):
        return self.source.code if isinstance(self.source, CodeOverride) else None

    @property
    def label(self):
        """Label for the invoice discount line."""
        return self.code or 'Applied'


NO_DISCOUNT = AppliedDiscount(source=None, amount=ZERO)


def normalize_code(code):
    return (code or '').strip().upper()


def plan_default_for(plan):
    """PlanDefault for a plan with both a discount type and a non-zero value, else None."""
    if plan.discount_type and plan.discount_value:
        return PlanDefault(discount_type=plan.discount_type, value=to_decimal(plan.discount_value))
    return None


def find_code(explicit_code, company_discounts):
    """Match a code (case-insensitive, trimmed) against redeemable company discounts."""
    wanted = normalize_code(explicit_code)
    if not wanted:
        return None
    for discount in company_discounts:
        if normalize_code(discount.name) == wanted and discount.is_redeemable():
            return CodeOverride(
                discount_type=discount.discount_type,
                value=to_decimal(discount.value),
                code=wanted,
                discount_id=discount.pk,
            )
    return None


def discount_amount(base_price, source):
    """Monetary discount for a source. Unknown types discount nothing."""
    if source is None:
        return ZERO
    if source.discount_type == PERCENT_FIRST_MONTH:
        return base_price * source.value / HUNDRED
    if source.discount_type == FIXED:
        return min(source.value, base_price)
    return ZERO


def select_source(plan_discount, code_override):
    """Code override wins over the plan default."""
    return code_override or plan_discount


def resolve_discount(base_price, plan_discount=None, explicit_code=None, company_discounts=()):
    """
    Resolve the discount to apply to `base_price`.

    Returns an AppliedDiscount; `amount` is unrounded so the caller decides
    when the value becomes money.
    """
    base_price = to_decimal(base_price)
    source = select_source(plan_discount, find_code(explicit_code, company_discounts))
    if source is None:
        return NO_DISCOUNT
    return AppliedDiscount(source=source, amount=discount_amount(base_price, source))
