"""
Invoice line composer, shared by the subscribe, confirm and renewal paths so
every invoice has the same shape: base line, optional negative discount line,
optional tax line. The signed line amounts always sum to `total`.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List

from .pricing import ZERO, format_money, money, to_decimal


@dataclass
class ComposedInvoice:
    lines: List[dict] = field(default_factory=list)
    subtotal: Decimal = ZERO
    total: Decimal = ZERO


def format_percent(value):
    """18.00 -> '18', 7.50 -> '7.5'."""
    return f"{to_decimal(value).normalize():f}"


def describe_subscription(product_name, plan_name, quantity, selected_variants=None):
    """'Product - Plan xN (attr: value, ...)'."""
    description = f"{product_name or 'Product'} - {plan_name or 'Plan'} x{quantity}"
    if selected_variants:
        variant_str = ', '.join(f"{attribute}: {value}" for attribute, value in selected_variants.items())
        if variant_str:
            description += f" ({variant_str})"
    return description


def compose_lines(description, base_price, discount_amount, discount_label, tax_amount, tax_percent):
    base_price = money(base_price)
    discount_amount = money(discount_amount)
    tax_amount = money(tax_amount)

    lines = [{'description': description, 'amount': format_money(base_price)}]
    if discount_amount > 0:
        lines.append({
            'description': f"Discount: {discount_label or 'Applied'}",
            'amount': format_money(-discount_amount),
        })
    if tax_amount > 0:
        lines.append({
            'description': f"Tax ({format_percent(tax_percent)}%)",
            'amount': format_money(tax_amount),
        })

    subtotal = base_price - discount_amount
    return ComposedInvoice(lines=lines, subtotal=subtotal, total=subtotal + tax_amount)


def lines_total(lines):
    """Signed sum of line amounts."""
    return sum((to_decimal(line.get('amount')) for line in lines), ZERO)
