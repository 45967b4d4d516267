"""
Quotation templates.

A template names a recurring plan plus one-off product lines. Admins create
quotations from a template instead of picking the plan and product each time.
"""
import logging

from billing.exceptions import Forbidden, NotFound, ValidationError
from billing.models import Plan, Product, QuotationTemplate

from .pricing import ZERO, coerce_quantity, format_money, money, to_decimal


logger = logging.getLogger(__name__)

DEFAULT_VALIDITY_DAYS = 30
MAX_VALIDITY_DAYS = 3650


def _require_admin(user):
    if not user.is_company_admin:
        raise Forbidden('Access denied')


def templates_for(admin):
    _require_admin(admin)
    return QuotationTemplate.objects.filter(company_id=admin.company_id).select_related('recurring_plan')


def _get_template(company_id, template_id):
    try:
        return QuotationTemplate.objects.select_related('recurring_plan').get(
            pk=template_id, company_id=company_id
        )
    except (QuotationTemplate.DoesNotExist, ValueError, TypeError):
        raise NotFound('Template not found')


def _validity_days(raw):
    value = to_decimal(raw, default=None)
    if value is None:
        return DEFAULT_VALIDITY_DAYS
    if value < 1 or value > MAX_VALIDITY_DAYS:
        raise ValidationError(f'Validity days must be between 1 and {MAX_VALIDITY_DAYS}')
    return int(value)


def _clean_product_lines(company_id, lines):
    """
    Normalize product lines to {product_id, product_name, quantity, unit_price}.
    Unit price falls back to the product's sales price.
    """
    if lines in (None, ''):
        return []
    if not isinstance(lines, list):
        raise ValidationError('Product lines must be a list')

    cleaned = []
    for line in lines:
        if not isinstance(line, dict):
            raise ValidationError('Each product line needs a product')
        try:
            product = Product.objects.get(pk=line.get('product_id', line.get('productId')), company_id=company_id)
        except (Product.DoesNotExist, ValueError, TypeError):
            raise NotFound('Product not found')

        raw_price = line.get('unit_price', line.get('unitPrice'))
        if raw_price in (None, ''):
            unit_price = product.sales_price
        else:
            unit_price = to_decimal(raw_price, default=None)
            if unit_price is None or unit_price < 0:
                raise ValidationError('Unit price must be a non-negative number')

        cleaned.append({
            'product_id': product.pk,
            'product_name': product.name,
            'quantity': coerce_quantity(line.get('quantity')),
            'unit_price': format_money(unit_price),
        })
    return cleaned


def template_lines_total(template):
    """Sum of quantity * unit price over the template's product lines, in cents."""
    total = ZERO
    for line in template.product_lines or []:
        total += money(to_decimal(line.get('unit_price')) * line.get('quantity', 1))
    return total


def create_quotation_template(admin, data):
    _require_admin(admin)
    name = (data.get('name') or '').strip()
    if not name:
        raise ValidationError('Template name is required')
    if len(name) > 255:
        raise ValidationError('Template name is too long')

    recurring_plan = None
    if data.get('recurring_plan_id'):
        try:
            recurring_plan = Plan.objects.get(pk=data['recurring_plan_id'], company_id=admin.company_id)
        except (Plan.DoesNotExist, ValueError, TypeError):
            raise NotFound('Plan not found')

    template = QuotationTemplate.objects.create(
        company_id=admin.company_id,
        admin=admin,
        name=name,
        validity_days=_validity_days(data.get('validity_days')),
        recurring_plan=recurring_plan,
        product_lines=_clean_product_lines(admin.company_id, data.get('product_lines')),
    )
    logger.info(f"Quotation template {template.name} created by {admin.email}")
    return template


def delete_quotation_template(admin, template_id):
    _require_admin(admin)
    template = _get_template(admin.company_id, template_id)
    template.delete()
    logger.info(f"Quotation template {template.name} deleted by {admin.email}")


def quotation_data_from_template(company_id, template_id, data):
    """
    Fill plan_id and product_id of a quotation request from a template's
    recurring plan. Values sent explicitly win over the template.
    """
    template = _get_template(company_id, template_id)
    plan = template.recurring_plan
    if plan is None:
        raise ValidationError(f'Template {template.name} has no recurring plan')

    merged = {'plan_id': plan.pk, 'product_id': plan.product_id}
    merged.update({key: value for key, value in data.items() if value not in (None, '')})
    return merged
