"""
Catalog administration: products and their review flow, plans, discount codes
and company tax rates.

Plan and discount validation happens here so the pricing layer can trust
prices are non-negative and percents are within [0, 100].
"""
import logging
from decimal import Decimal

from django.core.exceptions import NON_FIELD_ERRORS, ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction

from accounts.models import User
from billing.exceptions import Forbidden, NotFound, ValidationError
from billing.models import BILLING_PERIOD_CHOICES, Discount, Plan, Product, Tax

from .discounts import DISCOUNT_TYPES, PERCENT_FIRST_MONTH, normalize_code
from .pricing import default_tax_percent, to_decimal


logger = logging.getLogger(__name__)

BILLING_PERIODS = [value for value, _ in BILLING_PERIOD_CHOICES]


def _full_clean(instance):
    """Run model validation and re-raise as a billing ValidationError."""
    try:
        instance.full_clean()
    except DjangoValidationError as e:
        messages = [
            ' '.join(errors) if name == NON_FIELD_ERRORS else f"{name}: {' '.join(errors)}"
            for name, errors in e.message_dict.items()
        ]
        raise ValidationError('; '.join(messages))


def _require_role(user, *roles):
    if user.role not in roles:
        raise Forbidden('Access denied')


def _decimal_field(data, key, label, required=True):
    raw = data.get(key)
    if raw in (None, ''):
        if required:
            raise ValidationError(f'{label} is required')
        return None
    value = to_decimal(raw, default=None)
    if value is None:
        raise ValidationError(f'{label} must be a number')
    return value


def _check_discount_value(discount_type, value):
    if discount_type not in DISCOUNT_TYPES:
        raise ValidationError(f'Unknown discount type: {discount_type}')
    if value < 0:
        raise ValidationError('Discount value cannot be negative')
    if discount_type == PERCENT_FIRST_MONTH and value > 100:
        raise ValidationError('Percent discounts cannot exceed 100')


# =============================================================================
# Products
# =============================================================================

def products_visible_to(user):
    """Company products; plain users only see published ones."""
    queryset = Product.objects.filter(company_id=user.company_id)
    if user.role == User.ROLE_USER:
        queryset = queryset.filter(status=Product.STATUS_PUBLISHED)
    return queryset


def _clean_variants(variants):
    if variants in (None, ''):
        return []
    if not isinstance(variants, list):
        raise ValidationError('Variants must be a list')
    cleaned = []
    for option in variants:
        if not isinstance(option, dict) or not option.get('attribute') or not option.get('value'):
            raise ValidationError('Each variant needs an attribute and a value')
        extra = to_decimal(option.get('extra_price', option.get('extraPrice')), default=None)
        if extra is None or extra < 0:
            raise ValidationError('Variant extra price must be a non-negative number')
        cleaned.append({
            'attribute': str(option['attribute']),
            'value': str(option['value']),
            'extra_price': str(extra),
        })
    return cleaned


def create_product(admin, data):
    _require_role(admin, User.ROLE_ADMIN)
    if not data.get('name') or not data.get('product_type'):
        raise ValidationError('Name, type, sales price, and cost price are required')

    product = Product(
        company_id=admin.company_id,
        admin=admin,
        name=data['name'],
        product_type=data['product_type'],
        sales_price=_decimal_field(data, 'sales_price', 'Sales price'),
        cost_price=_decimal_field(data, 'cost_price', 'Cost price'),
        variants=_clean_variants(data.get('variants')),
        status=Product.STATUS_DRAFT,
    )
    _full_clean(product)
    product.save()
    logger.info(f"Product {product.name} created by {admin.email}")
    return product


def _get_product(product_id):
    try:
        return Product.objects.get(pk=product_id)
    except (Product.DoesNotExist, ValueError, TypeError):
        raise NotFound('Product not found')


def assign_product(admin, product_id, internal_id):
    """Owning admin hands a product to an internal reviewer."""
    _require_role(admin, User.ROLE_ADMIN)
    product = _get_product(product_id)
    if product.admin_id != admin.id:
        raise Forbidden('Not your product')
    if not internal_id:
        raise ValidationError('Internal ID is required')
    try:
        reviewer = User.objects.get(pk=internal_id, role=User.ROLE_INTERNAL, company_id=admin.company_id)
    except (User.DoesNotExist, ValueError, TypeError):
        raise NotFound('Internal reviewer not found')

    product.assigned_internal = reviewer
    product.status = Product.STATUS_PENDING_INTERNAL
    product.save(update_fields=['assigned_internal', 'status', 'updated_at'])
    logger.info(f"Product {product.name} assigned to {reviewer.email}")
    return product


def publish_product(reviewer, product_id):
    """Assigned internal reviewer approves the product."""
    _require_role(reviewer, User.ROLE_INTERNAL)
    product = _get_product(product_id)
    if product.assigned_internal_id != reviewer.id:
        raise Forbidden('Not assigned to you')

    product.status = Product.STATUS_PUBLISHED
    product.save(update_fields=['status', 'updated_at'])
    logger.info(f"Product {product.name} published by {reviewer.email}")
    return product


# =============================================================================
# Plans
# =============================================================================

def _min_quantity(raw):
    if raw in (None, ''):
        return 1
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationError('Minimum quantity must be a whole number')
    if value < 1:
        raise ValidationError('Minimum quantity must be at least 1')
    return value


def plans_visible_to(user):
    return Plan.objects.filter(company_id=user.company_id).select_related('product')


def create_plan(admin, data):
    _require_role(admin, User.ROLE_ADMIN)
    if not data.get('product_id') or not data.get('name') or data.get('price') in (None, '') \
            or not data.get('billing_period'):
        raise ValidationError('Product ID, name, price, and billing period are required')

    try:
        product = Product.objects.get(pk=data['product_id'], company_id=admin.company_id)
    except (Product.DoesNotExist, ValueError, TypeError):
        raise NotFound('Product not found')

    if data['billing_period'] not in BILLING_PERIODS:
        raise ValidationError(f"Billing period must be one of: {', '.join(BILLING_PERIODS)}")

    price = _decimal_field(data, 'price', 'Price')
    if price < 0:
        raise ValidationError('Price cannot be negative')

    # A company tax record takes precedence over a raw percent
    if data.get('tax_id'):
        tax_percent = _company_tax(admin.company_id, data['tax_id']).percentage
    else:
        tax_percent = default_tax_percent(_decimal_field(data, 'tax_percent', 'Tax percent', required=False))
    if not Decimal('0') <= tax_percent <= Decimal('100'):
        raise ValidationError('Tax percent must be between 0 and 100')

    discount_type = data.get('discount_type') or ''
    discount_value = _decimal_field(data, 'discount_value', 'Discount value', required=False)
    if discount_type:
        _check_discount_value(discount_type, discount_value or Decimal('0'))

    plan = Plan(
        company_id=admin.company_id,
        product=product,
        name=data['name'],
        price=price,
        billing_period=data['billing_period'],
        min_quantity=_min_quantity(data.get('min_quantity')),
        start_date=data.get('start_date') or None,
        end_date=data.get('end_date') or None,
        pausable=bool(data.get('pausable', False)),
        renewable=data.get('renewable') is not False,
        closable=data.get('closable') is not False,
        auto_close=bool(data.get('auto_close', False)),
        discount_type=discount_type,
        discount_value=discount_value if discount_type else None,
        tax_percent=tax_percent,
    )
    _full_clean(plan)
    if plan.start_date and plan.end_date and plan.end_date < plan.start_date:
        raise ValidationError('Plan end date cannot be before its start date')
    plan.save()
    logger.info(f"Plan {plan.name} ({plan.billing_period}, {plan.price}) created for {product.name}")
    return plan


# =============================================================================
# Discount codes
# =============================================================================

def discounts_for(admin):
    _require_role(admin, User.ROLE_ADMIN)
    return Discount.objects.filter(company_id=admin.company_id)


def create_discount(admin, data):
    _require_role(admin, User.ROLE_ADMIN)
    name = normalize_code(data.get('name'))
    if not name or not data.get('discount_type') or data.get('value') in (None, ''):
        raise ValidationError('Name, type, and value are required')

    value = _decimal_field(data, 'value', 'Value')
    _check_discount_value(data['discount_type'], value)
    if Discount.objects.filter(company_id=admin.company_id, name=name).exists():
        raise ValidationError(f'Discount code {name} already exists')

    discount = Discount(
        company_id=admin.company_id,
        name=name,
        discount_type=data['discount_type'],
        value=value,
        active=data.get('active') is not False,
        limit_usage=data.get('limit_usage') or None,
    )
    _full_clean(discount)
    try:
        with transaction.atomic():
            discount.save()
    except IntegrityError:
        raise ValidationError(f'Discount code {name} already exists')
    logger.info(f"Discount {name} created by {admin.email}")
    return discount


def delete_discount(admin, discount_id):
    _require_role(admin, User.ROLE_ADMIN)
    try:
        discount = Discount.objects.get(pk=discount_id, company_id=admin.company_id)
    except (Discount.DoesNotExist, ValueError, TypeError):
        raise NotFound('Discount not found')
    discount.delete()
    logger.info(f"Discount {discount.name} deleted by {admin.email}")


# =============================================================================
# Taxes
# =============================================================================

TAX_TYPES = [value for value, _ in Tax.TYPE_CHOICES]


def taxes_for(admin):
    _require_role(admin, User.ROLE_ADMIN)
    return Tax.objects.filter(company_id=admin.company_id)


def _company_tax(company_id, tax_id):
    try:
        return Tax.objects.get(pk=tax_id, company_id=company_id, active=True)
    except (Tax.DoesNotExist, ValueError, TypeError):
        raise NotFound('Tax not found')


def create_tax(admin, data):
    _require_role(admin, User.ROLE_ADMIN)
    name = (data.get('name') or '').strip()
    if not name or data.get('percentage') in (None, '') or not data.get('tax_type'):
        raise ValidationError('Name, percentage, and type are required')

    percentage = _decimal_field(data, 'percentage', 'Percentage')
    if not Decimal('0') <= percentage <= Decimal('100'):
        raise ValidationError('Tax percentage must be between 0 and 100')
    if data['tax_type'] not in TAX_TYPES:
        raise ValidationError(f"Tax type must be one of: {', '.join(TAX_TYPES)}")

    tax = Tax(
        company_id=admin.company_id,
        name=name,
        percentage=percentage,
        tax_type=data['tax_type'],
        active=data.get('active') is not False,
    )
    _full_clean(tax)
    tax.save()
    logger.info(f"Tax {tax.name} ({tax.percentage}%) created by {admin.email}")
    return tax


def delete_tax(admin, tax_id):
    _require_role(admin, User.ROLE_ADMIN)
    try:
        tax = Tax.objects.get(pk=tax_id, company_id=admin.company_id)
    except (Tax.DoesNotExist, ValueError, TypeError):
        raise NotFound('Tax not found')
    tax.delete()
    logger.info(f"Tax {tax.name} deleted by {admin.email}")
