"""
Subscription lifecycle: subscribe, quotations, upgrade, confirm, cancel.

State machine: draft -> active -> closed, with active/draft -> quotation
(admin sends a quote) and any state -> cancelled. The daily sweep handles
active -> closed.
"""
import logging

from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone

from accounts.models import User
from billing.exceptions import Forbidden, NotFound, ValidationError
from billing.models import Discount, Plan, Subscription

from .discounts import CodeOverride, plan_default_for, resolve_discount
from .invoice_lines import describe_subscription
from .invoices import issue_invoice
from .pricing import (
    PriceBreakdown, coerce_quantity, compute_base_price, default_tax_percent, price_breakdown,
)
from .quotations import quotation_data_from_template
from .sequence import next_subscription_number


logger = logging.getLogger(__name__)

CONFIRMABLE_STATUSES = {Subscription.STATUS_DRAFT, Subscription.STATUS_QUOTATION}
QUOTABLE_STATUSES = {Subscription.STATUS_DRAFT, Subscription.STATUS_ACTIVE}
UPGRADABLE_STATUSES = {Subscription.STATUS_DRAFT, Subscription.STATUS_QUOTATION, Subscription.STATUS_ACTIVE}


def subscriptions_visible_to(user):
    """Subscriptions in the user's company; plain users only see their own."""
    queryset = Subscription.objects.for_company(user.company_id).select_related('plan', 'product', 'user')
    if user.role == User.ROLE_USER:
        queryset = queryset.filter(user=user)
    return queryset


def _get_company_plan(company_id, plan_id):
    try:
        return Plan.objects.select_related('product').get(pk=plan_id, company_id=company_id)
    except (Plan.DoesNotExist, ValueError, TypeError):
        raise NotFound('Plan not found')


def _get_subscription(sub_id):
    try:
        return Subscription.objects.select_related('plan', 'product').get(pk=sub_id)
    except (Subscription.DoesNotExist, ValueError, TypeError):
        raise NotFound('Subscription not found')


def _require_admin(user):
    if not user.is_company_admin:
        raise Forbidden('Access denied')


def _check_owner_or_company_admin(user, subscription):
    if subscription.user_id == user.id:
        return
    if user.is_company_admin and user.belongs_to(subscription.company_id):
        return
    if not user.belongs_to(subscription.company_id):
        raise NotFound('Subscription not found')
    raise Forbidden('Unauthorized')


def _price_plan(company_id, data, today):
    """
    Validate a subscribe-style request and price it.

    Returns (plan, product, quantity, selected_variants, breakdown, applied_discount).
    """
    product_id = data.get('product_id')
    plan_id = data.get('plan_id')
    if not product_id or not plan_id:
        raise ValidationError('Product ID and plan ID are required')

    plan = _get_company_plan(company_id, plan_id)
    product = plan.product
    if product is None or str(product.pk) != str(product_id):
        raise NotFound('Product not found')

    if not plan.is_available_on(today):
        raise ValidationError('Plan is not available on this date')

    quantity = coerce_quantity(data.get('quantity'))
    if quantity < plan.min_quantity:
        raise ValidationError(f'Minimum quantity for this plan is {plan.min_quantity}')

    selected_variants = data.get('selected_variants') or None
    if selected_variants is not None and not isinstance(selected_variants, dict):
        raise ValidationError('selected_variants must be an attribute -> value map')

    base_price = compute_base_price(plan.price, quantity, product.get_variant_options(), selected_variants)

    discount_code = data.get('discount_code')
    company_discounts = Discount.objects.filter(company_id=company_id) if discount_code else ()
    applied = resolve_discount(base_price, plan_default_for(plan), discount_code, company_discounts)

    breakdown = price_breakdown(base_price, applied.amount, default_tax_percent(plan.tax_percent))
    return plan, product, quantity, selected_variants, breakdown, applied


def _build_subscription(user, company_id, plan, product, quantity, selected_variants,
                        breakdown, applied, status, today):
    return Subscription.objects.create(
        number=next_subscription_number(today),
        company_id=company_id,
        user=user,
        product=product,
        plan=plan,
        quantity=quantity,
        status=status,
        start_date=today,
        end_date=None,
        selected_variants=selected_variants,
        discount_code=applied.code or '',
        discount_type=applied.discount_type or '',
        discount_value=applied.value,
        discount_amount=breakdown.discount_amount,
        tax_percent=breakdown.tax_percent,
        tax_amount=breakdown.tax_amount,
        subtotal=breakdown.subtotal,
        total=breakdown.total,
    )


def _redeem(applied):
    """
    Count one use of a redeemed code. The usage limit is re-checked in the
    UPDATE itself, so concurrent redemptions can never push used_count past it.
    """
    if not isinstance(applied.source, CodeOverride) or not applied.source.discount_id:
        return
    redeemed = (
        Discount.objects.filter(pk=applied.source.discount_id, active=True)
        .filter(Q(limit_usage__isnull=True) | Q(used_count__lt=F('limit_usage')))
        .update(used_count=F('used_count') + 1)
    )
    if not redeemed:
        raise ValidationError(f'Discount code {applied.code} is no longer available')


def subscribe(user, data, today=None):
    """
    Subscribe `user` to a plan of their company.

    `data` keys: product_id, plan_id, quantity, discount_code, selected_variants.
    Creates the active subscription and its first invoice in one transaction.
    """
    today = today or timezone.localdate()
    plan, product, quantity, selected_variants, breakdown, applied = _price_plan(user.company_id, data, today)

    with transaction.atomic():
        _redeem(applied)
        subscription = _build_subscription(
            user, user.company_id, plan, product, quantity, selected_variants,
            breakdown, applied, Subscription.STATUS_ACTIVE, today,
        )
        issue_invoice(
            subscription,
            describe_subscription(product.name, plan.name, quantity, selected_variants),
            breakdown,
            discount_label=applied.label,
            today=today,
        )

    logger.info(
        f"{user.email} subscribed to {plan.name} as {subscription.number}: "
        f"subtotal={subscription.subtotal} tax={subscription.tax_amount} total={subscription.total}"
    )
    return subscription


def create_quotation(admin, data, today=None):
    """
    Admin prices a subscription for a company member and saves it as a draft,
    without an invoice. With `template_id`, plan and product default to the
    template's recurring plan.
    """
    today = today or timezone.localdate()
    _require_admin(admin)

    try:
        customer = User.objects.get(pk=data.get('user_id'), company_id=admin.company_id)
    except (User.DoesNotExist, ValueError, TypeError):
        raise NotFound('User not found')

    if data.get('template_id'):
        data = quotation_data_from_template(admin.company_id, data['template_id'], data)

    plan, product, quantity, selected_variants, breakdown, applied = _price_plan(admin.company_id, data, today)

    with transaction.atomic():
        _redeem(applied)
        subscription = _build_subscription(
            customer, admin.company_id, plan, product, quantity, selected_variants,
            breakdown, applied, Subscription.STATUS_DRAFT, today,
        )

    logger.info(f"Draft {subscription.number} created for {customer.email} by {admin.email}")
    return subscription


def upgrade_subscription(user, sub_id, new_plan_id):
    """
    Move an owned subscription to another plan of the same company.

    Re-prices as new plan price * quantity plus tax. Variant surcharges and
    discounts are not carried over. No invoice is issued; the change is billed
    from the next cycle.
    """
    if not new_plan_id:
        raise ValidationError('New plan ID is required')

    subscription = _get_subscription(sub_id)
    if subscription.user_id != user.id:
        if not user.belongs_to(subscription.company_id):
            raise NotFound('Subscription not found')
        raise Forbidden('Not your subscription')
    if subscription.status not in UPGRADABLE_STATUSES:
        raise ValidationError(f'Cannot upgrade a {subscription.status} subscription')

    new_plan = _get_company_plan(user.company_id, new_plan_id)
    breakdown = price_breakdown(
        compute_base_price(new_plan.price, subscription.quantity),
        0,
        default_tax_percent(new_plan.tax_percent),
    )

    old_plan_name = subscription.plan.name if subscription.plan else '(deleted plan)'
    subscription.plan = new_plan
    subscription.discount_code = ''
    subscription.discount_type = ''
    subscription.discount_value = None
    subscription.discount_amount = breakdown.discount_amount
    subscription.tax_percent = breakdown.tax_percent
    subscription.tax_amount = breakdown.tax_amount
    subscription.subtotal = breakdown.subtotal
    subscription.total = breakdown.total
    subscription.save()

    logger.info(f"{subscription.number} upgraded from {old_plan_name} to {new_plan.name}: total={subscription.total}")
    return subscription


def send_quote(admin, sub_id):
    """Admin moves a company subscription into quotation, awaiting the customer's confirmation."""
    _require_admin(admin)
    subscription = _get_subscription(sub_id)
    if not admin.belongs_to(subscription.company_id):
        raise NotFound('Subscription not found')
    if subscription.status not in QUOTABLE_STATUSES:
        raise ValidationError(f'Cannot send a quote for a {subscription.status} subscription')

    subscription.status = Subscription.STATUS_QUOTATION
    subscription.save(update_fields=['status', 'updated_at'])
    logger.info(f"Quote sent for {subscription.number}")
    return subscription


def confirm_subscription(user, sub_id, today=None):
    """
    Activate a draft or quoted subscription and issue its first invoice from
    the stored pricing snapshot.
    """
    today = today or timezone.localdate()
    subscription = _get_subscription(sub_id)
    _check_owner_or_company_admin(user, subscription)
    if subscription.status not in CONFIRMABLE_STATUSES:
        raise ValidationError(f'Cannot confirm a {subscription.status} subscription')

    breakdown = PriceBreakdown(
        base_price=subscription.base_price,
        discount_amount=subscription.discount_amount,
        subtotal=subscription.subtotal,
        tax_percent=subscription.tax_percent,
        tax_amount=subscription.tax_amount,
        total=subscription.total,
    )
    product_name = subscription.product.name if subscription.product else None
    plan_name = subscription.plan.name if subscription.plan else None

    with transaction.atomic():
        subscription.status = Subscription.STATUS_ACTIVE
        subscription.start_date = today
        subscription.save(update_fields=['status', 'start_date', 'updated_at'])
        issue_invoice(
            subscription,
            describe_subscription(product_name, plan_name, subscription.quantity, subscription.selected_variants),
            breakdown,
            discount_label=subscription.discount_code or None,
            today=today,
        )

    logger.info(f"{subscription.number} confirmed by {user.email}")
    return subscription


def cancel_subscription(user, sub_id):
    subscription = _get_subscription(sub_id)
    _check_owner_or_company_admin(user, subscription)
    if subscription.status == Subscription.STATUS_CANCELLED:
        raise ValidationError('Subscription is already cancelled')

    subscription.status = Subscription.STATUS_CANCELLED
    subscription.save(update_fields=['status', 'updated_at'])
    logger.info(f"{subscription.number} cancelled by {user.email}")
    return subscription
