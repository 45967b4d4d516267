"""
Invoice issuance, status transitions and payments.
"""
import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from accounts.models import User
from billing.exceptions import Forbidden, NotFound, ValidationError
from billing.models import Invoice, Payment
from billing.notifications import send_invoice_notification

from .invoice_lines import compose_lines
from .pricing import money, to_decimal
from .sequence import next_invoice_number


logger = logging.getLogger(__name__)

# action -> (target status, statuses it may be applied from)
INVOICE_TRANSITIONS = {
    'confirm': (Invoice.STATUS_CONFIRMED, {Invoice.STATUS_PENDING}),
    'send': (Invoice.STATUS_SENT, {Invoice.STATUS_PENDING, Invoice.STATUS_CONFIRMED,
                                   Invoice.STATUS_PRINTED, Invoice.STATUS_PAID}),
    'print': (Invoice.STATUS_PRINTED, {Invoice.STATUS_PENDING, Invoice.STATUS_CONFIRMED,
                                       Invoice.STATUS_SENT, Invoice.STATUS_PAID}),
    'cancel': (Invoice.STATUS_CANCELLED, {Invoice.STATUS_PENDING, Invoice.STATUS_CONFIRMED,
                                          Invoice.STATUS_SENT, Invoice.STATUS_PRINTED}),
}

PAYABLE_STATUSES = {
    Invoice.STATUS_PENDING, Invoice.STATUS_CONFIRMED, Invoice.STATUS_SENT, Invoice.STATUS_PRINTED,
}


def default_due_date(today=None):
    today = today or timezone.localdate()
    return today + timedelta(days=settings.BILLING_INVOICE_DUE_DAYS)


def issue_invoice(subscription, description, breakdown, discount_label=None, due_date=None, today=None):
    """
    Persist one pending invoice for `subscription` from a PriceBreakdown.

    The stored amount is always the breakdown total, and the composed lines
    sum to that same total.
    """
    today = today or timezone.localdate()
    composed = compose_lines(
        description,
        breakdown.base_price,
        breakdown.discount_amount,
        discount_label,
        breakdown.tax_amount,
        breakdown.tax_percent,
    )
    if composed.total != breakdown.total:
        raise ValidationError(
            f'Invoice lines total {composed.total} does not match amount {breakdown.total}'
        )

    invoice = Invoice.objects.create(
        number=next_invoice_number(today),
        company_id=subscription.company_id,
        subscription=subscription,
        user_id=subscription.user_id,
        amount=composed.total,
        status=Invoice.STATUS_PENDING,
        issue_date=today,
        due_date=due_date or default_due_date(today),
        lines=composed.lines,
        tax_amount=money(breakdown.tax_amount),
        tax_percent=breakdown.tax_percent,
        discount_amount=money(breakdown.discount_amount),
        discount_label=(discount_label or 'Applied') if breakdown.discount_amount > 0 else '',
    )
    logger.info(f"Issued invoice {invoice.number} for {subscription.number}: {invoice.amount} due {invoice.due_date}")
    send_invoice_notification(invoice)
    return invoice


def invoices_visible_to(user):
    """Invoices in the user's company; plain users only see their own."""
    queryset = Invoice.objects.filter(company_id=user.company_id).select_related('subscription', 'user')
    if user.role == User.ROLE_USER:
        queryset = queryset.filter(user=user)
    return queryset


def _get_invoice(invoice_id):
    try:
        return Invoice.objects.get(pk=invoice_id)
    except (Invoice.DoesNotExist, ValueError, TypeError):
        raise NotFound('Invoice not found')


def _get_company_invoice(user, invoice_id):
    if not user.has_role(User.ROLE_INTERNAL, User.ROLE_ADMIN):
        raise Forbidden('Access denied')
    invoice = _get_invoice(invoice_id)
    if not user.belongs_to(invoice.company_id):
        raise NotFound('Invoice not found')
    return invoice


def _get_own_invoice(user, invoice_id):
    invoice = _get_invoice(invoice_id)
    if invoice.user_id != user.id:
        raise Forbidden('Not your invoice')
    return invoice


def transition_invoice(user, invoice_id, action):
    """Apply a reviewer action ('confirm', 'send', 'print', 'cancel') to a company invoice."""
    target, allowed_from = INVOICE_TRANSITIONS[action]
    invoice = _get_company_invoice(user, invoice_id)
    if invoice.status not in allowed_from:
        raise ValidationError(f'Cannot {action} an invoice that is {invoice.status}')
    invoice.status = target
    invoice.save(update_fields=['status', 'updated_at'])
    logger.info(f"Invoice {invoice.number} -> {target} by {user.email}")
    return invoice


def confirm_invoice(user, invoice_id):
    return transition_invoice(user, invoice_id, 'confirm')


def send_invoice(user, invoice_id):
    return transition_invoice(user, invoice_id, 'send')


def print_invoice(user, invoice_id):
    return transition_invoice(user, invoice_id, 'print')


def cancel_invoice(user, invoice_id):
    return transition_invoice(user, invoice_id, 'cancel')


def _mark_paid(invoice, today):
    if invoice.status not in PAYABLE_STATUSES:
        raise ValidationError(f'Cannot pay an invoice that is {invoice.status}')
    invoice.status = Invoice.STATUS_PAID
    invoice.paid_date = today
    invoice.save(update_fields=['status', 'paid_date', 'updated_at'])


def pay_invoice(user, invoice_id, today=None):
    """Owner marks an invoice paid."""
    today = today or timezone.localdate()
    invoice = _get_own_invoice(user, invoice_id)
    _mark_paid(invoice, today)
    logger.info(f"Invoice {invoice.number} paid by {user.email}")
    return invoice


def record_payment(user, invoice_id, amount, method, today=None):
    """Record a payment and mark its invoice paid, atomically."""
    today = today or timezone.localdate()
    if not invoice_id or amount in (None, '') or not method:
        raise ValidationError('Invoice ID, amount, and method are required')
    amount = to_decimal(amount, default=None)
    if amount is None or amount <= 0:
        raise ValidationError('Amount must be a positive number')
    if method not in dict(Payment.METHOD_CHOICES):
        raise ValidationError(f'Unknown payment method: {method}')

    with transaction.atomic():
        invoice = _get_own_invoice(user, invoice_id)
        invoice = Invoice.objects.select_for_update().get(pk=invoice.pk)
        _mark_paid(invoice, today)
        payment = Payment.objects.create(
            company_id=invoice.company_id,
            invoice=invoice,
            amount=money(amount),
            method=method,
            date=today,
        )

    logger.info(f"Payment of {payment.amount} via {method} recorded for {invoice.number}")
    return payment
