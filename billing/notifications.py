"""
Invoice e-mail notifications. Fire-and-forget: failures are logged, never raised.
"""
import logging

from django.conf import settings
from django.core.mail import send_mail
from django.db import transaction


logger = logging.getLogger(__name__)


def _send_invoice_email(invoice_id):
    from billing.models import Invoice

    try:
        invoice = Invoice.objects.select_related('user', 'subscription').get(pk=invoice_id)
    except Invoice.DoesNotExist:
        logger.warning(f"Invoice {invoice_id} vanished before notification")
        return

    line_text = '\n'.join(f"  {line['description']}: {line['amount']}" for line in invoice.lines)
    sent = send_mail(
        subject=f'Invoice {invoice.number}: {invoice.amount} due {invoice.due_date:%Y-%m-%d}',
        message=f'''A new invoice has been issued for subscription {invoice.subscription.number}.

{line_text}

Amount due: {invoice.amount}
Due date: {invoice.due_date:%Y-%m-%d}
''',
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[invoice.user.email],
        fail_silently=True,
    )
    if not sent:
        logger.warning(f"Invoice e-mail for {invoice.number} was not delivered")


def send_invoice_notification(invoice):
    """Queue the invoice e-mail to go out once the current transaction commits."""
    if not settings.BILLING_NOTIFY_INVOICES:
        return
    invoice_id = invoice.pk
    transaction.on_commit(lambda: _send_invoice_email(invoice_id))
