"""
Sequence number generator: PREFIX-YYYYMMDD-NNN.

Numbers come from a SequenceCounter row per (prefix, day), locked with
SELECT ... FOR UPDATE, so concurrent callers on the same day never draw the
same value. The first counter of a day starts from the count of records that
already carry that day's stem.
"""
import logging

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from billing.models import Invoice, SequenceCounter, Subscription


logger = logging.getLogger(__name__)

SUBSCRIPTION_PREFIX = 'SUB'
INVOICE_PREFIX = 'INV'

KIND_MODELS = {
    'subscription': Subscription,
    'invoice': Invoice,
}


def format_number(prefix, day, value):
    width = settings.BILLING_SEQUENCE_WIDTH
    return f"{prefix}-{day:%Y%m%d}-{value:0{width}d}"


def generate(prefix, kind, today=None):
    """Draw the next number for `kind` ('subscription' or 'invoice') under `prefix`."""
    model = KIND_MODELS[kind]
    day = today or timezone.localdate()
    stem = f"{prefix}-{day:%Y%m%d}"

    with transaction.atomic():
        counter, created = SequenceCounter.objects.get_or_create(
            prefix=prefix,
            day=day,
            defaults={'last_value': model.objects.filter(number__startswith=stem).count()},
        )
        counter = SequenceCounter.objects.select_for_update().get(pk=counter.pk)
        counter.last_value += 1
        counter.save(update_fields=['last_value'])

    if created:
        logger.debug(f"Started sequence {stem} at {counter.last_value}")
    return format_number(prefix, day, counter.last_value)


def next_subscription_number(today=None):
    return generate(SUBSCRIPTION_PREFIX, 'subscription', today=today)


def next_invoice_number(today=None):
    return generate(INVOICE_PREFIX, 'invoice', today=today)
