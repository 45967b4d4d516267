"""
Recurring billing sweep.

Runs once a day from the `run_billing_sweep` management command:

1. Expiry: active subscriptions whose end date is before today are closed.
2. Renewal: every active subscription whose last invoice due date, advanced
   by one billing period, is on or before today gets exactly one new invoice
   priced from the plan's current price, tax and variant surcharges.
   Subscribe-time discounts are not reapplied on renewals. A subscription
   already invoiced on the sweep day is left alone, whatever the due date
   policy, so re-running the sweep the same day issues nothing new.

Each subscription is billed in its own transaction and its own try block, so
one bad record never aborts the sweep. The sweep is guarded by a cache lock
so two runs never overlap.
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional

from dateutil.relativedelta import relativedelta
from django.conf import settings
from django.core.cache import cache
from django.db import transaction
from django.utils import timezone

from billing.models import Subscription

from .invoice_lines import describe_subscription
from .invoices import issue_invoice
from .pricing import compute_base_price, default_tax_percent, price_breakdown


logger = logging.getLogger(__name__)

SWEEP_LOCK_KEY = 'billing:daily-sweep-lock'

POLICY_SWEEP = 'sweep'
POLICY_CADENCE = 'cadence'
DUE_DATE_POLICIES = (POLICY_SWEEP, POLICY_CADENCE)

PERIOD_DELTAS = {
    'daily': relativedelta(days=1),
    'weekly': relativedelta(days=7),
    'monthly': relativedelta(months=1),
    'yearly': relativedelta(years=1),
}

GENERATED = 'generated'
NOT_DUE = 'not_due'
SKIPPED = 'skipped'
FAILED = 'failed'


def advance(day, billing_period):
    """
    Advance a date by one billing period. Month and year steps are calendar
    aware and clamp to the end of shorter months (Jan 31 + 1 month = Feb 28).
    """
    try:
        return day + PERIOD_DELTAS[billing_period]
    except KeyError:
        raise ValueError(f'Unknown billing period: {billing_period}')


@dataclass
class SweepItemResult:
    subscription_id: int
    number: str
    outcome: str
    invoice_number: Optional[str] = None
    reason: str = ''


@dataclass
class SweepSummary:
    day: object
    policy: str = POLICY_SWEEP
    closed: int = 0
    results: List[SweepItemResult] = field(default_factory=list)
    already_running: bool = False

    def _count(self, outcome):
        return sum(1 for result in self.results if result.outcome == outcome)

    @property
    def generated(self):
        return self._count(GENERATED)

    @property
    def not_due(self):
        return self._count(NOT_DUE)

    @property
    def skipped(self):
        return self._count(SKIPPED)

    @property
    def failures(self):
        return [result for result in self.results if result.outcome == FAILED]

    def as_dict(self):
        return {
            'day': self.day.isoformat(),
            'policy': self.policy,
            'closed': self.closed,
            'generated': self.generated,
            'not_due': self.not_due,
            'skipped': self.skipped,
            'failed': len(self.failures),
            'already_running': self.already_running,
            'failures': [
                {'subscription': result.number, 'error': result.reason} for result in self.failures
            ],
        }


def close_expired_subscriptions(today):
    """Close active subscriptions whose end date is strictly before today. Returns the count."""
    closed = (
        Subscription.objects.active()
        .filter(end_date__isnull=False, end_date__lt=today)
        .update(status=Subscription.STATUS_CLOSED, updated_at=timezone.now())
    )
    if closed:
        logger.info(f"Closed {closed} expired subscriptions")
    return closed


def renewal_due_date(today, next_due, billing_period, policy):
    """
    'sweep': one period after the day the sweep runs.
    'cadence': the cycle's own due date (last due + one period).
    """
    if policy == POLICY_CADENCE:
        return next_due
    return advance(today, billing_period)


def bill_subscription(subscription, today, policy=POLICY_SWEEP):
    """Issue the next renewal invoice for one subscription if its cycle is due."""
    plan = subscription.plan
    if plan is None:
        return SweepItemResult(subscription.pk, subscription.number, SKIPPED, reason='plan no longer exists')

    last_invoice = subscription.get_last_invoice()
    if last_invoice is None:
        return SweepItemResult(subscription.pk, subscription.number, SKIPPED, reason='no invoice yet')

    if subscription.invoices.filter(issue_date=today).exists():
        return SweepItemResult(subscription.pk, subscription.number, NOT_DUE, reason='already invoiced today')

    next_due = advance(last_invoice.due_date, plan.billing_period)
    if today < next_due:
        return SweepItemResult(subscription.pk, subscription.number, NOT_DUE)

    product = subscription.product
    variant_options = product.get_variant_options() if product else ()
    base_price = compute_base_price(
        plan.price, subscription.quantity, variant_options, subscription.selected_variants
    )
    breakdown = price_breakdown(base_price, 0, default_tax_percent(plan.tax_percent))

    with transaction.atomic():
        invoice = issue_invoice(
            subscription,
            describe_subscription(
                product.name if product else None, plan.name,
                subscription.quantity, subscription.selected_variants,
            ),
            breakdown,
            due_date=renewal_due_date(today, next_due, plan.billing_period, policy),
            today=today,
        )
    return SweepItemResult(subscription.pk, subscription.number, GENERATED, invoice_number=invoice.number)


def generate_renewal_invoices(today, policy=POLICY_SWEEP):
    """Bill every active subscription that is due. Returns per-subscription results."""
    results = []
    active = Subscription.objects.active().select_related('plan', 'product').order_by('pk')
    for subscription in active:
        try:
            results.append(bill_subscription(subscription, today, policy))
        except Exception as e:
            logger.exception(f"Renewal billing failed for {subscription.number}")
            results.append(SweepItemResult(subscription.pk, subscription.number, FAILED, reason=str(e)))
    return results


def run_daily_billing_sweep(today=None, policy=None):
    """
    Entry point for the scheduler host. Returns a SweepSummary; when another
    sweep holds the lock, returns immediately with `already_running` set.
    """
    today = today or timezone.localdate()
    policy = policy or settings.BILLING_RENEWAL_DUE_DATE_POLICY
    if policy not in DUE_DATE_POLICIES:
        raise ValueError(f'Unknown renewal due date policy: {policy}')

    summary = SweepSummary(day=today, policy=policy)
    token = uuid.uuid4().hex
    if not cache.add(SWEEP_LOCK_KEY, token, timeout=settings.BILLING_SWEEP_LOCK_TIMEOUT):
        logger.warning("Billing sweep already running, skipping this trigger")
        summary.already_running = True
        return summary

    try:
        logger.info(f"Running daily billing sweep for {today} (policy={policy})")
        summary.closed = close_expired_subscriptions(today)
        summary.results = generate_renewal_invoices(today, policy)
        logger.info(
            f"Billing sweep done: closed={summary.closed} generated={summary.generated} "
            f"skipped={summary.skipped} failed={len(summary.failures)}"
        )
    finally:
        if cache.get(SWEEP_LOCK_KEY) == token:
            cache.delete(SWEEP_LOCK_KEY)

    return summary


def seconds_until_next_run(now=None):
    """Seconds from `now` until the next BILLING_SWEEP_HOUR, local time."""
    now = timezone.localtime(now)
    next_run = now.replace(hour=settings.BILLING_SWEEP_HOUR, minute=0, second=0, microsecond=0)
    if next_run <= now:
        next_run += timedelta(days=1)
    return (next_run - now).total_seconds()
