"""
Management command that runs the daily billing sweep: close expired
subscriptions, then issue renewal invoices for every cycle that has come due.

Run it once a day from cron, or keep it running with --daemon.
"""
import logging
import time
from datetime import date

from django.core.management.base import BaseCommand, CommandError

from billing.services.recurring import (
    DUE_DATE_POLICIES, run_daily_billing_sweep, seconds_until_next_run,
)


logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Close expired subscriptions and generate renewal invoices'

    def add_arguments(self, parser):
        parser.add_argument(
            '--date',
            help='Run the sweep as of this day (YYYY-MM-DD) instead of today',
        )
        parser.add_argument(
            '--policy',
            choices=DUE_DATE_POLICIES,
            help='Renewal due date policy for this run (defaults to BILLING_RENEWAL_DUE_DATE_POLICY)',
        )
        parser.add_argument(
            '--daemon',
            action='store_true',
            help='Keep running and sweep once a day at BILLING_SWEEP_HOUR',
        )

    def handle(self, *args, **options):
        day = None
        if options['date']:
            try:
                day = date.fromisoformat(options['date'])
            except ValueError:
                raise CommandError(f"Invalid --date: {options['date']} (expected YYYY-MM-DD)")
            if options['daemon']:
                raise CommandError('--date cannot be combined with --daemon')

        if not options['daemon']:
            self._sweep(day, options['policy'])
            return

        self.stdout.write('Billing sweep daemon started')
        while True:
            wait = seconds_until_next_run()
            logger.info(f"Next billing sweep in {wait:.0f}s")
            time.sleep(wait)
            try:
                self._sweep(None, options['policy'])
            except Exception:
                logger.exception("Billing sweep crashed, will retry at the next scheduled run")

    def _sweep(self, day, policy):
        summary = run_daily_billing_sweep(today=day, policy=policy)
        if summary.already_running:
            self.stdout.write(self.style.WARNING('Another billing sweep is already running, nothing done'))
            return summary

        self.stdout.write(
            self.style.SUCCESS(
                f'Billing sweep for {summary.day}: {summary.closed} closed, '
                f'{summary.generated} invoices generated, {summary.not_due} not due, '
                f'{summary.skipped} skipped'
            )
        )
        for failure in summary.failures:
            self.stdout.write(self.style.ERROR(f'Failed {failure.number}: {failure.reason}'))
        return summary
