from decimal import Decimal

from django.test import SimpleTestCase, TestCase

from billing.models import Discount
from billing.services.discounts import (
    FIXED, PERCENT_FIRST_MONTH, CodeOverride, PlanDefault, discount_amount,
    find_code, normalize_code, plan_default_for, resolve_discount,
)
from tests.helpers import BillingFixtureMixin, make_discount, make_plan


class DiscountAmountTests(SimpleTestCase):

    def test_percent(self):
        source = PlanDefault(PERCENT_FIRST_MONTH, Decimal('10'))
        self.assertEqual(discount_amount(Decimal('100'), source), Decimal('10'))

    def test_fixed_is_capped_at_base(self):
        for value, base in [('5', '100'), ('100', '100'), ('150', '100'), ('0', '20')]:
            amount = discount_amount(Decimal(base), PlanDefault(FIXED, Decimal(value)))
            self.assertEqual(amount, min(Decimal(value), Decimal(base)))
            self.assertGreaterEqual(amount, 0)
            self.assertLessEqual(amount, Decimal(base))

    def test_unknown_type_discounts_nothing(self):
        self.assertEqual(discount_amount(Decimal('100'), PlanDefault('bogo', Decimal('50'))), Decimal('0'))

    def test_no_source(self):
        applied = resolve_discount(Decimal('100'))
        self.assertEqual(applied.amount, Decimal('0'))
        self.assertIsNone(applied.discount_type)
        self.assertIsNone(applied.code)


class ResolveDiscountTests(SimpleTestCase):

    def setUp(self):
        self.flat50 = Discount(pk=1, name='FLAT50', discount_type=FIXED, value=Decimal('50'), active=True)
        self.inactive = Discount(pk=2, name='OLD', discount_type=FIXED, value=Decimal('5'), active=False)

    def test_code_overrides_plan_default(self):
        applied = resolve_discount(
            Decimal('200'),
            PlanDefault(PERCENT_FIRST_MONTH, Decimal('10')),
            'FLAT50',
            [self.flat50],
        )
        self.assertIsInstance(applied.source, CodeOverride)
        self.assertEqual(applied.discount_type, FIXED)
        self.assertEqual(applied.amount, Decimal('50'))
        self.assertEqual(applied.label, 'FLAT50')

    def test_plan_default_applies_without_code(self):
        applied = resolve_discount(Decimal('200'), PlanDefault(PERCENT_FIRST_MONTH, Decimal('10')))
        self.assertEqual(applied.amount, Decimal('20'))
        self.assertEqual(applied.label, 'Applied')
        self.assertIsNone(applied.code)

    def test_unmatched_code_keeps_plan_default(self):
        applied = resolve_discount(
            Decimal('200'), PlanDefault(PERCENT_FIRST_MONTH, Decimal('10')), 'NOPE', [self.flat50]
        )
        self.assertEqual(applied.amount, Decimal('20'))

    def test_code_match_is_case_insensitive_and_trimmed(self):
        self.assertEqual(normalize_code('  flat50 '), 'FLAT50')
        match = find_code('  flat50 ', [self.flat50])
        self.assertEqual(match.code, 'FLAT50')
        self.assertEqual(match.discount_id, 1)

    def test_inactive_code_does_not_match(self):
        self.assertIsNone(find_code('old', [self.inactive]))

    def test_exhausted_code_does_not_match(self):
        self.flat50.limit_usage = 2
        self.flat50.used_count = 2
        self.assertIsNone(find_code('FLAT50', [self.flat50]))


class PlanDefaultTests(BillingFixtureMixin, TestCase):

    def test_plan_without_discount(self):
        self.assertIsNone(plan_default_for(self.plan))

    def test_plan_with_discount(self):
        plan = make_plan(
            self.company, self.product, name='Promo',
            discount_type=PERCENT_FIRST_MONTH, discount_value=Decimal('10'),
        )
        self.assertEqual(plan_default_for(plan), PlanDefault(PERCENT_FIRST_MONTH, Decimal('10')))

    def test_company_codes_come_from_the_database(self):
        make_discount(self.company, name='FIRST10')
        applied = resolve_discount(
            Decimal('100'), None, 'first10', Discount.objects.filter(company=self.company)
        )
        self.assertEqual(applied.amount, Decimal('10'))
        self.assertEqual(applied.code, 'FIRST10')
