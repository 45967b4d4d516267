from decimal import Decimal

from django.test import SimpleTestCase, override_settings

from billing.exceptions import ValidationError
from billing.services.pricing import (
    coerce_quantity, compute_base_price, compute_tax, compute_variant_extra,
    default_tax_percent, format_money, money, price_breakdown, to_decimal,
)


VARIANTS = [
    ('Storage', '1TB', Decimal('2.00')),
    ('Storage', '2TB', Decimal('5.00')),
    ('Support', 'Priority', Decimal('3.50')),
]


class BasePriceTests(SimpleTestCase):

    def test_base_price_is_plan_price_plus_variants_times_quantity(self):
        base = compute_base_price(
            Decimal('10.00'), 3, VARIANTS, {'Storage': '2TB', 'Support': 'Priority'}
        )
        self.assertEqual(base, (Decimal('10.00') + Decimal('5.00') + Decimal('3.50')) * 3)

    def test_unknown_selection_contributes_nothing(self):
        extra = compute_variant_extra(VARIANTS, {'Storage': '10TB', 'Color': 'Red'})
        self.assertEqual(extra, Decimal('0'))

    def test_no_selection(self):
        self.assertEqual(compute_base_price(Decimal('9.99'), 2, VARIANTS, None), Decimal('19.98'))

    def test_base_price_is_not_rounded(self):
        self.assertEqual(compute_base_price(Decimal('0.333'), 3), Decimal('0.999'))

    def test_zero_price_is_accepted(self):
        self.assertEqual(compute_base_price(Decimal('0'), 5), Decimal('0'))


class QuantityTests(SimpleTestCase):

    def test_lenient_quantity(self):
        self.assertEqual(coerce_quantity(None), 1)
        self.assertEqual(coerce_quantity(''), 1)
        self.assertEqual(coerce_quantity('abc'), 1)
        self.assertEqual(coerce_quantity(0), 1)
        self.assertEqual(coerce_quantity(-4), 1)

    def test_numeric_quantity(self):
        self.assertEqual(coerce_quantity('3'), 3)
        self.assertEqual(coerce_quantity(7), 7)

    def test_non_finite_quantity_defaults_to_one(self):
        for value in ('Infinity', '-Infinity', 'NaN', 'sNaN', float('inf')):
            with self.subTest(value=value):
                self.assertEqual(coerce_quantity(value), 1)

    def test_fraction_and_exponent_forms(self):
        self.assertEqual(coerce_quantity('2.7'), 2)
        self.assertEqual(coerce_quantity('0.5'), 1)
        self.assertEqual(coerce_quantity('1e2'), 100)

    @override_settings(BILLING_MAX_QUANTITY=500)
    def test_quantity_above_limit_is_rejected(self):
        self.assertEqual(coerce_quantity('500'), 500)
        for value in ('501', '1e30', '1e999999999'):
            with self.subTest(value=value):
                with self.assertRaises(ValidationError):
                    coerce_quantity(value)


class ToDecimalTests(SimpleTestCase):

    def test_non_finite_values_fall_back_to_default(self):
        self.assertIsNone(to_decimal('NaN', default=None))
        self.assertIsNone(to_decimal(Decimal('Infinity'), default=None))
        self.assertEqual(to_decimal('abc'), Decimal('0'))
        self.assertEqual(to_decimal(1.1), Decimal('1.1'))


class TaxTests(SimpleTestCase):

    def test_compute_tax(self):
        self.assertEqual(compute_tax(Decimal('100'), Decimal('18')), Decimal('18'))

    @override_settings(BILLING_DEFAULT_TAX_PERCENT=18)
    def test_default_tax_percent(self):
        self.assertEqual(default_tax_percent(None), Decimal('18'))
        self.assertEqual(default_tax_percent(Decimal('5')), Decimal('5'))
        self.assertEqual(default_tax_percent(Decimal('0')), Decimal('0'))


class BreakdownTests(SimpleTestCase):

    def test_simple_plan(self):
        breakdown = price_breakdown(Decimal('15.99'), Decimal('0'), Decimal('18'))
        self.assertEqual(breakdown.subtotal, Decimal('15.99'))
        self.assertEqual(breakdown.tax_amount, Decimal('2.88'))
        self.assertEqual(breakdown.total, Decimal('18.87'))

    def test_total_reconciles_with_subtotal_and_tax(self):
        for base, discount, tax in [
            ('100', '10', '18'),
            ('33.33', '3.333', '18'),
            ('19.99', '0', '7.5'),
            ('1234.56', '50', '0'),
        ]:
            breakdown = price_breakdown(Decimal(base), Decimal(discount), Decimal(tax))
            self.assertEqual(breakdown.total, breakdown.subtotal + breakdown.tax_amount)
            self.assertEqual(breakdown.subtotal, breakdown.base_price - breakdown.discount_amount)
            expected = money((breakdown.base_price - breakdown.discount_amount) * (1 + Decimal(tax) / 100))
            self.assertEqual(breakdown.total, expected)

    def test_rounding_is_half_up(self):
        self.assertEqual(money(Decimal('2.875')), Decimal('2.88'))
        self.assertEqual(format_money(Decimal('-10')), '-10.00')
