from decimal import Decimal

from django.test import TestCase

from billing.exceptions import Forbidden, NotFound, ValidationError
from billing.models import Discount, Product, Tax
from billing.services.catalog import (
    assign_product, create_discount, create_plan, create_product, create_tax, delete_discount,
    delete_tax, products_visible_to, publish_product, taxes_for,
)
from tests.helpers import BillingFixtureMixin, make_discount, make_tax, make_user


class ProductFlowTests(BillingFixtureMixin, TestCase):

    def _create(self, **data):
        payload = {'name': 'Cloud', 'product_type': 'software', 'sales_price': '20', 'cost_price': '4'}
        payload.update(data)
        return create_product(self.admin, payload)

    def test_review_flow(self):
        product = self._create(variants=[{'attribute': 'Storage', 'value': '1TB', 'extraPrice': 2}])
        self.assertEqual(product.status, Product.STATUS_DRAFT)
        self.assertEqual(product.variants, [{'attribute': 'Storage', 'value': '1TB', 'extra_price': '2'}])
        self.assertNotIn(product, products_visible_to(self.customer))

        product = assign_product(self.admin, product.pk, self.reviewer.pk)
        self.assertEqual(product.status, Product.STATUS_PENDING_INTERNAL)

        product = publish_product(self.reviewer, product.pk)
        self.assertEqual(product.status, Product.STATUS_PUBLISHED)
        self.assertIn(product, products_visible_to(self.customer))

    def test_only_admins_create(self):
        with self.assertRaises(Forbidden):
            create_product(self.customer, {'name': 'X', 'product_type': 'service',
                                           'sales_price': '1', 'cost_price': '1'})

    def test_required_fields(self):
        with self.assertRaises(ValidationError):
            self._create(sales_price='')
        with self.assertRaises(ValidationError):
            self._create(variants=[{'attribute': 'Storage'}])

    def test_assign_requires_owner_and_reviewer(self):
        product = self._create()
        other_admin = make_user(self.company, 'admin')
        with self.assertRaises(Forbidden):
            assign_product(other_admin, product.pk, self.reviewer.pk)
        with self.assertRaises(NotFound):
            assign_product(self.admin, product.pk, self.customer.pk)

    def test_publish_requires_assigned_reviewer(self):
        product = self._create()
        assign_product(self.admin, product.pk, self.reviewer.pk)
        other_reviewer = make_user(self.company, 'internal')
        with self.assertRaises(Forbidden):
            publish_product(other_reviewer, product.pk)


class PlanCreationTests(BillingFixtureMixin, TestCase):

    def _create(self, **data):
        payload = {'product_id': self.product.pk, 'name': 'Gold', 'price': '49.99', 'billing_period': 'monthly'}
        payload.update(data)
        return create_plan(self.admin, payload)

    def test_defaults(self):
        plan = self._create()
        self.assertEqual(plan.tax_percent, Decimal('18'))
        self.assertEqual(plan.min_quantity, 1)
        self.assertTrue(plan.renewable)
        self.assertFalse(plan.pausable)

    def test_rejects_bad_values(self):
        bad_inputs = [
            {'price': '-1'},
            {'price': 'free'},
            {'price': 'NaN'},
            {'price': 'Infinity'},
            {'tax_percent': 'NaN'},
            {'tax_percent': '101'},
            {'tax_percent': '-3'},
            {'billing_period': 'hourly'},
            {'min_quantity': 0, 'price': '10', 'name': 'Zero'},
            {'discount_type': 'percent_first_month', 'discount_value': '120'},
            {'discount_type': 'bogo', 'discount_value': '5'},
            {'start_date': '2025-03-01', 'end_date': '2025-02-01'},
        ]
        for data in bad_inputs:
            with self.subTest(data=data):
                with self.assertRaises(ValidationError):
                    self._create(**data)

    def test_non_finite_price_is_a_validation_error(self):
        with self.assertRaisesMessage(ValidationError, 'Price must be a number'):
            self._create(price='NaN')

    def test_tax_percent_from_company_tax(self):
        vat = make_tax(self.company, percentage='7.5')
        plan = self._create(tax_id=vat.pk, tax_percent='40')
        self.assertEqual(plan.tax_percent, Decimal('7.5'))

    def test_inactive_or_foreign_tax_is_not_found(self):
        retired = make_tax(self.company, name='Old VAT', active=False)
        foreign = make_tax(self.other_company, name='Globex VAT')
        for tax in (retired, foreign):
            with self.subTest(tax=tax.name):
                with self.assertRaisesMessage(NotFound, 'Tax not found'):
                    self._create(tax_id=tax.pk)

    def test_product_must_belong_to_company(self):
        with self.assertRaises(NotFound):
            create_plan(self.outsider, {
                'product_id': self.product.pk, 'name': 'X', 'price': '1', 'billing_period': 'daily',
            })


class DiscountAdminTests(BillingFixtureMixin, TestCase):

    def test_name_is_normalized(self):
        discount = create_discount(self.admin, {'name': '  spring25 ', 'discount_type': 'fixed', 'value': '25'})
        self.assertEqual(discount.name, 'SPRING25')
        self.assertTrue(discount.active)

    def test_duplicate_name_in_company(self):
        make_discount(self.company, name='FIRST10')
        with self.assertRaises(ValidationError):
            create_discount(self.admin, {'name': 'first10', 'discount_type': 'fixed', 'value': '5'})

    def test_same_name_in_other_company(self):
        make_discount(self.company, name='FIRST10')
        discount = create_discount(self.outsider, {'name': 'FIRST10', 'discount_type': 'fixed', 'value': '5'})
        self.assertEqual(discount.company, self.other_company)

    def test_rejects_unknown_type(self):
        with self.assertRaises(ValidationError):
            create_discount(self.admin, {'name': 'X', 'discount_type': 'bogo', 'value': '5'})

    def test_delete_is_company_scoped(self):
        discount = make_discount(self.company, name='FIRST10')
        with self.assertRaises(NotFound):
            delete_discount(self.outsider, discount.pk)
        delete_discount(self.admin, discount.pk)
        self.assertFalse(Discount.objects.exists())


class TaxAdminTests(BillingFixtureMixin, TestCase):

    def test_create_tax(self):
        tax = create_tax(self.admin, {'name': ' VAT ', 'percentage': '20', 'tax_type': 'vat'})
        self.assertEqual(tax.name, 'VAT')
        self.assertEqual(tax.percentage, Decimal('20'))
        self.assertTrue(tax.active)
        self.assertEqual(list(taxes_for(self.admin)), [tax])
        self.assertEqual(list(taxes_for(self.outsider)), [])

    def test_rejects_bad_values(self):
        bad_inputs = [
            {'name': 'VAT', 'percentage': '', 'tax_type': 'vat'},
            {'name': 'VAT', 'percentage': '120', 'tax_type': 'vat'},
            {'name': 'VAT', 'percentage': 'NaN', 'tax_type': 'vat'},
            {'name': 'VAT', 'percentage': '5', 'tax_type': 'excise'},
            {'name': '  ', 'percentage': '5', 'tax_type': 'gst'},
        ]
        for data in bad_inputs:
            with self.subTest(data=data):
                with self.assertRaises(ValidationError):
                    create_tax(self.admin, data)
        self.assertFalse(Tax.objects.exists())

    def test_only_admins_manage_taxes(self):
        with self.assertRaises(Forbidden):
            create_tax(self.reviewer, {'name': 'VAT', 'percentage': '20', 'tax_type': 'vat'})
        with self.assertRaises(Forbidden):
            taxes_for(self.customer)

    def test_delete_is_company_scoped(self):
        tax = make_tax(self.company)
        with self.assertRaises(NotFound):
            delete_tax(self.outsider, tax.pk)
        delete_tax(self.admin, tax.pk)
        self.assertFalse(Tax.objects.exists())
