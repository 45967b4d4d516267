from decimal import Decimal

from django.test import TestCase

from billing.exceptions import Forbidden, NotFound, ValidationError
from billing.models import QuotationTemplate
from billing.services.quotations import (
    create_quotation_template, delete_quotation_template, quotation_data_from_template,
    template_lines_total, templates_for,
)
from tests.helpers import BillingFixtureMixin, make_product


class QuotationTemplateTests(BillingFixtureMixin, TestCase):

    def test_create_template(self):
        addon = make_product(self.company, self.admin, name='Setup')
        template = create_quotation_template(self.admin, {
            'name': ' Starter pack ',
            'validity_days': '14',
            'recurring_plan_id': self.plan.pk,
            'product_lines': [
                {'product_id': addon.pk, 'quantity': 2, 'unit_price': '49.5'},
                {'productId': self.product.pk},
            ],
        })

        self.assertEqual(template.name, 'Starter pack')
        self.assertEqual(template.validity_days, 14)
        self.assertEqual(template.recurring_plan, self.plan)
        self.assertEqual(template.product_lines, [
            {'product_id': addon.pk, 'product_name': 'Setup', 'quantity': 2, 'unit_price': '49.50'},
            {'product_id': self.product.pk, 'product_name': 'Streaming', 'quantity': 1, 'unit_price': '15.99'},
        ])
        self.assertEqual(template_lines_total(template), Decimal('114.99'))

    def test_defaults(self):
        template = create_quotation_template(self.admin, {'name': 'Blank', 'validity_days': 'soon'})
        self.assertEqual(template.validity_days, 30)
        self.assertIsNone(template.recurring_plan)
        self.assertEqual(template.product_lines, [])
        self.assertEqual(template_lines_total(template), Decimal('0'))

    def test_rejects_bad_input(self):
        bad_inputs = [
            {'name': ''},
            {'name': 'X', 'validity_days': '0'},
            {'name': 'X', 'validity_days': '99999'},
            {'name': 'X', 'product_lines': 'all of them'},
            {'name': 'X', 'product_lines': [{'product_id': self.product.pk, 'unit_price': '-1'}]},
            {'name': 'X', 'product_lines': [{'product_id': self.product.pk, 'unit_price': 'NaN'}]},
        ]
        for data in bad_inputs:
            with self.subTest(data=data):
                with self.assertRaises(ValidationError):
                    create_quotation_template(self.admin, data)
        self.assertFalse(QuotationTemplate.objects.exists())

    def test_plan_and_products_must_belong_to_company(self):
        foreign_product = make_product(self.other_company, self.outsider)
        with self.assertRaisesMessage(NotFound, 'Plan not found'):
            create_quotation_template(self.outsider, {'name': 'X', 'recurring_plan_id': self.plan.pk})
        with self.assertRaisesMessage(NotFound, 'Product not found'):
            create_quotation_template(self.admin, {
                'name': 'X', 'product_lines': [{'product_id': foreign_product.pk}],
            })

    def test_only_admins(self):
        with self.assertRaises(Forbidden):
            create_quotation_template(self.reviewer, {'name': 'X'})
        with self.assertRaises(Forbidden):
            templates_for(self.customer)

    def test_listing_and_delete_are_company_scoped(self):
        template = create_quotation_template(self.admin, {'name': 'Ours'})
        self.assertEqual(list(templates_for(self.admin)), [template])
        self.assertEqual(list(templates_for(self.outsider)), [])

        with self.assertRaises(NotFound):
            delete_quotation_template(self.outsider, template.pk)
        delete_quotation_template(self.admin, template.pk)
        self.assertFalse(QuotationTemplate.objects.exists())

    def test_explicit_values_win_over_template(self):
        template = create_quotation_template(self.admin, {'name': 'Basic', 'recurring_plan_id': self.plan.pk})
        data = quotation_data_from_template(self.company.pk, template.pk, {'plan_id': 999, 'quantity': None})
        self.assertEqual(data, {'plan_id': 999, 'product_id': self.product.pk})
