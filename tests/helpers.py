"""Small factories shared by the billing tests."""
from datetime import date
from decimal import Decimal

from accounts.models import Company, User
from billing.models import Discount, Plan, Product, Tax


TODAY = date(2025, 1, 15)


def make_company(name='Acme'):
    return Company.objects.create(name=name)


def make_user(company, role=User.ROLE_USER, email=None):
    email = email or f"{role}-{User.objects.count() + 1}@{company.name.lower()}.test"
    return User.objects.create_user(email=email, password='pass1234', company=company, role=role)


def make_product(company, admin, name='Streaming', variants=None, status=Product.STATUS_PUBLISHED):
    return Product.objects.create(
        company=company,
        admin=admin,
        name=name,
        product_type='service',
        sales_price=Decimal('15.99'),
        cost_price=Decimal('5.00'),
        variants=variants or [],
        status=status,
    )


def make_plan(company, product, name='Basic', price='15.99', billing_period='monthly',
              tax_percent='18', **extra):
    return Plan.objects.create(
        company=company,
        product=product,
        name=name,
        price=Decimal(price),
        billing_period=billing_period,
        tax_percent=Decimal(tax_percent),
        **extra
    )


def make_discount(company, name='FIRST10', discount_type='percent_first_month', value='10', **extra):
    return Discount.objects.create(
        company=company,
        name=name,
        discount_type=discount_type,
        value=Decimal(value),
        **extra
    )


def make_tax(company, name='VAT', percentage='20', tax_type='vat', **extra):
    return Tax.objects.create(
        company=company,
        name=name,
        percentage=Decimal(percentage),
        tax_type=tax_type,
        **extra
    )


class BillingFixtureMixin:
    """One company with an admin, an internal reviewer, a customer and a $15.99 monthly plan."""

    @classmethod
    def setUpTestData(cls):
        cls.company = make_company('Acme')
        cls.admin = make_user(cls.company, User.ROLE_ADMIN, 'admin@acme.test')
        cls.reviewer = make_user(cls.company, User.ROLE_INTERNAL, 'reviewer@acme.test')
        cls.customer = make_user(cls.company, User.ROLE_USER, 'customer@acme.test')
        cls.product = make_product(cls.company, cls.admin)
        cls.plan = make_plan(cls.company, cls.product)

        cls.other_company = make_company('Globex')
        cls.outsider = make_user(cls.other_company, User.ROLE_ADMIN, 'admin@globex.test')
