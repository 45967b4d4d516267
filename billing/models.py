from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone


BILLING_PERIOD_CHOICES = [
    ('daily', 'Daily'),
    ('weekly', 'Weekly'),
    ('monthly', 'Monthly'),
    ('yearly', 'Yearly'),
]

DISCOUNT_TYPE_CHOICES = [
    ('percent_first_month', 'Percent off first month'),
    ('fixed', 'Fixed amount'),
]


class Product(models.Model):
    """A sellable product published by a company admin and approved by an internal reviewer."""

    STATUS_DRAFT = 'draft'
    STATUS_PENDING_INTERNAL = 'pending_internal'
    STATUS_PUBLISHED = 'published'

    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_PENDING_INTERNAL, 'Pending internal review'),
        (STATUS_PUBLISHED, 'Published'),
    ]

    company = models.ForeignKey('accounts.Company', on_delete=models.CASCADE, related_name='products')
    name = models.CharField(max_length=255)
    product_type = models.CharField(max_length=50, help_text='e.g., service, goods, software')
    sales_price = models.DecimalField(max_digits=12, decimal_places=2)
    cost_price = models.DecimalField(max_digits=12, decimal_places=2)
    variants = models.JSONField(
        default=list,
        blank=True,
        help_text='List of {"attribute", "value", "extra_price"} options'
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT)

    admin = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='products_owned'
    )
    assigned_internal = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='products_to_review'
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.company})"

    def get_variant_options(self):
        """Return variant options as (attribute, value, extra_price) tuples."""
        options = []
        for option in self.variants or []:
            if not isinstance(option, dict):
                continue
            extra = option.get('extra_price', option.get('extraPrice')) or 0
            options.append((option.get('attribute'), option.get('value'), Decimal(str(extra))))
        return options


class Plan(models.Model):
    """A priced, recurring billing option tied to a product."""

    company = models.ForeignKey('accounts.Company', on_delete=models.CASCADE, related_name='plans')
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='plans')
    name = models.CharField(max_length=255)
    price = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    billing_period = models.CharField(max_length=10, choices=BILLING_PERIOD_CHOICES)
    min_quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])

    # Optional validity window
    start_date = models.DateField(null=True, blank=True)
    end_date = models.DateField(null=True, blank=True)

    # Capability flags
    pausable = models.BooleanField(default=False)
    renewable = models.BooleanField(default=True)
    closable = models.BooleanField(default=True)
    auto_close = models.BooleanField(default=False)

    # Built-in discount
    discount_type = models.CharField(max_length=30, choices=DISCOUNT_TYPE_CHOICES, blank=True, default='')
    discount_value = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)

    tax_percent = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal('18'),
        validators=[MinValueValidator(0), MaxValueValidator(100)]
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['product', 'price']

    def __str__(self):
        return f"{self.name} ({self.get_billing_period_display()})"

    def is_available_on(self, day):
        """Check if the plan's validity window covers the given day."""
        if self.start_date and day < self.start_date:
            return False
        if self.end_date and day > self.end_date:
            return False
        return True


class Discount(models.Model):
    """Company-scoped named discount code."""

    company = models.ForeignKey('accounts.Company', on_delete=models.CASCADE, related_name='discounts')
    name = models.CharField(max_length=50, help_text='Code, stored uppercase (e.g., FIRST10)')
    discount_type = models.CharField(max_length=30, choices=DISCOUNT_TYPE_CHOICES)
    value = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    active = models.BooleanField(default=True)

    limit_usage = models.PositiveIntegerField(null=True, blank=True, help_text='Maximum redemptions (blank = unlimited)')
    used_count = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['name']
        constraints = [
            models.UniqueConstraint(fields=['company', 'name'], name='unique_discount_name_per_company'),
        ]

    def __str__(self):
        return f"{self.name} ({self.company})"

    def is_redeemable(self):
        """Check if the code is active and under its usage limit."""
        if not self.active:
            return False
        if self.limit_usage is not None and self.used_count >= self.limit_usage:
            return False
        return True


class Tax(models.Model):
    """Company-scoped named tax rate. Plans can take their tax percent from one."""

    TYPE_CHOICES = [
        ('sales', 'Sales tax'),
        ('vat', 'VAT'),
        ('gst', 'GST'),
        ('other', 'Other'),
    ]

    company = models.ForeignKey('accounts.Company', on_delete=models.CASCADE, related_name='taxes')
    name = models.CharField(max_length=100)
    percentage = models.DecimalField(
        max_digits=5, decimal_places=2,
        validators=[MinValueValidator(0), MaxValueValidator(100)]
    )
    tax_type = models.CharField(max_length=10, choices=TYPE_CHOICES)
    active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['name']
        verbose_name_plural = 'taxes'

    def __str__(self):
        return f"{self.name} ({self.percentage}%)"


class SubscriptionQuerySet(models.QuerySet):

    def active(self):
        return self.filter(status=Subscription.STATUS_ACTIVE)

    def for_company(self, company_id):
        return self.filter(company_id=company_id)


class Subscription(models.Model):
    """
    A user's subscription to a plan.

    Pricing fields are a cached snapshot computed at subscribe/upgrade time:
    subtotal == base price - discount_amount and total == subtotal + tax_amount.
    """

    STATUS_DRAFT = 'draft'
    STATUS_ACTIVE = 'active'
    STATUS_QUOTATION = 'quotation'
    STATUS_CLOSED = 'closed'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_ACTIVE, 'Active'),
        (STATUS_QUOTATION, 'Quotation'),
        (STATUS_CLOSED, 'Closed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    number = models.CharField(max_length=40, unique=True)
    company = models.ForeignKey('accounts.Company', on_delete=models.CASCADE, related_name='subscriptions')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='subscriptions')
    product = models.ForeignKey(
        Product, on_delete=models.SET_NULL, null=True, blank=True, related_name='subscriptions'
    )
    plan = models.ForeignKey(
        Plan, on_delete=models.SET_NULL, null=True, blank=True, related_name='subscriptions'
    )
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ACTIVE)
    start_date = models.DateField()
    end_date = models.DateField(null=True, blank=True)
    selected_variants = models.JSONField(null=True, blank=True, help_text='attribute -> value map')

    # Applied discount
    discount_code = models.CharField(max_length=50, blank=True, default='')
    discount_type = models.CharField(max_length=30, blank=True, default='')
    discount_value = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))

    # Pricing snapshot
    tax_percent = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('18'))
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = SubscriptionQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.number} - {self.user.email} ({self.status})"

    @property
    def base_price(self):
        """Pre-discount price implied by the stored snapshot."""
        return self.subtotal + self.discount_amount

    def get_last_invoice(self):
        """Most recent invoice by due date, or None."""
        return self.invoices.order_by('-due_date', '-id').first()


class Invoice(models.Model):
    """
    One billing cycle's charge for a subscription.

    `amount` is authoritative for payment; `lines` are presentational and
    always sum to `amount`. Invoices are never deleted.
    """

    STATUS_PENDING = 'pending'
    STATUS_CONFIRMED = 'confirmed'
    STATUS_SENT = 'sent'
    STATUS_PRINTED = 'printed'
    STATUS_PAID = 'paid'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_CONFIRMED, 'Confirmed'),
        (STATUS_SENT, 'Sent'),
        (STATUS_PRINTED, 'Printed'),
        (STATUS_PAID, 'Paid'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    number = models.CharField(max_length=40, unique=True)
    company = models.ForeignKey('accounts.Company', on_delete=models.CASCADE, related_name='invoices')
    subscription = models.ForeignKey(Subscription, on_delete=models.PROTECT, related_name='invoices')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='invoices')

    amount = models.DecimalField(max_digits=12, decimal_places=2, help_text='Total due')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    issue_date = models.DateField(default=timezone.localdate, help_text='Day the invoice was issued')
    due_date = models.DateField()
    paid_date = models.DateField(null=True, blank=True)

    lines = models.JSONField(default=list, blank=True, help_text='[{"description", "amount"}], amounts as strings')
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    tax_percent = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('18'))
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    discount_label = models.CharField(max_length=100, blank=True, default='')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-due_date', '-id']

    def __str__(self):
        return f"{self.number} - {self.amount} ({self.status})"

    def is_overdue(self, today=None):
        """Overdue is derived: a pending invoice past its due date."""
        today = today or timezone.localdate()
        return self.status == self.STATUS_PENDING and self.due_date < today

    def get_display_status(self, today=None):
        return 'overdue' if self.is_overdue(today) else self.status


class Payment(models.Model):
    """A payment recorded against an invoice."""

    METHOD_CHOICES = [
        ('card', 'Card'),
        ('bank_transfer', 'Bank transfer'),
        ('cash', 'Cash'),
        ('upi', 'UPI'),
        ('other', 'Other'),
    ]

    company = models.ForeignKey('accounts.Company', on_delete=models.CASCADE, related_name='payments')
    invoice = models.ForeignKey(Invoice, on_delete=models.PROTECT, related_name='payments')
    amount = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    method = models.CharField(max_length=20, choices=METHOD_CHOICES)
    date = models.DateField()

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-date', '-id']

    def __str__(self):
        return f"{self.amount} for {self.invoice.number} ({self.method})"


class SequenceCounter(models.Model):
    """Per (prefix, day) counter backing PREFIX-YYYYMMDD-NNN numbers."""

    prefix = models.CharField(max_length=10)
    day = models.DateField()
    last_value = models.PositiveIntegerField(default=0)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['prefix', 'day'], name='unique_sequence_per_prefix_day'),
        ]

    def __str__(self):
        return f"{self.prefix}-{self.day:%Y%m%d} @ {self.last_value}"


class QuotationTemplate(models.Model):
    """
    Reusable starting point for admin quotations.

    `recurring_plan` seeds the plan and product of quotations created from the
    template. `product_lines` are one-off items listed alongside it.
    """

    company = models.ForeignKey('accounts.Company', on_delete=models.CASCADE, related_name='quotation_templates')
    admin = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='quotation_templates'
    )
    name = models.CharField(max_length=255)
    validity_days = models.PositiveIntegerField(default=30, validators=[MinValueValidator(1)])
    recurring_plan = models.ForeignKey(
        Plan, on_delete=models.SET_NULL, null=True, blank=True, related_name='quotation_templates'
    )
    product_lines = models.JSONField(
        default=list,
        blank=True,
        help_text='List of {"product_id", "product_name", "quantity", "unit_price"}'
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name
