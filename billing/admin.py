from django.contrib import admin
from .models import Product, Plan, Discount, Tax, Subscription, Invoice, Payment, QuotationTemplate, SequenceCounter


class PlanInline(admin.TabularInline):
    model = Plan
    extra = 0
    fields = ['name', 'price', 'billing_period', 'min_quantity', 'tax_percent']


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'company', 'product_type', 'sales_price', 'status', 'admin', 'assigned_internal']
    list_filter = ['status', 'company']
    search_fields = ['name', 'admin__email']
    inlines = [PlanInline]


@admin.register(Plan)
class PlanAdmin(admin.ModelAdmin):
    list_display = ['name', 'product', 'company', 'price', 'billing_period', 'tax_percent', 'discount_type']
    list_filter = ['billing_period', 'company']
    search_fields = ['name', 'product__name']

    fieldsets = (
        (None, {
            'fields': ('company', 'product', 'name', 'price', 'billing_period', 'min_quantity')
        }),
        ('Validity', {
            'fields': ('start_date', 'end_date'),
            'classes': ('collapse',)
        }),
        ('Options', {
            'fields': ('pausable', 'renewable', 'closable', 'auto_close')
        }),
        ('Discount & Tax', {
            'fields': ('discount_type', 'discount_value', 'tax_percent')
        }),
    )


@admin.register(Discount)
class DiscountAdmin(admin.ModelAdmin):
    list_display = ['name', 'company', 'discount_type', 'value', 'active', 'usage_display']
    list_filter = ['active', 'discount_type', 'company']
    search_fields = ['name']
    readonly_fields = ['used_count', 'created_at']

    def usage_display(self, obj):
        if obj.limit_usage is None:
            return f"{obj.used_count} / unlimited"
        return f"{obj.used_count} / {obj.limit_usage}"
    usage_display.short_description = 'Usage'


@admin.register(Tax)
class TaxAdmin(admin.ModelAdmin):
    list_display = ['name', 'company', 'tax_type', 'percentage', 'active']
    list_filter = ['active', 'tax_type', 'company']
    search_fields = ['name']


@admin.register(QuotationTemplate)
class QuotationTemplateAdmin(admin.ModelAdmin):
    list_display = ['name', 'company', 'recurring_plan', 'validity_days', 'line_count', 'created_at']
    list_filter = ['company']
    search_fields = ['name']
    raw_id_fields = ['recurring_plan', 'admin']

    def line_count(self, obj):
        return len(obj.product_lines or [])
    line_count.short_description = 'Lines'


class InvoiceInline(admin.TabularInline):
    model = Invoice
    extra = 0
    fields = ['number', 'amount', 'status', 'due_date', 'paid_date']
    readonly_fields = ['number', 'amount', 'due_date']
    can_delete = False


@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    list_display = ['number', 'user', 'company', 'plan', 'quantity', 'status', 'total', 'start_date', 'end_date']
    list_filter = ['status', 'company']
    search_fields = ['number', 'user__email']
    readonly_fields = ['number', 'discount_amount', 'tax_amount', 'subtotal', 'total', 'created_at', 'updated_at']
    inlines = [InvoiceInline]


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ['number', 'subscription', 'user', 'amount', 'status', 'issue_date', 'due_date', 'paid_date']
    list_filter = ['status', 'company']
    search_fields = ['number', 'subscription__number', 'user__email']
    readonly_fields = ['number', 'amount', 'lines', 'tax_amount', 'discount_amount', 'created_at']

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ['invoice', 'amount', 'method', 'date', 'company']
    list_filter = ['method', 'company']
    search_fields = ['invoice__number']


@admin.register(SequenceCounter)
class SequenceCounterAdmin(admin.ModelAdmin):
    list_display = ['prefix', 'day', 'last_value']
    list_filter = ['prefix']
