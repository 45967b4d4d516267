from rest_framework import serializers

from billing.models import Discount, Invoice, Payment, Plan, Product, QuotationTemplate, Subscription, Tax
from billing.services.quotations import template_lines_total


# =============================================================================
# Output
# =============================================================================

class ProductSerializer(serializers.ModelSerializer):
    class Meta:
        model = Product
        fields = [
            'id', 'name', 'product_type', 'sales_price', 'cost_price', 'variants',
            'status', 'admin', 'assigned_internal', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class PlanSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)

    class Meta:
        model = Plan
        fields = [
            'id', 'product', 'product_name', 'name', 'price', 'billing_period', 'min_quantity',
            'start_date', 'end_date', 'pausable', 'renewable', 'closable', 'auto_close',
            'discount_type', 'discount_value', 'tax_percent', 'created_at',
        ]
        read_only_fields = fields


class DiscountSerializer(serializers.ModelSerializer):
    class Meta:
        model = Discount
        fields = ['id', 'name', 'discount_type', 'value', 'active', 'limit_usage', 'used_count', 'created_at']
        read_only_fields = fields


class TaxSerializer(serializers.ModelSerializer):
    class Meta:
        model = Tax
        fields = ['id', 'name', 'percentage', 'tax_type', 'active', 'created_at']
        read_only_fields = fields


class QuotationTemplateSerializer(serializers.ModelSerializer):
    recurring_plan_name = serializers.SerializerMethodField()
    lines_total = serializers.SerializerMethodField()

    class Meta:
        model = QuotationTemplate
        fields = [
            'id', 'name', 'validity_days', 'recurring_plan', 'recurring_plan_name',
            'product_lines', 'lines_total', 'admin', 'created_at',
        ]
        read_only_fields = fields

    def get_recurring_plan_name(self, obj):
        return obj.recurring_plan.name if obj.recurring_plan else None

    def get_lines_total(self, obj):
        return str(template_lines_total(obj))


class SubscriptionSerializer(serializers.ModelSerializer):
    user_email = serializers.EmailField(source='user.email', read_only=True)
    plan_name = serializers.SerializerMethodField()
    product_name = serializers.SerializerMethodField()

    class Meta:
        model = Subscription
        fields = [
            'id', 'number', 'user', 'user_email', 'product', 'product_name', 'plan', 'plan_name',
            'quantity', 'status', 'start_date', 'end_date', 'selected_variants',
            'discount_code', 'discount_type', 'discount_value', 'discount_amount',
            'tax_percent', 'tax_amount', 'subtotal', 'total', 'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_plan_name(self, obj):
        return obj.plan.name if obj.plan else None

    def get_product_name(self, obj):
        return obj.product.name if obj.product else None


class InvoiceSerializer(serializers.ModelSerializer):
    subscription_number = serializers.CharField(source='subscription.number', read_only=True)
    display_status = serializers.SerializerMethodField()

    class Meta:
        model = Invoice
        fields = [
            'id', 'number', 'subscription', 'subscription_number', 'user', 'amount', 'status',
            'display_status', 'issue_date', 'due_date', 'paid_date', 'lines', 'tax_amount', 'tax_percent',
            'discount_amount', 'discount_label', 'created_at',
        ]
        read_only_fields = fields

    def get_display_status(self, obj):
        return obj.get_display_status()


class PaymentSerializer(serializers.ModelSerializer):
    invoice_number = serializers.CharField(source='invoice.number', read_only=True)

    class Meta:
        model = Payment
        fields = ['id', 'invoice', 'invoice_number', 'amount', 'method', 'date', 'created_at']
        read_only_fields = fields


# =============================================================================
# Input
# =============================================================================

class SubscribeSerializer(serializers.Serializer):
    """Input for subscribe and create-quotation. Quantity is coerced leniently downstream."""
    product_id = serializers.IntegerField()
    plan_id = serializers.IntegerField()
    quantity = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=32)
    discount_code = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=50)
    selected_variants = serializers.DictField(child=serializers.CharField(), required=False, allow_null=True)


class QuotationSerializer(SubscribeSerializer):
    """Plan and product may come from a quotation template instead."""
    user_id = serializers.IntegerField()
    product_id = serializers.IntegerField(required=False)
    plan_id = serializers.IntegerField(required=False)
    template_id = serializers.IntegerField(required=False)


class UpgradeSerializer(serializers.Serializer):
    new_plan_id = serializers.IntegerField()


class PaymentInputSerializer(serializers.Serializer):
    invoice_id = serializers.IntegerField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    method = serializers.ChoiceField(choices=Payment.METHOD_CHOICES)


class AssignProductSerializer(serializers.Serializer):
    internal_id = serializers.IntegerField()


def to_kwargs(validated_data):
    """Drop keys the client did not send so services see them as absent."""
    return {key: value for key, value in validated_data.items() if value is not None}
