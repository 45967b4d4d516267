from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from accounts.models import User
from billing.models import Payment
from billing.services import catalog, invoices, quotations, reports, subscriptions
from .serializers import (
    AssignProductSerializer, DiscountSerializer, InvoiceSerializer, PaymentInputSerializer,
    PaymentSerializer, PlanSerializer, ProductSerializer, QuotationSerializer,
    QuotationTemplateSerializer, SubscribeSerializer, SubscriptionSerializer, TaxSerializer,
    UpgradeSerializer, to_kwargs,
)


# =============================================================================
# Subscriptions
# =============================================================================

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def subscription_list(request):
    """GET: subscriptions visible to the caller. POST: subscribe to a plan."""
    if request.method == 'GET':
        queryset = subscriptions.subscriptions_visible_to(request.user)
        return Response(SubscriptionSerializer(queryset, many=True).data)

    serializer = SubscribeSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    subscription = subscriptions.subscribe(request.user, to_kwargs(serializer.validated_data))
    return Response(SubscriptionSerializer(subscription).data, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def quotation_create(request):
    serializer = QuotationSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    subscription = subscriptions.create_quotation(request.user, to_kwargs(serializer.validated_data))
    return Response(SubscriptionSerializer(subscription).data, status=status.HTTP_201_CREATED)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def subscription_upgrade(request, sub_id):
    serializer = UpgradeSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    subscription = subscriptions.upgrade_subscription(
        request.user, sub_id, serializer.validated_data['new_plan_id']
    )
    return Response(SubscriptionSerializer(subscription).data)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def subscription_send_quote(request, sub_id):
    subscription = subscriptions.send_quote(request.user, sub_id)
    return Response(SubscriptionSerializer(subscription).data)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def subscription_confirm(request, sub_id):
    subscription = subscriptions.confirm_subscription(request.user, sub_id)
    return Response(SubscriptionSerializer(subscription).data)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def subscription_cancel(request, sub_id):
    subscription = subscriptions.cancel_subscription(request.user, sub_id)
    return Response(SubscriptionSerializer(subscription).data)


# =============================================================================
# Invoices and payments
# =============================================================================

INVOICE_ACTIONS = {
    'confirm': invoices.confirm_invoice,
    'send': invoices.send_invoice,
    'print': invoices.print_invoice,
    'cancel': invoices.cancel_invoice,
}


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def invoice_list(request):
    queryset = invoices.invoices_visible_to(request.user)
    return Response(InvoiceSerializer(queryset, many=True).data)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def invoice_pay(request, invoice_id):
    invoice = invoices.pay_invoice(request.user, invoice_id)
    return Response(InvoiceSerializer(invoice).data)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def invoice_action(request, invoice_id, action):
    """Reviewer actions: confirm, send, print, cancel."""
    invoice = INVOICE_ACTIONS[action](request.user, invoice_id)
    return Response(InvoiceSerializer(invoice).data)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def payment_list(request):
    if request.method == 'GET':
        queryset = Payment.objects.filter(company_id=request.user.company_id).select_related('invoice')
        if request.user.role == User.ROLE_USER:
            queryset = queryset.filter(invoice__user=request.user)
        return Response(PaymentSerializer(queryset, many=True).data)

    serializer = PaymentInputSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    payment = invoices.record_payment(request.user, **serializer.validated_data)
    return Response(PaymentSerializer(payment).data, status=status.HTTP_201_CREATED)


# =============================================================================
# Catalog
# =============================================================================

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def product_list(request):
    if request.method == 'GET':
        return Response(ProductSerializer(catalog.products_visible_to(request.user), many=True).data)

    product = catalog.create_product(request.user, request.data)
    return Response(ProductSerializer(product).data, status=status.HTTP_201_CREATED)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def product_assign(request, product_id):
    serializer = AssignProductSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    product = catalog.assign_product(request.user, product_id, serializer.validated_data['internal_id'])
    return Response(ProductSerializer(product).data)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def product_publish(request, product_id):
    product = catalog.publish_product(request.user, product_id)
    return Response(ProductSerializer(product).data)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def plan_list(request):
    if request.method == 'GET':
        return Response(PlanSerializer(catalog.plans_visible_to(request.user), many=True).data)

    plan = catalog.create_plan(request.user, request.data)
    return Response(PlanSerializer(plan).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def discount_list(request):
    if request.method == 'GET':
        return Response(DiscountSerializer(catalog.discounts_for(request.user), many=True).data)

    discount = catalog.create_discount(request.user, request.data)
    return Response(DiscountSerializer(discount).data, status=status.HTTP_201_CREATED)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def discount_delete(request, discount_id):
    catalog.delete_discount(request.user, discount_id)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def tax_list(request):
    if request.method == 'GET':
        return Response(TaxSerializer(catalog.taxes_for(request.user), many=True).data)

    tax = catalog.create_tax(request.user, request.data)
    return Response(TaxSerializer(tax).data, status=status.HTTP_201_CREATED)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def tax_delete(request, tax_id):
    catalog.delete_tax(request.user, tax_id)
    return Response(status=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Quotation templates
# =============================================================================

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def quotation_template_list(request):
    if request.method == 'GET':
        templates = quotations.templates_for(request.user)
        return Response(QuotationTemplateSerializer(templates, many=True).data)

    template = quotations.create_quotation_template(request.user, request.data)
    return Response(QuotationTemplateSerializer(template).data, status=status.HTTP_201_CREATED)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def quotation_template_delete(request, template_id):
    quotations.delete_quotation_template(request.user, template_id)
    return Response(status=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Reports
# =============================================================================

@api_view(['GET'])
@permission_classes([IsAuthenticated])
def revenue_report(request):
    return Response(reports.revenue_summary(request.user))
