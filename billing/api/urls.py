from django.urls import path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from . import views

app_name = 'api'

urlpatterns = [
    # JWT auth
    path('auth/token/', TokenObtainPairView.as_view(), name='token_obtain'),
    path('auth/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    # Subscriptions
    path('subscriptions/', views.subscription_list, name='subscription_list'),
    path('subscriptions/quotations/', views.quotation_create, name='quotation_create'),
    path('subscriptions/<int:sub_id>/upgrade/', views.subscription_upgrade, name='subscription_upgrade'),
    path('subscriptions/<int:sub_id>/send-quote/', views.subscription_send_quote, name='subscription_send_quote'),
    path('subscriptions/<int:sub_id>/confirm/', views.subscription_confirm, name='subscription_confirm'),
    path('subscriptions/<int:sub_id>/cancel/', views.subscription_cancel, name='subscription_cancel'),

    # Invoices and payments
    path('invoices/', views.invoice_list, name='invoice_list'),
    path('invoices/<int:invoice_id>/pay/', views.invoice_pay, name='invoice_pay'),
    path('invoices/<int:invoice_id>/confirm/', views.invoice_action, {'action': 'confirm'}, name='invoice_confirm'),
    path('invoices/<int:invoice_id>/send/', views.invoice_action, {'action': 'send'}, name='invoice_send'),
    path('invoices/<int:invoice_id>/print/', views.invoice_action, {'action': 'print'}, name='invoice_print'),
    path('invoices/<int:invoice_id>/cancel/', views.invoice_action, {'action': 'cancel'}, name='invoice_cancel'),
    path('payments/', views.payment_list, name='payment_list'),

    # Catalog
    path('products/', views.product_list, name='product_list'),
    path('products/<int:product_id>/assign/', views.product_assign, name='product_assign'),
    path('products/<int:product_id>/publish/', views.product_publish, name='product_publish'),
    path('plans/', views.plan_list, name='plan_list'),
    path('discounts/', views.discount_list, name='discount_list'),
    path('discounts/<int:discount_id>/', views.discount_delete, name='discount_delete'),
    path('taxes/', views.tax_list, name='tax_list'),
    path('taxes/<int:tax_id>/', views.tax_delete, name='tax_delete'),
    path('quotation-templates/', views.quotation_template_list, name='quotation_template_list'),
    path('quotation-templates/<int:template_id>/', views.quotation_template_delete, name='quotation_template_delete'),

    # Reports
    path('reports/revenue/', views.revenue_report, name='revenue_report'),
]
