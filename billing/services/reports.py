from collections import OrderedDict

from django.db.models import Sum
from django.db.models.functions import TruncMonth
from django.utils import timezone

from billing.exceptions import Forbidden
from billing.models import Invoice, Payment, Subscription

from .pricing import ZERO, format_money


def revenue_summary(admin, today=None):
    """
    Company revenue dashboard for an admin.

    Returns active subscription count, total collected, the amount sitting on
    overdue invoices and collected revenue per YYYY-MM.
    """
    if not admin.is_company_admin:
        raise Forbidden('Access denied')
    today = today or timezone.localdate()
    company_id = admin.company_id

    payments = Payment.objects.filter(company_id=company_id)
    total_revenue = payments.aggregate(total=Sum('amount'))['total'] or ZERO
    overdue_amount = Invoice.objects.filter(
        company_id=company_id,
        status=Invoice.STATUS_PENDING,
        due_date__lt=today,
    ).aggregate(total=Sum('amount'))['total'] or ZERO

    monthly_revenue = OrderedDict()
    by_month = (
        payments.annotate(month=TruncMonth('date'))
        .values('month')
        .annotate(total=Sum('amount'))
        .order_by('month')
    )
    for row in by_month:
        monthly_revenue[row['month'].strftime('%Y-%m')] = format_money(row['total'])

    return {
        'active_subs': Subscription.objects.for_company(company_id).active().count(),
        'total_revenue': format_money(total_revenue),
        'overdue_amount': format_money(overdue_amount),
        'monthly_revenue': monthly_revenue,
    }
