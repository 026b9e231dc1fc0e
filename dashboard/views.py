from datetime import timedelta
from decimal import Decimal

from django.db.models import Sum, Count
from django.utils import timezone
from drf_yasg.utils import swagger_auto_schema
from rest_framework.decorators import api_view
from rest_framework.response import Response

from finance import services as finance_services
from finance.models import Shift
from finance.serializers import SettlementTotalsSerializer, ShiftSettlementSerializer
from inventory import ledger
from inventory.models import BusinessUnit
from inventory.serializers import InventoryItemSerializer, MenuItemSerializer
from orders.models import Order, OrderItem, OrderStatus
from venuepos.middleware import require_business_unit


def get_today_stats(unit, today):
    """Get today's key metrics"""
    today_orders = Order.objects.filter(
        business_unit=unit,
        create_date__date=today,
    ).exclude(status=OrderStatus.CANCELLED)

    today_revenue = today_orders.aggregate(
        total=Sum('total_amount')
    )['total'] or Decimal('0.00')

    today_orders_count = today_orders.count()
    avg_order_value = today_revenue / today_orders_count if today_orders_count > 0 else Decimal('0.00')

    return {
        'revenue': today_revenue,
        'orders_count': today_orders_count,
        'avg_order_value': avg_order_value.quantize(Decimal('0.01')),
    }


def get_order_status_breakdown(unit, date):
    rows = Order.objects.filter(
        business_unit=unit,
        create_date__date=date
    ).values('status').annotate(
        count=Count('id')
    ).order_by('-count')
    return {row['status']: row['count'] for row in rows}


def get_payment_breakdown(unit, date):
    """Sales per payment method, cancelled orders left out"""
    rows = Order.objects.filter(
        business_unit=unit,
        create_date__date=date
    ).exclude(status=OrderStatus.CANCELLED).values('payment_method').annotate(
        count=Count('id'),
        total_amount=Sum('total_amount')
    ).order_by('-total_amount')
    return [
        {'payment_method': row['payment_method'], 'count': row['count'], 'total_amount': row['total_amount']}
        for row in rows
    ]


def get_top_selling_items(unit, start_date, end_date):
    return list(OrderItem.objects.filter(
        order__business_unit=unit,
        order__create_date__date__gte=start_date,
        order__create_date__date__lte=end_date,
    ).exclude(order__status=OrderStatus.CANCELLED).values(
        'name'
    ).annotate(
        total_quantity=Sum('quantity'),
        total_revenue=Sum('line_total')
    ).order_by('-total_quantity')[:5])


def get_open_shift(unit):
    shift = Shift.objects.filter(business_unit=unit, status="OPEN").first()
    if shift is None:
        return None
    totals = finance_services.compute_expected(shift.orders.all())
    return {
        'id': shift.id,
        'opened_at': shift.opened_at,
        'totals': SettlementTotalsSerializer(totals).data,
    }


def unit_summary(unit, today):
    low = ledger.low_stock(unit)
    return {
        'business_unit': unit,
        'today': get_today_stats(unit, today),
        'order_status': get_order_status_breakdown(unit, today),
        'payments': get_payment_breakdown(unit, today),
        'top_items': get_top_selling_items(unit, today - timedelta(days=30), today),
        'open_shift': get_open_shift(unit),
        'low_stock': {
            'inventory': InventoryItemSerializer(low['inventory'], many=True).data,
            'menu_items': MenuItemSerializer(low['menu_items'], many=True).data,
        },
        'recent_settlements': ShiftSettlementSerializer(finance_services.settlement_history(unit)[:3], many=True).data,
    }


@swagger_auto_schema(method='get', operation_description="Read-only summary across every business unit")
@api_view(['GET'])
def admin_overview(request):
    today = timezone.localdate()
    units = [unit_summary(unit, today) for unit in BusinessUnit.values]
    return Response({
        'date': today,
        'revenue': sum((summary['today']['revenue'] for summary in units), Decimal('0.00')),
        'orders_count': sum(summary['today']['orders_count'] for summary in units),
        'units': units,
    })


@swagger_auto_schema(method='get', operation_description="Read-only summary of one business unit")
@api_view(['GET'])
def unit_overview(request, unit):
    unit = require_business_unit(request)
    return Response(unit_summary(unit, timezone.localdate()))
