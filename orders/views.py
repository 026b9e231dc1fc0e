import json
import logging

from asgiref.sync import sync_to_async
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_POST
from django_filters.rest_framework import DjangoFilterBackend
from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema
from rest_framework import generics, status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from inventory import catalog
from inventory.models import BusinessUnit, MenuItem
from venuepos.middleware import require_business_unit
from . import lifecycle
from .cart import CartStore
from .models import Order
from .pricing import apply_tax
from .serializers import (
    CartSerializer, CartAddSerializer, CartRemoveSerializer, PlaceOrderSerializer,
    StatusUpdateSerializer, VoiceOrderSerializer, OrderReadSerializer, KitchenOrderSerializer
)
from .voice import apply_resolution, get_resolver

logger = logging.getLogger(__name__)

tax_param = openapi.Parameter(
    'tax', openapi.IN_QUERY, description="Add dine-in tax to the totals", type=openapi.TYPE_BOOLEAN
)


def _wants_tax(request):
    return request.query_params.get('tax', '').lower() in ('1', 'true', 'yes')


def _totals(subtotal, with_tax):
    if not with_tax:
        return {'subtotal': str(subtotal), 'tax': '0', 'grand_total': str(subtotal)}
    tax, grand_total = apply_tax(subtotal)
    return {'subtotal': str(subtotal), 'tax': str(tax), 'grand_total': str(grand_total)}


# Cart views
@swagger_auto_schema(method='get', responses={200: CartSerializer})
@swagger_auto_schema(method='delete', operation_description="Empty the cart", responses={200: CartSerializer})
@api_view(['GET', 'DELETE'])
def cart_detail(request, unit, source_id):
    unit = require_business_unit(request)
    store = CartStore(request.session)
    cart = store.load(unit, source_id)
    if request.method == 'DELETE':
        cart.clear()
        store.save(cart)
    return Response(CartSerializer(cart).data)


@swagger_auto_schema(
    method='post',
    operation_description="Add a menu item; the same item and pour size merge into one line",
    request_body=CartAddSerializer,
    responses={200: CartSerializer, 400: 'Bad Request'}
)
@api_view(['POST'])
def cart_add(request, unit, source_id):
    unit = require_business_unit(request)
    serializer = CartAddSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    item = get_object_or_404(MenuItem, pk=serializer.validated_data['menu_item_id'])

    store = CartStore(request.session)
    cart = store.load(unit, source_id)
    cart.add_line(item, serializer.validated_data.get('variant'), serializer.validated_data['quantity'])
    store.save(cart)
    return Response(CartSerializer(cart).data)


@swagger_auto_schema(
    method='post',
    operation_description="Remove a line (delete_line) or one unit of it (decrement)",
    request_body=CartRemoveSerializer,
    responses={200: CartSerializer, 400: 'Bad Request'}
)
@api_view(['POST'])
def cart_remove(request, unit, source_id):
    unit = require_business_unit(request)
    serializer = CartRemoveSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    store = CartStore(request.session)
    cart = store.load(unit, source_id)
    cart.remove_line(serializer.validated_data['key'], serializer.validated_data['policy'])
    store.save(cart)
    return Response(CartSerializer(cart).data)


@swagger_auto_schema(method='get', manual_parameters=[tax_param])
@api_view(['GET'])
def checkout_preview(request, unit, source_id):
    """Cart totals before placing the order"""
    unit = require_business_unit(request)
    cart = CartStore(request.session).load(unit, source_id)
    data = CartSerializer(cart).data
    data.update(_totals(cart.total(), _wants_tax(request)))
    return Response(data)


@swagger_auto_schema(
    method='post',
    operation_description="Turn the cart into an order",
    request_body=PlaceOrderSerializer,
    responses={201: OrderReadSerializer, 400: 'Bad Request'}
)
@api_view(['POST'])
def place_order(request, unit, source_id):
    unit = require_business_unit(request)
    serializer = PlaceOrderSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    store = CartStore(request.session)
    cart = store.load(unit, source_id)
    order = lifecycle.place_order(cart, source_id, serializer.validated_data['payment_method'])
    store.save(cart)

    order = Order.objects.prefetch_related('items', 'status_changes').get(pk=order.pk)
    return Response(OrderReadSerializer(order).data, status=status.HTTP_201_CREATED)


def _apply_voice(session, unit, source_id, resolved):
    store = CartStore(session)
    cart = store.load(unit, source_id)
    added = apply_resolution(cart, resolved, catalog.menu_snapshot(unit, available_only=True))
    store.save(cart)
    return cart, added


@require_POST
async def voice_order(request, unit, source_id):
    """Resolve a spoken request against the unit's menu and add it to the cart"""
    unit = request.business_unit
    if unit is None:
        return JsonResponse({'error': True, 'message': 'Unknown business unit', 'status_code': 400}, status=400)
    try:
        payload = json.loads(request.body or b'{}')
    except ValueError:
        return JsonResponse({'error': True, 'message': 'Request body must be JSON', 'status_code': 400}, status=400)

    serializer = VoiceOrderSerializer(data=payload)
    if not serializer.is_valid():
        return JsonResponse({
            'error': True, 'message': 'Validation error', 'details': serializer.errors, 'status_code': 400,
        }, status=400)

    menu = await sync_to_async(catalog.menu_snapshot)(unit, available_only=True)
    resolver = get_resolver(asynchronous=True)
    try:
        resolved = await resolver.aresolve(serializer.validated_data['transcript'], menu)
    finally:
        await resolver.aclose()
    cart, added = await sync_to_async(_apply_voice)(request.session, unit, source_id, resolved)

    if not added:
        logger.info("Voice order for %s %s resolved nothing", unit, source_id)
    return JsonResponse({
        'added': [line.key for line in added],
        'message': "Added to order" if added else "Could not understand",
        'cart': CartSerializer(cart).data,
    })


# Order views
class OrderListView(generics.ListAPIView):
    """List orders, newest first"""
    serializer_class = OrderReadSerializer
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ['status', 'business_unit', 'payment_method', 'source_id']

    def get_queryset(self):
        queryset = Order.objects.prefetch_related('items', 'status_changes')

        # Filter by date
        date_filter = self.request.query_params.get('date')
        if date_filter:
            queryset = queryset.filter(create_date__date=date_filter)

        return queryset.order_by('-create_date')

    @swagger_auto_schema(
        manual_parameters=[
            openapi.Parameter('date', openapi.IN_QUERY, description="Filter by date (YYYY-MM-DD)", type=openapi.TYPE_STRING),
        ]
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class OrderDetailView(generics.RetrieveAPIView):
    serializer_class = OrderReadSerializer
    queryset = Order.objects.prefetch_related('items', 'status_changes')


@swagger_auto_schema(
    method='post',
    operation_description="Advance an order through INCOMING, PREPARING, READY and PICKED_UP",
    request_body=StatusUpdateSerializer,
    responses={200: OrderReadSerializer, 409: 'Illegal transition'}
)
@api_view(['POST'])
def update_order_status(request, pk):
    get_object_or_404(Order, pk=pk)
    serializer = StatusUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    order = lifecycle.advance_status(pk, data['status'], source=data['source'], note=data['note'])
    order = Order.objects.prefetch_related('items', 'status_changes').get(pk=order.pk)
    return Response(OrderReadSerializer(order).data)


@swagger_auto_schema(
    method='get',
    operation_description="Orders waiting in the kitchen, oldest first",
    manual_parameters=[
        openapi.Parameter('unit', openapi.IN_QUERY, description="Business unit, RESTAURANT by default", type=openapi.TYPE_STRING),
    ],
    responses={200: KitchenOrderSerializer(many=True)}
)
@api_view(['GET'])
def kitchen_display(request):
    unit = request.business_unit or BusinessUnit.RESTAURANT
    orders = lifecycle.kitchen_queue(unit)
    return Response(KitchenOrderSerializer(orders, many=True).data)


@swagger_auto_schema(method='get', manual_parameters=[tax_param])
@api_view(['GET'])
def get_receipt(request, pk):
    """Receipt data for a placed order"""
    order = get_object_or_404(Order.objects.prefetch_related('items'), pk=pk)
    receipt_data = {
        'order_id': order.id,
        'token': order.token,
        'business_unit': order.get_business_unit_display(),
        'source': f"{order.get_source_kind_display()} {order.source_id}",
        'create_date': order.create_date,
        'status': order.status,
        'payment_method': order.payment_method,
        'items': [
            {
                'name': item.name,
                'local_name': item.local_name,
                'variant': item.variant,
                'quantity': item.quantity,
                'unit_price': str(item.unit_price),
                'line_total': str(item.line_total),
            }
            for item in order.items.all()
        ],
    }
    receipt_data.update(_totals(order.total_amount, _wants_tax(request)))
    return Response(receipt_data)
