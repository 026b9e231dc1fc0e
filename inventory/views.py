from rest_framework import generics, status, filters
from rest_framework.decorators import api_view
from rest_framework.response import Response
from django.shortcuts import get_object_or_404
from django_filters.rest_framework import DjangoFilterBackend
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi

from venuepos.middleware import require_business_unit
from . import catalog, ledger
from .models import InventoryItem, MenuItem
from .serializers import (
    MenuItemSerializer, MenuItemWriteSerializer, AvailabilitySerializer, StockAmountSerializer,
    TransferSerializer, InventoryItemSerializer, InventoryLogSerializer
)


# Menu catalog views
class MenuListView(generics.ListAPIView):
    """
    get: List the menu of one business unit
    put: Replace the unit's whole menu (items left out are retired)
    """
    serializer_class = MenuItemSerializer
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['category', 'sub_category', 'is_available', 'is_veg', 'is_recommended']
    search_fields = ['name', 'local_name']
    ordering_fields = ['name', 'price', 'created_at']

    def get_queryset(self):
        if getattr(self, 'swagger_fake_view', False):
            return MenuItem.objects.none()
        unit = require_business_unit(self.request)
        return MenuItem.objects.filter(business_unit=unit)

    @swagger_auto_schema(
        operation_description="Replace the unit's menu with the given list",
        request_body=MenuItemWriteSerializer(many=True),
        responses={200: MenuItemSerializer(many=True), 400: 'Bad Request'}
    )
    def put(self, request, *args, **kwargs):
        unit = require_business_unit(request)
        serializer = MenuItemWriteSerializer(data=request.data, many=True)
        serializer.is_valid(raise_exception=True)
        catalog.replace_menu(unit, serializer.validated_data)
        return Response(MenuItemSerializer(catalog.menu_snapshot(unit), many=True).data)


@swagger_auto_schema(
    method='post',
    operation_description="Mark a menu item available or sold out",
    request_body=AvailabilitySerializer,
    responses={200: MenuItemSerializer}
)
@api_view(['POST'])
def set_menu_item_availability(request, pk):
    serializer = AvailabilitySerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    item = catalog.set_availability(pk, serializer.validated_data['is_available'])
    return Response(MenuItemSerializer(item).data)


@swagger_auto_schema(
    method='post',
    operation_description="Add bottles to a stock-tracked bar item",
    request_body=StockAmountSerializer,
    responses={200: MenuItemSerializer}
)
@api_view(['POST'])
def restock_menu_item(request, pk):
    get_object_or_404(MenuItem, pk=pk)
    serializer = StockAmountSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    item = ledger.restock_menu_item(
        pk, serializer.validated_data['amount'], serializer.validated_data.get('details') or 'Restock'
    )
    return Response(MenuItemSerializer(item).data)


@swagger_auto_schema(method='get', responses={200: InventoryLogSerializer(many=True)})
@api_view(['GET'])
def menu_item_history(request, pk):
    get_object_or_404(MenuItem, pk=pk)
    return Response(InventoryLogSerializer(ledger.menu_stock_history(pk), many=True).data)


# Inventory ledger views
class InventoryItemListCreateView(generics.ListCreateAPIView):
    """
    get: List inventory items, optionally by tier
    post: Create an item with its opening stock
    """
    queryset = InventoryItem.objects.all()
    serializer_class = InventoryItemSerializer
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['tier', 'unit']
    search_fields = ['name']
    ordering_fields = ['name', 'quantity', 'created_at']

    def perform_create(self, serializer):
        data = serializer.validated_data
        serializer.instance = ledger.create_item(
            data.get('tier', InventoryItem.Tier.RAW),
            data['name'],
            data.get('quantity', 0),
            data.get('unit', 'kg'),
            data.get('min_threshold', 0),
        )


class InventoryItemDetailView(generics.RetrieveAPIView):
    queryset = InventoryItem.objects.all()
    serializer_class = InventoryItemSerializer


@swagger_auto_schema(
    method='post',
    operation_description="Add stock to an inventory item",
    request_body=StockAmountSerializer,
    responses={200: InventoryItemSerializer}
)
@api_view(['POST'])
def top_up_item(request, pk):
    get_object_or_404(InventoryItem, pk=pk)
    serializer = StockAmountSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    item = ledger.top_up(pk, serializer.validated_data['amount'], serializer.validated_data.get('details') or 'Manual Topup')
    return Response(InventoryItemSerializer(item).data)


@swagger_auto_schema(
    method='post',
    operation_description="Move stock between the main store and the kitchen",
    request_body=TransferSerializer,
    responses={
        200: openapi.Response(description="Source and target after the transfer"),
        409: openapi.Response(description="Insufficient stock"),
    }
)
@api_view(['POST'])
def transfer_item(request, pk):
    get_object_or_404(InventoryItem, pk=pk)
    serializer = TransferSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    source, target = ledger.transfer(
        pk, serializer.validated_data['amount'], serializer.validated_data['target_tier']
    )
    return Response({
        'source': InventoryItemSerializer(source).data,
        'target': InventoryItemSerializer(target).data,
    })


@swagger_auto_schema(
    method='post',
    operation_description="Record usage; stock never goes below zero",
    request_body=StockAmountSerializer,
    responses={200: InventoryItemSerializer}
)
@api_view(['POST'])
def use_item(request, pk):
    get_object_or_404(InventoryItem, pk=pk)
    serializer = StockAmountSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    item = ledger.deduct(pk, serializer.validated_data['amount'], serializer.validated_data.get('details') or 'Used')
    return Response(InventoryItemSerializer(item).data)


@swagger_auto_schema(method='get', responses={200: InventoryLogSerializer(many=True)})
@api_view(['GET'])
def item_history(request, pk):
    get_object_or_404(InventoryItem, pk=pk)
    return Response(InventoryLogSerializer(ledger.history(pk), many=True).data)


@swagger_auto_schema(
    method='get',
    manual_parameters=[
        openapi.Parameter('unit', openapi.IN_QUERY, description="Limit to one business unit", type=openapi.TYPE_STRING),
    ]
)
@api_view(['GET'])
def low_stock(request):
    """Inventory items at or below threshold and bar bottles running out"""
    result = ledger.low_stock(request.business_unit)
    return Response({
        'inventory': InventoryItemSerializer(result['inventory'], many=True).data,
        'menu_items': MenuItemSerializer(result['menu_items'], many=True).data,
    })
