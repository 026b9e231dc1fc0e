from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response
from django.shortcuts import get_object_or_404
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi

from venuepos.middleware import require_business_unit
from . import services
from .models import Shift, ShiftCloseRequest
from .serializers import (
    ShiftSerializer, ShiftSettlementSerializer, ShiftCloseRequestSerializer,
    CloseShiftSerializer, AuthorizeCloseSerializer, SettlementTotalsSerializer
)


@swagger_auto_schema(
    method='get',
    operation_description="Expected takings of the open shift, with a variance preview when counted_cash is given",
    manual_parameters=[
        openapi.Parameter('counted_cash', openapi.IN_QUERY, description="Cash counted in the drawer", type=openapi.TYPE_NUMBER),
    ]
)
@api_view(['GET'])
def shift_summary(request, unit):
    unit = require_business_unit(request)
    shift = Shift.objects.filter(business_unit=unit, status="OPEN").first()
    orders = shift.orders.all() if shift else []
    totals = services.compute_expected(orders)

    data = {
        'shift': ShiftSerializer(shift).data if shift else None,
        'totals': SettlementTotalsSerializer(totals).data,
        'pending_close_request': None,
    }

    counted_cash = request.query_params.get('counted_cash')
    if counted_cash:
        counted = CloseShiftSerializer(data={'counted_cash': counted_cash})
        counted.is_valid(raise_exception=True)
        data['variance'] = str(services.evaluate(counted.validated_data['counted_cash'], totals.cash_expected))

    if shift and hasattr(shift, 'close_request'):
        data['pending_close_request'] = ShiftCloseRequestSerializer(shift.close_request).data
    return Response(data)


@swagger_auto_schema(
    method='post',
    operation_description="Close the open shift. An exact count closes at once; a variance waits for manager approval",
    request_body=CloseShiftSerializer,
    responses={
        201: ShiftSettlementSerializer,
        202: ShiftCloseRequestSerializer,
    }
)
@api_view(['POST'])
def close_shift(request, unit):
    unit = require_business_unit(request)
    serializer = CloseShiftSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    settlement, gate = services.request_close(unit, serializer.validated_data['counted_cash'])
    if settlement is not None:
        return Response(ShiftSettlementSerializer(settlement).data, status=status.HTTP_201_CREATED)
    return Response(ShiftCloseRequestSerializer(gate.close_request).data, status=status.HTTP_202_ACCEPTED)


@swagger_auto_schema(
    method='post',
    operation_description="Approve a variance with the manager PIN and a reason",
    request_body=AuthorizeCloseSerializer,
    responses={201: ShiftSettlementSerializer, 403: 'Authorization denied'}
)
@api_view(['POST'])
def authorize_close(request, pk):
    close_request = get_object_or_404(ShiftCloseRequest, pk=pk)
    serializer = AuthorizeCloseSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    gate = services.ManagerAuthorizationGate(close_request)
    settlement = gate.authorize(serializer.validated_data['pin'], serializer.validated_data['reason'])
    return Response(ShiftSettlementSerializer(settlement).data, status=status.HTTP_201_CREATED)


@swagger_auto_schema(method='get', responses={200: ShiftCloseRequestSerializer})
@swagger_auto_schema(method='delete', operation_description="Cancel the pending closure; the shift stays open")
@api_view(['GET', 'DELETE'])
def close_request_detail(request, pk):
    close_request = get_object_or_404(ShiftCloseRequest, pk=pk)
    if request.method == 'DELETE':
        services.ManagerAuthorizationGate(close_request).cancel()
        return Response(status=status.HTTP_204_NO_CONTENT)
    return Response(ShiftCloseRequestSerializer(close_request).data)


@swagger_auto_schema(method='get', responses={200: ShiftSettlementSerializer(many=True)})
@api_view(['GET'])
def settlement_history(request, unit):
    unit = require_business_unit(request)
    return Response(ShiftSettlementSerializer(services.settlement_history(unit), many=True).data)
