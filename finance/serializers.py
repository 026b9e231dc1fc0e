from rest_framework import serializers

from .models import Shift, ShiftCloseRequest, ShiftSettlement


class ShiftSerializer(serializers.ModelSerializer):
    class Meta:
        model = Shift
        fields = ['id', 'business_unit', 'status', 'opened_at', 'closed_at']


class ShiftSettlementSerializer(serializers.ModelSerializer):
    business_unit = serializers.CharField(source='shift.business_unit', read_only=True)

    class Meta:
        model = ShiftSettlement
        fields = [
            'id', 'shift', 'business_unit', 'date', 'total_sales', 'cash_expected', 'other_expected',
            'pending_total', 'counted_cash', 'variance', 'note', 'breakdown',
        ]
        read_only_fields = fields


class ShiftCloseRequestSerializer(serializers.ModelSerializer):
    message = serializers.SerializerMethodField()

    class Meta:
        model = ShiftCloseRequest
        fields = ['id', 'shift', 'counted_cash', 'variance', 'state', 'attempts', 'last_error', 'created_at', 'message']
        read_only_fields = fields

    def get_message(self, obj):
        return f"Manager approval required for a cash variance of {obj.variance}"


class CloseShiftSerializer(serializers.Serializer):
    counted_cash = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)


class AuthorizeCloseSerializer(serializers.Serializer):
    pin = serializers.CharField(allow_blank=True, default='')
    reason = serializers.CharField(allow_blank=True, default='', max_length=255)


class SettlementTotalsSerializer(serializers.Serializer):
    total_sales = serializers.DecimalField(max_digits=12, decimal_places=2)
    cash_expected = serializers.DecimalField(max_digits=12, decimal_places=2)
    other_expected = serializers.DecimalField(max_digits=12, decimal_places=2)
    pending_total = serializers.DecimalField(max_digits=12, decimal_places=2)
    order_count = serializers.IntegerField()
    breakdown = serializers.DictField(child=serializers.DecimalField(max_digits=12, decimal_places=2))
