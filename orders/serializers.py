from rest_framework import serializers

from .cart import RemovalPolicy
from .lifecycle import elapsed_minutes, is_late
from .models import Order, OrderItem, OrderStatus, OrderStatusChange, PaymentMethod
from .pricing import POUR_SIZES


class CartLineSerializer(serializers.Serializer):
    key = serializers.CharField(read_only=True)
    item_id = serializers.IntegerField()
    name = serializers.CharField()
    local_name = serializers.CharField(allow_blank=True)
    variant = serializers.CharField(allow_null=True)
    unit_price = serializers.DecimalField(max_digits=10, decimal_places=2)
    quantity = serializers.IntegerField()
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2)
    tracks_stock = serializers.BooleanField()


class CartSerializer(serializers.Serializer):
    business_unit = serializers.CharField()
    source_id = serializers.CharField()
    lines = CartLineSerializer(many=True)
    total = serializers.SerializerMethodField()
    item_count = serializers.SerializerMethodField()

    def get_total(self, cart):
        return str(cart.total())

    def get_item_count(self, cart):
        return cart.item_count()


class CartAddSerializer(serializers.Serializer):
    menu_item_id = serializers.IntegerField()
    variant = serializers.ChoiceField(choices=POUR_SIZES, required=False, allow_null=True)
    quantity = serializers.IntegerField(min_value=1, default=1)


class CartRemoveSerializer(serializers.Serializer):
    key = serializers.CharField()
    policy = serializers.ChoiceField(choices=[policy.value for policy in RemovalPolicy])

    def validate_policy(self, value):
        return RemovalPolicy(value)


class PlaceOrderSerializer(serializers.Serializer):
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices, default=PaymentMethod.PENDING)


class StatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)
    source = serializers.CharField(max_length=32, required=False, allow_blank=True, default='')
    note = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')


class VoiceOrderSerializer(serializers.Serializer):
    transcript = serializers.CharField(allow_blank=True, max_length=1000)


class OrderItemReadSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = ['id', 'menu_item', 'position', 'name', 'local_name', 'variant', 'quantity', 'unit_price', 'line_total']


class OrderStatusChangeSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderStatusChange
        fields = ['status', 'source', 'note', 'created_at']


class OrderReadSerializer(serializers.ModelSerializer):
    items = OrderItemReadSerializer(many=True, read_only=True)
    status_changes = OrderStatusChangeSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'token', 'source_id', 'source_kind', 'business_unit', 'status',
            'payment_method', 'total_amount', 'create_date', 'shift', 'items', 'status_changes',
        ]
        read_only_fields = fields


class KitchenOrderSerializer(serializers.ModelSerializer):
    """Kitchen ticket: lines in serving order plus the age of the order"""
    items = OrderItemReadSerializer(many=True, read_only=True)
    elapsed_minutes = serializers.SerializerMethodField()
    is_late = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = ['id', 'token', 'source_id', 'status', 'create_date', 'items', 'elapsed_minutes', 'is_late']

    def get_elapsed_minutes(self, obj):
        return elapsed_minutes(obj, self.context.get('now'))

    def get_is_late(self, obj):
        return is_late(obj, self.context.get('now'))
