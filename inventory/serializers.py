from decimal import Decimal, InvalidOperation

from rest_framework import serializers

from orders.pricing import POUR_SIZES
from .models import InventoryItem, InventoryLog, MenuItem


class MenuItemSerializer(serializers.ModelSerializer):
    tracks_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = MenuItem
        fields = [
            'id', 'name', 'local_name', 'price', 'business_unit', 'category', 'sub_category',
            'is_available', 'variant_prices', 'stock', 'tracks_stock', 'is_veg', 'is_recommended',
            'created_at',
        ]
        read_only_fields = ['business_unit', 'stock', 'created_at']


class MenuItemWriteSerializer(serializers.ModelSerializer):
    """One entry of a full menu replacement.

    ``id`` marks an existing item to update; ``stock`` is only honoured for new
    items, later changes go through restocking.
    """
    id = serializers.IntegerField(required=False)

    class Meta:
        model = MenuItem
        fields = [
            'id', 'name', 'local_name', 'price', 'category', 'sub_category', 'is_available',
            'variant_prices', 'stock', 'is_veg', 'is_recommended',
        ]

    def validate_variant_prices(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError("Variant prices must be an object keyed by pour size.")
        cleaned = {}
        for variant, price in value.items():
            if variant not in POUR_SIZES:
                raise serializers.ValidationError(f"Unknown pour size '{variant}'.")
            try:
                price = Decimal(str(price))
            except (InvalidOperation, ValueError):
                raise serializers.ValidationError(f"Price for {variant} must be a number.")
            if price < 0:
                raise serializers.ValidationError(f"Price for {variant} cannot be negative.")
            cleaned[variant] = str(price)
        return cleaned


class AvailabilitySerializer(serializers.Serializer):
    is_available = serializers.BooleanField()


class StockAmountSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0.01"))
    details = serializers.CharField(max_length=255, required=False, allow_blank=True)


class TransferSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0.01"))
    target_tier = serializers.ChoiceField(choices=InventoryItem.Tier.choices)


class InventoryItemSerializer(serializers.ModelSerializer):
    is_low = serializers.BooleanField(read_only=True)

    class Meta:
        model = InventoryItem
        fields = ['id', 'tier', 'name', 'quantity', 'unit', 'min_threshold', 'is_low', 'created_at']
        read_only_fields = ['created_at']


class InventoryLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = InventoryLog
        fields = ['id', 'action', 'amount', 'details', 'created_at']
