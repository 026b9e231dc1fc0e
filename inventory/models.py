from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models


class BusinessUnit(models.TextChoices):
    RESTAURANT = "RESTAURANT", "Restaurant"
    BAR = "BAR", "Bar"
    LODGING = "LODGING", "Lodging"
    BILLIARDS = "BILLIARDS", "Billiards"


class MenuItem(models.Model):
    CATEGORY_CHOICES = (
        ("food", "Food"),
        ("drink", "Drink"),
        ("billiards", "Billiards"),
        ("room", "Room"),
    )

    name = models.CharField(max_length=255)
    local_name = models.CharField(max_length=255, blank=True)
    price = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal("0"))])
    business_unit = models.CharField(max_length=20, choices=BusinessUnit.choices)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, default="food")
    sub_category = models.CharField(max_length=100, blank=True)
    is_available = models.BooleanField(default=True)

    # Optional override per pour size, e.g. {"60ml": "180.00", "Btl": "1100.00"}
    variant_prices = models.JSONField(default=dict, blank=True)

    # Bottle stock for the bar; null means the item is not stock tracked
    stock = models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True,
        validators=[MinValueValidator(Decimal("0"))],
    )

    is_veg = models.BooleanField(default=False)
    is_recommended = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name

    @property
    def tracks_stock(self):
        return self.stock is not None

    class Meta:
        ordering = ['business_unit', 'sub_category', 'name']
        indexes = [models.Index(fields=["business_unit", "is_available"])]
        constraints = [
            models.CheckConstraint(condition=models.Q(price__gte=0), name="menuitem_price_non_negative"),
            models.CheckConstraint(
                condition=models.Q(stock__isnull=True) | models.Q(stock__gte=0),
                name="menuitem_stock_non_negative",
            ),
        ]


class InventoryItem(models.Model):
    """Consumable stock for the restaurant, held in one of two tiers."""

    class Tier(models.TextChoices):
        RAW = "RAW", "Main store"
        KITCHEN = "KITCHEN", "Kitchen"

    tier = models.CharField(max_length=10, choices=Tier.choices, default=Tier.RAW)
    name = models.CharField(max_length=255)
    quantity = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    unit = models.CharField(max_length=20, default="kg")
    min_threshold = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.name} ({self.get_tier_display()})"

    @property
    def is_low(self):
        return self.quantity <= self.min_threshold

    class Meta:
        ordering = ['tier', 'name']
        constraints = [
            models.CheckConstraint(condition=models.Q(quantity__gte=0), name="inventoryitem_quantity_non_negative"),
        ]


class InventoryLog(models.Model):
    class Action(models.TextChoices):
        CREATE = "CREATE", "Create"
        TOPUP = "TOPUP", "Top up"
        TRANSFER_OUT = "TRANSFER_OUT", "Transfer out"
        TRANSFER_IN = "TRANSFER_IN", "Transfer in"
        USED = "USED", "Used"

    # Exactly one of the two targets is set
    item = models.ForeignKey(InventoryItem, on_delete=models.CASCADE, null=True, blank=True, related_name='history')
    menu_item = models.ForeignKey(MenuItem, on_delete=models.CASCADE, null=True, blank=True, related_name='stock_history')
    action = models.CharField(max_length=20, choices=Action.choices)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    details = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        target = self.item or self.menu_item
        return f"{self.action} {self.amount} - {target}"

    class Meta:
        ordering = ['-created_at', '-id']
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(item__isnull=False, menu_item__isnull=True)
                    | models.Q(item__isnull=True, menu_item__isnull=False)
                ),
                name="inventorylog_single_target",
            ),
        ]
