import uuid
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from inventory.models import BusinessUnit, MenuItem


class OrderStatus(models.TextChoices):
    INCOMING = "INCOMING", "Incoming"
    PREPARING = "PREPARING", "Preparing"
    READY = "READY", "Ready"
    PICKED_UP = "PICKED_UP", "Picked up"
    CANCELLED = "CANCELLED", "Cancelled"


class PaymentMethod(models.TextChoices):
    CASH = "CASH", "Cash"
    UPI = "UPI", "UPI"
    CARD = "CARD", "Card"
    ROOM_CHARGE = "ROOM_CHARGE", "Room charge"
    PENDING = "PENDING", "Pending"


class Order(models.Model):
    SOURCE_CHOICES = (
        ("TABLE", "Table"),
        ("ROOM", "Room"),
        ("BAR", "Bar"),
        ("SNOOKER", "Snooker"),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    token = models.IntegerField(default=0)
    source_id = models.CharField(max_length=50)
    source_kind = models.CharField(max_length=10, choices=SOURCE_CHOICES)
    business_unit = models.CharField(max_length=20, choices=BusinessUnit.choices)
    status = models.CharField(max_length=20, choices=OrderStatus.choices, default=OrderStatus.INCOMING)
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices, default=PaymentMethod.PENDING)

    # Computed once from the cart snapshot; never recalculated
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    create_date = models.DateTimeField(default=timezone.now)
    shift = models.ForeignKey('finance.Shift', on_delete=models.PROTECT, null=True, blank=True, related_name='orders')

    def save(self, *args, **kwargs):
        if self._state.adding and not self.token:
            today = timezone.localdate()
            last_token = Order.objects.filter(
                create_date__date=today,
                business_unit=self.business_unit,
            ).aggregate(max_token=models.Max('token'))['max_token'] or 0
            self.token = last_token + 1
        super().save(*args, **kwargs)

    def __str__(self):
        return f"#{self.token} - {self.source_id} ({self.get_business_unit_display()})"

    class Meta:
        ordering = ['-create_date']
        indexes = [models.Index(fields=["business_unit", "status", "create_date"])]


class OrderItem(models.Model):
    order = models.ForeignKey(Order, related_name='items', on_delete=models.CASCADE)
    menu_item = models.ForeignKey(MenuItem, on_delete=models.SET_NULL, null=True, blank=True, related_name='order_items')
    position = models.PositiveIntegerField(default=0)
    name = models.CharField(max_length=255)
    local_name = models.CharField(max_length=255, blank=True)
    variant = models.CharField(max_length=10, blank=True)
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    line_total = models.DecimalField(max_digits=12, decimal_places=2)

    def __str__(self):
        label = f"{self.name} ({self.variant})" if self.variant else self.name
        return f"{self.quantity} x {label}"

    class Meta:
        ordering = ['position', 'id']


class OrderStatusChange(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='status_changes')
    status = models.CharField(max_length=20, choices=OrderStatus.choices)
    source = models.CharField(max_length=32, blank=True)
    note = models.CharField(max_length=200, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at', 'id']
