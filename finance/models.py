import uuid
from decimal import Decimal

from django.db import models
from django.utils import timezone

from inventory.models import BusinessUnit


class Shift(models.Model):
    STATUS_CHOICES = (
        ("OPEN", "Open"),
        ("CLOSED", "Closed"),
    )

    business_unit = models.CharField(max_length=20, choices=BusinessUnit.choices)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default="OPEN")
    opened_at = models.DateTimeField(default=timezone.now)
    closed_at = models.DateTimeField(null=True, blank=True)

    @property
    def is_open(self):
        return self.status == "OPEN"

    def __str__(self):
        return f"{self.get_business_unit_display()} shift {self.opened_at:%d/%m/%Y %H:%M} ({self.status})"

    class Meta:
        ordering = ['-opened_at']
        constraints = [
            models.UniqueConstraint(
                fields=['business_unit'],
                condition=models.Q(status="OPEN"),
                name="one_open_shift_per_unit",
            ),
        ]


class ShiftSettlement(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    shift = models.OneToOneField(Shift, on_delete=models.PROTECT, related_name='settlement')
    date = models.DateTimeField(default=timezone.now)
    total_sales = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    cash_expected = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    other_expected = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    pending_total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    counted_cash = models.DecimalField(max_digits=12, decimal_places=2)
    variance = models.DecimalField(max_digits=12, decimal_places=2)
    note = models.CharField(max_length=255, blank=True)
    breakdown = models.JSONField(default=dict, blank=True)

    def __str__(self):
        return f"Settlement {self.date:%d/%m/%Y} - variance {self.variance}"

    class Meta:
        ordering = ['-date']
        constraints = [
            models.CheckConstraint(
                condition=models.Q(variance=0) | ~models.Q(note=""),
                name="variance_requires_note",
            ),
        ]


class ShiftCloseRequest(models.Model):
    """A shift closure waiting for manager approval of a cash variance."""

    class State(models.TextChoices):
        PROMPTED = "PROMPTED", "Prompted"
        REJECTED = "REJECTED", "Rejected"
        AUTHORIZED = "AUTHORIZED", "Authorized"

    shift = models.OneToOneField(Shift, on_delete=models.CASCADE, related_name='close_request')
    counted_cash = models.DecimalField(max_digits=12, decimal_places=2)
    variance = models.DecimalField(max_digits=12, decimal_places=2)
    state = models.CharField(max_length=12, choices=State.choices, default=State.PROMPTED)
    attempts = models.PositiveIntegerField(default=0)
    last_error = models.CharField(max_length=120, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"Close request for {self.shift} ({self.state})"
