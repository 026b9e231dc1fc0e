"""Shift settlement: expected takings, cash variance and the manager gate."""
import logging
from dataclasses import dataclass, field
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from venuepos.exceptions import AuthorizationDenied
from .models import Shift, ShiftCloseRequest, ShiftSettlement

logger = logging.getLogger(__name__)

AUTO_VERIFIED_NOTE = "Exact Match - Auto Verified"

CASH = "CASH"
PENDING = "PENDING"
CANCELLED = "CANCELLED"


@dataclass
class SettlementTotals:
    total_sales: Decimal = Decimal("0")
    cash_expected: Decimal = Decimal("0")
    other_expected: Decimal = Decimal("0")
    pending_total: Decimal = Decimal("0")
    order_count: int = 0
    breakdown: dict = field(default_factory=dict)


def current_shift(business_unit):
    shift, created = Shift.objects.get_or_create(business_unit=business_unit, status="OPEN")
    if created:
        logger.info("Opened new %s shift", business_unit)
    return shift


def compute_expected(orders):
    """Group ``orders`` by payment method.

    Cancelled orders are ignored. Unsettled (PENDING) orders count towards
    total sales only and are reported separately.
    """
    totals = SettlementTotals()
    breakdown = {}
    for order in orders:
        if order.status == CANCELLED:
            continue
        amount = Decimal(str(order.total_amount))
        totals.order_count += 1
        totals.total_sales += amount
        breakdown[order.payment_method] = breakdown.get(order.payment_method, Decimal("0")) + amount
        if order.payment_method == CASH:
            totals.cash_expected += amount
        elif order.payment_method == PENDING:
            totals.pending_total += amount
        else:
            totals.other_expected += amount
    totals.breakdown = breakdown
    return totals


def evaluate(counted_cash, cash_expected):
    return Decimal(str(counted_cash)) - Decimal(str(cash_expected))


def shift_totals(shift):
    return compute_expected(shift.orders.all())


def _counted(value):
    try:
        counted = Decimal(str(value))
    except (ArithmeticError, ValueError, TypeError):
        raise ValidationError({'counted_cash': 'Enter the counted cash as a number.'})
    if counted < 0:
        raise ValidationError({'counted_cash': 'Counted cash cannot be negative.'})
    return counted


def _finalize(shift, counted_cash, note):
    totals = shift_totals(shift)
    variance = evaluate(counted_cash, totals.cash_expected)
    if variance != 0 and not (note or "").strip():
        raise ValidationError({'note': 'A reason is required to close a shift with a cash variance.'})

    settlement = ShiftSettlement.objects.create(
        shift=shift,
        total_sales=totals.total_sales,
        cash_expected=totals.cash_expected,
        other_expected=totals.other_expected,
        pending_total=totals.pending_total,
        counted_cash=counted_cash,
        variance=variance,
        note=(note or AUTO_VERIFIED_NOTE).strip(),
        breakdown={method: str(amount) for method, amount in totals.breakdown.items()},
    )
    shift.status = "CLOSED"
    shift.closed_at = timezone.now()
    shift.save(update_fields=['status', 'closed_at'])
    ShiftCloseRequest.objects.filter(shift=shift).delete()

    logger.info(
        "Closed %s shift: sales %s, cash expected %s, counted %s, variance %s",
        shift.business_unit, totals.total_sales, totals.cash_expected, counted_cash, variance,
    )
    return settlement


def close_shift(business_unit, counted_cash, note=None):
    """Close the unit's open shift when the counted cash matches exactly.

    A non-zero variance is refused with AuthorizationDenied; such closures go
    through :func:`request_close` and :class:`ManagerAuthorizationGate`.
    """
    counted_cash = _counted(counted_cash)
    with transaction.atomic():
        shift = current_shift(business_unit)
        shift = Shift.objects.select_for_update().get(pk=shift.pk)
        variance = evaluate(counted_cash, shift_totals(shift).cash_expected)
        if variance != 0:
            raise AuthorizationDenied(f"Cash variance of {variance} requires manager approval.")
        return _finalize(shift, counted_cash, note)


def request_close(business_unit, counted_cash):
    """Start closing the unit's shift.

    Returns ``(settlement, None)`` when the count matches and the shift is
    closed, or ``(None, gate)`` with a gate awaiting manager approval.
    """
    counted_cash = _counted(counted_cash)
    with transaction.atomic():
        shift = current_shift(business_unit)
        variance = evaluate(counted_cash, shift_totals(shift).cash_expected)
        if variance == 0:
            return close_shift(business_unit, counted_cash), None

        close_request, _ = ShiftCloseRequest.objects.update_or_create(
            shift=shift,
            defaults={
                'counted_cash': counted_cash,
                'variance': variance,
                'state': ShiftCloseRequest.State.PROMPTED,
                'attempts': 0,
                'last_error': '',
            },
        )
    logger.info("Variance of %s on %s shift, manager approval requested", variance, business_unit)
    return None, ManagerAuthorizationGate(close_request)


class ManagerAuthorizationGate:
    """PROMPTED -> AUTHORIZED with the right PIN and a reason, else REJECTED.

    A rejected gate accepts further attempts exactly like a prompted one.
    Cancelling discards the pending closure and leaves the shift open.
    """

    def __init__(self, close_request):
        self.close_request = close_request

    @classmethod
    def for_request(cls, request_id):
        return cls(ShiftCloseRequest.objects.select_related('shift').get(pk=request_id))

    @property
    def state(self):
        return self.close_request.state

    @property
    def variance(self):
        return self.close_request.variance

    def _reject(self, message):
        ShiftCloseRequest.objects.filter(pk=self.close_request.pk).update(
            state=ShiftCloseRequest.State.REJECTED,
            attempts=self.close_request.attempts + 1,
            last_error=message,
        )
        self.close_request.refresh_from_db()
        logger.warning("Shift close authorization rejected: %s", message)
        raise AuthorizationDenied(message)

    def authorize(self, pin, reason):
        if self.state == ShiftCloseRequest.State.AUTHORIZED:
            raise ValidationError({'state': 'This closure has already been authorized.'})
        if str(pin or '') != str(settings.VENUE["MANAGER_PIN"]):
            self._reject('Invalid Manager PIN')
        reason = (reason or '').strip()
        if not reason:
            self._reject('Please provide a reason for the variance')

        with transaction.atomic():
            close_request = ShiftCloseRequest.objects.select_for_update().get(pk=self.close_request.pk)
            shift = Shift.objects.select_for_update().get(pk=close_request.shift_id)
            close_request.state = ShiftCloseRequest.State.AUTHORIZED
            close_request.save(update_fields=['state'])
            self.close_request = close_request
            return _finalize(shift, close_request.counted_cash, reason)

    def cancel(self):
        ShiftCloseRequest.objects.filter(pk=self.close_request.pk).delete()


def settlement_history(business_unit=None):
    queryset = ShiftSettlement.objects.select_related('shift')
    if business_unit:
        queryset = queryset.filter(shift__business_unit=business_unit)
    return list(queryset.order_by('-date'))
