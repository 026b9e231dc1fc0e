from decimal import Decimal

import pytest
from django.test import override_settings
from rest_framework.exceptions import ValidationError

from finance import services
from finance.models import Shift, ShiftCloseRequest, ShiftSettlement
from inventory.models import BusinessUnit
from orders import lifecycle
from orders.cart import Cart
from orders.models import OrderStatus, PaymentMethod
from venuepos.exceptions import AuthorizationDenied

BAR = BusinessUnit.BAR


def sell(item, payment_method, quantity=1, variant="30ml"):
    cart = Cart(item.business_unit, "counter")
    cart.add_line(item, variant, quantity)
    return lifecycle.place_order(cart, payment_method=payment_method)


@pytest.fixture
def bar_shift(rum):
    # 100 cash + 200 UPI + 300 card + 400 pending
    sell(rum, PaymentMethod.CASH)
    sell(rum, PaymentMethod.UPI, quantity=2)
    sell(rum, PaymentMethod.CARD, quantity=3)
    sell(rum, PaymentMethod.PENDING, quantity=4)
    return Shift.objects.get(business_unit=BAR, status="OPEN")


@pytest.mark.django_db
def test_expected_totals_group_by_payment_method(bar_shift):
    totals = services.compute_expected(bar_shift.orders.all())

    assert totals.cash_expected == Decimal("100")
    assert totals.other_expected == Decimal("500")
    assert totals.pending_total == Decimal("400")
    assert totals.total_sales == Decimal("1000")
    assert totals.order_count == 4
    assert totals.breakdown[PaymentMethod.UPI] == Decimal("200")


@pytest.mark.django_db
def test_cancelled_orders_are_not_expected(dal):
    cart = Cart(BusinessUnit.RESTAURANT, "T1")
    cart.add_line(dal)
    order = lifecycle.place_order(cart, payment_method=PaymentMethod.CASH)
    lifecycle.advance_status(order.pk, OrderStatus.CANCELLED)

    totals = services.compute_expected(order.shift.orders.all())
    assert totals.cash_expected == 0
    assert totals.total_sales == 0


def test_variance_is_counted_minus_expected():
    assert services.evaluate(Decimal("950"), Decimal("1000")) == Decimal("-50")
    assert services.evaluate(Decimal("1000"), Decimal("1000")) == 0


@pytest.mark.django_db
def test_exact_count_closes_with_auto_note(bar_shift):
    settlement, gate = services.request_close(BAR, Decimal("100"))

    assert gate is None
    assert settlement.variance == 0
    assert settlement.note == services.AUTO_VERIFIED_NOTE
    assert settlement.other_expected == Decimal("500.00")
    assert settlement.breakdown["PENDING"] == "400.00"
    bar_shift.refresh_from_db()
    assert bar_shift.status == "CLOSED"
    assert bar_shift.closed_at is not None


@pytest.mark.django_db
def test_variance_needs_manager_approval(bar_shift):
    with pytest.raises(AuthorizationDenied):
        services.close_shift(BAR, Decimal("90"))

    settlement, gate = services.request_close(BAR, Decimal("90"))
    assert settlement is None
    assert gate.state == ShiftCloseRequest.State.PROMPTED
    assert gate.variance == Decimal("-10.00")
    assert ShiftSettlement.objects.count() == 0
    bar_shift.refresh_from_db()
    assert bar_shift.is_open


@pytest.mark.django_db
@override_settings(VENUE={"MANAGER_PIN": "4321", "KITCHEN_LATE_MINUTES": 15,
                          "DINE_IN_TAX_RATE": Decimal("0.05"), "BOTTLE_LOW_STOCK": Decimal("2")})
def test_rejected_gate_can_be_retried(bar_shift):
    _, gate = services.request_close(BAR, Decimal("90"))

    with pytest.raises(AuthorizationDenied):
        gate.authorize("1234", "Short change given")
    assert gate.state == ShiftCloseRequest.State.REJECTED
    assert gate.close_request.last_error == "Invalid Manager PIN"

    with pytest.raises(AuthorizationDenied):
        gate.authorize("4321", "   ")
    assert gate.close_request.attempts == 2
    bar_shift.refresh_from_db()
    assert bar_shift.is_open

    settlement = gate.authorize("4321", "Short change given")
    assert gate.state == ShiftCloseRequest.State.AUTHORIZED
    assert settlement.variance == Decimal("-10.00")
    assert settlement.counted_cash - settlement.cash_expected == settlement.variance
    assert settlement.note == "Short change given"
    bar_shift.refresh_from_db()
    assert not bar_shift.is_open


@pytest.mark.django_db
def test_cancel_discards_request_and_keeps_shift_open(bar_shift):
    _, gate = services.request_close(BAR, Decimal("150"))
    gate.cancel()

    assert not ShiftCloseRequest.objects.exists()
    assert ShiftSettlement.objects.count() == 0
    bar_shift.refresh_from_db()
    assert bar_shift.is_open


@pytest.mark.django_db
def test_note_required_for_variance_at_finalize(bar_shift):
    with pytest.raises(ValidationError):
        services._finalize(bar_shift, Decimal("0"), "")


@pytest.mark.django_db
def test_next_order_after_close_opens_fresh_shift(bar_shift, rum):
    services.request_close(BAR, Decimal("100"))
    order = sell(rum, PaymentMethod.CASH)

    assert order.shift_id != bar_shift.pk
    totals = services.compute_expected(order.shift.orders.all())
    assert totals.total_sales == Decimal("100")


@pytest.mark.django_db
def test_history_is_newest_first(rum):
    sell(rum, PaymentMethod.CASH)
    first, _ = services.request_close(BAR, Decimal("100"))
    sell(rum, PaymentMethod.CASH, quantity=2)
    second, _ = services.request_close(BAR, Decimal("200"))

    assert [s.pk for s in services.settlement_history(BAR)] == [second.pk, first.pk]
    assert services.settlement_history(BusinessUnit.RESTAURANT) == []
