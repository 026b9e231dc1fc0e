"""Order placement and the order status state machine.

Every unit shares one state machine; what differs per unit is the
fulfillment policy, i.e. where a new order enters it. Kitchen-routed units
start at INCOMING and move through PREPARING and READY on the kitchen
display. Direct-service units (bar, rooms, billiards) hand the order over at
the counter, so it is recorded READY straight away.
"""
import logging
from dataclasses import dataclass

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from finance.services import current_shift
from inventory.models import BusinessUnit
from venuepos.exceptions import IllegalTransition
from .models import Order, OrderItem, OrderStatus, OrderStatusChange, PaymentMethod
from .signals import order_placed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FulfillmentPolicy:
    initial_status: str
    source_kind: str
    kitchen_routed: bool


FULFILLMENT_POLICIES = {
    BusinessUnit.RESTAURANT: FulfillmentPolicy(OrderStatus.INCOMING, "TABLE", True),
    BusinessUnit.BAR: FulfillmentPolicy(OrderStatus.READY, "BAR", False),
    BusinessUnit.LODGING: FulfillmentPolicy(OrderStatus.READY, "ROOM", False),
    BusinessUnit.BILLIARDS: FulfillmentPolicy(OrderStatus.READY, "SNOOKER", False),
}

TRANSITIONS = {
    OrderStatus.INCOMING: {OrderStatus.PREPARING, OrderStatus.CANCELLED},
    OrderStatus.PREPARING: {OrderStatus.READY},
    OrderStatus.READY: {OrderStatus.PICKED_UP},
    OrderStatus.PICKED_UP: set(),
    OrderStatus.CANCELLED: set(),
}

KITCHEN_STATUSES = (OrderStatus.INCOMING, OrderStatus.PREPARING)


def policy_for(business_unit):
    try:
        return FULFILLMENT_POLICIES[business_unit]
    except KeyError:
        raise ValidationError({'business_unit': f"Unknown business unit '{business_unit}'."})


def can_transition(current, new):
    return new in TRANSITIONS.get(current, set())


def place_order(cart, source_id=None, payment_method=PaymentMethod.PENDING):
    """Turn ``cart`` into an Order and clear it.

    Lines are copied by value, so later catalog edits never touch the order.
    Stock-tracked lines are deducted by the ``order_placed`` receiver inside
    the same transaction.
    """
    if not cart.lines:
        raise ValidationError({'cart': 'Cart is empty.'})
    if payment_method not in PaymentMethod.values:
        raise ValidationError({'payment_method': f"Unknown payment method '{payment_method}'."})
    source_id = source_id or cart.source_id
    if not source_id:
        raise ValidationError({'source_id': 'A table, room or counter is required.'})

    policy = policy_for(cart.business_unit)

    with transaction.atomic():
        order = Order.objects.create(
            source_id=source_id,
            source_kind=policy.source_kind,
            business_unit=cart.business_unit,
            status=policy.initial_status,
            payment_method=payment_method,
            total_amount=cart.total(),
            shift=current_shift(cart.business_unit),
        )
        OrderItem.objects.bulk_create([
            OrderItem(
                order=order,
                menu_item_id=line.item_id,
                position=position,
                name=line.name,
                local_name=line.local_name,
                variant=line.variant or '',
                quantity=line.quantity,
                unit_price=line.unit_price,
                line_total=line.line_total,
            )
            for position, line in enumerate(cart.lines)
        ])
        OrderStatusChange.objects.create(order=order, status=order.status, source='initial')
        order_placed.send(sender=Order, order=order, lines=list(cart.lines))

    cart.clear()
    logger.info(
        "Order #%s placed for %s %s: %s via %s",
        order.token, order.business_unit, order.source_id, order.total_amount, order.payment_method,
    )
    return order


def advance_status(order_id, new_status, source='', note=''):
    """Move an order to ``new_status``; only the status field changes."""
    if new_status not in OrderStatus.values:
        raise ValidationError({'status': f"Unknown status '{new_status}'."})

    with transaction.atomic():
        order = Order.objects.select_for_update().get(pk=order_id)
        if not can_transition(order.status, new_status):
            raise IllegalTransition(f"Order #{order.token} cannot move from {order.status} to {new_status}.")
        previous = order.status
        order.status = new_status
        order.save(update_fields=['status'])
        OrderStatusChange.objects.create(order=order, status=new_status, source=source, note=note)

    logger.info("Order #%s %s -> %s", order.token, previous, new_status)
    return order


def elapsed_minutes(order, now=None):
    now = now or timezone.now()
    return max(0, int((now - order.create_date).total_seconds() // 60))


def is_late(order, now=None):
    return elapsed_minutes(order, now) > settings.VENUE["KITCHEN_LATE_MINUTES"]


def kitchen_queue(business_unit=BusinessUnit.RESTAURANT):
    return list(
        Order.objects.filter(business_unit=business_unit, status__in=KITCHEN_STATUSES)
        .prefetch_related('items')
        .order_by('create_date')
    )

