# Signal fan-out when an order is placed
import logging
from collections import defaultdict
from decimal import Decimal

from django.dispatch import Signal, receiver

from inventory import ledger
from inventory.models import MenuItem
from .pricing import deduction_for_variant

logger = logging.getLogger(__name__)

# Sent inside the placement transaction with ``order`` and the cart ``lines``
order_placed = Signal()


@receiver(order_placed)
def deduct_stock_for_order(sender, order, lines, **kwargs):
    """Deduct stock for every stock-tracked line of a newly placed order"""
    totals = defaultdict(Decimal)
    for line in lines:
        if line.tracks_stock:
            totals[line.item_id] += deduction_for_variant(line.variant) * line.quantity

    for item_id, amount in totals.items():
        try:
            ledger.deduct_menu_stock(item_id, amount, details=f"Order #{order.token}")
        except MenuItem.DoesNotExist:
            logger.warning("Menu item %s left the catalog before order #%s, stock not deducted", item_id, order.token)
